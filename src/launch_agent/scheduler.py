"""
Durable delayed-work queue for retention checks.

Every scheduled :class:`RetentionJob` is written to the signal store
before its timer is armed and deleted once it has run, so a restart
loses nothing: :meth:`RetentionScheduler.rearm` reloads the pending jobs
and runs the overdue ones immediately.  Shutdown cancels timers but
leaves persisted jobs in place for the next run.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from .logging_config import launch_context
from .models import RetentionJob

logger = logging.getLogger(__name__)

JobRunner = Callable[[RetentionJob], Awaitable[Any]]


class RetentionScheduler:
    """One timer task per mint, backed by the store's ``retention_jobs``."""

    def __init__(self, store: Any, runner: JobRunner) -> None:
        self._store = store
        self._runner = runner
        self._timers: dict[str, asyncio.Task] = {}

    @property
    def pending(self) -> list[str]:
        return [mint for mint, task in self._timers.items() if not task.done()]

    async def schedule(self, job: RetentionJob) -> None:
        """Persist *job* and arm its timer (replacing any timer for the mint)."""
        await self._store.save_job(job)
        self._arm(job)

    async def rearm(self) -> int:
        """Arm every persisted job; returns how many were loaded."""
        jobs = await self._store.load_jobs()
        for job in jobs:
            if job.mint not in self.pending:
                self._arm(job)
        if jobs:
            logger.info("[retention] re-armed %d pending retention checks", len(jobs))
        return len(jobs)

    async def shutdown(self) -> None:
        """Cancel all timers; persisted jobs stay for the next run."""
        tasks = list(self._timers.values())
        self._timers.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _arm(self, job: RetentionJob) -> None:
        previous = self._timers.pop(job.mint, None)
        if previous is not None and not previous.done():
            previous.cancel()
        self._timers[job.mint] = asyncio.create_task(
            self._run_when_due(job), name=f"retention:{job.mint}"
        )

    async def _run_when_due(self, job: RetentionJob) -> None:
        delay = (job.due_at - datetime.now(tz=timezone.utc)).total_seconds()
        if delay > 0:
            await asyncio.sleep(delay)

        with launch_context(mint=job.mint, slot=job.slot, stage="retention"):
            try:
                await self._runner(job)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[retention] check failed for %s", job.mint)
            await self._store.delete_job(job.mint)
            if self._timers.get(job.mint) is asyncio.current_task():
                del self._timers[job.mint]
