"""
Launch analysis coordinator.

Drives each launch through its lifecycle::

    new → block0_analyzed → farm_detected
                          → awaiting_retention_check → supply_shock_confirmed
                                                     → rejected

``aborted`` is reachable from every non-terminal state (missing chain
data, timeouts).  States only move forward; an illegal transition is a
programming error and raises :class:`LaunchStateError`.

Each launch runs as its own asyncio task (:meth:`LaunchCoordinator.spawn`)
sharing only the read-only settings, the paced RPC client and the
append-only store.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import sentry_sdk

from .block_scanner import extract_block_buyers, find_creation_mint
from .bundle_classifier import classify_bundle, coordination_evidence
from .data_sources.solana_rpc import SolanaRpcClient
from .errors import LaunchStateError, MissingData
from .funding_tracer import trace_funding
from .logging_config import launch_context
from .models import (
    BundleVerdict,
    Classification,
    LaunchEvent,
    LaunchState,
    RetentionJob,
    RetentionOutcome,
    Signal,
    Strategy,
)
from .retention_monitor import run_retention_check
from .scheduler import RetentionScheduler
from .settings import DetectionSettings

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[LaunchState, frozenset[LaunchState]] = {
    LaunchState.NEW: frozenset({LaunchState.BLOCK0_ANALYZED, LaunchState.ABORTED}),
    LaunchState.BLOCK0_ANALYZED: frozenset({
        LaunchState.FARM_DETECTED,
        LaunchState.AWAITING_RETENTION_CHECK,
        LaunchState.ABORTED,
    }),
    LaunchState.AWAITING_RETENTION_CHECK: frozenset({
        LaunchState.SUPPLY_SHOCK_CONFIRMED,
        LaunchState.REJECTED,
        LaunchState.ABORTED,
    }),
    LaunchState.FARM_DETECTED: frozenset(),
    LaunchState.SUPPLY_SHOCK_CONFIRMED: frozenset(),
    LaunchState.REJECTED: frozenset(),
    LaunchState.ABORTED: frozenset(),
}

TERMINAL_STATES = frozenset(s for s, nxt in _TRANSITIONS.items() if not nxt)

# Launches remembered for de-duplication; terminal ones are pruned past this
_MAX_TRACKED_LAUNCHES = 20_000
# Pause between block fetch attempts (seconds)
_BLOCK_RETRY_DELAY = 1.0


class LaunchCoordinator:
    """Runs block-0 analysis per launch and hands PENDING ones to the scheduler."""

    def __init__(
        self,
        rpc: SolanaRpcClient,
        store: Any,
        settings: DetectionSettings,
        *,
        scheduler: Optional[RetentionScheduler] = None,
    ) -> None:
        self._rpc = rpc
        self._store = store
        self._settings = settings
        self._scheduler = scheduler or RetentionScheduler(store, self.run_retention)
        self._states: OrderedDict[str, LaunchState] = OrderedDict()
        self._tasks: set[asyncio.Task] = set()

    @property
    def scheduler(self) -> RetentionScheduler:
        return self._scheduler

    def state(self, creation_signature: str) -> Optional[LaunchState]:
        return self._states.get(creation_signature)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(self, key: str, new: LaunchState) -> None:
        current = self._states.get(key)
        if current is None:
            if new != LaunchState.NEW:
                raise LaunchStateError(f"{key}: unknown launch cannot enter {new.value}")
            self._states[key] = new
            self._prune()
            return
        if new not in _TRANSITIONS[current]:
            raise LaunchStateError(f"{key}: illegal transition {current.value} -> {new.value}")
        self._states[key] = new

    def _abort(self, key: str) -> None:
        current = self._states.get(key)
        if current is not None and current not in TERMINAL_STATES:
            self._transition(key, LaunchState.ABORTED)

    def _prune(self) -> None:
        if len(self._states) <= _MAX_TRACKED_LAUNCHES:
            return
        for key in [k for k, s in self._states.items() if s in TERMINAL_STATES]:
            del self._states[key]
            if len(self._states) <= _MAX_TRACKED_LAUNCHES:
                break

    # ------------------------------------------------------------------
    # Task management
    # ------------------------------------------------------------------

    def spawn(self, event: LaunchEvent) -> asyncio.Task:
        """Analyse *event* in its own task; failures never reach the caller."""
        task = asyncio.create_task(self._guarded(event), name=f"launch:{event.creation_signature[:12]}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guarded(self, event: LaunchEvent) -> Optional[BundleVerdict]:
        try:
            return await self.handle_launch(event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Launch analysis crashed for %s", event.creation_signature)
            sentry_sdk.capture_exception(exc)
            self._abort(event.creation_signature)
            return None

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._scheduler.shutdown()

    # ------------------------------------------------------------------
    # Block-0 analysis
    # ------------------------------------------------------------------

    async def handle_launch(self, event: LaunchEvent) -> Optional[BundleVerdict]:
        """Analyse one launch; returns the verdict, or None when aborted."""
        key = event.creation_signature
        if key in self._states:
            logger.debug("Launch %s already seen – ignoring", key)
            return None
        self._transition(key, LaunchState.NEW)

        with launch_context(slot=event.slot, stage="block0"):
            try:
                verdict = await asyncio.wait_for(
                    self._analyze(event), timeout=self._settings.analysis_timeout_seconds
                )
            except MissingData as exc:
                logger.warning("[bundle] aborted at %s: %s", exc.stage or "block0", exc.reason)
                self._abort(key)
                return None
            except asyncio.TimeoutError:
                logger.warning(
                    "[bundle] analysis timed out after %.1fs", self._settings.analysis_timeout_seconds
                )
                self._abort(key)
                return None

            with launch_context(mint=verdict.mint, stage="bundle"):
                if verdict.classification == Classification.FARM:
                    await self._on_farm(event, verdict)
                else:
                    await self._on_pending(event, verdict)
        return verdict

    async def _fetch_block(self, slot: int) -> dict:
        attempts = self._settings.block_fetch_attempts
        for attempt in range(1, attempts + 1):
            block = await self._rpc.get_block(slot)
            if block is not None:
                return block
            if attempt < attempts:
                logger.debug("[bundle] block %d not available yet (attempt %d/%d)", slot, attempt, attempts)
                await asyncio.sleep(_BLOCK_RETRY_DELAY * attempt)
        raise MissingData(f"block {slot} unavailable", slot=slot, stage="fetch_block")

    async def _analyze(self, event: LaunchEvent) -> BundleVerdict:
        settings = self._settings
        if settings.block_propagation_delay_seconds > 0:
            await asyncio.sleep(settings.block_propagation_delay_seconds)

        block = await self._fetch_block(event.slot)
        if not block.get("transactions"):
            raise MissingData("block has no transactions", slot=event.slot, stage="fetch_block")

        mint = find_creation_mint(block, event.creation_signature)
        if not mint:
            raise MissingData("creation record not found", slot=event.slot, stage="find_mint")

        with launch_context(mint=mint, stage="bundle"):
            scan = extract_block_buyers(
                block, settings.program_id,
                tip_accounts=settings.tip_accounts, mint=mint, slot=event.slot,
            )
            verdict = classify_bundle(scan, mint, event.slot, farm_threshold=settings.farm_threshold)
            self._transition(event.creation_signature, LaunchState.BLOCK0_ANALYZED)
            logger.info(
                "[bundle] %s: %d block-0 buyers, tip=%s -> %s",
                mint[:8], verdict.unique_buyer_count, verdict.tip_account_hit,
                verdict.classification.value,
            )
        return verdict

    async def _on_farm(self, event: LaunchEvent, verdict: BundleVerdict) -> None:
        settings = self._settings
        self._transition(event.creation_signature, LaunchState.FARM_DETECTED)

        cluster = None
        if settings.trace_funding_on_farm:
            with launch_context(stage="funding"):
                try:
                    cluster = await asyncio.wait_for(
                        trace_funding(
                            self._rpc, verdict.buyers, verdict.creation_slot,
                            sample_size=settings.funding_sample_size,
                            history_limit=settings.funding_history_limit,
                            max_pages=settings.funding_history_pages,
                            exclusions=settings.funder_exclusions,
                        ),
                        timeout=settings.funding_trace_timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    # The FARM signal is still written, with block-0 evidence only
                    logger.warning(
                        "[funding] trace timed out after %.1fs", settings.funding_trace_timeout_seconds
                    )

        evidence = coordination_evidence(
            verdict, cluster, cluster_threshold=settings.funding_cluster_threshold
        )
        await self._store.append_signal(
            Signal(
                mint=verdict.mint,
                strategy=Strategy.FARM,
                slot=verdict.creation_slot,
                buyer_count=verdict.unique_buyer_count,
                notes="; ".join(evidence),
            )
        )

    async def _on_pending(self, event: LaunchEvent, verdict: BundleVerdict) -> None:
        now = datetime.now(tz=timezone.utc)
        job = RetentionJob(
            mint=verdict.mint,
            slot=verdict.creation_slot,
            creation_signature=event.creation_signature,
            buyers=verdict.buyers,
            due_at=now + timedelta(seconds=self._settings.retention_delay_seconds),
            created_at=now,
        )
        self._transition(event.creation_signature, LaunchState.AWAITING_RETENTION_CHECK)
        await self._scheduler.schedule(job)
        logger.info(
            "[retention] %s check scheduled in %.0fs",
            verdict.mint[:8], self._settings.retention_delay_seconds,
        )

    # ------------------------------------------------------------------
    # Delayed retention check
    # ------------------------------------------------------------------

    async def run_retention(self, job: RetentionJob) -> RetentionOutcome:
        """Execute a due retention job and record a signal on confirmation."""
        key = job.creation_signature or job.mint
        if key not in self._states:
            # Re-armed after a restart
            self._states[key] = LaunchState.AWAITING_RETENTION_CHECK

        try:
            outcome = await run_retention_check(
                self._rpc, job.mint, job.slot, job.buyers, self._settings
            )
            if outcome.status == "confirmed" and outcome.strategy is not None:
                await self._store.append_signal(
                    Signal(
                        mint=job.mint,
                        strategy=outcome.strategy,
                        slot=job.slot,
                        buyer_count=len(job.buyers),
                        notes=f"Retention: {outcome.reason}",
                    )
                )
                self._transition(key, LaunchState.SUPPLY_SHOCK_CONFIRMED)
            elif outcome.status == "missing_data":
                self._abort(key)
            else:
                self._transition(key, LaunchState.REJECTED)
        except Exception:
            self._abort(key)
            raise
        return outcome
