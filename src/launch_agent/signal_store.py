"""
Signal store for the Launch Integrity Agent.

Two backends with the same async interface:
1. **In-memory**: single-process, used by tests and dry runs.
2. **SQLite**: survives restarts; also holds the pending retention jobs
   so that a restart does not lose scheduled checks.

Writes are fire-and-forget: a storage failure is logged and swallowed so
that it can never abort the analysis that produced the signal.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from typing import Any, Optional

from .models import RetentionJob, Signal, Strategy

logger = logging.getLogger(__name__)


class MemorySignalStore:
    """Signal store backed by plain lists."""

    def __init__(self) -> None:
        self._signals: list[Signal] = []
        self._jobs: dict[str, RetentionJob] = {}

    async def append_signal(self, signal: Signal) -> None:
        self._signals.append(signal)
        logger.info("Signal recorded: %s -> %s", signal.strategy.value, signal.mint)

    async def list_signals(self, limit: Optional[int] = None) -> list[Signal]:
        """Stored signals, newest first."""
        newest = list(reversed(self._signals))
        return newest[:limit] if limit else newest

    async def save_job(self, job: RetentionJob) -> None:
        self._jobs[job.mint] = job

    async def delete_job(self, mint: str) -> None:
        self._jobs.pop(mint, None)

    async def load_jobs(self) -> list[RetentionJob]:
        return sorted(self._jobs.values(), key=lambda j: j.due_at)

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# SQLite persistent store
# ---------------------------------------------------------------------------

class SignalStore:
    """Async SQLite-backed signal store.

    Uses a persistent connection (created lazily on first access) in WAL
    mode.  The ``signals`` table keeps the column layout older tooling
    reads: ``id, mint, strategy, detected_at, slot, buyers_count, notes``.
    """

    def __init__(self, db_path: str = "data/trading_signals.db") -> None:
        self._db_path = db_path
        self._conn: Any = None  # aiosqlite.Connection
        self._initialised = False

    async def _get_conn(self) -> Any:
        """Return (and lazily create) a persistent aiosqlite connection."""
        import aiosqlite

        if self._conn is not None:
            if not self._initialised:
                await self._init_schema(self._conn)
            return self._conn

        os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._init_schema(self._conn)
        return self._conn

    async def _init_schema(self, db: Any) -> None:
        if self._initialised:
            return
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS signals (
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                mint         TEXT NOT NULL,
                strategy     TEXT NOT NULL,
                detected_at  TEXT NOT NULL,
                slot         INTEGER,
                buyers_count INTEGER,
                notes        TEXT
            )
            """
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_signals_mint ON signals(mint)"
        )
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS retention_jobs (
                mint               TEXT PRIMARY KEY,
                slot               INTEGER NOT NULL,
                creation_signature TEXT NOT NULL DEFAULT '',
                buyers             TEXT NOT NULL,
                due_at             TEXT NOT NULL,
                created_at         TEXT NOT NULL
            )
            """
        )
        await db.commit()
        self._initialised = True

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    async def append_signal(self, signal: Signal) -> None:
        try:
            db = await self._get_conn()
            await db.execute(
                "INSERT INTO signals (mint, strategy, detected_at, slot, buyers_count, notes) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    signal.mint,
                    signal.strategy.value,
                    signal.detected_at.isoformat(),
                    signal.slot,
                    signal.buyer_count,
                    signal.notes,
                ),
            )
            await db.commit()
            logger.info("Signal recorded: %s -> %s", signal.strategy.value, signal.mint)
        except Exception:
            logger.warning("Signal write failed for %s", signal.mint, exc_info=True)

    async def list_signals(self, limit: Optional[int] = None) -> list[Signal]:
        """Stored signals, newest first.  Rows that no longer parse are skipped."""
        db = await self._get_conn()
        sql = (
            "SELECT mint, strategy, detected_at, slot, buyers_count, notes "
            "FROM signals ORDER BY id DESC"
        )
        params: tuple = ()
        if limit:
            sql += " LIMIT ?"
            params = (limit,)
        cursor = await db.execute(sql, params)
        rows = await cursor.fetchall()

        signals: list[Signal] = []
        for mint, strategy, detected_at, slot, buyers_count, notes in rows:
            try:
                signals.append(
                    Signal(
                        mint=mint,
                        strategy=Strategy(strategy),
                        detected_at=datetime.fromisoformat(detected_at.replace("Z", "+00:00")),
                        slot=slot or 0,
                        buyer_count=buyers_count or 0,
                        notes=notes or "",
                    )
                )
            except ValueError:
                logger.debug("Skipping unreadable signal row for %s", mint)
        return signals

    # ------------------------------------------------------------------
    # Pending retention jobs
    # ------------------------------------------------------------------

    async def save_job(self, job: RetentionJob) -> None:
        try:
            db = await self._get_conn()
            await db.execute(
                "INSERT OR REPLACE INTO retention_jobs "
                "(mint, slot, creation_signature, buyers, due_at, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    job.mint,
                    job.slot,
                    job.creation_signature,
                    json.dumps(list(job.buyers)),
                    job.due_at.isoformat(),
                    job.created_at.isoformat(),
                ),
            )
            await db.commit()
        except Exception:
            logger.warning("Retention job write failed for %s", job.mint, exc_info=True)

    async def delete_job(self, mint: str) -> None:
        try:
            db = await self._get_conn()
            await db.execute("DELETE FROM retention_jobs WHERE mint = ?", (mint,))
            await db.commit()
        except Exception:
            logger.warning("Retention job delete failed for %s", mint, exc_info=True)

    async def load_jobs(self) -> list[RetentionJob]:
        db = await self._get_conn()
        cursor = await db.execute(
            "SELECT mint, slot, creation_signature, buyers, due_at, created_at "
            "FROM retention_jobs ORDER BY due_at ASC"
        )
        rows = await cursor.fetchall()
        jobs: list[RetentionJob] = []
        for mint, slot, signature, buyers, due_at, created_at in rows:
            try:
                jobs.append(
                    RetentionJob(
                        mint=mint,
                        slot=slot,
                        creation_signature=signature or "",
                        buyers=tuple(json.loads(buyers)),
                        due_at=datetime.fromisoformat(due_at),
                        created_at=datetime.fromisoformat(created_at),
                    )
                )
            except ValueError:
                logger.warning("Dropping unreadable retention job for %s", mint)
        return jobs

    async def close(self) -> None:
        """Close the persistent connection."""
        if self._conn is not None:
            try:
                await self._conn.close()
            except Exception:
                logger.debug("Signal store close failed", exc_info=True)
            self._conn = None
            self._initialised = False


def create_store(backend: str, db_path: str) -> SignalStore | MemorySignalStore:
    """Build the backend named by ``SIGNAL_STORE_BACKEND``."""
    if backend == "memory":
        return MemorySignalStore()
    return SignalStore(db_path=db_path)
