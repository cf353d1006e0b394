"""Tests for the signal store backends (SQLite + in-memory)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from launch_agent.models import RetentionJob, Signal, Strategy
from launch_agent.signal_store import MemorySignalStore, SignalStore, create_store


@pytest.fixture
def store(tmp_path):
    return SignalStore(db_path=str(tmp_path / "signals.db"))


def _signal(mint: str, strategy: Strategy = Strategy.FARM) -> Signal:
    return Signal(mint=mint, strategy=strategy, slot=42, buyer_count=12, notes="note")


def _job(mint: str, minutes: int = 5) -> RetentionJob:
    return RetentionJob(
        mint=mint,
        slot=42,
        creation_signature=f"sig-{mint}",
        buyers=("B1", "B2"),
        due_at=datetime.now(tz=timezone.utc) + timedelta(minutes=minutes),
    )


class TestSignalStore:

    @pytest.mark.asyncio
    async def test_append_and_list_newest_first(self, store):
        await store.append_signal(_signal("m1"))
        await store.append_signal(_signal("m2", Strategy.SUPPLY_SHOCK))
        signals = await store.list_signals()
        assert [s.mint for s in signals] == ["m2", "m1"]
        assert signals[0].strategy == Strategy.SUPPLY_SHOCK
        assert signals[1].buyer_count == 12
        await store.close()

    @pytest.mark.asyncio
    async def test_list_limit(self, store):
        for i in range(5):
            await store.append_signal(_signal(f"m{i}"))
        assert len(await store.list_signals(limit=2)) == 2
        await store.close()

    @pytest.mark.asyncio
    async def test_legacy_columns(self, store):
        await store.append_signal(_signal("m1"))
        db = await store._get_conn()
        cursor = await db.execute("SELECT id, mint, strategy, detected_at, slot, buyers_count, notes FROM signals")
        row = await cursor.fetchone()
        assert row[1:3] == ("m1", "FARM")
        assert row[4:] == (42, 12, "note")
        await store.close()

    @pytest.mark.asyncio
    async def test_append_failure_is_swallowed(self, store):
        with patch.object(store, "_get_conn", new=AsyncMock(side_effect=RuntimeError("disk full"))):
            await store.append_signal(_signal("m1"))  # must not raise

    @pytest.mark.asyncio
    async def test_jobs_roundtrip_and_delete(self, store):
        await store.save_job(_job("late", minutes=10))
        await store.save_job(_job("early", minutes=1))
        jobs = await store.load_jobs()
        assert [j.mint for j in jobs] == ["early", "late"]
        assert jobs[0].buyers == ("B1", "B2")
        assert jobs[0].creation_signature == "sig-early"

        await store.delete_job("early")
        assert [j.mint for j in await store.load_jobs()] == ["late"]
        await store.close()

    @pytest.mark.asyncio
    async def test_jobs_survive_reopen(self, tmp_path):
        path = str(tmp_path / "persist.db")
        first = SignalStore(db_path=path)
        await first.save_job(_job("m1"))
        await first.close()

        second = SignalStore(db_path=path)
        assert [j.mint for j in await second.load_jobs()] == ["m1"]
        await second.close()


class TestMemorySignalStore:

    @pytest.mark.asyncio
    async def test_append_and_list(self):
        store = MemorySignalStore()
        await store.append_signal(_signal("m1"))
        await store.append_signal(_signal("m2"))
        assert [s.mint for s in await store.list_signals()] == ["m2", "m1"]

    @pytest.mark.asyncio
    async def test_jobs(self):
        store = MemorySignalStore()
        await store.save_job(_job("m1"))
        await store.delete_job("m1")
        assert await store.load_jobs() == []


class TestCreateStore:

    def test_memory_backend(self):
        assert isinstance(create_store("memory", "unused.db"), MemorySignalStore)

    def test_sqlite_backend(self, tmp_path):
        assert isinstance(create_store("sqlite", str(tmp_path / "x.db")), SignalStore)
