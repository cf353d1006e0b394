"""Tests for the forensic autopsy and the signal performance review."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from launch_agent.backtest_service import classify_performance, review_signals, run_autopsy
from launch_agent.models import Signal, Strategy
from launch_agent.signal_store import MemorySignalStore

from conftest import MINT, TIP, buy_tx, make_block, parsed_tx

SLOT = 9_000


def _rpc(block, *, funders=None) -> MagicMock:
    """Autopsy RPC mock; *funders* maps buyer -> funder."""
    funders = funders or {}
    rpc = MagicMock()
    rpc.get_oldest_signature = AsyncMock(return_value={"signature": "create", "slot": SLOT})
    rpc.get_block = AsyncMock(return_value=block)

    async def _sigs(address, *, limit=1000, before=None):
        if address in funders:
            return [{"signature": f"fund-{address}", "slot": SLOT - 10}]
        return []

    async def _tx(signature):
        buyer = signature.removeprefix("fund-")
        return parsed_tx(funders[buyer], buyer)

    rpc.get_signatures_for_address = AsyncMock(side_effect=_sigs)
    rpc.get_parsed_transaction = AsyncMock(side_effect=_tx)
    return rpc


class TestRunAutopsy:

    @pytest.mark.asyncio
    async def test_tipped_bundle_detected(self, settings):
        block = make_block([buy_tx(f"B{i}", extra=(TIP,)) for i in range(12)])
        report = await run_autopsy(_rpc(block), MINT, settings)

        assert report.detected is True
        assert report.creation_slot == SLOT
        assert report.bundle_size == 12
        assert report.tip_account_hit is True
        assert report.reason.startswith("FARM (High)")

    @pytest.mark.asyncio
    async def test_common_funder_is_critical(self, settings):
        block = make_block([buy_tx(f"B{i}") for i in range(5)])
        funders = {"B0": "F", "B1": "F", "B2": "F", "B3": "G"}
        report = await run_autopsy(_rpc(block, funders=funders), MINT, settings)

        assert report.detected is True
        assert report.cluster_size == 3
        assert report.common_funder == "F"
        assert report.reason.startswith("FARM (Critical)")

    @pytest.mark.asyncio
    async def test_small_launch_not_traced(self, settings):
        block = make_block([buy_tx(f"B{i}") for i in range(3)])
        rpc = _rpc(block)
        report = await run_autopsy(rpc, MINT, settings)

        assert report.detected is False
        assert report.reason == "Organic / no cluster detected"
        rpc.get_signatures_for_address.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_creation_slot(self, settings):
        rpc = _rpc(None)
        rpc.get_oldest_signature = AsyncMock(return_value=None)
        report = await run_autopsy(rpc, MINT, settings)
        assert report.detected is False
        assert report.creation_slot is None
        assert report.reason == "Creation slot not found"

    @pytest.mark.asyncio
    async def test_block_unavailable(self, settings):
        report = await run_autopsy(_rpc(None), MINT, settings)
        assert report.creation_slot == SLOT
        assert report.reason == "Creation block unavailable"


class TestClassifyPerformance:

    def test_dead_when_no_pairs(self):
        assert classify_performance("m", "FARM", []).outcome == "dead"

    def test_win(self, sample_pairs):
        perf = classify_performance("m", "SUPPLY_SHOCK", sample_pairs)
        assert perf.outcome == "win"
        assert perf.roi_multiple == pytest.approx(8.0)
        assert perf.liquidity_usd == 12000

    def test_rug_on_thin_liquidity(self):
        pairs = [{"marketCap": 50000, "liquidity": {"usd": 500}}]
        assert classify_performance("m", "FARM", pairs).outcome == "rug"

    def test_loss(self):
        pairs = [{"fdv": 2000, "liquidity": {"usd": 5000}}]
        assert classify_performance("m", "FARM", pairs).outcome == "loss"

    def test_neutral(self):
        pairs = [{"marketCap": 6000, "liquidity": {"usd": 5000}}]
        assert classify_performance("m", "FARM", pairs).outcome == "neutral"


class TestReviewSignals:

    @pytest.mark.asyncio
    async def test_summary(self, sample_pairs):
        store = MemorySignalStore()
        for mint in ("win", "dead", "failed"):
            await store.append_signal(Signal(mint=mint, strategy=Strategy.SUPPLY_SHOCK, slot=1))

        dex = MagicMock()
        dex.get_token_pairs = AsyncMock(
            side_effect=lambda mint: {"win": sample_pairs, "dead": [], "failed": None}[mint]
        )
        review = await review_signals(store, dex)

        assert review.wins == 1
        assert review.rugs == 1
        assert review.losses == 1
        assert review.skipped == 1
        assert review.reviewed == 2
        assert review.win_rate == pytest.approx(0.5)
