"""
After-the-fact analysis: forensic autopsy of one mint, and a market
review of every stored signal.

Neither feeds back into live detection; both exist to check how well the
live thresholds separate farms from organic launches.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .block_scanner import extract_block_buyers
from .bundle_classifier import (
    bundle_label,
    classify_bundle,
    coordination_evidence,
    funding_cluster_label,
)
from .data_sources.dexscreener import DexScreenerClient, best_pair_market
from .data_sources.solana_rpc import SolanaRpcClient
from .funding_tracer import trace_funding
from .models import AutopsyReport, FundingCluster, SignalPerformance, SignalReview
from .settings import DetectionSettings

logger = logging.getLogger(__name__)

# ── Autopsy tuning ──────────────────────────────────────────────────────────
_TRACE_MIN_BUYERS = 3        # funding is only traced above this many buyers
_TIPPED_BUNDLE_MIN = 5       # tipped block-0 bundles larger than this are flagged
_ORGANIC_REASON = "Organic / no cluster detected"

# ── Review tuning ───────────────────────────────────────────────────────────
ASSUMED_ENTRY_MARKET_CAP = 5_000.0   # USD, a fresh pump.fun launch
_RUG_LIQUIDITY_USD = 1_000.0
_WIN_MULTIPLE = 2.0
_LOSS_MULTIPLE = 0.5


async def run_autopsy(
    rpc: SolanaRpcClient,
    mint: str,
    settings: DetectionSettings,
) -> AutopsyReport:
    """Reconstruct block 0 of *mint* and judge it after the fact."""
    oldest = await rpc.get_oldest_signature(mint)
    creation_slot = (oldest or {}).get("slot")
    if not isinstance(creation_slot, int):
        logger.warning("[bundle] autopsy: no creation slot for %s", mint[:8])
        return AutopsyReport(mint=mint, reason="Creation slot not found")

    block = await rpc.get_block(creation_slot)
    if block is None:
        return AutopsyReport(
            mint=mint, creation_slot=creation_slot, reason="Creation block unavailable"
        )

    scan = extract_block_buyers(
        block, settings.program_id,
        tip_accounts=settings.tip_accounts, mint=mint, slot=creation_slot,
    )
    verdict = classify_bundle(scan, mint, creation_slot, farm_threshold=settings.farm_threshold)
    logger.info(
        "[bundle] autopsy %s: slot %d, %d buyers, tip=%s",
        mint[:8], creation_slot, verdict.unique_buyer_count, verdict.tip_account_hit,
    )

    cluster: Optional[FundingCluster] = None
    if verdict.unique_buyer_count > _TRACE_MIN_BUYERS:
        cluster = await trace_funding(
            rpc, verdict.buyers, creation_slot,
            sample_size=settings.funding_sample_size,
            history_limit=settings.funding_history_limit,
            max_pages=settings.funding_history_pages,
            exclusions=settings.funder_exclusions,
        )

    threshold = settings.funding_cluster_threshold
    cluster_size = cluster.common_funder_count if cluster else 0
    detected = (
        (verdict.unique_buyer_count > _TIPPED_BUNDLE_MIN and verdict.tip_account_hit)
        or cluster_size > threshold
    )

    reason = _ORGANIC_REASON
    if bundle_label(verdict) == "high":
        reason = f"FARM (High): tipped bundle of {verdict.unique_buyer_count} wallets"
    if funding_cluster_label(cluster, cluster_threshold=threshold):
        reason = f"FARM (Critical): {cluster_size} wallets funded by the same source"
    elif detected and reason == _ORGANIC_REASON:
        reason = f"Suspicious: tipped block-0 bundle of {verdict.unique_buyer_count} wallets"

    return AutopsyReport(
        mint=mint,
        detected=detected,
        reason=reason,
        creation_slot=creation_slot,
        bundle_size=verdict.unique_buyer_count,
        tip_account_hit=verdict.tip_account_hit,
        cluster_size=cluster_size,
        common_funder=cluster.common_funder if cluster else None,
        evidence=coordination_evidence(verdict, cluster, cluster_threshold=threshold),
    )


def classify_performance(
    mint: str,
    strategy: str,
    pairs: list[dict],
    *,
    entry_market_cap: float = ASSUMED_ENTRY_MARKET_CAP,
) -> SignalPerformance:
    """Price one signal against its current DexScreener pairs."""
    if not pairs:
        return SignalPerformance(mint=mint, strategy=strategy, outcome="dead")

    market_cap, liquidity = best_pair_market(pairs)
    roi = (market_cap or 0.0) / entry_market_cap
    if (liquidity or 0.0) < _RUG_LIQUIDITY_USD:
        outcome = "rug"
    elif roi > _WIN_MULTIPLE:
        outcome = "win"
    elif roi < _LOSS_MULTIPLE:
        outcome = "loss"
    else:
        outcome = "neutral"
    return SignalPerformance(
        mint=mint,
        strategy=strategy,
        outcome=outcome,
        market_cap_usd=market_cap,
        liquidity_usd=liquidity,
        roi_multiple=round(roi, 4),
    )


async def review_signals(
    store: Any,
    dex: DexScreenerClient,
    *,
    limit: Optional[int] = None,
    entry_market_cap: float = ASSUMED_ENTRY_MARKET_CAP,
) -> SignalReview:
    """Re-price every stored signal.  A failed lookup is skipped, not fatal.

    Dead tokens and rugs both count as losses.
    """
    review = SignalReview()
    for signal in await store.list_signals(limit=limit):
        pairs = await dex.get_token_pairs(signal.mint)
        if pairs is None:
            logger.warning("DexScreener lookup failed for %s – skipped", signal.mint[:8])
            review.skipped += 1
            continue

        perf = classify_performance(
            signal.mint, signal.strategy.value, pairs, entry_market_cap=entry_market_cap
        )
        review.results.append(perf)
        if perf.outcome == "win":
            review.wins += 1
        elif perf.outcome in ("rug", "dead"):
            review.rugs += 1
            review.losses += 1
        elif perf.outcome == "loss":
            review.losses += 1
    return review
