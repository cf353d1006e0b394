"""
Retention monitor: the delayed supply-shock check.

Run some minutes after a launch was classified ``PENDING``.  Two gates,
in order:

1. **Liveness** – the mint must have seen enough successful transactions
   since its creation slot.  A token nobody trades has no supply to
   shock, and every holder trivially "held".
2. **Retention** – the share of block-0 buyers still holding at least
   ``dust_threshold`` tokens.  A balance that cannot be fetched counts as
   sold: a missing data point must never push a token over the line.

Balance lookups are sequential; pacing comes from the RPC client's
shared rate limiter.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from .data_sources.solana_rpc import SolanaRpcClient
from .errors import MissingData
from .models import RetentionOutcome, RetentionRecord, Strategy
from .settings import DetectionSettings

logger = logging.getLogger(__name__)

# Liveness pagination
_ACTIVITY_PAGE_SIZE = 1000
_ACTIVITY_MAX_PAGES = 5


async def count_activity_since(
    rpc: SolanaRpcClient,
    mint: str,
    creation_slot: int,
    *,
    stop_at: Optional[int] = None,
    page_size: int = _ACTIVITY_PAGE_SIZE,
    max_pages: int = _ACTIVITY_MAX_PAGES,
) -> Optional[int]:
    """Count successful transactions on *mint* at or after *creation_slot*.

    Stops paging as soon as *stop_at* is reached or the history crosses
    below the creation slot.  Returns ``None`` when the first page cannot
    be fetched; a later page failing keeps the partial count.
    """
    count = 0
    before: Optional[str] = None
    for page_no in range(max_pages):
        page = await rpc.get_signatures_for_address(mint, limit=page_size, before=before)
        if page is None:
            if page_no == 0:
                return None
            logger.debug("[retention] activity page %d failed for %s, keeping %d", page_no, mint[:8], count)
            break

        crossed = False
        for entry in page:
            slot = entry.get("slot")
            if isinstance(slot, int) and slot < creation_slot:
                crossed = True
                break
            if entry.get("err") is None:
                count += 1

        if crossed or len(page) < page_size:
            break
        if stop_at is not None and count >= stop_at:
            break
        before = page[-1].get("signature")
        if not before:
            break
    return count


async def check_liveness(
    rpc: SolanaRpcClient,
    mint: str,
    creation_slot: int,
    *,
    minimum: int,
) -> tuple[bool, int]:
    """``(alive, tx_count)``; a failed count is treated as zero activity."""
    tx_count = await count_activity_since(rpc, mint, creation_slot, stop_at=minimum)
    if tx_count is None:
        logger.warning("[retention] activity count failed for %s – treating as dead", mint[:8])
        tx_count = 0
    return tx_count >= minimum, tx_count


async def check_retention(
    rpc: SolanaRpcClient,
    mint: str,
    slot: int,
    buyers: Sequence[str],
    *,
    dust_threshold: float,
    holding_requirement: float,
) -> RetentionRecord:
    """Look up every buyer's current balance and score the retention."""
    if not buyers:
        raise MissingData("empty buyer list", mint=mint, slot=slot, stage="retention")

    held = sold = failed = 0
    for buyer in buyers:
        balance = await rpc.get_wallet_token_balance(buyer, mint)
        if balance is None:
            failed += 1
            sold += 1
            logger.debug("[retention] balance lookup failed for %s – counted as sold", buyer[:8])
        elif balance < dust_threshold:
            sold += 1
        else:
            held += 1

    score = held / len(buyers)
    return RetentionRecord(
        mint=mint,
        slot=slot,
        initial_buyers=tuple(buyers),
        checked_at=datetime.now(tz=timezone.utc),
        held_count=held,
        sold_count=sold,
        failed_lookups=failed,
        retention_score=score,
        survived=score >= holding_requirement,
    )


async def run_retention_check(
    rpc: SolanaRpcClient,
    mint: str,
    slot: int,
    buyers: Sequence[str],
    settings: DetectionSettings,
) -> RetentionOutcome:
    """Liveness gate, then retention gate.  Never raises MissingData."""
    if not buyers:
        logger.warning("[retention] %s has no block-0 buyers – skipping", mint[:8])
        return RetentionOutcome(
            mint=mint, slot=slot, status="missing_data", reason="empty buyer list",
        )

    minimum = settings.liveness_minimum
    alive, tx_count = await check_liveness(rpc, mint, slot, minimum=minimum)
    if not alive:
        logger.info("[retention] %s dead: %d tx < %d", mint[:8], tx_count, minimum)
        return RetentionOutcome(
            mint=mint, slot=slot, status="dead", tx_count=tx_count,
            reason=f"{tx_count} transactions since launch (minimum {minimum})",
        )

    record = await check_retention(
        rpc, mint, slot, buyers,
        dust_threshold=settings.dust_threshold,
        holding_requirement=settings.holding_requirement,
    )
    summary = (
        f"{record.held_count}/{len(buyers)} held "
        f"({record.retention_score:.0%}, {record.failed_lookups} lookups failed)"
    )
    if not record.survived:
        logger.info("[retention] %s rejected: %s", mint[:8], summary)
        return RetentionOutcome(
            mint=mint, slot=slot, status="rejected", tx_count=tx_count,
            record=record, reason=summary,
        )

    strategy = Strategy.SUPPLY_SHOCK_ELITE if settings.strict_liveness else Strategy.SUPPLY_SHOCK
    logger.info("[retention] %s confirmed %s: %s", mint[:8], strategy.value, summary)
    return RetentionOutcome(
        mint=mint, slot=slot, status="confirmed", tx_count=tx_count,
        record=record, strategy=strategy, reason=summary,
    )
