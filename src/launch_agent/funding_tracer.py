"""
Funding graph tracer.

For a sample of block-0 buyers, find the wallet that funded each one just
before the launch and count how often each funder recurs.  Many fresh
wallets seeded by one source is the on-chain signature of a single
operator spreading a buy across puppets.

The funder of a buyer is the fee payer (first resolved account) of the
buyer's most recent transaction landing *before* the creation slot.  This
is a heuristic: a buyer that paid its own fee in that transaction is its
own funder, and it is reported as such.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .address_resolver import resolve_addresses
from .data_sources.solana_rpc import SolanaRpcClient
from .errors import TransientLookupFailure
from .models import FundingCluster, FundingTrace

logger = logging.getLogger(__name__)


class FunderTally:
    """Frequency count of funders for one tracing pass.

    Excluded addresses (exchange hot wallets, AMM authorities) never
    enter the count.  The most common funder is tracked incrementally:
    it only changes hands when another funder strictly exceeds it, so on
    a tie the funder that reached the count first wins.
    """

    def __init__(self, exclusions: Iterable[str] = ()) -> None:
        self._exclusions = frozenset(exclusions)
        self._frequency: dict[str, int] = {}
        self._leader: Optional[str] = None
        self._leader_count = 0

    def add(self, funder: Optional[str]) -> bool:
        """Count *funder*; returns False when it was empty or excluded."""
        if not funder or funder in self._exclusions:
            return False
        count = self._frequency.get(funder, 0) + 1
        self._frequency[funder] = count
        if count > self._leader_count:
            self._leader = funder
            self._leader_count = count
        return True

    @property
    def frequency(self) -> dict[str, int]:
        return dict(self._frequency)

    @property
    def most_common(self) -> tuple[Optional[str], int]:
        return self._leader, self._leader_count

    def to_cluster(self, traces: list[FundingTrace]) -> FundingCluster:
        return FundingCluster(
            traces=list(traces),
            frequency=self.frequency,
            common_funder=self._leader,
            common_funder_count=self._leader_count,
        )


async def _signature_page(
    rpc: SolanaRpcClient,
    buyer: str,
    *,
    limit: int,
    before: Optional[str],
) -> list[dict]:
    page = await rpc.get_signatures_for_address(buyer, limit=limit, before=before)
    if page is None:
        raise TransientLookupFailure("getSignaturesForAddress", buyer)
    return page


async def find_funder(
    rpc: SolanaRpcClient,
    buyer: str,
    creation_slot: int,
    *,
    history_limit: int = 10,
    max_pages: int = 3,
) -> FundingTrace:
    """Trace the funder of *buyer* as of *creation_slot*.

    Walks the buyer's history newest-first, *history_limit* signatures per
    page and at most *max_pages* pages, stopping at the first entry whose
    slot precedes the launch.  Never raises: every failure is reported as a
    trace with ``funder=None`` and a reason.
    """
    before: Optional[str] = None
    candidate: Optional[dict] = None
    try:
        for _ in range(max_pages):
            page = await _signature_page(rpc, buyer, limit=history_limit, before=before)
            for entry in page:
                slot = entry.get("slot")
                if isinstance(slot, int) and slot < creation_slot:
                    candidate = entry
                    break
            if candidate is not None or len(page) < history_limit:
                break
            before = page[-1].get("signature")
            if not before:
                break
    except TransientLookupFailure as exc:
        logger.debug("[funding] %s", exc)
        return FundingTrace(buyer=buyer, reason="signature lookup failed")

    if candidate is None:
        return FundingTrace(buyer=buyer, reason="no history before launch")

    signature = candidate.get("signature") or ""
    tx = await rpc.get_parsed_transaction(signature) if signature else None
    if tx is None:
        return FundingTrace(
            buyer=buyer, funding_signature=signature or None,
            reason="transaction lookup failed",
        )

    addresses = resolve_addresses(tx)
    if not addresses:
        return FundingTrace(buyer=buyer, funding_signature=signature, reason="empty transaction")
    return FundingTrace(
        buyer=buyer,
        funder=addresses[0],
        funding_signature=signature,
        reason="self-funded" if addresses[0] == buyer else "",
    )


async def trace_funding(
    rpc: SolanaRpcClient,
    buyers: Iterable[str],
    creation_slot: int,
    *,
    sample_size: int = 10,
    history_limit: int = 10,
    max_pages: int = 3,
    exclusions: Iterable[str] = (),
) -> FundingCluster:
    """Trace the first *sample_size* buyers (in block order) sequentially."""
    tally = FunderTally(exclusions)
    traces: list[FundingTrace] = []

    for buyer in list(buyers)[:sample_size]:
        trace = await find_funder(
            rpc, buyer, creation_slot,
            history_limit=history_limit, max_pages=max_pages,
        )
        traces.append(trace)
        if trace.funder and not tally.add(trace.funder):
            logger.debug("[funding] %s funded by excluded %s", buyer[:8], trace.funder[:8])

    cluster = tally.to_cluster(traces)
    logger.info(
        "[funding] traced %d/%d buyers, top funder %s x%d",
        cluster.traced_count, len(traces),
        (cluster.common_funder or "-")[:8], cluster.common_funder_count,
    )
    return cluster
