"""
Block-0 buyer extraction.

Every successful transaction in the launch block that touches the launch
program contributes its fee payer (the first resolved account) as a buyer.
Decoding instruction payloads would be more precise, but the fee-payer
convention holds for every launchpad UI and bundler we have seen and needs
no program-specific layouts.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .address_resolver import account_keys_from_tx
from .models import BlockScan

logger = logging.getLogger(__name__)


class BuyerAccumulator:
    """Ordered, duplicate-free buyer collection for one block scan."""

    def __init__(self) -> None:
        self._buyers: list[str] = []
        self._seen: set[str] = set()

    def add(self, address: str) -> bool:
        """Record *address*; returns False when it was already present."""
        if not address or address in self._seen:
            return False
        self._seen.add(address)
        self._buyers.append(address)
        return True

    @property
    def buyers(self) -> tuple[str, ...]:
        return tuple(self._buyers)

    def __len__(self) -> int:
        return len(self._buyers)

    def __contains__(self, address: object) -> bool:
        return address in self._seen


def _touches_mint(tx: dict, mint: str) -> bool:
    post = (tx.get("meta") or {}).get("postTokenBalances") or []
    return any(isinstance(b, dict) and b.get("mint") == mint for b in post)


def extract_block_buyers(
    block: Optional[dict],
    program_id: str,
    *,
    tip_accounts: Iterable[str] = (),
    mint: Optional[str] = None,
    slot: Optional[int] = None,
) -> BlockScan:
    """Scan *block* for buyers of the launch program.

    Parameters
    ----------
    block:
        ``getBlock`` result (``transactions`` list with ``meta``).
    program_id:
        Launch program; transactions not touching it are ignored.
    tip_accounts:
        Bundle tip accounts; any transaction referencing one sets
        ``tip_account_hit`` (failed transactions included).
    mint:
        When given, a transaction only counts as a buy if its
        ``postTokenBalances`` touch this mint.
    """
    tips = frozenset(tip_accounts)
    acc = BuyerAccumulator()
    tip_hit = False
    seen = failed = partial = 0

    for tx in (block or {}).get("transactions") or []:
        if not isinstance(tx, dict):
            continue
        seen += 1
        keys = account_keys_from_tx(tx)
        addresses = keys.resolve()
        if keys.is_partial:
            partial += 1

        if tips and not tip_hit and not tips.isdisjoint(addresses):
            tip_hit = True

        if (tx.get("meta") or {}).get("err") is not None:
            failed += 1
            continue
        if program_id not in addresses:
            continue
        if mint and not _touches_mint(tx, mint):
            continue
        acc.add(addresses[0])

    if partial:
        logger.debug(
            "[bundle] slot %s: %d/%d transactions resolved without loaded addresses",
            slot, partial, seen,
        )

    return BlockScan(
        slot=slot,
        buyers=acc.buyers,
        tip_account_hit=tip_hit,
        transactions_seen=seen,
        failed_skipped=failed,
        partial_resolutions=partial,
    )


def find_creation_mint(block: Optional[dict], creation_signature: str) -> Optional[str]:
    """Return the mint created by *creation_signature* inside *block*.

    The Create transaction's first post-token-balance entry is the new
    mint's bonding-curve account balance.
    """
    for tx in (block or {}).get("transactions") or []:
        if not isinstance(tx, dict):
            continue
        signatures = (tx.get("transaction") or {}).get("signatures") or []
        if not signatures or signatures[0] != creation_signature:
            continue
        balances = (tx.get("meta") or {}).get("postTokenBalances") or []
        if balances and isinstance(balances[0], dict):
            return balances[0].get("mint") or None
        return None
    return None
