"""
Address-set resolution for legacy and versioned (v0) transactions.

A legacy transaction lists every account it touches in
``message.accountKeys``.  A v0 transaction only lists its *static* keys
there; the rest are loaded from address lookup tables at execution time
and returned by the RPC in ``meta.loadedAddresses`` (writable, then
readonly).  Reading only ``accountKeys`` of a v0 transaction silently
misses the launch program whenever it sits in a lookup table.

Resolution order matches the runtime's account indexing::

    static / legacy keys  →  loaded writable  →  loaded readonly

Some RPC providers trim ``loadedAddresses`` from block responses.  Such a
record still resolves (to its static keys) and is flagged ``is_partial``
so callers can count low-confidence resolutions instead of failing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

logger = logging.getLogger(__name__)


def _key_str(key: Any) -> str:
    """Canonical base58 string of an account key in any RPC encoding."""
    if isinstance(key, dict):
        return str(key.get("pubkey") or "")
    if isinstance(key, str):
        return key
    return str(key) if key is not None else ""


def _ordered_unique(keys: Iterable[Any]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for key in keys:
        addr = _key_str(key)
        if addr and addr not in seen:
            seen.add(addr)
            out.append(addr)
    return out


@dataclass(frozen=True)
class LegacyAccountKeys:
    """Flat account-key list embedded in a legacy transaction."""

    keys: tuple[str, ...]

    @property
    def is_partial(self) -> bool:
        return False

    def resolve(self) -> list[str]:
        """The key list as given.

        A well-formed message never repeats a key, so this is the input
        unchanged; a malformed record with repeated or empty keys still
        resolves to a duplicate-free list.
        """
        return _ordered_unique(self.keys)


@dataclass(frozen=True)
class VersionedAccountKeys:
    """Static keys plus the lookup-table addresses loaded at execution."""

    static_keys: tuple[str, ...]
    loaded_writable: Optional[tuple[str, ...]] = None
    loaded_readonly: Optional[tuple[str, ...]] = None

    @property
    def is_partial(self) -> bool:
        return self.loaded_writable is None or self.loaded_readonly is None

    def resolve(self) -> list[str]:
        return _ordered_unique(
            (*self.static_keys, *(self.loaded_writable or ()), *(self.loaded_readonly or ()))
        )


AccountKeys = Union[LegacyAccountKeys, VersionedAccountKeys]


def account_keys_from_tx(tx: dict) -> AccountKeys:
    """Build the account-key variant for one raw RPC transaction record.

    Accepts both ``json`` and ``jsonParsed`` encodings.  In ``jsonParsed``
    the RPC already appends lookup-table keys to ``accountKeys`` (tagged
    ``source: lookupTable``); those are dropped from the static part so
    they are not counted twice.
    """
    message = (tx.get("transaction") or {}).get("message") or {}
    raw_keys = message.get("accountKeys") or message.get("staticAccountKeys") or []

    if tx.get("version") != 0:
        return LegacyAccountKeys(keys=tuple(_key_str(k) for k in raw_keys))

    static = tuple(
        _key_str(k) for k in raw_keys
        if not (isinstance(k, dict) and k.get("source") == "lookupTable")
    )
    loaded = (tx.get("meta") or {}).get("loadedAddresses")
    if not isinstance(loaded, dict):
        return VersionedAccountKeys(static_keys=static)

    writable = loaded.get("writable")
    readonly = loaded.get("readonly")
    return VersionedAccountKeys(
        static_keys=static,
        loaded_writable=tuple(_key_str(k) for k in writable) if isinstance(writable, list) else None,
        loaded_readonly=tuple(_key_str(k) for k in readonly) if isinstance(readonly, list) else None,
    )


def resolve_addresses(tx: dict) -> list[str]:
    """Ordered, de-duplicated participant addresses of *tx*."""
    return account_keys_from_tx(tx).resolve()
