"""
Solana RPC client helpers for the Launch Integrity Agent.

Uses the standard JSON-RPC interface. The public
``api.mainnet-beta.solana.com`` endpoint works but is rate-limited and
does not serve ``getBlock`` reliably for fresh slots; a dedicated provider
is recommended.  Uses ``httpx`` for async HTTP with retry + exponential
backoff, and paces every call through a shared :class:`RateLimiter`.

Every public method returns ``None`` when the call failed after retries,
so callers can tell "no data" (empty list / zero) from "lookup failed".
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ._retry import async_http_post_json
from ..rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Retry configuration
_MAX_RETRIES = 3
_BACKOFF_BASE = 1.5  # seconds

# Largest page getSignaturesForAddress will return
_SIGNATURE_PAGE_MAX = 1000

# JSON-RPC error codes that are expected around fresh or skipped slots
BLOCK_NOT_AVAILABLE = -32004
SLOT_SKIPPED = -32007
SLOT_MISSING_IN_STORAGE = -32009
BLOCK_STATUS_NOT_AVAILABLE = -32014
_QUIET_BLOCK_ERRORS = frozenset({
    BLOCK_NOT_AVAILABLE,
    SLOT_SKIPPED,
    SLOT_MISSING_IN_STORAGE,
    BLOCK_STATUS_NOT_AVAILABLE,
})


class SolanaRpcClient:
    """Async Solana JSON-RPC client."""

    def __init__(
        self,
        endpoint: str,
        timeout: int = 15,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._id_counter = 0
        self._limiter = rate_limiter

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_block(self, slot: int) -> Optional[dict[str, Any]]:
        """Fetch the full block at *slot* with v0 transactions and metadata.

        ``json`` encoding keeps v0 lookup-table addresses in
        ``meta.loadedAddresses`` instead of merging them into
        ``accountKeys``.
        """
        result = await self._call(
            "getBlock",
            [
                slot,
                {
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                    "transactionDetails": "full",
                    "rewards": False,
                    "commitment": "confirmed",
                },
            ],
            quiet_error_codes=_QUIET_BLOCK_ERRORS,
        )
        return result if isinstance(result, dict) else None

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        limit: int = _SIGNATURE_PAGE_MAX,
        before: Optional[str] = None,
    ) -> Optional[list[dict[str, Any]]]:
        """One page of *address*'s signatures, newest first.

        Pass the last signature of the previous page as *before* to walk
        further back.
        """
        opts: dict[str, Any] = {
            "limit": max(1, min(limit, _SIGNATURE_PAGE_MAX)),
            "commitment": "confirmed",
        }
        if before:
            opts["before"] = before
        result = await self._call("getSignaturesForAddress", [address, opts])
        if result is None:
            return None
        return result if isinstance(result, list) else []

    async def get_oldest_signature(
        self, address: str, *, max_pages: int = 10
    ) -> Optional[dict[str, Any]]:
        """Walk backwards through signature pages to find the oldest tx.

        Limits to *max_pages* rounds (x 1000 sigs) so wallets and mints with
        huge histories stay bounded.
        """
        before: Optional[str] = None
        oldest: Optional[dict] = None

        for _ in range(max_pages):
            page = await self.get_signatures_for_address(address, before=before)
            if not page:
                break
            oldest = page[-1]
            before = oldest.get("signature")
            if len(page) < _SIGNATURE_PAGE_MAX or not before:
                break

        return oldest

    async def get_parsed_transaction(self, signature: str) -> Optional[dict[str, Any]]:
        """Fetch a single transaction in ``jsonParsed`` encoding."""
        result = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": "confirmed",
                },
            ],
        )
        return result if isinstance(result, dict) else None

    async def get_wallet_token_balance(self, wallet: str, mint: str) -> Optional[float]:
        """Return the current UI token balance for *wallet* holding *mint*.

        Calls ``getTokenAccountsByOwner`` with a mint filter – exactly 1 RPC
        call, summing every token account the wallet owns for that mint.
        Returns 0.0 when the wallet has no token account (fully exited) and
        ``None`` when the lookup itself failed.
        """
        result = await self._call(
            "getTokenAccountsByOwner",
            [
                wallet,
                {"mint": mint},
                {"encoding": "jsonParsed", "commitment": "confirmed"},
            ],
        )
        if not isinstance(result, dict):
            return None
        total = 0.0
        for account in result.get("value") or []:
            try:
                info = account["account"]["data"]["parsed"]["info"]
                amt = info.get("tokenAmount", {}).get("uiAmount") or 0.0
                total += float(amt)
            except (KeyError, TypeError, ValueError):
                logger.debug("Unparseable token account for %s/%s", wallet[:8], mint[:8])
        return total

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call(
        self,
        method: str,
        params: list[Any] | dict,
        *,
        quiet_error_codes: frozenset[int] = frozenset(),
    ) -> Any:
        """Paced JSON-RPC call with retry + exponential backoff.

        Returns ``None`` on any failure; never raises.
        """
        self._id_counter += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._id_counter,
            "method": method,
            "params": params,
        }
        try:
            if self._limiter is not None and not await self._limiter.acquire(timeout=self._timeout):
                logger.warning("Solana RPC %s skipped: rate limiter wait exceeded %ss", method, self._timeout)
                return None
            client = await self._get_client()
            return await async_http_post_json(
                client, self._endpoint, json_payload=payload,
                max_retries=_MAX_RETRIES, backoff_base=_BACKOFF_BASE,
                label=f"Solana RPC ({method})",
                quiet_error_codes=quiet_error_codes,
            )
        except Exception as exc:
            logger.warning("Solana RPC %s failed: %s", method, exc)
            return None
