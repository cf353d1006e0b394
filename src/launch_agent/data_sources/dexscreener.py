"""
DexScreener API client, used to re-price stored signals.

Reference: https://docs.dexscreener.com/api/reference

Public endpoints – no API key required.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ._retry import async_http_get
from ..rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Retry configuration
_MAX_RETRIES = 3
_BACKOFF_BASE = 1.0  # seconds


class DexScreenerClient:
    """Async wrapper around the DexScreener REST API."""

    def __init__(
        self,
        base_url: str,
        timeout: int = 15,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._limiter = rate_limiter

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def get_token_pairs(self, mint: str) -> Optional[list[dict[str, Any]]]:
        """Return all DEX pairs for a Solana token mint.

        ``[]`` when DexScreener lists none, ``None`` when the lookup failed.
        """
        url = f"{self._base_url}/latest/dex/tokens/{mint}"
        if self._limiter is not None:
            await self._limiter.acquire()
        client = await self._get_client()
        data = await async_http_get(
            client, url,
            max_retries=_MAX_RETRIES, backoff_base=_BACKOFF_BASE,
            label="DexScreener",
        )
        if data is None:
            return None
        if not isinstance(data, dict):
            return []
        return data.get("pairs") or []


def best_pair_market(pairs: list[dict]) -> tuple[Optional[float], Optional[float]]:
    """``(market_cap_usd, liquidity_usd)`` of the most liquid pair.

    Market cap falls back to FDV, which DexScreener fills far more often
    for fresh pump.fun pairs.
    """
    if not pairs:
        return None, None
    best = max(pairs, key=lambda p: _safe_float((p.get("liquidity") or {}).get("usd")) or 0)
    market_cap = _safe_float(best.get("marketCap")) or _safe_float(best.get("fdv"))
    liquidity = _safe_float((best.get("liquidity") or {}).get("usd"))
    return market_cap, liquidity


def _safe_float(val: Any) -> Optional[float]:
    """Try to cast *val* to float, returning ``None`` on failure."""
    if val is None:
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None
