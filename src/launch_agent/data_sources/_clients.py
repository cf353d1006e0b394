"""
Singleton client management for the Launch Integrity Agent.

Provides lazy-initialised clients for Solana RPC and DexScreener, the
shared RPC rate limiter, and the signal store backend.

``init_clients`` / ``close_clients`` should be called at startup/shutdown.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..rate_limiter import RateLimiter
from ..signal_store import MemorySignalStore, SignalStore, create_store
from .dexscreener import DexScreenerClient
from .solana_rpc import SolanaRpcClient
from config import (
    DEXSCREENER_BASE_URL,
    REQUEST_TIMEOUT,
    RPC_BURST,
    RPC_MIN_INTERVAL_SECONDS,
    SIGNAL_STORE_BACKEND,
    SIGNALS_DB_PATH,
    SOLANA_RPC_ENDPOINT,
)

logger = logging.getLogger(__name__)

# DexScreener's public API tolerates roughly 300 req/min
_DEX_MIN_INTERVAL_SECONDS = 0.3

# ---------------------------------------------------------------------------
# Module-level singletons (created once, reused)
# ---------------------------------------------------------------------------
_rpc_limiter: Optional[RateLimiter] = None
_rpc_client: Optional[SolanaRpcClient] = None
_dex_client: Optional[DexScreenerClient] = None
_store: Optional[SignalStore | MemorySignalStore] = None


def get_rpc_limiter() -> RateLimiter:
    """The one token bucket every RPC call draws from."""
    global _rpc_limiter
    if _rpc_limiter is None:
        _rpc_limiter = RateLimiter.from_interval(RPC_MIN_INTERVAL_SECONDS, burst=RPC_BURST)
    return _rpc_limiter


def get_rpc_client() -> SolanaRpcClient:
    global _rpc_client
    if _rpc_client is None:
        _rpc_client = SolanaRpcClient(
            endpoint=SOLANA_RPC_ENDPOINT,
            timeout=REQUEST_TIMEOUT,
            rate_limiter=get_rpc_limiter(),
        )
    return _rpc_client


def get_dex_client() -> DexScreenerClient:
    global _dex_client
    if _dex_client is None:
        _dex_client = DexScreenerClient(
            base_url=DEXSCREENER_BASE_URL,
            timeout=REQUEST_TIMEOUT,
            rate_limiter=RateLimiter.from_interval(_DEX_MIN_INTERVAL_SECONDS),
        )
    return _dex_client


def get_store() -> SignalStore | MemorySignalStore:
    global _store
    if _store is None:
        _store = create_store(SIGNAL_STORE_BACKEND, SIGNALS_DB_PATH)
    return _store


async def init_clients() -> None:
    """Eagerly create the singleton clients (called at startup)."""
    get_rpc_client()
    get_dex_client()
    get_store()


async def close_clients() -> None:
    """Close singleton clients gracefully (called at shutdown)."""
    global _rpc_client, _dex_client, _store, _rpc_limiter
    if _rpc_client is not None:
        await _rpc_client.close()
        _rpc_client = None
    if _dex_client is not None:
        await _dex_client.close()
        _dex_client = None
    if _store is not None:
        await _store.close()
        _store = None
    _rpc_limiter = None
