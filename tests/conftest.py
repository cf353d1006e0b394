"""Shared test fixtures for the Launch Integrity Agent test suite."""

from __future__ import annotations

import sys
import os

# Ensure src/ is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest
from datetime import datetime, timezone
from typing import Optional

from launch_agent.settings import DetectionSettings

PROGRAM = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
TIP = "96gYZGLnJYVFmbjzopPSU6QiEV5fGqZNyN9nmNhvrZU5"
MINT = "MintPump1111111111111111111111111111111pump"
CREATION_SIG = "CreateSig1111111111111111111111111111111111"


# ---------------------------------------------------------------------------
# Raw RPC payload builders
# ---------------------------------------------------------------------------

def legacy_tx(
    keys: list[str],
    *,
    signature: str = "",
    err: object = None,
    mints: tuple[str, ...] = (),
) -> dict:
    """A ``json``-encoded legacy transaction record."""
    return {
        "transaction": {
            "signatures": [signature or f"sig-{keys[0] if keys else 'x'}"],
            "message": {"accountKeys": list(keys)},
        },
        "meta": {
            "err": err,
            "postTokenBalances": [{"mint": m, "owner": keys[0] if keys else ""} for m in mints],
        },
    }


def v0_tx(
    static: list[str],
    writable: Optional[list[str]] = None,
    readonly: Optional[list[str]] = None,
    *,
    signature: str = "",
    err: object = None,
    mints: tuple[str, ...] = (),
    with_loaded: bool = True,
) -> dict:
    """A ``json``-encoded v0 transaction; *with_loaded* False trims loadedAddresses."""
    meta: dict = {
        "err": err,
        "postTokenBalances": [{"mint": m} for m in mints],
    }
    if with_loaded:
        meta["loadedAddresses"] = {"writable": writable or [], "readonly": readonly or []}
    return {
        "version": 0,
        "transaction": {
            "signatures": [signature or f"sig-{static[0] if static else 'x'}"],
            "message": {"accountKeys": list(static)},
        },
        "meta": meta,
    }


def buy_tx(buyer: str, *, mint: str = MINT, err: object = None, extra: tuple[str, ...] = ()) -> dict:
    return legacy_tx([buyer, *extra, PROGRAM], err=err, mints=(mint,))


def create_tx(creator: str = "Creator111", *, mint: str = MINT, signature: str = CREATION_SIG) -> dict:
    return legacy_tx([creator, PROGRAM], signature=signature, mints=(mint,))


def make_block(transactions: list[dict]) -> dict:
    return {"blockHeight": 1, "transactions": transactions}


def parsed_tx(first_account: str, *others: str) -> dict:
    """A ``jsonParsed`` transaction whose fee payer is *first_account*."""
    keys = [{"pubkey": first_account, "signer": True, "source": "transaction"}]
    keys += [{"pubkey": k, "signer": False, "source": "transaction"} for k in others]
    return {"transaction": {"message": {"accountKeys": keys}}, "meta": {"err": None}}


@pytest.fixture
def settings():
    """Fast settings: no propagation wait, tip account configured."""
    return DetectionSettings(
        program_id=PROGRAM,
        tip_accounts=(TIP,),
        block_propagation_delay_seconds=0,
        block_fetch_attempts=2,
        retention_delay_seconds=300,
        analysis_timeout_seconds=5,
    )


@pytest.fixture
def sample_pairs():
    """Minimal DexScreener pairs response."""
    return [
        {
            "chainId": "solana",
            "baseToken": {"address": MINT, "name": "Cat", "symbol": "CAT"},
            "priceUsd": "0.00004",
            "marketCap": 40000,
            "fdv": 40000,
            "liquidity": {"usd": 12000},
            "url": "https://dexscreener.com/solana/cat",
        },
        {
            "chainId": "solana",
            "baseToken": {"address": MINT, "name": "Cat", "symbol": "CAT"},
            "priceUsd": "0.00004",
            "marketCap": None,
            "fdv": 39000,
            "liquidity": {"usd": 800},
            "url": "https://dexscreener.com/solana/cat-2",
        },
    ]


@pytest.fixture
def now_utc():
    return datetime.now(tz=timezone.utc)
