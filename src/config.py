"""
Project configuration file for the Launch Integrity Agent.

This module centralises all user-modifiable settings such as RPC
endpoints, detection thresholds and scheduling delays.  You can edit these
values directly or set environment variables to override them.

Unparseable values fall back to their defaults so that importing this
module never fails, but every such problem is recorded and
``validate_config()`` refuses to start the monitor until it is fixed.
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

# Problems found while parsing the environment (reported by validate_config)
CONFIG_ERRORS: list[str] = []


class ConfigurationError(Exception):
    """Raised at startup when the configuration cannot be used."""


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _parse_float(name: str, default: str, *, low: float = 0.0, high: float = 1.0) -> float:
    """Parse an env var as a float and validate it within [low, high]."""
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.error("Invalid value for %s: %r – using default %s", name, raw, default)
        CONFIG_ERRORS.append(f"{name}={raw!r} is not a number")
        value = float(default)
    if not (low <= value <= high):
        logger.warning("%s=%.4f is outside [%.1f, %.1f] – clamped", name, value, low, high)
        value = max(low, min(value, high))
    return value


def _parse_int(name: str, default: str, *, minimum: int = 1) -> int:
    """Parse an env var as an int and enforce a minimum."""
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.error("Invalid value for %s: %r – using default %s", name, raw, default)
        CONFIG_ERRORS.append(f"{name}={raw!r} is not an integer")
        value = int(default)
    if value < minimum:
        logger.warning("%s=%d is below minimum %d – clamped", name, value, minimum)
        value = minimum
    return value


def _parse_bool(name: str, default: str) -> bool:
    """Parse an env var as a boolean flag (1/0, true/false, yes/no, on/off)."""
    raw = os.getenv(name, default).strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off", ""}:
        return False
    logger.error("Invalid value for %s: %r – using default %s", name, raw, default)
    CONFIG_ERRORS.append(f"{name}={raw!r} is not a boolean")
    return default.strip().lower() in {"1", "true", "yes", "on"}


def _parse_list(name: str, default: str) -> list[str]:
    """Parse a comma-separated env var, dropping blanks and duplicates."""
    raw = os.getenv(name, default)
    items: list[str] = []
    for item in raw.split(","):
        item = item.strip()
        if item and item not in items:
            items.append(item)
    return items


def _ws_from_http(endpoint: str) -> str:
    if endpoint.startswith("https://"):
        return "wss://" + endpoint[len("https://"):]
    if endpoint.startswith("http://"):
        return "ws://" + endpoint[len("http://"):]
    return endpoint


# ---------------------------------------------------------------------------
# Solana RPC
# ---------------------------------------------------------------------------
SOLANA_RPC_ENDPOINT: str = os.getenv(
    "SOLANA_RPC_ENDPOINT",
    "https://api.mainnet-beta.solana.com",
).strip()
SOLANA_WS_ENDPOINT: str = os.getenv(
    "SOLANA_WS_ENDPOINT",
    _ws_from_http(SOLANA_RPC_ENDPOINT),
).strip()

# Launch program whose "Create" instructions mark a new token
TARGET_PROGRAM_ID: str = os.getenv(
    "TARGET_PROGRAM_ID",
    "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",
).strip()

# ---------------------------------------------------------------------------
# DexScreener (signal review only)
# ---------------------------------------------------------------------------
DEXSCREENER_BASE_URL: str = os.getenv(
    "DEXSCREENER_BASE_URL",
    "https://api.dexscreener.com",
)

# ---------------------------------------------------------------------------
# Bundle detection
# ---------------------------------------------------------------------------
# Jito tip accounts – their presence in block 0 fingerprints a bundle
TIP_ACCOUNTS: list[str] = _parse_list(
    "TIP_ACCOUNTS",
    ",".join([
        "96gYZGLnJYVFmbjzopPSU6QiEV5fGqZNyN9nmNhvrZU5",
        "HFqU5x63VTqvQss8hp11i4wVV8bD44PvwucfZ2bU7gRe",
        "Cw8CFyM9FkoMi7K7Crf6HNQqf4uEMzpKw6QNghXLvLkY",
        "ADaUMid9yfUytqMBgopwjb2DTLSokTSzL1zt6iGPaS49",
        "DfXygSm4jCyNCybVYYK6DwvWqjKee8pbDmJGcLWNDXjh",
        "ADuUkR4vqLUMWXxW9gh6D6L8pMSawimctcNZ5pGwDcEt",
        "DttWaMuVvTiduZRnguLF7jNxTgiMBZ1hyAumKUiL2KRL",
        "3AVi9Tg9Uo68tJfuvoKvqKNWKkC5wPdSSdeBnizKZ6jT",
    ]),
)
FARM_THRESHOLD: int = _parse_int("FARM_THRESHOLD", "10", minimum=1)

# ---------------------------------------------------------------------------
# Funding trace
# ---------------------------------------------------------------------------
FUNDING_CLUSTER_THRESHOLD: int = _parse_int("FUNDING_CLUSTER_THRESHOLD", "2", minimum=1)
FUNDING_SAMPLE_SIZE: int = _parse_int("FUNDING_SAMPLE_SIZE", "10", minimum=1)
FUNDING_HISTORY_LIMIT: int = _parse_int("FUNDING_HISTORY_LIMIT", "10", minimum=1)
FUNDING_HISTORY_PAGES: int = _parse_int("FUNDING_HISTORY_PAGES", "3", minimum=1)
# CEX hot wallets / AMM authorities that fund everybody
FUNDER_EXCLUSIONS: list[str] = _parse_list(
    "FUNDER_EXCLUSIONS",
    "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1",
)
TRACE_FUNDING_ON_FARM: bool = _parse_bool("TRACE_FUNDING_ON_FARM", "true")
# Upper bound on the funding trace of one FARM launch; the signal is written either way
FUNDING_TRACE_TIMEOUT_SECONDS: float = _parse_float(
    "FUNDING_TRACE_TIMEOUT_SECONDS", "60", low=1.0, high=600.0
)

# ---------------------------------------------------------------------------
# Retention (supply shock) check
# ---------------------------------------------------------------------------
RETENTION_DELAY_SECONDS: int = _parse_int("RETENTION_DELAY_SECONDS", "300", minimum=0)
HOLDING_REQUIREMENT: float = _parse_float("HOLDING_REQUIREMENT", "0.90")
DUST_THRESHOLD: float = _parse_float("DUST_THRESHOLD", "1000", low=0.0, high=1e15)
MIN_LIVENESS_TX_COUNT: int = _parse_int("MIN_LIVENESS_TX_COUNT", "50", minimum=0)
STRICT_LIVENESS: bool = _parse_bool("STRICT_LIVENESS", "false")
ELITE_MIN_LIVENESS_TX_COUNT: int = _parse_int("ELITE_MIN_LIVENESS_TX_COUNT", "150", minimum=0)

# ---------------------------------------------------------------------------
# Pacing / limits
# ---------------------------------------------------------------------------
RPC_MIN_INTERVAL_SECONDS: float = _parse_float(
    "RPC_MIN_INTERVAL_SECONDS", "0.2", low=0.0, high=60.0
)
RPC_BURST: int = _parse_int("RPC_BURST", "1", minimum=1)
BLOCK_PROPAGATION_DELAY_SECONDS: float = _parse_float(
    "BLOCK_PROPAGATION_DELAY_SECONDS", "3", low=0.0, high=120.0
)
BLOCK_FETCH_ATTEMPTS: int = _parse_int("BLOCK_FETCH_ATTEMPTS", "3", minimum=1)
REQUEST_TIMEOUT: int = _parse_int("REQUEST_TIMEOUT", "15", minimum=1)
ANALYSIS_TIMEOUT_SECONDS: int = _parse_int("ANALYSIS_TIMEOUT_SECONDS", "120", minimum=5)

# ---------------------------------------------------------------------------
# Signal store
# ---------------------------------------------------------------------------
SIGNAL_STORE_BACKEND: str = os.getenv("SIGNAL_STORE_BACKEND", "sqlite")  # "memory" or "sqlite"
SIGNALS_DB_PATH: str = os.getenv("SIGNALS_DB_PATH", "data/trading_signals.db")

# ---------------------------------------------------------------------------
# Sentry (error tracking)
# ---------------------------------------------------------------------------
SENTRY_DSN: str = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT: str = os.getenv("SENTRY_ENVIRONMENT", "production")
SENTRY_TRACES_SAMPLE_RATE: float = _parse_float(
    "SENTRY_TRACES_SAMPLE_RATE", "0.1", low=0.0, high=1.0
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text")  # "text" or "json"


def validate_config() -> None:
    """Fail fast on configuration problems, before any event is processed."""
    problems = list(CONFIG_ERRORS)
    if not SOLANA_RPC_ENDPOINT:
        problems.append("SOLANA_RPC_ENDPOINT is required")
    if not SOLANA_WS_ENDPOINT:
        problems.append("SOLANA_WS_ENDPOINT is required")
    if not TARGET_PROGRAM_ID:
        problems.append("TARGET_PROGRAM_ID is required")
    if SIGNAL_STORE_BACKEND not in {"sqlite", "memory"}:
        problems.append(f"SIGNAL_STORE_BACKEND={SIGNAL_STORE_BACKEND!r} must be 'sqlite' or 'memory'")
    if problems:
        raise ConfigurationError("; ".join(problems))
