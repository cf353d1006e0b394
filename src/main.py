"""
Command line interface for the Launch Integrity Agent.

Usage::

    python src/main.py monitor
    python src/main.py autopsy --mint <TOKEN_MINT> [--json]
    python src/main.py signals [--limit N] [--json]
    python src/main.py review [--json]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

# Ensure ``src/`` is on the import path
sys.path.insert(0, os.path.dirname(__file__))

import sentry_sdk

from config import (
    SENTRY_DSN,
    SENTRY_ENVIRONMENT,
    SENTRY_TRACES_SAMPLE_RATE,
    SOLANA_WS_ENDPOINT,
    TARGET_PROGRAM_ID,
    ConfigurationError,
    validate_config,
)
from launch_agent.backtest_service import review_signals, run_autopsy
from launch_agent.coordinator import LaunchCoordinator
from launch_agent.data_sources._clients import (
    close_clients,
    get_dex_client,
    get_rpc_client,
    get_store,
    init_clients,
)
from launch_agent.data_sources.log_stream import LaunchLogStream
from launch_agent.logging_config import setup_logging
from launch_agent.settings import load_settings

logger = logging.getLogger(__name__)


def _init_sentry() -> None:
    if not SENTRY_DSN:
        return
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=False,
    )
    logger.info("Sentry initialised (env=%s)", SENTRY_ENVIRONMENT)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def _monitor() -> None:
    """Subscribe to launches and analyse each one until interrupted."""
    settings = load_settings()
    await init_clients()
    coordinator = LaunchCoordinator(get_rpc_client(), get_store(), settings)
    stream = LaunchLogStream(SOLANA_WS_ENDPOINT, TARGET_PROGRAM_ID)

    async def _on_launch(event) -> None:
        logger.info("New launch at slot %d: %s", event.slot, event.creation_signature)
        coordinator.spawn(event)

    try:
        await coordinator.scheduler.rearm()
        logger.info(
            "Monitoring %s (farm threshold %d, retention delay %.0fs)",
            TARGET_PROGRAM_ID, settings.farm_threshold, settings.retention_delay_seconds,
        )
        await stream.run(_on_launch)
    finally:
        stream.stop()
        await coordinator.shutdown()
        await close_clients()


async def _autopsy(mint: str, as_json: bool) -> None:
    try:
        report = await run_autopsy(get_rpc_client(), mint, load_settings())
    finally:
        await close_clients()

    if as_json:
        print(report.model_dump_json(indent=2))
        return

    print("=" * 60)
    print("  Launch Autopsy")
    print("=" * 60)
    print(f"  Mint          : {report.mint}")
    print(f"  Verdict       : {report.reason}")
    print(f"  Creation Slot : {report.creation_slot if report.creation_slot is not None else 'n/a'}")
    print(f"  Bundle Size   : {report.bundle_size} wallets")
    print(f"  Tip Account   : {'YES' if report.tip_account_hit else 'NO'}")
    print(f"  Cluster       : {report.cluster_size} linked wallets")
    if report.common_funder:
        print(f"  Common Funder : https://solscan.io/account/{report.common_funder}")
    for line in report.evidence:
        print(f"    - {line}")
    print("=" * 60)


async def _signals(limit: int | None, as_json: bool) -> None:
    try:
        signals = await get_store().list_signals(limit=limit)
    finally:
        await close_clients()

    if as_json:
        print(json.dumps([s.model_dump(mode="json") for s in signals], indent=2))
        return

    print(f"Total signals: {len(signals)}")
    for sig in signals:
        print("-" * 60)
        print(f"  {sig.detected_at:%Y-%m-%d %H:%M:%S} | {sig.strategy.value}")
        print(f"  Mint           : {sig.mint}")
        print(f"  Block-0 buyers : {sig.buyer_count}")
        print(f"  Notes          : {sig.notes}")


async def _review(as_json: bool) -> None:
    try:
        review = await review_signals(get_store(), get_dex_client())
    finally:
        await close_clients()

    if as_json:
        payload = review.model_dump(mode="json")
        payload["win_rate"] = review.win_rate
        print(json.dumps(payload, indent=2))
        return

    print(f"{'STRATEGY':<20}| {'MINT':<15}| {'MC':<12}| {'LIQUIDITY':<10}| OUTCOME")
    print("-" * 75)
    for perf in review.results:
        short = f"{perf.mint[:4]}...{perf.mint[-4:]}"
        mc = f"${perf.market_cap_usd / 1000:.1f}k" if perf.market_cap_usd else "-"
        liq = f"${perf.liquidity_usd / 1000:.1f}k" if perf.liquidity_usd else "-"
        roi = f" x{perf.roi_multiple:.1f}" if perf.roi_multiple is not None else ""
        print(f"{perf.strategy:<20}| {short:<15}| {mc:<12}| {liq:<10}| {perf.outcome}{roi}")
    print("-" * 75)
    print(f"{review.wins} wins | {review.losses} losses | {review.rugs} rugs | {review.skipped} skipped")
    print(f"Win rate: {review.win_rate:.1%}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect bundled launches and supply shocks on Solana"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("monitor", help="Watch new launches and record signals")

    autopsy = sub.add_parser("autopsy", help="Forensic block-0 analysis of one mint")
    autopsy.add_argument("--mint", required=True, help="Mint address of the token to analyse")
    autopsy.add_argument("--json", action="store_true", dest="as_json", help="Output raw JSON")

    signals = sub.add_parser("signals", help="List stored signals, newest first")
    signals.add_argument("--limit", type=int, default=None, help="Show at most N signals")
    signals.add_argument("--json", action="store_true", dest="as_json", help="Output raw JSON")

    review = sub.add_parser("review", help="Re-price stored signals with DexScreener")
    review.add_argument("--json", action="store_true", dest="as_json", help="Output raw JSON")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.command == "monitor":
        try:
            validate_config()
        except ConfigurationError as exc:
            logger.error("Configuration error: %s", exc)
            return 2
        _init_sentry()
        try:
            asyncio.run(_monitor())
        except KeyboardInterrupt:
            logger.info("Monitor stopped")
        return 0

    if args.command == "autopsy":
        asyncio.run(_autopsy(args.mint, args.as_json))
    elif args.command == "signals":
        asyncio.run(_signals(args.limit, args.as_json))
    elif args.command == "review":
        asyncio.run(_review(args.as_json))
    return 0


if __name__ == "__main__":
    sys.exit(main())
