"""
Logging configuration for the Launch Integrity Agent.

Supports two formats:
- ``text`` (default): human-readable log lines
- ``json``: structured JSON for log aggregation (ELK, Datadog, etc.)

Settings via env vars:
- ``LOG_LEVEL``: DEBUG / INFO / WARNING / ERROR (default: INFO)
- ``LOG_FORMAT``: text / json (default: text)

Every record emitted from inside a launch task carries that launch's
``mint``, ``slot`` and ``stage`` (see :func:`launch_context`).
"""

from __future__ import annotations

import json as json_mod
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

from config import LOG_FORMAT, LOG_LEVEL

_EMPTY: dict[str, Any] = {"mint": "-", "slot": "-", "stage": "-"}

# Context var holding the launch a task is currently working on
launch_ctx: ContextVar[dict[str, Any]] = ContextVar("launch", default=_EMPTY)


@contextmanager
def launch_context(
    *,
    mint: Optional[str] = None,
    slot: Optional[int] = None,
    stage: Optional[str] = None,
) -> Iterator[dict[str, Any]]:
    """Tag log records with launch fields until the block exits.

    Fields left as ``None`` keep the value of the enclosing context, so a
    stage can be narrowed without repeating the mint.
    """
    current = dict(launch_ctx.get())
    if mint is not None:
        current["mint"] = mint
    if slot is not None:
        current["slot"] = slot
    if stage is not None:
        current["stage"] = stage
    token = launch_ctx.set(current)
    try:
        yield current
    finally:
        launch_ctx.reset(token)


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = launch_ctx.get()
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "mint": ctx.get("mint", "-"),
            "slot": ctx.get("slot", "-"),
            "stage": ctx.get("stage", "-"),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json_mod.dumps(entry, default=str)


def setup_logging() -> None:
    """Configure the root logger based on env settings."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if LOG_FORMAT == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s (%(mint)s@%(slot)s %(stage)s) %(message)s",
                defaults={"mint": "-", "slot": "-", "stage": "-"},
            )
        )

    # Always inject the launch fields so both formats can use them
    handler.addFilter(LaunchContextFilter())

    root.addHandler(handler)


class LaunchContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        ctx = launch_ctx.get()
        record.mint = ctx.get("mint", "-")  # type: ignore[attr-defined]
        record.slot = ctx.get("slot", "-")  # type: ignore[attr-defined]
        record.stage = ctx.get("stage", "-")  # type: ignore[attr-defined]
        return True
