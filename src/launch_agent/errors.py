"""
Exception taxonomy for the launch-integrity pipeline.

``TransientLookupFailure`` and ``MissingData`` are recoverable: the first is
absorbed by the per-address / per-transaction loop that hit it, the second
ends a single launch analysis.  ``ConfigurationError`` is only raised at
startup.
"""

from __future__ import annotations

from typing import Optional

from config import ConfigurationError

__all__ = [
    "ConfigurationError",
    "LaunchStateError",
    "MissingData",
    "TransientLookupFailure",
]


class TransientLookupFailure(Exception):
    """A single external call failed or timed out."""

    def __init__(self, call: str, target: str = "") -> None:
        super().__init__(f"{call} failed for {target or '?'}")
        self.call = call
        self.target = target


class MissingData(Exception):
    """The chain data needed to finish one analysis is not there."""

    def __init__(
        self,
        reason: str,
        *,
        mint: Optional[str] = None,
        slot: Optional[int] = None,
        stage: str = "",
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.mint = mint
        self.slot = slot
        self.stage = stage


class LaunchStateError(Exception):
    """Raised on an illegal launch state-machine transition."""
