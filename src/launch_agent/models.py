"""
Pydantic models used throughout the Launch Integrity Agent.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
class Classification(str, Enum):
    """Block-0 verdict the coordinator branches on."""

    FARM = "farm"
    PENDING = "pending"


class Strategy(str, Enum):
    """Signal strategies as stored in the ``signals`` table."""

    FARM = "FARM"
    SUPPLY_SHOCK = "SUPPLY_SHOCK"
    SUPPLY_SHOCK_ELITE = "SUPPLY_SHOCK_ELITE"


class LaunchState(str, Enum):
    """Per-token lifecycle; every launch moves forward only."""

    NEW = "new"
    BLOCK0_ANALYZED = "block0_analyzed"
    FARM_DETECTED = "farm_detected"
    AWAITING_RETENTION_CHECK = "awaiting_retention_check"
    SUPPLY_SHOCK_CONFIRMED = "supply_shock_confirmed"
    REJECTED = "rejected"
    ABORTED = "aborted"


# ---------------------------------------------------------------------------
# Launch event  (from the log subscription)
# ---------------------------------------------------------------------------
class LaunchEvent(BaseModel):
    """A token-creation transaction seen on the launch program's log feed."""

    model_config = ConfigDict(frozen=True)

    creation_signature: str = Field(..., description="Signature of the Create transaction")
    slot: int = Field(..., ge=0, description="Slot the Create transaction landed in")
    observed_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Block-0 analysis
# ---------------------------------------------------------------------------
class BlockScan(BaseModel):
    """Buyers and bundle fingerprints extracted from one block."""

    model_config = ConfigDict(frozen=True)

    slot: Optional[int] = None
    buyers: tuple[str, ...] = ()
    tip_account_hit: bool = False
    transactions_seen: int = 0
    failed_skipped: int = 0
    partial_resolutions: int = Field(
        0, description="Versioned transactions resolved without their loaded addresses"
    )


class BundleVerdict(BaseModel):
    """Bundle classification of a launch block, produced exactly once."""

    model_config = ConfigDict(frozen=True)

    mint: str
    creation_slot: int
    unique_buyer_count: int = Field(..., ge=0)
    tip_account_hit: bool = False
    classification: Classification
    buyers: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Funding trace
# ---------------------------------------------------------------------------
class FundingTrace(BaseModel):
    """Funding source found (or not) for one block-0 buyer."""

    model_config = ConfigDict(frozen=True)

    buyer: str
    funder: Optional[str] = None
    funding_signature: Optional[str] = None
    reason: str = ""


class FundingCluster(BaseModel):
    """Aggregated funding sources for one funding-trace pass."""

    traces: list[FundingTrace] = Field(default_factory=list)
    frequency: dict[str, int] = Field(default_factory=dict)
    common_funder: Optional[str] = None
    common_funder_count: int = 0

    @property
    def traced_count(self) -> int:
        return sum(1 for t in self.traces if t.funder)


# ---------------------------------------------------------------------------
# Retention (supply shock) check
# ---------------------------------------------------------------------------
class RetentionRecord(BaseModel):
    """Result of the retention gate for one launch."""

    model_config = ConfigDict(frozen=True)

    mint: str
    slot: int
    initial_buyers: tuple[str, ...]
    checked_at: datetime = Field(default_factory=_utcnow)
    held_count: int = 0
    sold_count: int = 0
    failed_lookups: int = Field(0, description="Lookups that failed (counted as sold)")
    retention_score: float = Field(0.0, ge=0.0, le=1.0)
    survived: bool = False


class RetentionOutcome(BaseModel):
    """What the retention monitor decided, and why."""

    mint: str
    slot: int
    status: Literal["confirmed", "rejected", "dead", "missing_data"]
    tx_count: Optional[int] = None
    record: Optional[RetentionRecord] = None
    strategy: Optional[Strategy] = None
    reason: str = ""


class RetentionJob(BaseModel):
    """A delayed retention check, persisted until it has run."""

    model_config = ConfigDict(frozen=True)

    mint: str
    slot: int
    creation_signature: str = ""
    buyers: tuple[str, ...] = ()
    due_at: datetime
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Signal  (the terminal output)
# ---------------------------------------------------------------------------
class Signal(BaseModel):
    """A detection written to the signal store."""

    model_config = ConfigDict(frozen=True)

    mint: str
    strategy: Strategy
    slot: int
    buyer_count: int = Field(0, ge=0)
    notes: str = ""
    detected_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Forensic autopsy / signal review
# ---------------------------------------------------------------------------
class AutopsyReport(BaseModel):
    """After-the-fact bundle + funding analysis of one mint."""

    mint: str
    detected: bool = False
    reason: str = ""
    creation_slot: Optional[int] = None
    bundle_size: int = 0
    tip_account_hit: bool = False
    cluster_size: int = 0
    common_funder: Optional[str] = None
    evidence: list[str] = Field(default_factory=list)


class SignalPerformance(BaseModel):
    """Current market outcome of one stored signal."""

    mint: str
    strategy: str
    outcome: Literal["win", "loss", "rug", "dead", "neutral"]
    market_cap_usd: Optional[float] = None
    liquidity_usd: Optional[float] = None
    roi_multiple: Optional[float] = None


class SignalReview(BaseModel):
    """Aggregate of a signal performance review."""

    results: list[SignalPerformance] = Field(default_factory=list)
    wins: int = 0
    losses: int = 0
    rugs: int = 0
    skipped: int = 0

    @property
    def reviewed(self) -> int:
        return len(self.results)

    @property
    def win_rate(self) -> float:
        if not self.results:
            return 0.0
        return self.wins / len(self.results)
