"""
Frozen detection settings shared by every launch task.

``config`` is read once at startup; tasks only ever see this immutable
snapshot, so a task can never observe thresholds changing under it.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DetectionSettings:
    program_id: str = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
    tip_accounts: tuple[str, ...] = ()

    # Bundle classification
    farm_threshold: int = 10

    # Funding trace
    funding_cluster_threshold: int = 2
    funding_sample_size: int = 10
    funding_history_limit: int = 10
    funding_history_pages: int = 3
    funder_exclusions: frozenset[str] = field(default_factory=frozenset)
    trace_funding_on_farm: bool = True
    funding_trace_timeout_seconds: float = 60.0

    # Retention check
    retention_delay_seconds: float = 300.0
    holding_requirement: float = 0.90
    dust_threshold: float = 1000.0
    min_liveness_tx_count: int = 50
    strict_liveness: bool = False
    elite_min_liveness_tx_count: int = 150

    # Timing
    block_propagation_delay_seconds: float = 3.0
    block_fetch_attempts: int = 3
    analysis_timeout_seconds: float = 120.0

    @property
    def liveness_minimum(self) -> int:
        """Transaction count a token needs to be considered alive."""
        if self.strict_liveness:
            return self.elite_min_liveness_tx_count
        return self.min_liveness_tx_count


def load_settings() -> DetectionSettings:
    """Snapshot the current ``config`` module values."""
    import config

    return DetectionSettings(
        program_id=config.TARGET_PROGRAM_ID,
        tip_accounts=tuple(config.TIP_ACCOUNTS),
        farm_threshold=config.FARM_THRESHOLD,
        funding_cluster_threshold=config.FUNDING_CLUSTER_THRESHOLD,
        funding_sample_size=config.FUNDING_SAMPLE_SIZE,
        funding_history_limit=config.FUNDING_HISTORY_LIMIT,
        funding_history_pages=config.FUNDING_HISTORY_PAGES,
        funder_exclusions=frozenset(config.FUNDER_EXCLUSIONS),
        trace_funding_on_farm=config.TRACE_FUNDING_ON_FARM,
        funding_trace_timeout_seconds=config.FUNDING_TRACE_TIMEOUT_SECONDS,
        retention_delay_seconds=float(config.RETENTION_DELAY_SECONDS),
        holding_requirement=config.HOLDING_REQUIREMENT,
        dust_threshold=config.DUST_THRESHOLD,
        min_liveness_tx_count=config.MIN_LIVENESS_TX_COUNT,
        strict_liveness=config.STRICT_LIVENESS,
        elite_min_liveness_tx_count=config.ELITE_MIN_LIVENESS_TX_COUNT,
        block_propagation_delay_seconds=config.BLOCK_PROPAGATION_DELAY_SECONDS,
        block_fetch_attempts=config.BLOCK_FETCH_ATTEMPTS,
        analysis_timeout_seconds=float(config.ANALYSIS_TIMEOUT_SECONDS),
    )
