"""Tests for bundle classification and coordination labels."""

from __future__ import annotations

from launch_agent.bundle_classifier import (
    bundle_label,
    classify_bundle,
    coordination_evidence,
    funding_cluster_label,
)
from launch_agent.models import BlockScan, Classification, FundingCluster, FundingTrace


def _scan(n: int, *, tip: bool = False) -> BlockScan:
    return BlockScan(slot=100, buyers=tuple(f"B{i}" for i in range(n)), tip_account_hit=tip)


class TestClassifyBundle:

    def test_twelve_buyers_is_farm(self):
        verdict = classify_bundle(_scan(12), "mint", 100, farm_threshold=10)
        assert verdict.classification == Classification.FARM
        assert verdict.unique_buyer_count == 12

    def test_three_buyers_pending(self):
        verdict = classify_bundle(_scan(3), "mint", 100, farm_threshold=10)
        assert verdict.classification == Classification.PENDING

    def test_threshold_inclusive(self):
        verdict = classify_bundle(_scan(10), "mint", 100, farm_threshold=10)
        assert verdict.classification == Classification.FARM

    def test_count_matches_buyers(self):
        verdict = classify_bundle(_scan(7), "mint", 100, farm_threshold=10)
        assert verdict.unique_buyer_count == len(verdict.buyers)


class TestLabels:

    def test_high_when_tip_and_farm(self):
        verdict = classify_bundle(_scan(12, tip=True), "mint", 100, farm_threshold=10)
        assert bundle_label(verdict) == "high"

    def test_farm_without_tip(self):
        verdict = classify_bundle(_scan(12), "mint", 100, farm_threshold=10)
        assert bundle_label(verdict) == "farm"

    def test_pending_has_no_label(self):
        verdict = classify_bundle(_scan(2, tip=True), "mint", 100, farm_threshold=10)
        assert bundle_label(verdict) is None

    def test_critical_cluster(self):
        cluster = FundingCluster(common_funder="F", common_funder_count=3)
        assert funding_cluster_label(cluster, cluster_threshold=2) == "critical"

    def test_cluster_at_threshold_not_critical(self):
        cluster = FundingCluster(common_funder="F", common_funder_count=2)
        assert funding_cluster_label(cluster, cluster_threshold=2) is None

    def test_no_cluster(self):
        assert funding_cluster_label(None, cluster_threshold=2) is None


class TestCoordinationEvidence:

    def test_reports_both_evidences_separately(self):
        verdict = classify_bundle(_scan(12, tip=True), "mint", 100, farm_threshold=10)
        cluster = FundingCluster(
            traces=[FundingTrace(buyer="B0", funder="F")],
            common_funder="F",
            common_funder_count=4,
        )
        lines = coordination_evidence(verdict, cluster, cluster_threshold=2)
        assert len(lines) == 2
        assert "Jito bundle" in lines[0]
        assert "Common funder F" in lines[1]

    def test_dispersed_funding(self):
        verdict = classify_bundle(_scan(12), "mint", 100, farm_threshold=10)
        cluster = FundingCluster(
            traces=[FundingTrace(buyer="B0", funder="F1"), FundingTrace(buyer="B1")],
            common_funder="F1",
            common_funder_count=1,
        )
        lines = coordination_evidence(verdict, cluster, cluster_threshold=2)
        assert any("dispersed" in line for line in lines)
