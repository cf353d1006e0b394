"""
Bundle classification of a launch block.

Two independent coordination evidences are reported here:

* **Block-0 concentration**: many unique buyers landing in the creation
  slot, optionally fingerprinted by a Jito tip account.  This gates the
  pipeline: ``FARM`` ends it, ``PENDING`` defers to the retention check.
* **Shared capital source**: a funding trace where one funder seeded more
  than ``cluster_threshold`` buyers.  Reporting only; never gates.

Each is labelled separately and the two labels are never merged.
"""

from __future__ import annotations

from typing import Optional

from .models import BlockScan, BundleVerdict, Classification, FundingCluster


def classify_bundle(
    scan: BlockScan,
    mint: str,
    creation_slot: int,
    *,
    farm_threshold: int,
) -> BundleVerdict:
    """Classify the block-0 scan of *mint*."""
    count = len(scan.buyers)
    classification = (
        Classification.FARM if count >= farm_threshold else Classification.PENDING
    )
    return BundleVerdict(
        mint=mint,
        creation_slot=creation_slot,
        unique_buyer_count=count,
        tip_account_hit=scan.tip_account_hit,
        classification=classification,
        buyers=scan.buyers,
    )


def bundle_label(verdict: BundleVerdict) -> Optional[str]:
    """``"high"`` for a tip-fingerprinted farm, ``"farm"`` for an untipped one."""
    if verdict.classification != Classification.FARM:
        return None
    return "high" if verdict.tip_account_hit else "farm"


def funding_cluster_label(
    cluster: Optional[FundingCluster],
    *,
    cluster_threshold: int,
) -> Optional[str]:
    """``"critical"`` when one funder seeded more than *cluster_threshold* buyers."""
    if cluster is None or not cluster.common_funder:
        return None
    if cluster.common_funder_count > cluster_threshold:
        return "critical"
    return None


def coordination_evidence(
    verdict: BundleVerdict,
    cluster: Optional[FundingCluster] = None,
    *,
    cluster_threshold: int,
) -> list[str]:
    """Human-readable evidence lines for signal notes and reports."""
    evidence: list[str] = []
    label = bundle_label(verdict)
    if label == "high":
        evidence.append(
            f"Jito bundle: {verdict.unique_buyer_count} wallets in block 0"
        )
    elif label == "farm":
        evidence.append(f"{verdict.unique_buyer_count} wallets in block 0 (no tip account)")
    elif verdict.tip_account_hit:
        evidence.append("Tip account present in block 0")

    if cluster is not None:
        if funding_cluster_label(cluster, cluster_threshold=cluster_threshold):
            evidence.append(
                f"Common funder {cluster.common_funder} seeded "
                f"{cluster.common_funder_count} wallets (critical)"
            )
        elif cluster.traces:
            evidence.append(
                f"Funding dispersed ({cluster.traced_count}/{len(cluster.traces)} traced)"
            )
    return evidence
