"""
Funnel metrics for a company's buyer pipeline.

Pure computation over already-loaded buyers and their stage history;
no I/O. The report always enumerates every stage, group, buyer type
and tier (zero-filled), and every rate and average is present, so
rendering code never has to check for missing keys.

"Ever reached" semantics: a buyer counts toward a milestone if its
current stage OR any stage in its history belongs to the milestone's
stage set. A buyer that executed an NDA and later withdrew still
counts as having reached the NDA milestone.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from deal_tracker.observability.logging_config import company_context
from deal_tracker.pipeline.models import Buyer, BuyerTier, BuyerType
from deal_tracker.pipeline.stages import (
    DealStage,
    StageGroup,
    StageStatus,
    classify_stage,
    group_of,
)

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 24 * 60 * 60


# ─── Milestones ─────────────────────────────────────────────────────

TEASER_MILESTONE: frozenset[DealStage] = frozenset({
    DealStage.TEASER_SENT,
    DealStage.INTERESTED,
    DealStage.NDA_SENT,
    DealStage.NDA_NEGOTIATING,
    DealStage.NDA_EXECUTED,
})
INTERESTED_MILESTONE: frozenset[DealStage] = frozenset({
    DealStage.INTERESTED,
    DealStage.NDA_SENT,
    DealStage.NDA_NEGOTIATING,
    DealStage.NDA_EXECUTED,
})
NDA_MILESTONE: frozenset[DealStage] = frozenset({
    DealStage.NDA_EXECUTED,
    DealStage.CIM_ACCESS,
    DealStage.LEVEL_2_ACCESS,
    DealStage.LEVEL_3_ACCESS,
})
IOI_MILESTONE: frozenset[DealStage] = frozenset({
    DealStage.IOI_RECEIVED,
    DealStage.IOI_ACCEPTED,
})
LOI_MILESTONE: frozenset[DealStage] = frozenset({
    DealStage.LOI_RECEIVED,
    DealStage.LOI_SELECTED,
    DealStage.LOI_BACKUP,
})

MILESTONES: dict[str, frozenset[DealStage]] = {
    "teaser_sent": TEASER_MILESTONE,
    "interested": INTERESTED_MILESTONE,
    "nda_executed": NDA_MILESTONE,
    "ioi_received": IOI_MILESTONE,
    "loi_received": LOI_MILESTONE,
}


# ─── Report Models ──────────────────────────────────────────────────


class ConversionRates(BaseModel):
    """Step-to-step conversion, in percent (0.0 when nobody reached the earlier step)."""
    teaser_to_interested: float = 0.0
    interested_to_nda: float = 0.0
    nda_to_ioi: float = 0.0
    ioi_to_loi: float = 0.0
    loi_to_close: float = 0.0
    overall_close: float = 0.0


class MilestoneCounts(BaseModel):
    teaser_sent: int = 0
    interested: int = 0
    nda_executed: int = 0
    ioi_received: int = 0
    loi_received: int = 0
    closed: int = 0


class TimelineAverages(BaseModel):
    """Mean whole days from buyer creation to each milestone; None means no data."""
    avg_days_to_nda: Optional[int] = None
    avg_days_to_ioi: Optional[int] = None
    avg_days_to_loi: Optional[int] = None
    avg_days_to_close: Optional[int] = None


class OfferValues(BaseModel):
    total_ioi_value: float = 0.0
    avg_ioi_value: float = 0.0
    highest_ioi: float = 0.0
    ioi_count: int = 0
    total_loi_value: float = 0.0
    avg_loi_value: float = 0.0
    highest_loi: float = 0.0
    loi_count: int = 0


class FunnelReport(BaseModel):
    total_buyers: int
    active_buyers: int
    terminated_buyers: int
    closed_deals: int
    by_stage: dict[DealStage, int]
    by_stage_group: dict[StageGroup, int]
    by_type: dict[BuyerType, int]
    by_tier: dict[BuyerTier, int]
    milestone_counts: MilestoneCounts
    conversion_rates: ConversionRates
    timeline: TimelineAverages
    offer_values: OfferValues


# ─── Helpers ────────────────────────────────────────────────────────


def conversion_rate(reached: int, base: int) -> float:
    """
    Percentage of `base` that went on to `reached`.

    Unrounded; format_rate() handles display precision.

    >>> conversion_rate(3, 4)
    75.0
    >>> conversion_rate(0, 0)
    0.0
    """
    if base <= 0:
        return 0.0
    return reached / base * 100


def whole_days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed from `start` to `end`, partial days dropped."""
    return math.floor((end - start).total_seconds() / _SECONDS_PER_DAY)


def average_days_to(buyers: list[Buyer], milestone_field: str) -> Optional[int]:
    """
    Average whole days from creation to `milestone_field`, rounded to
    the nearest day (halves round up).

    Only buyers with the milestone populated are considered. Returns
    None when no buyer has reached it, so "no data" is distinguishable
    from "reached on day zero".
    """
    spans = [
        whole_days_between(b.created_at, getattr(b, milestone_field))
        for b in buyers
        if getattr(b, milestone_field) is not None
    ]
    if not spans:
        return None
    return math.floor(sum(spans) / len(spans) + 0.5)


def _offer_stats(amounts: list[float]) -> tuple[float, float, float]:
    """(total, average, highest) over non-null amounts; zeros when empty."""
    if not amounts:
        return 0.0, 0.0, 0.0
    total = sum(amounts)
    return total, total / len(amounts), max(amounts)


# ─── Engine ─────────────────────────────────────────────────────────


def compute_funnel_metrics(
    buyers: Iterable[Buyer],
    *,
    company_id: Optional[str] = None,
) -> FunnelReport:
    """
    Compute the full funnel report for one company's buyers.

    Args:
        buyers: Every buyer for the company, each with its ordered
                stage history. Terminal buyers must be included.
        company_id: Tags the log lines emitted while computing.

    Returns:
        FunnelReport with population counts, per-dimension breakdowns,
        ever-reached milestone counts, conversion rates, timeline
        averages, and IOI/LOI value statistics.
    """
    with company_context(company_id):
        return _build_report(list(buyers))


def _build_report(buyers: list[Buyer]) -> FunnelReport:
    by_stage = {stage: 0 for stage in DealStage}
    by_stage_group = {group: 0 for group in StageGroup}
    by_type = {buyer_type: 0 for buyer_type in BuyerType}
    by_tier = {tier: 0 for tier in BuyerTier}
    status_counts = {status: 0 for status in StageStatus}
    reached = {name: 0 for name in MILESTONES}

    for buyer in buyers:
        stage = buyer.current_stage
        by_stage[stage] += 1
        by_stage_group[group_of(stage)] += 1
        by_type[buyer.buyer_type] += 1
        by_tier[buyer.tier] += 1
        status_counts[classify_stage(stage)] += 1

        if not buyer.history_is_consistent():
            logger.warning(
                "buyer_history_inconsistent",
                extra={
                    "buyer_id": buyer.id,
                    "to_stage": buyer.stage_history[-1].to_stage.value,
                    "current_stage": stage.value,
                },
            )

        visited = buyer.visited_stages()
        for name, milestone_stages in MILESTONES.items():
            if visited & milestone_stages:
                reached[name] += 1

    total = len(buyers)
    closed = status_counts[StageStatus.COMPLETED]

    milestone_counts = MilestoneCounts(**reached, closed=closed)

    conversion_rates = ConversionRates(
        teaser_to_interested=conversion_rate(
            milestone_counts.interested, milestone_counts.teaser_sent
        ),
        interested_to_nda=conversion_rate(
            milestone_counts.nda_executed, milestone_counts.interested
        ),
        nda_to_ioi=conversion_rate(
            milestone_counts.ioi_received, milestone_counts.nda_executed
        ),
        ioi_to_loi=conversion_rate(
            milestone_counts.loi_received, milestone_counts.ioi_received
        ),
        loi_to_close=conversion_rate(closed, milestone_counts.loi_received),
        overall_close=conversion_rate(closed, total),
    )

    timeline = TimelineAverages(
        avg_days_to_nda=average_days_to(buyers, "nda_executed_at"),
        avg_days_to_ioi=average_days_to(buyers, "ioi_received_at"),
        avg_days_to_loi=average_days_to(buyers, "loi_received_at"),
        avg_days_to_close=average_days_to(buyers, "closed_at"),
    )

    ioi_amounts = [b.ioi_amount for b in buyers if b.ioi_amount is not None]
    loi_amounts = [b.loi_amount for b in buyers if b.loi_amount is not None]
    total_ioi, avg_ioi, highest_ioi = _offer_stats(ioi_amounts)
    total_loi, avg_loi, highest_loi = _offer_stats(loi_amounts)

    offer_values = OfferValues(
        total_ioi_value=total_ioi,
        avg_ioi_value=avg_ioi,
        highest_ioi=highest_ioi,
        ioi_count=len(ioi_amounts),
        total_loi_value=total_loi,
        avg_loi_value=avg_loi,
        highest_loi=highest_loi,
        loi_count=len(loi_amounts),
    )

    report = FunnelReport(
        total_buyers=total,
        active_buyers=status_counts[StageStatus.ACTIVE],
        terminated_buyers=status_counts[StageStatus.TERMINATED],
        closed_deals=closed,
        by_stage=by_stage,
        by_stage_group=by_stage_group,
        by_type=by_type,
        by_tier=by_tier,
        milestone_counts=milestone_counts,
        conversion_rates=conversion_rates,
        timeline=timeline,
        offer_values=offer_values,
    )

    logger.debug(
        "funnel_metrics_computed",
        extra={
            "buyer_count": total,
            "active_buyers": report.active_buyers,
            "closed_deals": closed,
        },
    )
    return report
