"""
Live pipeline summary for the deal dashboard.

A cheaper view than the funnel report, built from the reduced
BuyerSnapshot projection: per-phase counts, buyers with an IOI or LOI
deadline coming up, and active buyers whose stage has not moved in a
while. The engine only flags buyers; acting on them is the caller's job.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel

from deal_tracker.config.schema import AnalyticsSettings
from deal_tracker.observability.logging_config import company_context
from deal_tracker.pipeline.models import Buyer, BuyerSnapshot
from deal_tracker.pipeline.stages import DealStage, StageGroup, group_of, is_active_stage

logger = logging.getLogger(__name__)


class DeadlineType(str, Enum):
    IOI = "IOI"
    LOI = "LOI"


class UpcomingDeadline(BaseModel):
    id: str
    name: str
    deadline: datetime
    type: DeadlineType


class StaleBuyer(BaseModel):
    id: str
    name: str
    current_stage: DealStage
    days_since_update: int


class PipelineSummary(BaseModel):
    pipeline: dict[StageGroup, int]
    upcoming_deadlines: list[UpcomingDeadline]
    stale_buyers: list[StaleBuyer]
    total_active: int


def _in_window(
    deadline: Optional[datetime], start: datetime, end: datetime
) -> bool:
    return deadline is not None and start <= deadline <= end


def find_upcoming_deadline(
    buyer: BuyerSnapshot, now: datetime, window: timedelta
) -> Optional[UpcomingDeadline]:
    """
    Return the deadline that puts `buyer` on the upcoming list, if any.

    A deadline is upcoming when now <= deadline <= now + window. Past
    deadlines never qualify. When both qualify, IOI wins.
    """
    horizon = now + window
    for deadline_type, deadline in (
        (DeadlineType.IOI, buyer.ioi_deadline),
        (DeadlineType.LOI, buyer.loi_deadline),
    ):
        if _in_window(deadline, now, horizon):
            return UpcomingDeadline(
                id=buyer.id,
                name=buyer.name,
                deadline=deadline,
                type=deadline_type,
            )
    return None


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days from `moment` to `now` (floor, so 13.9 days is 13)."""
    return math.floor((now - moment).total_seconds() / (24 * 60 * 60))


def compute_stage_summary(
    buyers: Iterable[Union[BuyerSnapshot, Buyer]],
    now: Optional[datetime] = None,
    settings: Optional[AnalyticsSettings] = None,
    *,
    company_id: Optional[str] = None,
) -> PipelineSummary:
    """
    Build the dashboard pipeline summary.

    Args:
        buyers: Buyer snapshots (full Buyer records are projected).
        now: Reference time; defaults to the current UTC time.
        settings: Deadline window and staleness thresholds.
        company_id: Tags the log lines emitted while summarising.

    Returns:
        PipelineSummary with per-group counts, upcoming deadlines,
        stale active buyers, and the total active count.
    """
    with company_context(company_id):
        return _summarise(buyers, now, settings or AnalyticsSettings())


def _summarise(
    buyers: Iterable[Union[BuyerSnapshot, Buyer]],
    now: Optional[datetime],
    settings: AnalyticsSettings,
) -> PipelineSummary:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    window = timedelta(days=settings.deadline_window_days)
    # Updated on or before this instant counts as stale
    stale_cutoff = now - timedelta(days=settings.stale_after_days)

    pipeline = {group: 0 for group in StageGroup}
    upcoming: list[UpcomingDeadline] = []
    stale: list[StaleBuyer] = []
    total_active = 0

    for item in buyers:
        buyer = item.to_snapshot() if isinstance(item, Buyer) else item
        pipeline[group_of(buyer.current_stage)] += 1

        flagged = find_upcoming_deadline(buyer, now, window)
        if flagged is not None:
            upcoming.append(flagged)

        if not is_active_stage(buyer.current_stage):
            continue
        total_active += 1
        if buyer.stage_updated_at <= stale_cutoff:
            stale.append(StaleBuyer(
                id=buyer.id,
                name=buyer.name,
                current_stage=buyer.current_stage,
                days_since_update=days_since(buyer.stage_updated_at, now),
            ))

    logger.debug(
        "pipeline_summary_computed",
        extra={
            "total_active": total_active,
            "deadline_count": len(upcoming),
            "stale_count": len(stale),
        },
    )

    return PipelineSummary(
        pipeline=pipeline,
        upcoming_deadlines=upcoming,
        stale_buyers=stale,
        total_active=total_active,
    )
