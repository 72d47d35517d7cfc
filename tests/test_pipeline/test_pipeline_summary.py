"""
Tests for the live pipeline summary.

Covers:
    - Per-group counts (all groups present)
    - Upcoming deadline window boundaries and IOI precedence
    - Stale buyer detection boundaries and floor-day reporting
    - total_active consistency with the funnel report
    - Configurable thresholds
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from deal_tracker.config.schema import AnalyticsSettings
from deal_tracker.pipeline.funnel import compute_funnel_metrics
from deal_tracker.pipeline.models import Buyer, BuyerSnapshot
from deal_tracker.pipeline.stages import DealStage, StageGroup
from deal_tracker.pipeline.summary import (
    DeadlineType,
    PipelineSummary,
    compute_stage_summary,
    days_since,
)

NOW = datetime(2026, 10, 16, 15, 0, tzinfo=timezone.utc)


def _snap(
    buyer_id: str = "b-1",
    stage: DealStage = DealStage.NDA_SENT,
    **overrides: Any,
) -> BuyerSnapshot:
    data: dict[str, Any] = {
        "id": buyer_id,
        "name": f"Buyer {buyer_id}",
        "current_stage": stage,
        "stage_updated_at": NOW - timedelta(days=1),
    }
    data.update(overrides)
    return BuyerSnapshot(**data)


class TestPhaseCounts:

    def test_all_groups_present_when_empty(self):
        summary = compute_stage_summary([], now=NOW)
        assert isinstance(summary, PipelineSummary)
        assert summary.pipeline == {group: 0 for group in StageGroup}
        assert summary.upcoming_deadlines == []
        assert summary.stale_buyers == []
        assert summary.total_active == 0

    def test_counts_by_group(self):
        buyers = [
            _snap("a", DealStage.IDENTIFIED),
            _snap("b", DealStage.DECLINED),
            _snap("c", DealStage.LEVEL_2_ACCESS),
            _snap("d", DealStage.CLOSED),
            _snap("e", DealStage.TERMINATED),
        ]
        pipeline = compute_stage_summary(buyers, now=NOW).pipeline
        assert pipeline[StageGroup.IDENTIFICATION] == 2
        assert pipeline[StageGroup.DILIGENCE] == 1
        assert pipeline[StageGroup.CLOSE] == 1
        assert pipeline[StageGroup.EXIT] == 1
        assert pipeline[StageGroup.MANAGEMENT] == 0


class TestUpcomingDeadlines:

    def test_deadline_exactly_now_included(self):
        summary = compute_stage_summary([_snap(ioi_deadline=NOW)], now=NOW)
        assert [d.id for d in summary.upcoming_deadlines] == ["b-1"]

    def test_deadline_at_window_edge_included(self):
        summary = compute_stage_summary(
            [_snap(loi_deadline=NOW + timedelta(days=7))], now=NOW
        )
        assert len(summary.upcoming_deadlines) == 1
        assert summary.upcoming_deadlines[0].type == DeadlineType.LOI

    def test_deadline_eight_days_out_excluded(self):
        summary = compute_stage_summary(
            [_snap(ioi_deadline=NOW + timedelta(days=8))], now=NOW
        )
        assert summary.upcoming_deadlines == []

    def test_past_deadline_excluded(self):
        summary = compute_stage_summary(
            [_snap(ioi_deadline=NOW - timedelta(days=1))], now=NOW
        )
        assert summary.upcoming_deadlines == []

    def test_ioi_takes_precedence(self):
        ioi = NOW + timedelta(days=5)
        summary = compute_stage_summary(
            [_snap(ioi_deadline=ioi, loi_deadline=NOW + timedelta(days=2))], now=NOW
        )
        flagged = summary.upcoming_deadlines[0]
        assert flagged.type == DeadlineType.IOI
        assert flagged.deadline == ioi

    def test_past_ioi_with_upcoming_loi_reports_loi(self):
        loi = NOW + timedelta(days=3)
        summary = compute_stage_summary(
            [_snap(ioi_deadline=NOW - timedelta(days=2), loi_deadline=loi)], now=NOW
        )
        flagged = summary.upcoming_deadlines[0]
        assert flagged.type == DeadlineType.LOI
        assert flagged.deadline == loi

    def test_terminal_buyers_still_flagged(self):
        summary = compute_stage_summary(
            [_snap(stage=DealStage.WITHDRAWN, ioi_deadline=NOW + timedelta(days=1))],
            now=NOW,
        )
        assert len(summary.upcoming_deadlines) == 1

    def test_custom_window(self):
        settings = AnalyticsSettings(deadline_window_days=10)
        summary = compute_stage_summary(
            [_snap(ioi_deadline=NOW + timedelta(days=8))], now=NOW, settings=settings
        )
        assert len(summary.upcoming_deadlines) == 1


class TestStaleBuyers:

    def test_exactly_fourteen_days_included(self):
        summary = compute_stage_summary(
            [_snap(stage_updated_at=NOW - timedelta(days=14))], now=NOW
        )
        assert len(summary.stale_buyers) == 1
        stale = summary.stale_buyers[0]
        assert stale.days_since_update == 14
        assert stale.current_stage == DealStage.NDA_SENT

    def test_thirteen_days_excluded(self):
        summary = compute_stage_summary(
            [_snap(stage_updated_at=NOW - timedelta(days=13))], now=NOW
        )
        assert summary.stale_buyers == []

    def test_days_since_update_floors(self):
        summary = compute_stage_summary(
            [_snap(stage_updated_at=NOW - timedelta(days=20, hours=22))], now=NOW
        )
        assert summary.stale_buyers[0].days_since_update == 20

    def test_terminal_buyers_never_stale(self):
        buyers = [
            _snap("a", DealStage.CLOSED, stage_updated_at=NOW - timedelta(days=90)),
            _snap("b", DealStage.PASSED, stage_updated_at=NOW - timedelta(days=90)),
        ]
        summary = compute_stage_summary(buyers, now=NOW)
        assert summary.stale_buyers == []
        assert summary.total_active == 0

    def test_custom_threshold(self):
        settings = AnalyticsSettings(stale_after_days=30)
        summary = compute_stage_summary(
            [_snap(stage_updated_at=NOW - timedelta(days=20))], now=NOW, settings=settings
        )
        assert summary.stale_buyers == []


class TestDaysSince:

    def test_floor(self):
        assert days_since(NOW - timedelta(days=13, hours=21, minutes=36), NOW) == 13

    def test_whole_days(self):
        assert days_since(NOW - timedelta(days=14), NOW) == 14


class TestTotalActive:

    def test_matches_funnel_report(self):
        created = NOW - timedelta(days=30)
        full = [
            Buyer(id=str(i), name=f"B{i}", current_stage=stage, created_at=created)
            for i, stage in enumerate(DealStage)
        ]
        summary = compute_stage_summary(full, now=NOW)
        report = compute_funnel_metrics(full)
        assert summary.total_active == report.active_buyers == 24

    def test_full_buyers_are_projected(self):
        buyer = Buyer(
            id="x",
            name="Projected",
            current_stage=DealStage.IOI_REQUESTED,
            created_at=NOW - timedelta(days=40),
            ioi_deadline=NOW + timedelta(days=2),
        )
        summary = compute_stage_summary([buyer], now=NOW)
        assert summary.upcoming_deadlines[0].id == "x"
        # No history and no explicit update: stale since creation
        assert summary.stale_buyers[0].days_since_update == 40


class TestNowHandling:

    def test_naive_now_treated_as_utc(self):
        naive_now = NOW.replace(tzinfo=None)
        summary = compute_stage_summary([_snap(ioi_deadline=NOW)], now=naive_now)
        assert len(summary.upcoming_deadlines) == 1

    def test_defaults_to_current_time(self):
        far_future = datetime.now(timezone.utc) + timedelta(days=365)
        summary = compute_stage_summary([_snap(ioi_deadline=far_future)])
        assert summary.upcoming_deadlines == []

    @pytest.mark.parametrize("stage", [DealStage.SELLER_REVIEWING, DealStage.APPROVED])
    def test_administrative_stages_are_active(self, stage):
        summary = compute_stage_summary([_snap(stage=stage)], now=NOW)
        assert summary.total_active == 1
