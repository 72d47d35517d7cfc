"""
Deal pipeline: stage graph, buyer models, and analytics engines.

Usage:
    from deal_tracker.pipeline import compute_funnel_metrics, compute_stage_summary

    report = compute_funnel_metrics(buyers)
    summary = compute_stage_summary(snapshots)
"""

from deal_tracker.pipeline.funnel import FunnelReport, compute_funnel_metrics
from deal_tracker.pipeline.models import Buyer, BuyerSnapshot, BuyerTier, BuyerType, StageHistoryEntry
from deal_tracker.pipeline.stages import (
    DealStage,
    StageGroup,
    StageStatus,
    classify_stage,
    get_valid_next_stages,
    group_of,
    is_active_stage,
    is_completed_stage,
    is_legal_transition,
    is_terminal_stage,
    is_terminated_stage,
    stages_of,
)
from deal_tracker.pipeline.summary import PipelineSummary, compute_stage_summary
from deal_tracker.pipeline.transitions import TransitionResult, apply_transition

__all__ = [
    "Buyer",
    "BuyerSnapshot",
    "BuyerTier",
    "BuyerType",
    "DealStage",
    "FunnelReport",
    "PipelineSummary",
    "StageGroup",
    "StageHistoryEntry",
    "StageStatus",
    "TransitionResult",
    "apply_transition",
    "classify_stage",
    "compute_funnel_metrics",
    "compute_stage_summary",
    "get_valid_next_stages",
    "group_of",
    "is_active_stage",
    "is_completed_stage",
    "is_legal_transition",
    "is_terminal_stage",
    "is_terminated_stage",
    "stages_of",
]
