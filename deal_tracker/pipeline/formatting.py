"""
Display helpers for deal pipeline data.

Pure utility module with no UI framework imports, so labels and
formatting can be unit-tested without running a dashboard.
"""

from __future__ import annotations

from typing import Optional

from deal_tracker.pipeline.models import BuyerTier, BuyerType
from deal_tracker.pipeline.stages import DealStage, StageGroup, coerce_stage, group_of


# ─── Labels ──────────────────────────────────────────────────────────

STAGE_LABELS: dict[DealStage, str] = {
    DealStage.IDENTIFIED: "Identified",
    DealStage.SELLER_REVIEWING: "Seller Reviewing",
    DealStage.APPROVED: "Approved",
    DealStage.DECLINED: "Declined",
    DealStage.TEASER_SENT: "Teaser Sent",
    DealStage.INTERESTED: "Interested",
    DealStage.PASSED: "Passed",
    DealStage.NDA_SENT: "NDA Sent",
    DealStage.NDA_NEGOTIATING: "NDA Negotiating",
    DealStage.NDA_EXECUTED: "NDA Executed",
    DealStage.CIM_ACCESS: "CIM Access",
    DealStage.LEVEL_2_ACCESS: "Level 2 Access",
    DealStage.LEVEL_3_ACCESS: "Level 3 Access",
    DealStage.MANAGEMENT_MEETING_SCHEDULED: "Mgmt Meeting Scheduled",
    DealStage.MANAGEMENT_MEETING_COMPLETED: "Mgmt Meeting Completed",
    DealStage.IOI_REQUESTED: "IOI Requested",
    DealStage.IOI_RECEIVED: "IOI Received",
    DealStage.IOI_ACCEPTED: "IOI Accepted",
    DealStage.IOI_DECLINED: "IOI Declined",
    DealStage.LOI_REQUESTED: "LOI Requested",
    DealStage.LOI_RECEIVED: "LOI Received",
    DealStage.LOI_SELECTED: "LOI Selected",
    DealStage.LOI_BACKUP: "LOI Backup",
    DealStage.DUE_DILIGENCE: "Due Diligence",
    DealStage.PA_DRAFTING: "PA Drafting",
    DealStage.PA_NEGOTIATING: "PA Negotiating",
    DealStage.CLOSING: "Closing",
    DealStage.CLOSED: "Closed",
    DealStage.WITHDRAWN: "Withdrawn",
    DealStage.TERMINATED: "Terminated",
}

STAGE_GROUP_LABELS: dict[StageGroup, str] = {
    StageGroup.IDENTIFICATION: "Identification",
    StageGroup.MARKETING: "Marketing",
    StageGroup.NDA: "NDA",
    StageGroup.DILIGENCE: "Diligence",
    StageGroup.MANAGEMENT: "Management",
    StageGroup.IOI: "IOI",
    StageGroup.LOI: "LOI",
    StageGroup.CLOSE: "Close",
    StageGroup.EXIT: "Exit",
}

BUYER_TYPE_LABELS: dict[BuyerType, str] = {
    BuyerType.STRATEGIC: "Strategic",
    BuyerType.FINANCIAL: "Financial",
    BuyerType.INDIVIDUAL: "Individual",
    BuyerType.MANAGEMENT: "Management",
    BuyerType.ESOP: "ESOP",
    BuyerType.OTHER: "Other",
}

BUYER_TIER_LABELS: dict[BuyerTier, str] = {
    BuyerTier.A_TIER: "A Tier",
    BuyerTier.B_TIER: "B Tier",
    BuyerTier.C_TIER: "C Tier",
    BuyerTier.D_TIER: "D Tier",
}


# ─── Colors ──────────────────────────────────────────────────────────

# One color family per phase; exits and declines render muted
GROUP_COLORS: dict[StageGroup, str] = {
    StageGroup.IDENTIFICATION: "#64748b",
    StageGroup.MARKETING: "#3b82f6",
    StageGroup.NDA: "#6366f1",
    StageGroup.DILIGENCE: "#a855f7",
    StageGroup.MANAGEMENT: "#8b5cf6",
    StageGroup.IOI: "#06b6d4",
    StageGroup.LOI: "#14b8a6",
    StageGroup.CLOSE: "#10b981",
    StageGroup.EXIT: "#6b7280",
}

_STAGE_COLOR_OVERRIDES: dict[DealStage, str] = {
    DealStage.SELLER_REVIEWING: "#f59e0b",
    DealStage.APPROVED: "#22c55e",
    DealStage.DECLINED: "#ef4444",
    DealStage.PASSED: "#9ca3af",
    DealStage.IOI_DECLINED: "#9ca3af",
    DealStage.CLOSED: "#16a34a",
    DealStage.TERMINATED: "#dc2626",
}


def stage_color(stage: DealStage | str) -> str:
    stage = coerce_stage(stage)
    return _STAGE_COLOR_OVERRIDES.get(stage, GROUP_COLORS[group_of(stage)])


def format_stage(stage: DealStage | str) -> tuple[str, str]:
    """
    Return (label, color) for a pipeline stage.

    >>> format_stage(DealStage.NDA_EXECUTED)
    ('NDA Executed', '#6366f1')
    """
    stage = coerce_stage(stage)
    return STAGE_LABELS[stage], stage_color(stage)


# ─── Values ──────────────────────────────────────────────────────────


def format_offer_value(amount: Optional[float]) -> str:
    """
    Format an IOI/LOI amount in whole dollars.

    >>> format_offer_value(1500000)
    '$1,500,000'
    >>> format_offer_value(None)
    '—'
    """
    if amount is None:
        return "—"
    if amount < 0:
        return f"-${abs(amount):,.0f}"
    return f"${amount:,.0f}"


def format_rate(percent: float) -> str:
    """
    Format a conversion rate already expressed in percent.

    >>> format_rate(42.857)
    '42.9%'
    """
    return f"{percent:.1f}%"
