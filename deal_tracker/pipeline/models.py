"""
Buyer records consumed by the pipeline analytics engines.

These Pydantic models are the boundary between the persistence layer
and the engines: a stage, buyer type, or tier outside its enumeration
is rejected here with a ValidationError and never reaches the math.

Usage:
    from deal_tracker.pipeline.models import Buyer, StageHistoryEntry

    buyer = Buyer(
        id="b-1",
        name="Acme Holdings",
        buyer_type="STRATEGIC",
        tier="A_TIER",
        current_stage="NDA_EXECUTED",
        created_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        stage_history=[{"to_stage": "NDA_EXECUTED", "changed_at": ...}],
    )
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from deal_tracker.pipeline.stages import INITIAL_STAGE, DealStage


# ── Enums ────────────────────────────────────────────────────


class BuyerType(str, Enum):
    STRATEGIC = "STRATEGIC"
    FINANCIAL = "FINANCIAL"
    INDIVIDUAL = "INDIVIDUAL"
    MANAGEMENT = "MANAGEMENT"
    ESOP = "ESOP"
    OTHER = "OTHER"


class BuyerTier(str, Enum):
    """Seller-assigned priority, A (best fit) through D."""
    A_TIER = "A_TIER"
    B_TIER = "B_TIER"
    C_TIER = "C_TIER"
    D_TIER = "D_TIER"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so comparisons never mix the two."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Stage History ────────────────────────────────────────────


class StageHistoryEntry(BaseModel):
    """One recorded stage change. Append-only; never edited."""

    model_config = ConfigDict(frozen=True)

    to_stage: DealStage
    changed_at: datetime
    from_stage: Optional[DealStage] = None
    note: Optional[str] = None

    @field_validator("changed_at")
    @classmethod
    def normalize_changed_at(cls, v: datetime) -> datetime:
        return _as_utc(v)


# ── Buyers ───────────────────────────────────────────────────


class BuyerSnapshot(BaseModel):
    """Reduced buyer projection used by the live pipeline summary."""

    id: str
    name: str
    current_stage: DealStage
    buyer_type: BuyerType = BuyerType.OTHER
    tier: BuyerTier = BuyerTier.B_TIER
    ioi_amount: Optional[float] = None
    loi_amount: Optional[float] = None
    ioi_deadline: Optional[datetime] = None
    loi_deadline: Optional[datetime] = None
    stage_updated_at: datetime

    @field_validator("ioi_deadline", "loi_deadline", "stage_updated_at")
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class Buyer(BaseModel):
    """
    A prospective acquirer in one company's sale process.

    Milestone timestamps are populated as the buyer reaches them and
    are kept after the buyer moves on or exits. `stage_history` is
    sorted by `changed_at` ascending on construction.
    """

    id: str
    name: str
    buyer_type: BuyerType = BuyerType.OTHER
    tier: BuyerTier = BuyerTier.B_TIER
    current_stage: DealStage = INITIAL_STAGE
    created_at: datetime
    stage_updated_at: Optional[datetime] = None

    teaser_sent_at: Optional[datetime] = None
    nda_executed_at: Optional[datetime] = None
    cim_access_at: Optional[datetime] = None
    ioi_received_at: Optional[datetime] = None
    loi_received_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    exited_at: Optional[datetime] = None
    exit_reason: Optional[str] = None

    ioi_amount: Optional[float] = None
    loi_amount: Optional[float] = None
    ioi_deadline: Optional[datetime] = None
    loi_deadline: Optional[datetime] = None

    stage_history: list[StageHistoryEntry] = Field(default_factory=list)

    @field_validator(
        "created_at",
        "stage_updated_at",
        "teaser_sent_at",
        "nda_executed_at",
        "cim_access_at",
        "ioi_received_at",
        "loi_received_at",
        "closed_at",
        "exited_at",
        "ioi_deadline",
        "loi_deadline",
    )
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @model_validator(mode="after")
    def order_history(self) -> "Buyer":
        # sorted() is stable, so same-instant entries keep their input order
        ordered = sorted(self.stage_history, key=lambda h: h.changed_at)
        if ordered != self.stage_history:
            self.stage_history = ordered
        if self.stage_updated_at is None:
            self.stage_updated_at = (
                ordered[-1].changed_at if ordered else self.created_at
            )
        return self

    def visited_stages(self) -> frozenset[DealStage]:
        """Every stage this buyer has ever been in, including the current one."""
        return frozenset(h.to_stage for h in self.stage_history) | {
            self.current_stage
        }

    def history_is_consistent(self) -> bool:
        """True if the current stage matches the latest recorded transition."""
        if not self.stage_history:
            return True
        return self.stage_history[-1].to_stage == self.current_stage

    def to_snapshot(self) -> BuyerSnapshot:
        return BuyerSnapshot(
            id=self.id,
            name=self.name,
            current_stage=self.current_stage,
            buyer_type=self.buyer_type,
            tier=self.tier,
            ioi_amount=self.ioi_amount,
            loi_amount=self.loi_amount,
            ioi_deadline=self.ioi_deadline,
            loi_deadline=self.loi_deadline,
            stage_updated_at=self.stage_updated_at,
        )
