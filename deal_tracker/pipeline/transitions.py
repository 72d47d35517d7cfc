"""
Stage transitions for a single buyer.

apply_transition() is the pure core of a stage change: it checks the
move against the transition table, stamps milestone dates, and returns
the updated buyer together with the history entry to append. The
caller persists both; nothing is produced for an illegal move.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel

from deal_tracker.exceptions import InvalidStageTransitionError
from deal_tracker.pipeline.formatting import STAGE_LABELS
from deal_tracker.pipeline.models import Buyer, StageHistoryEntry
from deal_tracker.pipeline.stages import (
    TERMINATED_STAGES,
    DealStage,
    coerce_stage,
    is_legal_transition,
)

logger = logging.getLogger(__name__)

# Stage reached -> milestone timestamp field stamped on arrival
MILESTONE_FIELDS: dict[DealStage, str] = {
    DealStage.TEASER_SENT: "teaser_sent_at",
    DealStage.NDA_EXECUTED: "nda_executed_at",
    DealStage.CIM_ACCESS: "cim_access_at",
    DealStage.IOI_RECEIVED: "ioi_received_at",
    DealStage.LOI_RECEIVED: "loi_received_at",
    DealStage.CLOSED: "closed_at",
}


class TransitionResult(BaseModel):
    buyer: Buyer
    entry: StageHistoryEntry
    from_stage: DealStage
    to_stage: DealStage


def apply_transition(
    buyer: Buyer,
    to_stage: DealStage | str,
    *,
    at: Optional[datetime] = None,
    note: Optional[str] = None,
    ioi_amount: Optional[float] = None,
    loi_amount: Optional[float] = None,
    skip_validation: bool = False,
) -> TransitionResult:
    """
    Move `buyer` to `to_stage`.

    Args:
        buyer: Current buyer record; not modified.
        to_stage: Destination stage.
        at: When the change happened (default: now, UTC).
        note: Free-text note kept on the history entry. For exits it
              also becomes the exit reason.
        ioi_amount: Recorded when moving to IOI_RECEIVED.
        loi_amount: Recorded when moving to LOI_RECEIVED.
        skip_validation: Admin override that bypasses the transition table.

    Returns:
        TransitionResult with the updated buyer and the new history entry.

    Raises:
        InvalidStageTransitionError: If the move is not in the table, or
            `at` is earlier than the latest history entry.
        UnknownStageError: If `to_stage` is not a DealStage.
    """
    target = coerce_stage(to_stage)
    source = buyer.current_stage

    if not skip_validation and not is_legal_transition(source, target):
        raise InvalidStageTransitionError(
            f"Invalid stage transition from {STAGE_LABELS[source]} "
            f"to {STAGE_LABELS[target]}",
            from_stage=source,
            to_stage=target,
            buyer_id=buyer.id,
        )

    at = at or datetime.now(timezone.utc)
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)

    # The new entry must sort last or current_stage and history disagree
    if buyer.stage_history and at < buyer.stage_history[-1].changed_at:
        raise InvalidStageTransitionError(
            f"Stage change at {at.isoformat()} predates the last recorded "
            f"change at {buyer.stage_history[-1].changed_at.isoformat()}",
            from_stage=source,
            to_stage=target,
            buyer_id=buyer.id,
            details={"last_changed_at": buyer.stage_history[-1].changed_at.isoformat()},
        )

    entry = StageHistoryEntry(
        to_stage=target,
        changed_at=at,
        from_stage=source,
        note=note,
    )

    updates: dict[str, Any] = {
        "current_stage": target,
        "stage_updated_at": at,
        "stage_history": [*buyer.stage_history, entry],
    }
    if target in MILESTONE_FIELDS:
        updates[MILESTONE_FIELDS[target]] = at
    if target == DealStage.IOI_RECEIVED and ioi_amount is not None:
        updates["ioi_amount"] = ioi_amount
    if target == DealStage.LOI_RECEIVED and loi_amount is not None:
        updates["loi_amount"] = loi_amount
    if target in TERMINATED_STAGES:
        updates["exited_at"] = at
        updates["exit_reason"] = note or f"Moved to {STAGE_LABELS[target]}"

    # Re-validate so history ordering and timestamps stay normalized
    updated = Buyer.model_validate({**buyer.model_dump(), **updates})

    logger.info(
        "buyer_stage_changed",
        extra={
            "buyer_id": buyer.id,
            "from_stage": source.value,
            "to_stage": target.value,
        },
    )
    return TransitionResult(
        buyer=updated,
        entry=entry,
        from_stage=source,
        to_stage=target,
    )
