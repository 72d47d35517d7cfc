"""
Deal pipeline stages, stage groups, and the transition graph.

Stages are a closed enumeration. Every stage belongs to exactly one
coarse StageGroup and has an entry (possibly empty) in the transition
table. Both tables are checked by validate_stage_graph() when this
module is imported, so a broken table fails at startup rather than
silently skewing dashboard counts.

Usage:
    from deal_tracker.pipeline.stages import DealStage, group_of, is_legal_transition

    group_of(DealStage.NDA_EXECUTED)          # StageGroup.NDA
    is_legal_transition(DealStage.CLOSING, DealStage.CLOSED)  # True
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from deal_tracker.exceptions import StageGraphError, UnknownStageError


# ─── Enums ────────────────────────────────────────────────────────────


class DealStage(str, Enum):
    IDENTIFIED = "IDENTIFIED"
    SELLER_REVIEWING = "SELLER_REVIEWING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    TEASER_SENT = "TEASER_SENT"
    INTERESTED = "INTERESTED"
    PASSED = "PASSED"
    NDA_SENT = "NDA_SENT"
    NDA_NEGOTIATING = "NDA_NEGOTIATING"
    NDA_EXECUTED = "NDA_EXECUTED"
    CIM_ACCESS = "CIM_ACCESS"
    LEVEL_2_ACCESS = "LEVEL_2_ACCESS"
    LEVEL_3_ACCESS = "LEVEL_3_ACCESS"
    MANAGEMENT_MEETING_SCHEDULED = "MANAGEMENT_MEETING_SCHEDULED"
    MANAGEMENT_MEETING_COMPLETED = "MANAGEMENT_MEETING_COMPLETED"
    IOI_REQUESTED = "IOI_REQUESTED"
    IOI_RECEIVED = "IOI_RECEIVED"
    IOI_ACCEPTED = "IOI_ACCEPTED"
    IOI_DECLINED = "IOI_DECLINED"
    LOI_REQUESTED = "LOI_REQUESTED"
    LOI_RECEIVED = "LOI_RECEIVED"
    LOI_SELECTED = "LOI_SELECTED"
    LOI_BACKUP = "LOI_BACKUP"
    DUE_DILIGENCE = "DUE_DILIGENCE"
    PA_DRAFTING = "PA_DRAFTING"
    PA_NEGOTIATING = "PA_NEGOTIATING"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
    WITHDRAWN = "WITHDRAWN"
    TERMINATED = "TERMINATED"


class StageGroup(str, Enum):
    """Coarse pipeline phases used for dashboard roll-ups."""
    IDENTIFICATION = "IDENTIFICATION"
    MARKETING = "MARKETING"
    NDA = "NDA"
    DILIGENCE = "DILIGENCE"
    MANAGEMENT = "MANAGEMENT"
    IOI = "IOI"
    LOI = "LOI"
    CLOSE = "CLOSE"
    EXIT = "EXIT"


class StageStatus(str, Enum):
    """Reporting bucket for a buyer's current stage."""
    ACTIVE = "active"
    TERMINATED = "terminated"
    COMPLETED = "completed"


INITIAL_STAGE = DealStage.IDENTIFIED


# ─── Stage Groups ─────────────────────────────────────────────────────

STAGE_GROUPS: dict[StageGroup, tuple[DealStage, ...]] = {
    StageGroup.IDENTIFICATION: (
        DealStage.IDENTIFIED,
        DealStage.SELLER_REVIEWING,
        DealStage.APPROVED,
        DealStage.DECLINED,
    ),
    StageGroup.MARKETING: (
        DealStage.TEASER_SENT,
        DealStage.INTERESTED,
        DealStage.PASSED,
    ),
    StageGroup.NDA: (
        DealStage.NDA_SENT,
        DealStage.NDA_NEGOTIATING,
        DealStage.NDA_EXECUTED,
    ),
    StageGroup.DILIGENCE: (
        DealStage.CIM_ACCESS,
        DealStage.LEVEL_2_ACCESS,
        DealStage.LEVEL_3_ACCESS,
    ),
    StageGroup.MANAGEMENT: (
        DealStage.MANAGEMENT_MEETING_SCHEDULED,
        DealStage.MANAGEMENT_MEETING_COMPLETED,
    ),
    StageGroup.IOI: (
        DealStage.IOI_REQUESTED,
        DealStage.IOI_RECEIVED,
        DealStage.IOI_ACCEPTED,
        DealStage.IOI_DECLINED,
    ),
    StageGroup.LOI: (
        DealStage.LOI_REQUESTED,
        DealStage.LOI_RECEIVED,
        DealStage.LOI_SELECTED,
        DealStage.LOI_BACKUP,
    ),
    StageGroup.CLOSE: (
        DealStage.DUE_DILIGENCE,
        DealStage.PA_DRAFTING,
        DealStage.PA_NEGOTIATING,
        DealStage.CLOSING,
        DealStage.CLOSED,
    ),
    StageGroup.EXIT: (
        DealStage.WITHDRAWN,
        DealStage.TERMINATED,
    ),
}


# ─── Transition Graph ─────────────────────────────────────────────────

VALID_STAGE_TRANSITIONS: dict[DealStage, tuple[DealStage, ...]] = {
    DealStage.IDENTIFIED: (DealStage.SELLER_REVIEWING, DealStage.WITHDRAWN),
    DealStage.SELLER_REVIEWING: (DealStage.APPROVED, DealStage.DECLINED),
    DealStage.APPROVED: (DealStage.TEASER_SENT, DealStage.WITHDRAWN),
    DealStage.DECLINED: (),
    DealStage.TEASER_SENT: (
        DealStage.INTERESTED,
        DealStage.PASSED,
        DealStage.WITHDRAWN,
    ),
    DealStage.INTERESTED: (DealStage.NDA_SENT, DealStage.WITHDRAWN),
    DealStage.PASSED: (),
    DealStage.NDA_SENT: (
        DealStage.NDA_NEGOTIATING,
        DealStage.NDA_EXECUTED,
        DealStage.WITHDRAWN,
    ),
    DealStage.NDA_NEGOTIATING: (DealStage.NDA_EXECUTED, DealStage.WITHDRAWN),
    DealStage.NDA_EXECUTED: (DealStage.CIM_ACCESS, DealStage.WITHDRAWN),
    DealStage.CIM_ACCESS: (
        DealStage.LEVEL_2_ACCESS,
        DealStage.MANAGEMENT_MEETING_SCHEDULED,
        DealStage.IOI_REQUESTED,
        DealStage.WITHDRAWN,
    ),
    DealStage.LEVEL_2_ACCESS: (
        DealStage.LEVEL_3_ACCESS,
        DealStage.MANAGEMENT_MEETING_SCHEDULED,
        DealStage.IOI_REQUESTED,
        DealStage.WITHDRAWN,
    ),
    DealStage.LEVEL_3_ACCESS: (
        DealStage.MANAGEMENT_MEETING_SCHEDULED,
        DealStage.IOI_REQUESTED,
        DealStage.WITHDRAWN,
    ),
    DealStage.MANAGEMENT_MEETING_SCHEDULED: (
        DealStage.MANAGEMENT_MEETING_COMPLETED,
        DealStage.WITHDRAWN,
    ),
    DealStage.MANAGEMENT_MEETING_COMPLETED: (
        DealStage.IOI_REQUESTED,
        DealStage.WITHDRAWN,
    ),
    DealStage.IOI_REQUESTED: (DealStage.IOI_RECEIVED, DealStage.WITHDRAWN),
    DealStage.IOI_RECEIVED: (DealStage.IOI_ACCEPTED, DealStage.IOI_DECLINED),
    DealStage.IOI_ACCEPTED: (DealStage.LOI_REQUESTED, DealStage.WITHDRAWN),
    DealStage.IOI_DECLINED: (),
    DealStage.LOI_REQUESTED: (DealStage.LOI_RECEIVED, DealStage.WITHDRAWN),
    DealStage.LOI_RECEIVED: (
        DealStage.LOI_SELECTED,
        DealStage.LOI_BACKUP,
        DealStage.WITHDRAWN,
    ),
    DealStage.LOI_SELECTED: (DealStage.DUE_DILIGENCE, DealStage.WITHDRAWN),
    DealStage.LOI_BACKUP: (
        DealStage.LOI_SELECTED,
        DealStage.WITHDRAWN,
        DealStage.TERMINATED,
    ),
    DealStage.DUE_DILIGENCE: (
        DealStage.PA_DRAFTING,
        DealStage.WITHDRAWN,
        DealStage.TERMINATED,
    ),
    DealStage.PA_DRAFTING: (
        DealStage.PA_NEGOTIATING,
        DealStage.WITHDRAWN,
        DealStage.TERMINATED,
    ),
    DealStage.PA_NEGOTIATING: (
        DealStage.CLOSING,
        DealStage.WITHDRAWN,
        DealStage.TERMINATED,
    ),
    DealStage.CLOSING: (DealStage.CLOSED, DealStage.TERMINATED),
    DealStage.CLOSED: (),
    DealStage.WITHDRAWN: (),
    DealStage.TERMINATED: (),
}


# ─── Classification ───────────────────────────────────────────────────

# In-flight buyers, IDENTIFIED through CLOSING
ACTIVE_STAGES: frozenset[DealStage] = frozenset({
    DealStage.IDENTIFIED,
    DealStage.SELLER_REVIEWING,
    DealStage.APPROVED,
    DealStage.TEASER_SENT,
    DealStage.INTERESTED,
    DealStage.NDA_SENT,
    DealStage.NDA_NEGOTIATING,
    DealStage.NDA_EXECUTED,
    DealStage.CIM_ACCESS,
    DealStage.LEVEL_2_ACCESS,
    DealStage.LEVEL_3_ACCESS,
    DealStage.MANAGEMENT_MEETING_SCHEDULED,
    DealStage.MANAGEMENT_MEETING_COMPLETED,
    DealStage.IOI_REQUESTED,
    DealStage.IOI_RECEIVED,
    DealStage.IOI_ACCEPTED,
    DealStage.LOI_REQUESTED,
    DealStage.LOI_RECEIVED,
    DealStage.LOI_SELECTED,
    DealStage.LOI_BACKUP,
    DealStage.DUE_DILIGENCE,
    DealStage.PA_DRAFTING,
    DealStage.PA_NEGOTIATING,
    DealStage.CLOSING,
})

# Buyers that exited without a deal
TERMINATED_STAGES: frozenset[DealStage] = frozenset({
    DealStage.DECLINED,
    DealStage.PASSED,
    DealStage.IOI_DECLINED,
    DealStage.WITHDRAWN,
    DealStage.TERMINATED,
})

COMPLETED_STAGES: frozenset[DealStage] = frozenset({DealStage.CLOSED})

TERMINAL_STAGES: frozenset[DealStage] = TERMINATED_STAGES | COMPLETED_STAGES

# Subset shown as columns on the kanban board
PIPELINE_STAGES: tuple[DealStage, ...] = (
    DealStage.IDENTIFIED,
    DealStage.TEASER_SENT,
    DealStage.NDA_EXECUTED,
    DealStage.CIM_ACCESS,
    DealStage.IOI_RECEIVED,
    DealStage.LOI_RECEIVED,
    DealStage.DUE_DILIGENCE,
    DealStage.CLOSING,
)

_STAGE_TO_GROUP: dict[DealStage, StageGroup] = {
    stage: group
    for group, stages in STAGE_GROUPS.items()
    for stage in stages
}


# ─── Lookups ──────────────────────────────────────────────────────────


def coerce_stage(value: Any) -> DealStage:
    """
    Return `value` as a DealStage, accepting the enum or its string value.

    Raises:
        UnknownStageError: If the value is not a member of the enumeration.
    """
    if isinstance(value, DealStage):
        return value
    try:
        return DealStage(value)
    except ValueError as e:
        raise UnknownStageError(
            f"Unknown deal stage: {value!r}", stage=value
        ) from e


def group_of(stage: DealStage | str) -> StageGroup:
    """
    Return the StageGroup containing `stage`.

    >>> group_of(DealStage.LOI_BACKUP)
    <StageGroup.LOI: 'LOI'>

    Raises:
        UnknownStageError: If `stage` is not a DealStage.
    """
    return _STAGE_TO_GROUP[coerce_stage(stage)]


def stages_of(group: StageGroup) -> tuple[DealStage, ...]:
    """Return the stages in `group`, in pipeline order."""
    return STAGE_GROUPS[group]


def is_legal_transition(from_stage: Any, to_stage: Any) -> bool:
    """
    Check whether moving a buyer from `from_stage` to `to_stage` is allowed.

    Never raises: values outside the enumeration are simply not legal,
    so UI callers can use this directly for input validation.
    """
    try:
        source = coerce_stage(from_stage)
        target = coerce_stage(to_stage)
    except UnknownStageError:
        return False
    return target in VALID_STAGE_TRANSITIONS[source]


def get_valid_next_stages(stage: DealStage | str) -> tuple[DealStage, ...]:
    """Return every stage reachable in one step from `stage`."""
    return VALID_STAGE_TRANSITIONS[coerce_stage(stage)]


def is_active_stage(stage: DealStage | str) -> bool:
    return coerce_stage(stage) in ACTIVE_STAGES


def is_terminated_stage(stage: DealStage | str) -> bool:
    return coerce_stage(stage) in TERMINATED_STAGES


def is_completed_stage(stage: DealStage | str) -> bool:
    return coerce_stage(stage) in COMPLETED_STAGES


def is_terminal_stage(stage: DealStage | str) -> bool:
    """True for stages with no outgoing transition (closed or exited)."""
    return coerce_stage(stage) in TERMINAL_STAGES


def classify_stage(stage: DealStage | str) -> StageStatus:
    """Bucket a stage as active, terminated, or completed."""
    stage = coerce_stage(stage)
    if stage in COMPLETED_STAGES:
        return StageStatus.COMPLETED
    if stage in TERMINATED_STAGES:
        return StageStatus.TERMINATED
    return StageStatus.ACTIVE


# ─── Validation ───────────────────────────────────────────────────────


def validate_stage_graph() -> None:
    """
    Check the stage tables for internal consistency.

    Raises:
        StageGraphError: Describing every problem found.
    """
    problems: list[str] = []
    all_stages = set(DealStage)

    # Groups must partition the stage set
    seen: dict[DealStage, StageGroup] = {}
    for group in StageGroup:
        if group not in STAGE_GROUPS:
            problems.append(f"group {group.value} has no stage list")
            continue
        for stage in STAGE_GROUPS[group]:
            if stage in seen:
                problems.append(
                    f"{stage.value} is in both {seen[stage].value} "
                    f"and {group.value}"
                )
            seen[stage] = group
    for stage in sorted(all_stages - set(seen), key=lambda s: s.value):
        problems.append(f"{stage.value} belongs to no group")

    # Every stage needs an entry; only terminal stages may be dead ends
    for stage in DealStage:
        if stage not in VALID_STAGE_TRANSITIONS:
            problems.append(f"{stage.value} has no transition entry")
            continue
        destinations = VALID_STAGE_TRANSITIONS[stage]
        for target in destinations:
            if target not in all_stages:
                problems.append(
                    f"{stage.value} transitions to unknown stage {target!r}"
                )
        if stage in TERMINAL_STAGES and destinations:
            problems.append(f"terminal stage {stage.value} has destinations")
        if stage not in TERMINAL_STAGES and not destinations:
            problems.append(f"transient stage {stage.value} has no destinations")

    # Active / terminated / completed must be disjoint and exhaustive
    buckets = (ACTIVE_STAGES, TERMINATED_STAGES, COMPLETED_STAGES)
    for i, left in enumerate(buckets):
        for right in buckets[i + 1:]:
            for stage in sorted(left & right, key=lambda s: s.value):
                problems.append(f"{stage.value} is in two classifications")
    unclassified = all_stages - ACTIVE_STAGES - TERMINATED_STAGES - COMPLETED_STAGES
    for stage in sorted(unclassified, key=lambda s: s.value):
        problems.append(f"{stage.value} is not classified")

    if problems:
        raise StageGraphError(
            "Invalid stage graph: " + "; ".join(problems),
            details={"problems": problems},
        )


validate_stage_graph()
