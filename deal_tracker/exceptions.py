"""
Custom exception hierarchy for the deal tracker.

Structured error handling with clear categories:
- Stage graph errors (caught at import time)
- Unknown stage values reaching a lookup (data-integrity defects)
- Illegal stage transitions (rejected before any mutation)
- Analytics configuration errors (caught at startup)

Usage:
    from deal_tracker.exceptions import InvalidStageTransitionError

    try:
        result = apply_transition(buyer, DealStage.CLOSED)
    except InvalidStageTransitionError as e:
        return {"error": str(e), "from": e.from_stage, "to": e.to_stage}
"""

from __future__ import annotations

from typing import Any, Optional


class DealTrackerError(Exception):
    """
    Base exception for all deal tracker errors.

    All custom exceptions inherit from this, so you can catch
    `DealTrackerError` to handle any tracker-specific error.
    """

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


# ── Stage Graph Errors ────────────────────────────────────────────


class StageGraphError(DealTrackerError):
    """
    Raised when the stage tables are inconsistent.

    Examples:
    - A stage belongs to no group, or to more than one
    - A stage has no entry in the transition table
    - A terminal stage has an outgoing transition
    """


class UnknownStageError(DealTrackerError):
    """
    Raised when a value outside the DealStage enumeration reaches a
    stage lookup. Surfacing it keeps aggregate counts honest.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: Any = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.stage = stage


# ── Transition Errors ─────────────────────────────────────────────


class InvalidStageTransitionError(DealTrackerError):
    """
    Raised when a caller attempts a stage change that the transition
    table does not allow, or one dated before the buyer's last recorded
    change. No buyer or history record is produced.
    """

    def __init__(
        self,
        message: str,
        *,
        from_stage: Any = None,
        to_stage: Any = None,
        buyer_id: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.buyer_id = buyer_id


# ── Configuration Errors ──────────────────────────────────────────


class AnalyticsConfigError(DealTrackerError):
    """
    Raised when the analytics settings file is missing or invalid.
    """

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.config_path = config_path
