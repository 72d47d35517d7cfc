"""
Pydantic schema for pipeline analytics settings.

The summary engine's thresholds (how far ahead a deadline counts as
upcoming, how long without a stage change makes a buyer stale) live
here so an advisory team can tune them per deployment in YAML.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class AnalyticsSettings(BaseModel):
    """Thresholds for the live pipeline summary."""
    deadline_window_days: int = Field(
        7, ge=1, le=90,
        description="IOI/LOI deadlines within this many days are upcoming",
    )
    stale_after_days: int = Field(
        14, ge=1, le=365,
        description="Active buyers unchanged for this many days are stale",
    )
