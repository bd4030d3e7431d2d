"""
Thresholds — tunable limits shared by the validator and the analytics passes.

The defaults are the values the authoring dashboards have always used; changing
them changes which warnings authors see and how pace is labelled, so override
them explicitly (CLI ``--thresholds``) rather than editing the defaults.
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class Thresholds(BaseModel):
    """Advisory limits, pace band edges and SLA window."""

    # Manifest warnings
    max_total_duration_seconds: float = 300.0
    max_voiceover_chars: int = 500
    max_actions_per_shot: int = 10

    # Pace bands in words per minute; each edge is the exclusive upper bound
    # of the band below it.
    pace_slow_below: float = 120.0
    pace_good_below: float = 150.0
    pace_fast_below: float = 180.0

    # Timing analysis
    default_action_duration: float = Field(default=1.0, gt=0)
    adjustment_tolerance_seconds: float = Field(default=0.05, ge=0)
    large_adjustment_seconds: float = 2.0
    long_silence_seconds: float = 10.0

    # Reporting
    sla_hours: float = 24.0
    complete_view_percentage: float = 90.0


DEFAULT_THRESHOLDS = Thresholds()
