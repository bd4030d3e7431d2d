"""
Generation records and the reporting projections computed over them.

GenerationRecord mirrors the columns of a stored video generation that the
dashboards read; everything else here is a read-side value object with no
lifecycle of its own.
"""
from __future__ import annotations

import datetime
from typing import Optional

from pydantic import BaseModel, Field


class GenerationRecord(BaseModel):
    """One render request as stored by the backend."""
    request_id: Optional[str] = None
    partner_id: Optional[str] = None
    api_key_id: Optional[str] = None        # seat that issued the request
    status: Optional[str] = None
    render_success: Optional[bool] = None
    created_at: datetime.datetime
    manifest_to_mp4_minutes: Optional[float] = None
    script_to_completion_hours: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return bool(self.render_success)


class AggregateMetrics(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = 0.0            # percent
    p50_minutes: float = 0.0             # nearest-rank, manifest → mp4
    p95_minutes: float = 0.0
    p99_minutes: float = 0.0
    within_sla: int = 0
    beyond_sla: int = 0
    sla_compliance_rate: float = 0.0     # percent
    active_seats: int = 0


class DailyBucket(BaseModel):
    date: str          # YYYY-MM-DD, UTC
    generations: int
    successful: int


class PerformanceBucket(BaseModel):
    date: str          # YYYY-MM-DD, UTC
    p50: float
    p95: float
    p99: float


class AggregationReport(BaseModel):
    period_start: Optional[datetime.date] = None
    period_end: Optional[datetime.date] = None
    group_by: Optional[str] = None
    overall: AggregateMetrics
    groups: dict[str, AggregateMetrics] = Field(default_factory=dict)
    daily: list[DailyBucket] = Field(default_factory=list)
    performance: list[PerformanceBucket] = Field(default_factory=list)
