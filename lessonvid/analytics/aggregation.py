"""
Aggregation engine — rolls generation records up into dashboard metrics.

Percentiles are nearest-rank: sort ascending and take the element at index
floor(p * n).  There is no interpolation.  This is crude for small series but
the partner dashboards and the stored daily SLA rows were computed this way, so
the output must match exactly.

Rates are percentages and are 0 (never NaN) for an empty record set.  The same
functions serve the whole record set and every partition of it.
"""
from __future__ import annotations

import datetime
import logging
import math
from typing import Callable, Iterable, Optional, Union

from lessonvid.schemas.generation import (
    AggregateMetrics,
    AggregationReport,
    DailyBucket,
    GenerationRecord,
    PerformanceBucket,
)
from lessonvid.schemas.thresholds import DEFAULT_THRESHOLDS

logger = logging.getLogger(__name__)

UNASSIGNED_GROUP = "unassigned"

KeyFunc = Callable[[GenerationRecord], Optional[str]]


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def percentile(values: Iterable[float], p: float) -> float:
    """
    Nearest-rank percentile: sorted(values)[floor(p * n)], or 0.0 when empty.

    Raises:
        ValueError: p outside [0, 1).
    """
    if not 0 <= p < 1:
        raise ValueError(f"percentile rank must be in [0, 1), got {p!r}")
    ordered = sorted(values)
    if not ordered:
        return 0.0
    return ordered[math.floor(p * len(ordered))]


def success_rate(records: list[GenerationRecord]) -> float:
    if not records:
        return 0.0
    successful = sum(1 for r in records if r.succeeded)
    return successful / len(records) * 100


def within_sla(record: GenerationRecord, sla_hours: float = DEFAULT_THRESHOLDS.sla_hours) -> bool:
    # Records without a completion latency count as within the SLA.
    return (record.script_to_completion_hours or 0.0) <= sla_hours


def sla_compliance_rate(
    records: list[GenerationRecord],
    sla_hours: float = DEFAULT_THRESHOLDS.sla_hours,
) -> float:
    if not records:
        return 0.0
    compliant = sum(1 for r in records if within_sla(r, sla_hours))
    return compliant / len(records) * 100


def active_seats(records: list[GenerationRecord]) -> int:
    return len({r.api_key_id for r in records if r.api_key_id is not None})


def bucket_date(timestamp: datetime.datetime) -> str:
    """UTC calendar date (YYYY-MM-DD); naive timestamps are taken as UTC."""
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(datetime.timezone.utc)
    return timestamp.date().isoformat()


def _processing_times(records: list[GenerationRecord]) -> list[float]:
    return [
        r.manifest_to_mp4_minutes
        for r in records
        if r.manifest_to_mp4_minutes is not None
    ]


# ---------------------------------------------------------------------------
# Roll-ups
# ---------------------------------------------------------------------------

def aggregate(
    records: list[GenerationRecord],
    sla_hours: float = DEFAULT_THRESHOLDS.sla_hours,
) -> AggregateMetrics:
    """Summary metrics for *records* (any subset: a partner, a day, everything)."""
    total = len(records)
    successful = sum(1 for r in records if r.succeeded)
    compliant = sum(1 for r in records if within_sla(r, sla_hours))
    times = _processing_times(records)
    return AggregateMetrics(
        total=total,
        successful=successful,
        failed=total - successful,
        success_rate=success_rate(records),
        p50_minutes=percentile(times, 0.50),
        p95_minutes=percentile(times, 0.95),
        p99_minutes=percentile(times, 0.99),
        within_sla=compliant,
        beyond_sla=total - compliant,
        sla_compliance_rate=sla_compliance_rate(records, sla_hours),
        active_seats=active_seats(records),
    )


_GROUP_KEYS: dict[str, KeyFunc] = {
    "partner": lambda r: r.partner_id,
    "day": lambda r: bucket_date(r.created_at),
    "seat": lambda r: r.api_key_id,
}


def resolve_group_key(key: Union[str, KeyFunc]) -> KeyFunc:
    if callable(key):
        return key
    try:
        return _GROUP_KEYS[key]
    except KeyError:
        raise ValueError(
            f"unknown group key {key!r}. Supported: {sorted(_GROUP_KEYS)}"
        ) from None


def partition(
    records: list[GenerationRecord],
    key: Union[str, KeyFunc],
) -> dict[str, list[GenerationRecord]]:
    """Group records by *key*, sorted by group name; None keys → 'unassigned'."""
    key_func = resolve_group_key(key)
    groups: dict[str, list[GenerationRecord]] = {}
    for record in records:
        name = key_func(record)
        groups.setdefault(UNASSIGNED_GROUP if name is None else name, []).append(record)
    return dict(sorted(groups.items()))


def aggregate_by(
    records: list[GenerationRecord],
    key: Union[str, KeyFunc],
    sla_hours: float = DEFAULT_THRESHOLDS.sla_hours,
) -> dict[str, AggregateMetrics]:
    return {
        name: aggregate(members, sla_hours)
        for name, members in partition(records, key).items()
    }


def daily_trends(records: list[GenerationRecord]) -> list[DailyBucket]:
    return [
        DailyBucket(
            date=day,
            generations=len(members),
            successful=sum(1 for r in members if r.succeeded),
        )
        for day, members in partition(records, "day").items()
    ]


def performance_trends(records: list[GenerationRecord]) -> list[PerformanceBucket]:
    """Per-day processing-time percentiles; days without timings are omitted."""
    timed = [r for r in records if r.manifest_to_mp4_minutes is not None]
    buckets: list[PerformanceBucket] = []
    for day, members in partition(timed, "day").items():
        times = _processing_times(members)
        buckets.append(PerformanceBucket(
            date=day,
            p50=percentile(times, 0.50),
            p95=percentile(times, 0.95),
            p99=percentile(times, 0.99),
        ))
    return buckets


def filter_period(
    records: list[GenerationRecord],
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
) -> list[GenerationRecord]:
    """Records whose UTC creation date falls within [start, end]."""
    selected: list[GenerationRecord] = []
    for record in records:
        day = datetime.date.fromisoformat(bucket_date(record.created_at))
        if start is not None and day < start:
            continue
        if end is not None and day > end:
            continue
        selected.append(record)
    return selected


def build_report(
    records: list[GenerationRecord],
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
    group_by: Optional[Union[str, KeyFunc]] = "partner",
    sla_hours: float = DEFAULT_THRESHOLDS.sla_hours,
) -> AggregationReport:
    """Overall metrics, per-group metrics and daily series for one period."""
    if start is not None and end is not None and start > end:
        raise ValueError(f"period start {start} is after end {end}")

    selected = filter_period(records, start, end)
    groups = aggregate_by(selected, group_by, sla_hours) if group_by is not None else {}

    report = AggregationReport(
        period_start=start,
        period_end=end,
        group_by=group_by if isinstance(group_by, str) else None,
        overall=aggregate(selected, sla_hours),
        groups=groups,
        daily=daily_trends(selected),
        performance=performance_trends(selected),
    )
    logger.info(
        "Aggregated %d of %d records into %d groups (%s → %s)",
        len(selected), len(records), len(groups), start or "-", end or "-",
    )
    return report
