from __future__ import annotations

import calendar
from datetime import datetime, timedelta

from app.engine.granularity import DEFAULT_POLICY, BucketPolicy, Granularity
from app.models.history import TimeRange


def _add_months(dt: datetime, months: int) -> datetime:
    index = dt.month - 1 + months
    year = dt.year + index // 12
    month = index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def normalize(
    ts: datetime, granularity: Granularity, policy: BucketPolicy = DEFAULT_POLICY
) -> datetime:
    """Round ``ts`` down to the start of its bucket (wall clock of its own zone)."""
    if ts.tzinfo is None:
        raise ValueError("timestamps must be timezone aware")

    if granularity is Granularity.HOUR_15M:
        step = policy.quarter_minutes
        return ts.replace(minute=ts.minute // step * step, second=0, microsecond=0)
    if granularity is Granularity.DAY_GROUP:
        step = policy.day_group_hours
        return ts.replace(hour=ts.hour // step * step, minute=0, second=0, microsecond=0)

    midnight = ts.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity is Granularity.WEEK_DAY:
        return midnight
    if granularity is Granularity.MONTH_DAYS:
        step = policy.month_group_days
        # Grid anchored on the 1st so every row lands on a generated bucket.
        return midnight.replace(day=1 + (ts.day - 1) // step * step)
    return midnight.replace(day=1)


def advance(
    cursor: datetime, granularity: Granularity, policy: BucketPolicy = DEFAULT_POLICY
) -> datetime:
    if granularity is Granularity.HOUR_15M:
        return cursor + timedelta(minutes=policy.quarter_minutes)
    if granularity is Granularity.DAY_GROUP:
        return cursor + timedelta(hours=policy.day_group_hours)
    if granularity is Granularity.WEEK_DAY:
        return cursor + timedelta(days=1)
    if granularity is Granularity.MONTH_DAYS:
        return cursor + timedelta(days=policy.month_group_days)
    return _add_months(cursor, 1)


def generate(time_range: TimeRange, policy: BucketPolicy = DEFAULT_POLICY) -> list[datetime]:
    """Enumerate the canonical bucket starts covering ``time_range``.

    The result is strictly increasing and never empty: the bucket holding
    ``time_range.start`` is always emitted, even when start == stop.
    """
    granularity = time_range.granularity
    cursor = normalize(time_range.start, granularity, policy)
    buckets: list[datetime] = []
    while cursor <= time_range.stop:
        bucket = normalize(cursor, granularity, policy)
        if not buckets or bucket > buckets[-1]:
            buckets.append(bucket)
        cursor = advance(cursor, granularity, policy)
    return buckets
