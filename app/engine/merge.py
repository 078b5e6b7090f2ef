from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from app.engine.buckets import normalize
from app.engine.granularity import DEFAULT_POLICY, BucketPolicy, Granularity
from app.models.history import ChartPoint, RawAggregateRow

WEEKDAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def format_bucket_label(ts: datetime, granularity: Granularity) -> str:
    if granularity is Granularity.HOUR_15M:
        return f"{ts.hour:02d}:{ts.minute:02d}"
    if granularity is Granularity.DAY_GROUP:
        return f"{ts.day:02d}/{ts.month:02d} {ts.hour:02d}h"
    if granularity is Granularity.WEEK_DAY:
        return WEEKDAY_ABBR[ts.weekday()]
    if granularity is Granularity.MONTH_DAYS:
        return f"{ts.day:02d}/{ts.month:02d}"
    return MONTH_ABBR[ts.month - 1]


def merge(
    raw_rows: Iterable[RawAggregateRow],
    buckets: Sequence[datetime],
    granularity: Granularity,
    policy: BucketPolicy = DEFAULT_POLICY,
) -> list[ChartPoint]:
    """Project sparse rows onto the canonical timeline, one point per bucket.

    Rows are keyed by their normalized timestamp in the buckets' zone; when
    two rows share a bucket the later one wins. Buckets without a row are
    zero-filled with ``has_data=False``.
    """
    tz = buckets[0].tzinfo if buckets else None
    by_bucket: dict[datetime, RawAggregateRow] = {}
    for row in raw_rows:
        ts = row.bucket.astimezone(tz) if tz is not None else row.bucket
        by_bucket[normalize(ts, granularity, policy)] = row

    points: list[ChartPoint] = []
    for bucket in buckets:
        label = format_bucket_label(bucket, granularity)
        row = by_bucket.get(bucket)
        if row is None:
            points.append(ChartPoint(label=label, bucket=bucket))
            continue
        points.append(
            ChartPoint(
                label=label,
                bucket=bucket,
                avg=row.avg,
                max=row.max,
                min=row.min,
                total=row.total,
                has_data=True,
            )
        )
    return points
