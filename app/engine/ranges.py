from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.core.errors import InvalidRange
from app.engine.granularity import Granularity
from app.models.history import TimeRange

LAST_HOUR = "Last hour"
LAST_24H = "Last 24h"
LAST_7_DAYS = "Last 7 days"
THIS_MONTH = "This month"
THIS_YEAR = "This year"

PERIOD_LABELS: tuple[str, ...] = (LAST_HOUR, LAST_24H, LAST_7_DAYS, THIS_MONTH, THIS_YEAR)
DEFAULT_PERIOD = LAST_HOUR

PERIOD_GRANULARITY: dict[str, Granularity] = {
    LAST_HOUR: Granularity.HOUR_15M,
    LAST_24H: Granularity.DAY_GROUP,
    LAST_7_DAYS: Granularity.WEEK_DAY,
    THIS_MONTH: Granularity.MONTH_DAYS,
    THIS_YEAR: Granularity.YEAR_MONTH,
}


def _midnight(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def resolve(label: str, now: datetime) -> TimeRange:
    """Map a period label to its window, evaluated in the zone of ``now``."""
    if now.tzinfo is None:
        raise ValueError("now must be timezone aware")

    granularity = PERIOD_GRANULARITY.get(label)
    if granularity is None:
        raise InvalidRange(label)

    if label == LAST_HOUR:
        # Elapsed time, not wall clock, so a DST change still spans one hour.
        start = (now.astimezone(timezone.utc) - timedelta(hours=1)).astimezone(now.tzinfo)
    elif label == LAST_24H:
        # Before 01:00 the day window has not opened yet.
        start = min(now.replace(hour=1, minute=0, second=0, microsecond=0), now)
    elif label == LAST_7_DAYS:
        start = _midnight(now - timedelta(days=6))
    elif label == THIS_MONTH:
        start = _midnight(now.replace(day=1))
    else:
        start = _midnight(now.replace(month=1, day=1))

    return TimeRange(start=start, stop=now, granularity=granularity)
