from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Granularity(str, Enum):
    """Bucket width and alignment policy; values match the backend ``type`` parameter."""

    HOUR_15M = "hour"
    DAY_GROUP = "day"
    WEEK_DAY = "week"
    MONTH_DAYS = "month"
    YEAR_MONTH = "year"


@dataclass(frozen=True)
class BucketPolicy:
    quarter_minutes: int = 15
    day_group_hours: int = 4
    month_group_days: int = 2

    def __post_init__(self) -> None:
        if self.quarter_minutes <= 0 or 60 % self.quarter_minutes != 0:
            raise ValueError("quarter_minutes must divide 60")
        if self.day_group_hours <= 0 or 24 % self.day_group_hours != 0:
            raise ValueError("day_group_hours must divide 24")
        if self.month_group_days not in (1, 2):
            raise ValueError("month_group_days must be 1 or 2")


DEFAULT_POLICY = BucketPolicy()


def subtitle(granularity: Granularity, policy: BucketPolicy = DEFAULT_POLICY) -> str:
    if granularity is Granularity.HOUR_15M:
        return f"Avg / {policy.quarter_minutes} min"
    if granularity is Granularity.DAY_GROUP:
        hours = policy.day_group_hours
        return "Avg / hour" if hours == 1 else f"Avg / {hours} hours"
    if granularity is Granularity.WEEK_DAY:
        return "Avg / day"
    if granularity is Granularity.MONTH_DAYS:
        days = policy.month_group_days
        return "Avg / day" if days == 1 else f"Avg / {days} days"
    return "Avg / month"
