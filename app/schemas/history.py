from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field

DEVICE_ID_PATTERN = r"^[a-zA-Z0-9][a-zA-Z0-9:._-]{0,63}$"

DeviceId = Annotated[str, Field(pattern=DEVICE_ID_PATTERN)]


class PeriodRead(BaseModel):
    label: str
    granularity: str
    subtitle: str


class TimeRangeRead(BaseModel):
    start: datetime
    stop: datetime
    granularity: str


class StatsRead(BaseModel):
    avg: float
    max: float
    min: float
    total: float


class ChartPointRead(BaseModel):
    label: str
    bucket: datetime
    avg: float
    max: float
    min: float
    total: float
    has_data: bool


class ChartSeriesRead(BaseModel):
    measurement_id: str = Field(min_length=1)
    measurement_name: str
    unit: str | None = None
    stats: StatsRead
    points: list[ChartPointRead] = Field(default_factory=list)
    display_points: list[ChartPointRead] = Field(default_factory=list)
    error: str | None = None


class HistoryRead(BaseModel):
    device_id: DeviceId
    device_name: str | None = None
    period: str
    subtitle: str
    range: TimeRangeRead
    max_value: float = Field(gt=0)
    series: list[ChartSeriesRead] = Field(default_factory=list)
