from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from app.engine.granularity import Granularity


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    stop: datetime
    granularity: Granularity

    def __post_init__(self) -> None:
        if self.start > self.stop:
            raise ValueError("TimeRange start must be <= stop")


@dataclass(frozen=True)
class RawAggregateRow:
    bucket: datetime
    avg: float
    max: float
    min: float
    total: float


@dataclass(frozen=True)
class ChartPoint:
    label: str
    bucket: datetime
    avg: float = 0.0
    max: float = 0.0
    min: float = 0.0
    total: float = 0.0
    has_data: bool = False


@dataclass(frozen=True)
class Stats:
    avg: float
    max: float
    min: float
    total: float

    @classmethod
    def empty(cls) -> Stats:
        return cls(avg=0.0, max=0.0, min=0.0, total=0.0)


@dataclass(frozen=True)
class DeviceInfo:
    id: str
    name: str


@dataclass(frozen=True)
class MeasurementInfo:
    id: str
    name: str
    unit: str | None = None
    config_id: str | None = None


@dataclass(frozen=True)
class ChartSeries:
    measurement_id: str
    measurement_name: str
    unit: str | None
    points: list[ChartPoint] = field(default_factory=list)
    stats: Stats = field(default_factory=Stats.empty)
    error: str | None = None
