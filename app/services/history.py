from __future__ import annotations

import asyncio
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Sequence

from app.core.config import Settings
from app.core.errors import FetchFailure, StaleResponse
from app.engine.buckets import generate
from app.engine.chart import ChartLayout, ChartStyle, PointDisclosure, PointKey, layout_chart, scale_max
from app.engine.downsample import downsample
from app.engine.granularity import DEFAULT_POLICY, BucketPolicy
from app.engine.merge import merge
from app.engine.ranges import DEFAULT_PERIOD, resolve
from app.engine.selection import MeasurementSelection
from app.engine.stats import summarize
from app.models.history import (
    ChartPoint,
    ChartSeries,
    DeviceInfo,
    MeasurementInfo,
    RawAggregateRow,
    TimeRange,
)
from app.repositories.base import HistorySource

logger = logging.getLogger(__name__)


def policy_from_settings(settings: Settings) -> BucketPolicy:
    return BucketPolicy(
        day_group_hours=settings.day_group_hours,
        month_group_days=settings.month_group_days,
    )


def style_from_settings(settings: Settings) -> ChartStyle:
    return ChartStyle(
        bar_width=settings.chart_bar_width,
        bar_gap=settings.chart_bar_gap,
        plot_height=settings.chart_height,
        headroom=settings.chart_headroom,
        min_scale=settings.chart_min_scale,
    )


def build_series(
    info: MeasurementInfo,
    rows: Sequence[RawAggregateRow],
    time_range: TimeRange,
    policy: BucketPolicy = DEFAULT_POLICY,
    *,
    error: str | None = None,
) -> ChartSeries:
    buckets = generate(time_range, policy)
    return ChartSeries(
        measurement_id=info.id,
        measurement_name=info.name,
        unit=info.unit,
        points=merge(rows, buckets, time_range.granularity, policy),
        stats=summarize(rows),
        error=error,
    )


@dataclass
class HistoryState:
    """Everything one history screen shows; owned by a single controller at a time."""

    device_id: str
    selection: MeasurementSelection = field(default_factory=MeasurementSelection)
    period: str = DEFAULT_PERIOD
    time_range: TimeRange | None = None
    generation: int = 0
    series: list[ChartSeries] = field(default_factory=list)
    device: DeviceInfo | None = None
    catalog: dict[str, MeasurementInfo] = field(default_factory=dict)
    disclosure: PointDisclosure = field(default_factory=PointDisclosure)

    def bump(self) -> int:
        self.generation += 1
        self.disclosure.clear()
        return self.generation

    def ensure_current(self, snapshot: int) -> None:
        if snapshot != self.generation:
            raise StaleResponse(snapshot=snapshot, current=self.generation)


class HistoryController:
    def __init__(
        self,
        *,
        source: HistorySource,
        state: HistoryState,
        policy: BucketPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._state = state
        self._policy = policy
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    @property
    def state(self) -> HistoryState:
        return self._state

    def select_period(self, label: str, now: datetime | None = None) -> TimeRange:
        # Resolve first so an unknown label leaves the current view intact.
        time_range = resolve(label, now or self._clock())
        self._state.period = label
        self._state.time_range = time_range
        self._state.bump()
        return time_range

    def toggle_measurement(self, measurement_id: str) -> bool:
        selection = self._state.selection
        if not selection.toggle(measurement_id):
            return False
        if measurement_id not in selection:
            self._state.series = [
                s for s in self._state.series if s.measurement_id != measurement_id
            ]
        self._state.bump()
        return True

    def set_device(self, device_id: str) -> bool:
        state = self._state
        if device_id == state.device_id:
            return False
        state.device_id = device_id
        state.device = None
        state.selection.clear()
        state.series = []
        state.catalog = {}
        state.bump()
        return True

    def toggle_point(self, key: PointKey) -> bool:
        return self._state.disclosure.toggle(key)

    async def load_catalog(self) -> list[MeasurementInfo]:
        state = self._state
        snapshot = state.generation
        device_id = state.device_id
        device, measurements = await asyncio.gather(
            self._source.fetch_device(device_id),
            self._source.list_measurements(device_id),
        )
        if device_id == state.device_id:
            state.device = device
            state.catalog = {m.id: m for m in measurements}
        else:
            logger.debug(
                "Discarding catalog for previous device",
                extra={"device_id": device_id, "generation": snapshot},
            )
        return measurements

    async def refresh(self, now: datetime | None = None) -> list[ChartSeries] | None:
        """Fetch and rebuild every selected series.

        Returns ``None`` when the selection, period or device changed while the
        fetches were in flight; the superseded result is dropped.
        """
        state = self._state
        snapshot = state.generation
        device_id = state.device_id
        time_range = resolve(state.period, now or self._clock())
        if state.catalog:
            # Ids the device does not list are never fetched.
            infos = [state.catalog[mid] for mid in state.selection if mid in state.catalog]
        else:
            infos = [MeasurementInfo(id=mid, name=mid) for mid in state.selection]

        results = await asyncio.gather(
            *(
                self._source.fetch_rows(
                    device_id=device_id, measurement_id=info.id, time_range=time_range
                )
                for info in infos
            ),
            return_exceptions=True,
        )

        series: list[ChartSeries] = []
        for info, result in zip(infos, results):
            if isinstance(result, FetchFailure):
                logger.warning(
                    "History fetch failed; showing empty series",
                    extra={"device_id": device_id, "measurement_id": info.id, "reason": str(result)},
                )
                series.append(build_series(info, [], time_range, self._policy, error=str(result)))
            elif isinstance(result, Exception):
                logger.exception(
                    "Unexpected error loading history",
                    exc_info=result,
                    extra={"device_id": device_id, "measurement_id": info.id},
                )
                series.append(
                    build_series(info, [], time_range, self._policy, error="Unexpected error")
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                series.append(build_series(info, result, time_range, self._policy))

        try:
            state.ensure_current(snapshot)
        except StaleResponse as e:
            logger.debug(
                "Discarding stale history result",
                extra={"device_id": device_id, "generation": e.snapshot},
            )
            return None

        state.time_range = time_range
        state.series = series
        return series


@dataclass(frozen=True)
class SeriesView:
    series: ChartSeries
    display_points: list[ChartPoint]
    layout: ChartLayout


def chart_views(
    state: HistoryState, *, max_bars: int, style: ChartStyle = ChartStyle()
) -> list[SeriesView]:
    """Downsample every series and lay them out against one shared y scale."""
    displayed = [downsample(s.points, max_bars) for s in state.series]
    max_value = scale_max(displayed, style)
    return [
        SeriesView(
            series=s,
            display_points=points,
            layout=layout_chart(
                points,
                max_value,
                style,
                chart_key=s.measurement_id,
                disclosure=state.disclosure,
            ),
        )
        for s, points in zip(state.series, displayed)
    ]


class HistoryViewRegistry:
    """In-memory history screens keyed by browser view id, least recently used first out."""

    def __init__(self, *, max_views: int, selection_capacity: int) -> None:
        self._max_views = max(int(max_views), 1)
        self._selection_capacity = selection_capacity
        self._lock = threading.Lock()
        self._states: OrderedDict[str, HistoryState] = OrderedDict()

    def get_or_create(self, view_id: str, *, device_id: str) -> HistoryState:
        with self._lock:
            state = self._states.get(view_id)
            if state is None:
                state = HistoryState(
                    device_id=device_id,
                    selection=MeasurementSelection(capacity=self._selection_capacity),
                )
                self._states[view_id] = state
            self._states.move_to_end(view_id)
            while len(self._states) > self._max_views:
                self._states.popitem(last=False)
            return state

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
