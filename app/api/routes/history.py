from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from app.api.deps import Clock, Policy, Source, Style, get_settings
from app.core.config import Settings
from app.core.errors import FetchFailure, InvalidRange
from app.engine.chart import scale_max
from app.engine.granularity import subtitle
from app.engine.ranges import DEFAULT_PERIOD, PERIOD_GRANULARITY, PERIOD_LABELS
from app.engine.selection import MeasurementSelection
from app.models.history import ChartPoint, ChartSeries
from app.schemas.history import (
    DEVICE_ID_PATTERN,
    ChartPointRead,
    ChartSeriesRead,
    HistoryRead,
    PeriodRead,
    StatsRead,
    TimeRangeRead,
)
from app.services.history import HistoryController, HistoryState, chart_views

router = APIRouter()


def _points(points: list[ChartPoint]) -> list[ChartPointRead]:
    return [ChartPointRead.model_validate(p.__dict__) for p in points]


def _series_read(series: ChartSeries, display_points: list[ChartPoint]) -> ChartSeriesRead:
    return ChartSeriesRead(
        measurement_id=series.measurement_id,
        measurement_name=series.measurement_name,
        unit=series.unit,
        stats=StatsRead.model_validate(series.stats.__dict__),
        points=_points(series.points),
        display_points=_points(display_points),
        error=series.error,
    )


@router.get("/periods", response_model=list[PeriodRead])
def list_periods(policy: Policy) -> list[PeriodRead]:
    return [
        PeriodRead(
            label=label,
            granularity=PERIOD_GRANULARITY[label].value,
            subtitle=subtitle(PERIOD_GRANULARITY[label], policy),
        )
        for label in PERIOD_LABELS
    ]


@router.get("/devices/{device_id}/history", response_model=HistoryRead)
async def device_history(
    device_id: Annotated[str, Path(min_length=1, max_length=64, pattern=DEVICE_ID_PATTERN)],
    source: Source,
    policy: Policy,
    style: Style,
    clock: Clock,
    settings: Annotated[Settings, Depends(get_settings)],
    period: Annotated[str, Query(min_length=1, max_length=32)] = DEFAULT_PERIOD,
    measurement_id: Annotated[list[str], Query()] = [],
) -> HistoryRead:
    state = HistoryState(
        device_id=device_id,
        selection=MeasurementSelection(
            (m for m in measurement_id if m), capacity=settings.max_measurements
        ),
    )
    controller = HistoryController(source=source, state=state, policy=policy, clock=clock)
    try:
        time_range = controller.select_period(period)
    except InvalidRange as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    try:
        await controller.load_catalog()
    except FetchFailure as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Backend unavailable",
        ) from e

    await controller.refresh()
    views = chart_views(state, max_bars=settings.max_bars, style=style)
    time_range = state.time_range or time_range
    return HistoryRead(
        device_id=device_id,
        device_name=state.device.name if state.device else None,
        period=state.period,
        subtitle=subtitle(time_range.granularity, policy),
        range=TimeRangeRead(
            start=time_range.start,
            stop=time_range.stop,
            granularity=time_range.granularity.value,
        ),
        max_value=scale_max([v.display_points for v in views], style),
        series=[_series_read(v.series, v.display_points) for v in views],
    )


@router.get("/health", tags=["meta"])
async def health(source: Source) -> dict[str, str]:
    try:
        await source.ping()
    except FetchFailure as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Backend unavailable",
        ) from e
    return {"status": "ok"}
