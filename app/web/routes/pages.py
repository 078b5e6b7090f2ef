from __future__ import annotations

import logging
from typing import Annotated
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Form, Path, Query, Request
from fastapi.responses import RedirectResponse

from app.api.deps import Clock, Policy, Source, Style, get_settings, get_view_registry
from app.core.config import Settings
from app.core.errors import FetchFailure, InvalidRange
from app.engine.chart import PointKey
from app.engine.granularity import subtitle
from app.engine.ranges import PERIOD_GRANULARITY, PERIOD_LABELS
from app.schemas.history import DEVICE_ID_PATTERN
from app.services.history import HistoryController, HistoryViewRegistry, chart_views
from app.web.charts import render_svg
from app.web.deps import csrf_protect, ensure_csrf_token, ensure_view_id
from app.web.templates import templates

logger = logging.getLogger(__name__)

router = APIRouter()

DeviceIdPath = Annotated[str, Path(min_length=1, max_length=64, pattern=DEVICE_ID_PATTERN)]
Registry = Annotated[HistoryViewRegistry, Depends(get_view_registry)]


def _controller(
    request: Request,
    *,
    device_id: str,
    registry: HistoryViewRegistry,
    source,
    policy,
    clock,
) -> HistoryController:
    view_id = ensure_view_id(request)
    state = registry.get_or_create(view_id, device_id=device_id)
    controller = HistoryController(source=source, state=state, policy=policy, clock=clock)
    controller.set_device(device_id)
    return controller


def _history_url(device_id: str, *, message: str | None = None, error: str | None = None) -> str:
    url = f"/ui/devices/{quote(device_id, safe='')}/history"
    query: dict[str, str] = {}
    if message:
        query["message"] = message
    if error:
        query["error"] = error
    if query:
        url = f"{url}?{urlencode(query)}"
    return url


@router.get("/devices/{device_id}/history", include_in_schema=False)
async def history_page(
    request: Request,
    device_id: DeviceIdPath,
    registry: Registry,
    source: Source,
    policy: Policy,
    style: Style,
    clock: Clock,
    settings: Annotated[Settings, Depends(get_settings)],
    message: Annotated[str | None, Query(max_length=200)] = None,
    flash_error: Annotated[str | None, Query(max_length=200, alias="error")] = None,
):
    csrf_token = ensure_csrf_token(request)
    controller = _controller(
        request, device_id=device_id, registry=registry, source=source, policy=policy, clock=clock
    )
    state = controller.state
    error: str | None = flash_error

    if not state.catalog:
        try:
            await controller.load_catalog()
        except FetchFailure:
            error = error or "Backend unavailable"

    await controller.refresh()
    views = chart_views(state, max_bars=settings.max_bars, style=style)
    granularity = PERIOD_GRANULARITY[state.period]

    return templates.TemplateResponse(
        request,
        "history.html",
        {
            "request": request,
            "title": state.device.name if state.device else device_id,
            "csrf_token": csrf_token,
            "device_id": device_id,
            "device": state.device,
            "periods": PERIOD_LABELS,
            "period": state.period,
            "subtitle": subtitle(granularity, policy),
            "measurements": list(state.catalog.values()),
            "selection": state.selection,
            "charts": [(view, render_svg(view.layout)) for view in views],
            "message": message,
            "error": error,
        },
    )


@router.post(
    "/devices/{device_id}/history/period",
    include_in_schema=False,
    dependencies=[Depends(csrf_protect)],
)
async def select_period(
    request: Request,
    device_id: DeviceIdPath,
    period: Annotated[str, Form(min_length=1, max_length=32)],
    registry: Registry,
    source: Source,
    policy: Policy,
    clock: Clock,
):
    controller = _controller(
        request, device_id=device_id, registry=registry, source=source, policy=policy, clock=clock
    )
    try:
        controller.select_period(period)
    except InvalidRange:
        logger.info("Rejected period label", extra={"device_id": device_id, "period": period})
        return RedirectResponse(_history_url(device_id, error="Unknown period."), status_code=303)
    return RedirectResponse(_history_url(device_id), status_code=303)


@router.post(
    "/devices/{device_id}/history/measurements",
    include_in_schema=False,
    dependencies=[Depends(csrf_protect)],
)
async def toggle_measurement(
    request: Request,
    device_id: DeviceIdPath,
    measurement_id: Annotated[str, Form(min_length=1, max_length=64)],
    registry: Registry,
    source: Source,
    policy: Policy,
    clock: Clock,
):
    controller = _controller(
        request, device_id=device_id, registry=registry, source=source, policy=policy, clock=clock
    )
    selection = controller.state.selection
    if not controller.toggle_measurement(measurement_id):
        return RedirectResponse(
            _history_url(
                device_id,
                message=f"Select at most {selection.capacity} measurements.",
            ),
            status_code=303,
        )
    return RedirectResponse(_history_url(device_id), status_code=303)


@router.post(
    "/devices/{device_id}/history/points",
    include_in_schema=False,
    dependencies=[Depends(csrf_protect)],
)
async def toggle_point(
    request: Request,
    device_id: DeviceIdPath,
    chart_key: Annotated[str, Form(min_length=1, max_length=64)],
    series_key: Annotated[str, Form(min_length=1, max_length=16)],
    index: Annotated[int, Form(ge=0)],
    registry: Registry,
    source: Source,
    policy: Policy,
    clock: Clock,
):
    controller = _controller(
        request, device_id=device_id, registry=registry, source=source, policy=policy, clock=clock
    )
    controller.toggle_point(PointKey(chart_key, series_key, index))
    return RedirectResponse(_history_url(device_id), status_code=303)
