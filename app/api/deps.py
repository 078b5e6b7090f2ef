from __future__ import annotations

from datetime import datetime
from typing import Annotated, Callable

from fastapi import Depends, Request

from app.core.config import Settings
from app.engine.chart import ChartStyle
from app.engine.granularity import BucketPolicy
from app.repositories.base import HistorySource
from app.services.history import HistoryViewRegistry, policy_from_settings, style_from_settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_history_source(request: Request) -> HistorySource:
    return request.app.state.backend_client


def get_view_registry(request: Request) -> HistoryViewRegistry:
    return request.app.state.view_registry


def get_bucket_policy(settings: Annotated[Settings, Depends(get_settings)]) -> BucketPolicy:
    return policy_from_settings(settings)


def get_chart_style(settings: Annotated[Settings, Depends(get_settings)]) -> ChartStyle:
    return style_from_settings(settings)


def get_clock(settings: Annotated[Settings, Depends(get_settings)]) -> Callable[[], datetime]:
    tz = settings.tz
    return lambda: datetime.now(tz=tz)


Source = Annotated[HistorySource, Depends(get_history_source)]
Policy = Annotated[BucketPolicy, Depends(get_bucket_policy)]
Style = Annotated[ChartStyle, Depends(get_chart_style)]
Clock = Annotated[Callable[[], datetime], Depends(get_clock)]
