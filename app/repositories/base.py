from __future__ import annotations

from typing import Protocol

from app.models.history import DeviceInfo, MeasurementInfo, RawAggregateRow, TimeRange


class HistorySource(Protocol):
    async def ping(self) -> None: ...

    async def fetch_rows(
        self, *, device_id: str, measurement_id: str, time_range: TimeRange
    ) -> list[RawAggregateRow]: ...

    async def fetch_device(self, device_id: str) -> DeviceInfo: ...

    async def list_measurements(self, device_id: str) -> list[MeasurementInfo]: ...
