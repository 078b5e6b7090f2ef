from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx

from app.core.errors import FetchFailure
from app.models.history import DeviceInfo, MeasurementInfo, RawAggregateRow, TimeRange

logger = logging.getLogger(__name__)

HISTORY_PATH = "/api/customer/devices/{device_id}/measurements/{measurement_id}/history"
DEVICE_PATH = "/api/customer/devices/{device_id}"
HISTORY_CONFIG_PATH = "/api/customer/history-config"


def _epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _parse_bucket(value: Any, tz: ZoneInfo) -> datetime | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).astimezone(tz)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        # Example: "2026-01-30T22:00:00Z" or "2026-01-30 22:00:00+07:00"
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def _float_or_zero(v: Any) -> float:
    try:
        if v is None:
            return 0.0
        parsed = float(v)
    except (TypeError, ValueError):
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def _str_or_none(v: Any) -> str | None:
    if v is None:
        return None
    if isinstance(v, str):
        return v
    return str(v)


def parse_rows(payload: Any, tz: ZoneInfo) -> list[RawAggregateRow]:
    """Turn a history response body into typed rows; unusable entries are dropped."""
    data = payload.get("data") if isinstance(payload, dict) else None
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("Unexpected history response shape")

    rows: list[RawAggregateRow] = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        bucket = _parse_bucket(entry.get("bucket"), tz)
        if bucket is None:
            logger.warning("Skipping history row without usable bucket", extra={"reason": "bucket"})
            continue
        rows.append(
            RawAggregateRow(
                bucket=bucket,
                avg=_float_or_zero(entry.get("avg_value")),
                max=_float_or_zero(entry.get("max_value")),
                min=_float_or_zero(entry.get("min_value")),
                total=_float_or_zero(entry.get("total_value")),
            )
        )
    return rows


def parse_measurements(payload: Any, device_id: str) -> list[MeasurementInfo]:
    entries = payload.get("measurements") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        return []
    results: list[MeasurementInfo] = []
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("device_id") != device_id:
            continue
        measurement_id = _str_or_none(entry.get("measurement_id"))
        if not measurement_id:
            continue
        results.append(
            MeasurementInfo(
                id=measurement_id,
                name=_str_or_none(entry.get("measurement_name")) or measurement_id,
                unit=_str_or_none(entry.get("unit")),
                config_id=_str_or_none(entry.get("id")),
            )
        )
    return results


class BackendClient:
    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float,
        tz: ZoneInfo,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._tz = tz
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        measurement_id: str | None = None,
    ) -> Any:
        try:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Backend returned an error status",
                extra={"measurement_id": measurement_id, "status_code": e.response.status_code},
            )
            raise FetchFailure(
                f"Backend responded {e.response.status_code}", measurement_id=measurement_id
            ) from e
        except httpx.HTTPError as e:
            logger.warning(
                "Backend request failed",
                extra={"measurement_id": measurement_id, "reason": type(e).__name__},
            )
            raise FetchFailure("Backend unavailable", measurement_id=measurement_id) from e
        except ValueError as e:
            raise FetchFailure("Backend sent invalid JSON", measurement_id=measurement_id) from e

    async def ping(self) -> None:
        await self._get_json("/")

    async def fetch_rows(
        self, *, device_id: str, measurement_id: str, time_range: TimeRange
    ) -> list[RawAggregateRow]:
        path = HISTORY_PATH.format(
            device_id=quote(device_id, safe=""), measurement_id=quote(measurement_id, safe="")
        )
        params = {
            "from": _epoch_ms(time_range.start),
            "to": _epoch_ms(time_range.stop),
            "type": time_range.granularity.value,
        }
        payload = await self._get_json(path, params=params, measurement_id=measurement_id)
        try:
            rows = parse_rows(payload, self._tz)
        except ValueError as e:
            raise FetchFailure(str(e), measurement_id=measurement_id) from e
        logger.debug(
            "Fetched history rows",
            extra={"device_id": device_id, "measurement_id": measurement_id, "row_count": len(rows)},
        )
        return rows

    async def fetch_device(self, device_id: str) -> DeviceInfo:
        payload = await self._get_json(DEVICE_PATH.format(device_id=quote(device_id, safe="")))
        name = payload.get("name") if isinstance(payload, dict) else None
        return DeviceInfo(id=device_id, name=_str_or_none(name) or device_id)

    async def list_measurements(self, device_id: str) -> list[MeasurementInfo]:
        payload = await self._get_json(HISTORY_CONFIG_PATH)
        return parse_measurements(payload, device_id)
