from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from app.core.errors import InvalidRange
from app.engine.chart import ChartStyle, PointKey
from app.engine.granularity import BucketPolicy, Granularity
from app.engine.selection import MeasurementSelection
from app.models.history import MeasurementInfo, Stats
from app.services.history import (
    HistoryController,
    HistoryState,
    HistoryViewRegistry,
    build_series,
    chart_views,
)
from tests.fakes import NOW, UTC, FakeHistorySource, GatedHistorySource, row


def _controller(source: FakeHistorySource, *ids: str, period: str = "Last hour") -> HistoryController:
    state = HistoryState(device_id="device-1", selection=MeasurementSelection(ids), period=period)
    return HistoryController(source=source, state=state, clock=lambda: NOW)


def test_build_series_merges_and_summarizes() -> None:
    info = MeasurementInfo(id="temp", name="Temperature", unit="°C")
    controller = _controller(FakeHistorySource())
    time_range = controller.select_period("Last hour")
    rows = [row(datetime(2026, 10, 18, 9, 20, tzinfo=UTC), 4.0, max=6.0, min=2.0, total=8.0)]

    series = build_series(info, rows, time_range)

    assert len(series.points) == 5
    assert series.points[1].has_data
    assert series.stats == Stats(avg=4.0, max=6.0, min=2.0, total=8.0)
    assert series.error is None


def test_refresh_builds_one_series_per_selected_measurement(source: FakeHistorySource) -> None:
    controller = _controller(source, "temp", "hum")
    asyncio.run(controller.load_catalog())
    series = asyncio.run(controller.refresh())

    assert series is not None
    assert [s.measurement_name for s in series] == ["Temperature", "Humidity"]
    assert series[0].unit == "°C"
    assert series[1].stats == Stats(avg=50.0, max=65.0, min=30.0, total=1000.0)
    assert controller.state.series == series
    assert controller.state.time_range is not None
    assert controller.state.time_range.granularity is Granularity.HOUR_15M
    assert [call[1] for call in source.calls] == ["temp", "hum"]


def test_refresh_without_catalog_uses_ids_as_names(source: FakeHistorySource) -> None:
    controller = _controller(source, "temp")
    series = asyncio.run(controller.refresh())
    assert series is not None
    assert series[0].measurement_name == "temp"


def test_refresh_skips_ids_missing_from_the_catalog(source: FakeHistorySource) -> None:
    controller = _controller(source, "temp", "other-device-metric")
    asyncio.run(controller.load_catalog())

    series = asyncio.run(controller.refresh())

    assert series is not None
    assert [s.measurement_id for s in series] == ["temp"]
    assert [call[1] for call in source.calls] == ["temp"]


def test_empty_selection_refreshes_to_no_series(source: FakeHistorySource) -> None:
    controller = _controller(source)
    assert asyncio.run(controller.refresh()) == []
    assert source.calls == []


def test_failed_fetch_degrades_to_empty_series(source: FakeHistorySource) -> None:
    source.failing.add("hum")
    controller = _controller(source, "temp", "hum")

    series = asyncio.run(controller.refresh())

    assert series is not None
    temp, hum = series
    assert temp.error is None
    assert any(p.has_data for p in temp.points)
    assert hum.error == "Backend responded 500"
    assert hum.stats == Stats.empty()
    assert len(hum.points) == len(temp.points)
    assert not any(p.has_data for p in hum.points)


def test_unexpected_fetch_error_is_contained(source: FakeHistorySource) -> None:
    class Broken(FakeHistorySource):
        async def fetch_rows(self, *, device_id, measurement_id, time_range):
            raise RuntimeError("boom")

    controller = _controller(Broken(), "temp")
    series = asyncio.run(controller.refresh())
    assert series is not None
    assert series[0].error == "Unexpected error"


def test_stale_result_is_discarded_when_selection_changes_mid_flight() -> None:
    source = GatedHistorySource()
    controller = _controller(source, "temp")
    previous = controller.state.series

    async def run():
        source.arm()
        task = asyncio.create_task(controller.refresh())
        await source.started.wait()
        assert controller.toggle_measurement("hum")
        source.gate.set()
        return await task

    assert asyncio.run(run()) is None
    assert controller.state.series is previous
    assert controller.state.time_range is None


def test_stale_result_is_discarded_when_period_changes_mid_flight() -> None:
    source = GatedHistorySource()
    controller = _controller(source, "temp")

    async def run():
        source.arm()
        task = asyncio.create_task(controller.refresh())
        await source.started.wait()
        controller.select_period("This year")
        source.gate.set()
        stale = await task
        source.arm()
        source.gate.set()
        fresh = await controller.refresh()
        return stale, fresh

    stale, fresh = asyncio.run(run())
    assert stale is None
    assert fresh is not None
    assert fresh[0].points[-1].label == "Oct"


def test_select_period_rejects_unknown_label_and_keeps_state(source: FakeHistorySource) -> None:
    controller = _controller(source, "temp")
    controller.select_period("This month")
    generation = controller.state.generation
    time_range = controller.state.time_range

    with pytest.raises(InvalidRange):
        controller.select_period("Last decade")

    assert controller.state.period == "This month"
    assert controller.state.generation == generation
    assert controller.state.time_range == time_range


def test_toggle_measurement_respects_capacity(source: FakeHistorySource) -> None:
    controller = _controller(source, "temp", "hum", "power")
    generation = controller.state.generation
    assert not controller.toggle_measurement("flow")
    assert controller.state.generation == generation
    assert controller.toggle_measurement("hum")
    assert controller.state.selection.ids == ("temp", "power")
    assert controller.state.generation == generation + 1


def test_deselecting_drops_series_immediately(source: FakeHistorySource) -> None:
    controller = _controller(source, "temp", "hum")
    asyncio.run(controller.refresh())
    controller.toggle_measurement("temp")
    assert [s.measurement_id for s in controller.state.series] == ["hum"]


def test_set_device_resets_the_view(source: FakeHistorySource) -> None:
    controller = _controller(source, "temp")
    asyncio.run(controller.load_catalog())
    asyncio.run(controller.refresh())

    assert controller.set_device("device-2")
    state = controller.state
    assert state.device is None
    assert state.catalog == {}
    assert len(state.selection) == 0
    assert state.series == []
    assert not controller.set_device("device-2")


def test_load_catalog(source: FakeHistorySource) -> None:
    controller = _controller(source)
    measurements = asyncio.run(controller.load_catalog())
    assert [m.id for m in measurements] == ["temp", "hum", "power", "flow"]
    assert controller.state.device is not None
    assert controller.state.device.name == "Boiler room"
    assert set(controller.state.catalog) == {"temp", "hum", "power", "flow"}


def test_point_disclosure_survives_refresh_but_not_new_queries(source: FakeHistorySource) -> None:
    controller = _controller(source, "temp")
    key = PointKey("temp", "max", 2)
    assert controller.toggle_point(key)
    asyncio.run(controller.refresh())
    assert controller.state.disclosure.is_visible(key)

    controller.select_period("Last 24h")
    assert not controller.state.disclosure.is_visible(key)


def test_chart_views_share_one_scale_and_downsample(source: FakeHistorySource) -> None:
    source.rows["power"] = [row(datetime(2026, 10, day, tzinfo=UTC), 10.0, max=90.0) for day in (1, 5, 9)]
    controller = _controller(source, "temp", "power", period="This month")
    asyncio.run(controller.refresh())

    views = chart_views(controller.state, max_bars=5, style=ChartStyle())

    assert [v.series.measurement_id for v in views] == ["temp", "power"]
    assert all(len(v.display_points) == 5 for v in views)
    assert len(views[0].series.points) == 9
    assert [p.label for p in views[1].display_points] == ["01/10", "05/10", "09/10", "13/10", "17/10"]
    assert views[0].layout.max_value == views[1].layout.max_value == pytest.approx(108.0)


def test_refresh_honours_bucket_policy(source: FakeHistorySource) -> None:
    state = HistoryState(device_id="device-1", selection=MeasurementSelection(["temp"]), period="Last 24h")
    controller = HistoryController(
        source=source, state=state, policy=BucketPolicy(day_group_hours=1), clock=lambda: NOW
    )
    series = asyncio.run(controller.refresh())
    assert series is not None
    assert len(series[0].points) == 10


def test_registry_reuses_and_evicts_least_recent() -> None:
    registry = HistoryViewRegistry(max_views=2, selection_capacity=3)
    a = registry.get_or_create("a", device_id="device-1")
    b = registry.get_or_create("b", device_id="device-1")
    assert registry.get_or_create("a", device_id="device-1") is a

    registry.get_or_create("c", device_id="device-1")

    assert len(registry) == 2
    assert registry.get_or_create("a", device_id="device-1") is a
    assert registry.get_or_create("b", device_id="device-1") is not b


def test_registry_applies_selection_capacity() -> None:
    registry = HistoryViewRegistry(max_views=4, selection_capacity=1)
    state = registry.get_or_create("a", device_id="device-1")
    assert state.selection.capacity == 1
