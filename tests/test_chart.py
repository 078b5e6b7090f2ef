from __future__ import annotations

import pytest

from app.engine.chart import (
    ChartStyle,
    PointDisclosure,
    PointKey,
    layout_chart,
    scale_max,
)
from app.models.history import ChartPoint
from tests.fakes import NOW

STYLE = ChartStyle()


def _point(avg: float, max: float, min: float, *, has_data: bool = True) -> ChartPoint:
    return ChartPoint(label="09:00", bucket=NOW, avg=avg, max=max, min=min, total=avg, has_data=has_data)


def test_scale_max_is_shared_peak_with_headroom() -> None:
    first = [_point(5, 10, 1)]
    second = [_point(20, 40, 2), _point(1, 2, 0)]
    assert scale_max([first, second], STYLE) == pytest.approx(48.0)


def test_scale_max_has_a_floor_for_empty_charts() -> None:
    assert scale_max([], STYLE) == pytest.approx(1.2)
    assert scale_max([[_point(0, 0, 0, has_data=False)]], STYLE) == pytest.approx(1.2)


def test_bar_geometry() -> None:
    points = [_point(50, 80, 20), _point(100, 100, 100)]
    layout = layout_chart(points, 100.0)

    first, second = layout.bars
    assert first.x == 0
    assert first.width == STYLE.bar_width
    assert first.height == pytest.approx(100.0)
    assert first.y == pytest.approx(100.0)
    assert first.value_label == "50.0"
    assert first.value_label_y == pytest.approx(96.0)
    assert second.x == STYLE.slot
    assert second.y == pytest.approx(0.0)
    assert layout.width == 2 * STYLE.slot
    assert layout.height == STYLE.plot_height


def test_bar_height_is_clamped_into_the_plot() -> None:
    layout = layout_chart([_point(-5, 0, -10), _point(500, 500, 0)], 100.0)
    assert layout.bars[0].height == 0.0
    assert layout.bars[0].y == STYLE.plot_height
    assert layout.bars[1].height == STYLE.plot_height


def test_overlays_follow_max_and_min_through_bar_centers() -> None:
    points = [_point(50, 80, 20), _point(60, 100, 0)]
    layout = layout_chart(points, 100.0)

    assert [line.series_key for line in layout.overlays] == ["max", "min"]
    max_line, min_line = layout.overlays
    assert [v.x for v in max_line.vertices] == [STYLE.x_center(0), STYLE.x_center(1)]
    assert [v.y for v in max_line.vertices] == pytest.approx([40.0, 0.0])
    assert [v.y for v in min_line.vertices] == pytest.approx([160.0, 200.0])
    assert max_line.svg_points == "8.00,40.00 52.00,0.00"


def test_every_overlay_vertex_has_a_hidden_marker() -> None:
    layout = layout_chart([_point(1, 2, 0)] * 3, 10.0, chart_key="temp")
    assert len(layout.markers) == 6
    assert {m.key.series_key for m in layout.markers} == {"max", "min"}
    assert not any(m.label_visible for m in layout.markers)


def test_disclosure_toggles_markers_independently() -> None:
    disclosure = PointDisclosure()
    key = PointKey("temp", "max", 1)
    assert disclosure.toggle(key)

    layout = layout_chart([_point(1, 2.25, 0)] * 3, 10.0, chart_key="temp", disclosure=disclosure)
    visible = [m for m in layout.markers if m.label_visible]
    assert [m.key for m in visible] == [key]
    assert visible[0].text == "2.3"

    assert not disclosure.toggle(key)
    assert not disclosure.is_visible(key)


def test_disclosure_clear() -> None:
    disclosure = PointDisclosure()
    disclosure.toggle(PointKey("a", "max", 0))
    disclosure.toggle(PointKey("a", "min", 0))
    assert disclosure.is_visible(PointKey("a", "max", 0))
    assert disclosure.is_visible(PointKey("a", "min", 0))
    disclosure.clear()
    assert not disclosure.is_visible(PointKey("a", "max", 0))
    assert not disclosure.is_visible(PointKey("a", "min", 0))


def test_y_ticks_span_zero_to_max() -> None:
    layout = layout_chart([_point(1, 1, 1)], 50.0)
    assert [t.label for t in layout.y_ticks] == ["0.0", "10.0", "20.0", "30.0", "40.0", "50.0"]
    assert layout.y_ticks[0].y == STYLE.plot_height
    assert layout.y_ticks[-1].y == 0.0


def test_empty_chart_still_has_a_width() -> None:
    layout = layout_chart([], 1.2)
    assert layout.bars == ()
    assert layout.width == STYLE.slot


@pytest.mark.parametrize("max_value", [0.0, -1.0])
def test_max_value_must_be_positive(max_value: float) -> None:
    with pytest.raises(ValueError):
        layout_chart([_point(1, 1, 1)], max_value)


def test_unknown_overlay_is_rejected() -> None:
    with pytest.raises(ValueError):
        layout_chart([_point(1, 1, 1)], 10.0, overlays=("median",))
