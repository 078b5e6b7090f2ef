"""Geometry for the history chart: avg bars with max/min line overlays.

All coordinates are in plot space: x grows to the right from the first bar
slot, y grows downwards from the top of the plot, so a value equal to the
scale maximum sits at y=0 and zero sits at y=plot_height.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, NamedTuple, Sequence

from app.engine.stats import round1
from app.models.history import ChartPoint

VALUE_FIELDS = ("avg", "max", "min", "total")
OVERLAY_KEYS: tuple[str, ...] = ("max", "min")


@dataclass(frozen=True)
class ChartStyle:
    bar_width: float = 16.0
    bar_gap: float = 28.0
    plot_height: float = 200.0
    headroom: float = 1.2
    min_scale: float = 1.0
    y_steps: int = 5
    label_offset: float = 4.0

    @property
    def slot(self) -> float:
        return self.bar_width + self.bar_gap

    def x_center(self, index: int) -> float:
        return index * self.slot + self.bar_width / 2

    def y_for(self, value: float, max_value: float) -> float:
        return self.plot_height * (1 - value / max_value)


class PointKey(NamedTuple):
    chart_key: str
    series_key: str
    index: int


class PointDisclosure:
    """Per-marker label visibility; each key toggles independently."""

    def __init__(self) -> None:
        self._visible: dict[PointKey, bool] = {}

    def toggle(self, key: PointKey) -> bool:
        visible = not self._visible.get(key, False)
        self._visible[key] = visible
        return visible

    def is_visible(self, key: PointKey) -> bool:
        return self._visible.get(key, False)

    def clear(self) -> None:
        self._visible.clear()


@dataclass(frozen=True)
class BarGeometry:
    index: int
    x: float
    y: float
    width: float
    height: float
    value: float
    value_label: str
    value_label_y: float
    time_label: str
    has_data: bool


@dataclass(frozen=True)
class Vertex:
    x: float
    y: float
    value: float


@dataclass(frozen=True)
class OverlayLine:
    series_key: str
    vertices: tuple[Vertex, ...]

    @property
    def svg_points(self) -> str:
        return " ".join(f"{v.x:.2f},{v.y:.2f}" for v in self.vertices)


@dataclass(frozen=True)
class Marker:
    key: PointKey
    x: float
    y: float
    value: float
    label_visible: bool

    @property
    def text(self) -> str:
        return f"{round1(self.value):.1f}"


@dataclass(frozen=True)
class YTick:
    value: float
    y: float
    label: str


@dataclass(frozen=True)
class ChartLayout:
    chart_key: str
    width: float
    height: float
    max_value: float
    bars: tuple[BarGeometry, ...]
    overlays: tuple[OverlayLine, ...]
    markers: tuple[Marker, ...]
    y_ticks: tuple[YTick, ...]


def scale_max(series_points: Iterable[Sequence[ChartPoint]], style: ChartStyle) -> float:
    """Shared y-axis maximum: the largest ``max`` of all visible points plus headroom.

    The ``min_scale`` floor keeps an all-zero chart from dividing by zero.
    """
    peak = style.min_scale
    for points in series_points:
        for point in points:
            if point.max > peak:
                peak = point.max
    return peak * style.headroom


def y_ticks(max_value: float, style: ChartStyle) -> tuple[YTick, ...]:
    step = max_value / style.y_steps
    ticks = []
    for i in range(style.y_steps + 1):
        value = step * i
        ticks.append(YTick(value=value, y=style.y_for(value, max_value), label=f"{value:.1f}"))
    return tuple(ticks)


def layout_chart(
    points: Sequence[ChartPoint],
    max_value: float,
    style: ChartStyle = ChartStyle(),
    *,
    chart_key: str = "chart",
    overlays: Sequence[str] = OVERLAY_KEYS,
    disclosure: PointDisclosure | None = None,
) -> ChartLayout:
    if max_value <= 0:
        raise ValueError("max_value must be positive")
    for series_key in overlays:
        if series_key not in VALUE_FIELDS:
            raise ValueError(f"Unknown overlay series '{series_key}'")

    bars: list[BarGeometry] = []
    for i, point in enumerate(points):
        height = min(max(style.plot_height * point.avg / max_value, 0.0), style.plot_height)
        top = style.plot_height - height
        bars.append(
            BarGeometry(
                index=i,
                x=i * style.slot,
                y=top,
                width=style.bar_width,
                height=height,
                value=point.avg,
                value_label=f"{round1(point.avg):.1f}",
                value_label_y=top - style.label_offset,
                time_label=point.label,
                has_data=point.has_data,
            )
        )

    lines: list[OverlayLine] = []
    markers: list[Marker] = []
    for series_key in overlays:
        vertices: list[Vertex] = []
        for i, point in enumerate(points):
            value = float(getattr(point, series_key))
            vertex = Vertex(x=style.x_center(i), y=style.y_for(value, max_value), value=value)
            vertices.append(vertex)
            key = PointKey(chart_key, series_key, i)
            markers.append(
                Marker(
                    key=key,
                    x=vertex.x,
                    y=vertex.y,
                    value=value,
                    label_visible=disclosure.is_visible(key) if disclosure is not None else False,
                )
            )
        lines.append(OverlayLine(series_key=series_key, vertices=tuple(vertices)))

    return ChartLayout(
        chart_key=chart_key,
        width=max(len(points), 1) * style.slot,
        height=style.plot_height,
        max_value=max_value,
        bars=tuple(bars),
        overlays=tuple(lines),
        markers=tuple(markers),
        y_ticks=y_ticks(max_value, style),
    )
