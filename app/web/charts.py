from __future__ import annotations

from dataclasses import dataclass

from markupsafe import Markup

from app.engine.chart import ChartLayout
from app.web.templates import templates


@dataclass(frozen=True)
class SvgMargins:
    left: float = 44.0
    top: float = 18.0
    right: float = 8.0
    bottom: float = 24.0


DEFAULT_MARGINS = SvgMargins()


def render_svg(layout: ChartLayout, margins: SvgMargins = DEFAULT_MARGINS) -> Markup:
    template = templates.get_template("chart.svg")
    return Markup(
        template.render(
            layout=layout,
            margins=margins,
            total_width=margins.left + layout.width + margins.right,
            total_height=margins.top + layout.height + margins.bottom,
        )
    )
