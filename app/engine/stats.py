from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Sequence

from app.models.history import RawAggregateRow, Stats

_TENTH = Decimal("0.1")
# Enough digits for any finite float written out to one decimal.
_PRECISION = 400


def round1(value: float) -> float:
    """Round to one decimal, halves away from zero (2.25 -> 2.3, -2.25 -> -2.3)."""
    value = float(value)
    if not math.isfinite(value):
        return value
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return float(Decimal(repr(value)).quantize(_TENTH, rounding=ROUND_HALF_UP))


def summarize(raw_rows: Sequence[RawAggregateRow]) -> Stats:
    """Summarize backend rows only; zero-filled timeline points never reach here."""
    if not raw_rows:
        return Stats.empty()

    count = len(raw_rows)
    return Stats(
        avg=round1(sum(r.avg / count for r in raw_rows)),
        max=round1(max(r.max for r in raw_rows)),
        min=round1(min(r.min for r in raw_rows)),
        total=round1(sum(r.total for r in raw_rows)),
    )
