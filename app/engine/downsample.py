from __future__ import annotations

import math
from typing import Sequence, TypeVar

T = TypeVar("T")


def stride_for(length: int, max_bars: int) -> int:
    if max_bars < 1:
        raise ValueError("max_bars must be >= 1")
    if length <= max_bars:
        return 1
    return math.ceil(length / max_bars)


def downsample(points: Sequence[T], max_bars: int) -> list[T]:
    """Keep every ``stride``-th point so at most ``max_bars`` remain."""
    stride = stride_for(len(points), max_bars)
    if stride == 1:
        return list(points)
    return [p for i, p in enumerate(points) if i % stride == 0]
