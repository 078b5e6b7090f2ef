from __future__ import annotations

from typing import Iterable, Iterator

DEFAULT_CAPACITY = 3


class MeasurementSelection:
    """Ordered, capacity-bounded set of measurement ids."""

    def __init__(self, ids: Iterable[str] = (), *, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._ids: list[str] = []
        for measurement_id in ids:
            self.add(measurement_id)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._ids)

    def is_full(self) -> bool:
        return len(self._ids) >= self._capacity

    def add(self, measurement_id: str) -> bool:
        if measurement_id in self._ids or self.is_full():
            return False
        self._ids.append(measurement_id)
        return True

    def remove(self, measurement_id: str) -> bool:
        if measurement_id not in self._ids:
            return False
        self._ids.remove(measurement_id)
        return True

    def toggle(self, measurement_id: str) -> bool:
        if measurement_id in self._ids:
            return self.remove(measurement_id)
        return self.add(measurement_id)

    def clear(self) -> None:
        self._ids.clear()

    def __contains__(self, measurement_id: object) -> bool:
        return measurement_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"MeasurementSelection({self._ids!r}, capacity={self._capacity})"
