from __future__ import annotations


class HistoryError(Exception):
    """Base class for history chart errors."""


class InvalidRange(HistoryError, ValueError):
    def __init__(self, label: str) -> None:
        super().__init__(f"Unrecognized period label: {label!r}")
        self.label = label


class FetchFailure(HistoryError):
    def __init__(self, message: str, *, measurement_id: str | None = None) -> None:
        super().__init__(message)
        self.measurement_id = measurement_id


class StaleResponse(HistoryError):
    def __init__(self, *, snapshot: int, current: int) -> None:
        super().__init__(f"Result of generation {snapshot} superseded by {current}")
        self.snapshot = snapshot
        self.current = current
