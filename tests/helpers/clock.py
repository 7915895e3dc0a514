"""Deterministic clocks for time-dependent components."""

from datetime import datetime, timedelta, timezone

REFERENCE_NOW = datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock that only moves when told to.

    `now()` returns a UTC datetime and `monotonic()` a float, both advanced
    together by `advance(seconds)`.
    """

    def __init__(self, start: datetime = REFERENCE_NOW):
        self._start = start
        self._elapsed = 0.0

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def monotonic(self) -> float:
        return 1000.0 + self._elapsed

    def advance(self, seconds: float) -> None:
        self._elapsed += seconds
