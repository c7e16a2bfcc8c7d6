"""Injectable wall clock so ledger timestamps can be pinned in tests."""

from datetime import datetime, timedelta, timezone


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Returns the same instant until advanced."""

    def __init__(self, fixed_time: datetime | None = None):
        self._time = fixed_time or datetime(2024, 6, 1, 9, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._time

    def advance(self, seconds: int = 1) -> datetime:
        self._time = self._time + timedelta(seconds=seconds)
        return self._time
