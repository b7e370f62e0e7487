"""
Clocks

Holds expire, checkouts time out and role assignments lapse, so nothing in
the domain reads the system clock itself. Services are handed a
TimeProvider; entity methods take an explicit `now` and fall back to the
module default.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class TimeProvider(Protocol):
    def now(self) -> datetime:
        """Current time, timezone-aware UTC"""
        ...


class RealTimeProvider:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TestTimeProvider:
    """
    A clock that only moves when told to

    Example:
        >>> clock = TestTimeProvider(datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc))
        >>> clock.advance_minutes(16)  # past the listing hold window
    """

    __test__ = False  # not a pytest test class

    def __init__(self, initial_time: datetime | None = None) -> None:
        self._now = initial_time or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> None:
        self._now += delta

    def advance_minutes(self, minutes: int) -> None:
        self.advance(timedelta(minutes=minutes))


default_time_provider: TimeProvider = RealTimeProvider()


def resolve_now(now: datetime | None) -> datetime:
    return now if now is not None else default_time_provider.now()
