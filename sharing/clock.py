from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

_TICKS_EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of the current UTC time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, tz-aware UTC."""
        pass


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def to_ticks(moment: datetime) -> int:
    """100-nanosecond intervals since 0001-01-01 UTC."""
    return (moment - _TICKS_EPOCH) // timedelta(microseconds=1) * 10
