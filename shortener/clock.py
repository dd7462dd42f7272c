"""Time source injected into services and the admin cache."""

import datetime
from typing import Protocol

__all__ = ["Clock", "SystemClock"]


class Clock(Protocol):
    def now(self) -> datetime.datetime: ...


class SystemClock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime.datetime:
        return datetime.datetime.now(datetime.timezone.utc)
