from datetime import datetime, timedelta
from typing import Optional, Protocol


class Clock(Protocol):
    """Supplies the current instant to the session."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock backed by ``datetime.now()``."""

    def now(self) -> datetime:
        return datetime.now()


class ManualClock:
    """Clock that only moves when told to. Used for tests and replays."""

    def __init__(self, start: Optional[datetime] = None):
        self.current_time = start or datetime(2024, 1, 1, 8, 0, 0)

    def now(self) -> datetime:
        return self.current_time

    def advance(self, seconds: float = 0.0, **kwargs: float) -> datetime:
        """Move the clock forward and return the new instant."""
        self.current_time += timedelta(seconds=seconds, **kwargs)
        return self.current_time

    def set(self, instant: datetime) -> None:
        self.current_time = instant
