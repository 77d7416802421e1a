from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Optional


class SessionState(Enum):
    """Lifecycle states of an activity session."""

    IDLE = "idle"
    TRACKING = "tracking"
    PAUSED = "paused"
    STOPPED = "stopped"


class SessionCondition(Enum):
    """Reasons a session command was rejected."""

    ALREADY_ACTIVE = "already_active"
    NOT_TRACKING = "not_tracking"
    NOT_PAUSED = "not_paused"
    NOT_ACTIVE = "not_active"
    INVALID_COORDINATE = "invalid_coordinate"


class SessionEventType(Enum):
    """Types of session events."""

    STARTED = auto()
    PAUSED = auto()
    RESUMED = auto()
    STOPPED = auto()
    RESET = auto()
    DISTANCE_MILESTONE = auto()


@dataclass
class SessionEvent:
    """Represents a session event."""

    event_type: SessionEventType
    timestamp: datetime
    state: SessionState
    distance_km: float
    elapsed_seconds: float
    milestone_km: Optional[float] = None


@dataclass
class CommandResult:
    """Outcome of a session command: either applied or a named condition."""

    command: str
    state: SessionState
    condition: Optional[SessionCondition] = None
    event: Optional[SessionEvent] = None
    applied: bool = True

    @property
    def ok(self) -> bool:
        return self.condition is None
