import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..geo.distance import Coordinate, accumulate, is_valid_coordinate
from .clock import Clock, SystemClock
from .events import (
    CommandResult,
    SessionCondition,
    SessionEvent,
    SessionEventType,
    SessionState,
)

logger = logging.getLogger(__name__)


@dataclass
class SessionStatus:
    """Current session status."""

    state: SessionState
    started_at: Optional[datetime]
    paused_at: Optional[datetime]
    stopped_at: Optional[datetime]
    elapsed_seconds: float
    distance_km: float
    point_count: int
    last_milestone_km: float


class ActivitySession:
    """Tracks one movement session: lifecycle, distance and net duration."""

    def __init__(self, clock: Optional[Clock] = None, milestone_km: float = 0.0):
        """
        Initialize the activity session.

        Args:
            clock: Source of the current instant (defaults to the wall clock)
            milestone_km: Emit a milestone event every N kilometers (0 disables)
        """
        self.clock: Clock = clock or SystemClock()
        self.milestone_km = milestone_km

        self._lock = threading.Lock()
        self._clear()

        logger.info(f"Initialized ActivitySession: milestone_km={milestone_km}")

    def _clear(self) -> None:
        self.state = SessionState.IDLE
        self.started_at: Optional[datetime] = None
        self.paused_at: Optional[datetime] = None
        self.stopped_at: Optional[datetime] = None
        self.total_paused = timedelta(0)
        self._coordinates: list[Coordinate] = []
        self._total_distance = 0.0
        self.last_milestone_km = 0.0

    def start(self) -> CommandResult:
        """Begin tracking a new session. Only allowed from IDLE."""
        with self._lock:
            if self.state != SessionState.IDLE:
                return self._reject("start", SessionCondition.ALREADY_ACTIVE)

            now = self.clock.now()
            self._clear()
            self.state = SessionState.TRACKING
            self.started_at = now

            logger.info(f"Session started at {now.isoformat()}")
            return self._accept("start", SessionEventType.STARTED, now)

    def pause(self) -> CommandResult:
        """Freeze the duration. Only allowed while TRACKING."""
        with self._lock:
            return self._pause_locked()

    def resume(self) -> CommandResult:
        """Continue after a pause. Only allowed while PAUSED."""
        with self._lock:
            return self._resume_locked()

    def pause_toggle(self) -> CommandResult:
        """Pause when tracking, resume when paused."""
        with self._lock:
            if self.state == SessionState.PAUSED:
                return self._resume_locked()
            return self._pause_locked()

    def stop(self) -> CommandResult:
        """Finish the session, keeping its totals until the next reset."""
        with self._lock:
            if self.state not in (SessionState.TRACKING, SessionState.PAUSED):
                return self._reject("stop", SessionCondition.NOT_ACTIVE)

            now = self.clock.now()
            if self.state == SessionState.PAUSED:
                # A stopped session keeps the duration it had when paused
                self.stopped_at = self.paused_at
                self.paused_at = None
            else:
                self.stopped_at = now
            self.state = SessionState.STOPPED

            logger.info(
                f"Session stopped: distance={self._total_distance:.3f}km, "
                f"elapsed={self._elapsed_locked(now).total_seconds():.1f}s"
            )
            return self._accept("stop", SessionEventType.STOPPED, now)

    def reset(self) -> CommandResult:
        """Return to IDLE from any state, clearing every accumulator."""
        with self._lock:
            now = self.clock.now()
            self._clear()
            logger.info("Session reset")
            return self._accept("reset", SessionEventType.RESET, now)

    def ingest_position(self, coordinate: Coordinate) -> CommandResult:
        """
        Apply a position update.

        Positions outside TRACKING are ignored (applied=False) since sources
        may deliver late callbacks after a pause or reset.

        Args:
            coordinate: Next position in arrival order

        Returns:
            CommandResult, with a DISTANCE_MILESTONE event when one was crossed
        """
        with self._lock:
            if not is_valid_coordinate(coordinate):
                return self._reject(
                    "ingest_position", SessionCondition.INVALID_COORDINATE
                )

            if self.state != SessionState.TRACKING:
                logger.debug(f"Ignoring position while {self.state.value}")
                return CommandResult(
                    command="ingest_position", state=self.state, applied=False
                )

            if self._coordinates:
                self._total_distance = accumulate(
                    self._coordinates[-1], coordinate, self._total_distance
                )
            self._coordinates.append(coordinate)

            event = self._check_milestone()
            return CommandResult(
                command="ingest_position", state=self.state, event=event
            )

    def elapsed(self, now: Optional[datetime] = None) -> timedelta:
        """
        Duration of the session as of ``now``, excluding paused time.

        Side-effect free; frozen while paused or stopped.
        """
        with self._lock:
            return self._elapsed_locked(now if now is not None else self.clock.now())

    def total_distance(self) -> float:
        with self._lock:
            return self._total_distance

    def current_state(self) -> SessionState:
        with self._lock:
            return self.state

    def path_points(self) -> tuple[Coordinate, ...]:
        """Read-only copy of the path in arrival order."""
        with self._lock:
            return tuple(self._coordinates)

    def get_status(self, now: Optional[datetime] = None) -> SessionStatus:
        """Get current session status."""
        with self._lock:
            elapsed = self._elapsed_locked(
                now if now is not None else self.clock.now()
            )
            return SessionStatus(
                state=self.state,
                started_at=self.started_at,
                paused_at=self.paused_at,
                stopped_at=self.stopped_at,
                elapsed_seconds=elapsed.total_seconds(),
                distance_km=self._total_distance,
                point_count=len(self._coordinates),
                last_milestone_km=self.last_milestone_km,
            )

    def _pause_locked(self) -> CommandResult:
        if self.state != SessionState.TRACKING:
            return self._reject("pause", SessionCondition.NOT_TRACKING)

        now = self.clock.now()
        self.paused_at = now
        self.state = SessionState.PAUSED

        logger.info(f"Session paused at {now.isoformat()}")
        return self._accept("pause", SessionEventType.PAUSED, now)

    def _resume_locked(self) -> CommandResult:
        if self.state != SessionState.PAUSED:
            return self._reject("resume", SessionCondition.NOT_PAUSED)

        now = self.clock.now()
        pause_length = now - self.paused_at
        if pause_length > timedelta(0):
            self.total_paused += pause_length
        self.paused_at = None
        self.state = SessionState.TRACKING

        logger.info(
            f"Session resumed after {pause_length.total_seconds():.1f}s pause "
            f"(total paused {self.total_paused.total_seconds():.1f}s)"
        )
        return self._accept("resume", SessionEventType.RESUMED, now)

    def _elapsed_locked(self, now: datetime) -> timedelta:
        if self.state == SessionState.IDLE or self.started_at is None:
            return timedelta(0)

        if self.state == SessionState.PAUSED:
            end = self.paused_at
        elif self.state == SessionState.STOPPED:
            end = self.stopped_at
        else:
            end = now

        elapsed = end - self.started_at - self.total_paused
        return max(elapsed, timedelta(0))

    def _check_milestone(self) -> Optional[SessionEvent]:
        if self.milestone_km <= 0:
            return None

        current_milestone = (
            math.floor(self._total_distance / self.milestone_km) * self.milestone_km
        )
        if current_milestone > self.last_milestone_km and current_milestone > 0:
            self.last_milestone_km = current_milestone
            logger.info(f"Milestone reached: {current_milestone:g}km")
            return self._make_event(
                SessionEventType.DISTANCE_MILESTONE,
                self.clock.now(),
                milestone_km=current_milestone,
            )
        return None

    def _make_event(
        self,
        event_type: SessionEventType,
        now: datetime,
        milestone_km: Optional[float] = None,
    ) -> SessionEvent:
        return SessionEvent(
            event_type=event_type,
            timestamp=now,
            state=self.state,
            distance_km=self._total_distance,
            elapsed_seconds=self._elapsed_locked(now).total_seconds(),
            milestone_km=milestone_km,
        )

    def _accept(
        self, command: str, event_type: SessionEventType, now: datetime
    ) -> CommandResult:
        return CommandResult(
            command=command,
            state=self.state,
            event=self._make_event(event_type, now),
        )

    def _reject(self, command: str, condition: SessionCondition) -> CommandResult:
        logger.warning(
            f"Rejected {command} while {self.state.value}: {condition.value}"
        )
        return CommandResult(
            command=command, state=self.state, condition=condition, applied=False
        )
