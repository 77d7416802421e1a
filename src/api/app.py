import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING

from fastapi import FastAPI, HTTPException

from ..config.settings import get_config

# Configure logging to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)
from ..geo.distance import Coordinate
from ..session.events import CommandResult, SessionCondition, SessionState
from .formatting import format_distance, format_duration, format_start_time
from .models import (
    EventInfo,
    EventsResponse,
    HealthResponse,
    PathPoint,
    PathResponse,
    PositionRequest,
    PositionResponse,
    SessionActionResponse,
    StatusResponse,
)

if TYPE_CHECKING:
    from ..processor.tracker import ActivityTracker

logger = logging.getLogger(__name__)

# Global reference to tracker (set during lifespan)
_tracker: "ActivityTracker | None" = None
_start_time: float = 0

CONDITION_MESSAGES = {
    SessionCondition.ALREADY_ACTIVE: "Activity already started. Pause or reset first.",
    SessionCondition.NOT_TRACKING: "Session is not tracking",
    SessionCondition.NOT_PAUSED: "Session is not paused",
    SessionCondition.NOT_ACTIVE: "No active session",
    SessionCondition.INVALID_COORDINATE: "Coordinate out of range",
}

SUCCESS_MESSAGES = {
    "start": "Session started",
    "pause": "Session paused",
    "resume": "Session resumed",
    "stop": "Session stopped",
    "reset": "Session has been reset",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global _tracker, _start_time
    from ..processor.tracker import ActivityTracker

    _start_time = time.time()
    config = get_config()

    _tracker = ActivityTracker.from_config(config)
    _tracker.launch()

    logger.info("Application started")

    yield

    # Shutdown
    if _tracker:
        await _tracker.shutdown()
    logger.info("Application stopped")


app = FastAPI(
    title="Activity Tracker",
    description="Tracks distance and duration of a movement session",
    version="1.0.0",
    lifespan=lifespan,
)


def get_tracker() -> "ActivityTracker":
    """Get the activity tracker instance."""
    if _tracker is None:
        raise HTTPException(status_code=503, detail="Tracker not initialized")
    return _tracker


def _action_response(result: CommandResult) -> SessionActionResponse:
    if result.ok:
        return SessionActionResponse(
            status="ok",
            message=SUCCESS_MESSAGES.get(result.command, "OK"),
            state=result.state.value,
        )
    return SessionActionResponse(
        status=result.condition.value,
        message=CONDITION_MESSAGES[result.condition],
        state=result.state.value,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    tracker = get_tracker()
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now().isoformat(),
        source_running=tracker.source.is_running() if tracker.source else False,
        uptime_seconds=time.time() - _start_time,
    )


@app.get("/status", response_model=StatusResponse)
async def get_status():
    """Get session status with display-ready duration and distance."""
    tracker = get_tracker()
    status = tracker.session.get_status()

    if status.state == SessionState.IDLE:
        duration_text = distance_text = "-"
    else:
        duration_text = format_duration(status.elapsed_seconds)
        distance_text = format_distance(status.distance_km)

    return StatusResponse(
        state=status.state.value,
        start_time=status.started_at.isoformat() if status.started_at else None,
        start_time_text=format_start_time(status.started_at),
        duration_seconds=status.elapsed_seconds,
        duration_text=duration_text,
        distance_km=status.distance_km,
        distance_text=distance_text,
        points=status.point_count,
        last_milestone_km=status.last_milestone_km,
        position_error=tracker.last_position_error,
    )


@app.post("/session/start", response_model=SessionActionResponse)
def start_session():
    return _action_response(get_tracker().start())


@app.post("/session/pause", response_model=SessionActionResponse)
def pause_session():
    return _action_response(get_tracker().pause())


@app.post("/session/resume", response_model=SessionActionResponse)
def resume_session():
    return _action_response(get_tracker().resume())


@app.post("/session/toggle", response_model=SessionActionResponse)
def toggle_session():
    """Pause when tracking, resume when paused."""
    return _action_response(get_tracker().toggle_pause())


@app.post("/session/stop", response_model=SessionActionResponse)
def stop_session():
    return _action_response(get_tracker().stop())


@app.post("/session/reset", response_model=SessionActionResponse)
def reset_session():
    """Reset the session from any state."""
    return _action_response(get_tracker().reset())


@app.post("/positions", response_model=PositionResponse)
def ingest_position(position: PositionRequest):
    """Push a position from an external location provider."""
    tracker = get_tracker()
    result = tracker.handle_position(
        Coordinate(latitude=position.latitude, longitude=position.longitude)
    )

    if not result.ok:
        outcome = result.condition.value
    elif result.applied:
        outcome = "accepted"
    else:
        outcome = "ignored"

    session_status = tracker.session.get_status()
    return PositionResponse(
        status=outcome,
        state=result.state.value,
        distance_km=session_status.distance_km,
        points=session_status.point_count,
    )


@app.get("/path", response_model=PathResponse)
async def get_path():
    """Ordered path points for a map renderer."""
    tracker = get_tracker()
    points = tracker.session.path_points()
    return PathResponse(
        points=[
            PathPoint(latitude=point.latitude, longitude=point.longitude)
            for point in points
        ],
        distance_km=tracker.session.total_distance(),
    )


@app.get("/events", response_model=EventsResponse)
async def get_events():
    """Recent session events, oldest first."""
    tracker = get_tracker()
    return EventsResponse(
        events=[
            EventInfo(
                event=event.event_type.name.lower(),
                timestamp=event.timestamp.isoformat(),
                state=event.state.value,
                distance_km=event.distance_km,
                elapsed_seconds=event.elapsed_seconds,
                milestone_km=event.milestone_km,
            )
            for event in tracker.events_snapshot()
        ]
    )
