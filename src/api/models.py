from typing import Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    source_running: bool
    uptime_seconds: float


class StatusResponse(BaseModel):
    state: str
    start_time: Optional[str] = None
    start_time_text: str
    duration_seconds: float
    duration_text: str
    distance_km: float
    distance_text: str
    points: int
    last_milestone_km: float
    position_error: Optional[str] = None


class SessionActionResponse(BaseModel):
    status: str
    message: str
    state: str


class PositionRequest(BaseModel):
    latitude: float
    longitude: float


class PositionResponse(BaseModel):
    status: str
    state: str
    distance_km: float
    points: int


class PathPoint(BaseModel):
    latitude: float
    longitude: float


class PathResponse(BaseModel):
    points: list[PathPoint]
    distance_km: float


class EventInfo(BaseModel):
    event: str
    timestamp: str
    state: str
    distance_km: float
    elapsed_seconds: float
    milestone_km: Optional[float] = None


class EventsResponse(BaseModel):
    events: list[EventInfo]
