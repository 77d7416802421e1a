"""HTTP API tests using FastAPI's TestClient against a manually clocked tracker."""

import inspect
import threading
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

import src.api.app as app_module
from src.api.formatting import format_distance, format_duration, format_start_time
from src.processor.tracker import ActivityTracker
from src.session.clock import ManualClock
from src.session.manager import ActivitySession


@pytest.fixture
def clock():
    return ManualClock(datetime(2024, 5, 1, 7, 30, 0))


@pytest.fixture
def tracker(clock):
    return ActivityTracker(session=ActivitySession(clock=clock, milestone_km=100.0))


@pytest.fixture
def client(tracker, monkeypatch):
    monkeypatch.setattr(app_module, "_tracker", tracker)
    # Lifespan is not entered without a context manager, so the injected
    # tracker is used as-is.
    return TestClient(app_module.app)


def post_position(client, latitude, longitude):
    return client.post("/positions", json={"latitude": latitude, "longitude": longitude})


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["source_running"] is False


def test_uninitialized_tracker_returns_503(monkeypatch):
    monkeypatch.setattr(app_module, "_tracker", None)
    client = TestClient(app_module.app)

    assert client.get("/status").status_code == 503


def test_idle_status(client):
    body = client.get("/status").json()

    assert body["state"] == "idle"
    assert body["start_time"] is None
    assert body["start_time_text"] == "-"
    assert body["duration_text"] == "-"
    assert body["distance_text"] == "-"
    assert body["points"] == 0


def test_full_session_flow(client, clock):
    assert client.post("/session/start").json() == {
        "status": "ok",
        "message": "Session started",
        "state": "tracking",
    }

    assert post_position(client, 0, 0).json()["status"] == "accepted"
    clock.advance(10)
    body = post_position(client, 0, 1).json()
    assert body["points"] == 2
    assert body["distance_km"] == pytest.approx(111.19, abs=0.1)

    assert client.post("/session/pause").json()["state"] == "paused"
    clock.advance(5)
    assert post_position(client, 0, 2).json()["status"] == "ignored"
    assert client.post("/session/resume").json()["state"] == "tracking"
    clock.advance(5)

    status = client.get("/status").json()
    assert status["duration_seconds"] == 15
    assert status["duration_text"] == "00:00:15"
    assert status["distance_text"] == "111.19"
    assert status["start_time_text"] == "07:30:00"
    assert status["last_milestone_km"] == 100.0

    path = client.get("/path").json()
    assert path["points"] == [
        {"latitude": 0.0, "longitude": 0.0},
        {"latitude": 0.0, "longitude": 1.0},
    ]

    events = [event["event"] for event in client.get("/events").json()["events"]]
    assert events == ["started", "distance_milestone", "paused", "resumed"]


def test_conditions_are_reported(client):
    pause = client.post("/session/pause")
    assert pause.status_code == 200
    assert pause.json()["status"] == "not_tracking"
    assert pause.json()["state"] == "idle"

    assert client.post("/session/resume").json()["status"] == "not_paused"
    assert client.post("/session/stop").json()["status"] == "not_active"
    assert client.post("/session/toggle").json()["status"] == "not_tracking"

    client.post("/session/start")
    assert client.post("/session/start").json()["status"] == "already_active"


def test_invalid_coordinate(client):
    client.post("/session/start")

    body = post_position(client, 95.0, 10.0).json()

    assert body["status"] == "invalid_coordinate"
    assert body["points"] == 0


def test_toggle_stop_and_reset(client, clock):
    client.post("/session/start")
    clock.advance(20)
    assert client.post("/session/toggle").json()["state"] == "paused"
    assert client.post("/session/stop").json()["state"] == "stopped"

    clock.advance(100)
    assert client.get("/status").json()["duration_seconds"] == 20

    reset = client.post("/session/reset").json()
    assert reset["status"] == "ok"
    assert reset["state"] == "idle"
    assert client.get("/path").json() == {"points": [], "distance_km": 0.0}
    assert client.get("/status").json()["duration_text"] == "-"


@pytest.mark.parametrize(
    "endpoint",
    [
        app_module.start_session,
        app_module.pause_session,
        app_module.resume_session,
        app_module.toggle_session,
        app_module.stop_session,
        app_module.reset_session,
        app_module.ingest_position,
    ],
)
def test_commands_run_in_threadpool(endpoint):
    # Source start/stop joins threads, so these must not run on the event loop
    assert not inspect.iscoroutinefunction(endpoint)


def test_events_readable_while_events_are_recorded(client, tracker, clock):
    client.post("/session/start")
    event = tracker.events_snapshot()[0]
    done = threading.Event()

    def record_events():
        while not done.is_set():
            tracker._handle_session_event(event)

    producer = threading.Thread(target=record_events, daemon=True)
    producer.start()
    try:
        for _ in range(200):
            response = client.get("/events")
            assert response.status_code == 200
            assert len(response.json()["events"]) <= 50
    finally:
        done.set()
        producer.join(timeout=5)


@pytest.mark.parametrize(
    "seconds,text",
    [(0, "00:00:00"), (59.9, "00:00:59"), (61, "00:01:01"), (3600 * 27 + 5, "27:00:05"), (-3, "00:00:00")],
)
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text


def test_format_distance_and_start_time():
    assert format_distance(3.14159) == "3.14"
    assert format_start_time(None) == "-"
    assert format_start_time(datetime(2024, 1, 1, 18, 5, 9)) == "18:05:09"
