"""Tests for webhook payloads and event filtering."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, patch

import aiohttp

from src.notifications.webhook import WebhookSender
from src.session.events import SessionEvent, SessionEventType, SessionState


def make_event(event_type=SessionEventType.DISTANCE_MILESTONE):
    return SessionEvent(
        event_type=event_type,
        timestamp=datetime(2024, 5, 1, 8, 0, 0),
        state=SessionState.TRACKING,
        distance_km=5.01234,
        elapsed_seconds=1800.04,
        milestone_km=5.0,
    )


def test_payload():
    payload = WebhookSender.build_payload(make_event())

    assert payload == {
        "event": "activity_distance_milestone",
        "state": "tracking",
        "distance_km": 5.012,
        "elapsed_seconds": 1800.0,
        "milestone_km": 5.0,
        "timestamp": "2024-05-01T08:00:00",
    }


def test_no_url_skips_sending():
    sender = WebhookSender(webhook_url="")

    with patch.object(sender, "_send_with_retry", new=AsyncMock()) as send:
        assert asyncio.run(sender.send_event(make_event())) is False
        send.assert_not_called()


def test_filtered_event_types_are_not_sent():
    sender = WebhookSender(
        webhook_url="http://hooks.example/activity",
        notify_types={SessionEventType.DISTANCE_MILESTONE},
    )

    with patch.object(sender, "_send_with_retry", new=AsyncMock(return_value=True)) as send:
        assert asyncio.run(sender.send_event(make_event(SessionEventType.PAUSED))) is True
        send.assert_not_called()

        assert asyncio.run(sender.send_event(make_event())) is True
        send.assert_awaited_once()


class StubResponse:
    def __init__(self, status):
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class StubClientSession:
    """Stands in for aiohttp.ClientSession, answering with queued statuses or errors."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.posts = []
        self.closed = False

    def post(self, url, json):
        self.posts.append((url, json))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return StubResponse(outcome)


def test_retries_with_backoff_until_success():
    sender = WebhookSender(webhook_url="http://hooks.example/activity", max_retries=3)
    sender._session = StubClientSession([500, aiohttp.ClientConnectionError("refused"), 204])

    with patch("src.notifications.webhook.asyncio.sleep", new=AsyncMock()) as sleep:
        assert asyncio.run(sender.send_event(make_event())) is True

    assert len(sender._session.posts) == 3
    assert sender._session.posts[0][1]["event"] == "activity_distance_milestone"
    assert [c.args[0] for c in sleep.await_args_list] == [1, 2]


def test_gives_up_after_max_retries():
    sender = WebhookSender(webhook_url="http://hooks.example/activity", max_retries=2)
    sender._session = StubClientSession([503, 503])

    with patch("src.notifications.webhook.asyncio.sleep", new=AsyncMock()) as sleep:
        assert asyncio.run(sender.send_event(make_event())) is False

    assert len(sender._session.posts) == 2
    sleep.assert_awaited_once_with(1)
