import asyncio
import logging
import threading
from collections import deque
from typing import Optional

from ..config.settings import AppConfig
from ..geo.distance import Coordinate
from ..notifications.webhook import WebhookSender
from ..session.clock import Clock
from ..session.events import CommandResult, SessionEvent
from ..session.manager import ActivitySession
from ..stream.positions import (
    PositionSource,
    ReplayPositionSource,
    load_gpx_track,
)

logger = logging.getLogger(__name__)


class ActivityTracker:
    """Wires a position source, the activity session and notifications."""

    def __init__(
        self,
        session: ActivitySession,
        source: Optional[PositionSource] = None,
        webhook_sender: Optional[WebhookSender] = None,
        max_events: int = 50,
    ):
        self.session = session
        self.source = source
        self.webhook_sender = webhook_sender

        self.recent_events: deque[SessionEvent] = deque(maxlen=max_events)
        self.last_position_error: Optional[str] = None
        self.positions_received = 0
        self._lock = threading.Lock()

        # Notification loop
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, config: AppConfig, clock: Optional[Clock] = None) -> "ActivityTracker":
        """Build the tracker and its collaborators from application config."""
        session = ActivitySession(
            clock=clock, milestone_km=config.session.milestone_km
        )

        source = None
        if config.position.gpx_path:
            source = ReplayPositionSource(
                load_gpx_track(config.position.gpx_path),
                interval=config.position.replay_interval,
            )

        webhook_sender = WebhookSender(
            webhook_url=config.webhook.url,
            max_retries=config.webhook.max_retries,
            timeout=config.webhook.timeout,
        )
        return cls(session=session, source=source, webhook_sender=webhook_sender)

    def launch(self) -> None:
        """Start the background loop used for webhook delivery."""
        if self._loop_thread is not None:
            return

        self._event_loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(
            target=self._event_loop.run_forever, daemon=True
        )
        self._loop_thread.start()
        logger.info("ActivityTracker launched")

    async def shutdown(self) -> None:
        """Stop the position source and the notification loop."""
        self._stop_source()

        if self._event_loop is not None:
            if self.webhook_sender:
                future = asyncio.run_coroutine_threadsafe(
                    self.webhook_sender.close(), self._event_loop
                )
                await asyncio.wrap_future(future)
            self._event_loop.call_soon_threadsafe(self._event_loop.stop)
            if self._loop_thread:
                self._loop_thread.join(timeout=5)
            self._event_loop.close()
            self._event_loop = None
            self._loop_thread = None

        logger.info("ActivityTracker stopped")

    def start(self) -> CommandResult:
        result = self.session.start()
        if result.ok:
            self._start_source()
        return self._handle_result(result)

    def pause(self) -> CommandResult:
        result = self.session.pause()
        if result.ok:
            self._stop_source()
        return self._handle_result(result)

    def resume(self) -> CommandResult:
        result = self.session.resume()
        if result.ok:
            self._start_source()
        return self._handle_result(result)

    def toggle_pause(self) -> CommandResult:
        result = self.session.pause_toggle()
        if result.ok:
            if result.command == "resume":
                self._start_source()
            else:
                self._stop_source()
        return self._handle_result(result)

    def stop(self) -> CommandResult:
        result = self.session.stop()
        if result.ok:
            self._stop_source()
        return self._handle_result(result)

    def reset(self) -> CommandResult:
        self._stop_source()
        if isinstance(self.source, ReplayPositionSource):
            self.source.rewind()
        self.last_position_error = None
        with self._lock:
            self.positions_received = 0
        return self._handle_result(self.session.reset())

    def handle_position(self, coordinate: Coordinate) -> CommandResult:
        """Position source callback; forwards the position to the session."""
        with self._lock:
            self.positions_received += 1
        return self._handle_result(self.session.ingest_position(coordinate))

    def handle_position_error(self, error: Exception) -> None:
        """Position source error callback."""
        logger.error(f"Position source error: {error}")
        self.last_position_error = str(error)

    def events_snapshot(self) -> list[SessionEvent]:
        """Copy of the recent events, oldest first."""
        with self._lock:
            return list(self.recent_events)

    def _start_source(self) -> None:
        if self.source is None:
            return
        self.last_position_error = None
        self.source.start(self.handle_position, self.handle_position_error)

    def _stop_source(self) -> None:
        if self.source is not None:
            self.source.stop()

    def _handle_result(self, result: CommandResult) -> CommandResult:
        if result.event is not None:
            self._handle_session_event(result.event)
        return result

    def _handle_session_event(self, event: SessionEvent) -> None:
        """Record a session event and send the webhook if the loop is up."""
        with self._lock:
            self.recent_events.append(event)

        if self.webhook_sender is None or self._event_loop is None:
            return
        if not self.webhook_sender.webhook_url:
            return

        future = asyncio.run_coroutine_threadsafe(
            self.webhook_sender.send_event(event), self._event_loop
        )
        future.add_done_callback(self._log_delivery_failure)

    @staticmethod
    def _log_delivery_failure(future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Webhook error: {error}")
