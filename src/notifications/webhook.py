import asyncio
import logging
from typing import Optional

import aiohttp

from ..session.events import SessionEvent, SessionEventType

logger = logging.getLogger(__name__)


class WebhookSender:
    """Posts session events to an HTTP webhook."""

    def __init__(
        self,
        webhook_url: str,
        max_retries: int = 3,
        timeout: float = 5.0,
        notify_types: Optional[set[SessionEventType]] = None,
    ):
        """
        Initialize webhook sender.

        Args:
            webhook_url: Endpoint receiving the JSON payloads
            max_retries: Maximum retry attempts for failed requests
            timeout: Request timeout in seconds
            notify_types: Event types to forward (all when None)
        """
        self.webhook_url = webhook_url
        self.max_retries = max_retries
        self.timeout = timeout
        self.notify_types = notify_types
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(f"Initialized WebhookSender: url={webhook_url}")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    @staticmethod
    def build_payload(event: SessionEvent) -> dict:
        return {
            "event": f"activity_{event.event_type.name.lower()}",
            "state": event.state.value,
            "distance_km": round(event.distance_km, 3),
            "elapsed_seconds": round(event.elapsed_seconds, 1),
            "milestone_km": event.milestone_km,
            "timestamp": event.timestamp.isoformat(),
        }

    async def send_event(self, event: SessionEvent) -> bool:
        """
        Send a session event to the webhook.

        Args:
            event: Session event to send

        Returns:
            True if sent (or filtered out), False otherwise
        """
        if self.notify_types is not None and event.event_type not in self.notify_types:
            return True

        if not self.webhook_url:
            logger.warning("No webhook URL configured, skipping notification")
            return False

        return await self._send_with_retry(self.build_payload(event))

    async def _send_with_retry(self, payload: dict) -> bool:
        """Send payload with retry logic."""
        session = await self._get_session()

        for attempt in range(self.max_retries):
            try:
                async with session.post(self.webhook_url, json=payload) as response:
                    if response.status < 300:
                        logger.info(f"Webhook sent successfully: {payload['event']}")
                        return True
                    else:
                        logger.warning(
                            f"Webhook failed with status {response.status} "
                            f"(attempt {attempt + 1}/{self.max_retries})"
                        )
            except asyncio.TimeoutError:
                logger.warning(
                    f"Webhook timeout (attempt {attempt + 1}/{self.max_retries})"
                )
            except aiohttp.ClientError as e:
                logger.warning(
                    f"Webhook error: {e} (attempt {attempt + 1}/{self.max_retries})"
                )

            # Exponential backoff
            if attempt < self.max_retries - 1:
                await asyncio.sleep(2**attempt)

        logger.error(f"Webhook failed after {self.max_retries} attempts")
        return False

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
