"""
NATS writer for the disk health collector.

Publishes one JSON AlertEvent per device and cycle on the configured subject.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import nats

from diskhealth.models import AlertEvent
from diskhealth.writer.base import Writer

LOG = logging.getLogger(__name__)


class NatsWriter(Writer):
    """
    Writer that pushes alert events to a NATS subject.

    The collector loop is synchronous, so the writer owns a private asyncio event
    loop and drives the nats client on it. The connection is opened once by
    start() and held until close().
    """

    def __init__(self, url: str, subject: str, timeout: int = 5, client: Optional[Any] = None):
        """
        Args:
            url: NATS server URL, e.g. ``nats://nats:4222``
            subject: Subject to publish events on
            timeout: Seconds allowed for connect and for each publish
            client: Already connected client; skips connecting in start()
        """
        self.url = url
        self.subject = subject
        self.timeout = timeout
        self._client = client
        self._loop = asyncio.new_event_loop()
        LOG.info(f"NatsWriter initialized for {url}, subject {subject}")

    def start(self) -> None:
        """Connect to NATS. Raises on failure."""
        if self._client is not None:
            return
        try:
            # nats.connect keeps retrying the first connect; bound the whole attempt
            self._client = self._loop.run_until_complete(asyncio.wait_for(
                nats.connect(servers=[self.url], connect_timeout=self.timeout, allow_reconnect=True),
                timeout=self.timeout))
            LOG.info(f"Connected to NATS at {self.url}")
        except Exception as e:
            LOG.error(f"Failed to connect to NATS at {self.url}: {e}")
            raise

    def write(self, data: Dict[str, Any], loop_iteration: int = 1) -> bool:
        """
        Publish the events of one cycle.

        A failed publish is logged and the remaining events are still sent.

        Returns:
            True if every event was published, False otherwise
        """
        events = data.get('events') or []
        if not events:
            return True
        if self._client is None:
            LOG.error("NATS writer is not connected, dropping events")
            return False
        try:
            published = self._loop.run_until_complete(self._publish_all(events))
        except Exception as e:
            LOG.error(f"Failed to publish events to NATS: {e}", exc_info=True)
            return False
        LOG.debug(f"Published {published}/{len(events)} events to {self.subject} (iteration {loop_iteration})")
        return published == len(events)

    async def _publish_all(self, events) -> int:
        published = 0
        for event in events:
            if await self._publish(event):
                published += 1
        await asyncio.wait_for(self._client.flush(), timeout=self.timeout)
        return published

    async def _publish(self, event: AlertEvent) -> bool:
        try:
            payload = json.dumps(event.to_dict()).encode('utf-8')
        except (TypeError, ValueError) as e:
            LOG.error(f"Cannot serialize event for {event.device}: {e}")
            return False
        try:
            await asyncio.wait_for(self._client.publish(self.subject, payload), timeout=self.timeout)
            return True
        except Exception as e:
            LOG.error(f"Failed to publish event for {event.device} to NATS: {e}")
            return False

    def close(self, timeout_seconds: int = 90, force_exit_on_timeout: bool = False) -> None:
        """Drain and close the NATS connection, then the private event loop."""
        try:
            if self._client is not None:
                self._loop.run_until_complete(asyncio.wait_for(self._client.drain(), timeout=timeout_seconds))
                LOG.info("NATS connection closed")
        except Exception as e:
            LOG.warning(f"Error closing NATS connection: {e}")
        finally:
            self._client = None
            self._loop.close()
