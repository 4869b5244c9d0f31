"""Fire-and-forget broadcast of yield updates, alerts, and recommendations.

publish() wraps a payload in a BroadcastMessage and drops it on a bounded
channel; a background task drains the channel into the WebSocket hub. The
core never waits on delivery and expects no acknowledgment.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from yield_monitor.broadcast.channel import EventChannel
from yield_monitor.logging import get_logger
from yield_monitor.models import utcnow
from yield_monitor.serialization import to_jsonable

logger = get_logger(__name__)


class MessageType(str, Enum):
    """Broadcast message kinds consumed by subscribers."""

    YIELD_UPDATE = "yield_update"
    YIELD_ALERT = "yield_alert"
    RECOMMENDATION_UPDATE = "recommendation_update"


@dataclass(frozen=True)
class BroadcastMessage:
    type: MessageType
    payload: Any
    timestamp: datetime = field(default_factory=utcnow)


class BroadcastSink(Protocol):
    """Anything that accepts broadcast messages without blocking."""

    def publish(self, message_type: MessageType, payload: Any) -> None: ...


class Hub(Protocol):
    async def broadcast(self, text: str) -> None: ...


class Broadcaster:
    """Queues broadcast messages and forwards them to a hub in the background.

    Args:
        hub: Delivery target (the WebSocket hub in production).
        maxsize: Channel bound; the oldest message is dropped on overflow.
    """

    def __init__(self, hub: Hub, maxsize: int = 256) -> None:
        self._hub = hub
        self._channel: EventChannel[BroadcastMessage] = EventChannel(maxsize)
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._delivered = 0

    def publish(self, message_type: MessageType, payload: Any) -> None:
        """Enqueue a message. Never blocks and never raises on a slow hub."""
        self._channel.publish(BroadcastMessage(type=message_type, payload=payload))

    async def start(self) -> None:
        if self._task is not None:
            logger.warning("broadcaster_already_running")
            return
        self._task = asyncio.create_task(self._drain_loop())
        logger.info("broadcaster_started", maxsize=self._channel.maxsize)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("broadcaster_stopped", pending=len(self._channel))

    async def _drain_loop(self) -> None:
        while True:
            message = await self._channel.get()
            try:
                await self.deliver(message)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning(
                    "broadcast_delivery_error",
                    message_type=message.type.value,
                    exc_info=True,
                )

    async def deliver(self, message: BroadcastMessage) -> None:
        """Serialize one message and hand it to the hub."""
        text = json.dumps(to_jsonable(message))
        await self._hub.broadcast(text)
        self._delivered += 1
        logger.debug("broadcast_delivered", message_type=message.type.value)

    def stats(self) -> dict:
        return {
            "pending": len(self._channel),
            "published": self._channel.published,
            "dropped": self._channel.dropped,
            "delivered": self._delivered,
        }
