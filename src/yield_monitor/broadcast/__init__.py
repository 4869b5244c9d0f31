"""Broadcast layer -- bounded message channel and the background broadcaster."""

from yield_monitor.broadcast.broadcaster import (
    BroadcastMessage,
    Broadcaster,
    BroadcastSink,
    MessageType,
)
from yield_monitor.broadcast.channel import EventChannel

__all__ = [
    "BroadcastMessage",
    "BroadcastSink",
    "Broadcaster",
    "EventChannel",
    "MessageType",
]
