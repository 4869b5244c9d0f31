"""Bounded in-process message channel with a drop-oldest overflow policy.

Producers (the ingestion pipeline, change detector, recommendation cycle)
are synchronous and must never wait on a slow consumer, so publish() never
blocks: when the queue is full the oldest message is discarded to make room
and counted in ``dropped``.
"""

import asyncio
from typing import Generic, TypeVar

T = TypeVar("T")


class EventChannel(Generic[T]):
    """asyncio.Queue wrapper: non-blocking publish, async or sync consume."""

    def __init__(self, maxsize: int = 1000) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)
        self._published = 0
        self._dropped = 0

    def publish(self, item: T) -> None:
        """Enqueue an item, evicting the oldest one if the channel is full."""
        if self._queue.full():
            try:
                self._queue.get_nowait()
                self._dropped += 1
            except asyncio.QueueEmpty:
                pass
        self._queue.put_nowait(item)
        self._published += 1

    async def get(self) -> T:
        """Wait for and return the next item."""
        return await self._queue.get()

    def drain(self) -> list[T]:
        """Remove and return every queued item without waiting."""
        items: list[T] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return items

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    @property
    def published(self) -> int:
        return self._published

    @property
    def dropped(self) -> int:
        return self._dropped

    def __len__(self) -> int:
        return self._queue.qsize()
