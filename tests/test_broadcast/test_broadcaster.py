"""Tests for Broadcaster -- non-blocking publish and background delivery."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from yield_monitor.broadcast.broadcaster import BroadcastMessage, Broadcaster, MessageType

from conftest import make_snapshot


@pytest.fixture
def hub() -> AsyncMock:
    hub = AsyncMock()
    hub.broadcast = AsyncMock()
    return hub


class TestBroadcaster:
    @pytest.mark.asyncio
    async def test_deliver_serializes_message(self, hub: AsyncMock) -> None:
        broadcaster = Broadcaster(hub)
        await broadcaster.deliver(
            BroadcastMessage(type=MessageType.YIELD_UPDATE, payload=make_snapshot())
        )

        text = hub.broadcast.await_args.args[0]
        data = json.loads(text)
        assert data["type"] == "yield_update"
        assert data["payload"]["symbol"] == "USDC"
        assert data["payload"]["timestamp"] == "2024-01-01T12:00:00+00:00"
        assert "timestamp" in data

    @pytest.mark.asyncio
    async def test_background_task_drains_channel(self, hub: AsyncMock) -> None:
        broadcaster = Broadcaster(hub)
        await broadcaster.start()
        try:
            broadcaster.publish(MessageType.YIELD_ALERT, {"symbol": "DAI"})
            broadcaster.publish(MessageType.RECOMMENDATION_UPDATE, {"symbol": "USDC"})
            for _ in range(10):
                await asyncio.sleep(0)
        finally:
            await broadcaster.stop()

        types = [json.loads(c.args[0])["type"] for c in hub.broadcast.await_args_list]
        assert types == ["yield_alert", "recommendation_update"]
        assert broadcaster.stats()["delivered"] == 2

    @pytest.mark.asyncio
    async def test_publish_never_blocks_when_full(self, hub: AsyncMock) -> None:
        broadcaster = Broadcaster(hub, maxsize=2)
        for i in range(5):
            broadcaster.publish(MessageType.YIELD_UPDATE, {"i": i})

        stats = broadcaster.stats()
        assert stats["pending"] == 2
        assert stats["dropped"] == 3

    @pytest.mark.asyncio
    async def test_delivery_error_does_not_stop_loop(self, hub: AsyncMock) -> None:
        hub.broadcast = AsyncMock(side_effect=[RuntimeError("socket gone"), None])
        broadcaster = Broadcaster(hub)
        await broadcaster.start()
        try:
            broadcaster.publish(MessageType.YIELD_UPDATE, {"i": 1})
            broadcaster.publish(MessageType.YIELD_UPDATE, {"i": 2})
            for _ in range(10):
                await asyncio.sleep(0)
        finally:
            await broadcaster.stop()

        assert hub.broadcast.await_count == 2
        assert broadcaster.stats()["delivered"] == 1
