"""
Tests for the bounded in-process event bus.
"""

import asyncio

import pytest

from retention.events import EventBus


class TestEventBus:
    """Publish/subscribe hand-off semantics."""

    @pytest.mark.asyncio
    async def test_publish_is_non_blocking(self):
        """Publish returns before any handler runs."""
        bus = EventBus()
        received = []
        bus.subscribe("topic", received.append)

        assert bus.publish("topic", 1) is True
        assert received == []
        assert bus.pending == 1

        await bus.drain()
        assert received == [1]
        await bus.stop()

    @pytest.mark.asyncio
    async def test_full_queue_drops_event(self, caplog):
        """A full queue drops the event instead of blocking the publisher."""
        bus = EventBus(maxsize=1)

        assert bus.publish("topic", "first") is True
        assert bus.publish("topic", "second") is False
        assert bus.dropped == 1
        assert "Event queue full" in caplog.text

    @pytest.mark.asyncio
    async def test_handler_failure_is_isolated(self, caplog):
        """One failing handler neither stops delivery nor reaches the publisher."""
        bus = EventBus()
        received = []

        def broken(payload):
            raise RuntimeError("consumer bug")

        bus.subscribe("topic", broken)
        bus.subscribe("topic", received.append)

        async with bus:
            bus.publish("topic", "a")
            bus.publish("topic", "b")

        assert received == ["a", "b"]
        assert bus.failed == 2
        assert bus.delivered == 2
        assert "consumer bug" in caplog.text

    @pytest.mark.asyncio
    async def test_async_handlers_awaited(self):
        bus = EventBus()
        received = []

        async def slow(payload):
            await asyncio.sleep(0)
            received.append(payload)

        bus.subscribe("topic", slow)
        async with bus:
            bus.publish("topic", 42)

        assert received == [42]

    @pytest.mark.asyncio
    async def test_topics_are_separate(self):
        bus = EventBus()
        a, b = [], []
        bus.subscribe("a", a.append)
        bus.subscribe("b", b.append)

        async with bus:
            bus.publish("a", 1)
            bus.publish("b", 2)
            bus.publish("c", 3)

        assert a == [1]
        assert b == [2]

    @pytest.mark.asyncio
    async def test_delivery_in_publish_order(self):
        bus = EventBus()
        received = []
        bus.subscribe("topic", received.append)

        async with bus:
            for i in range(20):
                bus.publish("topic", i)

        assert received == list(range(20))

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self):
        bus = EventBus()
        await bus.stop()
        assert not bus.running

    @pytest.mark.asyncio
    async def test_context_manager_stops_dispatcher(self):
        bus = EventBus()
        async with bus:
            assert bus.running
        assert not bus.running
