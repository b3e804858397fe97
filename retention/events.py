"""
In-process domain event bus.

Publishing is a non-blocking hand-off onto a bounded asyncio queue; a single
dispatcher task delivers events to subscribers. A slow or failing consumer
never delays or fails the publisher.

Usage:
    bus = EventBus(maxsize=1000)
    bus.subscribe(INTENT_DETECTED, handle_detection)

    async with bus:
        bus.publish(INTENT_DETECTED, event)
        ...
        await bus.drain()
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

# Topics
INTENT_DETECTED = "intent.detected"
INTENT_PERSISTENCE_FAILED = "intent.persistence_failed"
CHURN_SIGNAL_DETECTED = "churn.signal.detected"
CHURN_HIGH_RISK_DETECTED = "churn.high_risk.detected"

Handler = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class Event:
    topic: str
    payload: Any


class EventBus:
    """Bounded publish/subscribe hand-off between the core and its consumers."""

    def __init__(self, maxsize: int = 1000):
        """
        Args:
            maxsize: Queue capacity; events published while full are dropped
        """
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._dispatcher: Optional[asyncio.Task] = None
        self.dropped = 0
        self.delivered = 0
        self.failed = 0

    def subscribe(self, topic: str, handler: Handler) -> None:
        """Register a sync or async handler for a topic."""
        self._handlers[topic].append(handler)

    def publish(self, topic: str, payload: Any) -> bool:
        """
        Queue an event without waiting.

        Returns:
            False if the queue was full and the event was dropped
        """
        try:
            self._queue.put_nowait(Event(topic=topic, payload=payload))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Event queue full, dropped %s event (%d dropped so far)", topic, self.dropped)
            return False
        return True

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._dispatcher is not None and not self._dispatcher.done()

    def start(self) -> None:
        """Start the dispatcher task on the running loop."""
        if not self.running:
            self._dispatcher = asyncio.create_task(self._dispatch(), name="event-bus-dispatcher")

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        if not self.running:
            self.start()
        await self._queue.join()

    async def stop(self) -> None:
        """Deliver what is queued, then stop the dispatcher."""
        if self._dispatcher is None:
            return
        await self.drain()
        self._dispatcher.cancel()
        try:
            await self._dispatcher
        except asyncio.CancelledError:
            pass
        self._dispatcher = None

    async def __aenter__(self) -> "EventBus":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _dispatch(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: Event) -> None:
        for handler in list(self._handlers.get(event.topic, ())):
            try:
                result = handler(event.payload)
                if inspect.isawaitable(result):
                    await result
                self.delivered += 1
            except Exception:
                self.failed += 1
                logger.exception("Handler %r failed for %s event", handler, event.topic)
