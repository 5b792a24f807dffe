"""In-memory channel that carries canonical events from producers to consumers."""

from __future__ import annotations

import asyncio
import logging
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class EventBus(Generic[T]):
    """Single fan-out channel fed by any number of producer tasks.

    Each consumer owns a queue obtained from :meth:`subscribe`; every
    published item is delivered to all of them.
    """

    def __init__(self) -> None:
        self._subscribers: dict[asyncio.Queue[T], str] = {}
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, item: T) -> None:
        """Deliver ``item`` to every subscriber queue."""

        async with self._lock:
            queues = tuple(self._subscribers)

        if not queues:
            logger.debug("Dropping item published without subscribers")
            return

        await asyncio.gather(*(queue.put(item) for queue in queues))

    def subscribe(self, name: str = "consumer", maxsize: int = 0) -> asyncio.Queue[T]:
        """Register a consumer and return the queue it should read from."""

        queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)
        self._subscribers[queue] = name
        logger.debug("Subscribed %s to event bus", name)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[T]) -> None:
        name = self._subscribers.pop(queue, None)
        if name is not None:
            logger.debug("Unsubscribed %s from event bus", name)

    async def close(self) -> None:
        """Drop every subscriber and discard what they had not consumed yet."""

        async with self._lock:
            queues = tuple(self._subscribers)
            self._subscribers.clear()

        for queue in queues:
            while not queue.empty():
                queue.get_nowait()
                queue.task_done()


__all__ = ["EventBus"]
