"""
Booking event publisher
Fans lifecycle transitions out to subscribers without blocking the caller
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Set

from .models import StatusChange

logger = logging.getLogger(__name__)

Subscriber = Callable[[StatusChange], Awaitable[None]]


class EventPublisher:
    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, handler: Subscriber):
        self._subscribers.append(handler)
        return handler

    def publish(self, event: StatusChange):
        """Schedule delivery to every subscriber and return immediately"""
        for handler in self._subscribers:
            task = asyncio.create_task(self._deliver(handler, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, handler: Subscriber, event: StatusChange):
        try:
            await handler(event)
        except Exception as e:
            name = getattr(handler, "__qualname__", repr(handler))
            logger.error(f"❌ Event subscriber {name} failed for {event.bookingId}: {e}")

    async def drain(self):
        """Wait for in-flight deliveries (shutdown and tests)"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# Global publisher instance
publisher = EventPublisher()
