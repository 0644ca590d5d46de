"""In-memory event bus."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Dict, Iterable, Optional, Type, Union

from ..constants import DEFAULT_EVENT_QUEUE_SIZE
from .base import BaseEventBus, EventSubscription
from .types import EventBase, event_name

logger = logging.getLogger(__name__)


class InMemoryEventBus(BaseEventBus):
    """Single-process bus backed by one bounded ``asyncio.Queue`` per subscription.

    When a subscriber falls behind and its queue is full, the oldest queued
    event is dropped to make room.
    """

    def __init__(self, max_queue_size: int = DEFAULT_EVENT_QUEUE_SIZE) -> None:
        super().__init__()
        self._queues: Dict[str, asyncio.Queue[Optional[EventBase]]] = {}
        self._subscriptions: Dict[str, EventSubscription] = {}
        self._max_queue_size = max_queue_size
        self._closed = False

    async def publish(self, event: EventBase) -> None:
        """Publish event to listeners and subscription queues."""
        if self._closed:
            logger.debug(f"Dropping {event.name}: event bus is closed")
            return

        for sub_id, subscription in list(self._subscriptions.items()):
            if not subscription.matches(event):
                continue
            queue = self._queues.get(sub_id)
            if queue is None:
                continue
            if queue.full():
                queue.get_nowait()
                logger.warning(f"Subscription {sub_id} is full, dropped oldest event")
            queue.put_nowait(event)

        await self._notify_listeners(event)

    def subscribe(
        self, event_types: Optional[Iterable[Union[str, Type[EventBase]]]] = None
    ) -> EventSubscription:
        names = (
            frozenset(event_name(t) for t in event_types)
            if event_types is not None
            else None
        )
        subscription = EventSubscription(names=names)
        self._subscriptions[subscription.subscription_id] = subscription
        self._queues[subscription.subscription_id] = asyncio.Queue(
            maxsize=self._max_queue_size
        )
        return subscription

    async def events(self, subscription: EventSubscription) -> AsyncIterator[EventBase]:
        """Yield events until the subscription is removed or the bus closes."""
        queue = self._queues.get(subscription.subscription_id)
        if queue is None:
            return
        while True:
            event = await queue.get()
            if event is None:
                break
            yield event

    def unsubscribe(self, subscription: EventSubscription) -> None:
        sub_id = subscription.subscription_id
        self._subscriptions.pop(sub_id, None)
        queue = self._queues.pop(sub_id, None)
        if queue is not None:
            _push_sentinel(queue)

    async def close(self) -> None:
        self._closed = True
        for queue in self._queues.values():
            _push_sentinel(queue)
        self._queues.clear()
        self._subscriptions.clear()


def _push_sentinel(queue: asyncio.Queue) -> None:
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(None)
