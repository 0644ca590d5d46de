"""Base event bus interface for batchflow."""

from __future__ import annotations

import abc
import asyncio
import inspect
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Type,
    TypeVar,
    Union,
)

from .types import EventBase, event_name

logger = logging.getLogger(__name__)

EventT = TypeVar("EventT", bound=EventBase)
Listener = Callable[[Any], Any]


@dataclass
class EventSubscription:
    """Streaming subscription to a subset of event names."""

    subscription_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    names: Optional[FrozenSet[str]] = None  # None = all events

    def matches(self, event: EventBase) -> bool:
        return self.names is None or event.name in self.names


@dataclass
class _ListenerEntry:
    callback: Listener
    once: bool = False


class BaseEventBus(metaclass=abc.ABCMeta):
    """Abstract in-process publish/subscribe channel.

    Listeners registered with :meth:`on` or :meth:`once` are invoked inline by
    :meth:`publish`; streaming consumers use :meth:`subscribe` instead.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[_ListenerEntry]] = defaultdict(list)

    def on(
        self, event_type: Union[str, Type[EventT]], listener: Callable[[EventT], Any]
    ) -> None:
        """Register a persistent listener."""
        self._listeners[event_name(event_type)].append(_ListenerEntry(listener))

    def once(
        self, event_type: Union[str, Type[EventT]], listener: Callable[[EventT], Any]
    ) -> None:
        """Register a listener removed after its first invocation."""
        self._listeners[event_name(event_type)].append(
            _ListenerEntry(listener, once=True)
        )

    def off(
        self, event_type: Union[str, Type[EventT]], listener: Callable[[EventT], Any]
    ) -> None:
        """Remove a previously registered listener (no-op if absent)."""
        name = event_name(event_type)
        self._listeners[name] = [
            entry for entry in self._listeners[name] if entry.callback is not listener
        ]

    def listener_count(self, event_type: Union[str, Type[EventBase]]) -> int:
        return len(self._listeners[event_name(event_type)])

    async def _notify_listeners(self, event: EventBase) -> None:
        entries = list(self._listeners.get(event.name, ()))
        if not entries:
            return
        fired_once = {id(e) for e in entries if e.once}
        self._listeners[event.name] = [
            e for e in self._listeners[event.name] if id(e) not in fired_once
        ]
        for entry in entries:
            try:
                result = entry.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Listener {entry.callback!r} failed for {event.name}")

    @abc.abstractmethod
    async def publish(self, event: EventBase) -> None:
        """Deliver an event to listeners and matching subscriptions."""
        raise NotImplementedError

    @abc.abstractmethod
    def subscribe(
        self, event_types: Optional[Iterable[Union[str, Type[EventBase]]]] = None
    ) -> EventSubscription:
        """Create a streaming subscription."""
        raise NotImplementedError

    @abc.abstractmethod
    def events(self, subscription: EventSubscription) -> AsyncIterator[EventBase]:
        """Iterate over events delivered to ``subscription``."""
        raise NotImplementedError

    @abc.abstractmethod
    def unsubscribe(self, subscription: EventSubscription) -> None:
        """Remove a subscription and release its consumers."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources (no-op by default)."""
        pass

    async def wait_for(
        self,
        event_type: Union[str, Type[EventT]],
        predicate: Optional[Callable[[EventT], bool]] = None,
        timeout: Optional[float] = None,
    ) -> EventT:
        """Wait for the next event of ``event_type`` matching ``predicate``.

        Raises:
            asyncio.TimeoutError: If no matching event arrives within ``timeout``.
        """
        name = event_name(event_type)
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def _listener(event: EventT) -> None:
            if future.done():
                return
            if predicate is None or predicate(event):
                future.set_result(event)

        self.on(name, _listener)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            self.off(name, _listener)
