"""Event bus factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import BatchflowConfig, load_config
from .base import BaseEventBus, EventSubscription
from .inmemory import InMemoryEventBus
from .types import (
    EVENT_TYPES,
    BatchCompletedEvent,
    BatchCreatedEvent,
    BatchflowEvent,
    BatchProgressEvent,
    EventBase,
    NotificationEvent,
    WorkflowAddedEvent,
    WorkflowCompletedEvent,
    WorkflowFailedEvent,
    WorkflowStartedEvent,
    event_from_json,
)


def get_event_bus(
    backend: Optional[str] = None, config: Optional[BatchflowConfig] = None
) -> BaseEventBus:
    """Factory function to get the configured event bus."""

    config = config or load_config()
    backend = (
        backend or os.getenv("BATCHFLOW_EVENT_BUS") or config.events.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryEventBus(max_queue_size=config.events.max_queue_size)
    raise ValueError(f"Unsupported event bus backend: {backend}")


__all__ = [
    "BaseEventBus",
    "EventSubscription",
    "InMemoryEventBus",
    "get_event_bus",
    "EVENT_TYPES",
    "EventBase",
    "BatchflowEvent",
    "BatchCreatedEvent",
    "BatchProgressEvent",
    "BatchCompletedEvent",
    "WorkflowAddedEvent",
    "WorkflowStartedEvent",
    "WorkflowCompletedEvent",
    "WorkflowFailedEvent",
    "NotificationEvent",
    "event_from_json",
]
