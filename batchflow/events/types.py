"""Typed events published on the batchflow event bus.

Each event kind is its own model with a literal ``name`` so consumers know the
payload shape for every event name. ``BatchflowEvent`` is the tagged union of
all kinds.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Dict, Literal, Type, Union

from pydantic import BaseModel, Field, TypeAdapter

from ..contracts import BatchOperation, WorkflowDefinition, WorkflowExecution, utcnow


class EventBase(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=utcnow)


class BatchCreatedEvent(EventBase):
    name: Literal["batch:created"] = "batch:created"
    operation: BatchOperation


class BatchProgressEvent(EventBase):
    name: Literal["batch:progress"] = "batch:progress"
    operation_id: str
    item_index: int
    succeeded: bool
    progress: float
    processed_items: int
    total_items: int


class BatchCompletedEvent(EventBase):
    """Terminal batch event; ``operation.status`` tells how it ended."""

    name: Literal["batch:completed"] = "batch:completed"
    operation: BatchOperation


class WorkflowAddedEvent(EventBase):
    name: Literal["workflow:added"] = "workflow:added"
    workflow: WorkflowDefinition


class WorkflowStartedEvent(EventBase):
    name: Literal["workflow:started"] = "workflow:started"
    execution: WorkflowExecution


class WorkflowCompletedEvent(EventBase):
    name: Literal["workflow:completed"] = "workflow:completed"
    execution: WorkflowExecution


class WorkflowFailedEvent(EventBase):
    name: Literal["workflow:failed"] = "workflow:failed"
    execution: WorkflowExecution


class NotificationEvent(EventBase):
    name: Literal["notification"] = "notification"
    level: Literal["info", "warning", "error"] = "info"
    message: str
    channel: str = "system"
    execution_id: str | None = None


BatchflowEvent = Annotated[
    Union[
        BatchCreatedEvent,
        BatchProgressEvent,
        BatchCompletedEvent,
        WorkflowAddedEvent,
        WorkflowStartedEvent,
        WorkflowCompletedEvent,
        WorkflowFailedEvent,
        NotificationEvent,
    ],
    Field(discriminator="name"),
]

EVENT_TYPES: Dict[str, Type[EventBase]] = {
    "batch:created": BatchCreatedEvent,
    "batch:progress": BatchProgressEvent,
    "batch:completed": BatchCompletedEvent,
    "workflow:added": WorkflowAddedEvent,
    "workflow:started": WorkflowStartedEvent,
    "workflow:completed": WorkflowCompletedEvent,
    "workflow:failed": WorkflowFailedEvent,
    "notification": NotificationEvent,
}

_event_adapter: TypeAdapter = TypeAdapter(BatchflowEvent)


def event_name(event_type: Union[str, Type[EventBase]]) -> str:
    """Normalize an event class or event name to the event name."""
    if isinstance(event_type, str):
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event name: {event_type}")
        return event_type
    return event_type.model_fields["name"].default


def event_from_json(data: str) -> EventBase:
    """Deserialize any batchflow event from JSON."""
    return _event_adapter.validate_json(data)
