"""Assemble one event bus, gateway, workflow engine and batch manager."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .batch import BatchOperationManager
from .config import BatchflowConfig, load_config
from .events import BaseEventBus, get_event_bus
from .gateway import AgentCoordinator, EntityGateway, get_gateway
from .workflows import WorkflowEngine


@dataclass
class BatchflowRuntime:
    """Long-lived set of collaborators sharing a single event bus."""

    config: BatchflowConfig
    event_bus: BaseEventBus
    gateway: EntityGateway
    workflows: WorkflowEngine
    batches: BatchOperationManager

    async def shutdown(self) -> None:
        """Let background work finish, then close the event bus."""
        await self.batches.drain()
        await self.workflows.drain()
        await self.event_bus.close()


def build_runtime(
    config: Optional[BatchflowConfig] = None,
    gateway: Optional[EntityGateway] = None,
    event_bus: Optional[BaseEventBus] = None,
    coordinator: Optional[AgentCoordinator] = None,
) -> BatchflowRuntime:
    """Create a fresh runtime; every call returns independent state."""
    config = config or load_config()
    event_bus = event_bus or get_event_bus(config=config)
    gateway = gateway or get_gateway(config=config)
    workflows = WorkflowEngine(
        gateway, event_bus, settings=config.workflows, coordinator=coordinator
    )
    batches = BatchOperationManager(
        gateway, event_bus, defaults=config.batch, workflow_engine=workflows
    )
    return BatchflowRuntime(
        config=config,
        event_bus=event_bus,
        gateway=gateway,
        workflows=workflows,
        batches=batches,
    )
