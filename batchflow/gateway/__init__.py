"""Entity gateway layer for batchflow."""

from __future__ import annotations

import os
from typing import Optional

from ..config import BatchflowConfig, load_config
from .base import AgentCoordinator, EntityGateway
from .inmemory import InMemoryEntityGateway
from .models import Entity, Epic, Instruction, Story, Task


def get_gateway(
    backend: Optional[str] = None, config: Optional[BatchflowConfig] = None
) -> EntityGateway:
    """Factory function to obtain an entity gateway.

    Only the in-memory backend ships with batchflow; hosting applications
    pass their own :class:`EntityGateway` to the managers directly.
    """

    config = config or load_config()
    backend = (backend or os.getenv("BATCHFLOW_GATEWAY") or config.gateway.backend).lower()

    if backend == "inmemory":
        return InMemoryEntityGateway()
    raise ValueError(f"Unsupported gateway backend: {backend}")


__all__ = [
    "AgentCoordinator",
    "EntityGateway",
    "InMemoryEntityGateway",
    "Entity",
    "Epic",
    "Story",
    "Task",
    "Instruction",
    "get_gateway",
]
