"""Entity gateway abstraction.

The gateway is the only way batchflow reads or mutates domain items. Any
exception raised by a gateway call is treated as an item- or step-level failure.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, Sequence


class EntityGateway(Protocol):
    """Protocol for hierarchy persistence backends."""

    async def create_epic(self, payload: Dict[str, Any]) -> Any:
        """Create an epic."""

    async def create_story(self, payload: Dict[str, Any]) -> Any:
        """Create a story under an existing epic."""

    async def create_task(self, payload: Dict[str, Any]) -> Any:
        """Create a task under an existing story."""

    async def create_instruction(self, payload: Dict[str, Any]) -> Any:
        """Create an instruction under an existing task."""

    async def update_epic(self, entity_id: str, payload: Dict[str, Any]) -> Any: ...

    async def update_story(self, entity_id: str, payload: Dict[str, Any]) -> Any: ...

    async def update_task(self, entity_id: str, payload: Dict[str, Any]) -> Any: ...

    async def update_instruction(
        self, entity_id: str, payload: Dict[str, Any]
    ) -> Any: ...

    async def delete_epic(self, entity_id: str) -> None: ...

    async def delete_story(self, entity_id: str) -> None: ...

    async def delete_task(self, entity_id: str) -> None: ...

    async def delete_instruction(self, entity_id: str) -> None: ...

    async def list_epics(self, filter: Optional[Dict[str, Any]] = None) -> Sequence[Any]:
        """Return epics whose fields equal every value in ``filter``."""

    async def list_stories(
        self, filter: Optional[Dict[str, Any]] = None
    ) -> Sequence[Any]: ...

    async def list_tasks(self, filter: Optional[Dict[str, Any]] = None) -> Sequence[Any]: ...

    async def list_instructions(
        self, filter: Optional[Dict[str, Any]] = None
    ) -> Sequence[Any]: ...


class AgentCoordinator(Protocol):
    """Collaborator that runs instructions with agents."""

    async def coordinate_execution(
        self, project_id: Optional[str], strategy: str, options: Dict[str, Any]
    ) -> Any:
        """Schedule instruction execution for a project."""
