"""In-memory implementation of the entity gateway."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import ValidationError as PydanticValidationError

from ..contracts import utcnow
from ..errors import GatewayError
from .models import Entity, Epic, Instruction, Story, Task

# kind -> (model, parent kind, parent key)
_KINDS: Dict[str, Tuple[Type[Entity], Optional[str], Optional[str]]] = {
    "epic": (Epic, None, None),
    "story": (Story, "epic", "epic_id"),
    "task": (Task, "story", "story_id"),
    "instruction": (Instruction, "task", "task_id"),
}


class InMemoryEntityGateway:
    """Store epics, stories, tasks and instructions in local memory.

    Useful for tests or when no hierarchy service is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._entities: Dict[str, Dict[str, Entity]] = {kind: {} for kind in _KINDS}

    # ------------------------------------------------------------------
    async def create_epic(self, payload: Dict[str, Any]) -> Epic:
        return self._create("epic", payload)

    async def create_story(self, payload: Dict[str, Any]) -> Story:
        return self._create("story", payload)

    async def create_task(self, payload: Dict[str, Any]) -> Task:
        return self._create("task", payload)

    async def create_instruction(self, payload: Dict[str, Any]) -> Instruction:
        return self._create("instruction", payload)

    async def update_epic(self, entity_id: str, payload: Dict[str, Any]) -> Epic:
        return self._update("epic", entity_id, payload)

    async def update_story(self, entity_id: str, payload: Dict[str, Any]) -> Story:
        return self._update("story", entity_id, payload)

    async def update_task(self, entity_id: str, payload: Dict[str, Any]) -> Task:
        return self._update("task", entity_id, payload)

    async def update_instruction(
        self, entity_id: str, payload: Dict[str, Any]
    ) -> Instruction:
        return self._update("instruction", entity_id, payload)

    async def delete_epic(self, entity_id: str) -> None:
        self._delete("epic", entity_id)

    async def delete_story(self, entity_id: str) -> None:
        self._delete("story", entity_id)

    async def delete_task(self, entity_id: str) -> None:
        self._delete("task", entity_id)

    async def delete_instruction(self, entity_id: str) -> None:
        self._delete("instruction", entity_id)

    async def list_epics(self, filter: Optional[Dict[str, Any]] = None) -> List[Epic]:
        return self._list("epic", filter)

    async def list_stories(self, filter: Optional[Dict[str, Any]] = None) -> List[Story]:
        return self._list("story", filter)

    async def list_tasks(self, filter: Optional[Dict[str, Any]] = None) -> List[Task]:
        return self._list("task", filter)

    async def list_instructions(
        self, filter: Optional[Dict[str, Any]] = None
    ) -> List[Instruction]:
        return self._list("instruction", filter)

    # ------------------------------------------------------------------
    def _create(self, kind: str, payload: Dict[str, Any]) -> Any:
        model, parent_kind, parent_key = _KINDS[kind]
        data = dict(payload)
        data.setdefault("id", f"{kind}-{uuid.uuid4()}")
        if data["id"] in self._entities[kind]:
            raise GatewayError(f"{kind} {data['id']} already exists")
        if parent_kind is not None:
            parent_id = data.get(parent_key)
            if parent_id not in self._entities[parent_kind]:
                raise GatewayError(f"{parent_kind} {parent_id} does not exist")
        try:
            entity = model(**data)
        except PydanticValidationError as exc:
            raise GatewayError(f"invalid {kind}: {exc.error_count()} field error(s)") from exc
        self._entities[kind][entity.id] = entity
        return entity.model_copy()

    def _update(self, kind: str, entity_id: str, payload: Dict[str, Any]) -> Any:
        current = self._entities[kind].get(entity_id)
        if current is None:
            raise GatewayError(f"{kind} {entity_id} does not exist")
        changes = {k: v for k, v in payload.items() if k not in ("id", "created_at")}
        try:
            updated = type(current)(
                **{**current.model_dump(), **changes, "updated_at": utcnow()}
            )
        except PydanticValidationError as exc:
            raise GatewayError(f"invalid {kind}: {exc.error_count()} field error(s)") from exc
        self._entities[kind][entity_id] = updated
        return updated.model_copy()

    def _delete(self, kind: str, entity_id: str) -> None:
        if self._entities[kind].pop(entity_id, None) is None:
            raise GatewayError(f"{kind} {entity_id} does not exist")

    def _list(self, kind: str, filter: Optional[Dict[str, Any]]) -> List[Any]:
        criteria = filter or {}
        return [
            entity.model_copy()
            for entity in self._entities[kind].values()
            if all(getattr(entity, key, None) == value for key, value in criteria.items())
        ]
