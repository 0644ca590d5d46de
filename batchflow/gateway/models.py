"""Entity models returned by the in-memory gateway."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..constants import DEFAULT_PRIORITY
from ..contracts import utcnow


class Entity(BaseModel):
    id: str
    status: str = "pending"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Epic(Entity):
    project_id: str
    title: str
    description: Optional[str] = None
    priority: str = DEFAULT_PRIORITY


class Story(Entity):
    epic_id: str
    title: str
    user_story: Optional[str] = None
    priority: str = DEFAULT_PRIORITY


class Task(Entity):
    story_id: str
    title: str
    type: str
    description: Optional[str] = None
    priority: str = DEFAULT_PRIORITY


class Instruction(Entity):
    task_id: str
    directive: str
