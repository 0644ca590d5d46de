"""Built-in workflow step handlers.

A handler receives a :class:`StepContext` and returns the step output as a
dict. Raising any exception fails the step, and with it the execution.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from ..config import WorkflowSettings
from ..constants import DEFAULT_NOTIFICATION_CHANNEL, DEFAULT_PRIORITY
from ..contracts import TARGET_TYPES, WorkflowCondition, WorkflowStep
from ..errors import StepExecutionError
from ..events import BaseEventBus, NotificationEvent
from ..gateway import AgentCoordinator, EntityGateway
from .conditions import conditions_met, render_template, resolve_path


@dataclass
class StepContext:
    """Everything a step handler may use while it runs."""

    execution_id: str
    step: WorkflowStep
    scope: Mapping[str, Any]
    gateway: EntityGateway
    event_bus: BaseEventBus
    settings: WorkflowSettings
    coordinator: Optional[AgentCoordinator]
    log: Callable[..., None]

    @property
    def config(self) -> Dict[str, Any]:
        return self.step.config

    def require(self, key: str) -> Any:
        """Return ``scope[key]`` or fail the step when the context lacks it."""
        value = self.scope.get(key)
        if value is None:
            raise StepExecutionError(
                f"missing {key} in workflow context", step_id=self.step.id
            )
        return value


StepHandler = Callable[[StepContext], Awaitable[Dict[str, Any]]]


async def create_stories(ctx: StepContext) -> Dict[str, Any]:
    """Expand the context epic into a default set of stories."""
    epic = ctx.require("epic")
    epic_id = resolve_path(epic, "id")
    epic_title = resolve_path(epic, "title", "epic")
    max_stories = int(ctx.config.get("max_stories", ctx.settings.default_max_stories))

    story_ids: List[str] = []
    for n in range(1, max_stories + 1):
        story = await ctx.gateway.create_story(
            {
                "epic_id": epic_id,
                "title": f"{epic_title}: story {n}",
                "user_story": f"As a user, I want capability {n} of {epic_title}",
                "priority": ctx.config.get("priority", DEFAULT_PRIORITY),
            }
        )
        story_ids.append(resolve_path(story, "id"))

    ctx.log("info", f"Generated {len(story_ids)} stories", {"story_ids": story_ids})
    return {"story_ids": story_ids}


async def create_tasks(ctx: StepContext) -> Dict[str, Any]:
    story = ctx.require("story")
    story_id = resolve_path(story, "id")
    story_title = resolve_path(story, "title", "story")
    task_types = ctx.config.get("task_types") or ["DEV"]

    task_ids: List[str] = []
    for task_type in task_types:
        task = await ctx.gateway.create_task(
            {
                "story_id": story_id,
                "title": f"{task_type} task - {story_title}",
                "type": task_type,
                "priority": ctx.config.get("priority", DEFAULT_PRIORITY),
            }
        )
        task_ids.append(resolve_path(task, "id"))

    ctx.log("info", f"Generated {len(task_ids)} tasks", {"task_ids": task_ids})
    return {"task_ids": task_ids}


async def create_entity(ctx: StepContext) -> Dict[str, Any]:
    """Create one entity from ``config.payload`` rendered against the context."""
    target_type = ctx.config.get("target_type")
    if target_type not in TARGET_TYPES:
        raise StepExecutionError(
            f"create_entity needs target_type in {TARGET_TYPES}, got {target_type!r}",
            step_id=ctx.step.id,
        )
    payload = render_template(ctx.config.get("payload", {}), ctx.scope)
    create = getattr(ctx.gateway, f"create_{target_type}")
    entity = await create(payload)
    entity_id = resolve_path(entity, "id")
    ctx.log("info", f"Created {target_type} {entity_id}")
    return {"entity_id": entity_id, "target_type": target_type}


async def execute_instructions(ctx: StepContext) -> Dict[str, Any]:
    if ctx.coordinator is None:
        raise StepExecutionError(
            "an agent coordinator is required to execute instructions",
            step_id=ctx.step.id,
        )
    strategy = ctx.config.get("strategy", "skill-matched")
    options = {
        "epic_id": resolve_path(ctx.scope, "epic.id"),
        "story_id": resolve_path(ctx.scope, "story.id"),
        "priority": ctx.config.get("priority", DEFAULT_PRIORITY),
    }
    await ctx.coordinator.coordinate_execution(
        resolve_path(ctx.scope, "epic.project_id"), strategy, options
    )
    ctx.log("info", f"Coordinated instruction execution with strategy {strategy}")
    return {"strategy": strategy}


async def send_notification(ctx: StepContext) -> Dict[str, Any]:
    message = render_template(ctx.config.get("message", "Workflow notification"), ctx.scope)
    channels = ctx.config.get("channels") or [DEFAULT_NOTIFICATION_CHANNEL]
    for channel in channels:
        await ctx.event_bus.publish(
            NotificationEvent(
                message=message,
                channel=channel,
                level=ctx.config.get("level", "info"),
                execution_id=ctx.execution_id,
            )
        )
    ctx.log("info", f"Sent notification to {', '.join(channels)}")
    return {"channels": list(channels), "message": message}


async def wait(ctx: StepContext) -> Dict[str, Any]:
    duration = float(ctx.config.get("duration", ctx.settings.default_wait_seconds))
    ctx.log("info", f"Waiting {duration}s")
    await asyncio.sleep(duration)
    return {"waited": duration}


async def condition(ctx: StepContext) -> Dict[str, Any]:
    predicates = [WorkflowCondition(**c) for c in ctx.config.get("conditions", [])]
    if not conditions_met(predicates, ctx.scope):
        raise StepExecutionError(
            f"condition step {ctx.step.id} not satisfied", step_id=ctx.step.id
        )
    return {"passed": True}


DEFAULT_STEP_HANDLERS: Dict[str, StepHandler] = {
    "create_stories": create_stories,
    "create_tasks": create_tasks,
    "create_entity": create_entity,
    "execute_instructions": execute_instructions,
    "send_notification": send_notification,
    "wait": wait,
    "condition": condition,
}
