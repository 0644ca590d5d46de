"""Workflow engine: definition registry and sequential step execution."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..config import WorkflowSettings
from ..constants import EXECUTION_ID_PREFIX
from ..contracts import (
    StepResult,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowLog,
    WorkflowStep,
    WorkflowTriggerRequest,
    utcnow,
)
from ..errors import InvalidWorkflow, StepExecutionError, WorkflowNotFound
from ..events import (
    BaseEventBus,
    WorkflowAddedEvent,
    WorkflowCompletedEvent,
    WorkflowFailedEvent,
    WorkflowStartedEvent,
)
from ..gateway import AgentCoordinator, EntityGateway
from ..utils.tasks import log_task_failure
from .builtin import builtin_workflows
from .conditions import conditions_met, resolve_path
from .loader import load_workflow_definitions
from .steps import DEFAULT_STEP_HANDLERS, StepContext, StepHandler

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """Registry of workflow definitions and executor of their steps.

    Executions run as background tasks; steps of one execution always run
    strictly one after another. A failing step ends its execution, there is no
    retry.
    """

    def __init__(
        self,
        gateway: EntityGateway,
        event_bus: BaseEventBus,
        settings: Optional[WorkflowSettings] = None,
        coordinator: Optional[AgentCoordinator] = None,
    ) -> None:
        self._gateway = gateway
        self._event_bus = event_bus
        self._settings = settings or WorkflowSettings()
        self._coordinator = coordinator
        self._workflows: Dict[str, WorkflowDefinition] = {}
        self._executions: Dict[str, WorkflowExecution] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._step_handlers: Dict[str, StepHandler] = dict(DEFAULT_STEP_HANDLERS)

        if self._settings.register_builtins:
            for workflow in builtin_workflows():
                self._register(workflow)
        if self._settings.definitions_path:
            for workflow in load_workflow_definitions(self._settings.definitions_path):
                self._register(workflow)

    # ------------------------------------------------------------------
    # Registry
    def _register(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        if not workflow.steps:
            raise InvalidWorkflow(f"Workflow {workflow.id} must declare at least one step")
        existing = self._workflows.get(workflow.id)
        now = utcnow()
        stored = workflow.model_copy(
            deep=True,
            update={
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
            },
        )
        self._workflows[workflow.id] = stored
        return stored

    async def add_workflow(
        self, definition: Union[WorkflowDefinition, Mapping[str, Any]]
    ) -> WorkflowDefinition:
        """Register or replace a workflow definition by id."""
        if not isinstance(definition, WorkflowDefinition):
            try:
                definition = WorkflowDefinition.model_validate(definition)
            except PydanticValidationError as exc:
                raise InvalidWorkflow(str(exc)) from exc

        stored = self._register(definition)
        logger.info(f"Registered workflow {stored.id} ({len(stored.steps)} steps)")
        await self._event_bus.publish(
            WorkflowAddedEvent(workflow=stored.model_copy(deep=True))
        )
        return stored.model_copy(deep=True)

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        workflow = self._workflows.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow else None

    def get_all_workflows(self) -> List[WorkflowDefinition]:
        return [w.model_copy(deep=True) for w in self._workflows.values()]

    def register_step_handler(self, step_type: str, handler: StepHandler) -> None:
        """Add or replace the handler used for steps of ``step_type``."""
        self._step_handlers[step_type] = handler

    # ------------------------------------------------------------------
    # Execution
    async def execute_workflow(
        self,
        workflow_id: Union[str, WorkflowTriggerRequest],
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Start a workflow in the background and return the execution id.

        Accepts either a workflow id plus context or a
        :class:`WorkflowTriggerRequest` carrying both.

        Raises:
            WorkflowNotFound: If ``workflow_id`` is unknown or inactive.
        """
        if isinstance(workflow_id, WorkflowTriggerRequest):
            context = workflow_id.context
            workflow_id = workflow_id.workflow_id
        workflow = self._workflows.get(workflow_id)
        if workflow is None or not workflow.is_active:
            raise WorkflowNotFound(f"Workflow not found or inactive: {workflow_id}")

        execution = WorkflowExecution(
            id=f"{EXECUTION_ID_PREFIX}-{uuid.uuid4()}",
            workflow_id=workflow_id,
            context=dict(context or {}),
        )
        self._executions[execution.id] = execution
        self._log(execution, "info", f"Workflow started: {workflow.name}")
        logger.info(f"Workflow {workflow_id} started as {execution.id}")

        await self._event_bus.publish(
            WorkflowStartedEvent(execution=execution.model_copy(deep=True))
        )

        task = asyncio.create_task(
            self._run(execution, workflow.model_copy(deep=True)),
            name=f"workflow-{execution.id}",
        )
        task.add_done_callback(log_task_failure)
        task.add_done_callback(lambda _: self._tasks.pop(execution.id, None))
        self._tasks[execution.id] = task
        return execution.id

    async def trigger_workflows(
        self, trigger_type: str, context: Optional[Dict[str, Any]] = None
    ) -> List[str]:
        """Execute every active workflow with a matching trigger.

        A trigger matches when its type equals ``trigger_type`` and each of its
        conditions equals the value found at that dotted path in ``context``.
        """
        context = context or {}
        execution_ids = []
        for workflow in list(self._workflows.values()):
            if not workflow.is_active:
                continue
            if any(
                trigger.type == trigger_type
                and all(
                    resolve_path(context, key) == value
                    for key, value in trigger.conditions.items()
                )
                for trigger in workflow.triggers
            ):
                execution_ids.append(await self.execute_workflow(workflow.id, context))
        return execution_ids

    def get_workflow_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        execution = self._executions.get(execution_id)
        return execution.model_copy(deep=True) if execution else None

    def get_all_workflow_executions(self) -> List[WorkflowExecution]:
        return [e.model_copy(deep=True) for e in self._executions.values()]

    async def wait_for_execution(
        self, execution_id: str, timeout: Optional[float] = None
    ) -> Optional[WorkflowExecution]:
        """Wait until the execution is terminal and return its final record."""
        task = self._tasks.get(execution_id)
        if task is None:
            return self.get_workflow_execution(execution_id)
        await asyncio.wait_for(asyncio.shield(task), timeout)
        return self.get_workflow_execution(execution_id)

    async def drain(self) -> None:
        """Wait for all running executions to finish."""
        pending = [t for t in self._tasks.values() if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run(self, execution: WorkflowExecution, workflow: WorkflowDefinition) -> None:
        outputs: Dict[str, Dict[str, Any]] = {}
        completed: set[str] = set()
        total = len(workflow.steps)

        for index, step in enumerate(workflow.steps):
            scope = {**execution.context, "steps": dict(outputs)}

            if not conditions_met(workflow.conditions, scope):
                self._log(execution, "warn", "Workflow conditions not met, skipping remaining steps")
                for remaining in workflow.steps[index:]:
                    execution.step_results.append(_skipped(remaining))
                break

            missing = [dep for dep in step.depends_on if dep not in completed]
            if missing:
                self._log(
                    execution,
                    "warn",
                    f"Dependencies {', '.join(missing)} not met, skipping step {step.id}",
                    step_id=step.id,
                )
                execution.step_results.append(_skipped(step))
                continue

            execution.current_step = step.id
            self._log(execution, "info", f"Executing step {step.id}", step_id=step.id)
            started_at = utcnow()
            try:
                output = await self._execute_step(execution, step, scope)
            except Exception as exc:
                error = (
                    exc
                    if isinstance(exc, StepExecutionError)
                    else StepExecutionError(str(exc) or type(exc).__name__, step_id=step.id)
                )
                execution.step_results.append(
                    StepResult(
                        step_id=step.id,
                        step_type=step.type,
                        status="failed",
                        started_at=started_at,
                        completed_at=utcnow(),
                        error=str(error),
                    )
                )
                await self._fail(execution, step, error)
                return

            outputs[step.id] = output
            completed.add(step.id)
            execution.step_results.append(
                StepResult(
                    step_id=step.id,
                    step_type=step.type,
                    status="completed",
                    started_at=started_at,
                    completed_at=utcnow(),
                    output=output,
                )
            )
            execution.progress = len(completed) / total

        execution.status = "completed"
        execution.progress = 1.0
        execution.current_step = None
        execution.completed_at = utcnow()
        self._log(execution, "info", "Workflow completed")
        logger.info(f"Workflow execution {execution.id} completed")
        await self._event_bus.publish(
            WorkflowCompletedEvent(execution=execution.model_copy(deep=True))
        )

    async def _execute_step(
        self, execution: WorkflowExecution, step: WorkflowStep, scope: Dict[str, Any]
    ) -> Dict[str, Any]:
        handler = self._step_handlers.get(step.type)
        if handler is None:
            raise StepExecutionError(f"Unsupported step type: {step.type}", step_id=step.id)

        def _step_log(level: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
            self._log(execution, level, message, step_id=step.id, data=data)

        ctx = StepContext(
            execution_id=execution.id,
            step=step,
            scope=scope,
            gateway=self._gateway,
            event_bus=self._event_bus,
            settings=self._settings,
            coordinator=self._coordinator,
            log=_step_log,
        )
        return await handler(ctx) or {}

    async def _fail(
        self, execution: WorkflowExecution, step: WorkflowStep, error: StepExecutionError
    ) -> None:
        execution.status = "failed"
        execution.error = str(error)
        execution.completed_at = utcnow()
        self._log(execution, "error", f"Step {step.id} failed: {error}", step_id=step.id)
        logger.warning(f"Workflow execution {execution.id} failed at step {step.id}: {error}")
        await self._event_bus.publish(
            WorkflowFailedEvent(execution=execution.model_copy(deep=True))
        )

    @staticmethod
    def _log(
        execution: WorkflowExecution,
        level: str,
        message: str,
        step_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        execution.logs.append(
            WorkflowLog(level=level, message=message, step_id=step_id, data=data)
        )


def _skipped(step: WorkflowStep) -> StepResult:
    now = utcnow()
    return StepResult(
        step_id=step.id, step_type=step.type, status="skipped", started_at=now, completed_at=now
    )
