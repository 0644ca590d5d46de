"""Core records and request contracts for batch operations and workflows."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

OperationType = Literal["create", "update", "delete"]
TargetType = Literal["epic", "story", "task", "instruction"]
BatchStatus = Literal["pending", "running", "completed", "failed", "cancelled"]
ExecutionStatus = Literal["running", "completed", "failed"]
StepStatus = Literal["completed", "failed", "skipped"]
TriggerType = Literal[
    "epic_created", "story_completed", "task_failed", "manual", "schedule"
]
ConditionOperator = Literal[
    "equals", "not_equals", "greater_than", "less_than", "contains", "exists"
]

OPERATION_TYPES = ("create", "update", "delete")
TARGET_TYPES = ("epic", "story", "task", "instruction")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchOptions(BaseModel):
    """Execution policy for a batch."""

    continue_on_error: bool = False
    max_concurrency: int = Field(default=1, ge=1)
    validate_first: bool = False
    delay: float = Field(default=0.0, ge=0.0, description="Seconds between dispatches")


class BatchRequest(BaseModel):
    """Batch submission surface."""

    type: str
    target_type: str
    items: List[Any] = Field(default_factory=list)
    options: Optional[BatchOptions] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_by: str = "system"


class BatchError(BaseModel):
    """Failure recorded against a single item."""

    item_index: int
    message: str
    timestamp: datetime = Field(default_factory=utcnow)


class BatchOperation(BaseModel):
    """A tracked unit of work applying one action across many items."""

    id: str
    type: OperationType
    target_type: TargetType
    items: List[Any] = Field(default_factory=list)
    options: BatchOptions = Field(default_factory=BatchOptions)
    status: BatchStatus = "pending"
    progress: float = 0.0
    total_items: int = 0
    processed_items: int = 0
    successful_items: int = 0
    failed_items: int = 0
    skipped_items: int = 0
    errors: List[BatchError] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_by: str = "system"
    estimated_duration: Optional[float] = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class BatchStats(BaseModel):
    """Fleet-wide aggregate over all known batch operations."""

    total_operations: int = 0
    running_operations: int = 0
    completed_operations: int = 0
    failed_operations: int = 0
    total_items_processed: int = 0
    success_rate: float = 0.0


class WorkflowTrigger(BaseModel):
    type: TriggerType = "manual"
    conditions: Dict[str, Any] = Field(default_factory=dict)


class WorkflowStep(BaseModel):
    """Defines one step in a workflow."""

    id: str
    type: str
    config: Dict[str, Any] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list)


class WorkflowCondition(BaseModel):
    """Gating predicate evaluated against the execution scope."""

    field: str
    operator: ConditionOperator = "equals"
    value: Any = None


class WorkflowDefinition(BaseModel):
    """A named, ordered sequence of steps."""

    id: str
    name: str
    description: str = ""
    triggers: List[WorkflowTrigger] = Field(default_factory=list)
    steps: List[WorkflowStep] = Field(default_factory=list)
    conditions: List[WorkflowCondition] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class StepResult(BaseModel):
    """Outcome of a single workflow step."""

    step_id: str
    step_type: str
    status: StepStatus
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class WorkflowLog(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    level: Literal["info", "warn", "error"] = "info"
    message: str
    step_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class WorkflowExecution(BaseModel):
    """Record of one triggered run of a workflow definition."""

    id: str
    workflow_id: str
    context: Dict[str, Any] = Field(default_factory=dict)
    status: ExecutionStatus = "running"
    current_step: Optional[str] = None
    progress: float = 0.0
    step_results: List[StepResult] = Field(default_factory=list)
    logs: List[WorkflowLog] = Field(default_factory=list)
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class WorkflowTriggerRequest(BaseModel):
    """Workflow trigger surface."""

    workflow_id: str
    context: Dict[str, Any] = Field(default_factory=dict)
