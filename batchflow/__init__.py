"""Batchflow: batch operations and workflow automation for project hierarchies."""

from .batch import BatchOperationManager
from .config import BatchflowConfig, load_config
from .contracts import (
    BatchOperation,
    BatchOptions,
    BatchRequest,
    BatchStats,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowStep,
    WorkflowTriggerRequest,
)
from .errors import (
    BatchflowError,
    GatewayError,
    InvalidRequest,
    InvalidWorkflow,
    OperationNotFound,
    StepExecutionError,
    ValidationError,
    WorkflowNotFound,
)
from .events import get_event_bus
from .gateway import get_gateway
from .runtime import BatchflowRuntime, build_runtime
from .validation import validate_item
from .workflows import WorkflowEngine

__version__ = "0.1.0"
__all__ = [
    "BatchOperationManager",
    "WorkflowEngine",
    "BatchflowRuntime",
    "build_runtime",
    "BatchflowConfig",
    "load_config",
    "BatchOperation",
    "BatchOptions",
    "BatchRequest",
    "BatchStats",
    "WorkflowDefinition",
    "WorkflowExecution",
    "WorkflowStep",
    "WorkflowTriggerRequest",
    "BatchflowError",
    "InvalidRequest",
    "OperationNotFound",
    "ValidationError",
    "GatewayError",
    "WorkflowNotFound",
    "InvalidWorkflow",
    "StepExecutionError",
    "get_event_bus",
    "get_gateway",
    "validate_item",
]
