"""Exception hierarchy for batch operations and workflows."""

from __future__ import annotations

from typing import Optional


class BatchflowError(Exception):
    """Base class for all batchflow errors."""


class InvalidRequest(BatchflowError):
    """A batch submission is malformed (empty items, unknown type...)."""


class OperationNotFound(BatchflowError):
    """No batch operation is registered under the given id."""


class ValidationError(BatchflowError):
    """An item failed structural validation."""


class GatewayError(BatchflowError):
    """The entity gateway rejected an item."""


class WorkflowNotFound(BatchflowError):
    """The workflow is unknown or inactive."""


class InvalidWorkflow(BatchflowError):
    """A workflow definition cannot be registered."""


class StepExecutionError(BatchflowError):
    """A workflow step failed."""

    def __init__(self, message: str, step_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.step_id = step_id
