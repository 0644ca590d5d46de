"""Workflow definitions, step handlers and the workflow engine."""

from __future__ import annotations

from .builtin import builtin_workflows
from .conditions import conditions_met, evaluate_condition, render_template, resolve_path
from .engine import WorkflowEngine
from .loader import load_workflow_definitions
from .steps import DEFAULT_STEP_HANDLERS, StepContext, StepHandler

__all__ = [
    "WorkflowEngine",
    "StepContext",
    "StepHandler",
    "DEFAULT_STEP_HANDLERS",
    "builtin_workflows",
    "load_workflow_definitions",
    "conditions_met",
    "evaluate_condition",
    "render_template",
    "resolve_path",
]
