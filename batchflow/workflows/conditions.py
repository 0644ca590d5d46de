"""Condition evaluation and context templating for workflow steps."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Iterable

from ..contracts import WorkflowCondition

_MISSING = object()
_PLACEHOLDER = re.compile(r"\{([A-Za-z_][\w.]*)\}")


def resolve_path(scope: Any, path: str, default: Any = None) -> Any:
    """Look up a dotted ``path`` through mappings and object attributes."""
    current = scope
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return default
    return current


def evaluate_condition(condition: WorkflowCondition, scope: Mapping[str, Any]) -> bool:
    actual = resolve_path(scope, condition.field, _MISSING)
    op = condition.operator

    if op == "exists":
        exists = actual is not _MISSING and actual is not None
        return exists if condition.value is None else exists == bool(condition.value)
    if actual is _MISSING:
        return op == "not_equals"
    if op == "equals":
        return actual == condition.value
    if op == "not_equals":
        return actual != condition.value
    if op == "contains":
        try:
            return condition.value in actual
        except TypeError:
            return False
    try:
        if op == "greater_than":
            return actual > condition.value
        if op == "less_than":
            return actual < condition.value
    except TypeError:
        return False
    raise ValueError(f"Unsupported condition operator: {op}")


def conditions_met(
    conditions: Iterable[WorkflowCondition], scope: Mapping[str, Any]
) -> bool:
    return all(evaluate_condition(c, scope) for c in conditions)


def render_template(value: Any, scope: Mapping[str, Any]) -> Any:
    """Substitute ``{dotted.path}`` placeholders in ``value`` from ``scope``.

    A string that is exactly one placeholder is replaced by the raw value so
    ids and numbers keep their type; placeholders inside longer strings are
    formatted in. Unknown paths are left untouched.
    """
    if isinstance(value, str):
        whole = _PLACEHOLDER.fullmatch(value)
        if whole:
            return resolve_path(scope, whole.group(1), value)

        def _sub(match: re.Match) -> str:
            resolved = resolve_path(scope, match.group(1), _MISSING)
            return match.group(0) if resolved is _MISSING else str(resolved)

        return _PLACEHOLDER.sub(_sub, value)
    if isinstance(value, Mapping):
        return {k: render_template(v, scope) for k, v in value.items()}
    if isinstance(value, list):
        return [render_template(v, scope) for v in value]
    return value
