"""Structural validation of batch items."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel

_CREATE_REQUIRED: Dict[str, Tuple[str, ...]] = {
    "epic": ("title", "project_id"),
    "story": ("title", "epic_id"),
    "task": ("title", "story_id", "type"),
    "instruction": ("directive", "task_id"),
}


class ValidationResult(BaseModel):
    valid: bool
    reason: Optional[str] = None


def _missing(item: Mapping, field: str) -> bool:
    value = item.get(field)
    return value is None or value == "" or value == [] or value == {}


def validate_item(op_type: str, target_type: str, item: Any) -> ValidationResult:
    """Check that ``item`` carries the fields ``op_type`` needs on ``target_type``.

    Only structure is checked; field contents are the gateway's concern.
    """
    if not isinstance(item, Mapping):
        return ValidationResult(
            valid=False, reason=f"{target_type} item must be a mapping"
        )

    if op_type == "create":
        required = _CREATE_REQUIRED.get(target_type, ())
    else:
        required = ("id",)

    missing = [field for field in required if _missing(item, field)]
    if missing:
        return ValidationResult(
            valid=False,
            reason=f"{op_type} {target_type} requires {', '.join(missing)}",
        )
    return ValidationResult(valid=True)
