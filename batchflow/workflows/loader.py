from __future__ import annotations

from pathlib import Path
from typing import List, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..contracts import WorkflowDefinition
from ..errors import InvalidWorkflow


def load_workflow_definitions(path: Union[str, Path]) -> List[WorkflowDefinition]:
    """Load custom workflow definitions from a YAML file.

    The file holds either a list of definitions or a mapping with a
    ``workflows`` key containing that list.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("workflows", [])
    if not isinstance(data, list):
        raise InvalidWorkflow(f"{path}: expected a list of workflow definitions")

    try:
        return [WorkflowDefinition.model_validate(item) for item in data]
    except PydanticValidationError as exc:
        raise InvalidWorkflow(f"{path}: {exc}") from exc
