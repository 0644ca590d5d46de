"""Workflow definitions registered when an engine is constructed."""

from __future__ import annotations

from typing import List

from ..contracts import WorkflowDefinition, WorkflowStep, WorkflowTrigger


def builtin_workflows() -> List[WorkflowDefinition]:
    """Return fresh copies of the built-in workflow definitions."""
    return [
        WorkflowDefinition(
            id="epic-to-stories",
            name="Epic breakdown",
            description="Generate user stories when a new epic is created",
            triggers=[
                WorkflowTrigger(type="epic_created", conditions={"auto_generate": True})
            ],
            steps=[
                WorkflowStep(
                    id="analyze-epic",
                    type="create_stories",
                    config={"max_stories": 10, "analysis_depth": "detailed"},
                ),
                WorkflowStep(
                    id="notify-team",
                    type="send_notification",
                    config={
                        "message": "Epic {epic.title} was broken down into stories",
                        "channels": ["system"],
                    },
                    depends_on=["analyze-epic"],
                ),
            ],
        ),
        WorkflowDefinition(
            id="story-to-tasks",
            name="Story task breakdown",
            description="Generate development tasks once a story is analyzed",
            triggers=[
                WorkflowTrigger(
                    type="story_completed", conditions={"story.status": "completed"}
                )
            ],
            steps=[
                WorkflowStep(
                    id="create-dev-tasks",
                    type="create_tasks",
                    config={"task_types": ["DEV", "TEST", "REVIEW"], "estimate_time": True},
                ),
                WorkflowStep(
                    id="coordinate-agents",
                    type="execute_instructions",
                    config={"strategy": "skill-matched", "priority": "medium"},
                    depends_on=["create-dev-tasks"],
                ),
            ],
        ),
    ]
