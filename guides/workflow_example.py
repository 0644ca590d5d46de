"""Example registering a custom workflow and running it by hand."""

import asyncio

from batchflow import WorkflowDefinition, WorkflowStep, build_runtime
from batchflow.events import NotificationEvent


async def main():
    runtime = build_runtime()
    runtime.event_bus.on(
        NotificationEvent, lambda event: print(f"🔔 [{event.channel}] {event.message}")
    )

    epic = await runtime.gateway.create_epic(
        {"project_id": "proj-1", "title": "Checkout redesign", "priority": "high"}
    )

    await runtime.workflows.add_workflow(
        WorkflowDefinition(
            id="kickoff",
            name="Epic kickoff",
            steps=[
                WorkflowStep(
                    id="high-priority-only",
                    type="condition",
                    config={
                        "conditions": [
                            {"field": "epic.priority", "operator": "equals", "value": "high"}
                        ]
                    },
                ),
                WorkflowStep(
                    id="spike",
                    type="create_entity",
                    config={
                        "target_type": "story",
                        "payload": {"epic_id": "{epic.id}", "title": "Spike: {epic.title}"},
                    },
                ),
                WorkflowStep(
                    id="announce",
                    type="send_notification",
                    config={
                        "message": "Kickoff story {steps.spike.entity_id} created",
                        "channels": ["system", "team"],
                    },
                    depends_on=["spike"],
                ),
            ],
        )
    )

    execution_id = await runtime.workflows.execute_workflow(
        "kickoff", {"epic": epic.model_dump()}
    )
    execution = await runtime.workflows.wait_for_execution(execution_id)

    print(f"✅ Execution {execution.id}: {execution.status}")
    for result in execution.step_results:
        print(f"   {result.step_id}: {result.status} {result.output}")

    await runtime.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
