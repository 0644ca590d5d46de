"""Example importing a set of epics and following batch progress."""

import asyncio

from batchflow import BatchOptions, BatchRequest, build_runtime
from batchflow.events import BatchCompletedEvent, BatchProgressEvent


async def main():
    """Create epics in one batch and print progress as items finish."""
    runtime = build_runtime()

    def on_progress(event: BatchProgressEvent):
        mark = "✅" if event.succeeded else "❌"
        print(f"{mark} item {event.item_index} ({event.processed_items}/{event.total_items})")

    runtime.event_bus.on(BatchProgressEvent, on_progress)
    runtime.event_bus.on(
        BatchCompletedEvent,
        lambda event: print(f"🏁 Batch finished as {event.operation.status}"),
    )

    # The second item lacks a project and is reported as a failure
    items = [
        {"project_id": "proj-1", "title": "Checkout redesign"},
        {"title": "Search relevance"},
        {"project_id": "proj-1", "title": "Account settings"},
    ]
    operation_id = await runtime.batches.create_batch_operation(
        BatchRequest(
            type="create",
            target_type="epic",
            items=items,
            options=BatchOptions(continue_on_error=True, max_concurrency=2),
            metadata={"auto_generate": True},
            created_by="import-script",
        )
    )

    operation = await runtime.batches.wait_for_operation(operation_id)
    for error in operation.errors:
        print(f"⚠️  item {error.item_index}: {error.message}")

    # auto_generate starts the epic-to-stories workflow for every created epic
    await runtime.shutdown()
    for execution in runtime.workflows.get_all_workflow_executions():
        print(f"📋 {execution.workflow_id} {execution.id}: {execution.status}")

    print(f"📊 {runtime.batches.get_batch_stats()}")


if __name__ == "__main__":
    asyncio.run(main())
