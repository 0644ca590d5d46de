"""Batch operation manager tests."""

import asyncio

import pytest

from batchflow import BatchOperationManager, BatchOptions, BatchRequest
from batchflow.config import BatchDefaults
from batchflow.errors import InvalidRequest, OperationNotFound
from batchflow.events import (
    BatchCompletedEvent,
    BatchCreatedEvent,
    BatchProgressEvent,
    InMemoryEventBus,
)
from batchflow.gateway import InMemoryEntityGateway

TIMEOUT = 5.0


def _manager(**defaults):
    gateway = InMemoryEntityGateway()
    bus = InMemoryEventBus()
    manager = BatchOperationManager(gateway, bus, defaults=BatchDefaults(**defaults))
    return manager, gateway, bus


def _epic(title, project_id="proj-1"):
    return {"title": title, "project_id": project_id}


async def _run(manager, request):
    operation_id = await manager.create_batch_operation(request)
    return await manager.wait_for_operation(operation_id, timeout=TIMEOUT)


@pytest.mark.asyncio
async def test_continue_on_error_processes_every_item():
    manager, gateway, _ = _manager()
    request = BatchRequest(
        type="create",
        target_type="epic",
        items=[_epic("A"), {"title": "B"}, _epic("C")],
        options=BatchOptions(continue_on_error=True, max_concurrency=2),
    )

    operation = await _run(manager, request)

    assert operation.status == "completed"
    assert operation.successful_items == 2
    assert operation.failed_items == 1
    assert operation.skipped_items == 0
    assert operation.progress == 1.0
    assert len(operation.errors) == 1
    assert operation.errors[0].item_index == 1
    assert "project_id" in operation.errors[0].message
    assert sorted(e.title for e in await gateway.list_epics()) == ["A", "C"]


@pytest.mark.asyncio
async def test_fail_fast_stops_dispatching_after_first_failure():
    manager, gateway, _ = _manager()
    request = BatchRequest(
        type="create",
        target_type="epic",
        items=[_epic("A"), {"title": "B"}, _epic("C")],
        options=BatchOptions(continue_on_error=False, max_concurrency=1),
    )

    operation = await _run(manager, request)

    assert operation.status == "failed"
    assert operation.successful_items == 1
    assert operation.failed_items == 1
    assert operation.skipped_items == 1
    assert [e.title for e in await gateway.list_epics()] == ["A"]


@pytest.mark.asyncio
async def test_validate_first_rejects_batch_before_any_gateway_call():
    manager, gateway, _ = _manager()
    request = BatchRequest(
        type="create",
        target_type="epic",
        items=[_epic("A"), {"project_id": "proj-1"}, _epic("C")],
        options=BatchOptions(validate_first=True),
    )

    operation = await _run(manager, request)

    assert operation.status == "failed"
    assert operation.successful_items == 0
    assert operation.failed_items == 1
    assert operation.processed_items == 0
    assert operation.progress == 0.0
    assert operation.skipped_items == 2
    assert operation.errors[0].item_index == 1
    assert await gateway.list_epics() == []

    stats = manager.get_batch_stats()
    assert stats.failed_operations == 1
    assert stats.total_items_processed == 0
    assert stats.success_rate == 0.0


@pytest.mark.asyncio
async def test_validate_first_with_continue_skips_only_invalid_items():
    manager, gateway, _ = _manager()
    request = BatchRequest(
        type="create",
        target_type="epic",
        items=[_epic("A"), {"project_id": "proj-1"}, _epic("C")],
        options=BatchOptions(validate_first=True, continue_on_error=True),
    )

    operation = await _run(manager, request)

    assert operation.status == "completed"
    assert operation.successful_items == 2
    assert operation.failed_items == 1
    assert operation.processed_items == 3
    assert operation.progress == 1.0
    assert len(await gateway.list_epics()) == 2


@pytest.mark.asyncio
async def test_fail_fast_lets_in_flight_items_finish_but_dispatches_no_more():
    manager, gateway, _ = _manager()
    attempted = []
    create_epic = gateway.create_epic

    async def flaky_create(payload):
        attempted.append(payload["title"])
        if payload["title"] == "0":
            raise RuntimeError("rejected")
        await asyncio.sleep(0.05)
        return await create_epic(payload)

    gateway.create_epic = flaky_create

    operation = await _run(
        manager,
        BatchRequest(
            type="create",
            target_type="epic",
            items=[_epic(str(n)) for n in range(5)],
            options=BatchOptions(continue_on_error=False, max_concurrency=2),
        ),
    )

    assert operation.status == "failed"
    assert attempted == ["0", "1"]
    assert operation.successful_items == 1
    assert operation.failed_items == 1
    assert operation.skipped_items == 3
    assert [e.title for e in await gateway.list_epics()] == ["1"]


@pytest.mark.asyncio
async def test_gateway_errors_are_recorded_per_item():
    manager, gateway, _ = _manager()
    epic = await gateway.create_epic(_epic("Checkout"))
    story = await gateway.create_story({"epic_id": epic.id, "title": "Cart"})
    request = BatchRequest(
        type="update",
        target_type="story",
        items=[{"id": story.id, "status": "active"}, {"id": "story-404", "status": "x"}],
        options=BatchOptions(continue_on_error=True),
    )

    operation = await _run(manager, request)

    assert operation.status == "completed"
    assert operation.errors[0].item_index == 1
    assert "does not exist" in operation.errors[0].message
    [stored] = await gateway.list_stories()
    assert stored.status == "active"


@pytest.mark.asyncio
async def test_all_items_failing_marks_operation_failed():
    manager, _, _ = _manager()
    request = BatchRequest(
        type="delete",
        target_type="task",
        items=[{"id": "task-1"}, {"id": "task-2"}],
        options=BatchOptions(continue_on_error=True, max_concurrency=2),
    )

    operation = await _run(manager, request)

    assert operation.status == "failed"
    assert operation.failed_items == 2


@pytest.mark.asyncio
async def test_delete_batch():
    manager, gateway, _ = _manager()
    ids = [(await gateway.create_epic(_epic(t))).id for t in ("A", "B")]

    operation = await _run(
        manager, {"type": "delete", "target_type": "epic", "items": [{"id": i} for i in ids]}
    )

    assert operation.status == "completed"
    assert await gateway.list_epics() == []


@pytest.mark.asyncio
async def test_cancel_stops_between_items():
    manager, gateway, _ = _manager()
    operation_id = await manager.create_batch_operation(
        BatchRequest(
            type="create",
            target_type="epic",
            items=[_epic(str(n)) for n in range(5)],
            options=BatchOptions(delay=0.2),
        )
    )
    await asyncio.sleep(0.05)

    assert manager.cancel_batch_operation(operation_id) is True
    assert manager.cancel_batch_operation(operation_id) is False

    operation = await manager.wait_for_operation(operation_id, timeout=TIMEOUT)
    assert operation.status == "cancelled"
    assert operation.successful_items == 1
    assert operation.skipped_items == 4
    assert len(await gateway.list_epics()) == 1
    assert manager.cancel_batch_operation(operation_id) is False


@pytest.mark.asyncio
async def test_finished_operations_release_task_handles():
    manager, _, _ = _manager()
    operation = await _run(
        manager, BatchRequest(type="create", target_type="epic", items=[_epic("A")])
    )
    await asyncio.sleep(0)

    assert manager._tasks == {}
    assert manager._tokens == {}
    again = await manager.wait_for_operation(operation.id, timeout=TIMEOUT)
    assert again.status == "completed"
    assert manager.cancel_batch_operation(operation.id) is False


def test_cancel_unknown_operation():
    manager, _, _ = _manager()

    with pytest.raises(OperationNotFound):
        manager.cancel_batch_operation("batch-404")


@pytest.mark.asyncio
async def test_concurrency_limit_is_respected():
    manager, gateway, _ = _manager()
    in_flight = 0
    peak = 0
    create_epic = gateway.create_epic

    async def slow_create(payload):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.02)
        in_flight -= 1
        return await create_epic(payload)

    gateway.create_epic = slow_create

    operation = await _run(
        manager,
        BatchRequest(
            type="create",
            target_type="epic",
            items=[_epic(str(n)) for n in range(6)],
            options=BatchOptions(max_concurrency=2),
        ),
    )

    assert operation.successful_items == 6
    assert peak == 2


@pytest.mark.asyncio
async def test_unexpected_gateway_exception_becomes_item_failure():
    manager, gateway, _ = _manager()

    async def broken(payload):
        raise RuntimeError("connection reset")

    gateway.create_epic = broken

    operation = await _run(
        manager,
        BatchRequest(type="create", target_type="epic", items=[_epic("A")]),
    )

    assert operation.status == "failed"
    assert operation.errors[0].message == "connection reset"


@pytest.mark.asyncio
async def test_events_are_published_in_order():
    manager, _, bus = _manager()
    events = []
    for event_type in (BatchCreatedEvent, BatchProgressEvent, BatchCompletedEvent):
        bus.on(event_type, events.append)

    operation = await _run(
        manager,
        BatchRequest(type="create", target_type="epic", items=[_epic("A"), _epic("B")]),
    )

    assert [e.name for e in events] == [
        "batch:created",
        "batch:progress",
        "batch:progress",
        "batch:completed",
    ]
    assert events[0].operation.status == "pending"
    assert [e.progress for e in events[1:3]] == [0.5, 1.0]
    assert events[-1].operation.id == operation.id
    assert events[-1].operation.status == "completed"


@pytest.mark.asyncio
async def test_unset_options_fall_back_to_defaults():
    manager, _, _ = _manager(continue_on_error=True, max_concurrency=3)

    operation = await _run(
        manager,
        BatchRequest(
            type="create",
            target_type="epic",
            items=[_epic("A")],
            options=BatchOptions(max_concurrency=2),
        ),
    )

    assert operation.options.continue_on_error is True
    assert operation.options.max_concurrency == 2
    assert operation.estimated_duration == 1.0


@pytest.mark.asyncio
async def test_invalid_requests_are_rejected():
    manager, _, _ = _manager()

    with pytest.raises(InvalidRequest):
        await manager.create_batch_operation(
            BatchRequest(type="create", target_type="epic", items=[])
        )
    with pytest.raises(InvalidRequest):
        await manager.create_batch_operation(
            {"type": "archive", "target_type": "epic", "items": [_epic("A")]}
        )
    with pytest.raises(InvalidRequest):
        await manager.create_batch_operation(
            {"type": "create", "target_type": "milestone", "items": [_epic("A")]}
        )
    with pytest.raises(InvalidRequest):
        await manager.create_batch_operation(
            {
                "type": "create",
                "target_type": "epic",
                "items": [_epic("A")],
                "options": {"max_concurrency": 0},
            }
        )
    assert manager.get_all_batch_operations() == []


@pytest.mark.asyncio
async def test_lookup_returns_snapshots_and_stats():
    manager, _, _ = _manager()
    first = await _run(
        manager, BatchRequest(type="create", target_type="epic", items=[_epic("A")])
    )
    second = await _run(
        manager, BatchRequest(type="create", target_type="epic", items=[{"title": "B"}])
    )

    snapshot = manager.get_batch_operation(first.id)
    snapshot.status = "running"
    assert manager.get_batch_operation(first.id).status == "completed"
    assert manager.get_batch_operation("batch-404") is None
    assert [op.id for op in manager.get_all_batch_operations()] == [first.id, second.id]

    stats = manager.get_batch_stats()
    assert stats.total_operations == 2
    assert stats.running_operations == 0
    assert stats.completed_operations == 1
    assert stats.failed_operations == 1
    assert stats.total_items_processed == 2
    assert stats.success_rate == 0.5


def test_empty_stats():
    manager, _, _ = _manager()

    stats = manager.get_batch_stats()
    assert stats.total_operations == 0
    assert stats.success_rate == 0.0
