"""In-memory entity gateway tests."""

import pytest

from batchflow.errors import GatewayError
from batchflow.gateway import Epic, InMemoryEntityGateway


@pytest.mark.asyncio
async def test_create_and_list_hierarchy():
    gateway = InMemoryEntityGateway()
    epic = await gateway.create_epic({"project_id": "proj-1", "title": "Checkout"})
    story = await gateway.create_story({"epic_id": epic.id, "title": "Pay by card"})
    await gateway.create_task({"story_id": story.id, "title": "Form", "type": "DEV"})
    await gateway.create_task({"story_id": story.id, "title": "E2E", "type": "TEST"})

    assert isinstance(epic, Epic)
    assert epic.id.startswith("epic-")
    assert [s.id for s in await gateway.list_stories({"epic_id": epic.id})] == [story.id]
    assert len(await gateway.list_tasks({"story_id": story.id})) == 2
    assert [t.title for t in await gateway.list_tasks({"type": "TEST"})] == ["E2E"]


@pytest.mark.asyncio
async def test_child_requires_existing_parent():
    gateway = InMemoryEntityGateway()

    with pytest.raises(GatewayError, match="epic epic-404 does not exist"):
        await gateway.create_story({"epic_id": "epic-404", "title": "Orphan"})


@pytest.mark.asyncio
async def test_duplicate_id_and_invalid_payload_are_rejected():
    gateway = InMemoryEntityGateway()
    await gateway.create_epic({"id": "epic-1", "project_id": "p", "title": "A"})

    with pytest.raises(GatewayError, match="already exists"):
        await gateway.create_epic({"id": "epic-1", "project_id": "p", "title": "B"})
    with pytest.raises(GatewayError, match="invalid epic"):
        await gateway.create_epic({"project_id": "p"})


@pytest.mark.asyncio
async def test_update_merges_fields_and_keeps_id():
    gateway = InMemoryEntityGateway()
    epic = await gateway.create_epic({"project_id": "p", "title": "Checkout"})

    updated = await gateway.update_epic(epic.id, {"status": "active", "id": "other"})

    assert updated.id == epic.id
    assert updated.status == "active"
    assert updated.title == "Checkout"
    assert updated.created_at == epic.created_at


@pytest.mark.asyncio
async def test_update_and_delete_unknown_entities_fail():
    gateway = InMemoryEntityGateway()

    with pytest.raises(GatewayError):
        await gateway.update_task("task-404", {"status": "done"})
    with pytest.raises(GatewayError):
        await gateway.delete_instruction("instruction-404")


@pytest.mark.asyncio
async def test_returned_entities_are_copies():
    gateway = InMemoryEntityGateway()
    epic = await gateway.create_epic({"project_id": "p", "title": "Checkout"})
    epic.title = "Mutated"

    stored = await gateway.list_epics()
    assert stored[0].title == "Checkout"

    await gateway.delete_epic(epic.id)
    assert await gateway.list_epics() == []
