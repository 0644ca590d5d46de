"""Tests for structural item validation."""

import pytest

from batchflow.validation import validate_item


@pytest.mark.parametrize(
    "target_type,item",
    [
        ("epic", {"title": "Checkout", "project_id": "proj-1"}),
        ("story", {"title": "Pay by card", "epic_id": "epic-1"}),
        ("task", {"title": "Build form", "story_id": "story-1", "type": "DEV"}),
        ("instruction", {"directive": "Write tests", "task_id": "task-1"}),
    ],
)
def test_create_items_with_required_fields_are_valid(target_type, item):
    assert validate_item("create", target_type, item).valid


def test_create_reports_every_missing_field():
    result = validate_item("create", "task", {"title": "Build form"})

    assert not result.valid
    assert result.reason == "create task requires story_id, type"


def test_empty_values_count_as_missing():
    result = validate_item("create", "epic", {"title": "", "project_id": None})

    assert not result.valid
    assert "title" in result.reason
    assert "project_id" in result.reason


@pytest.mark.parametrize("op_type", ["update", "delete"])
def test_update_and_delete_require_id(op_type):
    assert not validate_item(op_type, "story", {"title": "x"}).valid
    assert validate_item(op_type, "story", {"id": "story-1"}).valid


def test_non_mapping_item_is_invalid():
    result = validate_item("create", "epic", "Checkout")

    assert not result.valid
    assert result.reason == "epic item must be a mapping"
