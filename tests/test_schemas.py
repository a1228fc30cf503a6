"""Tests for request models, mainly the patch semantics of TaskUpdate."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from tasktracker.schemas import TaskUpdate


def test_changes_only_include_supplied_fields():
    patch = TaskUpdate.model_validate({"task_id": 3, "status": "done"})
    assert patch.changes() == {"status": "done"}


def test_null_is_distinct_from_absent():
    patch = TaskUpdate.model_validate({"task_id": 3, "next_step": None})
    assert patch.changes() == {"next_step": None}
    assert "milestones" not in patch.changes()


def test_unknown_keys_are_not_changes():
    patch = TaskUpdate.model_validate({"task_id": 3, "colour": "blue"})
    assert patch.changes() == {}


@pytest.mark.parametrize("field, value", [("status", "someday"), ("priority", "urgent")])
def test_enumerations_are_enforced(field, value):
    with pytest.raises(PydanticValidationError):
        TaskUpdate.model_validate({"task_id": 1, field: value})
