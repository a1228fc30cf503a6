"""Tests for the task, completed-step and project repositories."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import delete

from tasktracker import crud
from tasktracker.errors import NotFoundError, StorageError, ValidationError
from tasktracker.models import CompletedStep, Project, Task
from tasktracker.schemas import CompletedStepCreate, TaskCreate, TaskUpdate


async def _create(db, title="Task", **fields):
    return await crud.create_task(db, TaskCreate(title=title, **fields))


class TestCreateTask:
    async def test_defaults(self, db):
        task = await _create(db, "Write report")
        assert task.task_id is not None
        assert task.title == "Write report"
        assert task.status == "active"
        assert task.priority == "medium"
        assert task.next_step is None
        assert task.last_step_description is None
        assert task.last_step_completed_at is None

    async def test_title_is_trimmed(self, db):
        task = await _create(db, "  Padded  ")
        assert task.title == "Padded"

    @pytest.mark.parametrize("title", [None, "", "   "])
    async def test_blank_title_rejected(self, db, title):
        with pytest.raises(ValidationError):
            await crud.create_task(db, TaskCreate(title=title))

    async def test_optional_fields(self, db):
        task = await _create(db, "Plan", milestones="- [ ] one", notes="some notes")
        assert task.milestones == "- [ ] one"
        assert task.notes == "some notes"

    async def test_with_project(self, db):
        project = Project(name="Home")
        db.add(project)
        await db.commit()

        task = await _create(db, "Fix sink", project_id=project.project_id)
        assert task.project_id == project.project_id

    async def test_unknown_project_rejected(self, db):
        with pytest.raises(NotFoundError):
            await _create(db, "Orphan", project_id=999)


class TestListTasks:
    async def test_empty(self, db):
        assert await crud.list_tasks(db) == []

    async def test_round_trip(self, db):
        await _create(db, "A")
        tasks = await crud.list_tasks(db)
        assert [t.title for t in tasks] == ["A"]
        assert tasks[0].next_step is None

    async def test_newest_first(self, db):
        await _create(db, "first")
        await _create(db, "second")
        await _create(db, "third")

        titles = [t.title for t in await crud.list_tasks(db)]
        assert titles == ["third", "second", "first"]

    async def test_last_step_after_add(self, db):
        task = await _create(db, "T")
        await crud.add_step(db, CompletedStepCreate(task_id=task.task_id, description="x"))

        listed = await crud.list_tasks(db)
        assert listed[0].last_step_description == "x"
        assert listed[0].last_step_completed_at is not None

    async def test_one_row_per_task_with_many_steps(self, db):
        task = await _create(db, "Busy")
        other = await _create(db, "Quiet")
        base = datetime(2024, 1, 1, 12, 0, 0)
        times = [base + timedelta(hours=h) for h in (3, 1, 7, 5)]
        for index, completed_at in enumerate(times):
            db.add(CompletedStep(task_id=task.task_id, description=f"step {index}", completed_at=completed_at))
        await db.commit()

        tasks = await crud.list_tasks(db)
        assert len(tasks) == 2
        busy = [t for t in tasks if t.task_id == task.task_id]
        assert len(busy) == 1
        assert busy[0].last_step_completed_at == max(times)
        assert busy[0].last_step_description == "step 2"

        quiet = [t for t in tasks if t.task_id == other.task_id][0]
        assert quiet.last_step_description is None

    async def test_tie_goes_to_highest_step_id(self, db):
        task = await _create(db, "Tied")
        same_time = datetime(2024, 5, 5, 9, 30, 0)
        db.add(CompletedStep(task_id=task.task_id, description="earlier id", completed_at=same_time))
        await db.commit()
        db.add(CompletedStep(task_id=task.task_id, description="later id", completed_at=same_time))
        await db.commit()

        fetched = await crud.get_task(db, task.task_id)
        assert fetched.last_step_description == "later id"


class TestGetTask:
    async def test_found(self, db):
        task = await _create(db, "Find me")
        fetched = await crud.get_task(db, task.task_id)
        assert fetched.title == "Find me"

    async def test_missing(self, db):
        with pytest.raises(NotFoundError):
            await crud.get_task(db, 12345)


class TestUpdateTask:
    async def test_only_status_changes(self, db):
        task = await _create(db, "Steady", milestones="m", notes="n")
        await crud.update_task(db, task.task_id, TaskUpdate(next_step="go"))
        before = await crud.get_task(db, task.task_id)

        after = await crud.update_task(db, task.task_id, TaskUpdate(status="done"))

        assert after.status == "done"
        assert after.updated_at > before.updated_at
        assert after.created_at == before.created_at
        ignored = {"status", "updated_at"}
        assert after.model_dump(exclude=ignored) == before.model_dump(exclude=ignored)

    async def test_absent_field_untouched_and_null_clears(self, db):
        task = await _create(db, "Patch me")
        await crud.update_task(db, task.task_id, TaskUpdate(next_step="call Bob", milestones="plan"))

        updated = await crud.update_task(db, task.task_id, TaskUpdate(milestones=None))
        assert updated.next_step == "call Bob"
        assert updated.milestones is None

        cleared = await crud.update_task(db, task.task_id, TaskUpdate(next_step=None))
        assert cleared.next_step is None

    async def test_returns_last_step(self, db):
        task = await _create(db, "With step")
        await crud.add_step(db, CompletedStepCreate(task_id=task.task_id, description="did it"))

        updated = await crud.update_task(db, task.task_id, TaskUpdate(priority="high"))
        assert updated.priority == "high"
        assert updated.last_step_description == "did it"

    async def test_unknown_task(self, db):
        with pytest.raises(NotFoundError):
            await crud.update_task(db, 999, TaskUpdate(status="done"))

    async def test_missing_task_id(self, db):
        with pytest.raises(ValidationError):
            await crud.update_task(db, None, TaskUpdate(status="done"))

    async def test_no_recognized_fields(self, db):
        task = await _create(db, "Nothing to do")
        with pytest.raises(ValidationError):
            await crud.update_task(db, task.task_id, TaskUpdate(task_id=task.task_id))

    @pytest.mark.parametrize("field", ["title", "status", "priority"])
    async def test_required_columns_cannot_be_cleared(self, db, field):
        task = await _create(db, "Keep")
        with pytest.raises(ValidationError):
            await crud.update_task(db, task.task_id, TaskUpdate(**{field: None}))

    async def test_blank_title_rejected(self, db):
        task = await _create(db, "Keep")
        with pytest.raises(ValidationError):
            await crud.update_task(db, task.task_id, TaskUpdate(title="  "))

    async def test_unknown_project_rejected(self, db):
        task = await _create(db, "Keep")
        with pytest.raises(NotFoundError):
            await crud.update_task(db, task.task_id, TaskUpdate(project_id=42))

    async def test_database_rejects_unknown_status(self, db):
        task = await _create(db, "Strict")
        patch = TaskUpdate.model_construct(task_id=task.task_id, status="someday")
        with pytest.raises(StorageError):
            await crud.update_task(db, task.task_id, patch)


class TestCompletedSteps:
    async def test_add_step(self, db):
        task = await _create(db, "Log")
        step = await crud.add_step(db, CompletedStepCreate(task_id=task.task_id, description="  first  "))
        assert step.completed_step_id is not None
        assert step.task_id == task.task_id
        assert step.description == "first"
        assert step.completed_at is not None

    async def test_add_step_leaves_task_alone(self, db):
        task = await _create(db, "Log")
        await crud.update_task(db, task.task_id, TaskUpdate(next_step="keep me"))
        await crud.add_step(db, CompletedStepCreate(task_id=task.task_id, description="done"))

        fetched = await crud.get_task(db, task.task_id)
        assert fetched.next_step == "keep me"

    @pytest.mark.parametrize("payload", [
        {"task_id": None, "description": "x"},
        {"description": "x"},
        {"task_id": 1},
        {"task_id": 1, "description": "   "},
    ])
    async def test_add_step_requires_fields(self, db, payload):
        await _create(db, "Log")
        with pytest.raises(ValidationError):
            await crud.add_step(db, CompletedStepCreate(**payload))

    async def test_add_step_unknown_task(self, db):
        with pytest.raises(NotFoundError):
            await crud.add_step(db, CompletedStepCreate(task_id=77, description="x"))

    async def test_list_steps_newest_first(self, db):
        task = await _create(db, "A")
        other = await _create(db, "B")
        base = datetime(2024, 3, 1)
        db.add(CompletedStep(task_id=task.task_id, description="old", completed_at=base))
        db.add(CompletedStep(task_id=other.task_id, description="middle", completed_at=base + timedelta(days=1)))
        db.add(CompletedStep(task_id=task.task_id, description="new", completed_at=base + timedelta(days=2)))
        await db.commit()

        assert [s.description for s in await crud.list_steps(db)] == ["new", "middle", "old"]
        assert [s.description for s in await crud.list_steps(db, task_id=task.task_id)] == ["new", "old"]

    async def test_complete_step_records_and_clears(self, db):
        task = await _create(db, "Move")
        await crud.update_task(db, task.task_id, TaskUpdate(next_step="pack boxes"))

        step, updated = await crud.complete_step(db, task.task_id, "pack boxes")

        assert step.description == "pack boxes"
        assert updated.next_step is None
        assert updated.last_step_description == "pack boxes"

    async def test_complete_step_refreshes_updated_at(self, db):
        task = await _create(db, "Move")
        await crud.update_task(db, task.task_id, TaskUpdate(next_step="label boxes"))
        before = await crud.get_task(db, task.task_id)

        _, updated = await crud.complete_step(db, task.task_id)

        assert updated.updated_at > before.updated_at
        assert updated.created_at == before.created_at

    async def test_complete_step_defaults_to_next_step(self, db):
        task = await _create(db, "Move")
        await crud.update_task(db, task.task_id, TaskUpdate(next_step="rent van"))

        step, updated = await crud.complete_step(db, task.task_id)
        assert step.description == "rent van"
        assert updated.next_step is None

    async def test_complete_step_needs_content(self, db):
        task = await _create(db, "Empty")
        with pytest.raises(ValidationError):
            await crud.complete_step(db, task.task_id)
        assert await crud.list_steps(db) == []

    async def test_complete_step_unknown_task(self, db):
        with pytest.raises(NotFoundError):
            await crud.complete_step(db, 404, "x")

    async def test_deleting_task_cascades_to_steps(self, db):
        task = await _create(db, "Doomed")
        keeper = await _create(db, "Keeper")
        await crud.add_step(db, CompletedStepCreate(task_id=task.task_id, description="gone soon"))
        await crud.add_step(db, CompletedStepCreate(task_id=keeper.task_id, description="stays"))

        await db.execute(delete(Task).where(Task.task_id == task.task_id))
        await db.commit()

        steps = await crud.list_steps(db)
        assert [s.task_id for s in steps] == [keeper.task_id]


class TestProjects:
    async def test_ordered_by_name(self, db):
        db.add_all([Project(name="Work"), Project(name="Garden"), Project(name="Music")])
        await db.commit()

        names = [p.name for p in await crud.list_projects(db)]
        assert names == ["Garden", "Music", "Work"]
