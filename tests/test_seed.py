"""Tests for the sample-data seeder."""

from tasktracker import crud
from tasktracker.seed import SAMPLE_TASKS, seed


async def test_seed_inserts_sample_data_once(db):
    assert await seed(db) == len(SAMPLE_TASKS)
    assert await seed(db) == 0

    tasks = await crud.list_tasks(db)
    assert len(tasks) == len(SAMPLE_TASKS)

    deploy = [t for t in tasks if t.title == "Deploy to production"][0]
    assert deploy.last_step_description == "Set up build scripts"
    assert deploy.project_id is not None

    projects = [p.name for p in await crud.list_projects(db)]
    assert projects == ["Home", "Tooling"]
