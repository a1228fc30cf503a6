import asyncio
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from . import crud
from .config import Settings, configure_logging
from .db import Database
from .models import CompletedStep, Project, Task
from .utils import format_task_summary, utcnow

logger = logging.getLogger(__name__)

SAMPLE_PROJECTS = ["Home", "Tooling"]

SAMPLE_TASKS = [
    {
        "title": "Set up development environment",
        "status": "active",
        "priority": "high",
        "project": "Tooling",
        "next_step": "Install the Python dependencies",
        "milestones": "- [x] Install Python\n- [x] Install PostgreSQL\n- [ ] Create the database\n- [ ] Run the seed script",
        "steps": [
            "Created the single-page frontend",
            "Set up the API endpoints",
            "Configured environment variables",
        ],
    },
    {
        "title": "Deploy to production",
        "status": "active",
        "priority": "medium",
        "project": "Tooling",
        "next_step": "Provision a PostgreSQL database",
        "milestones": "- [ ] Provision database\n- [ ] Set environment variables\n- [ ] Deploy application",
        "steps": [
            "Wrote the deployment configuration",
            "Set up build scripts",
        ],
    },
    {
        "title": "Add user authentication",
        "status": "paused",
        "priority": "low",
        "project": None,
        "next_step": "Research authentication options",
        "milestones": "- [ ] Consider password protection\n- [ ] Look into OAuth options\n- [ ] Plan session management",
        "steps": [],
    },
]


async def seed(db: AsyncSession) -> int:
    """Insert sample data into an empty database; returns the number of tasks added"""
    result = await db.execute(select(func.count(Task.task_id)))
    if result.scalar():
        logger.info("Sample data already exists, skipping")
        return 0

    projects = {}
    for name in SAMPLE_PROJECTS:
        project = Project(name=name)
        db.add(project)
        projects[name] = project
    await db.flush()

    base_time = utcnow() - timedelta(days=len(SAMPLE_TASKS))
    for index, sample in enumerate(SAMPLE_TASKS):
        created_at = base_time + timedelta(days=index)
        project = projects.get(sample["project"])
        task = Task(
            title=sample["title"],
            status=sample["status"],
            priority=sample["priority"],
            next_step=sample["next_step"],
            milestones=sample["milestones"],
            project_id=project.project_id if project else None,
            created_at=created_at,
            updated_at=created_at,
        )
        db.add(task)
        await db.flush()

        for offset, description in enumerate(sample["steps"], 1):
            db.add(CompletedStep(
                task_id=task.task_id,
                description=description,
                completed_at=created_at + timedelta(hours=offset),
            ))

    await db.commit()
    logger.info("Inserted %d sample tasks", len(SAMPLE_TASKS))
    return len(SAMPLE_TASKS)


async def run(settings: Optional[Settings] = None) -> None:
    settings = settings or Settings.from_env()
    database = Database(settings)
    try:
        await database.init()
        async with database.session_factory() as db:
            await seed(db)
            tasks = await crud.list_tasks(db)
        print(format_task_summary([task.model_dump() for task in tasks]))
    finally:
        await database.close()


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    asyncio.run(run(settings))
