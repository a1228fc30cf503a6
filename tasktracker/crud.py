import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from .errors import NotFoundError, StorageError, ValidationError
from .models import CompletedStep, Project, Task
from .schemas import CompletedStepCreate, TaskCreate, TaskResponse, TaskUpdate
from .utils import clean_text, utcnow

logger = logging.getLogger(__name__)

# Columns a patch may not clear
NON_NULLABLE_FIELDS = ("title", "status", "priority")


@asynccontextmanager
async def storage_errors(db: AsyncSession, action: str):
    """Roll back and re-raise SQLAlchemy failures as StorageError"""
    try:
        yield
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Database error while %s: %s", action, e)
        raise StorageError(f"Database error: {e}") from e


def latest_steps_subquery():
    """One row per task: its most recent completed step.

    Steps are ranked inside each task by completed_at, newest first, with
    the higher completed_step_id winning a tie. Rank 1 is the latest step.
    """
    return select(
        CompletedStep.task_id.label("task_id"),
        CompletedStep.description.label("description"),
        CompletedStep.completed_at.label("completed_at"),
        func.row_number().over(
            partition_by=CompletedStep.task_id,
            order_by=(CompletedStep.completed_at.desc(), CompletedStep.completed_step_id.desc()),
        ).label("rn"),
    ).subquery("ranked_steps")


def tasks_with_last_step_query():
    ranked = latest_steps_subquery()
    return select(
        Task,
        ranked.c.description.label("last_step_description"),
        ranked.c.completed_at.label("last_step_completed_at"),
    ).outerjoin(ranked, and_(ranked.c.task_id == Task.task_id, ranked.c.rn == 1))


def _task_response(row) -> TaskResponse:
    task, last_description, last_completed_at = row
    return TaskResponse.model_validate(task).model_copy(
        update={
            "last_step_description": last_description,
            "last_step_completed_at": last_completed_at,
        }
    )


async def _require_project(db: AsyncSession, project_id: int) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


async def _require_task(db: AsyncSession, task_id: int) -> Task:
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found")
    return task


async def list_tasks(db: AsyncSession) -> List[TaskResponse]:
    """All tasks, newest first, each with its latest completed step"""
    query = tasks_with_last_step_query().order_by(Task.created_at.desc(), Task.task_id.desc())

    async with storage_errors(db, "listing tasks"):
        result = await db.execute(query)
        rows = result.all()

    logger.debug("Found %d tasks", len(rows))
    return [_task_response(row) for row in rows]


async def get_task(db: AsyncSession, task_id: int) -> TaskResponse:
    """One task with its latest completed step"""
    query = tasks_with_last_step_query().where(Task.task_id == task_id)

    async with storage_errors(db, "fetching task"):
        result = await db.execute(query)
        row = result.one_or_none()

    if row is None:
        raise NotFoundError(f"Task {task_id} not found")
    return _task_response(row)


async def create_task(db: AsyncSession, task: TaskCreate) -> TaskResponse:
    """Create a new task with default status and priority"""
    title = clean_text(task.title)
    if not title:
        raise ValidationError("Title is required")

    async with storage_errors(db, "creating task"):
        if task.project_id is not None:
            await _require_project(db, task.project_id)

        db_task = Task(
            title=title,
            project_id=task.project_id,
            milestones=task.milestones,
            notes=task.notes,
        )
        db.add(db_task)
        await db.commit()
        await db.refresh(db_task)

    logger.debug("Created task %d", db_task.task_id)
    return TaskResponse.model_validate(db_task)


async def update_task(
    db: AsyncSession,
    task_id: Optional[int],
    task_update: TaskUpdate
) -> TaskResponse:
    """Apply the fields present in the patch and return the refreshed task"""
    if task_id is None:
        raise ValidationError("Task ID is required")

    update_data = task_update.changes()
    if not update_data:
        raise ValidationError("No fields to update")

    for field in NON_NULLABLE_FIELDS:
        if field in update_data and update_data[field] is None:
            raise ValidationError(f"{field} cannot be null")

    if "title" in update_data:
        update_data["title"] = clean_text(update_data["title"])
        if not update_data["title"]:
            raise ValidationError("Title is required")

    async with storage_errors(db, "updating task"):
        db_task = await _require_task(db, task_id)
        if update_data.get("project_id") is not None:
            await _require_project(db, update_data["project_id"])

        update_data["updated_at"] = utcnow()
        for field, value in update_data.items():
            setattr(db_task, field, value)

        await db.commit()

    logger.debug("Updated task %d fields %s", task_id, sorted(update_data))
    return await get_task(db, task_id)


async def list_steps(db: AsyncSession, task_id: Optional[int] = None) -> List[CompletedStep]:
    """Completed steps, newest first, optionally for a single task"""
    query = select(CompletedStep)
    if task_id is not None:
        query = query.filter(CompletedStep.task_id == task_id)
    query = query.order_by(CompletedStep.completed_at.desc(), CompletedStep.completed_step_id.desc())

    async with storage_errors(db, "listing completed steps"):
        result = await db.execute(query)
        steps = result.scalars().all()

    logger.debug("Found %d completed steps", len(steps))
    return list(steps)


async def add_step(db: AsyncSession, step: CompletedStepCreate) -> CompletedStep:
    """Append a completed step to a task; the task itself is left alone"""
    description = clean_text(step.description)
    if step.task_id is None or not description:
        raise ValidationError("Task ID and description are required")

    async with storage_errors(db, "adding completed step"):
        await _require_task(db, step.task_id)

        db_step = CompletedStep(task_id=step.task_id, description=description)
        db.add(db_step)
        await db.commit()
        await db.refresh(db_step)

    logger.debug("Recorded step %d for task %d", db_step.completed_step_id, db_step.task_id)
    return db_step


async def complete_step(
    db: AsyncSession,
    task_id: int,
    description: Optional[str] = None
) -> Tuple[CompletedStep, TaskResponse]:
    """Record a completed step and clear the task's next_step in one transaction.

    Without a description the task's current next_step is what gets recorded.
    """
    async with storage_errors(db, "completing step"):
        db_task = await _require_task(db, task_id)

        text = clean_text(description if description is not None else db_task.next_step)
        if not text:
            raise ValidationError("No content to mark as done")

        db_step = CompletedStep(task_id=task_id, description=text)
        db.add(db_step)
        db_task.next_step = None
        db_task.updated_at = utcnow()

        await db.commit()
        await db.refresh(db_step)

    logger.debug("Completed step %d for task %d", db_step.completed_step_id, task_id)
    return db_step, await get_task(db, task_id)


async def list_projects(db: AsyncSession) -> List[Project]:
    """All projects ordered by name"""
    async with storage_errors(db, "listing projects"):
        result = await db.execute(select(Project).order_by(Project.name.asc()))
        projects = result.scalars().all()

    return list(projects)
