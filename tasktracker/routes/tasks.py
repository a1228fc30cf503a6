from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..db import get_db
from ..schemas import (
    CompletedStepResponse,
    CompleteStepRequest,
    CompleteStepResponse,
    ErrorResponse,
    TaskCreate,
    TaskResponse,
    TaskUpdate,
)

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)


@router.get("", response_model=List[TaskResponse])
async def list_tasks(db: AsyncSession = Depends(get_db)):
    """Get all tasks with their latest completed step"""
    return await crud.list_tasks(db)


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    task: TaskCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a new task"""
    return await crud.create_task(db, task)


@router.put("", response_model=TaskResponse)
async def update_task(
    task_update: TaskUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Update the fields present in the body of the task named by task_id"""
    return await crud.update_task(db, task_update.task_id, task_update)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Get a specific task by ID"""
    return await crud.get_task(db, task_id)


@router.get("/{task_id}/completed_steps", response_model=List[CompletedStepResponse])
async def list_task_steps(
    task_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Get the completed steps of one task, newest first"""
    await crud.get_task(db, task_id)
    return await crud.list_steps(db, task_id=task_id)


@router.post("/{task_id}/complete_step", response_model=CompleteStepResponse)
async def complete_step(
    task_id: int,
    body: CompleteStepRequest,
    db: AsyncSession = Depends(get_db)
):
    """Record a completed step and clear next_step in one go"""
    step, task = await crud.complete_step(db, task_id, body.description)
    return CompleteStepResponse(step=CompletedStepResponse.model_validate(step), task=task)
