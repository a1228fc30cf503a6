from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..db import get_db
from ..schemas import CompletedStepCreate, CompletedStepResponse, ErrorResponse

router = APIRouter(
    prefix="/completed_steps",
    tags=["completed_steps"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)


@router.get("", response_model=List[CompletedStepResponse])
async def list_steps(db: AsyncSession = Depends(get_db)):
    """Get all completed steps, newest first"""
    return await crud.list_steps(db)


@router.post("", response_model=CompletedStepResponse, status_code=201)
async def add_step(
    step: CompletedStepCreate,
    db: AsyncSession = Depends(get_db)
):
    """Record a completed step for a task"""
    return await crud.add_step(db, step)
