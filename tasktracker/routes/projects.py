from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..db import get_db
from ..schemas import ErrorResponse, ProjectResponse

router = APIRouter(prefix="/projects", tags=["projects"], responses={500: {"model": ErrorResponse}})


@router.get("", response_model=List[ProjectResponse])
async def list_projects(db: AsyncSession = Depends(get_db)):
    """Get all projects ordered by name"""
    return await crud.list_projects(db)
