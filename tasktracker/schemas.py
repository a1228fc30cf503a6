from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

STATUS_PATTERN = "^(active|paused|done|cancelled)$"
PRIORITY_PATTERN = "^(high|medium|low)$"

# Fields a PUT /tasks body may change
UPDATABLE_FIELDS = ("title", "status", "priority", "next_step", "milestones", "notes", "project_id")


class TaskCreate(BaseModel):
    # presence of the title is checked by the repository so every caller gets the same error
    title: Optional[str] = Field(None, max_length=255)
    project_id: Optional[int] = None
    milestones: Optional[str] = None
    notes: Optional[str] = None


class TaskUpdate(BaseModel):
    """Patch for one task.

    Only the fields present in the request body count as changes: a field
    left out is untouched, a field sent as null is cleared.
    """

    task_id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    next_step: Optional[str] = None
    milestones: Optional[str] = None
    notes: Optional[str] = None
    project_id: Optional[int] = None

    def changes(self) -> Dict[str, Any]:
        """The explicitly supplied fields, keyed by column name"""
        supplied = self.model_dump(exclude_unset=True)
        return {name: value for name, value in supplied.items() if name in UPDATABLE_FIELDS}


class TaskResponse(BaseModel):
    task_id: int
    title: str
    status: str
    priority: str
    next_step: Optional[str] = None
    milestones: Optional[str] = None
    notes: Optional[str] = None
    project_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    last_step_description: Optional[str] = None
    last_step_completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CompletedStepCreate(BaseModel):
    task_id: Optional[int] = None
    description: Optional[str] = None


class CompletedStepResponse(BaseModel):
    completed_step_id: int
    task_id: int
    description: str
    completed_at: datetime

    class Config:
        from_attributes = True


class CompleteStepRequest(BaseModel):
    # falls back to the task's current next_step when omitted
    description: Optional[str] = None


class CompleteStepResponse(BaseModel):
    step: CompletedStepResponse
    task: TaskResponse


class ProjectResponse(BaseModel):
    project_id: int
    name: str

    class Config:
        from_attributes = True


class ErrorResponse(BaseModel):
    error: str
