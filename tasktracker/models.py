from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from .utils import utcnow

Base = declarative_base()

TASK_STATUSES = ("active", "paused", "done", "cancelled")
TASK_PRIORITIES = ("high", "medium", "low")


def _in_clause(column: str, values) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class Project(Base):
    __tablename__ = "projects"

    project_id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)

    tasks = relationship("Task", back_populates="project")

    def __repr__(self):
        return f"<Project(project_id={self.project_id}, name='{self.name}')>"


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(_in_clause("status", TASK_STATUSES), name="ck_tasks_status"),
        CheckConstraint(_in_clause("priority", TASK_PRIORITIES), name="ck_tasks_priority"),
        Index("idx_tasks_status", "status"),
        Index("idx_tasks_priority", "priority"),
        Index("idx_tasks_created_at", "created_at"),
    )

    task_id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    status = Column(String(16), nullable=False, default="active", server_default="active")
    priority = Column(String(16), nullable=False, default="medium", server_default="medium")
    next_step = Column(Text, nullable=True)
    milestones = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    project_id = Column(Integer, ForeignKey("projects.project_id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    project = relationship("Project", back_populates="tasks")
    # steps go away with their task through ON DELETE CASCADE
    completed_steps = relationship(
        "CompletedStep",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Task(task_id={self.task_id}, title='{self.title}', status='{self.status}')>"


class CompletedStep(Base):
    __tablename__ = "completed_steps"
    __table_args__ = (
        Index("idx_completed_steps_completed_at", "completed_at"),
    )

    completed_step_id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.task_id", ondelete="CASCADE"), index=True, nullable=False)
    description = Column(Text, nullable=False)
    completed_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    task = relationship("Task", back_populates="completed_steps")

    def __repr__(self):
        return f"<CompletedStep(completed_step_id={self.completed_step_id}, task_id={self.task_id})>"
