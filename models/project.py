from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import date


class Project(SQLModel, table=True):
    __tablename__ = "projects"
    __table_args__ = {"extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    status: str = Field(default="active")
    start_date: Optional[date] = None
    due_date: Optional[date] = None


class ProjectTask(SQLModel, table=True):
    """Join row linking a task to a project (a task may sit in several)."""
    __tablename__ = "project_tasks"
    __table_args__ = {"extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="projects.id", index=True)
    task_id: int = Field(foreign_key="tasks.id", index=True)
