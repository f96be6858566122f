from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint
from typing import Optional


class TaskDependency(SQLModel, table=True):
    """Directed edge: ``task_id`` depends on ``depends_on_task_id``."""
    __tablename__ = "task_dependencies"
    __table_args__ = (
        CheckConstraint("task_id <> depends_on_task_id", name="ck_dependency_no_self_loop"),
        {"extend_existing": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="tasks.id", index=True)
    depends_on_task_id: int = Field(foreign_key="tasks.id", index=True)
    dependency_type: str = Field(default="finish_to_start")
    lag_days: int = Field(default=0)
