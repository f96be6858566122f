from sqlmodel import SQLModel, Field
from typing import Optional


class TaskAssignee(SQLModel, table=True):
    __tablename__ = "task_assignees"
    __table_args__ = {"extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="tasks.id", index=True)
    employee_id: int = Field(foreign_key="employees.id")
    assigned_by: Optional[str] = None
