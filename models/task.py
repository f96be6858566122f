from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import date, datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = {"extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    status: str = Field(default="pending", index=True)
    priority: str = Field(default="medium")
    start_date: Optional[date] = None
    due_date: Optional[date] = Field(default=None, index=True)
    is_milestone: bool = Field(default=False)

    # recurrence; the series root has recurrence_source_task_id = None
    is_recurring: bool = Field(default=False)
    recurrence_frequency: Optional[int] = None
    recurrence_unit: Optional[str] = None
    recurrence_source_task_id: Optional[int] = Field(default=None, foreign_key="tasks.id")

    # workflow
    template_id: Optional[int] = Field(default=None, foreign_key="task_templates.id")
    parent_task_id: Optional[int] = Field(default=None, foreign_key="tasks.id", index=True)

    contact_id: Optional[int] = Field(default=None, foreign_key="contacts.id")
    task_type_id: Optional[int] = None

    completed_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
