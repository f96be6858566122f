from sqlmodel import SQLModel, Field
from typing import Optional


class TaskTemplate(SQLModel, table=True):
    __tablename__ = "task_templates"
    __table_args__ = {"extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    default_priority: str = Field(default="medium")
    due_amount: Optional[int] = None
    due_unit: Optional[str] = None
    default_due_days: Optional[int] = None  # older rows only carry this
    task_type_id: Optional[int] = None
    category: Optional[str] = None

    is_recurring: bool = Field(default=False)
    recurrence_frequency: Optional[int] = None
    recurrence_unit: Optional[str] = None
    recurrence_count: Optional[int] = None


class TaskWorkflowStep(SQLModel, table=True):
    """Completing a task built from ``template_id`` spawns ``next_template_id``."""
    __tablename__ = "task_workflow_steps"
    __table_args__ = {"extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    template_id: int = Field(foreign_key="task_templates.id", index=True)
    next_template_id: int = Field(foreign_key="task_templates.id")
    delay_days: int = Field(default=0)
