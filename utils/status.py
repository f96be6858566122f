# utils/status.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

from models.enums import TaskStatus
from models.errors import ValidationError
from utils.dates import Clock


@dataclass(frozen=True)
class SetCompletedAt:
    task_id: int
    completed_at: str  # UTC ISO timestamp


@dataclass(frozen=True)
class ClearCompletedAt:
    task_id: int


@dataclass(frozen=True)
class CreateFollowUpTask:
    parent_task_id: int
    template_id: int


Command = Union[SetCompletedAt, ClearCompletedAt, CreateFollowUpTask]


def on_status_change(old: Optional[str], new: str, task: dict, clock: Clock) -> List[Command]:
    """Side effects implied by moving ``task`` from ``old`` to ``new``.

    Only a real transition into ``completed`` asks for a follow-up, and only
    when the task was built from a template.
    """
    if new not in {s.value for s in TaskStatus}:
        raise ValidationError(f"unknown task status {new!r}")
    if old == new:
        return []
    done = TaskStatus.COMPLETED.value
    commands: List[Command] = []
    if new == done:
        commands.append(SetCompletedAt(task["id"], clock.now_utc_iso()))
        if task.get("template_id") is not None:
            commands.append(CreateFollowUpTask(task["id"], task["template_id"]))
    elif old == done:
        commands.append(ClearCompletedAt(task["id"]))
    return commands
