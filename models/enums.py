from enum import Enum


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RecurrenceUnit(str, Enum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"


class DueUnit(str, Enum):
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"


class DependencyType(str, Enum):
    FINISH_TO_START = "finish_to_start"
    START_TO_START = "start_to_start"
    FINISH_TO_FINISH = "finish_to_finish"
    START_TO_FINISH = "start_to_finish"


DEPENDENCY_LABELS = {
    DependencyType.FINISH_TO_START: "Finish to Start (FS)",
    DependencyType.START_TO_START: "Start to Start (SS)",
    DependencyType.FINISH_TO_FINISH: "Finish to Finish (FF)",
    DependencyType.START_TO_FINISH: "Start to Finish (SF)",
}


def dependency_label(value: str) -> str:
    try:
        return DEPENDENCY_LABELS[DependencyType(value)]
    except ValueError:
        return value
