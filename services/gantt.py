# services/gantt.py
from __future__ import annotations

from typing import List, Tuple

from db import Related, StoreError
from models.people import contact_name
from services.result import ActionResult
from utils.dates import Clock
from utils.timeline import GanttTask, GanttWindow, build_layout


def _iso(value):
    return value.isoformat() if value is not None else None


def load_gantt_tasks(store) -> Tuple[List[GanttTask], List[dict], List[dict]]:
    """Tasks with project/assignee/contact names resolved, plus edges and projects.

    Raises StoreError.
    """
    projects = store.query("projects", order_by="name")
    employees = {e["id"]: e["name"] for e in store.query("employees")}
    project_names = {p["id"]: p["name"] for p in projects}
    rows = store.query(
        "tasks",
        related=[
            Related("project_tasks", foreign_key="task_id"),
            Related("task_assignees", foreign_key="task_id"),
            Related("contacts", local_key="contact_id", alias="contact"),
        ],
        order_by=["start_date", "id"],
    )
    tasks = []
    for r in rows:
        pids = [link["project_id"] for link in r["project_tasks"] if link["project_id"] in project_names]
        tasks.append(GanttTask(
            id=r["id"],
            title=r["title"],
            status=r["status"],
            priority=r["priority"],
            start_date=_iso(r["start_date"]),
            due_date=_iso(r["due_date"]),
            is_milestone=bool(r["is_milestone"]),
            project_ids=pids,
            project_names=[project_names[p] for p in pids],
            assignee_names=[employees[a["employee_id"]] for a in r["task_assignees"]
                            if a["employee_id"] in employees],
            contact_name=contact_name(r["contact"]),
        ))
    dependencies = store.query("task_dependencies")
    return tasks, dependencies, projects


def gantt_layout(store, window: GanttWindow, clock: Clock) -> ActionResult:
    try:
        tasks, dependencies, projects = load_gantt_tasks(store)
    except StoreError as e:
        return ActionResult.failure(f"Failed to load timeline: {e.detail}", failed_step="load timeline")
    layout = build_layout(tasks, dependencies, projects, window, clock)
    warnings = []
    if layout.cycle:
        warnings.append("Dependency cycle: " + " -> ".join(str(n) for n in layout.cycle))
    return ActionResult.success(data=layout, warnings=warnings)
