# services/tasks.py
"""Task mutations against the store.

Multi-step operations are plain request sequences: the first failing step
stops the rest and is named in the result, and finished steps stay done.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from db import StoreError
from models.enums import DependencyType, TaskPriority, TaskStatus
from models.errors import ValidationError
from services.result import ActionResult
from utils.dates import Clock, is_before_today, to_date
from utils.dependencies import DependencyGraph
from utils.recurrence import expand, validate_recurrence
from utils.status import ClearCompletedAt, CreateFollowUpTask, SetCompletedAt, on_status_change
from utils.workflow import follow_up_due_date, step_index, validate_steps

logger = logging.getLogger(__name__)

OCCURRENCE_FIELDS = (
    "title", "description", "priority", "is_milestone", "contact_id", "task_type_id",
    "template_id", "is_recurring", "recurrence_frequency", "recurrence_unit", "created_by",
)


def _validate_task_fields(fields: dict) -> None:
    if not (fields.get("title") or "").strip():
        raise ValidationError("title is required")
    if fields.get("status", "pending") not in {s.value for s in TaskStatus}:
        raise ValidationError(f"unknown status {fields.get('status')!r}")
    if fields.get("priority", "medium") not in {p.value for p in TaskPriority}:
        raise ValidationError(f"unknown priority {fields.get('priority')!r}")
    problems = validate_recurrence(fields)
    if problems:
        raise ValidationError("; ".join(problems))


def _link_rows(store, task_id: int, assignee_ids: Iterable[int], project_ids: Iterable[int]):
    user = store.current_user()
    assignees = [{"task_id": task_id, "employee_id": e, "assigned_by": user} for e in assignee_ids]
    links = [{"task_id": task_id, "project_id": p} for p in project_ids]
    return assignees, links


def _write_links(store, task_id: int, assignee_ids, project_ids, label: str = "") -> Optional[str]:
    """Insert assignee/project rows; returns the failing step name, if any."""
    assignees, links = _link_rows(store, task_id, assignee_ids, project_ids)
    try:
        if assignees:
            store.insert("task_assignees", assignees)
    except StoreError:
        return f"{label}assignees"
    try:
        if links:
            store.insert("project_tasks", links)
    except StoreError:
        return f"{label}project links"
    return None


def create_task(store, fields: dict, assignee_ids: Iterable[int] = (),
                project_ids: Iterable[int] = ()) -> ActionResult:
    try:
        _validate_task_fields(fields)
    except ValidationError as e:
        return ActionResult.failure(str(e), failed_step="validation")

    row = dict(fields)
    row.setdefault("created_by", store.current_user())
    try:
        task = store.insert("tasks", row)
    except StoreError as e:
        return ActionResult.failure(f"Failed to create task: {e.detail}", failed_step="task row")

    failed = _write_links(store, task["id"], list(assignee_ids), list(project_ids))
    if failed:
        return ActionResult.failure(f"Task created but failed to save {failed}.",
                                    failed_step=failed, data=task)
    logger.info("created task %s (%s)", task["id"], task["title"])
    return ActionResult.success("Task created.", data=task)


def materialize_series(store, root_id: int, end_date) -> ActionResult:
    """Turn a recurring task into concrete occurrences through ``end_date``.

    The root keeps its row and moves its due date to the first occurrence;
    every other occurrence points back at it and gets its own copy of the
    root's assignees and project links.
    """
    try:
        found = store.query("tasks", {"id": root_id})
        if not found:
            return ActionResult.failure(f"Task {root_id} not found.", failed_step="load root")
        root = found[0]
        assignee_ids = [a["employee_id"] for a in store.query("task_assignees", {"task_id": root_id})]
        project_ids = [p["project_id"] for p in store.query("project_tasks", {"task_id": root_id})]
    except StoreError as e:
        return ActionResult.failure(f"Failed to load series root: {e.detail}", failed_step="load root")

    if not root.get("is_recurring"):
        return ActionResult.failure("Task is not recurring.", failed_step="validation")
    problems = validate_recurrence(root)
    if problems:
        return ActionResult.failure("; ".join(problems), failed_step="validation")
    first = root.get("due_date") or root.get("start_date")
    if not first:
        return ActionResult.failure("A recurring task needs a due or start date.", failed_step="validation")
    try:
        dates = expand(first, end_date, root["recurrence_frequency"], root["recurrence_unit"])
    except ValueError as e:
        return ActionResult.failure(str(e), failed_step="validation")
    if not dates:
        return ActionResult.success("No occurrences fall in that range.", data=[])

    lead: Optional[timedelta] = None
    if root.get("start_date") and root.get("due_date"):
        lead = to_date(root["due_date"]) - to_date(root["start_date"])

    try:
        store.update("tasks", {"id": root_id}, {"due_date": dates[0]})
    except StoreError as e:
        return ActionResult.failure(f"Failed to update series root: {e.detail}", failed_step="root due date")

    created = []
    for n, d in enumerate(dates[1:], start=2):
        row = {k: root.get(k) for k in OCCURRENCE_FIELDS}
        row.update(due_date=d, status=TaskStatus.PENDING.value, recurrence_source_task_id=root_id)
        if lead is not None:
            row["start_date"] = (to_date(d) - lead).isoformat()
        try:
            occ = store.insert("tasks", row)
        except StoreError as e:
            return ActionResult.failure(f"Stopped at occurrence {n} of {len(dates)}: {e.detail}",
                                        failed_step=f"occurrence {n}: task row", data=created)
        created.append(occ)
        failed = _write_links(store, occ["id"], assignee_ids, project_ids, label=f"occurrence {n}: ")
        if failed:
            return ActionResult.failure(f"Stopped at occurrence {n} of {len(dates)}.",
                                        failed_step=failed, data=created)
        logger.debug("series %s: occurrence %d due %s", root_id, n, d)
    return ActionResult.success(f"Created {len(created)} more occurrence(s).", data=created)


def create_recurring_task(store, fields: dict, end_date, assignee_ids: Iterable[int] = (),
                          project_ids: Iterable[int] = ()) -> ActionResult:
    fields = dict(fields, is_recurring=True)
    made = create_task(store, fields, assignee_ids, project_ids)
    if not made.ok:
        return made
    series = materialize_series(store, made.data["id"], end_date)
    if not series.ok:
        return series
    series.data = [made.data] + series.data
    return series


# ---- status ----
def create_follow_up(store, task: dict, clock: Clock) -> ActionResult:
    try:
        steps = store.query("task_workflow_steps", {"template_id": task["template_id"]}, order_by="id")
        warnings = validate_steps(steps)
        step = step_index(steps).get(task["template_id"])
        if step is None:
            return ActionResult.success("No follow-up step.", warnings=warnings)
        found = store.query("task_templates", {"id": step["next_template_id"]})
        if not found:
            return ActionResult.failure(f"Template {step['next_template_id']} no longer exists.",
                                        failed_step="load template")
        nxt = found[0]
        row = {
            "title": nxt["name"],
            "description": nxt.get("description"),
            "priority": nxt.get("default_priority") or TaskPriority.MEDIUM.value,
            "status": TaskStatus.PENDING.value,
            "due_date": follow_up_due_date(clock.now(), step, nxt),
            "parent_task_id": task["id"],
            "template_id": nxt["id"],
            "contact_id": task.get("contact_id"),
            "task_type_id": nxt.get("task_type_id") or task.get("task_type_id"),
            "created_by": store.current_user(),
        }
        follow_up = store.insert("tasks", row)
    except StoreError as e:
        return ActionResult.failure(f"Follow-up task was not created: {e.detail}", failed_step="follow-up")
    logger.info("task %s completed; follow-up %s due %s", task["id"], follow_up["id"], follow_up["due_date"])
    return ActionResult.success("Follow-up created.", data=follow_up, warnings=warnings)


def update_status(store, task_id: int, new_status: str, clock: Clock) -> ActionResult:
    try:
        found = store.query("tasks", {"id": task_id})
    except StoreError as e:
        return ActionResult.failure(f"Failed to load task: {e.detail}", failed_step="load task")
    if not found:
        return ActionResult.failure(f"Task {task_id} not found.", failed_step="load task")
    task = found[0]
    try:
        commands = on_status_change(task["status"], new_status, task, clock)
    except ValidationError as e:
        return ActionResult.failure(str(e), failed_step="validation")

    patch = {"status": new_status, "updated_at": clock.now_utc_iso()}
    for cmd in commands:
        if isinstance(cmd, SetCompletedAt):
            patch["completed_at"] = cmd.completed_at
        elif isinstance(cmd, ClearCompletedAt):
            patch["completed_at"] = None
    try:
        store.update("tasks", {"id": task_id}, patch)
    except StoreError as e:
        return ActionResult.failure(f"Failed to update status: {e.detail}", failed_step="status")

    result = ActionResult.success("Status updated.", data=commands)
    for cmd in commands:
        if isinstance(cmd, CreateFollowUpTask):
            follow = create_follow_up(store, task, clock)
            result.warnings.extend(follow.warnings)
            if not follow.ok:
                # the completion stands; the missing follow-up is only reported
                logger.error("follow-up for task %s failed: %s", task_id, follow.message)
                result.warnings.append(follow.message)
            elif follow.data:
                result.message = f"Status updated. Follow-up task \"{follow.data['title']}\" created."
    return result


# ---- dependencies ----
def add_dependency(store, task_id: int, depends_on_task_id: int,
                   dependency_type: str = DependencyType.FINISH_TO_START.value,
                   lag_days: int = 0) -> ActionResult:
    if task_id == depends_on_task_id:
        return ActionResult.failure("A task cannot depend on itself.", failed_step="validation")
    if dependency_type not in {d.value for d in DependencyType}:
        return ActionResult.failure(f"Unknown dependency type {dependency_type!r}.", failed_step="validation")
    try:
        lag = int(lag_days or 0)
    except (TypeError, ValueError):
        return ActionResult.failure(f"Lag must be a whole number of days, got {lag_days!r}.",
                                    failed_step="validation")
    try:
        graph = DependencyGraph(store.query("task_dependencies"))
        cycle = graph.would_create_cycle(task_id, depends_on_task_id)
        if cycle:
            chain = " -> ".join(str(n) for n in cycle)
            return ActionResult.failure(f"That dependency would create a cycle ({chain}).",
                                        failed_step="validation")
        edge = store.insert("task_dependencies", {
            "task_id": task_id,
            "depends_on_task_id": depends_on_task_id,
            "dependency_type": dependency_type,
            "lag_days": lag,
        })
    except StoreError as e:
        return ActionResult.failure(f"Failed to add dependency: {e.detail}", failed_step="dependency")
    return ActionResult.success("Dependency added.", data=edge)


def remove_dependency(store, dependency_id: int) -> ActionResult:
    try:
        store.delete("task_dependencies", {"id": dependency_id})
    except StoreError as e:
        return ActionResult.failure(f"Failed to remove dependency: {e.detail}", failed_step="dependency")
    return ActionResult.success("Dependency removed.")


def find_dependents(store, task_id: int) -> List[dict]:
    """Tasks whose dependency list references ``task_id``. Raises StoreError."""
    graph = DependencyGraph(store.query("task_dependencies", {"depends_on_task_id": task_id}))
    ids = graph.dependents_of(task_id)
    if not ids:
        return []
    return store.query("tasks", {"id__in": ids}, order_by="title")


def _promote_series_root(store, task_id: int) -> None:
    """Hand a deleted root's series to its earliest remaining occurrence."""
    rest = store.query("tasks", {"recurrence_source_task_id": task_id}, order_by="due_date")
    if not rest:
        return
    new_root = rest[0]["id"]
    store.update("tasks", {"id": new_root}, {"recurrence_source_task_id": None})
    store.update("tasks", {"recurrence_source_task_id": task_id}, {"recurrence_source_task_id": new_root})
    logger.info("series root %s deleted; task %s now leads %d occurrence(s)", task_id, new_root, len(rest) - 1)


def delete_task(store, task_id: int) -> ActionResult:
    """Strip every reference to the task, then the row itself.

    Dependent tasks survive; only the edges pointing at this task go.
    Deleting a series root promotes the next occurrence to root.
    """
    steps = [
        ("dependency edges (as dependent)", lambda: store.delete("task_dependencies", {"task_id": task_id})),
        ("dependency edges (as predecessor)",
         lambda: store.delete("task_dependencies", {"depends_on_task_id": task_id})),
        ("assignees", lambda: store.delete("task_assignees", {"task_id": task_id})),
        ("project links", lambda: store.delete("project_tasks", {"task_id": task_id})),
        ("child tasks", lambda: store.update("tasks", {"parent_task_id": task_id}, {"parent_task_id": None})),
        ("series occurrences", lambda: _promote_series_root(store, task_id)),
        ("task row", lambda: store.delete("tasks", {"id": task_id})),
    ]
    for name, run in steps:
        try:
            run()
        except StoreError as e:
            logger.warning("delete task %s stopped at %s: %s", task_id, name, e.detail)
            return ActionResult.failure(f"Delete stopped while removing {name}: {e.detail}", failed_step=name)
        logger.debug("delete task %s: %s removed", task_id, name)
    return ActionResult.success("Task deleted.")


# ---- lists ----
def upcoming_tasks(store, clock: Clock, days: Optional[int] = None) -> List[dict]:
    """Open tasks due today or later, soonest first. Raises StoreError."""
    filters = {"status__neq": TaskStatus.COMPLETED.value, "due_date__gte": clock.today()}
    if days is not None:
        filters["due_date__lte"] = (to_date(clock.today()) + timedelta(days=days)).isoformat()
    return store.query("tasks", filters, order_by="due_date")


def task_stats(tasks: List[dict], clock: Clock) -> Dict[str, int]:
    return {
        "total": len(tasks),
        "pending": sum(1 for t in tasks if t["status"] == TaskStatus.PENDING),
        "in_progress": sum(1 for t in tasks if t["status"] == TaskStatus.IN_PROGRESS),
        "completed": sum(1 for t in tasks if t["status"] == TaskStatus.COMPLETED),
        "overdue": sum(1 for t in tasks
                       if t.get("due_date") and t["status"] != TaskStatus.COMPLETED
                       and is_before_today(t["due_date"], clock)),
    }
