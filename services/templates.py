# services/templates.py
from __future__ import annotations

import logging
from typing import Iterable, Optional

from db import StoreError
from services.result import ActionResult
from services.tasks import create_task, materialize_series
from utils.dates import Clock
from utils.workflow import resolve_chain, template_defaults, validate_steps

logger = logging.getLogger(__name__)


def load_chain(store, template_id: int) -> ActionResult:
    """Root-to-end chain containing ``template_id`` (empty list when it is not chained)."""
    try:
        templates = store.query("task_templates", order_by="name")
        steps = store.query("task_workflow_steps", order_by="id")
    except StoreError as e:
        return ActionResult.failure(f"Failed to load workflow: {e.detail}", failed_step="load workflow")
    return ActionResult.success(data=resolve_chain(template_id, templates, steps),
                                warnings=validate_steps(steps))


def form_defaults(store, template_id: int, clock: Clock, first_date: Optional[str] = None) -> ActionResult:
    try:
        found = store.query("task_templates", {"id": template_id})
    except StoreError as e:
        return ActionResult.failure(f"Failed to load template: {e.detail}", failed_step="load template")
    if not found:
        return ActionResult.failure(f"Template {template_id} not found.", failed_step="load template")
    return ActionResult.success(data=template_defaults(found[0], clock, first_date))


def create_from_template(store, template_id: int, clock: Clock, overrides: Optional[dict] = None,
                         assignee_ids: Iterable[int] = (), project_ids: Iterable[int] = ()) -> ActionResult:
    """Create a task pre-filled from a template; recurring templates expand to
    their full ``recurrence_count`` of occurrences right away.

    The series runs from the overridden due date, else the overridden start
    date, else the template's own due date, so the created tasks match the
    form preview.
    """
    overrides = {k: v for k, v in (overrides or {}).items() if v not in (None, "")}
    first = overrides.get("due_date") or overrides.get("start_date")
    got = form_defaults(store, template_id, clock, str(first)[:10] if first else None)
    if not got.ok:
        return got
    defaults = got.data
    occurrences = defaults.pop("occurrences")
    fields = {k: v for k, v in defaults.items() if v is not None}
    fields.update(overrides)
    if occurrences:
        fields["due_date"] = occurrences[0]

    made = create_task(store, fields, assignee_ids, project_ids)
    if not made.ok or not occurrences:
        return made
    series = materialize_series(store, made.data["id"], occurrences[-1])
    if not series.ok:
        return series
    logger.info("template %s: created series of %d", template_id, len(series.data) + 1)
    series.data = [made.data] + series.data
    return series
