# utils/workflow.py
"""Template chains: completing a task built from template A spawns template B.

Steps are stored as ``template_id -> next_template_id`` rows with a delay.
Only one successor per template is honoured; extra rows are reported by
``validate_steps`` and otherwise ignored (first one wins).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from utils.dates import Clock, add_offset
from utils.recurrence import preview

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainLink:
    template: dict
    delay_days: int  # from the previous link; 0 for the root


def step_index(steps: List[dict]) -> Dict[int, dict]:
    index: Dict[int, dict] = {}
    for s in steps:
        index.setdefault(s["template_id"], s)
    return index


def validate_steps(steps: List[dict]) -> List[str]:
    warnings = []
    counts: Dict[int, int] = {}
    for s in steps:
        counts[s["template_id"]] = counts.get(s["template_id"], 0) + 1
        if s["template_id"] == s["next_template_id"]:
            warnings.append(f"template {s['template_id']} lists itself as its next step")
    for tid, n in counts.items():
        if n > 1:
            warnings.append(f"template {tid} has {n} outgoing steps; only the first is followed")
    return warnings


def find_roots(templates: List[dict], steps: List[dict]) -> List[dict]:
    targets = {s["next_template_id"] for s in steps}
    return [t for t in templates if t["id"] not in targets]


def walk(root: dict, by_id: Dict[int, dict], index: Dict[int, dict]) -> List[ChainLink]:
    chain = [ChainLink(root, 0)]
    visited = {root["id"]}
    current = root["id"]
    while current in index:
        step = index[current]
        nxt = step["next_template_id"]
        if nxt in visited or nxt not in by_id:
            break
        chain.append(ChainLink(by_id[nxt], int(step.get("delay_days") or 0)))
        visited.add(nxt)
        current = nxt
    return chain


def resolve_chain(anchor_id: int, templates: List[dict], steps: List[dict]) -> List[ChainLink]:
    """Full root-to-end chain containing ``anchor_id``, or ``[]`` when it has none."""
    for warning in validate_steps(steps):
        logger.warning("workflow: %s", warning)
    by_id = {t["id"]: t for t in templates}
    index = step_index(steps)
    for root in find_roots(templates, steps):
        chain = walk(root, by_id, index)
        if len(chain) > 1 and any(link.template["id"] == anchor_id for link in chain):
            return chain
    return []


# ---- follow-ups ----
def template_due_offset(template: dict):
    amount = template.get("due_amount") or template.get("default_due_days")
    unit = template.get("due_unit") or "days"
    return amount, unit


def template_due_date(template: dict, base: datetime) -> Optional[str]:
    amount, unit = template_due_offset(template)
    if not amount:
        return None
    return add_offset(base, int(amount), unit).date().isoformat()


def follow_up_due_date(now: datetime, step: dict, next_template: dict) -> str:
    """``now + delay_days``, pushed further by the next template's own due offset."""
    base = now + timedelta(days=int(step.get("delay_days") or 0))
    return template_due_date(next_template, base) or base.date().isoformat()


def template_defaults(template: dict, clock: Clock, first_date: Optional[str] = None) -> dict:
    """Form defaults when a task is created from ``template``.

    For recurring templates ``occurrences`` starts at ``first_date`` (else the
    template due date, else today) and runs for ``recurrence_count`` dates.
    """
    defaults = {
        "title": template["name"],
        "description": template.get("description") or "",
        "priority": template.get("default_priority") or "medium",
        "due_date": template_due_date(template, clock.now()),
        "template_id": template["id"],
        "task_type_id": template.get("task_type_id"),
        "occurrences": [],
    }
    if template.get("is_recurring") and template.get("recurrence_frequency") and template.get("recurrence_unit"):
        first = first_date or defaults["due_date"] or clock.today()
        defaults.update(
            is_recurring=True,
            recurrence_frequency=template["recurrence_frequency"],
            recurrence_unit=template["recurrence_unit"],
        )
        if template.get("recurrence_count"):
            defaults["occurrences"] = preview(first, template["recurrence_frequency"],
                                              template["recurrence_unit"],
                                              count=template["recurrence_count"])
    return defaults
