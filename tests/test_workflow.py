# tests/test_workflow.py
import logging
from datetime import datetime, timezone

from utils.workflow import (
    follow_up_due_date, resolve_chain, template_defaults, template_due_date, validate_steps,
)

A = {"id": 1, "name": "Intro call"}
B = {"id": 2, "name": "Send proposal"}
C = {"id": 3, "name": "Follow up"}
D = {"id": 4, "name": "Standalone"}
TEMPLATES = [A, B, C, D]
STEPS = [
    {"id": 10, "template_id": 1, "next_template_id": 2, "delay_days": 1},
    {"id": 11, "template_id": 2, "next_template_id": 3, "delay_days": 7},
]


def _names(chain):
    return [link.template["name"] for link in chain]


def test_chain_from_middle_anchor():
    chain = resolve_chain(2, TEMPLATES, STEPS)
    assert _names(chain) == ["Intro call", "Send proposal", "Follow up"]
    assert [link.delay_days for link in chain] == [0, 1, 7]


def test_chain_from_root_and_tail():
    assert _names(resolve_chain(1, TEMPLATES, STEPS)) == _names(resolve_chain(3, TEMPLATES, STEPS))


def test_unchained_template_has_no_chain():
    assert resolve_chain(4, TEMPLATES, STEPS) == []


def test_pure_cycle_has_no_root():
    steps = [{"template_id": 1, "next_template_id": 2}, {"template_id": 2, "next_template_id": 1}]
    assert resolve_chain(1, [A, B], steps) == []


def test_walk_stops_on_revisit():
    steps = STEPS + [{"id": 12, "template_id": 3, "next_template_id": 2, "delay_days": 0}]
    assert _names(resolve_chain(1, TEMPLATES, steps)) == ["Intro call", "Send proposal", "Follow up"]


def test_multiple_outgoing_steps_warn_and_first_wins(caplog):
    steps = STEPS + [{"id": 12, "template_id": 1, "next_template_id": 4, "delay_days": 0}]
    assert validate_steps(steps) == ["template 1 has 2 outgoing steps; only the first is followed"]
    with caplog.at_level(logging.WARNING, logger="utils.workflow"):
        chain = resolve_chain(1, TEMPLATES, steps)
    assert _names(chain) == ["Intro call", "Send proposal", "Follow up"]
    assert "outgoing steps" in caplog.text


def test_self_step_is_flagged():
    assert validate_steps([{"template_id": 5, "next_template_id": 5}]) == [
        "template 5 lists itself as its next step"]


def test_template_due_date_units():
    base = datetime(2025, 3, 10, 22, 0, tzinfo=timezone.utc)
    assert template_due_date({"due_amount": 3, "due_unit": "days"}, base) == "2025-03-13"
    assert template_due_date({"due_amount": 4, "due_unit": "hours"}, base) == "2025-03-11"
    assert template_due_date({"due_amount": 1, "due_unit": "months"}, base) == "2025-04-10"
    # legacy rows only have default_due_days
    assert template_due_date({"default_due_days": 2}, base) == "2025-03-12"
    assert template_due_date({}, base) is None


def test_follow_up_due_adds_delay_then_template_offset():
    now = datetime(2025, 3, 10, 10, 0)
    step = {"delay_days": 2}
    assert follow_up_due_date(now, step, {"due_amount": 1, "due_unit": "weeks"}) == "2025-03-19"
    assert follow_up_due_date(now, step, {}) == "2025-03-12"
    assert follow_up_due_date(now, {"delay_days": None}, {}) == "2025-03-10"


def test_template_defaults_plain(clock):
    got = template_defaults({"id": 7, "name": "Check in", "due_amount": 2, "due_unit": "days",
                             "default_priority": "high"}, clock)
    assert got["title"] == "Check in"
    assert got["priority"] == "high"
    assert got["due_date"] == "2025-03-12"
    assert got["template_id"] == 7
    assert got["occurrences"] == []
    assert "is_recurring" not in got


def test_template_defaults_recurring_preview(clock):
    tpl = {"id": 8, "name": "Weekly report", "is_recurring": True, "recurrence_frequency": 1,
           "recurrence_unit": "weeks", "recurrence_count": 3}
    got = template_defaults(tpl, clock, first_date="2025-03-14")
    assert got["is_recurring"] is True
    assert got["occurrences"] == ["2025-03-14", "2025-03-21", "2025-03-28"]
