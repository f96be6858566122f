# tests/test_store.py
from datetime import date, datetime, timedelta

import pytest

from db import Related, StoreError, _coerce_row
from models import Task


def _seed(store):
    acme = store.insert("contacts", {"first_name": "Ana", "last_name": "Ruiz"})
    tasks = store.insert("tasks", [
        {"title": "Call Ana", "due_date": "2025-03-12", "contact_id": acme["id"]},
        {"title": "Send quote", "due_date": "2025-03-08", "status": "completed"},
        {"title": "Draft plan"},
    ])
    store.insert("employees", [{"name": "Bo"}, {"name": "Cy"}])
    store.insert("task_assignees", [
        {"task_id": tasks[0]["id"], "employee_id": 1},
        {"task_id": tasks[0]["id"], "employee_id": 2},
    ])
    return tasks


def test_insert_returns_rows_with_ids_and_typed_dates(store):
    row = store.insert("tasks", {"title": "Call Ana", "due_date": "2025-03-12"})
    assert row["id"] == 1
    assert row["due_date"] == date(2025, 3, 12)
    assert row["status"] == "pending"
    assert row["created_at"] is not None


def test_filters(store):
    _seed(store)
    titles = lambda rows: [r["title"] for r in rows]
    assert titles(store.query("tasks", {"status__neq": "completed"}, order_by="id")) == ["Call Ana", "Draft plan"]
    assert titles(store.query("tasks", {"due_date__gte": "2025-03-10"})) == ["Call Ana"]
    assert titles(store.query("tasks", {"due_date__lt": "2025-03-10"})) == ["Send quote"]
    assert titles(store.query("tasks", {"id__in": [1, 3]}, order_by="-id")) == ["Draft plan", "Call Ana"]
    assert titles(store.query("tasks", {"due_date__isnull": True})) == ["Draft plan"]


def test_related_rows_inlined(store):
    _seed(store)
    rows = store.query("tasks", related=[
        Related("task_assignees", foreign_key="task_id"),
        Related("contacts", local_key="contact_id", alias="contact"),
    ], order_by="id")
    assert [a["employee_id"] for a in rows[0]["task_assignees"]] == [1, 2]
    assert rows[0]["contact"]["first_name"] == "Ana"
    assert rows[1]["task_assignees"] == []
    assert rows[1]["contact"] is None


def test_related_filters(store):
    _seed(store)
    rows = store.query("tasks", {"id": 1}, related=[
        Related("task_assignees", foreign_key="task_id", filters={"employee_id": 2})])
    assert [a["employee_id"] for a in rows[0]["task_assignees"]] == [2]


def test_update_and_delete(store):
    _seed(store)
    store.update("tasks", {"status": "pending"}, {"priority": "high"})
    assert {r["priority"] for r in store.query("tasks", {"status": "pending"})} == {"high"}
    store.delete("task_assignees", {"employee_id": 1})
    assert len(store.query("task_assignees")) == 1


def test_unfiltered_writes_refused(store):
    with pytest.raises(ValueError):
        store.update("tasks", {}, {"priority": "low"})
    with pytest.raises(ValueError):
        store.delete("tasks", {})


def test_unknown_names(store):
    with pytest.raises(StoreError):
        store.query("invoices")
    with pytest.raises(ValueError):
        store.query("tasks", {"colour": "red"})
    with pytest.raises(ValueError):
        store.query("tasks", {"title__like": "x"})


def test_constraint_violation_becomes_store_error(store):
    task = store.insert("tasks", {"title": "Loop"})
    with pytest.raises(StoreError) as err:
        store.insert("task_dependencies", {"task_id": task["id"], "depends_on_task_id": task["id"]})
    assert err.value.table == "task_dependencies"
    assert err.value.operation == "insert"
    assert store.query("task_dependencies") == []


def test_current_user(store):
    assert store.current_user() == "tester"


def test_iso_strings_coerced_for_every_datetime_column():
    row = _coerce_row(Task, {"updated_at": "2025-03-10T15:00:00+00:00", "completed_at": "2025-03-10T15:00:00Z",
                             "due_date": "2025-03-12T00:00:00"})
    assert isinstance(row["updated_at"], datetime)
    assert row["completed_at"].utcoffset() == timedelta(0)
    assert row["due_date"] == date(2025, 3, 12)


def test_timestamp_update_round_trip(store):
    task = store.insert("tasks", {"title": "Call Ana"})
    store.update("tasks", {"id": task["id"]}, {"completed_at": "2025-03-10T15:00:00+00:00",
                                               "updated_at": "2025-03-10T15:00:00+00:00"})
    done = store.query("tasks", {"completed_at__isnull": False})
    assert [r["id"] for r in done] == [task["id"]]
    assert done[0]["completed_at"].replace(tzinfo=None) == datetime(2025, 3, 10, 15, 0)
    store.update("tasks", {"id": task["id"]}, {"completed_at": None})
    assert store.query("tasks", {"completed_at__isnull": False}) == []
