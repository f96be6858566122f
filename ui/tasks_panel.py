# ui/tasks_panel.py
import streamlit as st

from db import StoreError
from models.enums import DEPENDENCY_LABELS, RecurrenceUnit, TaskPriority, TaskStatus, dependency_label
from services.tasks import (
    add_dependency, create_recurring_task, create_task, delete_task, find_dependents,
    remove_dependency, task_stats, update_status,
)
from services.templates import create_from_template, form_defaults, load_chain
from ui.common import force_rerun, show_result
from utils.dates import Clock, due_label, format_date, format_relative_time
from utils.dependencies import DependencyGraph

STATUS_ORDER = [s.value for s in TaskStatus]
PRIORITY_ORDER = [p.value for p in TaskPriority]
UNITS = [u.value for u in RecurrenceUnit]


def _options(store):
    employees = {e["id"]: e["name"] for e in store.query("employees", {"status": "active"}, order_by="name")}
    projects = {p["id"]: p["name"] for p in store.query("projects", order_by="name")}
    templates = {t["id"]: t["name"] for t in store.query("task_templates", order_by="name")}
    return employees, projects, templates


def _new_task_form(store, clock: Clock, employees, projects, templates):
    template_id = None
    if templates:
        template_id = st.selectbox("Start from template", [None] + list(templates),
                                   format_func=lambda i: "—" if i is None else templates[i], key="nt_template")
    defaults = {}
    if template_id is not None:
        got = form_defaults(store, template_id, clock)
        if show_result(got):
            defaults = got.data
            if defaults["occurrences"]:
                st.caption("Occurrences: " + ", ".join(format_date(d, clock) for d in defaults["occurrences"]))
        chain = load_chain(store, template_id)
        if chain.ok and chain.data:
            st.caption("Workflow: " + " → ".join(link.template["name"] for link in chain.data))

    with st.form("new_task", clear_on_submit=True):
        title = st.text_input("Task title", value=defaults.get("title", ""))
        description = st.text_area("Description", value=defaults.get("description", ""))
        c1, c2 = st.columns(2)
        priority = c1.selectbox("Priority", PRIORITY_ORDER,
                                index=PRIORITY_ORDER.index(defaults.get("priority", "medium")))
        status = c2.selectbox("Status", STATUS_ORDER, index=0)
        d1, d2 = st.columns(2)
        start = d1.date_input("Start", value=None, key="nt_start")
        due = d2.date_input("Due", value=None, key="nt_due")
        is_milestone = st.checkbox("Milestone", value=False)
        assignees = st.multiselect("Assignees", list(employees), format_func=employees.get)
        project = st.selectbox("Project", [None] + list(projects),
                               format_func=lambda i: "—" if i is None else projects[i])
        recurring = st.checkbox("Repeat", value=False)
        r1, r2, r3 = st.columns(3)
        frequency = r1.number_input("Every", min_value=1, value=1, step=1)
        unit = r2.selectbox("Unit", UNITS, index=1)
        until = r3.date_input("Until", value=None, key="nt_until")
        submitted = st.form_submit_button("Add task")

    if not submitted:
        return
    fields = {
        "title": title, "description": description or None, "priority": priority, "status": status,
        "start_date": start.isoformat() if start else None,
        "due_date": due.isoformat() if due else None,
        "is_milestone": is_milestone,
    }
    project_ids = [project] if project is not None else []
    if template_id is not None and not recurring:
        result = create_from_template(store, template_id, clock, fields, assignees, project_ids)
    elif recurring:
        if not until or not (due or start):
            st.warning("Repeating tasks need a due (or start) date and an end date.")
            return
        fields.update(recurrence_frequency=int(frequency), recurrence_unit=unit, template_id=template_id)
        result = create_recurring_task(store, fields, until.isoformat(), assignees, project_ids)
    else:
        result = create_task(store, fields, assignees, project_ids)
    show_result(result, rerun=True)


def _dependencies_block(store, task, all_tasks, clock: Clock):
    deps = store.query("task_dependencies", {"task_id": task["id"]}, order_by="id")
    titles = {t["id"]: t["title"] for t in all_tasks}
    if not deps:
        st.caption("No dependencies.")
    else:
        # advisory only; dates are never moved
        window = DependencyGraph(deps).earliest_window(task["id"], {t["id"]: t for t in all_tasks})
        for field in ("start", "finish"):
            if window[field]:
                st.caption(f"Earliest {field} allowed by dependencies: {format_date(window[field], clock)}")
    for d in deps:
        c1, c2 = st.columns([4, 1])
        lag = d["lag_days"]
        c1.write(f"{titles.get(d['depends_on_task_id'], d['depends_on_task_id'])} · "
                 f"{dependency_label(d['dependency_type'])} · lag {'+' if lag > 0 else ''}{lag}d")
        if c2.button("Remove", key=f"rmdep_{d['id']}"):
            show_result(remove_dependency(store, d["id"]), rerun=True)

    with st.form(f"dep_{task['id']}", clear_on_submit=True):
        others = [t["id"] for t in all_tasks if t["id"] != task["id"]]
        target = st.selectbox("Depends on", others, format_func=titles.get)
        dtype = st.selectbox("Type", [k.value for k in DEPENDENCY_LABELS], format_func=dependency_label)
        lag = st.number_input("Lag days", value=0, step=1)
        if st.form_submit_button("Add dependency") and target is not None:
            show_result(add_dependency(store, task["id"], target, dtype, int(lag)), rerun=True)


def _delete_block(store, task):
    confirm_key = f"confirm_del_{task['id']}"
    if not st.session_state.get(confirm_key):
        if st.button("Delete task", key=f"del_{task['id']}"):
            st.session_state[confirm_key] = True
            force_rerun()
        return
    dependents = find_dependents(store, task["id"])
    if dependents:
        st.warning("These tasks depend on this one and will lose that link: "
                   + ", ".join(t["title"] for t in dependents))
    st.caption("This also removes assignees, project links and dependencies. It cannot be undone.")
    c1, c2 = st.columns(2)
    if c1.button("Confirm delete", key=f"cdel_{task['id']}"):
        st.session_state.pop(confirm_key, None)
        show_result(delete_task(store, task["id"]), rerun=True)
    if c2.button("Cancel", key=f"xdel_{task['id']}"):
        st.session_state.pop(confirm_key, None)
        force_rerun()


def render_tasks_panel(store, clock: Clock):
    st.subheader("Tasks")
    try:
        employees, projects, templates = _options(store)
        tasks = store.query("tasks", order_by=["due_date", "id"])
    except StoreError as e:
        st.error(f"Loading tasks failed: {e.detail}")
        return

    stats = task_stats(tasks, clock)
    cols = st.columns(5)
    for col, key in zip(cols, ["total", "pending", "in_progress", "completed", "overdue"]):
        col.metric(key.replace("_", " ").title(), stats[key])

    with st.expander("➕ New task"):
        _new_task_form(store, clock, employees, projects, templates)

    for t in tasks:
        label = f"🧩 {t['title']} — {t['status']}"
        if t["due_date"] and t["status"] != TaskStatus.COMPLETED:
            text, _ = due_label(t["due_date"], clock)
            label += f" · {text}"
        with st.expander(label):
            c1, c2 = st.columns([3, 1])
            new_status = c1.selectbox("Status", STATUS_ORDER, index=STATUS_ORDER.index(t["status"]),
                                      key=f"st_{t['id']}")
            if c2.button("Save", key=f"sv_{t['id']}"):
                show_result(update_status(store, t["id"], new_status, clock), rerun=True)
            st.write(f"Start {format_date(t['start_date'], clock) or '—'} · "
                     f"Due {format_date(t['due_date'], clock) or '—'}")
            if t["completed_at"]:
                st.caption(f"Completed {format_relative_time(t['completed_at'], clock)}")
            st.markdown("**Dependencies**")
            try:
                _dependencies_block(store, t, tasks, clock)
                st.markdown("---")
                _delete_block(store, t)
            except StoreError as e:
                st.error(f"Loading task details failed: {e.detail}")
