# ui/upcoming_panel.py
import pandas as pd
import streamlit as st

from db import StoreError
from services.tasks import upcoming_tasks
from utils.dates import Clock, due_label, format_date_compact


def upcoming_dataframe(tasks, clock: Clock) -> pd.DataFrame:
    rows = []
    for t in tasks:
        text, _ = due_label(t["due_date"], clock)
        rows.append({
            "Task": t["title"],
            "Priority": t["priority"],
            "Status": t["status"],
            "Due": format_date_compact(t["due_date"], clock),
            "When": text,
        })
    return pd.DataFrame(rows, columns=["Task", "Priority", "Status", "Due", "When"])


def render_upcoming_panel(store, clock: Clock):
    st.subheader("Upcoming")
    days = st.selectbox("Window", [7, 14, 30, None], index=0,
                        format_func=lambda d: "All" if d is None else f"Next {d} days")
    try:
        tasks = upcoming_tasks(store, clock, days)
    except StoreError as e:
        st.error(f"Loading upcoming tasks failed: {e.detail}")
        return
    if not tasks:
        st.info("Nothing due in this window.")
        return
    st.dataframe(upcoming_dataframe(tasks, clock), use_container_width=True, hide_index=True)
