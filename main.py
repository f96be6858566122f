# main.py

#============================================================#
#                       Tallyfield CRM                       #
#============================================================#
# Purpose     : Small-business CRM: tasks with recurrence,   #
#               template follow-ups, dependencies and a      #
#               Gantt timeline (SQLite/Postgres powered)     #
#============================================================#

import streamlit as st

import db
from config import configure_logging, get_setting
from ui.gantt_panel import render_gantt_panel
from ui.tasks_panel import render_tasks_panel
from ui.upcoming_panel import render_upcoming_panel
from utils.dates import Clock, format_date_long

st.set_page_config(page_title="Tallyfield CRM", layout="wide")
configure_logging()


@st.cache_resource
def _store_once():
    return db.get_store(current_user=get_setting("CRM_USER"))


store = _store_once()
clock = Clock()

st.sidebar.title("Tallyfield CRM")
st.sidebar.caption(f"Today: {format_date_long(clock.today(), clock)} ({clock.tz_name})")
page = st.sidebar.radio("Page", ["Tasks", "Upcoming", "Gantt"], key="page")

if page == "Tasks":
    render_tasks_panel(store, clock)
elif page == "Upcoming":
    render_upcoming_panel(store, clock)
else:
    render_gantt_panel(store, clock)
