# ui/gantt_panel.py
from typing import Optional

import plotly.graph_objects as go
import streamlit as st

from config import get_setting
from services.gantt import gantt_layout
from ui.common import show_result
from utils.dates import Clock
from utils.timeline import (
    ROW_HEIGHT, ZOOM_PRESETS, GanttLayout, GanttWindow, default_anchor,
    layout_dataframe, shift_anchor,
)

STATUS_COLORS = {
    "pending": "#FACC15",      # yellow-400
    "in_progress": "#3B82F6",  # blue-500
    "completed": "#22C55E",    # green-500
    "blocked": "#EF4444",
    "cancelled": "#9CA3AF",
}
PRIORITY_BORDER = {
    "urgent": "#EF4444",
    "high": "#F97316",
    "medium": "#60A5FA",
    "low": "#CBD5E1",
}
ARROW_COLOR = "#94A3B8"
ANCHOR_KEY = "gantt_anchor"


def build_gantt_figure(layout: GanttLayout) -> Optional[go.Figure]:
    if not layout.rows:
        return None
    win = layout.window
    fig = go.Figure()

    for i in range(win.num_cols):
        fig.add_shape(type="line", x0=i * win.col_width, x1=i * win.col_width, y0=0, y1=layout.height,
                      line=dict(color="rgba(0,0,0,0.08)", width=1, dash="dot"), layer="below")
    for i, row in enumerate(layout.rows):
        if row.kind == "header":
            fig.add_shape(type="rect", x0=0, x1=win.total_width, y0=i * ROW_HEIGHT,
                          y1=(i + 1) * ROW_HEIGHT, fillcolor="rgba(241,245,249,0.8)",
                          line=dict(width=0), layer="below")

    hover_x, hover_y, hover_text = [], [], []
    for bar in layout.bars:
        task = layout.rows[bar.row].task
        fig.add_shape(type="rect", x0=bar.x, x1=bar.right,
                      y0=bar.row * ROW_HEIGHT + 10, y1=(bar.row + 1) * ROW_HEIGHT - 10,
                      fillcolor=STATUS_COLORS.get(task.status, "#9CA3AF"),
                      line=dict(color=PRIORITY_BORDER.get(task.priority, "#CBD5E1"), width=2))
        hover_x.append(bar.x + bar.width / 2)
        hover_y.append(bar.center_y)
        hover_text.append(f"{task.title} ({task.status})<br>{task.start_date} → {task.due_date}")

    for arrow in layout.arrows:
        fig.add_shape(type="path", path=arrow.path,
                      line=dict(color=ARROW_COLOR, width=1.5, dash="dash"))
        (hx, hy), (ax, ay), (bx, by) = arrow.head
        fig.add_shape(type="path", path=f"M {hx} {hy} L {ax} {ay} L {bx} {by} Z",
                      fillcolor=ARROW_COLOR, line=dict(color=ARROW_COLOR, width=1))

    if layout.today_x is not None:
        fig.add_vline(x=layout.today_x, line_color="#EF4444", line_width=2,
                      annotation_text="Today", annotation_position="top")

    fig.add_trace(go.Scatter(x=hover_x, y=hover_y, mode="markers", marker=dict(opacity=0),
                             hovertext=hover_text, hoverinfo="text", showlegend=False))

    ticks = win.ticks
    fig.update_xaxes(range=[0, win.total_width], side="top", showgrid=False, zeroline=False,
                     tickvals=[i * win.col_width + win.col_width / 2 for i in range(len(ticks))],
                     ticktext=[win.header_label(d) for d in ticks])
    fig.update_yaxes(range=[layout.height, 0], showgrid=False, zeroline=False,
                     tickvals=[i * ROW_HEIGHT + ROW_HEIGHT / 2 for i in range(len(layout.rows))],
                     ticktext=[f"<b>{r.label}</b>" if r.kind == "header" else r.label for r in layout.rows])
    fig.update_layout(width=win.total_width + 240, height=max(layout.height + 80, 200),
                      margin=dict(l=20, r=20, t=40, b=10), plot_bgcolor="white")
    return fig


def render_gantt_panel(store, clock: Clock):
    st.subheader("Gantt Timeline")
    zooms = list(ZOOM_PRESETS)
    default_zoom = get_setting("GANTT_DEFAULT_ZOOM")
    zoom = st.selectbox("Zoom", zooms, index=zooms.index(default_zoom) if default_zoom in zooms else 1,
                        key="gantt_zoom")
    if ANCHOR_KEY not in st.session_state:
        st.session_state[ANCHOR_KEY] = default_anchor(clock)

    c1, c2, c3 = st.columns(3)
    if c1.button("◀ Prev", key="gantt_prev"):
        st.session_state[ANCHOR_KEY] = shift_anchor(st.session_state[ANCHOR_KEY], zoom, -1)
    if c2.button("Today", key="gantt_today"):
        st.session_state[ANCHOR_KEY] = default_anchor(clock)
    if c3.button("Next ▶", key="gantt_next"):
        st.session_state[ANCHOR_KEY] = shift_anchor(st.session_state[ANCHOR_KEY], zoom, 1)

    result = gantt_layout(store, GanttWindow(st.session_state[ANCHOR_KEY], zoom), clock)
    if not show_result(result):
        return
    layout = result.data
    shown = len({b.task_id for b in layout.bars})
    caption = f"{shown} tasks with dates shown."
    if layout.undated_count:
        caption += f" {layout.undated_count} tasks without dates (not shown)."
    st.caption(caption)

    fig = build_gantt_figure(layout)
    if fig is None:
        st.info("Add start and due dates to tasks to see them on the timeline.")
        return
    st.plotly_chart(fig, use_container_width=False, config={"displaylogo": False})
    with st.expander("Rows"):
        st.dataframe(layout_dataframe(layout), use_container_width=True, hide_index=True)
