# utils/timeline.py
"""Gantt geometry: dates to pixels, bars, and dependency arrows.

Everything here is plain data. ``ui/gantt_panel.py`` turns a ``GanttLayout``
into a Plotly figure.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
from dateutil.relativedelta import relativedelta

from utils.dates import Clock, DateLike, to_date
from utils.dependencies import DependencyGraph

# zoom -> (columns, px per column)
ZOOM_PRESETS = {
    "day": (60, 40),
    "week": (16, 120),
    "month": (12, 160),
}
ROW_HEIGHT = 40
MIN_BAR_WIDTH = 8
NO_PROJECT = "No Project"


def _advance(d: date, zoom: str, n: int) -> date:
    if zoom == "day":
        return d + timedelta(days=n)
    if zoom == "week":
        return d + timedelta(days=7 * n)
    return d + relativedelta(months=n)


def shift_anchor(anchor: DateLike, zoom: str, direction: int) -> date:
    """Prev/next navigation: two weeks, four weeks or a quarter per click."""
    d = to_date(anchor)
    if zoom == "day":
        return d + timedelta(days=14 * direction)
    if zoom == "week":
        return d + timedelta(days=28 * direction)
    return d + relativedelta(months=3 * direction)


def default_anchor(clock: Clock) -> date:
    return to_date(clock.today()) - timedelta(days=7)


@dataclass(frozen=True)
class GanttWindow:
    anchor: date
    zoom: str = "week"

    def __post_init__(self):
        if self.zoom not in ZOOM_PRESETS:
            raise ValueError(f"zoom must be one of {tuple(ZOOM_PRESETS)}, got {self.zoom!r}")
        object.__setattr__(self, "anchor", to_date(self.anchor))

    @property
    def num_cols(self) -> int:
        return ZOOM_PRESETS[self.zoom][0]

    @property
    def col_width(self) -> int:
        return ZOOM_PRESETS[self.zoom][1]

    @property
    def total_width(self) -> int:
        return self.num_cols * self.col_width

    @property
    def ticks(self) -> List[date]:
        return [_advance(self.anchor, self.zoom, i) for i in range(self.num_cols)]

    @property
    def start(self) -> date:
        return self.anchor

    @property
    def end(self) -> date:
        # one unit past the last tick so the final column is covered
        return _advance(self.ticks[-1], self.zoom, 1)

    def date_to_x(self, value: DateLike) -> float:
        span = (self.end - self.start).days
        return (to_date(value) - self.start).days / span * self.total_width

    def header_label(self, d: date) -> str:
        if self.zoom == "day":
            return f"{d:%b} {d.day}"
        if self.zoom == "week":
            return f"{d:%b} {d.day} - {(d + timedelta(days=6)).day}"
        return f"{d:%b %Y}"


@dataclass
class GanttTask:
    id: int
    title: str
    status: str = "pending"
    priority: str = "medium"
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    is_milestone: bool = False
    project_ids: List[int] = field(default_factory=list)
    project_names: List[str] = field(default_factory=list)
    assignee_names: List[str] = field(default_factory=list)
    contact_name: Optional[str] = None

    @property
    def has_dates(self) -> bool:
        return bool(self.start_date and self.due_date)


@dataclass(frozen=True)
class GanttRow:
    kind: str  # "header" | "task"
    label: str
    group: str
    task: Optional[GanttTask] = None


@dataclass(frozen=True)
class Bar:
    task_id: int
    row: int
    x: float
    width: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def center_y(self) -> float:
        return self.row * ROW_HEIGHT + ROW_HEIGHT / 2


@dataclass(frozen=True)
class Arrow:
    from_task_id: int
    to_task_id: int
    start: Tuple[float, float]
    c1: Tuple[float, float]
    c2: Tuple[float, float]
    end: Tuple[float, float]

    @property
    def path(self) -> str:
        (fx, fy), (ax, ay), (bx, by), (tx, ty) = self.start, self.c1, self.c2, self.end
        return f"M {fx} {fy} C {ax} {ay}, {bx} {by}, {tx} {ty}"

    @property
    def head(self) -> List[Tuple[float, float]]:
        tx, ty = self.end
        return [(tx, ty), (tx - 6, ty - 4), (tx - 6, ty + 4)]


@dataclass
class GanttLayout:
    window: GanttWindow
    rows: List[GanttRow]
    bars: List[Bar]
    arrows: List[Arrow]
    undated_count: int
    today_x: Optional[float] = None
    cycle: Optional[List[int]] = None

    @property
    def height(self) -> int:
        return len(self.rows) * ROW_HEIGHT


def bar_for(task: GanttTask, row: int, window: GanttWindow) -> Optional[Bar]:
    if not task.has_dates:
        return None
    x1 = window.date_to_x(task.start_date)
    x2 = window.date_to_x(task.due_date)
    return Bar(task.id, row, max(x1, 0), max(x2 - x1, MIN_BAR_WIDTH))


def route_arrow(pred: Bar, dep: Bar) -> Arrow:
    fx, fy = pred.right, pred.center_y
    tx, ty = dep.x, dep.center_y
    mid = (fx + tx) / 2
    return Arrow(pred.task_id, dep.task_id, (fx, fy), (mid, fy), (mid, ty), (tx, ty))


def group_rows(tasks: Sequence[GanttTask], projects: Sequence[dict]) -> List[GanttRow]:
    """Header + task rows per project, then the unassigned group.

    A task in several projects gets a row in each; the task list itself is
    never changed.
    """
    by_project: Dict[int, List[GanttTask]] = {}
    unassigned: List[GanttTask] = []
    for t in tasks:
        if not t.project_ids:
            unassigned.append(t)
        for pid in t.project_ids:
            by_project.setdefault(pid, []).append(t)

    rows: List[GanttRow] = []
    for p in projects:
        members = by_project.get(p["id"])
        if not members:
            continue
        rows.append(GanttRow("header", p["name"], p["name"]))
        rows.extend(GanttRow("task", t.title, p["name"], t) for t in members)
    if unassigned:
        rows.append(GanttRow("header", NO_PROJECT, NO_PROJECT))
        rows.extend(GanttRow("task", t.title, NO_PROJECT, t) for t in unassigned)
    return rows


def build_layout(tasks: Sequence[GanttTask], dependencies: Sequence[dict],
                 projects: Sequence[dict], window: GanttWindow,
                 clock: Optional[Clock] = None) -> GanttLayout:
    rows = group_rows(tasks, projects)
    bars: List[Bar] = []
    positioned: Dict[int, Bar] = {}
    for i, row in enumerate(rows):
        if row.kind != "task":
            continue
        bar = bar_for(row.task, i, window)
        if bar is not None:
            bars.append(bar)
            # duplicated tasks anchor their arrows on the last row drawn
            positioned[row.task.id] = bar

    graph = DependencyGraph(dependencies)
    arrows = []
    for edge in graph.edges:
        pred = positioned.get(edge["depends_on_task_id"])
        dep = positioned.get(edge["task_id"])
        if pred is None or dep is None:
            continue
        arrows.append(route_arrow(pred, dep))

    today_x = None
    if clock is not None:
        x = window.date_to_x(clock.today())
        if 0 <= x <= window.total_width:
            today_x = x

    return GanttLayout(
        window=window,
        rows=rows,
        bars=bars,
        arrows=arrows,
        undated_count=sum(1 for t in tasks if not t.has_dates),
        today_x=today_x,
        cycle=graph.find_cycle(),
    )


def layout_dataframe(layout: GanttLayout) -> pd.DataFrame:
    bars_by_row = {b.row: b for b in layout.bars}
    rows = []
    for i, r in enumerate(layout.rows):
        if r.kind != "task":
            continue
        bar = bars_by_row.get(i)
        rows.append({
            "Group": r.group,
            "Task": r.label,
            "Status": r.task.status,
            "Priority": r.task.priority,
            "Start": r.task.start_date,
            "Due": r.task.due_date,
            "Assignees": ", ".join(r.task.assignee_names),
            "X": round(bar.x, 1) if bar else None,
            "Width": round(bar.width, 1) if bar else None,
        })
    return pd.DataFrame(rows, columns=["Group", "Task", "Status", "Priority", "Start",
                                       "Due", "Assignees", "X", "Width"])
