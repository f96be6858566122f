# tests/test_timeline.py
from datetime import date, timedelta

import pytest

from utils.timeline import (
    MIN_BAR_WIDTH, NO_PROJECT, ROW_HEIGHT, GanttTask, GanttWindow, build_layout,
    default_anchor, group_rows, layout_dataframe, shift_anchor,
)

D0 = date(2025, 3, 3)
PROJECTS = [{"id": 1, "name": "Acme rollout"}, {"id": 2, "name": "Beta launch"}]


def _task(id, start=None, due=None, projects=(), title=None):
    return GanttTask(id=id, title=title or f"T{id}",
                     start_date=start, due_date=due, project_ids=list(projects))


def test_day_zoom_interpolation():
    win = GanttWindow(D0, "day")
    assert win.total_width == 2400
    assert win.date_to_x(D0) == 0
    assert win.date_to_x(D0 + timedelta(days=14)) == pytest.approx(2400 * 14 / 60)
    assert win.end == D0 + timedelta(days=60)


def test_week_and_month_windows_cover_full_columns():
    week = GanttWindow(D0, "week")
    assert week.end == D0 + timedelta(weeks=16)
    assert week.date_to_x(week.end) == week.total_width
    month = GanttWindow(date(2025, 1, 1), "month")
    assert month.ticks[1] == date(2025, 2, 1)
    assert month.end == date(2026, 1, 1)


def test_unknown_zoom():
    with pytest.raises(ValueError):
        GanttWindow(D0, "quarter")


def test_header_labels():
    assert GanttWindow(D0, "day").header_label(D0) == "Mar 3"
    assert GanttWindow(D0, "week").header_label(D0) == "Mar 3 - 9"
    assert GanttWindow(D0, "month").header_label(D0) == "Mar 2025"


def test_navigation(clock):
    assert default_anchor(clock) == date(2025, 3, 3)
    assert shift_anchor(D0, "day", 1) == date(2025, 3, 17)
    assert shift_anchor(D0, "week", -1) == date(2025, 2, 3)
    assert shift_anchor(date(2025, 1, 31), "month", 1) == date(2025, 4, 30)


def test_rows_grouped_by_project_with_duplicates():
    tasks = [
        _task(1, "2025-03-03", "2025-03-05", [2, 1]),
        _task(2, "2025-03-04", "2025-03-06", [2]),
        _task(3, "2025-03-04", "2025-03-06"),
    ]
    rows = group_rows(tasks, PROJECTS)
    assert [(r.kind, r.label) for r in rows] == [
        ("header", "Acme rollout"), ("task", "T1"),
        ("header", "Beta launch"), ("task", "T1"), ("task", "T2"),
        ("header", NO_PROJECT), ("task", "T3"),
    ]
    # the source list is untouched
    assert len(tasks) == 3


def test_bars_clamped_and_min_width():
    win = GanttWindow(D0, "day")
    tasks = [
        _task(1, "2025-02-20", "2025-03-05"),   # starts before the window
        _task(2, "2025-03-10", "2025-03-10"),   # milestone, zero length
        _task(3, None, "2025-03-10"),           # undated
    ]
    layout = build_layout(tasks, [], [], win)
    bars = {b.task_id: b for b in layout.bars}
    assert bars[1].x == 0
    assert bars[2].width == MIN_BAR_WIDTH
    assert 3 not in bars
    assert layout.undated_count == 1


def test_arrows_route_right_edge_to_left_edge():
    win = GanttWindow(D0, "day")
    tasks = [_task(1, "2025-03-03", "2025-03-05"), _task(2, "2025-03-06", "2025-03-09"),
             _task(3, None, None)]
    deps = [
        {"task_id": 2, "depends_on_task_id": 1},
        {"task_id": 3, "depends_on_task_id": 1},  # undated endpoint, skipped
    ]
    layout = build_layout(tasks, deps, [], win)
    assert len(layout.arrows) == 1
    arrow = layout.arrows[0]
    pred, dep = layout.bars[0], layout.bars[1]
    assert arrow.start == (pred.right, pred.center_y)
    assert arrow.end == (dep.x, dep.center_y)
    mid = (pred.right + dep.x) / 2
    assert arrow.c1 == (mid, pred.center_y) and arrow.c2 == (mid, dep.center_y)
    assert arrow.path.startswith(f"M {pred.right} {pred.center_y} C ")
    assert pred.center_y == 1 * ROW_HEIGHT + ROW_HEIGHT / 2


def test_duplicated_task_arrows_use_last_row():
    win = GanttWindow(D0, "day")
    tasks = [_task(1, "2025-03-03", "2025-03-05", [1, 2]), _task(2, "2025-03-06", "2025-03-09", [2])]
    layout = build_layout(tasks, [{"task_id": 2, "depends_on_task_id": 1}], PROJECTS, win)
    last_row_of_t1 = max(b.row for b in layout.bars if b.task_id == 1)
    assert layout.arrows[0].start[1] == last_row_of_t1 * ROW_HEIGHT + ROW_HEIGHT / 2


def test_cycle_reported_but_layout_still_built(clock):
    win = GanttWindow(D0, "day")
    tasks = [_task(1, "2025-03-03", "2025-03-05"), _task(2, "2025-03-06", "2025-03-09")]
    deps = [{"task_id": 2, "depends_on_task_id": 1}, {"task_id": 1, "depends_on_task_id": 2}]
    layout = build_layout(tasks, deps, [], win, clock)
    assert layout.cycle is not None
    assert len(layout.arrows) == 2
    assert layout.today_x == pytest.approx(7 * 40)


def test_today_outside_window_has_no_marker(clock):
    layout = build_layout([_task(1, "2025-01-03", "2025-01-05")], [], [],
                          GanttWindow(date(2024, 1, 1), "day"), clock)
    assert layout.today_x is None


def test_layout_dataframe():
    win = GanttWindow(D0, "day")
    tasks = [_task(1, "2025-03-03", "2025-03-05", [1]), _task(2)]
    df = layout_dataframe(build_layout(tasks, [], PROJECTS, win))
    assert list(df["Group"]) == ["Acme rollout", NO_PROJECT]
    assert df.loc[0, "Width"] == 80.0
    assert df["X"].isna().iloc[1]
