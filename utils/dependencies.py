# utils/dependencies.py
"""Task dependency graph built from ``task_dependencies`` rows.

Edges point from predecessor to dependent (``depends_on_task_id -> task_id``).
Lag windows are advisory: nothing here moves a task's dates.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from models.enums import DependencyType
from utils.dates import to_date

WHITE, GREY, BLACK = 0, 1, 2


@dataclass(frozen=True)
class Constraint:
    task_id: int
    depends_on_task_id: int
    dependency_type: str
    field: str     # "start" or "finish" of the dependent
    earliest: str  # ISO date


def constrained_date(dependency_type: str, pred: dict, lag_days: int) -> Optional[Tuple[str, str]]:
    """(field, earliest ISO date) the predecessor imposes, or None when it lacks the date."""
    dt = DependencyType(dependency_type)
    if dt is DependencyType.FINISH_TO_START:
        field, anchor = "start", pred.get("due_date")
    elif dt is DependencyType.START_TO_START:
        field, anchor = "start", pred.get("start_date")
    elif dt is DependencyType.FINISH_TO_FINISH:
        field, anchor = "finish", pred.get("due_date")
    else:
        field, anchor = "finish", pred.get("start_date")
    if not anchor:
        return None
    return field, (to_date(anchor) + timedelta(days=int(lag_days or 0))).isoformat()


class DependencyGraph:
    def __init__(self, edges: Iterable[dict] = ()):
        self.edges: List[dict] = []
        self.successors: Dict[int, List[int]] = {}
        self.incoming: Dict[int, List[dict]] = {}
        for e in edges:
            self.add_edge(e)

    def add_edge(self, edge: dict) -> None:
        pred, dep = edge["depends_on_task_id"], edge["task_id"]
        self.edges.append(edge)
        self.successors.setdefault(pred, []).append(dep)
        self.successors.setdefault(dep, [])
        self.incoming.setdefault(dep, []).append(edge)

    @property
    def nodes(self) -> List[int]:
        return list(self.successors)

    def dependents_of(self, task_id: int) -> List[int]:
        """Tasks that list ``task_id`` among their dependencies."""
        seen, out = set(), []
        for dep in self.successors.get(task_id, []):
            if dep not in seen:
                seen.add(dep)
                out.append(dep)
        return out

    def find_cycle(self) -> Optional[List[int]]:
        colour = {n: WHITE for n in self.successors}
        for start in self.successors:
            if colour[start] != WHITE:
                continue
            path = [start]
            stack = [iter(self.successors[start])]
            colour[start] = GREY
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    colour[path.pop()] = BLACK
                    stack.pop()
                elif colour[nxt] == GREY:
                    return path[path.index(nxt):] + [nxt]
                elif colour[nxt] == WHITE:
                    colour[nxt] = GREY
                    path.append(nxt)
                    stack.append(iter(self.successors[nxt]))
        return None

    def would_create_cycle(self, task_id: int, depends_on_task_id: int) -> Optional[List[int]]:
        if task_id == depends_on_task_id:
            return [task_id, task_id]
        trial = DependencyGraph(self.edges)
        trial.add_edge({"task_id": task_id, "depends_on_task_id": depends_on_task_id})
        return trial.find_cycle()

    def topological_order(self) -> List[int]:
        indeg = {n: 0 for n in self.successors}
        for n, succ in self.successors.items():
            for m in succ:
                indeg[m] += 1
        queue = deque(n for n, d in indeg.items() if d == 0)
        order = []
        while queue:
            n = queue.popleft()
            order.append(n)
            for m in self.successors[n]:
                indeg[m] -= 1
                if indeg[m] == 0:
                    queue.append(m)
        if len(order) != len(indeg):
            raise ValueError(f"dependency graph has a cycle: {self.find_cycle()}")
        return order

    # ---- lag windows (advisory) ----
    def constraints_for(self, task_id: int, tasks_by_id: Dict[int, dict]) -> List[Constraint]:
        out = []
        for e in self.incoming.get(task_id, []):
            pred = tasks_by_id.get(e["depends_on_task_id"])
            if pred is None:
                continue
            hit = constrained_date(e.get("dependency_type") or DependencyType.FINISH_TO_START,
                                   pred, e.get("lag_days") or 0)
            if hit:
                out.append(Constraint(task_id, e["depends_on_task_id"],
                                      e.get("dependency_type") or "finish_to_start", *hit))
        return out

    def earliest_window(self, task_id: int, tasks_by_id: Dict[int, dict]) -> Dict[str, Optional[str]]:
        window: Dict[str, Optional[str]] = {"start": None, "finish": None}
        for c in self.constraints_for(task_id, tasks_by_id):
            if window[c.field] is None or c.earliest > window[c.field]:
                window[c.field] = c.earliest
        return window

    def violations(self, tasks_by_id: Dict[int, dict]) -> List[Constraint]:
        """Constraints the dependent's current dates break."""
        out = []
        for task_id, task in tasks_by_id.items():
            for c in self.constraints_for(task_id, tasks_by_id):
                actual = task.get("start_date") if c.field == "start" else task.get("due_date")
                if actual and to_date(actual).isoformat() < c.earliest:
                    out.append(c)
        return out
