"""Read-only dependency analysis over a task document.

Edges point from a task to the tasks named in its ``dependsOn``.  Ids that do
not resolve to a task (dangling references) count as unmet dependencies and
are reported, but never traversed.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Optional

from loguru import logger

from .model import Task, TaskDocument, TaskStatus

_WHITE, _GREY, _BLACK = 0, 1, 2


class DependencyGraph:
    """Snapshot view of the ``dependsOn`` graph of *document*.

    The graph is built once at construction; create a new instance after
    mutating the document.
    """

    def __init__(self, document: TaskDocument) -> None:
        self._tasks: dict[int, Task] = {t.id: t for t in document.tasks}
        self._dependents: dict[int, list[int]] = defaultdict(list)
        for task in sorted(document.tasks, key=lambda t: t.id):
            for dep in task.depends_on:
                self._dependents[dep].append(task.id)

    # ------------------------------------------------------------------
    # Point queries
    # ------------------------------------------------------------------

    def get(self, task_id: int) -> Optional[Task]:
        return self._tasks.get(task_id)

    def blocked_by(self, task_id: int) -> list[int]:
        """Dependencies of *task_id* that are not done (dangling ids included)."""
        task = self._tasks.get(task_id)
        if task is None:
            return []
        pending = []
        for dep in task.depends_on:
            dep_task = self._tasks.get(dep)
            if dep_task is None or not dep_task.is_done:
                pending.append(dep)
        return pending

    def blocks(self, task_id: int) -> list[int]:
        """Ids of tasks that list *task_id* in their ``dependsOn``."""
        return list(self._dependents.get(task_id, []))

    def is_ready(self, task_id: int) -> bool:
        """True for a ``todo`` task whose dependencies are all done."""
        task = self._tasks.get(task_id)
        return task is not None and task.status == TaskStatus.TODO and not self.blocked_by(task_id)

    def ready_tasks(self) -> list[Task]:
        """``todo`` tasks whose dependencies are all done, in id order."""
        return [
            t for t in sorted(self._tasks.values(), key=lambda t: t.id)
            if self.is_ready(t.id)
        ]

    def dangling_dependencies(self) -> list[tuple[int, int]]:
        """``(task_id, missing_id)`` pairs for references to unknown tasks."""
        out = []
        for task_id in sorted(self._tasks):
            for dep in self._tasks[task_id].depends_on:
                if dep not in self._tasks:
                    out.append((task_id, dep))
        return out

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def detect_cycles(self) -> list[list[int]]:
        """Return every distinct cycle found by a depth-first search.

        Each cycle is listed once, rotated so that its lowest id comes first,
        e.g. ``[2, 5]`` for ``2 -> 5 -> 2``.
        """
        color = {tid: _WHITE for tid in self._tasks}
        seen: set[tuple[int, ...]] = set()
        cycles: list[list[int]] = []

        for root in sorted(self._tasks):
            if color[root] != _WHITE:
                continue
            path: list[int] = [root]
            stack = [(root, iter(self._deps_in_graph(root)))]
            color[root] = _GREY
            while stack:
                node, deps = stack[-1]
                nxt = next(deps, None)
                if nxt is None:
                    color[node] = _BLACK
                    stack.pop()
                    path.pop()
                    continue
                if color[nxt] == _WHITE:
                    color[nxt] = _GREY
                    path.append(nxt)
                    stack.append((nxt, iter(self._deps_in_graph(nxt))))
                elif color[nxt] == _GREY:
                    cycle = path[path.index(nxt):]
                    pivot = cycle.index(min(cycle))
                    key = tuple(cycle[pivot:] + cycle[:pivot])
                    if key not in seen:
                        seen.add(key)
                        cycles.append(list(key))
        return cycles

    def _deps_in_graph(self, task_id: int) -> list[int]:
        return sorted(d for d in self._tasks[task_id].depends_on if d in self._tasks)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def _acyclic_open_nodes(self) -> tuple[list[int], dict[int, list[int]]]:
        """Topological order (prerequisites first) of non-done tasks outside cycles."""
        in_cycle = {tid for cycle in self.detect_cycles() for tid in cycle}
        nodes = {
            tid for tid, t in self._tasks.items()
            if not t.is_done and tid not in in_cycle
        }
        deps = {
            tid: sorted(d for d in self._tasks[tid].depends_on if d in nodes)
            for tid in nodes
        }
        remaining = {tid: len(ds) for tid, ds in deps.items()}
        dependents: dict[int, list[int]] = defaultdict(list)
        for tid, ds in deps.items():
            for d in ds:
                dependents[d].append(tid)

        order: list[int] = []
        queue = sorted(tid for tid, n in remaining.items() if n == 0)
        while queue:
            tid = queue.pop(0)
            order.append(tid)
            for child in sorted(dependents.get(tid, [])):
                remaining[child] -= 1
                if remaining[child] == 0:
                    queue.append(child)
            queue.sort()
        return order, deps

    def execution_order(self) -> list[list[int]]:
        """Batches of open tasks that can be worked on in parallel (Kahn's algorithm)."""
        order, deps = self._acyclic_open_nodes()
        level: dict[int, int] = {}
        for tid in order:
            level[tid] = 1 + max((level[d] for d in deps[tid]), default=-1)
        batches: list[list[int]] = []
        for tid in order:
            while len(batches) <= level[tid]:
                batches.append([])
            batches[level[tid]].append(tid)
        return [sorted(b) for b in batches]

    def critical_path(self) -> list[int]:
        """Longest chain of non-done tasks, prerequisites first.

        Nodes on a cycle are excluded. Ties pick the lowest dependency id at
        each divergence point and the lowest id for the chain end.
        """
        order, deps = self._acyclic_open_nodes()
        length: dict[int, int] = {}
        best_dep: dict[int, Optional[int]] = {}
        for tid in order:
            best: Optional[int] = None
            for d in deps[tid]:
                if best is None or length[d] > length[best]:
                    best = d
            best_dep[tid] = best
            length[tid] = 1 + (length[best] if best is not None else 0)

        if not length:
            return []
        end = min(length, key=lambda tid: (-length[tid], tid))
        chain = []
        node: Optional[int] = end
        while node is not None:
            chain.append(node)
            node = best_dep[node]
        chain.reverse()
        return chain

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def get_next_task(self) -> Optional[Task]:
        """Highest-priority ready ``todo`` task, lowest id on ties; None if none."""
        candidates = self.ready_tasks()
        if not candidates:
            return None
        return min(candidates, key=lambda t: (-t.priority, t.id))

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def analysis(self) -> dict[str, Any]:
        cycles = self.detect_cycles()
        dangling = self.dangling_dependencies()
        for cycle in cycles:
            logger.warning("Circular dependency among tasks {}", cycle)
        for task_id, missing in dangling:
            logger.warning("Task {} depends on missing task {}", task_id, missing)

        blocking = {
            tid: self.blocks(tid) for tid in sorted(self._tasks) if self.blocks(tid)
        }
        blocked = {
            tid: self.blocked_by(tid)
            for tid in sorted(self._tasks)
            if not self._tasks[tid].is_done and self.blocked_by(tid)
        }
        return {
            "cycles": cycles,
            "criticalPath": self.critical_path(),
            "executionOrder": self.execution_order(),
            "readyTasks": [t.id for t in self.ready_tasks()],
            "blocking": blocking,
            "blockedBy": blocked,
            "danglingDependencies": [
                {"taskId": task_id, "missingId": missing} for task_id, missing in dangling
            ],
        }
