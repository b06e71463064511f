"""Status state machine for tasks and subtasks.

Transitions are validated against an explicit table, then gated by the
dependency rule (``inprogress``/``testing`` require every dependency to be
done) and the subtask rule (``done`` requires every subtask to be done).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from loguru import logger

from ..utils import _now, _parse_list, _to_iso
from .errors import IncompleteSubtasks, InvalidTransition, NotFound, UnmetDependency
from .graph import DependencyGraph
from .model import Subtask, Task, TaskDocument, TaskStatus

_VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.TODO: {
        TaskStatus.IN_PROGRESS, TaskStatus.TESTING, TaskStatus.DONE,
        TaskStatus.BLOCKED, TaskStatus.ERROR,
    },
    TaskStatus.IN_PROGRESS: {
        TaskStatus.TODO, TaskStatus.TESTING, TaskStatus.DONE,
        TaskStatus.BLOCKED, TaskStatus.ERROR,
    },
    TaskStatus.TESTING: {
        TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.DONE,
        TaskStatus.BLOCKED, TaskStatus.ERROR,
    },
    TaskStatus.BLOCKED: {TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.ERROR},
    TaskStatus.ERROR: {TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED},
    TaskStatus.DONE: {TaskStatus.TODO},
}

_GATED_BY_DEPENDENCIES = {TaskStatus.IN_PROGRESS, TaskStatus.TESTING}

VERIFICATION_SUBTASK_TITLES = (
    "Write unit and integration tests for '{title}'",
    "Ensure all tests are passing for '{title}'",
)


def allowed_transitions(current: TaskStatus) -> set[TaskStatus]:
    """Statuses reachable from *current* (re-entering the same status is allowed)."""
    return set(_VALID_TRANSITIONS[current]) | {current}


@dataclass
class StatusChange:
    item_id: str
    kind: str
    old_status: TaskStatus
    new_status: TaskStatus
    created_subtasks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.item_id,
            "kind": self.kind,
            "oldStatus": self.old_status.value,
            "newStatus": self.new_status.value,
            "createdSubtasks": list(self.created_subtasks),
        }


def add_verification_subtasks(task: Task, now: Optional[datetime] = None) -> list[str]:
    """Add the test-writing and test-passing subtasks unless already present by title."""
    existing = {s.title for s in task.subtasks}
    created = []
    for template in VERIFICATION_SUBTASK_TITLES:
        title = template.format(title=task.title)
        if title in existing:
            continue
        created.append(task.add_subtask(title, now).id)
    return created


def set_status(
    document: TaskDocument,
    item_id: Any,
    new_status: Any,
    message: Optional[str] = None,
    related_files: Any = None,
    now: Optional[datetime] = None,
) -> StatusChange:
    """Move a task or subtask to *new_status*, mutating *document* in place.

    Raises:
        NotFound: if *item_id* does not resolve.
        InvalidTransition: if the table does not allow the move.
        UnmetDependency: entering ``inprogress``/``testing`` with open dependencies.
        IncompleteSubtasks: entering ``done`` with open subtasks.
        InvalidInput: for an unknown status name.
    """
    target = TaskStatus.parse(new_status)
    now = now or _now()
    task, subtask, parent = document.find(item_id)
    item: Optional[Task | Subtask] = task or subtask
    if item is None:
        raise NotFound(item_id)

    current = item.status
    if target not in allowed_transitions(current):
        raise InvalidTransition(item.id, current.value, target.value, [s.value for s in _VALID_TRANSITIONS[current]])

    if task is not None:
        if target in _GATED_BY_DEPENDENCIES:
            pending = DependencyGraph(document).blocked_by(task.id)
            if pending:
                raise UnmetDependency(task.id, pending)
        if target == TaskStatus.DONE:
            open_subs = [s.id for s in task.subtasks if not s.status.is_done]
            if open_subs:
                raise IncompleteSubtasks(task.id, open_subs)

    if target == TaskStatus.DONE and related_files is not None:
        item.related_files = _parse_list(related_files)
        item.log("Related files updated.", now)

    text = f'Status changed from "{current.value}" to "{target.value}"'
    if message:
        text += f". Message: {message}"
    item.status = target
    item.log(text, now)
    item.touch(now)
    if task is not None:
        task.status_changed_at = _to_iso(now)
    if parent is not None:
        parent.touch(now)

    change = StatusChange(
        item_id=str(item.id),
        kind="task" if task is not None else "subtask",
        old_status=current,
        new_status=target,
    )
    if task is not None and target == TaskStatus.TESTING:
        change.created_subtasks = add_verification_subtasks(task, now)

    logger.info("{} {} status {} -> {}", change.kind.capitalize(), item.id, current.value, target.value)
    return change
