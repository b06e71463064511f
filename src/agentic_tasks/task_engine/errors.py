"""Error taxonomy for the task engine.

Recoverable errors are turned into failed ``OperationResult`` objects by the
engine facade. ``CorruptDocument`` and I/O failures while saving are fatal to
the current operation and propagate to the caller.
"""

from __future__ import annotations

from typing import Optional, Sequence


class EngineError(Exception):
    """Base class for task engine errors."""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class NotFound(EngineError):
    """A task or subtask id did not resolve."""

    def __init__(self, item_id: object, kind: str = "Task or subtask") -> None:
        super().__init__(f"{kind} with ID {item_id} not found.")
        self.item_id = item_id


class UnmetDependency(EngineError):
    """A task tried to start while some of its dependencies are not done."""

    def __init__(self, item_id: object, pending: Sequence[int]) -> None:
        pending_txt = ", ".join(str(p) for p in pending)
        super().__init__(
            f"Cannot start task {item_id}. It has unmet dependencies: {pending_txt}."
        )
        self.item_id = item_id
        self.pending = list(pending)


class IncompleteSubtasks(EngineError):
    """A task tried to become done while some subtasks are not done."""

    def __init__(self, item_id: object, open_subtasks: Sequence[str]) -> None:
        super().__init__(
            f"Cannot mark task {item_id} as done. All its subtasks must be completed first "
            f"(open: {', '.join(open_subtasks)})."
        )
        self.item_id = item_id
        self.open_subtasks = list(open_subtasks)


class InvalidTransition(EngineError):
    """The requested status change is not allowed from the current status."""

    def __init__(self, item_id: object, current: str, target: str, allowed: Sequence[str]) -> None:
        super().__init__(
            f"Cannot move {item_id} from {current} to {target}. "
            f"Valid targets: {', '.join(sorted(allowed))}."
        )
        self.item_id = item_id
        self.current = current
        self.target = target


class InvalidInput(EngineError):
    """A caller-supplied value is malformed (empty title, bad priority, ...)."""


class ConfigError(InvalidInput):
    """Engine configuration is out of range or the config file is unreadable."""


class CircularDependency(EngineError):
    """A dependency cycle exists; reported by analysis, never auto-resolved."""

    def __init__(self, cycle: Sequence[int]) -> None:
        super().__init__(f"Circular dependency: {' -> '.join(str(c) for c in [*cycle, cycle[0]])}")
        self.cycle = list(cycle)


class DanglingDependency(EngineError):
    """A ``dependsOn`` entry points at a task that does not exist."""

    def __init__(self, task_id: int, missing_id: int) -> None:
        super().__init__(f"Task {task_id} depends on missing task {missing_id}")
        self.task_id = task_id
        self.missing_id = missing_id


class CorruptDocument(EngineError):
    """The persisted task document exists but cannot be parsed."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, recoverable=False)
        self.path = path
