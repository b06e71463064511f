"""Task document model for the task engine.

This module defines the persisted shape of the task document: top-level
tasks with integer ids, their subtasks (``<parentId>.<ordinal>``), the
append-only activity log and the document header.  On disk the document uses
camelCase keys; unknown keys at every level are carried in ``extra`` so a
load/save cycle never drops forward-compatible fields.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..constants import (
    DEFAULT_PRIORITY,
    LOG_ENTRY_TYPE,
    PRIORITY_LEVELS,
    PRIORITY_MAX,
    PRIORITY_MIN,
)
from ..utils import _now_iso, _to_iso, _unique
from .errors import CorruptDocument, InvalidInput


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Lifecycle status shared by tasks and subtasks."""

    TODO = "todo"
    IN_PROGRESS = "inprogress"
    TESTING = "testing"
    DONE = "done"
    BLOCKED = "blocked"
    ERROR = "error"

    @classmethod
    def parse(cls, raw: Any) -> "TaskStatus":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise InvalidInput(f"Unknown status '{raw}'. Valid statuses: {valid}") from None

    @property
    def is_done(self) -> bool:
        return self is TaskStatus.DONE


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SUBTASK_ID_RE = re.compile(r"^(\d+)\.(\d+)$")


def _stamp(now: Optional[datetime]) -> str:
    return _to_iso(now) if now is not None else _now_iso()


def clamp_priority(value: int) -> int:
    return max(PRIORITY_MIN, min(PRIORITY_MAX, int(value)))


def normalize_priority(raw: Any, default: int = DEFAULT_PRIORITY) -> int:
    """Turn a named level (``low``..``critical``) or a number into a clamped int.

    Raises:
        InvalidInput: if *raw* is neither a known level nor numeric.
    """
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        raise InvalidInput(f"Invalid priority: {raw!r}")
    if isinstance(raw, (int, float)):
        return clamp_priority(round(raw))
    text = str(raw).strip().lower()
    if text in PRIORITY_LEVELS:
        return PRIORITY_LEVELS[text]
    try:
        return clamp_priority(round(float(text)))
    except ValueError:
        levels = ", ".join(PRIORITY_LEVELS)
        raise InvalidInput(f"Invalid priority '{raw}'. Use a number 1-1000 or one of: {levels}") from None


def parse_task_id(raw: Any) -> int:
    """Parse a top-level task id (positive integer).

    Raises:
        InvalidInput: if *raw* is not a positive integer.
    """
    if isinstance(raw, bool):
        raise InvalidInput(f"Invalid task id: {raw!r}")
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip()
        if not text.isdigit():
            raise InvalidInput(f"Invalid task id: {raw!r}")
        value = int(text)
    if value < 1:
        raise InvalidInput(f"Invalid task id: {raw!r}")
    return value


def parse_item_id(raw: Any) -> tuple[int, Optional[int]]:
    """Split ``3`` / ``"3"`` / ``"3.2"`` into ``(task_id, subtask_ordinal)``."""
    if isinstance(raw, str):
        match = _SUBTASK_ID_RE.match(raw.strip())
        if match:
            return int(match.group(1)), int(match.group(2))
    return parse_task_id(raw), None


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise CorruptDocument(f"{where}: missing required field '{key}'")
    return data[key]


def _str_list(data: dict[str, Any], key: str, where: str) -> list[str]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise CorruptDocument(f"{where}: '{key}' must be a list")
    return [str(item) for item in raw]


def _optional_score(data: dict[str, Any], key: str, where: str) -> Optional[float]:
    raw = data.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise CorruptDocument(f"{where}: '{key}' must be numeric")
    return raw


def _optional_int(data: dict[str, Any], key: str, where: str) -> Optional[int]:
    raw = data.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise CorruptDocument(f"{where}: '{key}' must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise CorruptDocument(f"{where}: '{key}' must be an integer, got {raw!r}") from None


def _optional_stamp(data: dict[str, Any], key: str) -> Optional[str]:
    raw = data.get(key)
    return str(raw) if raw is not None else None


def _put_timestamps(data: dict[str, Any], created_at: Optional[str], updated_at: Optional[str]) -> None:
    if created_at is not None:
        data["createdAt"] = created_at
    if updated_at is not None:
        data["updatedAt"] = updated_at


# ---------------------------------------------------------------------------
# Log entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LogEntry:
    """One immutable activity-log line."""

    timestamp: str
    message: str
    type: str = LOG_ENTRY_TYPE
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def create(cls, message: str, now: Optional[datetime] = None, entry_type: str = LOG_ENTRY_TYPE) -> "LogEntry":
        return cls(timestamp=_stamp(now), message=message, type=entry_type)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"timestamp": self.timestamp, "type": self.type, "message": self.message}
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], where: str = "activityLog") -> "LogEntry":
        if not isinstance(data, dict):
            raise CorruptDocument(f"{where}: log entry must be an object")
        d = dict(data)
        return cls(
            timestamp=str(d.pop("timestamp", "")),
            type=str(d.pop("type", LOG_ENTRY_TYPE)),
            message=str(d.pop("message", "")),
            extra=d,
        )


def _load_log(data: dict[str, Any], where: str) -> list[LogEntry]:
    raw = data.get("activityLog")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise CorruptDocument(f"{where}: 'activityLog' must be a list")
    return [LogEntry.from_dict(entry, where) for entry in raw]


# ---------------------------------------------------------------------------
# Subtask
# ---------------------------------------------------------------------------

@dataclass
class Subtask:
    """A unit of work owned by exactly one parent :class:`Task`."""

    id: str
    title: str
    status: TaskStatus = TaskStatus.TODO
    related_files: list[str] = field(default_factory=list)
    tests: list[str] = field(default_factory=list)
    activity_log: list[LogEntry] = field(default_factory=list)
    # None when the loaded document has no timestamp.
    created_at: Optional[str] = field(default_factory=_now_iso)
    updated_at: Optional[str] = field(default_factory=_now_iso)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def parent_id(self) -> int:
        return int(self.id.split(".", 1)[0])

    @property
    def ordinal(self) -> int:
        return int(self.id.split(".", 1)[1])

    def touch(self, now: Optional[datetime] = None) -> None:
        self.updated_at = _stamp(now)

    def log(self, message: str, now: Optional[datetime] = None) -> LogEntry:
        entry = LogEntry.create(message, now)
        self.activity_log.append(entry)
        return entry

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "relatedFiles": list(self.related_files),
            "tests": list(self.tests),
            "activityLog": [e.to_dict() for e in self.activity_log],
        }
        _put_timestamps(data, self.created_at, self.updated_at)
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], parent_id: int) -> "Subtask":
        if not isinstance(data, dict):
            raise CorruptDocument(f"task {parent_id}: subtask must be an object")
        d = dict(data)
        raw_id = str(_require(d, "id", f"task {parent_id} subtask"))
        match = _SUBTASK_ID_RE.match(raw_id)
        if not match or int(match.group(1)) != parent_id or int(match.group(2)) < 1:
            raise CorruptDocument(f"task {parent_id}: malformed subtask id '{raw_id}'")
        where = f"subtask {raw_id}"
        title = str(_require(d, "title", where))
        try:
            status = TaskStatus.parse(d.get("status", "todo"))
        except InvalidInput as exc:
            raise CorruptDocument(f"{where}: {exc.message}") from None
        sub = cls(
            id=raw_id,
            title=title,
            status=status,
            related_files=_str_list(d, "relatedFiles", where),
            tests=_str_list(d, "tests", where),
            activity_log=_load_log(d, where),
            created_at=_optional_stamp(d, "createdAt"),
            updated_at=_optional_stamp(d, "updatedAt"),
        )
        for key in ("id", "title", "status", "relatedFiles", "tests", "activityLog", "createdAt", "updatedAt"):
            d.pop(key, None)
        sub.extra = d
        return sub


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

_TASK_KEYS = (
    "id", "title", "description", "priority", "status", "dependsOn", "relatedFiles",
    "tests", "tags", "subtasks", "activityLog", "createdAt", "updatedAt", "complexity",
    "impact", "urgency", "basePriority", "statusChangedAt", "lastSubtaskIndex",
)


@dataclass
class Task:
    """A top-level unit of work on the task graph.

    ``priority`` is the effective value (1-1000) written by manual edits and by
    the priority pipeline; ``base_priority`` remembers the last manual value so
    that repeated recalculations start from the same point.
    """

    id: int
    title: str
    description: str = ""
    priority: int = DEFAULT_PRIORITY
    status: TaskStatus = TaskStatus.TODO
    depends_on: list[int] = field(default_factory=list)
    related_files: list[str] = field(default_factory=list)
    tests: list[str] = field(default_factory=list)
    tags: Optional[list[str]] = None
    subtasks: list[Subtask] = field(default_factory=list)
    activity_log: list[LogEntry] = field(default_factory=list)
    created_at: Optional[str] = field(default_factory=_now_iso)
    updated_at: Optional[str] = field(default_factory=_now_iso)

    # Effort attributes (0-10 scale) used by effort weighting
    complexity: Optional[float] = None
    impact: Optional[float] = None
    urgency: Optional[float] = None

    base_priority: Optional[int] = None
    status_changed_at: Optional[str] = None
    last_subtask_index: Optional[int] = None

    extra: dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def is_done(self) -> bool:
        return self.status.is_done

    @property
    def effective_base(self) -> int:
        return self.base_priority if self.base_priority is not None else self.priority

    def touch(self, now: Optional[datetime] = None) -> None:
        self.updated_at = _stamp(now)

    def log(self, message: str, now: Optional[datetime] = None) -> LogEntry:
        entry = LogEntry.create(message, now)
        self.activity_log.append(entry)
        return entry

    def set_manual_priority(self, value: int) -> None:
        self.priority = clamp_priority(value)
        self.base_priority = self.priority

    def get_subtask(self, subtask_id: str) -> Optional[Subtask]:
        for sub in self.subtasks:
            if sub.id == subtask_id:
                return sub
        return None

    def next_subtask_id(self) -> str:
        """Allocate the next ordinal; ordinals are never reused within a task."""
        highest = max((s.ordinal for s in self.subtasks), default=0)
        current = max(self.last_subtask_index or 0, highest)
        self.last_subtask_index = current + 1
        return f"{self.id}.{self.last_subtask_index}"

    def add_subtask(
        self,
        title: str,
        now: Optional[datetime] = None,
        related_files: Optional[list[str]] = None,
        tests: Optional[list[str]] = None,
    ) -> Subtask:
        stamp = _stamp(now)
        sub = Subtask(
            id=self.next_subtask_id(),
            title=title,
            related_files=list(related_files or []),
            tests=list(tests or []),
            created_at=stamp,
            updated_at=stamp,
        )
        self.subtasks.append(sub)
        self.updated_at = stamp
        return sub

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "status": self.status.value,
            "dependsOn": list(self.depends_on),
            "relatedFiles": list(self.related_files),
            "tests": list(self.tests),
        }
        if self.tags is not None:
            data["tags"] = list(self.tags)
        for key, value in (
            ("complexity", self.complexity),
            ("impact", self.impact),
            ("urgency", self.urgency),
            ("basePriority", self.base_priority),
            ("statusChangedAt", self.status_changed_at),
            ("lastSubtaskIndex", self.last_subtask_index),
        ):
            if value is not None:
                data[key] = value
        data["subtasks"] = [s.to_dict() for s in self.subtasks]
        data["activityLog"] = [e.to_dict() for e in self.activity_log]
        _put_timestamps(data, self.created_at, self.updated_at)
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize one task.

        Raises:
            CorruptDocument: on missing required fields or malformed ids.
        """
        if not isinstance(data, dict):
            raise CorruptDocument("task entry must be an object")
        d = dict(data)
        raw_id = _require(d, "id", "task")
        try:
            task_id = parse_task_id(raw_id)
        except InvalidInput:
            raise CorruptDocument(f"task: malformed id {raw_id!r}") from None
        where = f"task {task_id}"
        title = str(_require(d, "title", where))
        if not title.strip():
            raise CorruptDocument(f"{where}: title must not be empty")
        try:
            status = TaskStatus.parse(d.get("status", "todo"))
            priority = normalize_priority(d.get("priority"))
        except InvalidInput as exc:
            raise CorruptDocument(f"{where}: {exc.message}") from None

        raw_deps = d.get("dependsOn") or []
        if not isinstance(raw_deps, list):
            raise CorruptDocument(f"{where}: 'dependsOn' must be a list")
        try:
            depends_on = _unique(parse_task_id(dep) for dep in raw_deps)
        except InvalidInput:
            raise CorruptDocument(f"{where}: malformed dependency id in {raw_deps!r}") from None

        raw_subtasks = d.get("subtasks") or []
        if not isinstance(raw_subtasks, list):
            raise CorruptDocument(f"{where}: 'subtasks' must be a list")
        subtasks = [Subtask.from_dict(s, task_id) for s in raw_subtasks]

        raw_tags = d.get("tags")
        if raw_tags is not None and not isinstance(raw_tags, list):
            raise CorruptDocument(f"{where}: 'tags' must be a list")

        task = cls(
            id=task_id,
            title=title,
            description=str(d.get("description") or ""),
            priority=priority,
            status=status,
            depends_on=depends_on,
            related_files=_str_list(d, "relatedFiles", where),
            tests=_str_list(d, "tests", where),
            tags=[str(t) for t in raw_tags] if raw_tags is not None else None,
            subtasks=subtasks,
            activity_log=_load_log(d, where),
            created_at=_optional_stamp(d, "createdAt"),
            updated_at=_optional_stamp(d, "updatedAt"),
            complexity=_optional_score(d, "complexity", where),
            impact=_optional_score(d, "impact", where),
            urgency=_optional_score(d, "urgency", where),
            base_priority=_optional_int(d, "basePriority", where),
            status_changed_at=d.get("statusChangedAt"),
            last_subtask_index=_optional_int(d, "lastSubtaskIndex", where),
        )
        for key in _TASK_KEYS:
            d.pop(key, None)
        task.extra = d
        return task


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

_DOCUMENT_KEYS = ("projectName", "projectDescription", "lastTaskId", "tasks")


@dataclass
class TaskDocument:
    """The whole persisted task document (header plus tasks)."""

    project_name: str = "Untitled Project"
    project_description: str = ""
    last_task_id: int = 0
    tasks: list[Task] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def get(self, task_id: int) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def ids(self) -> set[int]:
        return {t.id for t in self.tasks}

    def allocate_id(self) -> int:
        """Return the next task id and advance the counter."""
        self.last_task_id = max(self.last_task_id, max(self.ids(), default=0)) + 1
        return self.last_task_id

    def find(self, item_id: Any) -> tuple[Optional[Task], Optional[Subtask], Optional[Task]]:
        """Resolve a task id or dotted subtask id.

        Returns ``(task, subtask, parent)``: ``task`` is set for top-level ids,
        ``subtask``/``parent`` for dotted ids; all three None when unresolved.
        """
        try:
            task_id, ordinal = parse_item_id(item_id)
        except InvalidInput:
            return None, None, None
        task = self.get(task_id)
        if task is None:
            return None, None, None
        if ordinal is None:
            return task, None, None
        sub = task.get_subtask(f"{task_id}.{ordinal}")
        if sub is None:
            return None, None, None
        return None, sub, task

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "projectName": self.project_name,
            "projectDescription": self.project_description,
            "lastTaskId": self.last_task_id,
            "tasks": [t.to_dict() for t in self.tasks],
        }
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskDocument":
        if not isinstance(data, dict):
            raise CorruptDocument("task document must be an object")
        d = dict(data)
        raw_tasks = _require(d, "tasks", "document")
        if not isinstance(raw_tasks, list):
            raise CorruptDocument("document: 'tasks' must be a list")
        tasks = [Task.from_dict(t) for t in raw_tasks]
        seen: set[int] = set()
        for t in tasks:
            if t.id in seen:
                raise CorruptDocument(f"document: duplicate task id {t.id}")
            seen.add(t.id)
        raw_last = d.get("lastTaskId", 0)
        if isinstance(raw_last, bool) or not isinstance(raw_last, int) or raw_last < 0:
            raise CorruptDocument(f"document: malformed lastTaskId {raw_last!r}")
        doc = cls(
            project_name=str(d.get("projectName") or "Untitled Project"),
            project_description=str(d.get("projectDescription") or ""),
            # Never hand out an id that is already taken, even if the counter was hand-edited.
            last_task_id=max(raw_last, max(seen, default=0)),
            tasks=tasks,
        )
        for key in _DOCUMENT_KEYS:
            d.pop(key, None)
        doc.extra = d
        return doc


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------

@dataclass
class OperationResult:
    """Uniform return value of every engine operation."""

    success: bool
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str = "", **data: Any) -> "OperationResult":
        return cls(True, message, data)

    @classmethod
    def fail(cls, message: str, **data: Any) -> "OperationResult":
        return cls(False, message, data)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success, "message": self.message}
        out.update(self.data)
        return out
