"""Task engine facade.

:class:`TaskEngine` is the single entry point callers (CLI, RPC transport,
agents) use.  Each public method performs one load-mutate-save cycle through
the :class:`~agentic_tasks.task_engine.store.TaskStore` and returns an
:class:`~agentic_tasks.task_engine.model.OperationResult`.  Recoverable
errors become failed results; a corrupt document or a failed write raises.
"""

from __future__ import annotations

import functools
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from loguru import logger

from ..config import DECAY_MODELS, ConfigStore, EngineSettings, merge_section
from ..constants import (
    DEFAULT_PRIORITY_STEP,
    DEPRIORITIZE_DEFAULT,
    DEPRIORITIZE_RANGE,
    PRIORITIZE_DEFAULT,
    PRIORITIZE_RANGE,
    PRIORITY_LOG_MIN_DELTA,
    PRIORITY_MAX,
    PRIORITY_MIN,
)
from ..logging_utils import pretty, summarize_result
from ..utils import _now, _parse_list, _to_iso, _unique
from ..workspace import Workspace
from . import priority as priority_engine
from . import templates
from .errors import EngineError, InvalidInput, NotFound
from .graph import DependencyGraph
from .model import (
    OperationResult,
    Task,
    TaskDocument,
    TaskStatus,
    normalize_priority,
    parse_item_id,
    parse_task_id,
)
from .status import set_status as _apply_status
from .store import SaveOptions, TaskStore
from .watcher import ChangeWatcher, SyncHook

F = TypeVar("F", bound=Callable[..., OperationResult])

SCORE_MIN = 1
SCORE_MAX = 10


def _operation(action: str) -> Callable[[F], F]:
    """Turn recoverable :class:`EngineError`s raised by *fn* into failed results."""

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(self: "TaskEngine", *args: Any, **kwargs: Any) -> OperationResult:
            try:
                result = fn(self, *args, **kwargs)
            except EngineError as exc:
                if not exc.recoverable:
                    raise
                logger.warning("{} failed: {}", action, exc.message)
                return OperationResult.fail(exc.message, error=type(exc).__name__)
            logger.debug("{} -> {}", action, summarize_result(result))
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


def _parse_ids(value: Any) -> list[int]:
    if value is None:
        return []
    if isinstance(value, int) and not isinstance(value, bool):
        return [parse_task_id(value)]
    return _unique(parse_task_id(v) for v in _parse_list(value))


def _validate_score(name: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"{name} must be a number between {SCORE_MIN} and {SCORE_MAX}")
    if not SCORE_MIN <= value <= SCORE_MAX:
        raise InvalidInput(f"{name} must be between {SCORE_MIN} and {SCORE_MAX}, got {value}")
    return value


def _require_title(title: Any) -> str:
    text = str(title or "").strip()
    if not text:
        raise InvalidInput("Title must not be empty.")
    return text


class TaskEngine:
    """Operations over one workspace's task document.

    Parameters
    ----------
    workspace:
        Where the document and config live; resolved from the environment or
        the current directory when omitted.
    clock:
        Returns "now"; inject a fixed clock for deterministic recalculation.
    table_renderer:
        Optional collaborator called with the document after saves that ask
        for a table update and after watcher sync cycles.
    task_files_writer:
        Optional collaborator that regenerates per-task files during watcher
        sync cycles.
    """

    def __init__(
        self,
        workspace: Optional[Workspace] = None,
        clock: Optional[Callable[[], datetime]] = None,
        table_renderer: Optional[SyncHook] = None,
        task_files_writer: Optional[SyncHook] = None,
    ) -> None:
        self.workspace = workspace or Workspace.resolve()
        self.clock = clock or _now
        self.table_renderer = table_renderer
        self.task_files_writer = task_files_writer
        self.config_store = ConfigStore(self.workspace.config_path)
        self.store = TaskStore(
            self.workspace.tasks_path,
            on_recalculate=self._recalculate_after_save,
            on_table_update=self._render_table,
        )
        self.watcher: Optional[ChangeWatcher] = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _settings(self) -> EngineSettings:
        return self.config_store.load()

    def _run_pipeline(self, document: TaskDocument, **overrides: Optional[bool]) -> priority_engine.RecalculationResult:
        cfg = self._settings().priority_engine
        return priority_engine.recalculate(document, cfg, now=self.clock(), overrides=overrides)

    def _recalculate_after_save(self, document: TaskDocument) -> None:
        if self._run_pipeline(document).changed:
            self.store.write(document)

    def _watcher_recalculate(self, document: TaskDocument) -> bool:
        return self._run_pipeline(document).changed

    def _render_table(self, document: TaskDocument) -> None:
        if self.table_renderer is not None:
            self.table_renderer(document)

    @staticmethod
    def _top_level(document: TaskDocument, task_id: Any) -> Task:
        task = document.get(parse_task_id(task_id))
        if task is None:
            raise NotFound(task_id, "Task")
        return task

    def _set_manual_priority(self, task: Task, new_priority: int, log_message: str, **fields: Any) -> int:
        old = task.priority
        task.set_manual_priority(new_priority)
        now = self.clock()
        task.touch(now)
        if abs(task.priority - old) >= PRIORITY_LOG_MIN_DELTA:
            task.log(log_message.format(old=old, new=task.priority, **fields), now)
        return old

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------

    @_operation("init_project")
    def init_project(self, project_name: str = "Untitled Project", project_description: str = "") -> OperationResult:
        """Create an empty task document and default config for the workspace."""
        with self.store.hold():
            if self.store.exists():
                raise InvalidInput(f"Project already initialized at {self.store.path}.")
            document = TaskDocument(
                project_name=project_name or "Untitled Project",
                project_description=project_description or "",
            )
            self.store.save(document, SaveOptions(update_table=True))
        if not self.workspace.config_path.exists():
            self.config_store.save(EngineSettings())
        logger.info("Initialized project '{}' at {}", document.project_name, self.store.path)
        return OperationResult.ok(
            f"Project '{document.project_name}' initialized.",
            path=str(self.store.path),
            projectName=document.project_name,
        )

    @_operation("load")
    def load(self) -> OperationResult:
        document = self.store.snapshot()
        return OperationResult.ok(f"Loaded {len(document.tasks)} task(s).", document=document.to_dict())

    @_operation("save")
    def save(
        self,
        document: TaskDocument | dict[str, Any],
        recalculate_priorities: bool = False,
        update_table: bool = False,
    ) -> OperationResult:
        """Replace the persisted document with *document*."""
        if isinstance(document, dict):
            document = TaskDocument.from_dict(document)
        with self.store.hold():
            self.store.save(document, SaveOptions(recalculate_priorities, update_table))
        return OperationResult.ok(f"Saved {len(document.tasks)} task(s).", path=str(self.store.path))

    # ------------------------------------------------------------------
    # Tasks and subtasks
    # ------------------------------------------------------------------

    @_operation("add_task")
    def add_task(
        self,
        title: str,
        description: str = "",
        priority: Any = "medium",
        depends_on: Any = None,
        related_files: Any = None,
        tests: Any = None,
        tags: Any = None,
        complexity: Any = None,
        impact: Any = None,
        urgency: Any = None,
    ) -> OperationResult:
        title = _require_title(title)
        value = normalize_priority(priority)
        deps = _parse_ids(depends_on)
        scores = {
            "complexity": _validate_score("complexity", complexity),
            "impact": _validate_score("impact", impact),
            "urgency": _validate_score("urgency", urgency),
        }
        with self.store.transaction() as tx:
            document = tx.document
            stamp = _to_iso(self.clock())
            task = Task(
                id=self.store.next_id(document),
                title=title,
                description=description or "",
                priority=value,
                depends_on=deps,
                related_files=_parse_list(related_files),
                tests=_parse_list(tests),
                tags=_unique(_parse_list(tags)) if tags is not None else None,
                created_at=stamp,
                updated_at=stamp,
                base_priority=value,
                **scores,
            )
            document.tasks.append(task)
            missing = [d for d in deps if document.get(d) is None]
            if missing:
                logger.warning("Task {} depends on unknown task(s) {}", task.id, missing)
            tx.mark_dirty(SaveOptions(update_table=True))
        logger.info("Added task {} '{}' (priority {})", task.id, task.title, task.priority)
        return OperationResult.ok(f"Task {task.id} added.", task=task.to_dict())

    @_operation("add_subtask")
    def add_subtask(self, parent_id: Any, title: str, related_files: Any = None, tests: Any = None) -> OperationResult:
        title = _require_title(title)
        with self.store.transaction() as tx:
            parent = tx.document.get(parse_task_id(parent_id))
            if parent is None:
                raise NotFound(parent_id, "Parent task")
            sub = parent.add_subtask(title, self.clock(), _parse_list(related_files), _parse_list(tests))
            tx.mark_dirty(SaveOptions(update_table=True))
        logger.info("Added subtask {} '{}'", sub.id, sub.title)
        return OperationResult.ok(f"Subtask {sub.id} added to task {parent.id}.", subtask=sub.to_dict())

    @_operation("update_task")
    def update_task(
        self,
        task_id: Any,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Any = None,
        depends_on: Any = None,
        related_files: Any = None,
        tests: Any = None,
        tags: Any = None,
        complexity: Any = None,
        impact: Any = None,
        urgency: Any = None,
    ) -> OperationResult:
        """Edit task fields; status changes go through :meth:`set_status`."""
        _, ordinal = parse_item_id(task_id)
        if ordinal is not None:
            raise InvalidInput(f"{task_id} is a subtask id; use update_subtask.")
        new_title = _require_title(title) if title is not None else None
        new_priority = normalize_priority(priority) if priority is not None else None
        deps = _parse_ids(depends_on) if depends_on is not None else None
        scores = {
            "complexity": _validate_score("complexity", complexity),
            "impact": _validate_score("impact", impact),
            "urgency": _validate_score("urgency", urgency),
        }

        with self.store.transaction() as tx:
            task = self._top_level(tx.document, task_id)
            if deps is not None and task.id in deps:
                raise InvalidInput(f"Task {task.id} cannot depend on itself.")
            if new_title is not None:
                task.title = new_title
            if description is not None:
                task.description = description
            if deps is not None:
                task.depends_on = deps
            if related_files is not None:
                task.related_files = _parse_list(related_files)
            if tests is not None:
                task.tests = _parse_list(tests)
            if tags is not None:
                task.tags = _unique(_parse_list(tags))
            for name, value in scores.items():
                if value is not None:
                    setattr(task, name, value)
            if new_priority is not None:
                self._set_manual_priority(task, new_priority, "Priority changed from {old} to {new}.")
            task.touch(self.clock())
            tx.mark_dirty(SaveOptions(update_table=True))
            if deps is not None:
                cycles = [c for c in DependencyGraph(tx.document).detect_cycles() if task.id in c]
                for cycle in cycles:
                    logger.warning("Update of task {} introduced circular dependency {}", task.id, cycle)
        return OperationResult.ok(f"Task {task.id} updated.", task=task.to_dict())

    @_operation("update_subtask")
    def update_subtask(
        self,
        subtask_id: Any,
        title: Optional[str] = None,
        related_files: Any = None,
        tests: Any = None,
    ) -> OperationResult:
        new_title = _require_title(title) if title is not None else None
        with self.store.transaction() as tx:
            _, sub, parent = tx.document.find(subtask_id)
            if sub is None or parent is None:
                raise NotFound(subtask_id, "Subtask")
            if new_title is not None:
                sub.title = new_title
            if related_files is not None:
                sub.related_files = _parse_list(related_files)
            if tests is not None:
                sub.tests = _parse_list(tests)
            now = self.clock()
            sub.touch(now)
            parent.touch(now)
            tx.mark_dirty(SaveOptions(update_table=True))
        return OperationResult.ok(f"Subtask {sub.id} updated.", subtask=sub.to_dict())

    @_operation("remove_task")
    def remove_task(self, item_id: Any) -> OperationResult:
        """Remove a task (and strip it from every ``dependsOn``) or a subtask."""
        with self.store.transaction() as tx:
            document = tx.document
            task, sub, parent = document.find(item_id)
            now = self.clock()
            if sub is not None and parent is not None:
                parent.subtasks = [s for s in parent.subtasks if s.id != sub.id]
                parent.touch(now)
                message = f"Subtask {sub.id} removed."
            elif task is not None:
                document.tasks = [t for t in document.tasks if t.id != task.id]
                for other in document.tasks:
                    if task.id in other.depends_on:
                        other.depends_on = [d for d in other.depends_on if d != task.id]
                        other.touch(now)
                message = f"Task {task.id} removed."
            else:
                raise NotFound(item_id)
            tx.mark_dirty(SaveOptions(update_table=True))
        logger.info(message)
        return OperationResult.ok(message, id=str(item_id))

    @_operation("set_status")
    def set_status(
        self,
        item_id: Any,
        new_status: Any,
        message: Optional[str] = None,
        related_files: Any = None,
    ) -> OperationResult:
        with self.store.transaction() as tx:
            change = _apply_status(tx.document, item_id, new_status, message, related_files, now=self.clock())
            tx.mark_dirty(SaveOptions(update_table=True))
        return OperationResult.ok(
            f"Status of {change.kind} {change.item_id} updated to {change.new_status.value}.",
            **change.to_dict(),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @_operation("find_task")
    def find_task(self, item_id: Any) -> OperationResult:
        document = self.store.snapshot()
        task, sub, parent = document.find(item_id)
        if task is not None:
            return OperationResult.ok(f"Found task {task.id}.", kind="task", task=task.to_dict())
        if sub is not None and parent is not None:
            return OperationResult.ok(
                f"Found subtask {sub.id}.", kind="subtask", subtask=sub.to_dict(), parentTask=parent.to_dict()
            )
        raise NotFound(item_id)

    @_operation("list_tasks")
    def list_tasks(self, status: Any = None) -> OperationResult:
        document = self.store.snapshot()
        tasks = document.tasks
        if status:
            wanted = TaskStatus.parse(status)
            tasks = [t for t in tasks if t.status == wanted]
        return OperationResult.ok(
            f"{len(tasks)} task(s).",
            projectName=document.project_name,
            tasks=[t.to_dict() for t in tasks],
            count=len(tasks),
        )

    @_operation("get_next_task")
    def get_next_task(self) -> OperationResult:
        graph = DependencyGraph(self.store.snapshot())
        task = graph.get_next_task()
        if task is None:
            return OperationResult.ok("No actionable task found.", task=None)
        return OperationResult.ok(f"Next task: {task.id} - {task.title}", task=task.to_dict())

    @_operation("get_context")
    def get_context(self, item_id: Any) -> OperationResult:
        """Item details plus its dependency neighbourhood."""
        document = self.store.snapshot()
        graph = DependencyGraph(document)
        task, sub, parent = document.find(item_id)
        if sub is not None and parent is not None:
            return OperationResult.ok(
                f"Context for subtask {sub.id}.",
                kind="subtask",
                subtask=sub.to_dict(),
                parentTask={"id": parent.id, "title": parent.title, "status": parent.status.value},
                siblings=[{"id": s.id, "title": s.title, "status": s.status.value} for s in parent.subtasks if s.id != sub.id],
            )
        if task is None:
            raise NotFound(item_id)

        def summary(tid: int) -> dict[str, Any]:
            other = document.get(tid)
            if other is None:
                return {"id": tid, "missing": True}
            return {"id": other.id, "title": other.title, "status": other.status.value, "priority": other.priority}

        return OperationResult.ok(
            f"Context for task {task.id}.",
            kind="task",
            task=task.to_dict(),
            dependencies=[summary(d) for d in task.depends_on],
            dependents=[summary(d) for d in graph.blocks(task.id)],
            blockedBy=graph.blocked_by(task.id),
            ready=graph.is_ready(task.id),
        )

    # ------------------------------------------------------------------
    # Priority engine
    # ------------------------------------------------------------------

    @_operation("recalculate_priorities")
    def recalculate_priorities(
        self,
        apply_dependency_boosts: Optional[bool] = None,
        apply_time_decay: Optional[bool] = None,
        apply_effort_weighting: Optional[bool] = None,
        optimize_distribution: Optional[bool] = None,
    ) -> OperationResult:
        """Run the priority pipeline; ``None`` flags fall back to the saved config."""
        with self.store.transaction() as tx:
            result = self._run_pipeline(
                tx.document,
                apply_dependency_boosts=apply_dependency_boosts,
                apply_time_decay=apply_time_decay,
                apply_effort_weighting=apply_effort_weighting,
                optimize_distribution=optimize_distribution,
            )
            if result.changed:
                logger.debug("Priority changes:\n{}", pretty(result.changes))
                tx.mark_dirty(SaveOptions(update_table=True))
        return OperationResult.ok(
            f"Priorities recalculated: {len(result.changes)} task(s) changed.", **result.to_dict()
        )

    @_operation("get_priority_statistics")
    def get_priority_statistics(self) -> OperationResult:
        stats = priority_engine.priority_statistics(self.store.snapshot())
        return OperationResult.ok(f"Statistics for {stats['count']} task(s).", statistics=stats)

    @_operation("get_dependency_analysis")
    def get_dependency_analysis(self) -> OperationResult:
        analysis = DependencyGraph(self.store.snapshot()).analysis()
        return OperationResult.ok(
            f"{len(analysis['cycles'])} cycle(s), critical path of {len(analysis['criticalPath'])} task(s).",
            **analysis,
        )

    def _configure(self, section: str, changes: dict[str, Any]) -> OperationResult:
        settings = self._settings()
        engine_cfg = settings.priority_engine
        updated = merge_section(getattr(engine_cfg, section), changes)
        setattr(engine_cfg, section, updated)
        self.config_store.save(settings)
        logger.info("Updated {} config: {}", section, updated.model_dump(by_alias=True))
        return OperationResult.ok(f"{section} configuration updated.", config=updated.model_dump(by_alias=True))

    @_operation("configure_time_decay")
    def configure_time_decay(self, **changes: Any) -> OperationResult:
        """Accepts ``enabled``, ``model``, ``rate``, ``threshold``, ``maxBoost``,
        ``priorityWeight`` and ``adaptiveSplit`` (snake_case names work too)."""
        return self._configure("time_decay", changes)

    @_operation("configure_effort_weighting")
    def configure_effort_weighting(self, **changes: Any) -> OperationResult:
        return self._configure("effort_weighting", changes)

    @_operation("get_advanced_algorithm_config")
    def get_advanced_algorithm_config(self) -> OperationResult:
        settings = self._settings()
        return OperationResult.ok(
            "Priority engine configuration.",
            config=settings.priority_engine.model_dump(by_alias=True),
            decayModels=list(DECAY_MODELS),
        )

    # ------------------------------------------------------------------
    # Manual priority adjustments
    # ------------------------------------------------------------------

    @staticmethod
    def _amount(amount: Any) -> int:
        if amount is None:
            return DEFAULT_PRIORITY_STEP
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
            raise InvalidInput(f"Amount must be a positive number, got {amount!r}")
        return int(amount)

    @_operation("bump_task_priority")
    def bump_task_priority(self, task_id: Any, amount: Any = DEFAULT_PRIORITY_STEP) -> OperationResult:
        step = self._amount(amount)
        with self.store.transaction() as tx:
            task = self._top_level(tx.document, task_id)
            target = min(PRIORITY_MAX, task.priority + step)
            old = self._set_manual_priority(task, target, "Priority bumped to {new} (+{step})", step=step)
            tx.mark_dirty(SaveOptions(update_table=True))
        return OperationResult.ok(
            f"Task {task.id} priority bumped from {old} to {task.priority}", oldPriority=old, priority=task.priority
        )

    @_operation("defer_task_priority")
    def defer_task_priority(self, task_id: Any, amount: Any = DEFAULT_PRIORITY_STEP) -> OperationResult:
        step = self._amount(amount)
        with self.store.transaction() as tx:
            task = self._top_level(tx.document, task_id)
            target = max(PRIORITY_MIN, task.priority - step)
            old = self._set_manual_priority(task, target, "Priority deferred to {new} (-{step})", step=step)
            tx.mark_dirty(SaveOptions(update_table=True))
        return OperationResult.ok(
            f"Task {task.id} priority deferred from {old} to {task.priority}", oldPriority=old, priority=task.priority
        )

    def _set_in_range(self, task_id: Any, requested: Any, default: int, bounds: tuple[int, int], verb: str) -> OperationResult:
        value = normalize_priority(requested, default=default)
        value = max(bounds[0], min(bounds[1], value))
        with self.store.transaction() as tx:
            task = self._top_level(tx.document, task_id)
            old = self._set_manual_priority(task, value, "Priority changed from {old} to {new}.")
            tx.mark_dirty(SaveOptions(update_table=True))
        return OperationResult.ok(f"Task {task.id} {verb} to {value}", oldPriority=old, priority=value)

    @_operation("prioritize_task")
    def prioritize_task(self, task_id: Any, priority: Any = None) -> OperationResult:
        return self._set_in_range(task_id, priority, PRIORITIZE_DEFAULT, PRIORITIZE_RANGE, "prioritized")

    @_operation("deprioritize_task")
    def deprioritize_task(self, task_id: Any, priority: Any = None) -> OperationResult:
        return self._set_in_range(task_id, priority, DEPRIORITIZE_DEFAULT, DEPRIORITIZE_RANGE, "deprioritized")

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    @_operation("get_priority_templates")
    def get_priority_templates(self) -> OperationResult:
        items = templates.list_templates()
        return OperationResult.ok(f"{len(items)} priority template(s).", templates=items)

    @_operation("suggest_priority_template")
    def suggest_priority_template(self, title: str, description: str = "") -> OperationResult:
        suggestion = templates.suggest_template(_require_title(title), description)
        return OperationResult.ok(f"Suggested template: {suggestion['template']['name']}", **suggestion)

    @_operation("calculate_priority_from_template")
    def calculate_priority_from_template(
        self, template_name: str, title: str, description: str = "", tags: Any = None
    ) -> OperationResult:
        calc = templates.calculate_priority(template_name, _require_title(title), description, _parse_list(tags))
        return OperationResult.ok(f"Calculated priority {calc['priority']} from template {calc['template']}.", **calc)

    @_operation("add_task_with_template")
    def add_task_with_template(
        self,
        title: str,
        template_name: str,
        description: str = "",
        tags: Any = None,
        depends_on: Any = None,
        related_files: Any = None,
        tests: Any = None,
    ) -> OperationResult:
        calc = templates.calculate_priority(template_name, _require_title(title), description, _parse_list(tags))
        result = self.add_task(
            title,
            description=description,
            priority=calc["priority"],
            depends_on=depends_on,
            related_files=related_files,
            tests=tests,
            tags=tags,
        )
        if result.success:
            result.data["templateCalculation"] = calc
        return result

    # ------------------------------------------------------------------
    # Watcher
    # ------------------------------------------------------------------

    def _new_watcher(self, settings: EngineSettings) -> ChangeWatcher:
        return ChangeWatcher(
            self.store,
            settings.watcher,
            recalculate=self._watcher_recalculate,
            table_sync=self.table_renderer,
            task_files_sync=self.task_files_writer,
        )

    @_operation("initialize_watcher")
    def initialize_watcher(self, **changes: Any) -> OperationResult:
        """Start (or restart) the change watcher.

        Accepts ``debounceDelay``, ``maxQueueSize``, ``pollInterval``,
        ``enableTaskFiles``, ``enableTableSync`` and ``enablePriorityRecalc``.
        """
        settings = self._settings()
        settings.watcher = merge_section(settings.watcher, changes)
        self.config_store.save(settings)
        if self.watcher is not None:
            self.watcher.stop()
        self.watcher = self._new_watcher(settings)
        self.watcher.start()
        return OperationResult.ok("File watcher initialized.", status=self.watcher.status())

    @_operation("stop_watcher")
    def stop_watcher(self) -> OperationResult:
        if self.watcher is None or not self.watcher.running:
            return OperationResult.ok("File watcher is not running.", running=False)
        self.watcher.stop()
        return OperationResult.ok("File watcher stopped.", running=False)

    @_operation("get_watcher_status")
    def get_watcher_status(self) -> OperationResult:
        if self.watcher is None:
            return OperationResult.ok(
                "File watcher has not been initialized.",
                status={"running": False, "config": self._settings().watcher.model_dump(by_alias=True)},
            )
        return OperationResult.ok(
            "File watcher is running." if self.watcher.running else "File watcher is stopped.",
            status=self.watcher.status(),
        )

    @_operation("force_sync")
    def force_sync(self) -> OperationResult:
        watcher = self.watcher or self._new_watcher(self._settings())
        if watcher.force_sync():
            return OperationResult.ok("Sync completed.", status=watcher.status())
        return OperationResult.fail(f"Sync failed: {watcher.last_error}", status=watcher.status())
