"""Change watcher: re-sync derived state when the task document is edited externally.

A daemon thread polls the document's ``(mtime_ns, size)`` signature.  Changes
that match the store's own last write are ignored; anything else is queued
(bounded, oldest event dropped first) and a debounce timer coalesces a burst
of edits into one sync cycle:

    load -> recalculate priorities (optional) -> save -> sync hooks

A cycle only runs when it can take the store's advisory flag without waiting;
if a foreground operation holds it, the timer is re-armed.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional

from loguru import logger

from ..config import WatcherConfig
from ..io_utils import _file_signature
from ..utils import _now_iso
from .errors import EngineError
from .model import TaskDocument
from .store import TaskStore

Recalculator = Callable[[TaskDocument], bool]
SyncHook = Callable[[TaskDocument], None]


@dataclass(frozen=True)
class ChangeEvent:
    signature: Optional[tuple[int, int]]
    detected_at: str


class ChangeWatcher:
    """Poll the task document and run debounced sync cycles.

    Parameters
    ----------
    store:
        Store whose document is watched; also provides the advisory flag.
    config:
        Debounce, queue and poll settings plus the per-hook toggles.
    recalculate:
        Runs the priority pipeline on a loaded document; returns True when any
        priority changed.
    table_sync / task_files_sync:
        Optional collaborators called with the document after each cycle.
    """

    def __init__(
        self,
        store: TaskStore,
        config: Optional[WatcherConfig] = None,
        recalculate: Optional[Recalculator] = None,
        table_sync: Optional[SyncHook] = None,
        task_files_sync: Optional[SyncHook] = None,
    ) -> None:
        self.store = store
        self.config = config or WatcherConfig()
        self._recalculate = recalculate
        self._table_sync = table_sync
        self._task_files_sync = task_files_sync

        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._timer: Optional[threading.Timer] = None
        self._queue: deque[ChangeEvent] = deque(maxlen=self.config.max_queue_size)
        self._last_seen: Optional[tuple[int, int]] = None

        self.events_seen = 0
        self.events_dropped = 0
        self.cycles_run = 0
        self.failures = 0
        self.last_sync: Optional[str] = None
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._last_seen = _file_signature(self.store.path)
            self._stop.clear()
            self._thread = threading.Thread(target=self._loop, daemon=True, name="task-watcher")
            self._thread.start()
        logger.info("Watching {} (poll {}ms, debounce {}ms)", self.store.path, self.config.poll_interval, self.config.debounce_delay)

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            self._stop.set()
            thread = self._thread
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=max(timeout, 0.0))
        self._thread = None
        logger.info("Stopped watching {}", self.store.path)

    def _loop(self) -> None:
        interval = self.config.poll_interval / 1000.0
        while not self._stop.wait(interval):
            self.poll_once()

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------

    def poll_once(self) -> bool:
        """Check the document signature once; True when an external change was queued."""
        signature = _file_signature(self.store.path)
        with self._lock:
            if signature == self._last_seen:
                return False
            self._last_seen = signature
        if signature is not None and signature == self.store.last_saved_signature:
            return False
        self.notify_change(signature)
        return True

    def notify_change(self, signature: Optional[tuple[int, int]] = None) -> None:
        """Queue a change event and (re)start the debounce timer."""
        with self._lock:
            if len(self._queue) == self._queue.maxlen:
                self.events_dropped += 1
            self._queue.append(ChangeEvent(signature, _now_iso()))
            self.events_seen += 1
            self._arm_timer()

    def _arm_timer(self) -> None:
        with self._lock:
            if self._stop.is_set():
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.config.debounce_delay / 1000.0, self._on_timer)
            self._timer.daemon = True
            self._timer.start()

    def _on_timer(self) -> None:
        with self._lock:
            self._timer = None
        if not self.store.try_acquire():
            logger.debug("Store busy; deferring sync cycle")
            self._arm_timer()
            return
        try:
            self._run_cycle()
        finally:
            self.store.release()

    # ------------------------------------------------------------------
    # Sync cycle
    # ------------------------------------------------------------------

    def force_sync(self) -> bool:
        """Run one sync cycle now, waiting for the advisory flag if needed."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        with self.store.hold():
            return self._run_cycle()

    def _run_cycle(self) -> bool:
        """Caller must hold the store's advisory flag."""
        with self._lock:
            drained = len(self._queue)
            self._queue.clear()
        try:
            document = self.store.load()
            if self.config.enable_priority_recalc and self._recalculate is not None:
                if self._recalculate(document):
                    self.store.write(document)
            if self.config.enable_table_sync and self._table_sync is not None:
                self._table_sync(document)
            if self.config.enable_task_files and self._task_files_sync is not None:
                self._task_files_sync(document)
        except (EngineError, OSError) as exc:
            with self._lock:
                self.failures += 1
                self.last_error = str(exc)
            logger.exception("Sync cycle failed for {}: {}", self.store.path, exc)
            return False
        with self._lock:
            self.cycles_run += 1
            self.last_sync = _now_iso()
            self.last_error = None
            self._last_seen = _file_signature(self.store.path)
        logger.debug("Sync cycle complete ({} queued event(s))", drained)
        return True

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "running": self.running,
                "path": str(self.store.path),
                "queueSize": len(self._queue),
                "eventsSeen": self.events_seen,
                "eventsDropped": self.events_dropped,
                "cyclesRun": self.cycles_run,
                "failures": self.failures,
                "lastSync": self.last_sync,
                "lastError": self.last_error,
                "config": self.config.model_dump(by_alias=True),
            }
