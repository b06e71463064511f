"""File-backed store for the task document.

The whole document lives in one file (``tasks.json`` by default, YAML when the
suffix is ``.yaml``/``.yml``).  Every mutation is a read-modify-write of the
entire document; writes go through write-tmp-then-replace so a crash never
leaves a half-written file behind.

An in-process, non-reentrant lock acts as the advisory "operation in flight"
flag: foreground operations hold it for the duration of a
:meth:`TaskStore.transaction`, and the change watcher only runs a sync cycle
when it can take the lock without blocking.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from loguru import logger

from ..io_utils import _file_signature, _load_data_with_error, _save_data
from .errors import CorruptDocument
from .model import Subtask, Task, TaskDocument

DocumentHook = Callable[[TaskDocument], None]


@dataclass(frozen=True)
class SaveOptions:
    """Follow-up work requested after a successful write."""

    recalculate_priorities: bool = False
    update_table: bool = False


class TaskStore:
    """Load and save :class:`TaskDocument` objects.

    Parameters
    ----------
    path:
        Location of the task document.
    on_recalculate:
        Called with the saved document when ``SaveOptions.recalculate_priorities``
        is set. Runs while the caller still holds the lock, so it must use
        :meth:`write` rather than :meth:`transaction`.
    on_table_update:
        Called with the saved document when ``SaveOptions.update_table`` is set.
    """

    def __init__(
        self,
        path: Path,
        on_recalculate: Optional[DocumentHook] = None,
        on_table_update: Optional[DocumentHook] = None,
    ) -> None:
        self.path = Path(path)
        self.on_recalculate = on_recalculate
        self.on_table_update = on_table_update
        self._lock = threading.Lock()
        self._last_saved_signature: Optional[tuple[int, int]] = None

    # -- advisory flag ------------------------------------------------------

    def try_acquire(self) -> bool:
        """Take the advisory flag without blocking; False when it is busy."""
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Block until the advisory flag is free and hold it for the block."""
        with self._lock:
            yield

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def last_saved_signature(self) -> Optional[tuple[int, int]]:
        """``(mtime_ns, size)`` of the document right after this store's last write."""
        return self._last_saved_signature

    # -- I/O ----------------------------------------------------------------

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> TaskDocument:
        """Read the document; a missing file yields an empty document.

        Raises:
            CorruptDocument: if the file exists but is unreadable or malformed.
        """
        if not self.path.exists():
            return TaskDocument()
        data, err = _load_data_with_error(self.path, {})
        if err:
            raise CorruptDocument(f"Cannot read task document: {err}", path=str(self.path))
        try:
            return TaskDocument.from_dict(data)
        except CorruptDocument as exc:
            raise CorruptDocument(f"{self.path.name}: {exc.message}", path=str(self.path)) from exc

    def write(self, document: TaskDocument) -> None:
        """Atomically persist *document* without running any follow-up hooks."""
        _save_data(self.path, document.to_dict())
        self._last_saved_signature = _file_signature(self.path)
        logger.debug("Wrote {} task(s) to {}", len(document.tasks), self.path)

    def save(self, document: TaskDocument, options: Optional[SaveOptions] = None) -> None:
        """Persist *document*, then run the hooks requested by *options*."""
        self.write(document)
        options = options or SaveOptions()
        if options.recalculate_priorities and self.on_recalculate is not None:
            self.on_recalculate(document)
        if options.update_table and self.on_table_update is not None:
            self.on_table_update(document)

    # -- helpers --------------------------------------------------------------

    @staticmethod
    def next_id(document: TaskDocument) -> int:
        """Return the next task id and advance the document counter."""
        return document.allocate_id()

    @staticmethod
    def find_task(
        document: TaskDocument, item_id: Any
    ) -> tuple[Optional[Task], Optional[Subtask], Optional[Task]]:
        return document.find(item_id)

    # -- transactions ---------------------------------------------------------

    @contextmanager
    def transaction(self, options: Optional[SaveOptions] = None) -> Iterator["_DocumentTx"]:
        """Hold the advisory flag, load, yield a transaction, save if dirty.

        Usage::

            with store.transaction() as tx:
                task = tx.document.get(3)
                task.title = "Renamed"
                tx.mark_dirty()
        """
        with self._lock:
            tx = _DocumentTx(self.load(), options or SaveOptions())
            yield tx
            if tx.dirty:
                self.save(tx.document, tx.options)

    def snapshot(self) -> TaskDocument:
        """Load the document under the advisory flag (read-only use)."""
        with self._lock:
            return self.load()


class _DocumentTx:
    """In-memory transaction over one loaded document."""

    def __init__(self, document: TaskDocument, options: SaveOptions) -> None:
        self.document = document
        self.options = options
        self.dirty = False

    def mark_dirty(self, options: Optional[SaveOptions] = None) -> None:
        self.dirty = True
        if options is not None:
            self.options = options
