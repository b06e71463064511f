"""Tests for the file-backed task store (task_engine/store.py)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from agentic_tasks.io_utils import _file_signature
from agentic_tasks.task_engine.errors import CorruptDocument
from agentic_tasks.task_engine.model import Task, TaskDocument
from agentic_tasks.task_engine.store import SaveOptions, TaskStore


@pytest.fixture
def tasks_path(tmp_path: Path) -> Path:
    return tmp_path / "tasks.json"


@pytest.fixture
def store(tasks_path: Path) -> TaskStore:
    return TaskStore(tasks_path)


FULL_DOCUMENT = {
    "projectName": "Demo",
    "projectDescription": "Round-trip fixture",
    "lastTaskId": 3,
    "tasks": [
        {
            "id": 1,
            "title": "Design schema",
            "description": "tables",
            "priority": 700,
            "status": "done",
            "dependsOn": [],
            "relatedFiles": ["db/schema.sql"],
            "tests": ["test_schema"],
            "tags": ["db"],
            "basePriority": 700,
            "subtasks": [
                {
                    "id": "1.1",
                    "title": "Draft",
                    "status": "done",
                    "relatedFiles": [],
                    "tests": [],
                    "activityLog": [],
                    "createdAt": "2026-01-01T00:00:00+00:00",
                    "updatedAt": "2026-01-02T00:00:00+00:00",
                    "reviewer": "sam",
                }
            ],
            "activityLog": [
                {"timestamp": "2026-01-02T00:00:00+00:00", "type": "log", "message": "Status changed"},
                {"timestamp": "2026-01-02T00:00:00+00:00", "type": "comment", "message": "lgtm", "by": "sam"},
            ],
            "createdAt": "2026-01-01T00:00:00+00:00",
            "updatedAt": "2026-01-02T00:00:00+00:00",
            "estimate": "2d",
        },
        {
            "id": 3,
            "title": "Write migrations",
            "description": "",
            "priority": 545,
            "status": "todo",
            "dependsOn": [1, 42],
            "relatedFiles": [],
            "tests": [],
            "urgency": 8,
            "subtasks": [],
            "activityLog": [],
            "createdAt": "2026-01-01T00:00:00+00:00",
            "updatedAt": "2026-01-01T00:00:00+00:00",
        },
    ],
    "customHeader": {"nested": [1, 2, 3]},
}


class TestLoad:
    def test_missing_file_is_empty_document(self, store: TaskStore) -> None:
        doc = store.load()
        assert doc.tasks == []
        assert doc.last_task_id == 0
        assert not store.exists()

    def test_unparseable_file_raises(self, store: TaskStore, tasks_path: Path) -> None:
        tasks_path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CorruptDocument) as excinfo:
            store.load()
        assert excinfo.value.recoverable is False
        assert tasks_path.read_text(encoding="utf-8") == "{not json"

    def test_non_object_document_raises(self, store: TaskStore, tasks_path: Path) -> None:
        tasks_path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(CorruptDocument):
            store.load()

    def test_missing_required_field_raises(self, store: TaskStore, tasks_path: Path) -> None:
        tasks_path.write_text(json.dumps({"tasks": [{"id": 1}]}), encoding="utf-8")
        with pytest.raises(CorruptDocument, match="title"):
            store.load()

    @pytest.mark.parametrize("key", ["lastSubtaskIndex", "basePriority"])
    def test_non_numeric_counter_raises(self, store: TaskStore, tasks_path: Path, key: str) -> None:
        tasks_path.write_text(json.dumps({"tasks": [{"id": 1, "title": "x", key: "abc"}]}), encoding="utf-8")
        with pytest.raises(CorruptDocument, match=key):
            store.load()


class TestSave:
    def test_save_load_roundtrip_is_lossless(self, store: TaskStore, tasks_path: Path) -> None:
        tasks_path.write_text(json.dumps(FULL_DOCUMENT), encoding="utf-8")
        store.save(store.load())
        assert json.loads(tasks_path.read_text(encoding="utf-8")) == FULL_DOCUMENT

    def test_missing_timestamps_are_not_invented(self, store: TaskStore, tasks_path: Path) -> None:
        raw = {"lastTaskId": 1, "tasks": [{"id": 1, "title": "x", "subtasks": [{"id": "1.1", "title": "y"}]}]}
        tasks_path.write_text(json.dumps(raw), encoding="utf-8")
        store.save(store.load())
        first = tasks_path.read_text(encoding="utf-8")
        store.save(store.load())
        assert tasks_path.read_text(encoding="utf-8") == first
        saved = json.loads(first)["tasks"][0]
        assert "createdAt" not in saved and "updatedAt" not in saved
        assert "createdAt" not in saved["subtasks"][0]

    def test_save_writes_indented_json(self, store: TaskStore, tasks_path: Path) -> None:
        store.save(TaskDocument(project_name="P"))
        text = tasks_path.read_text(encoding="utf-8")
        assert text.startswith('{\n  "projectName": "P"')
        assert text.endswith("\n")
        assert not tasks_path.with_suffix(".json.tmp").exists()

    def test_yaml_suffix(self, tmp_path: Path) -> None:
        store = TaskStore(tmp_path / "tasks.yaml")
        store.save(TaskDocument(tasks=[Task(id=1, title="yaml task")], last_task_id=1))
        raw = yaml.safe_load((tmp_path / "tasks.yaml").read_text(encoding="utf-8"))
        assert raw["tasks"][0]["title"] == "yaml task"
        assert store.load().tasks[0].title == "yaml task"

    def test_records_own_signature(self, store: TaskStore, tasks_path: Path) -> None:
        assert store.last_saved_signature is None
        store.save(TaskDocument())
        assert store.last_saved_signature == _file_signature(tasks_path)

    def test_save_options_trigger_hooks(self, tasks_path: Path) -> None:
        calls: list[str] = []
        store = TaskStore(
            tasks_path,
            on_recalculate=lambda doc: calls.append("recalc"),
            on_table_update=lambda doc: calls.append("table"),
        )
        store.save(TaskDocument())
        assert calls == []
        store.save(TaskDocument(), SaveOptions(recalculate_priorities=True, update_table=True))
        assert calls == ["recalc", "table"]


class TestTransaction:
    def test_clean_transaction_does_not_write(self, store: TaskStore, tasks_path: Path) -> None:
        with store.transaction() as tx:
            assert tx.document.tasks == []
        assert not tasks_path.exists()

    def test_dirty_transaction_writes(self, store: TaskStore) -> None:
        with store.transaction() as tx:
            tx.document.tasks.append(Task(id=store.next_id(tx.document), title="First"))
            tx.mark_dirty()
        doc = store.load()
        assert [t.title for t in doc.tasks] == ["First"]
        assert doc.last_task_id == 1

    def test_error_inside_transaction_discards_changes(self, store: TaskStore, tasks_path: Path) -> None:
        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.document.tasks.append(Task(id=1, title="Lost"))
                tx.mark_dirty()
                raise RuntimeError("boom")
        assert not tasks_path.exists()
        assert not store.busy

    def test_advisory_flag_is_held(self, store: TaskStore) -> None:
        with store.transaction():
            assert store.busy
            assert store.try_acquire() is False
        assert store.try_acquire() is True
        store.release()

    def test_find_task(self, store: TaskStore) -> None:
        parent = Task(id=2, title="Parent")
        sub = parent.add_subtask("Child")
        doc = TaskDocument(tasks=[parent])
        assert store.find_task(doc, 2) == (parent, None, None)
        assert store.find_task(doc, "2.1") == (None, sub, parent)
