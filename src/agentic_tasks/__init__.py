"""Provide the public `agentic_tasks` package exports."""

from __future__ import annotations

from .logging_utils import configure_logging
from .task_engine.engine import TaskEngine
from .task_engine.model import OperationResult, TaskStatus
from .workspace import Workspace

__all__ = ["OperationResult", "TaskEngine", "TaskStatus", "Workspace", "configure_logging"]
