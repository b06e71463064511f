"""Explicit workspace context passed to the engine instead of module state."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .constants import CONFIG_FILE, STATE_DIR_NAME, TASKS_FILE, WORKSPACE_ENV_VAR


@dataclass(frozen=True)
class Workspace:
    """Where a task document and its engine configuration live.

    Parameters
    ----------
    root:
        Project directory holding the task document.
    tasks_file:
        Document file name; ``.json`` (default) or ``.yaml``/``.yml``.
    """

    root: Path
    tasks_file: str = TASKS_FILE

    @classmethod
    def resolve(cls, root: Optional[str | Path] = None, tasks_file: str = TASKS_FILE) -> "Workspace":
        """Build a workspace from *root*, ``$AGENTIC_TASKS_WORKSPACE`` or the cwd."""
        raw = root or os.environ.get(WORKSPACE_ENV_VAR) or Path.cwd()
        path = Path(raw).expanduser().resolve()
        # A bare filesystem root is never a sensible workspace.
        if path == Path(path.anchor):
            path = Path.cwd().resolve()
        return cls(root=path, tasks_file=tasks_file)

    @property
    def tasks_path(self) -> Path:
        return self.root / self.tasks_file

    @property
    def state_dir(self) -> Path:
        return self.root / STATE_DIR_NAME

    @property
    def config_path(self) -> Path:
        return self.state_dir / CONFIG_FILE
