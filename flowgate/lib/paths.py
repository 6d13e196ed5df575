"""
Path resolution for the workflow state store.

All state lives under ``<project root>/.workflow``. The project root is
resolved, in order, from:

1. An explicit root passed by the caller (``--project-root``)
2. ``FLOWGATE_PROJECT_ROOT``
3. ``CLAUDE_PROJECT_DIR`` (set by Claude Code during hook execution)
4. The nearest ancestor of the working directory holding ``.workflow``
5. The working directory itself
"""

from __future__ import annotations

import os
from pathlib import Path

WORKFLOW_DIR_NAME = ".workflow"
STATE_DIR_NAME = "state"

# Edits to these locations never require an active task
STATE_DIR_MARKER = f"{WORKFLOW_DIR_NAME}/{STATE_DIR_NAME}/"
PLAN_DIR_MARKERS = (".claude/plans/",)

ROOT_ENV_VARS = ("FLOWGATE_PROJECT_ROOT", "CLAUDE_PROJECT_DIR")


def find_project_root(start: str | Path | None = None) -> Path:
    """Find the project root by walking up from ``start`` to a ``.workflow`` dir.

    Falls back to ``start`` itself (or the cwd) when no ancestor qualifies.
    """
    origin = Path(start) if start else Path.cwd()
    try:
        origin = origin.resolve()
    except OSError:
        return origin

    for candidate in (origin, *origin.parents):
        if (candidate / WORKFLOW_DIR_NAME).is_dir():
            return candidate
    return origin


def get_project_root(explicit: str | Path | None = None, cwd: str | None = None) -> Path:
    """Resolve the project root for this invocation."""
    if explicit:
        return Path(explicit).resolve()

    for var in ROOT_ENV_VARS:
        value = os.environ.get(var)
        if value:
            return Path(value).resolve()

    return find_project_root(cwd)


def get_workflow_dir(root: Path) -> Path:
    return root / WORKFLOW_DIR_NAME


def get_state_dir(root: Path) -> Path:
    return root / WORKFLOW_DIR_NAME / STATE_DIR_NAME


def normalize_path(file_path: str) -> str:
    """Forward-slash form of a path, for marker matching."""
    return file_path.replace("\\", "/")


def is_state_path(file_path: str) -> bool:
    """True if ``file_path`` lies inside a workflow state directory."""
    return STATE_DIR_MARKER in normalize_path(file_path)


def is_plan_path(file_path: str) -> bool:
    """True if ``file_path`` lies inside a plan directory."""
    normalized = normalize_path(file_path)
    return any(marker in normalized for marker in PLAN_DIR_MARKERS)
