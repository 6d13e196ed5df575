"""
Session-end check: warn about uncommitted work in the project.

Only reads ``git status``. Outside a git repository, or without git, the
tree is reported clean.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from flowgate.lib.result import HookResult, Reason
from flowgate.lib.state_store import StateStore

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 5


@dataclass
class GitStatus:
    """Counts from ``git status --porcelain``."""

    uncommitted: int = 0
    staged: int = 0
    untracked: int = 0

    @property
    def has_changes(self) -> bool:
        return self.uncommitted > 0


def get_git_status(cwd: Path | str | None = None) -> GitStatus:
    """Get git status information."""
    try:
        result = subprocess.run(
            ["git", "status", "--porcelain"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except Exception as e:
        logger.warning(f"Failed to get git status: {e}")
        return GitStatus()

    if result.returncode != 0:
        return GitStatus()

    lines = [line for line in result.stdout.splitlines() if line.strip()]
    return GitStatus(
        uncommitted=len(lines),
        staged=sum(1 for line in lines if line[:1] not in (" ", "?")),
        untracked=sum(1 for line in lines if line.startswith("??")),
    )


def check_session_end(store: StateStore) -> HookResult:
    """Advise committing before the session ends."""
    config = store.load_config()
    if not config.hooks.rules.auto_logging.enabled:
        return HookResult.allow(Reason.SESSION_END_DISABLED)

    status = get_git_status(store.root)
    if not status.has_changes:
        return HookResult.allow(Reason.WORKING_TREE_CLEAN)

    n = status.uncommitted
    return HookResult.warn(
        Reason.UNCOMMITTED_CHANGES,
        f"{n} uncommitted file{'s' if n != 1 else ''}. "
        "Consider committing before ending session.",
    )
