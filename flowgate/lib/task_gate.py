"""
Task gate: require an active task before implementation edits.

An edit is allowed when the task queue has something in progress, or when a
durable session for a task is active. Workflow bookkeeping (the state
directory and plan files) is always exempt so the workflow never gates its
own records.
"""

from __future__ import annotations

import logging
from pathlib import PurePath
from typing import Any

from flowgate.lib.config import FlowConfig
from flowgate.lib.paths import is_plan_path, is_state_path
from flowgate.lib.result import HookResult, Reason
from flowgate.lib.state_store import StateStore

logger = logging.getLogger(__name__)

BLOCK_MESSAGE_TEMPLATE = """Cannot {operation} {file_name} without an active task.

To proceed:
1. Check available tasks: flow ready
2. Start an existing task: flow start <task-id>
3. Or create a new task: flow story "<description>"

Task gating is enforced when strictMode is enabled."""


def is_task_gating_enabled(config: FlowConfig) -> bool:
    if not config.hooks.rules.task_gating.enabled:
        return False
    if not config.enforcement.strict_mode:
        return False
    return config.enforcement.require_task_for_implementation


def get_active_task(store: StateStore) -> dict[str, Any] | None:
    """Resolve the active task: head of ``inProgress``, else an active durable session.

    Any failure reading state means "no task".
    """
    try:
        task = store.load_ready().first_in_progress()
        if task:
            return task

        session = store.durable_session.load()
        if session and session.task_id and session.is_active:
            task = {"id": session.task_id, "fromDurableSession": True}
            if session.task_type:
                task["type"] = session.task_type
            return task
    except Exception as e:
        logger.warning(f"Could not read task state, treating as no active task: {e}")
    return None


def _file_name(file_path: str | None) -> str:
    return PurePath(file_path).name if file_path else "file"


def generate_warning_message(operation: str, file_path: str | None) -> str:
    verb = "Creating" if operation == "write" else "Editing"
    return (
        f"Warning: {verb} {_file_name(file_path)} without an active task. "
        "Consider checking available tasks (flow ready), starting one "
        "(flow start <task-id>) or creating one (flow story)."
    )


def generate_block_message(operation: str, file_path: str | None) -> str:
    return BLOCK_MESSAGE_TEMPLATE.format(operation=operation, file_name=_file_name(file_path))


def check_task_gate(
    store: StateStore, file_path: str | None, operation: str = "edit"
) -> HookResult:
    """Decide whether an edit/write of ``file_path`` may proceed."""
    if file_path and is_state_path(file_path):
        return HookResult.allow(Reason.WORKFLOW_STATE_EXEMPT)
    if file_path and is_plan_path(file_path):
        return HookResult.allow(Reason.PLAN_FILE_EXEMPT)

    config = store.load_config()
    if not is_task_gating_enabled(config):
        return HookResult.allow(Reason.TASK_GATING_DISABLED)

    task = get_active_task(store)
    if task:
        gates = config.quality_gates_for(task.get("type"))
        if gates:
            task["qualityGates"] = gates
        return HookResult.allow(Reason.TASK_ACTIVE, task=task)

    if not config.hooks.rules.task_gating.block_without_task:
        return HookResult.warn(Reason.WARN_ONLY, generate_warning_message(operation, file_path))

    return HookResult.block(Reason.NO_ACTIVE_TASK, generate_block_message(operation, file_path))
