"""
Session context: what a fresh session should know about the project.

Gathers the suspended task, the current task, key decisions, and recent
activity. Each source is optional and degrades to "omit this section" when
its document is missing or malformed.
"""

from __future__ import annotations

import logging
import re

from flowgate.lib.result import (
    Activity,
    Decision,
    HookResult,
    Reason,
    SessionContext,
    SuspendedTask,
)
from flowgate.lib.state_models import Suspension
from flowgate.lib.state_store import StateStore

logger = logging.getLogger(__name__)

MAX_DECISIONS = 5
MAX_ACTIVITY = 3
MAX_RECENT_FILES = 5
DECISION_SUMMARY_CHARS = 150

SECTION_RE = re.compile(r"^##\s+", re.MULTILINE)
REQUEST_ENTRY_RE = re.compile(r"^###\s+R-(\d+)\s*\|\s*\d{4}-\d{2}-\d{2}.*$", re.MULTILINE)
REQUEST_LINE_RE = re.compile(r'\*\*Request\*\*:\s*"?([^"\n]+)"?')


def _to_suspended_task(suspension: Suspension) -> SuspendedTask | None:
    if not suspension.task_id or suspension.status == "resumed":
        return None
    condition = suspension.resume_condition
    if isinstance(condition, dict):
        condition = condition.get("description") or condition.get("type")
    return SuspendedTask(
        task_id=suspension.task_id,
        reason=suspension.reason,
        resume_condition=str(condition) if condition else None,
        suspended_at=suspension.suspended_at,
    )


def get_suspended_task(store: StateStore) -> SuspendedTask | None:
    """A suspended durable session wins over a standalone ``suspension.json``."""
    session = store.durable_session.load()
    if session and session.status == "suspended" and session.suspension:
        suspension = session.suspension.model_copy()
        suspension.task_id = suspension.task_id or session.task_id
        found = _to_suspended_task(suspension)
        if found:
            return found

    suspension = store.suspension.load()
    return _to_suspended_task(suspension) if suspension else None


def parse_decisions(content: str, max_entries: int = MAX_DECISIONS) -> list[Decision]:
    decisions = []
    for section in SECTION_RE.split(content)[1 : max_entries + 1]:
        title, _, body = section.partition("\n")
        title, body = title.strip(), body.strip()
        if title and body:
            decisions.append(
                Decision(title=title, summary=body.splitlines()[0][:DECISION_SUMMARY_CHARS])
            )
    return decisions


def parse_request_log(content: str, max_entries: int = MAX_ACTIVITY) -> list[Activity]:
    """Most recent entries first; the log is appended to, so that is the tail."""
    headers = list(REQUEST_ENTRY_RE.finditer(content))
    entries = []
    for i, header in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(content)
        body = content[header.end() : end]
        request = REQUEST_LINE_RE.search(body)
        entries.append(
            Activity(id=f"R-{header.group(1)}", request=request.group(1) if request else "Unknown")
        )
    return list(reversed(entries[-max_entries:])) if max_entries else []


def gather_session_context(
    store: StateStore,
    include_suspended: bool | None = None,
    include_decisions: bool | None = None,
    include_activity: bool | None = None,
) -> HookResult:
    """Collect everything worth injecting at session start.

    The ``include_*`` arguments override the matching ``sessionContext``
    config toggles when given.
    """
    config = store.load_config()
    rule = config.hooks.rules.session_context
    if not rule.enabled:
        return HookResult.allow(Reason.SESSION_CONTEXT_DISABLED, enabled=False)

    if include_suspended is None:
        include_suspended = rule.load_suspended_tasks
    if include_decisions is None:
        include_decisions = rule.load_decisions
    if include_activity is None:
        include_activity = rule.load_recent_activity

    context = SessionContext(project_name=config.project_name or store.root.name)

    if include_suspended:
        context.suspended_task = get_suspended_task(store)

    context.current_task = store.load_ready().first_in_progress()

    if include_decisions:
        decisions = store.decisions.load()
        context.key_decisions = parse_decisions(decisions) if decisions else []

    if include_activity:
        request_log = store.request_log.load()
        context.recent_activity = parse_request_log(request_log) if request_log else []

    snapshot = store.session_snapshot.load()
    if snapshot:
        context.last_active = snapshot.last_active
        context.recent_files = snapshot.recent_files[:MAX_RECENT_FILES]

    result = HookResult.allow(Reason.CONTEXT_GATHERED, context=context)
    result.message = format_context_for_injection(result) or None
    return result


def format_context_for_injection(result: HookResult) -> str:
    """Render the gathered context as the markdown block hosts inject."""
    ctx = result.context
    if not result.enabled or ctx is None:
        return ""

    out = f"## Flow Session Context: {ctx.project_name}\n\n"

    if ctx.suspended_task:
        task = ctx.suspended_task
        out += "### Suspended Task\n"
        out += f"Task **{task.task_id}** is suspended.\n"
        out += f"- Reason: {task.reason or 'Not specified'}\n"
        if task.resume_condition:
            out += f"- Resume condition: {task.resume_condition}\n"
        out += "\nRun `flow resume` to continue.\n\n"

    if ctx.current_task:
        out += "### Current Task\n"
        out += f"Working on: **{ctx.current_task.get('id')}**\n"
        if ctx.current_task.get("title"):
            out += f"Title: {ctx.current_task['title']}\n"
        out += "\n"

    if ctx.key_decisions:
        out += "### Key Decisions\n"
        out += "".join(f"- **{d.title}**: {d.summary}\n" for d in ctx.key_decisions)
        out += "\n"

    if ctx.recent_activity:
        out += "### Recent Activity\n"
        out += "".join(f"- {a.id}: {a.request}\n" for a in ctx.recent_activity)
        out += "\n"

    if ctx.last_active or ctx.recent_files:
        out += "### Last Session\n"
        if ctx.last_active:
            out += f"Last active: {ctx.last_active}\n"
        if ctx.recent_files:
            out += "Recent files: " + ", ".join(ctx.recent_files) + "\n"
        out += "\n"

    return out.rstrip() + "\n"
