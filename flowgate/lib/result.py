"""Provider-agnostic result of a checker.

Every checker in ``flowgate.lib`` returns a :class:`HookResult`. Adapters in
``flowgate.hooks.adapters`` are the only code that turns one into a host
response envelope.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


class Reason(StrEnum):
    """Machine-readable reason codes, grouped by checker."""

    # Dispatcher
    HOOKS_DISABLED = "hooks_disabled"
    NOT_FILE_EDIT = "not_file_edit"
    TOOL_FAILED = "tool_failed"

    # Task gate
    WORKFLOW_STATE_EXEMPT = "workflow_state_exempt"
    PLAN_FILE_EXEMPT = "plan_file_exempt"
    TASK_GATING_DISABLED = "task_gating_disabled"
    TASK_ACTIVE = "task_active"
    WARN_ONLY = "warn_only"
    NO_ACTIVE_TASK = "no_active_task"

    # Component reuse
    COMPONENT_CHECK_DISABLED = "component_check_disabled"
    NOT_COMPONENT_PATH = "not_component_path"
    NO_SIMILAR_FOUND = "no_similar_found"
    COMPONENT_EXISTS = "component_exists"
    COMPONENT_EXISTS_WARNING = "component_exists_warning"
    SIMILAR_COMPONENT_WARNING = "similar_component_warning"

    # Loop check
    LOOP_ENFORCEMENT_DISABLED = "loop_enforcement_disabled"
    NO_ACTIVE_LOOP = "no_active_loop"
    SESSION_SUSPENDED = "session_suspended"
    CRITERIA_INCOMPLETE = "criteria_incomplete"
    CRITERIA_COMPLETE = "criteria_complete"
    QUEUE_HAS_MORE_TASKS = "queue_has_more_tasks"
    QUEUE_PAUSE_BETWEEN_TASKS = "queue_pause_between_tasks"
    QUEUE_COMPLETE = "queue_complete"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"
    MAX_ITERATIONS_EXCEEDED = "max_iterations_exceeded"
    STATE_UNREADABLE = "state_unreadable"

    # Validation
    VALIDATION_DISABLED = "validation_disabled"
    NO_COMMANDS_FOR_FILE = "no_commands_for_file"
    VALIDATION_PASSED = "validation_passed"
    VALIDATION_FAILED = "validation_failed"
    TIMEOUT = "timeout"
    COMMAND_NOT_FOUND = "command_not_found"
    NONZERO_EXIT = "nonzero_exit"

    # Session context
    SESSION_CONTEXT_DISABLED = "session_context_disabled"
    CONTEXT_GATHERED = "context_gathered"

    # Session end
    SESSION_END_DISABLED = "session_end_disabled"
    UNCOMMITTED_CHANGES = "uncommitted_changes"
    WORKING_TREE_CLEAN = "working_tree_clean"


class LoopState(StrEnum):
    """States of the stop-time completion machine."""

    CRITERIA_INCOMPLETE = "criteria_incomplete"
    CRITERIA_COMPLETE_EXIT = "criteria_complete_exit"
    QUEUE_HAS_NEXT = "queue_has_next"
    QUEUE_EMPTY_EXIT = "queue_empty_exit"
    PROMPT_BEFORE_NEXT = "prompt_before_next"


@dataclass
class SimilarComponent:
    """A registry entry that resembles the component being created."""

    name: str
    similarity: int
    source: str
    path: str | None = None
    exact: bool = False


@dataclass
class Diagnostic:
    """One parsed compiler or linter finding."""

    message: str
    line: int
    column: int
    file: str | None = None
    code: str | None = None
    severity: str = "error"


@dataclass
class CommandResult:
    """Outcome of one validation command."""

    command: str
    exit_code: int | None
    passed: bool
    output_excerpt: str = ""
    reason: str | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    duration_ms: int = field(default=0, compare=False)


@dataclass
class StepSummary:
    """Short description of a step for block messages."""

    id: str
    description: str
    status: str
    error: str | None = None


@dataclass
class CriteriaStatus:
    """Tally of durable-session steps by completion state."""

    total: int = 0
    completed: int = 0
    pending: int = 0
    in_progress: int = 0
    failed: int = 0
    exhausted: int = 0
    skipped: int = 0
    open_steps: list[StepSummary] = field(default_factory=list)
    exhausted_steps: list[StepSummary] = field(default_factory=list)

    @property
    def all_complete(self) -> bool:
        return not self.open_steps and not self.exhausted_steps


@dataclass
class SuspendedTask:
    task_id: str
    reason: str | None = None
    resume_condition: str | None = None
    suspended_at: str | None = None


@dataclass
class Decision:
    title: str
    summary: str


@dataclass
class Activity:
    id: str
    request: str


@dataclass
class SessionContext:
    """Everything gathered for injection at session start."""

    project_name: str
    suspended_task: SuspendedTask | None = None
    current_task: dict[str, Any] | None = None
    key_decisions: list[Decision] = field(default_factory=list)
    recent_activity: list[Activity] = field(default_factory=list)
    last_active: str | None = None
    recent_files: list[str] = field(default_factory=list)


@dataclass
class HookResult:
    """Normalized outcome shared by every checker."""

    reason: str
    allowed: bool = True
    blocked: bool = False
    warning: bool = False
    message: str | None = None

    # Task gate
    task: dict[str, Any] | None = None

    # Component reuse
    similar: list[SimilarComponent] = field(default_factory=list)
    best_match: SimilarComponent | None = None

    # Validation
    passed: bool | None = None
    skipped: bool = False
    summary: str | None = None
    results: list[CommandResult] = field(default_factory=list)

    # Loop check
    can_exit: bool | None = None
    continue_to_next: bool = False
    should_prompt: bool = False
    next_task_id: str | None = None
    remaining: int | None = None
    criteria_status: CriteriaStatus | None = None
    loop_state: LoopState | None = None

    # Session context
    enabled: bool = True
    context: SessionContext | None = None

    @classmethod
    def allow(cls, reason: str, message: str | None = None, **extra: Any) -> HookResult:
        """Factory method for an allowed action."""
        return cls(reason=reason, allowed=True, blocked=False, message=message, **extra)

    @classmethod
    def warn(cls, reason: str, message: str, **extra: Any) -> HookResult:
        """Factory method for an allowed action that carries an advisory."""
        return cls(
            reason=reason, allowed=True, blocked=False, warning=True, message=message, **extra
        )

    @classmethod
    def block(cls, reason: str, message: str, **extra: Any) -> HookResult:
        """Factory method for a blocked action. Always carries remediation text."""
        return cls(reason=reason, allowed=False, blocked=True, message=message, **extra)

    def to_json(self) -> dict[str, Any]:
        """Serialize to a plain dict (enums collapse to their values)."""
        data = asdict(self)
        if self.criteria_status is not None:
            data["criteria_status"]["all_complete"] = self.criteria_status.all_complete
        return data


def merge_results(base: HookResult, extra: HookResult) -> HookResult:
    """Combine two results: block beats warning, warning beats allow.

    ``base`` supplies the identity fields (task, reason) unless ``extra``
    escalates the verdict, in which case ``extra``'s reason wins.
    """
    if base.blocked:
        return base

    messages = [m for m in (base.message, extra.message) if m]
    merged = HookResult(
        reason=base.reason,
        allowed=base.allowed,
        warning=base.warning,
        message="\n\n".join(messages) if messages else None,
        task=base.task or extra.task,
        similar=extra.similar or base.similar,
        best_match=extra.best_match or base.best_match,
    )

    if extra.blocked:
        merged.allowed = False
        merged.blocked = True
        merged.warning = False
        merged.reason = extra.reason
        merged.message = extra.message
    elif extra.warning:
        merged.warning = True
        if not base.warning:
            merged.reason = extra.reason

    return merged
