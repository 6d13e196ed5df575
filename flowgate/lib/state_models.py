"""
Pydantic models for the state documents under ``.workflow/state/``.

These documents are written by the workflow's task commands and execution
loop; flowgate only reads them. Field names follow the on-disk camelCase
JSON. Unknown fields are preserved (``extra="allow"``) so that task objects
round-trip into results untouched.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

StepStatus = Literal["pending", "in_progress", "completed", "failed", "skipped", "suspended"]
SessionStatus = Literal["active", "suspended", "completed"]


class StateModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class TaskEntry(StateModel):
    """A task object as stored in ``ready.json``."""

    id: str
    title: str | None = None
    type: str | None = None


TaskRef = str | TaskEntry


class ReadyData(StateModel):
    """The task queue document (``ready.json``)."""

    ready: list[TaskRef] = Field(default_factory=list)
    in_progress: list[TaskRef] = Field(default_factory=list)
    blocked: list[TaskRef] = Field(default_factory=list)
    recently_completed: list[TaskRef] = Field(default_factory=list)

    def first_in_progress(self) -> dict[str, Any] | None:
        """The head of ``inProgress`` as a task dict, or None."""
        if not self.in_progress:
            return None
        return task_ref_to_dict(self.in_progress[0])


def task_ref_to_dict(ref: TaskRef) -> dict[str, Any]:
    if isinstance(ref, str):
        return {"id": ref}
    return ref.model_dump(by_alias=True, exclude_none=True)


class Step(StateModel):
    """One step (acceptance criterion, quality gate, ...) of a durable session."""

    id: str = ""
    type: str = "custom"
    description: str = ""
    status: StepStatus = "pending"
    attempts: int = 0
    max_attempts: int | None = None
    error: str | None = None


class Execution(StateModel):
    current_step_index: int = 0
    iteration: int = 0
    total_retries: int = 0


class Suspension(StateModel):
    """Why and until when a task is parked."""

    task_id: str | None = None
    type: str | None = None
    reason: str | None = None
    suspended_at: str | None = None
    resume_condition: Any = None
    status: str | None = None


class TaskQueue(StateModel):
    """Bulk/queued execution attached to a durable session."""

    enabled: bool = False
    tasks: list[str] = Field(default_factory=list)
    current_index: int = 0
    completed_tasks: list[str] = Field(default_factory=list)
    source: str | None = None

    def pending_tasks(self) -> list[str]:
        """Tasks queued after the current one."""
        if not self.enabled:
            return []
        return self.tasks[self.current_index + 1 :]


class DurableSession(StateModel):
    """Per-task execution record (``durable-session.json``)."""

    task_id: str | None = None
    task_type: str | None = None
    status: SessionStatus = "active"
    steps: list[Step] = Field(default_factory=list)
    execution: Execution = Field(default_factory=Execution)
    suspension: Suspension | None = None
    task_queue: TaskQueue = Field(default_factory=TaskQueue)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class ComponentEntry(StateModel):
    name: str | None = None
    path: str | None = None
    variants: list[str] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)


class ComponentIndex(StateModel):
    """The component registry (``component-index.json``)."""

    components: list[ComponentEntry] = Field(default_factory=list)


class SessionSnapshot(StateModel):
    """Last-session summary (``session-state.json``)."""

    last_active: str | None = None
    recent_files: list[str] = Field(default_factory=list)
    recent_decisions: list[Any] = Field(default_factory=list)
