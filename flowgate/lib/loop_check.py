"""
Loop check: decide whether the agent may end its turn.

States:

    criteria_incomplete     open steps remain -> the host must keep going
    criteria_complete_exit  all steps done, no queue -> exit
    queue_has_next          all steps done, more queued tasks -> forced continuation
    prompt_before_next      as above but pauseBetweenTasks -> ask the user
    queue_empty_exit        all steps done, queue drained -> exit

Retry and iteration budgets bound ``criteria_incomplete``: a criterion that
can never be satisfied eventually yields an exit with a "gave up" message.
Reading state is the only side effect; the queue is never advanced here.
"""

from __future__ import annotations

import logging

from flowgate.lib.config import FlowConfig
from flowgate.lib.result import CriteriaStatus, HookResult, LoopState, Reason, StepSummary
from flowgate.lib.state_models import DurableSession, Step
from flowgate.lib.state_store import StateStore

logger = logging.getLogger(__name__)


def is_loop_enforcement_enabled(config: FlowConfig) -> bool:
    if not config.hooks.rules.loop_enforcement.enabled:
        return False
    return config.loops.enforced and config.loops.enabled


def _summarize(step: Step, index: int) -> StepSummary:
    return StepSummary(
        id=step.id or f"step-{index + 1:03d}",
        description=step.description or step.id or f"step {index + 1}",
        status=step.status,
        error=step.error,
    )


def check_criteria_status(session: DurableSession, default_max_attempts: int) -> CriteriaStatus:
    """Tally steps. Failed steps out of attempts count as exhausted, not open."""
    status = CriteriaStatus(total=len(session.steps))
    for index, step in enumerate(session.steps):
        if step.status == "completed":
            status.completed += 1
        elif step.status == "skipped":
            status.skipped += 1
        elif step.status == "failed":
            max_attempts = step.max_attempts or default_max_attempts
            if step.attempts >= max_attempts:
                status.exhausted += 1
                status.exhausted_steps.append(_summarize(step, index))
            else:
                status.failed += 1
                status.open_steps.append(_summarize(step, index))
        else:
            if step.status == "in_progress":
                status.in_progress += 1
            else:
                status.pending += 1
            status.open_steps.append(_summarize(step, index))
    return status


def generate_block_message(criteria: CriteriaStatus, task_id: str | None) -> str:
    msg = "Cannot complete task. Acceptance criteria not met.\n"

    pending = [s for s in criteria.open_steps if s.status != "failed"]
    failed = [s for s in criteria.open_steps if s.status == "failed"]

    if pending:
        msg += f"\n**Pending ({len(pending)}):**\n"
        msg += "".join(f"- {s.description}\n" for s in pending)

    if failed:
        msg += f"\n**Failed ({len(failed)}):**\n"
        for s in failed:
            msg += f"- {s.description}\n"
            if s.error:
                msg += f"  Error: {s.error}\n"

    msg += f"\nComplete all criteria or run `flow done {task_id or '<task-id>'} --force` to override."
    return msg


def generate_gave_up_message(criteria: CriteriaStatus, limit_note: str) -> str:
    msg = f"Gave up: {limit_note}. Allowing exit with unmet criteria."
    if criteria.exhausted_steps:
        msg += "\n\nExhausted steps:"
        for s in criteria.exhausted_steps:
            msg += f"\n- {s.description}"
            if s.error:
                msg += f" ({s.error})"
    return msg


def _check_budgets(
    session: DurableSession, criteria: CriteriaStatus, config: FlowConfig
) -> HookResult | None:
    """An exit result if a retry/iteration budget is spent, else None."""
    max_retries = config.loops.max_retries
    max_iterations = config.loops.max_iterations

    if session.execution.total_retries >= max_retries:
        return HookResult.allow(
            Reason.MAX_RETRIES_EXCEEDED,
            generate_gave_up_message(criteria, f"max retries ({max_retries}) reached"),
            can_exit=True,
            criteria_status=criteria,
            loop_state=LoopState.CRITERIA_COMPLETE_EXIT,
        )

    if session.execution.iteration >= max_iterations:
        return HookResult.allow(
            Reason.MAX_ITERATIONS_EXCEEDED,
            generate_gave_up_message(criteria, f"max iterations ({max_iterations}) reached"),
            can_exit=True,
            criteria_status=criteria,
            loop_state=LoopState.CRITERIA_COMPLETE_EXIT,
        )

    if not criteria.open_steps and criteria.exhausted_steps:
        return HookResult.allow(
            Reason.MAX_RETRIES_EXCEEDED,
            generate_gave_up_message(
                criteria, f"{criteria.exhausted} step(s) failed after exhausting their attempts"
            ),
            can_exit=True,
            criteria_status=criteria,
            loop_state=LoopState.CRITERIA_COMPLETE_EXIT,
        )
    return None


def check_queue_continuation(
    session: DurableSession, criteria: CriteriaStatus, config: FlowConfig
) -> HookResult:
    """Criteria are met: continue, prompt, or exit depending on the task queue."""
    queue = session.task_queue
    pending = queue.pending_tasks() if config.task_queue.enabled else []

    if pending:
        next_task_id = pending[0]
        remaining = len(pending) - 1
        if config.task_queue.pause_between_tasks:
            return HookResult(
                reason=Reason.QUEUE_PAUSE_BETWEEN_TASKS,
                message=(
                    f"Task complete. Next: {next_task_id} "
                    f"({remaining} more after it). Continue?"
                ),
                can_exit=False,
                should_prompt=True,
                next_task_id=next_task_id,
                remaining=remaining,
                criteria_status=criteria,
                loop_state=LoopState.PROMPT_BEFORE_NEXT,
            )
        return HookResult(
            reason=Reason.QUEUE_HAS_MORE_TASKS,
            message=f"Task complete. Auto-continuing to: {next_task_id}",
            can_exit=False,
            continue_to_next=True,
            next_task_id=next_task_id,
            remaining=remaining,
            criteria_status=criteria,
            loop_state=LoopState.QUEUE_HAS_NEXT,
        )

    if queue.enabled and queue.tasks:
        return HookResult.allow(
            Reason.QUEUE_COMPLETE,
            f"All {len(queue.tasks)} queued tasks completed!",
            can_exit=True,
            criteria_status=criteria,
            loop_state=LoopState.QUEUE_EMPTY_EXIT,
        )

    return HookResult.allow(
        Reason.CRITERIA_COMPLETE,
        f"All {criteria.completed} acceptance criteria completed.",
        can_exit=True,
        criteria_status=criteria,
        loop_state=LoopState.CRITERIA_COMPLETE_EXIT,
    )


def check_loop_exit(store: StateStore) -> HookResult:
    """Evaluate the completion state machine for the current durable session."""
    try:
        config = store.load_config()
        if not is_loop_enforcement_enabled(config):
            return HookResult.allow(Reason.LOOP_ENFORCEMENT_DISABLED, can_exit=True)

        session = store.durable_session.load()
    except Exception as e:
        logger.warning(f"Loop check could not read state, allowing exit: {e}")
        return HookResult.allow(Reason.STATE_UNREADABLE, can_exit=True)

    if session is None:
        return HookResult.allow(Reason.NO_ACTIVE_LOOP, can_exit=True)
    if session.status == "suspended":
        return HookResult.allow(Reason.SESSION_SUSPENDED, can_exit=True)

    criteria = check_criteria_status(session, config.durable_steps.default_max_attempts)

    if criteria.all_complete or session.status == "completed":
        return check_queue_continuation(session, criteria, config)

    exhausted = _check_budgets(session, criteria, config)
    if exhausted:
        logger.info(f"Loop budget spent for {session.task_id}: {exhausted.reason}")
        return exhausted

    return HookResult(
        reason=Reason.CRITERIA_INCOMPLETE,
        allowed=False,
        blocked=True,
        message=generate_block_message(criteria, session.task_id),
        can_exit=False,
        criteria_status=criteria,
        loop_state=LoopState.CRITERIA_INCOMPLETE,
    )
