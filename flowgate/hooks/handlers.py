"""
Checker selection per event.

Every :class:`HookEvent` has exactly one handler; a missing entry fails at
import time rather than at the first hook call that needs it.
"""

from collections.abc import Callable

from flowgate.hooks.schemas import HookEvent, HookRequest
from flowgate.lib.commit_check import check_session_end
from flowgate.lib.component_check import check_component_reuse
from flowgate.lib.loop_check import check_loop_exit
from flowgate.lib.result import HookResult, Reason, merge_results
from flowgate.lib.session_context import gather_session_context
from flowgate.lib.state_store import StateStore
from flowgate.lib.task_gate import check_task_gate
from flowgate.lib.validation import run_validation

Handler = Callable[[HookRequest, StateStore], HookResult]


def handle_session_start(request: HookRequest, store: StateStore) -> HookResult:
    return gather_session_context(store)


def handle_pre_edit(request: HookRequest, store: StateStore) -> HookResult:
    """Task gate first; new files additionally go through the component check."""
    if request.operation is None:
        return HookResult.allow(Reason.NOT_FILE_EDIT)

    result = check_task_gate(store, request.file_path, request.operation)
    if result.blocked or request.operation != "write" or not request.file_path:
        return result

    return merge_results(result, check_component_reuse(store, request.file_path, request.content))


def handle_post_edit(request: HookRequest, store: StateStore) -> HookResult:
    if request.operation is None or not request.file_path:
        return HookResult.allow(Reason.NOT_FILE_EDIT)
    if request.tool_failed:
        return HookResult.allow(Reason.TOOL_FAILED)
    return run_validation(store, request.file_path, deadline=request.deadline)


def handle_stop(request: HookRequest, store: StateStore) -> HookResult:
    return check_loop_exit(store)


def handle_session_end(request: HookRequest, store: StateStore) -> HookResult:
    return check_session_end(store)


EVENT_HANDLERS: dict[HookEvent, Handler] = {
    HookEvent.SESSION_START: handle_session_start,
    HookEvent.PRE_EDIT: handle_pre_edit,
    HookEvent.POST_EDIT: handle_post_edit,
    HookEvent.STOP: handle_stop,
    HookEvent.SESSION_END: handle_session_end,
}

_unhandled = set(HookEvent) - set(EVENT_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No handler for hook events: {sorted(_unhandled)}")
