"""
Claude Code adapter.

Events: SessionStart, PreToolUse, PostToolUse, Stop (and SubagentStop),
SessionEnd. File edits arrive as the Edit, MultiEdit and Write tools.
Timeouts in settings are seconds.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from flowgate.hooks.adapters.base import HostAdapter, normalize_json_field
from flowgate.hooks.schemas import (
    ClaudeGeneralHookOutput,
    ClaudeHookOutput,
    ClaudeHookSpecificOutput,
    ClaudeStopHookOutput,
    HookEvent,
    HookRequest,
)
from flowgate.lib.result import HookResult
from flowgate.lib.session_context import format_context_for_injection


def tool_response_failed(response: Any) -> bool:
    """Claude reports tool failures as an error field or ``success: false``."""
    if not isinstance(response, dict):
        return False
    return bool(response.get("error")) or response.get("success") is False


class ClaudeAdapter(HostAdapter):
    name = "claude"
    host_events = {
        HookEvent.SESSION_START: "SessionStart",
        HookEvent.PRE_EDIT: "PreToolUse",
        HookEvent.POST_EDIT: "PostToolUse",
        HookEvent.STOP: "Stop",
        HookEvent.SESSION_END: "SessionEnd",
    }
    edit_tools = {"Edit": "edit", "MultiEdit": "edit", "Write": "write"}

    def supported_events(self) -> list[str]:
        return [*super().supported_events(), "SubagentStop"]

    def resolve_event(self, name: str | None) -> HookEvent | None:
        if name == "SubagentStop":
            return HookEvent.STOP
        return super().resolve_event(name)

    def config_path(self, project_root: Path) -> Path:
        return project_root / ".claude" / "settings.local.json"

    def is_available(self, project_root: Path | None = None) -> bool:
        return ((project_root or Path.cwd()) / ".claude").is_dir()

    def parse_input(self, raw_input: dict[str, Any], event: HookEvent) -> HookRequest:
        tool_name = raw_input.get("tool_name")
        tool_input = normalize_json_field(raw_input.get("tool_input") or {})
        if not isinstance(tool_input, dict):
            tool_input = {}
        tool_output = normalize_json_field(raw_input.get("tool_response"))

        operation = self.classify_tool(tool_name)
        content = tool_input.get("content")
        if content is None:
            content = tool_input.get("new_string")

        return HookRequest(
            event=event,
            host_event=raw_input.get("hook_event_name"),
            session_id=raw_input.get("session_id"),
            tool_name=tool_name,
            tool_input=tool_input,
            tool_output=tool_output,
            cwd=raw_input.get("cwd"),
            transcript_path=raw_input.get("transcript_path"),
            operation=operation,
            file_path=tool_input.get("file_path") if operation else None,
            content=content if operation else None,
            tool_failed=tool_response_failed(tool_output),
            raw_input=raw_input,
        )

    def transform_result(self, event: HookEvent, result: HookResult) -> ClaudeHookOutput:
        match event:
            case HookEvent.SESSION_START:
                return self._session_start(result)
            case HookEvent.PRE_EDIT:
                return self._pre_tool_use(result)
            case HookEvent.POST_EDIT:
                return self._post_tool_use(result)
            case HookEvent.STOP:
                return self._stop(result)
            case HookEvent.SESSION_END:
                return self._session_end(result)

    def fail_open_response(self, event: HookEvent) -> ClaudeHookOutput:
        if event == HookEvent.PRE_EDIT:
            return ClaudeGeneralHookOutput(
                continue_=True,
                hookSpecificOutput=ClaudeHookSpecificOutput(
                    hookEventName="PreToolUse", permissionDecision="allow"
                ),
            )
        if event == HookEvent.STOP:
            return ClaudeStopHookOutput(continue_=True)
        return ClaudeGeneralHookOutput(continue_=True)

    def _session_start(self, result: HookResult) -> ClaudeGeneralHookOutput:
        text = format_context_for_injection(result)
        if not text:
            return ClaudeGeneralHookOutput(continue_=True)
        return ClaudeGeneralHookOutput(
            continue_=True,
            hookSpecificOutput=ClaudeHookSpecificOutput(
                hookEventName="SessionStart", additionalContext=text
            ),
        )

    def _pre_tool_use(self, result: HookResult) -> ClaudeGeneralHookOutput:
        if result.blocked:
            return ClaudeGeneralHookOutput(
                continue_=True,
                hookSpecificOutput=ClaudeHookSpecificOutput(
                    hookEventName="PreToolUse",
                    permissionDecision="deny",
                    permissionDecisionReason=result.message or "Action blocked by flowgate",
                ),
            )

        return ClaudeGeneralHookOutput(
            continue_=True,
            systemMessage=result.message if result.warning else None,
            hookSpecificOutput=ClaudeHookSpecificOutput(
                hookEventName="PreToolUse", permissionDecision="allow"
            ),
        )

    def _post_tool_use(self, result: HookResult) -> ClaudeGeneralHookOutput:
        if result.skipped or result.passed is not False:
            return ClaudeGeneralHookOutput(continue_=True, systemMessage=result.summary)

        summary = result.summary or result.message or "Validation failed"
        if result.blocked:
            return ClaudeGeneralHookOutput(
                continue_=True, systemMessage=summary, decision="block", reason=summary
            )
        return ClaudeGeneralHookOutput(
            continue_=True,
            systemMessage=summary,
            hookSpecificOutput=ClaudeHookSpecificOutput(
                hookEventName="PostToolUse", additionalContext=summary
            ),
        )

    def _stop(self, result: HookResult) -> ClaudeStopHookOutput:
        if result.continue_to_next:
            directive = (
                "Task complete.\n\n"
                f"**Continuing to next task in queue:** {result.next_task_id}\n"
                f"({result.remaining} task(s) remaining after it)\n\n"
                f"Run: flow start {result.next_task_id}"
            )
            return ClaudeStopHookOutput(
                continue_=True, decision="block", reason=directive, systemMessage=result.message
            )

        if result.blocked:
            return ClaudeStopHookOutput(
                continue_=True,
                decision="block",
                reason=result.message or "Acceptance criteria not complete",
            )

        # Exit allowed; with should_prompt the user is asked before the next task
        return ClaudeStopHookOutput(continue_=True, systemMessage=result.message)

    def _session_end(self, result: HookResult) -> ClaudeGeneralHookOutput:
        return ClaudeGeneralHookOutput(
            continue_=True, systemMessage=result.message if result.warning else None
        )
