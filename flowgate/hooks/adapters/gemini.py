"""
Gemini CLI adapter.

Events: SessionStart, BeforeTool, AfterTool, AfterAgent, SessionEnd. File
edits arrive as the write_file and replace tools. Tool input and response
may be sent as JSON strings. Timeouts in settings are milliseconds.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any

from flowgate.hooks.adapters.base import HostAdapter, normalize_json_field
from flowgate.hooks.schemas import (
    GeminiHookOutput,
    GeminiHookSpecificOutput,
    HookEvent,
    HookRequest,
)
from flowgate.lib.result import HookResult
from flowgate.lib.session_context import format_context_for_injection


class GeminiAdapter(HostAdapter):
    name = "gemini"
    host_events = {
        HookEvent.SESSION_START: "SessionStart",
        HookEvent.PRE_EDIT: "BeforeTool",
        HookEvent.POST_EDIT: "AfterTool",
        HookEvent.STOP: "AfterAgent",
        HookEvent.SESSION_END: "SessionEnd",
    }
    edit_tools = {"replace": "edit", "write_file": "write"}
    timeout_scale = 1000

    def config_path(self, project_root: Path) -> Path:
        return project_root / ".gemini" / "settings.json"

    def is_available(self, project_root: Path | None = None) -> bool:
        if ((project_root or Path.cwd()) / ".gemini").is_dir():
            return True
        return shutil.which("gemini") is not None

    def parse_input(self, raw_input: dict[str, Any], event: HookEvent) -> HookRequest:
        tool_name = raw_input.get("tool_name")
        tool_input = normalize_json_field(raw_input.get("tool_input") or {})
        if not isinstance(tool_input, dict):
            tool_input = {}
        tool_output = normalize_json_field(
            raw_input.get("tool_response") or raw_input.get("tool_result")
        )

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
            file_path=(tool_input.get("file_path") or tool_input.get("absolute_path"))
            if operation
            else None,
            content=content if operation else None,
            tool_failed=isinstance(tool_output, dict) and bool(tool_output.get("error")),
            raw_input=raw_input,
        )

    def transform_result(self, event: HookEvent, result: HookResult) -> GeminiHookOutput:
        match event:
            case HookEvent.SESSION_START:
                text = format_context_for_injection(result)
                return self._with_context("SessionStart", text or None)
            case HookEvent.PRE_EDIT:
                if result.blocked:
                    return GeminiHookOutput(
                        decision="deny", reason=result.message or "Action blocked by flowgate"
                    )
                return GeminiHookOutput(
                    decision="allow", systemMessage=result.message if result.warning else None
                )
            case HookEvent.POST_EDIT:
                if result.skipped or result.passed is not False:
                    return GeminiHookOutput(decision="allow", systemMessage=result.summary)
                summary = result.summary or result.message or "Validation failed"
                if result.blocked:
                    return GeminiHookOutput(decision="block", reason=summary, systemMessage=summary)
                out = self._with_context("AfterTool", summary)
                out.systemMessage = summary
                return out
            case HookEvent.STOP:
                if result.continue_to_next:
                    return GeminiHookOutput(
                        decision="deny",
                        reason=(
                            f"Task complete. Continue with the next queued task: "
                            f"{result.next_task_id} ({result.remaining} remaining after it). "
                            f"Run: flow start {result.next_task_id}"
                        ),
                    )
                if result.blocked:
                    return GeminiHookOutput(
                        decision="deny",
                        reason=result.message or "Acceptance criteria not complete",
                    )
                return GeminiHookOutput(decision="allow", systemMessage=result.message)
            case HookEvent.SESSION_END:
                return GeminiHookOutput(systemMessage=result.message if result.warning else None)

    def fail_open_response(self, event: HookEvent) -> GeminiHookOutput:
        if event in (HookEvent.PRE_EDIT, HookEvent.POST_EDIT, HookEvent.STOP):
            return GeminiHookOutput(decision="allow")
        return GeminiHookOutput(continue_=True)

    @staticmethod
    def _with_context(event_name: str, text: str | None) -> GeminiHookOutput:
        if not text:
            return GeminiHookOutput(decision="allow")
        return GeminiHookOutput(
            decision="allow",
            hookSpecificOutput=GeminiHookSpecificOutput(
                hookEventName=event_name, additionalContext=text
            ),
        )
