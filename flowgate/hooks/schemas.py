from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# --- Events ---


class HookEvent(StrEnum):
    """The lifecycle points flowgate handles, independent of any host."""

    SESSION_START = "session-start"
    PRE_EDIT = "pre-edit"
    POST_EDIT = "post-edit"
    STOP = "stop"
    SESSION_END = "session-end"


# Execution budget per event, in seconds. Shared by the dispatcher and the
# registration descriptors handed to hosts.
EVENT_TIMEOUTS: dict[HookEvent, int] = {
    HookEvent.SESSION_START: 10,
    HookEvent.PRE_EDIT: 5,
    HookEvent.POST_EDIT: 60,
    HookEvent.STOP: 5,
    HookEvent.SESSION_END: 10,
}

# Entry module (under flowgate.hooks) per event
EVENT_MODULES: dict[HookEvent, str] = {
    HookEvent.SESSION_START: "session_start",
    HookEvent.PRE_EDIT: "pre_tool_use",
    HookEvent.POST_EDIT: "post_tool_use",
    HookEvent.STOP: "stop",
    HookEvent.SESSION_END: "session_end",
}

Operation = Literal["edit", "write"]


# --- Input Schema (normalized request) ---


class HookRequest(BaseModel):
    """
    Normalized input for all checkers, produced by an adapter's parse_input.
    """

    event: HookEvent = Field(..., description="The normalized event.")
    host_event: str | None = Field(None, description="The host's own event name, if sent.")
    session_id: str | None = None

    # Event Data
    tool_name: str | None = None
    tool_input: dict[str, Any] = Field(default_factory=dict)
    tool_output: Any = None
    cwd: str | None = None
    transcript_path: str | None = None

    # Derived from the tool call
    operation: Operation | None = Field(
        None, description="'write' creates a file, 'edit' modifies one, None is not a file edit."
    )
    file_path: str | None = None
    content: str | None = None
    tool_failed: bool = False

    # Set by the dispatcher
    deadline: float | None = Field(
        None, description="time.monotonic() value by which checkers must have finished."
    )

    # Raw Input (for fallback/passthrough)
    raw_input: dict[str, Any] = Field(default_factory=dict)


# --- Claude Code Hook Schemas ---


class ClaudeHookSpecificOutput(BaseModel):
    """
    Nested output structure for Claude Code hooks.
    """

    hookEventName: str = Field(..., description="The name of the event that triggered the hook.")
    permissionDecision: Literal["allow", "deny", "ask"] | None = Field(
        None, description="The decision for the tool call. PreToolUse only."
    )
    permissionDecisionReason: str | None = Field(
        None, description="Shown to the agent when the tool call is denied."
    )
    additionalContext: str | None = Field(
        None,
        description="Context added for the agent. Supported in PostToolUse and SessionStart.",
    )


class ClaudeGeneralHookOutput(BaseModel):
    """
    Output structure for SessionStart, PreToolUse, PostToolUse and SessionEnd.
    """

    model_config = ConfigDict(populate_by_name=True)

    continue_: bool | None = Field(None, alias="continue", description="If False, halts Claude.")
    systemMessage: str | None = Field(None, description="A message to be displayed to the user.")
    decision: Literal["block"] | None = Field(
        None, description="PostToolUse only: feed 'reason' back to the agent."
    )
    reason: str | None = Field(None, description="Reason for the decision (visible to the agent).")
    hookSpecificOutput: ClaudeHookSpecificOutput | None = Field(
        None, description="Event-specific output data."
    )


class ClaudeStopHookOutput(BaseModel):
    """
    Output structure for the Claude 'Stop' and 'SubagentStop' events.
    Unlike other events, 'Stop' uses top-level fields instead of hookSpecificOutput.
    """

    model_config = ConfigDict(populate_by_name=True)

    continue_: bool | None = Field(None, alias="continue")
    decision: Literal["approve", "block"] | None = Field(
        None, description="'block' prevents the agent from stopping."
    )
    reason: str | None = Field(
        None, description="Required with 'block': tells the agent how to proceed."
    )
    systemMessage: str | None = Field(None, description="A message to be displayed to the user.")


# Union type for any Claude Hook Output
ClaudeHookOutput = ClaudeGeneralHookOutput | ClaudeStopHookOutput


# --- Gemini CLI Hook Schemas ---


class GeminiHookSpecificOutput(BaseModel):
    """
    Nested output structure for Gemini CLI hooks, used for context injection.
    """

    hookEventName: str | None = Field(None, description="The event type triggering the hook.")
    additionalContext: str | None = Field(
        None, description="Context injected into the agent's prompt."
    )


class GeminiHookOutput(BaseModel):
    """
    Output structure for Gemini CLI hooks.

    - decision: "allow", "deny", or "block" for blocking operations
    - reason: Explanation for denial (NOT for context injection)
    - hookSpecificOutput: Contains additionalContext for prompt injection
    """

    model_config = ConfigDict(populate_by_name=True)

    systemMessage: str | None = Field(None, description="Message to be displayed to the user.")
    decision: Literal["allow", "deny", "block"] | None = Field(
        None, description="Permission decision. 'deny'/'block' prevents the operation."
    )
    reason: str | None = Field(
        None, description="Reason for denial decision. NOT for context injection."
    )
    hookSpecificOutput: GeminiHookSpecificOutput | None = Field(
        None, description="Event-specific output including additionalContext."
    )
    continue_: bool | None = Field(
        None, alias="continue", description="If False, halts processing."
    )


HostResponse = ClaudeGeneralHookOutput | ClaudeStopHookOutput | GeminiHookOutput


def dump_response(response: BaseModel) -> str:
    """Serialize a host response: wire names, no null fields."""
    return response.model_dump_json(by_alias=True, exclude_none=True)


# --- Registration descriptors ---


class HookCommand(BaseModel):
    type: Literal["command"] = "command"
    command: str
    timeout: int = Field(..., description="In the host's unit (seconds or milliseconds).")


class HookMatcher(BaseModel):
    matcher: str | None = Field(None, description="Tool-name regex; None matches every call.")
    hooks: list[HookCommand]


class HookRegistration(BaseModel):
    """What a host's settings file needs in order to call the entry modules."""

    hooks: dict[str, list[HookMatcher]] = Field(default_factory=dict)
