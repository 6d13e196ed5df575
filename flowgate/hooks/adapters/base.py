"""
Adapter contract between one host runtime and the checkers.

An adapter is the only code that understands a host's envelopes: it turns
the host's hook input into a :class:`HookRequest` and a :class:`HookResult`
back into the host's response model. Supporting a new host means writing a
new subclass and registering it; checkers and the router stay unchanged.
"""

from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel

from flowgate.hooks.schemas import (
    EVENT_MODULES,
    EVENT_TIMEOUTS,
    HookCommand,
    HookEvent,
    HookMatcher,
    HookRegistration,
    HookRequest,
    Operation,
)
from flowgate.lib.config import HookRules
from flowgate.lib.result import HookResult


def normalize_json_field(value: Any) -> Any:
    """Normalize a field that may be a JSON string to its parsed form."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def is_event_enabled(event: HookEvent, rules: HookRules) -> bool:
    """Whether the rules call for registering ``event`` at all."""
    match event:
        case HookEvent.SESSION_START:
            return rules.session_context.enabled
        case HookEvent.PRE_EDIT:
            return rules.task_gating.enabled or rules.component_reuse.enabled
        case HookEvent.POST_EDIT:
            return rules.validation.enabled
        case HookEvent.STOP:
            return rules.loop_enforcement.enabled
        case HookEvent.SESSION_END:
            return rules.auto_logging.enabled


class HostAdapter(ABC):
    """Translate between one host's hook protocol and flowgate's shapes."""

    name: ClassVar[str]
    # flowgate event -> the host's event name used in its settings file
    host_events: ClassVar[dict[HookEvent, str]]
    # Host tool name -> file operation it performs
    edit_tools: ClassVar[dict[str, Operation]]
    # Host timeouts are expressed as seconds * timeout_scale
    timeout_scale: ClassVar[int] = 1

    def supported_events(self) -> list[str]:
        return list(self.host_events.values())

    def resolve_event(self, name: str | None) -> HookEvent | None:
        """Map a flowgate or host event name to a :class:`HookEvent`."""
        if not name:
            return None
        for event, host_name in self.host_events.items():
            if name in (event.value, host_name):
                return event
        return None

    def classify_tool(self, tool_name: str | None) -> Operation | None:
        return self.edit_tools.get(tool_name) if tool_name else None

    @abstractmethod
    def config_path(self, project_root: Path) -> Path:
        """The host settings file the registration descriptor belongs in."""

    @abstractmethod
    def is_available(self, project_root: Path | None = None) -> bool:
        """Whether this host appears to be in use for the project."""

    @abstractmethod
    def parse_input(self, raw_input: dict[str, Any], event: HookEvent) -> HookRequest:
        """Normalize the host's envelope for ``event``."""

    @abstractmethod
    def transform_result(self, event: HookEvent, result: HookResult) -> BaseModel:
        """Express a checker result in the host's response vocabulary."""

    @abstractmethod
    def fail_open_response(self, event: HookEvent) -> BaseModel:
        """The response that lets the host carry on, used on any internal fault."""

    def hook_command(self, event: HookEvent, project_root: Path) -> str:
        return (
            f'"{sys.executable}" -m flowgate.hooks.{EVENT_MODULES[event]} '
            f'--client {self.name} --project-root "{project_root}"'
        )

    def tool_matcher(self, event: HookEvent) -> str | None:
        if event in (HookEvent.PRE_EDIT, HookEvent.POST_EDIT):
            return "|".join(self.edit_tools)
        return None

    def generate_config(self, rules: HookRules, project_root: Path) -> HookRegistration:
        """Per host event: the command line and timeout the host should use."""
        registration = HookRegistration()
        for event, host_event in self.host_events.items():
            if not is_event_enabled(event, rules):
                continue
            command = HookCommand(
                command=self.hook_command(event, project_root),
                timeout=EVENT_TIMEOUTS[event] * self.timeout_scale,
            )
            registration.hooks[host_event] = [
                HookMatcher(matcher=self.tool_matcher(event), hooks=[command])
            ]
        return registration

    def install_instructions(self, project_root: Path) -> str:
        return (
            f"Add the generated hooks to {self.config_path(project_root)}:\n\n"
            f"  python -m flowgate.hooks.registration --client {self.name} "
            f'--project-root "{project_root}"'
        )
