#!/usr/bin/env python3
"""
Hook dispatcher.

Pipeline per invocation: read the host envelope from stdin, normalize it
with the host's adapter, run the event's checkers against the project's
state store, and print the adapter's response. Fail-open: any internal
fault or budget overrun is logged to stderr and answered with the adapter's
allow/continue response. The exit status is always 0.

Usage:
    python -m flowgate.hooks.router --client claude PreToolUse < envelope.json
    python -m flowgate.hooks.router --client gemini pre-edit < envelope.json
"""

import argparse
import json
import logging
import os
import signal
import sys
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from flowgate.hooks.adapters import HostAdapter, adapter_names, get_adapter
from flowgate.hooks.handlers import EVENT_HANDLERS
from flowgate.hooks.schemas import EVENT_TIMEOUTS, HookEvent, HookRequest, dump_response
from flowgate.lib.paths import get_project_root
from flowgate.lib.result import HookResult, Reason
from flowgate.lib.state_store import StateStore

logger = logging.getLogger(__name__)

# Time left for transforming and printing the response once checkers stop
DEADLINE_MARGIN_SECONDS = 0.5

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL_ENV = "FLOWGATE_LOG_LEVEL"
CLIENT_ENV = "FLOWGATE_CLIENT"
DEFAULT_CLIENT = "claude"


class HookTimeout(BaseException):
    """The invocation outran its execution budget.

    Not an ``Exception``: checker-level ``except Exception`` handlers must let
    it through to :func:`dispatch`.
    """


def configure_logging() -> None:
    """Diagnostics go to stderr; stdout carries only the response envelope."""
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "WARNING").upper())
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def alarm_seconds(budget: int) -> int:
    """Seconds until the budget timer fires: one below the host's own limit."""
    return max(1, budget - 1)


@contextmanager
def execution_budget(seconds: int) -> Iterator[None]:
    """Raise :class:`HookTimeout` one second before ``seconds`` elapse.

    Needs SIGALRM and the main thread; elsewhere the budget is left to the host.
    """
    usable = (
        seconds > 0
        and hasattr(signal, "SIGALRM")
        and threading.current_thread() is threading.main_thread()
    )
    if not usable:
        yield
        return

    def on_alarm(signum, frame):
        raise HookTimeout(f"exceeded {seconds}s budget")

    previous = signal.signal(signal.SIGALRM, on_alarm)
    signal.alarm(alarm_seconds(seconds))
    try:
        yield
    finally:
        signal.alarm(0)
        signal.signal(signal.SIGALRM, previous)


def read_envelope(raw_text: str | None) -> dict[str, Any]:
    """Parse the host envelope. Empty input is an empty envelope."""
    if not raw_text or not raw_text.strip():
        return {}
    data = json.loads(raw_text)
    if not isinstance(data, dict):
        raise ValueError(f"Hook input must be a JSON object, got {type(data).__name__}")
    return data


def read_stdin() -> str:
    try:
        if not sys.stdin.isatty():
            return sys.stdin.read()
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read stdin: {e}")
    return ""


def run_event(event: HookEvent, request: HookRequest, store: StateStore) -> HookResult:
    """Run the event's checkers, unless hooks are switched off for the project."""
    if not store.load_config().hooks.enabled:
        return HookResult.allow(Reason.HOOKS_DISABLED, can_exit=True)
    return EVENT_HANDLERS[event](request, store)


def dispatch(
    event: HookEvent,
    adapter: HostAdapter,
    raw_text: str | None,
    store: StateStore | None = None,
    project_root: str | Path | None = None,
    budget_seconds: int | None = None,
) -> BaseModel:
    """Handle one hook invocation and return the host response. Never raises."""
    budget = EVENT_TIMEOUTS[event] if budget_seconds is None else budget_seconds
    started = time.monotonic()
    try:
        with execution_budget(budget):
            request = adapter.parse_input(read_envelope(raw_text), event)
            if budget > 0:
                request.deadline = started + alarm_seconds(budget) - DEADLINE_MARGIN_SECONDS
            if store is None:
                store = StateStore.for_project(get_project_root(project_root, request.cwd))
            result = run_event(event, request, store)
            logger.info(f"{adapter.name} {event}: {result.reason}")
            return adapter.transform_result(event, result)
    except HookTimeout as e:
        logger.warning(f"{adapter.name} {event} hook {e}; allowing")
    except Exception:
        logger.exception(f"{adapter.name} {event} hook failed; allowing")
    return adapter.fail_open_response(event)


def _event_from_envelope(adapter: HostAdapter, raw_text: str) -> HookEvent | None:
    try:
        return adapter.resolve_event(read_envelope(raw_text).get("hook_event_name"))
    except ValueError:
        return None


def main(event: HookEvent | None = None, argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="flowgate hook dispatcher")
    parser.add_argument(
        "--client",
        default=os.environ.get(CLIENT_ENV, DEFAULT_CLIENT),
        help=f"Host runtime ({', '.join(adapter_names())})",
    )
    parser.add_argument("--project-root", help="Project root (default: auto-detect)")
    if event is None:
        parser.add_argument(
            "event", nargs="?", help="flowgate or host event name (default: from payload)"
        )

    # Parse known args to avoid issues if extra flags are passed
    args, _unknown = parser.parse_known_args(argv)
    configure_logging()

    raw_text = read_stdin()

    adapter = get_adapter(args.client)
    if adapter is None:
        logger.error(f"Unknown client {args.client!r}; expected one of {adapter_names()}")
        print("{}")
        return 0

    if event is None:
        event = adapter.resolve_event(args.event) or _event_from_envelope(adapter, raw_text)
    if event is None:
        logger.error(f"Could not determine the hook event for {adapter.name}; ignoring")
        print("{}")
        return 0

    response = dispatch(event, adapter, raw_text, project_root=args.project_root)
    print(dump_response(response))
    return 0


if __name__ == "__main__":
    sys.exit(main())
