"""
Validation runner: lint/typecheck a file right after it was edited.

Commands come from the config's pattern map. Each one is split shell-style,
``{file}`` is substituted per argument and the argv is executed without a
shell from the project root. A command that times out or whose executable is
missing is a failed result, never an exception.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
import time
from fnmatch import fnmatch
from pathlib import Path, PurePath

from flowgate.lib.config import FlowConfig
from flowgate.lib.result import CommandResult, Diagnostic, HookResult, Reason
from flowgate.lib.state_store import StateStore

logger = logging.getLogger(__name__)

MAX_EXCERPT_LINES = 10
MAX_EXCERPT_CHARS = 2000
TRUNCATION_MARKER = "... (truncated)"
EXIT_COMMAND_NOT_FOUND = 127

TSC_ERROR_RE = re.compile(r"^(.+?)\((\d+),(\d+)\):\s*error\s+(TS\d+):\s*(.+)$", re.MULTILINE)
ESLINT_ERROR_RE = re.compile(r"^\s*(\d+):(\d+)\s+(error|warning)\s+(.+?)\s+(\S+)$", re.MULTILINE)


def is_validation_enabled(config: FlowConfig) -> bool:
    return config.hooks.rules.validation.enabled


def get_validation_commands(config: FlowConfig, file_path: str) -> list[str]:
    """All commands whose pattern matches the file name or path, in config order."""
    name = PurePath(file_path).name
    commands: list[str] = []
    for pattern, pattern_commands in config.validation_command_map().items():
        if fnmatch(name, pattern) or fnmatch(file_path, pattern):
            for command in pattern_commands:
                if command not in commands:
                    commands.append(command)
    return commands


def build_argv(command: str, file_path: str) -> list[str]:
    """``"npx eslint {file}"`` -> ``["npx", "eslint", "<file_path>"]``."""
    return [arg.replace("{file}", file_path) for arg in shlex.split(command)]


def excerpt(output: str) -> str:
    """First lines of ``output``, bounded in size, with a marker when cut."""
    lines = output.strip().splitlines()
    text = "\n".join(lines[:MAX_EXCERPT_LINES])
    truncated = len(lines) > MAX_EXCERPT_LINES
    if len(text) > MAX_EXCERPT_CHARS:
        text = text[:MAX_EXCERPT_CHARS]
        truncated = True
    if truncated:
        text += f"\n{TRUNCATION_MARKER}"
    return text


def parse_typescript_errors(output: str) -> list[Diagnostic]:
    return [
        Diagnostic(
            file=m.group(1).strip(),
            line=int(m.group(2)),
            column=int(m.group(3)),
            code=m.group(4),
            message=m.group(5).strip(),
        )
        for m in TSC_ERROR_RE.finditer(output)
    ]


def parse_eslint_errors(output: str) -> list[Diagnostic]:
    return [
        Diagnostic(
            line=int(m.group(1)),
            column=int(m.group(2)),
            severity=m.group(3),
            message=m.group(4),
            code=m.group(5),
        )
        for m in ESLINT_ERROR_RE.finditer(output)
    ]


def parse_diagnostics(argv: list[str], output: str) -> list[Diagnostic]:
    if "tsc" in argv:
        return parse_typescript_errors(output)
    if "eslint" in argv:
        return parse_eslint_errors(output)
    return []


def run_validation_command(
    command: str, file_path: str, cwd: Path, timeout_ms: int
) -> CommandResult:
    """Run one command. Never raises."""
    start = time.monotonic()

    def elapsed() -> int:
        return int((time.monotonic() - start) * 1000)

    try:
        argv = build_argv(command, file_path)
    except ValueError as e:
        return CommandResult(
            command=command,
            exit_code=None,
            passed=False,
            output_excerpt=f"Invalid command: {e}",
            reason=Reason.NONZERO_EXIT,
        )

    try:
        proc = subprocess.run(
            argv,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout_ms / 1000,
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"Validation command timed out after {timeout_ms}ms: {command}")
        return CommandResult(
            command=command,
            exit_code=None,
            passed=False,
            output_excerpt=f"Timed out after {timeout_ms}ms",
            reason=Reason.TIMEOUT,
            duration_ms=elapsed(),
        )
    except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
        return CommandResult(
            command=command,
            exit_code=EXIT_COMMAND_NOT_FOUND,
            passed=False,
            output_excerpt=str(e),
            reason=Reason.COMMAND_NOT_FOUND,
            duration_ms=elapsed(),
        )

    output = "\n".join(part for part in (proc.stdout, proc.stderr) if part and part.strip())
    passed = proc.returncode == 0
    return CommandResult(
        command=command,
        exit_code=proc.returncode,
        passed=passed,
        output_excerpt="" if passed else excerpt(output),
        reason=None if passed else Reason.NONZERO_EXIT,
        diagnostics=[] if passed else parse_diagnostics(argv, output),
        duration_ms=elapsed(),
    )


def generate_validation_summary(results: list[CommandResult], file_path: str) -> str:
    file_name = PurePath(file_path).name
    failed = [r for r in results if not r.passed]
    if not failed:
        n = len(results)
        return f"Validation passed for {file_name} ({n} check{'s' if n != 1 else ''})"

    summary = f"Validation failed for {file_name}:\n"
    for result in failed:
        summary += f"\n- {result.command}:\n"
        if result.output_excerpt:
            summary += "\n".join(f"  {line}" for line in result.output_excerpt.splitlines())
    return summary


def remaining_ms(deadline: float | None) -> int | None:
    """Milliseconds left before ``deadline`` (a ``time.monotonic()`` value)."""
    if deadline is None:
        return None
    return int((deadline - time.monotonic()) * 1000)


def run_validation(
    store: StateStore,
    file_path: str,
    timeout_ms: int | None = None,
    deadline: float | None = None,
) -> HookResult:
    """Run every configured command for ``file_path`` and aggregate.

    Each command's timeout is capped by the time left before ``deadline``;
    commands that would start after it are recorded as timed out, not run.
    """
    config = store.load_config()
    rule = config.hooks.rules.validation
    if not is_validation_enabled(config):
        return HookResult.allow(Reason.VALIDATION_DISABLED, passed=True, skipped=True)

    commands = get_validation_commands(config, file_path)
    if not commands:
        return HookResult.allow(Reason.NO_COMMANDS_FOR_FILE, passed=True, skipped=True)

    timeout_ms = timeout_ms or rule.timeout_ms
    results: list[CommandResult] = []
    for command in commands:
        left = remaining_ms(deadline)
        if left is not None and left <= 0:
            logger.warning(f"No time left in the hook budget, not running: {command}")
            results.append(
                CommandResult(
                    command=command,
                    exit_code=None,
                    passed=False,
                    output_excerpt="Not run: hook time budget exhausted",
                    reason=Reason.TIMEOUT,
                )
            )
            continue
        limit = timeout_ms if left is None else min(timeout_ms, left)
        results.append(run_validation_command(command, file_path, store.root, limit))

    passed = all(r.passed for r in results)
    summary = generate_validation_summary(results, file_path)

    if passed:
        return HookResult.allow(
            Reason.VALIDATION_PASSED, summary, passed=True, summary=summary, results=results
        )
    if rule.block_on_failure:
        return HookResult.block(
            Reason.VALIDATION_FAILED, summary, passed=False, summary=summary, results=results
        )
    return HookResult.warn(
        Reason.VALIDATION_FAILED, summary, passed=False, summary=summary, results=results
    )
