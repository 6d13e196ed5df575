"""
Tests for the dispatcher: event handling end to end, the fail-open policy,
the execution budget, and the command-line entry points.
"""

import io
import json
import shlex
import sys
import time

import pytest

from conftest import RaisingDocument, make_store, steps
from flowgate.hooks import post_tool_use, pre_tool_use, registration, router, stop
from flowgate.hooks.adapters import get_adapter
from flowgate.hooks.handlers import EVENT_HANDLERS
from flowgate.hooks.router import HookTimeout, dispatch, execution_budget, read_envelope
from flowgate.hooks.schemas import EVENT_TIMEOUTS, HookEvent, dump_response
from flowgate.lib.state_store import StateStore

claude = get_adapter("claude")
gemini = get_adapter("gemini")


def envelope(**fields) -> str:
    return json.dumps(fields)


def edit(path="src/app.ts", tool="Edit", **extra) -> str:
    return envelope(
        hook_event_name="PreToolUse", tool_name=tool, tool_input={"file_path": path, **extra}
    )


def wire(response) -> dict:
    return json.loads(dump_response(response))


def py(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


class SlowDocument:
    """A document that takes ``seconds`` to load."""

    def __init__(self, seconds: float):
        self.seconds = seconds

    def load(self):
        time.sleep(self.seconds)
        return None


def test_every_event_has_a_handler_and_budget():
    assert set(EVENT_HANDLERS) == set(HookEvent)
    assert set(EVENT_TIMEOUTS) == set(HookEvent)


class TestReadEnvelope:
    @pytest.mark.parametrize("text", [None, "", "   \n"])
    def test_empty_input_is_empty_object(self, text):
        assert read_envelope(text) == {}

    def test_rejects_non_objects(self):
        with pytest.raises(ValueError):
            read_envelope("[1, 2]")


class TestPreEdit:
    def test_blocks_without_task(self):
        store = make_store(ready={"inProgress": []})

        out = wire(dispatch(HookEvent.PRE_EDIT, claude, edit(), store=store))

        assert out["hookSpecificOutput"]["permissionDecision"] == "deny"
        assert "without an active task" in out["hookSpecificOutput"]["permissionDecisionReason"]

    def test_state_files_exempt(self):
        store = make_store(ready={"inProgress": []})

        out = wire(dispatch(HookEvent.PRE_EDIT, claude, edit(".workflow/state/ready.json"), store=store))

        assert out["hookSpecificOutput"]["permissionDecision"] == "allow"

    def test_non_edit_tools_pass_through(self):
        store = make_store(ready={"inProgress": []})
        raw = envelope(tool_name="Read", tool_input={"file_path": "src/app.ts"})

        out = wire(dispatch(HookEvent.PRE_EDIT, claude, raw, store=store))

        assert out["hookSpecificOutput"]["permissionDecision"] == "allow"

    def test_new_component_warns_about_duplicate(self):
        store = make_store(
            ready={"inProgress": ["T1"]},
            components=[{"name": "Button", "path": "src/components/Button.tsx"}],
        )

        out = wire(
            dispatch(HookEvent.PRE_EDIT, claude, edit("src/components/Button.tsx", "Write"), store=store)
        )

        assert out["hookSpecificOutput"]["permissionDecision"] == "allow"
        assert "Component already exists: Button" in out["systemMessage"]

    def test_component_check_only_for_new_files(self):
        store = make_store(
            config={"hooks": {"rules": {"componentReuse": {"blockOnSimilar": True}}}},
            ready={"inProgress": ["T1"]},
            components=[{"name": "Button", "path": "src/components/Button.tsx"}],
        )

        out = wire(dispatch(HookEvent.PRE_EDIT, claude, edit("src/components/Button.tsx"), store=store))

        assert out["hookSpecificOutput"]["permissionDecision"] == "allow"
        assert "systemMessage" not in out

    def test_task_gate_block_skips_component_check(self):
        store = make_store(ready={"inProgress": []})
        store.component_index = RaisingDocument()

        out = wire(
            dispatch(HookEvent.PRE_EDIT, claude, edit("src/components/X.tsx", "Write"), store=store)
        )

        assert out["hookSpecificOutput"]["permissionDecision"] == "deny"
        assert store.component_index.calls == 0

    def test_gemini_before_tool(self):
        store = make_store(ready={"inProgress": []})
        raw = envelope(
            hook_event_name="BeforeTool",
            tool_name="write_file",
            tool_input=json.dumps({"file_path": "src/new.py", "content": ""}),
        )

        out = wire(dispatch(HookEvent.PRE_EDIT, gemini, raw, store=store))

        assert out["decision"] == "deny"


class TestPostEdit:
    def test_skips_failed_tool_calls(self):
        rules = {"validation": {"commands": {"*.py": ["false"]}}}
        store = make_store(config={"hooks": {"rules": rules}})
        raw = envelope(
            tool_name="Edit", tool_input={"file_path": "a.py"}, tool_response={"error": "nope"}
        )

        out = wire(dispatch(HookEvent.POST_EDIT, claude, raw, store=store))

        assert out == {"continue": True}

    def test_no_commands_configured(self):
        raw = envelope(tool_name="Write", tool_input={"file_path": "notes.md"})

        assert wire(dispatch(HookEvent.POST_EDIT, claude, raw, store=make_store())) == {
            "continue": True
        }


class TestStop:
    def test_blocks_on_incomplete_criteria(self):
        store = make_store(session={"taskId": "T1", "steps": steps("completed", "pending")})

        out = wire(dispatch(HookEvent.STOP, claude, envelope(hook_event_name="Stop"), store=store))

        assert out["decision"] == "block"
        assert "Criterion 2" in out["reason"]

    def test_forced_continuation(self):
        store = make_store(
            session={
                "taskId": "T1",
                "steps": steps("completed"),
                "taskQueue": {"enabled": True, "tasks": ["T1", "T2", "T3"], "currentIndex": 0},
            }
        )

        out = wire(dispatch(HookEvent.STOP, claude, "", store=store))

        assert out["decision"] == "block"
        assert "flow start T2" in out["reason"]

    def test_nothing_to_enforce(self):
        out = wire(dispatch(HookEvent.STOP, claude, "", store=make_store()))

        assert out == {"continue": True}


class TestFailOpen:
    def test_internal_fault_allows_pre_edit(self, monkeypatch, caplog):
        def explode(*args, **kwargs):
            raise RuntimeError("checker bug")

        monkeypatch.setitem(EVENT_HANDLERS, HookEvent.PRE_EDIT, explode)

        out = wire(dispatch(HookEvent.PRE_EDIT, claude, edit(), store=make_store()))

        assert out["hookSpecificOutput"]["permissionDecision"] == "allow"
        assert "checker bug" in caplog.text

    @pytest.mark.parametrize("event", list(HookEvent))
    def test_malformed_envelope_fails_open(self, event):
        out = wire(dispatch(event, claude, "{not json", store=make_store()))

        assert out["continue"] is True
        assert "decision" not in out

    def test_gemini_fault_allows(self, monkeypatch):
        monkeypatch.setitem(EVENT_HANDLERS, HookEvent.STOP, lambda r, s: 1 / 0)

        assert wire(dispatch(HookEvent.STOP, gemini, "", store=make_store())) == {
            "decision": "allow"
        }

    def test_budget_overrun_fails_open(self, monkeypatch):
        monkeypatch.setitem(EVENT_HANDLERS, HookEvent.STOP, lambda r, s: time.sleep(5))

        started = time.monotonic()
        out = wire(dispatch(HookEvent.STOP, claude, "", store=make_store(), budget_seconds=2))

        assert out == {"continue": True}
        assert time.monotonic() - started < 4

    def test_execution_budget_raises(self):
        with pytest.raises(HookTimeout):
            with execution_budget(2):
                time.sleep(3)

    def test_budget_overrun_inside_state_read_allows(self, caplog):
        store = make_store(ready={"inProgress": []})
        store.ready = SlowDocument(3)

        out = wire(dispatch(HookEvent.PRE_EDIT, claude, edit(), store=store, budget_seconds=2))

        assert out["hookSpecificOutput"]["permissionDecision"] == "allow"
        assert "permissionDecisionReason" not in out["hookSpecificOutput"]
        assert "treating as no active task" not in caplog.text

    def test_timeout_passes_through_checker_handlers(self):
        with pytest.raises(HookTimeout):
            try:
                raise HookTimeout("exceeded")
            except Exception:
                pass

    def test_validation_keeps_failures_within_budget(self, tmp_path):
        failing = py("import sys; print('lint error'); sys.exit(1)")
        slow = [py(f"import time; time.sleep({n})") for n in (10, 11, 12)]
        rules = {"validation": {"commands": {"*.py": [failing, *slow]}, "timeoutMs": 1500}}
        store = make_store(root=tmp_path, config={"hooks": {"rules": rules}})
        raw = envelope(tool_name="Edit", tool_input={"file_path": "app.py"})

        out = wire(dispatch(HookEvent.POST_EDIT, claude, raw, store=store, budget_seconds=4))

        assert "lint error" in out["systemMessage"]
        assert "Timed out" in out["hookSpecificOutput"]["additionalContext"]

    def test_undecodable_registry_keeps_task_gate_advisory(self, tmp_path):
        (tmp_path / ".workflow" / "state").mkdir(parents=True)
        (tmp_path / ".workflow" / "state" / "component-index.json").write_bytes(
            b'{"components": [\xff]}'
        )
        (tmp_path / ".workflow" / "config.json").write_text(
            json.dumps({"hooks": {"rules": {"taskGating": {"blockWithoutTask": False}}}})
        )

        out = wire(
            dispatch(
                HookEvent.PRE_EDIT,
                claude,
                edit("src/components/Button.tsx", "Write"),
                store=StateStore.for_project(tmp_path),
            )
        )

        assert out["hookSpecificOutput"]["permissionDecision"] == "allow"
        assert "without an active task" in out["systemMessage"]

    def test_hooks_disabled(self):
        store = make_store(
            config={"hooks": {"enabled": False}},
            ready={"inProgress": []},
            session={"taskId": "T1", "steps": steps("pending")},
        )

        pre = wire(dispatch(HookEvent.PRE_EDIT, claude, edit(), store=store))
        after = wire(dispatch(HookEvent.STOP, claude, "", store=store))

        assert pre["hookSpecificOutput"]["permissionDecision"] == "allow"
        assert "decision" not in after


class TestEntryPoints:
    def run(self, monkeypatch, capsys, entry, argv, stdin):
        monkeypatch.setattr("sys.argv", ["hook", *argv])
        monkeypatch.setattr("sys.stdin", io.StringIO(stdin))
        code = entry()
        return code, capsys.readouterr()

    def test_pre_tool_use_against_project(self, monkeypatch, capsys, project, write_state):
        write_state("ready.json", {"inProgress": []})

        code, captured = self.run(
            monkeypatch,
            capsys,
            pre_tool_use.main,
            ["--client", "claude", "--project-root", str(project)],
            edit(str(project / "src" / "app.ts")),
        )

        assert code == 0
        out = json.loads(captured.out)
        assert out["hookSpecificOutput"]["permissionDecision"] == "deny"

    def test_project_root_from_envelope_cwd(self, monkeypatch, capsys, project, write_state):
        write_state("ready.json", {"inProgress": ["T1"]})
        raw = json.dumps(
            {"cwd": str(project), "tool_name": "Edit", "tool_input": {"file_path": "src/a.ts"}}
        )

        code, captured = self.run(monkeypatch, capsys, pre_tool_use.main, ["--client", "claude"], raw)

        assert json.loads(captured.out)["hookSpecificOutput"]["permissionDecision"] == "allow"

    def test_post_tool_use_empty_stdin(self, monkeypatch, capsys, project):
        code, captured = self.run(
            monkeypatch,
            capsys,
            post_tool_use.main,
            ["--client", "gemini", "--project-root", str(project)],
            "",
        )

        assert code == 0
        assert json.loads(captured.out) == {"decision": "allow"}

    def test_stop_with_broken_state_still_exits_zero(self, monkeypatch, capsys, project, write_state):
        write_state("durable-session.json", "{{{")

        code, captured = self.run(
            monkeypatch, capsys, stop.main, ["--client", "claude", "--project-root", str(project)], ""
        )

        assert code == 0
        assert json.loads(captured.out) == {"continue": True}

    def test_router_resolves_host_event_name(self, monkeypatch, capsys, project):
        code, captured = self.run(
            monkeypatch,
            capsys,
            router.main,
            ["--client", "gemini", "--project-root", str(project), "AfterAgent"],
            "",
        )

        assert code == 0
        assert json.loads(captured.out) == {"decision": "allow"}

    def test_router_event_from_payload(self, monkeypatch, capsys, project, write_state):
        write_state("ready.json", {"inProgress": []})

        code, captured = self.run(
            monkeypatch,
            capsys,
            router.main,
            ["--client", "claude", "--project-root", str(project)],
            edit(),
        )

        assert json.loads(captured.out)["hookSpecificOutput"]["permissionDecision"] == "deny"

    def test_unknown_client_is_ignored(self, monkeypatch, capsys, caplog):
        code, captured = self.run(monkeypatch, capsys, stop.main, ["--client", "vim"], "")

        assert code == 0
        assert json.loads(captured.out) == {}
        assert "Unknown client" in caplog.text

    def test_debug_logging_keeps_stdout_clean(self, monkeypatch, capsys, project):
        monkeypatch.setenv("FLOWGATE_LOG_LEVEL", "debug")

        code, captured = self.run(
            monkeypatch,
            capsys,
            stop.main,
            ["--client", "claude", "--project-root", str(project)],
            "",
        )

        assert json.loads(captured.out) == {"continue": True}


class TestRegistration:
    def test_prints_hooks_for_enabled_rules(self, capsys, project, write_config):
        write_config({"hooks": {"rules": {"validation": {"enabled": False}}}})

        code = registration.main(["--client", "claude", "--project-root", str(project)])

        hooks = json.loads(capsys.readouterr().out)["hooks"]
        assert code == 0
        assert "PreToolUse" in hooks
        assert "PostToolUse" not in hooks
        command = hooks["Stop"][0]["hooks"][0]["command"]
        assert command.endswith(f'--project-root "{project.resolve()}"')

    def test_gemini_timeouts_in_milliseconds(self, capsys, project):
        registration.main(["--client", "gemini", "--project-root", str(project)])

        hooks = json.loads(capsys.readouterr().out)["hooks"]
        assert hooks["AfterTool"][0]["hooks"][0]["timeout"] == 60000

    def test_configured_targets_without_client(self, capsys, project, write_config):
        write_config({"hooks": {"targets": ["claude-code", "gemini", "vim"]}})

        code = registration.main(["--project-root", str(project)])

        blocks = json.loads(capsys.readouterr().out)
        assert code == 0
        assert list(blocks) == ["claude", "gemini"]
        assert "PreToolUse" in blocks["claude"]["hooks"]
        assert "BeforeTool" in blocks["gemini"]["hooks"]

    def test_default_target_is_claude(self, capsys, project):
        registration.main(["--project-root", str(project)])

        assert list(json.loads(capsys.readouterr().out)) == ["claude"]

    def test_instructions_per_target(self, capsys, project, write_config):
        write_config({"hooks": {"targets": ["claude", "gemini"]}})

        registration.main(["--project-root", str(project), "--instructions"])

        out = capsys.readouterr().out
        assert ".claude/settings.local.json" in out
        assert ".gemini/settings.json" in out
