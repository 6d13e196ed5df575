"""
Shared fixtures for the flowgate tests.

Checkers are exercised against in-memory stores built by ``make_store``;
the ``project`` fixture lays out a real ``.workflow`` directory for tests
that go through the filesystem.
"""

import json
from pathlib import Path
from typing import Any

import pytest

from flowgate.lib.config import FlowConfig
from flowgate.lib.state_models import (
    ComponentIndex,
    DurableSession,
    ReadyData,
    SessionSnapshot,
    Suspension,
)
from flowgate.lib.state_store import StateStore, StaticDocument


class RaisingDocument:
    """A document whose every read fails."""

    def __init__(self, exc: Exception | None = None):
        self.exc = exc or OSError("disk on fire")
        self.calls = 0

    def load(self):
        self.calls += 1
        raise self.exc


def make_store(
    root: Path | None = None,
    config: dict[str, Any] | None = None,
    ready: dict[str, Any] | None = None,
    session: dict[str, Any] | None = None,
    components: list[dict[str, Any]] | None = None,
    app_map: str | None = None,
    decisions: str | None = None,
    request_log: str | None = None,
    suspension: dict[str, Any] | None = None,
    snapshot: dict[str, Any] | None = None,
) -> StateStore:
    """Build an in-memory StateStore from camelCase document dicts."""
    return StateStore(
        root=root or Path("/projects/demo"),
        config=StaticDocument(FlowConfig.model_validate(config) if config is not None else None),
        ready=StaticDocument(ReadyData.model_validate(ready) if ready is not None else None),
        durable_session=StaticDocument(
            DurableSession.model_validate(session) if session is not None else None
        ),
        component_index=StaticDocument(
            ComponentIndex(components=components) if components is not None else None
        ),
        app_map=StaticDocument(app_map),
        decisions=StaticDocument(decisions),
        request_log=StaticDocument(request_log),
        suspension=StaticDocument(
            Suspension.model_validate(suspension) if suspension is not None else None
        ),
        session_snapshot=StaticDocument(
            SessionSnapshot.model_validate(snapshot) if snapshot is not None else None
        ),
    )


def steps(*statuses: str, **overrides: Any) -> list[dict[str, Any]]:
    """Durable-session steps with the given statuses, numbered step-1..n."""
    return [
        {"id": f"step-{i}", "description": f"Criterion {i}", "status": status, **overrides}
        for i, status in enumerate(statuses, start=1)
    ]


@pytest.fixture
def project(tmp_path):
    """An on-disk project root with an empty ``.workflow/state`` directory."""
    (tmp_path / ".workflow" / "state").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def write_state(project):
    """Write a document into the project's state directory."""

    def _write(name: str, data: Any) -> Path:
        path = project / ".workflow" / "state" / name
        path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_config(project):
    """Write ``.workflow/config.json`` (or another config file name)."""

    def _write(data: Any, name: str = "config.json") -> Path:
        path = project / ".workflow" / name
        path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep host-provided project roots out of the tests."""
    monkeypatch.delenv("FLOWGATE_PROJECT_ROOT", raising=False)
    monkeypatch.delenv("CLAUDE_PROJECT_DIR", raising=False)
    monkeypatch.delenv("FLOWGATE_CLIENT", raising=False)
