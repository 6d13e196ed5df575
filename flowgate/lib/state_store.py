"""
Read-only access to the workflow state documents.

Each document kind sits behind a :class:`Document` with a single ``load()``
method, so checkers take a :class:`StateStore` and tests hand them in-memory
fakes instead of a filesystem.

Reads are never cached and never locked: every hook invocation re-reads what
it needs. A missing document loads as ``None``; an unreadable or malformed
one logs a warning and also loads as ``None``. Nothing here writes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, Protocol, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from flowgate.lib.config import FlowConfig
from flowgate.lib.paths import get_state_dir, get_workflow_dir
from flowgate.lib.state_models import (
    ComponentIndex,
    DurableSession,
    ReadyData,
    SessionSnapshot,
    Suspension,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)
M = TypeVar("M", bound=BaseModel)

CONFIG_FILENAMES = ("config.json", "config.yaml", "config.yml")


class Document(Protocol[T_co]):
    """Anything that can produce one state document on demand."""

    def load(self) -> T_co | None: ...


class JsonDocument(Generic[M]):
    """A JSON file validated into a pydantic model."""

    def __init__(self, path: Path, model: type[M]):
        self.path = path
        self.model = model

    def load(self) -> M | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return self.model.model_validate(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable state document {self.path}: {e}")
            return None


class TextDocument:
    """A markdown (or other text) file, returned verbatim."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable state document {self.path}: {e}")
            return None


class ConfigDocument:
    """The project config, from the first of config.json / config.yaml / config.yml."""

    def __init__(self, workflow_dir: Path):
        self.workflow_dir = workflow_dir

    def load(self) -> FlowConfig | None:
        for name in CONFIG_FILENAMES:
            path = self.workflow_dir / name
            if not path.exists():
                continue
            try:
                text = path.read_text(encoding="utf-8")
                data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
                return FlowConfig.model_validate(data or {})
            except (
                OSError,
                UnicodeDecodeError,
                json.JSONDecodeError,
                yaml.YAMLError,
                ValidationError,
            ) as e:
                logger.warning(f"Ignoring malformed config {path}: {e}")
                return None
        return None


class StaticDocument(Generic[T]):
    """A fixed value, for tests and for callers that already hold the data."""

    def __init__(self, value: T | None = None):
        self.value = value

    def load(self) -> T | None:
        return self.value


@dataclass
class StateStore:
    """One document per kind of workflow state."""

    root: Path
    config: Document[FlowConfig] = field(default_factory=StaticDocument)
    ready: Document[ReadyData] = field(default_factory=StaticDocument)
    durable_session: Document[DurableSession] = field(default_factory=StaticDocument)
    component_index: Document[ComponentIndex] = field(default_factory=StaticDocument)
    app_map: Document[str] = field(default_factory=StaticDocument)
    decisions: Document[str] = field(default_factory=StaticDocument)
    request_log: Document[str] = field(default_factory=StaticDocument)
    suspension: Document[Suspension] = field(default_factory=StaticDocument)
    session_snapshot: Document[SessionSnapshot] = field(default_factory=StaticDocument)

    @classmethod
    def for_project(cls, root: Path) -> StateStore:
        """Wire the on-disk layout under ``<root>/.workflow``."""
        state_dir = get_state_dir(root)
        return cls(
            root=root,
            config=ConfigDocument(get_workflow_dir(root)),
            ready=JsonDocument(state_dir / "ready.json", ReadyData),
            durable_session=JsonDocument(state_dir / "durable-session.json", DurableSession),
            component_index=JsonDocument(state_dir / "component-index.json", ComponentIndex),
            app_map=TextDocument(state_dir / "app-map.md"),
            decisions=TextDocument(state_dir / "decisions.md"),
            request_log=TextDocument(state_dir / "request-log.md"),
            suspension=JsonDocument(state_dir / "suspension.json", Suspension),
            session_snapshot=JsonDocument(state_dir / "session-state.json", SessionSnapshot),
        )

    def load_config(self) -> FlowConfig:
        """The project config, or all defaults when there is none or it can't be read."""
        try:
            return self.config.load() or FlowConfig()
        except Exception as e:
            logger.warning(f"Could not load config, using defaults: {e}")
            return FlowConfig()

    def load_ready(self) -> ReadyData:
        return self.ready.load() or ReadyData()
