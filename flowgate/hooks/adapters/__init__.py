"""
Registry of host adapters, keyed by host name.

Built once at import time. Hosts are added with :func:`register_adapter`;
lookups never import anything dynamically.
"""

from pathlib import Path

from flowgate.hooks.adapters.base import HostAdapter
from flowgate.hooks.adapters.claude import ClaudeAdapter
from flowgate.hooks.adapters.gemini import GeminiAdapter

_ADAPTERS: dict[str, HostAdapter] = {}


def register_adapter(adapter: HostAdapter) -> None:
    """Add (or replace) the adapter for ``adapter.name``."""
    if not isinstance(adapter, HostAdapter):
        raise TypeError(f"Adapter must be a HostAdapter, got {type(adapter).__name__}")
    if not getattr(adapter, "name", None):
        raise ValueError("Adapter must have a name")
    _ADAPTERS[adapter.name] = adapter


def get_adapter(name: str) -> HostAdapter | None:
    return _ADAPTERS.get(name)


def all_adapters() -> dict[str, HostAdapter]:
    return dict(_ADAPTERS)


def available_adapters(project_root: Path | None = None) -> dict[str, HostAdapter]:
    """Adapters whose host appears to be in use for the project."""
    return {
        name: adapter
        for name, adapter in _ADAPTERS.items()
        if adapter.is_available(project_root)
    }


def adapter_names() -> list[str]:
    return list(_ADAPTERS)


register_adapter(ClaudeAdapter())
register_adapter(GeminiAdapter())

__all__ = [
    "ClaudeAdapter",
    "GeminiAdapter",
    "HostAdapter",
    "adapter_names",
    "all_adapters",
    "available_adapters",
    "get_adapter",
    "register_adapter",
]
