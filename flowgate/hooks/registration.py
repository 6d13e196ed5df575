#!/usr/bin/env python3
"""
Print the hook registration a host needs to call flowgate.

The output is the ``hooks`` block for the host's settings file, built from
the project's enabled rules. Nothing is written; merging it into the host
configuration is left to the installer.

Without ``--client`` every host in the config's ``hooks.targets`` is
covered, and the output maps each host name to its block.

Usage:
    python -m flowgate.hooks.registration --client claude --project-root .
    python -m flowgate.hooks.registration --project-root .
"""

import argparse
import json
import logging
import sys

from flowgate.hooks.adapters import HostAdapter, adapter_names, get_adapter
from flowgate.hooks.router import configure_logging
from flowgate.lib.config import HooksConfig
from flowgate.lib.paths import get_project_root
from flowgate.lib.state_store import StateStore

logger = logging.getLogger(__name__)

# Target names used by older workflow configs
TARGET_ALIASES = {"claude-code": "claude", "gemini-cli": "gemini"}


def resolve_targets(hooks: HooksConfig) -> list[HostAdapter]:
    """Adapters for the configured targets, in order; unknown names are skipped."""
    adapters: list[HostAdapter] = []
    for target in hooks.targets:
        adapter = get_adapter(TARGET_ALIASES.get(target, target))
        if adapter is None:
            logger.warning(f"Ignoring unknown hook target {target!r}")
        elif adapter not in adapters:
            adapters.append(adapter)
    return adapters


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Print flowgate hook registration")
    parser.add_argument(
        "--client", choices=adapter_names(), help="Host runtime (default: configured targets)"
    )
    parser.add_argument("--project-root", help="Project root (default: auto-detect)")
    parser.add_argument(
        "--instructions", action="store_true", help="Print install instructions instead"
    )
    args = parser.parse_args(argv)
    configure_logging()

    root = get_project_root(args.project_root)
    hooks = StateStore.for_project(root).load_config().hooks
    adapters = [get_adapter(args.client)] if args.client else resolve_targets(hooks)

    if args.instructions:
        print("\n\n".join(adapter.install_instructions(root) for adapter in adapters))
        return 0

    for adapter in adapters:
        if not adapter.is_available(root):
            logger.warning(f"{adapter.name} does not appear to be set up in {root}")

    if args.client:
        registration = adapters[0].generate_config(hooks.rules, root)
        print(registration.model_dump_json(indent=2, exclude_none=True))
        return 0

    blocks = {
        adapter.name: adapter.generate_config(hooks.rules, root).model_dump(exclude_none=True)
        for adapter in adapters
    }
    print(json.dumps(blocks, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
