#!/usr/bin/env python3
"""
PreToolUse / BeforeTool hook for file edits.

Requires an active task, and warns (or blocks) when a new file duplicates an
existing component.
"""

import sys

from flowgate.hooks.router import main as route
from flowgate.hooks.schemas import HookEvent


def main() -> int:
    return route(HookEvent.PRE_EDIT)


if __name__ == "__main__":
    sys.exit(main())
