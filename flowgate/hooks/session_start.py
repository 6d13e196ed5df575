#!/usr/bin/env python3
"""
SessionStart hook: inject the suspended task, current task, key decisions
and recent activity into the new session.
"""

import sys

from flowgate.hooks.router import main as route
from flowgate.hooks.schemas import HookEvent


def main() -> int:
    return route(HookEvent.SESSION_START)


if __name__ == "__main__":
    sys.exit(main())
