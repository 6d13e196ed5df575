#!/usr/bin/env python3
"""
SessionEnd hook: warn about uncommitted work.
"""

import sys

from flowgate.hooks.router import main as route
from flowgate.hooks.schemas import HookEvent


def main() -> int:
    return route(HookEvent.SESSION_END)


if __name__ == "__main__":
    sys.exit(main())
