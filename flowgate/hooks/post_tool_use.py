#!/usr/bin/env python3
"""
PostToolUse / AfterTool hook: run the configured validation commands on the
file that was just edited.
"""

import sys

from flowgate.hooks.router import main as route
from flowgate.hooks.schemas import HookEvent


def main() -> int:
    return route(HookEvent.POST_EDIT)


if __name__ == "__main__":
    sys.exit(main())
