#!/usr/bin/env python3
"""
Stop / AfterAgent hook: keep the agent working while acceptance criteria are
open, and move it on to the next queued task when they are met.
"""

import sys

from flowgate.hooks.router import main as route
from flowgate.hooks.schemas import HookEvent


def main() -> int:
    return route(HookEvent.STOP)


if __name__ == "__main__":
    sys.exit(main())
