"""flowgate: hook-mediated enforcement for AI coding-agent workflows."""

__version__ = "1.0.0"
