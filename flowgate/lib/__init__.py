"""Host-agnostic core: result type, config, state store and checkers."""
