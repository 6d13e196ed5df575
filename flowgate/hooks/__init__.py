"""Host-facing layer: envelope schemas, host adapters, the router and entry modules."""
