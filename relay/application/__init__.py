"""Application layer: use cases, event publishing and dependency wiring."""
