"""Domain layer: scenario definitions and value semantics."""
