"""Domain layer: entities, value types and repository protocols."""
