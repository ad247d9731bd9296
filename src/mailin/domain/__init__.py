"""Domain layer: pure models, policies and ports."""
