"""Core task-state engine: models, store, policy and aggregation."""
