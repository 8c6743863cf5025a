"""Training loop, losses, metrics and pipelines."""
