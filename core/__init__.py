"""Core hazard model and exception types."""
