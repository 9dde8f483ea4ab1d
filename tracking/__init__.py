"""Live tracking, replanning and path animation."""
