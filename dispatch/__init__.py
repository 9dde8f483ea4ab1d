"""Mission ranking and assignment."""
