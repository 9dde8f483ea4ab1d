"""Mission store adapters."""
