"""Routing oracle client, validation, bypass search and two-leg routes."""
