"""Data models for missions, hazards and routes."""
