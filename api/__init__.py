"""HTTP API for mission dispatch."""
