"""
Configuration and in-memory catalog state for the disco cache.

This package is responsible for:
* Loading the client configuration (optional JSON file + env var overrides).
* Holding the published catalog snapshot and refreshing it on a schedule.
"""
