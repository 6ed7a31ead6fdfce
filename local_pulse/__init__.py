"""Local Pulse: weather, air quality and local highlights for one place."""

__version__ = "0.1.0"
