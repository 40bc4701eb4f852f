"""Stream Bluesky search results as resumable, chronologically ordered records."""

__version__ = "0.0.1"
