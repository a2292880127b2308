"""radarlink - serial radar device bridge for real-time client sessions."""

__version__ = "0.1.0"
