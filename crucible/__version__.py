"""Version information for Crucible Monitor."""

__version__ = "1.2.0"
