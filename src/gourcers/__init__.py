"""Gource many GitHub repositories at once."""

__version__ = "0.2.0"
