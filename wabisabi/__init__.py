"""wabisabi: context-window and working-memory management for long conversations."""

__version__ = "0.1.0"
