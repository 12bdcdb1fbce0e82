"""Typed exception hierarchy for wabisabi.

Only configuration loading raises these to callers. The working-memory store
and the compaction engine recover locally and report problems through return
values and logging instead.
"""


class WabiError(Exception):
    """Base class for all wabisabi errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(WabiError):
    """Raised for configuration issues (invalid JSON, validation failure)."""
