"""Core types, errors, and constants."""

from wabisabi.core.errors import ConfigError, WabiError
from wabisabi.core.types import Message, Role, ToolCall

__all__ = [
    "WabiError",
    "ConfigError",
    "Message",
    "Role",
    "ToolCall",
]
