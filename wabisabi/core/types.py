"""Core types for wabisabi.

This module defines the conversation structures the context core consumes:
roles, tool calls, and messages. All dataclasses are frozen, so compaction
returns the recent messages it was given as the same objects.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Role(Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A request to execute a tool.

    Attributes:
        id: Unique identifier for this tool call.
        name: Name of the tool to execute.
        arguments: Arguments exactly as the provider sent them (a JSON string).
    """

    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the JSON arguments.

        Returns:
            The decoded object, or an empty dict if the arguments are not
            valid JSON or do not decode to an object.
        """
        try:
            value = json.loads(self.arguments)
        except (TypeError, ValueError):
            return {}
        return value if isinstance(value, dict) else {}


@dataclass(frozen=True)
class Message:
    """A message (turn) in a conversation.

    Attributes:
        role: The role of the message sender.
        content: The text content of the message, None for tool-call-only turns.
        tool_calls: Tool calls requested by the assistant (if any).
        tool_call_id: ID of the tool call this message is responding to (for tool messages).
    """

    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    @property
    def text(self) -> str:
        """Content as a string, empty when the message has no content."""
        return self.content or ""
