"""Token estimation with a pluggable counter interface."""

import math
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from wabisabi.core.constants import CHARS_PER_TOKEN, MESSAGE_OVERHEAD_TOKENS

if TYPE_CHECKING:
    from wabisabi.core.types import Message


class TokenCounter(Protocol):
    """Protocol for token counting implementations."""

    def count(self, text: str) -> int:
        """Count tokens in a text string."""
        ...

    def count_messages(self, messages: Iterable["Message"]) -> int:
        """Count tokens in a list of messages."""
        ...


def estimate_message_tokens(message: "Message") -> int:
    """Estimate tokens for a single message.

    Characters of the content plus every tool call's name and raw JSON
    arguments are divided by CHARS_PER_TOKEN (rounded up), then a fixed
    per-message overhead is added for role and formatting tokens.
    """
    chars = len(message.content) if message.content else 0
    for tc in message.tool_calls:
        chars += len(tc.name)
        chars += len(tc.arguments)
    return math.ceil(chars / CHARS_PER_TOKEN) + MESSAGE_OVERHEAD_TOKENS


def estimate_conversation_tokens(messages: Iterable["Message"]) -> int:
    """Estimate total tokens for a full conversation."""
    return sum(estimate_message_tokens(msg) for msg in messages)


class SimpleTokenCounter:
    """Simple character-based token estimation.

    Uses a heuristic that ~4 characters = 1 token (common for English text).
    Provider-reported prompt tokens take precedence whenever they are available.
    """

    CHARS_PER_TOKEN = CHARS_PER_TOKEN
    OVERHEAD_PER_MESSAGE = MESSAGE_OVERHEAD_TOKENS

    def count(self, text: str) -> int:
        """Count tokens using character-based estimation.

        Args:
            text: Text string to count tokens for.

        Returns:
            Estimated token count (0 for empty text).
        """
        if not text:
            return 0
        return math.ceil(len(text) / self.CHARS_PER_TOKEN)

    def count_messages(self, messages: Iterable["Message"]) -> int:
        """Count tokens in messages with overhead per message.

        Args:
            messages: Messages to count.

        Returns:
            Total estimated token count for all messages.
        """
        return estimate_conversation_tokens(messages)
