"""Importance scoring for compaction decisions.

Higher score = more costly to lose = more detail kept in the summary.
"""

from wabisabi.core.types import Message, Role

BASE_SCORE = 0.3

WRITE_TOOL_NAMES = frozenset({"write", "edit", "write_file", "edit_file"})
SHELL_TOOL_NAMES = frozenset({"bash", "shell"})

ERROR_MARKER = "error"
DECISION_KEYWORDS = ("decided", "decision", "approach", "strategy")

LONG_USER_MESSAGE_CHARS = 200


def score_message_importance(message: Message) -> float:
    """Score a single message in [0, 1]."""
    score = BASE_SCORE
    content = message.text

    if message.role == Role.USER:
        score += 0.2
        if "?" in content:
            score += 0.1
        if len(content) > LONG_USER_MESSAGE_CHARS:
            score += 0.1

    if message.tool_calls:
        score += 0.2
        for tc in message.tool_calls:
            if tc.name in WRITE_TOOL_NAMES:
                score += 0.2
            elif tc.name in SHELL_TOOL_NAMES:
                score += 0.1

    if ERROR_MARKER in content.lower():
        score += 0.15

    if any(keyword in content for keyword in DECISION_KEYWORDS):
        score += 0.1

    return max(0.0, min(score, 1.0))
