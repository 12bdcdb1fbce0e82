"""Complexity classification and context budget allocation.

The classifier is a pure function over two literal pattern tables. Each entry
is tagged so a verdict can be traced back to the rule that produced it.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from wabisabi.core.constants import MAX_PINS

logger = logging.getLogger(__name__)


class ComplexityLevel(str, Enum):
    """How much context a request is worth."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


SIMPLE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("greeting", re.compile(r"^(hi|hello|hey|hola|ok|si|no|gracias|thanks)\b")),
    ("slash_command", re.compile(r"^/\w+")),
    ("farewell", re.compile(r"^(exit|quit|bye)")),
    ("yes_no", re.compile(r"^(yes|no|y|n)$")),
)

COMPLEX_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("architecture", re.compile(r"\b(architect|design|refactor|restructur|migrat)")),
    (
        "build_system",
        re.compile(r"\b(implement|build|create|develop)\b.*\b(system|module|feature|api|service)"),
    ),
    ("whole_codebase", re.compile(r"\b(plan|analyz|review|audit)\b.*\b(entire|whole|full|complete)")),
    ("multi_file", re.compile(r"\b(multi.?file|cross.?cutting|end.?to.?end)")),
    ("infrastructure", re.compile(r"\b(deploy|ci.?cd|pipeline|infrastructure)")),
    ("data_model", re.compile(r"\b(database|schema|migration|model)")),
    ("security", re.compile(r"\b(security|vulnerabilit|auth)")),
)

SIMPLE_MAX_WORDS = 3
COMPLEX_MIN_WORDS = 50
COMPLEX_MIN_HISTORY = 30


def _first_match(
    text: str, patterns: tuple[tuple[str, re.Pattern[str]], ...]
) -> str | None:
    for tag, pattern in patterns:
        if pattern.search(text):
            return tag
    return None


def matched_pattern(utterance: str) -> str | None:
    """Return the tag of the first simple or complex pattern the utterance matches."""
    lower = utterance.lower().strip()
    return _first_match(lower, SIMPLE_PATTERNS) or _first_match(lower, COMPLEX_PATTERNS)


def classify_complexity(utterance: str, history_length: int) -> ComplexityLevel:
    """Classify a user request to decide how much context to inject.

    Simple: greetings, single commands, short answers -> minimal context.
    Moderate: code questions, file operations, debugging -> standard context.
    Complex: architecture, multi-file changes, planning -> full context.

    Args:
        utterance: The user's latest message.
        history_length: Number of messages already in the conversation.

    Returns:
        The complexity level. Same input always yields the same level.
    """
    lower = utterance.lower().strip()
    word_count = len(lower.split())

    if word_count <= SIMPLE_MAX_WORDS or _first_match(lower, SIMPLE_PATTERNS):
        return ComplexityLevel.SIMPLE

    if (
        _first_match(lower, COMPLEX_PATTERNS)
        or word_count > COMPLEX_MIN_WORDS
        or history_length > COMPLEX_MIN_HISTORY
    ):
        return ComplexityLevel.COMPLEX

    return ComplexityLevel.MODERATE


@dataclass(frozen=True)
class ContextBudget:
    """Share of each context source worth injecting for a complexity level.

    Attributes:
        project_ratio: 0-1, how much project context to include.
        memory_ratio: 0-1, how much long-term memory to include.
        working_ratio: 0-1, how much working memory to include.
        max_pins_injected: Upper bound on pinned items in the injected block.
    """

    project_ratio: float
    memory_ratio: float
    working_ratio: float
    max_pins_injected: int


CONTEXT_BUDGETS: dict[ComplexityLevel, ContextBudget] = {
    ComplexityLevel.SIMPLE: ContextBudget(0.3, 0.2, 0.1, 3),
    ComplexityLevel.MODERATE: ContextBudget(0.7, 0.5, 0.5, 10),
    ComplexityLevel.COMPLEX: ContextBudget(1.0, 1.0, 1.0, MAX_PINS),
}


def get_context_budget(level: ComplexityLevel) -> ContextBudget:
    """Look up the context budget for a complexity level."""
    return CONTEXT_BUDGETS[ComplexityLevel(level)]
