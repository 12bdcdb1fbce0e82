"""Context-window management for wabisabi.

This module provides token estimation, model and device limit resolution,
complexity classification with budget allocation, importance scoring of
conversation turns, and compaction of old history into a summary turn.
ContextManager ties these together for one live conversation.
"""

from wabisabi.context.compaction import (
    CompactionResult,
    apply_llm_summary,
    build_summarize_prompt,
    compact_messages,
    create_summary_message,
    format_messages_for_summary,
    should_compact,
    split_for_compaction,
)
from wabisabi.context.complexity import (
    CONTEXT_BUDGETS,
    ComplexityLevel,
    ContextBudget,
    classify_complexity,
    get_context_budget,
)
from wabisabi.context.importance import score_message_importance
from wabisabi.context.limits import MODEL_LIMITS, get_model_context_limit, resolve_context_limit
from wabisabi.context.manager import ContextManager, Summarizer
from wabisabi.context.token_counter import (
    SimpleTokenCounter,
    TokenCounter,
    estimate_conversation_tokens,
    estimate_message_tokens,
)

__all__ = [
    # Compaction
    "CompactionResult",
    "apply_llm_summary",
    "build_summarize_prompt",
    "compact_messages",
    "create_summary_message",
    "format_messages_for_summary",
    "should_compact",
    "split_for_compaction",
    # Complexity and budgets
    "CONTEXT_BUDGETS",
    "ComplexityLevel",
    "ContextBudget",
    "classify_complexity",
    "get_context_budget",
    # Importance
    "score_message_importance",
    # Limits
    "MODEL_LIMITS",
    "get_model_context_limit",
    "resolve_context_limit",
    # Token counter
    "TokenCounter",
    "SimpleTokenCounter",
    "estimate_conversation_tokens",
    "estimate_message_tokens",
    # Context manager
    "ContextManager",
    "Summarizer",
]
