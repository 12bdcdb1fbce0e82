"""Context compaction: heuristic summaries and LLM summarization prompts.

Compaction keeps the first message (the system prompt) and the most recent
`keep_recent` messages verbatim and replaces everything in between with one
synthesized summary message. The engine never calls a model itself. It builds
the prompt for an external summarizer and turns the returned text (or the
heuristic fallback) into a replacement conversation.
"""

import logging
import re
from dataclasses import dataclass, field

from wabisabi.context.importance import score_message_importance
from wabisabi.context.limits import get_model_context_limit
from wabisabi.context.token_counter import estimate_conversation_tokens
from wabisabi.core.constants import (
    DEFAULT_COMPACTION_THRESHOLD,
    KEEP_RECENT,
    MAX_SUMMARY_CHARS,
    MIN_LLM_SUMMARY_CHARS,
)
from wabisabi.core.types import Message, Role

logger = logging.getLogger(__name__)

SUMMARIZER_SYSTEM_PROMPT = "You are a conversation summarizer. Be concise and structured."

SUMMARIZE_PROMPT = """Summarize this conversation concisely, preserving:
1. What the user asked for (tasks, requirements)
2. Key decisions made
3. Files that were created, modified, or read
4. Current state of the task (what's done, what's pending)
5. Any errors encountered and how they were resolved

Keep it under 500 words. Use bullet points.

--- CONVERSATION ---
{conversation}"""

SUMMARY_MARKER = "--- Conversation Summary ---"
TRUNCATION_MARKER = "... (earlier messages truncated)"

# Tool results that mention a file they touched, e.g. "Wrote src/app.py"
FILE_RESULT_PATTERN = re.compile(r"(?:Read|Wrote|Edited|Created|Updated)\s+(\S+)")
FILE_ARGUMENT_KEYS = ("filePath", "path")

MAX_FILES_LISTED = 20
PROMPT_MESSAGE_CHARS = 500
PROMPT_TOOL_CHARS = 200


@dataclass
class CompactionResult:
    """Result of a compaction attempt."""

    compacted: bool
    """Whether the conversation was replaced."""

    removed_count: int
    """Number of messages folded into the summary."""

    tokens_before: int
    """Estimated tokens before compaction."""

    tokens_after: int
    """Estimated tokens after compaction (equal to before when not compacted)."""

    summary_message: Message | None = None
    """The synthesized summary message, None when not compacted."""

    messages: list[Message] = field(default_factory=list)
    """The resulting conversation: [first, summary, *recent] or the input unchanged."""


def should_compact(
    messages: list[Message],
    model: str,
    last_known_prompt_tokens: int | None = None,
    custom_threshold: float | None = None,
    effective_limit: int | None = None,
    keep_recent: int = KEEP_RECENT,
) -> bool:
    """Check whether the conversation should be compacted.

    Args:
        messages: Current conversation, system prompt first.
        model: Model identifier used to look up the context limit.
        last_known_prompt_tokens: Provider-reported prompt tokens; preferred
            over the character estimate when given.
        custom_threshold: Fraction of the limit that triggers compaction
            (device profile threshold); defaults to 0.75.
        effective_limit: Limit to use instead of the model's (min of model and device).
        keep_recent: Messages preserved verbatim by compaction.

    Returns:
        True if there is enough history to compact and usage is at or over threshold.
    """
    limit = effective_limit if effective_limit is not None else get_model_context_limit(model)
    ratio = custom_threshold if custom_threshold is not None else DEFAULT_COMPACTION_THRESHOLD
    threshold = limit * ratio

    if last_known_prompt_tokens is not None:
        token_count = last_known_prompt_tokens
    else:
        token_count = estimate_conversation_tokens(messages)

    # System + recent window + a few messages worth summarizing
    if len(messages) <= keep_recent + 3:
        return False

    return token_count >= threshold


def split_for_compaction(
    messages: list[Message], keep_recent: int = KEEP_RECENT
) -> tuple[Message, list[Message], list[Message]]:
    """Split a conversation into (first, old, recent).

    Callers must ensure len(messages) > keep_recent + 1.
    """
    return messages[0], messages[1:-keep_recent], messages[-keep_recent:]


def _unchanged(messages: list[Message]) -> CompactionResult:
    tokens = estimate_conversation_tokens(messages)
    return CompactionResult(
        compacted=False,
        removed_count=0,
        tokens_before=tokens,
        tokens_after=tokens,
        messages=list(messages),
    )


def _detail_budget(importance: float) -> int:
    if importance >= 0.7:
        return 400
    if importance >= 0.4:
        return 200
    return 80


def _build_heuristic_summary(old_messages: list[Message]) -> str:
    """Build the structured heuristic summary text for old messages."""
    detail_lines: list[str] = []
    files_touched: dict[str, None] = {}  # ordered set
    tools_used: dict[str, None] = {}
    user_requests = 0
    tool_executions = 0

    for msg in old_messages:
        budget = _detail_budget(score_message_importance(msg))

        if msg.role == Role.USER and msg.content:
            user_requests += 1
            detail_lines.append(f"[User] {msg.content[:budget]}")
        elif msg.role == Role.ASSISTANT and msg.content:
            detail_lines.append(f"[Assistant] {msg.content[:budget]}")
        elif msg.role == Role.TOOL and msg.content:
            tool_executions += 1
            match = FILE_RESULT_PATTERN.search(msg.content)
            if match:
                files_touched[match.group(1)] = None

        for tc in msg.tool_calls:
            tools_used[tc.name] = None
            args = tc.parsed_arguments()
            for key in FILE_ARGUMENT_KEYS:
                value = args.get(key)
                if isinstance(value, str) and value:
                    files_touched[value] = None

    lines = [
        f"[Auto-compacted context: {len(old_messages)} messages summarized]",
        f"[{user_requests} user requests, {tool_executions} tool executions]",
    ]
    if tools_used:
        lines.append(f"[Tools used: {', '.join(tools_used)}]")
    if files_touched:
        lines.append(f"[Files touched: {', '.join(list(files_touched)[:MAX_FILES_LISTED])}]")

    lines.extend(["", SUMMARY_MARKER, ""])

    total_chars = 0
    for line in detail_lines:
        if total_chars + len(line) > MAX_SUMMARY_CHARS:
            lines.append(TRUNCATION_MARKER)
            break
        lines.append(line)
        total_chars += len(line)

    return "\n".join(lines)


def create_summary_message(summary_text: str) -> Message:
    """Create the USER message that stands in for the compacted history."""
    return Message(role=Role.USER, content=summary_text)


def _replace_history(
    messages: list[Message],
    summary_text: str,
    keep_recent: int,
) -> CompactionResult:
    first, old, recent = split_for_compaction(messages, keep_recent)
    summary = create_summary_message(summary_text)
    new_messages = [first, summary, *recent]

    tokens_before = estimate_conversation_tokens(messages)
    tokens_after = estimate_conversation_tokens(new_messages)
    if tokens_after >= tokens_before:
        logger.debug(
            "Compaction would not shrink context (%d -> %d tokens), keeping history",
            tokens_before, tokens_after,
        )
        return _unchanged(messages)

    return CompactionResult(
        compacted=True,
        removed_count=len(old),
        tokens_before=tokens_before,
        tokens_after=tokens_after,
        summary_message=summary,
        messages=new_messages,
    )


def compact_messages(
    messages: list[Message], keep_recent: int = KEEP_RECENT
) -> CompactionResult:
    """Compact older history into a heuristic summary message.

    Strategy:
    1. Keep the first message (system prompt) always.
    2. Summarize messages between it and the last `keep_recent` messages.
    3. Keep the last `keep_recent` messages intact.

    Each summarized message gets a detail budget from its importance score.
    Tool results and tool-call arguments contribute the files touched.

    Args:
        messages: Full conversation, system prompt first.
        keep_recent: Number of trailing messages to keep verbatim.

    Returns:
        CompactionResult; `compacted` is False when there is nothing worth
        summarizing or the summary would not reduce the token estimate.
    """
    if len(messages) <= keep_recent + 1:
        return _unchanged(messages)

    _, old, _ = split_for_compaction(messages, keep_recent)
    result = _replace_history(messages, _build_heuristic_summary(old), keep_recent)
    if result.compacted:
        logger.info(
            "Compacted %d messages (~%d -> ~%d tokens)",
            result.removed_count, result.tokens_before, result.tokens_after,
        )
    return result


def apply_llm_summary(
    messages: list[Message],
    summary: str | None,
    keep_recent: int = KEEP_RECENT,
    min_summary_chars: int = MIN_LLM_SUMMARY_CHARS,
) -> CompactionResult:
    """Compact using a summary produced by an external model.

    Falls back to compact_messages() when the summary is missing or shorter
    than `min_summary_chars`.

    Args:
        messages: Full conversation, system prompt first.
        summary: Text returned by the summarizer, or None if the call failed.
        keep_recent: Number of trailing messages to keep verbatim.
        min_summary_chars: Shortest summary accepted as a real answer.

    Returns:
        CompactionResult for the LLM summary or the heuristic fallback.
    """
    if len(messages) <= keep_recent + 1:
        return _unchanged(messages)

    if summary is None or len(summary) <= min_summary_chars:
        logger.warning("LLM summary unusable, falling back to heuristic compaction")
        return compact_messages(messages, keep_recent)

    _, old, _ = split_for_compaction(messages, keep_recent)
    text = f"[Auto-compacted: {len(old)} messages summarized by LLM]\n\n{summary}"
    result = _replace_history(messages, text, keep_recent)
    if result.compacted:
        logger.info(
            "Compacted %d messages with LLM summary (~%d -> ~%d tokens)",
            result.removed_count, result.tokens_before, result.tokens_after,
        )
        return result
    return compact_messages(messages, keep_recent)


def format_messages_for_summary(messages: list[Message]) -> str:
    """Format messages as `ROLE: text` lines for the summarization prompt.

    System messages and messages without text are skipped. User and assistant
    text is cut to 500 characters, tool output to 200.
    """
    lines = []
    for msg in messages:
        if msg.role == Role.SYSTEM:
            continue
        content = msg.text[:PROMPT_MESSAGE_CHARS]
        if not content.strip():
            continue

        if msg.role == Role.TOOL:
            lines.append(f"TOOL: {content[:PROMPT_TOOL_CHARS]}")
        else:
            lines.append(f"{msg.role.value.upper()}: {content}")

    return "\n".join(lines)


def build_summarize_prompt(old_messages: list[Message]) -> str:
    """Build the prompt for the summarization LLM call.

    Args:
        old_messages: Messages that will be replaced by the summary.

    Returns:
        Complete prompt for summarization.
    """
    return SUMMARIZE_PROMPT.format(conversation=format_messages_for_summary(old_messages))
