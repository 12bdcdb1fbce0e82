"""Conversation state, token budget, and compaction for one session.

ContextManager holds the live message list and ties together the estimator,
limit resolver, classifier, compaction engine, and (optionally) the working
memory store. Transport and presentation stay outside: the caller appends
messages, reports provider token usage, and supplies a summarizer coroutine
if it wants LLM-assisted compaction.

Example:
    store = WorkingMemoryStore.from_config(config.ram)
    context = ContextManager(config, store=store, summarizer=my_summarizer)
    context.start()
    context.set_system_prompt("You are helpful.")

    context.add_user_message("Refactor the auth module")
    extra = context.build_injected_context("Refactor the auth module")
    ...
    await context.auto_compact()
    ...
    context.end_session()
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol

from wabisabi.context.compaction import (
    FILE_ARGUMENT_KEYS,
    SUMMARIZER_SYSTEM_PROMPT,
    CompactionResult,
    apply_llm_summary,
    build_summarize_prompt,
    compact_messages,
    should_compact,
    split_for_compaction,
)
from wabisabi.context.complexity import ComplexityLevel, classify_complexity, matched_pattern
from wabisabi.context.limits import resolve_context_limit
from wabisabi.context.token_counter import SimpleTokenCounter, TokenCounter
from wabisabi.core.constants import DEFAULT_COMPACTION_THRESHOLD
from wabisabi.core.types import Message, Role, ToolCall

if TYPE_CHECKING:
    from wabisabi.config.schema import Config
    from wabisabi.ram.store import WorkingMemoryStore

logger = logging.getLogger(__name__)


class Summarizer(Protocol):
    """Produces a summary for compaction, usually with one chat completion."""

    async def __call__(self, system_prompt: str, prompt: str) -> str: ...


# end_session() continuity summary
CONTINUITY_MESSAGES = 6
CONTINUITY_CHARS = 100


class ContextManager:
    """Manages conversation context, token budget, and compaction.

    The system prompt is kept apart from the message list and always sent
    first, so it is the message compaction preserves as-is.
    """

    def __init__(
        self,
        config: "Config | None" = None,
        store: "WorkingMemoryStore | None" = None,
        summarizer: Summarizer | None = None,
        token_counter: TokenCounter | None = None,
        model: str | None = None,
    ) -> None:
        """Initialize context manager.

        Args:
            config: Configuration (uses defaults if None)
            store: Working memory store; without one, no device profile,
                file tracking, or memory injection is applied
            summarizer: Optional async LLM summarizer for compaction
            token_counter: Token counter (uses SimpleTokenCounter if None)
            model: Model identifier (defaults to config.default_model)
        """
        if config is None:
            from wabisabi.config.schema import Config

            config = Config()
        self.config = config
        self.store = store
        self.summarizer = summarizer
        self.model = model or config.default_model
        self._counter = token_counter or SimpleTokenCounter()

        self._system_prompt: str = ""
        self._messages: list[Message] = []
        self._last_prompt_tokens: int | None = None

    # === Session lifecycle ===

    def start(self) -> None:
        """Load working memory and apply the configured device profile."""
        if self.store is None:
            return
        self.store.load()
        if self.config.ram.device:
            self.store.set_device_profile(self.config.ram.device)

    def end_session(self) -> str | None:
        """Record a continuity summary for the next session and flush the store.

        The summary is built from the last few user/assistant messages, each
        clipped to 100 characters and joined with " | ".

        Returns:
            The stored summary, or None if there was nothing to summarize.
        """
        parts: list[str] = []
        for msg in self._messages[-CONTINUITY_MESSAGES:]:
            if not msg.content:
                continue
            if msg.role == Role.USER:
                parts.append(f"User: {msg.content[:CONTINUITY_CHARS]}")
            elif msg.role == Role.ASSISTANT:
                parts.append(f"Agent: {msg.content[:CONTINUITY_CHARS]}")

        summary = " | ".join(parts) if parts else None
        if self.store is not None:
            if summary:
                self.store.set_last_session_summary(summary)
            self.store.flush()
        return summary

    # === Setup ===

    def set_system_prompt(self, prompt: str) -> None:
        """Set the system prompt."""
        self._system_prompt = prompt

    @property
    def system_prompt(self) -> str:
        """Get the current system prompt."""
        return self._system_prompt

    @property
    def messages(self) -> list[Message]:
        """Get all messages (read-only copy)."""
        return self._messages.copy()

    # === Message Management ===

    def add_user_message(self, content: str) -> None:
        """Add a user message to context."""
        self._messages.append(Message(role=Role.USER, content=content))

    def add_assistant_message(
        self,
        content: str | None,
        tool_calls: list[ToolCall] | None = None,
    ) -> None:
        """Add an assistant message to context.

        Args:
            content: Assistant response content (None for tool-call-only turns)
            tool_calls: Optional list of tool calls made
        """
        self._messages.append(
            Message(
                role=Role.ASSISTANT,
                content=content,
                tool_calls=tuple(tool_calls) if tool_calls else (),
            )
        )

    def add_tool_result(self, tool_call_id: str, content: str, summary: str | None = None) -> None:
        """Add a tool result to context.

        When a store is attached and the originating tool call named a file
        (`filePath` or `path` argument), the file access is tracked.

        Args:
            tool_call_id: ID of the tool call this is responding to
            content: Tool output (or error text)
            summary: Optional short description of the file, kept with its entry
        """
        self._messages.append(
            Message(role=Role.TOOL, content=content, tool_call_id=tool_call_id)
        )
        if self.store is None:
            return
        call = self._find_tool_call(tool_call_id)
        if call is None:
            return
        args = call.parsed_arguments()
        for key in FILE_ARGUMENT_KEYS:
            path = args.get(key)
            if isinstance(path, str) and path:
                self.store.track_file_access(path, summary)
                break

    def _find_tool_call(self, tool_call_id: str) -> ToolCall | None:
        for msg in reversed(self._messages):
            for tc in msg.tool_calls:
                if tc.id == tool_call_id:
                    return tc
        return None

    def record_prompt_tokens(self, prompt_tokens: int | None) -> None:
        """Record the provider-reported prompt size of the last request.

        Provider accounting is preferred over the character estimate until the
        next compaction invalidates it.
        """
        self._last_prompt_tokens = prompt_tokens

    def clear_messages(self) -> None:
        """Clear all messages (keeps system prompt)."""
        self._messages.clear()
        self._last_prompt_tokens = None

    # === Context Building ===

    def build_messages(self) -> list[Message]:
        """Build the message list for an API call, system prompt first."""
        result: list[Message] = []
        if self._system_prompt:
            result.append(Message(role=Role.SYSTEM, content=self._system_prompt))
        result.extend(self._messages)
        return result

    def classify(self, utterance: str) -> ComplexityLevel:
        """Classify a request against the current conversation length."""
        level = classify_complexity(utterance, len(self._messages))
        logger.debug("Complexity %s (rule: %s)", level.value, matched_pattern(utterance))
        return level

    def build_injected_context(self, utterance: str) -> str:
        """Working-memory block sized for the complexity of `utterance`.

        Returns:
            Block to append to the system prompt, or "" without a store.
        """
        if self.store is None:
            return ""
        return self.store.build_context(self.classify(utterance))

    # === Token Tracking ===

    def effective_limit(self) -> int:
        """Context limit for the model, capped by the device profile."""
        profile = self.store.get_device_profile() if self.store is not None else None
        return resolve_context_limit(self.model, profile, self.config.context_limits)

    def compaction_threshold(self) -> float:
        """Fraction of the effective limit at which to compact.

        Config override first, then the device profile, then the default.
        """
        configured = self.config.compaction.trigger_threshold
        if configured is not None:
            return configured
        if self.store is not None:
            return self.store.get_compaction_threshold()
        return DEFAULT_COMPACTION_THRESHOLD

    def get_token_usage(self) -> dict[str, Any]:
        """Get current token usage breakdown.

        Returns:
            Dict with keys: system, messages, total, reported, limit, threshold
        """
        system_tokens = self._counter.count(self._system_prompt)
        message_tokens = self._counter.count_messages(self._messages)
        limit = self.effective_limit()
        return {
            "system": system_tokens,
            "messages": message_tokens,
            "total": system_tokens + message_tokens,
            "reported": self._last_prompt_tokens,
            "limit": limit,
            "threshold": int(limit * self.compaction_threshold()),
        }

    # === Compaction ===

    def needs_compaction(self) -> bool:
        """Check if context should be compacted based on token threshold."""
        if not self.config.compaction.enabled:
            return False
        return should_compact(
            self.build_messages(),
            self.model,
            last_known_prompt_tokens=self._last_prompt_tokens,
            custom_threshold=self.compaction_threshold(),
            effective_limit=self.effective_limit(),
            keep_recent=self.config.compaction.keep_recent,
        )

    async def auto_compact(self) -> CompactionResult | None:
        """Compact if the conversation is at or over the threshold.

        Returns:
            CompactionResult if compaction occurred, None otherwise
        """
        if not self.needs_compaction():
            return None
        usage = self.get_token_usage()
        logger.info(
            "Context approaching limit (%s of %d tokens), compacting",
            usage["reported"] or usage["total"], usage["limit"],
        )
        return await self.compact()

    async def compact(self) -> CompactionResult | None:
        """Compact now, regardless of the threshold.

        Both automatic and explicit (/compact) compaction go through here, so
        they share one policy and one `keep_recent` value. The summarizer is
        tried first when configured; any failure, timeout, or too-short answer
        falls back to the heuristic summary.

        Returns:
            CompactionResult if compaction occurred, None otherwise
        """
        keep_recent = self.config.compaction.keep_recent
        conversation = self.build_messages()
        if len(conversation) <= keep_recent + 1:
            return None

        summary: str | None = None
        if self.summarizer is not None:
            summary = await self._generate_summary(self.summarizer, conversation, keep_recent)

        if summary is None:
            result = compact_messages(conversation, keep_recent)
        else:
            result = apply_llm_summary(
                conversation,
                summary,
                keep_recent,
                min_summary_chars=self.config.compaction.min_summary_chars,
            )

        if not result.compacted:
            return None

        self._messages = result.messages[1:] if self._system_prompt else result.messages
        self._last_prompt_tokens = None  # Stale until the next API call
        self._warn_unpaired_tool_results()
        return result

    async def _generate_summary(
        self, summarizer: Summarizer, conversation: list[Message], keep_recent: int
    ) -> str | None:
        """Ask the summarizer for a summary of the messages about to be replaced.

        Returns:
            Summary text, or None if the call failed or timed out.
        """
        _, old, _ = split_for_compaction(conversation, keep_recent)
        prompt = build_summarize_prompt(old)
        timeout = self.config.compaction.summarizer_timeout
        try:
            return await asyncio.wait_for(
                summarizer(SUMMARIZER_SYSTEM_PROMPT, prompt), timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Summarizer timed out after %.1fs, using heuristic summary", timeout)
        except Exception as e:
            # Summarizer errors never propagate
            logger.warning("Summarizer failed (%s), using heuristic summary", e)
        return None

    def _warn_unpaired_tool_results(self) -> None:
        """Warn about tool results whose tool call was summarized away.

        Providers that require every tool result to follow its assistant tool
        call may reject the next request.
        """
        call_ids = {tc.id for msg in self._messages for tc in msg.tool_calls}
        orphans = [
            msg.tool_call_id or "?"
            for msg in self._messages
            if msg.role == Role.TOOL and msg.tool_call_id not in call_ids
        ]
        if orphans:
            logger.warning(
                "Compaction kept %d tool result(s) without their tool call: %s",
                len(orphans), ", ".join(orphans),
            )
