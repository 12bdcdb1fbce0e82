"""Pydantic models for wabisabi configuration validation."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wabisabi.core.constants import (
    KEEP_RECENT,
    MAX_ACTIVE_FILES,
    MAX_ACTIVE_TASKS,
    MAX_PINS,
    MIN_LLM_SUMMARY_CHARS,
    RAM_SAVE_DEBOUNCE_SECONDS,
    SUMMARIZER_TIMEOUT_SECONDS,
)
from wabisabi.ram.schema import DeviceKind


class CompactionConfig(BaseModel):
    """Configuration for context compaction/summarization.

    Example in config.json:
        "compaction": {
            "keep_recent": 8,
            "summarizer_timeout": 20
        }
    """

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    """Whether automatic compaction is enabled."""

    keep_recent: int = Field(default=KEEP_RECENT, ge=1, le=100)
    """Messages preserved verbatim by every compaction (automatic or explicit).

    The window is a plain message count and may open on a tool result whose
    assistant tool call was summarized away. Compaction logs a warning when
    that happens; pick a value that keeps tool calls and results together if
    the provider rejects unpaired tool results.
    """

    trigger_threshold: float | None = Field(default=None, ge=0.1, le=1.0)
    """Compact at this fraction of the effective limit. None = device profile threshold."""

    summarizer_timeout: float = Field(default=SUMMARIZER_TIMEOUT_SECONDS, gt=0)
    """Seconds to wait for an LLM summary before using the heuristic one."""

    min_summary_chars: int = Field(default=MIN_LLM_SUMMARY_CHARS, ge=0)
    """LLM summaries this short or shorter are treated as failures."""


class RamConfig(BaseModel):
    """Configuration for the working-memory store.

    Example in config.json:
        "ram": {
            "path": "~/.wabisabi/ram.json",
            "device": "mobile"
        }
    """

    model_config = ConfigDict(extra="forbid")

    path: str | None = None
    """Working memory file. None = ~/.wabisabi/ram.json."""

    device: DeviceKind | None = None
    """Device profile applied at startup. None = keep the persisted profile."""

    save_debounce_seconds: float = Field(default=RAM_SAVE_DEBOUNCE_SECONDS, ge=0)
    """Delay between the first unsaved mutation and the write."""

    max_pins: int = Field(default=MAX_PINS, ge=1)
    max_active_files: int = Field(default=MAX_ACTIVE_FILES, ge=1)
    max_active_tasks: int = Field(default=MAX_ACTIVE_TASKS, ge=1)


class Config(BaseModel):
    """Root configuration model.

    Example config.json:
        {
            "default_model": "claude-sonnet-4",
            "context_limits": {"my-local-model": 65536},
            "compaction": {"keep_recent": 6},
            "ram": {"device": "laptop"}
        }
    """

    model_config = ConfigDict(extra="forbid")

    default_model: str = "gpt-4o"
    """Model identifier used to look up the context limit."""

    context_limits: dict[str, int] = {}
    """Per-model context limits that take precedence over the built-in table."""

    compaction: CompactionConfig = CompactionConfig()
    ram: RamConfig = RamConfig()

    @field_validator("context_limits")
    @classmethod
    def validate_context_limits(cls, v: dict[str, int]) -> dict[str, int]:
        """Ensure every override is a positive token count."""
        for name, limit in v.items():
            if limit <= 0:
                raise ValueError(f"Context limit for {name!r} must be positive, got {limit}")
        return v

