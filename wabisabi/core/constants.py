"""Core constants and paths for wabisabi.

Single source of truth for global paths and the tuning constants shared by the
context and working-memory layers. Modules import from here instead of
hardcoding `Path.home() / ".wabisabi"` or repeating magic numbers.
"""

from pathlib import Path

WABISABI_DIR_NAME = ".wabisabi"
RAM_FILE_NAME = "ram.json"
CONFIG_FILE_NAME = "config.json"

# Token estimation
CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD_TOKENS = 4  # Role and formatting tokens per message

# Compaction
KEEP_RECENT = 6  # Messages preserved verbatim after compaction (~3 turns)
DEFAULT_COMPACTION_THRESHOLD = 0.75
DEFAULT_CONTEXT_LIMIT = 32_768
MAX_SUMMARY_CHARS = 4000
MIN_LLM_SUMMARY_CHARS = 50
SUMMARIZER_TIMEOUT_SECONDS = 30.0

# Working memory
MAX_PINS = 50
MAX_ACTIVE_FILES = 30
MAX_ACTIVE_TASKS = 20
RAM_SAVE_DEBOUNCE_SECONDS = 3.0
RAM_SCHEMA_VERSION = "1.0.0"


def get_wabisabi_dir() -> Path:
    """Get ~/.wabisabi (global state and config directory)."""
    return Path.home() / WABISABI_DIR_NAME


def get_ram_path() -> Path:
    """Get the default working-memory file path."""
    return get_wabisabi_dir() / RAM_FILE_NAME


def get_default_config_path() -> Path:
    """Get default config file path."""
    return get_wabisabi_dir() / CONFIG_FILE_NAME
