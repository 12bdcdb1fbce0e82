"""Configuration loading with fail-fast behavior and layered merging.

Configs are merged from two layers, later overriding earlier:
1. Global user config (~/.wabisabi/config.json)
2. Project local config (<cwd>/.wabisabi/config.json)

With no config files at all, the Pydantic defaults apply. A layer that exists
but is unreadable, is not JSON, or is not a JSON object is an error, never a
silently skipped layer.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from wabisabi.config.schema import Config
from wabisabi.core.constants import CONFIG_FILE_NAME, WABISABI_DIR_NAME, get_default_config_path
from wabisabi.core.errors import ConfigError

logger = logging.getLogger(__name__)


def load_config(path: Path | None = None, cwd: Path | None = None) -> Config:
    """Load configuration from file with layered merging.

    Args:
        path: Explicit config file path. If provided, skips layered loading.
        cwd: Working directory for the local layer. Defaults to Path.cwd().

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If any config file contains invalid JSON or the merged
            config fails validation.
    """
    if path is not None:
        return _load_from_path(path)

    effective_cwd = cwd or Path.cwd()
    layers = [
        get_default_config_path(),
        effective_cwd / WABISABI_DIR_NAME / CONFIG_FILE_NAME,
    ]

    merged: dict[str, Any] = {}
    loaded_from: list[Path] = []
    for layer in dict.fromkeys(p.resolve() for p in layers):
        if not layer.is_file():
            logger.debug("No config layer at %s", layer)
            continue
        data = _read_layer(layer)
        if data:
            merged = _overlay(merged, data)
            loaded_from.append(layer)

    if not loaded_from:
        logger.debug("No config files found, using Pydantic defaults")
        return Config()

    logger.info("Config loaded from: %s", [str(p) for p in loaded_from])
    try:
        return Config.model_validate(merged)
    except ValidationError as e:
        sources = ", ".join(str(p) for p in loaded_from)
        raise ConfigError(f"Config validation failed (merged from {sources}): {e}") from e


def _load_from_path(path: Path) -> Config:
    """Load and validate config from a specific path.

    Raises:
        ConfigError: If file doesn't exist, contains invalid JSON, or fails validation.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        return Config.model_validate(_read_layer(path))
    except ValidationError as e:
        raise ConfigError(f"Config validation failed for {path}: {e}") from e


def _read_layer(path: Path) -> dict[str, Any]:
    """Parse one config file into a dict.

    Whitespace-only files count as an empty layer. A UTF-8 BOM (left by some
    Windows editors) is accepted.

    Raises:
        ConfigError: If the file cannot be read, is not JSON, or holds
            something other than a JSON object.
    """
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    if not text.strip():
        return {}

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(
            f"Config {path} must hold a JSON object, not {type(data).__name__}"
        )
    logger.debug("Read config layer %s (%d keys)", path, len(data))
    return data


def _overlay(lower: dict[str, Any], upper: dict[str, Any]) -> dict[str, Any]:
    """Return `lower` with `upper` laid over it; neither input is modified.

    Sections present in both layers (for example `compaction` or
    `context_limits`) combine key by key. Any other value from `upper`,
    lists included, replaces the lower one outright.
    """
    result = dict(lower)
    for key, value in upper.items():
        below = result.get(key)
        if isinstance(below, dict) and isinstance(value, dict):
            value = _overlay(below, value)
        result[key] = value
    return result
