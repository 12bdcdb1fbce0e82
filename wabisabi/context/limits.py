"""Model and device context-limit resolution.

Model names are matched against MODEL_LIMITS case-insensitively: an exact key
wins, otherwise the first key (in declaration order) that prefixes or occurs
inside the name. Declaration order is part of the contract. Some keys occur
inside others ("llama" inside "codellama"), and existing configurations rely on
the first match rather than the most specific one.
"""

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from wabisabi.core.constants import DEFAULT_CONTEXT_LIMIT

if TYPE_CHECKING:
    from wabisabi.ram.schema import DeviceProfile

logger = logging.getLogger(__name__)

MODEL_LIMITS: dict[str, int] = {
    # Large context models
    "gpt-4o": 128_000,
    "gpt-4-turbo": 128_000,
    "gpt-4.1": 1_000_000,
    "claude-3": 200_000,
    "claude-sonnet": 200_000,
    "claude-opus": 200_000,
    "claude-haiku": 200_000,
    "gemini": 1_000_000,
    "deepseek": 128_000,
    # Medium context
    "gpt-4": 8_192,
    "gpt-3.5": 16_385,
    # Smaller / local models
    "llama": 8_192,
    "mistral": 32_768,
    "mixtral": 32_768,
    "qwen": 32_768,
    "phi": 16_384,
    "codellama": 16_384,
    "kimi": 128_000,
    "glm": 128_000,
}


def get_model_context_limit(model: str) -> int:
    """Get the context window (tokens) for a model name.

    Args:
        model: Model identifier, e.g. "gpt-4o-mini" or "openrouter/qwen-2.5".

    Returns:
        Token ceiling from MODEL_LIMITS, or DEFAULT_CONTEXT_LIMIT if nothing matches.
    """
    lower = model.lower()

    if lower in MODEL_LIMITS:
        return MODEL_LIMITS[lower]

    for prefix, limit in MODEL_LIMITS.items():
        if lower.startswith(prefix) or prefix in lower:
            return limit

    return DEFAULT_CONTEXT_LIMIT


def resolve_context_limit(
    model: str,
    device_profile: "DeviceProfile | None" = None,
    overrides: Mapping[str, int] | None = None,
) -> int:
    """Resolve the effective token ceiling for a model on a device.

    Args:
        model: Model identifier.
        device_profile: Active device profile; its ceiling caps the model's.
        overrides: Explicit per-model limits (from config), matched by exact
            lowercase name before the built-in table.

    Returns:
        min(model limit, device ceiling), or just the model limit without a profile.
    """
    limit: int | None = None
    if overrides:
        lowered = {name.lower(): value for name, value in overrides.items()}
        limit = lowered.get(model.lower())
    if limit is None:
        limit = get_model_context_limit(model)

    if device_profile is not None:
        effective = min(limit, device_profile.max_context_tokens)
        logger.debug(
            "Context limit for %s: model=%d device=%d effective=%d",
            model, limit, device_profile.max_context_tokens, effective,
        )
        return effective
    return limit
