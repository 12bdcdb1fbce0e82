"""Device profile presets.

These values are part of the documented contract. A profile can only move
from one preset to another.
"""

from wabisabi.ram.schema import DeviceProfile

DEVICE_PRESETS: dict[str, DeviceProfile] = {
    "mobile": DeviceProfile(
        kind="mobile",
        max_context_tokens=16_384,
        max_working_memory_items=20,
        compaction_threshold=0.65,
    ),
    "laptop": DeviceProfile(
        kind="laptop",
        max_context_tokens=65_536,
        max_working_memory_items=50,
        compaction_threshold=0.75,
    ),
    "desktop": DeviceProfile(
        kind="desktop",
        max_context_tokens=128_000,
        max_working_memory_items=100,
        compaction_threshold=0.80,
    ),
    "server": DeviceProfile(
        kind="server",
        max_context_tokens=200_000,
        max_working_memory_items=200,
        compaction_threshold=0.85,
    ),
}

DEFAULT_DEVICE = "laptop"


def get_device_preset(kind: str) -> DeviceProfile | None:
    """Return the preset for a device kind, or None if the kind is unknown."""
    return DEVICE_PRESETS.get(kind.lower())
