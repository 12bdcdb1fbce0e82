"""Working memory: pinned items, tracked files, active tasks, device profile.

Working memory bridges the live conversation (which is compacted as it grows)
and the next session. It is persisted to ~/.wabisabi/ram.json with debounced
writes and is injected into the system prompt scaled by request complexity.
"""

from wabisabi.ram.debounce import AsyncioScheduler, DebouncedWriter, Scheduler
from wabisabi.ram.injection import build_ram_context, format_ram_summary
from wabisabi.ram.presets import DEVICE_PRESETS, get_device_preset
from wabisabi.ram.schema import (
    ActiveTask,
    DeviceProfile,
    PinnedItem,
    RamMetadata,
    TrackedFile,
    WorkingMemory,
)
from wabisabi.ram.store import WorkingMemoryStore

__all__ = [
    # Store
    "WorkingMemoryStore",
    # Schema
    "ActiveTask",
    "DeviceProfile",
    "PinnedItem",
    "RamMetadata",
    "TrackedFile",
    "WorkingMemory",
    # Presets
    "DEVICE_PRESETS",
    "get_device_preset",
    # Persistence
    "AsyncioScheduler",
    "DebouncedWriter",
    "Scheduler",
    # Injection
    "build_ram_context",
    "format_ram_summary",
]
