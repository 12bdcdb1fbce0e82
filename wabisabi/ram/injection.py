"""Context injection and status formatting for working memory."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from wabisabi.context.complexity import ComplexityLevel, get_context_budget

if TYPE_CHECKING:
    from wabisabi.ram.store import WorkingMemoryStore

# memory_ratio gates for each optional block
SESSION_SUMMARY_MIN_RATIO = 0.3
TASKS_MIN_RATIO = 0.5
FILES_MIN_RATIO = 0.5
MAX_INJECTED_FILES = 5


def build_ram_context(
    store: WorkingMemoryStore,
    level: ComplexityLevel = ComplexityLevel.MODERATE,
) -> str:
    """Format working memory for system prompt injection.

    Args:
        store: Store to read pins, tasks, files, and session summary from.
        level: Request complexity; its budget decides which blocks appear.

    Returns:
        Formatted block, or "" if nothing qualifies.
    """
    budget = get_context_budget(level)
    parts: list[str] = []

    summary = store.get_last_session_summary()
    if summary and budget.memory_ratio >= SESSION_SUMMARY_MIN_RATIO:
        parts.append("── PREVIOUS SESSION ──")
        parts.append(summary)

    pins = store.get_pins(budget.max_pins_injected)
    if pins:
        parts.append("── PINNED (Working Memory) ──")
        for pin in pins:
            parts.append(f"[{pin.kind.upper()}] {pin.content}")

    tasks = store.get_active_tasks()
    if tasks and budget.memory_ratio >= TASKS_MIN_RATIO:
        parts.append("── ACTIVE TASKS ──")
        for task in tasks:
            parts.append(f"- {task.description} ({task.status})")
            for sub in task.subtasks:
                parts.append(f"  - {sub}")

    if budget.memory_ratio >= FILES_MIN_RATIO:
        files = store.get_active_files(MAX_INJECTED_FILES)
        if files:
            names = ", ".join(PurePosixPath(f.path).name or f.path for f in files)
            parts.append(f"── ACTIVE FILES: {names} ──")

    if not parts:
        return ""
    return "\n\n" + "\n".join(parts) + "\n── END RAM ──"


def format_ram_summary(store: WorkingMemoryStore) -> str:
    """Format a short plain-text status of working memory (for /ram-style commands)."""
    profile = store.get_device_profile()
    memory = store.memory
    lines = [
        f"  Device:     {profile.kind} ({profile.max_context_tokens} max tokens)",
        f"  Threshold:  {round(profile.compaction_threshold * 100)}%",
        f"  Pins:       {len(memory.pins)}",
        f"  Files:      {len(memory.files)} tracked",
        f"  Tasks:      {len(store.get_active_tasks())} active",
        f"  Sessions:   {memory.metadata.session_count}",
    ]
    if memory.last_session_summary:
        lines.append(f"  Last session: {memory.last_session_summary[:60]}...")
    return "\n".join(lines)
