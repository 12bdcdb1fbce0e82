"""Working-memory status table using Rich."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from wabisabi.ram.store import WorkingMemoryStore

# Pin kind -> Rich style
KIND_STYLES: dict[str, str] = {
    "decision": "bold cyan",
    "fact": "green",
    "task": "yellow",
    "instruction": "magenta",
    "reference": "dim",
}


def render_ram_table(store: WorkingMemoryStore, max_rows: int = 10) -> Table:
    """Build a table of the device profile, pins, tasks, and files.

    Args:
        store: Working memory to render.
        max_rows: Rows shown per section before collapsing into "+N more".

    Returns:
        Rich Table ready for console.print().
    """
    profile = store.get_device_profile()
    memory = store.memory

    table = Table(
        title=f"Working Memory ({profile.kind}, {profile.max_context_tokens} tokens)",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Section", style="dim", no_wrap=True)
    table.add_column("Item")
    table.add_column("Detail", justify="right")

    pins = store.get_pins()
    for pin in pins[:max_rows]:
        style = KIND_STYLES.get(pin.kind, "")
        table.add_row("pin", f"[{style}]{pin.kind.upper()}[/] {escape(pin.content)}", f"{pin.importance:.2f}")
    if len(pins) > max_rows:
        table.add_row("pin", f"[dim]+{len(pins) - max_rows} more[/]", "")

    for task in store.get_active_tasks()[:max_rows]:
        table.add_row("task", escape(task.description), task.status)

    files = store.get_active_files(limit=max_rows)
    for tracked in files:
        table.add_row("file", escape(tracked.path), f"x{tracked.access_count}")

    table.caption = (
        f"threshold {round(profile.compaction_threshold * 100)}%"
        f" | sessions {memory.metadata.session_count}"
    )
    return table
