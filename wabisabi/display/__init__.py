"""Rich rendering of working-memory state."""

from wabisabi.display.summary import render_ram_table

__all__ = ["render_ram_table"]
