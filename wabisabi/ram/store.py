"""WorkingMemoryStore - owns working memory, its eviction policies, and persistence.

One store instance per session, constructed explicitly and passed to whoever
needs it. The store is the only writer of its file.

Failure policy: nothing here raises to the caller. A missing or corrupt file
loads as fresh defaults; a failed write is logged and the store keeps working
in memory (the next flush retries).
"""

import json
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from wabisabi.context.complexity import ComplexityLevel
from wabisabi.core.constants import (
    MAX_ACTIVE_FILES,
    MAX_ACTIVE_TASKS,
    MAX_PINS,
    RAM_SAVE_DEBOUNCE_SECONDS,
    get_ram_path,
)
from wabisabi.core.paths import replace_file_text
from wabisabi.ram.debounce import DebouncedWriter, Scheduler
from wabisabi.ram.injection import build_ram_context
from wabisabi.ram.presets import get_device_preset
from wabisabi.ram.schema import (
    ActiveTask,
    DeviceProfile,
    PinKind,
    PinnedItem,
    PinSource,
    TaskStatus,
    TrackedFile,
    WorkingMemory,
    utc_now,
)

if TYPE_CHECKING:
    from wabisabi.config.schema import RamConfig

logger = logging.getLogger(__name__)


def _short_id() -> str:
    return uuid.uuid4().hex[:8]


class WorkingMemoryStore:
    """Pinned items, tracked files, active tasks, and device profile for a session.

    Example:
        store = WorkingMemoryStore(Path("~/.wabisabi/ram.json").expanduser())
        store.load()
        store.pin("Use Postgres, not SQLite", kind="decision", importance=0.9)
        context_block = store.build_context(ComplexityLevel.MODERATE)
        ...
        store.flush()  # before exit
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] | None = None,
        debounce_seconds: float = RAM_SAVE_DEBOUNCE_SECONDS,
        max_pins: int = MAX_PINS,
        max_active_files: int = MAX_ACTIVE_FILES,
        max_active_tasks: int = MAX_ACTIVE_TASKS,
    ) -> None:
        """Initialize the store with an empty working memory.

        Args:
            path: File to persist to (default: ~/.wabisabi/ram.json).
            scheduler: Timer source for debounced saves (default: asyncio loop).
            clock: Returns the current aware datetime (for TTLs and timestamps).
            debounce_seconds: Delay between the first mutation and the save.
            max_pins: Pin capacity; least important pins are evicted.
            max_active_files: Tracked-file capacity; least recent are evicted.
            max_active_tasks: Task capacity; completed, then oldest, are evicted.
        """
        self.path = path or get_ram_path()
        self._clock = clock or utc_now
        self._max_pins = max_pins
        self._max_active_files = max_active_files
        self._max_active_tasks = max_active_tasks
        self._memory = WorkingMemory()
        self._writer = DebouncedWriter(self.save, debounce_seconds, scheduler)

    @classmethod
    def from_config(
        cls,
        config: "RamConfig",
        *,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> "WorkingMemoryStore":
        """Create a store from the `ram` section of the config."""
        path = Path(config.path).expanduser() if config.path else None
        return cls(
            path,
            scheduler=scheduler,
            clock=clock,
            debounce_seconds=config.save_debounce_seconds,
            max_pins=config.max_pins,
            max_active_files=config.max_active_files,
            max_active_tasks=config.max_active_tasks,
        )

    @property
    def memory(self) -> WorkingMemory:
        """A deep copy of the current working memory."""
        return self._memory.model_copy(deep=True)

    @property
    def dirty(self) -> bool:
        """True when there are mutations not yet written to disk."""
        return self._writer.dirty

    @property
    def save_pending(self) -> bool:
        """True while a debounced save is scheduled."""
        return self._writer.pending

    # === Persistence ===

    def load(self) -> WorkingMemory:
        """Load working memory from disk, falling back to defaults.

        Expired pins are swept after a successful load.

        Returns:
            The loaded (or fresh) working memory.
        """
        self._memory = self._read()
        self.cleanup_expired()
        return self.memory

    def _read(self) -> WorkingMemory:
        if not self.path.is_file():
            logger.debug("No working memory at %s, starting fresh", self.path)
            return WorkingMemory()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return WorkingMemory.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Discarding unreadable working memory at %s: %s", self.path, e)
            return WorkingMemory()

    def save(self) -> bool:
        """Write working memory to disk atomically.

        Returns:
            True on success; False if the write failed (the error is logged).
        """
        self._memory.metadata.updated_at = self._clock()
        try:
            replace_file_text(self.path, self._memory.model_dump_json(indent=2))
        except OSError as e:
            logger.warning("Failed to save working memory to %s: %s", self.path, e)
            return False
        logger.debug("Saved working memory to %s", self.path)
        return True

    def flush(self) -> bool:
        """Cancel any pending save and write immediately if dirty."""
        return self._writer.flush()

    def _touch(self) -> None:
        self._writer.schedule()

    # === Pinned Items ===

    def pin(
        self,
        content: str,
        kind: PinKind = "fact",
        source: PinSource = "user",
        importance: float = 0.5,
        ttl_minutes: float | None = None,
    ) -> PinnedItem:
        """Pin an item to working memory.

        Args:
            content: The fact, decision, or instruction to keep.
            kind: decision, fact, task, instruction, or reference.
            source: Who pinned it: user, agent, or system.
            importance: 0-1; lower-importance pins are evicted first.
            ttl_minutes: Minutes until the pin expires (None/0 = permanent).

        Returns:
            The created pin. It may already be evicted if the store was full
            of more important pins.
        """
        now = self._clock()
        item = PinnedItem(
            id=_short_id(),
            content=content,
            kind=kind,
            source=source,
            created_at=now,
            expires_at=now + timedelta(minutes=ttl_minutes) if ttl_minutes else None,
            importance=max(0.0, min(importance, 1.0)),
        )
        self._memory.pins.append(item)

        if len(self._memory.pins) > self._max_pins:
            self._memory.pins.sort(key=lambda p: p.importance, reverse=True)
            evicted = self._memory.pins[self._max_pins:]
            del self._memory.pins[self._max_pins:]
            logger.debug("Evicted %d low-importance pins", len(evicted))

        self._touch()
        return item

    def unpin(self, pin_id: str) -> bool:
        """Remove a pin by id. Returns False if no such pin exists."""
        before = len(self._memory.pins)
        self._memory.pins = [p for p in self._memory.pins if p.id != pin_id]
        if len(self._memory.pins) < before:
            self._touch()
            return True
        return False

    def get_pins(self, limit: int | None = None) -> list[PinnedItem]:
        """Pins sorted by importance, most important first."""
        pins = sorted(self._memory.pins, key=lambda p: p.importance, reverse=True)
        return pins[:limit] if limit else pins

    def cleanup_expired(self) -> int:
        """Remove pins whose TTL has passed.

        Returns:
            Number of pins removed.
        """
        now = self._clock()
        before = len(self._memory.pins)
        self._memory.pins = [p for p in self._memory.pins if not p.is_expired(now)]
        removed = before - len(self._memory.pins)
        if removed:
            logger.debug("Swept %d expired pins", removed)
            self._touch()
        return removed

    # === Tracked Files ===

    def track_file_access(self, path: str, summary: str | None = None) -> TrackedFile:
        """Record an access to a file, creating its entry if needed."""
        now = self._clock()
        existing = next((f for f in self._memory.files if f.path == path), None)

        if existing is not None:
            existing.last_accessed = now
            existing.access_count += 1
            if summary:
                existing.summary = summary
            entry = existing
        else:
            entry = TrackedFile(path=path, last_accessed=now, summary=summary)
            self._memory.files.append(entry)
            while len(self._memory.files) > self._max_active_files:
                # The new entry is the most recent; evict among the others
                stale = min(self._memory.files[:-1], key=lambda f: f.last_accessed)
                self._memory.files.remove(stale)

        self._touch()
        return entry

    def get_active_files(self, limit: int = 10) -> list[TrackedFile]:
        """Most recently accessed files first."""
        files = sorted(self._memory.files, key=lambda f: f.last_accessed, reverse=True)
        return files[:limit]

    # === Active Tasks ===

    def add_task(self, description: str, subtasks: list[str] | None = None) -> ActiveTask:
        """Add an active task.

        When over capacity, completed tasks are dropped first, then the oldest.
        """
        now = self._clock()
        task = ActiveTask(
            id=_short_id(),
            description=description,
            created_at=now,
            updated_at=now,
            subtasks=list(subtasks or []),
        )
        self._memory.tasks.append(task)

        if len(self._memory.tasks) > self._max_active_tasks:
            self._memory.tasks = [t for t in self._memory.tasks if t.status != "completed"]
            if len(self._memory.tasks) > self._max_active_tasks:
                # Oldest first in insertion order; keep the newest
                del self._memory.tasks[: len(self._memory.tasks) - self._max_active_tasks]

        self._touch()
        return task

    def update_task_status(self, task_id: str, status: TaskStatus) -> bool:
        """Set a task's status. Returns False if no such task exists."""
        task = next((t for t in self._memory.tasks if t.id == task_id), None)
        if task is None:
            return False
        task.status = status
        task.updated_at = self._clock()
        self._touch()
        return True

    def complete_task(self, task_id: str) -> bool:
        """Mark a task completed. Returns False if no such task exists."""
        return self.update_task_status(task_id, "completed")

    def get_active_tasks(self) -> list[ActiveTask]:
        """Tasks that are not completed, in creation order."""
        return [t for t in self._memory.tasks if t.status != "completed"]

    # === Device Profile ===

    def set_device_profile(self, kind: str) -> DeviceProfile:
        """Switch to a preset device profile.

        Unknown kinds leave the current profile untouched.

        Returns:
            The profile in effect after the call.
        """
        preset = get_device_preset(kind)
        if preset is None:
            logger.debug("Unknown device profile %r, keeping %s", kind, self._memory.device_profile.kind)
            return self._memory.device_profile
        self._memory.device_profile = preset
        self._touch()
        return preset

    def get_device_profile(self) -> DeviceProfile:
        return self._memory.device_profile

    def get_effective_context_limit(self, model_limit: int) -> int:
        """The smaller of the model's context limit and the device ceiling."""
        return min(model_limit, self._memory.device_profile.max_context_tokens)

    def get_compaction_threshold(self) -> float:
        return self._memory.device_profile.compaction_threshold

    # === Session Continuity ===

    def set_last_session_summary(self, summary: str) -> None:
        """Store a summary for the next session and count this session."""
        self._memory.last_session_summary = summary
        self._memory.metadata.session_count += 1
        self._touch()

    def get_last_session_summary(self) -> str | None:
        return self._memory.last_session_summary

    # === Context Building ===

    def build_context(self, level: ComplexityLevel = ComplexityLevel.MODERATE) -> str:
        """Build the working-memory block to inject into the system prompt.

        Args:
            level: Complexity of the current request; scales what is included.

        Returns:
            Formatted block, or "" if nothing qualifies.
        """
        return build_ram_context(self, level)
