"""Pydantic models for the persisted working memory (ram.json).

Working memory sits between the live conversation (short-term, compacted as
it grows) and anything the caller keeps for the long term. It holds pinned
facts, tracked files, active tasks, the device profile, and a summary of the
previous session.

Unknown keys are ignored so an older build can read a file written by a newer
one; `metadata.version` records the schema the file was written with.
"""

from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from wabisabi.core.constants import RAM_SCHEMA_VERSION

PinKind = Literal["decision", "fact", "task", "instruction", "reference"]
PinSource = Literal["user", "agent", "system"]
TaskStatus = Literal["active", "paused", "completed"]
DeviceKind = Literal["mobile", "laptop", "desktop", "server"]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _assume_utc(value: datetime) -> datetime:
    # Hand-edited files may carry naive timestamps
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


Timestamp = Annotated[datetime, AfterValidator(_assume_utc)]


class PinnedItem(BaseModel):
    """A fact or decision explicitly kept across compaction and sessions."""

    model_config = ConfigDict(extra="ignore")

    id: str
    content: str
    kind: PinKind = "fact"
    source: PinSource = "user"
    created_at: Timestamp
    expires_at: Timestamp | None = None
    """None means the pin is permanent."""

    importance: float = Field(default=0.5, ge=0.0, le=1.0)

    def is_expired(self, now: datetime) -> bool:
        """Check whether the pin's TTL has passed."""
        return self.expires_at is not None and self.expires_at <= now


class TrackedFile(BaseModel):
    """A file the user has been working with."""

    model_config = ConfigDict(extra="ignore")

    path: str
    last_accessed: Timestamp
    access_count: int = Field(default=1, ge=1)
    summary: str | None = None
    """Brief description of what's in the file."""


class ActiveTask(BaseModel):
    """A task being worked on, with its subtasks in order."""

    model_config = ConfigDict(extra="ignore")

    id: str
    description: str
    status: TaskStatus = "active"
    created_at: Timestamp
    updated_at: Timestamp
    subtasks: list[str] = []


class DeviceProfile(BaseModel):
    """Token budget and compaction aggressiveness for a runtime environment.

    Only the presets in wabisabi.ram.presets are legal values; the store
    replaces the whole profile rather than editing fields.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    kind: DeviceKind = "laptop"
    max_context_tokens: int = Field(default=65_536, gt=0)
    max_working_memory_items: int = Field(default=50, gt=0)
    compaction_threshold: float = Field(default=0.75, ge=0.5, le=0.95)


class RamMetadata(BaseModel):
    """Bookkeeping for the working-memory file."""

    model_config = ConfigDict(extra="ignore")

    version: str = RAM_SCHEMA_VERSION
    updated_at: Timestamp = Field(default_factory=utc_now)
    session_count: int = Field(default=0, ge=0)


class WorkingMemory(BaseModel):
    """Aggregate root persisted as ram.json.

    Example:
        {
            "metadata": {"version": "1.0.0", "updated_at": "...", "session_count": 3},
            "pins": [{"id": "a1b2c3d4", "content": "Use pytest", "kind": "instruction", ...}],
            "files": [{"path": "src/app.py", "last_accessed": "...", "access_count": 2}],
            "tasks": [],
            "device_profile": {"kind": "laptop", "max_context_tokens": 65536, ...},
            "last_session_summary": null
        }
    """

    model_config = ConfigDict(extra="ignore")

    metadata: RamMetadata = Field(default_factory=RamMetadata)
    pins: list[PinnedItem] = []
    files: list[TrackedFile] = []
    tasks: list[ActiveTask] = []
    device_profile: DeviceProfile = Field(default_factory=DeviceProfile)
    last_session_summary: str | None = None
