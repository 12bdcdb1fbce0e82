"""Tests for WorkingMemoryStore."""

import asyncio
import json

import pytest

from wabisabi.config.schema import RamConfig
from wabisabi.context.complexity import ComplexityLevel
from wabisabi.ram.presets import DEVICE_PRESETS
from wabisabi.ram.schema import WorkingMemory
from wabisabi.ram.store import WorkingMemoryStore


@pytest.fixture
def store(ram_path, scheduler, clock) -> WorkingMemoryStore:
    """Create a store on a temp path with a fake clock and scheduler."""
    return WorkingMemoryStore(ram_path, scheduler=scheduler, clock=clock)


class TestPins:
    """Tests for pinned items."""

    def test_pin_returns_item(self, store):
        item = store.pin("Use Postgres", kind="decision", source="agent", importance=0.9)

        assert item.content == "Use Postgres"
        assert item.kind == "decision"
        assert item.source == "agent"
        assert item.expires_at is None
        assert len(item.id) == 8
        assert store.get_pins() == [item]

    def test_pins_sorted_by_importance(self, store):
        store.pin("low", importance=0.2)
        store.pin("high", importance=0.9)
        store.pin("mid", importance=0.5)

        assert [p.content for p in store.get_pins()] == ["high", "mid", "low"]
        assert [p.content for p in store.get_pins(limit=2)] == ["high", "mid"]

    def test_importance_clamped(self, store):
        assert store.pin("too much", importance=3.0).importance == 1.0
        assert store.pin("too little", importance=-1.0).importance == 0.0

    def test_capacity_evicts_least_important(self, store):
        """The 51st pin pushes out the least important one."""
        store.pin("weakest", importance=0.1)
        for i in range(49):
            store.pin(f"pin {i}", importance=0.5)
        store.pin("newcomer", importance=0.9)

        contents = [p.content for p in store.get_pins()]
        assert len(contents) == 50
        assert "weakest" not in contents
        assert contents[0] == "newcomer"

    def test_custom_capacity(self, ram_path, scheduler):
        store = WorkingMemoryStore(ram_path, scheduler=scheduler, max_pins=2)
        store.pin("a", importance=0.3)
        store.pin("b", importance=0.6)
        store.pin("c", importance=0.9)

        assert [p.content for p in store.get_pins()] == ["c", "b"]

    def test_unpin(self, store):
        item = store.pin("temporary")

        assert store.unpin(item.id) is True
        assert store.unpin(item.id) is False
        assert store.get_pins() == []

    def test_invalid_kind_rejected(self, store):
        with pytest.raises(ValueError):
            store.pin("bad", kind="opinion")

    def test_ttl_expiry(self, store, clock):
        store.pin("short lived", ttl_minutes=5)
        store.pin("permanent")

        clock.advance(minutes=4)
        assert store.cleanup_expired() == 0

        clock.advance(minutes=1)
        assert store.cleanup_expired() == 1
        assert [p.content for p in store.get_pins()] == ["permanent"]

    def test_zero_ttl_is_permanent(self, store):
        assert store.pin("forever", ttl_minutes=0).expires_at is None


class TestTrackedFiles:
    """Tests for tracked files."""

    def test_track_new_file(self, store):
        entry = store.track_file_access("src/app.py", "entry point")

        assert entry.access_count == 1
        assert entry.summary == "entry point"

    def test_repeat_access_increments(self, store, clock):
        store.track_file_access("src/app.py", "entry point")
        clock.advance(seconds=10)
        entry = store.track_file_access("src/app.py")

        assert entry.access_count == 2
        assert entry.summary == "entry point"
        assert entry.last_accessed == clock()
        assert len(store.get_active_files()) == 1

    def test_most_recent_first(self, store, clock):
        for name in ("a.py", "b.py", "c.py"):
            store.track_file_access(name)
            clock.advance(seconds=1)
        store.track_file_access("a.py")

        assert [f.path for f in store.get_active_files()] == ["a.py", "c.py", "b.py"]
        assert [f.path for f in store.get_active_files(limit=1)] == ["a.py"]

    def test_capacity_evicts_least_recent(self, store, clock):
        for i in range(31):
            store.track_file_access(f"file{i}.py")
            clock.advance(seconds=1)

        paths = [f.path for f in store.get_active_files(limit=100)]
        assert len(paths) == 30
        assert "file0.py" not in paths
        assert "file30.py" in paths

    def test_capacity_with_identical_timestamps(self, store):
        """The file just accessed is never the one evicted."""
        for i in range(31):
            store.track_file_access(f"file{i}.py")

        paths = [f.path for f in store.memory.files]
        assert len(paths) == 30
        assert "file30.py" in paths
        assert "file0.py" not in paths


class TestTasks:
    """Tests for active tasks."""

    def test_add_task(self, store):
        task = store.add_task("Migrate billing", subtasks=["schema", "backfill"])

        assert task.status == "active"
        assert task.subtasks == ["schema", "backfill"]
        assert store.get_active_tasks() == [task]

    def test_complete_task(self, store):
        task = store.add_task("Write docs")

        assert store.complete_task(task.id) is True
        assert store.get_active_tasks() == []
        assert store.complete_task("missing") is False

    def test_update_status(self, store, clock):
        task = store.add_task("Write docs")
        clock.advance(minutes=1)

        assert store.update_task_status(task.id, "paused") is True
        updated = store.memory.tasks[0]
        assert updated.status == "paused"
        assert updated.updated_at > updated.created_at

    def test_capacity_drops_completed_first(self, store):
        first = store.add_task("task 0")
        done = store.add_task("task 1")
        store.complete_task(done.id)
        for i in range(2, 21):
            store.add_task(f"task {i}")

        descriptions = [t.description for t in store.memory.tasks]
        assert len(descriptions) == 20
        assert "task 1" not in descriptions
        assert first.description in descriptions

    def test_capacity_then_drops_oldest(self, store):
        for i in range(21):
            store.add_task(f"task {i}")

        descriptions = [t.description for t in store.get_active_tasks()]
        assert len(descriptions) == 20
        assert descriptions[0] == "task 1"
        assert descriptions[-1] == "task 20"


class TestDeviceProfile:
    """Tests for device profiles."""

    def test_default_is_laptop(self, store):
        profile = store.get_device_profile()
        assert profile == DEVICE_PRESETS["laptop"]
        assert store.get_compaction_threshold() == 0.75

    @pytest.mark.parametrize(
        ("kind", "tokens", "threshold"),
        [
            ("mobile", 16_384, 0.65),
            ("laptop", 65_536, 0.75),
            ("desktop", 128_000, 0.80),
            ("server", 200_000, 0.85),
        ],
    )
    def test_presets(self, store, kind, tokens, threshold):
        profile = store.set_device_profile(kind)

        assert profile.kind == kind
        assert profile.max_context_tokens == tokens
        assert store.get_compaction_threshold() == threshold

    def test_case_insensitive(self, store):
        assert store.set_device_profile("MOBILE").kind == "mobile"

    def test_unknown_kind_is_noop(self, store):
        store.set_device_profile("desktop")
        assert store.set_device_profile("toaster").kind == "desktop"

    def test_effective_context_limit(self, store):
        store.set_device_profile("mobile")
        assert store.get_effective_context_limit(128_000) == 16_384
        assert store.get_effective_context_limit(8_192) == 8_192


class TestSessionSummary:
    """Tests for session continuity."""

    def test_set_summary_counts_sessions(self, store):
        assert store.get_last_session_summary() is None

        store.set_last_session_summary("User: hi | Agent: hello")
        store.set_last_session_summary("User: bye")

        assert store.get_last_session_summary() == "User: bye"
        assert store.memory.metadata.session_count == 2


class TestPersistence:
    """Tests for load/save."""

    def test_missing_file_loads_defaults(self, store):
        memory = store.load()
        assert memory == WorkingMemory(metadata=memory.metadata)
        assert memory.device_profile.kind == "laptop"

    def test_corrupt_file_loads_defaults(self, store, ram_path):
        ram_path.parent.mkdir(parents=True)
        ram_path.write_text("{not json")

        memory = store.load()

        assert memory.pins == []
        assert memory.device_profile.kind == "laptop"

    def test_invalid_values_load_defaults(self, store, ram_path):
        ram_path.parent.mkdir(parents=True)
        ram_path.write_text(json.dumps({"pins": [{"id": "x"}]}))

        assert store.load().pins == []

    def test_round_trip(self, store, ram_path, scheduler, clock):
        store.pin("Use Postgres", kind="decision", importance=0.9)
        store.track_file_access("src/db.py")
        store.add_task("Migrate schema")
        store.set_device_profile("server")
        assert store.flush() is True

        reloaded = WorkingMemoryStore(ram_path, scheduler=scheduler, clock=clock)
        memory = reloaded.load()

        assert [p.content for p in memory.pins] == ["Use Postgres"]
        assert [f.path for f in memory.files] == ["src/db.py"]
        assert [t.description for t in memory.tasks] == ["Migrate schema"]
        assert memory.device_profile.kind == "server"

    def test_file_uses_snake_case_and_version(self, store, ram_path):
        store.pin("fact")
        store.flush()

        data = json.loads(ram_path.read_text())
        assert data["metadata"]["version"] == "1.0.0"
        assert "device_profile" in data
        assert "created_at" in data["pins"][0]

    def test_unknown_keys_ignored(self, store, ram_path):
        ram_path.parent.mkdir(parents=True)
        ram_path.write_text(json.dumps({"future_field": 1, "last_session_summary": "hi"}))

        assert store.load().last_session_summary == "hi"

    def test_naive_timestamps_assumed_utc(self, store, ram_path, clock):
        ram_path.parent.mkdir(parents=True)
        ram_path.write_text(json.dumps({
            "pins": [{
                "id": "abc",
                "content": "old",
                "created_at": "2020-01-01T00:00:00",
                "expires_at": "2020-01-02T00:00:00",
            }]
        }))

        memory = store.load()

        # Expired relative to the clock, so swept on load
        assert memory.pins == []
        assert store.dirty

    def test_save_failure_is_swallowed(self, store, ram_path):
        ram_path.mkdir(parents=True)  # a directory where the file should be
        store.pin("fact")

        assert store.flush() is False
        assert store.dirty
        assert store.get_pins()[0].content == "fact"

    def test_memory_is_a_copy(self, store):
        store.memory.pins.append("junk")
        assert store.get_pins() == []


class TestDebouncedSaves:
    """Tests for the store's debounced persistence."""

    def test_mutation_schedules_save(self, store, scheduler, ram_path):
        store.pin("fact")

        assert store.save_pending
        assert store.dirty
        assert not ram_path.exists()

        scheduler.advance(3.0)

        assert ram_path.exists()
        assert not store.dirty
        assert not store.save_pending

    def test_mutations_share_one_write(self, store, scheduler):
        store.pin("a")
        scheduler.advance(1.0)
        store.pin("b")
        store.track_file_access("x.py")

        assert len(scheduler.armed) == 1

        scheduler.advance(2.0)
        assert not store.dirty

    def test_flush_cancels_timer(self, store, scheduler, ram_path):
        store.pin("fact")
        store.flush()

        assert ram_path.exists()
        assert scheduler.armed == []

    def test_from_config(self, tmp_path, scheduler):
        config = RamConfig(path=str(tmp_path / "mem.json"), save_debounce_seconds=1.0, max_pins=1)
        store = WorkingMemoryStore.from_config(config, scheduler=scheduler)
        store.pin("a", importance=0.1)
        store.pin("b", importance=0.2)

        assert [p.content for p in store.get_pins()] == ["b"]
        scheduler.advance(1.0)
        assert (tmp_path / "mem.json").exists()


class TestBuildContext:
    """Tests for the store's context block."""

    def test_empty_store(self, store):
        assert store.build_context(ComplexityLevel.COMPLEX) == ""

    def test_delegates_to_injection(self, store):
        store.pin("Use pytest", kind="instruction")
        assert "[INSTRUCTION] Use pytest" in store.build_context()


class TestSavesWithEventLoop:
    """Tests for debounced saves on the real asyncio scheduler."""

    def test_change_before_loop_still_saves_inside_loop(self, ram_path):
        store = WorkingMemoryStore(ram_path, debounce_seconds=0.01)
        store.set_device_profile("mobile")

        assert store.dirty
        assert not store.save_pending

        async def session() -> None:
            store.pin("Use Postgres")
            assert store.save_pending
            await asyncio.sleep(0.1)

        asyncio.run(session())

        assert ram_path.exists()
        assert not store.dirty
        saved = json.loads(ram_path.read_text())
        assert saved["device_profile"]["kind"] == "mobile"
        assert saved["pins"][0]["content"] == "Use Postgres"
