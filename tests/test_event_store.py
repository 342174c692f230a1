"""
Unit tests for the local event store.

Tests record naming, eviction at capacity, deletion, quarantine and
tolerance of storage failures.
"""

import json
import shutil
import tempfile
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from core.buffer.store import EventStore, RECORD_NAME_PATTERN
from core.exceptions import CorruptRecordError
from core.models.config import ClientConfig


class TestEventStore:
    """Test EventStore behaviour against a real temporary directory"""

    def setup_method(self):
        """Setup test environment"""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.root = self.temp_dir / "keen"
        self.store = EventStore(self.root, max_events_per_collection=5, events_to_forget=2)
        assert self.store.ensure_root()

    def teardown_method(self):
        """Cleanup test environment"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_enqueue_writes_json_record(self):
        """Test enqueue persists the event under the collection directory"""
        path = self.store.enqueue("purchases", {"item": "golden widget"})

        assert path is not None
        assert path.parent == self.root / "purchases"
        assert RECORD_NAME_PATTERN.match(path.name)
        assert json.loads(path.read_text(encoding="utf-8")) == {"item": "golden widget"}

    def test_record_names_preserve_enqueue_order(self):
        """Test records listed oldest first even within one millisecond"""
        with patch("core.buffer.store.time.time", return_value=1700000000.0):
            paths = [self.store.enqueue("clicks", {"n": i}) for i in range(3)]

        assert self.store.list_records("clicks") == paths
        assert [self.store.read_record(p)["n"] for p in paths] == [0, 1, 2]
        assert len({p.name for p in paths}) == 3

    def test_eviction_at_capacity(self):
        """Test six adds with capacity 5 and forget 2 leave four records"""
        paths = [self.store.enqueue("views", {"n": i}) for i in range(6)]

        remaining = self.store.list_records("views")
        assert len(remaining) == 4
        assert remaining == paths[2:]
        assert not paths[0].exists()
        assert not paths[1].exists()

    def test_collections_evicted_independently(self):
        """Test capacity is per collection"""
        for i in range(5):
            self.store.enqueue("a", {"n": i})
        self.store.enqueue("b", {"n": 0})

        assert self.store.count("a") == 5
        assert self.store.count("b") == 1

    def test_non_record_files_ignored(self):
        """Test stray files are not listed or counted toward capacity"""
        directory = self.root / "views"
        directory.mkdir()
        (directory / "notes.txt").write_text("not an event")
        (directory / ".DS_Store").write_text("")

        self.store.enqueue("views", {"n": 1})

        assert self.store.count("views") == 1

    def test_list_collections_excludes_quarantine(self):
        """Test quarantine directory is not treated as a collection"""
        self.store.enqueue("b", {"n": 1})
        self.store.enqueue("a", {"n": 1})
        self.store.quarantine_dir.mkdir(parents=True)

        assert self.store.list_collections() == ["a", "b"]

    def test_delete(self):
        """Test delete removes a record and tolerates missing ones"""
        path = self.store.enqueue("a", {"n": 1})

        assert self.store.delete(path) is True
        assert not path.exists()
        assert self.store.delete(path) is True

    def test_delete_failure_reported(self):
        """Test delete returns False when removal fails"""
        path = self.store.enqueue("a", {"n": 1})

        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            assert self.store.delete(path) is False

        assert path.exists()

    def test_read_record_corrupt(self):
        """Test undecodable record raises CorruptRecordError"""
        directory = self.root / "a"
        directory.mkdir()
        record = directory / "000000000000001.000000"
        record.write_bytes(b"{not json")

        with pytest.raises(CorruptRecordError):
            self.store.read_record(record)

    def test_read_record_non_object(self):
        """Test a JSON value that is not an object is corrupt"""
        directory = self.root / "a"
        directory.mkdir()
        record = directory / "000000000000001.000000"
        record.write_bytes(b"[1, 2, 3]")

        with pytest.raises(CorruptRecordError):
            self.store.read_record(record)

    def test_quarantine_moves_record(self):
        """Test quarantined records leave the collection"""
        path = self.store.enqueue("a", {"n": 1})

        target = self.store.quarantine(path)

        assert target is not None
        assert target.exists()
        assert not path.exists()
        assert target.parent == self.store.quarantine_dir / "a"
        assert self.store.count("a") == 0
        assert self.store.list_quarantined() == [target]

    def test_quarantine_name_collision(self):
        """Test quarantining the same name twice keeps both files"""
        first = self.store.enqueue("a", {"n": 1})
        first_target = self.store.quarantine(first)
        first.write_bytes(b"garbage")

        second_target = self.store.quarantine(first)

        assert second_target != first_target
        assert second_target.name == f"{first.name}-1"
        assert len(self.store.list_quarantined()) == 2

    @pytest.mark.parametrize("name", ["a/b", "..", ".", "a\\b", ".hidden", "100%", "a b", "#tag"])
    def test_path_like_collection_names_stored_inside_root(self, name):
        """Test separators, dot names and escapes map to one directory under the root"""
        path = self.store.enqueue(name, {"n": 1})

        assert path is not None
        assert path.parent.parent == self.root
        assert not path.parent.name.startswith(".")
        assert self.store.list_records(name) == [path]
        assert self.store.list_collections() == [name]

    def test_long_ascii_collection_name(self):
        """Test a 256 character name is queued under a hashed directory"""
        name = "a" * 256

        path = self.store.enqueue(name, {"n": 1})

        assert path is not None
        assert len(path.parent.name.encode("utf-8")) <= 255
        assert (path.parent / ".collection").read_text(encoding="utf-8") == name
        assert self.store.list_records(name) == [path]
        assert self.store.list_collections() == [name]

    def test_multibyte_collection_name(self):
        """Test a name longer than 255 bytes in UTF-8 is queued"""
        name = "é" * 200

        path = self.store.enqueue(name, {"n": 1})

        assert path is not None
        assert len(path.parent.name.encode("utf-8")) <= 255
        assert self.store.count(name) == 1
        assert self.store.list_collections() == [name]

    def test_short_multibyte_collection_name_readable(self):
        """Test short non-ASCII names keep a percent-encoded directory"""
        path = self.store.enqueue("café", {"n": 1})

        assert path.parent.name == "caf%C3%A9"
        assert self.store.list_collections() == ["café"]

    def test_hashed_directory_claimed_by_other_name(self):
        """Test a mismatched name file is refused rather than mixing collections"""
        name = "b" * 300
        path = self.store.enqueue(name, {"n": 1})
        (path.parent / ".collection").write_text("someone else", encoding="utf-8")

        assert self.store.enqueue(name, {"n": 2}) is None
        assert self.store.list_collections() == []

    def test_foreign_directories_skipped(self):
        """Test directories that no collection maps to are not listed"""
        (self.root / "not encoded").mkdir()
        (self.root / "#deadbeef").mkdir()
        self.store.enqueue("real", {"n": 1})

        assert self.store.list_collections() == ["real"]

    def test_unstorable_collection_name(self):
        """Test names that cannot be encoded are logged and dropped"""
        assert self.store.enqueue("bad\udc80", {"n": 1}) is None
        assert self.store.enqueue("", {"n": 1}) is None
        assert self.store.list_records("") == []

    def test_filesystem_errors_not_raised(self):
        """Test errors from inspecting directories never reach the caller"""
        too_long = OSError(36, "File name too long")
        with patch.object(Path, "is_dir", side_effect=too_long), \
                patch.object(Path, "mkdir", side_effect=too_long):
            assert self.store.enqueue("a", {"n": 1}) is None
            assert self.store.list_records("a") == []
            assert self.store.list_collections() == []
            assert self.store.list_quarantined() == []
            assert self.store.ensure_root() is False

    def test_record_order_survives_clock_step_back(self):
        """Test a record written after the clock moved back still sorts last"""
        with patch("core.buffer.store.time") as mock_time:
            mock_time.time.side_effect = [2000.0, 1000.0, 1000.0]
            first = self.store.enqueue("clicks", {"n": 1})
            second = self.store.enqueue("clicks", {"n": 2})
            third = self.store.enqueue("clicks", {"n": 3})

        assert self.store.list_records("clicks") == [first, second, third]
        assert [self.store.read_record(p)["n"] for p in self.store.list_records("clicks")] == [1, 2, 3]

    def test_clock_step_back_after_eviction(self):
        """Test eviction removes the oldest events even when the clock moved back"""
        with patch("core.buffer.store.time") as mock_time:
            mock_time.time.side_effect = [5000.0] * 3 + [1000.0] * 3
            for i in range(6):
                self.store.enqueue("views", {"n": i})

        assert [self.store.read_record(p)["n"] for p in self.store.list_records("views")] == [2, 3, 4, 5]

    def test_counter_rolls_into_next_millisecond(self):
        """Test a full counter never produces a name that sorts too early"""
        directory = self.root / "clicks"
        directory.mkdir()
        (directory / "000000002000000.999999").write_bytes(b'{"n": 0}')

        with patch("core.buffer.store.time") as mock_time:
            mock_time.time.return_value = 2000.0
            path = self.store.enqueue("clicks", {"n": 1})

        assert path.name == "000000002000001.000000"
        assert self.store.list_records("clicks")[-1] == path

    def test_unserializable_event_dropped(self):
        """Test encoding failures are logged and nothing is written"""
        assert self.store.enqueue("a", {"obj": object()}) is None
        assert self.store.count("a") == 0

    def test_write_failure_returns_none(self):
        """Test storage failures do not propagate"""
        with patch("core.buffer.store.open", create=True, side_effect=PermissionError("denied")):
            assert self.store.enqueue("a", {"n": 1}) is None

    def test_list_records_missing_collection(self):
        """Test unknown collections are empty"""
        assert self.store.list_records("unknown") == []
        assert self.store.count("unknown") == 0

    def test_concurrent_enqueue(self):
        """Test concurrent producers never lose or overwrite records"""
        store = EventStore(self.root, max_events_per_collection=1000, events_to_forget=2)

        def produce(offset):
            for i in range(20):
                store.enqueue("busy", {"n": offset + i})

        threads = [threading.Thread(target=produce, args=(k * 100,)) for k in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.count("busy") == 80


class TestEventStoreRoot:
    """Test store root handling"""

    def setup_method(self):
        """Setup test environment"""
        self.temp_dir = Path(tempfile.mkdtemp())

    def teardown_method(self):
        """Cleanup test environment"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_ensure_root_creates_directory(self):
        """Test root is created on demand"""
        store = EventStore(self.temp_dir / "nested" / "keen")

        assert store.ensure_root() is True
        assert (self.temp_dir / "nested" / "keen").is_dir()

    def test_ensure_root_fails_on_file(self):
        """Test a regular file in place of the root is unusable"""
        blocker = self.temp_dir / "blocker"
        blocker.write_text("file")

        assert EventStore(blocker).ensure_root() is False
        assert EventStore(blocker / "keen").ensure_root() is False

    def test_from_config(self):
        """Test store settings are taken from client configuration"""
        config = ClientConfig(
            project_id="project",
            cache_dir=self.temp_dir,
            storage={"max_events_per_collection": 7, "events_to_forget": 3}
        )

        store = EventStore.from_config(config)

        assert store.root == self.temp_dir / "keen"
        assert store.max_events_per_collection == 7
        assert store.events_to_forget == 3
