"""Tests for file-backed storage, locking and the in-memory repository."""

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
import yaml

from vibe_ticket.errors import (
    StorageCorruptError,
    StorageIOError,
    StorageLockedError,
    TicketNotFoundError,
)
from vibe_ticket.models import Priority, Status, Ticket, TicketId
from vibe_ticket.storage import (
    ActiveTicketRepository,
    FileStorage,
    InMemoryStorage,
    StorageLock,
    TicketRepository,
)


@pytest.fixture
def storage(tmp_path: Path) -> FileStorage:
    store = FileStorage(tmp_path / ".vibe-ticket", lock_timeout=2)
    store.ensure_directories()
    return store


@pytest.fixture(params=["file", "memory"])
def repository(request, tmp_path: Path):
    """Both backends, for contracts they share."""
    if request.param == "memory":
        return InMemoryStorage()
    store = FileStorage(tmp_path / ".vibe-ticket")
    store.ensure_directories()
    return store


class TestRecordContract:
    """Save/load/delete contract shared by every backend."""

    def test_backends_implement_protocols(self, repository):
        """Both backends satisfy the repository protocols."""
        assert isinstance(repository, TicketRepository)
        assert isinstance(repository, ActiveTicketRepository)

    def test_save_then_load_round_trip(self, repository):
        """A saved ticket loads back equal, tasks included."""
        ticket = Ticket(slug="fix-login-bug", title="Fix Login Bug", priority=Priority.HIGH, tags=["auth"])
        ticket.add_task("Write test")
        repository.save(ticket)

        assert repository.load(ticket.id) == ticket

    def test_save_overwrites(self, repository):
        """Saving the same id twice keeps one record."""
        ticket = Ticket(slug="a", title="Original")
        repository.save(ticket)
        ticket.title = "Changed"
        repository.save(ticket)

        assert repository.load(ticket.id).title == "Changed"
        assert len(repository.load_all()) == 1

    def test_unknown_id_is_not_found(self, repository):
        """load and delete raise for unknown ids, exists returns False."""
        missing = TicketId.new()

        with pytest.raises(TicketNotFoundError):
            repository.load(missing)
        with pytest.raises(TicketNotFoundError):
            repository.delete(missing)
        assert repository.exists(missing) is False

    def test_find_and_count_match_load_all(self, repository):
        """find keeps load_all order and count agrees with it."""
        for i, priority in enumerate([Priority.LOW, Priority.HIGH, Priority.HIGH]):
            repository.save(Ticket(slug=f"t-{i}", title=f"T {i}", priority=priority))

        high = repository.find(lambda t: t.priority is Priority.HIGH)

        assert {t.slug for t in high} == {"t-1", "t-2"}
        assert [t.id for t in high] == [t.id for t in repository.load_all() if t.priority is Priority.HIGH]
        assert repository.count(lambda t: t.priority is Priority.HIGH) == 2

    def test_loaded_ticket_is_a_copy(self, repository):
        """Mutating a loaded ticket does not touch the stored one."""
        ticket = Ticket(slug="a", title="A")
        repository.save(ticket)
        loaded = repository.load(ticket.id)
        loaded.title = "mutated"

        assert repository.load(ticket.id).title == "A"


class TestActiveContract:
    """Active-marker operations shared by every backend."""

    def test_set_get_clear(self, repository):
        """set_active makes one ticket active and clear_active empties the list."""
        ticket_id = TicketId.new()
        repository.set_active(ticket_id)
        assert repository.get_active() == ticket_id

        repository.clear_active()
        assert repository.get_active() is None
        assert repository.get_all_active() == []

    def test_add_active_deduplicates(self, repository):
        """Adding an already active id keeps the list unique and ordered."""
        a, b = TicketId.new(), TicketId.new()
        repository.add_active(a)
        repository.add_active(b)
        repository.add_active(a)

        assert repository.get_all_active() == [a, b]
        assert repository.get_active() == a

    def test_set_active_replaces_list(self, repository):
        """set_active drops every other active ticket."""
        a, b = TicketId.new(), TicketId.new()
        repository.add_active(a)
        repository.add_active(b)
        repository.set_active(b)

        assert repository.get_all_active() == [b]

    def test_remove_active(self, repository):
        """remove_active drops only the named id."""
        a, b = TicketId.new(), TicketId.new()
        repository.add_active(a)
        repository.add_active(b)
        repository.remove_active(a)

        assert repository.get_all_active() == [b]


class TestFileLayout:
    """Tests specific to FileStorage."""

    def test_path_depends_only_on_id(self, storage: FileStorage):
        """Record paths are named after the ticket id."""
        a, b = TicketId.new(), TicketId.new()

        assert storage.ticket_path(a) == storage.ticket_path(a)
        assert storage.ticket_path(a) != storage.ticket_path(b)
        assert storage.ticket_path(a).name == f"{a}.yaml"

    def test_record_is_readable_yaml(self, storage: FileStorage):
        """Records are plain YAML that a person can read."""
        ticket = Ticket(slug="a", title="A")
        storage.save(ticket)

        data = yaml.safe_load(storage.ticket_path(ticket.id).read_text())
        assert data["slug"] == "a"
        assert data["status"] == "todo"

    def test_save_leaves_no_temp_files(self, storage: FileStorage):
        """Atomic writes clean up their temporary file."""
        storage.save(Ticket(slug="a", title="A"))

        assert [p.name for p in storage.tickets_dir.iterdir() if p.name.endswith(".tmp")] == []

    def test_save_creates_missing_directories(self, tmp_path: Path):
        """Saving into a fresh root creates the tickets directory."""
        store = FileStorage(tmp_path / "fresh" / ".vibe-ticket")
        ticket = Ticket(slug="a", title="A")
        store.save(ticket)

        assert store.exists(ticket.id)

    def test_load_all_on_missing_directory(self, tmp_path: Path):
        """A missing root has no tickets."""
        assert FileStorage(tmp_path / "nothing").load_all() == []


class TestCorruptRecords:
    """load_all fails on a corrupt record unless asked to skip it."""

    def _write_corrupt(self, storage: FileStorage) -> Path:
        path = storage.ticket_path(TicketId.new())
        path.write_text("id: [unterminated\n")
        return path

    def test_load_corrupt_record(self, storage: FileStorage):
        """Unparseable YAML is a corrupt record."""
        path = self._write_corrupt(storage)
        ticket_id = TicketId.parse(path.stem)

        with pytest.raises(StorageCorruptError):
            storage.load(ticket_id)

    def test_load_all_propagates_corruption(self, storage: FileStorage):
        """load_all fails on the first corrupt record by default."""
        storage.save(Ticket(slug="good", title="Good"))
        self._write_corrupt(storage)

        with pytest.raises(StorageCorruptError):
            storage.load_all()

    def test_load_all_can_skip_corruption(self, storage: FileStorage):
        """skip_corrupt=True returns the readable records."""
        storage.save(Ticket(slug="good", title="Good"))
        self._write_corrupt(storage)

        assert [t.slug for t in storage.load_all(skip_corrupt=True)] == ["good"]

    def test_undecodable_record_is_corrupt(self, storage: FileStorage):
        """A record that is not UTF-8 is reported as corrupt."""
        path = storage.ticket_path(TicketId.new())
        path.write_bytes(b"\xff\xfe\x00garbage")

        with pytest.raises(StorageCorruptError, match="invalid UTF-8"):
            storage.load(TicketId.parse(path.stem))

    def test_load_all_skips_undecodable_record(self, storage: FileStorage):
        """Non-UTF-8 records are skipped like other corrupt ones."""
        storage.save(Ticket(slug="good", title="Good"))
        bad = Ticket(slug="bad", title="Bad")
        storage.save(bad)
        storage.ticket_path(bad.id).write_bytes(b"\xff\xfe\x00garbage")

        assert [t.slug for t in storage.load_all(skip_corrupt=True)] == ["good"]
        with pytest.raises(StorageCorruptError):
            storage.load_all()

    def test_undecodable_legacy_active_file(self, storage: FileStorage):
        """A non-UTF-8 legacy active file is corrupt, not an IO error."""
        (storage.root / "active_ticket").write_bytes(b"\xff\xfe")

        with pytest.raises(StorageCorruptError, match="invalid UTF-8"):
            storage.get_all_active()

    def test_structurally_invalid_record(self, storage: FileStorage):
        """Valid YAML missing required fields is corrupt."""
        path = storage.ticket_path(TicketId.new())
        path.write_text(yaml.safe_dump({"id": path.stem, "title": "no slug"}))

        with pytest.raises(StorageCorruptError, match="not a valid ticket"):
            storage.load_all()

    def test_corrupt_active_file(self, storage: FileStorage):
        """Bad ids in the active list are corrupt."""
        (storage.root / "active_tickets.yaml").write_text("active: [not-a-uuid]\n")

        with pytest.raises(StorageCorruptError):
            storage.get_all_active()


class TestActiveFiles:
    """The active list is canonical; the single-id file is read for migration."""

    def test_legacy_single_active_file_is_read(self, storage: FileStorage):
        """The old single-id active file is still honoured."""
        ticket_id = TicketId.new()
        (storage.root / "active_ticket").write_text(f"{ticket_id}\n")

        assert storage.get_active() == ticket_id

    def test_legacy_file_removed_on_write(self, storage: FileStorage):
        """Writing the active list migrates and removes the legacy file."""
        old, new = TicketId.new(), TicketId.new()
        (storage.root / "active_ticket").write_text(str(old))
        storage.add_active(new)

        assert not (storage.root / "active_ticket").exists()
        assert storage.get_all_active() == [old, new]

    def test_delete_leaves_stale_active_marker(self, storage: FileStorage):
        """Storage delete does not touch active markers."""
        ticket = Ticket(slug="a", title="A")
        storage.save(ticket)
        storage.set_active(ticket.id)
        storage.delete(ticket.id)

        assert storage.get_active() == ticket.id


class TestExampleScenario:
    def test_create_activate_close_delete(self, storage: FileStorage):
        """A ticket goes through its whole life on disk."""
        ticket = Ticket(slug="fix-login-bug", title="Fix Login Bug", priority=Priority.HIGH)
        storage.save(ticket)
        assert [t.id for t in storage.load_all()] == [ticket.id]

        storage.set_active(ticket.id)
        assert storage.get_active() == ticket.id

        ticket.set_status(Status.DONE)
        storage.save(ticket)
        reloaded = storage.load(ticket.id)
        assert reloaded.status is Status.DONE
        assert reloaded.closed_at is not None

        storage.delete(ticket.id)
        with pytest.raises(TicketNotFoundError):
            storage.load(ticket.id)
        # Storage does not clear markers on delete; the service layer does
        assert storage.get_active() == ticket.id


class TestConcurrency:
    """Concurrent saves never leave torn records."""

    def test_concurrent_saves_of_different_tickets(self, storage: FileStorage):
        """Parallel saves of distinct tickets all land intact."""
        tickets = [Ticket(slug=f"t-{i}", title=f"Ticket {i}", description="x" * 2000) for i in range(20)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(storage.save, tickets))

        loaded = {t.id: t for t in storage.load_all()}
        assert len(loaded) == 20
        for ticket in tickets:
            assert loaded[ticket.id] == ticket

    def test_concurrent_saves_of_same_ticket(self, storage: FileStorage):
        """The record ends up as one complete version."""
        base = Ticket(slug="shared", title="Shared")
        versions = []
        for i in range(10):
            version = Ticket(slug="shared", title=f"Version {i}", id=base.id, description=str(i) * 5000)
            versions.append(version)

        with ThreadPoolExecutor(max_workers=10) as pool:
            list(pool.map(storage.save, versions))

        assert storage.load(base.id) in versions

    def test_concurrent_active_adds(self, storage: FileStorage):
        """Parallel add_active calls lose no ids."""
        ids = [TicketId.new() for _ in range(10)]

        with ThreadPoolExecutor(max_workers=10) as pool:
            list(pool.map(storage.add_active, ids))

        assert sorted(storage.get_all_active()) == sorted(ids)


class TestStorageLock:
    """Tests for StorageLock."""

    def test_exclusive_lock_times_out(self, tmp_path: Path):
        """A second exclusive lock gives up after its timeout."""
        lock_path = tmp_path / ".lock"
        holder = StorageLock(lock_path)
        waiter = StorageLock(lock_path, timeout=0.05)

        with holder.exclusive():
            with pytest.raises(StorageLockedError) as exc_info:
                with waiter.exclusive():
                    pass

        assert exc_info.value.kind == "storage_io"
        assert exc_info.value.is_recoverable

    def test_shared_locks_coexist(self, tmp_path: Path):
        """Readers do not block each other."""
        lock_path = tmp_path / ".lock"
        first = StorageLock(lock_path)
        second = StorageLock(lock_path, timeout=0.05)

        with first.shared():
            with second.shared():
                pass

    def test_lock_released_on_error(self, tmp_path: Path):
        """An exception inside the block still releases the lock."""
        lock = StorageLock(tmp_path / ".lock", timeout=0.05)

        with pytest.raises(RuntimeError):
            with lock.exclusive():
                raise RuntimeError("boom")
        with lock.exclusive():
            pass

    def test_waiter_proceeds_after_release(self, tmp_path: Path):
        """A waiter acquires the lock once the holder lets go."""
        lock_path = tmp_path / ".lock"
        holder = StorageLock(lock_path)
        waiter = StorageLock(lock_path, timeout=5)
        acquired = threading.Event()
        release = threading.Event()

        def hold():
            with holder.exclusive():
                acquired.set()
                release.wait(5)

        thread = threading.Thread(target=hold)
        thread.start()
        acquired.wait(5)
        threading.Timer(0.1, release.set).start()
        with waiter.exclusive():
            pass
        thread.join()

    def test_save_reports_lock_timeout(self, tmp_path: Path):
        """save surfaces a held lock as StorageLockedError."""
        store = FileStorage(tmp_path / ".vibe-ticket", lock_timeout=0.05)
        blocker = StorageLock(store.root / ".lock")

        with blocker.exclusive():
            with pytest.raises(StorageLockedError):
                store.save(Ticket(slug="a", title="A"))


class TestSidecarDocuments:
    def test_update_document_is_all_or_nothing(self, storage: FileStorage):
        """A failing update leaves the document unchanged."""
        storage.write_document("aliases.yaml", {"aliases": {"a": 1}})

        def failing(data):
            data["aliases"]["b"] = 2
            raise ValueError("rejected")

        with pytest.raises(ValueError):
            storage.update_document("aliases.yaml", failing, default={})

        assert storage.read_document("aliases.yaml") == {"aliases": {"a": 1}}

    def test_read_missing_document_returns_default(self, storage: FileStorage):
        """Missing documents read as the default."""
        assert storage.read_document("missing.yaml", default={}) == {}

    def test_state_file_missing(self, storage: FileStorage):
        """An initialized root without state.yaml is an IO error."""
        with pytest.raises(StorageIOError, match="Project state file missing"):
            storage.load_state()
