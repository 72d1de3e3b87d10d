"""File-backed storage: one YAML document per ticket under the storage root.

Layout::

    .vibe-ticket/
    ├── project.yaml          # ProjectState
    ├── active_tickets.yaml   # canonical active-ticket list
    ├── tickets/<uuid>.yaml   # one file per ticket
    ├── <sidecar>.yaml        # aliases, filters, hooks, time tracking
    └── .lock                 # advisory lock guarding every write

Writes go to a temporary file in the target directory and are moved into
place with ``os.replace`` while the exclusive lock is held, so readers never
observe a partially written document.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import yaml

from ..errors import (
    InvalidInputError,
    StorageCorruptError,
    StorageIOError,
    TicketNotFoundError,
)
from ..models import Ticket, TicketId
from ..models.ticket import format_timestamp, parse_timestamp, utcnow
from .lock import DEFAULT_LOCK_TIMEOUT, StorageLock

logger = logging.getLogger(__name__)

TICKETS_DIR = "tickets"
ACTIVE_FILE = "active_tickets.yaml"
LEGACY_ACTIVE_FILE = "active_ticket"
STATE_FILE = "project.yaml"
LOCK_FILE = ".lock"
RECORD_SUFFIX = ".yaml"

T = TypeVar("T")


@dataclass
class ProjectState:
    """Project-level information written by ``init``."""

    name: str
    description: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectState":
        return cls(
            name=data["name"],
            description=data.get("description"),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
            updated_at=parse_timestamp(data.get("updated_at")) or utcnow(),
        )


class FileStorage:
    """Ticket and active-marker persistence rooted at a ``.vibe-ticket`` directory.

    Implements both ``TicketRepository`` and ``ActiveTicketRepository``.

    Usage:
        storage = FileStorage(Path(".vibe-ticket"))
        storage.save(ticket)
        storage.set_active(ticket.id)
    """

    def __init__(self, root: Path, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.root = Path(root)
        self.lock = StorageLock(self.root / LOCK_FILE, timeout=lock_timeout)

    @property
    def tickets_dir(self) -> Path:
        return self.root / TICKETS_DIR

    def ticket_path(self, ticket_id: TicketId) -> Path:
        """Path of a ticket's record. Depends only on the id."""
        return self.tickets_dir / f"{ticket_id}{RECORD_SUFFIX}"

    def ensure_directories(self) -> None:
        try:
            self.tickets_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError.wrap("create", self.tickets_dir, e) from e

    # ------------------------------------------------------------------
    # Low-level document IO (callers hold the lock)
    # ------------------------------------------------------------------

    def _read_yaml(self, path: Path) -> Any:
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise StorageCorruptError(path, f"invalid UTF-8: {e}") from e
        except OSError as e:
            raise StorageIOError.wrap("read", path, e) from e
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise StorageCorruptError(path, f"invalid YAML: {e}") from e

    def _write_text(self, path: Path, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                    tmp.write(content)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageIOError.wrap("write", path, e) from e

    def _write_yaml(self, path: Path, data: Any) -> None:
        content = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
        self._write_text(path, content)

    def _load_ticket_file(self, path: Path) -> Ticket:
        data = self._read_yaml(path)
        try:
            return Ticket.from_dict(data)
        except (KeyError, ValueError, TypeError, InvalidInputError) as e:
            raise StorageCorruptError(path, f"not a valid ticket ({e})") from e

    # ------------------------------------------------------------------
    # Ticket records
    # ------------------------------------------------------------------

    def save(self, ticket: Ticket) -> None:
        """Write the ticket to its record file, replacing any previous content."""
        path = self.ticket_path(ticket.id)
        with self.lock.exclusive():
            self._write_yaml(path, ticket.to_dict())
        logger.debug("Saved ticket %s to %s", ticket.id.short(), path)

    def load(self, ticket_id: TicketId) -> Ticket:
        path = self.ticket_path(ticket_id)
        with self.lock.shared():
            if not path.is_file():
                raise TicketNotFoundError(str(ticket_id))
            return self._load_ticket_file(path)

    def load_all(self, skip_corrupt: bool = False) -> list[Ticket]:
        """Load every ticket, ordered by record file name.

        A corrupt record raises StorageCorruptError unless ``skip_corrupt`` is
        set, in which case it is logged and left out.
        """
        tickets = []
        with self.lock.shared():
            if not self.tickets_dir.is_dir():
                return []
            for path in sorted(self.tickets_dir.glob(f"*{RECORD_SUFFIX}")):
                try:
                    tickets.append(self._load_ticket_file(path))
                except StorageCorruptError as e:
                    if not skip_corrupt:
                        raise
                    logger.warning("Skipping corrupt ticket file: %s", e)
        return tickets

    def delete(self, ticket_id: TicketId) -> None:
        """Remove the record. Raises TicketNotFoundError if there is none."""
        path = self.ticket_path(ticket_id)
        with self.lock.exclusive():
            if not path.is_file():
                raise TicketNotFoundError(str(ticket_id))
            try:
                path.unlink()
            except OSError as e:
                raise StorageIOError.wrap("delete", path, e) from e
        logger.debug("Deleted ticket %s", ticket_id.short())

    def exists(self, ticket_id: TicketId) -> bool:
        return self.ticket_path(ticket_id).is_file()

    def find(self, predicate: Callable[[Ticket], bool]) -> list[Ticket]:
        return [t for t in self.load_all() if predicate(t)]

    def count(self, predicate: Callable[[Ticket], bool]) -> int:
        return sum(1 for t in self.load_all() if predicate(t))

    def ticket_exists_with_slug(self, slug: str) -> bool:
        return any(t.slug == slug for t in self.load_all())

    # ------------------------------------------------------------------
    # Active tickets
    # ------------------------------------------------------------------

    def _read_active_ids(self) -> list[TicketId]:
        active_path = self.root / ACTIVE_FILE
        legacy_path = self.root / LEGACY_ACTIVE_FILE
        if active_path.is_file():
            data = self._read_yaml(active_path) or {}
            raw = data.get("active", []) if isinstance(data, dict) else None
            if not isinstance(raw, list):
                raise StorageCorruptError(active_path, "expected an 'active' list")
            source = active_path
        elif legacy_path.is_file():
            try:
                raw = [legacy_path.read_text(encoding="utf-8").strip()]
            except UnicodeDecodeError as e:
                raise StorageCorruptError(legacy_path, f"invalid UTF-8: {e}") from e
            except OSError as e:
                raise StorageIOError.wrap("read", legacy_path, e) from e
            raw = [r for r in raw if r]
            source = legacy_path
        else:
            return []

        ids: list[TicketId] = []
        for value in raw:
            try:
                ticket_id = TicketId.parse(value)
            except InvalidInputError as e:
                raise StorageCorruptError(source, e.message) from e
            if ticket_id not in ids:
                ids.append(ticket_id)
        return ids

    def _write_active_ids(self, ids: list[TicketId]) -> None:
        self._write_yaml(self.root / ACTIVE_FILE, {"active": [str(i) for i in ids]})
        legacy_path = self.root / LEGACY_ACTIVE_FILE
        if legacy_path.exists():
            try:
                legacy_path.unlink()
            except OSError as e:
                raise StorageIOError.wrap("delete", legacy_path, e) from e

    def set_active(self, ticket_id: TicketId) -> None:
        """Make ``ticket_id`` the only active ticket."""
        with self.lock.exclusive():
            self._write_active_ids([ticket_id])

    def get_active(self) -> Optional[TicketId]:
        """Return the first active ticket, or None."""
        active = self.get_all_active()
        return active[0] if active else None

    def clear_active(self) -> None:
        with self.lock.exclusive():
            self._write_active_ids([])

    def add_active(self, ticket_id: TicketId) -> None:
        with self.lock.exclusive():
            ids = self._read_active_ids()
            if ticket_id not in ids:
                ids.append(ticket_id)
            self._write_active_ids(ids)

    def remove_active(self, ticket_id: TicketId) -> None:
        with self.lock.exclusive():
            ids = [i for i in self._read_active_ids() if i != ticket_id]
            self._write_active_ids(ids)

    def get_all_active(self) -> list[TicketId]:
        with self.lock.shared():
            return self._read_active_ids()

    # ------------------------------------------------------------------
    # Project state
    # ------------------------------------------------------------------

    def save_state(self, state: ProjectState) -> None:
        with self.lock.exclusive():
            self._write_yaml(self.root / STATE_FILE, state.to_dict())

    def load_state(self) -> ProjectState:
        path = self.root / STATE_FILE
        with self.lock.shared():
            if not path.is_file():
                raise StorageIOError(f"Project state file missing: {path}", path)
            data = self._read_yaml(path)
        try:
            return ProjectState.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            raise StorageCorruptError(path, f"not a valid project state ({e})") from e

    # ------------------------------------------------------------------
    # Sidecar documents (aliases, filters, hooks, time tracking, specs)
    # ------------------------------------------------------------------

    def read_document(self, name: str, default: Any = None) -> Any:
        """Load a YAML sidecar relative to the root, or ``default`` if absent."""
        path = self.root / name
        with self.lock.shared():
            if not path.is_file():
                return default
            data = self._read_yaml(path)
        return default if data is None else data

    def write_document(self, name: str, data: Any) -> None:
        with self.lock.exclusive():
            self._write_yaml(self.root / name, data)

    def update_document(self, name: str, update: Callable[[Any], T], default: Any = None) -> T:
        """Read-modify-write a sidecar inside one exclusive critical section.

        ``update`` receives the loaded document, mutates it in place and
        returns a value that is passed back to the caller.
        """
        path = self.root / name
        with self.lock.exclusive():
            data = self._read_yaml(path) if path.is_file() else None
            if data is None:
                data = default
            result = update(data)
            self._write_yaml(path, data)
        return result

    def read_text(self, name: str) -> Optional[str]:
        path = self.root / name
        with self.lock.shared():
            if not path.is_file():
                return None
            try:
                return path.read_text(encoding="utf-8")
            except UnicodeDecodeError as e:
                raise StorageCorruptError(path, f"invalid UTF-8: {e}") from e
            except OSError as e:
                raise StorageIOError.wrap("read", path, e) from e

    def write_text(self, name: str, content: str) -> None:
        with self.lock.exclusive():
            self._write_text(self.root / name, content)

    def remove_tree(self, name: str) -> None:
        path = self.root / name
        with self.lock.exclusive():
            if not path.exists():
                return
            try:
                shutil.rmtree(path)
            except OSError as e:
                raise StorageIOError.wrap("delete", path, e) from e
