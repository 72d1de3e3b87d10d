"""Persistence layer for tickets and project data."""

from .file import FileStorage, ProjectState
from .lock import DEFAULT_LOCK_TIMEOUT, StorageLock
from .repository import ActiveTicketRepository, InMemoryStorage, TicketRepository

__all__ = [
    "FileStorage",
    "ProjectState",
    "StorageLock",
    "DEFAULT_LOCK_TIMEOUT",
    "TicketRepository",
    "ActiveTicketRepository",
    "InMemoryStorage",
]
