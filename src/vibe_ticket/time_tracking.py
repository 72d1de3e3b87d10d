"""Time tracking: logged entries per ticket and a single running timer."""

from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .errors import InvalidInputError, VibeTicketError
from .models import Ticket
from .models.ticket import format_timestamp, parse_timestamp, utcnow
from .storage import FileStorage

TIME_FILE = "time_tracking.yaml"

_DURATION_RE = re.compile(r"^(?:(\d+)h)?(?:(\d+)m)?$")


def parse_duration(text: str) -> int:
    """Parse ``1h30m``, ``2h``, ``45m`` or a bare number of minutes into minutes."""
    value = text.strip().lower().replace(" ", "")
    if value.isdigit():
        minutes = int(value)
    else:
        match = _DURATION_RE.match(value)
        if not match or not any(match.groups()):
            raise InvalidInputError(
                f"Invalid time format: {text}. Use format like '1h30m', '2h', or '45m'"
            )
        hours, mins = match.groups()
        minutes = int(hours or 0) * 60 + int(mins or 0)
    if minutes <= 0:
        raise InvalidInputError(f"Invalid time format: {text}. Duration must be positive")
    return minutes


def format_duration(minutes: int) -> str:
    hours, mins = divmod(int(minutes), 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"


@dataclass
class TimeEntry:
    ticket_id: str
    duration_minutes: int
    notes: Optional[str] = None
    date: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "duration_minutes": self.duration_minutes,
            "notes": self.notes,
            "date": format_timestamp(self.date),
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimeEntry":
        return cls(
            id=data["id"],
            ticket_id=data["ticket_id"],
            duration_minutes=int(data["duration_minutes"]),
            notes=data.get("notes"),
            date=parse_timestamp(data.get("date")) or utcnow(),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
        )


@dataclass
class ActiveTimer:
    ticket_id: str
    ticket_slug: str
    started_at: datetime = field(default_factory=utcnow)
    notes: Optional[str] = None

    def elapsed_minutes(self, now: Optional[datetime] = None) -> int:
        seconds = ((now or utcnow()) - self.started_at).total_seconds()
        return max(0, int(seconds // 60))

    def to_dict(self) -> dict:
        return {
            "ticket_id": self.ticket_id,
            "ticket_slug": self.ticket_slug,
            "started_at": format_timestamp(self.started_at),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ActiveTimer":
        return cls(
            ticket_id=data["ticket_id"],
            ticket_slug=data["ticket_slug"],
            started_at=parse_timestamp(data.get("started_at")) or utcnow(),
            notes=data.get("notes"),
        )


class TimeTracker:
    """Reads and writes ``time_tracking.yaml``.

    Document shape::

        entries:
          <ticket-id>: [TimeEntry, ...]
        active_timer: ActiveTimer | null
    """

    def __init__(self, storage: FileStorage):
        self.storage = storage

    def _load(self) -> dict:
        return self.storage.read_document(TIME_FILE, default={})

    def entries(self, ticket_id: Optional[str] = None) -> list[TimeEntry]:
        groups = self._load().get("entries") or {}
        if ticket_id is not None:
            return [TimeEntry.from_dict(e) for e in groups.get(ticket_id) or []]
        return [TimeEntry.from_dict(e) for items in groups.values() for e in items or []]

    def total_minutes(self, ticket_id: str) -> int:
        return sum(e.duration_minutes for e in self.entries(ticket_id))

    def active_timer(self) -> Optional[ActiveTimer]:
        data = self._load().get("active_timer")
        return ActiveTimer.from_dict(data) if data else None

    def log(self, ticket: Ticket, minutes: int, notes: Optional[str] = None,
            date: Optional[datetime] = None) -> TimeEntry:
        if minutes <= 0:
            raise InvalidInputError("Duration must be positive")
        entry = TimeEntry(ticket_id=str(ticket.id), duration_minutes=minutes, notes=notes,
                          date=date or utcnow())

        def update(data: dict) -> None:
            groups = data.get("entries") or {}
            groups.setdefault(entry.ticket_id, []).append(entry.to_dict())
            data["entries"] = groups

        self.storage.update_document(TIME_FILE, update, default={})
        return entry

    def start(self, ticket: Ticket, notes: Optional[str] = None) -> ActiveTimer:
        timer = ActiveTimer(ticket_id=str(ticket.id), ticket_slug=ticket.slug, notes=notes)

        def update(data: dict) -> None:
            if data.get("active_timer"):
                raise VibeTicketError("Timer already running. Stop it first with 'vibe-ticket time stop'")
            data["active_timer"] = timer.to_dict()

        self.storage.update_document(TIME_FILE, update, default={})
        return timer

    def stop(self, notes: Optional[str] = None) -> tuple[ActiveTimer, TimeEntry]:
        """Stop the running timer and log its duration, at least one minute."""

        def update(data: dict) -> tuple[ActiveTimer, TimeEntry]:
            raw = data.get("active_timer")
            if not raw:
                raise VibeTicketError("No timer running")
            timer = ActiveTimer.from_dict(raw)
            seconds = (utcnow() - timer.started_at).total_seconds()
            minutes = max(1, math.floor(seconds / 60))
            entry = TimeEntry(
                ticket_id=timer.ticket_id,
                duration_minutes=minutes,
                notes=notes or timer.notes,
            )
            groups = data.get("entries") or {}
            groups.setdefault(entry.ticket_id, []).append(entry.to_dict())
            data["entries"] = groups
            data["active_timer"] = None
            return timer, entry

        return self.storage.update_document(TIME_FILE, update, default={})
