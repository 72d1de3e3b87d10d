"""Ticket data models for vibe-ticket."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from ..errors import InvalidInputError
from .ids import TaskId, TicketId


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp (or pass through a datetime PyYAML already built)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Status(Enum):
    """Ticket status. Conventional flow is todo -> doing -> review -> done."""

    TODO = "todo"
    DOING = "doing"
    REVIEW = "review"
    BLOCKED = "blocked"
    DONE = "done"

    @classmethod
    def parse(cls, value: str) -> "Status":
        key = str(value).strip().lower()
        status = _STATUS_ALIASES.get(key)
        if status is None:
            raise InvalidInputError(
                f"Invalid status: {value}. Must be one of: {', '.join(s.value for s in cls)}"
            )
        return status

    @property
    def is_active(self) -> bool:
        return self in (Status.DOING, Status.REVIEW)

    @property
    def is_completed(self) -> bool:
        return self is Status.DONE

    @property
    def emoji(self) -> str:
        return _STATUS_VISUALS[self][0]

    @property
    def color(self) -> str:
        return _STATUS_VISUALS[self][1]

    def __str__(self) -> str:
        return self.value.capitalize()


_STATUS_ALIASES = {
    "todo": Status.TODO,
    "doing": Status.DOING,
    "in-progress": Status.DOING,
    "in_progress": Status.DOING,
    "wip": Status.DOING,
    "review": Status.REVIEW,
    "reviewing": Status.REVIEW,
    "blocked": Status.BLOCKED,
    "done": Status.DONE,
    "completed": Status.DONE,
    "closed": Status.DONE,
}

_STATUS_VISUALS = {
    Status.TODO: ("📋", "blue"),
    Status.DOING: ("🔧", "yellow"),
    Status.REVIEW: ("👀", "cyan"),
    Status.BLOCKED: ("🚫", "red"),
    Status.DONE: ("✅", "green"),
}


class Priority(Enum):
    """Ticket priority, ordered low < medium < high < critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: str) -> "Priority":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidInputError(
                f"Invalid priority: {value}. Must be one of: low, medium, high, critical"
            ) from None

    @property
    def rank(self) -> int:
        return _PRIORITY_RANKS[self]

    @property
    def color(self) -> str:
        return {"low": "dim", "medium": "white", "high": "yellow", "critical": "red"}[self.value]

    def __lt__(self, other: "Priority") -> bool:
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "Priority") -> bool:
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: "Priority") -> bool:
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: "Priority") -> bool:
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank >= other.rank

    def __str__(self) -> str:
        return self.value.capitalize()


_PRIORITY_RANKS = {Priority.LOW: 0, Priority.MEDIUM: 1, Priority.HIGH: 2, Priority.CRITICAL: 3}


@dataclass
class Task:
    """A checklist item owned by exactly one ticket."""

    title: str
    id: TaskId = field(default_factory=TaskId.new)
    completed: bool = False
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    def complete(self) -> None:
        self.completed = True
        self.completed_at = utcnow()

    def uncomplete(self) -> None:
        self.completed = False
        self.completed_at = None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "title": self.title,
            "completed": self.completed,
            "created_at": format_timestamp(self.created_at),
            "completed_at": format_timestamp(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        return cls(
            id=TaskId.parse(data["id"]),
            title=data["title"],
            completed=bool(data.get("completed", False)),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
            completed_at=parse_timestamp(data.get("completed_at")),
        )


@dataclass
class TicketExtensions:
    """Typed optional features attached to a ticket.

    ``custom`` is the only open map and holds user-supplied fields.
    """

    archived: bool = False
    archived_at: Optional[datetime] = None
    closing_message: Optional[str] = None
    spec_id: Optional[str] = None
    worktree_path: Optional[str] = None
    branch: Optional[str] = None
    custom: dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("archived", "archived_at", "closing_message", "spec_id", "worktree_path", "branch")

    def to_dict(self) -> dict:
        data: dict[str, Any] = {}
        if self.archived:
            data["archived"] = True
        if self.archived_at:
            data["archived_at"] = format_timestamp(self.archived_at)
        for key in ("closing_message", "spec_id", "worktree_path", "branch"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.custom:
            data["custom"] = dict(self.custom)
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "TicketExtensions":
        data = dict(data or {})
        custom = dict(data.pop("custom", None) or {})
        # Keys written by older versions into the flat metadata map
        if "closing_message" not in data and "close_message" in data:
            data["closing_message"] = data.pop("close_message")
        for key in list(data):
            if key not in cls._KNOWN:
                custom[key] = data.pop(key)
        return cls(
            archived=bool(data.get("archived", False)),
            archived_at=parse_timestamp(data.get("archived_at")),
            closing_message=data.get("closing_message"),
            spec_id=data.get("spec_id"),
            worktree_path=data.get("worktree_path"),
            branch=data.get("branch"),
            custom=custom,
        )


@dataclass
class Ticket:
    """A work item. Optional fields default so keyword construction acts as a builder."""

    slug: str
    title: str
    id: TicketId = field(default_factory=TicketId.new)
    description: str = ""
    priority: Priority = Priority.MEDIUM
    status: Status = Status.TODO
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    assignee: Optional[str] = None
    tasks: list[Task] = field(default_factory=list)
    extensions: TicketExtensions = field(default_factory=TicketExtensions)

    # Status transitions. The storage layer accepts any status; these helpers
    # stamp the timestamps that go with each conventional move.

    def set_status(self, status: Status) -> Status:
        """Set status directly, stamping timestamps. Returns the previous status."""
        previous = self.status
        self.status = status
        if status is Status.DOING and self.started_at is None:
            self.started_at = utcnow()
        if status is Status.DONE:
            if self.closed_at is None or previous is not Status.DONE:
                self.closed_at = utcnow()
        elif previous is Status.DONE:
            self.closed_at = None
        return previous

    def start(self) -> Status:
        if self.status is Status.DONE:
            raise InvalidInputError(
                f"Ticket '{self.slug}' is already done. Reopen it before starting work"
            )
        return self.set_status(Status.DOING)

    def close(self, message: Optional[str] = None) -> Status:
        previous = self.set_status(Status.DONE)
        if message:
            self.extensions.closing_message = message
        return previous

    def reopen(self) -> Status:
        return self.set_status(Status.TODO)

    def archive(self) -> None:
        self.extensions.archived = True
        self.extensions.archived_at = utcnow()

    def unarchive(self) -> None:
        self.extensions.archived = False
        self.extensions.archived_at = None

    @property
    def archived(self) -> bool:
        return self.extensions.archived

    @property
    def is_open(self) -> bool:
        return self.status is not Status.DONE and not self.archived

    # Tasks

    def add_task(self, title: str) -> Task:
        task = Task(title=title)
        self.tasks.append(task)
        return task

    def completed_tasks_count(self) -> int:
        return sum(1 for t in self.tasks if t.completed)

    def completion_percentage(self) -> int:
        if not self.tasks:
            return 0
        return round(self.completed_tasks_count() * 100 / len(self.tasks))

    def add_tags(self, tags: list[str]) -> list[str]:
        added = []
        for tag in tags:
            if tag and tag not in self.tags:
                self.tags.append(tag)
                added.append(tag)
        return added

    def remove_tags(self, tags: list[str]) -> list[str]:
        removed = [t for t in self.tags if t in tags]
        self.tags = [t for t in self.tags if t not in tags]
        return removed

    def to_dict(self) -> dict:
        """Convert to dictionary for YAML serialization."""
        return {
            "id": str(self.id),
            "slug": self.slug,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "status": self.status.value,
            "tags": list(self.tags),
            "created_at": format_timestamp(self.created_at),
            "started_at": format_timestamp(self.started_at),
            "closed_at": format_timestamp(self.closed_at),
            "assignee": self.assignee,
            "tasks": [t.to_dict() for t in self.tasks],
            "metadata": self.extensions.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Ticket":
        """Create Ticket from dictionary. Raises KeyError/ValueError on bad data."""
        if not isinstance(data, dict):
            raise ValueError("ticket document must be a mapping")
        return cls(
            id=TicketId.parse(data["id"]),
            slug=data["slug"],
            title=data.get("title", ""),
            description=data.get("description") or "",
            priority=Priority.parse(data.get("priority", "medium")),
            status=Status.parse(data.get("status", "todo")),
            tags=list(data.get("tags") or []),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
            started_at=parse_timestamp(data.get("started_at")),
            closed_at=parse_timestamp(data.get("closed_at")),
            assignee=data.get("assignee"),
            tasks=[Task.from_dict(t) for t in data.get("tasks") or []],
            extensions=TicketExtensions.from_dict(data.get("metadata")),
        )
