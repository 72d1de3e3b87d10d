"""Spec-driven development: specifications with requirements, design and tasks phases.

Each specification lives in ``.vibe-ticket/specs/<spec-id>/``::

    spec.yaml          metadata and progress
    requirements.md
    design.md
    tasks.md

The active specification id is kept in ``.vibe-ticket/active_spec``.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from . import templates
from .errors import InvalidInputError, SpecNotFoundError, VibeTicketError
from .models.ticket import format_timestamp, parse_timestamp, utcnow
from .storage import FileStorage

logger = logging.getLogger(__name__)

SPECS_DIR = "specs"
SPEC_FILE = "spec.yaml"
ACTIVE_SPEC_FILE = "active_spec"

_TASK_LINE = re.compile(r"^\s*[-*]\s+\[ \]\s+(?P<text>.+?)\s*$")
_TASK_ID = re.compile(r"^(?:\[P\]\s*)?(?P<id>T\d+)\s*(?:\[P\])?\s*:\s*(?P<desc>.+)$")


class SpecPhase(Enum):
    REQUIREMENTS = "requirements"
    DESIGN = "design"
    TASKS = "tasks"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: str) -> "SpecPhase":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise InvalidInputError(
                "Invalid phase. Must be one of: requirements, design, tasks"
            ) from None

    @classmethod
    def document_phases(cls) -> list["SpecPhase"]:
        return [cls.REQUIREMENTS, cls.DESIGN, cls.TASKS]

    @property
    def next(self) -> "SpecPhase":
        order = [SpecPhase.REQUIREMENTS, SpecPhase.DESIGN, SpecPhase.TASKS, SpecPhase.COMPLETED]
        return order[min(order.index(self) + 1, len(order) - 1)]


@dataclass
class Approval:
    approved_at: datetime = field(default_factory=utcnow)
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {"approved_at": format_timestamp(self.approved_at), "message": self.message}

    @classmethod
    def from_dict(cls, data: dict) -> "Approval":
        return cls(
            approved_at=parse_timestamp(data.get("approved_at")) or utcnow(),
            message=data.get("message"),
        )


@dataclass
class SpecProgress:
    current_phase: SpecPhase = SpecPhase.REQUIREMENTS
    requirements_completed: bool = False
    design_completed: bool = False
    tasks_completed: bool = False
    approvals: dict[str, Approval] = field(default_factory=dict)

    def is_completed(self, phase: SpecPhase) -> bool:
        return getattr(self, f"{phase.value}_completed")

    def is_approved(self, phase: SpecPhase) -> bool:
        return phase.value in self.approvals

    def to_dict(self) -> dict:
        return {
            "current_phase": self.current_phase.value,
            "requirements_completed": self.requirements_completed,
            "design_completed": self.design_completed,
            "tasks_completed": self.tasks_completed,
            "approvals": {k: v.to_dict() for k, v in self.approvals.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SpecProgress":
        return cls(
            current_phase=SpecPhase.parse(data.get("current_phase", "requirements")),
            requirements_completed=bool(data.get("requirements_completed", False)),
            design_completed=bool(data.get("design_completed", False)),
            tasks_completed=bool(data.get("tasks_completed", False)),
            approvals={k: Approval.from_dict(v) for k, v in (data.get("approvals") or {}).items()},
        )


@dataclass
class Specification:
    title: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    description: str = ""
    ticket_id: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    progress: SpecProgress = field(default_factory=SpecProgress)

    def complete_phase(self, phase: SpecPhase) -> None:
        setattr(self.progress, f"{phase.value}_completed", True)
        if self.progress.current_phase is phase:
            self.progress.current_phase = phase.next
        self.updated_at = utcnow()

    def approve(self, phase: SpecPhase, message: Optional[str] = None) -> None:
        self.progress.approvals[phase.value] = Approval(message=message)
        self.updated_at = utcnow()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "ticket_id": self.ticket_id,
            "tags": list(self.tags),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "progress": self.progress.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Specification":
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description") or "",
            ticket_id=data.get("ticket_id"),
            tags=list(data.get("tags") or []),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
            updated_at=parse_timestamp(data.get("updated_at")) or utcnow(),
            progress=SpecProgress.from_dict(data.get("progress") or {}),
        )


@dataclass
class SpecTask:
    """An unchecked item parsed from tasks.md."""

    task_id: Optional[str]
    description: str


def parse_tasks(markdown: str) -> list[SpecTask]:
    """Extract unchecked ``- [ ]`` items, splitting off ``T001:`` style ids."""
    tasks = []
    for line in markdown.splitlines():
        match = _TASK_LINE.match(line)
        if not match:
            continue
        text = match.group("text")
        id_match = _TASK_ID.match(text)
        if id_match:
            tasks.append(SpecTask(task_id=id_match.group("id"), description=id_match.group("desc").strip()))
        else:
            tasks.append(SpecTask(task_id=None, description=text))
    return tasks


class SpecStore:
    """Specification persistence on top of FileStorage."""

    def __init__(self, storage: FileStorage):
        self.storage = storage

    def _spec_file(self, spec_id: str) -> str:
        return f"{SPECS_DIR}/{spec_id}/{SPEC_FILE}"

    def document_name(self, spec_id: str, phase: SpecPhase) -> str:
        return f"{SPECS_DIR}/{spec_id}/{phase.value}.md"

    def document_path(self, spec_id: str, phase: SpecPhase):
        return self.storage.root / self.document_name(spec_id, phase)

    def _ids(self) -> list[str]:
        specs_dir = self.storage.root / SPECS_DIR
        if not specs_dir.is_dir():
            return []
        return sorted(p.name for p in specs_dir.iterdir() if (p / SPEC_FILE).is_file())

    def create(
        self,
        title: str,
        description: str = "",
        ticket_id: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> Specification:
        if not title.strip():
            raise InvalidInputError("Specification title is required")
        spec = Specification(
            title=title.strip(),
            description=description,
            ticket_id=ticket_id,
            tags=list(tags or []),
        )
        self.save(spec)
        return spec

    def save(self, spec: Specification) -> None:
        self.storage.write_document(self._spec_file(spec.id), spec.to_dict())

    def resolve_id(self, ref: str) -> str:
        """Resolve a full id or unique prefix to a spec id."""
        ids = self._ids()
        if ref in ids:
            return ref
        matches = [i for i in ids if i.startswith(ref)]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise InvalidInputError(f"Specification reference '{ref}' is ambiguous")
        raise SpecNotFoundError(ref)

    def load(self, ref: Optional[str] = None) -> Specification:
        spec_id = self.resolve_id(ref) if ref else self.get_active()
        data = self.storage.read_document(self._spec_file(spec_id))
        if data is None:
            raise SpecNotFoundError(spec_id)
        return Specification.from_dict(data)

    def list(self, phase: Optional[SpecPhase] = None) -> list[Specification]:
        specs = [self.load(spec_id) for spec_id in self._ids()]
        if phase is not None:
            specs = [s for s in specs if s.progress.current_phase is phase]
        return sorted(specs, key=lambda s: s.created_at)

    def delete(self, ref: str) -> str:
        spec_id = self.resolve_id(ref)
        self.storage.remove_tree(f"{SPECS_DIR}/{spec_id}")
        if self.storage.read_text(ACTIVE_SPEC_FILE) == spec_id:
            self.storage.write_text(ACTIVE_SPEC_FILE, "")
        return spec_id

    def activate(self, ref: str) -> Specification:
        spec = self.load(ref)
        self.storage.write_text(ACTIVE_SPEC_FILE, spec.id)
        return spec

    def get_active(self) -> str:
        active = (self.storage.read_text(ACTIVE_SPEC_FILE) or "").strip()
        if not active:
            raise VibeTicketError(
                "No active specification. Use 'vibe-ticket spec activate <id>' or pass a spec id"
            )
        return active

    def read_phase_document(self, spec: Specification, phase: SpecPhase) -> Optional[str]:
        return self.storage.read_text(self.document_name(spec.id, phase))

    def ensure_phase_document(self, spec: Specification, phase: SpecPhase) -> tuple[str, bool]:
        """Return the document content, creating it from the template if missing."""
        content = self.read_phase_document(spec, phase)
        if content is not None:
            return content, False
        content = templates.render(phase.value, spec.title, spec.description)
        self.storage.write_text(self.document_name(spec.id, phase), content)
        logger.info("Created %s document for spec %s", phase.value, spec.id)
        return content, True

    def write_phase_document(self, spec: Specification, phase: SpecPhase, content: str) -> None:
        self.storage.write_text(self.document_name(spec.id, phase), content)
        spec.updated_at = utcnow()
        self.save(spec)
