"""Identifier types for tickets and tasks."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from ..errors import InvalidInputError

SHORT_ID_LENGTH = 8


@dataclass(frozen=True, order=True)
class _UuidId:
    value: uuid.UUID = field(default_factory=uuid.uuid4)

    label = "identifier"

    @classmethod
    def new(cls):
        return cls(uuid.uuid4())

    @classmethod
    def parse(cls, text: str):
        """Parse the canonical string form, raising InvalidInputError if malformed."""
        try:
            return cls(uuid.UUID(str(text).strip()))
        except (ValueError, AttributeError, TypeError):
            raise InvalidInputError(f"Malformed {cls.label}: {text!r}") from None

    def short(self) -> str:
        return str(self.value)[:SHORT_ID_LENGTH]

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, order=True)
class TicketId(_UuidId):
    label = "ticket id"


@dataclass(frozen=True, order=True)
class TaskId(_UuidId):
    label = "task id"
