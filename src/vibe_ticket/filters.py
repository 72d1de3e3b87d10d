"""Saved filter expressions stored in ``.vibe-ticket/filters.yaml``.

A saved filter is referenced as ``@name`` wherever an expression is accepted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .errors import AlreadyExistsError, InvalidInputError, NotFoundError
from .filtering import parse_filter_expression
from .models.ticket import format_timestamp, parse_timestamp, utcnow
from .storage import FileStorage

FILTERS_FILE = "filters.yaml"


@dataclass
class SavedFilter:
    name: str
    expression: str
    description: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "expression": self.expression,
            "description": self.description,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SavedFilter":
        return cls(
            name=data["name"],
            expression=data["expression"],
            description=data.get("description"),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
        )


class FilterStore:
    def __init__(self, storage: FileStorage):
        self.storage = storage

    def list(self) -> list[SavedFilter]:
        data = self.storage.read_document(FILTERS_FILE, default={})
        entries = data.get("filters") or {}
        return sorted((SavedFilter.from_dict(v) for v in entries.values()), key=lambda f: f.name)

    def get(self, name: str) -> SavedFilter:
        name = name.lstrip("@")
        for saved in self.list():
            if saved.name == name:
                return saved
        raise NotFoundError("Filter", name)

    def create(self, name: str, expression: str, description: Optional[str] = None) -> SavedFilter:
        name = name.lstrip("@")
        if not name or any(c.isspace() for c in name):
            raise InvalidInputError(f"Invalid filter name: '{name}'")
        # Reject expressions that would fail at apply time
        parse_filter_expression(expression)
        saved = SavedFilter(name=name, expression=expression, description=description)

        def update(data: dict) -> None:
            entries = data.setdefault("filters", {}) or {}
            data["filters"] = entries
            if name in entries:
                raise AlreadyExistsError(
                    f"Filter '{name}' already exists. Use a different name or delete the existing filter"
                )
            entries[name] = saved.to_dict()

        self.storage.update_document(FILTERS_FILE, update, default={})
        return saved

    def delete(self, name: str) -> None:
        name = name.lstrip("@")

        def update(data: dict) -> None:
            entries = data.get("filters") or {}
            if name not in entries:
                raise NotFoundError("Filter", name)
            del entries[name]
            data["filters"] = entries

        self.storage.update_document(FILTERS_FILE, update, default={})

    def resolve(self, expression: Optional[str]) -> str:
        """Expand ``@name`` references into their saved expressions."""
        if not expression:
            return ""
        parts = []
        for part in expression.split():
            if part.startswith("@"):
                parts.append(self.get(part).expression)
            else:
                parts.append(part)
        return " ".join(parts)
