"""Command aliases stored in ``.vibe-ticket/aliases.yaml``."""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .errors import AlreadyExistsError, InvalidInputError, NotFoundError
from .models.ticket import format_timestamp, parse_timestamp, utcnow
from .storage import FileStorage

ALIASES_FILE = "aliases.yaml"

RESERVED_NAMES = frozenset({
    "init", "new", "list", "show", "edit", "close", "start", "check", "task",
    "search", "export", "import", "config", "spec", "worktree", "mcp", "bulk",
    "filter", "alias", "time", "board", "review", "approve", "handoff",
    "archive", "open", "finish", "reopen", "block", "delete", "hook",
    "request-changes",
})

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass
class CommandAlias:
    name: str
    command: str
    description: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "command": self.command,
            "description": self.description,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CommandAlias":
        return cls(
            name=data["name"],
            command=data["command"],
            description=data.get("description"),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
        )

    def expand(self, args: Optional[list[str]] = None) -> list[str]:
        """Argument vector for the aliased command with extra args appended."""
        return shlex.split(self.command) + list(args or [])


def validate_alias_name(name: str) -> None:
    if name in RESERVED_NAMES:
        raise InvalidInputError(f"'{name}' is a reserved command name and cannot be used as an alias")
    if not _NAME_RE.match(name):
        raise InvalidInputError(
            f"Invalid alias name: '{name}'. Use letters, numbers, hyphens and underscores only"
        )


class AliasStore:
    """CRUD over the aliases sidecar."""

    def __init__(self, storage: FileStorage):
        self.storage = storage

    def _entries(self, data: dict) -> dict:
        aliases = data.setdefault("aliases", {})
        if aliases is None:
            aliases = data["aliases"] = {}
        return aliases

    def list(self) -> list[CommandAlias]:
        data = self.storage.read_document(ALIASES_FILE, default={})
        entries = data.get("aliases") or {}
        return sorted((CommandAlias.from_dict(v) for v in entries.values()), key=lambda a: a.name)

    def get(self, name: str) -> CommandAlias:
        for alias in self.list():
            if alias.name == name:
                return alias
        raise NotFoundError("Alias", name)

    def create(self, name: str, command: str, description: Optional[str] = None,
               overwrite: bool = False) -> CommandAlias:
        validate_alias_name(name)
        if not command.strip():
            raise InvalidInputError("Alias command cannot be empty")
        alias = CommandAlias(name=name, command=command.strip(), description=description)

        def update(data: dict) -> None:
            entries = self._entries(data)
            if name in entries and not overwrite:
                raise AlreadyExistsError(f"Alias '{name}' already exists")
            entries[name] = alias.to_dict()

        self.storage.update_document(ALIASES_FILE, update, default={})
        return alias

    def delete(self, name: str) -> None:
        def update(data: dict) -> None:
            entries = self._entries(data)
            if name not in entries:
                raise NotFoundError("Alias", name)
            del entries[name]

        self.storage.update_document(ALIASES_FILE, update, default={})
