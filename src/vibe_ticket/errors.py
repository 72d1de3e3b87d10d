"""Error types for vibe-ticket.

Every failure surfaced to a user is a ``VibeTicketError``. Subclasses carry a
``kind`` string so the CLI and the MCP server can report errors uniformly:

- ``not_found``: ticket, task, alias, filter, hook or spec lookup failed
- ``already_exists``: duplicate slug, alias, filter or hook
- ``invalid_input``: malformed identifier, bad enum value, bad filter expression
- ``not_initialized``: no ``.vibe-ticket`` directory above the working directory
- ``no_active_ticket``: an operation needs a current ticket but none is set
- ``storage_io``: filesystem failure (retryable), including lock timeouts
- ``storage_corrupt``: a record file could not be parsed (structural)
- ``external_tool``: git or another subprocess failed
- ``custom``: anything else
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class VibeTicketError(Exception):
    """Base error. Instantiated directly for ad hoc conditions."""

    kind = "custom"
    recoverable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def suggestions(self) -> list[str]:
        """Return follow-up hints for the user."""
        return []

    @property
    def is_recoverable(self) -> bool:
        return self.recoverable

    def to_dict(self) -> dict:
        """Structured form used for JSON output and MCP responses."""
        return {
            "error": self.kind,
            "message": self.message,
            "suggestions": self.suggestions(),
            "recoverable": self.is_recoverable,
        }


class NotFoundError(VibeTicketError):
    kind = "not_found"
    recoverable = True

    def __init__(self, what: str, identifier: str):
        super().__init__(f"{what} not found: {identifier}")
        self.what = what
        self.identifier = identifier


class TicketNotFoundError(NotFoundError):
    def __init__(self, identifier: str):
        super().__init__("Ticket", identifier)

    def suggestions(self) -> list[str]:
        return ["Run 'vibe-ticket list' to see available tickets"]


class TaskNotFoundError(NotFoundError):
    def __init__(self, identifier: str):
        super().__init__("Task", identifier)


class SpecNotFoundError(NotFoundError):
    def __init__(self, identifier: str):
        super().__init__("Specification", identifier)

    def suggestions(self) -> list[str]:
        return [
            f"Check if specification '{self.identifier}' exists",
            "Run 'vibe-ticket spec list' to see all specifications",
        ]


class AlreadyExistsError(VibeTicketError):
    kind = "already_exists"


class DuplicateTicketError(AlreadyExistsError):
    def __init__(self, slug: str):
        super().__init__(f"Ticket with slug '{slug}' already exists")
        self.slug = slug

    def suggestions(self) -> list[str]:
        return [
            f"Use a different slug or check existing ticket '{self.slug}'",
            "Run 'vibe-ticket list' to see all tickets",
        ]


class InvalidInputError(VibeTicketError):
    kind = "invalid_input"
    recoverable = True


class InvalidSlugError(InvalidInputError):
    def __init__(self, slug: str):
        super().__init__(
            f"Invalid slug format: {slug}. Slugs must be lowercase alphanumeric with hyphens"
        )
        self.slug = slug

    def suggestions(self) -> list[str]:
        return [
            "Use lowercase letters, numbers, and hyphens only",
            "Example: 'fix-login-bug' or 'feature-123'",
        ]


class ConfigError(InvalidInputError):
    """A configuration value or section has the wrong shape."""

    def suggestions(self) -> list[str]:
        return [
            "Run 'vibe-ticket config show' to see the current configuration",
            "Fix the value in .vibe-ticket/config.yaml or with 'vibe-ticket config set'",
        ]


class ProjectNotInitializedError(VibeTicketError):
    kind = "not_initialized"

    def __init__(self, start: Optional[Path] = None):
        where = f" (searched from {start})" if start else ""
        super().__init__(f"Project not initialized{where}. Run 'vibe-ticket init' first")

    def suggestions(self) -> list[str]:
        return [
            "Run 'vibe-ticket init' to initialize the project",
            "Make sure you're in the correct directory",
        ]


class ProjectAlreadyInitializedError(VibeTicketError):
    kind = "already_exists"

    def __init__(self, path: Path):
        super().__init__(f"Project already initialized at {path}")
        self.path = path

    def suggestions(self) -> list[str]:
        return ["Use 'vibe-ticket init --force' to reinitialize"]


class NoActiveTicketError(VibeTicketError):
    kind = "no_active_ticket"
    recoverable = True

    def __init__(self):
        super().__init__(
            "No active ticket. Use 'vibe-ticket start <id>' to start working on a ticket"
        )

    def suggestions(self) -> list[str]:
        return [
            "Run 'vibe-ticket list' to see available tickets",
            "Run 'vibe-ticket start <id>' to start working on a ticket",
        ]


class StorageIOError(VibeTicketError):
    """Filesystem failure. Callers may retry."""

    kind = "storage_io"
    recoverable = True

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path

    @classmethod
    def wrap(cls, action: str, path: Path, exc: OSError) -> "StorageIOError":
        reason = exc.strerror or str(exc)
        return cls(f"Failed to {action} {path}: {reason}", path)


class StorageLockedError(StorageIOError):
    def __init__(self, path: Path, timeout: float):
        super().__init__(f"Storage is locked by another process ({path}, waited {timeout:g}s)", path)

    def suggestions(self) -> list[str]:
        return ["Retry the command once the other vibe-ticket process finishes"]


class StorageCorruptError(VibeTicketError):
    """A record exists but cannot be parsed. Retrying will not help."""

    kind = "storage_corrupt"

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Corrupt data in {path}: {reason}")
        self.path = path
        self.reason = reason

    def suggestions(self) -> list[str]:
        return [f"Inspect or remove {self.path}"]


class ExternalToolError(VibeTicketError):
    kind = "external_tool"

    def __init__(self, tool: str, message: str):
        super().__init__(f"{tool} failed: {message}")
        self.tool = tool
