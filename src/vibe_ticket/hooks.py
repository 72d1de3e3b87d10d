"""Event hooks: shell commands run on ticket lifecycle events.

Hooks live in ``.vibe-ticket/hooks.yaml``. Each command runs through
``sh -c`` in the project root with two extra environment variables:

- ``VIBE_TICKET_EVENT``: the hook event name
- ``VIBE_TICKET_CONTEXT``: JSON with ticket id, slug and status change

A failing ``pre_*`` hook aborts the operation only when its
``abort_on_failure`` flag is set. Failures of ``post_*`` hooks are warnings.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .errors import (
    AlreadyExistsError,
    ExternalToolError,
    InvalidInputError,
    NotFoundError,
    VibeTicketError,
)
from .events import Event, StatusChanged, TagsChanged, TicketClosed, TicketCreated, TicketUpdated
from .models import Status, Ticket
from .models.ticket import format_timestamp, parse_timestamp, utcnow
from .storage import FileStorage

logger = logging.getLogger(__name__)

HOOKS_FILE = "hooks.yaml"
HOOK_TIMEOUT = 60


class HookEvent(Enum):
    POST_CREATE = "post_create"
    PRE_STATUS_CHANGE = "pre_status_change"
    POST_STATUS_CHANGE = "post_status_change"
    PRE_CLOSE = "pre_close"
    POST_CLOSE = "post_close"
    POST_START = "post_start"
    POST_FINISH = "post_finish"
    POST_EDIT = "post_edit"
    POST_TAG_CHANGE = "post_tag_change"

    @classmethod
    def parse(cls, value: str) -> "HookEvent":
        try:
            return cls(value.strip().lower().replace("-", "_"))
        except ValueError:
            raise InvalidInputError(
                f"Invalid hook event: {value}. Must be one of: {', '.join(e.value for e in cls)}"
            ) from None

    @property
    def is_pre(self) -> bool:
        return self.value.startswith("pre_")


@dataclass
class Hook:
    name: str
    event: HookEvent
    command: str
    enabled: bool = True
    description: Optional[str] = None
    abort_on_failure: bool = False
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "event": self.event.value,
            "command": self.command,
            "enabled": self.enabled,
            "description": self.description,
            "abort_on_failure": self.abort_on_failure,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Hook":
        return cls(
            name=data["name"],
            event=HookEvent.parse(data["event"]),
            command=data["command"],
            enabled=bool(data.get("enabled", True)),
            description=data.get("description"),
            abort_on_failure=bool(data.get("abort_on_failure", False)),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
        )


def build_context(
    event: HookEvent,
    ticket: Optional[Ticket] = None,
    previous_status: Optional[Status] = None,
    new_status: Optional[Status] = None,
    **extra: Any,
) -> dict:
    context = {
        "ticket_id": str(ticket.id) if ticket else None,
        "ticket_slug": ticket.slug if ticket else None,
        "event": event.value,
        "previous_status": previous_status.value if previous_status else None,
        "new_status": new_status.value if new_status else None,
    }
    context.update(extra)
    return context


class HookStore:
    def __init__(self, storage: FileStorage):
        self.storage = storage

    def list(self) -> list[Hook]:
        data = self.storage.read_document(HOOKS_FILE, default={})
        entries = data.get("hooks") or {}
        return sorted((Hook.from_dict(v) for v in entries.values()), key=lambda h: h.name)

    def get(self, name: str) -> Hook:
        for hook in self.list():
            if hook.name == name:
                return hook
        raise NotFoundError("Hook", name)

    def for_event(self, event: HookEvent) -> list[Hook]:
        return [h for h in self.list() if h.event is event and h.enabled]

    def _update(self, update) -> Any:
        def wrapped(data: dict) -> Any:
            data["hooks"] = data.get("hooks") or {}
            return update(data["hooks"])

        return self.storage.update_document(HOOKS_FILE, wrapped, default={})

    def create(
        self,
        name: str,
        event: HookEvent,
        command: str,
        description: Optional[str] = None,
        abort_on_failure: bool = False,
        enabled: bool = True,
    ) -> Hook:
        if not command.strip():
            raise InvalidInputError("Hook command cannot be empty")
        hook = Hook(
            name=name,
            event=event,
            command=command,
            enabled=enabled,
            description=description,
            abort_on_failure=abort_on_failure,
        )

        def update(entries: dict) -> None:
            if name in entries:
                raise AlreadyExistsError(f"Hook '{name}' already exists")
            entries[name] = hook.to_dict()

        self._update(update)
        return hook

    def delete(self, name: str) -> None:
        def update(entries: dict) -> None:
            if name not in entries:
                raise NotFoundError("Hook", name)
            del entries[name]

        self._update(update)

    def set_enabled(self, name: str, enabled: bool) -> Hook:
        def update(entries: dict) -> Hook:
            if name not in entries:
                raise NotFoundError("Hook", name)
            entries[name]["enabled"] = enabled
            return Hook.from_dict(entries[name])

        return self._update(update)


class HookRunner:
    """Executes hooks and bridges lifecycle events to post hooks."""

    def __init__(self, store: HookStore, cwd: Optional[Path] = None):
        self.store = store
        self.cwd = cwd

    def execute(self, hook: Hook, context: dict) -> None:
        """Run one hook. Raises ExternalToolError when the command fails."""
        env = dict(os.environ)
        env["VIBE_TICKET_CONTEXT"] = json.dumps(context)
        env["VIBE_TICKET_EVENT"] = hook.event.value
        logger.debug("Running hook %s: %s", hook.name, hook.command)
        try:
            result = subprocess.run(
                ["sh", "-c", hook.command],
                capture_output=True,
                text=True,
                env=env,
                cwd=self.cwd,
                timeout=HOOK_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ExternalToolError(f"hook '{hook.name}'", str(e)) from e
        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            raise ExternalToolError(f"hook '{hook.name}'", detail)

    def run(self, event: HookEvent, context: dict) -> list[str]:
        """Run every enabled hook for ``event``.

        Returns failure messages. For pre events, a failing hook with
        ``abort_on_failure`` raises instead.
        """
        failures = []
        for hook in self.store.for_event(event):
            try:
                self.execute(hook, context)
            except ExternalToolError as e:
                logger.warning("Hook '%s' failed: %s", hook.name, e.message)
                if event.is_pre and hook.abort_on_failure:
                    raise VibeTicketError(f"Operation aborted by hook '{hook.name}': {e.message}") from e
                failures.append(e.message)
        return failures

    def run_pre(self, event: HookEvent, ticket: Ticket, new_status: Optional[Status] = None) -> None:
        self.run(event, build_context(event, ticket, ticket.status, new_status))

    def __call__(self, event: Event) -> None:
        """EventSink subscriber: map lifecycle events to post hooks."""
        failures: list[str] = []
        for hook_event, context in self._post_events(event):
            failures.extend(self.run(hook_event, context))
        if failures:
            raise ExternalToolError("hooks", "; ".join(failures))

    def _post_events(self, event: Event) -> list[tuple[HookEvent, dict]]:
        if isinstance(event, TicketCreated):
            return [(HookEvent.POST_CREATE, build_context(HookEvent.POST_CREATE, event.ticket))]
        if isinstance(event, TicketUpdated):
            return [(HookEvent.POST_EDIT, build_context(HookEvent.POST_EDIT, event.ticket))]
        if isinstance(event, TagsChanged):
            return [(
                HookEvent.POST_TAG_CHANGE,
                build_context(
                    HookEvent.POST_TAG_CHANGE, event.ticket,
                    added=list(event.added), removed=list(event.removed),
                ),
            )]
        if isinstance(event, TicketClosed):
            hook_event = HookEvent.POST_FINISH if event.source == "finish" else HookEvent.POST_CLOSE
            return [(hook_event, build_context(hook_event, event.ticket, message=event.message))]
        if isinstance(event, StatusChanged):
            events = [(
                HookEvent.POST_STATUS_CHANGE,
                build_context(HookEvent.POST_STATUS_CHANGE, event.ticket, event.old_status, event.new_status),
            )]
            if event.new_status is Status.DOING:
                events.append((
                    HookEvent.POST_START,
                    build_context(HookEvent.POST_START, event.ticket, event.old_status, event.new_status),
                ))
            return events
        return []
