"""Ticket lifecycle events.

Services publish events to an ``EventSink`` passed in through the project
context. Subscribers such as the hook runner register callables with
``subscribe``. Every event is logged at INFO.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

from .errors import VibeTicketError
from .models import Status, Ticket, TicketId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketCreated:
    ticket: Ticket


@dataclass(frozen=True)
class TicketUpdated:
    ticket: Ticket


@dataclass(frozen=True)
class TicketClosed:
    ticket: Ticket
    message: str
    # "close", "finish", "approve" or "bulk"
    source: str = "close"


@dataclass(frozen=True)
class TagsChanged:
    ticket: Ticket
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()


@dataclass(frozen=True)
class StatusChanged:
    ticket: Ticket
    old_status: Status
    new_status: Status

    @property
    def ticket_id(self) -> TicketId:
        return self.ticket.id


Event = Union[TicketCreated, TicketUpdated, TicketClosed, TagsChanged, StatusChanged]
Subscriber = Callable[[Event], None]


def describe_event(event: Event) -> str:
    if isinstance(event, TicketCreated):
        return f"Ticket created - {event.ticket.slug}"
    if isinstance(event, TicketUpdated):
        return f"Ticket updated - {event.ticket.slug}"
    if isinstance(event, TicketClosed):
        return f"Ticket closed - {event.ticket.id.short()}"
    if isinstance(event, TagsChanged):
        return (
            f"Tags changed - {event.ticket.slug} "
            f"(+{','.join(event.added) or '-'} -{','.join(event.removed) or '-'})"
        )
    return (
        f"Status changed - {event.ticket.id.short()} "
        f"from {event.old_status.value} to {event.new_status.value}"
    )


class EventSink:
    """Synchronous fan-out of events to subscribers.

    Events are published after the ticket has been saved, so a failing
    subscriber cannot undo the change. Its error is logged and kept in
    ``warnings`` for the caller to report.
    """

    def __init__(self):
        self._subscribers: list[Subscriber] = []
        self.warnings: list[str] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def publish(self, event: Event) -> None:
        logger.info(describe_event(event))
        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except VibeTicketError as e:
                logger.warning("Event subscriber failed: %s", e.message)
                self.warnings.append(e.message)

    def drain_warnings(self) -> list[str]:
        warnings, self.warnings = self.warnings, []
        return warnings
