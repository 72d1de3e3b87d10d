"""Repository protocols and an in-memory implementation."""

from __future__ import annotations

import copy
from typing import Callable, Optional, Protocol, runtime_checkable

from ..errors import TicketNotFoundError
from ..models import Ticket, TicketId


@runtime_checkable
class TicketRepository(Protocol):
    """Persistence of ticket records."""

    def save(self, ticket: Ticket) -> None: ...

    def load(self, ticket_id: TicketId) -> Ticket: ...

    def load_all(self, skip_corrupt: bool = False) -> list[Ticket]: ...

    def delete(self, ticket_id: TicketId) -> None: ...

    def exists(self, ticket_id: TicketId) -> bool: ...

    def find(self, predicate: Callable[[Ticket], bool]) -> list[Ticket]: ...

    def count(self, predicate: Callable[[Ticket], bool]) -> int: ...


@runtime_checkable
class ActiveTicketRepository(Protocol):
    """Tracking of the ticket(s) currently being worked on."""

    def set_active(self, ticket_id: TicketId) -> None: ...

    def get_active(self) -> Optional[TicketId]: ...

    def clear_active(self) -> None: ...

    def add_active(self, ticket_id: TicketId) -> None: ...

    def remove_active(self, ticket_id: TicketId) -> None: ...

    def get_all_active(self) -> list[TicketId]: ...


class InMemoryStorage:
    """Dictionary-backed repository with the same semantics as FileStorage.

    Tickets are copied on the way in and out so callers cannot mutate stored
    state without saving.
    """

    def __init__(self):
        self._tickets: dict[TicketId, Ticket] = {}
        self._active: list[TicketId] = []

    def save(self, ticket: Ticket) -> None:
        self._tickets[ticket.id] = copy.deepcopy(ticket)

    def load(self, ticket_id: TicketId) -> Ticket:
        try:
            return copy.deepcopy(self._tickets[ticket_id])
        except KeyError:
            raise TicketNotFoundError(str(ticket_id)) from None

    def load_all(self, skip_corrupt: bool = False) -> list[Ticket]:
        # Same order as FileStorage: by canonical id string
        return [copy.deepcopy(self._tickets[k]) for k in sorted(self._tickets, key=str)]

    def delete(self, ticket_id: TicketId) -> None:
        if ticket_id not in self._tickets:
            raise TicketNotFoundError(str(ticket_id))
        del self._tickets[ticket_id]

    def exists(self, ticket_id: TicketId) -> bool:
        return ticket_id in self._tickets

    def find(self, predicate: Callable[[Ticket], bool]) -> list[Ticket]:
        return [t for t in self.load_all() if predicate(t)]

    def count(self, predicate: Callable[[Ticket], bool]) -> int:
        return len(self.find(predicate))

    def ticket_exists_with_slug(self, slug: str) -> bool:
        return any(t.slug == slug for t in self._tickets.values())

    def set_active(self, ticket_id: TicketId) -> None:
        self._active = [ticket_id]

    def get_active(self) -> Optional[TicketId]:
        return self._active[0] if self._active else None

    def clear_active(self) -> None:
        self._active = []

    def add_active(self, ticket_id: TicketId) -> None:
        if ticket_id not in self._active:
            self._active.append(ticket_id)

    def remove_active(self, ticket_id: TicketId) -> None:
        self._active = [i for i in self._active if i != ticket_id]

    def get_all_active(self) -> list[TicketId]:
        return list(self._active)
