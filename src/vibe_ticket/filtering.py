"""Ticket filtering, date ranges and sorting.

Filter expressions are whitespace-separated ``key:value`` terms, all of which
must match. A term may list alternatives separated by commas::

    status:todo,doing priority:high tag:backend assignee:unassigned

Supported keys: ``status``, ``priority``, ``assignee``, ``tag``/``tags``,
``slug``, ``is`` (``open``, ``closed``, ``archived``, ``active``). A bare word
matches against title, slug and description.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from .errors import InvalidInputError
from .models import Priority, Status, Ticket

SORT_KEYS = ("created", "started", "closed", "priority", "status", "title", "slug")

_STATUS_ORDER = {
    Status.TODO: 0,
    Status.DOING: 1,
    Status.REVIEW: 2,
    Status.BLOCKED: 3,
    Status.DONE: 4,
}


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days in local time."""

    start: date
    end: date

    def contains(self, value: Optional[datetime]) -> bool:
        if value is None:
            return False
        day = value.astimezone().date()
        return self.start <= day <= self.end


def _parse_day(text: str, what: str = "date") -> date:
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        raise InvalidInputError(f"Invalid {what}: {text}") from None


def parse_date_filter(text: str, today: Optional[date] = None) -> DateRange:
    """Parse a date filter into a range.

    Accepts ``today``, ``yesterday``, ``week``/``this-week``,
    ``month``/``this-month``, ``last-N`` (the last N days including today),
    ``YYYY-MM-DD`` and ``YYYY-MM-DD..YYYY-MM-DD``.
    """
    value = text.strip().lower()
    today = today or date.today()

    if value == "today":
        return DateRange(today, today)
    if value == "yesterday":
        day = today - timedelta(days=1)
        return DateRange(day, day)
    if value in ("week", "this-week"):
        start = today - timedelta(days=today.weekday())
        return DateRange(start, start + timedelta(days=6))
    if value in ("month", "this-month"):
        last_day = calendar.monthrange(today.year, today.month)[1]
        return DateRange(today.replace(day=1), today.replace(day=last_day))
    if value.startswith("last-") and value[5:].isdigit():
        days = int(value[5:])
        if days < 1:
            raise InvalidInputError(f"Invalid date filter: '{text}'. 'last-N' needs N >= 1")
        return DateRange(today - timedelta(days=days - 1), today)
    if ".." in value:
        start_text, end_text = value.split("..", 1)
        return DateRange(
            _parse_day(start_text, "start date"),
            _parse_day(end_text, "end date"),
        )
    try:
        day = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise InvalidInputError(
            f"Invalid date filter: '{text}'. Use formats like 'today', 'yesterday', "
            "'week', 'month', 'last-7', '2024-01-15', or '2024-01-01..2024-01-31'"
        ) from None
    return DateRange(day, day)


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

Predicate = Callable[[Ticket], bool]


def _term_predicate(key: str, values: list[str]) -> Predicate:
    lowered = [v.lower() for v in values if v]
    if not lowered:
        raise InvalidInputError(f"Filter term '{key}:' has no value")

    if key == "status":
        statuses = {Status.parse(v) for v in lowered}
        return lambda t: t.status in statuses
    if key == "priority":
        priorities = {Priority.parse(v) for v in lowered}
        return lambda t: t.priority in priorities
    if key == "assignee":
        if "unassigned" in lowered:
            return lambda t: t.assignee is None
        return lambda t: t.assignee is not None and any(v in t.assignee.lower() for v in lowered)
    if key in ("tag", "tags"):
        return lambda t: any(v in tag.lower() for tag in t.tags for v in lowered)
    if key == "slug":
        return lambda t: any(v in t.slug.lower() for v in lowered)
    if key == "is":
        checks = []
        for v in lowered:
            if v == "open":
                checks.append(lambda t: t.status is not Status.DONE)
            elif v in ("closed", "done"):
                checks.append(lambda t: t.status is Status.DONE)
            elif v == "archived":
                checks.append(lambda t: t.archived)
            elif v == "active":
                checks.append(lambda t: t.status.is_active)
            else:
                raise InvalidInputError(f"Unknown filter value 'is:{v}'")
        return lambda t: any(check(t) for check in checks)
    raise InvalidInputError(
        f"Unknown filter key '{key}'. Use status, priority, assignee, tag, slug or is"
    )


def parse_filter_expression(expression: str) -> Predicate:
    """Compile an expression into a predicate. An empty expression matches all."""
    predicates: list[Predicate] = []
    for part in expression.split():
        if ":" in part:
            key, value = part.split(":", 1)
            predicates.append(_term_predicate(key.lower(), value.split(",")))
        else:
            word = part.lower()
            predicates.append(
                lambda t, w=word: w in t.title.lower()
                or w in t.slug.lower()
                or w in t.description.lower()
            )
    return lambda t: all(p(t) for p in predicates)


# ---------------------------------------------------------------------------
# Structured filters
# ---------------------------------------------------------------------------


@dataclass
class TicketFilter:
    """Criteria used by ``list``.

    ``archived`` False hides archived tickets, True shows only archived ones
    and None shows both.
    """

    status: Optional[Status] = None
    priority: Optional[Priority] = None
    assignee: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    open_only: bool = False
    closed_only: bool = False
    archived: Optional[bool] = False
    has_tasks: Optional[bool] = None
    created: Optional[DateRange] = None
    closed: Optional[DateRange] = None
    since: Optional[date] = None
    until: Optional[date] = None
    expression: Optional[str] = None
    sort_by: str = "created"
    reverse: bool = False

    def __post_init__(self):
        if self.sort_by not in SORT_KEYS:
            raise InvalidInputError(
                f"Invalid sort key: {self.sort_by}. Must be one of: {', '.join(SORT_KEYS)}"
            )
        if self.open_only and self.closed_only:
            raise InvalidInputError("--open and --closed cannot be combined")
        self._expression = parse_filter_expression(self.expression or "")

    def matches(self, ticket: Ticket) -> bool:
        if self.archived is not None and ticket.archived != self.archived:
            return False
        if self.status is not None and ticket.status is not self.status:
            return False
        if self.priority is not None and ticket.priority is not self.priority:
            return False
        if self.assignee is not None and ticket.assignee != self.assignee:
            return False
        if self.tags and not all(tag in ticket.tags for tag in self.tags):
            return False
        if self.open_only and ticket.status is Status.DONE:
            return False
        if self.closed_only and ticket.status is not Status.DONE:
            return False
        if self.has_tasks is not None and bool(ticket.tasks) != self.has_tasks:
            return False
        if self.created is not None and not self.created.contains(ticket.created_at):
            return False
        if self.closed is not None and not self.closed.contains(ticket.closed_at):
            return False
        created_day = ticket.created_at.astimezone().date()
        if self.since is not None and created_day < self.since:
            return False
        if self.until is not None and created_day > self.until:
            return False
        return self._expression(ticket)

    def apply(self, tickets: list[Ticket]) -> list[Ticket]:
        return sort_tickets([t for t in tickets if self.matches(t)], self.sort_by, self.reverse)


def sort_tickets(tickets: list[Ticket], sort_by: str = "created", reverse: bool = False) -> list[Ticket]:
    """Sort tickets. Priority sorts highest first, missing timestamps last."""
    if sort_by == "priority":
        key = lambda t: (-t.priority.rank, t.created_at)
    elif sort_by == "status":
        key = lambda t: (_STATUS_ORDER[t.status], t.created_at)
    elif sort_by == "title":
        key = lambda t: t.title.lower()
    elif sort_by == "slug":
        key = lambda t: t.slug
    elif sort_by == "started":
        key = lambda t: (t.started_at is None, t.started_at or t.created_at)
    elif sort_by == "closed":
        key = lambda t: (t.closed_at is None, t.closed_at or t.created_at)
    else:
        key = lambda t: t.created_at
    return sorted(tickets, key=key, reverse=reverse)
