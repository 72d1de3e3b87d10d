"""Tests for filter expressions, date ranges and sorting."""

from datetime import date, datetime, timedelta, timezone

import pytest

from vibe_ticket.errors import InvalidInputError
from vibe_ticket.filtering import TicketFilter, parse_date_filter, parse_filter_expression, sort_tickets
from vibe_ticket.models import Priority, Status, Ticket


def make_ticket(slug: str, **kwargs) -> Ticket:
    return Ticket(slug=slug, title=kwargs.pop("title", slug.replace("-", " ").title()), **kwargs)


@pytest.fixture
def tickets() -> list[Ticket]:
    login = make_ticket("fix-login", priority=Priority.HIGH, tags=["backend", "auth"], assignee="sam")
    docs = make_ticket("write-docs", priority=Priority.LOW, tags=["docs"], description="README overhaul")
    done = make_ticket("old-bug", priority=Priority.CRITICAL)
    done.close()
    archived = make_ticket("stale", tags=["backend"])
    archived.archive()
    return [login, docs, done, archived]


def slugs(items) -> list[str]:
    return [t.slug for t in items]


class TestFilterExpressions:
    """Tests for parse_filter_expression."""

    def test_empty_expression_matches_all(self, tickets):
        predicate = parse_filter_expression("")
        assert all(predicate(t) for t in tickets)

    def test_status_alternatives(self, tickets):
        predicate = parse_filter_expression("status:todo,done")
        assert slugs(filter(predicate, tickets)) == ["fix-login", "write-docs", "old-bug", "stale"]

    def test_terms_are_anded(self, tickets):
        predicate = parse_filter_expression("tag:backend priority:high")
        assert slugs(filter(predicate, tickets)) == ["fix-login"]

    def test_unassigned(self, tickets):
        predicate = parse_filter_expression("assignee:unassigned")
        assert "fix-login" not in slugs(filter(predicate, tickets))

    def test_is_values(self, tickets):
        assert slugs(filter(parse_filter_expression("is:closed"), tickets)) == ["old-bug"]
        assert slugs(filter(parse_filter_expression("is:archived"), tickets)) == ["stale"]

    def test_bare_word_searches_text(self, tickets):
        predicate = parse_filter_expression("readme")
        assert slugs(filter(predicate, tickets)) == ["write-docs"]

    def test_unknown_key_rejected(self):
        with pytest.raises(InvalidInputError, match="Unknown filter key 'color'"):
            parse_filter_expression("color:red")

    def test_bad_enum_value_rejected(self):
        with pytest.raises(InvalidInputError, match="Invalid status"):
            parse_filter_expression("status:sleeping")

    def test_empty_value_rejected(self):
        with pytest.raises(InvalidInputError, match="has no value"):
            parse_filter_expression("tag:")

    def test_unknown_is_value(self):
        with pytest.raises(InvalidInputError, match="is:pending"):
            parse_filter_expression("is:pending")


class TestTicketFilter:
    """Tests for structured TicketFilter."""

    def test_archived_hidden_by_default(self, tickets):
        assert "stale" not in slugs(TicketFilter().apply(tickets))

    def test_archived_only(self, tickets):
        assert slugs(TicketFilter(archived=True).apply(tickets)) == ["stale"]

    def test_archived_none_shows_all(self, tickets):
        assert len(TicketFilter(archived=None).apply(tickets)) == 4

    def test_open_only(self, tickets):
        assert "old-bug" not in slugs(TicketFilter(open_only=True).apply(tickets))

    def test_open_and_closed_conflict(self):
        with pytest.raises(InvalidInputError):
            TicketFilter(open_only=True, closed_only=True)

    def test_invalid_sort_key(self):
        with pytest.raises(InvalidInputError, match="Invalid sort key"):
            TicketFilter(sort_by="mood")

    def test_tags_must_all_match(self, tickets):
        assert slugs(TicketFilter(tags=["backend", "auth"]).apply(tickets)) == ["fix-login"]

    def test_structured_and_expression_combine(self, tickets):
        ticket_filter = TicketFilter(status=Status.TODO, expression="tag:docs")
        assert slugs(ticket_filter.apply(tickets)) == ["write-docs"]

    def test_since_until(self, tickets):
        tickets[0].created_at = datetime.now(timezone.utc) - timedelta(days=30)
        today = date.today()

        recent = TicketFilter(since=today - timedelta(days=1), archived=None).apply(tickets)
        older = TicketFilter(until=today - timedelta(days=10)).apply(tickets)

        assert "fix-login" not in slugs(recent)
        assert slugs(older) == ["fix-login"]

    def test_has_tasks(self, tickets):
        tickets[1].add_task("Outline")

        assert slugs(TicketFilter(has_tasks=True).apply(tickets)) == ["write-docs"]
        assert "write-docs" not in slugs(TicketFilter(has_tasks=False).apply(tickets))

    def test_created_and_closed_ranges(self, tickets):
        """created and closed match on the day of the respective timestamp."""
        tickets[1].created_at = datetime.now(timezone.utc) - timedelta(days=30)

        created_today = TicketFilter(created=parse_date_filter("today")).apply(tickets)
        closed_today = TicketFilter(closed=parse_date_filter("today")).apply(tickets)

        assert slugs(created_today) == ["fix-login", "old-bug"]
        assert slugs(closed_today) == ["old-bug"]


class TestSorting:
    def test_priority_highest_first(self, tickets):
        assert slugs(sort_tickets(tickets, "priority"))[:2] == ["old-bug", "fix-login"]

    def test_closed_puts_missing_last(self, tickets):
        assert slugs(sort_tickets(tickets, "closed"))[0] == "old-bug"

    def test_reverse(self, tickets):
        assert slugs(sort_tickets(tickets, "slug", reverse=True))[0] == "write-docs"


class TestDateFilters:
    """Tests for parse_date_filter."""

    TODAY = date(2024, 3, 14)  # a Thursday

    def test_today_and_yesterday(self):
        assert parse_date_filter("today", self.TODAY).start == self.TODAY
        assert parse_date_filter("yesterday", self.TODAY).end == date(2024, 3, 13)

    def test_week_starts_monday(self):
        week = parse_date_filter("week", self.TODAY)
        assert (week.start, week.end) == (date(2024, 3, 11), date(2024, 3, 17))

    def test_month(self):
        month = parse_date_filter("this-month", self.TODAY)
        assert (month.start, month.end) == (date(2024, 3, 1), date(2024, 3, 31))

    def test_last_n_includes_today(self):
        last = parse_date_filter("last-7", self.TODAY)
        assert (last.start, last.end) == (date(2024, 3, 8), self.TODAY)

    def test_explicit_range(self):
        span = parse_date_filter("2024-01-01..2024-01-31")
        assert span.contains(datetime(2024, 1, 15, 12, tzinfo=timezone.utc).astimezone())

    def test_invalid_filter(self):
        with pytest.raises(InvalidInputError, match="Invalid date filter"):
            parse_date_filter("someday")

    def test_last_zero_rejected(self):
        with pytest.raises(InvalidInputError):
            parse_date_filter("last-0", self.TODAY)
