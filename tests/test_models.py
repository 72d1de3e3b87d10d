"""Tests for identifiers and the ticket model."""

import uuid

import pytest

from vibe_ticket.errors import InvalidInputError
from vibe_ticket.models import Priority, Status, Task, Ticket, TicketExtensions, TicketId, TaskId


class TestIdentifiers:
    """Tests for TicketId and TaskId."""

    def test_new_ids_are_distinct(self):
        assert TicketId.new() != TicketId.new()

    def test_parse_canonical_form(self):
        raw = str(uuid.uuid4())
        ticket_id = TicketId.parse(raw)

        assert str(ticket_id) == raw
        assert ticket_id.short() == raw[:8]

    def test_parse_malformed_raises(self):
        with pytest.raises(InvalidInputError, match="Malformed ticket id"):
            TicketId.parse("not-a-uuid")

    def test_task_id_label(self):
        with pytest.raises(InvalidInputError, match="task id"):
            TaskId.parse("")

    def test_ids_are_immutable(self):
        ticket_id = TicketId.new()
        with pytest.raises(AttributeError):
            ticket_id.value = uuid.uuid4()


class TestEnums:
    """Tests for Status and Priority parsing."""

    def test_status_aliases(self):
        assert Status.parse("in-progress") is Status.DOING
        assert Status.parse("WIP") is Status.DOING
        assert Status.parse("closed") is Status.DONE

    def test_invalid_status(self):
        with pytest.raises(InvalidInputError, match="Invalid status"):
            Status.parse("finished-ish")

    def test_priority_ordering(self):
        assert Priority.LOW < Priority.MEDIUM < Priority.HIGH < Priority.CRITICAL
        assert max([Priority.HIGH, Priority.CRITICAL, Priority.LOW]) is Priority.CRITICAL

    def test_invalid_priority(self):
        with pytest.raises(InvalidInputError, match="Invalid priority"):
            Priority.parse("urgent")


class TestTicketTransitions:
    """Tests for status helpers on Ticket."""

    def test_start_stamps_started_at(self):
        ticket = Ticket(slug="fix-login-bug", title="Fix Login Bug")
        previous = ticket.start()

        assert previous is Status.TODO
        assert ticket.status is Status.DOING
        assert ticket.started_at is not None

    def test_start_done_ticket_raises(self):
        ticket = Ticket(slug="done-one", title="Done")
        ticket.close()

        with pytest.raises(InvalidInputError, match="Reopen"):
            ticket.start()

    def test_close_sets_message_and_closed_at(self):
        ticket = Ticket(slug="a", title="A")
        ticket.close("Shipped")

        assert ticket.status is Status.DONE
        assert ticket.closed_at is not None
        assert ticket.extensions.closing_message == "Shipped"

    def test_reopen_clears_closed_at(self):
        ticket = Ticket(slug="a", title="A")
        ticket.close()
        ticket.reopen()

        assert ticket.status is Status.TODO
        assert ticket.closed_at is None

    def test_any_status_can_be_set_directly(self):
        ticket = Ticket(slug="a", title="A")
        ticket.close()
        ticket.set_status(Status.DOING)

        assert ticket.status is Status.DOING

    def test_is_open_excludes_archived(self):
        ticket = Ticket(slug="a", title="A")
        assert ticket.is_open
        ticket.archive()
        assert not ticket.is_open


class TestTicketTasksAndTags:
    def test_completion_percentage(self):
        ticket = Ticket(slug="a", title="A")
        assert ticket.completion_percentage() == 0

        ticket.add_task("one")
        ticket.add_task("two")
        ticket.add_task("three")
        ticket.tasks[0].complete()

        assert ticket.completed_tasks_count() == 1
        assert ticket.completion_percentage() == 33

    def test_uncomplete_clears_timestamp(self):
        task = Task(title="x")
        task.complete()
        task.uncomplete()

        assert task.completed is False
        assert task.completed_at is None

    def test_add_and_remove_tags(self):
        ticket = Ticket(slug="a", title="A", tags=["backend"])

        assert ticket.add_tags(["backend", "bug", ""]) == ["bug"]
        assert ticket.remove_tags(["backend", "missing"]) == ["backend"]
        assert ticket.tags == ["bug"]


class TestSerialization:
    """Tests for to_dict/from_dict."""

    def test_round_trip_preserves_fields(self):
        ticket = Ticket(
            slug="fix-login-bug",
            title="Fix Login Bug",
            description="Users cannot log in",
            priority=Priority.HIGH,
            tags=["auth"],
            assignee="sam",
        )
        ticket.add_task("Reproduce").complete()
        ticket.start()
        ticket.extensions.spec_id = "spec-1"
        ticket.extensions.custom["estimate"] = 3

        restored = Ticket.from_dict(ticket.to_dict())

        assert restored == ticket

    def test_legacy_metadata_keys(self):
        extensions = TicketExtensions.from_dict({
            "close_message": "Done and dusted",
            "archived": True,
            "sprint": "42",
        })

        assert extensions.closing_message == "Done and dusted"
        assert extensions.archived is True
        assert extensions.custom == {"sprint": "42"}

    def test_empty_extensions_serialize_to_empty_mapping(self):
        assert TicketExtensions().to_dict() == {}

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            Ticket.from_dict(["not", "a", "ticket"])
