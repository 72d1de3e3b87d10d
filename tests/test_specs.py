"""Tests for spec-driven development."""

import pytest

from vibe_ticket.errors import InvalidInputError, SpecNotFoundError, VibeTicketError
from vibe_ticket.services import (
    activate_spec,
    approve_phase,
    create_ticket,
    delete_spec,
    export_spec_tickets,
    get_ticket,
    init_spec,
    list_specs,
    phase_document,
    show_spec,
    spec_status,
    update_spec,
)
from vibe_ticket.specs import SpecPhase, parse_tasks

TASKS_MD = """\
# Tasks: Login

## Setup
- [ ] T001: Add session table
- [x] T002: Already done
- [ ] [P] T003: Write migration
* [ ] Loose item without id
"""


class TestParseTasks:
    def test_unchecked_items_only(self):
        """Checked items are dropped and the [P] marker is stripped."""
        tasks = parse_tasks(TASKS_MD)

        assert [(t.task_id, t.description) for t in tasks] == [
            ("T001", "Add session table"),
            ("T003", "Write migration"),
            (None, "Loose item without id"),
        ]


class TestSpecPhase:
    def test_next(self):
        assert SpecPhase.REQUIREMENTS.next is SpecPhase.DESIGN
        assert SpecPhase.COMPLETED.next is SpecPhase.COMPLETED

    def test_parse_invalid(self):
        with pytest.raises(InvalidInputError):
            SpecPhase.parse("review")


class TestSpecLifecycle:
    """Tests for init, show, list, activate and delete."""

    def test_init_activates(self, project):
        """A new spec becomes the active one, starting at requirements."""
        result = init_spec(project, "User login", description="Email and password", tags="auth")

        spec = result["spec"]
        assert spec["active"] is True
        assert spec["current_phase"] == "requirements"
        assert spec["tags"] == ["auth"]
        assert show_spec(project)["spec"]["id"] == spec["id"]

    def test_init_linked_to_ticket(self, project):
        ticket = create_ticket(project, "login")["ticket"]

        spec = init_spec(project, "Login", ticket_ref="login")["spec"]

        assert spec["ticket_id"] == ticket["id"]

    def test_empty_title(self, project):
        with pytest.raises(InvalidInputError):
            init_spec(project, "  ")

    def test_no_active_spec(self, project):
        init_spec(project, "Inactive", activate=False)

        with pytest.raises(VibeTicketError, match="No active specification"):
            show_spec(project)

    def test_activate_by_prefix(self, project):
        """Specs resolve by a unique id prefix."""
        first = init_spec(project, "First")["spec"]
        init_spec(project, "Second")

        activate_spec(project, first["id"][:8])

        active = [s["title"] for s in list_specs(project)["specs"] if s["active"]]
        assert active == ["First"]

    def test_delete_clears_active(self, project):
        """Deleting the active spec leaves no active spec."""
        spec = init_spec(project, "Doomed")["spec"]

        delete_spec(project, spec["id"])

        assert list_specs(project)["specs"] == []
        with pytest.raises(VibeTicketError):
            show_spec(project)

    def test_unknown_spec(self, project):
        with pytest.raises(SpecNotFoundError):
            show_spec(project, "deadbeef")

    def test_update_fields(self, project):
        """Only the given fields change."""
        init_spec(project, "Login", tags="auth")

        result = update_spec(project, title="Login v2", description="SSO too")

        assert result["changed"] == ["title", "description"]
        assert show_spec(project)["spec"]["title"] == "Login v2"
        assert show_spec(project)["spec"]["tags"] == ["auth"]

    def test_update_without_changes(self, project):
        init_spec(project, "Login")

        with pytest.raises(InvalidInputError, match="No changes specified"):
            update_spec(project)


class TestPhaseDocuments:
    """Tests for requirements/design/tasks documents."""

    def test_document_created_from_template(self, project):
        init_spec(project, "Search", description="Full-text search")

        result = phase_document(project, "requirements")

        assert result["created"] is True
        assert result["content"].startswith("# Requirements: Search")
        assert "Full-text search" in result["content"]
        assert phase_document(project, "requirements")["created"] is False

    def test_complete_advances_phase(self, project):
        """Completing a phase moves the spec to the next one."""
        init_spec(project, "Search")

        phase_document(project, "requirements", complete=True)

        status = spec_status(project)
        assert status["current_phase"] == "design"
        assert status["progress"] == 33
        assert status["phases"][0] == {
            "phase": "requirements", "completed": True, "approved": False, "document": True,
        }

    def test_out_of_order_phase_warns(self, project):
        """Writing a later phase early is allowed with a warning."""
        init_spec(project, "Search")

        result = phase_document(project, "design")

        assert result["warnings"] == ["Requirements phase is not complete"]

    def test_replace_content(self, project):
        init_spec(project, "Search")

        phase_document(project, "design", content="# Design\n\nUse SQLite FTS5.\n")

        documents = show_spec(project, include_documents=True)["documents"]
        assert documents["design"] == "# Design\n\nUse SQLite FTS5.\n"
        assert documents["tasks"] is None

    def test_completed_is_not_a_document_phase(self, project):
        init_spec(project, "Search")

        with pytest.raises(InvalidInputError):
            phase_document(project, "completed")

    def test_approve_requires_document(self, project):
        init_spec(project, "Search")

        with pytest.raises(InvalidInputError, match="does not exist yet"):
            approve_phase(project, "design")

    def test_approve_completes_phase(self, project):
        init_spec(project, "Search")
        phase_document(project, "requirements")

        result = approve_phase(project, "requirements", message="LGTM")

        assert result["spec"]["phases"]["requirements"] == {"completed": True, "approved": True}
        assert result["spec"]["current_phase"] == "design"

    def test_phase_filter_in_list(self, project):
        init_spec(project, "Early")
        later = init_spec(project, "Later")["spec"]
        phase_document(project, "requirements", ref=later["id"], complete=True)

        assert [s["title"] for s in list_specs(project, phase="design")["specs"]] == ["Later"]


class TestExportTickets:
    """Tests for turning tasks.md items into tickets."""

    def test_export_creates_tickets(self, project):
        spec = init_spec(project, "Login")["spec"]
        phase_document(project, "tasks", content=TASKS_MD)

        result = export_spec_tickets(project)

        prefix = spec["id"][:8]
        assert result["created"] == [f"{prefix}-t001", f"{prefix}-t003"]
        ticket = get_ticket(project, f"{prefix}-t001")["ticket"]
        assert ticket["title"] == "[T001] Add session table"
        assert ticket["description"] == "Task from specification: Login"
        assert ticket["tags"] == ["spec-driven", "auto-generated", spec["id"]]
        assert ticket["spec_id"] == spec["id"]

    def test_export_is_repeatable(self, project):
        """A second export skips tickets it already created."""
        init_spec(project, "Login")
        phase_document(project, "tasks", content=TASKS_MD)
        export_spec_tickets(project)

        again = export_spec_tickets(project)

        assert again["created"] == []
        assert len(again["skipped"]) == 2

    def test_export_uses_template_when_missing(self, project):
        init_spec(project, "Fresh")

        result = export_spec_tickets(project)

        assert len(result["created"]) == 8
