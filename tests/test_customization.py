"""Tests for aliases, saved filters and hooks."""

import json
from unittest.mock import Mock, patch

import pytest

from vibe_ticket.errors import AlreadyExistsError, InvalidInputError, NotFoundError, VibeTicketError
from vibe_ticket.hooks import HookEvent, build_context
from vibe_ticket.models import Status
from vibe_ticket.services import (
    apply_filter,
    close_ticket,
    create_alias,
    create_filter,
    create_hook,
    create_ticket,
    delete_alias,
    delete_filter,
    delete_hook,
    edit_ticket,
    expand_alias,
    get_ticket,
    list_aliases,
    list_filters,
    list_hooks,
    run_hook_test,
    set_hook_enabled,
    show_filter,
    start_ticket,
)


def completed(returncode: int = 0, stderr: str = "") -> Mock:
    return Mock(returncode=returncode, stdout="", stderr=stderr)


class TestAliases:
    """Tests for command aliases."""

    def test_create_list_delete(self, project):
        create_alias(project, "mine", "list --assignee sam", description="My tickets")

        assert [a["name"] for a in list_aliases(project)["aliases"]] == ["mine"]
        delete_alias(project, "mine")
        assert list_aliases(project)["aliases"] == []

    def test_expand_appends_arguments(self, project):
        create_alias(project, "hot", "list --priority 'high'")

        assert expand_alias(project, "hot", ["--open"]) == ["list", "--priority", "high", "--open"]

    def test_reserved_name(self, project):
        with pytest.raises(InvalidInputError, match="reserved"):
            create_alias(project, "list", "list --open")

    def test_invalid_name(self, project):
        with pytest.raises(InvalidInputError, match="Invalid alias name"):
            create_alias(project, "my alias", "list")

    def test_duplicate_and_overwrite(self, project):
        create_alias(project, "mine", "list")

        with pytest.raises(AlreadyExistsError):
            create_alias(project, "mine", "list --open")
        create_alias(project, "mine", "list --open", overwrite=True)
        assert expand_alias(project, "mine") == ["list", "--open"]

    def test_unknown_alias(self, project):
        with pytest.raises(NotFoundError):
            delete_alias(project, "ghost")


class TestSavedFilters:
    """Tests for saved filters."""

    def test_create_show_delete(self, project):
        create_filter(project, "@urgent", "priority:critical", description="Fires")

        assert show_filter(project, "urgent")["filter"]["expression"] == "priority:critical"
        assert [f["name"] for f in list_filters(project)["filters"]] == ["urgent"]
        delete_filter(project, "@urgent")
        assert list_filters(project)["filters"] == []

    def test_invalid_expression_rejected(self, project):
        with pytest.raises(InvalidInputError):
            create_filter(project, "broken", "colour:red")

    def test_duplicate(self, project):
        create_filter(project, "mine", "assignee:sam")

        with pytest.raises(AlreadyExistsError):
            create_filter(project, "mine", "assignee:kim")

    def test_apply(self, project):
        create_ticket(project, "backend-one", tags="backend")
        create_ticket(project, "frontend-one", tags="frontend")
        create_filter(project, "be", "tag:backend")

        result = apply_filter(project, "be")

        assert result["filter"] == "be"
        assert [t["slug"] for t in result["tickets"]] == ["backend-one"]

    def test_resolve_nested_reference(self, project):
        create_filter(project, "be", "tag:backend")

        assert project.filters.resolve("@be status:todo") == "tag:backend status:todo"

    def test_missing_filter_reference(self, project):
        with pytest.raises(NotFoundError):
            project.filters.resolve("@nothing")


class TestHookStore:
    """Tests for hook CRUD."""

    def test_create_and_list_by_event(self, project):
        create_hook(project, "notify", "post-create", "echo created")
        create_hook(project, "guard", "pre_close", "true", abort_on_failure=True)

        hooks = list_hooks(project, event="pre_close")["hooks"]
        assert [h["name"] for h in hooks] == ["guard"]
        assert hooks[0]["abort_on_failure"] is True

    def test_invalid_event(self, project):
        with pytest.raises(InvalidInputError, match="Invalid hook event"):
            create_hook(project, "bad", "on_save", "true")

    def test_disable_and_delete(self, project):
        create_hook(project, "notify", "post_create", "echo hi")

        assert set_hook_enabled(project, "notify", False)["hook"]["enabled"] is False
        assert project.hooks.for_event(HookEvent.POST_CREATE) == []
        delete_hook(project, "notify")
        with pytest.raises(NotFoundError):
            delete_hook(project, "notify")


class TestHookExecution:
    """Tests for running hooks on lifecycle events."""

    @patch("vibe_ticket.hooks.subprocess.run")
    def test_post_create_hook_receives_context(self, mock_run, project):
        mock_run.return_value = completed()
        create_hook(project, "notify", "post_create", "./notify.sh")

        created = create_ticket(project, "hooked")

        args, kwargs = mock_run.call_args
        assert args[0] == ["sh", "-c", "./notify.sh"]
        assert kwargs["cwd"] == project.project_root
        assert kwargs["env"]["VIBE_TICKET_EVENT"] == "post_create"
        context = json.loads(kwargs["env"]["VIBE_TICKET_CONTEXT"])
        assert context["ticket_slug"] == "hooked"
        assert context["ticket_id"] == created["ticket"]["id"]

    @patch("vibe_ticket.hooks.subprocess.run")
    def test_post_hook_failure_is_a_warning(self, mock_run, project):
        mock_run.return_value = completed(returncode=1, stderr="webhook down")
        create_hook(project, "notify", "post_create", "curl example.invalid")

        result = create_ticket(project, "still-created")

        assert "webhook down" in result["warnings"][0]
        assert get_ticket(project, "still-created")["ticket"]["slug"] == "still-created"

    @patch("vibe_ticket.hooks.subprocess.run")
    def test_pre_hook_aborts_when_configured(self, mock_run, project):
        create_ticket(project, "guarded")
        create_hook(project, "gate", "pre_status_change", "exit 1", abort_on_failure=True)
        mock_run.return_value = completed(returncode=1, stderr="not allowed")

        with pytest.raises(VibeTicketError, match="aborted by hook 'gate'"):
            start_ticket(project, "guarded")

        assert get_ticket(project, "guarded")["ticket"]["status"] == "todo"

    @patch("vibe_ticket.hooks.subprocess.run")
    def test_pre_hook_failure_without_abort_continues(self, mock_run, project):
        create_ticket(project, "lenient")
        create_hook(project, "gate", "pre_close", "exit 1")
        mock_run.return_value = completed(returncode=1)

        result = close_ticket(project, "lenient")

        assert result["ticket"]["status"] == "done"

    @patch("vibe_ticket.hooks.subprocess.run")
    def test_status_change_runs_post_start(self, mock_run, project):
        mock_run.return_value = completed()
        create_ticket(project, "started")
        create_hook(project, "on-start", "post_start", "true")
        create_hook(project, "on-status", "post_status_change", "true")

        start_ticket(project, "started")

        events = [call.kwargs["env"]["VIBE_TICKET_EVENT"] for call in mock_run.call_args_list]
        assert events == ["post_status_change", "post_start"]

    @patch("vibe_ticket.hooks.subprocess.run")
    def test_tag_change_hook(self, mock_run, project):
        mock_run.return_value = completed()
        create_ticket(project, "tags")
        create_hook(project, "tagger", "post_tag_change", "true")

        edit_ticket(project, "tags", add_tags="urgent")

        context = json.loads(mock_run.call_args.kwargs["env"]["VIBE_TICKET_CONTEXT"])
        assert context["added"] == ["urgent"]

    @patch("vibe_ticket.hooks.subprocess.run")
    def test_run_hook_test(self, mock_run, project):
        create_hook(project, "notify", "post_close", "false")
        mock_run.return_value = completed(returncode=2)

        result = run_hook_test(project, "notify")

        assert result["success"] is False
        assert "exit status 2" in result["error"]

    def test_build_context(self):
        context = build_context(HookEvent.PRE_STATUS_CHANGE, None, Status.TODO, Status.DOING, test=True)

        assert context == {
            "ticket_id": None,
            "ticket_slug": None,
            "event": "pre_status_change",
            "previous_status": "todo",
            "new_status": "doing",
            "test": True,
        }
