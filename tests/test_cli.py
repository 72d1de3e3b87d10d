"""Tests for the vibe-ticket CLI."""

import json
import logging
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from typer.testing import CliRunner

from vibe_ticket.cli import app


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli(runner: CliRunner, project_dir: Path):
    """Invoke the CLI against the test project with --json."""

    def invoke(*args: str, input: str = None):
        return runner.invoke(app, ["--json", "--project", str(project_dir), *args], input=input)

    return invoke


def payload(result) -> dict:
    return json.loads(result.stdout)


class TestInit:
    def test_init_creates_project(self, runner: CliRunner, tmp_path: Path):
        root = tmp_path / "fresh"
        root.mkdir()

        result = runner.invoke(app, ["--json", "--project", str(root), "init", "--name", "alpha"])

        assert result.exit_code == 0
        assert payload(result)["name"] == "alpha"
        assert (root / ".vibe-ticket" / "config.yaml").exists()

    def test_init_twice_fails(self, runner: CliRunner, project_dir: Path):
        result = runner.invoke(app, ["--json", "--project", str(project_dir), "init"])

        assert result.exit_code == 1
        assert payload(result)["error"] == "already_exists"

    def test_not_initialized(self, runner: CliRunner, tmp_path: Path):
        empty = tmp_path / "empty"
        empty.mkdir()

        result = runner.invoke(app, ["--json", "--project", str(empty), "list"])

        assert result.exit_code == 1
        assert payload(result)["error"] == "not_initialized"


class TestTicketCommands:
    """Tests for the ticket lifecycle through the CLI."""

    def test_new_and_show(self, cli):
        created = cli("new", "fix-bug", "--title", "Fix the bug", "--priority", "high", "--tags", "api,bug")

        assert created.exit_code == 0
        shown = payload(cli("show", "fix-bug"))["ticket"]
        assert shown["title"] == "Fix the bug"
        assert shown["priority"] == "high"
        assert shown["tags"] == ["api", "bug"]

    def test_start_close(self, cli):
        cli("new", "flow", "--start")

        closed = cli("close", "-m", "Shipped")

        assert closed.exit_code == 0
        ticket = payload(closed)["ticket"]
        assert ticket["status"] == "done"
        assert ticket["closing_message"] == "Shipped"

    def test_list_filters(self, cli):
        cli("new", "one", "--priority", "low")
        cli("new", "two", "--priority", "critical")

        result = payload(cli("list", "--priority", "critical"))

        assert [t["slug"] for t in result["tickets"]] == ["two"]
        assert result["pagination"]["total_count"] == 1

    def test_list_with_filter_expression(self, cli):
        cli("new", "tagged", "--tags", "backend")
        cli("new", "untagged")

        result = payload(cli("list", "--filter", "tag:backend"))

        assert [t["slug"] for t in result["tickets"]] == ["tagged"]

    def test_edit(self, cli):
        cli("new", "editable")

        result = payload(cli("edit", "editable", "--assignee", "kim", "--add-tags", "ui"))

        assert result["ticket"]["assignee"] == "kim"
        assert "tags" in result["changed"]

    def test_delete_confirms(self, cli):
        cli("new", "doomed")

        result = cli("delete", "doomed", input="y\n")

        assert result.exit_code == 0
        assert cli("show", "doomed").exit_code == 1

    def test_delete_declined(self, cli):
        cli("new", "kept")

        result = cli("delete", "kept", input="n\n")

        assert result.exit_code != 0
        assert cli("show", "kept").exit_code == 0

    def test_missing_ticket_text_error(self, runner: CliRunner, project_dir: Path):
        result = runner.invoke(app, ["--project", str(project_dir), "show", "nope"])

        assert result.exit_code == 1
        assert "Ticket not found: nope" in result.output

    def test_missing_ticket_json_error(self, cli):
        result = cli("show", "nope")

        assert result.exit_code == 1
        error = payload(result)
        assert error["error"] == "not_found"
        assert error["recoverable"] is True

    def test_board(self, cli):
        cli("new", "todo-one")
        cli("new", "doing-one", "--start")

        columns = payload(cli("board"))["columns"]

        assert [t["slug"] for t in columns["doing"]] == ["doing-one"]

    def test_request_changes_and_handoff(self, cli):
        """Review commands default to the active ticket."""
        cli("new", "reviewed", "--assignee", "ana", "--start")
        cli("review")

        changed = cli("request-changes", "Cover the error path")
        handed = cli("handoff", "bo", "--notes", "Tests remain")

        assert changed.exit_code == 0
        assert payload(changed)["ticket"]["status"] == "doing"
        assert payload(handed)["from"] == "ana"
        assert "## Handoff Notes" in payload(handed)["ticket"]["description"]


class TestSubcommands:
    """Tests for task, time, config and data commands."""

    def test_tasks_on_active_ticket(self, cli):
        cli("new", "with-tasks", "--start")
        cli("task", "add", "First")
        cli("task", "add", "Second")
        cli("task", "complete", "1")

        result = payload(cli("task", "list"))

        assert result["progress"]["completed"] == 1
        assert [t["title"] for t in result["tasks"]] == ["First", "Second"]

    def test_time_log(self, cli):
        cli("new", "timed", "--start")

        result = payload(cli("time", "log", "1h30m", "--notes", "Pairing"))

        assert result["total"] == "1h 30m"

    def test_config_set_get(self, cli):
        cli("config", "set", "git.branch_prefix", "feature/")

        assert payload(cli("config", "get", "git.branch_prefix"))["value"] == "feature/"

    def test_export_to_stdout(self, runner: CliRunner, cli, project_dir: Path):
        cli("new", "exported")

        result = runner.invoke(app, ["--project", str(project_dir), "export", "csv"])

        assert result.exit_code == 0
        assert result.stdout.startswith("id,slug,title")
        assert "exported" in result.stdout

    def test_import_dry_run(self, cli, tmp_path: Path):
        source = tmp_path / "tickets.yaml"
        source.write_text("- id: 5f0c6b2e-8a4f-4e55-9d3c-0c4c1b8f2a10\n  slug: imported\n  title: Imported\n")

        result = payload(cli("import", str(source), "--dry-run"))

        assert result["imported"] == ["imported"]
        assert payload(cli("list"))["tickets"] == []

    def test_bulk_update_dry_run(self, cli):
        cli("new", "bulk-a", "--tags", "sweep")
        cli("new", "bulk-b")

        result = payload(cli("bulk", "update", "tag:sweep", "--priority", "high", "--dry-run"))

        assert [t["slug"] for t in result["matched"]] == ["bulk-a"]

    def test_bulk_tag_and_archive(self, cli):
        cli("new", "sweep-a", "--tags", "sweep")
        cli("new", "sweep-b", "--tags", "sweep")

        tagged = payload(cli("bulk", "tag", "tag:sweep", "--add", "q3", "--remove", "sweep"))
        archived = payload(cli("bulk", "archive", "tag:q3"))

        assert sorted(tagged["updated"]) == ["sweep-a", "sweep-b"]
        assert sorted(archived["archived"]) == ["sweep-a", "sweep-b"]
        assert payload(cli("list"))["tickets"] == []


class TestAliases:
    """Aliases expand before command lookup."""

    def test_alias_as_command(self, cli):
        cli("new", "hot-one", "--priority", "critical")
        cli("new", "cold-one", "--priority", "low")
        cli("alias", "create", "hot", "list --priority critical")

        result = cli("hot")

        assert result.exit_code == 0
        assert [t["slug"] for t in payload(result)["tickets"]] == ["hot-one"]

    def test_alias_run_with_extra_args(self, cli):
        cli("new", "alpha", "--assignee", "sam")
        cli("new", "beta", "--assignee", "sam", "--priority", "high")
        cli("alias", "create", "sams", "list --assignee sam")

        result = cli("alias", "run", "sams", "--priority", "high")

        assert [t["slug"] for t in payload(result)["tickets"]] == ["beta"]

    def test_unknown_command(self, cli):
        result = cli("frobnicate")

        assert result.exit_code == 2

    def test_unknown_command_logs_alias_miss(self, cli, caplog):
        caplog.set_level(logging.DEBUG, logger="vibe_ticket.cli")

        result = cli("frobnicate")

        assert result.exit_code == 2
        assert "No alias expansion for frobnicate: Alias not found: frobnicate" in caplog.text


class TestSpecAndHookCommands:
    def test_spec_update(self, cli):
        cli("spec", "init", "Login flow")

        result = payload(cli("spec", "update", "--title", "Login and SSO", "--tags", "auth"))

        assert result["changed"] == ["title", "tags"]
        assert payload(cli("spec", "show"))["spec"]["title"] == "Login and SSO"

    def test_spec_tasks_export(self, cli):
        cli("spec", "init", "Login flow")

        result = payload(cli("spec", "tasks", "--export-tickets"))

        assert len(result["exported"]) == 8
        assert payload(cli("spec", "status"))["current_phase"] == "requirements"

    @patch("vibe_ticket.hooks.subprocess.run")
    def test_hook_test_failure_exits_nonzero(self, mock_run, cli):
        mock_run.return_value = Mock(returncode=3, stdout="", stderr="boom")
        cli("hook", "create", "notify", "--event", "post_close", "--command", "false")

        result = cli("hook", "test", "notify")

        assert result.exit_code == 1
        assert payload(result)["success"] is False
