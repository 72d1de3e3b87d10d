"""Main CLI for vibe-ticket."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import click
import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from typer.core import TyperGroup

from .errors import VibeTicketError
from .filtering import TicketFilter, parse_date_filter
from .models import Priority, Status
from .output import format_response, render_cli
from .services import (
    ProjectContext,
    open_project,
    init_project,
    show_config,
    get_config_value,
    set_config_value,
)
from .services import tickets as svc_tickets
from .services import tasks as svc_tasks
from .services import time as svc_time
from .services import specs as svc_specs
from .services import customization as svc_custom
from .services import worktrees as svc_worktrees
from .services import data as svc_data

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


@dataclass
class CliState:
    """Global options shared by every command through ``ctx.obj``."""

    json_output: bool = False
    project: Optional[Path] = None
    verbose: bool = False


def _state(ctx: click.Context) -> CliState:
    return ctx.find_object(CliState) or CliState()


def _report_error(ctx: click.Context, error: VibeTicketError) -> None:
    if _state(ctx).json_output:
        typer.echo(json.dumps(error.to_dict(), indent=2))
        return
    err_console.print(f"[red]Error:[/red] {escape(error.message)}")
    for suggestion in error.suggestions():
        err_console.print(f"  [dim]•[/dim] {escape(suggestion)}")


class VibeTicketGroup(TyperGroup):
    """Root command group: expands user aliases and reports VibeTicketErrors."""

    def resolve_command(self, ctx: click.Context, args: List[str]):
        name = args[0] if args else None
        if name and not name.startswith("-") and self.get_command(ctx, name) is None:
            # Runs before the callback has stored the global options
            project_path = _state(ctx).project or ctx.params.get("project")
            try:
                project = open_project(project_path)
                args = svc_custom.expand_alias(project, name, args[1:])
            except VibeTicketError as e:
                # Falls through to click's "No such command" error
                logger.debug("No alias expansion for %s: %s", name, e.message)
            else:
                logger.debug("Alias %s -> %s", name, " ".join(args))
        return super().resolve_command(ctx, args)

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except VibeTicketError as e:
            _report_error(ctx, e)
            raise typer.Exit(1) from e


app = typer.Typer(
    name="vibe-ticket",
    help="vibe-ticket - local, file-backed ticket tracking",
    cls=VibeTicketGroup,
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output JSON instead of text"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    project: Optional[Path] = typer.Option(None, "--project", help="Project directory (default: search upward from cwd)"),
):
    """Local ticket tracking for vibe coding."""
    state = ctx.ensure_object(CliState)
    state.json_output = state.json_output or json_output
    state.verbose = state.verbose or verbose
    state.project = project or state.project
    if no_color:
        console.no_color = True
        err_console.no_color = True
    logging.basicConfig(
        level=logging.DEBUG if state.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _project(ctx: click.Context) -> ProjectContext:
    return open_project(_state(ctx).project)


def emit(ctx: click.Context, result: dict, renderer: Optional[Callable[[dict], object]] = None) -> None:
    """Print a service result as JSON or through ``renderer``."""
    if _state(ctx).json_output:
        typer.echo(render_cli(format_response(result, "json")))
        return
    response = format_response(result, "text", renderer)
    console.print(response["content"])
    for warning in result.get("warnings") or []:
        err_console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")


def _message(text: str) -> Callable[[dict], str]:
    return lambda result: text.format(**result)


# ============================================================================
# Text renderers
# ============================================================================


def _status_label(value: str) -> str:
    status = Status(value)
    return f"[{status.color}]{status.emoji} {status}[/{status.color}]"


def _priority_label(value: str) -> str:
    priority = Priority(value)
    return f"[{priority.color}]{priority}[/{priority.color}]"


def _ticket_table(rows: list[dict], title: Optional[str] = None) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Slug", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Tasks", justify="right")
    for row in rows:
        marker = "▶ " if row.get("active") else ""
        table.add_row(
            row["short_id"],
            marker + escape(row["slug"]),
            escape(row["title"]),
            _status_label(row["status"]),
            _priority_label(row["priority"]),
            row["tasks"],
        )
    return table


def _render_ticket_list(result: dict):
    if not result["tickets"]:
        return "[dim]No tickets found[/dim]"
    page = result["pagination"]
    title = f"Tickets ({len(result['tickets'])} of {page['total_count']})"
    if page["has_more"]:
        title += f" - next: --offset {page['next_offset']}"
    return _ticket_table(result["tickets"], title)


def _render_ticket(result: dict) -> str:
    ticket = result["ticket"]
    lines = [
        f"[bold]{escape(ticket['title'])}[/bold] [dim]({escape(ticket['slug'])})[/dim]",
        f"  ID:       {ticket['id']}",
        f"  Status:   {_status_label(ticket['status'])}",
        f"  Priority: {_priority_label(ticket['priority'])}",
    ]
    if ticket["assignee"]:
        lines.append(f"  Assignee: {escape(ticket['assignee'])}")
    if ticket["tags"]:
        lines.append(f"  Tags:     {escape(', '.join(ticket['tags']))}")
    lines.append(f"  Created:  {ticket['created_at']}")
    if ticket["started_at"]:
        lines.append(f"  Started:  {ticket['started_at']}")
    if ticket["closed_at"]:
        lines.append(f"  Closed:   {ticket['closed_at']}")
    if ticket["archived"]:
        lines.append("  [dim]Archived[/dim]")
    if ticket["branch"]:
        lines.append(f"  Branch:   {escape(ticket['branch'])}")
    if ticket["worktree_path"]:
        lines.append(f"  Worktree: {escape(ticket['worktree_path'])}")
    if result.get("time_spent"):
        lines.append(f"  Time:     {result['time_spent']}")
    if ticket["description"]:
        lines.extend(["", escape(ticket["description"])])
    if ticket["closing_message"]:
        lines.extend(["", f"[green]Closed:[/green] {escape(ticket['closing_message'])}"])
    if ticket["tasks"]:
        progress = ticket["task_progress"]
        lines.extend(["", f"[bold]Tasks[/bold] ({progress['completed']}/{progress['total']}, {progress['percentage']}%)"])
        for task in ticket["tasks"]:
            box = "[green]✓[/green]" if task["completed"] else "○"
            lines.append(f"  {task['index']}. {box} {escape(task['title'])}")
    return "\n".join(lines)


def _render_ticket_change(verb: str) -> Callable[[dict], str]:
    def render(result: dict) -> str:
        ticket = result["ticket"]
        if result.get("unchanged"):
            return f"[dim]{escape(ticket['slug'])} is already {ticket['status']}[/dim]"
        text = f"[green]✓[/green] {verb} [cyan]{escape(ticket['slug'])}[/cyan] ({_status_label(ticket['status'])})"
        if ticket.get("worktree_path") and verb == "Started":
            text += f"\n  Worktree: {escape(ticket['worktree_path'])}"
        elif ticket.get("branch") and verb == "Started":
            text += f"\n  Branch: {escape(ticket['branch'])}"
        return text

    return render


def _render_check(result: dict) -> str:
    project = result["project"]
    lines = [f"[bold]{escape(project['name'])}[/bold] [dim]{escape(project['path'])}[/dim]"]
    active = result["active_ticket"]
    if active and not active.get("missing"):
        lines.append(f"Active ticket: [cyan]{escape(active['slug'])}[/cyan] {_status_label(active['status'])}")
    elif active:
        lines.append(f"Active ticket: [red]{active['id']} (missing)[/red]")
    else:
        lines.append("Active ticket: [dim]none[/dim]")
    if result["git_branch"]:
        lines.append(f"Git branch:    {escape(result['git_branch'])}")
    if result.get("timer"):
        lines.append(f"Timer:         {escape(result['timer']['ticket_slug'])} ({result['timer']['elapsed']})")
    stats = result.get("statistics")
    if stats:
        lines.append("")
        lines.append(f"[bold]Tickets:[/bold] {stats['total']} ({stats['archived']} archived)")
        for status, count in stats["by_status"].items():
            lines.append(f"  {_status_label(status)}: {count}")
        lines.append("[bold]By priority:[/bold] " + ", ".join(f"{p} {c}" for p, c in stats["by_priority"].items()))
    if result.get("recent_tickets"):
        lines.append("")
        lines.append("[bold]Recent:[/bold]")
        for row in result["recent_tickets"]:
            lines.append(f"  {row['short_id']} [cyan]{escape(row['slug'])}[/cyan] {_status_label(row['status'])}")
    return "\n".join(lines)


def _render_board(result: dict) -> Table:
    columns = result["columns"]
    table = Table(title="Board", show_lines=False)
    for status in columns:
        table.add_column(_status_label(status) + f" ({len(columns[status])})")
    depth = max((len(items) for items in columns.values()), default=0)
    for i in range(depth):
        row = []
        for items in columns.values():
            if i < len(items):
                item = items[i]
                row.append(f"{_priority_label(item['priority'])} {escape(item['slug'])}")
            else:
                row.append("")
        table.add_row(*row)
    return table


def _render_bulk(result: dict) -> str:
    if result.get("dry_run"):
        lines = [f"[yellow]Dry run:[/yellow] {len(result['matched'])} ticket(s) match '{escape(result['expression'])}'"]
        lines.extend(f"  • {escape(row['slug'])}" for row in result["matched"])
        return "\n".join(lines)
    for key, verb in (("updated", "Updated"), ("closed", "Closed"), ("archived", "Archived")):
        if key in result:
            done = result[key]
            break
    lines = [f"[green]✓[/green] {verb} {result['count']} ticket(s)"]
    lines.extend(f"  • {escape(slug)}" for slug in done)
    return "\n".join(lines)


def _render_tasks(result: dict) -> str:
    if not result["tasks"]:
        return f"[dim]No tasks for {escape(result['ticket'])}[/dim]"
    progress = result["progress"]
    lines = [f"[bold]{escape(result['ticket'])}[/bold] ({progress['completed']}/{progress['total']}, {progress['percentage']}%)"]
    for task in result["tasks"]:
        box = "[green]✓[/green]" if task["completed"] else "○"
        lines.append(f"  {task['index']}. {box} {escape(task['title'])} [dim]{task['id'][:8]}[/dim]")
    return "\n".join(lines)


def _render_time_report(result: dict):
    if not result["tickets"]:
        return "[dim]No time logged[/dim]"
    table = Table(title=f"Time report{' (' + result['period'] + ')' if result['period'] else ''}")
    table.add_column("Ticket", style="cyan")
    table.add_column("Time", justify="right")
    for row in result["tickets"]:
        table.add_row(escape(row["ticket"]), row["duration"])
    table.add_row("[bold]Total[/bold]", f"[bold]{result['total']}[/bold]")
    return table


def _render_named_rows(key: str, columns: list[str]) -> Callable[[dict], object]:
    def render(result: dict):
        rows = result[key]
        if not rows:
            return f"[dim]No {key}[/dim]"
        table = Table()
        for column in columns:
            table.add_column(column.replace("_", " ").capitalize())
        for row in rows:
            table.add_row(*(escape(str(row.get(c) if row.get(c) is not None else "")) for c in columns))
        return table

    return render


def _render_spec(result: dict) -> str:
    spec = result["spec"]
    marker = " [green](active)[/green]" if spec["active"] else ""
    lines = [
        f"[bold]{escape(spec['title'])}[/bold]{marker}",
        f"  ID:    {spec['id']}",
        f"  Phase: {spec['current_phase']}",
    ]
    for phase, state in spec["phases"].items():
        flags = ("[green]completed[/green]" if state["completed"] else "[dim]pending[/dim]")
        if state["approved"]:
            flags += ", approved"
        lines.append(f"    {phase}: {flags}")
    if spec["description"]:
        lines.extend(["", escape(spec["description"])])
    for phase, content in (result.get("documents") or {}).items():
        if content:
            lines.extend(["", f"[bold]── {phase} ──[/bold]", escape(content)])
    return "\n".join(lines)


def _render_specs(result: dict):
    if not result["specs"]:
        return "[dim]No specifications[/dim]"
    table = Table(title="Specifications")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Phase")
    for spec in result["specs"]:
        title = escape(spec["title"]) + (" [green]*[/green]" if spec["active"] else "")
        table.add_row(spec["id"][:8], title, spec["current_phase"])
    return table


def _render_spec_status(result: dict) -> str:
    lines = [f"[bold]{escape(result['title'])}[/bold] - {result['progress']}% complete (phase: {result['current_phase']})"]
    for phase in result["phases"]:
        box = "[green]✓[/green]" if phase["completed"] else "○"
        extra = " approved" if phase["approved"] else ""
        extra += "" if phase["document"] else " [dim](no document)[/dim]"
        lines.append(f"  {box} {phase['phase']}{extra}")
    return "\n".join(lines)


def _render_yaml(result: dict) -> str:
    return escape(yaml.safe_dump(result, sort_keys=False, allow_unicode=True).rstrip())


# ============================================================================
# Project Commands
# ============================================================================


@app.command("init")
def init_cmd(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Project name (default: directory name)"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Project description"),
    force: bool = typer.Option(False, "--force", "-f", help="Reinitialize an existing project"),
):
    """Initialize a vibe-ticket project in the current (or --project) directory."""
    result = init_project(_state(ctx).project, name=name, description=description, force=force)
    emit(ctx, result, _message("[green]✓[/green] Initialized project [bold]{name}[/bold] in {project_root}"))


@app.command("check")
def check_cmd(
    ctx: typer.Context,
    detailed: bool = typer.Option(False, "--detailed", help="Include recent tickets"),
    stats: bool = typer.Option(False, "--stats", help="Include ticket statistics"),
):
    """Show project status, the active ticket and the current git branch."""
    emit(ctx, svc_tickets.check_project(_project(ctx), detailed=detailed, stats=stats), _render_check)


# ============================================================================
# Ticket Commands
# ============================================================================


@app.command("new")
def new_cmd(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Ticket slug (lowercase letters, digits, hyphens)"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title (default: slug in title case)"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description"),
    priority: Optional[str] = typer.Option(None, "--priority", "-p", help="low|medium|high|critical"),
    tags: Optional[str] = typer.Option(None, "--tags", help="Comma-separated tags"),
    assignee: Optional[str] = typer.Option(None, "--assignee", "-a", help="Assignee"),
    start: bool = typer.Option(False, "--start", "-s", help="Start working on the ticket immediately"),
    worktree: Optional[bool] = typer.Option(None, "--worktree/--no-worktree", help="Create a git worktree when starting"),
):
    """Create a new ticket."""
    result = svc_tickets.create_ticket(
        _project(ctx),
        slug,
        title=title,
        description=description or "",
        priority=priority,
        tags=tags,
        assignee=assignee,
        start=start,
        worktree=worktree,
    )
    emit(ctx, result, _render_ticket_change("Started" if start else "Created"))


def _build_filter(
    project: ProjectContext,
    status: Optional[str],
    priority: Optional[str],
    assignee: Optional[str],
    tag: Optional[str],
    open_only: bool,
    closed_only: bool,
    archived: bool,
    since: Optional[str],
    until: Optional[str],
    sort: str,
    reverse: bool,
    filter_expr: Optional[str],
    has_tasks: Optional[bool] = None,
    created: Optional[str] = None,
    closed_on: Optional[str] = None,
) -> TicketFilter:
    expression = project.filters.resolve(filter_expr) if filter_expr else None
    if archived:
        show_archived = True
    elif expression and "is:archived" in expression:
        show_archived = None
    else:
        show_archived = False
    return TicketFilter(
        status=Status.parse(status) if status else None,
        priority=Priority.parse(priority) if priority else None,
        assignee=assignee,
        tags=svc_tickets.parse_tags(tag),
        open_only=open_only,
        closed_only=closed_only,
        archived=show_archived,
        since=parse_date_filter(since).start if since else None,
        until=parse_date_filter(until).end if until else None,
        has_tasks=has_tasks,
        created=parse_date_filter(created) if created else None,
        closed=parse_date_filter(closed_on) if closed_on else None,
        expression=expression,
        sort_by=sort,
        reverse=reverse,
    )


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status"),
    priority: Optional[str] = typer.Option(None, "--priority", "-p", help="Filter by priority"),
    assignee: Optional[str] = typer.Option(None, "--assignee", "-a", help="Filter by assignee"),
    tag: Optional[str] = typer.Option(None, "--tag", help="Filter by tag (comma-separated: all must match)"),
    open_only: bool = typer.Option(False, "--open", help="Only tickets that are not done"),
    closed_only: bool = typer.Option(False, "--closed", help="Only done tickets"),
    archived: bool = typer.Option(False, "--archived", help="Show archived tickets instead"),
    since: Optional[str] = typer.Option(None, "--since", help="Created on/after (YYYY-MM-DD, today, last-7, ...)"),
    until: Optional[str] = typer.Option(None, "--until", help="Created on/before"),
    created: Optional[str] = typer.Option(None, "--created", help="Created within a date filter (today, week, last-7, 2024-01-01..2024-01-31)"),
    closed_on: Optional[str] = typer.Option(None, "--closed-on", help="Closed within a date filter"),
    has_tasks: Optional[bool] = typer.Option(None, "--has-tasks/--no-tasks", help="Only tickets with (or without) tasks"),
    sort: str = typer.Option("created", "--sort", help="created|started|closed|priority|status|title|slug"),
    reverse: bool = typer.Option(False, "--reverse", "-r", help="Reverse sort order"),
    limit: int = typer.Option(50, "--limit", help="Maximum tickets to show"),
    offset: int = typer.Option(0, "--offset", help="Skip first N tickets for pagination"),
    filter_expr: Optional[str] = typer.Option(None, "--filter", help="Filter expression or @saved-filter"),
):
    """List tickets."""
    project = _project(ctx)
    ticket_filter = _build_filter(
        project, status, priority, assignee, tag, open_only, closed_only,
        archived, since, until, sort, reverse, filter_expr,
        has_tasks=has_tasks, created=created, closed_on=closed_on,
    )
    emit(ctx, svc_tickets.list_tickets(project, ticket_filter, limit=limit, offset=offset), _render_ticket_list)


@app.command("open")
def open_cmd(
    ctx: typer.Context,
    sort: str = typer.Option("priority", "--sort", help="Sort key"),
    limit: int = typer.Option(50, "--limit", help="Maximum tickets to show"),
):
    """List open tickets, highest priority first."""
    result = svc_tickets.list_tickets(_project(ctx), TicketFilter(open_only=True, sort_by=sort), limit=limit)
    emit(ctx, result, _render_ticket_list)


@app.command("show")
def show_cmd(
    ctx: typer.Context,
    ref: Optional[str] = typer.Argument(None, help="Ticket id, id prefix or slug (default: active ticket)"),
):
    """Show ticket details."""
    emit(ctx, svc_tickets.get_ticket(_project(ctx), ref), _render_ticket)


@app.command("edit")
def edit_cmd(
    ctx: typer.Context,
    ref: Optional[str] = typer.Argument(None, help="Ticket reference (default: active ticket)"),
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    priority: Optional[str] = typer.Option(None, "--priority", "-p"),
    status: Optional[str] = typer.Option(None, "--status", "-s"),
    assignee: Optional[str] = typer.Option(None, "--assignee", "-a", help="Assignee ('' to clear)"),
    tags: Optional[str] = typer.Option(None, "--tags", help="Replace all tags (comma-separated)"),
    add_tags: Optional[str] = typer.Option(None, "--add-tags", help="Tags to add"),
    remove_tags: Optional[str] = typer.Option(None, "--remove-tags", help="Tags to remove"),
    editor: bool = typer.Option(False, "--editor", "-e", help="Edit the description in $EDITOR"),
):
    """Edit ticket fields."""
    project = _project(ctx)
    if editor:
        current = svc_tickets.resolve_ticket_ref(project, ref)
        edited = typer.edit(description if description is not None else current.description)
        if edited is not None:
            description = edited.rstrip("\n")
        ref = str(current.id)
    result = svc_tickets.edit_ticket(
        project,
        ref,
        title=title,
        description=description,
        priority=priority,
        status=status,
        assignee=assignee,
        tags=tags,
        add_tags=add_tags,
        remove_tags=remove_tags,
    )
    emit(ctx, result, lambda r: f"[green]✓[/green] Updated [cyan]{escape(r['ticket']['slug'])}[/cyan]: {', '.join(r['changed'])}")


@app.command("start")
def start_cmd(
    ctx: typer.Context,
    ref: str = typer.Argument(..., help="Ticket reference"),
    worktree: Optional[bool] = typer.Option(None, "--worktree/--no-worktree", help="Create a git worktree (default from config)"),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Branch name (default: <branch_prefix><slug>)"),
):
    """Start working on a ticket and make it the active ticket."""
    result = svc_tickets.start_ticket(_project(ctx), ref, worktree=worktree, branch=branch)
    emit(ctx, result, _render_ticket_change("Started"))


@app.command("review")
def review_cmd(ctx: typer.Context, ref: Optional[str] = typer.Argument(None, help="Ticket reference")):
    """Move a ticket to review."""
    emit(ctx, svc_tickets.review_ticket(_project(ctx), ref), _render_ticket_change("Moved to review"))


@app.command("block")
def block_cmd(
    ctx: typer.Context,
    ref: Optional[str] = typer.Argument(None, help="Ticket reference"),
    reason: Optional[str] = typer.Option(None, "--reason", help="Why the ticket is blocked"),
):
    """Mark a ticket as blocked."""
    emit(ctx, svc_tickets.block_ticket(_project(ctx), ref, reason=reason), _render_ticket_change("Blocked"))


@app.command("request-changes")
def request_changes_cmd(
    ctx: typer.Context,
    changes: str = typer.Argument(..., help="What needs to change"),
    ref: Optional[str] = typer.Option(None, "--ticket", "-t", help="Ticket reference (default: active ticket)"),
):
    """Send a ticket back to doing with requested changes."""
    result = svc_tickets.request_changes(_project(ctx), changes, ref)
    emit(ctx, result, _render_ticket_change("Changes requested for"))


@app.command("handoff")
def handoff_cmd(
    ctx: typer.Context,
    assignee: str = typer.Argument(..., help="New assignee"),
    ref: Optional[str] = typer.Option(None, "--ticket", "-t", help="Ticket reference (default: active ticket)"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Handoff notes added to the description"),
):
    """Hand a ticket off to another person or agent."""
    result = svc_tickets.handoff_ticket(_project(ctx), assignee, ref, notes=notes)
    emit(
        ctx,
        result,
        lambda r: f"[green]✓[/green] Handed off [cyan]{escape(r['ticket']['slug'])}[/cyan] "
        f"from {escape(r['from'] or 'unassigned')} to {escape(r['to'])}",
    )


@app.command("approve")
def approve_cmd(
    ctx: typer.Context,
    ref: Optional[str] = typer.Argument(None, help="Ticket reference"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Approval message"),
):
    """Approve a ticket, closing it."""
    emit(ctx, svc_tickets.approve_ticket(_project(ctx), ref, message=message), _render_ticket_change("Approved"))


@app.command("finish")
def finish_cmd(
    ctx: typer.Context,
    ref: Optional[str] = typer.Argument(None, help="Ticket reference"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Closing message"),
    keep_worktree: bool = typer.Option(False, "--keep-worktree", help="Do not remove the ticket worktree"),
):
    """Finish a ticket: close it and clean up its worktree."""
    result = svc_tickets.finish_ticket(_project(ctx), ref, message=message, keep_worktree=keep_worktree)
    emit(ctx, result, _render_ticket_change("Finished"))


@app.command("close")
def close_cmd(
    ctx: typer.Context,
    ref: Optional[str] = typer.Argument(None, help="Ticket reference"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Closing message"),
    archive: bool = typer.Option(False, "--archive", help="Archive the ticket as well"),
):
    """Close a ticket."""
    result = svc_tickets.close_ticket(_project(ctx), ref, message=message, archive=archive)
    emit(ctx, result, _render_ticket_change("Closed"))


@app.command("reopen")
def reopen_cmd(ctx: typer.Context, ref: str = typer.Argument(..., help="Ticket reference")):
    """Reopen a closed ticket."""
    emit(ctx, svc_tickets.reopen_ticket(_project(ctx), ref), _render_ticket_change("Reopened"))


@app.command("archive")
def archive_cmd(
    ctx: typer.Context,
    ref: str = typer.Argument(..., help="Ticket reference"),
    unarchive: bool = typer.Option(False, "--unarchive", help="Restore an archived ticket"),
):
    """Archive (or restore) a ticket."""
    result = svc_tickets.archive_ticket(_project(ctx), ref, unarchive=unarchive)
    emit(ctx, result, _render_ticket_change("Unarchived" if unarchive else "Archived"))


@app.command("delete")
def delete_cmd(
    ctx: typer.Context,
    ref: str = typer.Argument(..., help="Ticket reference"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Permanently delete a ticket."""
    project = _project(ctx)
    if not force:
        ticket = svc_tickets.resolve_ticket_ref(project, ref)
        typer.confirm(f"Delete ticket '{ticket.slug}'? This cannot be undone", abort=True)
        ref = str(ticket.id)
    emit(ctx, svc_tickets.delete_ticket(project, ref), _message("[green]✓[/green] Deleted {slug}"))


@app.command("search")
def search_cmd(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Text or regular expression"),
    title: bool = typer.Option(False, "--title", help="Search titles"),
    description: bool = typer.Option(False, "--description", help="Search descriptions"),
    tags: bool = typer.Option(False, "--tags", help="Search tags"),
    regex: bool = typer.Option(False, "--regex", help="Treat the query as a regular expression"),
    archived: bool = typer.Option(False, "--archived", help="Include archived tickets"),
    limit: int = typer.Option(50, "--limit", help="Maximum results"),
):
    """Search tickets. Without field flags all fields are searched."""
    result = svc_tickets.search_tickets(
        _project(ctx),
        query,
        in_title=title,
        in_description=description,
        in_tags=tags,
        regex=regex,
        include_archived=archived,
        limit=limit,
    )
    emit(ctx, result, _render_ticket_list)


@app.command("board")
def board_cmd(
    ctx: typer.Context,
    no_done: bool = typer.Option(False, "--no-done", help="Hide the done column"),
):
    """Show open tickets as a board grouped by status."""
    emit(ctx, svc_tickets.board(_project(ctx), include_done=not no_done), _render_board)


# ============================================================================
# Task Commands
# ============================================================================

task_app = typer.Typer(help="Manage tasks within a ticket")
app.add_typer(task_app, name="task")

_TICKET_OPTION_HELP = "Ticket reference (default: active ticket)"


@task_app.command("add")
def task_add(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Task title"),
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help=_TICKET_OPTION_HELP),
):
    """Add a task."""
    result = svc_tasks.add_task(_project(ctx), title, ticket)
    emit(ctx, result, lambda r: f"[green]✓[/green] Added task {r['task']['index']} to [cyan]{escape(r['ticket'])}[/cyan]")


@task_app.command("complete")
def task_complete(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task index (1-based) or id"),
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help=_TICKET_OPTION_HELP),
):
    """Mark a task as completed."""
    result = svc_tasks.complete_task(_project(ctx), task, ticket)
    emit(ctx, result, lambda r: f"[green]✓[/green] Completed: {escape(r['task']['title'])}")


@task_app.command("uncomplete")
def task_uncomplete(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task index (1-based) or id"),
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help=_TICKET_OPTION_HELP),
):
    """Mark a task as not completed."""
    result = svc_tasks.uncomplete_task(_project(ctx), task, ticket)
    emit(ctx, result, lambda r: f"○ Reopened: {escape(r['task']['title'])}")


@task_app.command("list")
def task_list(
    ctx: typer.Context,
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help=_TICKET_OPTION_HELP),
    completed: bool = typer.Option(False, "--completed", help="Only completed tasks"),
    incomplete: bool = typer.Option(False, "--incomplete", help="Only incomplete tasks"),
):
    """List tasks."""
    result = svc_tasks.list_tasks(_project(ctx), ticket, completed_only=completed, incomplete_only=incomplete)
    emit(ctx, result, _render_tasks)


@task_app.command("remove")
def task_remove(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task index (1-based) or id"),
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help=_TICKET_OPTION_HELP),
):
    """Remove a task."""
    result = svc_tasks.remove_task(_project(ctx), task, ticket)
    emit(ctx, result, lambda r: f"[green]✓[/green] Removed: {escape(r['removed'])}")


# ============================================================================
# Time Tracking Commands
# ============================================================================

time_app = typer.Typer(help="Track time spent on tickets")
app.add_typer(time_app, name="time")


@time_app.command("log")
def time_log(
    ctx: typer.Context,
    duration: str = typer.Argument(..., help="Duration like 1h30m, 2h, 45m or minutes"),
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help=_TICKET_OPTION_HELP),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="What was done"),
    date: Optional[str] = typer.Option(None, "--date", help="Date of the work (YYYY-MM-DD)"),
):
    """Log time on a ticket."""
    result = svc_time.log_time(_project(ctx), duration, ticket, notes=notes, date=date)
    emit(ctx, result, lambda r: f"[green]✓[/green] Logged {r['entry']['duration']} on [cyan]{escape(r['ticket'])}[/cyan] (total {r['total']})")


@time_app.command("start")
def time_start(
    ctx: typer.Context,
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help=_TICKET_OPTION_HELP),
    notes: Optional[str] = typer.Option(None, "--notes", "-n"),
):
    """Start a timer."""
    result = svc_time.start_timer(_project(ctx), ticket, notes=notes)
    emit(ctx, result, lambda r: f"⏱  Timer started for [cyan]{escape(r['ticket'])}[/cyan]")


@time_app.command("stop")
def time_stop(ctx: typer.Context, notes: Optional[str] = typer.Option(None, "--notes", "-n")):
    """Stop the running timer and log the elapsed time."""
    result = svc_time.stop_timer(_project(ctx), notes=notes)
    emit(ctx, result, lambda r: f"[green]✓[/green] Logged {r['entry']['duration']} on [cyan]{escape(r['ticket'])}[/cyan] (total {r['total']})")


@time_app.command("status")
def time_status(ctx: typer.Context):
    """Show the running timer."""
    result = svc_time.timer_status(_project(ctx))
    emit(
        ctx,
        result,
        lambda r: f"⏱  [cyan]{escape(r['ticket'])}[/cyan] running for {r['elapsed']}" if r["running"] else "[dim]No timer running[/dim]",
    )


@time_app.command("report")
def time_report(
    ctx: typer.Context,
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help="Only this ticket"),
    period: Optional[str] = typer.Option(None, "--period", help="today, week, month, last-N or a date range"),
    detailed: bool = typer.Option(False, "--detailed", help="Include individual entries"),
):
    """Summarize logged time."""
    result = svc_time.time_report(_project(ctx), ticket, period=period, detailed=detailed)
    emit(ctx, result, _render_time_report)


# ============================================================================
# Bulk Commands
# ============================================================================

bulk_app = typer.Typer(help="Operate on every ticket matching a filter expression")
app.add_typer(bulk_app, name="bulk")


@bulk_app.command("update")
def bulk_update(
    ctx: typer.Context,
    expression: str = typer.Argument(..., help="Filter expression or @saved-filter"),
    status: Optional[str] = typer.Option(None, "--status", "-s"),
    priority: Optional[str] = typer.Option(None, "--priority", "-p"),
    assignee: Optional[str] = typer.Option(None, "--assignee", "-a", help="Assignee ('unassigned' to clear)"),
    add_tags: Optional[str] = typer.Option(None, "--add-tags"),
    remove_tags: Optional[str] = typer.Option(None, "--remove-tags"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show matching tickets without changing them"),
):
    """Update all matching tickets."""
    result = svc_tickets.bulk_update(
        _project(ctx),
        expression,
        status=status,
        priority=priority,
        assignee=assignee,
        add_tags=add_tags,
        remove_tags=remove_tags,
        dry_run=dry_run,
    )
    emit(ctx, result, _render_bulk)


@bulk_app.command("close")
def bulk_close(
    ctx: typer.Context,
    expression: str = typer.Argument(..., help="Filter expression or @saved-filter"),
    message: Optional[str] = typer.Option(None, "--message", "-m"),
    archive: bool = typer.Option(False, "--archive", help="Archive closed tickets"),
    dry_run: bool = typer.Option(False, "--dry-run"),
):
    """Close all matching open tickets."""
    result = svc_tickets.bulk_close(_project(ctx), expression, message=message, archive=archive, dry_run=dry_run)
    emit(ctx, result, _render_bulk)


@bulk_app.command("tag")
def bulk_tag(
    ctx: typer.Context,
    expression: str = typer.Argument(..., help="Filter expression or @saved-filter"),
    add: Optional[str] = typer.Option(None, "--add", help="Tags to add (comma-separated)"),
    remove: Optional[str] = typer.Option(None, "--remove", help="Tags to remove (comma-separated)"),
    dry_run: bool = typer.Option(False, "--dry-run"),
):
    """Add or remove tags on all matching tickets."""
    result = svc_tickets.bulk_tag(_project(ctx), expression, add=add, remove=remove, dry_run=dry_run)
    emit(ctx, result, _render_bulk)


@bulk_app.command("archive")
def bulk_archive(
    ctx: typer.Context,
    expression: str = typer.Argument(..., help="Filter expression or @saved-filter"),
    dry_run: bool = typer.Option(False, "--dry-run"),
):
    """Archive all matching tickets."""
    emit(ctx, svc_tickets.bulk_archive(_project(ctx), expression, dry_run=dry_run), _render_bulk)


# ============================================================================
# Alias, Filter and Hook Commands
# ============================================================================

alias_app = typer.Typer(help="Command aliases")
app.add_typer(alias_app, name="alias")


@alias_app.command("create")
def alias_create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Alias name"),
    command: str = typer.Argument(..., help="Command line the alias expands to (quoted)"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing alias"),
):
    """Create an alias. Run it as `vibe-ticket NAME` or `vibe-ticket alias run NAME`."""
    result = svc_custom.create_alias(_project(ctx), name, command, description=description, overwrite=overwrite)
    emit(ctx, result, lambda r: f"[green]✓[/green] Alias [cyan]{escape(r['alias']['name'])}[/cyan] -> {escape(r['alias']['command'])}")


@alias_app.command("list")
def alias_list(ctx: typer.Context):
    """List aliases."""
    emit(ctx, svc_custom.list_aliases(_project(ctx)), _render_named_rows("aliases", ["name", "command", "description"]))


@alias_app.command("delete")
def alias_delete(ctx: typer.Context, name: str = typer.Argument(...)):
    """Delete an alias."""
    emit(ctx, svc_custom.delete_alias(_project(ctx), name), _message("[green]✓[/green] Deleted alias {deleted}"))


@alias_app.command(
    "run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def alias_run(ctx: typer.Context, name: str = typer.Argument(..., help="Alias name")):
    """Run an alias with any extra arguments appended."""
    argv = svc_custom.expand_alias(_project(ctx), name, list(ctx.args))
    root = ctx.find_root()
    with root.command.make_context(root.info_name, argv, obj=_state(ctx)) as sub_ctx:
        root.command.invoke(sub_ctx)


filter_app = typer.Typer(help="Saved filters (use as @name in --filter and bulk)")
app.add_typer(filter_app, name="filter")


@filter_app.command("create")
def filter_create(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    expression: str = typer.Argument(..., help="e.g. 'status:todo,doing priority:high'"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
):
    """Save a filter expression."""
    result = svc_custom.create_filter(_project(ctx), name, expression, description=description)
    emit(ctx, result, lambda r: f"[green]✓[/green] Saved filter [cyan]@{escape(r['filter']['name'])}[/cyan]")


@filter_app.command("list")
def filter_list(ctx: typer.Context):
    """List saved filters."""
    emit(ctx, svc_custom.list_filters(_project(ctx)), _render_named_rows("filters", ["name", "expression", "description"]))


@filter_app.command("show")
def filter_show(ctx: typer.Context, name: str = typer.Argument(...)):
    """Show a saved filter."""
    emit(ctx, svc_custom.show_filter(_project(ctx), name), _render_yaml)


@filter_app.command("delete")
def filter_delete(ctx: typer.Context, name: str = typer.Argument(...)):
    """Delete a saved filter."""
    emit(ctx, svc_custom.delete_filter(_project(ctx), name), _message("[green]✓[/green] Deleted filter {deleted}"))


@filter_app.command("apply")
def filter_apply(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    archived: bool = typer.Option(False, "--archived", help="Include archived tickets"),
    limit: int = typer.Option(50, "--limit"),
    offset: int = typer.Option(0, "--offset"),
):
    """List tickets matching a saved filter."""
    result = svc_custom.apply_filter(_project(ctx), name, include_archived=archived, limit=limit, offset=offset)
    emit(ctx, result, _render_ticket_list)


hook_app = typer.Typer(help="Shell hooks run on ticket events")
app.add_typer(hook_app, name="hook")


@hook_app.command("create")
def hook_create(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    event: str = typer.Option(..., "--event", "-e", help="e.g. post_create, pre_close, post_status_change"),
    command: str = typer.Option(..., "--command", "-c", help="Shell command"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    abort_on_failure: bool = typer.Option(False, "--abort-on-failure", help="Abort the operation if a pre_* hook fails"),
):
    """Create a hook."""
    result = svc_custom.create_hook(
        _project(ctx), name, event, command, description=description, abort_on_failure=abort_on_failure,
    )
    emit(ctx, result, lambda r: f"[green]✓[/green] Hook [cyan]{escape(r['hook']['name'])}[/cyan] on {r['hook']['event']}")


@hook_app.command("list")
def hook_list(ctx: typer.Context, event: Optional[str] = typer.Option(None, "--event", "-e")):
    """List hooks."""
    emit(ctx, svc_custom.list_hooks(_project(ctx), event), _render_named_rows("hooks", ["name", "event", "command", "enabled"]))


@hook_app.command("delete")
def hook_delete(ctx: typer.Context, name: str = typer.Argument(...)):
    """Delete a hook."""
    emit(ctx, svc_custom.delete_hook(_project(ctx), name), _message("[green]✓[/green] Deleted hook {deleted}"))


@hook_app.command("enable")
def hook_enable(ctx: typer.Context, name: str = typer.Argument(...)):
    """Enable a hook."""
    result = svc_custom.set_hook_enabled(_project(ctx), name, True)
    emit(ctx, result, lambda r: f"[green]✓[/green] Enabled {escape(r['hook']['name'])}")


@hook_app.command("disable")
def hook_disable(ctx: typer.Context, name: str = typer.Argument(...)):
    """Disable a hook."""
    result = svc_custom.set_hook_enabled(_project(ctx), name, False)
    emit(ctx, result, lambda r: f"[green]✓[/green] Disabled {escape(r['hook']['name'])}")


@hook_app.command("test")
def hook_test(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help="Ticket to pass in the hook context"),
):
    """Run a hook now."""
    result = svc_custom.run_hook_test(_project(ctx), name, ticket)
    emit(
        ctx,
        result,
        lambda r: f"[green]✓[/green] Hook {escape(r['hook'])} succeeded" if r["success"]
        else f"[red]✗[/red] Hook {escape(r['hook'])} failed: {escape(r['error'])}",
    )
    if not result["success"]:
        raise typer.Exit(1)


# ============================================================================
# Import / Export Commands
# ============================================================================


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    fmt: str = typer.Argument(..., metavar="FORMAT", help="json|yaml|csv|markdown"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to a file instead of stdout"),
    include_archived: bool = typer.Option(False, "--include-archived", help="Include archived tickets"),
):
    """Export tickets."""
    result = svc_data.export_data(_project(ctx), fmt, output=output, include_archived=include_archived)
    if output is None and not _state(ctx).json_output:
        typer.echo(result["content"], nl=False)
        return
    emit(ctx, result, _message("[green]✓[/green] Exported {count} tickets to {path}"))


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="File to import"),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="json|yaml|csv (default: detect)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate without saving"),
    skip_validation: bool = typer.Option(False, "--skip-validation", help="Skip duplicate checks within the file"),
):
    """Import tickets."""
    result = svc_data.import_data(_project(ctx), file, fmt=fmt, dry_run=dry_run, skip_validation=skip_validation)

    def render(r: dict) -> str:
        prefix = "[yellow]Dry run:[/yellow] would import" if r["dry_run"] else "[green]✓[/green] Imported"
        text = f"{prefix} {r['count']} ticket(s)"
        if r["skipped"]:
            text += f", skipped {len(r['skipped'])} existing: {escape(', '.join(r['skipped']))}"
        return text

    emit(ctx, result, render)


# ============================================================================
# Spec Commands
# ============================================================================

spec_app = typer.Typer(help="Spec-driven development: requirements, design, tasks")
app.add_typer(spec_app, name="spec")


@spec_app.command("init")
def spec_init(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Specification title"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help="Associated ticket"),
    tags: Optional[str] = typer.Option(None, "--tags"),
    no_activate: bool = typer.Option(False, "--no-activate", help="Do not make it the active spec"),
):
    """Create a specification."""
    result = svc_specs.init_spec(
        _project(ctx), title, description=description or "", ticket_ref=ticket, tags=tags, activate=not no_activate,
    )
    emit(ctx, result, _render_spec)


@spec_app.command("list")
def spec_list(ctx: typer.Context, phase: Optional[str] = typer.Option(None, "--phase", help="Only specs in this phase")):
    """List specifications."""
    emit(ctx, svc_specs.list_specs(_project(ctx), phase), _render_specs)


@spec_app.command("show")
def spec_show(
    ctx: typer.Context,
    spec: Optional[str] = typer.Argument(None, help="Spec id or prefix (default: active spec)"),
    documents: bool = typer.Option(False, "--documents", help="Include phase documents"),
):
    """Show a specification."""
    emit(ctx, svc_specs.show_spec(_project(ctx), spec, include_documents=documents), _render_spec)


@spec_app.command("update")
def spec_update(
    ctx: typer.Context,
    spec: Optional[str] = typer.Argument(None, help="Spec id or prefix (default: active spec)"),
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    tags: Optional[str] = typer.Option(None, "--tags", help="Replace all tags (comma-separated)"),
):
    """Update a specification's title, description or tags."""
    result = svc_specs.update_spec(_project(ctx), spec, title=title, description=description, tags=tags)
    emit(ctx, result, _render_spec)


@spec_app.command("status")
def spec_status(ctx: typer.Context, spec: Optional[str] = typer.Argument(None)):
    """Show phase progress of a specification."""
    emit(ctx, svc_specs.spec_status(_project(ctx), spec), _render_spec_status)


def _phase_command(ctx: typer.Context, phase: str, spec: Optional[str], editor: bool, complete: bool) -> dict:
    project = _project(ctx)
    if not editor:
        return svc_specs.phase_document(project, phase, spec, complete=complete)
    result = svc_specs.phase_document(project, phase, spec)
    typer.edit(filename=result["path"])
    content = Path(result["path"]).read_text(encoding="utf-8")
    return svc_specs.phase_document(project, phase, result["spec_id"], content=content, complete=complete)


def _render_phase(result: dict) -> str:
    lines = []
    if result["created"]:
        lines.append(f"[green]✓[/green] Created {result['path']}")
    if result["completed"]:
        lines.append(f"[green]✓[/green] {result['phase'].capitalize()} phase complete")
    lines.append(escape(result["content"]))
    return "\n".join(lines)


@spec_app.command("requirements")
def spec_requirements(
    ctx: typer.Context,
    spec: Optional[str] = typer.Argument(None),
    editor: bool = typer.Option(False, "--editor", "-e", help="Open the document in $EDITOR"),
    complete: bool = typer.Option(False, "--complete", help="Mark the phase as complete"),
):
    """Show or edit the requirements document."""
    emit(ctx, _phase_command(ctx, "requirements", spec, editor, complete), _render_phase)


@spec_app.command("design")
def spec_design(
    ctx: typer.Context,
    spec: Optional[str] = typer.Argument(None),
    editor: bool = typer.Option(False, "--editor", "-e"),
    complete: bool = typer.Option(False, "--complete"),
):
    """Show or edit the design document."""
    emit(ctx, _phase_command(ctx, "design", spec, editor, complete), _render_phase)


@spec_app.command("tasks")
def spec_tasks(
    ctx: typer.Context,
    spec: Optional[str] = typer.Argument(None),
    editor: bool = typer.Option(False, "--editor", "-e"),
    complete: bool = typer.Option(False, "--complete"),
    export_tickets: bool = typer.Option(False, "--export-tickets", help="Create a ticket for every unchecked task"),
):
    """Show or edit the tasks document, optionally exporting tasks as tickets."""
    result = _phase_command(ctx, "tasks", spec, editor, complete)
    if export_tickets:
        exported = svc_specs.export_spec_tickets(_project(ctx), result["spec_id"])
        result["exported"] = exported["created"]
        result["skipped"] = exported["skipped"]
        result.setdefault("warnings", []).extend(exported.get("warnings", []))

    def render(r: dict) -> str:
        text = _render_phase(r)
        if export_tickets:
            text += f"\n[green]✓[/green] Exported {len(r['exported'])} task(s) as tickets"
            if r["skipped"]:
                text += f" ({len(r['skipped'])} already existed)"
        return text

    emit(ctx, result, render)


@spec_app.command("approve")
def spec_approve(
    ctx: typer.Context,
    phase: str = typer.Argument(..., help="requirements|design|tasks"),
    spec: Optional[str] = typer.Argument(None),
    message: Optional[str] = typer.Option(None, "--message", "-m"),
):
    """Approve a phase."""
    result = svc_specs.approve_phase(_project(ctx), phase, spec, message=message)
    emit(ctx, result, lambda r: f"[green]✓[/green] Approved {r['approved']} for {escape(r['spec']['title'])}")


@spec_app.command("activate")
def spec_activate(ctx: typer.Context, spec: str = typer.Argument(...)):
    """Make a specification the active one."""
    result = svc_specs.activate_spec(_project(ctx), spec)
    emit(ctx, result, lambda r: f"[green]✓[/green] Active spec: {escape(r['spec']['title'])}")


@spec_app.command("delete")
def spec_delete(
    ctx: typer.Context,
    spec: str = typer.Argument(...),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Delete a specification and its documents."""
    if not force:
        typer.confirm(f"Delete specification '{spec}'?", abort=True)
    emit(ctx, svc_specs.delete_spec(_project(ctx), spec), _message("[green]✓[/green] Deleted spec {deleted}"))


# ============================================================================
# Worktree Commands
# ============================================================================

worktree_app = typer.Typer(help="Git worktrees created for tickets")
app.add_typer(worktree_app, name="worktree")


@worktree_app.command("list")
def worktree_list(ctx: typer.Context, show_all: bool = typer.Option(False, "--all", help="Include non-ticket worktrees")):
    """List ticket worktrees."""
    result = svc_worktrees.list_worktrees(_project(ctx), show_all=show_all)
    emit(ctx, result, _render_named_rows("worktrees", ["path", "branch", "ticket"]))


@worktree_app.command("remove")
def worktree_remove(
    ctx: typer.Context,
    ref: str = typer.Argument(..., help="Worktree path or ticket reference"),
    force: bool = typer.Option(False, "--force", "-f", help="Remove even with uncommitted changes"),
):
    """Remove a worktree."""
    result = svc_worktrees.remove_worktree(_project(ctx), ref, force=force)
    emit(ctx, result, _message("[green]✓[/green] Removed {removed}"))


@worktree_app.command("prune")
def worktree_prune(ctx: typer.Context, dry_run: bool = typer.Option(False, "--dry-run")):
    """Prune stale worktree records."""
    result = svc_worktrees.prune_worktrees(_project(ctx), dry_run=dry_run)
    emit(ctx, result, lambda r: f"[green]✓[/green] Cleared {len(r['cleared'])} stale worktree path(s)")


# ============================================================================
# Config and MCP Commands
# ============================================================================

config_app = typer.Typer(help="Project configuration")
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Show the effective configuration."""
    emit(ctx, show_config(_project(ctx)), _render_yaml)


@config_app.command("get")
def config_get(ctx: typer.Context, key: str = typer.Argument(..., help="Dotted key, e.g. git.branch_prefix")):
    """Get one configuration value."""
    emit(ctx, get_config_value(_project(ctx), key), _message("{key} = {value}"))


@config_app.command("set")
def config_set(ctx: typer.Context, key: str = typer.Argument(...), value: str = typer.Argument(...)):
    """Set a configuration value in .vibe-ticket/config.yaml."""
    emit(ctx, set_config_value(_project(ctx), key, value), _message("[green]✓[/green] {key} = {value}"))


mcp_app = typer.Typer(help="Model Context Protocol server")
app.add_typer(mcp_app, name="mcp")


@mcp_app.command("serve")
def mcp_serve():
    """Run the MCP server over stdio."""
    from .mcp_server import main as serve

    serve()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
