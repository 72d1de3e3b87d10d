"""MCP Server for vibe-ticket.

Exposes local ticket management to AI assistants over stdio. Every tool takes
an optional ``path`` used to locate the ``.vibe-ticket`` project and a
``format`` of "json" (default) or "text".
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from mcp.server.fastmcp import Context, FastMCP

from .errors import VibeTicketError
from .filtering import TicketFilter, parse_date_filter
from .models import Priority, Status
from .output import format_response, normalize_format
from .services import open_project
from .services import tickets as svc_tickets
from .services import tasks as svc_tasks
from .services import time as svc_time
from .services import specs as svc_specs

logger = logging.getLogger(__name__)

# ============================================================================
# Client CWD Detection via MCP Roots
# ============================================================================
# The server process runs wherever the client launched it, so the client's
# workspace root (from list_roots) is used to find the project.

_client_cwd: Optional[Path] = None
_roots_initialized: bool = False
_roots_lock: Optional[asyncio.Lock] = None


def _get_roots_lock() -> asyncio.Lock:
    global _roots_lock
    if _roots_lock is None:
        _roots_lock = asyncio.Lock()
    return _roots_lock


async def _ensure_roots_initialized(ctx: Context) -> None:
    """Fetch and cache the client's first workspace root on first use."""
    global _client_cwd, _roots_initialized

    if _roots_initialized:
        return

    async with _get_roots_lock():
        if _roots_initialized:
            return
        try:
            result = await ctx.session.list_roots()
            if result.roots:
                uri = str(result.roots[0].uri)
                if uri.startswith("file://"):
                    _client_cwd = Path(uri.replace("file://", "", 1))
                elif uri.startswith("/"):
                    _client_cwd = Path(uri)
        except Exception as e:
            # list_roots is optional for clients
            logger.debug("list_roots unavailable: %s", e)
        finally:
            _roots_initialized = True


def _get_effective_path(path: Optional[str]) -> Optional[Path]:
    """Explicit path first, then the cached client root, else None (cwd)."""
    if path:
        return Path(path)
    return _client_cwd


def _run(path: Optional[str], format: str, operation: Callable, *args, **kwargs) -> dict:
    """Open the project, run a service and format its result or error.

    An unknown ``format`` is reported as a JSON error before anything runs.
    """
    output_format = "json"
    try:
        output_format = normalize_format(format)
        project = open_project(_get_effective_path(path))
        result = operation(project, *args, **kwargs)
    except VibeTicketError as e:
        result = e.to_dict()
    return format_response(result, output_format)


mcp = FastMCP(
    "vibe-ticket",
    instructions="""vibe-ticket - local ticket tracking

Tickets live in the project's `.vibe-ticket/` directory. Reference a ticket by
full id, unique id prefix (>= 4 chars) or slug. Omit the reference to use the
active ticket.

| Goal | Tool |
|------|------|
| What is in progress? | `active_ticket_get`, `project_check` |
| Find work | `ticket_list(open_only=True)`, `ticket_search(query)` |
| Start work | `ticket_start(ref)` |
| Track progress | `task_add`, `task_complete(task)` (1-based index) |
| Review | `ticket_request_changes(changes)`, `ticket_handoff(assignee)` |
| Finish | `ticket_close(ref, message)` |
| Specs | `spec_create`, `spec_document(phase)`, `spec_approve(phase)`, `spec_export_tasks` |

List tools return `pagination: {has_more, next_offset}`; call again with
`offset=next_offset` for more. Errors come back as `{"error": kind, "message": ...}`.""",
)


@mcp.tool()
async def project_check(
    ctx: Context,
    path: Optional[str] = None,
    stats: bool = True,
    format: str = "json",
) -> dict:
    """Show project info, the active ticket, the git branch and statistics.

    Args:
        path: Project directory (defaults to the client workspace root)
        stats: Include ticket counts by status and priority
    """
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_tickets.check_project, stats=stats)


# ============================================================================
# Ticket Tools
# ============================================================================


@mcp.tool()
async def ticket_create(
    ctx: Context,
    slug: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[str] = None,
    tags: Optional[list[str]] = None,
    assignee: Optional[str] = None,
    start: bool = False,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Create a ticket.

    Args:
        slug: Lowercase letters, digits and hyphens, unique in the project
        title: Title (defaults to the slug in title case)
        description: Longer description
        priority: low, medium, high or critical
        tags: Tags to attach
        assignee: Assignee name
        start: Start the ticket right away (sets it active, no worktree)
    """
    await _ensure_roots_initialized(ctx)
    return _run(
        path, format, svc_tickets.create_ticket, slug,
        title=title, description=description or "", priority=priority,
        tags=tags, assignee=assignee, start=start, worktree=False if start else None,
    )


@mcp.tool()
async def ticket_list(
    ctx: Context,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    assignee: Optional[str] = None,
    tags: Optional[list[str]] = None,
    open_only: bool = False,
    closed_only: bool = False,
    include_archived: bool = False,
    has_tasks: Optional[bool] = None,
    created: Optional[str] = None,
    filter: Optional[str] = None,
    sort_by: str = "created",
    limit: int = 50,
    offset: int = 0,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """List tickets as minimal summaries.

    Args:
        status: todo, doing, review, blocked or done
        priority: low, medium, high or critical
        assignee: Exact assignee
        tags: Tickets must carry all of these tags
        open_only: Exclude done tickets
        closed_only: Only done tickets
        include_archived: Include archived tickets
        has_tasks: True for tickets with tasks, False for tickets without
        created: Creation date filter such as "today", "last-7" or "2024-01-01..2024-01-31"
        filter: Filter expression such as "status:todo,doing tag:backend", or @saved
        sort_by: created, started, closed, priority, status, title or slug
    """
    await _ensure_roots_initialized(ctx)

    def operation(project):
        ticket_filter = TicketFilter(
            status=Status.parse(status) if status else None,
            priority=Priority.parse(priority) if priority else None,
            assignee=assignee,
            tags=list(tags or []),
            open_only=open_only,
            closed_only=closed_only,
            archived=None if include_archived else False,
            has_tasks=has_tasks,
            created=parse_date_filter(created) if created else None,
            expression=project.filters.resolve(filter) if filter else None,
            sort_by=sort_by,
        )
        return svc_tickets.list_tickets(project, ticket_filter, limit=limit, offset=offset)

    return _run(path, format, operation)


@mcp.tool()
async def ticket_get(
    ctx: Context,
    ref: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Get full details for one ticket, including tasks and time spent.

    Args:
        ref: Ticket id, id prefix or slug (defaults to the active ticket)
    """
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_tickets.get_ticket, ref)


@mcp.tool()
async def ticket_update(
    ctx: Context,
    ref: Optional[str] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    assignee: Optional[str] = None,
    add_tags: Optional[list[str]] = None,
    remove_tags: Optional[list[str]] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Update ticket fields. Only the given fields change."""
    await _ensure_roots_initialized(ctx)
    return _run(
        path, format, svc_tickets.edit_ticket, ref,
        title=title, description=description, priority=priority, status=status,
        assignee=assignee, add_tags=add_tags, remove_tags=remove_tags,
    )


@mcp.tool()
async def ticket_start(
    ctx: Context,
    ref: str,
    worktree: bool = False,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Move a ticket to doing and make it the active ticket.

    Args:
        ref: Ticket reference
        worktree: Also create a git worktree for the ticket
    """
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_tickets.start_ticket, ref, worktree=worktree)


@mcp.tool()
async def ticket_close(
    ctx: Context,
    ref: Optional[str] = None,
    message: Optional[str] = None,
    archive: bool = False,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Close a ticket (status done) with an optional closing message."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_tickets.close_ticket, ref, message=message, archive=archive)


@mcp.tool()
async def ticket_request_changes(
    ctx: Context,
    changes: str,
    ref: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Send a ticket back to doing, appending the requested changes to its description."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_tickets.request_changes, changes, ref)


@mcp.tool()
async def ticket_handoff(
    ctx: Context,
    assignee: str,
    ref: Optional[str] = None,
    notes: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Hand a ticket to another person or agent.

    Args:
        assignee: New assignee
        ref: Ticket reference (default: active ticket)
        notes: Handoff notes appended to the description
    """
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_tickets.handoff_ticket, assignee, ref, notes=notes)


@mcp.tool()
async def ticket_search(
    ctx: Context,
    query: str,
    regex: bool = False,
    include_archived: bool = False,
    limit: int = 50,
    offset: int = 0,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Search ticket titles, descriptions and tags."""
    await _ensure_roots_initialized(ctx)
    return _run(
        path, format, svc_tickets.search_tickets, query,
        regex=regex, include_archived=include_archived, limit=limit, offset=offset,
    )


@mcp.tool()
async def active_ticket_get(ctx: Context, path: Optional[str] = None, format: str = "json") -> dict:
    """Get the active ticket(s)."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_tickets.get_active_ticket)


# ============================================================================
# Task Tools
# ============================================================================


@mcp.tool()
async def task_add(
    ctx: Context,
    title: str,
    ticket: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Add a task to a ticket (default: active ticket)."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_tasks.add_task, title, ticket)


@mcp.tool()
async def task_complete(
    ctx: Context,
    task: str,
    ticket: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Complete a task.

    Args:
        task: 1-based task index or task id
        ticket: Ticket reference (default: active ticket)
    """
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_tasks.complete_task, task, ticket)


@mcp.tool()
async def task_list(
    ctx: Context,
    ticket: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """List the tasks of a ticket (default: active ticket)."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_tasks.list_tasks, ticket)


# ============================================================================
# Time Tools
# ============================================================================


@mcp.tool()
async def time_log(
    ctx: Context,
    duration: str,
    ticket: Optional[str] = None,
    notes: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Log time on a ticket.

    Args:
        duration: e.g. "1h30m", "2h", "45m" or a number of minutes
        ticket: Ticket reference (default: active ticket)
        notes: What was done
    """
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_time.log_time, duration, ticket, notes=notes)


# ============================================================================
# Spec Tools
# ============================================================================


@mcp.tool()
async def spec_list(
    ctx: Context,
    phase: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """List specifications, optionally only those in one phase."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_specs.list_specs, phase)


@mcp.tool()
async def spec_get(
    ctx: Context,
    spec: Optional[str] = None,
    include_documents: bool = True,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Get a specification (default: active spec) with its phase documents."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_specs.show_spec, spec, include_documents=include_documents)


@mcp.tool()
async def spec_create(
    ctx: Context,
    title: str,
    description: Optional[str] = None,
    ticket: Optional[str] = None,
    tags: Optional[list[str]] = None,
    activate: bool = True,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Create a specification and, by default, make it the active spec.

    Args:
        title: Specification title
        description: What the feature is for
        ticket: Ticket reference to link the spec to
        tags: Tags to attach
        activate: Make the new spec the active one
    """
    await _ensure_roots_initialized(ctx)
    return _run(
        path, format, svc_specs.init_spec, title,
        description=description or "", ticket_ref=ticket, tags=tags, activate=activate,
    )


@mcp.tool()
async def spec_update(
    ctx: Context,
    spec: Optional[str] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    tags: Optional[list[str]] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Update a specification's title, description or tags (default: active spec)."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_specs.update_spec, spec, title=title, description=description, tags=tags)


@mcp.tool()
async def spec_status(
    ctx: Context,
    spec: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Show which phases of a specification are written, completed and approved."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_specs.spec_status, spec)


@mcp.tool()
async def spec_document(
    ctx: Context,
    phase: str,
    spec: Optional[str] = None,
    content: Optional[str] = None,
    complete: bool = False,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Read or write a phase document, creating it from the template when missing.

    Args:
        phase: requirements, design or tasks
        spec: Spec id or prefix (default: active spec)
        content: New document content; omit to read
        complete: Mark the phase complete and advance the spec
    """
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_specs.phase_document, phase, spec, content=content, complete=complete)


@mcp.tool()
async def spec_approve(
    ctx: Context,
    phase: str,
    spec: Optional[str] = None,
    message: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Approve a written phase document, completing the phase."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_specs.approve_phase, phase, spec, message=message)


@mcp.tool()
async def spec_export_tasks(
    ctx: Context,
    spec: Optional[str] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Create a ticket for every unchecked T### item in the spec's tasks document."""
    await _ensure_roots_initialized(ctx)
    return _run(path, format, svc_specs.export_spec_tickets, spec)


def main():
    """Run the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
