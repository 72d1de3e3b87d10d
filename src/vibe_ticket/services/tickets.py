"""Ticket operations shared by CLI and MCP.

Every function takes a ``ProjectContext``, raises ``VibeTicketError`` on
failure and returns a plain dict ready for ``format_response``.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .. import git
from ..errors import (
    DuplicateTicketError,
    ExternalToolError,
    InvalidInputError,
    InvalidSlugError,
    NoActiveTicketError,
    TicketNotFoundError,
)
from ..events import StatusChanged, TagsChanged, TicketClosed, TicketCreated, TicketUpdated
from ..filtering import TicketFilter, parse_filter_expression, sort_tickets
from ..hooks import HookEvent
from ..models import Priority, Status, Ticket, TicketId
from ..models.ticket import format_timestamp, utcnow
from ..output.pagination import paginate
from ..time_tracking import format_duration
from .context import ProjectContext

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MIN_PREFIX_LENGTH = 4
DEFAULT_CLOSE_MESSAGE = "Ticket completed."

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


# ---------------------------------------------------------------------------
# Validation and formatting
# ---------------------------------------------------------------------------


def validate_slug(slug: str) -> str:
    slug = slug.strip()
    if not _SLUG_RE.match(slug):
        raise InvalidSlugError(slug)
    return slug


def validate_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise InvalidInputError("Title cannot be empty")
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidInputError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")
    return title


def parse_tags(tags) -> list[str]:
    """Split a comma-separated string (or list of them), trimming and dropping empties."""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = [tags]
    result = []
    for item in tags:
        for tag in str(item).split(","):
            tag = tag.strip()
            if tag and tag not in result:
                result.append(tag)
    return result


def title_from_slug(slug: str) -> str:
    return " ".join(word.capitalize() for word in slug.split("-"))


def format_ticket(ticket: Ticket) -> dict:
    return {
        "id": str(ticket.id),
        "slug": ticket.slug,
        "title": ticket.title,
        "description": ticket.description,
        "status": ticket.status.value,
        "priority": ticket.priority.value,
        "tags": list(ticket.tags),
        "assignee": ticket.assignee,
        "created_at": format_timestamp(ticket.created_at),
        "started_at": format_timestamp(ticket.started_at),
        "closed_at": format_timestamp(ticket.closed_at),
        "tasks": [
            {
                "index": i,
                "id": str(task.id),
                "title": task.title,
                "completed": task.completed,
                "completed_at": format_timestamp(task.completed_at),
            }
            for i, task in enumerate(ticket.tasks, start=1)
        ],
        "task_progress": {
            "completed": ticket.completed_tasks_count(),
            "total": len(ticket.tasks),
            "percentage": ticket.completion_percentage(),
        },
        "archived": ticket.archived,
        "closing_message": ticket.extensions.closing_message,
        "branch": ticket.extensions.branch,
        "worktree_path": ticket.extensions.worktree_path,
        "spec_id": ticket.extensions.spec_id,
        "custom": dict(ticket.extensions.custom),
    }


def format_ticket_summary(ticket: Ticket) -> dict:
    return {
        "id": str(ticket.id),
        "short_id": ticket.id.short(),
        "slug": ticket.slug,
        "title": ticket.title,
        "status": ticket.status.value,
        "priority": ticket.priority.value,
        "tags": list(ticket.tags),
        "assignee": ticket.assignee,
        "tasks": f"{ticket.completed_tasks_count()}/{len(ticket.tasks)}",
    }


def _with_warnings(ctx: ProjectContext, result: dict, warnings: Optional[list[str]] = None) -> dict:
    collected = list(warnings or []) + ctx.events.drain_warnings()
    if collected:
        result["warnings"] = collected
    return result


# ---------------------------------------------------------------------------
# Reference resolution
# ---------------------------------------------------------------------------


def resolve_ticket_ref(ctx: ProjectContext, ref: Optional[str] = None) -> Ticket:
    """Resolve a full id, unique id prefix or slug. No ref means the active ticket."""
    storage = ctx.storage
    if not ref:
        active = storage.get_active()
        if active is None:
            raise NoActiveTicketError()
        return storage.load(active)

    ref = ref.strip()
    try:
        ticket_id = TicketId.parse(ref)
    except InvalidInputError:
        ticket_id = None
    if ticket_id is not None:
        return storage.load(ticket_id)

    tickets = storage.load_all()
    for ticket in tickets:
        if ticket.slug == ref:
            return ticket
    if len(ref) >= MIN_PREFIX_LENGTH:
        matches = [t for t in tickets if str(t.id).startswith(ref.lower())]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise InvalidInputError(
                f"Ticket reference '{ref}' is ambiguous: "
                + ", ".join(f"{t.slug} ({t.id.short()})" for t in matches)
            )
    raise TicketNotFoundError(ref)


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


def create_ticket(
    ctx: ProjectContext,
    slug: str,
    title: Optional[str] = None,
    description: str = "",
    priority: Optional[str] = None,
    tags=None,
    assignee: Optional[str] = None,
    start: bool = False,
    worktree: Optional[bool] = None,
    spec_id: Optional[str] = None,
) -> dict:
    slug = validate_slug(slug)
    title = validate_title(title) if title else title_from_slug(slug)
    if ctx.storage.ticket_exists_with_slug(slug):
        raise DuplicateTicketError(slug)

    ticket = Ticket(
        slug=slug,
        title=title,
        description=description or "",
        priority=Priority.parse(priority or ctx.config.project.default_priority),
        tags=parse_tags(tags),
        assignee=assignee or ctx.config.project.default_assignee,
    )
    ticket.extensions.spec_id = spec_id
    ctx.storage.save(ticket)
    ctx.events.publish(TicketCreated(ticket))

    if start:
        result = start_ticket(ctx, str(ticket.id), worktree=worktree)
        result["created"] = True
        return result
    return _with_warnings(ctx, {"success": True, "created": True, "ticket": format_ticket(ticket)})


def list_tickets(
    ctx: ProjectContext,
    ticket_filter: Optional[TicketFilter] = None,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    ticket_filter = ticket_filter or TicketFilter()
    tickets = ticket_filter.apply(ctx.storage.load_all())
    page, pagination = paginate(tickets, limit, offset)
    active = set(ctx.storage.get_all_active())
    summaries = []
    for ticket in page:
        summary = format_ticket_summary(ticket)
        summary["active"] = ticket.id in active
        summaries.append(summary)
    return {"tickets": summaries, "pagination": pagination}


def get_ticket(ctx: ProjectContext, ref: Optional[str] = None) -> dict:
    ticket = resolve_ticket_ref(ctx, ref)
    minutes = ctx.time.total_minutes(str(ticket.id))
    return {
        "ticket": format_ticket(ticket),
        "active": ticket.id in ctx.storage.get_all_active(),
        "time_spent": format_duration(minutes) if minutes else None,
    }


def get_active_ticket(ctx: ProjectContext) -> dict:
    ids = ctx.storage.get_all_active()
    if not ids:
        return {"active": None, "all_active": []}
    active = []
    for ticket_id in ids:
        try:
            active.append(format_ticket_summary(ctx.storage.load(ticket_id)))
        except TicketNotFoundError:
            logger.warning("Active ticket %s no longer exists", ticket_id.short())
            active.append({"id": str(ticket_id), "missing": True})
    return {"active": active[0], "all_active": active}


# ---------------------------------------------------------------------------
# Edit and status transitions
# ---------------------------------------------------------------------------


def _change_status(ctx: ProjectContext, ticket: Ticket, status: Status) -> Optional[Status]:
    """Run the pre hook and apply ``status``. Returns the old status if it changed."""
    if ticket.status is status:
        return None
    ctx.hook_runner.run_pre(HookEvent.PRE_STATUS_CHANGE, ticket, status)
    return ticket.set_status(status)


def edit_ticket(
    ctx: ProjectContext,
    ref: Optional[str] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    assignee: Optional[str] = None,
    add_tags=None,
    remove_tags=None,
    tags=None,
) -> dict:
    ticket = resolve_ticket_ref(ctx, ref)
    changed = []

    if title is not None:
        ticket.title = validate_title(title)
        changed.append("title")
    if description is not None:
        ticket.description = description
        changed.append("description")
    if priority is not None:
        ticket.priority = Priority.parse(priority)
        changed.append("priority")
    if assignee is not None:
        ticket.assignee = assignee or None
        changed.append("assignee")

    added: list[str] = []
    removed: list[str] = []
    if tags is not None:
        new_tags = parse_tags(tags)
        added = [t for t in new_tags if t not in ticket.tags]
        removed = [t for t in ticket.tags if t not in new_tags]
        ticket.tags = new_tags
    if add_tags:
        added += ticket.add_tags(parse_tags(add_tags))
    if remove_tags:
        removed += ticket.remove_tags(parse_tags(remove_tags))
    if added or removed:
        changed.append("tags")

    old_status = None
    if status is not None:
        old_status = _change_status(ctx, ticket, Status.parse(status))
        if old_status is not None:
            changed.append("status")

    if not changed:
        raise InvalidInputError("No changes specified")

    ctx.storage.save(ticket)
    if old_status is not None:
        ctx.events.publish(StatusChanged(ticket, old_status, ticket.status))
    if added or removed:
        ctx.events.publish(TagsChanged(ticket, tuple(added), tuple(removed)))
    ctx.events.publish(TicketUpdated(ticket))
    return _with_warnings(ctx, {"success": True, "changed": changed, "ticket": format_ticket(ticket)})


def start_ticket(
    ctx: ProjectContext,
    ref: Optional[str] = None,
    worktree: Optional[bool] = None,
    branch: Optional[str] = None,
) -> dict:
    """Move a ticket to doing, make it the active ticket, optionally set up git."""
    ticket = resolve_ticket_ref(ctx, ref)
    if ticket.status is Status.DONE:
        # Raises with a reopen hint
        ticket.start()
    old_status = _change_status(ctx, ticket, Status.DOING)

    warnings = []
    settings = ctx.config.git
    use_worktree = settings.worktree_enabled if worktree is None else worktree
    if use_worktree or branch:
        branch_name = branch or git.branch_name(ticket, settings)
        try:
            if use_worktree:
                path = git.worktree_path(ctx.project_root, ticket, settings)
                git.create_worktree(path, branch_name, cwd=ctx.project_root)
                ticket.extensions.worktree_path = str(path)
            elif not git.branch_exists(branch_name, cwd=ctx.project_root):
                git.create_branch(branch_name, cwd=ctx.project_root)
            ticket.extensions.branch = branch_name
        except ExternalToolError as e:
            logger.warning("Git setup failed for %s: %s", ticket.slug, e.message)
            warnings.append(e.message)

    ctx.storage.save(ticket)
    ctx.storage.set_active(ticket.id)
    if old_status is not None:
        ctx.events.publish(StatusChanged(ticket, old_status, ticket.status))
    return _with_warnings(ctx, {"success": True, "ticket": format_ticket(ticket)}, warnings)


def _set_status(ctx: ProjectContext, ref: Optional[str], status: Status) -> dict:
    ticket = resolve_ticket_ref(ctx, ref)
    old_status = _change_status(ctx, ticket, status)
    if old_status is None:
        return {"success": True, "unchanged": True, "ticket": format_ticket(ticket)}
    ctx.storage.save(ticket)
    ctx.events.publish(StatusChanged(ticket, old_status, ticket.status))
    return _with_warnings(ctx, {"success": True, "ticket": format_ticket(ticket)})


def review_ticket(ctx: ProjectContext, ref: Optional[str] = None) -> dict:
    return _set_status(ctx, ref, Status.REVIEW)


def block_ticket(ctx: ProjectContext, ref: Optional[str] = None, reason: Optional[str] = None) -> dict:
    if reason:
        ticket = resolve_ticket_ref(ctx, ref)
        ticket.extensions.custom["blocked_reason"] = reason
        ctx.storage.save(ticket)
        ref = str(ticket.id)
    return _set_status(ctx, ref, Status.BLOCKED)


def request_changes(ctx: ProjectContext, changes: str, ref: Optional[str] = None) -> dict:
    """Send a ticket back to doing with the requested changes appended to its description."""
    if not changes or not changes.strip():
        raise InvalidInputError("Describe the requested changes")
    ticket = resolve_ticket_ref(ctx, ref)
    old_status = _change_status(ctx, ticket, Status.DOING)
    stamp = utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")
    ticket.description = (
        f"{ticket.description}\n\n## Changes Requested\n\n{changes.strip()}\n\n*Requested at: {stamp}*"
    ).lstrip("\n")
    ctx.storage.save(ticket)
    if old_status is not None:
        ctx.events.publish(StatusChanged(ticket, old_status, ticket.status))
    ctx.events.publish(TicketUpdated(ticket))
    return _with_warnings(ctx, {"success": True, "ticket": format_ticket(ticket)})


def handoff_ticket(
    ctx: ProjectContext,
    assignee: str,
    ref: Optional[str] = None,
    notes: Optional[str] = None,
) -> dict:
    """Reassign a ticket, recording optional handoff notes in its description."""
    assignee = (assignee or "").strip()
    if not assignee:
        raise InvalidInputError("Handoff needs an assignee")
    ticket = resolve_ticket_ref(ctx, ref)
    previous = ticket.assignee
    ticket.assignee = assignee
    if notes:
        stamp = utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")
        ticket.description = (
            f"{ticket.description}\n\n## Handoff Notes\n\n{notes.strip()}\n\n"
            f"*Handed off from {previous or 'unassigned'} to {assignee} at {stamp}*"
        ).lstrip("\n")
    ctx.storage.save(ticket)
    ctx.events.publish(TicketUpdated(ticket))
    return _with_warnings(ctx, {
        "success": True,
        "from": previous,
        "to": assignee,
        "ticket": format_ticket(ticket),
    })


def _cleanup_worktree(ctx: ProjectContext, ticket: Ticket) -> list[str]:
    path = ticket.extensions.worktree_path
    if not path:
        return []
    try:
        git.remove_worktree(path, cwd=ctx.project_root)
    except ExternalToolError as e:
        logger.warning("Could not remove worktree %s: %s", path, e.message)
        return [e.message]
    ticket.extensions.worktree_path = None
    return []


def close_ticket(
    ctx: ProjectContext,
    ref: Optional[str] = None,
    message: Optional[str] = None,
    archive: bool = False,
    source: str = "close",
    cleanup_worktree: Optional[bool] = None,
) -> dict:
    """Mark a ticket done, record the message and drop it from the active list."""
    ticket = resolve_ticket_ref(ctx, ref)
    ctx.hook_runner.run_pre(HookEvent.PRE_CLOSE, ticket, Status.DONE)
    if ticket.status is not Status.DONE:
        ctx.hook_runner.run_pre(HookEvent.PRE_STATUS_CHANGE, ticket, Status.DONE)
    old_status = ticket.close(message)
    if archive:
        ticket.archive()

    warnings = []
    if cleanup_worktree is None:
        cleanup_worktree = ctx.config.git.cleanup_on_close
    if cleanup_worktree:
        warnings = _cleanup_worktree(ctx, ticket)

    ctx.storage.save(ticket)
    ctx.storage.remove_active(ticket.id)
    if old_status is not Status.DONE:
        ctx.events.publish(StatusChanged(ticket, old_status, ticket.status))
    ctx.events.publish(TicketClosed(ticket, ticket.extensions.closing_message or "", source))
    return _with_warnings(ctx, {"success": True, "ticket": format_ticket(ticket)}, warnings)


def finish_ticket(
    ctx: ProjectContext,
    ref: Optional[str] = None,
    message: Optional[str] = None,
    keep_worktree: bool = False,
) -> dict:
    return close_ticket(
        ctx,
        ref,
        message=message or DEFAULT_CLOSE_MESSAGE,
        source="finish",
        cleanup_worktree=False if keep_worktree else None,
    )


def approve_ticket(ctx: ProjectContext, ref: Optional[str] = None, message: Optional[str] = None) -> dict:
    return close_ticket(ctx, ref, message=message or "Approved", source="approve")


def reopen_ticket(ctx: ProjectContext, ref: str) -> dict:
    return _set_status(ctx, ref, Status.TODO)


def archive_ticket(ctx: ProjectContext, ref: str, unarchive: bool = False) -> dict:
    ticket = resolve_ticket_ref(ctx, ref)
    if unarchive:
        ticket.unarchive()
    else:
        ticket.archive()
    ctx.storage.save(ticket)
    if not unarchive:
        ctx.storage.remove_active(ticket.id)
    ctx.events.publish(TicketUpdated(ticket))
    return _with_warnings(ctx, {"success": True, "ticket": format_ticket(ticket)})


def delete_ticket(ctx: ProjectContext, ref: str) -> dict:
    """Physically remove a ticket and clear it from the active list."""
    ticket = resolve_ticket_ref(ctx, ref)
    ctx.storage.delete(ticket.id)
    ctx.storage.remove_active(ticket.id)
    return {"success": True, "deleted": str(ticket.id), "slug": ticket.slug}


# ---------------------------------------------------------------------------
# Search, overview
# ---------------------------------------------------------------------------


def search_tickets(
    ctx: ProjectContext,
    query: str,
    in_title: bool = False,
    in_description: bool = False,
    in_tags: bool = False,
    regex: bool = False,
    include_archived: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    """Search title, description and tags. Restricting flags narrow the fields."""
    if not query:
        raise InvalidInputError("Search query cannot be empty")
    if not (in_title or in_description or in_tags):
        in_title = in_description = in_tags = True

    if regex:
        try:
            pattern = re.compile(query, re.IGNORECASE)
        except re.error as e:
            raise InvalidInputError(f"Invalid regular expression: {e}") from e
        match = lambda text: bool(pattern.search(text))
    else:
        needle = query.lower()
        match = lambda text: needle in text.lower()

    results = []
    for ticket in ctx.storage.load_all():
        if ticket.archived and not include_archived:
            continue
        fields = []
        if in_title and (match(ticket.title) or match(ticket.slug)):
            fields.append("title")
        if in_description and match(ticket.description):
            fields.append("description")
        if in_tags and any(match(tag) for tag in ticket.tags):
            fields.append("tags")
        if fields:
            summary = format_ticket_summary(ticket)
            summary["matched"] = fields
            results.append((ticket, summary))

    ordered = [s for _, s in sorted(results, key=lambda item: item[0].created_at, reverse=True)]
    page, pagination = paginate(ordered, limit, offset)
    return {"query": query, "tickets": page, "pagination": pagination}


def project_statistics(tickets: list[Ticket]) -> dict:
    by_status = {s.value: 0 for s in Status}
    by_priority = {p.value: 0 for p in Priority}
    for ticket in tickets:
        by_status[ticket.status.value] += 1
        by_priority[ticket.priority.value] += 1
    return {
        "total": len(tickets),
        "by_status": by_status,
        "by_priority": by_priority,
        "archived": sum(1 for t in tickets if t.archived),
    }


def check_project(ctx: ProjectContext, detailed: bool = False, stats: bool = False) -> dict:
    state = ctx.storage.load_state()
    active = get_active_ticket(ctx)
    result = {
        "project": {
            "name": state.name,
            "description": state.description,
            "created_at": format_timestamp(state.created_at),
            "path": str(ctx.project_root),
        },
        "active_ticket": active["active"],
        "git_branch": git.current_branch(ctx.project_root),
    }
    if stats or detailed:
        tickets = ctx.storage.load_all()
        result["statistics"] = project_statistics(tickets)
        if detailed:
            recent = sort_tickets(tickets, "created", reverse=True)[:5]
            result["recent_tickets"] = [format_ticket_summary(t) for t in recent]
    timer = ctx.time.active_timer()
    if timer:
        result["timer"] = {"ticket_slug": timer.ticket_slug, "elapsed": format_duration(timer.elapsed_minutes())}
    return result


def board(ctx: ProjectContext, include_done: bool = True) -> dict:
    """Open tickets grouped by status in board column order."""
    columns = {s.value: [] for s in (Status.TODO, Status.DOING, Status.REVIEW, Status.BLOCKED, Status.DONE)}
    for ticket in sort_tickets(ctx.storage.load_all(), "priority"):
        if ticket.archived:
            continue
        if ticket.status is Status.DONE and not include_done:
            continue
        columns[ticket.status.value].append(format_ticket_summary(ticket))
    if not include_done:
        del columns[Status.DONE.value]
    return {"columns": columns}


# ---------------------------------------------------------------------------
# Bulk operations
# ---------------------------------------------------------------------------


def _match_expression(ctx: ProjectContext, expression: str) -> list[Ticket]:
    predicate = parse_filter_expression(ctx.filters.resolve(expression))
    return [t for t in ctx.storage.load_all() if predicate(t)]


def bulk_update(
    ctx: ProjectContext,
    expression: str,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    assignee: Optional[str] = None,
    add_tags=None,
    remove_tags=None,
    dry_run: bool = False,
) -> dict:
    if not any([status, priority, assignee is not None, add_tags, remove_tags]):
        raise InvalidInputError("No updates specified")
    new_status = Status.parse(status) if status else None
    new_priority = Priority.parse(priority) if priority else None
    matching = _match_expression(ctx, expression)

    if dry_run:
        return {
            "dry_run": True,
            "expression": expression,
            "matched": [format_ticket_summary(t) for t in matching],
        }

    updated = []
    for ticket in matching:
        try:
            result = edit_ticket(
                ctx,
                str(ticket.id),
                priority=new_priority.value if new_priority else None,
                status=new_status.value if new_status else None,
                assignee=None if assignee is None else ("" if assignee == "unassigned" else assignee),
                add_tags=add_tags,
                remove_tags=remove_tags,
            )
        except InvalidInputError as e:
            # Nothing to change or a rejected transition on this ticket
            logger.info("Skipping %s: %s", ticket.slug, e.message)
            continue
        updated.append(result["ticket"]["slug"])
    return _with_warnings(ctx, {"success": True, "expression": expression, "updated": updated, "count": len(updated)})


def bulk_close(
    ctx: ProjectContext,
    expression: str,
    message: Optional[str] = None,
    archive: bool = False,
    dry_run: bool = False,
) -> dict:
    matching = [t for t in _match_expression(ctx, expression) if t.status is not Status.DONE]
    if dry_run:
        return {
            "dry_run": True,
            "expression": expression,
            "matched": [format_ticket_summary(t) for t in matching],
            "archive": archive,
        }
    closed = []
    for ticket in matching:
        close_ticket(ctx, str(ticket.id), message=message, archive=archive, source="bulk")
        closed.append(ticket.slug)
    return _with_warnings(ctx, {"success": True, "expression": expression, "closed": closed, "count": len(closed)})


def bulk_tag(
    ctx: ProjectContext,
    expression: str,
    add=None,
    remove=None,
    dry_run: bool = False,
) -> dict:
    to_add = parse_tags(add)
    to_remove = parse_tags(remove)
    if not (to_add or to_remove):
        raise InvalidInputError("Must specify tags to add or remove")
    matching = _match_expression(ctx, expression)
    if dry_run:
        return {
            "dry_run": True,
            "expression": expression,
            "matched": [format_ticket_summary(t) for t in matching],
            "add": to_add,
            "remove": to_remove,
        }

    updated = []
    for ticket in matching:
        added = ticket.add_tags(to_add)
        removed = ticket.remove_tags(to_remove)
        if not (added or removed):
            continue
        ctx.storage.save(ticket)
        ctx.events.publish(TagsChanged(ticket, tuple(added), tuple(removed)))
        ctx.events.publish(TicketUpdated(ticket))
        updated.append(ticket.slug)
    return _with_warnings(ctx, {"success": True, "expression": expression, "updated": updated, "count": len(updated)})


def bulk_archive(ctx: ProjectContext, expression: str, dry_run: bool = False) -> dict:
    matching = [t for t in _match_expression(ctx, expression) if not t.archived]
    if dry_run:
        return {
            "dry_run": True,
            "expression": expression,
            "matched": [format_ticket_summary(t) for t in matching],
        }
    archived = []
    for ticket in matching:
        archive_ticket(ctx, str(ticket.id))
        archived.append(ticket.slug)
    return _with_warnings(ctx, {"success": True, "expression": expression, "archived": archived, "count": len(archived)})
