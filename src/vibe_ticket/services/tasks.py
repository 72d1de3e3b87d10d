"""Task (checklist item) operations on a ticket."""

from __future__ import annotations

from typing import Optional

from ..errors import InvalidInputError, TaskNotFoundError
from ..events import TicketUpdated
from ..models import Task, Ticket
from .context import ProjectContext
from .tickets import _with_warnings, format_ticket, resolve_ticket_ref


def resolve_task_ref(ticket: Ticket, ref: str) -> Task:
    """A task ref is a 1-based index, a full task id or a unique id prefix."""
    ref = str(ref).strip()
    if ref.isdigit():
        index = int(ref)
        if 1 <= index <= len(ticket.tasks):
            return ticket.tasks[index - 1]
        raise TaskNotFoundError(ref)
    matches = [t for t in ticket.tasks if str(t.id) == ref or str(t.id).startswith(ref.lower())]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise InvalidInputError(f"Task reference '{ref}' is ambiguous")
    raise TaskNotFoundError(ref)


def _format_task(ticket: Ticket, task: Task) -> dict:
    return {
        "index": ticket.tasks.index(task) + 1,
        "id": str(task.id),
        "title": task.title,
        "completed": task.completed,
    }


def _save(ctx: ProjectContext, ticket: Ticket) -> None:
    ctx.storage.save(ticket)
    ctx.events.publish(TicketUpdated(ticket))


def add_task(ctx: ProjectContext, title: str, ticket_ref: Optional[str] = None) -> dict:
    title = (title or "").strip()
    if not title:
        raise InvalidInputError("Task title cannot be empty")
    ticket = resolve_ticket_ref(ctx, ticket_ref)
    task = ticket.add_task(title)
    _save(ctx, ticket)
    return _with_warnings(ctx, {"success": True, "ticket": ticket.slug, "task": _format_task(ticket, task)})


def complete_task(ctx: ProjectContext, task_ref: str, ticket_ref: Optional[str] = None) -> dict:
    ticket = resolve_ticket_ref(ctx, ticket_ref)
    task = resolve_task_ref(ticket, task_ref)
    if task.completed:
        return {"success": True, "unchanged": True, "ticket": ticket.slug, "task": _format_task(ticket, task)}
    task.complete()
    _save(ctx, ticket)
    return _with_warnings(ctx, {
        "success": True,
        "ticket": ticket.slug,
        "task": _format_task(ticket, task),
        "progress": f"{ticket.completed_tasks_count()}/{len(ticket.tasks)}",
    })


def uncomplete_task(ctx: ProjectContext, task_ref: str, ticket_ref: Optional[str] = None) -> dict:
    ticket = resolve_ticket_ref(ctx, ticket_ref)
    task = resolve_task_ref(ticket, task_ref)
    if not task.completed:
        return {"success": True, "unchanged": True, "ticket": ticket.slug, "task": _format_task(ticket, task)}
    task.uncomplete()
    _save(ctx, ticket)
    return _with_warnings(ctx, {"success": True, "ticket": ticket.slug, "task": _format_task(ticket, task)})


def list_tasks(
    ctx: ProjectContext,
    ticket_ref: Optional[str] = None,
    completed_only: bool = False,
    incomplete_only: bool = False,
) -> dict:
    if completed_only and incomplete_only:
        raise InvalidInputError("--completed and --incomplete cannot be combined")
    ticket = resolve_ticket_ref(ctx, ticket_ref)
    tasks = [_format_task(ticket, t) for t in ticket.tasks]
    if completed_only:
        tasks = [t for t in tasks if t["completed"]]
    elif incomplete_only:
        tasks = [t for t in tasks if not t["completed"]]
    return {
        "ticket": ticket.slug,
        "tasks": tasks,
        "progress": format_ticket(ticket)["task_progress"],
    }


def remove_task(ctx: ProjectContext, task_ref: str, ticket_ref: Optional[str] = None) -> dict:
    ticket = resolve_ticket_ref(ctx, ticket_ref)
    task = resolve_task_ref(ticket, task_ref)
    ticket.tasks.remove(task)
    _save(ctx, ticket)
    return _with_warnings(ctx, {"success": True, "ticket": ticket.slug, "removed": task.title})
