"""Aliases, saved filters and hooks."""

from __future__ import annotations

from typing import Optional

from ..errors import ExternalToolError
from ..filtering import TicketFilter
from ..hooks import HookEvent, build_context
from ..models.ticket import format_timestamp
from .context import ProjectContext
from .tickets import list_tickets, resolve_ticket_ref

# ---------------------------------------------------------------------------
# Aliases
# ---------------------------------------------------------------------------


def _alias_dict(alias) -> dict:
    return {
        "name": alias.name,
        "command": alias.command,
        "description": alias.description,
        "created_at": format_timestamp(alias.created_at),
    }


def create_alias(
    ctx: ProjectContext,
    name: str,
    command: str,
    description: Optional[str] = None,
    overwrite: bool = False,
) -> dict:
    alias = ctx.aliases.create(name, command, description=description, overwrite=overwrite)
    return {"success": True, "alias": _alias_dict(alias)}


def list_aliases(ctx: ProjectContext) -> dict:
    return {"aliases": [_alias_dict(a) for a in ctx.aliases.list()]}


def delete_alias(ctx: ProjectContext, name: str) -> dict:
    ctx.aliases.delete(name)
    return {"success": True, "deleted": name}


def expand_alias(ctx: ProjectContext, name: str, args: Optional[list[str]] = None) -> list[str]:
    return ctx.aliases.get(name).expand(args)


# ---------------------------------------------------------------------------
# Saved filters
# ---------------------------------------------------------------------------


def _filter_dict(saved) -> dict:
    return {
        "name": saved.name,
        "expression": saved.expression,
        "description": saved.description,
        "created_at": format_timestamp(saved.created_at),
    }


def create_filter(ctx: ProjectContext, name: str, expression: str, description: Optional[str] = None) -> dict:
    saved = ctx.filters.create(name, expression, description=description)
    return {"success": True, "filter": _filter_dict(saved)}


def list_filters(ctx: ProjectContext) -> dict:
    return {"filters": [_filter_dict(f) for f in ctx.filters.list()]}


def show_filter(ctx: ProjectContext, name: str) -> dict:
    return {"filter": _filter_dict(ctx.filters.get(name))}


def delete_filter(ctx: ProjectContext, name: str) -> dict:
    ctx.filters.delete(name)
    return {"success": True, "deleted": name.lstrip("@")}


def apply_filter(
    ctx: ProjectContext,
    name: str,
    include_archived: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    saved = ctx.filters.get(name)
    ticket_filter = TicketFilter(
        expression=ctx.filters.resolve(saved.expression),
        archived=None if include_archived else False,
    )
    result = list_tickets(ctx, ticket_filter, limit=limit, offset=offset)
    result["filter"] = saved.name
    return result


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------


def _hook_dict(hook) -> dict:
    return {
        "name": hook.name,
        "event": hook.event.value,
        "command": hook.command,
        "enabled": hook.enabled,
        "description": hook.description,
        "abort_on_failure": hook.abort_on_failure,
    }


def create_hook(
    ctx: ProjectContext,
    name: str,
    event: str,
    command: str,
    description: Optional[str] = None,
    abort_on_failure: bool = False,
) -> dict:
    hook = ctx.hooks.create(
        name,
        HookEvent.parse(event),
        command,
        description=description,
        abort_on_failure=abort_on_failure,
    )
    return {"success": True, "hook": _hook_dict(hook)}


def list_hooks(ctx: ProjectContext, event: Optional[str] = None) -> dict:
    hooks = ctx.hooks.list()
    if event:
        wanted = HookEvent.parse(event)
        hooks = [h for h in hooks if h.event is wanted]
    return {"hooks": [_hook_dict(h) for h in hooks]}


def delete_hook(ctx: ProjectContext, name: str) -> dict:
    ctx.hooks.delete(name)
    return {"success": True, "deleted": name}


def set_hook_enabled(ctx: ProjectContext, name: str, enabled: bool) -> dict:
    hook = ctx.hooks.set_enabled(name, enabled)
    return {"success": True, "hook": _hook_dict(hook)}


def run_hook_test(ctx: ProjectContext, name: str, ticket_ref: Optional[str] = None) -> dict:
    """Run one hook immediately, against a ticket if one is given."""
    hook = ctx.hooks.get(name)
    ticket = resolve_ticket_ref(ctx, ticket_ref) if ticket_ref else None
    context = build_context(hook.event, ticket, ticket.status if ticket else None, test=True)
    try:
        ctx.hook_runner.execute(hook, context)
    except ExternalToolError as e:
        return {"success": False, "hook": hook.name, "error": e.message}
    return {"success": True, "hook": hook.name}

