"""Git worktree management for ticket worktrees."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .. import git
from ..errors import InvalidInputError
from .context import ProjectContext
from .tickets import resolve_ticket_ref

logger = logging.getLogger(__name__)


def _ticket_worktrees(ctx: ProjectContext) -> dict[str, str]:
    """Map worktree path to ticket slug for tickets that recorded one."""
    mapping = {}
    for ticket in ctx.storage.load_all():
        if ticket.extensions.worktree_path:
            mapping[str(Path(ticket.extensions.worktree_path).resolve())] = ticket.slug
    return mapping


def _prefix(ctx: ProjectContext) -> str:
    return ctx.config.git.worktree_prefix.format(project=ctx.project_root.name)


def list_worktrees(ctx: ProjectContext, show_all: bool = False) -> dict:
    """Worktrees of the repository. Without ``show_all`` only ticket worktrees."""
    owners = _ticket_worktrees(ctx)
    prefix = _prefix(ctx)
    rows = []
    for info in git.list_worktrees(cwd=ctx.project_root):
        resolved = str(info.path.resolve())
        is_ticket = resolved in owners or info.path.name.startswith(prefix)
        if not show_all and not is_ticket:
            continue
        row = info.to_dict()
        row["ticket"] = owners.get(resolved)
        rows.append(row)
    return {"worktrees": rows}


def remove_worktree(ctx: ProjectContext, ref: str, force: bool = False) -> dict:
    """Remove a worktree given its path or the ticket that owns it."""
    path = Path(ref)
    ticket = None
    if not path.exists():
        ticket = resolve_ticket_ref(ctx, ref)
        if not ticket.extensions.worktree_path:
            raise InvalidInputError(f"Ticket '{ticket.slug}' has no worktree")
        path = Path(ticket.extensions.worktree_path)
    git.remove_worktree(path, force=force, cwd=ctx.project_root)

    if ticket is None:
        slug = _ticket_worktrees(ctx).get(str(path.resolve()))
        if slug:
            ticket = resolve_ticket_ref(ctx, slug)
    if ticket is not None:
        ticket.extensions.worktree_path = None
        ctx.storage.save(ticket)
    logger.info("Removed worktree %s", path)
    return {"success": True, "removed": str(path), "ticket": ticket.slug if ticket else None}


def prune_worktrees(ctx: ProjectContext, dry_run: bool = False) -> dict:
    """Prune stale worktree metadata and forget paths of worktrees that no longer exist."""
    cleared = []
    for ticket in ctx.storage.load_all():
        recorded: Optional[str] = ticket.extensions.worktree_path
        if recorded and not Path(recorded).exists():
            cleared.append(ticket.slug)
            if not dry_run:
                ticket.extensions.worktree_path = None
                ctx.storage.save(ticket)
    output = "" if dry_run else git.prune_worktrees(cwd=ctx.project_root)
    return {
        "success": True,
        "dry_run": dry_run,
        "cleared": cleared,
        "pruned": [line for line in output.splitlines() if line.strip()],
    }
