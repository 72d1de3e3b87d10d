"""Import and export of tickets."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..errors import InvalidInputError, StorageIOError
from ..events import TicketCreated
from ..import_export import DataFormat, export_tickets, parse_tickets, validate_tickets
from .context import ProjectContext
from .tickets import validate_slug

logger = logging.getLogger(__name__)


def export_data(
    ctx: ProjectContext,
    fmt: str,
    output: Optional[Path] = None,
    include_archived: bool = False,
) -> dict:
    """Serialize tickets. Writes ``output`` when given, else returns the content."""
    data_format = DataFormat.parse(fmt)
    tickets = ctx.storage.load_all()
    if not include_archived:
        tickets = [t for t in tickets if not t.archived]
    tickets.sort(key=lambda t: t.created_at)
    content = export_tickets(tickets, data_format)

    if output is None:
        return {"format": data_format.value, "count": len(tickets), "content": content}
    try:
        Path(output).write_text(content, encoding="utf-8")
    except OSError as e:
        raise StorageIOError.wrap("write", output, e) from e
    logger.info("Exported %d tickets to %s", len(tickets), output)
    return {"success": True, "format": data_format.value, "count": len(tickets), "path": str(output)}


def import_data(
    ctx: ProjectContext,
    path: Path,
    fmt: Optional[str] = None,
    dry_run: bool = False,
    skip_validation: bool = False,
) -> dict:
    """Import tickets from a file. Tickets whose id or slug already exists are skipped."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        raise InvalidInputError(f"Import file not found: {path}") from None
    except UnicodeDecodeError:
        raise InvalidInputError(f"Import file is not valid UTF-8: {path}") from None
    except OSError as e:
        raise StorageIOError.wrap("read", path, e) from e

    data_format = DataFormat.parse(fmt) if fmt else DataFormat.from_path(Path(path))
    tickets = parse_tickets(content, data_format)
    for ticket in tickets:
        ticket.slug = validate_slug(ticket.slug)
    if not skip_validation:
        validate_tickets(tickets)

    existing = ctx.storage.load_all()
    existing_ids = {t.id for t in existing}
    existing_slugs = {t.slug for t in existing}
    imported = []
    skipped = []
    for ticket in tickets:
        if ticket.id in existing_ids or ticket.slug in existing_slugs:
            skipped.append(ticket.slug)
            continue
        imported.append(ticket.slug)
        if not dry_run:
            ctx.storage.save(ticket)
            ctx.events.publish(TicketCreated(ticket))
        existing_ids.add(ticket.id)
        existing_slugs.add(ticket.slug)

    result = {
        "success": True,
        "dry_run": dry_run,
        "imported": imported,
        "skipped": skipped,
        "count": len(imported),
    }
    warnings = ctx.events.drain_warnings()
    if warnings:
        result["warnings"] = warnings
    return result
