"""Time tracking operations."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..errors import InvalidInputError, TicketNotFoundError
from ..filtering import parse_date_filter
from ..models import TicketId
from ..models.ticket import format_timestamp
from ..time_tracking import format_duration, parse_duration
from .context import ProjectContext
from .tickets import resolve_ticket_ref


def _entry_dict(entry) -> dict:
    return {
        "id": entry.id,
        "ticket_id": entry.ticket_id,
        "duration": format_duration(entry.duration_minutes),
        "minutes": entry.duration_minutes,
        "notes": entry.notes,
        "date": format_timestamp(entry.date),
    }


def log_time(
    ctx: ProjectContext,
    duration: str,
    ticket_ref: Optional[str] = None,
    notes: Optional[str] = None,
    date: Optional[str] = None,
) -> dict:
    minutes = parse_duration(duration)
    ticket = resolve_ticket_ref(ctx, ticket_ref)
    when = None
    if date:
        try:
            # Local midnight, the same day DateRange.contains sees
            when = datetime.strptime(date, "%Y-%m-%d").astimezone()
        except ValueError:
            raise InvalidInputError(f"Invalid date: {date}. Use YYYY-MM-DD") from None
    entry = ctx.time.log(ticket, minutes, notes=notes, date=when)
    return {
        "success": True,
        "ticket": ticket.slug,
        "entry": _entry_dict(entry),
        "total": format_duration(ctx.time.total_minutes(str(ticket.id))),
    }


def start_timer(ctx: ProjectContext, ticket_ref: Optional[str] = None, notes: Optional[str] = None) -> dict:
    ticket = resolve_ticket_ref(ctx, ticket_ref)
    timer = ctx.time.start(ticket, notes=notes)
    return {"success": True, "ticket": ticket.slug, "started_at": format_timestamp(timer.started_at)}


def stop_timer(ctx: ProjectContext, notes: Optional[str] = None) -> dict:
    timer, entry = ctx.time.stop(notes=notes)
    return {
        "success": True,
        "ticket": timer.ticket_slug,
        "entry": _entry_dict(entry),
        "total": format_duration(ctx.time.total_minutes(timer.ticket_id)),
    }


def timer_status(ctx: ProjectContext) -> dict:
    timer = ctx.time.active_timer()
    if timer is None:
        return {"running": False}
    return {
        "running": True,
        "ticket": timer.ticket_slug,
        "started_at": format_timestamp(timer.started_at),
        "elapsed": format_duration(timer.elapsed_minutes()),
        "notes": timer.notes,
    }


def _slug_for(ctx: ProjectContext, ticket_id: str) -> str:
    try:
        return ctx.storage.load(TicketId.parse(ticket_id)).slug
    except (TicketNotFoundError, InvalidInputError):
        return ticket_id[:8]


def time_report(
    ctx: ProjectContext,
    ticket_ref: Optional[str] = None,
    period: Optional[str] = None,
    detailed: bool = False,
) -> dict:
    """Totals per ticket, optionally restricted to one ticket and a date range."""
    date_range = parse_date_filter(period) if period else None
    ticket_id = str(resolve_ticket_ref(ctx, ticket_ref).id) if ticket_ref else None

    entries = ctx.time.entries(ticket_id)
    if date_range is not None:
        entries = [e for e in entries if date_range.contains(e.date)]

    totals: dict[str, int] = {}
    for entry in entries:
        totals[entry.ticket_id] = totals.get(entry.ticket_id, 0) + entry.duration_minutes
    rows = [
        {"ticket": _slug_for(ctx, tid), "ticket_id": tid, "minutes": minutes, "duration": format_duration(minutes)}
        for tid, minutes in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]
    grand_total = sum(totals.values())
    result = {
        "period": period,
        "tickets": rows,
        "total_minutes": grand_total,
        "total": format_duration(grand_total),
    }
    if detailed:
        result["entries"] = [_entry_dict(e) for e in sorted(entries, key=lambda e: e.date)]
    return result
