"""Ticket export (JSON, YAML, CSV, Markdown) and import (JSON, YAML, CSV)."""

from __future__ import annotations

import csv
import io
import json
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml

from .errors import DuplicateTicketError, InvalidInputError
from .models import Priority, Status, Ticket, TicketId
from .models.ticket import utcnow

CSV_COLUMNS = ["id", "slug", "title", "description", "priority", "status", "tags", "assignee", "created_at"]


class DataFormat(Enum):
    JSON = "json"
    YAML = "yaml"
    CSV = "csv"
    MARKDOWN = "markdown"

    @classmethod
    def parse(cls, value: str) -> "DataFormat":
        key = value.strip().lower()
        key = {"yml": "yaml", "md": "markdown"}.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise InvalidInputError(
                f"Unsupported format: {value}. Use json, yaml, csv or markdown"
            ) from None

    @classmethod
    def from_path(cls, path: Path) -> Optional["DataFormat"]:
        suffix = path.suffix.lstrip(".").lower()
        try:
            return cls.parse(suffix) if suffix else None
        except InvalidInputError:
            return None

    @property
    def extension(self) -> str:
        return "md" if self is DataFormat.MARKDOWN else self.value


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def export_json(tickets: list[Ticket]) -> str:
    return json.dumps([t.to_dict() for t in tickets], indent=2, ensure_ascii=False)


def export_yaml(tickets: list[Ticket]) -> str:
    return yaml.safe_dump([t.to_dict() for t in tickets], sort_keys=False, allow_unicode=True)


def export_csv(tickets: list[Ticket]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for ticket in tickets:
        writer.writerow([
            str(ticket.id),
            ticket.slug,
            ticket.title,
            ticket.description,
            ticket.priority.value,
            ticket.status.value,
            ",".join(ticket.tags),
            ticket.assignee or "",
            ticket.created_at.isoformat(),
        ])
    return buffer.getvalue()


def export_markdown(tickets: list[Ticket]) -> str:
    lines = ["# Tickets Export", "", f"Generated: {utcnow():%Y-%m-%d %H:%M:%S} UTC", ""]
    for ticket in tickets:
        lines.append(f"## {ticket.slug} - {ticket.title}")
        lines.append("")
        lines.append(f"- **ID**: {ticket.id}")
        lines.append(f"- **Status**: {ticket.status}")
        lines.append(f"- **Priority**: {ticket.priority}")
        if ticket.tags:
            lines.append(f"- **Tags**: {', '.join(ticket.tags)}")
        if ticket.assignee:
            lines.append(f"- **Assignee**: {ticket.assignee}")
        if ticket.description:
            lines.extend(["", "### Description", "", ticket.description])
        if ticket.tasks:
            lines.extend(["", "### Tasks", ""])
            for task in ticket.tasks:
                lines.append(f"- [{'x' if task.completed else ' '}] {task.title}")
        lines.extend(["", "---", ""])
    return "\n".join(lines)


def export_tickets(tickets: list[Ticket], fmt: DataFormat) -> str:
    if fmt is DataFormat.JSON:
        return export_json(tickets)
    if fmt is DataFormat.YAML:
        return export_yaml(tickets)
    if fmt is DataFormat.CSV:
        return export_csv(tickets)
    return export_markdown(tickets)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def detect_format(content: str) -> DataFormat:
    trimmed = content.strip()
    if trimmed.startswith(("{", "[")):
        try:
            json.loads(trimmed)
            return DataFormat.JSON
        except ValueError:
            pass
    first_line = trimmed.splitlines()[0] if trimmed else ""
    if first_line.replace(" ", "").startswith("id,slug"):
        return DataFormat.CSV
    try:
        if isinstance(yaml.safe_load(trimmed), (list, dict)):
            return DataFormat.YAML
    except yaml.YAMLError:
        pass
    raise InvalidInputError("Unable to detect format. Content must be valid JSON, YAML, or CSV")


def _records_from_document(data) -> list[dict]:
    if isinstance(data, dict) and "tickets" in data:
        data = data["tickets"]
    if not isinstance(data, list):
        raise InvalidInputError("Import data must be a list of tickets")
    return data


def _ticket_from_record(record: dict) -> Ticket:
    try:
        return Ticket.from_dict(record)
    except KeyError as e:
        raise InvalidInputError(f"Ticket record is missing field {e}") from e
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid ticket record: {e}") from e


def _ticket_from_csv_row(row: dict) -> Ticket:
    slug = (row.get("slug") or "").strip()
    if not slug:
        raise InvalidInputError("CSV row is missing a slug")
    ticket = Ticket(
        slug=slug,
        title=(row.get("title") or "").strip() or slug,
        description=row.get("description") or "",
        assignee=(row.get("assignee") or "").strip() or None,
        tags=[t.strip() for t in (row.get("tags") or "").split(",") if t.strip()],
    )
    if (row.get("id") or "").strip():
        ticket.id = TicketId.parse(row["id"])
    if (row.get("priority") or "").strip():
        ticket.priority = Priority.parse(row["priority"])
    if (row.get("status") or "").strip():
        ticket.status = Status.parse(row["status"])
    return ticket


def parse_tickets(content: str, fmt: Optional[DataFormat] = None) -> list[Ticket]:
    fmt = fmt or detect_format(content)
    if fmt is DataFormat.MARKDOWN:
        raise InvalidInputError("Cannot import from Markdown format")
    if fmt is DataFormat.CSV:
        reader = csv.DictReader(io.StringIO(content))
        return [_ticket_from_csv_row(row) for row in reader]
    try:
        data = json.loads(content) if fmt is DataFormat.JSON else yaml.safe_load(content)
    except (ValueError, yaml.YAMLError) as e:
        raise InvalidInputError(f"Invalid {fmt.value.upper()}: {e}") from e
    return [_ticket_from_record(r) for r in _records_from_document(data)]


def validate_tickets(tickets: list[Ticket]) -> None:
    """Reject empty imports and duplicate ids or slugs within the import."""
    if not tickets:
        raise InvalidInputError("No tickets found in import data")
    seen_ids = set()
    seen_slugs = set()
    for ticket in tickets:
        if ticket.id in seen_ids or ticket.slug in seen_slugs:
            raise DuplicateTicketError(ticket.slug)
        seen_ids.add(ticket.id)
        seen_slugs.add(ticket.slug)
