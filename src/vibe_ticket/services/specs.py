"""Spec-driven development operations."""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import InvalidInputError
from ..events import TicketCreated
from ..models import Ticket
from ..models.ticket import format_timestamp, utcnow
from ..specs import ACTIVE_SPEC_FILE, SpecPhase, Specification, parse_tasks
from .context import ProjectContext
from .tickets import _with_warnings, parse_tags, resolve_ticket_ref

logger = logging.getLogger(__name__)

SPEC_TICKET_TAGS = ["spec-driven", "auto-generated"]


def format_spec(spec: Specification, active_id: Optional[str] = None) -> dict:
    progress = spec.progress
    return {
        "id": spec.id,
        "title": spec.title,
        "description": spec.description,
        "ticket_id": spec.ticket_id,
        "tags": list(spec.tags),
        "current_phase": progress.current_phase.value,
        "phases": {
            phase.value: {
                "completed": progress.is_completed(phase),
                "approved": progress.is_approved(phase),
            }
            for phase in SpecPhase.document_phases()
        },
        "created_at": format_timestamp(spec.created_at),
        "updated_at": format_timestamp(spec.updated_at),
        "active": spec.id == active_id,
    }


def _active_id(ctx: ProjectContext) -> Optional[str]:
    return (ctx.storage.read_text(ACTIVE_SPEC_FILE) or "").strip() or None


def init_spec(
    ctx: ProjectContext,
    title: str,
    description: str = "",
    ticket_ref: Optional[str] = None,
    tags=None,
    activate: bool = True,
) -> dict:
    ticket_id = None
    if ticket_ref:
        ticket_id = str(resolve_ticket_ref(ctx, ticket_ref).id)
    spec = ctx.specs.create(title, description=description or "", ticket_id=ticket_id, tags=parse_tags(tags))
    if activate:
        ctx.specs.activate(spec.id)
    return {"success": True, "spec": format_spec(spec, spec.id if activate else None)}


def list_specs(ctx: ProjectContext, phase: Optional[str] = None) -> dict:
    specs = ctx.specs.list(SpecPhase.parse(phase) if phase else None)
    active = _active_id(ctx)
    return {"specs": [format_spec(s, active) for s in specs]}


def show_spec(ctx: ProjectContext, ref: Optional[str] = None, include_documents: bool = False) -> dict:
    spec = ctx.specs.load(ref)
    result = {"spec": format_spec(spec, _active_id(ctx))}
    if include_documents:
        result["documents"] = {
            phase.value: ctx.specs.read_phase_document(spec, phase)
            for phase in SpecPhase.document_phases()
        }
    return result


def spec_status(ctx: ProjectContext, ref: Optional[str] = None) -> dict:
    spec = ctx.specs.load(ref)
    phases = []
    for phase in SpecPhase.document_phases():
        phases.append({
            "phase": phase.value,
            "completed": spec.progress.is_completed(phase),
            "approved": spec.progress.is_approved(phase),
            "document": ctx.specs.read_phase_document(spec, phase) is not None,
        })
    done = sum(1 for p in phases if p["completed"])
    return {
        "id": spec.id,
        "title": spec.title,
        "current_phase": spec.progress.current_phase.value,
        "phases": phases,
        "progress": round(done * 100 / len(phases)),
    }


def phase_document(
    ctx: ProjectContext,
    phase: str,
    ref: Optional[str] = None,
    content: Optional[str] = None,
    complete: bool = False,
) -> dict:
    """Show, replace or complete one phase document, creating it from the template."""
    spec_phase = SpecPhase.parse(phase)
    if spec_phase is SpecPhase.COMPLETED:
        raise InvalidInputError("Invalid phase. Must be one of: requirements, design, tasks")
    spec = ctx.specs.load(ref)

    warnings = []
    previous = spec_phase.document_phases()
    index = previous.index(spec_phase)
    if index and not spec.progress.is_completed(previous[index - 1]):
        warnings.append(f"{previous[index - 1].value.capitalize()} phase is not complete")

    if content is not None:
        ctx.specs.write_phase_document(spec, spec_phase, content)
        created = False
    else:
        content, created = ctx.specs.ensure_phase_document(spec, spec_phase)

    if complete:
        spec.complete_phase(spec_phase)
        ctx.specs.save(spec)

    result = {
        "spec_id": spec.id,
        "phase": spec_phase.value,
        "path": str(ctx.specs.document_path(spec.id, spec_phase)),
        "created": created,
        "completed": spec.progress.is_completed(spec_phase),
        "content": content,
    }
    if warnings:
        result["warnings"] = warnings
    return result


def approve_phase(ctx: ProjectContext, phase: str, ref: Optional[str] = None, message: Optional[str] = None) -> dict:
    spec_phase = SpecPhase.parse(phase)
    spec = ctx.specs.load(ref)
    if ctx.specs.read_phase_document(spec, spec_phase) is None:
        raise InvalidInputError(f"The {spec_phase.value} document does not exist yet")
    spec.approve(spec_phase, message)
    if not spec.progress.is_completed(spec_phase):
        spec.complete_phase(spec_phase)
    ctx.specs.save(spec)
    return {"success": True, "spec": format_spec(spec, _active_id(ctx)), "approved": spec_phase.value}


def update_spec(
    ctx: ProjectContext,
    ref: Optional[str] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    tags=None,
) -> dict:
    spec = ctx.specs.load(ref)
    changed = []
    if title is not None:
        if not title.strip():
            raise InvalidInputError("Specification title is required")
        spec.title = title.strip()
        changed.append("title")
    if description is not None:
        spec.description = description
        changed.append("description")
    if tags is not None:
        spec.tags = parse_tags(tags)
        changed.append("tags")
    if not changed:
        raise InvalidInputError("No changes specified")
    spec.updated_at = utcnow()
    ctx.specs.save(spec)
    return {"success": True, "changed": changed, "spec": format_spec(spec, _active_id(ctx))}


def activate_spec(ctx: ProjectContext, ref: str) -> dict:
    spec = ctx.specs.activate(ref)
    return {"success": True, "spec": format_spec(spec, spec.id)}


def delete_spec(ctx: ProjectContext, ref: str) -> dict:
    spec_id = ctx.specs.delete(ref)
    return {"success": True, "deleted": spec_id}


def export_spec_tickets(ctx: ProjectContext, ref: Optional[str] = None) -> dict:
    """Create a ticket for every unchecked ``T###`` item in tasks.md.

    Slugs are ``<spec-id prefix>-t001``; existing slugs are skipped.
    """
    spec = ctx.specs.load(ref)
    content, _ = ctx.specs.ensure_phase_document(spec, SpecPhase.TASKS)
    created = []
    skipped = []
    for task in parse_tasks(content):
        if task.task_id is None:
            continue
        slug = f"{spec.id[:8]}-{task.task_id.lower()}"
        if ctx.storage.ticket_exists_with_slug(slug):
            skipped.append(slug)
            continue
        ticket = Ticket(
            slug=slug,
            title=f"[{task.task_id}] {task.description}",
            description=f"Task from specification: {spec.title}",
            tags=SPEC_TICKET_TAGS + [spec.id],
        )
        ticket.extensions.spec_id = spec.id
        ctx.storage.save(ticket)
        ctx.events.publish(TicketCreated(ticket))
        created.append(slug)
    logger.info("Exported %d tasks from spec %s", len(created), spec.id)
    return _with_warnings(ctx, {"success": True, "spec_id": spec.id, "created": created, "skipped": skipped})
