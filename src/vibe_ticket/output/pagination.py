"""Pagination helpers for list responses."""

from __future__ import annotations

from typing import Any, Sequence

from ..errors import InvalidInputError


def build_pagination(total_count: int, limit: int, offset: int) -> dict:
    """Build pagination metadata."""
    has_more = offset + limit < total_count
    return {
        "total_count": total_count,
        "limit": limit,
        "offset": offset,
        "has_more": has_more,
        "next_offset": offset + limit if has_more else None,
    }


def paginate(items: Sequence[Any], limit: int, offset: int) -> tuple[list[Any], dict]:
    """Slice items and return pagination metadata."""
    if limit < 1:
        raise InvalidInputError("limit must be at least 1")
    if offset < 0:
        raise InvalidInputError("offset cannot be negative")
    page = list(items[offset:offset + limit])
    return page, build_pagination(len(items), limit, offset)
