"""Output formatting utilities for CLI and MCP."""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

from ..errors import InvalidInputError

FORMATS = ("json", "text")


def normalize_format(output_format: Optional[str]) -> str:
    output_format = (output_format or "json").lower()
    if output_format not in FORMATS:
        raise InvalidInputError(f"Unknown output format: {output_format}. Use json or text")
    return output_format


def format_response(
    payload: Any,
    output_format: str = "json",
    text_renderer: Optional[Callable[[Any], str]] = None,
) -> dict:
    """Normalize response with format metadata and content.

    Args:
        payload: Data to serialize.
        output_format: "json" or "text".
        text_renderer: Optional renderer for text output.
    """
    if normalize_format(output_format) == "text":
        content = text_renderer(payload) if text_renderer else json.dumps(payload, indent=2, default=str)
        return {"format": "text", "content": content}
    return {"format": "json", "content": payload}


def render_cli(response: dict) -> str:
    """Render a formatted response into a CLI string."""
    if response.get("format") == "json":
        return json.dumps(response.get("content"), indent=2, default=str, ensure_ascii=False)
    return str(response.get("content"))
