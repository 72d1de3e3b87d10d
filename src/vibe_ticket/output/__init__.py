"""Output helpers shared by CLI and MCP."""

from .format import format_response, normalize_format, render_cli
from .pagination import build_pagination, paginate

__all__ = ["format_response", "normalize_format", "render_cli", "build_pagination", "paginate"]
