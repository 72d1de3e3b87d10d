"""vibe-ticket: local, file-backed ticket tracking."""

__version__ = "0.1.0"
