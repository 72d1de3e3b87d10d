"""Project context resolution shared by CLI and MCP."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..aliases import AliasStore
from ..config import (
    MARKER_DIR,
    ProjectConfig,
    create_project_config,
    find_project_root,
    load_config,
    save_config,
)
from ..events import EventSink
from ..filters import FilterStore
from ..hooks import HookRunner, HookStore
from ..specs import SpecStore
from ..storage import FileStorage, ProjectState
from ..time_tracking import TimeTracker

logger = logging.getLogger(__name__)


@dataclass
class ProjectContext:
    """Everything a service needs to operate on one project."""

    project_root: Path
    config: ProjectConfig
    storage: FileStorage
    events: EventSink = field(default_factory=EventSink)

    def __post_init__(self):
        self.aliases = AliasStore(self.storage)
        self.filters = FilterStore(self.storage)
        self.hooks = HookStore(self.storage)
        self.hook_runner = HookRunner(self.hooks, cwd=self.project_root)
        self.time = TimeTracker(self.storage)
        self.specs = SpecStore(self.storage)
        self.events.subscribe(self.hook_runner)

    @property
    def storage_root(self) -> Path:
        return self.project_root / MARKER_DIR


def open_project(path: Optional[Path] = None) -> ProjectContext:
    """Find the project above ``path`` (default: cwd) and open it."""
    root = find_project_root(path)
    config = load_config(root)
    storage = FileStorage(root / MARKER_DIR, lock_timeout=config.storage.lock_timeout)
    logger.debug("Opened project %s", root)
    return ProjectContext(project_root=root, config=config, storage=storage)


def init_project(
    path: Optional[Path] = None,
    name: Optional[str] = None,
    description: Optional[str] = None,
    force: bool = False,
) -> dict:
    """Create the ``.vibe-ticket`` directory, config and project state."""
    root = Path(path or Path.cwd()).resolve()
    config = create_project_config(root, name=name, description=description, force=force)
    storage = FileStorage(root / MARKER_DIR, lock_timeout=config.storage.lock_timeout)
    storage.ensure_directories()
    storage.save_state(ProjectState(name=config.project.name, description=description))
    logger.info("Initialized vibe-ticket project at %s", root)
    return {
        "success": True,
        "project_root": str(root),
        "name": config.project.name,
        "description": description,
    }


def show_config(ctx: ProjectContext) -> dict:
    return {"config": ctx.config.to_dict(), "project_root": str(ctx.project_root)}


def get_config_value(ctx: ProjectContext, key: str) -> dict:
    return {"key": key, "value": ctx.config.get(key)}


def set_config_value(ctx: ProjectContext, key: str, value: Any) -> dict:
    ctx.config = ctx.config.set(key, _coerce(value))
    save_config(ctx.project_root, ctx.config)
    return {"success": True, "key": key, "value": ctx.config.get(key)}


def _coerce(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    if lowered in ("", "null", "none"):
        return None
    return value
