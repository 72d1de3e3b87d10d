"""Project configuration with directory-based detection.

A vibe-ticket project is any directory containing a ``.vibe-ticket/`` folder.
Commands run anywhere below it find the project by walking up the tree.

## config.yaml Structure

```yaml
project:
  name: my-project
  description: Something useful
  default_priority: medium
storage:
  lock_timeout: 10
git:
  worktree_enabled: true
  worktree_prefix: "{project}-vibeticket-"
  branch_prefix: ticket/
  cleanup_on_close: true
```

### Resolution Order

1. ``.vibe-ticket/config.yaml`` of the discovered project
2. ``<user config dir>/vibe-ticket/config.yaml`` (user defaults)
3. Built-in defaults
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from platformdirs import user_config_dir

from .errors import (
    ConfigError,
    InvalidInputError,
    ProjectAlreadyInitializedError,
    ProjectNotInitializedError,
    StorageCorruptError,
    StorageIOError,
)
from .models import Priority
from .storage.lock import DEFAULT_LOCK_TIMEOUT

logger = logging.getLogger(__name__)

MARKER_DIR = ".vibe-ticket"
CONFIG_FILE = "config.yaml"

USER_CONFIG_DIR = Path(user_config_dir("vibe-ticket"))
USER_CONFIG_FILE = USER_CONFIG_DIR / CONFIG_FILE


@dataclass
class ProjectSettings:
    name: str = ""
    description: Optional[str] = None
    default_priority: str = "medium"
    default_assignee: Optional[str] = None


@dataclass
class StorageSettings:
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT


@dataclass
class GitSettings:
    worktree_enabled: bool = True
    worktree_prefix: str = "{project}-vibeticket-"
    branch_prefix: str = "ticket/"
    cleanup_on_close: bool = True


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Configuration section '{name}' must be a mapping, got {section!r}")
    return section


@dataclass
class ProjectConfig:
    """Resolved configuration for a project."""

    project: ProjectSettings = field(default_factory=ProjectSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    git: GitSettings = field(default_factory=GitSettings)

    def to_dict(self) -> dict:
        return {
            "project": {
                "name": self.project.name,
                "description": self.project.description,
                "default_priority": self.project.default_priority,
                "default_assignee": self.project.default_assignee,
            },
            "storage": {"lock_timeout": self.storage.lock_timeout},
            "git": {
                "worktree_enabled": self.git.worktree_enabled,
                "worktree_prefix": self.git.worktree_prefix,
                "branch_prefix": self.git.branch_prefix,
                "cleanup_on_close": self.git.cleanup_on_close,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectConfig":
        project = _section(data, "project")
        storage = _section(data, "storage")
        git = _section(data, "git")
        try:
            lock_timeout = float(storage.get("lock_timeout", DEFAULT_LOCK_TIMEOUT))
        except (TypeError, ValueError):
            raise ConfigError(
                f"storage.lock_timeout must be a number, got {storage.get('lock_timeout')!r}"
            ) from None
        default_priority = project.get("default_priority") or "medium"
        try:
            default_priority = Priority.parse(default_priority).value
        except InvalidInputError as e:
            raise ConfigError(f"project.default_priority: {e.message}") from None
        return cls(
            project=ProjectSettings(
                name=project.get("name") or "",
                description=project.get("description"),
                default_priority=default_priority,
                default_assignee=project.get("default_assignee"),
            ),
            storage=StorageSettings(lock_timeout=lock_timeout),
            git=GitSettings(
                worktree_enabled=bool(git.get("worktree_enabled", True)),
                worktree_prefix=git.get("worktree_prefix") or "{project}-vibeticket-",
                branch_prefix=git.get("branch_prefix") or "ticket/",
                cleanup_on_close=bool(git.get("cleanup_on_close", True)),
            ),
        )

    # Dotted-key access used by ``vibe-ticket config get/set``

    def get(self, key: str) -> Any:
        section, _, name = key.partition(".")
        data = self.to_dict()
        if section not in data or name not in data[section]:
            raise InvalidInputError(f"Unknown configuration key: {key}")
        return data[section][name]

    def set(self, key: str, value: Any) -> "ProjectConfig":
        """Return a new config with ``key`` set, validating the value."""
        self.get(key)
        data = self.to_dict()
        section, _, name = key.partition(".")
        data[section][name] = value
        return ProjectConfig.from_dict(data)


def find_project_root(start_path: Optional[Path] = None) -> Path:
    """Find the nearest directory containing ``.vibe-ticket`` by walking up.

    Raises:
        ProjectNotInitializedError: if no marker directory is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = Path(start_path).resolve()
    for candidate in (start_path, *start_path.parents):
        if (candidate / MARKER_DIR).is_dir():
            return candidate

    raise ProjectNotInitializedError(start_path)


def _load_yaml(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise StorageIOError.wrap("read", path, e) from e
    except yaml.YAMLError as e:
        raise StorageCorruptError(path, f"invalid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise StorageCorruptError(path, "expected a mapping")
    return data


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_user_config() -> dict:
    """Load user-level defaults, or an empty mapping when there are none."""
    if USER_CONFIG_FILE.is_file():
        return _load_yaml(USER_CONFIG_FILE)
    return {}


def load_config(project_root: Path) -> ProjectConfig:
    """Load the project config merged over user defaults."""
    data = load_user_config()
    config_path = Path(project_root) / MARKER_DIR / CONFIG_FILE
    if config_path.is_file():
        data = _merge(data, _load_yaml(config_path))
    else:
        logger.debug("No config file at %s, using defaults", config_path)
    return ProjectConfig.from_dict(data)


def save_config(project_root: Path, config: ProjectConfig) -> Path:
    config_path = Path(project_root) / MARKER_DIR / CONFIG_FILE
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise StorageIOError.wrap("write", config_path, e) from e
    return config_path


def create_project_config(
    path: Path,
    name: Optional[str] = None,
    description: Optional[str] = None,
    force: bool = False,
) -> ProjectConfig:
    """Create ``.vibe-ticket/config.yaml`` in the specified directory.

    Args:
        path: Directory to initialize
        name: Project name (default: directory name)
        description: Optional project description
        force: Overwrite an existing configuration

    Returns:
        The written configuration
    """
    path = Path(path).resolve()
    marker = path / MARKER_DIR
    if marker.exists() and not force:
        raise ProjectAlreadyInitializedError(marker)

    config = ProjectConfig.from_dict(load_user_config())
    config.project.name = name or path.name
    config.project.description = description
    save_config(path, config)
    return config
