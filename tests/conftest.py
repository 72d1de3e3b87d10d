"""Shared fixtures: an initialized project in a temporary directory."""

from pathlib import Path

import pytest

from vibe_ticket.services import ProjectContext, init_project, open_project, set_config_value


@pytest.fixture(autouse=True)
def isolated_user_config(tmp_path: Path, monkeypatch) -> Path:
    """Point user-level defaults at an empty temp location."""
    user_config = tmp_path / "user-config" / "config.yaml"
    monkeypatch.setattr("vibe_ticket.config.USER_CONFIG_FILE", user_config)
    return user_config


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Initialize a project with git worktrees turned off."""
    root = tmp_path / "demo"
    root.mkdir()
    init_project(root, name="demo", description="Demo project")
    set_config_value(open_project(root), "git.worktree_enabled", "false")
    return root


@pytest.fixture
def project(project_dir: Path) -> ProjectContext:
    return open_project(project_dir)
