"""Tests for project configuration and discovery."""

from pathlib import Path

import pytest
import yaml

from vibe_ticket.config import (
    ProjectConfig,
    create_project_config,
    find_project_root,
    load_config,
)
from vibe_ticket.errors import (
    ConfigError,
    InvalidInputError,
    ProjectAlreadyInitializedError,
    ProjectNotInitializedError,
    StorageCorruptError,
)
from vibe_ticket.services import get_config_value, init_project, open_project, set_config_value, show_config


class TestFindProjectRoot:
    """Tests for walking up to the .vibe-ticket marker."""

    def test_finds_marker_in_parent(self, tmp_path: Path):
        """A subdirectory finds the marker of its parent."""
        (tmp_path / ".vibe-ticket").mkdir()
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)

        assert find_project_root(nested) == tmp_path.resolve()

    def test_nearest_marker_wins(self, tmp_path: Path):
        """Nested projects resolve to the innermost marker."""
        (tmp_path / ".vibe-ticket").mkdir()
        inner = tmp_path / "inner"
        (inner / ".vibe-ticket").mkdir(parents=True)

        assert find_project_root(inner) == inner.resolve()

    def test_not_initialized(self, tmp_path: Path):
        """No marker up to the filesystem root is an error."""
        with pytest.raises(ProjectNotInitializedError) as exc_info:
            find_project_root(tmp_path)

        assert exc_info.value.kind == "not_initialized"
        assert "vibe-ticket init" in exc_info.value.suggestions()[0]


class TestCreateProjectConfig:
    def test_defaults_to_directory_name(self, tmp_path: Path):
        """The project name falls back to the directory name."""
        root = tmp_path / "my-app"
        root.mkdir()
        config = create_project_config(root)

        assert config.project.name == "my-app"
        assert (root / ".vibe-ticket" / "config.yaml").is_file()

    def test_refuses_to_reinitialize(self, tmp_path: Path):
        """An existing marker is not overwritten."""
        create_project_config(tmp_path, name="first")

        with pytest.raises(ProjectAlreadyInitializedError):
            create_project_config(tmp_path, name="second")

    def test_force_overwrites(self, tmp_path: Path):
        """force=True rewrites an existing config."""
        create_project_config(tmp_path, name="first")
        create_project_config(tmp_path, name="second", force=True)

        assert load_config(tmp_path).project.name == "second"


class TestLoadConfig:
    """Tests for layering project config over user defaults."""

    def test_builtin_defaults(self, tmp_path: Path):
        """A project without config.yaml gets built-in defaults."""
        config = load_config(tmp_path)

        assert config.git.worktree_enabled is True
        assert config.git.branch_prefix == "ticket/"
        assert config.storage.lock_timeout == 10.0

    def test_user_defaults_are_merged(self, tmp_path: Path, isolated_user_config: Path):
        """User defaults apply, and project values override them."""
        isolated_user_config.parent.mkdir(parents=True)
        isolated_user_config.write_text(yaml.safe_dump({
            "project": {"default_assignee": "sam"},
            "git": {"branch_prefix": "feature/"},
        }))
        create_project_config(tmp_path, name="demo")
        marker_config = tmp_path / ".vibe-ticket" / "config.yaml"
        data = yaml.safe_load(marker_config.read_text())
        data["git"]["branch_prefix"] = "work/"
        marker_config.write_text(yaml.safe_dump(data))

        config = load_config(tmp_path)

        assert config.project.default_assignee == "sam"
        assert config.git.branch_prefix == "work/"

    def test_invalid_yaml(self, tmp_path: Path):
        """Unparseable YAML is a corrupt-storage error."""
        marker = tmp_path / ".vibe-ticket"
        marker.mkdir()
        (marker / "config.yaml").write_text("project: [oops\n")

        with pytest.raises(StorageCorruptError):
            load_config(tmp_path)

    def test_invalid_lock_timeout(self):
        """A non-numeric lock timeout is rejected."""
        with pytest.raises(InvalidInputError, match="lock_timeout"):
            ProjectConfig.from_dict({"storage": {"lock_timeout": "soon"}})

    @pytest.mark.parametrize("section", ["project", "storage", "git"])
    def test_scalar_section(self, section):
        """A section written as a plain value is a config error, not a crash."""
        with pytest.raises(ConfigError, match=f"'{section}' must be a mapping"):
            ProjectConfig.from_dict({section: "oops"})

    def test_scalar_section_in_file(self, tmp_path: Path):
        """A scalar section in config.yaml surfaces as invalid input."""
        marker = tmp_path / ".vibe-ticket"
        marker.mkdir()
        (marker / "config.yaml").write_text("git: true\n")

        with pytest.raises(ConfigError) as excinfo:
            load_config(tmp_path)
        assert excinfo.value.to_dict()["error"] == "invalid_input"

    def test_default_priority_is_normalized(self):
        """Priorities are stored lowercase."""
        config = ProjectConfig.from_dict({"project": {"default_priority": "HIGH"}})

        assert config.project.default_priority == "high"


class TestDottedKeys:
    """Tests for config get/set."""

    def test_get_and_set(self):
        """set returns a new config and leaves the original alone."""
        config = ProjectConfig()
        updated = config.set("git.branch_prefix", "feat/")

        assert updated.get("git.branch_prefix") == "feat/"
        assert config.get("git.branch_prefix") == "ticket/"

    def test_unknown_key(self):
        """Keys outside the known sections are rejected."""
        with pytest.raises(InvalidInputError, match="Unknown configuration key"):
            ProjectConfig().get("git.nope")

    def test_set_rejects_bad_priority(self):
        """set validates priorities like ticket create does."""
        with pytest.raises(InvalidInputError, match="Invalid priority: urgent"):
            ProjectConfig().set("project.default_priority", "urgent")

    def test_service_set_persists_and_coerces(self, tmp_path: Path):
        """The service coerces strings and writes config.yaml."""
        init_project(tmp_path)
        project = open_project(tmp_path)

        result = set_config_value(project, "git.cleanup_on_close", "no")

        assert result["value"] is False
        assert get_config_value(open_project(tmp_path), "git.cleanup_on_close")["value"] is False
        assert show_config(project)["config"]["git"]["cleanup_on_close"] is False
