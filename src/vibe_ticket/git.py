"""Git integration: ticket branches and worktrees."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import GitSettings
from .errors import ExternalToolError
from .models import Ticket

logger = logging.getLogger(__name__)


@dataclass
class WorktreeInfo:
    path: Path
    commit: str = ""
    branch: str = ""
    is_bare: bool = False
    is_detached: bool = False
    is_locked: bool = False
    prunable: bool = False

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "commit": self.commit,
            "branch": self.branch,
            "bare": self.is_bare,
            "detached": self.is_detached,
            "locked": self.is_locked,
            "prunable": self.prunable,
        }


def run_git(args: list[str], cwd: Optional[Path] = None) -> str:
    """Run a git command and return stdout. Raises ExternalToolError on failure."""
    logger.debug("git %s", " ".join(args))
    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            cwd=cwd,
        )
    except OSError as e:
        raise ExternalToolError("git", str(e)) from e
    if result.returncode != 0:
        raise ExternalToolError(f"git {args[0]}", result.stderr.strip() or f"exit status {result.returncode}")
    return result.stdout


def branch_name(ticket: Ticket, settings: GitSettings) -> str:
    return f"{settings.branch_prefix}{ticket.slug}"


def worktree_path(project_root: Path, ticket: Ticket, settings: GitSettings) -> Path:
    """Worktree directory for a ticket: a sibling of the project root."""
    prefix = settings.worktree_prefix.format(project=project_root.name)
    return project_root.parent / f"{prefix}{ticket.slug}"


def branch_exists(name: str, cwd: Optional[Path] = None) -> bool:
    try:
        run_git(["rev-parse", "--verify", "--quiet", f"refs/heads/{name}"], cwd=cwd)
    except ExternalToolError:
        return False
    return True


def create_branch(name: str, cwd: Optional[Path] = None) -> None:
    run_git(["checkout", "-b", name], cwd=cwd)


def create_worktree(path: Path, branch: str, cwd: Optional[Path] = None) -> Path:
    """Create a worktree at ``path`` on ``branch``, creating the branch if needed."""
    if path.exists():
        logger.info("Worktree already exists at %s", path)
        return path
    if branch_exists(branch, cwd=cwd):
        run_git(["worktree", "add", str(path), branch], cwd=cwd)
    else:
        run_git(["worktree", "add", "-b", branch, str(path)], cwd=cwd)
    return path


def parse_worktree_list(output: str) -> list[WorktreeInfo]:
    """Parse ``git worktree list --porcelain`` output."""
    worktrees = []
    current: Optional[WorktreeInfo] = None
    for line in output.splitlines():
        if not line.strip():
            if current:
                worktrees.append(current)
            current = None
        elif line.startswith("worktree "):
            if current:
                worktrees.append(current)
            current = WorktreeInfo(path=Path(line[len("worktree "):]))
        elif current is None:
            continue
        elif line.startswith("HEAD "):
            current.commit = line[len("HEAD "):]
        elif line.startswith("branch "):
            current.branch = line[len("branch "):].removeprefix("refs/heads/")
        elif line == "bare":
            current.is_bare = True
        elif line == "detached":
            current.is_detached = True
        elif line.startswith("locked"):
            current.is_locked = True
        elif line.startswith("prunable"):
            current.prunable = True
    if current:
        worktrees.append(current)
    return worktrees


def list_worktrees(cwd: Optional[Path] = None) -> list[WorktreeInfo]:
    return parse_worktree_list(run_git(["worktree", "list", "--porcelain"], cwd=cwd))


def remove_worktree(path: Path, force: bool = False, cwd: Optional[Path] = None) -> None:
    args = ["worktree", "remove"]
    if force:
        args.append("--force")
    args.append(str(path))
    run_git(args, cwd=cwd)


def prune_worktrees(cwd: Optional[Path] = None) -> str:
    return run_git(["worktree", "prune", "-v"], cwd=cwd)


def current_branch(cwd: Optional[Path] = None) -> Optional[str]:
    """Name of the checked-out branch, or None outside a repository."""
    try:
        name = run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd).strip()
    except ExternalToolError:
        return None
    return name or None
