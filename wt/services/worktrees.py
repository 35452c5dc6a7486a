"""Worktree lifecycle orchestration service."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

from wt import git_info
from wt.errors import WtError
from wt.models import UpdateReport, WorktreeConfig
from wt.services import docker, tmux
from wt.services.environment import update_environment_files

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILES = [".env", "client-app/.env", "admin/.env", ".node_env", "node_env", ".node-env", "node.env"]
DEFAULT_ENV_SUBDIRS = ["client-app", "admin", "server", "api"]
NODE_ENV_NAMES = [".node_env", "node_env", ".node-env", "node.env"]
GLOB_CHARS = set("*?[")


@dataclass(slots=True)
class CreatedWorktree:
    """Result of creating a worktree."""

    name: str
    branch: str
    path: Path
    copied_files: list[str] = field(default_factory=list)
    report: UpdateReport | None = None


@dataclass(slots=True)
class CleanupResult:
    """Result of tearing a worktree down."""

    name: str
    removed_resources: list[str] = field(default_factory=list)
    session_killed: bool = False
    directory_removed: bool = False
    branch_deleted: bool = False


def default_env_files() -> list[str]:
    """Return env files seeded when the config lists none."""
    files = list(DEFAULT_ENV_FILES)
    for subdir in DEFAULT_ENV_SUBDIRS:
        for name in NODE_ENV_NAMES:
            candidate = f"{subdir}/{name}"
            if candidate not in files:
                files.append(candidate)
    return files


def _copy(source: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir():
        shutil.copytree(source, destination, dirs_exist_ok=True)
    else:
        shutil.copy2(source, destination)


def copy_env_files(main_dir: Path, worktree_dir: Path, env_files: list[str]) -> list[str]:
    """Seed environment files from the main worktree.

    Each file is copied from the main worktree, or from `<file>.sample`
    inside the new worktree when the main copy does not exist.

    Returns:
        Relative paths that were written.
    """
    copied: list[str] = []
    for relative in env_files or default_env_files():
        source = main_dir / relative
        sample = worktree_dir / f"{relative}.sample"
        if source.is_file():
            _copy(source, worktree_dir / relative)
        elif sample.is_file():
            _copy(sample, worktree_dir / relative)
        else:
            continue
        copied.append(relative)
    return copied


def copy_ignored_files(main_dir: Path, worktree_dir: Path) -> list[str]:
    """Copy literal `.gitignore` entries that exist in the main worktree.

    Negated and glob patterns are skipped, as is anything already present in
    the worktree. Unreadable entries are logged and skipped.

    Returns:
        Relative paths that were copied.
    """
    gitignore = main_dir / ".gitignore"
    if not gitignore.is_file():
        return []

    copied: list[str] = []
    for line in gitignore.read_text(encoding="utf-8").splitlines():
        pattern = line.strip()
        if not pattern or pattern.startswith("#") or pattern.startswith("!"):
            continue
        if GLOB_CHARS & set(pattern):
            continue
        relative = pattern.strip("/")
        if not relative or ".." in Path(relative).parts:
            continue
        source = main_dir / relative
        destination = worktree_dir / relative
        if not source.exists() or destination.exists():
            continue
        try:
            _copy(source, destination)
        except (OSError, shutil.Error) as exc:
            logger.warning("Skipped copying %s: %s", relative, exc)
            continue
        copied.append(relative)
    return copied


def create_worktree(name: str, config: WorktreeConfig, main_dir: Path) -> CreatedWorktree:
    """Create a worktree, seed its files and rewrite its environment.

    Args:
        name: Worktree and branch name.
        config: Loaded configuration.
        main_dir: Primary worktree directory.

    Returns:
        Created worktree details including the environment update report.

    Raises:
        WtError: If the branch or directory already exists, or git fails.
    """
    branch = name
    path = git_info.worktree_dir(name, start=main_dir)
    if git_info.branch_exists(branch, start=main_dir):
        raise WtError(f"Branch {branch} already exists")
    if path.exists():
        raise WtError(f"Directory {path} already exists")

    git_info.add_worktree(path, branch, start=main_dir)
    created = CreatedWorktree(name=name, branch=branch, path=path)
    created.copied_files.extend(copy_env_files(main_dir, path, config.env_files))
    created.copied_files.extend(copy_ignored_files(main_dir, path))
    created.report = update_environment_files(
        name,
        path,
        config,
        partial(git_info.worktree_index, start=main_dir),
    )
    return created


def require_worktree(name: str, main_dir: Path) -> Path:
    """Return an existing worktree's directory or raise an actionable error."""
    path = git_info.worktree_dir(name, start=main_dir)
    if not path.exists():
        raise WtError(f"Worktree {path} not found. Use 'wt create {name}' to create it first")
    return path


def cleanup_worktree(
    name: str,
    config: WorktreeConfig,
    main_dir: Path,
    remove_dir: bool = False,
) -> CleanupResult:
    """Stop containers, kill the session and optionally delete the worktree."""
    path = require_worktree(name, main_dir)
    result = CleanupResult(name=name)
    if config.start_containers:
        result.removed_resources = docker.cleanup_containers(main_dir.name, name, path)
    result.session_killed = tmux.kill_session(name)
    if remove_dir:
        git_info.remove_worktree(path, start=main_dir)
        result.directory_removed = True
        result.branch_deleted = git_info.delete_branch(name, start=main_dir)
    return result
