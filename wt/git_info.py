"""Git worktree queries and operations."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from wt.errors import CommandError, NotGitRepositoryError
from wt.runner import run_command

logger = logging.getLogger(__name__)


def _run_git(args: list[str], cwd: Path) -> str:
    """Run a git command and return stdout.

    Args:
        args: Git command arguments without leading `git`.
        cwd: Working directory for the command.

    Returns:
        Command stdout stripped of trailing whitespace.

    Raises:
        CommandError: If git exits with non-zero status.
    """
    return run_command(["git", *args], cwd=cwd)


def _cwd(start: str | Path | None) -> Path:
    return Path(start or ".").resolve()


def detect_repo_root(start: str | Path | None = None) -> Path:
    """Detect git repository root from a starting path.

    Args:
        start: Optional starting path. Defaults to current working directory.

    Returns:
        Absolute root of the worktree containing `start`.

    Raises:
        NotGitRepositoryError: If repository root cannot be determined.
    """
    try:
        root = _run_git(["rev-parse", "--show-toplevel"], cwd=_cwd(start))
    except (CommandError, FileNotFoundError) as exc:
        raise NotGitRepositoryError("Current path is not inside a git repository.") from exc
    return Path(root).resolve()


def list_worktree_paths(start: str | Path | None = None) -> list[Path]:
    """Return all worktree paths in `git worktree list` order, main first."""
    try:
        output = _run_git(["worktree", "list", "--porcelain"], cwd=_cwd(start))
    except (CommandError, FileNotFoundError) as exc:
        raise NotGitRepositoryError("Current path is not inside a git repository.") from exc
    return [
        Path(line[len("worktree "):]).resolve()
        for line in output.splitlines()
        if line.startswith("worktree ")
    ]


def main_worktree_dir(start: str | Path | None = None) -> Path:
    """Return the primary worktree directory."""
    paths = list_worktree_paths(start)
    if not paths:
        raise NotGitRepositoryError("No worktrees reported by git.")
    return paths[0]


def project_name(start: str | Path | None = None) -> str:
    """Return the project name: the primary worktree directory name."""
    return main_worktree_dir(start).name


def _name_from_path(path: Path, project: str) -> str:
    """Strip the `<project>-` prefix from a worktree directory name."""
    prefix = f"{project}-"
    return path.name[len(prefix):] if path.name.startswith(prefix) else path.name


def worktree_names(start: str | Path | None = None) -> list[str]:
    """Return names of all non-primary worktrees."""
    paths = list_worktree_paths(start)
    if not paths:
        return []
    project = paths[0].name
    return [_name_from_path(path, project) for path in paths[1:]]


def worktree_index(name: str, start: str | Path | None = None) -> int:
    """Return the stable index of a worktree.

    The primary worktree (named after the project) is index 0 and is
    excluded from counting. A name that is not a current worktree gets the
    next unused index.

    Args:
        name: Worktree name (directory name without the project prefix).
        start: Optional path inside the repository.

    Returns:
        0 for the primary worktree, else 1-based position among the others.
    """
    paths = list_worktree_paths(start)
    if not paths:
        return 1
    project = paths[0].name
    if name == project:
        return 0
    names = [_name_from_path(path, project) for path in paths[1:]]
    for position, existing in enumerate(names, start=1):
        if existing == name:
            return position
    return len(names) + 1


def worktree_dir(name: str, start: str | Path | None = None) -> Path:
    """Return the directory for a worktree: `<parent>/<project>-<name>`."""
    main_dir = main_worktree_dir(start)
    return main_dir.parent / f"{main_dir.name}-{name}"


def branch_exists(branch: str, start: str | Path | None = None) -> bool:
    """Return whether a local branch exists."""
    try:
        _run_git(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], cwd=_cwd(start))
    except CommandError:
        return False
    return True


def add_worktree(path: Path, branch: str, start: str | Path | None = None) -> None:
    """Create a worktree on a new branch."""
    _run_git(["worktree", "add", str(path), "-b", branch], cwd=_cwd(start))


def remove_worktree(path: Path, start: str | Path | None = None) -> None:
    """Remove a worktree, falling back to deleting the directory and pruning."""
    cwd = _cwd(start)
    try:
        _run_git(["worktree", "remove", str(path), "--force"], cwd=cwd)
    except CommandError as exc:
        logger.warning("git worktree remove failed (%s); removing directory", exc.stderr or exc)
        shutil.rmtree(path, ignore_errors=True)
        _run_git(["worktree", "prune"], cwd=cwd)


def delete_branch(branch: str, start: str | Path | None = None) -> bool:
    """Force-delete a local branch; return False when it was already gone."""
    try:
        _run_git(["branch", "-D", branch], cwd=_cwd(start))
    except CommandError:
        return False
    return True


def worktree_list_text(start: str | Path | None = None) -> str:
    """Return human-readable `git worktree list` output."""
    try:
        return _run_git(["worktree", "list"], cwd=_cwd(start))
    except CommandError as exc:
        raise NotGitRepositoryError("Current path is not inside a git repository.") from exc
