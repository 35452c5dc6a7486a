"""Test fixtures for wt."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest


def _run(command: list[str], cwd: Path) -> str:
    """Run subprocess command and return stripped stdout."""
    result = subprocess.run(
        command,
        cwd=str(cwd),
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture()
def git_repo(tmp_path: Path) -> Path:
    """Create an initialized git repository named `myapp` with one commit."""
    repo = tmp_path / "myapp"
    repo.mkdir(parents=True, exist_ok=True)
    _run(["git", "init"], cwd=repo)
    _run(["git", "config", "user.email", "wt@example.com"], cwd=repo)
    _run(["git", "config", "user.name", "wt Test"], cwd=repo)
    (repo / "README.md").write_text("seed\n", encoding="utf-8")
    _run(["git", "add", "README.md"], cwd=repo)
    _run(["git", "commit", "-m", "initial"], cwd=repo)
    return repo


@pytest.fixture()
def add_worktree(git_repo: Path):
    """Return a helper that adds `<repo>-<name>` worktrees via plain git."""

    def _add(name: str) -> Path:
        path = git_repo.parent / f"{git_repo.name}-{name}"
        _run(["git", "worktree", "add", str(path), "-b", name], cwd=git_repo)
        return path.resolve()

    return _add
