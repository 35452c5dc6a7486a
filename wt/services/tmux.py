"""tmux session management for worktrees."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from wt.errors import CommandError, WtError
from wt.runner import command_exists, run_command

logger = logging.getLogger(__name__)


def attach_command(session: str, worktree_dir: Path) -> str:
    """Return the shell command that attaches to a worktree session."""
    return f"cd {worktree_dir} && tmux attach -t {session}"


def require_tmux() -> None:
    if not command_exists("tmux"):
        raise WtError("tmux is not installed")


def session_exists(session: str) -> bool:
    """Return whether a tmux session exists."""
    try:
        run_command(["tmux", "has-session", "-t", session])
    except CommandError:
        return False
    return True


def send_keys(session: str, keys: str, pane: str = "0.0") -> None:
    """Type a command into a pane and press Enter."""
    run_command(["tmux", "send-keys", "-t", f"{session}:{pane}", keys, "C-m"])


def create_session(session: str, worktree_dir: Path, containers_hint: str | None = None) -> None:
    """Create a detached three-pane session rooted at the worktree.

    Layout: main pane on the left, two stacked panes on the right. The
    bottom right pane starts `claude` when it is installed.

    Args:
        session: Session name.
        worktree_dir: Working directory for every pane.
        containers_hint: Optional message echoed in the top right pane.
    """
    cwd = str(worktree_dir)
    run_command(["tmux", "new-session", "-d", "-s", session, "-c", cwd])
    run_command(["tmux", "split-window", "-h", "-c", cwd, "-t", session])
    run_command(["tmux", "split-window", "-v", "-c", cwd, "-t", f"{session}:0.1"])
    if command_exists("claude"):
        send_keys(session, "claude", pane="0.2")
    if containers_hint:
        send_keys(session, f"echo '{containers_hint}'", pane="0.1")
    run_command(["tmux", "select-pane", "-t", f"{session}:0.0"])


def attach_session(session: str) -> None:
    """Attach the current terminal to a session."""
    run_command(["tmux", "attach-session", "-t", session], capture=False)


def kill_session(session: str) -> bool:
    """Kill a session; return False when it did not exist."""
    try:
        run_command(["tmux", "kill-session", "-t", session])
    except CommandError:
        logger.debug("No tmux session %s to kill", session)
        return False
    return True


def open_in_new_tab(session: str, worktree_dir: Path) -> bool:
    """Attach from a new iTerm tab on macOS.

    Returns:
        True when a new tab was opened; False when the caller should attach
        in the current terminal instead.
    """
    if sys.platform != "darwin":
        logger.warning("New tab opening is only supported on macOS with iTerm")
        return False
    script = "\n".join(
        [
            'tell application "iTerm"',
            "    tell current window",
            "        create tab with default profile",
            "        tell current session of current tab",
            f'            write text "{attach_command(session, worktree_dir)}"',
            "        end tell",
            "    end tell",
            "end tell",
        ]
    )
    try:
        run_command(["osascript", "-e", script])
    except CommandError:
        logger.warning("iTerm not detected; attaching in current terminal")
        return False
    return True
