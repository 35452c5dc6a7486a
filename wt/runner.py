"""Utilities for executing external commands."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Mapping
from pathlib import Path

from wt.errors import CommandError

logger = logging.getLogger(__name__)


def run_command(
    args: list[str],
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    input_text: str | None = None,
    capture: bool = True,
) -> str:
    """Run a command and return its stdout.

    Args:
        args: Command and arguments.
        cwd: Optional working directory.
        env: Extra environment variables layered over the current environment.
        input_text: Optional text piped to stdin.
        capture: Capture output; when False the command inherits the terminal.

    Returns:
        Stdout stripped of trailing whitespace, or an empty string when not
        capturing.

    Raises:
        CommandError: If the command is missing or exits with non-zero status.
    """
    if cwd is not None and not Path(cwd).exists():
        raise FileNotFoundError(f"Command runner cwd does not exist: {cwd}")
    merged_env = {**os.environ, **env} if env else None
    logger.debug("$ %s", " ".join(args))
    try:
        completed = subprocess.run(
            args,
            cwd=str(cwd) if cwd is not None else None,
            env=merged_env,
            input=input_text,
            check=False,
            capture_output=capture,
            text=True,
        )
    except FileNotFoundError as exc:
        raise CommandError(args, 127, f"{args[0]}: command not found") from exc
    if completed.returncode != 0:
        raise CommandError(args, completed.returncode, completed.stderr or "")
    return (completed.stdout or "").rstrip()


def command_exists(name: str) -> bool:
    """Return whether an executable is available on PATH."""
    return shutil.which(name) is not None
