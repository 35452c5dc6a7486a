"""Custom exceptions for wt."""

from __future__ import annotations


class WtError(Exception):
    """Base exception type for wt command errors."""


class NotGitRepositoryError(WtError):
    """Raised when a git repository cannot be detected."""


class CommandError(WtError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str = "") -> None:
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"Command failed ({returncode}): {' '.join(self.command)}{detail}")


class FileUpdateError(WtError):
    """Raised when a single file-update rule cannot be applied."""

    def __init__(self, target: str, message: str) -> None:
        self.target = target
        super().__init__(f"{target}: {message}")
