"""File rewrite strategies applied to worktree files."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path

from wt.errors import FileUpdateError
from wt.models import (
    AppendUpdate,
    EnvVarsUpdate,
    FileUpdate,
    ReplaceUpdate,
    ResolvedContext,
    WorktreeConfig,
)
from wt.services.ports import shifted_port
from wt.services.templates import render_template

logger = logging.getLogger(__name__)


def _read(path: Path) -> str:
    try:
        with path.open("r", encoding="utf-8", newline="") as handle:
            return handle.read()
    except UnicodeDecodeError as exc:
        raise FileUpdateError(str(path), f"not valid UTF-8 text: {exc.reason} at byte {exc.start}") from exc


def _write(path: Path, content: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(content)


def _ensure_file(path: Path) -> None:
    """Create an empty file (and parents) when it does not exist yet."""
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()


def upsert_env_line(content: str, key: str, value: str) -> str:
    """Set `KEY=value` in line-oriented env content.

    The first line starting with `KEY=` is replaced in place; otherwise the
    assignment is appended on a new line.
    """
    line = f"{key}={value}"
    pattern = re.compile(rf"^{re.escape(key)}=.*$", re.MULTILINE)
    if pattern.search(content):
        return pattern.sub(lambda _match: line, content, count=1)
    return f"{content}\n{line}"


def apply_env_vars(
    path: Path,
    variables: list[str],
    port_mappings: Mapping[str, int | None],
    offset: int,
) -> list[str]:
    """Upsert shifted ports for the listed variables into an env file.

    The file is created when missing. Variables without a port mapping are
    skipped silently.

    Args:
        path: Absolute target file path.
        variables: Port variable names to upsert.
        port_mappings: Variable name to base port.
        offset: Worktree port offset.

    Returns:
        Warnings for variables whose base port is the invalid marker.
    """
    _ensure_file(path)
    content = _read(path)
    warnings: list[str] = []
    for variable in variables:
        if variable not in port_mappings:
            logger.debug("Skipping %s in %s: no port mapping", variable, path)
            continue
        base_port = port_mappings[variable]
        if base_port is None:
            warnings.append(f"{variable} has no valid base port; left unchanged")
            continue
        content = upsert_env_line(content, variable, str(shifted_port(base_port, offset)))
    _write(path, content)
    return warnings


def apply_replace(
    path: Path,
    search_pattern: str,
    replacement: str,
    context: ResolvedContext,
    port_mappings: Mapping[str, int | None],
) -> bool:
    """Apply a global regex substitution with a rendered replacement.

    A missing file is left alone: nothing is created and no error is raised.

    Args:
        path: Absolute target file path.
        search_pattern: Python regular expression.
        replacement: Replacement template; may use `\\1` or `\\g<name>`
            back-references and worktree placeholders.
        context: Resolved worktree identity.
        port_mappings: Variable name to base port.

    Returns:
        True when the file existed and was rewritten.

    Raises:
        FileUpdateError: If the pattern or replacement is not valid, or the
            file is not UTF-8 text.
    """
    if not path.exists():
        logger.debug("Skipping replace in %s: file does not exist", path)
        return False
    try:
        regex = re.compile(search_pattern)
    except re.error as exc:
        raise FileUpdateError(str(path), f"invalid search pattern {search_pattern!r}: {exc}") from exc

    rendered = render_template(replacement, context, port_mappings)
    content = _read(path)
    try:
        updated = regex.sub(rendered, content)
    except re.error as exc:
        raise FileUpdateError(str(path), f"invalid replacement {rendered!r}: {exc}") from exc
    _write(path, updated)
    return True


def apply_append(
    path: Path,
    payload: str,
    context: ResolvedContext,
    port_mappings: Mapping[str, int | None],
) -> None:
    """Append a rendered payload on a new line, creating the file if absent."""
    rendered = render_template(payload, context, port_mappings)
    with path.open("a", encoding="utf-8", newline="") as handle:
        handle.write(f"\n{rendered}")


def apply_file_update(
    update: FileUpdate,
    worktree_dir: Path,
    context: ResolvedContext,
    config: WorktreeConfig,
) -> list[str]:
    """Dispatch one rule to its strategy.

    Args:
        update: File-update rule.
        worktree_dir: Worktree root the rule path is relative to.
        context: Resolved worktree identity.
        config: Loaded configuration (port mappings).

    Returns:
        Non-fatal warnings produced while applying the rule.

    Raises:
        FileUpdateError: If the rule is malformed or its regex is invalid.
    """
    path = worktree_dir / update.file_path
    if isinstance(update, EnvVarsUpdate):
        return apply_env_vars(path, update.variables, config.port_mappings, context.port_offset)
    if isinstance(update, ReplaceUpdate):
        if update.search_pattern is None or update.replacement is None:
            raise FileUpdateError(update.file_path, "replace rule needs both a pattern and a replacement")
        apply_replace(path, update.search_pattern, update.replacement, context, config.port_mappings)
        return []
    if isinstance(update, AppendUpdate):
        apply_append(path, update.payload, context, config.port_mappings)
        return []
    raise TypeError(f"Unsupported file update: {update!r}")


def upsert_port_variables(
    env_path: Path,
    port_mappings: Mapping[str, int | None],
    offset: int,
) -> list[str]:
    """Upsert every configured port variable into the primary env file."""
    return apply_env_vars(env_path, list(port_mappings), port_mappings, offset)


def upsert_container_names(
    env_path: Path,
    container_names: Mapping[str, str],
    context: ResolvedContext,
    port_mappings: Mapping[str, int | None],
) -> None:
    """Upsert rendered container names into the primary env file.

    Names are rendered with the real worktree name and index but a zero port
    offset, so container names never move with the ports.
    """
    unshifted = replace(context, port_offset=0)
    _ensure_file(env_path)
    content = _read(env_path)
    for variable, template in container_names.items():
        content = upsert_env_line(content, variable, render_template(template, unshifted, port_mappings))
    _write(env_path, content)
