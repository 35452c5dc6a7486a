"""Environment update orchestration for a single worktree."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from wt.errors import FileUpdateError
from wt.models import (
    ResolvedContext,
    UpdateFailure,
    UpdateReport,
    WorktreeConfig,
)
from wt.services.file_updates import (
    apply_file_update,
    upsert_container_names,
    upsert_port_variables,
)
from wt.services.ports import port_offset

logger = logging.getLogger(__name__)

PRIMARY_ENV_FILE = ".env"

IndexResolver = Callable[[str], int]


def resolve_context(
    worktree_name: str,
    config: WorktreeConfig,
    resolve_index: IndexResolver,
) -> ResolvedContext:
    """Build the per-call context; index resolution errors propagate."""
    index = resolve_index(worktree_name)
    return ResolvedContext(
        worktree_name=worktree_name,
        worktree_index=index,
        port_offset=port_offset(index, config.port_offset_increment),
    )


def update_environment_files(
    worktree_name: str,
    worktree_dir: str | Path,
    config: WorktreeConfig,
    resolve_index: IndexResolver,
) -> UpdateReport:
    """Rewrite a worktree's files for its index-derived ports and names.

    Steps run strictly in order: resolve the index, compute the offset, apply
    each file-update rule in declaration order, then upsert port variables and
    container names into the primary `.env` file. A failing rule is recorded
    and the remaining steps still run. Re-running with the same inputs leaves
    `env_vars` targets and `.env` byte-identical; `append` rules append again
    on every run, and `replace` rules are stable only when the pattern cannot
    match its own output.

    Args:
        worktree_name: Worktree name used for placeholders.
        worktree_dir: Worktree root directory.
        config: Loaded configuration.
        resolve_index: Callable returning the stable worktree index.

    Returns:
        Report with the context, touched files and collected failures.

    Raises:
        Exception: Whatever `resolve_index` raises; resolution is fatal.
    """
    root = Path(worktree_dir)
    context = resolve_context(worktree_name, config, resolve_index)
    report = UpdateReport(context=context)
    logger.debug(
        "Updating %s (index=%d, offset=%d)",
        worktree_name,
        context.worktree_index,
        context.port_offset,
    )

    for update in config.file_updates:
        target = update.file_path
        try:
            warnings = apply_file_update(update, root, context, config)
        except (FileUpdateError, OSError) as exc:
            _record_failure(report, target, exc)
            continue
        for warning in warnings:
            report.failures.append(UpdateFailure(target=target, message=warning))
        if (root / target).exists():
            _mark_updated(report, target)

    env_path = root / PRIMARY_ENV_FILE
    if config.port_mappings:
        try:
            warnings = upsert_port_variables(env_path, config.port_mappings, context.port_offset)
        except (FileUpdateError, OSError) as exc:
            _record_failure(report, PRIMARY_ENV_FILE, exc)
        else:
            for warning in warnings:
                report.failures.append(UpdateFailure(target=PRIMARY_ENV_FILE, message=warning))
            _mark_updated(report, PRIMARY_ENV_FILE)

    if config.container_names:
        try:
            upsert_container_names(env_path, config.container_names, context, config.port_mappings)
        except (FileUpdateError, OSError) as exc:
            _record_failure(report, PRIMARY_ENV_FILE, exc)
        else:
            _mark_updated(report, PRIMARY_ENV_FILE)

    return report


def _record_failure(report: UpdateReport, target: str, exc: Exception) -> None:
    message = str(exc)
    logger.warning("Update of %s failed: %s", target, message)
    report.failures.append(UpdateFailure(target=target, message=message))


def _mark_updated(report: UpdateReport, target: str) -> None:
    if target not in report.updated_files:
        report.updated_files.append(target)
