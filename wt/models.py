"""Domain models for wt configuration and environment updates."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Union

DEFAULT_PORT_OFFSET_INCREMENT = 10


@dataclass(slots=True)
class EnvVarsUpdate:
    """Upsert shifted port variables into a KEY=value file.

    Attributes:
        file_path: Target path relative to the worktree root.
        variables: Port-mapping variable names to upsert, in order.
    """

    update_type: ClassVar[str] = "env_vars"

    file_path: str
    variables: list[str] = field(default_factory=list)

    @property
    def spec(self) -> str:
        return ",".join(self.variables)


@dataclass(slots=True)
class ReplaceUpdate:
    """Global regex substitution with a rendered replacement template.

    Either field is None when the raw rule was malformed; such a rule is
    reported and skipped when applied.
    """

    update_type: ClassVar[str] = "replace"

    file_path: str
    search_pattern: str | None
    replacement: str | None

    @property
    def spec(self) -> str:
        return self.replacement or ""

    @property
    def is_complete(self) -> bool:
        return self.search_pattern is not None and self.replacement is not None


@dataclass(slots=True)
class AppendUpdate:
    """Append a rendered payload to a file, creating it when absent."""

    update_type: ClassVar[str] = "append"

    file_path: str
    payload: str

    @property
    def spec(self) -> str:
        return self.payload


FileUpdate = Union[EnvVarsUpdate, ReplaceUpdate, AppendUpdate]
UPDATE_TYPES: dict[str, type] = {
    EnvVarsUpdate.update_type: EnvVarsUpdate,
    ReplaceUpdate.update_type: ReplaceUpdate,
    AppendUpdate.update_type: AppendUpdate,
}


@dataclass(slots=True)
class WorktreeConfig:
    """Declarative rules loaded from `.wt.conf`.

    Attributes:
        start_containers: Whether container orchestration is enabled.
        port_offset_increment: Per-index step applied to every base port.
        env_files: Environment files seeded into new worktrees.
        port_mappings: Variable name to base port. None marks an entry whose
            number could not be parsed; it is kept but never used as a port.
        container_names: Variable name to container-name template.
        file_updates: Rewrite rules, applied in declaration order.
    """

    start_containers: bool = True
    port_offset_increment: int = DEFAULT_PORT_OFFSET_INCREMENT
    env_files: list[str] = field(default_factory=list)
    port_mappings: dict[str, int | None] = field(default_factory=dict)
    container_names: dict[str, str] = field(default_factory=dict)
    file_updates: list[FileUpdate] = field(default_factory=list)


@dataclass(slots=True)
class ConfigDiagnostic:
    """A non-fatal anomaly found while parsing configuration text."""

    line: int
    message: str

    def __str__(self) -> str:
        return f"line {self.line}: {self.message}"


@dataclass(slots=True)
class LoadedConfig:
    """Configuration plus where it came from and what was ignored."""

    config: WorktreeConfig
    diagnostics: list[ConfigDiagnostic] = field(default_factory=list)
    path: Path | None = None


@dataclass(slots=True)
class ResolvedContext:
    """Per-call worktree identity used for template rendering."""

    worktree_name: str
    worktree_index: int
    port_offset: int


@dataclass(slots=True)
class UpdateFailure:
    """A rule-level failure collected during an environment update."""

    target: str
    message: str


@dataclass(slots=True)
class UpdateReport:
    """Outcome of one environment update call."""

    context: ResolvedContext
    updated_files: list[str] = field(default_factory=list)
    failures: list[UpdateFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def file_update_to_jsonable(update: FileUpdate) -> dict[str, Any]:
    """Convert a file-update rule to a JSON-serializable dictionary."""
    payload: dict[str, Any] = {
        "file_path": update.file_path,
        "update_type": update.update_type,
        "spec": update.spec,
    }
    if isinstance(update, ReplaceUpdate):
        payload["search_pattern"] = update.search_pattern
        payload["replacement"] = update.replacement
    return payload


def config_to_jsonable(config: WorktreeConfig) -> dict[str, Any]:
    """Convert configuration to JSON-serializable dictionary.

    Args:
        config: Parsed worktree configuration.

    Returns:
        JSON-friendly dictionary. Invalid port markers render as null.
    """
    return {
        "start_containers": config.start_containers,
        "port_offset_increment": config.port_offset_increment,
        "env_files": list(config.env_files),
        "port_mappings": dict(config.port_mappings),
        "container_names": dict(config.container_names),
        "file_updates": [file_update_to_jsonable(update) for update in config.file_updates],
    }


def report_to_jsonable(report: UpdateReport) -> dict[str, Any]:
    """Convert an update report to JSON-serializable dictionary."""
    return {
        "worktree_name": report.context.worktree_name,
        "worktree_index": report.context.worktree_index,
        "port_offset": report.context.port_offset,
        "updated_files": list(report.updated_files),
        "failures": [
            {"target": failure.target, "message": failure.message}
            for failure in report.failures
        ],
    }
