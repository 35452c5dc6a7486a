"""Rich rendering helpers for wt command output."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from wt.models import LoadedConfig, ReplaceUpdate, UpdateReport


def _preview_text(value: Any, max_length: int) -> str:
    """Return compact, escaped single-line text bounded by max length."""
    text = str(value) if value is not None else ""
    compact = " ".join(text.split())
    return escape(compact[:max_length])


def port_label(base_port: int | None, offset: int = 0) -> str:
    """Return display text for a base port, shifted when an offset is given."""
    if base_port is None:
        return "[red]invalid[/red]"
    if offset:
        return f"{base_port} -> {base_port + offset}"
    return str(base_port)


def print_config(console: Console, loaded: LoadedConfig, offset: int = 0) -> None:
    """Render parsed configuration and any parse diagnostics.

    Args:
        console: Rich console instance.
        loaded: Loaded configuration with source path and diagnostics.
        offset: Optional port offset to preview shifted ports.
    """
    config = loaded.config
    source = escape(str(loaded.path)) if loaded.path else "(built-in defaults)"
    console.print(
        "\n".join(
            [
                f"Source: {source}",
                f"Start Containers: {'yes' if config.start_containers else 'no'}",
                f"Port Offset Increment: {config.port_offset_increment}",
                f"Env Files: {_preview_text(', '.join(config.env_files), 200) or '(defaults)'}",
            ]
        )
    )

    if config.port_mappings:
        ports = Table(title="Port Mappings")
        ports.add_column("Variable")
        ports.add_column("Port", justify="right")
        for name, base_port in config.port_mappings.items():
            ports.add_row(_preview_text(name, 80), port_label(base_port, offset))
        console.print(ports)

    if config.container_names:
        names = Table(title="Container Names")
        names.add_column("Variable")
        names.add_column("Template")
        for name, template in config.container_names.items():
            names.add_row(_preview_text(name, 80), _preview_text(template, 120))
        console.print(names)

    if config.file_updates:
        updates = Table(title="File Updates")
        updates.add_column("#", justify="right")
        updates.add_column("File")
        updates.add_column("Type")
        updates.add_column("Spec")
        for position, update in enumerate(config.file_updates, start=1):
            spec = update.spec
            if isinstance(update, ReplaceUpdate) and update.search_pattern is not None:
                spec = f"{update.search_pattern} => {update.spec}"
            updates.add_row(
                str(position),
                _preview_text(update.file_path, 80),
                update.update_type,
                _preview_text(spec, 120),
            )
        console.print(updates)

    if loaded.diagnostics:
        console.print(
            Panel.fit(
                "\n".join(escape(str(diagnostic)) for diagnostic in loaded.diagnostics),
                title="Config Warnings",
                border_style="yellow",
            )
        )


def print_report(console: Console, report: UpdateReport) -> None:
    """Render the outcome of an environment update."""
    context = report.context
    console.print(
        f"Worktree {_preview_text(context.worktree_name, 120)}: "
        f"index {context.worktree_index}, port offset {context.port_offset}"
    )
    if report.updated_files:
        files = "\n".join(f"- {_preview_text(path, 240)}" for path in report.updated_files)
        console.print(Panel.fit(files, title="Updated Files", border_style="green"))
    if report.failures:
        failures = "\n".join(
            f"- {_preview_text(failure.target, 120)}: {_preview_text(failure.message, 240)}"
            for failure in report.failures
        )
        console.print(Panel.fit(failures, title="Update Problems", border_style="red"))
