"""Typer CLI entrypoint for wt."""

from __future__ import annotations

import json
import logging
from functools import partial
from pathlib import Path
from typing import Any

import click
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from wt import git_info
from wt.config import default_config, load_config, serialize_config
from wt.errors import NotGitRepositoryError, WtError
from wt.models import LoadedConfig, config_to_jsonable, report_to_jsonable
from wt.services import docker, tmux
from wt.services.environment import update_environment_files
from wt.services.ports import port_offset
from wt.services.worktrees import cleanup_worktree, create_worktree, require_worktree
from wt.ui.render import print_config, print_report

app = typer.Typer(
    help="wt: git worktrees with per-worktree ports, containers and tmux sessions.",
    invoke_without_command=True,
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger("wt")

__version__ = "1.0.0"

CLONE_WAIT_COMMAND = (
    "echo 'Waiting for containers to start...'; sleep 10 && wt clone-volumes "
    "&& echo 'Data cloned successfully!'"
)


def _configure_logging(verbose: bool) -> None:
    """Route wt loggers through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _emit_json(payload: Any) -> None:
    """Emit machine-readable JSON without Rich wrapping effects."""
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _safe_text(value: Any) -> str:
    """Escape Rich markup tokens in user-visible text values."""
    return escape(str(value))


def _validate_name(name: str) -> str:
    """Validate a worktree name used in paths, branches and session names.

    Raises:
        typer.BadParameter: If the name is empty or contains unsafe characters.
    """
    cleaned = name.strip()
    if not cleaned:
        raise typer.BadParameter("Worktree name must be a non-empty string.")
    if cleaned.startswith("-") or ".." in cleaned or any(char.isspace() or char in "/\\:" for char in cleaned):
        raise typer.BadParameter(f"Invalid worktree name: {name}")
    return cleaned


def _main_dir() -> Path:
    return git_info.main_worktree_dir()


def _context() -> tuple[Path, LoadedConfig]:
    """Return primary worktree directory and its loaded configuration."""
    main_dir = _main_dir()
    loaded = load_config(main_dir)
    if loaded.path is not None:
        console.print(f"Loaded config from {_safe_text(loaded.path.name)}")
    return main_dir, loaded


def _target_dir(name: str, main_dir: Path) -> Path:
    """Return the directory for a worktree name; the project name means the main worktree."""
    if name == main_dir.name:
        return main_dir
    return require_worktree(name, main_dir)


@app.callback()
def root_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    """Show help when no explicit subcommand is provided."""
    _configure_logging(verbose)
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


@app.command("create")
def create_command(name: str = typer.Argument(..., help="Worktree and branch name.")) -> None:
    """Create worktree with environment files."""
    _create(_validate_name(name))


def _create(name: str) -> None:
    main_dir, loaded = _context()
    with console.status(f"Creating worktree {_safe_text(name)}"):
        created = create_worktree(name, loaded.config, main_dir)
    console.print(f"[green]Worktree created:[/green] {_safe_text(created.path)}")
    console.print(f"[green]Branch:[/green] {_safe_text(created.branch)}")
    if created.report is not None:
        print_report(console, created.report)
    lines = [
        "Next steps:",
        f"  wt start {name}    # Start containers",
        f"  wt open {name}     # Open tmux session",
    ]
    if (created.path / "dev").exists():
        lines.extend(["  # OR", f"  cd {created.path} && ./dev up"])
    console.print(_safe_text("\n".join(lines)))


@app.command("start")
def start_command(name: str = typer.Argument(..., help="Worktree name.")) -> None:
    """Start containers for a worktree."""
    _start(_validate_name(name))


def _start(name: str) -> None:
    main_dir, loaded = _context()
    if not loaded.config.start_containers:
        console.print("[yellow]Container management disabled (START_CONTAINERS=false)[/yellow]")
        console.print(f"Use 'wt open {_safe_text(name)}' to open tmux session")
        return
    path = require_worktree(name, main_dir)
    docker.start_containers(main_dir.name, name, path)
    console.print("[green]Containers started successfully[/green]")
    console.print(f"Use 'wt open {_safe_text(name)}' to open tmux session")


def _open(
    name: str,
    new_tab: bool = False,
    detached: bool = False,
    print_command: bool = False,
) -> None:
    main_dir, loaded = _context()
    path = require_worktree(name, main_dir)
    if print_command:
        typer.echo(tmux.attach_command(name, path))
        return

    tmux.require_tmux()
    if not tmux.session_exists(name):
        hint = None
        if loaded.config.start_containers:
            compose_name = docker.compose_project_name(main_dir.name, name)
            try:
                running = docker.running_containers(compose_name)
            except WtError:
                running = None
            if running == []:
                hint = "Containers not running. Start with: ./dev up"
        console.print(f"[yellow]Creating tmux session:[/yellow] {_safe_text(name)}")
        tmux.create_session(name, path, containers_hint=hint)

    if detached:
        console.print(f"[green]Session {_safe_text(name)} is ready[/green]")
        console.print(f"Attach with: tmux attach -t {_safe_text(name)}")
    elif new_tab and tmux.open_in_new_tab(name, path):
        console.print("[yellow]Opened new iTerm tab[/yellow]")
    else:
        console.print(f"[green]Attaching to tmux session:[/green] {_safe_text(name)}")
        tmux.attach_session(name)


@app.command("open")
def open_command(
    name: str = typer.Argument(..., help="Worktree name."),
    new_tab: bool = typer.Option(False, "--new-tab", help="Open in new iTerm tab (macOS)."),
    detached: bool = typer.Option(False, "--detached", help="Create session without attaching."),
    print_command: bool = typer.Option(False, "--print-command", help="Print the tmux attach command."),
) -> None:
    """Open tmux session for a worktree."""
    _open(_validate_name(name), new_tab=new_tab, detached=detached, print_command=print_command)


@app.command("new")
def new_command(
    name: str = typer.Argument(..., help="Worktree and branch name."),
    clone: bool = typer.Option(True, "--clone/--no-clone", help="Clone data from main worktree."),
) -> None:
    """Full workflow: create worktree, start containers, open tmux session."""
    name = _validate_name(name)
    _create(name)
    console.print("[yellow]Starting containers...[/yellow]")
    _start(name)
    console.print("[yellow]Opening tmux session...[/yellow]")
    if clone:
        _open(name, detached=True)
        tmux.send_keys(name, CLONE_WAIT_COMMAND, pane="0.0")
        tmux.attach_session(name)
    else:
        _open(name)


@app.command("list")
def list_command() -> None:
    """List all worktrees."""
    console.print("[green]Git worktrees:[/green]")
    typer.echo(git_info.worktree_list_text())


@app.command("cleanup")
def cleanup_command(
    name: str = typer.Argument(..., help="Worktree name."),
    remove_dir: bool = typer.Option(False, "--remove-dir", help="Also remove the worktree directory."),
) -> None:
    """Clean up containers, volumes and the tmux session."""
    _cleanup(_validate_name(name), remove_dir=remove_dir)


def _cleanup(name: str, remove_dir: bool) -> None:
    main_dir, loaded = _context()
    with console.status(f"Cleaning up worktree {_safe_text(name)}"):
        result = cleanup_worktree(name, loaded.config, main_dir, remove_dir=remove_dir)
    for resource in result.removed_resources:
        console.print(f"   Removed: {_safe_text(resource)}")
    console.print(f"[green]Cleanup complete for worktree:[/green] {_safe_text(name)}")
    if not remove_dir:
        console.print(
            f"[yellow]Worktree directory preserved. Use 'wt cleanup {_safe_text(name)} --remove-dir' to delete it.[/yellow]"
        )


@app.command("remove")
def remove_command(name: str = typer.Argument(..., help="Worktree name.")) -> None:
    """Remove worktree completely (cleanup --remove-dir)."""
    _cleanup(_validate_name(name), remove_dir=True)


@app.command("clone-volumes")
def clone_volumes_command() -> None:
    """Clone container volumes from the main worktree into the current one."""
    main_dir = _main_dir()
    current = git_info.detect_repo_root()
    if current == main_dir:
        raise WtError("Run this command from a worktree, not the main repository")
    project = main_dir.name
    prefix = f"{project}-"
    name = current.name[len(prefix):] if current.name.startswith(prefix) else current.name
    with console.status("Cloning volumes from main worktree"):
        copied = docker.clone_volumes(project, name)
    if not copied:
        console.print("[yellow]No volumes found for the main worktree. Nothing cloned.[/yellow]")
        return
    for source, destination in copied:
        console.print(f"   {_safe_text(source)} -> {_safe_text(destination)}")
    console.print("[green]Volume clone complete[/green]")


@app.command("env")
def env_command(
    name: str = typer.Argument(..., help="Worktree name (the project name targets the main worktree)."),
    as_json: bool = typer.Option(False, "--json", help="Output JSON report."),
) -> None:
    """Re-apply port offsets and file updates to an existing worktree."""
    name = _validate_name(name)
    main_dir = _main_dir()
    loaded = load_config(main_dir)
    path = _target_dir(name, main_dir)
    report = update_environment_files(
        name,
        path,
        loaded.config,
        partial(git_info.worktree_index, start=main_dir),
    )
    if as_json:
        _emit_json(report_to_jsonable(report))
    else:
        print_report(console, report)
    if not report.ok:
        raise SystemExit(1)


@app.command("config")
def config_command(
    as_json: bool = typer.Option(False, "--json", help="Output JSON."),
    defaults: bool = typer.Option(False, "--defaults", help="Print a default .wt.conf."),
    normalize: bool = typer.Option(False, "--normalize", help="Print the loaded config in canonical form."),
    worktree: str | None = typer.Option(None, "--worktree", help="Preview ports shifted for a worktree."),
) -> None:
    """Show the parsed .wt.conf and any ignored entries."""
    if defaults:
        typer.echo(serialize_config(default_config()), nl=False)
        return

    main_dir = _main_dir()
    loaded = load_config(main_dir)
    if normalize:
        typer.echo(serialize_config(loaded.config), nl=False)
        return
    if as_json:
        payload = config_to_jsonable(loaded.config)
        payload["path"] = str(loaded.path) if loaded.path else None
        payload["diagnostics"] = [
            {"line": diagnostic.line, "message": diagnostic.message}
            for diagnostic in loaded.diagnostics
        ]
        _emit_json(payload)
        return

    offset = 0
    if worktree:
        index = git_info.worktree_index(_validate_name(worktree), start=main_dir)
        offset = port_offset(index, loaded.config.port_offset_increment)
    print_config(console, loaded, offset=offset)


def main() -> None:
    """CLI process entrypoint."""
    try:
        app(standalone_mode=False)
    except NotGitRepositoryError as err:
        console.print(f"[red]Error:[/red] {_safe_text(err)}")
        raise SystemExit(2) from err
    except WtError as err:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]Error:[/red] {_safe_text(err)}")
        raise SystemExit(2) from err
    except (click.ClickException, typer.BadParameter) as err:
        err.show()
        raise SystemExit(err.exit_code) from err
    except click.exceptions.Exit as err:
        raise SystemExit(err.exit_code) from err


# Register aliases with identical signatures.
app.command("ls", hidden=True)(list_command)
app.command("clean", hidden=True)(cleanup_command)
app.command("rm", hidden=True)(remove_command)
app.command("clone", hidden=True)(clone_volumes_command)


if __name__ == "__main__":
    main()
