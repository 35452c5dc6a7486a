"""Container stack operations for worktrees."""

from __future__ import annotations

import logging
from pathlib import Path

from wt.errors import CommandError
from wt.runner import run_command

logger = logging.getLogger(__name__)

DEV_SCRIPT = "./dev"


def compose_project_name(project: str, worktree_name: str) -> str:
    """Return the compose project name used for a worktree's containers."""
    return f"{project}-{worktree_name}"


def _compose_env(project: str, worktree_name: str) -> dict[str, str]:
    return {"COMPOSE_PROJECT_NAME": compose_project_name(project, worktree_name)}


def _names(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def start_containers(project: str, worktree_name: str, worktree_dir: Path) -> None:
    """Bring up the worktree's container stack with its dev script."""
    run_command(
        [DEV_SCRIPT, "up", "-d"],
        cwd=worktree_dir,
        env=_compose_env(project, worktree_name),
        capture=False,
    )


def running_containers(name_filter: str) -> list[str]:
    """Return names of running containers matching a name filter."""
    return _names(
        run_command(["docker", "ps", "--filter", f"name={name_filter}", "--format", "{{.Names}}"])
    )


def cleanup_containers(project: str, worktree_name: str, worktree_dir: Path) -> list[str]:
    """Stop the stack and remove leftover containers and volumes.

    Every step is best effort: a stack that is already gone is not an error.

    Returns:
        Names of removed containers and volumes.
    """
    compose_name = compose_project_name(project, worktree_name)
    removed: list[str] = []
    try:
        run_command(
            [DEV_SCRIPT, "down", "--remove-orphans"],
            cwd=worktree_dir,
            env=_compose_env(project, worktree_name),
        )
    except (CommandError, FileNotFoundError) as exc:
        logger.info("Compose down skipped: %s", exc)

    try:
        containers = _names(
            run_command(["docker", "ps", "-a", "--filter", f"name={compose_name}", "--format", "{{.Names}}"])
        )
        for container in containers:
            run_command(["docker", "rm", "-f", container])
            removed.append(container)
    except CommandError as exc:
        logger.info("Container removal skipped: %s", exc)

    try:
        volumes = _names(
            run_command(["docker", "volume", "ls", "--filter", f"name={compose_name}", "--format", "{{.Name}}"])
        )
        for volume in volumes:
            run_command(["docker", "volume", "rm", volume])
            removed.append(volume)
    except CommandError as exc:
        logger.info("Volume removal skipped: %s", exc)
    return removed


def clone_volumes(project: str, worktree_name: str) -> list[tuple[str, str]]:
    """Copy the primary stack's named volumes into the worktree's volumes.

    Source volumes are those named `<project>_<suffix>`; each is copied to
    `<project>-<worktree>_<suffix>` through a throwaway alpine container.

    Returns:
        List of (source, destination) volume pairs that were copied.

    Raises:
        CommandError: If docker is unavailable or a copy fails.
    """
    source_prefix = f"{project}_"
    dest_prefix = f"{compose_project_name(project, worktree_name)}_"
    volumes = _names(
        run_command(["docker", "volume", "ls", "--filter", f"name={source_prefix}", "--format", "{{.Name}}"])
    )
    copied: list[tuple[str, str]] = []
    for source in volumes:
        if not source.startswith(source_prefix):
            continue
        destination = dest_prefix + source[len(source_prefix):]
        logger.info("Cloning volume %s -> %s", source, destination)
        run_command(
            [
                "docker",
                "run",
                "--rm",
                "-v",
                f"{source}:/source:ro",
                "-v",
                f"{destination}:/dest",
                "alpine",
                "sh",
                "-c",
                "cp -a /source/. /dest/",
            ]
        )
        copied.append((source, destination))
    return copied
