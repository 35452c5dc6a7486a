"""Port offset computations for worktrees."""

from __future__ import annotations


def port_offset(worktree_index: int, increment: int) -> int:
    """Return the port offset for a worktree.

    The primary worktree has index 0 and is never shifted.

    Args:
        worktree_index: Stable creation-order index (0 for the primary worktree).
        increment: Configured per-index step size.

    Returns:
        `worktree_index * increment`.
    """
    return worktree_index * increment


def shifted_port(base_port: int, offset: int) -> int:
    """Return a base port moved by a worktree offset."""
    return base_port + offset
