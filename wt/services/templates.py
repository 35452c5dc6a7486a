"""Placeholder substitution for worktree templates."""

from __future__ import annotations

from collections.abc import Mapping

from wt.models import ResolvedContext
from wt.services.ports import shifted_port

NAME_PLACEHOLDER = "{{WORKTREE_NAME}}"
INDEX_PLACEHOLDER = "{{WORKTREE_INDEX}}"


def placeholder(variable: str) -> str:
    """Return the `{{VAR}}` token for a variable name."""
    return "{{" + variable + "}}"


def render_template(
    template: str,
    context: ResolvedContext,
    port_mappings: Mapping[str, int | None],
) -> str:
    """Expand worktree placeholders in a template.

    Substitution order is fixed: worktree name, worktree index, then every
    configured port variable as `base + offset`. Unknown placeholders and
    ports without a usable base value are left verbatim, so templates may be
    rendered in stages.

    Args:
        template: Text that may contain `{{...}}` placeholders.
        context: Resolved worktree identity and port offset.
        port_mappings: Variable name to base port.

    Returns:
        Rendered text.
    """
    result = template.replace(NAME_PLACEHOLDER, context.worktree_name)
    result = result.replace(INDEX_PLACEHOLDER, str(context.worktree_index))
    for variable, base_port in port_mappings.items():
        if base_port is None:
            continue
        result = result.replace(
            placeholder(variable),
            str(shifted_port(base_port, context.port_offset)),
        )
    return result
