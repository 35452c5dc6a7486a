"""Tests for file rewrite strategies."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from wt.errors import FileUpdateError
from wt.models import (
    AppendUpdate,
    EnvVarsUpdate,
    ReplaceUpdate,
    ResolvedContext,
    WorktreeConfig,
)
from wt.services.file_updates import (
    apply_append,
    apply_env_vars,
    apply_file_update,
    apply_replace,
    upsert_container_names,
    upsert_env_line,
    upsert_port_variables,
)


def _context(name: str = "feature3", index: int = 3, offset: int = 30) -> ResolvedContext:
    return ResolvedContext(worktree_name=name, worktree_index=index, port_offset=offset)


def test_upsert_replaces_line_in_place() -> None:
    """Existing assignment is replaced and line order preserved."""
    assert upsert_env_line("A=1\nB=2", "A", "105") == "A=105\nB=2"


def test_upsert_appends_missing_key() -> None:
    """Missing assignment is appended on a new line."""
    assert upsert_env_line("A=1", "C", "7") == "A=1\nC=7"


def test_upsert_does_not_match_key_prefixes() -> None:
    """Only exact KEY= lines match."""
    assert upsert_env_line("API_PORT_X=1\nXAPI_PORT=2", "API_PORT", "9") == "API_PORT_X=1\nXAPI_PORT=2\nAPI_PORT=9"


def test_upsert_replaces_first_match_only() -> None:
    """Only the first matching line is replaced."""
    assert upsert_env_line("A=1\nA=2", "A", "3") == "A=3\nA=2"


def test_upsert_value_is_literal() -> None:
    """Values are inserted literally, backslashes included."""
    assert upsert_env_line("P=1", "P", r"C:\new\1") == r"P=C:\new\1"


def test_env_vars_updates_known_and_skips_unknown(tmp_path: Path) -> None:
    """Known variables are shifted in place; unknown ones are a no-op."""
    target = tmp_path / ".env"
    target.write_text("A=1\nB=2", encoding="utf-8")
    warnings = apply_env_vars(target, ["A", "C"], {"A": 100}, offset=5)
    assert warnings == []
    assert target.read_text(encoding="utf-8") == "A=105\nB=2"


def test_env_vars_unknown_only_leaves_file_unchanged(tmp_path: Path) -> None:
    """A rule listing only unmapped variables changes nothing."""
    target = tmp_path / ".env"
    target.write_text("A=1\nB=2", encoding="utf-8")
    apply_env_vars(target, ["C"], {"A": 100}, offset=5)
    assert target.read_text(encoding="utf-8") == "A=1\nB=2"


def test_env_vars_creates_missing_file(tmp_path: Path) -> None:
    """Missing env file (and parent directories) are created."""
    target = tmp_path / "config" / ".env.local"
    apply_env_vars(target, ["API_PORT", "WEB_PORT"], {"API_PORT": 3000, "WEB_PORT": 8080}, offset=20)
    assert target.read_text(encoding="utf-8") == "\nAPI_PORT=3020\nWEB_PORT=8100"


def test_env_vars_is_idempotent(tmp_path: Path) -> None:
    """Applying the same upsert twice yields the same content."""
    target = tmp_path / ".env"
    target.write_text("OTHER=x\n", encoding="utf-8")
    apply_env_vars(target, ["API_PORT"], {"API_PORT": 3000}, offset=10)
    first = target.read_text(encoding="utf-8")
    apply_env_vars(target, ["API_PORT"], {"API_PORT": 3000}, offset=10)
    assert target.read_text(encoding="utf-8") == first
    assert first.count("API_PORT=") == 1


def test_env_vars_reports_invalid_base_port(tmp_path: Path) -> None:
    """Invalid base ports are skipped, not coerced, and reported."""
    target = tmp_path / ".env"
    target.write_text("CLIENT_PORT=3001", encoding="utf-8")
    warnings = apply_env_vars(target, ["CLIENT_PORT"], {"CLIENT_PORT": None}, offset=10)
    assert len(warnings) == 1
    assert "CLIENT_PORT" in warnings[0]
    assert target.read_text(encoding="utf-8") == "CLIENT_PORT=3001"


def test_replace_renders_and_substitutes_globally(tmp_path: Path) -> None:
    """Replacement is rendered and applied to every match."""
    target = tmp_path / "docker-compose.yml"
    target.write_text(
        "services:\n  api:\n    container_name: myapp\n  db:\n    container_name: myapp\n",
        encoding="utf-8",
    )
    changed = apply_replace(
        target,
        "(?m)container_name: myapp$",
        "container_name: myapp-{{WORKTREE_NAME}}",
        _context(),
        {},
    )
    assert changed is True
    assert target.read_text(encoding="utf-8") == (
        "services:\n  api:\n    container_name: myapp\n  db:\n    container_name: myapp\n"
    ).replace("myapp\n", "myapp-feature3\n")


def test_replace_dollar_anchors_end_of_content_without_multiline(tmp_path: Path) -> None:
    """Without `(?m)`, `$` only matches at the end of the file."""
    target = tmp_path / "docker-compose.yml"
    target.write_text("container_name: myapp\ncontainer_name: myapp", encoding="utf-8")
    apply_replace(target, "container_name: myapp$", "container_name: myapp-x", _context(), {})
    assert target.read_text(encoding="utf-8") == "container_name: myapp\ncontainer_name: myapp-x"


def test_replace_non_utf8_file_raises(tmp_path: Path) -> None:
    """Undecodable targets surface as FileUpdateError and stay untouched."""
    target = tmp_path / "legacy.cfg"
    target.write_bytes(b"port=\xff3000\n")
    with pytest.raises(FileUpdateError, match="UTF-8"):
        apply_replace(target, "3000", "{{API_PORT}}", _context(), {"API_PORT": 3000})
    assert target.read_bytes() == b"port=\xff3000\n"


def test_env_vars_non_utf8_file_raises(tmp_path: Path) -> None:
    """Env upserts refuse to rewrite files they cannot decode."""
    target = tmp_path / ".env"
    target.write_bytes(b"API_PORT=\xff\n")
    with pytest.raises(FileUpdateError):
        apply_env_vars(target, ["API_PORT"], {"API_PORT": 3000}, offset=10)
    assert target.read_bytes() == b"API_PORT=\xff\n"


def test_replace_supports_backreferences_and_ports(tmp_path: Path) -> None:
    """Back-references and port placeholders combine in replacements."""
    target = tmp_path / "app.yml"
    target.write_text('- "3000:3000"\n', encoding="utf-8")
    apply_replace(target, r'"(\d+):3000"', r'"{{API_PORT}}:\1"', _context(offset=30), {"API_PORT": 3000})
    assert target.read_text(encoding="utf-8") == '- "3030:3000"\n'


def test_replace_missing_file_is_silent_noop(tmp_path: Path) -> None:
    """Replace never creates a missing file."""
    target = tmp_path / "missing.txt"
    assert apply_replace(target, "old", "new", _context(), {}) is False
    assert not target.exists()


def test_replace_invalid_pattern_raises(tmp_path: Path) -> None:
    """Uncompilable patterns surface as FileUpdateError."""
    target = tmp_path / "a.txt"
    target.write_text("x", encoding="utf-8")
    with pytest.raises(FileUpdateError):
        apply_replace(target, "(unclosed", "y", _context(), {})
    assert target.read_text(encoding="utf-8") == "x"


def test_replace_invalid_group_reference_raises(tmp_path: Path) -> None:
    """Replacement referencing a missing group surfaces as FileUpdateError."""
    target = tmp_path / "a.txt"
    target.write_text("abc", encoding="utf-8")
    with pytest.raises(FileUpdateError):
        apply_replace(target, "b", r"\3", _context(), {})


def test_self_stable_replace_is_idempotent(tmp_path: Path) -> None:
    """A pattern that cannot match its own output is stable on rerun."""
    target = tmp_path / "a.yml"
    target.write_text("container_name: myapp\n", encoding="utf-8")
    args = ("container_name: myapp$", "container_name: myapp-{{WORKTREE_NAME}}", _context(), {})
    apply_replace(target, *args)
    first = target.read_text(encoding="utf-8")
    apply_replace(target, *args)
    assert target.read_text(encoding="utf-8") == first


def test_append_creates_missing_file(tmp_path: Path) -> None:
    """Append to a missing file creates it with a leading newline."""
    target = tmp_path / "config.json"
    apply_append(target, '{"worktree": "{{WORKTREE_NAME}}", "port": {{API_PORT}}}', _context(offset=40), {"API_PORT": 3000})
    assert target.read_text(encoding="utf-8") == '\n{"worktree": "feature3", "port": 3040}'


def test_append_adds_to_existing_content(tmp_path: Path) -> None:
    """Append writes after existing content."""
    target = tmp_path / "notes.txt"
    target.write_text("first", encoding="utf-8")
    apply_append(target, "index {{WORKTREE_INDEX}}", _context(), {})
    assert target.read_text(encoding="utf-8") == "first\nindex 3"


def test_dispatch_malformed_replace_raises(tmp_path: Path) -> None:
    """Incomplete replace rules are rejected instead of partially applied."""
    target = tmp_path / "a.txt"
    target.write_text("old", encoding="utf-8")
    rule = ReplaceUpdate(file_path="a.txt", search_pattern=None, replacement="new")
    with pytest.raises(FileUpdateError):
        apply_file_update(rule, tmp_path, _context(), WorktreeConfig())
    assert target.read_text(encoding="utf-8") == "old"


def test_dispatch_routes_each_variant(tmp_path: Path) -> None:
    """Each rule variant reaches its strategy relative to the worktree root."""
    config = WorktreeConfig(port_mappings={"API_PORT": 3000})
    (tmp_path / "r.txt").write_text("old", encoding="utf-8")
    apply_file_update(EnvVarsUpdate(file_path="e/.env", variables=["API_PORT"]), tmp_path, _context(), config)
    apply_file_update(ReplaceUpdate(file_path="r.txt", search_pattern="old", replacement="{{API_PORT}}"), tmp_path, _context(), config)
    apply_file_update(AppendUpdate(file_path="a.txt", payload="{{WORKTREE_NAME}}"), tmp_path, _context(), config)
    assert (tmp_path / "e" / ".env").read_text(encoding="utf-8") == "\nAPI_PORT=3030"
    assert (tmp_path / "r.txt").read_text(encoding="utf-8") == "3030"
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "\nfeature3"


def test_dispatch_rejects_unknown_variant(tmp_path: Path) -> None:
    """Dispatch is exhaustive over the known variants."""
    with pytest.raises(TypeError):
        apply_file_update(SimpleNamespace(file_path="x.txt"), tmp_path, _context(), WorktreeConfig())  # type: ignore[arg-type]


def test_upsert_port_variables_sets_every_mapping(tmp_path: Path) -> None:
    """All configured port variables end up in the primary env file."""
    env_path = tmp_path / ".env"
    env_path.write_text("API_PORT=3000\nCLIENT_PORT=3001\n", encoding="utf-8")
    upsert_port_variables(env_path, {"API_PORT": 3000, "CLIENT_PORT": 3001}, offset=10)
    assert env_path.read_text(encoding="utf-8") == "API_PORT=3010\nCLIENT_PORT=3011\n"


def test_upsert_container_names_uses_real_index_without_offset(tmp_path: Path) -> None:
    """Container names are rendered with name and index but no port shift."""
    env_path = tmp_path / ".env"
    env_path.write_text("DB_CONTAINER=myapp-db\n", encoding="utf-8")
    upsert_container_names(
        env_path,
        {
            "DB_CONTAINER": "myapp-{{WORKTREE_NAME}}-db",
            "API_CONTAINER": "myapp-{{WORKTREE_INDEX}}-api",
            "PORTED": "svc-{{API_PORT}}",
        },
        _context(name="feature5", index=5, offset=50),
        {"API_PORT": 3000},
    )
    assert env_path.read_text(encoding="utf-8") == (
        "DB_CONTAINER=myapp-feature5-db\n\nAPI_CONTAINER=myapp-5-api\nPORTED=svc-3000"
    )
