"""Unit tests for CLI helper validation logic."""

from __future__ import annotations

import json

import pytest
import typer

import wt.cli as cli_module
from wt.cli import _emit_json, _safe_text, _target_dir, _validate_name


@pytest.mark.parametrize("name", ["feature", "feature-2", "fix_login", "v1.2"])
def test_validate_name_accepts_plain_names(name: str) -> None:
    """Plain names are returned unchanged."""
    assert _validate_name(name) == name


def test_validate_name_strips_outer_whitespace() -> None:
    """Surrounding whitespace is trimmed."""
    assert _validate_name("  feature  ") == "feature"


@pytest.mark.parametrize("name", ["", "   ", "-rf", "../up", "a/b", "a\\b", "a:b", "two words"])
def test_validate_name_rejects_unsafe_names(name: str) -> None:
    """Names that break paths, branches or tmux targets are refused."""
    with pytest.raises(typer.BadParameter):
        _validate_name(name)


def test_safe_text_escapes_markup() -> None:
    """User text must not be interpreted as Rich markup."""
    assert _safe_text("[red]x[/red]") == "\\[red]x\\[/red]"


def test_emit_json_is_plain(capsys: pytest.CaptureFixture[str]) -> None:
    """JSON output keeps non-ascii characters and is parseable."""
    _emit_json({"name": "café", "ports": [3000]})
    out = capsys.readouterr().out
    assert "café" in out
    assert json.loads(out) == {"name": "café", "ports": [3000]}


def test_target_dir_maps_project_name_to_main(tmp_path) -> None:
    """The project name addresses the main worktree directly."""
    main_dir = tmp_path / "myapp"
    main_dir.mkdir()
    assert _target_dir("myapp", main_dir) == main_dir


def test_target_dir_delegates_to_worktree_lookup(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Other names resolve through the worktree lookup."""
    main_dir = tmp_path / "myapp"
    seen: list[str] = []

    def _fake_require(name, main):
        seen.append(name)
        return tmp_path / f"myapp-{name}"

    monkeypatch.setattr(cli_module, "require_worktree", _fake_require)
    assert _target_dir("feat", main_dir) == tmp_path / "myapp-feat"
    assert seen == ["feat"]


def test_main_maps_invalid_name_to_usage_exit(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Name validation errors exit with code 2 and a usage message."""
    monkeypatch.setattr("sys.argv", ["wt", "env", "../escape"])
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main()
    assert excinfo.value.code == 2
    assert "Invalid worktree name" in capsys.readouterr().err
