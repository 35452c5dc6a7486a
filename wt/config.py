"""Parsing, serialization and loading of `.wt.conf` files."""

from __future__ import annotations

import logging
import os
import re
import shlex
from pathlib import Path

from wt.errors import WtError
from wt.models import (
    AppendUpdate,
    ConfigDiagnostic,
    EnvVarsUpdate,
    FileUpdate,
    LoadedConfig,
    ReplaceUpdate,
    WorktreeConfig,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".wt.conf"
CONFIG_ENV_VAR = "WT_CONFIG"
MAX_PORT = 65535

TRUE_TOKENS = {"true", "yes", "1"}
FALSE_TOKENS = {"false", "no", "0"}
SCALAR_KEYS = {"START_CONTAINERS", "PORT_OFFSET_INCREMENT"}
BLOCK_KEYS = ("PORT_MAPPINGS", "CONTAINER_NAMES", "ENV_FILES", "FILE_UPDATES")

_INT_RE = re.compile(r"[+-]?[0-9]+")
_ASSIGNMENT_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)=(.*)")


def default_config() -> WorktreeConfig:
    """Return the built-in configuration used when no file is present."""
    return WorktreeConfig()


def _parse_strict_int(raw: str) -> int | None:
    """Parse a base-10 integer, rejecting anything but optional sign and digits."""
    text = raw.strip()
    if not _INT_RE.fullmatch(text):
        return None
    return int(text)


def _strip_quotes(item: str) -> str:
    """Strip one leading and one trailing quote character, if present."""
    if item[:1] in {'"', "'"}:
        item = item[1:]
    if item[-1:] in {'"', "'"}:
        item = item[:-1]
    return item


def _inline_items(body: str, line_no: int, diagnostics: list[ConfigDiagnostic]) -> list[tuple[int, str]]:
    """Split a one-line `KEY=(a "b c")` block body shell-style."""
    try:
        tokens = shlex.split(body, comments=True)
    except ValueError as exc:
        diagnostics.append(ConfigDiagnostic(line_no, f"Unreadable inline list: {exc}"))
        return []
    return [(line_no, token) for token in tokens if token]


class _Parser:
    """Line-oriented parser accumulating config values and diagnostics."""

    def __init__(self, text: str) -> None:
        self.lines = text.splitlines()
        self.config = default_config()
        self.diagnostics: list[ConfigDiagnostic] = []
        self.seen_blocks: set[str] = set()

    def warn(self, line_no: int, message: str) -> None:
        self.diagnostics.append(ConfigDiagnostic(line_no, message))

    def parse(self) -> tuple[WorktreeConfig, list[ConfigDiagnostic]]:
        index = 0
        while index < len(self.lines):
            line_no = index + 1
            stripped = self.lines[index].strip()
            index += 1
            if not stripped or stripped.startswith("#"):
                continue

            match = _ASSIGNMENT_RE.fullmatch(stripped)
            if not match:
                self.warn(line_no, f"Ignoring unrecognized line: {stripped}")
                continue
            key, value = match.group(1), match.group(2).strip()

            if value.startswith("("):
                items, index = self._read_block(key, value[1:], line_no, index)
                if key in BLOCK_KEYS:
                    self._apply_block(key, items, line_no)
                else:
                    self.warn(line_no, f"Ignoring unknown list {key}")
                continue

            if key in SCALAR_KEYS:
                self._apply_scalar(key, value, line_no)
            else:
                self.warn(line_no, f"Ignoring unknown setting {key}")
        return self.config, self.diagnostics

    def _read_block(self, key: str, rest: str, line_no: int, index: int) -> tuple[list[tuple[int, str]], int]:
        """Collect block items starting after `KEY=(`; return items and next line index."""
        rest = rest.strip()
        if rest.endswith(")"):
            return _inline_items(rest[:-1], line_no, self.diagnostics), index
        items: list[tuple[int, str]] = []
        if rest and not rest.startswith("#"):
            items.append((line_no, _strip_quotes(rest)))
        while index < len(self.lines):
            item_no = index + 1
            stripped = self.lines[index].strip()
            index += 1
            if stripped == ")":
                return items, index
            if stripped.endswith(("\")", "')")):
                items.append((item_no, _strip_quotes(stripped[:-1].strip())))
                return items, index
            if not stripped or stripped.startswith("#"):
                continue
            items.append((item_no, _strip_quotes(stripped)))
        self.warn(line_no, f"Unterminated list {key}; read to end of file")
        return items, index

    def _apply_scalar(self, key: str, value: str, line_no: int) -> None:
        if key == "START_CONTAINERS":
            token = value.strip().strip("\"'").lower()
            if token in TRUE_TOKENS:
                self.config.start_containers = True
            elif token in FALSE_TOKENS:
                self.config.start_containers = False
            else:
                self.warn(line_no, f"START_CONTAINERS value {value!r} is not a boolean; keeping default")
            return

        parsed = _parse_strict_int(value.strip("\"'"))
        if parsed is None:
            self.warn(line_no, f"PORT_OFFSET_INCREMENT value {value!r} is not an integer; keeping default")
        elif parsed <= 0:
            self.warn(line_no, f"PORT_OFFSET_INCREMENT must be positive, got {parsed}; keeping default")
        else:
            self.config.port_offset_increment = parsed

    def _apply_block(self, key: str, items: list[tuple[int, str]], line_no: int) -> None:
        if key in self.seen_blocks:
            self.warn(line_no, f"{key} declared more than once")
        self.seen_blocks.add(key)

        if key == "PORT_MAPPINGS":
            for item_no, item in items:
                self._add_port_mapping(item_no, item)
        elif key == "CONTAINER_NAMES":
            for item_no, item in items:
                self._add_container_name(item_no, item)
        elif key == "ENV_FILES":
            self.config.env_files = [item for _, item in items if item]
        else:
            for item_no, item in items:
                update = self._file_update(item_no, item)
                if update is not None:
                    self.config.file_updates.append(update)

    def _add_port_mapping(self, item_no: int, item: str) -> None:
        name, sep, raw_port = item.partition(":")
        name = name.strip()
        if not sep or not name:
            self.warn(item_no, f"Skipping port mapping {item!r}: expected VAR:PORT")
            return
        port = _parse_strict_int(raw_port)
        if port is None or not 1 <= port <= MAX_PORT:
            self.warn(item_no, f"Port mapping {name} has invalid port {raw_port!r}")
            port = None
        self.config.port_mappings[name] = port

    def _add_container_name(self, item_no: int, item: str) -> None:
        name, sep, template = item.partition(":")
        name = name.strip()
        if not sep or not name or not template:
            self.warn(item_no, f"Skipping container name {item!r}: expected VAR:TEMPLATE")
            return
        self.config.container_names[name] = template

    def _file_update(self, item_no: int, item: str) -> FileUpdate | None:
        parts = item.split("|")
        if len(parts) < 3:
            self.warn(item_no, f"Skipping file update {item!r}: expected path|type|spec")
            return None
        file_path, update_type = parts[0].strip(), parts[1].strip()
        if not file_path:
            self.warn(item_no, f"Skipping file update {item!r}: empty file path")
            return None

        if update_type == EnvVarsUpdate.update_type:
            variables = [name.strip() for name in parts[2].split(",") if name.strip()]
            return EnvVarsUpdate(file_path=file_path, variables=variables)
        if update_type == ReplaceUpdate.update_type:
            if len(parts) < 4:
                self.warn(item_no, f"Replace rule for {file_path} needs both a pattern and a replacement")
                return ReplaceUpdate(file_path=file_path, search_pattern=None, replacement=parts[2])
            return ReplaceUpdate(
                file_path=file_path,
                search_pattern="|".join(parts[2:-1]),
                replacement=parts[-1],
            )
        if update_type == AppendUpdate.update_type:
            return AppendUpdate(file_path=file_path, payload="|".join(parts[2:]))

        self.warn(item_no, f"Skipping file update for {file_path}: unknown type {update_type!r}")
        return None


def parse_config(text: str) -> tuple[WorktreeConfig, list[ConfigDiagnostic]]:
    """Parse `.wt.conf` text into configuration and diagnostics.

    Parsing never raises on malformed content. Anything that cannot be
    understood keeps the default value or is skipped, and is recorded as a
    diagnostic.

    Args:
        text: Raw configuration file content.

    Returns:
        Tuple of parsed configuration and the list of diagnostics.
    """
    return _Parser(text).parse()


def _quoted(item: str) -> str:
    return f'    "{item}"'


def _file_update_line(update: FileUpdate) -> str:
    if isinstance(update, ReplaceUpdate) and update.is_complete:
        return f"{update.file_path}|replace|{update.search_pattern}|{update.replacement}"
    return f"{update.file_path}|{update.update_type}|{update.spec}"


def serialize_config(config: WorktreeConfig) -> str:
    """Render configuration back to `.wt.conf` syntax.

    Port mappings holding the invalid-port marker have no textual form and
    are omitted.
    """
    lines = [
        "# wt configuration",
        "",
        f"START_CONTAINERS={'true' if config.start_containers else 'false'}",
        f"PORT_OFFSET_INCREMENT={config.port_offset_increment}",
        "",
        "PORT_MAPPINGS=(",
        *[
            _quoted(f"{name}:{port}")
            for name, port in config.port_mappings.items()
            if port is not None
        ],
        ")",
        "",
        "CONTAINER_NAMES=(",
        *[_quoted(f"{name}:{template}") for name, template in config.container_names.items()],
        ")",
        "",
        "ENV_FILES=(",
        *[_quoted(path) for path in config.env_files],
        ")",
        "",
        "FILE_UPDATES=(",
        *[_quoted(_file_update_line(update)) for update in config.file_updates],
        ")",
    ]
    return "\n".join(lines) + "\n"


def config_path(main_dir: str | Path) -> Path:
    """Return the configuration file path for a repository.

    `WT_CONFIG` overrides the default `.wt.conf` in the main worktree.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()
    return Path(main_dir) / CONFIG_FILENAME


def load_config(main_dir: str | Path) -> LoadedConfig:
    """Load configuration layered over defaults.

    Args:
        main_dir: Main (primary) worktree directory.

    Returns:
        Loaded configuration with diagnostics; defaults when no file exists.

    Raises:
        WtError: If the file exists but cannot be read.
    """
    path = config_path(main_dir)
    if not path.exists():
        logger.debug("No config at %s; using defaults", path)
        return LoadedConfig(config=default_config())
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise WtError(f"Cannot read config: {path}") from exc

    config, diagnostics = parse_config(raw)
    for diagnostic in diagnostics:
        logger.warning("%s %s", path.name, diagnostic)
    return LoadedConfig(config=config, diagnostics=diagnostics, path=path)
