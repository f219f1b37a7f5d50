"""
Unix environment configuration through shell rc files.

Everything rustkit writes lives inside one marker block per rc file:

    # ===== rustup config section START =====
    export CARGO_HOME="/home/user/rust/cargo"
    export PATH="/home/user/rust/cargo/bin:/home/user/rust:$PATH"
    # ===== rustup config section END =====

Fish uses ``set -gx`` instead of ``export``. The block is parsed and
re-rendered on every change, so updates happen in place and removing
the last entry removes the whole block, leaving the rest of the file as
it was.
"""

import logging
import os
import shlex
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional

from ..core.directory import home_dir
from ..core.filesystem import atomic_write, copy_as, find_executable, safe_rmtree
from .base import (
    RUSTUP_ENV_VARS,
    EnvironmentConfigurator,
    prepend_process_path,
    remove_process_path,
    set_process_vars,
)

logger = logging.getLogger(__name__)

BLOCK_START = "# ===== rustup config section START ====="
BLOCK_END = "# ===== rustup config section END ====="

POSIX = "posix"
FISH = "fish"

_PATH_TAIL = "$PATH"


# ============================================================================
# Marker block
# ============================================================================


@dataclass
class ConfigBlock:
    """Variables and PATH entries held by a marker block, in file order."""

    variables: dict[str, str] = field(default_factory=dict)
    paths: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.variables and not self.paths


def find_block(lines: list[str]) -> Optional[tuple[int, int]]:
    """Indices of the start and end marker lines, if a complete block exists."""
    stripped = [line.rstrip("\r\n") for line in lines]
    try:
        start = stripped.index(BLOCK_START)
        end = stripped.index(BLOCK_END, start + 1)
    except ValueError:
        return None
    return start, end


def parse_block(lines: Iterable[str], syntax: str = POSIX) -> ConfigBlock:
    """Read the entries between the markers; unknown lines are ignored."""
    block = ConfigBlock()
    for line in lines:
        try:
            words = shlex.split(line, comments=True)
        except ValueError:
            logger.debug(f"Ignoring unparsable line in config section: {line!r}")
            continue
        if syntax == FISH:
            if len(words) < 4 or words[:2] != ["set", "-gx"]:
                continue
            key, values = words[2], words[3:]
            if key == "PATH":
                block.paths.extend(v for v in values if v != _PATH_TAIL)
            else:
                block.variables[key] = " ".join(values)
        else:
            if len(words) != 2 or words[0] != "export" or "=" not in words[1]:
                continue
            key, value = words[1].split("=", 1)
            if key == "PATH":
                block.paths.extend(p for p in value.split(":") if p and p != _PATH_TAIL)
            else:
                block.variables[key] = value
    return block


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def render_block(block: ConfigBlock, syntax: str = POSIX) -> list[str]:
    """Render ``block`` including its marker lines (newline-terminated)."""
    lines = [BLOCK_START]
    for key, value in block.variables.items():
        if syntax == FISH:
            lines.append(f"set -gx {key} {_quote(value)}")
        else:
            lines.append(f"export {key}={_quote(value)}")
    if block.paths:
        if syntax == FISH:
            entries = " ".join(_quote(p) for p in block.paths)
            lines.append(f"set -gx PATH {entries} {_PATH_TAIL}")
        else:
            lines.append(f'export PATH="{":".join(block.paths)}:{_PATH_TAIL}"')
    lines.append(BLOCK_END)
    return [line + "\n" for line in lines]


def update_content(
    content: str,
    syntax: str = POSIX,
    *,
    set_vars: Optional[Mapping[str, str]] = None,
    remove_vars: Iterable[str] = (),
    add_paths: Iterable[str] = (),
    remove_paths: Iterable[str] = (),
) -> str:
    """
    Apply changes to the marker block of ``content`` and return the result.

    A missing block is appended at the end; a block left empty is removed.
    When ``content`` lacks a final newline the appended block is left
    unterminated instead, so removing it restores the original text.
    New PATH entries go first; entries already present are left in place.
    """
    lines = content.splitlines(keepends=True)
    span = find_block(lines)
    block = parse_block(lines[span[0] + 1 : span[1]], syntax) if span else ConfigBlock()

    for key, value in (set_vars or {}).items():
        block.variables[key] = value
    for key in remove_vars:
        block.variables.pop(key, None)
    for path in add_paths:
        if path not in block.paths:
            block.paths.insert(0, path)
    removing = set(remove_paths)
    block.paths = [p for p in block.paths if p not in removing]

    rendered = [] if block.is_empty() else render_block(block, syntax)
    if span:
        start, end = span
        # an unterminated end marker means the newline before the block was ours
        unterminated = not lines[end].endswith("\n")
        if rendered and unterminated:
            rendered[-1] = rendered[-1].rstrip("\n")
        elif not rendered and unterminated and start and lines[start - 1].endswith("\n"):
            lines[start - 1] = lines[start - 1][:-1]
        lines[start : end + 1] = rendered
    elif rendered:
        if lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
            rendered[-1] = rendered[-1].rstrip("\n")
        lines.extend(rendered)
    return "".join(lines)


def block_of(content: str, syntax: str = POSIX) -> Optional[ConfigBlock]:
    """Parsed marker block of ``content``, or None when it has none."""
    lines = content.splitlines(keepends=True)
    span = find_block(lines)
    if span is None:
        return None
    return parse_block(lines[span[0] + 1 : span[1]], syntax)


# ============================================================================
# Shells
# ============================================================================


class Shell:
    """A shell family and the rc files it reads."""

    name = "sh"
    syntax = POSIX

    def does_exist(self) -> bool:
        return True

    def rcfiles(self) -> list[Path]:
        """Every rc file this shell may read; used for cleanup."""
        return [home_dir() / ".profile"]

    def update_rcs(self) -> list[Path]:
        """The rc files that should be written to."""
        return self.rcfiles()


class Posix(Shell):
    pass


class Bash(Shell):
    """Only existing bash rc files are touched; ``.profile`` covers the rest."""

    name = "bash"

    def does_exist(self) -> bool:
        return bool(self.update_rcs())

    def rcfiles(self) -> list[Path]:
        return [home_dir() / rc for rc in (".bash_profile", ".bash_login", ".bashrc")]

    def update_rcs(self) -> list[Path]:
        return [rc for rc in self.rcfiles() if rc.is_file()]


class Zsh(Shell):
    name = "zsh"

    def does_exist(self) -> bool:
        return "zsh" in os.environ.get("SHELL", "") or find_executable("zsh") is not None

    def rcfiles(self) -> list[Path]:
        dirs = []
        zdotdir = os.environ.get("ZDOTDIR")
        if zdotdir:
            dirs.append(Path(zdotdir))
        dirs.append(home_dir())
        return [d / ".zshenv" for d in dirs]

    def update_rcs(self) -> list[Path]:
        # the first existing .zshenv, else the preferred location
        candidates = self.rcfiles()
        existing = [rc for rc in candidates if rc.is_file()]
        return [(existing or candidates)[0]]


class Fish(Shell):
    name = "fish"
    syntax = FISH

    def does_exist(self) -> bool:
        return "fish" in os.environ.get("SHELL", "") or find_executable("fish") is not None

    def rcfiles(self) -> list[Path]:
        files = []
        xdg = os.environ.get("XDG_CONFIG_HOME")
        if xdg:
            files.append(Path(xdg) / "fish" / "conf.d" / "rustkit.fish")
        files.append(home_dir() / ".config" / "fish" / "conf.d" / "rustkit.fish")
        return files

    def update_rcs(self) -> list[Path]:
        return self.rcfiles()[:1]


def available_shells() -> list[Shell]:
    return [sh for sh in (Posix(), Bash(), Zsh(), Fish()) if sh.does_exist()]


# ============================================================================
# Configurator
# ============================================================================


class UnixConfigurator(EnvironmentConfigurator):
    """
    Persists the environment in the marker block of each shell's rc files.

    A failure on one rc file is logged and the remaining files are still
    updated.
    """

    def __init__(self, install_dir, options=None, shells: Optional[list[Shell]] = None):
        super().__init__(install_dir, options)
        self._shells = shells
        self._backed_up: set[Path] = set()

    @property
    def shells(self) -> list[Shell]:
        if self._shells is None:
            self._shells = available_shells()
        return self._shells

    def _backup(self, rc: Path) -> None:
        """Keep a timestamped copy of ``rc`` before its first change this session."""
        if rc in self._backed_up or not rc.is_file():
            return
        self._backed_up.add(rc)
        try:
            backup = self.dirs.backup_dir / "HOME" / f"{rc.name}_{int(time.time())}"
            copy_as(rc, backup)
            logger.debug(f"Backed up {rc} to {backup}")
        except OSError as e:
            logger.debug(f"Unable to back up {rc}: {e}")

    def _edit(self, rc: Path, syntax: str, **changes) -> None:
        try:
            original = rc.read_text(encoding="utf-8") if rc.is_file() else ""
            updated = update_content(original, syntax, **changes)
            if updated == original:
                return
            self._backup(rc)
            atomic_write(rc, updated)
            logger.debug(f"Updated shell profile {rc}")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Unable to update shell profile '{rc}': {e}")

    def _edit_all(self, *, existing_only: bool, **changes) -> None:
        for sh in self.shells:
            targets = sh.rcfiles() if existing_only else sh.update_rcs()
            for rc in targets:
                if existing_only and not rc.is_file():
                    continue
                self._edit(rc, sh.syntax, **changes)

    def config_env_vars(self, variables: Mapping[str, str]) -> None:
        set_process_vars(variables)
        if not self.options.should_modify_env():
            logger.info("Skipping persistent environment changes (--no-modify-env)")
            return
        logger.info("Writing environment variables to shell profiles")
        self._edit_all(existing_only=False, set_vars=dict(variables))

    def add_to_path(self, path: Path) -> None:
        prepend_process_path(path)
        if not self.options.should_modify_path():
            logger.debug(f"Not persisting PATH entry {path}")
            return
        self._edit_all(existing_only=False, add_paths=[str(path)])

    def remove_from_path(self, path: Path) -> None:
        remove_process_path(path)
        if not self.options.should_modify_path():
            return
        self._edit_all(existing_only=True, remove_paths=[str(path)])

    def remove_rustup_env_vars(self, names: Iterable[str] = RUSTUP_ENV_VARS) -> None:
        names = list(names)
        self._forget_process_state(names)
        if not self.options.should_modify_env():
            logger.info("Skipping persistent environment changes (--no-modify-env)")
            return
        root = self.install_dir.resolve()
        for sh in self.shells:
            for rc in sh.rcfiles():
                if not rc.is_file():
                    continue
                try:
                    block = block_of(rc.read_text(encoding="utf-8"), sh.syntax)
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning(f"Unable to read shell profile '{rc}': {e}")
                    continue
                if block is None:
                    continue
                owned = [p for p in block.paths if Path(p).resolve().is_relative_to(root)]
                self._edit(rc, sh.syntax, remove_vars=names, remove_paths=owned)

    def remove_self(self, current_exe: Optional[Path] = None) -> None:
        # a running binary can be unlinked on Unix
        logger.info(f"Removing install directory {self.install_dir}")
        safe_rmtree(self.install_dir)
