"""The ``Tool`` value: one third-party tool bound to an install strategy."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..core.exceptions import SourceNotFoundError
from ..core.filesystem import is_executable
from . import custom, plugin
from .kinds import ToolKind

logger = logging.getLogger(__name__)


@dataclass
class Tool:
    """
    A tool ready to be installed or removed.

    Attributes:
        name: Key of the tool in the manifest and the installation record
        kind: Strategy used for installation and removal
        paths: Source location(s) at install time, recorded artifacts at
            uninstall time. Cargo tools have none.
        install_args: Extra ``cargo install`` arguments (cargo tools only)
    """

    name: str
    kind: ToolKind
    paths: list[Path] = field(default_factory=list)
    install_args: list[str] = field(default_factory=list)

    @property
    def path(self) -> Path:
        """The single path of this tool; raises when there is not exactly one."""
        if len(self.paths) != 1:
            raise ValueError(
                f"Tool '{self.name}' was expected to have one path, got {len(self.paths)}"
            )
        return self.paths[0]

    @classmethod
    def cargo_tool(cls, name: str, install_args: Optional[list[str]] = None) -> "Tool":
        return cls(name, ToolKind.CARGO_TOOL, install_args=list(install_args or [name]))

    @classmethod
    def from_path(cls, name: str, path: Path) -> "Tool":
        """
        Detect how to install ``path`` when the manifest declares no kind.

        Raises:
            SourceNotFoundError: If ``path`` does not exist
        """
        path = Path(path)
        if not path.exists():
            raise SourceNotFoundError(path)

        if custom.is_supported(name):
            return cls(name, ToolKind.CUSTOM, [path])
        if is_executable(path):
            return cls(name, ToolKind.EXECUTABLES, [path])
        if plugin.is_supported(path):
            return cls(name, ToolKind.PLUGIN, [path])

        if path.is_dir():
            entries = sorted(path.iterdir())
            if any(entry.name == "Cargo.toml" for entry in entries):
                return cls(name, ToolKind.CRATE, [path])
            if any(entry.name == "bin" for entry in entries):
                return cls(name, ToolKind.DIR_WITH_BIN, [path])
            if not any(entry.is_dir() for entry in entries):
                binaries = [entry for entry in entries if is_executable(entry)]
                if binaries:
                    return cls(name, ToolKind.EXECUTABLES, binaries)

        logger.debug(f"No install method detected for '{name}', treating it as unknown")
        return cls(name, ToolKind.UNKNOWN, [path])

    @classmethod
    def from_installed(cls, name: str, record) -> Optional["Tool"]:
        """
        Rebuild a tool from its installation record for removal.

        Returns None (with a warning) when the record no longer points at
        anything that can be removed.
        """
        if record.kind is ToolKind.CARGO_TOOL:
            return cls.cargo_tool(name)

        paths = list(record.paths)
        if record.kind is not ToolKind.UNKNOWN:
            return cls(name, record.kind, paths)

        if not paths:
            logger.warning(f"Skipping '{name}': the installation record holds no path for it")
            return None
        if len(paths) > 1:
            return cls(name, ToolKind.EXECUTABLES, paths)
        if not paths[0].exists():
            logger.warning(f"Skipping '{name}': recorded path '{paths[0]}' no longer exists")
            return None
        return cls.from_path(name, paths[0])
