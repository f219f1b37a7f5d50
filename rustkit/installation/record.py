"""
Installation record ("fingerprint") for rustkit.

The record at ``<install_root>/.fingerprint.toml`` is the only source of
truth for what is installed. It is rewritten after every discrete unit of
work (one tool, or the toolchain) so an interrupted run leaves a record of
what actually happened:

    name = "demo"
    version = "1.0.0"
    root = "/home/user/rust"

    [rust]
    version = "stable"
    components = ["clippy"]

    [tools.a]
    kind = "cargo-tool"
    version = "0.1.0"

    [tools.b]
    kind = "executables"
    paths = ["/home/user/rust/cargo/bin/b"]
    dependencies = ["a"]
"""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional

import tomli_w

from ..core.exceptions import InstallRootError, RecordError
from ..core.filesystem import atomic_write
from ..tools.kinds import ToolKind

logger = logging.getLogger(__name__)

RECORD_FILENAME = ".fingerprint.toml"


@dataclass
class RustRecord:
    """The installed toolchain channel and its extra components."""

    version: str
    components: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"version": self.version, "components": list(self.components)}


@dataclass
class ToolRecord:
    """
    What was installed for one tool.

    Attributes:
        kind: Strategy used to install the tool, reused for removal
        version: Version that was installed, if known
        paths: Every filesystem artifact created for the tool
        dependencies: Names of tools this one required
    """

    kind: ToolKind = ToolKind.UNKNOWN
    version: Optional[str] = None
    paths: list[Path] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)

    @classmethod
    def cargo_tool(cls, version: Optional[str] = None) -> "ToolRecord":
        return cls(kind=ToolKind.CARGO_TOOL, version=version)

    @classmethod
    def from_dict(cls, data: dict) -> "ToolRecord":
        if "kind" in data:
            kind = ToolKind.parse(data["kind"])
        elif data.get("use-cargo"):
            # records written before tool kinds existed
            kind = ToolKind.CARGO_TOOL
        else:
            kind = ToolKind.UNKNOWN
        return cls(
            kind=kind,
            version=data.get("version"),
            paths=[Path(p) for p in data.get("paths", [])],
            dependencies=list(data.get("dependencies", [])),
        )

    def to_dict(self) -> dict:
        data: dict = {"kind": self.kind.value}
        if self.version is not None:
            data["version"] = self.version
        if self.paths:
            data["paths"] = [str(p) for p in self.paths]
        if self.dependencies:
            data["dependencies"] = list(self.dependencies)
        return data


@dataclass
class InstallationRecord:
    """
    Persisted record of everything installed under ``root``.

    Mutators only change the in-memory state; callers decide when to
    ``write()``, which they do after every step that changed the machine.
    """

    root: Path
    name: Optional[str] = None
    version: Optional[str] = None
    edition: Optional[str] = None
    rust: Optional[RustRecord] = None
    tools: dict[str, ToolRecord] = field(default_factory=dict)

    @property
    def path(self) -> Path:
        return self.root / RECORD_FILENAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load_from_dir(cls, root: Path) -> "InstallationRecord":
        """
        Load the record under ``root``, creating an empty one if absent.

        Raises:
            RecordError: If the file exists but cannot be parsed
        """
        root = Path(root)
        root.mkdir(parents=True, exist_ok=True)
        path = root / RECORD_FILENAME

        if not path.is_file():
            record = cls(root=root)
            record.write()
            return record

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise RecordError(f"Unable to read installation record '{path}': {e}") from e

        try:
            return cls.from_dict(data, default_root=root)
        except (KeyError, TypeError, ValueError) as e:
            raise RecordError(f"Corrupt installation record '{path}': {e}") from e

    @classmethod
    def from_dict(cls, data: dict, default_root: Path) -> "InstallationRecord":
        rust = data.get("rust")
        return cls(
            root=Path(data.get("root", default_root)),
            name=data.get("name"),
            version=data.get("version"),
            edition=data.get("edition"),
            rust=RustRecord(str(rust["version"]), list(rust.get("components", [])))
            if rust
            else None,
            tools={
                name: ToolRecord.from_dict(entry)
                for name, entry in data.get("tools", {}).items()
            },
        )

    def to_dict(self) -> dict:
        data: dict = {}
        for key in ("name", "version", "edition"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        data["root"] = str(self.root)
        if self.rust is not None:
            data["rust"] = self.rust.to_dict()
        if self.tools:
            data["tools"] = {name: rec.to_dict() for name, rec in self.tools.items()}
        return data

    def write(self) -> None:
        """Atomically rewrite the record file."""
        logger.debug(f"Writing installation record to {self.path}")
        try:
            atomic_write(self.path, tomli_w.dumps(self.to_dict()))
        except OSError as e:
            raise RecordError(f"Unable to write installation record '{self.path}': {e}") from e

    # ------------------------------------------------------------------
    # Toolkit identity
    # ------------------------------------------------------------------

    def clone_toolkit_meta_from_manifest(self, manifest) -> None:
        self.name = manifest.name
        self.version = manifest.version
        self.edition = manifest.edition

    def remove_toolkit_meta(self) -> None:
        self.name = None
        self.version = None

    # ------------------------------------------------------------------
    # Toolchain
    # ------------------------------------------------------------------

    def add_rust_record(self, version: str, components: Iterable[str]) -> None:
        self.rust = RustRecord(version, list(components))

    def remove_rust_record(self) -> None:
        self.rust = None

    def remove_component_record(self, components: Iterable[str]) -> None:
        """Drop toolchain components from the rust record."""
        if self.rust is None:
            return
        to_remove = set(components)
        self.rust.components = [c for c in self.rust.components if c not in to_remove]

    def installed_toolchain(self) -> Optional[tuple[str, list[str]]]:
        """``(channel, components)`` of the installed toolchain, if any."""
        if self.rust is None:
            return None
        return self.rust.version, list(self.rust.components)

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def add_tool_record(self, name: str, record: ToolRecord) -> None:
        self.tools[name] = record

    def remove_tool_record(self, name: str) -> None:
        self.tools.pop(name, None)

    def installed_tools(self) -> Iterator[str]:
        return iter(self.tools)

    def get_tool_version(self, name: str) -> Optional[str]:
        record = self.tools.get(name)
        return record.version if record else None

    def type_of_tool_is_installed(self, kind: ToolKind) -> bool:
        return any(rec.kind is kind for rec in self.tools.values())


def resolve_install_dir(exe_path: Path) -> Path:
    """
    Determine the install root from the running manager binary.

    The root is the binary's directory, and it must pass three checks: it is
    not a filesystem root, it holds an installation record, and the record's
    ``root`` names that same directory.

    Raises:
        InstallRootError: If any check fails
    """
    candidate = Path(exe_path).resolve().parent
    if candidate.parent == candidate:
        raise InstallRootError(
            "This program appears to be installed in a filesystem root directory"
        )
    if not (candidate / RECORD_FILENAME).is_file():
        raise InstallRootError(f"No installation record found in '{candidate}'")

    try:
        record = InstallationRecord.load_from_dir(candidate)
    except RecordError as e:
        raise InstallRootError(
            f"Installation record in '{candidate}' exists but cannot be loaded"
        ) from e
    if record.root.resolve() != candidate:
        raise InstallRootError(
            f"Installation record in '{candidate}' belongs to '{record.root}'"
        )
    return candidate
