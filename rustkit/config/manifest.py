"""Toolkit manifest model.

A toolkit manifest (``toolset-manifest.toml``) names a toolkit, the Rust
toolchain it ships and the third-party tools available per target triple:

    name = "demo"
    version = "1.0.0"

    [rust]
    channel = "stable"
    profile = "minimal"
    components = ["clippy", "rustfmt"]
    optional-components = ["rust-docs"]

    [tools.descriptions]
    mdbook = "Create books from markdown"

    [tools.target.x86_64-unknown-linux-gnu]
    mdbook = "0.4.40"
    hello = { path = "packages/hello.tar.gz", requires = ["mdbook"] }
    gitdep = { git = "https://github.com/org/tool", tag = "v1.0" }
    vendor = { restricted = true, default = "https://vendor.example.com/" }
"""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

import tomli_w

from ..core.exceptions import ManifestError
from ..core.filesystem import atomic_write
from ..core.platform import host_triple
from ..toolchain.components import Component, ComponentType
from ..tools.kinds import ToolKind

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "toolset-manifest.toml"


# ============================================================================
# Tool sources
# ============================================================================


@dataclass
class VersionSource:
    """A crates.io package installed with ``cargo install``."""

    version: str


@dataclass
class GitSource:
    """A git repository installed with ``cargo install --git``."""

    git: str
    branch: Optional[str] = None
    tag: Optional[str] = None
    rev: Optional[str] = None


@dataclass
class UrlSource:
    """A package downloaded from ``url`` before installation."""

    url: str
    version: Optional[str] = None
    filename: Optional[str] = None


@dataclass
class PathSource:
    """A local directory, archive or file."""

    path: Path
    version: Optional[str] = None


@dataclass
class RestrictedSource:
    """
    A package that cannot be redistributed.

    ``source`` stays empty until the user supplies a path or URL;
    ``default`` usually points at the vendor's download page.
    """

    default: Optional[str] = None
    source: Optional[str] = None
    version: Optional[str] = None


ToolSource = Union[VersionSource, GitSource, UrlSource, PathSource, RestrictedSource]

_DETAIL_KEYS = {
    "required",
    "optional",
    "identifier",
    "kind",
    "display-name",
    "obsoletes",
    "requires",
    "conflicts",
}


def _parse_source(name: str, data: dict) -> ToolSource:
    if data.get("restricted"):
        return RestrictedSource(
            default=data.get("default"),
            source=data.get("source"),
            version=data.get("version"),
        )
    if "git" in data:
        return GitSource(
            git=data["git"],
            branch=data.get("branch"),
            tag=data.get("tag"),
            rev=data.get("rev"),
        )
    if "url" in data:
        return UrlSource(
            url=data["url"], version=data.get("version"), filename=data.get("filename")
        )
    if "path" in data:
        return PathSource(path=Path(data["path"]), version=data.get("version"))
    version = data.get("version", data.get("ver"))
    if version is not None:
        return VersionSource(version=str(version))
    raise ManifestError(
        f"Tool '{name}' must declare one of: version, git, url, path, restricted"
    )


def _source_to_dict(source: ToolSource) -> dict:
    if isinstance(source, RestrictedSource):
        data = {"restricted": True, "default": source.default, "source": source.source}
        data["version"] = source.version
    elif isinstance(source, GitSource):
        data = {"git": source.git, "branch": source.branch, "tag": source.tag, "rev": source.rev}
    elif isinstance(source, UrlSource):
        data = {"url": source.url, "version": source.version, "filename": source.filename}
    elif isinstance(source, PathSource):
        data = {"path": str(source.path), "version": source.version}
    else:
        data = {"version": source.version}
    return {key: value for key, value in data.items() if value is not None}


@dataclass
class ToolInfo:
    """
    How to obtain and install one third-party tool.

    ``basic`` marks the short ``name = "version"`` form so it round-trips.
    """

    source: ToolSource
    required: bool = False
    optional: bool = False
    identifier: Optional[str] = None
    kind: Optional[ToolKind] = None
    display_name: Optional[str] = None
    obsoletes: list[str] = field(default_factory=list)
    requires: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    basic: bool = False

    @classmethod
    def from_value(cls, name: str, value) -> "ToolInfo":
        """Parse either a version string or a detail table."""
        if isinstance(value, str):
            return cls(source=VersionSource(value), basic=True)
        if not isinstance(value, dict):
            raise ManifestError(f"Tool '{name}' must be a version string or a table")

        try:
            kind = ToolKind.parse(value["kind"]) if "kind" in value else None
        except ValueError as e:
            raise ManifestError(f"Tool '{name}': {e}") from e

        return cls(
            source=_parse_source(name, value),
            required=bool(value.get("required", False)),
            optional=bool(value.get("optional", False)),
            identifier=value.get("identifier"),
            kind=kind,
            display_name=value.get("display-name"),
            obsoletes=list(value.get("obsoletes", [])),
            requires=list(value.get("requires", [])),
            conflicts=list(value.get("conflicts", [])),
        )

    def to_value(self):
        if self.basic and isinstance(self.source, VersionSource):
            return self.source.version
        data = {}
        if self.required:
            data["required"] = True
        if self.optional:
            data["optional"] = True
        if self.identifier:
            data["identifier"] = self.identifier
        data.update(_source_to_dict(self.source))
        if self.kind is not None:
            data["kind"] = self.kind.value
        if self.display_name:
            data["display-name"] = self.display_name
        for key in ("obsoletes", "requires", "conflicts"):
            values = getattr(self, key)
            if values:
                data[key] = list(values)
        return data

    @property
    def version(self) -> Optional[str]:
        """
        Declared version, if any.

        Git sources report their tag; path, URL and restricted sources report
        the optional ``version`` key.
        """
        if isinstance(self.source, GitSource):
            return self.source.tag
        return self.source.version

    def is_cargo_tool(self) -> bool:
        """True when the tool is built with ``cargo install``."""
        return isinstance(self.source, (VersionSource, GitSource))

    def is_restricted(self) -> bool:
        return isinstance(self.source, RestrictedSource)


# ============================================================================
# Toolchain and proxy
# ============================================================================


@dataclass
class RustToolchain:
    """The Rust toolchain shipped by a toolkit."""

    channel: str
    profile: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    components: list[str] = field(default_factory=list)
    optional_components: list[str] = field(default_factory=list)
    group: Optional[str] = None
    offline_dist_server: Optional[str] = None
    rustup: dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Display label: display name, then group, then "Rust"."""
        return self.display_name or self.group or "Rust"

    @classmethod
    def from_dict(cls, data: dict) -> "RustToolchain":
        channel = data.get("channel", data.get("version"))
        if not channel:
            raise ManifestError("[rust] must declare a 'channel'")
        return cls(
            channel=str(channel),
            profile=data.get("profile"),
            display_name=data.get("display-name", data.get("verbose-name")),
            description=data.get("description"),
            components=list(data.get("components", [])),
            optional_components=list(data.get("optional-components", [])),
            group=data.get("group"),
            offline_dist_server=data.get("offline-dist-server"),
            rustup=dict(data.get("rustup", {})),
        )

    def to_dict(self) -> dict:
        data = {
            "channel": self.channel,
            "profile": self.profile,
            "display-name": self.display_name,
            "description": self.description,
            "components": self.components or None,
            "optional-components": self.optional_components or None,
            "group": self.group,
            "offline-dist-server": self.offline_dist_server,
            "rustup": self.rustup or None,
        }
        return {key: value for key, value in data.items() if value is not None}


@dataclass
class Proxy:
    """Proxy settings used for downloads and exported to the environment."""

    http: Optional[str] = None
    https: Optional[str] = None
    no_proxy: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Proxy":
        return cls(
            http=data.get("http"),
            https=data.get("https"),
            no_proxy=data.get("no-proxy", data.get("no_proxy")),
        )

    def to_dict(self) -> dict:
        data = {"http": self.http, "https": self.https, "no-proxy": self.no_proxy}
        return {key: value for key, value in data.items() if value is not None}

    def for_requests(self) -> Optional[dict[str, str]]:
        """Proxy mapping in the shape ``requests`` expects."""
        proxies = {}
        if self.http:
            proxies["http"] = self.http
        if self.https:
            proxies["https"] = self.https
        return proxies or None


# ============================================================================
# Manifest
# ============================================================================


@dataclass
class ToolkitManifest:
    """
    A parsed toolkit manifest.

    Attributes:
        path: File the manifest was loaded from; relative tool paths and
            bundled rustup binaries resolve against its directory
    """

    rust: RustToolchain
    name: Optional[str] = None
    version: Optional[str] = None
    edition: Optional[str] = None
    tools: dict[str, dict[str, ToolInfo]] = field(default_factory=dict)
    descriptions: dict[str, str] = field(default_factory=dict)
    groups: dict[str, list[str]] = field(default_factory=dict)
    proxy: Optional[Proxy] = None
    path: Optional[Path] = None

    # ------------------------------------------------------------------
    # Loading and saving
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path) -> "ToolkitManifest":
        """
        Load a manifest file.

        Raises:
            ManifestError: If the file is missing or malformed
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ManifestError(f"Cannot read manifest {path}: {e}") from e
        return cls.loads(text, path=path)

    @classmethod
    def loads(cls, text: str, path: Optional[Path] = None) -> "ToolkitManifest":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            raise ManifestError(f"Invalid TOML in manifest: {e}") from e
        manifest = cls.from_dict(data)
        manifest.path = Path(path) if path is not None else None
        return manifest

    @classmethod
    def from_dict(cls, data: dict) -> "ToolkitManifest":
        if "rust" not in data:
            raise ManifestError("Manifest is missing the [rust] section")

        tools_section = data.get("tools", {})
        targets: dict[str, dict[str, ToolInfo]] = {}
        for target, table in tools_section.get("target", {}).items():
            targets[target] = {
                name: ToolInfo.from_value(name, value) for name, value in table.items()
            }

        proxy = data.get("proxy")
        return cls(
            rust=RustToolchain.from_dict(data["rust"]),
            name=data.get("name"),
            version=data.get("version"),
            edition=data.get("edition"),
            tools=targets,
            descriptions=dict(tools_section.get("descriptions", {})),
            groups={k: list(v) for k, v in tools_section.get("group", {}).items()},
            proxy=Proxy.from_dict(proxy) if proxy else None,
        )

    def to_dict(self) -> dict:
        data: dict = {}
        for key in ("name", "version", "edition"):
            if getattr(self, key) is not None:
                data[key] = getattr(self, key)
        data["rust"] = self.rust.to_dict()

        tools: dict = {}
        if self.descriptions:
            tools["descriptions"] = dict(self.descriptions)
        if self.groups:
            tools["group"] = {k: list(v) for k, v in self.groups.items()}
        if self.tools:
            tools["target"] = {
                target: {name: info.to_value() for name, info in table.items()}
                for target, table in self.tools.items()
            }
        if tools:
            data["tools"] = tools
        if self.proxy is not None and self.proxy.to_dict():
            data["proxy"] = self.proxy.to_dict()
        return data

    def write_to_dir(self, directory: Path) -> Path:
        """Persist a copy as ``<directory>/toolset-manifest.toml``."""
        path = Path(directory) / MANIFEST_FILENAME
        atomic_write(path, tomli_w.dumps(self.to_dict()))
        logger.debug(f"Wrote manifest copy to {path}")
        return path

    @classmethod
    def load_from_install_dir(cls, install_dir: Path) -> "ToolkitManifest":
        return cls.load(Path(install_dir) / MANIFEST_FILENAME)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def package_root(self) -> Path:
        """Directory that relative package paths resolve against."""
        if self.path is not None:
            return self.path.resolve().parent
        return Path.cwd()

    def tool_description(self, tool: str) -> Optional[str]:
        return self.descriptions.get(tool)

    def group_name(self, tool: str) -> Optional[str]:
        for group, members in self.groups.items():
            if tool in members:
                return group
        return None

    def rustup_bin(self, target: Optional[str] = None) -> Optional[Path]:
        """Bundled ``rustup-init`` for ``target``, if the toolkit ships one."""
        rel_path = self.rust.rustup.get(target or host_triple())
        return self.package_root() / rel_path if rel_path else None

    def offline_dist_server(self) -> Optional[str]:
        """``file://`` URL of a bundled dist server, if any."""
        if not self.rust.offline_dist_server:
            return None
        return (self.package_root() / self.rust.offline_dist_server).resolve().as_uri()

    def current_target_tools(self, target: Optional[str] = None) -> dict[str, ToolInfo]:
        return self.tools.get(target or host_triple(), {})

    def already_installed_tools(self, target: Optional[str] = None) -> list[str]:
        """Tools of this target that the user already has outside of rustkit."""
        from ..tools.custom import is_installed

        return [name for name in self.current_target_tools(target) if is_installed(name)]

    def current_target_components(
        self, check_existing: bool = False, target: Optional[str] = None
    ) -> list[Component]:
        """
        Components available for ``target`` (the host by default).

        The toolchain profile comes first and is always required; optional
        toolchain components follow, then tools in manifest order.

        Args:
            check_existing: Probe the user's machine for tools installed
                outside of rustkit and mark them installed (version unknown)
        """
        channel = self.rust.channel
        components = [
            Component(
                name=self.rust.name,
                kind=ComponentType.TOOLCHAIN_PROFILE,
                version=channel,
                desc=self.rust.description or "",
                group=self.rust.group,
                required=True,
            )
        ]
        for name in self.rust.optional_components:
            components.append(
                Component(
                    name=name,
                    kind=ComponentType.TOOLCHAIN_COMPONENT,
                    version=channel,
                    desc=self.tool_description(name) or "",
                    group=self.rust.group,
                    optional=True,
                )
            )

        in_env = self.already_installed_tools(target) if check_existing else []
        for name, info in self.current_target_tools(target).items():
            installed = name in in_env
            components.append(
                Component(
                    name=name,
                    kind=ComponentType.TOOL,
                    display_name=info.display_name or name,
                    version=None if installed else info.version,
                    desc=self.tool_description(name) or "",
                    group=self.group_name(name),
                    required=info.required,
                    optional=info.optional,
                    installed=installed,
                    dependencies=list(info.requires),
                    obsoletes=list(info.obsoletes),
                    tool_installer=info,
                )
            )
        return components

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def adjust_paths(self) -> None:
        """Make every relative tool path absolute against ``package_root()``."""
        root = self.package_root()
        for table in self.tools.values():
            for info in table.values():
                if isinstance(info.source, PathSource) and not info.source.path.is_absolute():
                    info.source.path = (root / info.source.path).resolve()

    def fill_missing_package_source(
        self, components: Iterable[Component], supply: Callable[[str], Optional[str]]
    ) -> None:
        """
        Ask ``supply`` for the source of every selected restricted tool.

        ``supply`` receives the tool's display name and returns a path or URL
        (or None to leave it unset). Both the manifest entry and the selected
        component's descriptor are updated.
        """
        by_name = {c.name: c for c in components}
        for table in self.tools.values():
            for name, info in table.items():
                component = by_name.get(name)
                if component is None or not info.is_restricted():
                    continue
                if info.source.source:
                    continue
                value = supply(info.display_name or name)
                if not value:
                    continue
                info.source.source = value
                if component.tool_installer is not None and component.tool_installer.is_restricted():
                    component.tool_installer.source.source = value
