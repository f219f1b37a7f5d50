"""
Install and update orchestration.

An ``InstallConfiguration`` drives a fresh installation through fixed
phases, each reported to the progress sink with its weight:

    setup              5   manifest copy, manager binary, PATH, registration
    config_env_vars    2   CARGO_HOME, RUSTUP_HOME, dist server, proxies
    config_cargo       3   registry override in cargo/config.toml
    install_tools     30   non-cargo tools, dependencies first
    install_rust      30   rustup and the toolchain
    cargo_install     30   cargo-built tools, which need a working cargo

The installation record is rewritten after every tool and after the
toolchain, so an interrupted run leaves an accurate record behind.
"""

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping, Optional

from .. import __version__
from ..config.cargo_config import CargoConfig
from ..config.manifest import (
    GitSource,
    PathSource,
    RestrictedSource,
    ToolInfo,
    ToolkitManifest,
    UrlSource,
    VersionSource,
)
from ..config.options import GlobalOptions
from ..config.settings import UserSettings
from ..core.dependency import DependencyResolver
from ..core.directory import APP_NAME, InstallDirs
from ..core.download import download_file, filename_from_url
from ..core.exceptions import (
    ConflictingToolsError,
    MissingRestrictedSourceError,
    SourceNotFoundError,
)
from ..core.filesystem import (
    copy_as,
    extract_skipping_solo_dirs,
    is_archive,
    set_executable,
    temporary_directory,
)
from ..core.platform import host_triple
from ..core.progress import Progress
from ..env import (
    CARGO_HOME,
    RUSTUP_DIST_SERVER,
    RUSTUP_HOME,
    RUSTUP_UPDATE_ROOT,
    EnvironmentConfigurator,
    get_configurator,
)
from ..toolchain.components import Component, ComponentType, split_components
from ..toolchain.rustup import ToolchainInstaller, insecure_url
from ..tools.strategies import install_tool, resolve_source_kind, uninstall_tool
from ..tools.tool import Tool
from .record import InstallationRecord

logger = logging.getLogger(__name__)


class InstallState(Enum):
    """Phases of a fresh installation, in order."""

    CREATED = "created"
    ENV_CONFIGURED = "env-configured"
    TOOLS_INSTALLED = "tools-installed"
    TOOLCHAIN_INSTALLED = "toolchain-installed"
    CARGO_TOOLS_INSTALLED = "cargo-tools-installed"
    DONE = "done"


def reject_conflicting_tools(tools: Mapping[str, ToolInfo]) -> None:
    """
    Refuse a selection holding tools that declare each other as conflicting.

    Raises:
        ConflictingToolsError: Listing every unique pair, sorted
    """
    pairs = set()
    for name, info in tools.items():
        for other in info.conflicts:
            if other in tools and other != name:
                pairs.add(tuple(sorted((name, other))))
    if pairs:
        raise ConflictingToolsError(sorted(pairs))


class InstallConfiguration:
    """
    Everything an installation or update needs, passed explicitly.

    Strategies and the toolchain installer receive this object as their
    ``config`` and read ``dirs``, ``env``, ``options``, ``manifest``,
    ``toolchain_is_installed``, ``rustup_dist_server``,
    ``rustup_update_root``, ``target`` and ``proxies`` from it.

    Args:
        install_dir: Install root
        manifest: Toolkit being installed
        options: Global flags
        settings: User settings supplying server URLs and the registry
        progress: Progress sink
        env: Environment configurator (host default when omitted)
        toolchain_installer: Toolchain collaborator
        self_exe: Manager binary to copy into the root (``sys.argv[0]`` by default)
        target: Target triple (host by default)
    """

    def __init__(
        self,
        install_dir: Path,
        manifest: ToolkitManifest,
        options: Optional[GlobalOptions] = None,
        settings: Optional[UserSettings] = None,
        progress: Optional[Progress] = None,
        env: Optional[EnvironmentConfigurator] = None,
        toolchain_installer: Optional[ToolchainInstaller] = None,
        self_exe: Optional[Path] = None,
        target: Optional[str] = None,
    ):
        self.install_dir = Path(install_dir)
        self.dirs = InstallDirs(self.install_dir)
        self.manifest = manifest
        self.options = options or GlobalOptions()
        settings = settings or UserSettings()
        self.rustup_dist_server = settings.rustup_dist_server
        self.rustup_update_root = settings.rustup_update_root
        self.cargo_registry = settings.cargo_registry
        self.progress = progress or Progress()
        self.env = env or get_configurator(self.install_dir, self.options)
        self.toolchain = toolchain_installer or ToolchainInstaller(insecure=self.options.insecure)
        self.self_exe = self_exe
        self.target = target or host_triple()

        self.record = InstallationRecord.load_from_dir(self.install_dir)
        # an update runs against an existing toolchain
        self.toolchain_is_installed = self.record.rust is not None
        self.state = InstallState.CREATED

    @property
    def proxies(self) -> Optional[dict[str, str]]:
        if self.manifest.proxy is None:
            return None
        return self.manifest.proxy.for_requests()

    def env_vars(self) -> dict[str, str]:
        """Variables persisted for the user and set in this process."""
        dist_server = self.rustup_dist_server
        if self.options.insecure:
            dist_server = insecure_url(dist_server)

        variables = {
            CARGO_HOME: str(self.dirs.cargo_home),
            RUSTUP_HOME: str(self.dirs.rustup_home),
            RUSTUP_DIST_SERVER: dist_server,
            RUSTUP_UPDATE_ROOT: self.rustup_update_root,
        }
        proxy = self.manifest.proxy
        if proxy is not None:
            for key, value in (
                ("http_proxy", proxy.http),
                ("https_proxy", proxy.https),
                ("no_proxy", proxy.no_proxy),
            ):
                if value:
                    variables[key] = value
        return variables

    # ------------------------------------------------------------------
    # Fresh installation
    # ------------------------------------------------------------------

    def install(self, components: Iterable[Component]) -> None:
        """
        Run every installation phase for the selected ``components``.

        Any exception aborts the remaining phases; the record reflects
        whatever was completed before it.
        """
        toolchain, tools = split_components(components)
        reject_conflicting_tools(tools)

        self.setup()
        self.config_env_vars()
        self.config_cargo()
        self.install_tools(tools)
        self.install_rust(toolchain)
        self.cargo_install(tools)

        self.state = InstallState.DONE
        logger.info(f"Installation of {self.manifest.name or 'the toolkit'} complete")

    def setup(self) -> None:
        """Prepare the install root and make the manager reachable."""
        logger.info(f"Initializing installation in {self.install_dir}")
        self.manifest.write_to_dir(self.install_dir)
        self._copy_manager()
        self.env.add_to_path(self.install_dir)
        self.env.register_program(
            self.dirs.manager_exe,
            self.manifest.name or APP_NAME,
            self.manifest.version or __version__,
        )
        self.progress.inc(5)

    def _copy_manager(self) -> None:
        exe = Path(self.self_exe or sys.argv[0])
        if not exe.is_file():
            logger.warning(
                f"Unable to locate the running {APP_NAME} program, "
                "the manager is not copied into the install directory"
            )
            return
        if exe.resolve() == self.dirs.manager_exe.resolve():
            return
        set_executable(copy_as(exe, self.dirs.manager_exe))

    def config_env_vars(self) -> None:
        logger.info("Configuring environment variables")
        self.env.config_env_vars(self.env_vars())
        self.progress.inc(2)
        self.state = InstallState.ENV_CONFIGURED

    def config_cargo(self) -> None:
        """Point cargo at the configured registry, if there is one."""
        if self.cargo_registry is None:
            logger.debug("No cargo registry configured, leaving cargo config untouched")
        else:
            logger.info(f"Configuring cargo registry '{self.cargo_registry.name}'")
            cargo_home = self.dirs.cargo_home
            CargoConfig.load_from_dir(cargo_home).add_source(
                self.cargo_registry.name, self.cargo_registry.url
            ).write_to_dir(cargo_home)
        self.progress.inc(3)

    def install_tools(self, tools: Mapping[str, ToolInfo], weight: float = 30) -> None:
        """Install the tools that do not need cargo, dependencies first."""
        self._install_tools(tools, use_cargo=False, weight=weight)
        self.state = InstallState.TOOLS_INSTALLED

    def install_rust(self, components: list[Component], weight: float = 30) -> None:
        logger.info("Installing the Rust toolchain")
        self.toolchain.install(self, components)
        self._toolchain_installed(components)
        self.progress.inc(weight)
        self.state = InstallState.TOOLCHAIN_INSTALLED

    def cargo_install(self, tools: Mapping[str, ToolInfo], weight: float = 30) -> None:
        self._install_tools(tools, use_cargo=True, weight=weight)
        self.state = InstallState.CARGO_TOOLS_INSTALLED

    def _toolchain_installed(self, components: list[Component], keep_recorded: bool = False) -> None:
        self.env.add_to_path(self.env.cargo_bin)
        self.toolchain_is_installed = True
        names = [c.name for c in components if c.kind is ComponentType.TOOLCHAIN_COMPONENT]
        if keep_recorded and self.record.rust is not None:
            names = [n for n in self.record.rust.components if n not in names] + names
        self.record.add_rust_record(self.manifest.rust.channel, names)
        self.record.clone_toolkit_meta_from_manifest(self.manifest)
        self.record.write()

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, components: Iterable[Component]) -> None:
        """
        Bring an existing installation to the manifest's versions.

        Environment variables are only re-applied to this process. The
        toolchain is touched only when toolchain components are selected.
        """
        toolchain, tools = split_components(components)
        reject_conflicting_tools(tools)

        self.manifest.write_to_dir(self.install_dir)
        self.env.apply_to_process(self.env_vars())
        self.progress.inc(10)

        if toolchain:
            logger.info("Updating the Rust toolchain")
            self.toolchain.update(self, toolchain)
            self._toolchain_installed(toolchain, keep_recorded=True)
        else:
            logger.debug("No toolchain component selected, skipping toolchain update")
        self.progress.inc(60)

        self._install_tools(tools, use_cargo=False, weight=15)
        self._install_tools(tools, use_cargo=True, weight=15)
        if self.record.rust is not None:
            self.record.clone_toolkit_meta_from_manifest(self.manifest)
            self.record.write()
        logger.info("Update complete")

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def _install_tools(self, tools: Mapping[str, ToolInfo], use_cargo: bool, weight: float) -> None:
        selected = {name: info for name, info in tools.items() if info.is_cargo_tool() == use_cargo}
        if not selected:
            self.progress.inc(weight)
            return

        if use_cargo:
            order = list(selected)
        else:
            order = DependencyResolver(
                (name, info.requires) for name, info in selected.items()
            ).topological_sort()

        delta = Progress.split(weight, len(selected))
        for name in order:
            logger.info(f"Installing tool '{name}'")
            self.install_one(name, selected[name])
            self.record.write()
            self.progress.inc(delta)

    def install_one(self, name: str, info: ToolInfo) -> None:
        """Install a single tool and add it to the in-memory record."""
        self.remove_obsoleted_tools(info)
        record = self._install_from_source(name, info)
        self.record.add_tool_record(name, record)

    def remove_obsoleted_tools(self, info: ToolInfo) -> None:
        for obsolete in info.obsoletes:
            installed = self.record.tools.get(obsolete)
            if installed is None:
                continue
            tool = Tool.from_installed(obsolete, installed)
            if tool is not None:
                logger.info(f"Removing obsolete tool '{obsolete}'")
                uninstall_tool(tool, self)
            self.record.remove_tool_record(obsolete)
            self.record.write()

    def _install_from_source(self, name: str, info: ToolInfo):
        source = info.source

        if isinstance(source, VersionSource):
            args = [info.identifier or name, "--version", source.version]
            return install_tool(Tool.cargo_tool(name, args), self, info)

        if isinstance(source, GitSource):
            args = ["--git", source.git]
            for flag, value in (("--branch", source.branch), ("--tag", source.tag), ("--rev", source.rev)):
                if value:
                    args.extend([flag, value])
            if info.identifier:
                args.append(info.identifier)
            return install_tool(Tool.cargo_tool(name, args), self, info)

        if isinstance(source, PathSource):
            return self._install_from_path(name, source.path, info)

        if isinstance(source, UrlSource):
            return self._install_from_url(name, source.url, info, source.filename)

        if isinstance(source, RestrictedSource):
            if not source.source:
                raise MissingRestrictedSourceError(name)
            local = Path(source.source).expanduser()
            if local.exists():
                return self._install_from_path(name, local, info)
            if "://" in source.source:
                return self._install_from_url(name, source.source, info, None)
            raise SourceNotFoundError(source.source)

        raise TypeError(f"Unsupported source for tool '{name}': {source!r}")

    def _install_from_path(self, name: str, path: Path, info: ToolInfo):
        """
        Install from a local directory, archive or file.

        Sources are staged in a temp directory first; strategies may move
        what they are given, and the toolkit package must stay intact.
        """
        path = Path(path)
        if not path.exists():
            raise SourceNotFoundError(path)

        with temporary_directory(prefix=f"{name}_", parent=self.dirs.temp_dir) as temp:
            if path.is_file() and is_archive(path):
                logger.debug(f"Extracting {path}")
                staged = extract_skipping_solo_dirs(path, temp / "extracted", stop_at="bin")
            else:
                staged = copy_as(path, temp / path.name)
            tool = resolve_source_kind(name, staged, info.kind)
            return install_tool(tool, self, info)

    def _install_from_url(self, name: str, url: str, info: ToolInfo, filename: Optional[str]):
        with temporary_directory(prefix=f"{name}_download_", parent=self.dirs.temp_dir) as temp:
            archive = temp / (filename or filename_from_url(url))
            download_file(url, archive, insecure=self.options.insecure, proxies=self.proxies)
            return self._install_from_path(name, archive, info)
