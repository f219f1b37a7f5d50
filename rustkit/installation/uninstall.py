"""
Uninstall orchestration.

Removal favours forward progress over strictness: a tool that cannot be
removed (its files are already gone, its host editor was uninstalled, ...)
is reported as a warning and the next one is attempted. The record is
rewritten after every step.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Optional

from ..config.manifest import ToolkitManifest
from ..config.options import GlobalOptions
from ..core.dependency import DependencyResolver
from ..core.directory import InstallDirs, get_config_dir
from ..core.exceptions import ManifestError, RustkitError
from ..core.filesystem import safe_rmtree
from ..core.progress import Progress
from ..env import PROXY_ENV_VARS, RUSTUP_ENV_VARS, EnvironmentConfigurator, get_configurator
from ..toolchain.rustup import ToolchainInstaller
from ..tools.strategies import kind_priorities, uninstall_tool
from ..tools.tool import Tool
from .record import InstallationRecord

logger = logging.getLogger(__name__)

# Seconds between spinner ticks while the toolchain is removed
TICK_INTERVAL = 0.2


class UninstallConfiguration:
    """
    Removes what the installation record lists under ``install_dir``.

    Args:
        install_dir: Install root holding the record
        options: Global flags
        progress: Progress sink
        env: Environment configurator (host default when omitted)
        toolchain_installer: Toolchain collaborator
        config_dir: User config directory removed along with the manager
        current_exe: Running manager binary, left for deferred deletion on Windows
    """

    def __init__(
        self,
        install_dir: Path,
        options: Optional[GlobalOptions] = None,
        progress: Optional[Progress] = None,
        env: Optional[EnvironmentConfigurator] = None,
        toolchain_installer: Optional[ToolchainInstaller] = None,
        config_dir: Optional[Path] = None,
        current_exe: Optional[Path] = None,
    ):
        self.install_dir = Path(install_dir)
        self.dirs = InstallDirs(self.install_dir)
        self.options = options or GlobalOptions()
        self.progress = progress or Progress()
        self.env = env or get_configurator(self.install_dir, self.options)
        self.toolchain = toolchain_installer or ToolchainInstaller(insecure=self.options.insecure)
        self.config_dir = Path(config_dir) if config_dir is not None else get_config_dir()
        self.current_exe = current_exe

        self.record = InstallationRecord.load_from_dir(self.install_dir)
        self.toolchain_is_installed = self.record.rust is not None

    def uninstall(self, remove_self: bool) -> None:
        """
        Remove every recorded tool and the toolchain.

        With ``remove_self`` the persisted environment, the install root and
        the config directory go too. Otherwise only the toolkit identity is
        cleared, leaving the manager in place for a later install.
        """
        logger.info("Uninstalling third-party tools")
        self.remove_tools(weight=40)
        self.remove_toolchain(weight=40)

        if remove_self:
            logger.info("Removing environment configuration")
            self.env.remove_rustup_env_vars(self._persisted_var_names())
            self.progress.inc(10)
            logger.info("Removing rustkit")
            self.remove_self()
            self.progress.inc(10)
        else:
            self.record.remove_toolkit_meta()
            self.record.write()
            self.progress.inc(20)
        logger.info("Uninstallation complete")

    def _persisted_var_names(self) -> list[str]:
        """Variables written at install time, proxies included when the toolkit had one."""
        names = list(RUSTUP_ENV_VARS)
        try:
            manifest = ToolkitManifest.load_from_install_dir(self.install_dir)
        except ManifestError as e:
            logger.debug(f"No readable manifest copy, keeping proxy variables: {e}")
            return names
        if manifest.proxy is not None:
            names.extend(PROXY_ENV_VARS)
        return names

    def remove_tools(self, weight: float = 40) -> None:
        records = dict(self.record.tools)
        if not records:
            self.progress.inc(weight)
            return

        resolver = DependencyResolver(
            ((name, rec.dependencies) for name, rec in records.items()),
            priorities=kind_priorities(records),
        )
        order = resolver.ordered()
        # tools caught in a dependency cycle are still removed, last
        order.extend(name for name in records if name not in order)

        delta = Progress.split(weight, len(order))
        for name in order:
            logger.info(f"Uninstalling '{name}'")
            tool = Tool.from_installed(name, records[name])
            if tool is not None:
                try:
                    uninstall_tool(tool, self)
                except (RustkitError, OSError, ValueError) as e:
                    logger.warning(
                        f"Skipped uninstalling '{name}', it may have been removed already: {e}"
                    )
            self.record.remove_tool_record(name)
            self.record.write()
            self.progress.inc(delta)

    def remove_toolchain(self, weight: float = 40) -> None:
        """
        Remove the toolchain through the toolchain installer.

        The removal runs on a worker thread so the progress sink keeps
        ticking; this call still blocks until it has finished. A failure
        (rustup removed by hand, for example) is a warning and the record
        is cleared regardless.
        """
        if self.record.rust is None:
            self.progress.inc(weight)
            return

        logger.info("Uninstalling the Rust toolchain")
        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(self.toolchain.uninstall, self)
            while not future.done():
                self.progress.tick()
                wait([future], timeout=TICK_INTERVAL)
            error = future.exception()

        if error is not None:
            if not isinstance(error, (RustkitError, OSError)):
                raise error
            logger.warning(f"Unable to uninstall the Rust toolchain: {error}")

        self.toolchain_is_installed = False
        self.record.remove_rust_record()
        self.record.write()
        self.progress.inc(weight)

    def remove_self(self) -> None:
        """Delete the install root and the user config directory."""
        self.env.remove_self(self.current_exe)
        if self.config_dir.exists():
            try:
                safe_rmtree(self.config_dir)
            except OSError as e:
                logger.warning(f"Unable to remove config directory '{self.config_dir}': {e}")
