"""
Rust toolchain installation through rustup.

rustup is bootstrapped into the managed cargo home (reusing an existing
copy, a ``rustup-init`` bundled with the toolkit, or a downloaded one),
then asked to install the toolkit's channel with its components.
"""

import logging
import os
from pathlib import Path
from typing import Iterable

from ..core.download import download_file
from ..core.exceptions import CommandError, DownloadError, ToolchainInstallError
from ..core.filesystem import exe_name, remove_path, set_executable, temporary_directory
from ..core.process import run_command
from .components import ComponentType

logger = logging.getLogger(__name__)

RUSTUP = exe_name("rustup")
RUSTUP_INIT = exe_name("rustup-init")

# Toolchain linked by rule-set tools; kept when the main toolchain is removed
RUNNER_TOOLCHAIN_NAME = "guidelines_runner"


def insecure_url(url: str) -> str:
    """Downgrade an ``https://`` URL to ``http://``."""
    if url.startswith("https://"):
        return "http://" + url[len("https://") :]
    return url


def _is_proxy_of(path: Path, rustup: Path) -> bool:
    """True for hard links or symlinks of the rustup binary."""
    try:
        if path.is_symlink():
            return path.resolve() == rustup.resolve()
        return path.samefile(rustup) and path != rustup
    except OSError:
        return False


class ToolchainInstaller:
    """
    Installs, updates and removes the toolkit's Rust toolchain.

    The configuration passed in provides ``dirs``, ``manifest``,
    ``options``, ``rustup_dist_server``, ``rustup_update_root``,
    ``target`` and ``proxies``.
    """

    def __init__(self, insecure: bool = False):
        self.insecure = insecure

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    def prepare_env(self, config) -> None:
        os.environ["CARGO_HOME"] = str(config.dirs.cargo_home)
        os.environ["RUSTUP_HOME"] = str(config.dirs.rustup_home)
        # would override the channel we ask for
        os.environ.pop("RUSTUP_TOOLCHAIN", None)
        # rustup-init refuses to run next to another Rust install otherwise
        os.environ["RUSTUP_INIT_SKIP_PATH_CHECK"] = "yes"

    def _set_dist_server(self, config, first_install: bool) -> None:
        offline = config.manifest.offline_dist_server() if first_install else None
        if offline:
            logger.info(f"Using bundled toolchain packages from {offline}")
            os.environ["RUSTUP_DIST_SERVER"] = offline
            return
        server = config.rustup_dist_server
        if self.insecure and server.startswith("https://"):
            logger.warning("Insecure mode: using plain http for the rustup dist server")
            server = insecure_url(server)
        os.environ["RUSTUP_DIST_SERVER"] = server

    # ------------------------------------------------------------------
    # Install / update
    # ------------------------------------------------------------------

    def install(self, config, components: Iterable) -> None:
        """Install the toolchain and ``components`` for the first time."""
        self._install_toolchain(config, components, first_install=True)

    def update(self, config, components: Iterable) -> None:
        self._install_toolchain(config, components, first_install=False)

    def _install_toolchain(self, config, components: Iterable, first_install: bool) -> None:
        self.prepare_env(config)
        self._set_dist_server(config, first_install)
        rustup = self.ensure_rustup(config)

        channel = config.manifest.rust.channel
        cmd = [rustup, "toolchain", "install", channel, "--no-self-update"]
        profile = config.manifest.rust.profile
        if profile:
            cmd.extend(["--profile", profile])
        extra = [c.name for c in components if c.kind is not ComponentType.TOOLCHAIN_PROFILE]
        if extra:
            cmd.extend(["-c", ",".join(extra)])

        logger.info(f"Installing Rust toolchain '{channel}'")
        try:
            run_command(cmd)
            run_command([rustup, "-q", "default", channel])
        except CommandError as e:
            raise ToolchainInstallError(f"Failed to install toolchain '{channel}'") from e

    def ensure_rustup(self, config) -> Path:
        """
        Return the managed rustup, bootstrapping it if necessary.

        Raises:
            ToolchainInstallError: If rustup-init cannot be obtained or fails
        """
        rustup = config.dirs.cargo_bin / RUSTUP
        if rustup.exists():
            return rustup

        bundled = config.manifest.rustup_bin(config.target)
        if bundled is not None and bundled.is_file():
            self._run_rustup_init(bundled, config)
            return rustup

        # a cached manifest may name a bundled binary that is gone
        with temporary_directory(prefix="rustup-init_", parent=config.dirs.temp_dir) as temp:
            rustup_init = temp / RUSTUP_INIT
            url = f"{config.rustup_update_root.rstrip('/')}/dist/{config.target}/{RUSTUP_INIT}"
            logger.info("Downloading rustup-init")
            try:
                download_file(
                    url, rustup_init, insecure=self.insecure, proxies=config.proxies
                )
            except DownloadError as e:
                raise ToolchainInstallError("Failed to download rustup-init") from e
            self._run_rustup_init(rustup_init, config)
        return rustup

    def _run_rustup_init(self, rustup_init: Path, config) -> None:
        set_executable(rustup_init)
        args = [
            "--no-modify-path",
            "--default-toolchain",
            "none",
            "--default-host",
            config.target,
            "-y",
        ]
        if config.options.verbose:
            args.append("-v")
        elif config.options.quiet:
            args.append("-q")
        try:
            run_command([rustup_init, *args])
        except CommandError as e:
            raise ToolchainInstallError("Failed to install rustup") from e

    # ------------------------------------------------------------------
    # Uninstall
    # ------------------------------------------------------------------

    def uninstall(self, config) -> None:
        """
        Remove what rustup installed.

        Third-party binaries in ``cargo/bin`` and the linked rule-set runner
        toolchain are left in place; rustup's own self-uninstall would
        remove them too.
        """
        root = config.dirs.root
        self._remove_rustup_home(root / "rustup")
        self._remove_cargo_home(root / "cargo")

    def _remove_rustup_home(self, rustup_home: Path) -> None:
        if not rustup_home.is_dir():
            logger.debug(f"{rustup_home} does not exist, nothing to remove")
            return
        keep_home = False
        for entry in list(rustup_home.iterdir()):
            if entry.name == "toolchains" and entry.is_dir():
                for toolchain in list(entry.iterdir()):
                    if toolchain.name == RUNNER_TOOLCHAIN_NAME:
                        keep_home = True
                        continue
                    remove_path(toolchain)
                if not keep_home:
                    remove_path(entry)
                continue
            remove_path(entry)
        if not keep_home:
            remove_path(rustup_home)

    def _remove_cargo_home(self, cargo_home: Path) -> None:
        if not cargo_home.is_dir():
            return
        for entry in list(cargo_home.iterdir()):
            if entry.name != "bin":
                remove_path(entry)
                continue
            rustup = entry / RUSTUP
            if not rustup.exists():
                continue
            for candidate in list(entry.iterdir()):
                if _is_proxy_of(candidate, rustup):
                    remove_path(candidate)
            remove_path(rustup)
