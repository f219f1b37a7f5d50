"""
Directory layout of a rustkit installation.

Directory Structure:
    Install root (default ~/rust or %USERPROFILE%\\rust):
        - rustkit-manager[.exe] : Copy of the manager binary
        - .fingerprint.toml     : Installation record
        - toolset-manifest.toml : Copy of the installed toolkit manifest
        - cargo/                : CARGO_HOME
          - bin/                : cargo, rustup proxies and Executables tools
          - config.toml         : Registry override and [patch] entries
        - rustup/               : RUSTUP_HOME
        - tools/                : DirWithBin, Unknown, Custom tools and archived installers
          - ruleset/runner/     : Rule-set runner toolchain
        - crates/               : Crate tools referenced by [patch]
        - temp/                 : Scratch space for downloads and extraction
        - backup/               : rc-file backups (Unix)

    Config dir (~/.config/rustkit, $XDG_CONFIG_HOME/rustkit or %APPDATA%\\rustkit):
        - settings.yaml         : User settings
"""

import os
from pathlib import Path

from .filesystem import IS_WINDOWS, exe_name

APP_NAME = "rustkit"
MANAGER_NAME = f"{APP_NAME}-manager"
DEFAULT_INSTALL_FOLDER = "rust"


def home_dir() -> Path:
    """Return the current user's home directory."""
    if IS_WINDOWS:
        user_profile = os.environ.get("USERPROFILE")
        if user_profile:
            return Path(user_profile)
    return Path.home()


def get_default_install_dir() -> Path:
    """
    Get the default install root.

    Returns:
        Path: ``~/rust`` (``%USERPROFILE%\\rust`` on Windows)
    """
    return home_dir() / DEFAULT_INSTALL_FOLDER


def get_config_dir() -> Path:
    """
    Get the per-user configuration directory.

    Returns:
        Path: The config directory path.
            - Windows: %APPDATA%\\rustkit
            - Linux/macOS: $XDG_CONFIG_HOME/rustkit or ~/.config/rustkit
    """
    if IS_WINDOWS:
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / APP_NAME
        return home_dir() / "AppData" / "Roaming" / APP_NAME
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    return home_dir() / ".config" / APP_NAME


class InstallDirs:
    """
    Well-known locations under an install root.

    Every accessor creates the directory on first use, so callers can write
    into the returned path directly.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _ensure(self, *parts: str) -> Path:
        path = self.root.joinpath(*parts)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def cargo_home(self) -> Path:
        return self._ensure("cargo")

    @property
    def cargo_bin(self) -> Path:
        return self._ensure("cargo", "bin")

    @property
    def rustup_home(self) -> Path:
        return self._ensure("rustup")

    @property
    def tools_dir(self) -> Path:
        return self._ensure("tools")

    @property
    def crates_dir(self) -> Path:
        return self._ensure("crates")

    @property
    def temp_dir(self) -> Path:
        return self._ensure("temp")

    @property
    def backup_dir(self) -> Path:
        return self._ensure("backup")

    @property
    def manager_exe(self) -> Path:
        """Where the manager binary lives once installed (not created)."""
        return self.root / exe_name(MANAGER_NAME)

    def cargo_exe(self, name: str) -> Path:
        """Path of a binary inside ``cargo/bin`` (e.g. cargo, rustup)."""
        return self.cargo_bin / exe_name(name)
