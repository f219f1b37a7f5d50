"""
Environment configurator interface.

A configurator persists environment variables and PATH entries for the
current user (registry on Windows, shell rc files on Unix) and mirrors
every change into the running process. Process changes always happen,
even when persistent changes are disabled with ``no_modify_env`` or
``no_modify_path``, because later installation steps depend on them.
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Mapping, Optional

from ..config.options import GlobalOptions
from ..core.directory import InstallDirs

logger = logging.getLogger(__name__)

CARGO_HOME = "CARGO_HOME"
RUSTUP_HOME = "RUSTUP_HOME"
RUSTUP_DIST_SERVER = "RUSTUP_DIST_SERVER"
RUSTUP_UPDATE_ROOT = "RUSTUP_UPDATE_ROOT"

RUSTUP_ENV_VARS = (CARGO_HOME, RUSTUP_HOME, RUSTUP_DIST_SERVER, RUSTUP_UPDATE_ROOT)
PROXY_ENV_VARS = ("http_proxy", "https_proxy", "no_proxy")


# ============================================================================
# Current process helpers
# ============================================================================


def _same_path(a: str, b: str) -> bool:
    return os.path.normcase(os.path.normpath(a)) == os.path.normcase(os.path.normpath(b))


def set_process_vars(variables: Mapping[str, str]) -> None:
    for key, value in variables.items():
        os.environ[key] = value


def unset_process_vars(names: Iterable[str]) -> None:
    for name in names:
        os.environ.pop(name, None)


def prepend_process_path(path: Path) -> bool:
    """Put ``path`` first on the process PATH; no-op when already present."""
    entries = [p for p in os.environ.get("PATH", "").split(os.pathsep) if p]
    if any(_same_path(entry, str(path)) for entry in entries):
        return False
    os.environ["PATH"] = os.pathsep.join([str(path), *entries])
    return True


def remove_process_path(path: Path) -> bool:
    """Drop every occurrence of ``path`` from the process PATH."""
    value = os.environ.get("PATH")
    if value is None:
        return False
    entries = value.split(os.pathsep)
    kept = [entry for entry in entries if not (entry and _same_path(entry, str(path)))]
    if len(kept) == len(entries):
        return False
    os.environ["PATH"] = os.pathsep.join(kept)
    return True


# ============================================================================
# Configurator interface
# ============================================================================


class EnvironmentConfigurator(ABC):
    """
    Idempotent, platform specific mutator of the user's environment.

    Args:
        install_dir: Install root the managed variables point into
        options: Global flags (``no_modify_env``, ``no_modify_path``)
    """

    def __init__(self, install_dir: Path, options: Optional[GlobalOptions] = None):
        self.install_dir = Path(install_dir)
        self.options = options or GlobalOptions()
        self.dirs = InstallDirs(self.install_dir)

    @property
    def cargo_bin(self) -> Path:
        # not created on access, uninstall may run after it was removed
        return self.install_dir / "cargo" / "bin"

    @abstractmethod
    def config_env_vars(self, variables: Mapping[str, str]) -> None:
        """Persist ``variables`` for the user and apply them to this process."""
        pass

    @abstractmethod
    def add_to_path(self, path: Path) -> None:
        """Prepend ``path`` to PATH; adding an existing entry changes nothing."""
        pass

    @abstractmethod
    def remove_from_path(self, path: Path) -> None:
        """Remove exactly the ``path`` entry from PATH, leaving siblings intact."""
        pass

    @abstractmethod
    def remove_rustup_env_vars(self, names: Iterable[str] = RUSTUP_ENV_VARS) -> None:
        """
        Undo ``config_env_vars``: drop the managed variables and the PATH
        entries for the install root and ``cargo/bin``.
        """
        pass

    @abstractmethod
    def remove_self(self, current_exe: Optional[Path] = None) -> None:
        """Delete the install root, including the running manager binary."""
        pass

    def register_program(self, manager_exe: Path, display_name: str, version: str) -> None:
        """Add the manager to the OS list of installed programs, where there is one."""
        logger.debug("No installed-programs registry on this platform")

    def unregister_program(self) -> None:
        logger.debug("No installed-programs registry on this platform")

    def apply_to_process(self, variables: Mapping[str, str]) -> None:
        """Apply ``variables`` to the running process only."""
        set_process_vars(variables)

    def _forget_process_state(self, names: Iterable[str]) -> None:
        unset_process_vars(names)
        remove_process_path(self.install_dir)
        remove_process_path(self.cargo_bin)
