"""
Windows environment configuration through the per-user registry.

Variables are stored under ``HKCU\\Environment``. The user PATH is never
rewritten wholesale: the value is read, the exact ``;``-delimited entry is
spliced in or out (see ``regcodec``) and everything else, including
entries managed by other software, is written back untouched. After each
change a ``WM_SETTINGCHANGE`` broadcast tells running programs to reload.

Registry access, the broadcast and deferred file deletion are injectable
so the logic can be exercised on any platform.
"""

import logging
import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional

from ..core.directory import APP_NAME
from ..core.exceptions import EnvironmentConfigError
from ..core.filesystem import remove_path
from . import regcodec
from .base import (
    RUSTUP_ENV_VARS,
    EnvironmentConfigurator,
    prepend_process_path,
    remove_process_path,
    set_process_vars,
)

logger = logging.getLogger(__name__)

ENVIRONMENT_KEY = "Environment"
UNINSTALL_KEY = rf"Software\Microsoft\Windows\CurrentVersion\Uninstall\{APP_NAME}"

HWND_BROADCAST = 0xFFFF
WM_SETTINGCHANGE = 0x001A
SMTO_ABORTIFHUNG = 0x0002
BROADCAST_TIMEOUT_MS = 5000
MOVEFILE_DELAY_UNTIL_REBOOT = 0x4


# ============================================================================
# Registry backends
# ============================================================================


class RegistryBackend(ABC):
    """Minimal view of ``HKEY_CURRENT_USER``."""

    @abstractmethod
    def get_value(self, key: str, name: str) -> Optional[tuple[Any, int]]:
        """``(value, type)`` of ``key\\name``, or None when it does not exist."""
        pass

    @abstractmethod
    def set_value(self, key: str, name: str, value: str, value_type: int) -> None:
        pass

    @abstractmethod
    def delete_value(self, key: str, name: str) -> None:
        """Delete ``key\\name``; a missing value is not an error."""
        pass

    @abstractmethod
    def delete_key(self, key: str) -> None:
        """Delete a key holding only values; a missing key is not an error."""
        pass


class WinRegistry(RegistryBackend):
    """``winreg`` implementation; only importable on Windows."""

    def __init__(self):
        import winreg

        self._winreg = winreg

    def get_value(self, key, name):
        winreg = self._winreg
        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, key, 0, winreg.KEY_READ) as handle:
                return winreg.QueryValueEx(handle, name)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise EnvironmentConfigError(f"Unable to read registry value {key}\\{name}: {e}") from e

    def set_value(self, key, name, value, value_type):
        winreg = self._winreg
        try:
            with winreg.CreateKeyEx(winreg.HKEY_CURRENT_USER, key, 0, winreg.KEY_WRITE) as handle:
                winreg.SetValueEx(handle, name, 0, value_type, value)
        except OSError as e:
            raise EnvironmentConfigError(f"Unable to write registry value {key}\\{name}: {e}") from e

    def delete_value(self, key, name):
        winreg = self._winreg
        try:
            with winreg.OpenKey(
                winreg.HKEY_CURRENT_USER, key, 0, winreg.KEY_SET_VALUE
            ) as handle:
                winreg.DeleteValue(handle, name)
        except FileNotFoundError:
            return
        except OSError as e:
            raise EnvironmentConfigError(f"Unable to delete registry value {key}\\{name}: {e}") from e

    def delete_key(self, key):
        winreg = self._winreg
        try:
            winreg.DeleteKey(winreg.HKEY_CURRENT_USER, key)
        except FileNotFoundError:
            return
        except OSError as e:
            raise EnvironmentConfigError(f"Unable to delete registry key {key}: {e}") from e


# ============================================================================
# Win32 calls
# ============================================================================


def broadcast_settings_change() -> None:
    """Notify top-level windows that the environment changed."""
    import ctypes

    result = ctypes.c_ulong()
    ctypes.windll.user32.SendMessageTimeoutW(
        HWND_BROADCAST,
        WM_SETTINGCHANGE,
        0,
        "Environment",
        SMTO_ABORTIFHUNG,
        BROADCAST_TIMEOUT_MS,
        ctypes.byref(result),
    )


def schedule_delete_on_reboot(path: Path) -> bool:
    """Ask Windows to delete ``path`` at the next reboot."""
    import ctypes

    return bool(
        ctypes.windll.kernel32.MoveFileExW(str(path), None, MOVEFILE_DELAY_UNTIL_REBOOT)
    )


# ============================================================================
# Configurator
# ============================================================================


class WindowsConfigurator(EnvironmentConfigurator):
    """
    Persists the environment in ``HKCU\\Environment``.

    Args:
        registry: Registry backend (``WinRegistry`` by default)
        broadcast: Called after every persistent change
        schedule_delete: Deferred deletion of files still in use
    """

    def __init__(
        self,
        install_dir,
        options=None,
        registry: Optional[RegistryBackend] = None,
        broadcast: Optional[Callable[[], None]] = None,
        schedule_delete: Optional[Callable[[Path], bool]] = None,
    ):
        super().__init__(install_dir, options)
        self.registry = registry if registry is not None else WinRegistry()
        self.broadcast = broadcast or broadcast_settings_change
        self.schedule_delete = schedule_delete or schedule_delete_on_reboot

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def config_env_vars(self, variables: Mapping[str, str]) -> None:
        set_process_vars(variables)
        if not self.options.should_modify_env():
            logger.info("Skipping persistent environment changes (--no-modify-env)")
            return
        logger.info("Writing environment variables to the user registry")
        for key, value in variables.items():
            self.registry.set_value(ENVIRONMENT_KEY, key, value, regcodec.REG_EXPAND_SZ)
        self.broadcast()

    def remove_rustup_env_vars(self, names: Iterable[str] = RUSTUP_ENV_VARS) -> None:
        names = list(names)
        self._forget_process_state(names)
        if not self.options.should_modify_env():
            logger.info("Skipping persistent environment changes (--no-modify-env)")
            return
        for path in (self.cargo_bin, self.install_dir):
            self._update_user_path(regcodec.remove_segment, path)
        for name in names:
            self.registry.delete_value(ENVIRONMENT_KEY, name)
        self.broadcast()

    # ------------------------------------------------------------------
    # PATH
    # ------------------------------------------------------------------

    def _user_path(self) -> Optional[str]:
        """The user PATH, or None when it is not a string and must not be touched."""
        found = self.registry.get_value(ENVIRONMENT_KEY, "PATH")
        if found is None:
            return ""
        value, value_type = found
        decoded = regcodec.decode_value(value, value_type)
        if decoded is None:
            logger.warning(
                "The user PATH registry value is not a string, leaving it unchanged; "
                "add the install directories to PATH manually"
            )
        return decoded

    def _update_user_path(self, splice, path: Path) -> bool:
        current = self._user_path()
        if current is None:
            return False
        updated = splice(current, str(path))
        if updated == current:
            return False
        self.registry.set_value(ENVIRONMENT_KEY, "PATH", updated, regcodec.REG_EXPAND_SZ)
        return True

    def add_to_path(self, path: Path) -> None:
        prepend_process_path(path)
        if not self.options.should_modify_path():
            logger.debug(f"Not persisting PATH entry {path}")
            return
        if self._update_user_path(regcodec.insert_segment, path):
            self.broadcast()

    def remove_from_path(self, path: Path) -> None:
        remove_process_path(path)
        if not self.options.should_modify_path():
            return
        if self._update_user_path(regcodec.remove_segment, path):
            self.broadcast()

    # ------------------------------------------------------------------
    # Installed programs
    # ------------------------------------------------------------------

    def register_program(self, manager_exe: Path, display_name: str, version: str) -> None:
        found = self.registry.get_value(UNINSTALL_KEY, "UninstallString")
        if found is not None:
            previous = regcodec.decode_value(*found) or ""
            previous_exe = Path(previous.split('"')[1]) if previous.count('"') >= 2 else None
            if previous_exe is not None and previous_exe.parent.exists():
                logger.debug(f"Keeping existing uninstall entry for {previous_exe}")
                return

        entries = {
            "DisplayName": display_name,
            "DisplayVersion": version,
            "Publisher": APP_NAME,
            "InstallLocation": str(self.install_dir),
            "UninstallString": f'"{manager_exe}" uninstall',
        }
        for name, value in entries.items():
            self.registry.set_value(UNINSTALL_KEY, name, value, regcodec.REG_SZ)
        logger.debug(f"Registered {display_name} in installed programs")

    def unregister_program(self) -> None:
        self.registry.delete_key(UNINSTALL_KEY)

    # ------------------------------------------------------------------
    # Self removal
    # ------------------------------------------------------------------

    def remove_self(self, current_exe: Optional[Path] = None) -> None:
        """
        Delete the install root while the manager binary is still running.

        Everything except ``current_exe`` is removed now; the binary and the
        then nearly empty root are scheduled for deletion at reboot.
        """
        current_exe = Path(current_exe or sys.argv[0]).resolve()

        for dirpath, dirnames, filenames in os.walk(self.install_dir, topdown=False):
            for filename in filenames:
                entry = Path(dirpath) / filename
                if entry.resolve() == current_exe:
                    continue
                try:
                    remove_path(entry)
                except OSError as e:
                    logger.warning(f"Unable to remove '{entry}': {e}")
            for dirname in dirnames:
                try:
                    (Path(dirpath) / dirname).rmdir()
                except OSError:
                    # still holds a file in use, already reported above
                    continue

        self.unregister_program()
        self.remove_from_path(self.install_dir)

        if current_exe.exists() and current_exe.is_relative_to(self.install_dir.resolve()):
            if not self.schedule_delete(current_exe):
                logger.warning(f"Unable to schedule removal of '{current_exe}'")

        try:
            self.install_dir.rmdir()
        except OSError:
            if not self.schedule_delete(self.install_dir):
                logger.debug(f"Install directory '{self.install_dir}' is left behind")
