"""
Install instructions for VS Code and its derivatives.

The archive distribution is used instead of the vendor installer: the
extracted editor is moved under ``tools/``, its ``bin/`` directory is put
on PATH and a desktop shortcut is created. The shortcut is a convenience
only, so failing to create it is a warning.
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ...core.directory import APP_NAME, home_dir
from ...core.exceptions import CommandError
from ...core.filesystem import IS_WINDOWS, find_executable, move_to, safe_rmtree, set_executable
from ...core.process import run_command

logger = logging.getLogger(__name__)

SHORTCUT_MARKER = f"# Generated by {APP_NAME}"


def applications_dir() -> Optional[Path]:
    """Directory for freedesktop ``.desktop`` entries (Linux only)."""
    if IS_WINDOWS or sys.platform == "darwin":
        return None
    data_home = os.environ.get("XDG_DATA_HOME")
    base = Path(data_home) if data_home else home_dir() / ".local" / "share"
    return base / "applications"


def desktop_dir() -> Optional[Path]:
    """The user's desktop folder on Windows."""
    if not IS_WINDOWS:
        return None
    desktop = home_dir() / "Desktop"
    return desktop if desktop.is_dir() else None


@dataclass(frozen=True)
class VSCodeInstaller:
    """
    One VS Code flavour.

    Attributes:
        cmd: Command the editor is invoked with (``code``, ``codium``)
        tool_name: Directory name under ``tools/``
        shortcut_name: Human readable name used for the shortcut
        binary_name: Main executable in the extracted folder (Windows shortcut target)
    """

    cmd: str
    tool_name: str
    shortcut_name: str
    binary_name: str

    def already_installed(self) -> bool:
        return find_executable(self.cmd) is not None

    def install_dir(self, config) -> Path:
        return config.dirs.tools_dir / self.tool_name

    def install(self, path: Path, config) -> list[Path]:
        if self.already_installed():
            logger.info(f"Skipping '{self.tool_name}': '{self.cmd}' is already available")
            return []

        editor_dir = move_to(path, self.install_dir(config))
        config.env.add_to_path(editor_dir / "bin")

        paths = [editor_dir]
        shortcut = self._create_shortcut(editor_dir)
        if shortcut is not None:
            paths.append(shortcut)
        return paths

    def uninstall(self, config, record=None) -> None:
        editor_dir = self.install_dir(config)
        config.env.remove_from_path(editor_dir / "bin")
        if editor_dir.exists():
            safe_rmtree(editor_dir)
        self._remove_shortcut()
        # Windows shortcuts are only known through the record
        for path in record.paths if record is not None else []:
            if path.suffix == ".lnk" and path.is_file():
                path.unlink()

    # ------------------------------------------------------------------
    # Shortcuts
    # ------------------------------------------------------------------

    def _desktop_entry_path(self) -> Optional[Path]:
        apps = applications_dir()
        return apps / f"{self.cmd}.desktop" if apps else None

    def _create_shortcut(self, editor_dir: Path) -> Optional[Path]:
        try:
            if IS_WINDOWS:
                return self._create_windows_shortcut(editor_dir)
            return self._create_desktop_entry()
        except (OSError, CommandError) as e:
            logger.warning(f"Unable to create a shortcut for '{self.tool_name}': {e}")
            return None

    def _create_desktop_entry(self) -> Optional[Path]:
        entry_path = self._desktop_entry_path()
        if entry_path is None:
            logger.debug(f"No shortcut location for '{self.tool_name}' on this platform")
            return None

        entry_path.parent.mkdir(parents=True, exist_ok=True)
        entry_path.write_text(
            f"{SHORTCUT_MARKER}\n"
            "[Desktop Entry]\n"
            f"Name={self.shortcut_name}\n"
            "Comment=Code Editing. Redefined.\n"
            "GenericName=Text Editor\n"
            f"Exec={self.cmd} %F\n"
            "Type=Application\n"
            "StartupNotify=false\n"
            f"StartupWMClass={self.cmd}\n"
            "Categories=TextEditor;Development;IDE;\n"
            f"MimeType=application/x-{self.cmd}-workspace;\n",
            encoding="utf-8",
        )
        set_executable(entry_path)
        return entry_path

    def _create_windows_shortcut(self, editor_dir: Path) -> Optional[Path]:
        desktop = desktop_dir()
        if desktop is None:
            logger.warning(f"No desktop folder found, skipping shortcut for '{self.tool_name}'")
            return None
        shortcut = desktop / f"{self.shortcut_name}.lnk"
        target = editor_dir / f"{self.binary_name}.exe"
        script = (
            f"$s=(New-Object -COM WScript.Shell).CreateShortcut('{shortcut}');"
            f"$s.TargetPath='{target}';$s.Description='{SHORTCUT_MARKER}';$s.Save()"
        )
        run_command(["powershell.exe", "-NoProfile", "-Command", script])
        return shortcut

    def _remove_shortcut(self) -> None:
        entry_path = self._desktop_entry_path()
        if entry_path is None or not entry_path.is_file():
            return
        try:
            if SHORTCUT_MARKER in entry_path.read_text(encoding="utf-8"):
                entry_path.unlink()
        except OSError as e:
            logger.warning(f"Unable to remove shortcut '{entry_path}': {e}")


VSCODE = VSCodeInstaller("code", "vscode", "Visual Studio Code", "Code")
VSCODIUM = VSCodeInstaller("codium", "vscodium", "VSCodium", "VSCodium")
CODEARTS_RUST = VSCodeInstaller(
    "codearts-rust", "codearts-rust", "CodeArts IDE for Rust", "codearts-rust"
)
