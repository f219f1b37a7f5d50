"""
Visual Studio Build Tools (MSVC linker and Windows SDK), Windows only.

The vendor bootstrapper is run unattended with the workloads Rust needs.
A copy of the bootstrapper is kept under ``tools/buildtools`` so it can be
used to modify or remove the installation by hand later; rustkit itself
never uninstalls MSVC because other software may depend on it.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from ...core.exceptions import ToolInstallError
from ...core.filesystem import copy_into, find_executable, remove_path
from ...core.process import run_command

logger = logging.getLogger(__name__)

INSTALLER_NAMES = ("vs_BuildTools.exe", "vs_buildtools.exe")

MSVC_COMPONENT = "Microsoft.VisualStudio.Component.VC.Tools.x86.x64"
WINSDK_COMPONENT = "Microsoft.VisualStudio.Component.Windows11SDK.22000"

# Exit codes that still mean success
REBOOT_INITIATED = 1641
REBOOT_REQUIRED = 3010


def _find_installer(path: Path) -> Optional[Path]:
    if path.is_file():
        return path
    for name in INSTALLER_NAMES:
        candidate = path / name
        if candidate.is_file():
            return candidate
    return None


def windows_sdk_installed() -> bool:
    """True when a kernel32.lib is reachable through the LIB variable."""
    lib = os.environ.get("LIB", "")
    return any((Path(p) / "kernel32.lib").exists() for p in lib.split(os.pathsep) if p)


def required_components() -> list[str]:
    if windows_sdk_installed():
        return [MSVC_COMPONENT]
    return [MSVC_COMPONENT, WINSDK_COMPONENT]


def already_installed() -> bool:
    return find_executable("cl") is not None


def install(path: Path, config) -> list[Path]:
    if not path.exists():
        raise ToolInstallError("buildtools", f"path does not exist: {path}")

    installer = _find_installer(path)
    if installer is None:
        raise ToolInstallError("buildtools", "unable to find the build tools installer binary")

    args = ["--wait", "--nocache", "--passive", "--norestart", "--focusedUi"]
    if path.is_dir():
        # offline layout next to the bootstrapper
        args.append("--noWeb")
    for component in required_components():
        args.extend(["--add", component])

    kept_copy = copy_into(installer, config.dirs.tools_dir / "buildtools")

    logger.info("Installing MSVC build tools, this may take a while")
    result = run_command(
        [installer, *args], ok_codes=(0, REBOOT_INITIATED, REBOOT_REQUIRED)
    )
    if result.returncode != 0:
        logger.warning("MSVC build tools installed, a reboot is required before use")
    else:
        logger.info("MSVC build tools installed")
    return [kept_copy.parent]


def uninstall(config, record=None) -> None:
    logger.info(
        "Leaving Visual Studio Build Tools installed; "
        "remove them from 'Apps & features' if no longer needed"
    )
    for path in record.paths if record is not None else []:
        remove_path(path)
