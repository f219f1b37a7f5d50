"""
Editor plugin handling (VS Code ``.vsix`` extensions).

Extensions are installed through whichever VS Code flavour is on PATH,
trying the hosts in a fixed fallback order.
"""

import json
import logging
import zipfile
from pathlib import Path
from typing import Optional

from ..core.exceptions import CommandError, ToolInstallError
from ..core.filesystem import IS_WINDOWS, find_executable
from ..core.process import run_command

logger = logging.getLogger(__name__)

PLUGIN_SUFFIXES = (".vsix",)

_HOST_SUFFIX = ".cmd" if IS_WINDOWS else ""

# Fallback order; specialised distributions go before upstream ``code``
VSCODE_FAMILY = [
    f"{name}{_HOST_SUFFIX}"
    for name in (
        "codearts-rust",
        "codium",
        "hwcode",
        "wecode",
        "code-exploration",
        "code-oss",
        "code",
    )
]


def is_supported(path: Path) -> bool:
    path = Path(path)
    return path.is_file() and path.suffix.lower() in PLUGIN_SUFFIXES


def available_hosts() -> list[Path]:
    """Executables of the installed VS Code flavours, in fallback order."""
    hosts = []
    for program in VSCODE_FAMILY:
        found = find_executable(program)
        if found is not None:
            hosts.append(found)
    return hosts


def vsix_identifier(path: Path) -> Optional[str]:
    """
    Read ``publisher.name`` from the extension's package.json.

    ``--uninstall-extension`` wants the identifier rather than the file.
    Returns None when the archive cannot be read.
    """
    try:
        with zipfile.ZipFile(path) as archive:
            package = json.loads(archive.read("extension/package.json"))
    except (OSError, KeyError, ValueError, zipfile.BadZipFile) as e:
        logger.debug(f"Unable to read extension manifest from {path}: {e}")
        return None
    publisher = package.get("publisher")
    name = package.get("name")
    if not publisher or not name:
        return None
    return f"{publisher}.{name}"


def install(path: Path, tool_name: str = "") -> Optional[Path]:
    """
    Install the extension at ``path`` into the first host that accepts it.

    Returns:
        The host the extension was installed into, or None when no host
        is available (the plugin is still archived by the caller)

    Raises:
        ToolInstallError: If every available host rejected the extension
    """
    hosts = available_hosts()
    if not hosts:
        logger.warning(
            f"No VS Code compatible editor found, '{Path(path).name}' was not installed "
            "into any editor"
        )
        return None

    errors = []
    for host in hosts:
        logger.info(f"Installing extension '{Path(path).name}' with '{host.name}'")
        try:
            run_command([host, "--install-extension", path])
            return host
        except CommandError as e:
            logger.debug(f"'{host.name}' could not install the extension: {e}")
            errors.append(f"{host.name}: {e}")
    raise ToolInstallError(tool_name or Path(path).stem, "; ".join(errors))


def uninstall(path: Path) -> None:
    """
    Remove the extension from every available host.

    Failures are tolerated per host, since the extension or the editor
    may already be gone.
    """
    target = vsix_identifier(path) or str(path)
    for host in available_hosts():
        logger.info(f"Uninstalling extension '{target}' from '{host.name}'")
        try:
            run_command([host, "--uninstall-extension", target])
        except CommandError as e:
            logger.info(f"Skipped removing '{target}' from '{host.name}': {e}")
