"""
Installation lifecycle: record, install/update and uninstall orchestration.

Usage:
    from rustkit.installation import InstallConfiguration

    config = InstallConfiguration(install_dir, manifest, options)
    config.install(manifest.current_target_components())
"""

from .record import (
    RECORD_FILENAME,
    InstallationRecord,
    RustRecord,
    ToolRecord,
    resolve_install_dir,
)
from .install import InstallConfiguration, InstallState, reject_conflicting_tools
from .uninstall import UninstallConfiguration
from .update import (
    VersionDiff,
    default_update_selection,
    diff_versions,
    installed_components,
)

__all__ = [
    "RECORD_FILENAME",
    "InstallationRecord",
    "RustRecord",
    "ToolRecord",
    "resolve_install_dir",
    "InstallConfiguration",
    "InstallState",
    "reject_conflicting_tools",
    "UninstallConfiguration",
    "VersionDiff",
    "default_update_selection",
    "diff_versions",
    "installed_components",
]
