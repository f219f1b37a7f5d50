"""
Core functionality for rustkit.

This package contains the foundational modules that other components depend on.
"""

from .dependency import DependencyResolver

from .directory import (
    APP_NAME,
    MANAGER_NAME,
    InstallDirs,
    get_config_dir,
    get_default_install_dir,
)

from .locking import LockManager

from .platform import TargetTriple, detect_target, host_triple

from .progress import Progress

from .exceptions import (
    RustkitError,
    InstallationError,
    ToolInstallError,
    SourceNotFoundError,
    MissingRestrictedSourceError,
    ConflictingToolsError,
    ToolchainNotInstalledError,
    ToolchainInstallError,
    UninstallError,
    RecordError,
    InstallRootError,
    ManifestError,
    ConfigurationError,
    EnvironmentConfigError,
    CommandError,
    DownloadError,
    ArchiveError,
    LockError,
)

__all__ = [
    # Dependency ordering
    "DependencyResolver",
    # Directories
    "APP_NAME",
    "MANAGER_NAME",
    "InstallDirs",
    "get_config_dir",
    "get_default_install_dir",
    # Locking
    "LockManager",
    # Platform
    "TargetTriple",
    "detect_target",
    "host_triple",
    # Progress
    "Progress",
    # Exceptions
    "RustkitError",
    "InstallationError",
    "ToolInstallError",
    "SourceNotFoundError",
    "MissingRestrictedSourceError",
    "ConflictingToolsError",
    "ToolchainNotInstalledError",
    "ToolchainInstallError",
    "UninstallError",
    "RecordError",
    "InstallRootError",
    "ManifestError",
    "ConfigurationError",
    "EnvironmentConfigError",
    "CommandError",
    "DownloadError",
    "ArchiveError",
    "LockError",
]
