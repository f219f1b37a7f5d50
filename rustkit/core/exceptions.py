"""
Centralized exception hierarchy for rustkit.

Every error raised by the installation engine derives from RustkitError so
the CLI can report the whole causal chain in one place.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class RustkitError(Exception):
    """Base exception for all rustkit errors."""

    pass


# ============================================================================
# Installation Exceptions
# ============================================================================


class InstallationError(RustkitError):
    """Base exception for install and update failures."""

    pass


class ToolInstallError(InstallationError):
    """Raised when a single tool fails to install."""

    def __init__(self, tool: str, reason: str):
        self.tool = tool
        self.reason = reason
        super().__init__(f"Failed to install tool '{tool}': {reason}")


class SourceNotFoundError(InstallationError):
    """Raised when a tool's declared source path does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Installation source not found: {path}")


class MissingRestrictedSourceError(InstallationError):
    """Raised when a restricted tool was selected without a user-supplied source."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(
            f"Tool '{tool}' has a restricted source that must be provided "
            "before installation (use --source NAME=PATH_OR_URL)"
        )


class ConflictingToolsError(InstallationError):
    """Raised when the selection contains tools that conflict with each other."""

    def __init__(self, pairs: list[tuple[str, str]]):
        self.pairs = pairs
        listing = ", ".join(f"'{a}' and '{b}'" for a, b in pairs)
        super().__init__(f"Conflicting tools selected: {listing}")


class ToolchainNotInstalledError(InstallationError):
    """Raised when a tool needs the Rust toolchain before it has been installed."""

    pass


class ToolchainInstallError(InstallationError):
    """Raised when bootstrapping rustup or installing the toolchain fails."""

    pass


# ============================================================================
# Uninstall Exceptions
# ============================================================================


class UninstallError(RustkitError):
    """Raised when removing a tool or the toolchain fails."""

    pass


# ============================================================================
# Record and Install Root Exceptions
# ============================================================================


class RecordError(RustkitError):
    """Raised when the installation record cannot be read or written."""

    pass


class InstallRootError(RustkitError):
    """Raised when the install root cannot be determined or does not validate."""

    pass


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ManifestError(RustkitError):
    """Raised when a toolkit manifest is unreadable or malformed."""

    pass


class ConfigurationError(RustkitError):
    """Raised when the user settings file is unreadable or malformed."""

    pass


class EnvironmentConfigError(RustkitError):
    """Raised when persistent environment configuration fails."""

    pass


# ============================================================================
# Infrastructure Exceptions
# ============================================================================


class CommandError(RustkitError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        msg = f"Command '{' '.join(cmd)}' failed with exit code {returncode}"
        if stderr:
            msg += f": {stderr.strip()}"
        super().__init__(msg)


class DownloadError(RustkitError):
    """Raised when a download fails after all retries."""

    pass


class ArchiveError(RustkitError):
    """Raised when an archive cannot be extracted or contains unsafe paths."""

    pass


class LockError(RustkitError):
    """Raised when the install root lock cannot be acquired."""

    pass
