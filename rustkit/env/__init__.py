"""
Persistent environment configuration (PATH and variables).

Usage:
    from rustkit.env import get_configurator

    env = get_configurator(install_dir, options)
    env.config_env_vars({"CARGO_HOME": str(install_dir / "cargo")})
    env.add_to_path(install_dir / "cargo" / "bin")
"""

from pathlib import Path
from typing import Optional

from ..config.options import GlobalOptions
from ..core.filesystem import IS_WINDOWS
from .base import (
    CARGO_HOME,
    PROXY_ENV_VARS,
    RUSTUP_DIST_SERVER,
    RUSTUP_ENV_VARS,
    RUSTUP_HOME,
    RUSTUP_UPDATE_ROOT,
    EnvironmentConfigurator,
)


def get_configurator(
    install_dir: Path, options: Optional[GlobalOptions] = None
) -> EnvironmentConfigurator:
    """The configurator for the host platform."""
    if IS_WINDOWS:
        from .windows import WindowsConfigurator

        return WindowsConfigurator(install_dir, options)

    from .unix import UnixConfigurator

    return UnixConfigurator(install_dir, options)


__all__ = [
    "CARGO_HOME",
    "RUSTUP_HOME",
    "RUSTUP_DIST_SERVER",
    "RUSTUP_UPDATE_ROOT",
    "RUSTUP_ENV_VARS",
    "PROXY_ENV_VARS",
    "EnvironmentConfigurator",
    "get_configurator",
]
