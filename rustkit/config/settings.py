"""YAML user settings for rustkit.

The settings file lives in the per-user config directory and supplies
defaults that CLI flags can override:

    rustup_dist_server: https://static.rust-lang.org
    rustup_update_root: https://static.rust-lang.org/rustup
    cargo_registry:
      name: mirror
      url: sparse+https://mirror.example.com/index/
    default_install_dir: ~/rust
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from ..core.directory import get_config_dir, get_default_install_dir
from ..core.exceptions import ConfigurationError
from ..core.filesystem import atomic_write

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.yaml"

DEFAULT_RUSTUP_DIST_SERVER = "https://static.rust-lang.org"
DEFAULT_RUSTUP_UPDATE_ROOT = "https://static.rust-lang.org/rustup"


@dataclass
class CargoRegistry:
    """A registry replacing crates.io in the managed cargo config."""

    name: str
    url: str


@dataclass
class UserSettings:
    """User-level defaults."""

    rustup_dist_server: str = DEFAULT_RUSTUP_DIST_SERVER
    rustup_update_root: str = DEFAULT_RUSTUP_UPDATE_ROOT
    cargo_registry: Optional[CargoRegistry] = None
    default_install_dir: Path = field(default_factory=get_default_install_dir)

    def to_dict(self) -> dict:
        data = {
            "rustup_dist_server": self.rustup_dist_server,
            "rustup_update_root": self.rustup_update_root,
            "default_install_dir": str(self.default_install_dir),
        }
        if self.cargo_registry:
            data["cargo_registry"] = {
                "name": self.cargo_registry.name,
                "url": self.cargo_registry.url,
            }
        return data

    def save(self, config_dir: Optional[Path] = None) -> Path:
        """Write the settings file and return its path."""
        path = (config_dir or get_config_dir()) / SETTINGS_FILENAME
        atomic_write(path, yaml.safe_dump(self.to_dict(), sort_keys=False))
        return path


def load_settings(config_dir: Optional[Path] = None) -> UserSettings:
    """
    Load user settings, falling back to defaults when no file exists.

    Args:
        config_dir: Directory holding settings.yaml (default: per-user config dir)

    Raises:
        ConfigurationError: If the file is not valid YAML or has the wrong shape
    """
    path = (config_dir or get_config_dir()) / SETTINGS_FILENAME
    if not path.exists():
        logger.debug(f"No settings file at {path}, using defaults")
        return UserSettings()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax in {path}: {e}") from e

    if data is None:
        return UserSettings()
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping")

    settings = UserSettings()
    if "rustup_dist_server" in data:
        settings.rustup_dist_server = str(data["rustup_dist_server"])
    if "rustup_update_root" in data:
        settings.rustup_update_root = str(data["rustup_update_root"])
    if "default_install_dir" in data:
        settings.default_install_dir = Path(str(data["default_install_dir"])).expanduser()

    registry = data.get("cargo_registry")
    if registry is not None:
        if not isinstance(registry, dict) or not {"name", "url"} <= registry.keys():
            raise ConfigurationError("cargo_registry must have 'name' and 'url'")
        settings.cargo_registry = CargoRegistry(str(registry["name"]), str(registry["url"]))

    return settings
