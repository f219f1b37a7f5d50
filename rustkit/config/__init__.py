"""
Configuration for rustkit: global options, user settings, toolkit manifests
and the managed cargo configuration.
"""

from .options import GlobalOptions
from .settings import CargoRegistry, UserSettings, load_settings
from .cargo_config import CargoConfig
from .manifest import (
    MANIFEST_FILENAME,
    ToolkitManifest,
    RustToolchain,
    Proxy,
    ToolInfo,
    ToolSource,
    VersionSource,
    GitSource,
    UrlSource,
    PathSource,
    RestrictedSource,
)

__all__ = [
    "GlobalOptions",
    "CargoRegistry",
    "UserSettings",
    "load_settings",
    "CargoConfig",
    "MANIFEST_FILENAME",
    "ToolkitManifest",
    "RustToolchain",
    "Proxy",
    "ToolInfo",
    "ToolSource",
    "VersionSource",
    "GitSource",
    "UrlSource",
    "PathSource",
    "RestrictedSource",
]
