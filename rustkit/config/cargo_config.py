"""Editing of the managed cargo ``config.toml``.

Only the keys rustkit owns are touched: ``[source.*]`` for the registry
override and ``[patch.crates-io]`` for crate tools. Anything else a user
added to the file is preserved.
"""

import logging
import tomllib
from pathlib import Path
from typing import Union

import tomli_w

from ..core.exceptions import InstallationError
from ..core.filesystem import atomic_write

logger = logging.getLogger(__name__)

CARGO_CONFIG_FILENAME = "config.toml"


class CargoConfig:
    """In-memory view of a cargo ``config.toml``."""

    def __init__(self, data: dict | None = None):
        self.data: dict = data if data is not None else {}

    @classmethod
    def load_from_dir(cls, cargo_home: Path) -> "CargoConfig":
        """Load ``<cargo_home>/config.toml``; an absent file yields an empty config."""
        path = Path(cargo_home) / CARGO_CONFIG_FILENAME
        if not path.is_file():
            return cls()
        try:
            with open(path, "rb") as f:
                return cls(tomllib.load(f))
        except tomllib.TOMLDecodeError as e:
            raise InstallationError(f"Invalid cargo config {path}: {e}") from e

    def write_to_dir(self, cargo_home: Path) -> Path:
        path = Path(cargo_home) / CARGO_CONFIG_FILENAME
        atomic_write(path, tomli_w.dumps(self.data))
        logger.debug(f"Wrote cargo config: {path}")
        return path

    def add_source(self, name: str, url: str, as_default: bool = True) -> "CargoConfig":
        """
        Register a registry source.

        The first source added also creates ``[source.crates-io]`` pointing
        at it; later ones only take over when ``as_default`` is set.
        """
        sources = self.data.setdefault("source", {})
        crates_io = sources.get("crates-io")
        if crates_io is None:
            sources["crates-io"] = {"replace-with": name}
        elif as_default:
            crates_io["replace-with"] = name
        sources[name] = {"registry": url}
        return self

    def add_patch(self, name: str, path: Union[str, Path]) -> "CargoConfig":
        patches = self.data.setdefault("patch", {}).setdefault("crates-io", {})
        # cargo accepts forward slashes everywhere and they need no escaping
        patches[name] = {"path": str(path).replace("\\", "/")}
        return self

    def remove_patch(self, name: str) -> "CargoConfig":
        patch_section = self.data.get("patch", {})
        patches = patch_section.get("crates-io")
        if not patches:
            return self
        patches.pop(name, None)
        if not patches:
            del patch_section["crates-io"]
        if not patch_section:
            self.data.pop("patch", None)
        return self

    def patches(self) -> dict:
        return dict(self.data.get("patch", {}).get("crates-io", {}))
