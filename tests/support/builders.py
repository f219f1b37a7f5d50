"""Builders for manifests and source packages used across the test suite."""

import io
import tarfile
from pathlib import Path
from typing import Optional

from rustkit.config.manifest import ToolkitManifest
from rustkit.core.filesystem import set_executable

TARGET = "x86_64-unknown-linux-gnu"


def build_manifest(
    tools: Optional[dict] = None,
    *,
    name: str = "demo",
    version: str = "1.0.0",
    channel: str = "stable",
    optional_components: Optional[list[str]] = None,
    proxy: Optional[dict] = None,
) -> ToolkitManifest:
    """A manifest whose tools are declared for ``TARGET``."""
    data = {
        "name": name,
        "version": version,
        "rust": {"channel": channel, "profile": "minimal"},
    }
    if optional_components:
        data["rust"]["optional-components"] = list(optional_components)
    if tools:
        data["tools"] = {"target": {TARGET: tools}}
    if proxy:
        data["proxy"] = proxy
    return ToolkitManifest.from_dict(data)


def write_executable(path: Path, content: str = "#!/bin/sh\necho hello\n") -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    set_executable(path)
    return path


def write_tarball(path: Path, members: dict[str, str]) -> Path:
    """Create a ``.tar.gz`` holding ``members`` (archive name -> text)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        for name, text in members.items():
            data = text.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(data))
    return path
