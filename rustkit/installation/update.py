"""
Version comparison between an installation and a newer toolkit.

Versions are opaque labels compared for equality only: toolchain channels
like ``stable`` or ``nightly-2024-05-01`` are not SemVer, and a toolkit may
deliberately roll a tool back.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..config.manifest import ToolkitManifest
from ..toolchain.components import Component, ComponentType
from .record import InstallationRecord

logger = logging.getLogger(__name__)


@dataclass
class VersionDiff:
    """
    Installed and target version of one component.

    Attributes:
        from_version: Version in the installation (None if unknown or absent)
        to_version: Version declared by the target toolkit
        is_newly_supported: Absent from the installation, versioned in the target
    """

    from_version: Optional[str]
    to_version: Optional[str]
    is_newly_supported: bool = False

    @property
    def changed(self) -> bool:
        return self.from_version != self.to_version

    def __str__(self) -> str:
        if self.is_newly_supported:
            return f"(new) {self.to_version}"
        if not self.changed:
            return self.to_version or ""
        return f"{self.from_version or 'N/A'} -> {self.to_version or 'N/A'}"


def installed_components(
    record: InstallationRecord, manifest: Optional[ToolkitManifest] = None
) -> list[Component]:
    """
    Component list of an existing installation.

    Built from the saved manifest copy (loaded from ``record.root`` unless
    given) with ``installed`` and versions taken from the record. Tools the
    record knows but the manifest does not are appended.

    Raises:
        ManifestError: If no manifest is given and the saved copy is unreadable
    """
    if manifest is None:
        manifest = ToolkitManifest.load_from_install_dir(record.root)
    components = manifest.current_target_components(check_existing=False)

    toolchain = record.installed_toolchain()
    recorded = list(record.installed_tools())
    for component in components:
        if component.is_from_toolchain():
            if toolchain is not None:
                channel, extras = toolchain
                component.version = channel
                component.installed = (
                    component.kind is ComponentType.TOOLCHAIN_PROFILE or component.name in extras
                )
            continue
        if component.name in recorded:
            component.installed = True
            version = record.get_tool_version(component.name)
            if version is not None:
                component.version = version

    known = {c.name for c in components}
    for name in recorded:
        if name not in known:
            components.append(
                Component(
                    name=name,
                    kind=ComponentType.TOOL,
                    version=record.get_tool_version(name),
                    installed=True,
                )
            )
    return components


def diff_versions(
    installed: Iterable[Component], target: Iterable[Component]
) -> dict[str, VersionDiff]:
    """Per target component, how its version moves from the installation."""
    installed_versions = {c.name: c.version for c in installed if c.installed}
    diffs = {}
    for component in target:
        if component.name in installed_versions:
            diffs[component.name] = VersionDiff(
                installed_versions[component.name], component.version
            )
        else:
            diffs[component.name] = VersionDiff(
                None, component.version, is_newly_supported=component.version is not None
            )
    return diffs


def default_update_selection(
    target: Iterable[Component],
    diffs: dict[str, VersionDiff],
    user_selected: Iterable[str] = (),
) -> list[Component]:
    """
    Components updated when the user does not customise the selection.

    That is every previously installed component whose version changed,
    plus whatever the user named explicitly. Newly supported components are
    only included on request.
    """
    target = list(target)
    names = {
        name for name, diff in diffs.items() if diff.changed and not diff.is_newly_supported
    }

    available = {c.name for c in target}
    for name in user_selected:
        if name not in available:
            logger.warning(f"Component '{name}' is not part of the target toolkit, ignoring it")
            continue
        names.add(name)

    return [c for c in target if c.name in names]
