"""Selectable installation units."""

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from ..config.manifest import ToolInfo

_ids = itertools.count()


class ComponentType(Enum):
    TOOL = "tool"
    TOOLCHAIN_COMPONENT = "toolchain-component"
    TOOLCHAIN_PROFILE = "toolchain-profile"

    def is_from_toolchain(self) -> bool:
        return self in (ComponentType.TOOLCHAIN_COMPONENT, ComponentType.TOOLCHAIN_PROFILE)


@dataclass
class Component:
    """
    One selectable unit of installation.

    ``id`` is unique within a process only and never persisted. ``installed``
    mirrors the installation record at the time the list was built.
    """

    name: str
    kind: ComponentType = ComponentType.TOOL
    display_name: str = ""
    version: Optional[str] = None
    desc: str = ""
    group: Optional[str] = None
    required: bool = False
    optional: bool = False
    installed: bool = False
    dependencies: list[str] = field(default_factory=list)
    obsoletes: list[str] = field(default_factory=list)
    tool_installer: Optional["ToolInfo"] = None
    id: int = field(default_factory=lambda: next(_ids))

    def __post_init__(self):
        if not self.display_name:
            self.display_name = self.name

    def is_from_toolchain(self) -> bool:
        return self.kind.is_from_toolchain()

    def is_tool(self) -> bool:
        return self.kind is ComponentType.TOOL

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "kind": self.kind.value,
            "version": self.version,
            "desc": self.desc,
            "group": self.group,
            "required": self.required,
            "optional": self.optional,
            "installed": self.installed,
            "dependencies": list(self.dependencies),
            "obsoletes": list(self.obsoletes),
        }


def split_components(
    components: Iterable[Component],
) -> tuple[list[Component], dict[str, "ToolInfo"]]:
    """
    Separate toolchain components from third-party tools.

    Returns:
        ``(toolchain_components, tools)`` where ``tools`` maps tool name to
        its install descriptor, in selection order
    """
    toolchain: list[Component] = []
    tools: dict[str, "ToolInfo"] = {}
    for component in components:
        if component.is_from_toolchain():
            toolchain.append(component)
        elif component.tool_installer is not None:
            tools[component.name] = component.tool_installer
    return toolchain, tools
