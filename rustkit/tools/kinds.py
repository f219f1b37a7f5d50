"""Tool kinds and their fallback ordering."""

from enum import Enum
from typing import Optional


class ToolKind(Enum):
    """
    Installation strategy tag for a third-party tool.

    The value is the name stored in the installation record and accepted
    in manifests.
    """

    DIR_WITH_BIN = "dir-with-bin"
    EXECUTABLES = "executables"
    CUSTOM = "custom"
    PLUGIN = "plugin"
    INSTALLER = "installer"
    RULE_SET = "rule-set"
    CRATE = "crate"
    CARGO_TOOL = "cargo-tool"
    UNKNOWN = "unknown"

    @property
    def priority(self) -> int:
        """Rank used when no dependency data is available (lower goes first)."""
        return _PRIORITY.index(self)

    @property
    def is_cargo_tool(self) -> bool:
        return self is ToolKind.CARGO_TOOL

    @classmethod
    def parse(cls, value: Optional[str]) -> "ToolKind":
        """
        Parse a kind name; accepts snake_case and PascalCase spellings too.

        Raises:
            ValueError: If the name is not a known kind
        """
        if value is None:
            return cls.UNKNOWN
        normalized = value.strip()
        for kind in cls:
            if normalized in (kind.value, kind.name.lower(), _pascal(kind)):
                return kind
        raise ValueError(f"Unknown tool kind: {value}")


def _pascal(kind: ToolKind) -> str:
    return "".join(part.capitalize() for part in kind.value.split("-"))


_PRIORITY = [
    ToolKind.DIR_WITH_BIN,
    ToolKind.EXECUTABLES,
    ToolKind.CUSTOM,
    ToolKind.PLUGIN,
    ToolKind.INSTALLER,
    ToolKind.RULE_SET,
    ToolKind.CRATE,
    ToolKind.CARGO_TOOL,
    ToolKind.UNKNOWN,
]
