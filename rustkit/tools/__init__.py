"""
Third-party tool handling: kinds, detection and install strategies.

Strategies live in ``rustkit.tools.strategies`` and are imported from
there directly.
"""

from .kinds import ToolKind
from .tool import Tool

__all__ = [
    "ToolKind",
    "Tool",
]
