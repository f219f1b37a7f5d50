"""
Rust toolchain handling: selectable components and the rustup installer.
"""

from .components import Component, ComponentType, split_components

__all__ = [
    "Component",
    "ComponentType",
    "split_components",
]
