"""
Named install instructions for tools that need more than a copy or move.

Tool names are matched with '-' and '_' treated alike, so both
``codearts-rust`` and ``codearts_rust`` select the same instruction.
"""

import logging
from pathlib import Path

from ...core.filesystem import IS_WINDOWS, exe_name, find_executable
from . import buildtools
from .vscode import CODEARTS_RUST, VSCODE, VSCODIUM

logger = logging.getLogger(__name__)

_INSTRUCTIONS = {
    "vscode": VSCODE,
    "vscodium": VSCODIUM,
    "codearts_rust": CODEARTS_RUST,
}
if IS_WINDOWS:
    _INSTRUCTIONS["buildtools"] = buildtools

# Tools without an instruction that are recognised by the programs they ship
_PROGRAM_PROBES = {
    "mingw64": [exe_name("gcc"), exe_name("ld")],
}


def _key(name: str) -> str:
    return name.replace("-", "_")


def is_supported(name: str) -> bool:
    return _key(name) in _INSTRUCTIONS


def install(name: str, path: Path, config) -> list[Path]:
    """Run the instruction for ``name`` and return the paths it created."""
    instruction = _INSTRUCTIONS.get(_key(name))
    if instruction is None:
        raise ValueError(f"No custom install instruction for '{name}'")
    return instruction.install(Path(path), config)


def uninstall(name: str, config, record=None) -> None:
    instruction = _INSTRUCTIONS.get(_key(name))
    if instruction is None:
        raise ValueError(f"No custom uninstall instruction for '{name}'")
    instruction.uninstall(config, record)


def is_installed(name: str) -> bool:
    """
    Best guess whether ``name`` already exists on the user's machine.

    Checked in order: the instruction's own probe, a program with the
    tool's name on PATH, then a list of programs known to ship with it.
    """
    instruction = _INSTRUCTIONS.get(_key(name))
    if instruction is not None and instruction.already_installed():
        return True
    if find_executable(name) is not None:
        return True
    programs = _PROGRAM_PROBES.get(name)
    if programs:
        return all(find_executable(p) is not None for p in programs)
    return False
