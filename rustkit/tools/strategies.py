"""
Install strategies, one per tool kind.

Each strategy knows how to deploy a tool's artifacts and how to remove
them again using only what the installation record kept. Strategies are
looked up through ``STRATEGIES``, which must cover every ``ToolKind``.

Strategies receive the running install or uninstall configuration, which
provides:

    config.dirs                    InstallDirs of the install root
    config.env                     EnvironmentConfigurator
    config.options                 GlobalOptions
    config.toolchain_is_installed  True once a working cargo/rustup exist
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..config.cargo_config import CargoConfig
from ..core.exceptions import (
    SourceNotFoundError,
    ToolchainNotInstalledError,
)
from ..core.filesystem import (
    IS_WINDOWS,
    copy_as,
    copy_into,
    move_to,
    remove_path,
    safe_rmtree,
    set_executable,
)
from ..core.process import run_command
from ..toolchain.rustup import RUNNER_TOOLCHAIN_NAME
from . import custom, plugin
from .kinds import ToolKind
from .tool import Tool

logger = logging.getLogger(__name__)

RULESET_DIR = "ruleset"


def _remove_recorded(name: str, path: Path) -> None:
    """Remove one recorded artifact, warning when it is already gone."""
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        logger.warning(f"Path '{path}' recorded for '{name}' no longer exists, skipping")
        return
    remove_path(path)


def cargo_command(op: str, args: list[str], config) -> None:
    """Run ``cargo <op>`` from the managed cargo home."""
    cargo = config.dirs.cargo_exe("cargo")
    flags = []
    if config.options.verbose:
        flags.append("-v")
    elif config.options.quiet:
        flags.append("-q")
    run_command(
        [cargo, op, *flags, *args],
        env={
            "CARGO_HOME": str(config.dirs.cargo_home),
            "RUSTUP_HOME": str(config.dirs.rustup_home),
        },
        capture=False,
    )


# ============================================================================
# Strategy Interface
# ============================================================================


class ToolStrategy(ABC):
    """
    How one kind of tool is installed and removed.

    Subclasses implement ``deploy`` (returns every artifact created) and
    ``uninstall``; ``install`` wraps ``deploy`` into a ToolRecord.
    """

    kind: ToolKind

    #: Whether the tool's source paths must exist before deployment
    needs_source = True

    def install(self, tool: Tool, config, info=None):
        """
        Install ``tool`` and describe what was created.

        Raises:
            SourceNotFoundError: If a source path does not exist
        """
        from ..installation.record import ToolRecord

        if self.needs_source:
            if not tool.paths:
                raise SourceNotFoundError(f"<no path given for '{tool.name}'>")
            for path in tool.paths:
                if not Path(path).exists():
                    raise SourceNotFoundError(path)

        paths = self.deploy(tool, config)
        return ToolRecord(
            kind=self.kind,
            version=info.version if info is not None else None,
            paths=paths,
            dependencies=list(info.requires) if info is not None else [],
        )

    @abstractmethod
    def deploy(self, tool: Tool, config) -> list[Path]:
        """Put the tool in place and return the artifacts to record."""
        pass

    @abstractmethod
    def uninstall(self, tool: Tool, config) -> None:
        """Remove a tool rebuilt from its installation record."""
        pass


# ============================================================================
# Strategies
# ============================================================================


class CargoToolStrategy(ToolStrategy):
    kind = ToolKind.CARGO_TOOL
    needs_source = False

    def deploy(self, tool: Tool, config) -> list[Path]:
        if not config.toolchain_is_installed:
            raise ToolchainNotInstalledError(
                f"Cannot install '{tool.name}' with cargo: the Rust toolchain is not installed"
            )
        cargo_command("install", tool.install_args or [tool.name], config)
        return []

    def uninstall(self, tool: Tool, config) -> None:
        cargo_command("uninstall", [tool.name], config)


class ExecutablesStrategy(ToolStrategy):
    """Copies binaries straight into ``cargo/bin``, which is already on PATH."""

    kind = ToolKind.EXECUTABLES

    def deploy(self, tool: Tool, config) -> list[Path]:
        copied = []
        for exe in tool.paths:
            target = copy_into(exe, config.dirs.cargo_bin)
            set_executable(target)
            copied.append(target)
        return copied

    def uninstall(self, tool: Tool, config) -> None:
        for path in tool.paths:
            _remove_recorded(tool.name, path)


class CustomStrategy(ToolStrategy):
    kind = ToolKind.CUSTOM

    def deploy(self, tool: Tool, config) -> list[Path]:
        return custom.install(tool.name, tool.path, config)

    def uninstall(self, tool: Tool, config) -> None:
        custom.uninstall(tool.name, config, tool)


class DirWithBinStrategy(ToolStrategy):
    kind = ToolKind.DIR_WITH_BIN

    def deploy(self, tool: Tool, config) -> list[Path]:
        tool_dir = move_to(tool.path, config.dirs.tools_dir / tool.name)
        config.env.add_to_path(tool_dir / "bin")
        return [tool_dir]

    def uninstall(self, tool: Tool, config) -> None:
        tool_dir = tool.path
        config.env.remove_from_path(tool_dir / "bin")
        if not tool_dir.exists():
            logger.warning(f"Directory '{tool_dir}' of '{tool.name}' no longer exists, skipping")
            return
        safe_rmtree(tool_dir)


class PluginStrategy(ToolStrategy):
    """Installs an editor extension and keeps the file for later removal."""

    kind = ToolKind.PLUGIN

    def deploy(self, tool: Tool, config) -> list[Path]:
        plugin.install(tool.path, tool.name)
        return [copy_into(tool.path, config.dirs.tools_dir)]

    def uninstall(self, tool: Tool, config) -> None:
        path = tool.path
        if not path.exists():
            logger.warning(f"Plugin file '{path}' of '{tool.name}' no longer exists, skipping")
            return
        plugin.uninstall(path)
        remove_path(path)


class InstallerStrategy(ToolStrategy):
    """
    Runs a vendor installer and waits for it.

    Installers vary too much to be reversed; uninstalling only removes the
    archived copy.
    """

    kind = ToolKind.INSTALLER

    def deploy(self, tool: Tool, config) -> list[Path]:
        installer = tool.path
        logger.info(f"Running installer of '{tool.name}', waiting for it to finish")
        if IS_WINDOWS:
            run_command(
                ["powershell", "-Command", "Start-Process", "-Wait", installer], capture=False
            )
        else:
            set_executable(installer)
            run_command([installer], capture=False)
        return [copy_into(installer, config.dirs.tools_dir)]

    def uninstall(self, tool: Tool, config) -> None:
        for path in tool.paths:
            _remove_recorded(tool.name, path)


class RuleSetStrategy(ToolStrategy):
    """Links a customised toolchain used to run coding-guideline lints."""

    kind = ToolKind.RULE_SET

    def deploy(self, tool: Tool, config) -> list[Path]:
        runner_dir = copy_as(tool.path, config.dirs.tools_dir / RULESET_DIR / "runner")
        if not config.toolchain_is_installed:
            raise ToolchainNotInstalledError(
                f"Cannot link rule set '{tool.name}': the Rust toolchain is not installed"
            )
        run_command(
            [config.dirs.cargo_exe("rustup"), "toolchain", "link", RUNNER_TOOLCHAIN_NAME, runner_dir],
            env={
                "CARGO_HOME": str(config.dirs.cargo_home),
                "RUSTUP_HOME": str(config.dirs.rustup_home),
            },
        )
        return [runner_dir]

    def uninstall(self, tool: Tool, config) -> None:
        ruleset_dir = config.dirs.root / "tools" / RULESET_DIR
        if not ruleset_dir.exists():
            logger.warning(f"Rule set directory '{ruleset_dir}' no longer exists, skipping")
            return
        safe_rmtree(ruleset_dir)


class CrateStrategy(ToolStrategy):
    """Vendors a crate and overrides crates.io with it through ``[patch]``."""

    kind = ToolKind.CRATE

    def deploy(self, tool: Tool, config) -> list[Path]:
        crate_dir = copy_into(tool.path, config.dirs.crates_dir)
        cargo_home = config.dirs.cargo_home
        CargoConfig.load_from_dir(cargo_home).add_patch(tool.name, crate_dir).write_to_dir(
            cargo_home
        )
        return [crate_dir]

    def uninstall(self, tool: Tool, config) -> None:
        for path in tool.paths:
            _remove_recorded(tool.name, path)
        cargo_home = config.dirs.cargo_home
        CargoConfig.load_from_dir(cargo_home).remove_patch(tool.name).write_to_dir(cargo_home)


class UnknownStrategy(ToolStrategy):
    kind = ToolKind.UNKNOWN

    def deploy(self, tool: Tool, config) -> list[Path]:
        return [move_to(tool.path, config.dirs.tools_dir / tool.name)]

    def uninstall(self, tool: Tool, config) -> None:
        for path in tool.paths:
            _remove_recorded(tool.name, path)


STRATEGIES: dict[ToolKind, ToolStrategy] = {
    strategy.kind: strategy
    for strategy in (
        CargoToolStrategy(),
        ExecutablesStrategy(),
        CustomStrategy(),
        DirWithBinStrategy(),
        PluginStrategy(),
        InstallerStrategy(),
        RuleSetStrategy(),
        CrateStrategy(),
        UnknownStrategy(),
    )
}

_missing = set(ToolKind) - set(STRATEGIES)
if _missing:
    raise RuntimeError(f"Tool kinds without an install strategy: {sorted(k.value for k in _missing)}")


def strategy_for(kind: ToolKind) -> ToolStrategy:
    return STRATEGIES[kind]


def install_tool(tool: Tool, config, info=None):
    """Install ``tool`` with the strategy of its kind; returns its ToolRecord."""
    logger.debug(f"Installing '{tool.name}' as {tool.kind.value}")
    return strategy_for(tool.kind).install(tool, config, info)


def uninstall_tool(tool: Tool, config) -> None:
    logger.debug(f"Uninstalling '{tool.name}' as {tool.kind.value}")
    strategy_for(tool.kind).uninstall(tool, config)


def kind_priorities(records: dict) -> dict[str, int]:
    """Name -> kind rank map for the dependency-free fallback order."""
    return {name: record.kind.priority for name, record in records.items()}


def resolve_source_kind(name: str, path: Path, declared: Optional[ToolKind]) -> Tool:
    """Build the Tool for a local source, honouring a declared kind."""
    if declared is not None:
        return Tool(name, declared, [Path(path)])
    return Tool.from_path(name, path)
