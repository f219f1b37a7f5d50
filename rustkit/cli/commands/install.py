"""
Install command implementation.

Installs a toolkit: the Rust toolchain of its manifest and the selected
third-party tools.
"""

import logging
from pathlib import Path

from rustkit.cli.utils import (
    ask,
    build_options,
    install_lock,
    make_progress,
    parse_source_overrides,
)
from rustkit.config.manifest import ToolkitManifest
from rustkit.config.settings import CargoRegistry, load_settings
from rustkit.core.exceptions import ConfigurationError
from rustkit.installation.install import InstallConfiguration
from rustkit.toolchain.components import Component

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    logger.debug(f"Arguments: {args}")
    options = build_options(args)

    settings = load_settings()
    if args.rustup_dist_server:
        settings.rustup_dist_server = args.rustup_dist_server
    if args.rustup_update_root:
        settings.rustup_update_root = args.rustup_update_root
    if bool(args.registry_name) != bool(args.registry_url):
        raise ConfigurationError("--registry-name and --registry-url must be given together")
    if args.registry_name:
        settings.cargo_registry = CargoRegistry(args.registry_name, args.registry_url)

    manifest = ToolkitManifest.load(args.manifest)
    manifest.adjust_paths()

    install_dir = (
        Path(args.prefix).expanduser().resolve()
        if args.prefix
        else settings.default_install_dir
    )

    components = manifest.current_target_components(check_existing=True)
    selected = select_components(components, args.component)

    sources = parse_source_overrides(args.source)
    manifest.fill_missing_package_source(selected, _source_supplier(selected, sources, options))

    logger.info(f"Installing {manifest.name or 'toolkit'} {manifest.version or ''} into {install_dir}")
    with install_lock(install_dir):
        config = InstallConfiguration(
            install_dir,
            manifest,
            options,
            settings=settings,
            progress=make_progress(options),
        )
        config.install(selected)

    print(f"Installed {manifest.name or 'toolkit'} in {install_dir}")
    if options.should_modify_path():
        print("Restart your shell for PATH changes to take effect")
    return 0


def select_components(components: list[Component], requested: list[str]) -> list[Component]:
    """
    Default selection plus the components named with ``--component``.

    Required and non-optional components are always installed; components
    found already installed outside rustkit are skipped.

    Raises:
        ConfigurationError: If a requested name is not part of the toolkit
    """
    available = {c.name for c in components}
    unknown = [name for name in requested if name not in available]
    if unknown:
        raise ConfigurationError(f"Unknown component(s): {', '.join(unknown)}")

    selected = []
    for component in components:
        if not (component.required or not component.optional or component.name in requested):
            continue
        if component.installed:
            logger.info(f"'{component.name}' is already installed, skipping it")
            continue
        selected.append(component)
    return selected


def _source_supplier(selected: list[Component], sources: dict[str, str], options):
    """
    Look up restricted sources by tool name or display label.

    Whatever the command line does not supply is asked for interactively.
    """
    by_label = dict(sources)
    for component in selected:
        info = component.tool_installer
        if info is not None and component.name in sources:
            by_label[info.display_name or component.name] = sources[component.name]

    def supply(label: str):
        if label in by_label:
            return by_label[label]
        return ask(f"Path or URL of the package for '{label}'", options)

    return supply
