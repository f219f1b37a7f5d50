"""
Update command implementation.

Updates an installed toolkit to the versions declared by a newer manifest.
"""

import logging

from rustkit.cli.utils import build_options, confirm, install_lock, make_progress, resolve_prefix
from rustkit.config.manifest import ToolkitManifest
from rustkit.config.settings import load_settings
from rustkit.installation.install import InstallConfiguration
from rustkit.installation.record import InstallationRecord
from rustkit.installation.update import (
    default_update_selection,
    diff_versions,
    installed_components,
)

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the update command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    logger.debug(f"Arguments: {args}")
    options = build_options(args)
    install_dir = resolve_prefix(args.prefix)

    record = InstallationRecord.load_from_dir(install_dir)
    if record.name is None:
        print(f"No toolkit is installed in {install_dir}")
        return 0

    installed = installed_components(record)
    manifest = ToolkitManifest.load(args.manifest)
    manifest.adjust_paths()
    target = manifest.current_target_components(check_existing=False)

    diffs = diff_versions(installed, target)
    selection = default_update_selection(target, diffs, args.component)
    if not selection:
        print(f"{record.name} {record.version or ''} is up to date")
        return 0

    print(f"Updating {record.name} {record.version or 'N/A'} to {manifest.version or 'N/A'}:")
    for component in selection:
        print(f"  {component.name}: {diffs[component.name]}")
    if not confirm("Continue?", options):
        print("Update cancelled")
        return 0

    with install_lock(install_dir):
        config = InstallConfiguration(
            install_dir,
            manifest,
            options,
            settings=load_settings(),
            progress=make_progress(options),
        )
        config.update(selection)

    print("Update complete")
    return 0
