"""
List command implementation.

Lists the components of the installed toolkit with their versions.
"""

import logging

from rustkit.cli.utils import resolve_prefix
from rustkit.installation.record import RECORD_FILENAME, InstallationRecord
from rustkit.installation.update import installed_components

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 when nothing is installed)
    """
    install_dir = resolve_prefix(args.prefix)
    if not (install_dir / RECORD_FILENAME).is_file():
        print(f"No installation found in {install_dir}")
        return 1

    record = InstallationRecord.load_from_dir(install_dir)
    components = installed_components(record)

    print(f"{record.name or 'No toolkit'} {record.version or ''}".rstrip())
    for component in components:
        if args.installed and not component.installed:
            continue
        status = "installed" if component.installed else ""
        print(f"  {component.name:<28} {component.version or '-':<24} {status}".rstrip())
    return 0
