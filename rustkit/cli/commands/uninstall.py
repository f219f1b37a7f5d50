"""
Uninstall command implementation.

Removes the installed toolkit and, unless --keep-self is given, rustkit.
"""

import logging
import sys
from pathlib import Path

from rustkit.cli.utils import build_options, confirm, install_lock, make_progress, resolve_prefix
from rustkit.installation.uninstall import UninstallConfiguration

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the uninstall command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    logger.debug(f"Arguments: {args}")
    options = build_options(args)
    install_dir = resolve_prefix(args.prefix)

    what = "the installed toolkit" if args.keep_self else "the installed toolkit and rustkit"
    if not confirm(f"Remove {what} from {install_dir}?", options):
        print("Uninstall cancelled")
        return 0

    with install_lock(install_dir):
        config = UninstallConfiguration(
            install_dir,
            options,
            progress=make_progress(options),
            current_exe=Path(sys.argv[0]),
        )
        config.uninstall(remove_self=not args.keep_self)

    print("Uninstall complete")
    return 0
