"""
rustkit CLI argument parser.

This module implements the command-line interface for rustkit using argparse.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rustkit import __version__
from rustkit.core.exceptions import RustkitError

logger = logging.getLogger(__name__)


class CLI:
    """rustkit command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="rustkit",
            description="rustkit - install and manage curated Rust toolkits",
            epilog='Use "rustkit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"rustkit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--yes",
            "-y",
            dest="yes_to_all",
            action="store_true",
            help="Answer yes to every confirmation",
        )
        parser.add_argument(
            "--no-modify-path",
            action="store_true",
            help="Do not persist PATH changes",
        )
        parser.add_argument(
            "--no-modify-env",
            action="store_true",
            help="Do not persist any environment change (implies --no-modify-path)",
        )
        parser.add_argument(
            "--insecure",
            action="store_true",
            help="Skip TLS verification and use plain http for the dist server",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_update_command(subparsers)
        self._add_uninstall_command(subparsers)
        self._add_list_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Install a toolkit",
            description="Install the Rust toolchain and tools of a toolkit manifest",
        )
        parser.add_argument(
            "--manifest",
            type=Path,
            required=True,
            metavar="FILE",
            help="Toolkit manifest (toolset-manifest.toml)",
        )
        parser.add_argument(
            "--prefix",
            type=Path,
            metavar="DIR",
            help="Install directory (default: ~/rust or the configured default)",
        )
        parser.add_argument(
            "--component",
            action="append",
            default=[],
            metavar="NAME",
            help="Install this optional component too (repeatable)",
        )
        parser.add_argument(
            "--source",
            action="append",
            default=[],
            metavar="NAME=PATH_OR_URL",
            help="Source for a restricted tool (repeatable)",
        )
        parser.add_argument(
            "--registry-name",
            metavar="NAME",
            help="Name of a cargo registry replacing crates.io",
        )
        parser.add_argument(
            "--registry-url",
            metavar="URL",
            help="Index URL of the replacement cargo registry",
        )
        parser.add_argument(
            "--rustup-dist-server",
            metavar="URL",
            help="Server to download toolchain packages from",
        )
        parser.add_argument(
            "--rustup-update-root",
            metavar="URL",
            help="Server to download rustup-init from",
        )

    def _add_update_command(self, subparsers):
        """Add 'update' subcommand."""
        parser = subparsers.add_parser(
            "update",
            help="Update an installed toolkit",
            description="Update the installed components to the versions of a newer manifest",
        )
        parser.add_argument(
            "--manifest",
            type=Path,
            required=True,
            metavar="FILE",
            help="Manifest of the toolkit to update to",
        )
        parser.add_argument(
            "--prefix",
            type=Path,
            metavar="DIR",
            help="Install directory (default: where this manager is installed)",
        )
        parser.add_argument(
            "--component",
            action="append",
            default=[],
            metavar="NAME",
            help="Also update or add this component (repeatable)",
        )

    def _add_uninstall_command(self, subparsers):
        """Add 'uninstall' subcommand."""
        parser = subparsers.add_parser(
            "uninstall",
            help="Uninstall the toolkit",
            description="Remove installed tools, the toolchain and, by default, rustkit itself",
        )
        parser.add_argument(
            "--prefix",
            type=Path,
            metavar="DIR",
            help="Install directory (default: where this manager is installed)",
        )
        parser.add_argument(
            "--keep-self",
            action="store_true",
            help="Keep the manager installed so another toolkit can be installed later",
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        parser = subparsers.add_parser(
            "list",
            help="List toolkit components",
            description="List the components of the installed toolkit",
        )
        parser.add_argument(
            "--prefix",
            type=Path,
            metavar="DIR",
            help="Install directory (default: where this manager is installed)",
        )
        parser.add_argument(
            "--installed",
            action="store_true",
            help="Only list installed components",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except RustkitError as e:
            from rustkit.cli.utils import print_error_chain

            print_error_chain(e)
            return 1
        except Exception as e:
            from rustkit.cli.utils import print_error_chain

            print_error_chain(e)
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        # Command module mapping
        command_map = {
            "install": "rustkit.cli.commands.install",
            "update": "rustkit.cli.commands.update",
            "uninstall": "rustkit.cli.commands.uninstall",
            "list": "rustkit.cli.commands.list",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        # Dynamic import of command module
        import importlib

        module = importlib.import_module(module_name)

        # Call run() function in module
        if not hasattr(module, "run"):
            logger.error(f"Command module {module_name} has no run() function")
            return 1

        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
