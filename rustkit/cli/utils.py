"""
Shared utilities for CLI commands.

Provides common functionality used across multiple CLI commands to
eliminate duplication and ensure consistent behavior.
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from rustkit.config.options import GlobalOptions
from rustkit.core.locking import LockManager, get_lock_dir
from rustkit.core.progress import Progress
from rustkit.installation.record import resolve_install_dir

logger = logging.getLogger(__name__)


# ============================================================================
# Options and install root
# ============================================================================


def build_options(args) -> GlobalOptions:
    """Build the global options once from parsed arguments."""
    return GlobalOptions(
        verbose=args.verbose,
        quiet=args.quiet,
        yes_to_all=args.yes_to_all,
        no_modify_path=args.no_modify_path,
        no_modify_env=args.no_modify_env,
        insecure=args.insecure,
    )


def resolve_prefix(prefix: Optional[Path], exe_path: Optional[Path] = None) -> Path:
    """
    Install root given on the command line, or the one this manager lives in.

    Raises:
        InstallRootError: If no prefix is given and the manager location does not validate
    """
    if prefix is not None:
        return Path(prefix).expanduser().resolve()
    return resolve_install_dir(Path(exe_path or sys.argv[0]))


@contextmanager
def install_lock(install_dir: Path):
    """Hold the install root lock for a mutating command."""
    with LockManager(get_lock_dir()).install_root_lock(install_dir):
        yield


def parse_source_overrides(values: list[str]) -> dict[str, str]:
    """
    Parse repeated ``NAME=PATH_OR_URL`` arguments.

    Raises:
        ValueError: If an entry has no name or no value
    """
    sources = {}
    for value in values:
        name, sep, location = value.partition("=")
        name, location = name.strip(), location.strip()
        if not sep or not name or not location:
            raise ValueError(f"Invalid --source '{value}', expected NAME=PATH_OR_URL")
        sources[name] = location
    return sources


# ============================================================================
# User Interface / Output Formatting
# ============================================================================


def format_error_chain(error: BaseException) -> list[str]:
    """``Error: ...`` followed by one ``caused by:`` line per chained cause."""
    lines = [f"Error: {error}"]
    seen = {id(error)}
    cause = error.__cause__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        lines.append(f"  caused by: {cause}")
        cause = cause.__cause__
    return lines


def print_error_chain(error: BaseException) -> None:
    """Print an error and its causes to stderr."""
    for line in format_error_chain(error):
        print(line, file=sys.stderr)


def confirm(question: str, options: GlobalOptions) -> bool:
    """
    Ask a yes/no question, defaulting to yes.

    Never prompts with ``--yes`` or when stdin is not a terminal.
    """
    if options.yes_to_all or not sys.stdin.isatty():
        return True
    try:
        response = input(f"{question} [Y/n] ").strip().lower()
    except EOFError:
        return False
    return not response or response in ("y", "yes")


def ask(question: str, options: GlobalOptions) -> Optional[str]:
    """Free-form question; None without a terminal or with ``--yes``."""
    if options.yes_to_all or not sys.stdin.isatty():
        return None
    try:
        answer = input(f"{question}: ").strip()
    except EOFError:
        return None
    return answer or None


class ProgressPrinter:
    """
    Progress callback printing one line per whole-percent step.

    Spinner ticks are drawn only when the stream is a terminal.
    """

    SPINNER = "|/-\\"

    def __init__(self, stream=None):
        self.stream = stream or sys.stderr
        self._last = -1
        self._spin = 0

    def __call__(self, value: float, message: str) -> None:
        if message == Progress.TICK:
            if self.stream.isatty():
                self.stream.write(f"\r{self.SPINNER[self._spin % len(self.SPINNER)]}\r")
                self.stream.flush()
                self._spin += 1
            return

        percent = int(value)
        if percent == self._last:
            return
        self._last = percent
        line = f"[{percent:3d}%]"
        if message:
            line += f" {message}"
        print(line, file=self.stream)


def make_progress(options: GlobalOptions) -> Progress:
    """Progress sink for a command; silent with ``--quiet``."""
    return Progress(None if options.quiet else ProgressPrinter())
