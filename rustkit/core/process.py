"""
External command execution.

All external programs (cargo, rustup, editors, vendor installers) are run
synchronously and without a timeout: an attended installer may legitimately
wait on a GUI installer for a long time.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

from .exceptions import CommandError

logger = logging.getLogger(__name__)


def run_command(
    cmd: Sequence[Union[str, Path]],
    *,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
    ok_codes: Sequence[int] = (0,),
    capture: bool = True,
) -> subprocess.CompletedProcess:
    """
    Run ``cmd`` and wait for it to finish.

    Args:
        cmd: Program and arguments
        env: Variables merged over the current process environment
        cwd: Working directory
        ok_codes: Exit codes treated as success
        capture: Collect stdout/stderr; when False the program inherits
            the terminal

    Returns:
        The completed process (stdout/stderr are None unless captured)

    Raises:
        CommandError: If the program cannot be started or exits with a
            code outside ``ok_codes``
    """
    args = [str(part) for part in cmd]
    full_env = None
    if env:
        full_env = os.environ.copy()
        full_env.update(env)

    logger.debug(f"Running: {' '.join(args)}")
    try:
        result = subprocess.run(
            args, env=full_env, cwd=cwd, capture_output=capture, text=True
        )
    except OSError as e:
        raise CommandError(args, 127, str(e)) from e

    if result.stdout:
        logger.debug(result.stdout.rstrip())
    if result.returncode not in ok_codes:
        raise CommandError(args, result.returncode, result.stderr or "")
    return result
