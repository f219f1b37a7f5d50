"""
Install-root locking for rustkit.

The installation engine assumes that at most one install, update or
uninstall runs against a given install root at a time. The CLI enforces
this with a cross-process file lock taken before any orchestration starts.

Lock files live in a per-user directory under the system temp dir rather
than inside the install root, because uninstall deletes the install root
while the lock is still held.

Usage:
    from rustkit.core.locking import LockManager

    lock_manager = LockManager()
    with lock_manager.install_root_lock(install_dir):
        config.install(components)
"""

import hashlib
import logging
import getpass
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout as LockTimeout

from .exceptions import LockError

logger = logging.getLogger(__name__)


def get_lock_dir() -> Path:
    """Return the default directory for rustkit lock files."""
    return Path(tempfile.gettempdir()) / f"rustkit-locks-{getpass.getuser()}"


class LockManager:
    """
    Manages locks for rustkit install roots.

    Uses file-based locking with the `filelock` library for cross-platform
    compatibility and automatic cleanup on process death.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Optional[Path] = None):
        if lock_dir is None:
            lock_dir = get_lock_dir()

        self.lock_dir = Path(lock_dir)
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    def lock_path_for(self, install_dir: Path) -> Path:
        """Lock file path for ``install_dir``; stable across path spellings."""
        key = str(Path(install_dir).expanduser().resolve())
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
        return self.lock_dir / f"{digest}.lock"

    @contextmanager
    def install_root_lock(self, install_dir: Path, timeout: float = 10):
        """
        Acquire the lock guarding ``install_dir``.

        Args:
            install_dir: The install root about to be mutated
            timeout: Maximum wait time in seconds

        Raises:
            LockError: If lock can't be acquired within timeout
        """
        lock_path = self.lock_path_for(install_dir)
        lock = FileLock(lock_path, timeout=timeout)

        try:
            with lock:
                logger.debug(f"Acquired install root lock: {lock_path}")
                yield
                logger.debug(f"Released install root lock: {lock_path}")
        except LockTimeout as e:
            raise LockError(
                f"Could not acquire lock for '{install_dir}' after {timeout}s. "
                "Another rustkit process may be running."
            ) from e
