"""
Cross-platform file system utilities for rustkit.

This module provides the file operations the installer relies on:
- Archive extraction (zip, tar, tar.gz, tar.xz, tar.bz2) with traversal checks
- Safe file operations (atomic writes, safe deletion, copy and move helpers)
- Executable lookup and detection

Every helper raises ArchiveError or OSError subclasses; none of them
silently ignore a failed mutation.
"""

import os
import shutil
import stat
import tarfile
import zipfile
import tempfile
from pathlib import Path
from typing import Optional, Union
from contextlib import contextmanager

from .exceptions import ArchiveError

# Platform detection
IS_WINDOWS = os.name == "nt"
IS_UNIX = not IS_WINDOWS

EXE_SUFFIX = ".exe" if IS_WINDOWS else ""

ARCHIVE_SUFFIXES = (".zip", ".tar", ".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".tbz2")


def exe_name(name: str) -> str:
    """Return ``name`` with the platform executable suffix appended."""
    return f"{name}{EXE_SUFFIX}"


# ============================================================================
# Executable Lookup
# ============================================================================


def find_executable(
    name: str, search_paths: Optional[list[Path]] = None
) -> Optional[Path]:
    """
    Find an executable in the system PATH or provided search paths.

    Args:
        name: Executable name (e.g., 'cargo', 'code')
        search_paths: Optional list of directories to search

    Returns:
        Path to executable if found, None otherwise

    Example:
        >>> find_executable('cargo')
        PosixPath('/home/user/rust/cargo/bin/cargo')
    """
    extensions = [""] if not IS_WINDOWS else ["", ".exe", ".bat", ".cmd"]

    if search_paths is None:
        path_env = os.environ.get("PATH", "")
        search_paths = [Path(p) for p in path_env.split(os.pathsep) if p]

    for directory in search_paths:
        for ext in extensions:
            exe_path = directory / f"{name}{ext}"
            if exe_path.is_file() and os.access(exe_path, os.X_OK):
                return exe_path

    return None


def is_executable(path: Union[str, Path]) -> bool:
    """Check whether ``path`` is a file the current platform would execute."""
    path = Path(path)
    if not path.is_file():
        return False
    if IS_WINDOWS:
        return path.suffix.lower() in (".exe", ".bat", ".cmd", ".com", ".ps1")
    return os.access(path, os.X_OK)


def set_executable(path: Union[str, Path]) -> None:
    """Add the executable bits to ``path`` (no-op on Windows)."""
    if IS_WINDOWS:
        return
    path = Path(path)
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


# ============================================================================
# Archive Extraction
# ============================================================================


def is_archive(path: Union[str, Path]) -> bool:
    """Return True when ``path`` has a supported archive extension."""
    return Path(path).name.lower().endswith(ARCHIVE_SUFFIXES)


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Prevents directory traversal attacks (e.g., paths containing '../').
    """
    member_path = (destination / path).resolve()

    if not member_path.is_relative_to(destination.resolve()):
        raise ArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def extract_archive(
    archive_path: Union[str, Path], destination: Union[str, Path]
) -> Path:
    """
    Extract an archive to a destination directory.

    Supported formats: .zip, .tar, .tar.gz/.tgz, .tar.xz, .tar.bz2/.tbz2

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to

    Returns:
        The destination directory

    Raises:
        ArchiveError: If the archive is missing, unsupported, unsafe or corrupt
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)
    archive_name = archive_path.name.lower()

    try:
        if archive_name.endswith(".zip"):
            _extract_zip(archive_path, destination)
        elif archive_name.endswith((".tar.gz", ".tgz")):
            _extract_tar(archive_path, destination, "r:gz")
        elif archive_name.endswith(".tar.xz"):
            _extract_tar(archive_path, destination, "r:xz")
        elif archive_name.endswith((".tar.bz2", ".tbz2")):
            _extract_tar(archive_path, destination, "r:bz2")
        elif archive_name.endswith(".tar"):
            _extract_tar(archive_path, destination, "r:")
        else:
            raise ArchiveError(
                f"Unsupported archive format: {archive_path.name}. "
                f"Supported: {', '.join(ARCHIVE_SUFFIXES)}"
            )
    except ArchiveError:
        raise
    except (OSError, zipfile.BadZipFile, tarfile.TarError) as e:
        raise ArchiveError(f"Failed to extract {archive_path}: {e}") from e

    return destination


def _extract_zip(archive_path: Path, destination: Path) -> None:
    """Extract a ZIP archive."""
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()

        for member in members:
            _validate_archive_path(member.filename, destination)

        for member in members:
            extracted = Path(zf.extract(member, destination))
            # zipfile drops unix permissions, restore the executable bits
            mode = member.external_attr >> 16
            if IS_UNIX and mode & 0o111 and extracted.is_file():
                extracted.chmod(mode & 0o777)


def _extract_tar(archive_path: Path, destination: Path, mode: str) -> None:
    """Extract a tar archive with specified compression."""
    with tarfile.open(archive_path, mode) as tar:
        for member in tar.getmembers():
            _validate_archive_path(member.name, destination)

        tar.extractall(destination, filter="data")


def skip_solo_dirs(root: Union[str, Path], stop_at: Optional[str] = None) -> Path:
    """
    Descend through directories that contain nothing but a single directory.

    Archives often wrap their payload in one or more nested folders
    (``tool-1.0/tool/...``); the returned path is the first level holding
    more than one entry. Descent stops before a directory named ``stop_at``
    so a layout like ``pkg/bin/`` keeps ``pkg`` as its root.
    """
    current = Path(root)
    while current.is_dir():
        entries = list(current.iterdir())
        if len(entries) != 1 or not entries[0].is_dir():
            break
        if stop_at is not None and entries[0].name == stop_at:
            break
        current = entries[0]
    return current


def extract_skipping_solo_dirs(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    stop_at: Optional[str] = "bin",
) -> Path:
    """Extract ``archive_path`` and return its single meaningful root."""
    extract_archive(archive_path, destination)
    return skip_solo_dirs(destination, stop_at=stop_at)


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    This ensures the file is never in a partially-written state.
    If the write fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Create temp file in same directory (ensures same filesystem)
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding, newline="") as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def _handle_remove_readonly(func, path, exc):
    """Error handler for read-only files on Windows."""
    if not os.access(path, os.W_OK):
        os.chmod(path, stat.S_IWRITE)
        func(path)
    else:
        raise exc


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        OSError: If deletion fails
    """
    path = Path(path)

    if require_prefix is not None:
        resolved_prefix = Path(require_prefix).resolve()
        if not path.resolve().is_relative_to(resolved_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{resolved_prefix}'"
            )

    if not path.exists() and not path.is_symlink():
        return

    if path.is_symlink() or not path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {path}")

    if IS_WINDOWS:
        shutil.rmtree(path, onexc=_handle_remove_readonly)
    else:
        shutil.rmtree(path)


def remove_path(path: Union[str, Path]) -> None:
    """Remove a file, symlink or directory tree; missing paths are ignored."""
    path = Path(path)
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        safe_rmtree(path)


def copy_as(source: Union[str, Path], destination: Union[str, Path]) -> Path:
    """
    Copy a file or directory tree to exactly ``destination``.

    An existing destination is replaced.
    """
    source = Path(source)
    destination = Path(destination)

    if not source.exists():
        raise FileNotFoundError(f"Source does not exist: {source}")

    if destination.exists() or destination.is_symlink():
        remove_path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    if source.is_dir():
        shutil.copytree(source, destination, symlinks=True)
    else:
        shutil.copy2(source, destination)
    return destination


def copy_into(source: Union[str, Path], directory: Union[str, Path]) -> Path:
    """Copy ``source`` into ``directory`` keeping its name; returns the new path."""
    source = Path(source)
    return copy_as(source, Path(directory) / source.name)


def move_to(source: Union[str, Path], destination: Union[str, Path]) -> Path:
    """
    Move a file or directory tree to exactly ``destination``.

    Falls back to copy + delete across filesystems (via shutil.move).
    An existing destination is replaced.
    """
    source = Path(source)
    destination = Path(destination)

    if not source.exists():
        raise FileNotFoundError(f"Source does not exist: {source}")

    if destination.exists() or destination.is_symlink():
        remove_path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    shutil.move(str(source), str(destination))
    return destination


def is_empty_directory(path: Union[str, Path]) -> bool:
    """Return True when ``path`` is a directory without entries."""
    path = Path(path)
    return path.is_dir() and not any(path.iterdir())


@contextmanager
def temporary_directory(prefix: str = "rustkit_", parent: Optional[Path] = None):
    """
    Context manager for temporary directory with automatic cleanup.

    Args:
        prefix: Prefix for temp directory name
        parent: Directory to create the temp dir in (system temp by default)

    Yields:
        Path to temporary directory
    """
    if parent is not None:
        Path(parent).mkdir(parents=True, exist_ok=True)
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix, dir=parent))

    try:
        yield temp_dir
    finally:
        if temp_dir.exists():
            safe_rmtree(temp_dir)


__all__ = [
    "IS_WINDOWS",
    "IS_UNIX",
    "EXE_SUFFIX",
    "exe_name",
    "find_executable",
    "is_executable",
    "set_executable",
    "is_archive",
    "extract_archive",
    "skip_solo_dirs",
    "extract_skipping_solo_dirs",
    "atomic_write",
    "safe_rmtree",
    "remove_path",
    "copy_as",
    "copy_into",
    "move_to",
    "is_empty_directory",
    "temporary_directory",
]
