"""
Host target-triple detection for rustkit.

Toolkit manifests list tools per Rust target triple (for example
``x86_64-unknown-linux-gnu``), and rustup itself is bootstrapped for the
host triple, so everything that selects per-platform content goes through
``host_triple()``.

Usage:
    from rustkit.core.platform import host_triple

    triple = host_triple()
    print(f"Installing for {triple}")
"""

import functools
import platform
import subprocess
from dataclasses import dataclass


@dataclass(frozen=True)
class TargetTriple:
    """
    A Rust target triple split into its parts.

    Attributes:
        arch: CPU architecture as Rust spells it ('x86_64', 'aarch64', ...)
        vendor: Vendor field ('unknown', 'pc', 'apple')
        os: Operating system ('linux', 'windows', 'darwin')
        env: Environment/ABI ('gnu', 'musl', 'msvc') or empty
    """

    arch: str
    vendor: str
    os: str
    env: str = ""

    def __str__(self) -> str:
        parts = [self.arch, self.vendor, self.os]
        if self.env:
            parts.append(self.env)
        return "-".join(parts)

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"


@functools.lru_cache(maxsize=1)
def detect_target() -> TargetTriple:
    """
    Detect the host target triple.

    This function is cached - it only runs detection once per process.

    Raises:
        RuntimeError: If the operating system is not supported
    """
    system = platform.system().lower()
    arch = _detect_architecture()

    if system == "windows":
        return TargetTriple(arch, "pc", "windows", "msvc")
    if system == "darwin":
        return TargetTriple(arch, "apple", "darwin")
    if system == "linux":
        return TargetTriple(arch, "unknown", "linux", _detect_linux_env())
    raise RuntimeError(f"Unsupported operating system: {system}")


def host_triple() -> str:
    """Return the host target triple as a string."""
    return str(detect_target())


def _detect_architecture() -> str:
    """Normalize ``platform.machine()`` to a Rust architecture name."""
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x86_64"
    elif machine in ("aarch64", "arm64"):
        return "aarch64"
    elif machine in ("i386", "i686", "x86"):
        return "i686"
    elif machine.startswith("riscv64"):
        return "riscv64gc"
    elif machine.startswith("loongarch64"):
        return "loongarch64"
    else:
        return machine


def _detect_linux_env() -> str:
    """Return 'musl' on musl-based systems, 'gnu' otherwise."""
    try:
        result = subprocess.run(
            ["ldd", "--version"], capture_output=True, text=True, timeout=5
        )
    except (OSError, subprocess.SubprocessError):
        return "gnu"

    output = result.stdout.lower() + result.stderr.lower()
    return "musl" if "musl" in output else "gnu"


def clear_platform_cache():
    """Forget the cached detection result (used by tests)."""
    detect_target.cache_clear()


__all__ = [
    "TargetTriple",
    "detect_target",
    "host_triple",
    "clear_platform_cache",
]
