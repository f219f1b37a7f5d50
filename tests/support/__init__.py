"""
Test helpers for rustkit.

Fakes for the collaborators the installation engine talks to (environment
configurator, toolchain installer, progress sink) and small builders for
manifests and source packages.
"""

from .builders import TARGET, build_manifest, write_executable, write_tarball
from .fakes import FakeToolchainInstaller, ProgressRecorder, RecordingEnv

__all__ = [
    "TARGET",
    "build_manifest",
    "write_executable",
    "write_tarball",
    "FakeToolchainInstaller",
    "ProgressRecorder",
    "RecordingEnv",
]
