"""
Pytest configuration and shared fixtures for rustkit tests.
"""

import logging
import os
import pytest
import tempfile
from pathlib import Path
from typing import Generator

from rustkit.core.platform import clear_platform_cache
from rustkit.env import PROXY_ENV_VARS, RUSTUP_ENV_VARS
from tests.support import FakeToolchainInstaller, ProgressRecorder, RecordingEnv

# Variables the engine sets in the running process
_PROCESS_VARS = (
    *RUSTUP_ENV_VARS,
    *PROXY_ENV_VARS,
    "RUSTUP_TOOLCHAIN",
    "RUSTUP_INIT_SKIP_PATH_CHECK",
)


def pytest_collection_modifyitems(config, items):
    """Skip tests marked for the other platform family."""
    skip_unix = pytest.mark.skip(reason="Unix only")
    skip_windows = pytest.mark.skip(reason="Windows only")
    for item in items:
        if "unix" in item.keywords and os.name == "nt":
            item.add_marker(skip_unix)
        if "windows" in item.keywords and os.name != "nt":
            item.add_marker(skip_windows)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast tests without external processes")
    config.addinivalue_line(
        "markers", "integration: tests that exercise several modules together"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "unix: tests that only make sense on Unix hosts")
    config.addinivalue_line("markers", "windows: tests that only make sense on Windows hosts")


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def isolated_home(temp_dir: Path, monkeypatch) -> Path:
    """Create isolated home directory for tests."""
    fake_home = temp_dir / "home"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(fake_home / ".config"))
    monkeypatch.setenv("APPDATA", str(fake_home / "AppData" / "Roaming"))
    monkeypatch.delenv("ZDOTDIR", raising=False)

    return fake_home


@pytest.fixture
def install_root(temp_dir: Path) -> Path:
    """An install root that does not exist yet."""
    return temp_dir / "rust"


@pytest.fixture
def packages_dir(temp_dir: Path) -> Path:
    """Directory standing in for a toolkit's bundled packages."""
    path = temp_dir / "packages"
    path.mkdir()
    return path


@pytest.fixture
def recording_env(install_root: Path) -> RecordingEnv:
    return RecordingEnv(install_root)


@pytest.fixture
def fake_toolchain() -> FakeToolchainInstaller:
    return FakeToolchainInstaller()


@pytest.fixture
def progress_recorder() -> ProgressRecorder:
    return ProgressRecorder()


@pytest.fixture(autouse=True)
def restore_process_env(monkeypatch):
    """Undo whatever the engine writes into ``os.environ`` during a test."""
    monkeypatch.setenv("PATH", os.environ.get("PATH", ""))
    for name in _PROCESS_VARS:
        if name in os.environ:
            monkeypatch.setenv(name, os.environ[name])
        else:
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def reset_caches():
    """Reset module-level caches between tests."""
    clear_platform_cache()
    yield
    clear_platform_cache()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    root.setLevel(level)
    root.handlers[:] = handlers
