"""
Tests for WindowsConfigurator using an in-memory registry.

The registry, the settings broadcast and deferred deletion are injected,
so these run on every platform.
"""

import os
from pathlib import Path

import pytest

from rustkit.config.options import GlobalOptions
from rustkit.env import regcodec
from rustkit.env.windows import (
    ENVIRONMENT_KEY,
    UNINSTALL_KEY,
    RegistryBackend,
    WindowsConfigurator,
)


class FakeRegistry(RegistryBackend):
    def __init__(self):
        self.values: dict[tuple[str, str], tuple] = {}

    def get_value(self, key, name):
        return self.values.get((key, name))

    def set_value(self, key, name, value, value_type):
        self.values[(key, name)] = (value, value_type)

    def delete_value(self, key, name):
        self.values.pop((key, name), None)

    def delete_key(self, key):
        for entry in [k for k in self.values if k[0] == key]:
            del self.values[entry]

    def user_path(self):
        found = self.get_value(ENVIRONMENT_KEY, "PATH")
        return found[0] if found else None


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def events():
    return {"broadcasts": 0, "scheduled": []}


def make(install_root, registry, events, **options):
    def broadcast():
        events["broadcasts"] += 1

    def schedule(path):
        events["scheduled"].append(Path(path))
        return True

    return WindowsConfigurator(
        install_root,
        GlobalOptions(**options),
        registry=registry,
        broadcast=broadcast,
        schedule_delete=schedule,
    )


class TestVariables:
    def test_written_as_expand_sz(self, install_root, registry, events):
        env = make(install_root, registry, events)

        env.config_env_vars({"CARGO_HOME": "C:\\rust\\cargo"})

        assert registry.values[(ENVIRONMENT_KEY, "CARGO_HOME")] == (
            "C:\\rust\\cargo",
            regcodec.REG_EXPAND_SZ,
        )
        assert os.environ["CARGO_HOME"] == "C:\\rust\\cargo"
        assert events["broadcasts"] == 1

    def test_no_modify_env(self, install_root, registry, events):
        env = make(install_root, registry, events, no_modify_env=True)

        env.config_env_vars({"CARGO_HOME": "C:\\rust\\cargo"})

        assert registry.values == {}
        assert events["broadcasts"] == 0

    def test_remove_rustup_env_vars(self, install_root, registry, events):
        """Test managed variables and install PATH entries go, the rest stays."""
        env = make(install_root, registry, events)
        env.config_env_vars({"CARGO_HOME": "c", "RUSTUP_HOME": "r"})
        registry.set_value(ENVIRONMENT_KEY, "JAVA_HOME", "j", regcodec.REG_SZ)
        registry.set_value(
            ENVIRONMENT_KEY,
            "PATH",
            f"{install_root / 'cargo' / 'bin'};C:\\Tools;{install_root}",
            regcodec.REG_EXPAND_SZ,
        )

        env.remove_rustup_env_vars()

        assert (ENVIRONMENT_KEY, "CARGO_HOME") not in registry.values
        assert (ENVIRONMENT_KEY, "RUSTUP_HOME") not in registry.values
        assert (ENVIRONMENT_KEY, "JAVA_HOME") in registry.values
        assert registry.user_path() == "C:\\Tools"


class TestPath:
    """Tests for splicing the user PATH value."""

    def test_add_prepends_once(self, install_root, registry, events):
        registry.set_value(ENVIRONMENT_KEY, "PATH", "C:\\Tools", regcodec.REG_EXPAND_SZ)
        env = make(install_root, registry, events)
        bin_dir = install_root / "cargo" / "bin"

        env.add_to_path(bin_dir)
        env.add_to_path(bin_dir)

        assert registry.user_path() == f"{bin_dir};C:\\Tools"
        assert events["broadcasts"] == 1

    def test_add_to_missing_path(self, install_root, registry, events):
        make(install_root, registry, events).add_to_path(install_root)

        assert registry.user_path() == str(install_root)

    def test_remove_keeps_other_entries(self, install_root, registry, events):
        value = f"C:\\A;{install_root};{install_root}\\sub;C:\\B"
        registry.set_value(ENVIRONMENT_KEY, "PATH", value, regcodec.REG_EXPAND_SZ)

        make(install_root, registry, events).remove_from_path(install_root)

        assert registry.user_path() == f"C:\\A;{install_root}\\sub;C:\\B"

    def test_bytes_value_decoded(self, install_root, registry, events):
        registry.set_value(
            ENVIRONMENT_KEY, "PATH", regcodec.encode_value("C:\\Tools"), regcodec.REG_EXPAND_SZ
        )

        make(install_root, registry, events).add_to_path(install_root)

        assert registry.user_path() == f"{install_root};C:\\Tools"

    def test_non_string_path_left_alone(self, install_root, registry, events, caplog):
        registry.set_value(ENVIRONMENT_KEY, "PATH", 42, 4)

        make(install_root, registry, events).add_to_path(install_root)

        assert registry.values[(ENVIRONMENT_KEY, "PATH")] == (42, 4)
        assert "not a string" in caplog.text

    def test_no_modify_path(self, install_root, registry, events):
        make(install_root, registry, events, no_modify_path=True).add_to_path(install_root)

        assert registry.user_path() is None


class TestInstalledPrograms:
    def test_register_and_unregister(self, install_root, registry, events):
        env = make(install_root, registry, events)
        manager = install_root / "rustkit-manager.exe"

        env.register_program(manager, "Demo Toolkit", "1.0.0")

        assert registry.values[(UNINSTALL_KEY, "DisplayName")][0] == "Demo Toolkit"
        assert registry.values[(UNINSTALL_KEY, "UninstallString")][0] == f'"{manager}" uninstall'

        env.unregister_program()
        assert not any(key == UNINSTALL_KEY for key, _ in registry.values)

    def test_existing_entry_kept(self, install_root, temp_dir, registry, events):
        """Test a live entry from another installation is not overwritten."""
        other = temp_dir / "other" / "rustkit-manager.exe"
        other.parent.mkdir()
        registry.set_value(UNINSTALL_KEY, "UninstallString", f'"{other}" uninstall', regcodec.REG_SZ)

        make(install_root, registry, events).register_program(
            install_root / "rustkit-manager.exe", "Demo", "1"
        )

        assert (UNINSTALL_KEY, "DisplayName") not in registry.values


class TestRemoveSelf:
    def test_running_binary_scheduled(self, install_root, registry, events):
        """Test everything but the running manager is deleted immediately."""
        manager = install_root / "rustkit-manager.exe"
        (install_root / "cargo" / "bin").mkdir(parents=True)
        (install_root / "cargo" / "bin" / "cargo.exe").write_text("")
        manager.write_text("")
        env = make(install_root, registry, events)
        env.register_program(manager, "Demo", "1")

        env.remove_self(manager)

        assert not (install_root / "cargo").exists()
        assert manager.exists()
        assert events["scheduled"] == [manager.resolve(), install_root]
        assert not any(key == UNINSTALL_KEY for key, _ in registry.values)
