"""
Tests for version diffing and the update flow.
"""

import subprocess

import pytest

from rustkit.installation.install import InstallConfiguration
from rustkit.installation.record import InstallationRecord, RustRecord, ToolRecord
from rustkit.installation.update import (
    VersionDiff,
    default_update_selection,
    diff_versions,
    installed_components,
)
from rustkit.toolchain.components import Component, ComponentType
from rustkit.tools.kinds import ToolKind
from tests.support import TARGET, build_manifest


def component(name, version, installed=False, kind=ComponentType.TOOL):
    return Component(name=name, kind=kind, version=version, installed=installed)


class TestVersionDiff:
    """Tests for VersionDiff."""

    def test_changed(self):
        assert VersionDiff("1.0", "2.0").changed
        assert not VersionDiff("1.0", "1.0").changed

    def test_str(self):
        """Test the three display forms."""
        assert str(VersionDiff("1.0", "2.0")) == "1.0 -> 2.0"
        assert str(VersionDiff("1.0", "1.0")) == "1.0"
        assert str(VersionDiff(None, "3.0", is_newly_supported=True)) == "(new) 3.0"
        assert str(VersionDiff(None, None)) == ""


class TestDiffVersions:
    """Tests for diff_versions."""

    def test_changed_and_unchanged(self):
        installed = [component("a", "1", installed=True), component("b", "2", installed=True)]
        target = [component("a", "1"), component("b", "3")]

        diffs = diff_versions(installed, target)

        assert diffs["a"] == VersionDiff("1", "1")
        assert diffs["b"] == VersionDiff("2", "3")

    def test_newly_supported(self):
        """Test a versioned component absent from the installation is new."""
        diffs = diff_versions([], [component("c", "1")])

        assert diffs["c"].is_newly_supported
        assert diffs["c"].from_version is None

    def test_unversioned_new_component_not_flagged(self):
        diffs = diff_versions([], [component("c", None)])

        assert not diffs["c"].is_newly_supported
        assert not diffs["c"].changed

    def test_uninstalled_components_ignored(self):
        """Test components listed but not installed count as absent."""
        installed = [component("a", "1", installed=False)]
        diffs = diff_versions(installed, [component("a", "2")])

        assert diffs["a"].is_newly_supported


class TestDefaultUpdateSelection:
    """Tests for default_update_selection."""

    def test_changed_components_selected(self):
        target = [component("a", "1"), component("b", "3"), component("c", "1")]
        diffs = {
            "a": VersionDiff("1", "1"),
            "b": VersionDiff("2", "3"),
            "c": VersionDiff(None, "1", is_newly_supported=True),
        }

        selection = default_update_selection(target, diffs)

        assert [c.name for c in selection] == ["b"]

    def test_user_selection_added(self):
        """Test explicitly named components are added in target order."""
        target = [component("a", "1"), component("b", "3"), component("c", "1")]
        diffs = {
            "a": VersionDiff("1", "1"),
            "b": VersionDiff("2", "3"),
            "c": VersionDiff(None, "1", is_newly_supported=True),
        }

        selection = default_update_selection(target, diffs, ["c", "a"])

        assert [c.name for c in selection] == ["a", "b", "c"]

    def test_unknown_user_selection_warns(self, caplog):
        selection = default_update_selection([component("a", "1")], {}, ["zzz"])

        assert selection == []
        assert "'zzz' is not part of the target toolkit" in caplog.text


class TestInstalledComponents:
    """Tests for installed_components."""

    @pytest.fixture
    def record(self, install_root):
        record = InstallationRecord.load_from_dir(install_root)
        record.rust = RustRecord("1.79.0", ["clippy"])
        record.add_tool_record("a", ToolRecord.cargo_tool("0.1.0"))
        record.add_tool_record("legacy", ToolRecord(kind=ToolKind.EXECUTABLES, version="9"))
        return record

    def test_versions_and_flags_from_record(self, record):
        manifest = build_manifest(
            {"a": "0.2.0", "b": "1.0"},
            channel="1.80.0",
            optional_components=["clippy", "rust-docs"],
        )

        components = {c.name: c for c in installed_components(record, manifest)}

        assert components["Rust"].installed
        assert components["Rust"].version == "1.79.0"
        assert components["clippy"].installed
        assert not components["rust-docs"].installed
        assert components["a"].installed
        assert components["a"].version == "0.1.0"
        assert not components["b"].installed

    def test_record_only_tools_appended(self, record):
        manifest = build_manifest({"a": "0.2.0"})

        components = installed_components(record, manifest)

        assert components[-1].name == "legacy"
        assert components[-1].installed
        assert components[-1].version == "9"

    def test_saved_manifest_used_by_default(self, record, install_root):
        build_manifest({"a": "0.1.0"}).write_to_dir(install_root)

        names = [c.name for c in installed_components(record)]

        assert "a" in names

    def test_nothing_installed_without_rust_record(self, install_root):
        record = InstallationRecord.load_from_dir(install_root)
        components = installed_components(record, build_manifest())

        assert not any(c.installed for c in components)


class TestUpdateFlow:
    """Tests for InstallConfiguration.update."""

    @pytest.fixture
    def cargo_calls(self, monkeypatch):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append([str(part) for part in cmd])
            return subprocess.CompletedProcess(cmd, 0, "", "")

        monkeypatch.setattr("rustkit.tools.strategies.run_command", fake_run)
        return calls

    @pytest.fixture
    def existing(self, install_root):
        old = build_manifest({"a": "0.1.0"}, optional_components=["clippy"])
        old.write_to_dir(install_root)
        record = InstallationRecord.load_from_dir(install_root)
        record.clone_toolkit_meta_from_manifest(old)
        record.rust = RustRecord("stable", ["clippy"])
        record.add_tool_record("a", ToolRecord.cargo_tool("0.1.0"))
        record.write()
        return record

    def test_update_changed_components(
        self,
        existing,
        install_root,
        recording_env,
        fake_toolchain,
        progress_recorder,
        cargo_calls,
    ):
        """Test the toolchain and the changed tool move to the new versions."""
        target_manifest = build_manifest(
            {"a": "0.2.0", "new-tool": "1.0"},
            version="2.0.0",
            channel="1.80.0",
            optional_components=["clippy"],
        )
        installed = installed_components(existing)
        target = target_manifest.current_target_components(target=TARGET)
        diffs = diff_versions(installed, target)
        selection = default_update_selection(target, diffs)

        assert [c.name for c in selection] == ["Rust", "clippy", "a"]

        config = InstallConfiguration(
            install_root,
            target_manifest,
            progress=progress_recorder.progress(),
            env=recording_env,
            toolchain_installer=fake_toolchain,
            target=TARGET,
        )
        config.update(selection)

        record = InstallationRecord.load_from_dir(install_root)
        assert fake_toolchain.updated == ["Rust", "clippy"]
        assert record.rust.version == "1.80.0"
        assert record.rust.components == ["clippy"]
        assert record.version == "2.0.0"
        assert record.tools["a"].version == "0.2.0"
        assert "new-tool" not in record.tools
        assert cargo_calls[0][1:] == ["install", "a", "--version", "0.2.0"]
        assert recording_env.applied["CARGO_HOME"] == str(install_root / "cargo")
        assert recording_env.variables == {}
        assert progress_recorder.last == pytest.approx(100)

    def test_tool_only_update_keeps_toolchain(
        self, existing, install_root, recording_env, fake_toolchain, cargo_calls
    ):
        """Test the toolchain is untouched when no toolchain component is selected."""
        target_manifest = build_manifest({"a": "0.3.0"}, version="1.1.0")
        selection = [
            c for c in target_manifest.current_target_components(target=TARGET) if c.name == "a"
        ]

        config = InstallConfiguration(
            install_root,
            target_manifest,
            env=recording_env,
            toolchain_installer=fake_toolchain,
            target=TARGET,
        )
        config.update(selection)

        record = InstallationRecord.load_from_dir(install_root)
        assert fake_toolchain.updated is None
        assert record.rust == RustRecord("stable", ["clippy"])
        assert record.tools["a"].version == "0.3.0"
        assert record.version == "1.1.0"
