"""
Tests for the install state machine.

Every test drives a real InstallConfiguration against a temporary install
root with a recording environment configurator and a fake toolchain
installer; cargo invocations are intercepted at ``run_command``.
"""

import subprocess

import pytest
import responses

from rustkit.core.exceptions import (
    ConflictingToolsError,
    MissingRestrictedSourceError,
    SourceNotFoundError,
    ToolchainNotInstalledError,
)
from rustkit.installation.install import (
    InstallConfiguration,
    InstallState,
    reject_conflicting_tools,
)
from rustkit.installation.record import InstallationRecord, ToolRecord
from rustkit.config.manifest import MANIFEST_FILENAME, ToolInfo
from rustkit.config.settings import CargoRegistry, UserSettings
from rustkit.tools.kinds import ToolKind
from tests.support import TARGET, build_manifest, write_executable, write_tarball


@pytest.fixture
def cargo_calls(monkeypatch):
    """Intercept every external command run by the tool strategies."""
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append([str(part) for part in cmd])
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr("rustkit.tools.strategies.run_command", fake_run)
    return calls


@pytest.fixture
def manager_binary(temp_dir):
    return write_executable(temp_dir / "downloads" / "rustkit-setup")


def make_config(install_root, manifest, recording_env, fake_toolchain, progress=None, **kwargs):
    return InstallConfiguration(
        install_root,
        manifest,
        progress=progress,
        env=recording_env,
        toolchain_installer=fake_toolchain,
        target=TARGET,
        **kwargs,
    )


def select_all(manifest):
    return manifest.current_target_components(target=TARGET)


class TestRejectConflictingTools:
    """Tests for the conflict check run before any phase."""

    def test_no_conflicts(self):
        """Test a selection without declared conflicts passes."""
        tools = {
            "a": ToolInfo.from_value("a", "1.0"),
            "b": ToolInfo.from_value("b", {"version": "2.0", "conflicts": ["c"]}),
        }
        reject_conflicting_tools(tools)

    def test_pairs_reported_once_and_sorted(self):
        """Test mutual declarations collapse into one sorted pair."""
        tools = {
            "z": ToolInfo.from_value("z", {"version": "1", "conflicts": ["a"]}),
            "a": ToolInfo.from_value("a", {"version": "1", "conflicts": ["z"]}),
            "m": ToolInfo.from_value("m", {"version": "1", "conflicts": ["a"]}),
        }
        with pytest.raises(ConflictingToolsError) as exc_info:
            reject_conflicting_tools(tools)

        assert exc_info.value.pairs == [("a", "m"), ("a", "z")]


class TestDemoInstall:
    """Fresh install of a toolkit with one cargo tool and one binary tool."""

    @pytest.fixture
    def manifest(self, packages_dir):
        exe = write_executable(packages_dir / "b")
        return build_manifest(
            {
                "a": "0.1.0",
                "b": {"path": str(exe), "kind": "executables", "requires": ["a"]},
            },
            optional_components=["clippy"],
        )

    @pytest.fixture
    def installed(
        self,
        install_root,
        manifest,
        recording_env,
        fake_toolchain,
        progress_recorder,
        cargo_calls,
        manager_binary,
    ):
        config = make_config(
            install_root,
            manifest,
            recording_env,
            fake_toolchain,
            progress=progress_recorder.progress(),
            self_exe=manager_binary,
        )
        config.install(select_all(manifest))
        return config

    def test_reaches_done(self, installed, progress_recorder):
        """Test every phase runs and progress ends at 100."""
        assert installed.state is InstallState.DONE
        assert progress_recorder.last == pytest.approx(100)
        assert progress_recorder.values == sorted(progress_recorder.values)

    def test_record_contents(self, installed, install_root):
        """Test the persisted record lists the toolchain and both tools."""
        record = InstallationRecord.load_from_dir(install_root)

        assert record.name == "demo"
        assert record.version == "1.0.0"
        assert record.rust.version == "stable"
        assert record.rust.components == ["clippy"]
        assert record.tools["a"] == ToolRecord(kind=ToolKind.CARGO_TOOL, version="0.1.0")
        assert record.tools["b"].kind is ToolKind.EXECUTABLES
        assert record.tools["b"].paths == [install_root / "cargo" / "bin" / "b"]
        assert record.tools["b"].dependencies == ["a"]

    def test_cargo_tool_installed_with_version(self, installed, cargo_calls, install_root):
        """Test the cargo tool goes through ``cargo install --version``."""
        assert len(cargo_calls) == 1
        cmd = cargo_calls[0]
        assert cmd[0] == str(install_root / "cargo" / "bin" / "cargo")
        assert cmd[1:] == ["install", "a", "--version", "0.1.0"]

    def test_toolchain_requested(self, installed, fake_toolchain):
        """Test the profile and optional component reach the toolchain installer."""
        assert fake_toolchain.installed == ["Rust", "clippy"]

    def test_binary_copied_and_source_kept(self, installed, install_root, packages_dir):
        """Test the executable lands in cargo/bin while the package stays intact."""
        assert (install_root / "cargo" / "bin" / "b").is_file()
        assert (packages_dir / "b").is_file()

    def test_setup_artifacts(self, installed, install_root, recording_env):
        """Test manifest copy, manager binary, PATH entries and registration."""
        assert (install_root / MANIFEST_FILENAME).is_file()
        assert installed.dirs.manager_exe.is_file()
        assert install_root in recording_env.paths
        assert install_root / "cargo" / "bin" in recording_env.paths
        assert recording_env.registered == (installed.dirs.manager_exe, "demo", "1.0.0")

    def test_env_vars_configured(self, installed, install_root, recording_env):
        """Test the managed variables point into the install root."""
        assert recording_env.variables["CARGO_HOME"] == str(install_root / "cargo")
        assert recording_env.variables["RUSTUP_HOME"] == str(install_root / "rustup")
        assert recording_env.variables["RUSTUP_DIST_SERVER"] == "https://static.rust-lang.org"

    def test_temp_dir_left_empty(self, installed, install_root):
        """Test staging directories are cleaned up."""
        assert list((install_root / "temp").iterdir()) == []


class TestInterruptedInstall:
    """Failures abort the run but leave an accurate record."""

    def test_failure_after_two_tools(
        self, install_root, packages_dir, recording_env, fake_toolchain, cargo_calls
    ):
        """Test a failing third tool leaves exactly the first two recorded."""
        tools = {}
        for name in ("t1", "t2", "t3", "t4", "t5"):
            path = packages_dir / name
            if name != "t3":
                write_executable(path)
            tools[name] = {"path": str(path), "kind": "executables"}
        manifest = build_manifest(tools)
        config = make_config(install_root, manifest, recording_env, fake_toolchain)

        with pytest.raises(SourceNotFoundError):
            config.install(select_all(manifest))

        record = InstallationRecord.load_from_dir(install_root)
        assert list(record.tools) == ["t1", "t2"]
        assert record.rust is None
        assert record.name is None
        assert fake_toolchain.installed is None
        assert config.state is InstallState.ENV_CONFIGURED

    def test_conflict_rejected_before_any_change(
        self, install_root, recording_env, fake_toolchain
    ):
        """Test conflicting tools fail before setup touches the machine."""
        manifest = build_manifest(
            {"x": {"version": "1.0", "conflicts": ["y"]}, "y": "2.0"}
        )
        config = make_config(install_root, manifest, recording_env, fake_toolchain)

        with pytest.raises(ConflictingToolsError):
            config.install(select_all(manifest))

        assert not (install_root / MANIFEST_FILENAME).exists()
        assert recording_env.paths == []

    def test_cargo_tool_needs_toolchain(
        self, install_root, recording_env, fake_toolchain, cargo_calls
    ):
        """Test a cargo tool installed before the toolchain is refused."""
        manifest = build_manifest({"a": "0.1.0"})
        config = make_config(install_root, manifest, recording_env, fake_toolchain)

        with pytest.raises(ToolchainNotInstalledError):
            config.install_one("a", manifest.current_target_tools(TARGET)["a"])

        assert cargo_calls == []


class TestToolSources:
    """Installation from each kind of source."""

    def test_dependencies_installed_first(
        self, install_root, packages_dir, recording_env, fake_toolchain
    ):
        """Test a tool is installed after the tool it requires."""
        c = write_executable(packages_dir / "c")
        d = write_executable(packages_dir / "d")
        manifest = build_manifest(
            {
                "c": {"path": str(c), "kind": "executables", "requires": ["d"]},
                "d": {"path": str(d), "kind": "executables"},
            }
        )
        config = make_config(install_root, manifest, recording_env, fake_toolchain)
        config.install(select_all(manifest))

        record = InstallationRecord.load_from_dir(install_root)
        assert list(record.tools) == ["d", "c"]

    def test_archive_with_bin_dir(self, install_root, packages_dir, recording_env, fake_toolchain):
        """Test an archive wrapping ``pkg/bin`` is installed as dir-with-bin."""
        archive = write_tarball(
            packages_dir / "mytool-1.0.tar.gz",
            {"mytool-1.0/bin/mytool": "#!/bin/sh\n", "mytool-1.0/README": "docs\n"},
        )
        manifest = build_manifest({"mytool": {"path": str(archive), "version": "1.0"}})
        config = make_config(install_root, manifest, recording_env, fake_toolchain)
        config.install(select_all(manifest))

        tool_dir = install_root / "tools" / "mytool"
        assert (tool_dir / "bin" / "mytool").is_file()
        assert tool_dir / "bin" in recording_env.paths
        record = InstallationRecord.load_from_dir(install_root)
        assert record.tools["mytool"].kind is ToolKind.DIR_WITH_BIN
        assert record.tools["mytool"].version == "1.0"
        assert record.tools["mytool"].paths == [tool_dir]
        assert archive.is_file()

    @responses.activate
    def test_url_source(self, install_root, recording_env, fake_toolchain):
        """Test a URL source is downloaded before installation."""
        responses.add(
            responses.GET,
            "https://example.com/files/fetched",
            body=b"#!/bin/sh\n",
            status=200,
        )
        manifest = build_manifest(
            {
                "fetched": {
                    "url": "https://example.com/files/fetched",
                    "kind": "executables",
                }
            }
        )
        config = make_config(install_root, manifest, recording_env, fake_toolchain)
        config.install(select_all(manifest))

        assert (install_root / "cargo" / "bin" / "fetched").is_file()

    def test_git_source_arguments(self, install_root, recording_env, fake_toolchain, cargo_calls):
        """Test git sources pass the repository, ref and identifier to cargo."""
        manifest = build_manifest(
            {
                "gitdep": {
                    "git": "https://github.com/org/tool",
                    "tag": "v1.0",
                    "identifier": "tool-cli",
                }
            }
        )
        config = make_config(install_root, manifest, recording_env, fake_toolchain)
        config.install(select_all(manifest))

        assert cargo_calls[0][1:] == [
            "install",
            "--git",
            "https://github.com/org/tool",
            "--tag",
            "v1.0",
            "tool-cli",
        ]
        record = InstallationRecord.load_from_dir(install_root)
        assert record.tools["gitdep"].version == "v1.0"

    def test_restricted_without_source(self, install_root, recording_env, fake_toolchain):
        """Test a restricted tool without a supplied source fails clearly."""
        manifest = build_manifest(
            {"vendor": {"restricted": True, "default": "https://vendor.example.com/"}}
        )
        config = make_config(install_root, manifest, recording_env, fake_toolchain)

        with pytest.raises(MissingRestrictedSourceError):
            config.install(select_all(manifest))

    def test_restricted_with_supplied_path(
        self, install_root, packages_dir, recording_env, fake_toolchain
    ):
        """Test a supplied local path is installed like a path source."""
        exe = write_executable(packages_dir / "vendor")
        manifest = build_manifest(
            {"vendor": {"restricted": True, "kind": "executables", "display-name": "Vendor"}}
        )
        components = select_all(manifest)
        labels = []

        def supply(label):
            labels.append(label)
            return str(exe)

        manifest.fill_missing_package_source(components, supply)
        config = make_config(install_root, manifest, recording_env, fake_toolchain)
        config.install(components)

        assert labels == ["Vendor"]
        assert (install_root / "cargo" / "bin" / "vendor").is_file()

    def test_restricted_with_unknown_location(self, install_root, recording_env, fake_toolchain):
        """Test a supplied value that is neither a path nor a URL is rejected."""
        manifest = build_manifest({"vendor": {"restricted": True, "source": "no-such-file"}})
        config = make_config(install_root, manifest, recording_env, fake_toolchain)

        with pytest.raises(SourceNotFoundError):
            config.install(select_all(manifest))

    def test_obsoleted_tool_removed(self, install_root, packages_dir, recording_env, fake_toolchain):
        """Test installing a tool removes the tools it obsoletes."""
        old_exe = write_executable(install_root / "cargo" / "bin" / "old")
        record = InstallationRecord.load_from_dir(install_root)
        record.add_tool_record("old", ToolRecord(kind=ToolKind.EXECUTABLES, paths=[old_exe]))
        record.write()

        new_exe = write_executable(packages_dir / "new")
        manifest = build_manifest(
            {"new": {"path": str(new_exe), "kind": "executables", "obsoletes": ["old"]}}
        )
        config = make_config(install_root, manifest, recording_env, fake_toolchain)
        config.install(select_all(manifest))

        assert not old_exe.exists()
        record = InstallationRecord.load_from_dir(install_root)
        assert "old" not in record.tools
        assert "new" in record.tools


class TestConfiguration:
    """Tests for values derived from the manifest and settings."""

    def test_registry_written_to_cargo_config(
        self, install_root, recording_env, fake_toolchain
    ):
        """Test a configured registry replaces crates.io."""
        settings = UserSettings(cargo_registry=CargoRegistry("mirror", "sparse+https://m/index/"))
        manifest = build_manifest()
        config = make_config(
            install_root, manifest, recording_env, fake_toolchain, settings=settings
        )
        config.install(select_all(manifest))

        text = (install_root / "cargo" / "config.toml").read_text()
        assert 'replace-with = "mirror"' in text
        assert 'registry = "sparse+https://m/index/"' in text

    def test_proxy_exported(self, install_root, recording_env, fake_toolchain):
        """Test proxy settings become environment variables and requests proxies."""
        manifest = build_manifest(
            proxy={"http": "http://proxy:8080", "no-proxy": "localhost"}
        )
        config = make_config(install_root, manifest, recording_env, fake_toolchain)

        variables = config.env_vars()
        assert variables["http_proxy"] == "http://proxy:8080"
        assert variables["no_proxy"] == "localhost"
        assert "https_proxy" not in variables
        assert config.proxies == {"http": "http://proxy:8080"}

    def test_insecure_downgrades_dist_server(self, install_root, recording_env, fake_toolchain):
        """Test ``--insecure`` persists a plain http dist server."""
        from rustkit.config.options import GlobalOptions

        config = make_config(
            install_root,
            build_manifest(),
            recording_env,
            fake_toolchain,
            options=GlobalOptions(insecure=True),
        )

        assert config.env_vars()["RUSTUP_DIST_SERVER"] == "http://static.rust-lang.org"

    def test_missing_manager_binary_only_warns(
        self, install_root, temp_dir, recording_env, fake_toolchain, caplog
    ):
        """Test setup continues when the running binary cannot be found."""
        config = make_config(
            install_root,
            build_manifest(),
            recording_env,
            fake_toolchain,
            self_exe=temp_dir / "missing",
        )
        config.setup()

        assert not config.dirs.manager_exe.exists()
        assert "manager is not copied" in caplog.text
