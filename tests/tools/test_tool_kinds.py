"""
Unit tests for ToolKind and Tool detection.
"""

from pathlib import Path
from types import SimpleNamespace

import pytest

from rustkit.core.exceptions import SourceNotFoundError
from rustkit.tools.kinds import ToolKind
from rustkit.tools.tool import Tool
from tests.support import write_executable


class TestToolKind:
    """Tests for ToolKind parsing and ranking."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("dir-with-bin", ToolKind.DIR_WITH_BIN),
            ("DirWithBin", ToolKind.DIR_WITH_BIN),
            ("dir_with_bin", ToolKind.DIR_WITH_BIN),
            ("cargo-tool", ToolKind.CARGO_TOOL),
            ("RuleSet", ToolKind.RULE_SET),
            (" executables ", ToolKind.EXECUTABLES),
            (None, ToolKind.UNKNOWN),
        ],
    )
    def test_parse(self, value, expected):
        assert ToolKind.parse(value) is expected

    def test_parse_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown tool kind"):
            ToolKind.parse("magic")

    def test_priority_order(self):
        """Test the fallback removal order ranks every kind."""
        ranked = sorted(ToolKind, key=lambda k: k.priority)

        assert ranked[0] is ToolKind.DIR_WITH_BIN
        assert ranked[1] is ToolKind.EXECUTABLES
        assert ranked[-2] is ToolKind.CARGO_TOOL
        assert ranked[-1] is ToolKind.UNKNOWN

    def test_is_cargo_tool(self):
        assert ToolKind.CARGO_TOOL.is_cargo_tool
        assert not ToolKind.CRATE.is_cargo_tool


class TestToolFromPath:
    """Tests for Tool.from_path kind detection."""

    def test_missing_source(self, temp_dir):
        with pytest.raises(SourceNotFoundError):
            Tool.from_path("x", temp_dir / "missing")

    def test_custom_by_name(self, temp_dir):
        """Test a known name wins over the layout of the source."""
        source = temp_dir / "editor"
        (source / "bin").mkdir(parents=True)

        assert Tool.from_path("vscode", source).kind is ToolKind.CUSTOM

    @pytest.mark.unix
    def test_single_executable(self, temp_dir):
        exe = write_executable(temp_dir / "tool")

        tool = Tool.from_path("tool", exe)

        assert tool.kind is ToolKind.EXECUTABLES
        assert tool.paths == [exe]

    def test_plugin_file(self, temp_dir):
        vsix = temp_dir / "ext.vsix"
        vsix.write_bytes(b"PK")

        assert Tool.from_path("ext", vsix).kind is ToolKind.PLUGIN

    def test_crate_directory(self, temp_dir):
        crate = temp_dir / "mycrate"
        crate.mkdir()
        (crate / "Cargo.toml").write_text('[package]\nname = "mycrate"\n')
        (crate / "bin").mkdir()

        assert Tool.from_path("mycrate", crate).kind is ToolKind.CRATE

    def test_directory_with_bin(self, temp_dir):
        source = temp_dir / "sdk"
        (source / "bin").mkdir(parents=True)

        assert Tool.from_path("sdk", source).kind is ToolKind.DIR_WITH_BIN

    @pytest.mark.unix
    def test_flat_directory_of_executables(self, temp_dir):
        source = temp_dir / "bundle"
        a = write_executable(source / "a")
        b = write_executable(source / "b")
        (source / "README").write_text("docs")

        tool = Tool.from_path("bundle", source)

        assert tool.kind is ToolKind.EXECUTABLES
        assert tool.paths == [a, b]

    def test_unknown_layout(self, temp_dir):
        source = temp_dir / "data"
        (source / "nested").mkdir(parents=True)

        tool = Tool.from_path("data", source)

        assert tool.kind is ToolKind.UNKNOWN
        assert tool.path == source


class TestToolFromInstalled:
    """Tests for rebuilding tools from their records."""

    def record(self, kind, paths=()):
        return SimpleNamespace(kind=kind, paths=[Path(p) for p in paths])

    def test_cargo_tool(self):
        tool = Tool.from_installed("a", self.record(ToolKind.CARGO_TOOL))

        assert tool == Tool("a", ToolKind.CARGO_TOOL, [], ["a"])

    def test_known_kind_keeps_paths(self, temp_dir):
        tool = Tool.from_installed("d", self.record(ToolKind.DIR_WITH_BIN, [temp_dir / "d"]))

        assert tool.kind is ToolKind.DIR_WITH_BIN
        assert tool.paths == [temp_dir / "d"]

    def test_unknown_without_paths(self, caplog):
        assert Tool.from_installed("u", self.record(ToolKind.UNKNOWN)) is None
        assert "holds no path" in caplog.text

    def test_unknown_with_several_paths(self, temp_dir):
        tool = Tool.from_installed(
            "u", self.record(ToolKind.UNKNOWN, [temp_dir / "a", temp_dir / "b"])
        )

        assert tool.kind is ToolKind.EXECUTABLES

    def test_unknown_with_vanished_path(self, temp_dir, caplog):
        assert Tool.from_installed("u", self.record(ToolKind.UNKNOWN, [temp_dir / "gone"])) is None
        assert "no longer exists" in caplog.text

    def test_unknown_redetected(self, temp_dir):
        """Test an unknown record with one existing path is detected again."""
        source = temp_dir / "sdk"
        (source / "bin").mkdir(parents=True)

        tool = Tool.from_installed("sdk", self.record(ToolKind.UNKNOWN, [source]))

        assert tool.kind is ToolKind.DIR_WITH_BIN


class TestToolPath:
    def test_single_path_required(self):
        with pytest.raises(ValueError, match="one path"):
            Tool("x", ToolKind.UNKNOWN, []).path

    def test_cargo_tool_default_args(self):
        assert Tool.cargo_tool("ripgrep").install_args == ["ripgrep"]
        assert Tool.cargo_tool("x", ["--git", "u"]).install_args == ["--git", "u"]
