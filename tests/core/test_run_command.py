"""
Unit tests for external command execution.
"""

import subprocess
import sys
from unittest.mock import patch

import pytest

from rustkit.core.exceptions import CommandError
from rustkit.core.process import run_command


class TestRunCommand:
    """Tests for run_command."""

    def test_success(self):
        completed = subprocess.CompletedProcess(["x"], 0, "out\n", "")
        with patch("rustkit.core.process.subprocess.run", return_value=completed) as run:
            result = run_command(["cargo", "--version"])

        assert result is completed
        assert run.call_args.args[0] == ["cargo", "--version"]
        assert run.call_args.kwargs["env"] is None

    def test_env_merged_over_process(self, monkeypatch):
        monkeypatch.setenv("RUSTKIT_TEST_KEEP", "1")
        completed = subprocess.CompletedProcess(["x"], 0, "", "")
        with patch("rustkit.core.process.subprocess.run", return_value=completed) as run:
            run_command(["cargo"], env={"CARGO_HOME": "/r/cargo"})

        env = run.call_args.kwargs["env"]
        assert env["CARGO_HOME"] == "/r/cargo"
        assert env["RUSTKIT_TEST_KEEP"] == "1"

    def test_failure_raises_with_stderr(self):
        completed = subprocess.CompletedProcess(["x"], 101, "", "error: no such package\n")
        with patch("rustkit.core.process.subprocess.run", return_value=completed):
            with pytest.raises(CommandError) as exc_info:
                run_command(["cargo", "install", "nope"])

        assert exc_info.value.returncode == 101
        assert "no such package" in str(exc_info.value)

    def test_extra_ok_codes(self):
        completed = subprocess.CompletedProcess(["x"], 3010, "", "")
        with patch("rustkit.core.process.subprocess.run", return_value=completed):
            assert run_command(["setup.exe"], ok_codes=(0, 3010)).returncode == 3010

    def test_missing_program(self):
        with patch("rustkit.core.process.subprocess.run", side_effect=FileNotFoundError("nope")):
            with pytest.raises(CommandError) as exc_info:
                run_command(["no-such-program"])

        assert exc_info.value.returncode == 127

    def test_real_process(self):
        result = run_command([sys.executable, "-c", "print('hi')"])

        assert result.stdout.strip() == "hi"

    def test_uncaptured_output(self):
        """Test output goes to the terminal and failures still raise."""
        completed = subprocess.CompletedProcess(["x"], 1, None, None)
        with patch("rustkit.core.process.subprocess.run", return_value=completed) as run:
            with pytest.raises(CommandError) as exc_info:
                run_command(["./setup.sh"], capture=False)

        assert run.call_args.kwargs["capture_output"] is False
        assert exc_info.value.returncode == 1
