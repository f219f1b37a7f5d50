"""
Unit tests for progress reporting.
"""

from rustkit.core.progress import Progress


class TestProgress:
    """Tests for Progress."""

    def test_inc_reports_value(self):
        seen = []
        progress = Progress(lambda value, message: seen.append((value, message)))

        progress.inc(5, "setup")
        progress.inc(2.5)

        assert seen == [(5.0, "setup"), (7.5, "")]
        assert progress.value == 7.5

    def test_clamped(self):
        progress = Progress()
        progress.inc(80)
        progress.inc(80)

        assert progress.value == 100.0
        progress.set(-3)
        assert progress.value == 0.0

    def test_tick_keeps_value(self):
        seen = []
        progress = Progress(lambda value, message: seen.append((value, message)))
        progress.set(40)
        progress.tick()

        assert seen[-1] == (40.0, Progress.TICK)

    def test_failing_callback_ignored(self, caplog):
        """Test a broken front end never aborts the caller."""

        def broken(value, message):
            raise RuntimeError("display gone")

        progress = Progress(broken)
        progress.inc(10)

        assert progress.value == 10.0
        assert "Progress callback failed" in caplog.text

    def test_split(self):
        assert Progress.split(30, 3) == 10
        assert Progress.split(30, 0) == 0
