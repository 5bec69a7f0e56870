"""
Unit tests for the log stream and file helpers.
"""

import pytest

from vargmm import common


@pytest.fixture
def restore_logfile(monkeypatch):
    """Undo any log file redirection after the test."""
    monkeypatch.setattr(common, "logfile", common.logfile)


class TestLogfile:
    """Tests for redirecting the log stream."""

    def test_log_line(self, tmp_path, restore_logfile):
        """Test the tagged log line format."""
        common.set_logfile(str(tmp_path / "run.log"))
        common.log("EM", "finished iteration 1")
        common.logfile.close()

        assert (tmp_path / "run.log").read_text() == "LOG EM: finished iteration 1\n"

    def test_previous_logfile_is_closed(self, tmp_path, restore_logfile):
        """Test that redirecting twice closes the first log file."""
        common.set_logfile(str(tmp_path / "first.log"))
        first = common.logfile
        common.set_logfile(str(tmp_path / "second.log"))

        assert first.closed
        assert not common.logfile.closed
        common.logfile.close()

    def test_standard_error_stays_open(self, tmp_path, monkeypatch):
        """Test that the default stream is never closed."""
        monkeypatch.setattr(common, "logfile", common.stderr)
        common.set_logfile(str(tmp_path / "run.log"))

        assert not common.stderr.closed
        common.logfile.close()

    def test_unwritable_logfile(self, tmp_path, restore_logfile):
        """Test that a missing directory is a resource error."""
        with pytest.raises(common.ResourceError):
            common.set_logfile(str(tmp_path / "missing" / "run.log"))
