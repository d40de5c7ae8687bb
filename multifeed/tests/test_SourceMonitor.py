"""Unit tests for SourceMonitor."""

from unittest.mock import patch

import pytest

from multifeed.src.SourceMonitor import SourceMonitor, SourceStatus


class TestSourceMonitorInit:
    """Test SourceMonitor initialization."""

    def test_init_with_sources(self) -> None:
        monitor = SourceMonitor(["a", "b"])
        assert monitor.sources == ["a", "b"]
        assert len(monitor.get_all_status()) == 2

    def test_init_empty(self) -> None:
        monitor = SourceMonitor()
        assert monitor.sources == []
        assert monitor.get_failing_sources() == []

    def test_invalid_threshold(self) -> None:
        with pytest.raises(ValueError, match="alert_threshold must be at least 1"):
            SourceMonitor(alert_threshold=0)


class TestSourceMonitorRecording:
    """Test failure and success recording."""

    def test_consecutive_failures(self) -> None:
        monitor = SourceMonitor(["a"])
        assert monitor.record_failure("a", "timeout") == 1
        assert monitor.record_failure("a", "HTTP 500") == 2

        status = monitor.get_source_status("a")
        assert status.total_failures == 2
        assert status.last_error == "HTTP 500"

    def test_success_resets_consecutive(self) -> None:
        monitor = SourceMonitor(["a"])
        monitor.record_failure("a")
        monitor.record_failure("a")
        monitor.record_success("a")
        monitor.record_failure("a")

        status = monitor.get_source_status("a")
        assert status.consecutive_failures == 1
        assert status.total_failures == 3
        assert status.total_successes == 1

    @patch("multifeed.src.SourceMonitor.time.time")
    def test_last_success_time(self, mock_time) -> None:
        mock_time.return_value = 1234.0
        monitor = SourceMonitor(["a"])
        monitor.record_success("a")
        assert monitor.get_source_status("a").last_success_at == 1234.0

    def test_unknown_source_tracked(self) -> None:
        monitor = SourceMonitor(["a"])
        monitor.record_failure("new", "down")
        assert "new" in monitor.sources
        assert monitor.get_source_status("new").consecutive_failures == 1

    def test_record_round(self) -> None:
        monitor = SourceMonitor(["a", "b", "c"])
        monitor.record_round(["a", "b"], {"c": "timeout"})

        assert monitor.get_source_status("a").total_successes == 1
        assert monitor.get_source_status("c").last_error == "timeout"


class TestSourceMonitorAlerts:
    """Test failing-source reporting."""

    def test_failing_after_threshold(self) -> None:
        monitor = SourceMonitor(["a", "b"], alert_threshold=2)
        monitor.record_failure("a")
        assert monitor.get_failing_sources() == []

        monitor.record_failure("a")
        assert monitor.get_failing_sources() == ["a"]

        monitor.record_success("a")
        assert monitor.get_failing_sources() == []

    def test_alert_logged_once(self, caplog) -> None:
        monitor = SourceMonitor(["a"], alert_threshold=2)
        with caplog.at_level("WARNING"):
            for _ in range(4):
                monitor.record_failure("a", "down")

        warnings = [r for r in caplog.records if "consecutive failures" in r.message]
        assert len(warnings) == 1


class TestSourceMonitorMutation:
    """Test source list mutation."""

    def test_remove_source(self) -> None:
        monitor = SourceMonitor(["a", "b"])
        monitor.remove_source("a")
        assert "a" not in monitor.sources
        assert monitor.get_source_status("a") is None

    def test_remove_unknown(self) -> None:
        SourceMonitor(["a"]).remove_source("unknown")

    def test_sync_sources(self) -> None:
        """Dropped sources lose their history; new ones start clean."""
        monitor = SourceMonitor(["a", "b"])
        monitor.record_failure("a", "x")
        monitor.record_failure("b", "y")

        monitor.sync_sources(["b", "c"])

        assert monitor.sources == ["b", "c"]
        assert monitor.get_source_status("a") is None
        assert monitor.get_source_status("b").total_failures == 1
        assert monitor.get_source_status("c") == SourceStatus()

    def test_get_all_status_is_copy(self) -> None:
        monitor = SourceMonitor(["a"])
        monitor.record_failure("a")
        all_status = monitor.get_all_status()
        all_status["a"] = SourceStatus()
        assert monitor.get_source_status("a").consecutive_failures == 1
