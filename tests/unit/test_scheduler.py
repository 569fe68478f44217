"""
Unit tests for the publishing scheduler's manual triggers and status.
"""

import pytest
from unittest.mock import patch, MagicMock

from scripts import publish_scheduler


class TestTriggerJob:
    """Test trigger_job()."""

    def test_unknown_job(self):
        with pytest.raises(KeyError):
            publish_scheduler.trigger_job("send_newsletter")

    def test_success_recorded(self):
        job = MagicMock(return_value={"dispatched": 2})
        with patch.dict(publish_scheduler.JOBS, {"process_pending_uploads": ("Process pending uploads", job)}):
            result = publish_scheduler.trigger_job("process_pending_uploads")

        assert result["success"] is True
        assert result["result"] == {"dispatched": 2}
        status = publish_scheduler.get_scheduler_status()["jobs"]["process_pending_uploads"]
        assert status["last_status"] == "success_manual"

    def test_failure_is_reported_not_raised(self):
        job = MagicMock(side_effect=RuntimeError("database unavailable"))
        with patch.dict(publish_scheduler.JOBS, {"process_workflows": ("Process workflows", job)}):
            result = publish_scheduler.trigger_job("process_workflows")

        assert result["success"] is False
        assert result["error"] == "database unavailable"
        status = publish_scheduler.get_scheduler_status()["jobs"]["process_workflows"]
        assert status["last_status"] == "failed_manual_exception: database unavailable"


class TestStatus:
    """Test get_scheduler_status() without a running scheduler."""

    def test_not_running(self):
        status = publish_scheduler.get_scheduler_status()
        assert status["running"] is False
        assert set(status["jobs"]) == {
            "process_pending_uploads",
            "process_workflows",
            "retry_failed_removals",
            "cleanup_cache",
        }
        assert status["jobs"]["cleanup_cache"]["next_run_time"] is None

    def test_start_disabled(self):
        # SCHEDULER_ENABLED=false in the test environment
        publish_scheduler.start_scheduler()
        assert publish_scheduler.get_scheduler_status()["running"] is False
