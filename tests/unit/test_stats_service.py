"""
Unit tests for dashboard statistics.
"""

from datetime import datetime, timezone

from app.services import stats_service


NOW = datetime(2026, 2, 20, 12, 0, tzinfo=timezone.utc)


class TestUserStats:
    """Test get_user_stats()."""

    def test_empty_account(self, fake_db):
        stats = stats_service.get_user_stats("user-1", now=NOW)
        assert stats["stats"]["overview"] == {
            "total_channels": 0,
            "total_videos": 0,
            "connected_platforms": 0,
            "total_uploads": 0,
        }
        assert stats["stats"]["video_status"] == {"success": 0, "failed": 0, "pending": 0, "processing": 0}
        assert stats["subscription"] is None
        assert stats["allowed_platforms"] == ["youtube"]

    def test_counts(self, fake_db, video, pro_subscription):
        fake_db.seed("video_targets", video_id=video["id"], platform="tiktok", status="failed")
        fake_db.seed("videos", user_id="user-2", title="not mine", created_at="2026-02-10T00:00:00+00:00")

        stats = stats_service.get_user_stats("user-1", now=NOW)
        body = stats["stats"]

        assert body["overview"]["total_videos"] == 1
        assert body["overview"]["connected_platforms"] == 2
        assert body["overview"]["total_uploads"] == 2
        assert body["video_status"]["success"] == 1
        assert body["video_status"]["failed"] == 1
        assert body["platforms"]["tiktok"] == {"total": 1, "success": 0, "failed": 1, "pending": 0, "processing": 0}
        assert body["recent_activity"] == [{"date": "2026-02-01", "count": 1}]

        channel = body["channels"][0]
        assert channel["videos_count"] == 1
        assert channel["social_accounts_count"] == 2
        assert channel["success_rate"] == 50.0

        assert stats["subscription"]["max_channels"] == 3
        assert stats["subscription"]["monthly_cost"] == 18.0

    def test_recent_activity_window(self, fake_db, channel):
        fake_db.seed("videos", user_id="user-1", channel_id=channel["id"], created_at="2025-12-01T00:00:00+00:00")
        fake_db.seed("videos", user_id="user-1", channel_id=channel["id"], created_at="2026-02-19T08:00:00+00:00")
        fake_db.seed("videos", user_id="user-1", channel_id=channel["id"], created_at="2026-02-19T09:00:00+00:00")

        activity = stats_service.get_user_stats("user-1", now=NOW)["stats"]["recent_activity"]
        assert activity == [{"date": "2026-02-19", "count": 2}]
