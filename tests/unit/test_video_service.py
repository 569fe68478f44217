"""
Unit tests for video upload validation and video/target actions.
"""

import io
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from unittest.mock import patch

from app.config import PUBLISH_QUEUE
from app.services import video_service


def _detail(excinfo):
    return excinfo.value.detail


class TestValidateUpload:
    """Test validate_upload()."""

    def test_accepts_known_types(self):
        for name in ("a.mp4", "b.MOV", "c.webm"):
            video_service.validate_upload(name, 1024)

    def test_rejects_other_types(self):
        with pytest.raises(HTTPException) as excinfo:
            video_service.validate_upload("clip.mkv", 1024)
        assert excinfo.value.status_code == 422
        assert _detail(excinfo) == "The video must be a file of type: mp4, mov, avi, wmv, webm."

    def test_requires_file(self):
        with pytest.raises(HTTPException) as excinfo:
            video_service.validate_upload(None, None)
        assert _detail(excinfo) == "The video field is required."

    def test_rejects_large_file(self):
        with pytest.raises(HTTPException) as excinfo:
            video_service.validate_upload("big.mp4", video_service.MAX_UPLOAD_BYTES + 1)
        assert "may not be greater than" in _detail(excinfo)


class TestValidateMetadata:
    """Test validate_metadata()."""

    @pytest.mark.parametrize("title,description,message", [
        ("", "desc", "The title field is required."),
        ("   ", "desc", "The title field is required."),
        ("t" * 256, "desc", "The title may not be greater than 255 characters."),
        ("Title", "", "The description field is required."),
        ("Title", "d" * 1001, "The description may not be greater than 1000 characters."),
    ])
    def test_invalid(self, title, description, message):
        with pytest.raises(HTTPException) as excinfo:
            video_service.validate_metadata(title, description)
        assert _detail(excinfo) == message

    def test_valid(self):
        video_service.validate_metadata("t" * 255, "d" * 1000)


class TestValidateSchedule:
    """Test validate_schedule()."""

    def test_now_has_no_publish_at(self):
        assert video_service.validate_schedule("now", "2030-01-01T00:00:00Z") is None

    def test_scheduled_in_future(self):
        when = datetime.now(timezone.utc) + timedelta(days=1)
        assert video_service.validate_schedule("scheduled", when.isoformat()) == when.isoformat()

    def test_scheduled_in_past(self):
        with pytest.raises(HTTPException) as excinfo:
            video_service.validate_schedule("scheduled", "2020-01-01T00:00:00Z")
        assert _detail(excinfo) == "The publish at must be a date after now."

    def test_scheduled_requires_date(self):
        with pytest.raises(HTTPException) as excinfo:
            video_service.validate_schedule("scheduled", None)
        assert "required when publish type is scheduled" in _detail(excinfo)

    def test_invalid_date(self):
        with pytest.raises(HTTPException) as excinfo:
            video_service.validate_schedule("scheduled", "next tuesday")
        assert _detail(excinfo) == "The publish at is not a valid date."

    def test_unknown_publish_type(self):
        with pytest.raises(HTTPException):
            video_service.validate_schedule("later", None)


class TestValidatePlatforms:
    """Test validate_platforms() against plan and connected accounts."""

    def test_free_plan_youtube_only(self, fake_db, channel):
        assert video_service.validate_platforms("user-1", channel, ["youtube", "youtube"]) == ["youtube"]
        with pytest.raises(HTTPException) as excinfo:
            video_service.validate_platforms("user-1", channel, ["tiktok"])
        assert _detail(excinfo) == "Platform 'tiktok' is not available with your current plan."

    def test_pro_requires_connected_account(self, fake_db, channel, pro_subscription):
        assert video_service.validate_platforms("user-1", channel, ["youtube", "tiktok"]) == ["youtube", "tiktok"]
        with pytest.raises(HTTPException) as excinfo:
            video_service.validate_platforms("user-1", channel, ["instagram"])
        assert _detail(excinfo) == "Platform 'instagram' is not connected to this channel."

    def test_unknown_and_empty(self, fake_db, channel):
        with pytest.raises(HTTPException) as excinfo:
            video_service.validate_platforms("user-1", channel, ["myspace"])
        assert _detail(excinfo) == "The selected platforms is invalid."
        with pytest.raises(HTTPException):
            video_service.validate_platforms("user-1", channel, [])


class TestCreateVideo:
    """Test create_video() with probing mocked."""

    def _create(self, channel, **overrides):
        kwargs = dict(
            user_id="user-1",
            channel=channel,
            source=io.BytesIO(b"\x00" * 32),
            filename="clip.mp4",
            size=32,
            title=" Pasta night ",
            description="Fresh pasta",
            platforms=["youtube", "tiktok"],
            tags=["pasta"],
            advanced_options={"tiktok": {"caption": "So good #youtubeshorts #pasta"}, "instagram": {"caption": "dropped"}},
        )
        kwargs.update(overrides)
        info = {"duration": 42, "video_width": 1080, "video_height": 1920, "thumbnail_path": None}
        with patch.object(video_service, "probe_and_thumbnail", return_value=info):
            return video_service.create_video(**kwargs)

    def test_creates_targets_and_dispatches(self, fake_db, channel, pro_subscription):
        video = self._create(channel)

        assert video["title"] == "Pasta night"
        assert [t["platform"] for t in video["targets"]] == ["youtube", "tiktok"]
        assert all(t["status"] == "pending" for t in video["targets"])
        assert video["targets"][1]["advanced_options"] == {"caption": "So good #youtubeshorts #pasta"}
        assert len(fake_db.sent(PUBLISH_QUEUE)) == 2
        assert video["hashtag_warnings"]["tiktok"]["removed_hashtags"] == ["#youtubeshorts"]
        assert fake_db.rows("channels", id=channel["id"])[0]["default_platforms"] == ["youtube", "tiktok"]

    def test_scheduled_does_not_dispatch(self, fake_db, channel, pro_subscription):
        when = (datetime.now(timezone.utc) + timedelta(hours=3)).isoformat()
        video = self._create(channel, publish_type="scheduled", publish_at=when)

        assert all(t["publish_at"] == when for t in video["targets"])
        assert fake_db.sent() == []

    def test_validation_happens_before_storage(self, fake_db, channel):
        with pytest.raises(HTTPException):
            self._create(channel, platforms=["tiktok"])
        assert fake_db.rows("videos") == []


class TestVideoActions:
    """Test listing, deleting and target actions."""

    def test_list_videos_paginates(self, fake_db, video):
        for i in range(11):
            fake_db.seed("videos", user_id="user-1", title=f"v{i}", created_at=f"2024-01-{i + 1:02d}T00:00:00+00:00")
        fake_db.seed("videos", user_id="user-2", title="not mine", created_at="2024-02-01T00:00:00+00:00")

        first = video_service.list_videos("user-1")
        assert first["total"] == 12
        assert first["per_page"] == 10
        assert first["last_page"] == 2
        assert len(first["data"]) == 10

        second = video_service.list_videos("user-1", page=2)
        assert len(second["data"]) == 2

    def test_get_video_other_user(self, fake_db, video):
        with pytest.raises(HTTPException) as excinfo:
            video_service.get_video("user-2", video["id"])
        assert excinfo.value.status_code == 404

    def test_delete_video_dispatches_removal(self, fake_db, video):
        result = video_service.delete_video("user-1", video["id"])

        assert result == {"deleted": True, "removal_jobs": 1}
        assert fake_db.rows("videos", id=video["id"]) == []
        assert fake_db.rows("video_targets", video_id=video["id"]) == []
        assert fake_db.sent(PUBLISH_QUEUE)[0]["snapshot"]["platform_video_id"] == "yt123"

    def test_retry_target_conflict(self, fake_db, video):
        target = fake_db.rows("video_targets", video_id=video["id"])[0]
        with pytest.raises(HTTPException) as excinfo:
            video_service.retry_target("user-1", target["id"])
        assert excinfo.value.status_code == 409

    def test_target_of_other_user(self, fake_db, video):
        target = fake_db.rows("video_targets", video_id=video["id"])[0]
        with pytest.raises(HTTPException) as excinfo:
            video_service.get_target("user-2", target["id"])
        assert excinfo.value.status_code == 404

    def test_update_all_platforms(self, fake_db, video):
        assert video_service.update_all_platforms("user-1", video["id"]) == {"targets": 1, "update_jobs": 1}
