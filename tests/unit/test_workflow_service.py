"""
Unit tests for workflows (automatic cross-posting from a source channel).

yt-dlp listing and downloading are mocked.
"""

import pytest
from fastapi import HTTPException
from unittest.mock import patch

from app.config import PUBLISH_QUEUE
from app.services import workflow_service, ytdlp_service
from app.services.workflow_service import validate_workflow


MEDIA_INFO = {"duration": 30, "video_width": 1080, "video_height": 1920, "thumbnail_path": None}


@pytest.fixture
def workflow(fake_db, channel, pro_subscription):
    return fake_db.seed(
        "workflows",
        user_id="user-1",
        channel_id=channel["id"],
        name="Shorts to TikTok",
        source_platform="youtube",
        source_url="https://www.youtube.com/@cooking/shorts",
        target_platforms=["tiktok"],
        is_active=True,
        last_run_at="2026-03-01T00:00:00+00:00",
        videos_processed=2,
        created_at="2026-02-01T00:00:00+00:00",
    )


def _entry(video_id, published_at):
    return {
        "platform_video_id": video_id,
        "title": f"Clip {video_id}",
        "description": "",
        "url": f"https://www.youtube.com/watch?v={video_id}",
        "duration": 30,
        "published_at": published_at,
    }


@pytest.fixture
def downloads(tmp_path):
    """Mock yt-dlp downloads by writing a small file per call."""
    def download(url):
        path = tmp_path / f"{url.rsplit('=', 1)[-1]}.mp4"
        path.write_bytes(b"\x00" * 8)
        return str(path), {"title": "Downloaded title", "tags": ["pasta"]}

    with patch.object(ytdlp_service, "download_video", side_effect=download) as mock, \
         patch.object(workflow_service, "probe_and_thumbnail", return_value=MEDIA_INFO):
        yield mock


class TestValidateWorkflow:
    """Test validate_workflow()."""

    def test_valid(self):
        data = {"source_platform": "youtube", "target_platforms": ["tiktok"],
                "source_url": "https://youtube.com/@cooking"}
        assert validate_workflow(data, ["youtube", "tiktok"]) == []

    def test_source_cannot_be_target(self):
        data = {"source_platform": "youtube", "target_platforms": ["youtube"]}
        assert "Source platform cannot be the same as target platform" in validate_workflow(data, ["youtube"])

    def test_not_connected(self):
        errors = validate_workflow({"source_platform": "youtube", "target_platforms": ["instagram"]}, ["youtube"])
        assert errors == ["Target platform 'instagram' is not connected"]

    def test_url_must_match_source(self):
        data = {"source_platform": "tiktok", "target_platforms": ["youtube"],
                "source_url": "https://www.youtube.com/@cooking"}
        assert validate_workflow(data, ["youtube", "tiktok"]) == ["Source URL does not belong to tiktok"]

    def test_unknown_platforms(self):
        errors = validate_workflow({"source_platform": "vimeo", "target_platforms": []}, [])
        assert "The selected source platform is invalid." in errors
        assert "At least one target platform is required." in errors


class TestCreateWorkflow:
    """Test create_workflow()."""

    def test_create(self, fake_db, channel, pro_subscription):
        workflow = workflow_service.create_workflow("user-1", {
            "name": " Shorts ",
            "channel_id": channel["id"],
            "source_platform": "youtube",
            "source_url": "https://www.youtube.com/@cooking",
            "target_platforms": ["tiktok", "tiktok"],
        })
        assert workflow["name"] == "Shorts"
        assert workflow["target_platforms"] == ["tiktok"]
        assert workflow["is_active"] is True

    def test_plan_restriction(self, fake_db, channel):
        with pytest.raises(HTTPException) as excinfo:
            workflow_service.create_workflow("user-1", {
                "name": "Shorts",
                "channel_id": channel["id"],
                "source_platform": "youtube",
                "source_url": "https://www.youtube.com/@cooking",
                "target_platforms": ["tiktok"],
            })
        assert excinfo.value.status_code == 422
        assert "not available with your current plan" in excinfo.value.detail

    def test_foreign_channel(self, fake_db, channel):
        with pytest.raises(HTTPException) as excinfo:
            workflow_service.create_workflow("user-2", {
                "name": "Shorts",
                "channel_id": channel["id"],
                "source_platform": "youtube",
                "source_url": "https://www.youtube.com/@cooking",
                "target_platforms": ["tiktok"],
            })
        assert excinfo.value.status_code == 404


class TestDetectNewVideos:
    """Test detect_new_videos()."""

    def test_filters_by_last_run(self, fake_db, workflow):
        entries = [
            _entry("new", "2026-03-02T00:00:00+00:00"),
            _entry("old", "2026-02-15T00:00:00+00:00"),
            _entry("undated", None),
        ]
        with patch.object(ytdlp_service, "list_source_entries", return_value=entries):
            found = workflow_service.detect_new_videos(workflow)
        assert [e["platform_video_id"] for e in found] == ["new", "undated"]

    def test_first_run_uses_created_at(self, fake_db, workflow):
        workflow["last_run_at"] = None
        entries = [_entry("a", "2026-01-15T00:00:00+00:00"), _entry("b", "2026-02-15T00:00:00+00:00")]
        with patch.object(ytdlp_service, "list_source_entries", return_value=entries):
            found = workflow_service.detect_new_videos(workflow)
        assert [e["platform_video_id"] for e in found] == ["b"]


class TestProcessWorkflow:
    """Test process_workflow()."""

    def test_creates_video_and_dispatches(self, fake_db, workflow, downloads):
        entries = [_entry("abc", "2026-03-05T00:00:00+00:00")]
        with patch.object(ytdlp_service, "list_source_entries", return_value=entries):
            result = workflow_service.process_workflow(workflow)

        assert result["new_videos"] == 1
        assert result["new_targets"] == 1
        video = fake_db.rows("videos", title="Downloaded title")[0]
        targets = {t["platform"]: t for t in fake_db.rows("video_targets", video_id=video["id"])}
        assert targets["youtube"]["status"] == "success"
        assert targets["youtube"]["platform_video_id"] == "abc"
        assert targets["tiktok"]["status"] == "pending"
        assert fake_db.sent(PUBLISH_QUEUE) == [{"action": "upload", "target_id": targets["tiktok"]["id"]}]
        stored = fake_db.rows("workflows", id=workflow["id"])[0]
        assert stored["videos_processed"] == 3
        assert stored["last_run_at"] != workflow["last_run_at"]

    def test_skips_known_videos(self, fake_db, workflow, video, downloads):
        entries = [_entry("yt123", None)]
        with patch.object(ytdlp_service, "list_source_entries", return_value=entries):
            result = workflow_service.process_workflow(workflow)

        assert result["skipped"] == 1
        assert result["new_videos"] == 0
        downloads.assert_not_called()

    def test_download_failure_reported(self, fake_db, workflow):
        entries = [_entry("broken", None)]
        with patch.object(ytdlp_service, "list_source_entries", return_value=entries), \
             patch.object(ytdlp_service, "download_video", side_effect=ytdlp_service.SourceError("HTTP 403")):
            result = workflow_service.process_workflow(workflow)

        assert result["errors"] == [{"platform_video_id": "broken", "error": "HTTP 403"}]
        assert fake_db.rows("workflows", id=workflow["id"])[0]["last_run_at"] != workflow["last_run_at"]

    def test_dry_run_changes_nothing(self, fake_db, workflow, downloads):
        entries = [_entry("abc", None)]
        with patch.object(ytdlp_service, "list_source_entries", return_value=entries):
            result = workflow_service.process_workflow(workflow, dry_run=True)

        assert result["new_videos"] == 1
        assert result["new_targets"] == 1
        downloads.assert_not_called()
        assert fake_db.rows("workflows", id=workflow["id"])[0]["last_run_at"] == workflow["last_run_at"]

    def test_process_all_isolates_failures(self, fake_db, workflow):
        with patch.object(ytdlp_service, "list_source_entries", side_effect=ytdlp_service.SourceError("blocked")):
            result = workflow_service.process_all_workflows()

        assert result["total_workflows"] == 1
        assert result["processed_workflows"] == 0
        assert result["errors"] == [{"workflow_id": workflow["id"], "error": "blocked"}]


class TestWorkflowStats:
    """Test stats and metrics."""

    def test_stats(self, fake_db, workflow):
        fake_db.seed("workflows", user_id="user-1", is_active=False, videos_processed=1, last_run_at=None)
        stats = workflow_service.get_workflow_stats("user-1")
        assert stats["total_workflows"] == 2
        assert stats["active_workflows"] == 1
        assert stats["inactive_workflows"] == 1
        assert stats["total_videos_processed"] == 3

    def test_metrics(self, fake_db, workflow, video):
        fake_db.seed("video_targets", video_id=video["id"], platform="tiktok", status="success")
        other = fake_db.seed("videos", user_id="user-1", channel_id=workflow["channel_id"], title="Second")
        fake_db.seed("video_targets", video_id=other["id"], platform="youtube", status="success")
        fake_db.seed("video_targets", video_id=other["id"], platform="tiktok", status="failed")

        metrics = workflow_service.get_workflow_metrics(workflow)

        assert metrics["total_videos"] == 2
        assert metrics["total_targets"] == 2
        assert metrics["successful_targets"] == 1
        assert metrics["failed_targets"] == 1
        assert metrics["success_rate"] == 50.0
