"""
Integration tests for all API routers.

This module tests:
- API authentication (401 for missing/invalid keys, missing X-User-Id, job token)
- Tenant isolation (404 for another user's resources)
- Input validation (422 for invalid bodies)
- Endpoint responses with the in-memory Supabase client
- All routers: channels, videos, ai, hashtags, subtitles, watermarks, workflows,
  stats, notifications, account, jobs, admin, cache
"""

import os
import pytest
from unittest.mock import patch, AsyncMock


class TestAuthentication:
    """Test API key and user authentication across endpoints."""

    @pytest.mark.asyncio
    async def test_missing_api_key(self, client):
        """Test requests without API key are rejected."""
        response = await client.get("/cache")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_api_key(self, client):
        """Test requests with invalid API key are rejected."""
        response = await client.get("/channels", headers={"X-API-Key": "wrong-key", "X-User-Id": "user-1"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API Key"

    @pytest.mark.asyncio
    async def test_missing_user_id(self, client, api_headers):
        """Test user endpoints require the X-User-Id header."""
        response = await client.get("/channels", headers=api_headers)
        assert response.status_code == 401
        assert response.json()["detail"] == "X-User-Id header required"

    @pytest.mark.asyncio
    async def test_valid_api_key(self, client, api_headers):
        """Test requests with valid API key are accepted."""
        response = await client.get("/cache", headers=api_headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_root(self, client):
        """Test root endpoint is public."""
        response = await client.get("/")
        assert response.status_code == 200
        assert "message" in response.json()


class TestChannelsRouter:
    """Test channel endpoints."""

    @pytest.mark.asyncio
    async def test_create_first_channel(self, client, user_headers):
        """Test the first channel becomes the default channel."""
        response = await client.post("/channels", headers=user_headers,
                                     json={"name": "Cooking", "default_platforms": ["youtube", "tiktok"]})
        assert response.status_code == 201
        data = response.json()
        assert data["slug"] == "cooking"
        assert data["is_default"] is True
        # tiktok is not part of the free plan
        assert data["default_platforms"] == ["youtube"]

    @pytest.mark.asyncio
    async def test_create_over_limit(self, client, user_headers, channel):
        """Test the free plan allows a single channel."""
        response = await client.post("/channels", headers=user_headers, json={"name": "Second"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_create_empty_name(self, client, user_headers):
        """Test channel name is required."""
        response = await client.post("/channels", headers=user_headers, json={"name": ""})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_channels(self, client, user_headers, channel):
        """Test channels are listed with connected platforms."""
        response = await client.get("/channels", headers=user_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["max_channels"] == 1
        assert data["can_create_channel"] is False
        assert data["channels"][0]["connected_platforms"] == ["tiktok", "youtube"]

    @pytest.mark.asyncio
    async def test_other_users_channel(self, client, other_user_headers, channel):
        """Test another user's channel is not found."""
        response = await client.get(f"/channels/{channel['id']}", headers=other_user_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_channel(self, client, user_headers, channel):
        """Test renaming a channel."""
        response = await client.patch(f"/channels/{channel['id']}", headers=user_headers, json={"name": "Baking"})
        assert response.status_code == 200
        assert response.json()["name"] == "Baking"

    @pytest.mark.asyncio
    async def test_delete_default_channel(self, client, user_headers, channel):
        """Test the default channel cannot be deleted."""
        response = await client.delete(f"/channels/{channel['id']}", headers=user_headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_social_accounts_hide_tokens(self, client, user_headers, channel):
        """Test connected accounts never expose tokens."""
        response = await client.get(f"/channels/{channel['id']}/social-accounts", headers=user_headers)
        assert response.status_code == 200
        data = response.json()
        assert len(data["accounts"]) == 2
        assert all("access_token" not in a for a in data["accounts"])
        tiktok = next(p for p in data["platforms"] if p["platform"] == "tiktok")
        assert tiktok == {"platform": "tiktok", "allowed": False, "connected": True}

    @pytest.mark.asyncio
    async def test_connect_platform_not_in_plan(self, client, user_headers, channel):
        """Test connecting a pro platform on the free plan is forbidden."""
        response = await client.post(f"/channels/{channel['id']}/social-accounts/instagram",
                                     headers=user_headers, json={"access_token": "abc"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_connect_unknown_platform(self, client, user_headers, channel):
        """Test connecting an unknown platform."""
        response = await client.post(f"/channels/{channel['id']}/social-accounts/myspace",
                                     headers=user_headers, json={"access_token": "abc"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_disconnect(self, client, user_headers, channel):
        """Test disconnecting a platform, then disconnecting it again."""
        url = f"/channels/{channel['id']}/social-accounts/tiktok"
        assert (await client.delete(url, headers=user_headers)).status_code == 200
        assert (await client.delete(url, headers=user_headers)).status_code == 404


class TestVideosRouter:
    """Test video endpoints."""

    @pytest.mark.asyncio
    async def test_upload_video(self, client, user_headers, channel, fake_db):
        """Test multipart upload creates targets and dispatches them."""
        info = {"duration": 12, "video_width": 720, "video_height": 1280, "thumbnail_path": None}
        with patch("app.services.video_service.probe_and_thumbnail", return_value=info):
            response = await client.post(
                f"/channels/{channel['id']}/videos",
                headers=user_headers,
                files={"video": ("clip.mp4", b"\x00" * 64, "video/mp4")},
                data={"title": "Pasta night", "description": "Fresh pasta", "platforms": ["youtube"]},
            )
        assert response.status_code == 201
        data = response.json()
        assert data["targets"][0]["platform"] == "youtube"
        assert data["video_url"].startswith("http://test/storage/videos/user-1/")
        assert len(fake_db.sent()) == 1

    @pytest.mark.asyncio
    async def test_upload_wrong_type(self, client, user_headers, channel):
        """Test uploads of unsupported file types are rejected."""
        response = await client.post(
            f"/channels/{channel['id']}/videos",
            headers=user_headers,
            files={"video": ("clip.mkv", b"\x00" * 64, "video/x-matroska")},
            data={"title": "Pasta night", "description": "Fresh pasta", "platforms": ["youtube"]},
        )
        assert response.status_code == 422
        assert response.json()["detail"] == "The video must be a file of type: mp4, mov, avi, wmv, webm."

    @pytest.mark.asyncio
    async def test_upload_bad_advanced_options(self, client, user_headers, channel):
        """Test advanced options must be a JSON object."""
        response = await client.post(
            f"/channels/{channel['id']}/videos",
            headers=user_headers,
            files={"video": ("clip.mp4", b"\x00" * 64, "video/mp4")},
            data={"title": "T", "description": "D", "platforms": ["youtube"], "advanced_options": "[1, 2]"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_videos(self, client, user_headers, video):
        """Test listing videos with pagination metadata."""
        response = await client.get("/videos", headers=user_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["data"][0]["targets"][0]["platform_video_id"] == "yt123"

    @pytest.mark.asyncio
    async def test_other_users_video(self, client, other_user_headers, video):
        """Test another user's video is not found."""
        response = await client.get(f"/videos/{video['id']}", headers=other_user_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_autosave_and_publish(self, client, user_headers, video, fake_db):
        """Test draft autosave, diff and publishing the draft."""
        response = await client.post(f"/videos/{video['id']}/autosave", headers=user_headers,
                                     json={"title": "Pasta night (remastered)"})
        assert response.status_code == 200
        assert response.json()["saved"] is True

        diff = (await client.get(f"/videos/{video['id']}/versions/diff", headers=user_headers)).json()
        assert diff["differences"]["title"]["new"] == "Pasta night (remastered)"

        response = await client.post(f"/videos/{video['id']}/versions/publish", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["video"]["title"] == "Pasta night (remastered)"
        assert fake_db.sent()[0]["action"] == "update"

    @pytest.mark.asyncio
    async def test_publish_without_draft(self, client, user_headers, video):
        """Test publishing with no draft is a conflict."""
        response = await client.post(f"/videos/{video['id']}/versions/publish", headers=user_headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_retry_published_target(self, client, user_headers, video, fake_db):
        """Test only failed targets can be retried."""
        target = fake_db.rows("video_targets", video_id=video["id"])[0]
        response = await client.post(f"/video-targets/{target['id']}/retry", headers=user_headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_delete_video(self, client, user_headers, video, fake_db):
        """Test deleting a published video queues its removal."""
        response = await client.delete(f"/videos/{video['id']}", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["removal_jobs"] == 1
        assert fake_db.sent()[0]["action"] == "remove"

    @pytest.mark.asyncio
    async def test_instant_upload_queues_analysis(self, client, user_headers, channel, pro_subscription, fake_db):
        """Test an instant upload needs no metadata and is queued for the media worker."""
        info = {"duration": 12, "video_width": 720, "video_height": 1280, "thumbnail_path": None}
        with patch("app.services.video_service.probe_and_thumbnail", return_value=info):
            response = await client.post(
                f"/channels/{channel['id']}/videos/instant",
                headers=user_headers,
                files={"video": ("clip.mp4", b"\x00" * 64, "video/mp4")},
                data={"platforms": ["youtube", "tiktok"]},
            )
        assert response.status_code == 202
        data = response.json()
        assert data["ai_status"] == "pending"
        assert data["instant_platforms"] == ["youtube", "tiktok"]
        assert data["targets"] == []
        assert fake_db.sent() == [{"kind": "instant_upload", "video_id": data["id"]}]

    @pytest.mark.asyncio
    async def test_instant_upload_unconnected_platform(self, client, user_headers, channel, fake_db):
        """Test platforms must be connected to the channel."""
        response = await client.post(
            f"/channels/{channel['id']}/videos/instant",
            headers=user_headers,
            files={"video": ("clip.mp4", b"\x00" * 64, "video/mp4")},
            data={"platforms": ["pinterest"]},
        )
        assert response.status_code == 422
        assert fake_db.sent() == []

    @pytest.mark.asyncio
    async def test_analyze_applies_tags(self, client, user_headers, video, fake_db):
        """Test analysis content tags are merged into the video's tags."""
        analysis = {"content_tags": ["Pasta", "Basil", "Kitchen"], "suggested_thumbnails": [{"timestamp": 21.0, "thumbnail_score": 8}]}
        with patch("app.services.video_analysis_service.analyze_video", return_value=analysis):
            response = await client.post(f"/videos/{video['id']}/analyze", headers=user_headers,
                                         json={"apply_tags": True, "include_transcript": False})
        assert response.status_code == 200
        assert response.json()["tags"] == ["pasta", "Basil", "Kitchen"]
        assert fake_db.rows("videos", id=video["id"])[0]["tags"] == ["pasta", "Basil", "Kitchen"]

    @pytest.mark.asyncio
    async def test_set_thumbnail_from_frame(self, client, user_headers, video, fake_db):
        """Test choosing a frame as the thumbnail."""
        with patch("app.services.video_analysis_service.media_service.extract_frame") as extract_frame:
            response = await client.put(f"/videos/{video['id']}/thumbnail", headers=user_headers, json={"timestamp": 21.5})
        assert response.status_code == 200
        assert extract_frame.call_args.args[1] == 21.5
        data = response.json()
        assert data["thumbnail_url"].startswith("http://test/storage/thumbnails/user-1/")
        assert fake_db.rows("videos", id=video["id"])[0]["thumbnail_path"] == data["thumbnail_path"]

    @pytest.mark.asyncio
    async def test_set_thumbnail_past_end(self, client, user_headers, video):
        """Test timestamps after the end of the video are rejected."""
        response = await client.put(f"/videos/{video['id']}/thumbnail", headers=user_headers, json={"timestamp": 99})
        assert response.status_code == 422
        assert "between 0 and 42" in response.json()["detail"]


class TestAIRouter:
    """Test AI content endpoints (OpenAI is not configured in tests)."""

    @pytest.mark.asyncio
    async def test_optimize_falls_back(self, client, user_headers):
        """Test optimization answers with the original content when AI is unavailable."""
        response = await client.post("/ai/optimize-content", headers=user_headers, json={
            "title": "Weeknight pasta", "description": "A quick recipe", "platforms": ["youtube", "youtube"]
        })
        assert response.status_code == 200
        data = response.json()
        assert data["category"] == "food"
        assert list(data["optimizations"]) == ["youtube"]
        assert data["optimizations"]["youtube"]["optimization_score"] == 0

    @pytest.mark.asyncio
    async def test_unknown_platform(self, client, user_headers):
        """Test unknown platforms return 422."""
        response = await client.post("/ai/optimize-content", headers=user_headers, json={
            "title": "Weeknight pasta", "platforms": ["myspace"]
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_hashtags(self, client, user_headers):
        """Test trending hashtags use the model answer."""
        with patch("app.services.ai_content_service.chat_completion", return_value="pasta, #dinner"):
            response = await client.post("/ai/hashtags", headers=user_headers,
                                         json={"platform": "tiktok", "content": "pasta"})
        assert response.status_code == 200
        assert response.json()["hashtags"] == ["#pasta", "#dinner"]


class TestHashtagsRouter:
    """Test hashtag endpoints."""

    @pytest.mark.asyncio
    async def test_validate(self, client, user_headers):
        """Test competing platform hashtags are removed."""
        response = await client.post("/hashtags/validate", headers=user_headers,
                                     json={"platform": "youtube", "content": "New video #tiktok #cooking"})
        assert response.status_code == 200
        data = response.json()
        assert data["filtered_content"] == "New video #cooking"
        assert data["removed_hashtags"] == ["#tiktok"]
        assert data["message"]

    @pytest.mark.asyncio
    async def test_forbidden_unknown_platform(self, client, user_headers):
        """Test unknown platform returns 404."""
        response = await client.get("/hashtags/forbidden/myspace", headers=user_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_validate_options(self, client, user_headers):
        """Test per-platform validation only reports changed platforms."""
        response = await client.post("/hashtags/validate-options", headers=user_headers, json={
            "advanced_options": {
                "instagram": {"caption": "Dinner #reels #youtube"},
                "tiktok": {"caption": "Dinner #fyp"},
            }
        })
        data = response.json()
        assert data["has_changes"] is True
        assert list(data["platforms"]) == ["instagram"]


class TestSubtitlesRouter:
    """Test subtitle endpoints."""

    @pytest.mark.asyncio
    async def test_languages_and_styles(self, client, user_headers):
        """Test static subtitle options."""
        languages = (await client.get("/subtitles/languages", headers=user_headers)).json()
        assert "en" in languages["languages"]
        styles = (await client.get("/subtitles/styles", headers=user_headers)).json()
        assert "classic" in styles["styles"]
        assert "bottom" in styles["positions"]

    @pytest.mark.asyncio
    async def test_generate_queues_job(self, client, user_headers, video, fake_db):
        """Test generation is queued and returns progress."""
        response = await client.post("/subtitles/generate", headers=user_headers,
                                     json={"video_id": video["id"], "language": "en"})
        assert response.status_code == 202
        assert response.json()["status"] == "pending"
        assert fake_db.sent()[0]["kind"] == "subtitles"

    @pytest.mark.asyncio
    async def test_generate_bad_language(self, client, user_headers, video):
        """Test unsupported language is rejected."""
        response = await client.post("/subtitles/generate", headers=user_headers,
                                     json={"video_id": video["id"], "language": "xx"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_generation_of_other_user(self, client, other_user_headers, fake_db):
        """Test another user's generation is not found."""
        generation = fake_db.seed("subtitle_generations", user_id="user-1", video_id="v1", status="completed")
        response = await client.get(f"/subtitles/{generation['id']}", headers=other_user_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_export_srt(self, client, user_headers, fake_db):
        """Test export returns an attachment."""
        generation = fake_db.seed(
            "subtitle_generations", user_id="user-1", video_id="v1", status="completed", language="en",
            subtitles=[{"index": 1, "start_time": 0.0, "end_time": 1.0, "duration": 1.0, "text": "Hi", "words": []}],
        )
        response = await client.get(f"/subtitles/{generation['id']}/export?format=srt", headers=user_headers)
        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]
        assert "00:00:00,000 --> 00:00:01,000" in response.text


class TestWatermarksRouter:
    """Test watermark endpoints."""

    @pytest.mark.asyncio
    async def test_methods(self, client, user_headers):
        """Test available removal methods."""
        response = await client.get("/watermarks/methods", headers=user_headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_remove_queues_job(self, client, user_headers, video, fake_db):
        """Test removal request is queued."""
        response = await client.post("/watermarks/remove", headers=user_headers, json={
            "video_id": video["id"],
            "watermarks": [{"x": 10, "y": 10, "width": 100, "height": 40}],
        })
        assert response.status_code == 202
        assert fake_db.sent()[0]["kind"] == "watermark_removal"

    @pytest.mark.asyncio
    async def test_remove_requires_regions(self, client, user_headers, video):
        """Test at least one region is required."""
        response = await client.post("/watermarks/remove", headers=user_headers,
                                     json={"video_id": video["id"], "watermarks": []})
        assert response.status_code == 422


class TestWorkflowsRouter:
    """Test workflow endpoints."""

    @pytest.mark.asyncio
    async def test_create_invalid(self, client, user_headers, channel, pro_subscription):
        """Test source platform cannot also be a target."""
        response = await client.post("/workflows", headers=user_headers, json={
            "channel_id": channel["id"],
            "name": "Loop",
            "source_platform": "youtube",
            "source_url": "https://www.youtube.com/@cooking",
            "target_platforms": ["youtube"],
        })
        assert response.status_code == 422
        assert "Source platform cannot be the same as target platform" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_create_toggle_and_stats(self, client, user_headers, channel, pro_subscription):
        """Test creating, pausing and counting workflows."""
        response = await client.post("/workflows", headers=user_headers, json={
            "channel_id": channel["id"],
            "name": "Shorts",
            "source_platform": "youtube",
            "source_url": "https://www.youtube.com/@cooking",
            "target_platforms": ["tiktok"],
        })
        assert response.status_code == 201
        workflow_id = response.json()["id"]

        toggled = await client.post(f"/workflows/{workflow_id}/toggle", headers=user_headers)
        assert toggled.json()["is_active"] is False

        stats = (await client.get("/workflows/stats", headers=user_headers)).json()
        assert stats["total_workflows"] == 1
        assert stats["inactive_workflows"] == 1

    @pytest.mark.asyncio
    async def test_run_source_error(self, client, user_headers, fake_db, channel):
        """Test a source listing failure returns 502."""
        from app.services.ytdlp_service import SourceError

        workflow = fake_db.seed("workflows", user_id="user-1", channel_id=channel["id"], source_platform="youtube",
                                source_url="https://www.youtube.com/@cooking", target_platforms=["tiktok"],
                                is_active=False, last_run_at=None, created_at="2026-01-01T00:00:00+00:00")
        with patch("app.services.ytdlp_service.list_source_entries", side_effect=SourceError("blocked")):
            response = await client.post(f"/workflows/{workflow['id']}/run", headers=user_headers)
        assert response.status_code == 502


class TestStatsRouter:
    """Test stats endpoint."""

    @pytest.mark.asyncio
    async def test_stats(self, client, user_headers, video):
        """Test dashboard statistics."""
        response = await client.get("/stats", headers=user_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["stats"]["overview"]["total_videos"] == 1
        assert data["stats"]["video_status"]["success"] == 1
        assert data["allowed_platforms"] == ["youtube"]


class TestNotificationsRouter:
    """Test notification endpoints."""

    @pytest.mark.asyncio
    async def test_list_and_mark_read(self, client, user_headers, fake_db):
        """Test unread count and marking a notification read."""
        note = fake_db.seed("notifications", user_id="user-1", type="job_failed", data={}, read_at=None,
                            created_at="2026-02-01T00:00:00+00:00")
        listed = (await client.get("/notifications", headers=user_headers)).json()
        assert listed["unread_count"] == 1

        response = await client.post(f"/notifications/{note['id']}/read", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["read_at"] is not None

    @pytest.mark.asyncio
    async def test_mark_other_users_notification(self, client, other_user_headers, fake_db):
        """Test another user's notification is not found."""
        note = fake_db.seed("notifications", user_id="user-1", type="job_failed", data={}, read_at=None)
        response = await client.post(f"/notifications/{note['id']}/read", headers=other_user_headers)
        assert response.status_code == 404


class TestAccountRouter:
    """Test account endpoints."""

    @pytest.mark.asyncio
    async def test_plan(self, client, user_headers, pro_subscription):
        """Test plan summary for a pro user."""
        response = await client.get("/account/plan", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["current_plan"] == "pro"

    @pytest.mark.asyncio
    async def test_checkout_not_configured(self, client, user_headers):
        """Test checkout without Stripe configuration."""
        response = await client.post("/account/checkout", headers=user_headers, json={})
        assert response.status_code == 503


class TestJobsRouter:
    """Test job worker endpoints."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        """Test job endpoints require the worker token."""
        response = await client.post("/jobs/video-publishing", json={"jobs": []})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        """Test a wrong worker token is rejected."""
        response = await client.post("/jobs/video-publishing", json={"jobs": []},
                                     headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_publishing_batch(self, client, job_headers):
        """Test batch is passed to the job service with the default queue."""
        summary = {"total": 1, "completed": 1, "retry": 0, "failed": 0, "archived": 0, "deleted": 0}
        mock = AsyncMock(return_value={"ok": True, "summary": summary, "results": [{"msg_id": 1, "status": "completed"}]})
        with patch("app.routers.jobs.process_job_batch", mock):
            response = await client.post("/jobs/video-publishing", headers=job_headers, json={
                "jobs": [{"msg_id": 1, "read_ct": 1, "message": {"action": "upload", "target_id": "t1"}}],
            })
        assert response.status_code == 200
        assert response.json()["summary"]["completed"] == 1
        payload = mock.call_args.kwargs["payload"]
        assert payload["queue"] == "video_publishing"
        assert payload["jobs"][0]["message"]["target_id"] == "t1"

    @pytest.mark.asyncio
    async def test_media_batch_end_to_end(self, client, job_headers, fake_db):
        """Test an unknown media job kind is archived."""
        response = await client.post("/jobs/media-processing", headers=job_headers, json={
            "jobs": [{"msg_id": 9, "read_ct": 1, "message": {"kind": "thumbnails"}}],
        })
        assert response.status_code == 200
        assert response.json()["summary"]["archived"] == 1
        assert ("pgmq_archive_one", {"queue_name": "media_processing", "msg_id": 9}) in fake_db.rpc_calls

    @pytest.mark.asyncio
    async def test_status(self, client, job_headers):
        """Test jobs status endpoint."""
        response = await client.get("/jobs/status", headers=job_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "ready"


class TestAdminRouter:
    """Test admin endpoints."""

    @pytest.mark.asyncio
    async def test_requires_admin(self, client, user_headers, fake_db):
        """Test non-admin users are forbidden."""
        fake_db.seed("profiles", id="user-1", is_admin=False)
        response = await client.get("/admin/scheduler/status", headers=user_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_scheduler_status(self, client, user_headers, fake_db):
        """Test scheduler status for an admin."""
        fake_db.seed("profiles", id="user-1", is_admin=True)
        response = await client.get("/admin/scheduler/status", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["running"] is False

    @pytest.mark.asyncio
    async def test_trigger_unknown_job(self, client, user_headers, fake_db):
        """Test triggering an unknown scheduler job."""
        fake_db.seed("profiles", id="user-1", is_admin=True)
        response = await client.post("/admin/scheduler/trigger/send_newsletter", headers=user_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_upgrade_user(self, client, user_headers, fake_db):
        """Test granting pro to a user."""
        fake_db.seed("profiles", id="user-1", is_admin=True)
        fake_db.seed("profiles", id="user-2", is_admin=False)
        response = await client.post("/admin/users/user-2/upgrade", headers=user_headers,
                                     json={"additional_channels": 1})
        assert response.status_code == 200
        assert response.json()["upgraded"] is True


class TestCacheRouter:
    """Test cache router endpoints."""

    @pytest.mark.asyncio
    async def test_cache_list_invalid_type(self, client, api_headers):
        """Test cache list rejects unknown types."""
        response = await client.get("/cache?type=invalid", headers=api_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_cache_cleanup(self, client, api_headers):
        """Test expired cache files are deleted."""
        from app.config import CACHE_DIR

        frames_dir = os.path.join(CACHE_DIR, "frames")
        os.makedirs(frames_dir, exist_ok=True)
        stale = os.path.join(frames_dir, "old.jpg")
        with open(stale, "wb") as f:
            f.write(b"\x00" * 10)
        os.utime(stale, (0, 0))

        response = await client.delete("/cache/cleanup", headers=api_headers)
        assert response.status_code == 200
        assert response.json()["deleted"]["frames"] >= 1
        assert not os.path.exists(stale)

    @pytest.mark.asyncio
    async def test_cache_list_and_stats(self, client, api_headers):
        """Test listing by type and the per-type stats."""
        from app.config import CACHE_DIR

        audio_dir = os.path.join(CACHE_DIR, "audio")
        os.makedirs(audio_dir, exist_ok=True)
        with open(os.path.join(audio_dir, "fresh.mp3"), "wb") as f:
            f.write(b"\x00" * 4)

        response = await client.get("/cache?type=audio", headers=api_headers)
        assert response.status_code == 200
        files = response.json()["files"]
        assert "fresh.mp3" in [f["filename"] for f in files]
        assert all(f["type"] == "audio" for f in files)

        response = await client.get("/cache/stats", headers=api_headers)
        assert response.status_code == 200
        assert response.json()["directories"]["audio"]["files"] >= 1
