"""
Unit tests for video analysis and instant uploads.

ffmpeg, the vision model and the transcription provider are mocked.

This module tests:
- Keyword categorization, mood, content tags and quality scoring
- Frame reply and generated content parsing
- describe_frames() and analyze_video() with mocked media calls
- run_instant_upload() target creation and dispatch
- set_thumbnail_from_frame()
"""

import pytest
from unittest.mock import patch

from app.config import PUBLISH_QUEUE
from app.services import media_service, storage_service, video_analysis_service
from app.services.ai_content_service import AIServiceError
from app.services.media_service import MediaProcessingError
from app.services.video_analysis_service import (
    analyze_mood,
    assess_quality,
    categorize_content,
    extract_content_tags,
    merge_tags,
    parse_generated_content,
    _parse_frame_reply,
)


def _analysis(tags=None, scenes=None):
    return {
        "basic_info": {"duration": 42.0, "has_audio": True},
        "transcript": {"success": True, "text": "Fresh pasta with basil", "language": "en"},
        "scenes": scenes or [{"timestamp": 10.5, "description": "A chef rolls pasta", "thumbnail_score": 8}],
        "content_category": {"primary_category": "food", "category_scores": {}, "confidence": 0.4},
        "mood_analysis": {"dominant_mood": "calm", "mood_scores": {}, "confidence": 0.1},
        "content_tags": tags if tags is not None else ["Pasta", "Basil", "Chef"],
        "quality_score": {"overall_score": 85, "resolution_score": 75, "audio_score": 100, "suggestions": []},
        "suggested_thumbnails": [{"timestamp": 10.5, "thumbnail_score": 8}],
    }


class TestTextAnalysis:
    """Test keyword based categorization and tag extraction."""

    def test_category_from_keywords(self):
        result = categorize_content("Easy recipe: cooking fresh food in my kitchen")
        assert result["primary_category"] == "food"
        assert result["category_scores"]["food"] == 4
        assert result["confidence"] == pytest.approx(0.8)

    def test_no_keywords_is_general(self):
        result = categorize_content("")
        assert result["primary_category"] == "general"
        assert result["confidence"] == 0.1

    def test_mood(self):
        assert analyze_mood("A calm, peaceful and quiet morning")["dominant_mood"] == "calm"
        assert analyze_mood("nothing here")["dominant_mood"] == "neutral"

    def test_content_tags_by_frequency(self):
        tags = extract_content_tags("Pasta pasta basil. The chef makes pasta with basil and garlic in the video.")
        assert tags[:2] == ["Pasta", "Basil"]
        assert "The" not in tags
        assert "Video" not in tags

    def test_content_tags_limit(self):
        assert len(extract_content_tags("alpha bravo charlie delta echo", limit=3)) == 3

    def test_merge_tags_ignores_case_and_hash(self):
        assert merge_tags(["pasta", "#Food"], ["Pasta", "food", "basil"]) == ["pasta", "#Food", "basil"]


class TestQuality:
    """Test assess_quality()."""

    def test_full_hd_with_audio(self):
        result = assess_quality({"width": 1920, "height": 1080, "has_audio": True, "duration": 60})
        assert result["overall_score"] == 85
        assert result["resolution_score"] == 100
        assert result["suggestions"] == []

    def test_low_resolution_silent_short(self):
        result = assess_quality({"width": 320, "height": 240, "has_audio": False, "duration": 5})
        assert result["overall_score"] == 50
        assert result["audio_score"] == 0
        assert len(result["suggestions"]) == 3


class TestParsing:
    """Test model reply parsing."""

    def test_frame_reply(self):
        reply = 'Sure: {"description": "A bowl of pasta", "thumbnail_score": 9}'
        assert _parse_frame_reply(reply) == {"description": "A bowl of pasta", "thumbnail_score": 9}

    def test_frame_score_clamped(self):
        assert _parse_frame_reply('{"description": "x", "thumbnail_score": 40}')["thumbnail_score"] == 10
        assert _parse_frame_reply('{"description": "x", "thumbnail_score": "great"}')["thumbnail_score"] == 5

    def test_frame_plain_text(self):
        assert _parse_frame_reply("A kitchen counter") == {"description": "A kitchen counter", "thumbnail_score": 5}

    def test_generated_content(self):
        reply = '{"title": "Pasta in 10 minutes", "description": "Quick fresh pasta for a weeknight dinner.", "tags": ["#pasta", "dinner"]}'
        assert parse_generated_content(reply) == {
            "title": "Pasta in 10 minutes",
            "description": "Quick fresh pasta for a weeknight dinner.",
            "tags": ["pasta", "dinner"],
        }

    def test_generated_tags_as_string(self):
        reply = '{"title": "Pasta in 10 minutes", "description": "Quick fresh pasta for a weeknight dinner.", "tags": "pasta, dinner"}'
        assert parse_generated_content(reply)["tags"] == ["pasta", "dinner"]

    @pytest.mark.parametrize("reply", [
        "no json here",
        '{"title": "Hi", "description": "Quick fresh pasta for a weeknight dinner."}',
        '{"title": "Pasta in 10 minutes", "description": "Too short"}',
        '["not", "an", "object"]',
    ])
    def test_unusable_content(self, reply):
        assert parse_generated_content(reply) is None


class TestAnalyzeVideo:
    """Test frame sampling and the analysis result."""

    def test_vision_failure_stops_sampling(self):
        first = {"description": "A chef", "thumbnail_score": 7}
        with patch.object(media_service, "extract_frame") as extract, \
             patch.object(video_analysis_service, "_describe_frame",
                          side_effect=[first, AIServiceError("rate limited")]):
            frames = video_analysis_service.describe_frames("/tmp/v.mp4", 40.0, 3)

        assert frames == [{"timestamp": 10.0, **first}]
        assert extract.call_count == 2

    def test_analysis(self, tmp_path):
        video_path = tmp_path / "clip.mp4"
        video_path.write_bytes(b"\x00" * 32)
        info = {"duration": 30.0, "width": 1280, "height": 720, "has_audio": True}
        scenes = [
            {"timestamp": 10.0, "description": "A chef in a kitchen", "thumbnail_score": 4},
            {"timestamp": 20.0, "description": "Fresh pasta on a plate", "thumbnail_score": 9},
        ]
        transcript = {"success": True, "text": "Today we make pasta, an easy recipe", "language": "en"}
        with patch.object(video_analysis_service, "cache_get", return_value=None), \
             patch.object(video_analysis_service, "cache_set") as cache_set, \
             patch.object(media_service, "probe_video", return_value=info), \
             patch.object(video_analysis_service, "describe_frames", return_value=scenes), \
             patch.object(video_analysis_service, "transcribe_video", return_value=transcript):
            result = video_analysis_service.analyze_video(str(video_path), samples=2)

        assert result["content_category"]["primary_category"] == "food"
        assert result["content_tags"][0] == "Pasta"
        assert result["quality_score"]["overall_score"] == 80
        assert [s["timestamp"] for s in result["suggested_thumbnails"]] == [20.0, 10.0]
        assert cache_set.call_args.args[0] == "video_analysis_clip.mp4_32_2_1"

    def test_transcript_skipped(self, tmp_path):
        video_path = tmp_path / "clip.mp4"
        video_path.write_bytes(b"\x00" * 8)
        info = {"duration": 30.0, "has_audio": True}
        with patch.object(video_analysis_service, "cache_get", return_value=None), \
             patch.object(video_analysis_service, "cache_set"), \
             patch.object(media_service, "probe_video", return_value=info), \
             patch.object(video_analysis_service, "describe_frames", return_value=[]), \
             patch.object(video_analysis_service, "transcribe_video") as transcribe:
            result = video_analysis_service.analyze_video(str(video_path), include_transcript=False)

        transcribe.assert_not_called()
        assert result["transcript"]["error"] == "skipped"
        assert result["suggested_thumbnails"] == []

    def test_cached_result(self, tmp_path):
        video_path = tmp_path / "clip.mp4"
        video_path.write_bytes(b"\x00")
        with patch.object(video_analysis_service, "cache_get", return_value={"cached": True}), \
             patch.object(media_service, "probe_video") as probe:
            assert video_analysis_service.analyze_video(str(video_path)) == {"cached": True}
        probe.assert_not_called()


class TestGenerateContent:
    """Test generate_content()."""

    def test_ai_content_with_content_tags(self):
        reply = '{"title": "Pasta in 10 minutes", "description": "Quick fresh pasta for a weeknight dinner.", "tags": ["pasta", "dinner"]}'
        with patch.object(video_analysis_service, "chat_completion", return_value=reply):
            content = video_analysis_service.generate_content(_analysis())
        assert content["title"] == "Pasta in 10 minutes"
        assert content["tags"] == ["pasta", "dinner", "basil", "chef"]

    def test_fallback_on_ai_error(self):
        with patch.object(video_analysis_service, "chat_completion", side_effect=AIServiceError("not configured", 503)):
            content = video_analysis_service.generate_content(_analysis())
        assert content == {"title": "New Video Upload", "description": "Check out this new video!",
                           "tags": ["pasta", "basil", "chef"]}

    def test_fallback_without_tags(self):
        with patch.object(video_analysis_service, "chat_completion", return_value="sorry"):
            content = video_analysis_service.generate_content(_analysis(tags=[]))
        assert content["tags"] == ["video", "content"]


class TestInstantUpload:
    """Test run_instant_upload()."""

    def test_targets_created_and_dispatched(self, fake_db, video):
        fake_db.rows("videos", id=video["id"])[0]["instant_platforms"] = ["youtube", "tiktok"]
        row = {**video, "instant_platforms": ["youtube", "tiktok"]}
        content = {"title": "Pasta in 10 minutes", "description": "Quick fresh pasta.", "tags": ["pasta"]}
        progress = {}
        with patch.object(video_analysis_service, "analyze_video", return_value=_analysis()), \
             patch.object(video_analysis_service, "generate_content", return_value=content):
            result = video_analysis_service.run_instant_upload(row, progress)

        assert result == {"title": "Pasta in 10 minutes", "tags": ["pasta"], "dispatched": 1}
        assert progress["step"] == "creating targets"
        stored = fake_db.rows("videos", id=video["id"])[0]
        assert stored["title"] == "Pasta in 10 minutes"
        assert stored["ai_status"] == "completed"
        assert stored["ai_analysis"]["category"] == "food"

        # the existing YouTube target is left alone
        tiktok = fake_db.rows("video_targets", video_id=video["id"], platform="tiktok")
        assert len(tiktok) == 1
        assert tiktok[0]["status"] == "pending"
        assert tiktok[0]["advanced_options"] == {"ai_generated": True}
        assert len(fake_db.rows("video_targets", video_id=video["id"], platform="youtube")) == 1
        assert fake_db.sent(PUBLISH_QUEUE) == [{"action": "upload", "target_id": tiktok[0]["id"]}]

    def test_mark_failed(self, fake_db, video):
        video_analysis_service.mark_instant_upload_failed(video, "probe failed")
        stored = fake_db.rows("videos", id=video["id"])[0]
        assert stored["ai_status"] == "failed"
        assert stored["ai_error"] == "probe failed"


class TestThumbnailFromFrame:
    """Test set_thumbnail_from_frame()."""

    def test_sets_thumbnail(self, fake_db, video):
        fake_db.rows("videos", id=video["id"])[0]["thumbnail_path"] = "thumbnails/user-1/old.jpg"
        row = {**video, "thumbnail_path": "thumbnails/user-1/old.jpg"}
        with patch.object(storage_service, "reserve_path", return_value="thumbnails/user-1/pasta.jpg"), \
             patch.object(storage_service, "delete_file") as delete_file, \
             patch.object(media_service, "extract_frame") as extract:
            result = video_analysis_service.set_thumbnail_from_frame(row, 12.5)

        assert extract.call_args.args[1] == 12.5
        assert result["thumbnail_path"] == "thumbnails/user-1/pasta.jpg"
        assert fake_db.rows("videos", id=video["id"])[0]["thumbnail_path"] == "thumbnails/user-1/pasta.jpg"
        delete_file.assert_called_once_with("thumbnails/user-1/old.jpg")

    def test_timestamp_past_end(self, video):
        with pytest.raises(ValueError, match="between 0 and 42.0"):
            video_analysis_service.set_thumbnail_from_frame(video, 50)

    def test_extraction_failure_removes_file(self, fake_db, video):
        with patch.object(storage_service, "reserve_path", return_value="thumbnails/user-1/pasta.jpg"), \
             patch.object(storage_service, "delete_file") as delete_file, \
             patch.object(media_service, "extract_frame", side_effect=MediaProcessingError("ffmpeg failed")):
            with pytest.raises(MediaProcessingError):
                video_analysis_service.set_thumbnail_from_frame(video, 1)

        delete_file.assert_called_once_with("thumbnails/user-1/pasta.jpg")
        assert fake_db.rows("videos", id=video["id"])[0]["thumbnail_path"] is None
