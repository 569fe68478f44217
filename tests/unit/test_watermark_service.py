"""
Unit tests for watermark detection and removal.

This module tests:
- iou() and merge_detections() across frames
- _parse_boxes() on vision model replies
- detect_watermarks() with mocked ffmpeg and vision calls
- request_removal() validation and the delogo filter chain
"""

import pytest
from unittest.mock import patch

from app.config import MEDIA_QUEUE
from app.services import watermark_service
from app.services.media_service import MediaProcessingError, build_delogo_filter
from app.services.watermark_service import iou, merge_detections, _parse_boxes, platform_breakdown


def _box(x, y, w=100, h=40, confidence=0.8, platform="tiktok"):
    return {"x": x, "y": y, "width": w, "height": h, "confidence": confidence, "platform": platform}


class TestGeometry:
    """Test box overlap and merging."""

    def test_iou_identical(self):
        assert iou(_box(10, 10), _box(10, 10)) == 1.0

    def test_iou_disjoint(self):
        assert iou(_box(0, 0), _box(500, 500)) == 0.0

    def test_iou_half_overlap(self):
        # 50x40 overlap of two 100x40 boxes: 2000 / (4000 + 4000 - 2000)
        assert iou(_box(0, 0), _box(50, 0)) == pytest.approx(1 / 3)

    def test_merge_counts_frames_and_keeps_best_confidence(self):
        merged = merge_detections([
            [_box(10, 10, confidence=0.6, platform="other")],
            [_box(12, 11, confidence=0.9, platform="tiktok")],
            [_box(600, 300, confidence=0.95, platform="instagram")],
        ])
        assert len(merged) == 2
        first = merged[0]
        assert first["frames"] == 2
        assert first["confidence"] == 0.9
        assert first["platform"] == "tiktok"
        assert (first["x"], first["y"]) == (10, 10)
        assert [m["id"] for m in merged] == ["wm_1", "wm_2"]

    def test_merge_empty(self):
        assert merge_detections([[], []]) == []

    def test_platform_breakdown(self):
        assert platform_breakdown([_box(0, 0), _box(1, 1), _box(2, 2, platform=None)]) == {"tiktok": 2, "other": 1}


class TestParseBoxes:
    """Test parsing the vision model reply."""

    def test_json_inside_prose(self):
        content = 'Found one:\n[{"x": 10, "y": 20, "width": 50, "height": 30, "confidence": 0.91, "platform": "TikTok"}]'
        assert _parse_boxes(content, 1080, 1920) == [
            {"x": 10, "y": 20, "width": 50, "height": 30, "confidence": 0.91, "platform": "tiktok"}
        ]

    def test_clamps_to_frame(self):
        boxes = _parse_boxes('[{"x": -5, "y": 1900, "width": 200, "height": 100}]', 1080, 1920)
        assert boxes[0]["x"] == 0
        assert boxes[0]["height"] == 20
        assert boxes[0]["confidence"] == 0.5
        assert boxes[0]["platform"] == "other"

    def test_skips_bad_items(self):
        content = '[{"x": 1}, {"x": 2000, "y": 0, "width": 10, "height": 10}, "junk"]'
        assert _parse_boxes(content, 1080, 1920) == []

    @pytest.mark.parametrize("confidence", ["null", '"high"', "[]"])
    def test_unusable_confidence_defaults(self, confidence):
        content = f'[{{"x": 10, "y": 10, "width": 50, "height": 20, "confidence": {confidence}}}]'
        assert _parse_boxes(content, 1080, 1920)[0]["confidence"] == 0.5

    def test_confidence_clamped(self):
        content = '[{"x": 0, "y": 0, "width": 5, "height": 5, "confidence": 7}, {"x": 9, "y": 9, "width": 5, "height": 5, "confidence": -1}]'
        assert [b["confidence"] for b in _parse_boxes(content, 1080, 1920)] == [1.0, 0.0]

    def test_not_json(self):
        assert _parse_boxes("No watermark here.", 1080, 1920) == []
        assert _parse_boxes("[not json]", 1080, 1920) == []


class TestDetect:
    """Test detect_watermarks() with ffmpeg and the vision model mocked."""

    def test_detect_merges_frames(self):
        replies = [[_box(10, 10)], [_box(11, 10)], []]
        with patch.object(watermark_service.media_service, "probe_video",
                          return_value={"duration": 20.0, "width": 1080, "height": 1920}), \
             patch.object(watermark_service.media_service, "extract_frame") as extract_frame, \
             patch.object(watermark_service, "_detect_on_frame", side_effect=replies):
            result = watermark_service.detect_watermarks("/tmp/video.mp4", samples=3)

        assert extract_frame.call_count == 3
        assert [call.args[1] for call in extract_frame.call_args_list] == [5.0, 10.0, 15.0]
        assert result["frames_analyzed"] == 3
        assert len(result["watermarks"]) == 1
        assert result["watermarks"][0]["frames"] == 2
        assert result["platform_breakdown"] == {"tiktok": 1}

    def test_detect_requires_dimensions(self):
        with patch.object(watermark_service.media_service, "probe_video",
                          return_value={"duration": 20.0, "width": None, "height": None}):
            with pytest.raises(MediaProcessingError):
                watermark_service.detect_watermarks("/tmp/video.mp4")


class TestRemoval:
    """Test removal requests and the delogo chain."""

    def test_request_removal_queues_job(self, fake_db, video):
        removal = watermark_service.request_removal("user-1", video, [_box(10, 10)])
        assert removal["status"] == "pending"
        assert fake_db.sent(MEDIA_QUEUE) == [{"kind": "watermark_removal", "removal_id": removal["id"]}]

    def test_request_removal_validation(self, fake_db, video):
        with pytest.raises(ValueError, match="At least one"):
            watermark_service.request_removal("user-1", video, [])
        with pytest.raises(ValueError, match="numeric"):
            watermark_service.request_removal("user-1", video, [{"x": "left", "y": 0, "width": 1, "height": 1}])
        with pytest.raises(ValueError, match="Unknown removal method"):
            watermark_service.request_removal("user-1", video, [_box(1, 1)], method="inpaint")

    def test_delogo_filter_clamps_to_border(self):
        chain = build_delogo_filter([_box(0, 0), {"x": 1070, "y": 1900, "width": 50, "height": 50}], 1080, 1920)
        assert chain == "delogo=x=1:y=1:w=100:h=40,delogo=x=1070:y=1900:w=9:h=19"

    def test_delogo_filter_requires_regions(self):
        with pytest.raises(MediaProcessingError):
            build_delogo_filter([], 1080, 1920)
