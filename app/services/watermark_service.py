"""
Watermark detection and removal.

Detection samples evenly spaced frames with FFmpeg and asks the OpenAI
vision model for watermark boxes on each frame. Boxes seen on several
frames are merged (IoU >= 0.5). Removal runs on the media queue: an FFmpeg
delogo chain over the selected boxes, stored as the video's rendered file.
"""

import base64
import json
import os
import re
from typing import Dict, Any, List, Optional

from app.config import MEDIA_QUEUE, get_settings
from app.services import media_service, storage_service, versioning_service
from app.services.ai_content_service import chat_completion
from app.services.cache_service import cache_path
from app.services.supabase_service import fetch_one, insert_row, update_rows, enqueue_message, now_iso


PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
ERROR = "error"

DEFAULT_SAMPLES = 5
MAX_SAMPLES = 12
MERGE_IOU = 0.5

REMOVAL_METHODS = {
    "delogo": "Interpolates each box from its surrounding pixels (FFmpeg delogo)",
}

KNOWN_WATERMARK_PLATFORMS = ["tiktok", "instagram", "youtube", "snapchat", "facebook", "x", "pinterest", "other"]

DETECTION_PROMPT = (
    "You detect watermarks and burned-in logos in video frames. The frame is {width}x{height} pixels. "
    "Return ONLY a JSON array. Each item: {{\"x\": int, \"y\": int, \"width\": int, \"height\": int, "
    "\"confidence\": float between 0 and 1, \"platform\": one of "
    + ", ".join(KNOWN_WATERMARK_PLATFORMS) +
    "}} with pixel coordinates of the top-left corner. Return [] when there is no watermark. "
    "Ignore regular subtitles and on-screen text that is part of the content."
)


# =============================================================================
# Geometry
# =============================================================================

def iou(a: Dict[str, Any], b: Dict[str, Any]) -> float:
    """Intersection over union of two {x, y, width, height} boxes."""
    ax2, ay2 = a["x"] + a["width"], a["y"] + a["height"]
    bx2, by2 = b["x"] + b["width"], b["y"] + b["height"]
    inter_w = max(0, min(ax2, bx2) - max(a["x"], b["x"]))
    inter_h = max(0, min(ay2, by2) - max(a["y"], b["y"]))
    intersection = inter_w * inter_h
    union = a["width"] * a["height"] + b["width"] * b["height"] - intersection
    return intersection / union if union > 0 else 0.0


def merge_detections(frame_boxes: List[List[Dict[str, Any]]], threshold: float = MERGE_IOU) -> List[Dict[str, Any]]:
    """
    Merge boxes detected on different frames.

    A box joins the first merged box it overlaps with IoU >= threshold. The
    merged box keeps its first geometry, the highest confidence and the
    number of frames it was seen on.
    """
    merged: List[Dict[str, Any]] = []
    for boxes in frame_boxes:
        for box in boxes:
            match = next((m for m in merged if iou(m, box) >= threshold), None)
            if match is None:
                merged.append({**box, "frames": 1})
                continue
            match["frames"] += 1
            if box.get("confidence", 0) > match.get("confidence", 0):
                match["confidence"] = box["confidence"]
                if box.get("platform") and box["platform"] != "other":
                    match["platform"] = box["platform"]
    merged.sort(key=lambda b: (-b["frames"], -b.get("confidence", 0)))
    for index, box in enumerate(merged, 1):
        box["id"] = f"wm_{index}"
    return merged


def platform_breakdown(watermarks: List[Dict[str, Any]]) -> Dict[str, int]:
    breakdown: Dict[str, int] = {}
    for watermark in watermarks:
        platform = watermark.get("platform") or "other"
        breakdown[platform] = breakdown.get(platform, 0) + 1
    return breakdown


def _parse_boxes(content: str, width: int, height: int) -> List[Dict[str, Any]]:
    match = re.search(r"\[.*\]", content or "", re.DOTALL)
    if not match:
        return []
    try:
        data = json.loads(match.group(0))
    except ValueError:
        return []

    boxes = []
    for item in data if isinstance(data, list) else []:
        try:
            x = max(0, int(item["x"]))
            y = max(0, int(item["y"]))
            w = min(int(item["width"]), width - x)
            h = min(int(item["height"]), height - y)
        except (KeyError, TypeError, ValueError):
            continue
        if w <= 0 or h <= 0:
            continue
        try:
            confidence = min(1.0, max(0.0, float(item.get("confidence", 0.5))))
        except (TypeError, ValueError):
            confidence = 0.5
        platform = str(item.get("platform") or "other").lower()
        boxes.append({
            "x": x, "y": y, "width": w, "height": h,
            "confidence": round(confidence, 3),
            "platform": platform if platform in KNOWN_WATERMARK_PLATFORMS else "other",
        })
    return boxes


# =============================================================================
# Detection
# =============================================================================

def _sample_timestamps(duration: Optional[float], samples: int) -> List[float]:
    if not duration or duration <= 0:
        return [0.0]
    step = duration / (samples + 1)
    return [round(step * (i + 1), 2) for i in range(samples)]


def _detect_on_frame(frame_path: str, width: int, height: int) -> List[Dict[str, Any]]:
    with open(frame_path, "rb") as f:
        encoded = base64.b64encode(f.read()).decode("ascii")
    content = chat_completion(
        [{
            "role": "user",
            "content": [
                {"type": "text", "text": DETECTION_PROMPT.format(width=width, height=height)},
                {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}},
            ],
        }],
        max_tokens=500,
        temperature=0.0,
        model=get_settings().openai_vision_model,
        timeout=90,
    )
    return _parse_boxes(content, width, height)


def detect_watermarks(video_path: str, samples: int = DEFAULT_SAMPLES) -> Dict[str, Any]:
    """
    Detect watermarks on evenly spaced frames of a video.

    Args:
        video_path: Absolute path of the video
        samples: Number of frames to analyze (1-12)

    Returns:
        Dictionary with watermarks (merged boxes), platform_breakdown,
        frames_analyzed and the video dimensions

    Raises:
        MediaProcessingError: probing or frame extraction failed
        AIServiceError: the vision model is unavailable
    """
    samples = max(1, min(int(samples), MAX_SAMPLES))
    info = media_service.probe_video(video_path)
    width, height = int(info.get("width") or 0), int(info.get("height") or 0)
    if not width or not height:
        raise media_service.MediaProcessingError("Could not determine video dimensions")

    frame_boxes = []
    for timestamp in _sample_timestamps(info.get("duration"), samples):
        frame_path = cache_path("frames", ".jpg")
        try:
            media_service.extract_frame(video_path, timestamp, frame_path)
            frame_boxes.append(_detect_on_frame(frame_path, width, height))
        finally:
            if os.path.exists(frame_path):
                os.remove(frame_path)

    watermarks = merge_detections(frame_boxes)
    print(f"INFO: Watermark detection found {len(watermarks)} region(s) on {len(frame_boxes)} frame(s)")
    return {
        "watermarks": watermarks,
        "platform_breakdown": platform_breakdown(watermarks),
        "frames_analyzed": len(frame_boxes),
        "video_width": width,
        "video_height": height,
    }


# =============================================================================
# Removal
# =============================================================================

def get_removal(user_id: str, removal_id: str) -> Optional[Dict[str, Any]]:
    return fetch_one("watermark_removals", id=removal_id, user_id=user_id)


def request_removal(
    user_id: str,
    video: Dict[str, Any],
    watermarks: List[Dict[str, Any]],
    method: str = "delogo"
) -> Dict[str, Any]:
    """
    Create a pending removal and queue it on the media queue.

    Raises:
        ValueError: no watermarks, malformed boxes or unknown method
    """
    if method not in REMOVAL_METHODS:
        raise ValueError(f"Unknown removal method '{method}'. Available: {', '.join(REMOVAL_METHODS)}")
    if not watermarks:
        raise ValueError("At least one watermark region is required")
    for box in watermarks:
        if not all(isinstance(box.get(k), (int, float)) for k in ("x", "y", "width", "height")):
            raise ValueError("Each watermark needs numeric x, y, width and height")

    removal = insert_row("watermark_removals", {
        "user_id": user_id,
        "video_id": video["id"],
        "status": PENDING,
        "watermarks": watermarks,
        "method": method,
        "output_path": None,
        "error": None,
        "created_at": now_iso(),
    })
    enqueue_message(MEDIA_QUEUE, {"kind": "watermark_removal", "removal_id": removal["id"]})
    print(f"INFO: Queued watermark removal {removal['id']} for video {video['id']} ({len(watermarks)} region(s))")
    return removal


def run_removal(removal: Dict[str, Any], progress: Dict[str, str]) -> Dict[str, Any]:
    """Worker step: render the video without the watermark regions."""
    progress["step"] = "fetching video details"
    video = fetch_one("videos", id=removal["video_id"])
    if not video:
        raise media_service.MediaProcessingError(f"Video {removal['video_id']} not found")

    # Stack on top of burned subtitles when present
    source = video.get("rendered_video_path") if video.get("rendered_video_status") == COMPLETED else None
    source = source or video["original_file_path"]

    progress["step"] = "removing watermarks"
    relative_path = storage_service.reserve_path("rendered", video["user_id"], os.path.basename(video["original_file_path"]))
    media_service.remove_logo_regions(
        storage_service.absolute_path(source),
        removal.get("watermarks") or [],
        storage_service.absolute_path(relative_path),
    )

    progress["step"] = "saving rendered video"
    update_rows("watermark_removals", {
        "status": COMPLETED,
        "output_path": relative_path,
        "error": None,
        "completed_at": now_iso(),
    }, id=removal["id"])
    update_rows("videos", {
        "rendered_video_path": relative_path,
        "rendered_video_status": COMPLETED,
        "updated_at": now_iso(),
    }, id=video["id"])
    if source != video["original_file_path"]:
        storage_service.delete_file(source)
        update_rows("watermark_removals", {"output_path": relative_path}, video_id=video["id"], output_path=source)

    versioning_service.record_media_change(
        video,
        "has_watermark_removal",
        "watermark_removal",
        {"removal_id": removal["id"], "regions": len(removal.get("watermarks") or []), "rendered_video_path": relative_path},
    )
    print(f"INFO: Watermark removal {removal['id']} completed: {relative_path}")
    return {"output_path": relative_path}


def mark_removal_failed(removal: Dict[str, Any], error_message: str) -> None:
    update_rows("watermark_removals", {"status": ERROR, "error": error_message}, id=removal["id"])


def get_removal_progress(removal: Dict[str, Any]) -> Dict[str, Any]:
    status = removal.get("status")
    return {
        "removal_id": removal["id"],
        "video_id": removal.get("video_id"),
        "status": status,
        "percentage": {PENDING: 0, PROCESSING: 50, COMPLETED: 100}.get(status, 0),
        "method": removal.get("method"),
        "regions": len(removal.get("watermarks") or []),
        "output_url": storage_service.public_url(removal.get("output_path")),
        "error": removal.get("error"),
        "completed_at": removal.get("completed_at"),
    }
