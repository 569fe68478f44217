"""
Subtitle generation, editing, export and rendering.

This module handles:
- Queuing a generation for a video (worker transcribes it on the media queue)
- Turning transcription segments into subtitles with per-word timings
- Style presets / custom properties and on-screen position
- Editing a single subtitle's text
- Export (srt, vtt, txt, json) and a readability analysis
- Queuing a render that burns the subtitles into the video

Generations live in the subtitle_generations table. The worker side
(run_generation, run_render) is driven by media_job_service.
"""

import json
import os
import re
from typing import Dict, Any, List, Optional

from app.config import MEDIA_QUEUE
from app.services import media_service, storage_service, versioning_service
from app.services.cache_service import cache_path
from app.services.supabase_service import fetch_one, fetch_all, insert_row, update_rows, enqueue_message, now_iso
from app.services.transcription_service import transcribe_audio, VALID_PROVIDERS
from app.utils.timestamp_utils import format_seconds_to_srt, format_seconds_to_vtt


PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
ERROR = "error"

EXPORT_FORMATS = ["srt", "vtt", "txt", "json"]

# Readability thresholds (Netflix-style guidelines)
MAX_SEGMENT_SECONDS = 7.0
MAX_LINE_CHARS = 42
MAX_GAP_SECONDS = 2.0
MAX_WORDS_PER_MINUTE = 200
MAX_TEXT_LENGTH = 500

SUPPORTED_LANGUAGES = {
    "en": {"name": "English", "code": "en-US"},
    "es": {"name": "Spanish", "code": "es-ES"},
    "fr": {"name": "French", "code": "fr-FR"},
    "de": {"name": "German", "code": "de-DE"},
    "it": {"name": "Italian", "code": "it-IT"},
    "pt": {"name": "Portuguese", "code": "pt-BR"},
    "ru": {"name": "Russian", "code": "ru-RU"},
    "ja": {"name": "Japanese", "code": "ja-JP"},
    "ko": {"name": "Korean", "code": "ko-KR"},
    "zh": {"name": "Chinese", "code": "zh-CN"},
    "ar": {"name": "Arabic", "code": "ar-SA"},
    "hi": {"name": "Hindi", "code": "hi-IN"},
}

SUBTITLE_STYLES = {
    "classic": {
        "name": "Classic",
        "description": "White text with a black outline",
        "properties": {
            "font_family": "Arial", "font_size": 24, "bold": False,
            "color": "#FFFFFF", "outline_color": "#000000", "outline": 2, "shadow": 0,
            "background": None, "background_opacity": 0.0,
        },
    },
    "modern": {
        "name": "Modern",
        "description": "Clean text on a translucent dark box",
        "properties": {
            "font_family": "Montserrat", "font_size": 26, "bold": True,
            "color": "#FFFFFF", "outline_color": "#000000", "outline": 0, "shadow": 0,
            "background": "#000000", "background_opacity": 0.7,
        },
    },
    "bold": {
        "name": "Bold",
        "description": "Large yellow text with a heavy outline",
        "properties": {
            "font_family": "Arial Black", "font_size": 30, "bold": True,
            "color": "#FFD700", "outline_color": "#000000", "outline": 3, "shadow": 1,
            "background": None, "background_opacity": 0.0,
        },
    },
    "minimal": {
        "name": "Minimal",
        "description": "Small, thin text with a light outline",
        "properties": {
            "font_family": "Helvetica", "font_size": 20, "bold": False,
            "color": "#FFFFFF", "outline_color": "#333333", "outline": 1, "shadow": 0,
            "background": None, "background_opacity": 0.0,
        },
    },
    "karaoke": {
        "name": "Karaoke",
        "description": "Word-by-word highlight color",
        "properties": {
            "font_family": "Arial", "font_size": 28, "bold": True,
            "color": "#FFFFFF", "outline_color": "#000000", "outline": 2, "shadow": 0,
            "background": None, "background_opacity": 0.0, "highlight_color": "#00FFFF",
        },
    },
}

POSITION_PRESETS = {
    "top": {"x": 50, "y": 10},
    "center": {"x": 50, "y": 50},
    "bottom": {"x": 50, "y": 90},
}

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")
_STYLE_KEYS = set(SUBTITLE_STYLES["karaoke"]["properties"].keys())


# =============================================================================
# Helpers
# =============================================================================

def get_generation(user_id: str, generation_id: str) -> Optional[Dict[str, Any]]:
    return fetch_one("subtitle_generations", id=generation_id, user_id=user_id)


def _save(generation: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
    rows = update_rows("subtitle_generations", values, id=generation["id"])
    return rows[0] if rows else {**generation, **values}


def _require_completed(generation: Dict[str, Any]) -> None:
    if generation.get("status") != COMPLETED:
        raise ValueError("Subtitle generation is not completed")


def generate_word_timings(text: str, start: float, duration: float) -> List[Dict[str, Any]]:
    """Spread the words of a segment evenly across its duration."""
    words = text.split()
    if not words:
        return []
    per_word = duration / len(words)
    timings = []
    for index, word in enumerate(words):
        word_start = start + index * per_word
        timings.append({
            "word": word,
            "start_time": round(word_start, 3),
            "end_time": round(word_start + per_word, 3),
        })
    return timings


def build_subtitles(segments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Transcription segments -> numbered subtitles with word timings. Empty segments are dropped."""
    subtitles = []
    for segment in segments:
        text = (segment.get("text") or "").strip()
        if not text:
            continue
        start = float(segment["start"])
        end = max(float(segment["end"]), start)
        subtitles.append({
            "index": len(subtitles) + 1,
            "start_time": round(start, 3),
            "end_time": round(end, 3),
            "duration": round(end - start, 3),
            "text": text,
            "words": generate_word_timings(text, start, end - start),
        })
    return subtitles


def resolve_style(style: str, custom: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Preset properties merged with validated custom properties."""
    if style not in SUBTITLE_STYLES:
        raise ValueError(f"Unknown subtitle style '{style}'. Available: {', '.join(SUBTITLE_STYLES)}")
    properties = dict(SUBTITLE_STYLES[style]["properties"])

    for key, value in (custom or {}).items():
        if key not in _STYLE_KEYS:
            raise ValueError(f"Unknown style property '{key}'")
        if key in ("color", "outline_color", "highlight_color") or (key == "background" and value is not None):
            if not isinstance(value, str) or not _HEX_COLOR.match(value):
                raise ValueError(f"Style property '{key}' must be a #RRGGBB color")
        if key == "font_size" and not (isinstance(value, int) and 8 <= value <= 120):
            raise ValueError("font_size must be an integer between 8 and 120")
        if key == "background_opacity" and not (isinstance(value, (int, float)) and 0 <= value <= 1):
            raise ValueError("background_opacity must be between 0 and 1")
        properties[key] = value
    return properties


def _ass_color(hex_color: str, opacity: float = 1.0) -> str:
    # ASS colours are &HAABBGGRR with alpha 00 = opaque
    r, g, b = hex_color[1:3], hex_color[3:5], hex_color[5:7]
    alpha = int(round((1 - opacity) * 255))
    return f"&H{alpha:02X}{b}{g}{r}".upper()


def _alignment_and_margin(position: Dict[str, Any]) -> Dict[str, int]:
    # libass lays SRT subtitles out on a 288px-high canvas
    x = float(position.get("x", 50))
    y = float(position.get("y", 90))
    column = 1 if x < 33 else (3 if x > 67 else 2)
    if y < 33:
        return {"Alignment": column + 6, "MarginV": int(round(y / 100 * 288))}
    if y <= 67:
        return {"Alignment": column + 3, "MarginV": 0}
    return {"Alignment": column, "MarginV": int(round((100 - y) / 100 * 288))}


def build_force_style(properties: Dict[str, Any], position: Optional[Dict[str, Any]] = None) -> str:
    """FFmpeg subtitles filter force_style string for the given style and position."""
    parts = {
        "FontName": properties["font_family"],
        "FontSize": properties["font_size"],
        "Bold": 1 if properties.get("bold") else 0,
        "PrimaryColour": _ass_color(properties["color"]),
        "OutlineColour": _ass_color(properties["outline_color"]),
        "Outline": properties.get("outline", 0),
        "Shadow": properties.get("shadow", 0),
    }
    if properties.get("highlight_color"):
        parts["SecondaryColour"] = _ass_color(properties["highlight_color"])
    if properties.get("background"):
        parts["BorderStyle"] = 3
        parts["BackColour"] = _ass_color(properties["background"], properties.get("background_opacity", 1.0))
    parts.update(_alignment_and_margin(position or POSITION_PRESETS["bottom"]))
    return ",".join(f"{key}={value}" for key, value in parts.items())


# =============================================================================
# Generation
# =============================================================================

def request_generation(
    user_id: str,
    video: Dict[str, Any],
    language: Optional[str] = None,
    provider: Optional[str] = None,
    style: str = "classic"
) -> Dict[str, Any]:
    """
    Create a pending generation and queue it on the media queue.

    Raises:
        ValueError: unknown language, provider or style
    """
    if language and language not in SUPPORTED_LANGUAGES:
        raise ValueError(f"Unsupported language '{language}'")
    if provider and provider not in VALID_PROVIDERS:
        raise ValueError(f"Invalid provider '{provider}'. Must be one of: {', '.join(VALID_PROVIDERS)}")
    if style not in SUBTITLE_STYLES:
        raise ValueError(f"Unknown subtitle style '{style}'")

    generation = insert_row("subtitle_generations", {
        "user_id": user_id,
        "video_id": video["id"],
        "status": PENDING,
        "language": language,
        "provider": provider,
        "style": style,
        "custom_style": {},
        "position": dict(POSITION_PRESETS["bottom"], preset="bottom"),
        "subtitles": [],
        "error": None,
        "created_at": now_iso(),
    })
    update_rows("videos", {
        "subtitle_generation_id": generation["id"],
        "subtitle_status": PROCESSING,
        "updated_at": now_iso(),
    }, id=video["id"])

    enqueue_message(MEDIA_QUEUE, {"kind": "subtitles", "generation_id": generation["id"]})
    print(f"INFO: Queued subtitle generation {generation['id']} for video {video['id']}")
    return generation


def run_generation(generation: Dict[str, Any], progress: Dict[str, str]) -> Dict[str, Any]:
    """Worker step: extract audio, transcribe and store the subtitles."""
    progress["step"] = "fetching video details"
    video = fetch_one("videos", id=generation["video_id"])
    if not video:
        raise media_service.MediaProcessingError(f"Video {generation['video_id']} not found")

    progress["step"] = "extracting audio"
    audio_path = cache_path("audio", ".mp3")
    media_service.extract_audio(storage_service.absolute_path(video["original_file_path"]), audio_path)

    try:
        progress["step"] = "transcribing audio"
        result = transcribe_audio(audio_path, language=generation.get("language"), provider=generation.get("provider"))
    finally:
        if os.path.exists(audio_path):
            os.remove(audio_path)

    progress["step"] = "saving subtitles"
    subtitles = build_subtitles(result["segments"])
    saved = _save(generation, {
        "status": COMPLETED,
        "language": result["language"],
        "provider": result["provider"],
        "subtitles": subtitles,
        "error": None,
        "completed_at": now_iso(),
    })
    update_rows("videos", {"subtitle_status": COMPLETED, "updated_at": now_iso()}, id=video["id"])
    print(f"INFO: Subtitle generation {generation['id']} completed ({len(subtitles)} subtitles)")
    return {"subtitle_count": len(subtitles), "language": saved.get("language")}


def mark_generation_failed(generation: Dict[str, Any], error_message: str) -> None:
    _save(generation, {"status": ERROR, "error": error_message})
    update_rows("videos", {"subtitle_status": "failed", "updated_at": now_iso()}, id=generation["video_id"])


def get_progress(generation: Dict[str, Any]) -> Dict[str, Any]:
    subtitles = generation.get("subtitles") or []
    percentage = {PENDING: 0, PROCESSING: 50, COMPLETED: 100}.get(generation.get("status"), 0)
    return {
        "generation_id": generation["id"],
        "video_id": generation.get("video_id"),
        "status": generation.get("status"),
        "percentage": percentage,
        "language": generation.get("language"),
        "provider": generation.get("provider"),
        "style": generation.get("style"),
        "style_config": resolve_style(generation.get("style") or "classic", generation.get("custom_style")),
        "position": generation.get("position"),
        "subtitle_count": len(subtitles),
        "subtitles": subtitles,
        "error": generation.get("error"),
        "completed_at": generation.get("completed_at"),
    }


# =============================================================================
# Editing
# =============================================================================

def update_style(
    generation: Dict[str, Any],
    style: str,
    custom_properties: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Switch preset and/or set custom properties. Returns the resolved style."""
    style_config = resolve_style(style, custom_properties)
    _save(generation, {"style": style, "custom_style": custom_properties or {}})
    return {"applied_style": style, "style_config": style_config}


def update_position(generation: Dict[str, Any], position: Dict[str, Any]) -> Dict[str, Any]:
    """
    Set the on-screen position: {"preset": "top|center|bottom"} or {"x": .., "y": ..} in percent.
    """
    preset = position.get("preset")
    if preset:
        if preset not in POSITION_PRESETS:
            raise ValueError(f"Unknown position preset '{preset}'. Available: {', '.join(POSITION_PRESETS)}")
        applied = dict(POSITION_PRESETS[preset], preset=preset)
    else:
        try:
            x = float(position["x"])
            y = float(position["y"])
        except (KeyError, TypeError, ValueError):
            raise ValueError("Custom position requires numeric x and y")
        if not (0 <= x <= 100 and 0 <= y <= 100):
            raise ValueError("Position x and y must be between 0 and 100")
        applied = {"x": x, "y": y, "preset": "custom"}

    _save(generation, {"position": applied})
    return {"applied_position": applied}


def update_subtitle_text(generation: Dict[str, Any], index: int, text: str) -> Dict[str, Any]:
    """Replace the text of subtitle `index` (1-based) and recompute its word timings."""
    _require_completed(generation)
    text = (text or "").strip()
    if not text:
        raise ValueError("Subtitle text is required")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValueError(f"Subtitle text may not be greater than {MAX_TEXT_LENGTH} characters")

    subtitles = [dict(s) for s in generation.get("subtitles") or []]
    subtitle = next((s for s in subtitles if s.get("index") == index), None)
    if subtitle is None:
        raise LookupError(f"Subtitle {index} not found")

    subtitle["text"] = text
    subtitle["words"] = generate_word_timings(text, subtitle["start_time"], subtitle["duration"])
    _save(generation, {"subtitles": subtitles})
    return subtitle


def apply_style_to_all(generation: Dict[str, Any], properties: Dict[str, Any]) -> Dict[str, Any]:
    """Merge custom properties into the generation style and drop per-subtitle overrides."""
    _require_completed(generation)
    custom = {**(generation.get("custom_style") or {}), **properties}
    style_config = resolve_style(generation.get("style") or "classic", custom)

    subtitles = []
    for subtitle in generation.get("subtitles") or []:
        subtitle = dict(subtitle)
        subtitle.pop("style", None)
        subtitles.append(subtitle)

    _save(generation, {"custom_style": custom, "subtitles": subtitles})
    return {"updated_count": len(subtitles), "style_config": style_config}


# =============================================================================
# Export & Analysis
# =============================================================================

def to_srt(subtitles: List[Dict[str, Any]]) -> str:
    lines = []
    for number, subtitle in enumerate(subtitles, 1):
        lines.append(str(number))
        lines.append(f"{format_seconds_to_srt(subtitle['start_time'])} --> {format_seconds_to_srt(subtitle['end_time'])}")
        lines.append(subtitle["text"])
        lines.append("")
    return "\n".join(lines)


def to_vtt(subtitles: List[Dict[str, Any]]) -> str:
    lines = ["WEBVTT", ""]
    for subtitle in subtitles:
        lines.append(f"{format_seconds_to_vtt(subtitle['start_time'])} --> {format_seconds_to_vtt(subtitle['end_time'])}")
        lines.append(subtitle["text"])
        lines.append("")
    return "\n".join(lines)


def export_subtitles(generation: Dict[str, Any], fmt: str = "srt") -> Dict[str, Any]:
    """
    Render the subtitles in an export format.

    Returns:
        Dictionary with format, filename, content, media_type and subtitle_count
    """
    _require_completed(generation)
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format '{fmt}'. Available: {', '.join(EXPORT_FORMATS)}")

    subtitles = generation.get("subtitles") or []
    if fmt == "srt":
        content, media_type = to_srt(subtitles), "application/x-subrip"
    elif fmt == "vtt":
        content, media_type = to_vtt(subtitles), "text/vtt"
    elif fmt == "txt":
        content, media_type = "\n".join(s["text"] for s in subtitles), "text/plain"
    else:
        content = json.dumps({
            "generation_id": generation["id"],
            "language": generation.get("language"),
            "subtitles": subtitles,
        }, ensure_ascii=False, indent=2)
        media_type = "application/json"

    return {
        "format": fmt,
        "filename": f"subtitles_{generation['id']}.{fmt}",
        "content": content,
        "media_type": media_type,
        "subtitle_count": len(subtitles),
    }


def analyze_quality(generation: Dict[str, Any]) -> Dict[str, Any]:
    """Readability metrics: segment lengths, reading speed and gaps between subtitles."""
    _require_completed(generation)
    subtitles = generation.get("subtitles") or []

    if not subtitles:
        return {
            "segment_count": 0, "total_words": 0, "average_segment_duration": 0.0,
            "words_per_minute": 0.0, "long_segments": [], "gaps": [],
            "recommendations": ["No speech was detected. Check that the video has an audible voice track."],
        }

    total_words = sum(len(s["text"].split()) for s in subtitles)
    speaking_time = sum(s["duration"] for s in subtitles)
    words_per_minute = round(total_words / speaking_time * 60, 1) if speaking_time > 0 else 0.0

    long_segments = []
    for s in subtitles:
        reasons = []
        if s["duration"] > MAX_SEGMENT_SECONDS:
            reasons.append("duration")
        if any(len(line) > MAX_LINE_CHARS for line in s["text"].splitlines()):
            reasons.append("line_length")
        if reasons:
            long_segments.append({"index": s["index"], "duration": s["duration"], "reasons": reasons})

    gaps = []
    for previous, current in zip(subtitles, subtitles[1:]):
        gap = round(current["start_time"] - previous["end_time"], 3)
        if gap > MAX_GAP_SECONDS:
            gaps.append({"after_index": previous["index"], "gap_seconds": gap})

    recommendations = []
    if any("line_length" in s["reasons"] for s in long_segments):
        recommendations.append(f"Split subtitles longer than {MAX_LINE_CHARS} characters per line")
    if any("duration" in s["reasons"] for s in long_segments):
        recommendations.append(f"Keep each subtitle on screen for at most {int(MAX_SEGMENT_SECONDS)} seconds")
    if words_per_minute > MAX_WORDS_PER_MINUTE:
        recommendations.append("Reading speed is high - consider shortening the text")
    if gaps:
        recommendations.append("Check the long gaps between subtitles for missed speech")
    if not recommendations:
        recommendations.append("Subtitles meet common readability guidelines")

    return {
        "segment_count": len(subtitles),
        "total_words": total_words,
        "average_segment_duration": round(speaking_time / len(subtitles), 2),
        "words_per_minute": words_per_minute,
        "long_segments": long_segments,
        "gaps": gaps,
        "recommendations": recommendations,
    }


# =============================================================================
# Rendering
# =============================================================================

def request_render(video: Dict[str, Any], generation: Dict[str, Any]) -> Dict[str, Any]:
    """Queue burning the generation's subtitles into the video."""
    _require_completed(generation)
    if not generation.get("subtitles"):
        raise ValueError("Subtitle generation has no subtitles to render")

    update_rows("videos", {"rendered_video_status": PENDING, "updated_at": now_iso()}, id=video["id"])
    msg_id = enqueue_message(MEDIA_QUEUE, {
        "kind": "render_subtitles",
        "video_id": video["id"],
        "generation_id": generation["id"],
    })
    return {"video_id": video["id"], "generation_id": generation["id"], "status": PENDING, "msg_id": msg_id}


def _latest_removal(video_id: str) -> Optional[Dict[str, Any]]:
    removals = fetch_all("watermark_removals", order_by="completed_at", desc=True, limit=1,
                         video_id=video_id, status=COMPLETED)
    return removals[0] if removals else None


def run_render(video: Dict[str, Any], generation: Dict[str, Any], progress: Dict[str, str]) -> Dict[str, Any]:
    """
    Worker step: burn subtitles, store the rendered file and record a draft version.

    Always renders from the original upload. The regions of the latest
    completed watermark removal are removed before the subtitles are burned in.
    """
    progress["step"] = "writing subtitle file"
    srt_path = cache_path("subtitles", ".srt")
    with open(srt_path, "w", encoding="utf-8") as f:
        f.write(to_srt(generation.get("subtitles") or []))

    style = resolve_style(generation.get("style") or "classic", generation.get("custom_style"))
    force_style = build_force_style(style, generation.get("position"))

    removal = _latest_removal(video["id"])
    source = storage_service.absolute_path(video["original_file_path"])
    cleaned_path = None

    relative_path = storage_service.reserve_path("rendered", video["user_id"], os.path.basename(video["original_file_path"]))
    try:
        if removal and removal.get("watermarks"):
            progress["step"] = "removing watermarks"
            cleaned_path = cache_path("videos", ".mp4")
            media_service.remove_logo_regions(source, removal["watermarks"], cleaned_path)
            source = cleaned_path

        progress["step"] = "rendering video"
        media_service.burn_subtitles(
            source,
            srt_path,
            storage_service.absolute_path(relative_path),
            force_style=force_style,
        )
    finally:
        for path in (srt_path, cleaned_path):
            if path and os.path.exists(path):
                os.remove(path)

    progress["step"] = "saving rendered video"
    previous = video.get("rendered_video_path")
    update_rows("videos", {
        "rendered_video_path": relative_path,
        "rendered_video_status": COMPLETED,
        "updated_at": now_iso(),
    }, id=video["id"])
    if previous and previous != relative_path:
        storage_service.delete_file(previous)
        # The removal's own output is gone; its regions now live in this render
        update_rows("watermark_removals", {"output_path": relative_path}, video_id=video["id"], output_path=previous)

    summary = {"generation_id": generation["id"], "rendered_video_path": relative_path}
    if removal:
        summary["removal_id"] = removal["id"]
    versioning_service.record_media_change(video, "has_subtitle_changes", "subtitles", summary)
    print(f"INFO: Rendered subtitles for video {video['id']}: {relative_path}")
    return {"rendered_video_path": relative_path}
