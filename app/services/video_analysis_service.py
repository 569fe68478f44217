"""
Video analysis and instant AI uploads.

This module handles:
- Describing sampled frames with the OpenAI vision model (each frame also
  gets a 1-10 thumbnail score)
- An optional transcript of the audio track
- Content category, mood and keyword tags from the transcript and frame
  descriptions, plus a technical quality score
- Instant uploads: the worker analyzes the video, writes an AI title,
  description and tags, then creates and dispatches the publishing targets
- Setting a video's thumbnail from a chosen frame

Analysis results are cached per file for two hours.
"""

import base64
import json
import os
import re
from collections import Counter
from typing import Dict, Any, List, Optional

from app.config import get_settings
from app.services import media_service, publishing_service, storage_service
from app.services.ai_content_service import AIServiceError, chat_completion
from app.services.cache_service import cache_path, cache_get, cache_set
from app.services.supabase_service import fetch_all, insert_row, update_rows, now_iso
from app.services.target_state import PENDING
from app.services.transcription_service import TranscriptionError, transcribe_audio


COMPLETED = "completed"

DEFAULT_SAMPLES = 3
MAX_SAMPLES = 8
ANALYSIS_TTL_SECONDS = 7200
MAX_CONTENT_TAGS = 20
MAX_VIDEO_TAGS = 30

FALLBACK_TITLE = "New Video Upload"
FALLBACK_DESCRIPTION = "Check out this new video!"

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "educational": ["tutorial", "how-to", "learn", "explain", "guide", "tips", "lesson"],
    "entertainment": ["funny", "comedy", "fun", "laugh", "hilarious", "amusing", "entertaining"],
    "gaming": ["game", "gameplay", "gaming", "player", "level", "boss", "strategy"],
    "lifestyle": ["daily", "routine", "life", "personal", "vlog", "day in my life"],
    "fitness": ["workout", "exercise", "fitness", "gym", "health", "training"],
    "food": ["recipe", "cooking", "food", "chef", "kitchen", "delicious"],
    "travel": ["travel", "trip", "vacation", "explore", "adventure", "destination"],
    "tech": ["technology", "tech", "gadget", "review", "unboxing", "innovation"],
    "music": ["music", "song", "sing", "performance", "concert", "band"],
    "fashion": ["fashion", "style", "outfit", "clothing", "beauty", "makeup"],
    "business": ["business", "entrepreneur", "startup", "success", "marketing"],
    "diy": ["diy", "craft", "make", "build", "create", "handmade"],
}

MOOD_KEYWORDS: Dict[str, List[str]] = {
    "positive": ["happy", "excited", "great", "amazing", "awesome", "love", "best"],
    "energetic": ["energy", "pump", "action", "fast", "quick", "intense", "power"],
    "calm": ["relax", "calm", "peaceful", "quiet", "gentle", "soft", "slow"],
    "professional": ["professional", "business", "formal", "official", "serious"],
    "casual": ["casual", "friendly", "easy", "simple", "basic", "everyday"],
    "inspirational": ["inspire", "motivate", "dream", "achieve", "success", "believe"],
}

STOP_WORDS = {
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by", "is", "are", "was",
    "were", "be", "been", "have", "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "can", "this", "that", "these", "those", "a", "an", "it", "its", "i", "you", "we",
    "they", "he", "she", "my", "your", "our", "their", "from", "into", "there", "here", "some", "very",
    "just", "so", "then", "than", "out", "up", "about", "what", "which", "who", "while", "shows",
    "showing", "image", "frame", "video", "scene",
}

FRAME_PROMPT = (
    "Describe this video frame in one or two sentences: the subject, the setting and what is happening. "
    "Then rate from 1 to 10 how well it would work as the video's thumbnail (sharp, well lit, clear subject). "
    'Answer with JSON only: {"description": "...", "thumbnail_score": 7}'
)

CONTENT_PROMPT = (
    "You write metadata for short social videos. From the analysis below write a catchy title "
    "(5-80 characters), a description (20-500 characters, no hashtags) and 5-12 single-word tags "
    'without #. Answer with JSON only: {{"title": "...", "description": "...", "tags": ["..."]}}\n\n{summary}'
)


# =============================================================================
# Text Analysis
# =============================================================================

def _keyword_scores(text: str, keywords: Dict[str, List[str]]) -> Dict[str, int]:
    text = (text or "").lower()
    return {name: sum(text.count(word) for word in words) for name, words in keywords.items()}


def categorize_content(text: str) -> Dict[str, Any]:
    scores = _keyword_scores(text, CATEGORY_KEYWORDS)
    best = max(scores.values())
    return {
        "primary_category": max(scores, key=scores.get) if best > 0 else "general",
        "category_scores": scores,
        "confidence": min(best / 5, 1.0) if best > 0 else 0.1,
    }


def analyze_mood(text: str) -> Dict[str, Any]:
    scores = _keyword_scores(text, MOOD_KEYWORDS)
    best = max(scores.values())
    return {
        "dominant_mood": max(scores, key=scores.get) if best > 0 else "neutral",
        "mood_scores": scores,
        "confidence": min(best / 10, 1.0) if best > 0 else 0.1,
    }


def extract_content_tags(text: str, limit: int = MAX_CONTENT_TAGS) -> List[str]:
    """Most frequent meaningful words, capitalized. Ties keep first-seen order."""
    words = [w for w in re.findall(r"[a-z][a-z'-]+", (text or "").lower()) if w not in STOP_WORDS and len(w) > 2]
    return [word.capitalize() for word, _ in Counter(words).most_common(limit)]


def assess_quality(info: Dict[str, Any]) -> Dict[str, Any]:
    """0-100 technical score from resolution, audio and duration."""
    width, height = info.get("width") or 0, info.get("height") or 0
    pixels = width * height
    if pixels >= 1920 * 1080:
        resolution_score = 100
    elif pixels >= 1280 * 720:
        resolution_score = 75
    elif pixels >= 854 * 480:
        resolution_score = 50
    else:
        resolution_score = 25

    score = 50 + {100: 20, 75: 15, 50: 10}.get(resolution_score, 0)
    if info.get("has_audio"):
        score += 10
    duration = info.get("duration") or 0
    if 15 <= duration <= 600:
        score += 5

    suggestions = []
    if resolution_score < 75:
        suggestions.append("Record in at least 720p for sharper playback")
    if not info.get("has_audio"):
        suggestions.append("Add music or narration; silent videos get less engagement")
    if duration and duration < 15:
        suggestions.append("Very short clips are hard to understand; aim for 15 seconds or more")

    return {
        "overall_score": min(100, score),
        "resolution_score": resolution_score,
        "audio_score": 100 if info.get("has_audio") else 0,
        "suggestions": suggestions,
    }


# =============================================================================
# Frames and Transcript
# =============================================================================

def _sample_timestamps(duration: Optional[float], samples: int) -> List[float]:
    if not duration or duration <= 0:
        return [0.0]
    return [round(duration * (i + 1) / (samples + 1), 2) for i in range(samples)]


def _parse_frame_reply(content: str) -> Dict[str, Any]:
    match = re.search(r"\{.*\}", content or "", re.DOTALL)
    data: Any = None
    if match:
        try:
            data = json.loads(match.group(0))
        except ValueError:
            data = None
    if not isinstance(data, dict):
        return {"description": (content or "").strip()[:300], "thumbnail_score": 5}
    try:
        score = int(round(float(data.get("thumbnail_score", 5))))
    except (TypeError, ValueError):
        score = 5
    return {"description": str(data.get("description") or "").strip(), "thumbnail_score": min(10, max(1, score))}


def _describe_frame(frame_path: str) -> Dict[str, Any]:
    with open(frame_path, "rb") as f:
        encoded = base64.b64encode(f.read()).decode("ascii")
    content = chat_completion(
        [{
            "role": "user",
            "content": [
                {"type": "text", "text": FRAME_PROMPT},
                {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}},
            ],
        }],
        max_tokens=200,
        temperature=0.2,
        model=get_settings().openai_vision_model,
        timeout=90,
    )
    return _parse_frame_reply(content)


def describe_frames(video_path: str, duration: Optional[float], samples: int) -> List[Dict[str, Any]]:
    """
    Describe evenly spaced frames.

    A vision failure stops sampling; the frames described so far are returned.
    """
    frames = []
    for timestamp in _sample_timestamps(duration, samples):
        frame_path = cache_path("frames", ".jpg")
        try:
            media_service.extract_frame(video_path, timestamp, frame_path)
            frames.append({"timestamp": timestamp, **_describe_frame(frame_path)})
        except AIServiceError as e:
            print(f"WARNING: Frame description unavailable: {str(e)}")
            break
        finally:
            if os.path.exists(frame_path):
                os.remove(frame_path)
    return frames


def transcribe_video(video_path: str) -> Dict[str, Any]:
    """Transcript text of the audio track. Failures are reported, not raised."""
    audio_path = cache_path("audio", ".mp3")
    try:
        media_service.extract_audio(video_path, audio_path)
        result = transcribe_audio(audio_path)
    except (media_service.MediaProcessingError, TranscriptionError) as e:
        print(f"WARNING: Transcript unavailable for analysis: {str(e)}")
        return {"success": False, "text": "", "language": None, "error": str(e)}
    finally:
        if os.path.exists(audio_path):
            os.remove(audio_path)
    text = " ".join(s.get("text", "").strip() for s in result.get("segments") or []).strip()
    return {"success": True, "text": text, "language": result.get("language")}


# =============================================================================
# Analysis
# =============================================================================

def analyze_video(video_path: str, include_transcript: bool = True, samples: int = DEFAULT_SAMPLES) -> Dict[str, Any]:
    """
    Analyze a stored video.

    Returns:
        Dictionary with basic_info, transcript, scenes, content_category,
        mood_analysis, content_tags, quality_score and suggested_thumbnails
        (frame timestamps, best first)

    Raises:
        MediaProcessingError: the video could not be probed
    """
    samples = max(1, min(int(samples), MAX_SAMPLES))
    cache_key = f"video_analysis_{os.path.basename(video_path)}_{os.path.getsize(video_path)}_{samples}_{int(include_transcript)}"
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    info = media_service.probe_video(video_path)
    scenes = describe_frames(video_path, info.get("duration"), samples)

    if include_transcript and info.get("has_audio"):
        transcript = transcribe_video(video_path)
    else:
        transcript = {"success": False, "text": "", "language": None, "error": "skipped"}

    text = " ".join([transcript["text"]] + [s["description"] for s in scenes])
    analysis = {
        "basic_info": info,
        "transcript": transcript,
        "scenes": scenes,
        "content_category": categorize_content(text),
        "mood_analysis": analyze_mood(text),
        "content_tags": extract_content_tags(text),
        "quality_score": assess_quality(info),
        "suggested_thumbnails": [
            {"timestamp": s["timestamp"], "thumbnail_score": s["thumbnail_score"]}
            for s in sorted(scenes, key=lambda s: s["thumbnail_score"], reverse=True)
        ],
    }
    print(f"INFO: Analyzed {os.path.basename(video_path)}: {len(scenes)} frame(s), "
          f"category {analysis['content_category']['primary_category']}, {len(analysis['content_tags'])} tag(s)")
    cache_set(cache_key, analysis, ANALYSIS_TTL_SECONDS)
    return analysis


def merge_tags(existing: List[str], new: List[str], limit: int = MAX_VIDEO_TAGS) -> List[str]:
    """Existing tags first, then new ones not already present (ignoring case and #)."""
    merged: List[str] = []
    seen = set()
    for tag in list(existing or []) + list(new or []):
        key = str(tag).lstrip("#").strip().lower()
        if key and key not in seen:
            seen.add(key)
            merged.append(str(tag).strip())
    return merged[:limit]


def apply_content_tags(video: Dict[str, Any], tags: List[str]) -> List[str]:
    merged = merge_tags(video.get("tags") or [], tags)
    update_rows("videos", {"tags": merged, "updated_at": now_iso()}, id=video["id"])
    video["tags"] = merged
    return merged


# =============================================================================
# Instant Upload
# =============================================================================

def _summary(analysis: Dict[str, Any]) -> str:
    lines = [
        f"Category: {analysis['content_category']['primary_category']}",
        f"Mood: {analysis['mood_analysis']['dominant_mood']}",
        f"Keywords: {', '.join(analysis['content_tags'][:10])}",
    ]
    for scene in analysis["scenes"]:
        lines.append(f"Frame at {scene['timestamp']}s: {scene['description']}")
    if analysis["transcript"]["text"]:
        lines.append(f"Transcript: {analysis['transcript']['text'][:1500]}")
    return "\n".join(lines)


def parse_generated_content(content: str) -> Optional[Dict[str, Any]]:
    """Title, description and tags from the model reply, or None when unusable."""
    match = re.search(r"\{.*\}", content or "", re.DOTALL)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    title = str(data.get("title") or "").strip().strip('"')
    description = str(data.get("description") or "").strip()
    if len(title) < 5 or len(description) < 20:
        return None
    tags = data.get("tags") or []
    if isinstance(tags, str):
        tags = tags.replace(",", " ").split()
    tags = [str(t).replace("#", "").strip() for t in tags if str(t).strip("# ")]
    return {"title": title[:255], "description": description[:1000], "tags": tags}


def fallback_content(analysis: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    tags = [t.lower() for t in (analysis or {}).get("content_tags", [])[:8]] or ["video", "content"]
    return {"title": FALLBACK_TITLE, "description": FALLBACK_DESCRIPTION, "tags": tags}


def generate_content(analysis: Dict[str, Any]) -> Dict[str, Any]:
    """AI title, description and tags; content tags from the analysis fill up the tag list."""
    try:
        reply = chat_completion(
            [
                {"role": "system", "content": "You are a social media content strategist."},
                {"role": "user", "content": CONTENT_PROMPT.format(summary=_summary(analysis))},
            ],
            max_tokens=500,
            temperature=0.7,
        )
    except AIServiceError as e:
        print(f"WARNING: AI content generation failed, using fallback content: {str(e)}")
        return fallback_content(analysis)

    content = parse_generated_content(reply)
    if content is None:
        print("WARNING: AI content generation returned unusable content, using fallback content")
        return fallback_content(analysis)
    content["tags"] = merge_tags(content["tags"], [t.lower() for t in analysis["content_tags"]], limit=12)
    return content


def run_instant_upload(video: Dict[str, Any], progress: Dict[str, str]) -> Dict[str, Any]:
    """
    Worker step: analyze, write AI metadata, then create and dispatch the targets.

    Missing AI never fails the upload: the video is published with fallback
    metadata. Platforms that already have a target (a redelivered message)
    are not created twice.
    """
    progress["step"] = "analyzing video"
    video_path = storage_service.absolute_path(video["original_file_path"])
    analysis = analyze_video(video_path)

    progress["step"] = "generating content"
    content = generate_content(analysis)

    progress["step"] = "saving metadata"
    update_rows("videos", {
        "title": content["title"],
        "description": content["description"],
        "tags": content["tags"],
        "ai_analysis": {
            "category": analysis["content_category"]["primary_category"],
            "mood": analysis["mood_analysis"]["dominant_mood"],
            "quality_score": analysis["quality_score"]["overall_score"],
            "suggested_thumbnails": analysis["suggested_thumbnails"],
        },
        "updated_at": now_iso(),
    }, id=video["id"])

    progress["step"] = "creating targets"
    existing = {t["platform"] for t in fetch_all("video_targets", video_id=video["id"])}
    dispatched = 0
    for platform in video.get("instant_platforms") or []:
        if platform in existing:
            continue
        target = insert_row("video_targets", {
            "video_id": video["id"],
            "platform": platform,
            "publish_at": None,
            "status": PENDING,
            "advanced_options": {"ai_generated": True},
            "created_at": now_iso(),
            "updated_at": now_iso(),
        })
        if publishing_service.dispatch_upload_job(target) is not None:
            dispatched += 1

    update_rows("videos", {"ai_status": COMPLETED, "updated_at": now_iso()}, id=video["id"])
    print(f"INFO: Instant upload {video['id']} ready: '{content['title']}', {dispatched} upload job(s)")
    return {"title": content["title"], "tags": content["tags"], "dispatched": dispatched}


def mark_instant_upload_failed(video: Dict[str, Any], error_message: str) -> None:
    update_rows("videos", {"ai_status": "failed", "ai_error": error_message, "updated_at": now_iso()}, id=video["id"])


# =============================================================================
# Thumbnails
# =============================================================================

def set_thumbnail_from_frame(video: Dict[str, Any], timestamp: float) -> Dict[str, Any]:
    """
    Use the frame at `timestamp` as the video's thumbnail.

    Raises:
        ValueError: timestamp outside the video
        MediaProcessingError: the frame could not be extracted
    """
    duration = video.get("duration")
    if timestamp < 0 or (duration and timestamp > float(duration)):
        raise ValueError(f"Timestamp must be between 0 and {duration} seconds")

    stem = os.path.splitext(os.path.basename(video["original_file_path"]))[0]
    relative_path = storage_service.reserve_path("thumbnails", video["user_id"], f"{stem}.jpg")
    try:
        media_service.extract_frame(
            storage_service.absolute_path(video["original_file_path"]),
            timestamp,
            storage_service.absolute_path(relative_path),
        )
    except media_service.MediaProcessingError:
        storage_service.delete_file(relative_path)
        raise

    previous = video.get("thumbnail_path")
    update_rows("videos", {"thumbnail_path": relative_path, "updated_at": now_iso()}, id=video["id"])
    if previous and previous != relative_path:
        storage_service.delete_file(previous)
    video["thumbnail_path"] = relative_path
    print(f"INFO: Thumbnail of video {video['id']} set from frame at {timestamp}s")
    return video
