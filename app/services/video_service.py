"""
Videos and their publishing targets.

This module handles:
- Upload validation (file type and size, metadata, platforms, schedule)
- Storing the upload, probing it and extracting a thumbnail
- Creating the video with one pending target per platform and dispatching
  immediate uploads
- Instant uploads: stored without metadata and queued for AI processing
- Listing, editing and deleting videos (deleting removes published copies)
- Target actions: retry, delete, push metadata to every platform
"""

import math
import os
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, BinaryIO

from fastapi import HTTPException

from app.config import MAX_UPLOAD_BYTES, MEDIA_QUEUE, PLATFORMS, get_settings
from app.services import channel_service, media_service, plan_service, publishing_service, storage_service
from app.services.hashtag_service import validate_advanced_options
from app.services.supabase_service import (
    get_supabase_client,
    fetch_one,
    fetch_all,
    insert_row,
    update_rows,
    delete_rows,
    enqueue_message,
    now_iso,
)
from app.services.target_state import parse_datetime, PENDING, SUCCESS


ALLOWED_EXTENSIONS = [".mp4", ".mov", ".avi", ".wmv", ".webm"]
PUBLISH_TYPES = ["now", "scheduled"]
PER_PAGE = 10


def _invalid(message: str):
    return HTTPException(status_code=422, detail=message)


# =============================================================================
# Validation
# =============================================================================

def validate_upload(filename: Optional[str], size: Optional[int]) -> None:
    """File must be one of the accepted video types and at most MAX_UPLOAD_MB."""
    if not filename:
        raise _invalid("The video field is required.")
    ext = os.path.splitext(filename)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise _invalid("The video must be a file of type: mp4, mov, avi, wmv, webm.")
    if size is not None and size > MAX_UPLOAD_BYTES:
        raise _invalid(f"The video may not be greater than {get_settings().max_upload_mb} MB.")


def validate_metadata(title: Optional[str], description: Optional[str]) -> None:
    if not title or not title.strip():
        raise _invalid("The title field is required.")
    if len(title) > 255:
        raise _invalid("The title may not be greater than 255 characters.")
    if not description or not description.strip():
        raise _invalid("The description field is required.")
    if len(description) > 1000:
        raise _invalid("The description may not be greater than 1000 characters.")


def validate_schedule(publish_type: str, publish_at: Optional[str], now: Optional[datetime] = None) -> Optional[str]:
    """Returns the normalized publish_at (None for immediate publishing)."""
    if publish_type not in PUBLISH_TYPES:
        raise _invalid("The selected publish type is invalid.")
    if publish_type == "now":
        return None
    if not publish_at:
        raise _invalid("The publish at field is required when publish type is scheduled.")
    try:
        when = parse_datetime(publish_at)
    except ValueError:
        raise _invalid("The publish at is not a valid date.")
    if when <= (now or datetime.now(timezone.utc)):
        raise _invalid("The publish at must be a date after now.")
    return when.isoformat()


def validate_platforms(user_id: str, channel: Dict[str, Any], platforms: List[str]) -> List[str]:
    """Known, allowed by the user's plan and connected to the channel. Duplicates are dropped."""
    if not platforms:
        raise _invalid("The platforms field must have at least 1 items.")

    unique = []
    for platform in platforms:
        if platform not in PLATFORMS:
            raise _invalid("The selected platforms is invalid.")
        if platform not in unique:
            unique.append(platform)

    allowed = plan_service.get_allowed_platforms(user_id)
    connected = channel_service.connected_platforms(channel)
    for platform in unique:
        if platform not in allowed:
            raise _invalid(f"Platform '{platform}' is not available with your current plan.")
        if platform not in connected:
            raise _invalid(f"Platform '{platform}' is not connected to this channel.")
    return unique


# =============================================================================
# Create
# =============================================================================

def probe_and_thumbnail(user_id: str, relative_path: str) -> Dict[str, Any]:
    """Duration, dimensions and thumbnail path. FFmpeg problems only cost the metadata."""
    video_path = storage_service.absolute_path(relative_path)
    info: Dict[str, Any] = {"duration": None, "video_width": None, "video_height": None, "thumbnail_path": None}
    try:
        probe = media_service.probe_video(video_path)
        info["duration"] = int(math.ceil(probe["duration"])) if probe.get("duration") else None
        info["video_width"] = probe.get("width")
        info["video_height"] = probe.get("height")

        thumbnail = storage_service.reserve_path("thumbnails", user_id, os.path.splitext(os.path.basename(relative_path))[0] + ".jpg")
        media_service.extract_thumbnail(video_path, storage_service.absolute_path(thumbnail), probe.get("duration"))
        info["thumbnail_path"] = thumbnail
    except media_service.MediaProcessingError as e:
        print(f"WARNING: Could not probe {relative_path}: {str(e)}")
    return info


def create_video(
    user_id: str,
    channel: Dict[str, Any],
    source: BinaryIO,
    filename: str,
    size: Optional[int],
    title: str,
    description: str,
    platforms: List[str],
    publish_type: str = "now",
    publish_at: Optional[str] = None,
    tags: Optional[List[str]] = None,
    advanced_options: Optional[Dict[str, Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """
    Validate and store an upload, create its targets and dispatch them.

    Returns:
        The video with its targets, plus hashtag_warnings for platforms
        whose custom caption contains forbidden hashtags

    Raises:
        HTTPException: 422 on validation errors
    """
    validate_upload(filename, size)
    validate_metadata(title, description)
    scheduled_at = validate_schedule(publish_type, publish_at)
    platforms = validate_platforms(user_id, channel, platforms)
    advanced_options = {p: o for p, o in (advanced_options or {}).items() if p in platforms and isinstance(o, dict)}

    relative_path = storage_service.save_stream(source, "videos", user_id, filename)
    info = probe_and_thumbnail(user_id, relative_path)

    video = insert_row("videos", {
        "user_id": user_id,
        "channel_id": channel["id"],
        "title": title.strip(),
        "description": description,
        "tags": list(tags or []),
        "original_file_path": relative_path,
        **info,
        "created_at": now_iso(),
        "updated_at": now_iso(),
    })

    targets = []
    for platform in platforms:
        targets.append(insert_row("video_targets", {
            "video_id": video["id"],
            "platform": platform,
            "publish_at": scheduled_at,
            "status": PENDING,
            "advanced_options": advanced_options.get(platform) or {},
            "created_at": now_iso(),
            "updated_at": now_iso(),
        }))

    channel_service.update_default_platforms(channel, platforms, plan_service.get_allowed_platforms(user_id))

    if publish_type == "now":
        for target in targets:
            publishing_service.dispatch_upload_job(target)

    print(f"INFO: Created video {video['id']} with {len(targets)} target(s) ({publish_type})")
    video["targets"] = targets
    video["hashtag_warnings"] = validate_advanced_options(advanced_options)
    return video


def create_instant_video(
    user_id: str,
    channel: Dict[str, Any],
    source: BinaryIO,
    filename: str,
    size: Optional[int],
    platforms: List[str]
) -> Dict[str, Any]:
    """
    Store an upload without metadata and queue it for AI processing.

    The media worker writes title, description and tags from its analysis,
    then creates and dispatches one target per platform.

    Raises:
        HTTPException: 422 on validation errors
    """
    validate_upload(filename, size)
    platforms = validate_platforms(user_id, channel, platforms)

    relative_path = storage_service.save_stream(source, "videos", user_id, filename)
    info = probe_and_thumbnail(user_id, relative_path)

    video = insert_row("videos", {
        "user_id": user_id,
        "channel_id": channel["id"],
        "title": "Processing...",
        "description": "",
        "tags": [],
        "original_file_path": relative_path,
        **info,
        "ai_status": PENDING,
        "instant_platforms": platforms,
        "created_at": now_iso(),
        "updated_at": now_iso(),
    })
    enqueue_message(MEDIA_QUEUE, {"kind": "instant_upload", "video_id": video["id"]})

    print(f"INFO: Queued instant upload {video['id']} for {', '.join(platforms)}")
    video["targets"] = []
    return video


# =============================================================================
# Read / Update / Delete
# =============================================================================

def get_video(user_id: str, video_id: str) -> Dict[str, Any]:
    """The user's video with its targets, or 404."""
    video = fetch_one("videos", id=video_id, user_id=user_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    video["targets"] = fetch_all("video_targets", order_by="created_at", video_id=video["id"])
    return video


def list_videos(user_id: str, page: int = 1, channel_id: Optional[str] = None) -> Dict[str, Any]:
    """Newest first, PER_PAGE per page, each with its targets."""
    page = max(1, page)
    supabase = get_supabase_client()

    query = supabase.table("videos").select("*", count="exact").eq("user_id", user_id)
    if channel_id:
        query = query.eq("channel_id", channel_id)
    start = (page - 1) * PER_PAGE
    result = query.order("created_at", desc=True).range(start, start + PER_PAGE - 1).execute()

    videos = result.data or []
    for video in videos:
        video["targets"] = fetch_all("video_targets", order_by="created_at", video_id=video["id"])

    total = result.count if result.count is not None else len(videos)
    return {
        "data": videos,
        "current_page": page,
        "per_page": PER_PAGE,
        "total": total,
        "last_page": max(1, math.ceil(total / PER_PAGE)),
    }


def update_video(user_id: str, video_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    video = get_video(user_id, video_id)
    title = data.get("title", video.get("title"))
    description = data.get("description", video.get("description"))
    validate_metadata(title, description)

    values: Dict[str, Any] = {"title": title.strip(), "description": description, "updated_at": now_iso()}
    if data.get("tags") is not None:
        values["tags"] = list(data["tags"])

    rows = update_rows("videos", values, id=video["id"], user_id=user_id)
    video.update(rows[0] if rows else values)
    return video


def delete_video(user_id: str, video_id: str) -> Dict[str, Any]:
    """
    Delete a video, its targets, versions and files.

    Published targets get a removal job first; the job carries a snapshot so
    it does not depend on the rows deleted here.
    """
    video = get_video(user_id, video_id)

    removals = 0
    for target in video["targets"]:
        if target.get("status") == SUCCESS and publishing_service.dispatch_removal_job(target, video) is not None:
            removals += 1

    delete_rows("video_targets", video_id=video["id"])
    delete_rows("video_versions", video_id=video["id"])
    delete_rows("subtitle_generations", video_id=video["id"])
    delete_rows("watermark_removals", video_id=video["id"])
    delete_rows("videos", id=video["id"], user_id=user_id)

    for path in (video.get("original_file_path"), video.get("thumbnail_path"), video.get("rendered_video_path")):
        storage_service.delete_file(path)

    print(f"INFO: Deleted video {video['id']} ({removals} removal job(s) dispatched)")
    return {"deleted": True, "removal_jobs": removals}


# =============================================================================
# Targets
# =============================================================================

def get_target(user_id: str, target_id: str) -> Dict[str, Any]:
    """A target of one of the user's videos, or 404. The video is attached as target["video"]."""
    target = fetch_one("video_targets", id=target_id)
    video = fetch_one("videos", id=target["video_id"], user_id=user_id) if target else None
    if not target or not video:
        raise HTTPException(status_code=404, detail="Video target not found")
    target["video"] = video
    return target


def retry_target(user_id: str, target_id: str) -> Dict[str, Any]:
    target = get_target(user_id, target_id)
    video = target.pop("video")
    try:
        msg_id = publishing_service.retry_failed_target(target)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"target": target, "video_id": video["id"], "msg_id": msg_id}


def delete_target(user_id: str, target_id: str) -> Dict[str, Any]:
    """Delete a target, removing the published copy when there is one."""
    target = get_target(user_id, target_id)
    video = target.pop("video")

    msg_id = None
    if target.get("status") == SUCCESS:
        msg_id = publishing_service.dispatch_removal_job(target, video)

    delete_rows("video_targets", id=target["id"])
    print(f"INFO: Deleted target {target['id']} of video {video['id']}")
    return {"deleted": True, "removal_job": msg_id}


def update_all_platforms(user_id: str, video_id: str) -> Dict[str, Any]:
    """Push the video's current metadata to every platform it is published on."""
    video = get_video(user_id, video_id)
    published = [t for t in video["targets"] if t.get("status") == SUCCESS]
    dispatched = 0
    for target in published:
        if publishing_service.dispatch_update_job(target) is not None:
            dispatched += 1
    return {"targets": len(published), "update_jobs": dispatched}
