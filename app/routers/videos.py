"""
Videos router.

This module provides endpoints for:
- Uploading a video to a channel (multipart) with its publishing targets
- Instant uploads whose metadata is written by AI before publishing
- Video analysis (frames, transcript, content tags) and thumbnail selection
- Listing, reading, editing and deleting videos
- Target actions: retry a failed target, delete a target, push metadata to
  every platform
- Versions: autosave drafts, diff, publish and revert
"""

import asyncio
import json
from typing import List, Optional, Dict, Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from app.dependencies import get_current_user_id
from app.models.schemas import AutosaveRequest, ThumbnailFrameRequest, VideoAnalyzeRequest, VideoUpdateRequest
from app.services import channel_service, storage_service, versioning_service, video_analysis_service, video_service
from app.services.media_service import MediaProcessingError
from app.services.storage_service import public_url

router = APIRouter(tags=["Videos"])


def _with_urls(video: Dict[str, Any]) -> Dict[str, Any]:
    video["video_url"] = public_url(video.get("original_file_path"))
    video["thumbnail_url"] = public_url(video.get("thumbnail_path"))
    video["rendered_video_url"] = public_url(video.get("rendered_video_path"))
    return video


def _parse_advanced_options(raw: Optional[str]) -> Dict[str, Dict[str, Any]]:
    if not raw:
        return {}
    try:
        options = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=422, detail="The advanced options must be a valid JSON object.")
    if not isinstance(options, dict):
        raise HTTPException(status_code=422, detail="The advanced options must be a valid JSON object.")
    return options


@router.post("/channels/{channel_id}/videos", status_code=201)
async def create_video(
    channel_id: str,
    video: UploadFile = File(..., description="Video file (mp4, mov, avi, wmv, webm; max 100 MB)"),
    title: str = Form(...),
    description: str = Form(...),
    platforms: List[str] = Form(..., description="Target platforms (repeat the field per platform)"),
    publish_type: str = Form("now", description="now or scheduled"),
    publish_at: Optional[str] = Form(None, description="ISO datetime, required when scheduled"),
    tags: Optional[List[str]] = Form(None),
    advanced_options: Optional[str] = Form(None, description="JSON object keyed by platform"),
    user_id: str = Depends(get_current_user_id)
):
    """
    Upload a video once and create one publishing target per platform.

    Targets of an immediate upload are dispatched right away; scheduled
    targets are picked up by the scheduler once publish_at has passed.

    Returns:
        The video with its targets, plus hashtag_warnings for platforms whose
        custom caption contained forbidden hashtags
    """
    channel = channel_service.get_channel(user_id, channel_id)
    created = video_service.create_video(
        user_id,
        channel,
        video.file,
        video.filename,
        getattr(video, "size", None),
        title,
        description,
        platforms,
        publish_type=publish_type,
        publish_at=publish_at,
        tags=tags,
        advanced_options=_parse_advanced_options(advanced_options),
    )
    return _with_urls(created)


@router.post("/channels/{channel_id}/videos/instant", status_code=202)
async def create_instant_video(
    channel_id: str,
    video: UploadFile = File(..., description="Video file (mp4, mov, avi, wmv, webm; max 100 MB)"),
    platforms: List[str] = Form(..., description="Target platforms (repeat the field per platform)"),
    user_id: str = Depends(get_current_user_id)
):
    """
    Upload a video without writing any metadata.

    The media worker analyzes it, sets an AI title, description and tags and
    then publishes to every platform. Poll GET /videos/{id}: ai_status goes
    pending -> processing -> completed and the targets appear once it is done.
    """
    channel = channel_service.get_channel(user_id, channel_id)
    created = video_service.create_instant_video(
        user_id,
        channel,
        video.file,
        video.filename,
        getattr(video, "size", None),
        platforms,
    )
    return _with_urls(created)


@router.get("/videos")
async def list_videos(
    page: int = Query(1, ge=1),
    channel_id: Optional[str] = Query(None, description="Only videos of this channel"),
    user_id: str = Depends(get_current_user_id)
):
    """Newest first, 10 per page, each video with its targets."""
    result = video_service.list_videos(user_id, page, channel_id)
    result["data"] = [_with_urls(v) for v in result["data"]]
    return result


@router.get("/videos/{video_id}")
async def get_video(video_id: str, user_id: str = Depends(get_current_user_id)):
    return _with_urls(video_service.get_video(user_id, video_id))


@router.patch("/videos/{video_id}")
async def update_video(video_id: str, request: VideoUpdateRequest, user_id: str = Depends(get_current_user_id)):
    return _with_urls(video_service.update_video(user_id, video_id, request.model_dump(exclude_none=True)))


@router.delete("/videos/{video_id}")
async def delete_video(video_id: str, user_id: str = Depends(get_current_user_id)):
    """Delete the video and its files; published copies get a removal job."""
    return video_service.delete_video(user_id, video_id)


@router.post("/videos/{video_id}/update-platforms")
async def update_all_platforms(video_id: str, user_id: str = Depends(get_current_user_id)):
    """Push the video's current title, description and tags to every published target."""
    return video_service.update_all_platforms(user_id, video_id)


# =============================================================================
# Analysis & Thumbnails
# =============================================================================

@router.post("/videos/{video_id}/analyze")
async def analyze_video(video_id: str, request: VideoAnalyzeRequest, user_id: str = Depends(get_current_user_id)):
    """
    Describe sampled frames, transcribe the audio and extract content tags.

    Frame descriptions need OpenAI; without it the analysis still answers
    from the transcript and the technical probe. With apply_tags the content
    tags are merged into the video's tags.
    """
    video = video_service.get_video(user_id, video_id)
    video_path = storage_service.absolute_path(video["original_file_path"])
    try:
        analysis = await asyncio.to_thread(
            video_analysis_service.analyze_video, video_path, request.include_transcript, request.samples
        )
    except MediaProcessingError as e:
        raise HTTPException(status_code=422, detail=f"Could not analyze video: {str(e)}")

    result = {"video_id": video["id"], **analysis}
    if request.apply_tags:
        result["tags"] = video_analysis_service.apply_content_tags(video, analysis["content_tags"])
    return result


@router.put("/videos/{video_id}/thumbnail")
async def set_thumbnail(video_id: str, request: ThumbnailFrameRequest, user_id: str = Depends(get_current_user_id)):
    """Use the frame at `timestamp` (e.g. one of the analysis' suggested_thumbnails) as the thumbnail."""
    video = video_service.get_video(user_id, video_id)
    try:
        video = await asyncio.to_thread(video_analysis_service.set_thumbnail_from_frame, video, request.timestamp)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except MediaProcessingError as e:
        raise HTTPException(status_code=422, detail=f"Could not extract frame: {str(e)}")
    return {"video_id": video["id"], "thumbnail_path": video["thumbnail_path"], "thumbnail_url": public_url(video["thumbnail_path"])}


# =============================================================================
# Targets
# =============================================================================

@router.post("/video-targets/{target_id}/retry")
async def retry_target(target_id: str, user_id: str = Depends(get_current_user_id)):
    """Retry a failed target. Any other status returns 409."""
    return video_service.retry_target(user_id, target_id)


@router.delete("/video-targets/{target_id}")
async def delete_target(target_id: str, user_id: str = Depends(get_current_user_id)):
    return video_service.delete_target(user_id, target_id)


# =============================================================================
# Versions
# =============================================================================

@router.get("/videos/{video_id}/versions")
async def list_versions(video_id: str, user_id: str = Depends(get_current_user_id)):
    video = video_service.get_video(user_id, video_id)
    return {"video_id": video["id"], "versions": versioning_service.list_versions(video["id"])}


@router.post("/videos/{video_id}/autosave")
async def autosave(video_id: str, request: AutosaveRequest, user_id: str = Depends(get_current_user_id)):
    """Store the edited fields as the video's draft without touching the live video."""
    video = video_service.get_video(user_id, video_id)
    return versioning_service.autosave(video, request.model_dump(exclude_none=True))


@router.get("/videos/{video_id}/versions/diff")
async def version_diff(video_id: str, user_id: str = Depends(get_current_user_id)):
    video = video_service.get_video(user_id, video_id)
    return versioning_service.get_version_diff(video)


@router.post("/videos/{video_id}/versions/publish")
async def publish_version(video_id: str, user_id: str = Depends(get_current_user_id)):
    """Apply the draft to the video and dispatch update jobs for published targets."""
    video = video_service.get_video(user_id, video_id)
    try:
        result = versioning_service.publish_changes(video)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    result["video"] = _with_urls(result["video"])
    return result


@router.post("/videos/{video_id}/versions/revert")
async def revert_version(video_id: str, user_id: str = Depends(get_current_user_id)):
    video = video_service.get_video(user_id, video_id)
    try:
        reverted = versioning_service.revert_to_backup(video)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _with_urls(reverted)
