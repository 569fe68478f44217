"""
Watermarks router.

This module provides endpoints for:
- Detecting watermarks on sampled frames of a video (OpenAI vision)
- Queuing removal of selected regions and polling its progress
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_current_user_id
from app.models.schemas import WatermarkDetectRequest, WatermarkRemoveRequest
from app.services import storage_service, video_service, watermark_service
from app.services.ai_content_service import AIServiceError
from app.services.media_service import MediaProcessingError

router = APIRouter(prefix="/watermarks", tags=["Watermarks"])


@router.get("/methods")
async def list_methods(_: str = Depends(get_current_user_id)):
    return {"methods": watermark_service.REMOVAL_METHODS}


@router.post("/detect")
async def detect_watermarks(request: WatermarkDetectRequest, user_id: str = Depends(get_current_user_id)):
    """
    Detect watermarks on evenly spaced frames of the video.

    Boxes found on several frames are merged; `frames` on each box says on
    how many sampled frames it was seen.
    """
    video = video_service.get_video(user_id, request.video_id)
    video_path = storage_service.absolute_path(video["original_file_path"])
    try:
        result = await asyncio.to_thread(watermark_service.detect_watermarks, video_path, request.samples)
    except AIServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except MediaProcessingError as e:
        raise HTTPException(status_code=422, detail=f"Could not analyze video: {str(e)}")
    return {"video_id": video["id"], **result}


@router.post("/remove", status_code=202)
async def remove_watermarks(request: WatermarkRemoveRequest, user_id: str = Depends(get_current_user_id)):
    """Queue removal of the given regions. Poll GET /watermarks/{id}."""
    video = video_service.get_video(user_id, request.video_id)
    watermarks = [w.model_dump(exclude_none=True) for w in request.watermarks]
    try:
        removal = watermark_service.request_removal(user_id, video, watermarks, request.method)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return watermark_service.get_removal_progress(removal)


@router.get("/{removal_id}")
async def get_removal_progress(removal_id: str, user_id: str = Depends(get_current_user_id)):
    removal = watermark_service.get_removal(user_id, removal_id)
    if not removal:
        raise HTTPException(status_code=404, detail="Watermark removal not found")
    return watermark_service.get_removal_progress(removal)
