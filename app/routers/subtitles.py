"""
Subtitles router module.

This module provides endpoints for:
- Queuing subtitle generation for a video and polling its progress
- Editing style, position and the text of a single subtitle
- Exporting (srt, vtt, txt, json) and a readability analysis
- Queuing a render that burns the subtitles into the video
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from typing import Dict, Any

from app.dependencies import get_current_user_id
from app.models.schemas import (
    SubtitleGenerateRequest,
    SubtitleStyleRequest,
    SubtitlePositionRequest,
    SubtitleTextRequest,
    SubtitleApplyStyleRequest,
)
from app.services import subtitle_service, video_service
from app.utils.filename_utils import encode_content_disposition_filename


router = APIRouter(prefix="/subtitles", tags=["Subtitles"])


def _generation(user_id: str, generation_id: str) -> Dict[str, Any]:
    generation = subtitle_service.get_generation(user_id, generation_id)
    if not generation:
        raise HTTPException(status_code=404, detail="Subtitle generation not found")
    return generation


@router.get("/languages")
async def list_languages(_: str = Depends(get_current_user_id)):
    return {"languages": subtitle_service.SUPPORTED_LANGUAGES}


@router.get("/styles")
async def list_styles(_: str = Depends(get_current_user_id)):
    """Style presets with their properties, and the position presets."""
    return {"styles": subtitle_service.SUBTITLE_STYLES, "positions": subtitle_service.POSITION_PRESETS}


@router.post("/generate", status_code=202)
async def generate_subtitles(request: SubtitleGenerateRequest, user_id: str = Depends(get_current_user_id)):
    """
    Queue subtitle generation for a video.

    The media worker extracts the audio, transcribes it (OpenAI Whisper API
    or local whisperX) and stores the subtitles. Poll GET /subtitles/{id}.
    """
    video = video_service.get_video(user_id, request.video_id)
    try:
        generation = subtitle_service.request_generation(
            user_id, video, request.language, request.provider, request.style
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return subtitle_service.get_progress(generation)


@router.get("/{generation_id}")
async def get_subtitle_progress(generation_id: str, user_id: str = Depends(get_current_user_id)):
    return subtitle_service.get_progress(_generation(user_id, generation_id))


@router.put("/{generation_id}/style")
async def update_style(generation_id: str, request: SubtitleStyleRequest, user_id: str = Depends(get_current_user_id)):
    generation = _generation(user_id, generation_id)
    try:
        return subtitle_service.update_style(generation, request.style or generation.get("style") or "classic", request.custom)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.put("/{generation_id}/style/all")
async def apply_style_to_all(
    generation_id: str,
    request: SubtitleApplyStyleRequest,
    user_id: str = Depends(get_current_user_id)
):
    """Apply custom properties to every subtitle, dropping per-subtitle overrides."""
    generation = _generation(user_id, generation_id)
    try:
        return subtitle_service.apply_style_to_all(generation, request.properties)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.put("/{generation_id}/position")
async def update_position(
    generation_id: str,
    request: SubtitlePositionRequest,
    user_id: str = Depends(get_current_user_id)
):
    generation = _generation(user_id, generation_id)
    try:
        return subtitle_service.update_position(generation, request.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.put("/{generation_id}/text")
async def update_text(generation_id: str, request: SubtitleTextRequest, user_id: str = Depends(get_current_user_id)):
    generation = _generation(user_id, generation_id)
    try:
        subtitle = subtitle_service.update_subtitle_text(generation, request.index, request.text)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"subtitle": subtitle}


@router.get("/{generation_id}/export")
async def export_subtitles(
    generation_id: str,
    format: str = Query("srt", description="Output format: srt, vtt, txt, json"),
    user_id: str = Depends(get_current_user_id)
):
    """Download the subtitles as a file."""
    generation = _generation(user_id, generation_id)
    try:
        export = subtitle_service.export_subtitles(generation, format)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return Response(
        content=export["content"],
        media_type=export["media_type"],
        headers={"Content-Disposition": encode_content_disposition_filename(export["filename"])},
    )


@router.get("/{generation_id}/quality")
async def analyze_quality(generation_id: str, user_id: str = Depends(get_current_user_id)):
    generation = _generation(user_id, generation_id)
    try:
        return subtitle_service.analyze_quality(generation)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/{generation_id}/render", status_code=202)
async def render_subtitles(generation_id: str, user_id: str = Depends(get_current_user_id)):
    """Queue burning the subtitles into the video; the result becomes the video's rendered file."""
    generation = _generation(user_id, generation_id)
    video = video_service.get_video(user_id, generation["video_id"])
    try:
        return subtitle_service.request_render(video, generation)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
