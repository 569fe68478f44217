"""
Admin router for administrative endpoints.

This module provides endpoints for:
- Scheduler status monitoring and manual job triggers
- Manual sweeps (pending uploads, failed removals)
- Granting and revoking pro plans
- System status (FFmpeg, Supabase, cache)

All endpoints require a profile flagged is_admin.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from app.config import get_settings, SUPABASE_URL, SUPABASE_SERVICE_KEY, WHISPER_DEVICE, WHISPER_GPU_INFO
from app.dependencies import require_admin
from app.models.schemas import AdminUpgradeRequest
from app.services import plan_service, publishing_service
from app.services.cache_service import get_cache_stats
from app.services.media_service import check_ffmpeg
from scripts.publish_scheduler import get_scheduler_status, trigger_job

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/scheduler/status")
async def scheduler_status(_: str = Depends(require_admin)):
    """
    Get current status of the publishing scheduler.

    Returns the running state and, per job, the next scheduled run and the
    last run's time and status.
    """
    return JSONResponse(content=get_scheduler_status(), status_code=200)


@router.post("/scheduler/trigger/{job_id}")
async def trigger_scheduler_job(job_id: str, _: str = Depends(require_admin)):
    """
    Run a scheduler job immediately: process_pending_uploads,
    process_workflows, retry_failed_removals or cleanup_cache.
    """
    try:
        result = await asyncio.to_thread(trigger_job, job_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown scheduler job: {job_id}")
    return JSONResponse(content=result, status_code=200 if result["success"] else 500)


@router.post("/process-uploads")
async def process_uploads(dry_run: bool = Query(False), _: str = Depends(require_admin)):
    """Dispatch every pending target that is ready to publish."""
    return publishing_service.process_pending_uploads(dry_run)


@router.post("/retry-removals")
async def retry_removals(
    platform: Optional[str] = Query(None, description="Only retry removals on this platform"),
    max_age_hours: Optional[int] = Query(None, ge=1, description="Ignore failures older than this"),
    dry_run: bool = Query(False),
    _: str = Depends(require_admin)
):
    return publishing_service.retry_failed_removals(
        platform,
        max_age_hours or get_settings().removal_retry_max_age_hours,
        dry_run,
    )


@router.post("/users/{user_id}/upgrade")
async def upgrade_user(user_id: str, request: AdminUpgradeRequest, _: str = Depends(require_admin)):
    """Grant pro with a manual, open-ended subscription."""
    return plan_service.upgrade_to_pro(user_id, request.additional_channels)


@router.post("/users/{user_id}/downgrade")
async def downgrade_user(user_id: str, _: str = Depends(require_admin)):
    return plan_service.downgrade_from_pro(user_id)


@router.get("/system-status")
async def system_status(_: str = Depends(require_admin)):
    """FFmpeg availability, Supabase and OpenAI configuration, transcription device and cache usage."""
    settings = get_settings()
    return {
        "ffmpeg": check_ffmpeg(),
        "supabase_configured": bool(SUPABASE_URL and SUPABASE_SERVICE_KEY),
        "openai_configured": bool(settings.openai_api_key),
        "stripe_configured": bool(settings.stripe_secret_key),
        "transcription": {
            "provider": settings.worker_provider,
            "model_size": settings.worker_model_size,
            "device": WHISPER_DEVICE,
            "gpu": WHISPER_GPU_INFO,
        },
        "scheduler": get_scheduler_status(),
        "cache": get_cache_stats(),
    }
