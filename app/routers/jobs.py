"""
Jobs router for receiving queue batches from Supabase Edge Functions.

The Edge Function reads messages from the PGMQ queues and pushes them here
in batches:

- POST /jobs/video-publishing: upload / update / remove a video target
- POST /jobs/media-processing: subtitles, subtitle render, watermark removal

Expected payload:
{
    "queue": "video_publishing",
    "vt_seconds": 1800,
    "jobs": [
        {
            "msg_id": 1,
            "read_ct": 1,
            "enqueued_at": "2025-12-15T16:42:03.680992+00:00",
            "message": {"action": "upload", "target_id": "b5e4b7d1-bab4-49e3-b8bc-66a320bdb4ca"}
        }
    ]
}

Authentication: Bearer token via Authorization header (PY_API_TOKEN)
"""

from typing import Dict, Any

from fastapi import APIRouter, Depends, Body

from app.dependencies import verify_job_token
from app.config import get_settings, PUBLISH_QUEUE, MEDIA_QUEUE
from app.models.schemas import JobBatchPayload, JobBatchResponse
from app.services.job_service import process_job_batch
from app.services.media_job_service import process_media_job_batch


router = APIRouter(prefix="/jobs", tags=["Jobs"])


def _payload_dict(payload: JobBatchPayload, default_queue: str) -> Dict[str, Any]:
    return {
        "queue": payload.queue or default_queue,
        "vt_seconds": payload.vt_seconds,
        "jobs": [job.model_dump() for job in payload.jobs],
    }


@router.post("/video-publishing", response_model=JobBatchResponse)
async def handle_video_publishing_jobs(
    payload: JobBatchPayload = Body(...),
    _: bool = Depends(verify_job_token)
) -> JobBatchResponse:
    """
    Process a batch of publishing jobs from the video_publishing queue.

    Job Processing Flow (upload):
    1. Claim target (atomic: pending -> processing)
    2. Load video, social account and platform client
    3. Upload to the platform, mark target success
    4. Delete queue message (ack)

    On failure:
    - Retryable and read_ct < MAX_RETRIES: back to pending, message retries after VT
    - Otherwise: mark as failed, archive message, notify the owner

    Returns:
        Summary of processed jobs and individual results
    """
    settings = get_settings()
    result = await process_job_batch(
        payload=_payload_dict(payload, PUBLISH_QUEUE),
        max_retries=settings.worker_max_retries
    )
    return JobBatchResponse(**result)


@router.post("/media-processing", response_model=JobBatchResponse)
async def handle_media_processing_jobs(
    payload: JobBatchPayload = Body(...),
    _: bool = Depends(verify_job_token)
) -> JobBatchResponse:
    """
    Process a batch of media jobs (subtitles, render_subtitles,
    watermark_removal) from the media_processing queue.

    Same claim / retry / archive protocol as the publishing queue.
    """
    settings = get_settings()
    result = await process_media_job_batch(
        payload=_payload_dict(payload, MEDIA_QUEUE),
        max_retries=settings.worker_max_retries
    )
    return JobBatchResponse(**result)


@router.get("/status")
async def get_jobs_endpoint_status(_: bool = Depends(verify_job_token)):
    """
    Health check endpoint for the jobs handler.

    Returns configuration and status information.
    """
    settings = get_settings()

    return {
        "status": "ready",
        "queues": [PUBLISH_QUEUE, MEDIA_QUEUE],
        "config": {
            "max_retries": settings.worker_max_retries,
            "vt_seconds": settings.worker_vt_seconds,
            "transcription_provider": settings.worker_provider,
            "model_size": settings.worker_model_size
        }
    }
