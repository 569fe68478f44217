"""
RunPod Serverless Handler

Entry point for the GPU/FFmpeg worker. A Supabase Edge Function reads a
batch from one of the two PGMQ queues and posts it here; the batch goes to
the same consumer the /jobs/* endpoints use:

- video_publishing -> job_service.process_job_batch (uploads, updates, removals)
- media_processing -> media_job_service.process_media_job_batch (subtitles,
  subtitle rendering, watermark removal)

Consumers write every outcome to Supabase and ack the queue themselves, so
the returned dict is only a summary for the RunPod console.
"""
import runpod
from typing import Any, Dict

from app.utils.logging_utils import setup_logger, get_job_logger, log_batch_summary
from app.utils.async_utils import run_async

from app.services.job_service import process_job_batch
from app.services.media_job_service import process_media_job_batch
from app.services.media_service import check_ffmpeg
from app.config import get_settings, PUBLISH_QUEUE, MEDIA_QUEUE


EMPTY_SUMMARY = {"total": 0, "completed": 0, "retry": 0, "archived": 0, "deleted": 0}


def _failure(error: str, total: int, **extra: Any) -> Dict[str, Any]:
    return {"ok": False, "error": error, "summary": {**EMPTY_SUMMARY, "total": total}, **extra}


def handler(job: Dict[str, Any]) -> Dict[str, Any]:
    """
    Process one queue batch.

    Input:
    {
        "id": "runpod-job-id",
        "input": {
            "queue": "video_publishing",
            "vt_seconds": 1800,
            "jobs": [{"msg_id": 1, "read_ct": 1, "message": {"action": "upload", "target_id": "uuid"}}]
        }
    }

    "queue" defaults to media_processing. Errors come back in the result
    dict and are never raised to RunPod.

    Note:
        Sync handler plus run_async(); RunPod's async handler support does
        not reliably await coroutines.
    """
    logger = get_job_logger(job.get("id", "unknown"))
    job_input = job.get("input") or {}
    queue = job_input.get("queue", MEDIA_QUEUE)
    jobs = job_input.get("jobs")

    logger.info("=" * 60)
    logger.info(f"BATCH RECEIVED ({queue})")

    if not jobs or not isinstance(jobs, list):
        logger.warning("Invalid or empty jobs list received")
        return _failure("Invalid or empty jobs list", 0)

    consumers = {PUBLISH_QUEUE: process_job_batch, MEDIA_QUEUE: process_media_job_batch}
    consumer = consumers.get(queue)
    if consumer is None:
        logger.error(f"Unknown queue: {queue}")
        return _failure(f"Unknown queue: {queue}. Supported: {PUBLISH_QUEUE}, {MEDIA_QUEUE}", len(jobs))

    messages = [j.get("message") or {} for j in jobs]
    logger.info(f"Messages: {len(jobs)} {[m.get('action') or m.get('kind') or '?' for m in messages]}")

    try:
        max_retries = get_settings().worker_max_retries
    except Exception as e:
        logger.error(f"Configuration error: {str(e)}")
        return _failure(f"Configuration error: {str(e)}", len(jobs))

    try:
        result = run_async(consumer(payload=job_input, max_retries=max_retries))
    except Exception as e:
        logger.exception(f"Batch failed: {str(e)}")
        return _failure(f"Handler processing error: {str(e)}", len(jobs), results=[])

    logger.info("-" * 40)
    log_batch_summary(logger, result.get("summary", {}))
    logger.info("=" * 60)
    return result


base_logger = setup_logger()


if __name__ == "__main__":
    startup_logger = get_job_logger("STARTUP", base_logger)
    startup_logger.info(f"Worker starting, queues: {PUBLISH_QUEUE}, {MEDIA_QUEUE}")

    try:
        settings = get_settings()
        startup_logger.info(f"Transcription: {settings.worker_provider} ({settings.worker_model_size}), "
                            f"max retries {settings.worker_max_retries}")
    except Exception as e:
        startup_logger.warning(f"Could not load settings at startup: {e}")

    binaries = check_ffmpeg()
    for name in ("ffmpeg", "ffprobe"):
        entry = binaries[name]
        if entry["available"]:
            startup_logger.info(f"{name}: {entry['version']}")
        else:
            startup_logger.warning(f"{name}: {entry['binary']} (NOT FOUND)")

    runpod.serverless.start({"handler": handler})
