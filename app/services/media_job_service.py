"""
Job service for the media_processing queue.

Message kinds:
- subtitles: transcribe a video into a subtitle generation
- render_subtitles: burn a completed generation into the video
- watermark_removal: render the video without the selected regions
- instant_upload: analyze an upload, write AI metadata and dispatch its targets

Each kind claims its row with an atomic status update (pending ->
processing) so redelivered or duplicate messages are dropped, then follows
the same retry / archive protocol as the publishing queue:

- Success: row completed, message deleted
- Retryable failure with read_ct < max_retries: row back to pending with
  "Retry n/m: ..." and the message reappears after the visibility timeout
- Otherwise: row marked as error, message archived, owner notified
"""

import asyncio
from typing import Dict, Any, Optional

from app.services import subtitle_service, video_analysis_service, watermark_service
from app.services.job_service import (
    _ack_delete,
    _ack_archive,
    _job_message,
    build_error_message,
    summarize_results,
)
from app.services.notification_service import add_job_failure_notification
from app.services.supabase_service import get_supabase_client, fetch_one, update_rows, now_iso
from app.services.transcription_service import TranscriptionError


# kind -> (table, id key in the message, status column)
JOB_KINDS = {
    "subtitles": ("subtitle_generations", "generation_id", "status"),
    "render_subtitles": ("videos", "video_id", "rendered_video_status"),
    "watermark_removal": ("watermark_removals", "removal_id", "status"),
    "instant_upload": ("videos", "video_id", "ai_status"),
}

FAILURE_TITLES = {
    "subtitles": "Subtitle generation failed",
    "render_subtitles": "Rendering subtitles into your video failed",
    "watermark_removal": "Watermark removal failed",
    "instant_upload": "Instant upload failed",
}


def _is_permanent(error: Exception, read_ct: int, max_retries: int) -> bool:
    if isinstance(error, TranscriptionError) and not error.retryable:
        return True
    if isinstance(error, (ValueError, LookupError)):
        return True
    return read_ct >= max_retries


def _claim(supabase, kind: str, row_id: str) -> Optional[Dict[str, Any]]:
    table, _, column = JOB_KINDS[kind]
    values: Dict[str, Any] = {column: subtitle_service.PROCESSING}
    if table == "videos":
        values["updated_at"] = now_iso()
    result = supabase.table(table).update(values).eq("id", row_id).in_(column, [subtitle_service.PENDING]).execute()
    return result.data[0] if result.data else None


async def _run(kind: str, row: Dict[str, Any], message: Dict[str, Any], progress: Dict[str, str]) -> Dict[str, Any]:
    if kind == "subtitles":
        return await asyncio.to_thread(subtitle_service.run_generation, row, progress)

    if kind == "watermark_removal":
        return await asyncio.to_thread(watermark_service.run_removal, row, progress)

    if kind == "instant_upload":
        return await asyncio.to_thread(video_analysis_service.run_instant_upload, row, progress)

    progress["step"] = "fetching subtitle generation"
    generation = fetch_one("subtitle_generations", id=message.get("generation_id"))
    if not generation:
        raise LookupError(f"Subtitle generation {message.get('generation_id')} not found")
    return await asyncio.to_thread(subtitle_service.run_render, row, generation, progress)


def _mark_failed(kind: str, row: Dict[str, Any], error_message: str) -> None:
    if kind == "subtitles":
        subtitle_service.mark_generation_failed(row, error_message)
    elif kind == "watermark_removal":
        watermark_service.mark_removal_failed(row, error_message)
    elif kind == "instant_upload":
        video_analysis_service.mark_instant_upload_failed(row, error_message)
    else:
        update_rows("videos", {"rendered_video_status": "failed", "updated_at": now_iso()}, id=row["id"])


def _mark_for_retry(kind: str, row: Dict[str, Any], error_message: str) -> None:
    table, _, column = JOB_KINDS[kind]
    values: Dict[str, Any] = {column: subtitle_service.PENDING}
    if table != "videos":
        values["error"] = error_message
    update_rows(table, values, id=row["id"])


def _notify(kind: str, row: Dict[str, Any], message: str) -> None:
    user_id = row.get("user_id")
    if not user_id:
        return
    try:
        add_job_failure_notification(
            user_id,
            kind,
            FAILURE_TITLES[kind],
            message,
            {"video_id": row.get("video_id") or row.get("id"), "job_id": row.get("id")},
        )
    except Exception as e:
        print(f"WARNING: Failed to store failure notification: {str(e)}")


async def process_single_media_job(
    job: Dict[str, Any],
    queue_name: str,
    max_retries: int = 3
) -> Dict[str, Any]:
    """
    Process a single media job.

    Returns:
        Result dict with status (completed, retry, archived, deleted), msg_id,
        kind, row id and any error info
    """
    msg_id = job.get("msg_id")
    read_ct = int(job.get("read_ct", 1))
    message = _job_message(job)
    kind = message.get("kind")

    supabase = get_supabase_client()

    if kind not in JOB_KINDS:
        print(f"WARNING: Media job {msg_id} has unknown kind '{kind}' - archiving")
        _ack_archive(supabase, queue_name, msg_id)
        return {"msg_id": msg_id, "status": "archived", "kind": kind, "reason": f"unknown kind {kind}"}

    row_id = message.get(JOB_KINDS[kind][1])
    if not row_id:
        print(f"WARNING: Media job {msg_id} missing {JOB_KINDS[kind][1]} - archiving")
        _ack_archive(supabase, queue_name, msg_id)
        return {"msg_id": msg_id, "status": "archived", "kind": kind, "reason": f"missing {JOB_KINDS[kind][1]}"}

    print(f"INFO: Processing {kind} job msg_id={msg_id} id={row_id} read_ct={read_ct}")

    progress = {"step": "initialization"}
    row: Optional[Dict[str, Any]] = None

    try:
        progress["step"] = "claiming job"
        row = _claim(supabase, kind, row_id)
        if row is None:
            print(f"INFO: {kind} {row_id} not pending - ack delete stale message")
            _ack_delete(supabase, queue_name, msg_id)
            return {"msg_id": msg_id, "status": "deleted", "kind": kind, "id": row_id, "reason": "not pending"}

        outcome = await _run(kind, row, message, progress)

        _ack_delete(supabase, queue_name, msg_id)
        print(f"INFO: {kind} job completed for {row_id}")
        return {"msg_id": msg_id, "status": "completed", "kind": kind, "id": row_id, **outcome}

    except Exception as e:
        error_msg = build_error_message(progress["step"], None, e)
        print(f"ERROR: {kind} job failed at '{progress['step']}': {str(e)}")

        if row is None:
            if read_ct >= max_retries:
                _ack_archive(supabase, queue_name, msg_id)
                return {"msg_id": msg_id, "status": "archived", "kind": kind, "id": row_id,
                        "error": error_msg, "read_ct": read_ct}
            return {"msg_id": msg_id, "status": "retry", "kind": kind, "id": row_id,
                    "error": error_msg, "read_ct": read_ct}

        if _is_permanent(e, read_ct, max_retries):
            final_error_msg = f"Failed after {read_ct} attempts. Last error: {error_msg}"
            try:
                _mark_failed(kind, row, final_error_msg)
            except Exception as update_err:
                print(f"WARNING: Failed to update {kind} error status: {update_err}")

            _ack_archive(supabase, queue_name, msg_id)
            _notify(kind, row, final_error_msg)
            return {"msg_id": msg_id, "status": "archived", "kind": kind, "id": row_id,
                    "error": error_msg, "read_ct": read_ct}

        print(f"WARNING: Retry {read_ct}/{max_retries} - returning {kind} {row_id} to pending")
        try:
            _mark_for_retry(kind, row, f"Retry {read_ct}/{max_retries}: {error_msg}")
        except Exception as update_err:
            print(f"WARNING: Failed to update {kind} retry status: {update_err}")

        # Don't ack - message will reappear after VT
        return {"msg_id": msg_id, "status": "retry", "kind": kind, "id": row_id,
                "error": error_msg, "read_ct": read_ct}


async def process_media_job_batch(
    payload: Dict[str, Any],
    max_retries: int = 3
) -> Dict[str, Any]:
    """
    Process a batch of media jobs from the queue payload.

    Jobs run one at a time: each one is a long FFmpeg or transcription run.
    """
    queue_name = payload.get("queue", "media_processing")
    jobs = payload.get("jobs", [])

    print(f"INFO: Processing batch of {len(jobs)} media job(s) from queue '{queue_name}'")

    results = []
    for job in jobs:
        results.append(await process_single_media_job(job=job, queue_name=queue_name, max_retries=max_retries))

    return summarize_results(jobs, results)
