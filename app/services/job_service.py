"""
Job service for processing publishing jobs from the Supabase queue.

Messages on the video_publishing queue are pushed to /jobs/video-publishing
(or the RunPod handler) in batches. Each message names an action:

- upload: publish a pending target to its platform
- update: push edited metadata to an already published target
- remove: delete a published video from its platform (uses a snapshot,
  the target row may already be gone)

Job Processing Flow (upload):
1. Claim target (atomic pending -> processing update)
2. Load video, social account and platform client
3. Upload and mark target success
4. Ack (delete) queue message

On failure:
- Retryable error and read_ct < max_retries: return to pending, don't ack
  (the message reappears after the visibility timeout)
- Otherwise: mark as failed, archive message, notify the owner
"""

import asyncio
import os
from typing import Dict, Any, Optional

from app.services import target_state
from app.services.notification_service import add_job_failure_notification
from app.services.platform_errors import match_upload_error, removal_error_info
from app.services.platforms import PlatformError, PlatformNotFound, get_platform_client
from app.services.social_account_service import find_account
from app.services.storage_service import absolute_path, public_url
from app.services.supabase_service import get_supabase_client, fetch_one, insert_row, now_iso
from app.utils.platform_utils import platform_display_name


# =============================================================================
# Helper Functions
# =============================================================================

def _ack_delete(supabase, queue_name: str, msg_id: int) -> bool:
    """
    Delete message from queue (success acknowledgment).
    Returns True if successful.
    """
    try:
        supabase.rpc("pgmq_delete_one", {
            "queue_name": queue_name,
            "msg_id": msg_id
        }).execute()
        return True
    except Exception as e:
        print(f"WARNING: Failed to ack delete msg_id={msg_id}: {str(e)}")
        return False


def _ack_archive(supabase, queue_name: str, msg_id: int) -> bool:
    """
    Archive message (permanent failure).
    Returns True if successful.
    """
    try:
        supabase.rpc("pgmq_archive_one", {
            "queue_name": queue_name,
            "msg_id": msg_id
        }).execute()
        return True
    except Exception as e:
        print(f"WARNING: Failed to ack archive msg_id={msg_id}: {str(e)}")
        return False


def _job_message(job: Dict[str, Any]) -> Dict[str, Any]:
    message = job.get("message")
    return message if isinstance(message, dict) else {}


def build_error_message(step: str, platform: Optional[str], error: Exception) -> str:
    """
    "[Step: ...] <message>" for storing on the target.

    Known platform errors are replaced with their user-facing text; other
    messages are kept as raised. Long messages are truncated to 500 chars.
    """
    base_error = str(error)
    if platform:
        base_error = match_upload_error(platform, base_error) or base_error
    error_msg = f"[Step: {step}] {base_error}"
    if len(error_msg) > 500:
        error_msg = error_msg[:480] + "... (truncated)"
    return error_msg


def _is_permanent(error: Exception, read_ct: int, max_retries: int) -> bool:
    if isinstance(error, PlatformError) and not error.retryable:
        return True
    return read_ct >= max_retries


def _video_file(video: Dict[str, Any]) -> str:
    """Rendered video (burned subtitles / watermark removal) when ready, else the original."""
    if video.get("rendered_video_status") == "completed" and video.get("rendered_video_path"):
        return video["rendered_video_path"]
    return video.get("original_file_path")


# =============================================================================
# Actions
# =============================================================================

async def _run_upload(target: Dict[str, Any], progress: Dict[str, str]) -> Dict[str, Any]:
    progress["step"] = "fetching video details"
    video = fetch_one("videos", id=target["video_id"])
    if not video:
        raise PlatformError(f"Video {target['video_id']} not found", retryable=False)

    progress["step"] = "resolving platform account"
    client = get_platform_client(target["platform"])
    account = find_account(video["user_id"], video.get("channel_id"), target["platform"])

    relative_path = _video_file(video)
    video_path = absolute_path(relative_path) if relative_path else ""
    if not relative_path or not os.path.exists(video_path):
        raise PlatformError(f"Video file not found: {relative_path}", retryable=False)

    progress["step"] = f"uploading to {client.name}"
    print(f"INFO: Uploading video {video['id']} to {client.name} (target {target['id']})")
    result = await asyncio.to_thread(
        client.publish, video, target, account, video_path, public_url(relative_path)
    )

    progress["step"] = "marking target as success"
    target_state.mark_as_success(target, result.platform_video_id, result.platform_url)
    print(f"INFO: Published target {target['id']} to {client.name}: {result.platform_video_id}")
    return {"platform_video_id": result.platform_video_id, "platform_url": result.platform_url}


async def _run_update(target: Dict[str, Any], progress: Dict[str, str]) -> Dict[str, Any]:
    progress["step"] = "fetching video details"
    video = fetch_one("videos", id=target["video_id"])
    if not video:
        raise PlatformError(f"Video {target['video_id']} not found", retryable=False)

    progress["step"] = "resolving platform account"
    client = get_platform_client(target["platform"])
    account = find_account(video["user_id"], video.get("channel_id"), target["platform"])

    progress["step"] = f"updating metadata on {client.name}"
    result = await asyncio.to_thread(client.update, video, target, account)

    progress["step"] = "marking target as success"
    target_state.mark_as_success(target, result.platform_video_id, result.platform_url)
    print(f"INFO: Updated {client.name} metadata for target {target['id']}")
    return {"platform_video_id": result.platform_video_id}


async def _run_remove(snapshot: Dict[str, Any], progress: Dict[str, str]) -> Dict[str, Any]:
    progress["step"] = "resolving platform account"
    client = get_platform_client(snapshot["platform"])
    account = find_account(snapshot["user_id"], snapshot.get("channel_id"), snapshot["platform"])

    progress["step"] = f"removing video from {client.name}"
    options = {"facebook_page_id": snapshot.get("facebook_page_id")}
    try:
        await asyncio.to_thread(client.delete, snapshot.get("platform_video_id"), account, options)
    except PlatformNotFound:
        print(f"INFO: {client.name} video {snapshot.get('platform_video_id')} already gone - treating as removed")
        return {"already_removed": True}

    print(f"INFO: Removed {snapshot.get('platform_video_id')} from {client.name}")
    return {"already_removed": False}


# =============================================================================
# Failure Handling
# =============================================================================

def _notify_failure(user_id: Optional[str], job: str, platform: str, message: str, data: Dict[str, Any]) -> None:
    if not user_id:
        return
    name = platform_display_name(platform)
    titles = {
        "upload": f"Upload to {name} failed",
        "update": f"Updating {name} video failed",
        "remove": f"Removing video from {name} failed",
    }
    try:
        add_job_failure_notification(user_id, job, titles.get(job, f"{name} job failed"), message, data)
    except Exception as e:
        print(f"WARNING: Failed to store failure notification: {str(e)}")


def _record_failed_removal(snapshot: Dict[str, Any], error: Exception) -> Dict[str, Any]:
    """Persist a removal that could not be completed so the retry sweep can pick it up."""
    info = removal_error_info(str(error), snapshot["platform"])
    try:
        insert_row("failed_removals", {
            "target_id": snapshot.get("target_id"),
            "video_id": snapshot.get("video_id"),
            "user_id": snapshot.get("user_id"),
            "channel_id": snapshot.get("channel_id"),
            "platform": snapshot["platform"],
            "platform_video_id": snapshot.get("platform_video_id"),
            "facebook_page_id": snapshot.get("facebook_page_id"),
            "title": snapshot.get("title"),
            "error_type": info["type"],
            "error": str(error)[:1000],
            "failed_at": now_iso(),
        })
    except Exception as e:
        print(f"WARNING: Failed to record failed removal: {str(e)}")
    return info


def _target_after_retryable_failure(action: str) -> str:
    # Published targets being updated stay published while the update retries.
    return target_state.SUCCESS if action == "update" else target_state.PENDING


# =============================================================================
# Job Processing
# =============================================================================

async def process_single_job(
    job: Dict[str, Any],
    queue_name: str,
    max_retries: int = 3
) -> Dict[str, Any]:
    """
    Process a single publishing job.

    Args:
        job: Job data from queue with msg_id, read_ct and message
        queue_name: PGMQ queue name for ack operations
        max_retries: Delivery attempts before the job is marked as failed

    Returns:
        Result dict with status (completed, retry, archived, deleted), msg_id,
        target_id, action and any error info
    """
    msg_id = job.get("msg_id")
    read_ct = int(job.get("read_ct", 1))
    message = _job_message(job)
    action = message.get("action") or job.get("action") or "upload"
    target_id = job.get("target_id") or message.get("target_id")

    print(f"INFO: Processing {action} job msg_id={msg_id} target_id={target_id} read_ct={read_ct}")

    supabase = get_supabase_client()

    if not target_id:
        print(f"WARNING: Job {msg_id} missing target_id - archiving")
        _ack_archive(supabase, queue_name, msg_id)
        return {"msg_id": msg_id, "status": "archived", "action": action, "reason": "missing target_id"}

    if action == "remove":
        return await _process_removal(supabase, job, message, queue_name, max_retries)

    if action not in ("upload", "update"):
        print(f"WARNING: Job {msg_id} has unknown action '{action}' - archiving")
        _ack_archive(supabase, queue_name, msg_id)
        return {"msg_id": msg_id, "status": "archived", "action": action, "target_id": target_id,
                "reason": f"unknown action {action}"}

    progress = {"step": "initialization"}
    target: Optional[Dict[str, Any]] = None

    try:
        # =================================================================
        # Idempotency guard + claim target atomically
        # =================================================================
        progress["step"] = "claiming target"

        claimable = [target_state.PENDING] if action == "upload" else [target_state.SUCCESS, target_state.PENDING]
        claim_result = supabase.table("video_targets").update({
            "status": target_state.PROCESSING,
            "updated_at": now_iso()
        }).eq("id", target_id).in_("status", claimable).execute()

        if not claim_result.data:
            print(f"INFO: Target {target_id} not claimable for {action} - ack delete stale message")
            _ack_delete(supabase, queue_name, msg_id)
            return {"msg_id": msg_id, "status": "deleted", "action": action, "target_id": target_id,
                    "reason": "not pending"}

        target = claim_result.data[0]

        if action == "upload":
            outcome = await _run_upload(target, progress)
        else:
            outcome = await _run_update(target, progress)

        _ack_delete(supabase, queue_name, msg_id)
        print(f"INFO: Job completed for target {target_id}")

        return {"msg_id": msg_id, "status": "completed", "action": action, "target_id": target_id,
                "platform": target.get("platform"), **outcome}

    except Exception as e:
        platform = target.get("platform") if target else None
        error_msg = build_error_message(progress["step"], platform, e)

        print(f"ERROR: {action} job failed at '{progress['step']}': {str(e)}")

        if target is None:
            # Failed before the claim succeeded; nothing to roll back.
            if read_ct >= max_retries:
                _ack_archive(supabase, queue_name, msg_id)
                return {"msg_id": msg_id, "status": "archived", "action": action, "target_id": target_id,
                        "error": error_msg, "read_ct": read_ct}
            return {"msg_id": msg_id, "status": "retry", "action": action, "target_id": target_id,
                    "error": error_msg, "read_ct": read_ct}

        if _is_permanent(e, read_ct, max_retries):
            print(f"ERROR: Giving up on target {target_id} after {read_ct}/{max_retries} attempt(s)")

            final_error_msg = f"Failed after {read_ct} attempts. Last error: {error_msg}"

            try:
                target_state.mark_as_failed(target, final_error_msg)
                print(f"INFO: Target {target_id} marked as failed")
            except Exception as update_err:
                print(f"WARNING: Failed to update target error status: {update_err}")

            _ack_archive(supabase, queue_name, msg_id)

            video = fetch_one("videos", id=target.get("video_id")) if target.get("video_id") else None
            _notify_failure(
                video.get("user_id") if video else None,
                action,
                platform,
                final_error_msg,
                {"video_id": target.get("video_id"), "target_id": target_id, "platform": platform}
            )

            return {"msg_id": msg_id, "status": "archived", "action": action, "target_id": target_id,
                    "error": error_msg, "read_ct": read_ct}

        print(f"WARNING: Retry {read_ct}/{max_retries} - returning target to {_target_after_retryable_failure(action)}")

        retry_error_msg = f"Retry {read_ct}/{max_retries}: {error_msg}"

        try:
            if action == "update":
                target_state.restore_published(target, retry_error_msg)
            else:
                target_state.reset_to_pending(target, retry_error_msg)
        except Exception as update_err:
            print(f"WARNING: Failed to update target retry status: {update_err}")

        # Don't ack - message will reappear after VT
        return {"msg_id": msg_id, "status": "retry", "action": action, "target_id": target_id,
                "error": error_msg, "read_ct": read_ct}


async def _process_removal(
    supabase,
    job: Dict[str, Any],
    message: Dict[str, Any],
    queue_name: str,
    max_retries: int
) -> Dict[str, Any]:
    msg_id = job.get("msg_id")
    read_ct = int(job.get("read_ct", 1))
    snapshot = message.get("snapshot") or {}
    target_id = snapshot.get("target_id") or message.get("target_id")

    if not snapshot.get("platform"):
        print(f"WARNING: Removal job {msg_id} has no snapshot - archiving")
        _ack_archive(supabase, queue_name, msg_id)
        return {"msg_id": msg_id, "status": "archived", "action": "remove", "target_id": target_id,
                "reason": "missing snapshot"}

    progress = {"step": "initialization"}

    try:
        outcome = await _run_remove(snapshot, progress)
        _ack_delete(supabase, queue_name, msg_id)
        return {"msg_id": msg_id, "status": "completed", "action": "remove", "target_id": target_id,
                "platform": snapshot["platform"], **outcome}

    except Exception as e:
        error_msg = build_error_message(progress["step"], None, e)
        print(f"ERROR: remove job failed at '{progress['step']}': {str(e)}")

        if _is_permanent(e, read_ct, max_retries):
            info = _record_failed_removal(snapshot, e)
            _ack_archive(supabase, queue_name, msg_id)
            _notify_failure(
                snapshot.get("user_id"),
                "remove",
                snapshot["platform"],
                info["message"],
                {
                    "video_id": snapshot.get("video_id"),
                    "target_id": target_id,
                    "platform": snapshot["platform"],
                    "error_type": info["type"],
                    "suggestions": info["suggestions"],
                }
            )
            return {"msg_id": msg_id, "status": "archived", "action": "remove", "target_id": target_id,
                    "error": error_msg, "error_type": info["type"], "read_ct": read_ct}

        print(f"WARNING: Retry {read_ct}/{max_retries} for removal of target {target_id}")
        return {"msg_id": msg_id, "status": "retry", "action": "remove", "target_id": target_id,
                "error": error_msg, "read_ct": read_ct}


async def process_job_batch(
    payload: Dict[str, Any],
    max_retries: int = 3
) -> Dict[str, Any]:
    """
    Process a batch of publishing jobs from the queue payload.

    Args:
        payload: Full payload with queue, vt_seconds, jobs
        max_retries: Maximum delivery attempts per job

    Returns:
        Dict with ok status, summary counts and results for each job
    """
    queue_name = payload.get("queue", "video_publishing")
    jobs = payload.get("jobs", [])

    print(f"INFO: Processing batch of {len(jobs)} job(s) from queue '{queue_name}'")

    results = []

    # Sequential: platform APIs rate-limit per account
    for job in jobs:
        result = await process_single_job(job=job, queue_name=queue_name, max_retries=max_retries)
        results.append(result)

    return summarize_results(jobs, results)


def summarize_results(jobs, results) -> Dict[str, Any]:
    completed = sum(1 for r in results if r.get("status") == "completed")
    retried = sum(1 for r in results if r.get("status") == "retry")
    archived = sum(1 for r in results if r.get("status") == "archived")
    deleted = sum(1 for r in results if r.get("status") == "deleted")
    failed = sum(1 for r in results if r.get("status") == "archived" and r.get("error"))

    print(f"INFO: Batch complete - completed:{completed} retry:{retried} archived:{archived} deleted:{deleted}")

    return {
        "ok": True,
        "summary": {
            "total": len(jobs),
            "completed": completed,
            "retry": retried,
            "failed": failed,
            "archived": archived,
            "deleted": deleted
        },
        "results": results
    }
