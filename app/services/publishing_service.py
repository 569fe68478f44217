"""
Publishing service: turns video targets into queue jobs.

Upload, metadata update and removal jobs are PGMQ messages on the
publishing queue; the job service consumes them. This module also hosts the
periodic sweeps run by the scheduler (pending uploads, failed removals).
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

from app.config import PUBLISH_QUEUE
from app.services import target_state
from app.services.platform_errors import categorize_removal_error, is_retryable, retry_delay
from app.services.platforms import is_supported_platform, supports_metadata_update
from app.services.supabase_service import (
    get_supabase_client,
    fetch_all,
    update_rows,
    delete_rows,
    enqueue_message,
    now_iso,
)
from app.utils.platform_utils import platform_display_name


def dispatch_upload_job(target: Dict[str, Any]) -> Optional[int]:
    """
    Queue an upload job for a target.

    Unknown platforms and enqueue failures mark the target failed instead of
    raising. Returns the queue msg_id when a job was sent.
    """
    platform = target.get("platform")
    if not is_supported_platform(platform):
        print(f"WARNING: Unknown platform for target {target['id']}: {platform}")
        target_state.mark_as_failed(target, f"Unknown platform: {platform}")
        return None

    try:
        print(f"INFO: Dispatching {platform_display_name(platform)} upload job for target {target['id']}")
        return enqueue_message(PUBLISH_QUEUE, {"action": "upload", "target_id": target["id"]})
    except Exception as e:
        print(f"ERROR: Failed to dispatch upload job for target {target['id']}: {str(e)}")
        target_state.mark_as_failed(target, f"Failed to dispatch upload job: {str(e)}")
        return None


def dispatch_update_job(target: Dict[str, Any]) -> Optional[int]:
    """
    Queue a metadata update for a published target.

    Platforms without metadata updates keep their published video; the target
    stays in success with a note explaining why nothing changed.
    """
    platform = target.get("platform")
    if not is_supported_platform(platform):
        print(f"WARNING: Unknown platform for metadata update of target {target['id']}: {platform}")
        _force_status(target, target_state.FAILED, f"Unknown platform: {platform}")
        return None

    if not supports_metadata_update(platform):
        print(f"INFO: {platform_display_name(platform)} does not support metadata updates, skipping target {target['id']}")
        _force_status(
            target,
            target_state.SUCCESS,
            f"{platform_display_name(platform)} does not support metadata updates for published videos"
        )
        return None

    try:
        print(f"INFO: Dispatching {platform_display_name(platform)} metadata update job for target {target['id']}")
        return enqueue_message(PUBLISH_QUEUE, {"action": "update", "target_id": target["id"]})
    except Exception as e:
        print(f"ERROR: Failed to dispatch metadata update job for target {target['id']}: {str(e)}")
        _force_status(target, target_state.FAILED, f"Failed to dispatch metadata update job: {str(e)}")
        return None


def _force_status(target: Dict[str, Any], status: str, error_message: str) -> None:
    values = {"status": status, "error_message": error_message, "updated_at": now_iso()}
    update_rows("video_targets", values, id=target["id"])
    target.update(values)


def removal_snapshot(target: Dict[str, Any], video: Dict[str, Any]) -> Dict[str, Any]:
    """Everything a removal job needs once the target row is gone."""
    return {
        "target_id": target["id"],
        "video_id": video["id"],
        "user_id": video["user_id"],
        "channel_id": video.get("channel_id"),
        "platform": target["platform"],
        "platform_video_id": target.get("platform_video_id"),
        "facebook_page_id": target.get("facebook_page_id"),
        "title": video.get("title"),
    }


def dispatch_removal_job(target: Dict[str, Any], video: Dict[str, Any]) -> Optional[int]:
    """Queue removal of a published video from its platform. Unpublished targets are skipped."""
    if not target.get("platform_video_id"):
        print(f"INFO: Target {target['id']} was never published, nothing to remove")
        return None
    return enqueue_removal(removal_snapshot(target, video))


def enqueue_removal(snapshot: Dict[str, Any]) -> Optional[int]:
    print(f"INFO: Dispatching {platform_display_name(snapshot['platform'])} removal job for target {snapshot['target_id']}")
    return enqueue_message(PUBLISH_QUEUE, {
        "action": "remove",
        "target_id": snapshot["target_id"],
        "snapshot": snapshot,
    })


def retry_failed_target(target: Dict[str, Any]) -> Optional[int]:
    """
    Reset a failed target to pending and dispatch it again.

    Raises:
        ValueError: If the target is not in failed status
    """
    if target.get("status") != target_state.FAILED:
        raise ValueError("Only failed targets can be retried")

    print(f"INFO: Retrying failed video target {target['id']}")
    target_state.reset_to_pending(target)
    return dispatch_upload_job(target)


# =============================================================================
# Periodic Sweeps
# =============================================================================

def process_pending_uploads(dry_run: bool = False) -> Dict[str, Any]:
    """Dispatch every pending target whose publish time has come."""
    now = datetime.now(timezone.utc)
    pending = fetch_all("video_targets", status=target_state.PENDING)
    # Targets waiting on a queue redelivery already have a message in flight.
    ready = [
        t for t in pending
        if target_state.is_ready_to_publish(t, now) and not (t.get("error_message") or "").startswith("Retry ")
    ]
    print(f"INFO: Found {len(ready)} pending video targets ready to publish ({len(pending)} pending total)")

    dispatched = 0
    if not dry_run:
        for target in ready:
            if dispatch_upload_job(target) is not None:
                dispatched += 1

    return {
        "pending": len(pending),
        "ready": len(ready),
        "dispatched": dispatched,
        "dry_run": dry_run,
        "target_ids": [t["id"] for t in ready],
    }


def retry_failed_removals(
    platform: Optional[str] = None,
    max_age_hours: int = 24,
    dry_run: bool = False
) -> Dict[str, Any]:
    """
    Re-dispatch recent failed removals whose error is worth retrying.

    A row is skipped when its error type is not retryable or when its retry
    delay has not elapsed yet. Retried rows are deleted.
    """
    now = datetime.now(timezone.utc)
    cutoff = (now - timedelta(hours=max_age_hours)).isoformat()

    supabase = get_supabase_client()
    query = supabase.table("failed_removals").select("*").gte("failed_at", cutoff)
    if platform:
        query = query.eq("platform", platform)
    rows = query.order("failed_at").execute().data or []

    print(f"INFO: Found {len(rows)} failed video removal jobs")

    retried = 0
    skipped = 0
    details = []

    for row in rows:
        error_type = row.get("error_type") or categorize_removal_error(row.get("error") or "")

        if not is_retryable(error_type):
            print(f"INFO: Skipping failed removal {row['id']}: error type '{error_type}' is not retryable")
            skipped += 1
            details.append({"id": row["id"], "action": "skipped", "reason": f"{error_type} not retryable"})
            continue

        failed_at = target_state.parse_datetime(row.get("failed_at")) or now
        can_retry_at = failed_at + timedelta(seconds=retry_delay(error_type))
        if now < can_retry_at:
            print(f"INFO: Skipping failed removal {row['id']}: too early to retry (can retry at {can_retry_at.isoformat()})")
            skipped += 1
            details.append({"id": row["id"], "action": "skipped", "reason": "too early"})
            continue

        if dry_run:
            print(f"INFO: DRY RUN: Would retry removal of target {row.get('target_id')} on {row.get('platform')}")
            retried += 1
            details.append({"id": row["id"], "action": "would_retry"})
            continue

        try:
            enqueue_removal({
                "target_id": row.get("target_id"),
                "video_id": row.get("video_id"),
                "user_id": row.get("user_id"),
                "channel_id": row.get("channel_id"),
                "platform": row["platform"],
                "platform_video_id": row.get("platform_video_id"),
                "facebook_page_id": row.get("facebook_page_id"),
                "title": row.get("title"),
            })
            delete_rows("failed_removals", id=row["id"])
            retried += 1
            details.append({"id": row["id"], "action": "retried"})
        except Exception as e:
            print(f"ERROR: Failed to retry removal {row['id']}: {str(e)}")
            skipped += 1
            details.append({"id": row["id"], "action": "skipped", "reason": str(e)})

    print(f"INFO: Retried {retried} removal jobs, skipped {skipped}{' (dry run)' if dry_run else ''}")
    return {
        "retried": retried,
        "skipped": skipped,
        "dry_run": dry_run,
        "platform": platform,
        "max_age_hours": max_age_hours,
        "details": details,
    }
