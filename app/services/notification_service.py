"""
In-app notifications (job failures and similar events) stored in the
notifications table.
"""

from typing import Dict, Any, Optional, List

from app.services.supabase_service import (
    get_supabase_client,
    fetch_all,
    insert_row,
    update_rows,
    now_iso,
)


def add_job_failure_notification(
    user_id: str,
    job: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Record a permanent job failure for the user.

    Args:
        user_id: Owner of the failed resource
        job: Job kind (upload, update, remove, subtitles, ...)
        title: Short headline
        message: User-facing explanation
        data: Extra identifiers (video_id, target_id, platform, ...)
    """
    row = insert_row("notifications", {
        "user_id": user_id,
        "type": "job_failed",
        "data": {"job": job, "title": title, "message": message, **(data or {})},
        "read_at": None,
        "created_at": now_iso(),
    })
    print(f"INFO: Notified user {user_id} of failed {job} job")
    return row


def list_notifications(user_id: str, unread_only: bool = False, limit: int = 50) -> List[Dict[str, Any]]:
    filters: Dict[str, Any] = {"user_id": user_id}
    if unread_only:
        filters["read_at"] = None
    return fetch_all("notifications", order_by="created_at", desc=True, limit=limit, **filters)


def unread_count(user_id: str) -> int:
    return len(fetch_all("notifications", user_id=user_id, read_at=None))


def mark_read(user_id: str, notification_id: str) -> Optional[Dict[str, Any]]:
    rows = update_rows("notifications", {"read_at": now_iso()}, id=notification_id, user_id=user_id)
    return rows[0] if rows else None


def mark_unread(user_id: str, notification_id: str) -> Optional[Dict[str, Any]]:
    rows = update_rows("notifications", {"read_at": None}, id=notification_id, user_id=user_id)
    return rows[0] if rows else None


def mark_all_read(user_id: str) -> int:
    supabase = get_supabase_client()
    result = supabase.table("notifications").update({"read_at": now_iso()}).eq("user_id", user_id).is_("read_at", "null").execute()
    return len(result.data or [])
