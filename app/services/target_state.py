"""
Publishing state machine for video targets.

A video target is one (video, platform) pair. Its status moves through:

    pending -> failed                   (dispatch failure)
    pending -> processing -> success
                          -> failed
                          -> pending   (transient failure, queue will redeliver)
    failed  -> pending                  (user retry)
    success -> pending / processing     (metadata update or re-publish)

Only the transitions listed in ALLOWED_TRANSITIONS are legal; everything else
raises ValueError.
"""

from datetime import datetime, timezone
from typing import Dict, Any, Optional

from app.services.supabase_service import update_rows, now_iso


PENDING = "pending"
PROCESSING = "processing"
SUCCESS = "success"
FAILED = "failed"

STATUSES = [PENDING, PROCESSING, SUCCESS, FAILED]

ALLOWED_TRANSITIONS = {
    PENDING: {PROCESSING, FAILED},
    PROCESSING: {SUCCESS, FAILED, PENDING},
    FAILED: {PENDING},
    SUCCESS: {PENDING, PROCESSING},
}


def parse_datetime(value) -> Optional[datetime]:
    """Parse an ISO string (or datetime) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).replace("Z", "+00:00")
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def check_transition(current: str, new: str) -> None:
    if new not in STATUSES:
        raise ValueError(f"Unknown target status: {new}")
    if not can_transition(current, new):
        raise ValueError(f"Invalid status transition: {current} -> {new}")


def is_scheduled(target: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """True when the target has a publish_at in the future."""
    publish_at = parse_datetime(target.get("publish_at"))
    now = now or datetime.now(timezone.utc)
    return publish_at is not None and publish_at > now


def is_ready_to_publish(target: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """True for pending targets whose publish_at is unset or already reached."""
    if target.get("status") != PENDING:
        return False
    return not is_scheduled(target, now)


# =============================================================================
# Persistence
# =============================================================================

def _transition(target: Dict[str, Any], new_status: str, values: Dict[str, Any]) -> Dict[str, Any]:
    check_transition(target.get("status"), new_status)
    values = {**values, "status": new_status, "updated_at": now_iso()}
    rows = update_rows("video_targets", values, id=target["id"])
    updated = rows[0] if rows else {**target, **values}
    target.update(updated)
    return target


def mark_as_processing(target: Dict[str, Any]) -> Dict[str, Any]:
    return _transition(target, PROCESSING, {})


def mark_as_success(
    target: Dict[str, Any],
    platform_video_id: Optional[str] = None,
    platform_url: Optional[str] = None
) -> Dict[str, Any]:
    """Record a successful publish. Clears any previous error."""
    values: Dict[str, Any] = {"error_message": None, "published_at": now_iso()}
    if platform_video_id is not None:
        values["platform_video_id"] = platform_video_id
    if platform_url is not None:
        values["platform_url"] = platform_url
    return _transition(target, SUCCESS, values)


def mark_as_failed(target: Dict[str, Any], error_message: str) -> Dict[str, Any]:
    return _transition(target, FAILED, {"error_message": error_message})


def reset_to_pending(target: Dict[str, Any], error_message: Optional[str] = None) -> Dict[str, Any]:
    return _transition(target, PENDING, {"error_message": error_message})


def restore_published(target: Dict[str, Any], error_message: Optional[str] = None) -> Dict[str, Any]:
    """Return a target to success without touching its publish details (failed metadata update)."""
    return _transition(target, SUCCESS, {"error_message": error_message})
