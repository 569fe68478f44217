"""
Notifications router: in-app notifications such as permanent job failures.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from app.dependencies import get_current_user_id
from app.services import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id)
):
    return {
        "notifications": notification_service.list_notifications(user_id, unread_only, limit),
        "unread_count": notification_service.unread_count(user_id),
    }


@router.post("/read-all")
async def mark_all_read(user_id: str = Depends(get_current_user_id)):
    return {"marked": notification_service.mark_all_read(user_id)}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, user_id: str = Depends(get_current_user_id)):
    notification = notification_service.mark_read(user_id, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.post("/{notification_id}/unread")
async def mark_unread(notification_id: str, user_id: str = Depends(get_current_user_id)):
    notification = notification_service.mark_unread(user_id, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification
