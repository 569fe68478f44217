"""
Publishing statistics for the dashboard.
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List, Optional

from app.services import plan_service
from app.services.supabase_service import fetch_all
from app.services.target_state import parse_datetime, PENDING, PROCESSING, SUCCESS, FAILED


TARGET_STATUSES = [SUCCESS, FAILED, PENDING, PROCESSING]
ACTIVITY_DAYS = 30


def _targets_for(videos: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not videos:
        return []
    return fetch_all("video_targets", video_id=[v["id"] for v in videos])


def _status_counts(targets: List[Dict[str, Any]]) -> Dict[str, int]:
    counts = Counter(t.get("status") for t in targets)
    return {status: counts.get(status, 0) for status in TARGET_STATUSES}


def _recent_activity(videos: List[Dict[str, Any]], now: datetime) -> List[Dict[str, Any]]:
    """Videos created per day over the last 30 days, oldest first. Days without uploads are omitted."""
    since = now - timedelta(days=ACTIVITY_DAYS)
    per_day: Counter = Counter()
    for video in videos:
        created = parse_datetime(video.get("created_at"))
        if created and created >= since:
            per_day[created.date().isoformat()] += 1
    return [{"date": day, "count": per_day[day]} for day in sorted(per_day)]


def get_user_stats(user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    channels = fetch_all("channels", order_by="created_at", user_id=user_id)
    videos = fetch_all("videos", user_id=user_id)
    accounts = fetch_all("social_accounts", user_id=user_id)
    targets = _targets_for(videos)

    platforms: Dict[str, Dict[str, int]] = {}
    for target in targets:
        entry = platforms.setdefault(target["platform"], {"total": 0, **{s: 0 for s in TARGET_STATUSES}})
        entry["total"] += 1
        if target.get("status") in TARGET_STATUSES:
            entry[target["status"]] += 1

    video_channel = {v["id"]: v.get("channel_id") for v in videos}
    channel_stats = []
    for channel in channels:
        channel_targets = [t for t in targets if video_channel.get(t["video_id"]) == channel["id"]]
        successful = sum(1 for t in channel_targets if t.get("status") == SUCCESS)
        channel_stats.append({
            "id": channel["id"],
            "name": channel.get("name"),
            "videos_count": sum(1 for v in videos if v.get("channel_id") == channel["id"]),
            "social_accounts_count": sum(1 for a in accounts if a.get("channel_id") == channel["id"]),
            "total_uploads": len(channel_targets),
            "successful_uploads": successful,
            "success_rate": round(successful / len(channel_targets) * 100, 1) if channel_targets else 0,
        })

    subscription = plan_service.get_active_subscription(user_id)
    subscription_block = None
    if subscription:
        max_channels = plan_service.get_max_channels(user_id)
        subscription_block = {
            "status": "active",
            "is_active": True,
            "max_channels": max_channels,
            "monthly_cost": plan_service.monthly_cost(True, int(subscription.get("additional_channels") or 0)),
        }

    return {
        "stats": {
            "overview": {
                "total_channels": len(channels),
                "total_videos": len(videos),
                "connected_platforms": len({a.get("platform") for a in accounts}),
                "total_uploads": len(targets),
            },
            "video_status": _status_counts(targets),
            "platforms": platforms,
            "recent_activity": _recent_activity(videos, now),
            "channels": channel_stats,
        },
        "subscription": subscription_block,
        "allowed_platforms": plan_service.get_allowed_platforms(user_id),
    }
