"""
Channels: a user's publishing identities, each with its own connected
social accounts and default platforms.
"""

import re
import unicodedata
from typing import Dict, Any, Optional, List

from fastapi import HTTPException

from app.services import plan_service
from app.services.social_account_service import connected_platforms as channel_connected_platforms
from app.services.supabase_service import fetch_one, fetch_all, insert_row, update_rows, delete_rows, now_iso


def slugify(name: str) -> str:
    """ASCII, lowercase, hyphen separated ("My Channel!" -> "my-channel")."""
    text = unicodedata.normalize("NFKD", name or "").encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^\w\s-]", "", text).strip().lower()
    text = re.sub(r"[\s_-]+", "-", text).strip("-")
    return text or "channel"


def unique_slug(user_id: str, name: str) -> str:
    """Slug unique among the user's channels: name, name-1, name-2, ..."""
    base = slugify(name)
    taken = {c.get("slug") for c in fetch_all("channels", user_id=user_id)}
    slug = base
    counter = 1
    while slug in taken:
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def get_channel(user_id: str, channel_id: str) -> Dict[str, Any]:
    """The user's channel, or 404 (also for channels of other users)."""
    channel = fetch_one("channels", id=channel_id, user_id=user_id)
    if not channel:
        raise HTTPException(status_code=404, detail="Channel not found")
    return channel


def get_default_channel(user_id: str) -> Optional[Dict[str, Any]]:
    return fetch_one("channels", user_id=user_id, is_default=True)


def connected_platforms(channel: Dict[str, Any]) -> List[str]:
    return channel_connected_platforms(channel["user_id"], channel["id"])


def _filter_allowed(platforms: Optional[List[str]], allowed: List[str]) -> List[str]:
    result = []
    for platform in platforms or []:
        if platform in allowed and platform not in result:
            result.append(platform)
    return result


def _validate_fields(name: Optional[str], description: Optional[str]) -> None:
    if name is not None:
        if not name.strip():
            raise HTTPException(status_code=422, detail="The name field is required.")
        if len(name) > 255:
            raise HTTPException(status_code=422, detail="The name may not be greater than 255 characters.")
    if description is not None and len(description) > 1000:
        raise HTTPException(status_code=422, detail="The description may not be greater than 1000 characters.")


def list_channels(user_id: str) -> List[Dict[str, Any]]:
    """Channels with connected platform and video counts, default channel first."""
    channels = fetch_all("channels", order_by="created_at", user_id=user_id)
    channels.sort(key=lambda c: not c.get("is_default"))
    for channel in channels:
        channel["connected_platforms"] = connected_platforms(channel)
        channel["social_accounts_count"] = len(channel["connected_platforms"])
        channel["videos_count"] = len(fetch_all("videos", channel_id=channel["id"]))
    return channels


def create_channel(
    user_id: str,
    name: str,
    description: Optional[str] = None,
    default_platforms: Optional[List[str]] = None
) -> Dict[str, Any]:
    """
    Create a channel within the user's plan limit.

    The first channel of a user becomes the default channel.

    Raises:
        HTTPException: 403 when the plan's channel limit is reached, 422 on invalid fields
    """
    _validate_fields(name, description)
    if not plan_service.can_create_channel(user_id):
        raise HTTPException(
            status_code=403,
            detail="Channel limit reached for your current plan. Upgrade to create more channels."
        )

    allowed = plan_service.get_allowed_platforms(user_id)
    is_first = not fetch_all("channels", user_id=user_id)

    channel = insert_row("channels", {
        "user_id": user_id,
        "name": name.strip(),
        "description": description,
        "slug": unique_slug(user_id, name),
        "default_platforms": _filter_allowed(default_platforms, allowed),
        "is_default": is_first,
        "created_at": now_iso(),
        "updated_at": now_iso(),
    })
    print(f"INFO: Created channel {channel['id']} ({channel['slug']}) for user {user_id}")
    return channel


def update_channel(user_id: str, channel_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    channel = get_channel(user_id, channel_id)
    _validate_fields(data.get("name"), data.get("description"))

    values: Dict[str, Any] = {"updated_at": now_iso()}
    if data.get("name") is not None:
        values["name"] = data["name"].strip()
    if "description" in data:
        values["description"] = data["description"]
    if data.get("default_platforms") is not None:
        values["default_platforms"] = _filter_allowed(
            data["default_platforms"], plan_service.get_allowed_platforms(user_id)
        )

    rows = update_rows("channels", values, id=channel["id"], user_id=user_id)
    return rows[0] if rows else {**channel, **values}


def delete_channel(user_id: str, channel_id: str) -> None:
    """
    Delete an empty, non-default channel and its social accounts.

    Raises:
        HTTPException: 409 for the default channel or a channel that still has videos
    """
    channel = get_channel(user_id, channel_id)

    if channel.get("is_default"):
        print(f"WARNING: User {user_id} attempted to delete default channel {channel_id}")
        raise HTTPException(status_code=409, detail="Cannot delete the default channel.")

    videos_count = len(fetch_all("videos", channel_id=channel_id))
    if videos_count > 0:
        print(f"WARNING: User {user_id} attempted to delete channel {channel_id} with {videos_count} videos")
        raise HTTPException(
            status_code=409,
            detail="Cannot delete channel with existing videos. Please delete all videos first."
        )

    delete_rows("social_accounts", channel_id=channel_id)
    delete_rows("channels", id=channel_id, user_id=user_id)
    print(f"INFO: Channel {channel_id} deleted by user {user_id}")


def update_default_platforms(channel: Dict[str, Any], platforms: List[str], allowed: List[str]) -> List[str]:
    """Merge newly used platforms into the channel's defaults, keeping only allowed ones."""
    merged = list(channel.get("default_platforms") or [])
    for platform in platforms:
        if platform not in merged:
            merged.append(platform)
    merged = [p for p in merged if p in allowed]

    if merged != list(channel.get("default_platforms") or []):
        update_rows("channels", {"default_platforms": merged, "updated_at": now_iso()}, id=channel["id"])
        channel["default_platforms"] = merged
    return merged
