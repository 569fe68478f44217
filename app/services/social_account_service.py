"""
Social account service: per-channel platform connections and their tokens.

The OAuth dance itself happens in the gateway; this service stores the
resulting tokens, resolves which account publishes a target, and keeps
refreshed tokens up to date.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, List

from app.services.supabase_service import (
    get_supabase_client,
    fetch_one,
    fetch_all,
    update_rows,
    delete_rows,
    now_iso,
)
from app.services.target_state import parse_datetime


TOKEN_FIELDS = ("access_token", "refresh_token", "facebook_page_access_token")


def is_token_expired(account: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    expires_at = parse_datetime(account.get("token_expires_at"))
    if expires_at is None:
        return False
    return expires_at <= (now or datetime.now(timezone.utc))


def display_name(account: Dict[str, Any]) -> str:
    """Best available human name for the connected account."""
    for field in ("platform_channel_name", "profile_name", "profile_username", "facebook_page_name"):
        if account.get(field):
            return account[field]
    return "Connected Account"


def public_view(account: Dict[str, Any]) -> Dict[str, Any]:
    """Account without secrets, for API responses."""
    view = {k: v for k, v in account.items() if k not in TOKEN_FIELDS}
    view["display_name"] = display_name(account)
    view["token_expired"] = is_token_expired(account)
    return view


def connect_account(user_id: str, channel_id: str, platform: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Store (or replace) the platform connection of a channel.

    `expires_in` (seconds, as returned by OAuth token endpoints) is converted
    to token_expires_at.
    """
    row = {
        "user_id": user_id,
        "channel_id": channel_id,
        "platform": platform,
        "updated_at": now_iso(),
    }
    for field in (
        "access_token", "refresh_token", "platform_channel_id", "platform_channel_name",
        "profile_name", "profile_username", "facebook_page_id", "facebook_page_name",
        "facebook_page_access_token", "token_expires_at",
    ):
        if data.get(field) is not None:
            row[field] = data[field]

    if data.get("expires_in"):
        row["token_expires_at"] = (datetime.now(timezone.utc) + timedelta(seconds=int(data["expires_in"]))).isoformat()

    supabase = get_supabase_client()
    result = supabase.table("social_accounts").upsert(row, on_conflict="channel_id,platform").execute()
    account = result.data[0] if result.data else row
    print(f"INFO: Connected {platform} account to channel {channel_id}")
    return account


def disconnect_account(user_id: str, channel_id: str, platform: str) -> bool:
    deleted = delete_rows("social_accounts", user_id=user_id, channel_id=channel_id, platform=platform)
    return bool(deleted)


def list_accounts(user_id: str, channel_id: str) -> List[Dict[str, Any]]:
    return fetch_all("social_accounts", user_id=user_id, channel_id=channel_id)


def connected_platforms(user_id: str, channel_id: str) -> List[str]:
    return sorted({a["platform"] for a in list_accounts(user_id, channel_id)})


def find_account(user_id: str, channel_id: Optional[str], platform: str) -> Optional[Dict[str, Any]]:
    """The channel's account for `platform`, falling back to any account of the user on it."""
    if channel_id:
        account = fetch_one("social_accounts", user_id=user_id, channel_id=channel_id, platform=platform)
        if account:
            return account
    return fetch_one("social_accounts", user_id=user_id, platform=platform)


def update_tokens(
    account: Dict[str, Any],
    access_token: str,
    expires_at: Optional[datetime] = None,
    refresh_token: Optional[str] = None
) -> Dict[str, Any]:
    """Persist a refreshed access token and return the updated account."""
    values: Dict[str, Any] = {"access_token": access_token, "updated_at": now_iso()}
    if expires_at is not None:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        values["token_expires_at"] = expires_at.isoformat()
    if refresh_token:
        values["refresh_token"] = refresh_token
    rows = update_rows("social_accounts", values, id=account["id"])
    return rows[0] if rows else {**account, **values}
