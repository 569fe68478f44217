"""
Channels router.

This module provides endpoints for:
- Channel CRUD (plan channel limits apply on create)
- Listing, connecting and disconnecting a channel's social accounts
"""

from fastapi import APIRouter, Depends, HTTPException

from app.config import PLATFORMS
from app.dependencies import get_current_user_id
from app.models.schemas import ChannelCreateRequest, ChannelUpdateRequest, SocialAccountConnectRequest
from app.services import channel_service, plan_service, social_account_service

router = APIRouter(prefix="/channels", tags=["Channels"])


@router.get("")
async def list_channels(user_id: str = Depends(get_current_user_id)):
    """All channels of the user with their connected platforms."""
    channels = channel_service.list_channels(user_id)
    return {
        "channels": channels,
        "can_create_channel": plan_service.can_create_channel(user_id),
        "max_channels": plan_service.get_max_channels(user_id),
    }


@router.post("", status_code=201)
async def create_channel(request: ChannelCreateRequest, user_id: str = Depends(get_current_user_id)):
    """
    Create a channel.

    Returns 403 when the plan's channel limit is reached. Default platforms
    not allowed by the plan are dropped.
    """
    return channel_service.create_channel(user_id, request.name, request.description, request.default_platforms)


@router.get("/{channel_id}")
async def get_channel(channel_id: str, user_id: str = Depends(get_current_user_id)):
    channel = channel_service.get_channel(user_id, channel_id)
    channel["connected_platforms"] = channel_service.connected_platforms(channel)
    return channel


@router.patch("/{channel_id}")
async def update_channel(channel_id: str, request: ChannelUpdateRequest, user_id: str = Depends(get_current_user_id)):
    return channel_service.update_channel(user_id, channel_id, request.model_dump(exclude_unset=True))


@router.delete("/{channel_id}")
async def delete_channel(channel_id: str, user_id: str = Depends(get_current_user_id)):
    """Delete a channel. The default channel and channels with videos return 409."""
    channel_service.delete_channel(user_id, channel_id)
    return {"deleted": True, "channel_id": channel_id}


# =============================================================================
# Social Accounts
# =============================================================================

@router.get("/{channel_id}/social-accounts")
async def list_social_accounts(channel_id: str, user_id: str = Depends(get_current_user_id)):
    """Connected accounts of the channel (tokens are never returned)."""
    channel = channel_service.get_channel(user_id, channel_id)
    accounts = social_account_service.list_accounts(user_id, channel["id"])
    allowed = plan_service.get_allowed_platforms(user_id)
    return {
        "channel_id": channel["id"],
        "accounts": [social_account_service.public_view(a) for a in accounts],
        "platforms": [
            {"platform": p, "allowed": p in allowed, "connected": any(a["platform"] == p for a in accounts)}
            for p in PLATFORMS
        ],
    }


@router.post("/{channel_id}/social-accounts/{platform}")
async def connect_social_account(
    channel_id: str,
    platform: str,
    request: SocialAccountConnectRequest,
    user_id: str = Depends(get_current_user_id)
):
    """
    Store the OAuth result of a platform connection for the channel.

    Returns 422 for unknown platforms and 403 when the plan does not include
    the platform.
    """
    if platform not in PLATFORMS:
        raise HTTPException(status_code=422, detail=f"Unknown platform: {platform}")
    if not plan_service.can_access_platform(user_id, platform):
        raise HTTPException(status_code=403, detail=f"Platform '{platform}' is not available with your current plan.")

    channel = channel_service.get_channel(user_id, channel_id)
    account = social_account_service.connect_account(user_id, channel["id"], platform, request.model_dump(exclude_none=True))
    return social_account_service.public_view(account)


@router.delete("/{channel_id}/social-accounts/{platform}")
async def disconnect_social_account(channel_id: str, platform: str, user_id: str = Depends(get_current_user_id)):
    channel = channel_service.get_channel(user_id, channel_id)
    if not social_account_service.disconnect_account(user_id, channel["id"], platform):
        raise HTTPException(status_code=404, detail=f"No {platform} account connected to this channel")
    return {"disconnected": True, "platform": platform}
