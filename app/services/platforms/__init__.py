"""
Publishing platform clients.

get_platform_client(platform) returns the client for a platform key; unknown
platforms raise KeyError.
"""

from .base import (
    PlatformClient,
    PlatformError,
    PlatformNotFound,
    PublishResult,
    SIMULATED_TOKEN,
)
from .youtube import YouTubeClient
from .instagram import InstagramClient
from .tiktok import TikTokClient
from .facebook import FacebookClient
from .snapchat import SnapchatClient
from .pinterest import PinterestClient
from .x import XClient


_CLIENTS = {
    client.platform: client
    for client in (
        YouTubeClient(),
        InstagramClient(),
        TikTokClient(),
        FacebookClient(),
        SnapchatClient(),
        PinterestClient(),
        XClient(),
    )
}

SUPPORTED_PLATFORMS = list(_CLIENTS.keys())


def get_platform_client(platform: str) -> PlatformClient:
    return _CLIENTS[platform]


def is_supported_platform(platform: str) -> bool:
    return platform in _CLIENTS


def supports_metadata_update(platform: str) -> bool:
    return platform in _CLIENTS and _CLIENTS[platform].supports_metadata_update


__all__ = [
    "PlatformClient",
    "PlatformError",
    "PlatformNotFound",
    "PublishResult",
    "SIMULATED_TOKEN",
    "SUPPORTED_PLATFORMS",
    "get_platform_client",
    "is_supported_platform",
    "supports_metadata_update",
]
