"""
Platform utility functions for publishing targets and source URLs.

This module provides utilities for:
- Display names for publishing platforms
- Detecting the platform of a source URL (used by workflows)
- Checking if URLs are from specific platforms
"""

import re


PLATFORM_DISPLAY_NAMES = {
    "youtube": "YouTube",
    "instagram": "Instagram",
    "tiktok": "TikTok",
    "facebook": "Facebook",
    "snapchat": "Snapchat",
    "pinterest": "Pinterest",
    "x": "X",
}


def platform_display_name(platform: str) -> str:
    """Human-readable platform name ("tiktok" -> "TikTok", unknown -> capitalized)."""
    if not platform:
        return "Unknown"
    return PLATFORM_DISPLAY_NAMES.get(platform.lower(), platform.capitalize())


def is_youtube_url(url: str) -> bool:
    """Check if URL is a YouTube URL."""
    youtube_patterns = [
        r'youtube\.com',
        r'youtu\.be',
        r'youtube-nocookie\.com',
    ]
    return any(re.search(pattern, url, re.IGNORECASE) for pattern in youtube_patterns)


def get_platform_from_url(url: str) -> str:
    """
    Detect platform from URL and return the publishing platform key.
    Returns: youtube, tiktok, instagram, facebook, x, pinterest, snapchat, or unknown.
    """
    url_lower = url.lower()

    if 'youtube.com' in url_lower or 'youtu.be' in url_lower:
        return 'youtube'
    elif 'tiktok.com' in url_lower:
        return 'tiktok'
    elif 'instagram.com' in url_lower:
        return 'instagram'
    elif 'facebook.com' in url_lower or 'fb.watch' in url_lower:
        return 'facebook'
    elif re.search(r'(^|[/.])(twitter|x)\.com', url_lower):
        return 'x'
    elif 'pinterest.' in url_lower or 'pin.it' in url_lower:
        return 'pinterest'
    elif 'snapchat.com' in url_lower:
        return 'snapchat'
    else:
        return 'unknown'
