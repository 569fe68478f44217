"""
Error mapping for platform uploads and removals.

Upload errors are turned into short user-facing messages (stored on the
video target). Removal errors are categorized so the retry sweep knows which
ones are worth another attempt and how long to wait before it.
"""

from typing import Dict, Any, List, Optional

from app.utils.platform_utils import platform_display_name


# =============================================================================
# Upload Errors
# =============================================================================

_GENERIC_UPLOAD_ERRORS = {
    "invalidVideo": "The video format is not supported by {name}.",
    "videoTooLong": "The video exceeds {name}'s maximum duration limit.",
    "videoTooLarge": "The video file is too large for {name}.",
    "accountSuspended": "Your {name} account has been suspended. Please check your account status.",
    "copyright": "The video contains copyrighted content that cannot be uploaded.",
    "ageRestriction": "The video content requires age verification.",
}

UPLOAD_ERROR_MAPS: Dict[str, Dict[str, str]] = {
    "youtube": {
        "quotaExceeded": "YouTube upload limit reached. Please try again later.",
        "invalidVideo": "The video format is not supported by YouTube.",
        "videoTooLong": "The video exceeds YouTube's maximum duration limit.",
        "videoTooLarge": "The video file is too large for YouTube.",
        "duplicateVideo": "This video appears to be a duplicate of an existing video.",
        "invalidMetadata": "The video title or description contains invalid content.",
        "accountSuspended": "Your YouTube account has been suspended. Please check your account status.",
        "copyright": "The video contains copyrighted content that cannot be uploaded.",
        "ageRestriction": "The video content requires age verification.",
    },
    "instagram": {
        "rateLimit": "Instagram rate limit reached. Please try again later.",
        **{k: v.format(name="Instagram") for k, v in _GENERIC_UPLOAD_ERRORS.items()},
        "invalidMetadata": "The video caption contains invalid content.",
    },
    "tiktok": {
        "rateLimit": "TikTok rate limit reached. Please try again later.",
        **{k: v.format(name="TikTok") for k, v in _GENERIC_UPLOAD_ERRORS.items()},
        "invalidMetadata": "The video description contains invalid content.",
    },
}


def match_upload_error(platform: str, error_message: str) -> Optional[str]:
    """
    Known user-facing message for a raw platform error, or None.

    Matching is a case-insensitive substring search over the platform's
    error keys; YouTube additionally treats any "quota"/"limit" mention as
    an exhausted upload quota.
    """
    message = (error_message or "").lower()
    error_map = UPLOAD_ERROR_MAPS.get(platform)
    if not error_map:
        return None

    for key, friendly in error_map.items():
        if key.lower() in message:
            return friendly
    if platform == "youtube" and ("quota" in message or "limit" in message):
        return error_map["quotaExceeded"]
    return None


def friendly_upload_error(platform: str, error_message: str) -> str:
    """Map a raw platform error to a message safe to show the user."""
    friendly = match_upload_error(platform, error_message)
    if friendly:
        return friendly
    return f"An error occurred while uploading to {platform_display_name(platform)}. Please try again later."


def retry_recommendations(error_message: str) -> List[str]:
    """Advice for the user based on keywords in the error."""
    message = (error_message or "").lower()
    recommendations = []

    if "quota" in message or "limit" in message:
        recommendations.append("Wait a few hours before trying again")
        recommendations.append("Consider upgrading your plan for higher upload limits")

    if "format" in message or "invalid" in message:
        recommendations.append("Ensure your video is in a supported format (MP4, MOV)")
        recommendations.append("Check that your video meets the platform's requirements")

    if "size" in message or "large" in message:
        recommendations.append("Try compressing your video to a smaller size")
        recommendations.append("Consider using a lower resolution or bitrate")

    if "copyright" in message:
        recommendations.append("Ensure you have rights to use all content in the video")
        recommendations.append("Remove any copyrighted music or content")

    if "account" in message or "suspended" in message:
        recommendations.append("Check your platform account status")
        recommendations.append("Verify your account credentials")

    return recommendations


# =============================================================================
# Removal Errors
# =============================================================================

# Checked in order; the first matching category wins.
REMOVAL_ERROR_PATTERNS = [
    ("authentication", ["authentication failed", "unauthorized", "invalid token", "expired token", "has expired"]),
    ("permissions", ["insufficient permissions", "forbidden", "access denied"]),
    ("not_found", ["not found", "404", "does not exist"]),
    ("rate_limit", ["rate limit", "too many requests", "quota exceeded"]),
    ("network", ["connection", "network", "timeout", "timed out", "unreachable"]),
    ("platform_error", ["api error", "service unavailable", "internal server error"]),
    ("account_not_connected", ["account not connected", "no access token"]),
]

RETRYABLE_REMOVAL_ERRORS = {"rate_limit", "network", "platform_error"}

REMOVAL_RETRY_DELAYS = {
    "rate_limit": 1800,
    "network": 300,
    "platform_error": 600,
}

REMOVAL_SEVERITY = {
    "not_found": "info",
    "rate_limit": "warning",
    "network": "warning",
    "authentication": "error",
    "permissions": "error",
    "account_not_connected": "error",
    "platform_error": "critical",
    "unknown": "critical",
}


def categorize_removal_error(error_message: str) -> str:
    message = (error_message or "").lower()
    for error_type, needles in REMOVAL_ERROR_PATTERNS:
        if any(needle in message for needle in needles):
            return error_type
    return "unknown"


def is_retryable(error_type: str) -> bool:
    return error_type in RETRYABLE_REMOVAL_ERRORS


def retry_delay(error_type: str) -> int:
    """Seconds to wait before retrying a removal; 0 means not retryable."""
    return REMOVAL_RETRY_DELAYS.get(error_type, 0)


def _removal_message(error_type: str, name: str) -> str:
    messages = {
        "authentication": f"Your {name} account authentication has expired. Please reconnect your account to remove videos.",
        "permissions": f"Your {name} account doesn't have permission to delete this video. Please check your account settings.",
        "not_found": f"The video was not found on {name}. It may have already been deleted or the link is broken.",
        "rate_limit": f"{name} is temporarily limiting requests. Please try again in a few minutes.",
        "network": f"Unable to connect to {name}. Please check your internet connection and try again.",
        "platform_error": f"{name} is experiencing technical difficulties. Please try again later.",
        "account_not_connected": f"Your {name} account is not connected. Please connect your account first.",
        "unknown": f"An unexpected error occurred while removing the video from {name}.",
    }
    return messages.get(error_type, f"Failed to remove video from {name}.")


def _removal_suggestions(error_type: str, name: str) -> List[str]:
    suggestions = {
        "authentication": [
            f"Reconnect your {name} account in the Connections page",
            "Make sure you have the latest permissions enabled",
        ],
        "permissions": [
            f"Check your {name} account permissions",
            "Make sure you own the video you're trying to delete",
        ],
        "not_found": [
            "The video may have already been deleted manually",
            "No further action needed if the video is already gone",
        ],
        "rate_limit": [
            "Wait 15-30 minutes before trying again",
            "Avoid making multiple deletion requests at once",
        ],
        "network": [
            "Try again in a few minutes",
            "Contact support if the problem persists",
        ],
        "platform_error": [
            "Try again in 10-15 minutes",
            f"Check {name}'s status page for outages",
        ],
        "account_not_connected": [
            f"Go to the Connections page and connect your {name} account",
            "Try the deletion again after connecting",
        ],
    }
    return suggestions.get(error_type, ["Try the operation again", "Contact support if the problem persists"])


def removal_error_info(error_message: str, platform: str) -> Dict[str, Any]:
    """
    Categorize a removal failure.

    Example:
        >>> removal_error_info("HTTP 429 Too Many Requests", "tiktok")["type"]
        'rate_limit'
    """
    error_type = categorize_removal_error(error_message)
    name = platform_display_name(platform)
    return {
        "type": error_type,
        "message": _removal_message(error_type, name),
        "suggestions": _removal_suggestions(error_type, name),
        "technical_details": error_message,
        "severity": REMOVAL_SEVERITY.get(error_type, "error"),
        "retryable": is_retryable(error_type),
        "retry_delay": retry_delay(error_type),
    }
