"""
Hashtag validation for cross-posted captions.

Platforms penalize or reject captions that promote a competing platform, so
every caption is filtered for the target platform before it is published:
hashtags naming another platform (#tiktok on YouTube, #youtubeshorts on
Instagram) are removed, while the platform's own aliases stay allowed.
"""

import re
from typing import Dict, Any, List, Union

from app.config import PLATFORMS


# Every name a platform is known by in hashtags
PLATFORM_ALIASES = {
    "facebook": ["facebook", "fb"],
    "instagram": ["instagram", "ig"],
    "tiktok": ["tiktok"],
    "youtube": ["youtube"],
    "snapchat": ["snapchat"],
    "pinterest": ["pinterest"],
    "x": ["x", "twitter"],
}

# Names this short only match exactly; longer ones also match as a prefix (#tiktokviral)
MIN_PREFIX_LENGTH = 3

HASHTAG_RE = re.compile(r"#\w+", re.UNICODE)


def get_forbidden_hashtags(platform: str) -> List[str]:
    """Names of other platforms that may not appear as hashtags on `platform`."""
    if platform not in PLATFORM_ALIASES:
        return []
    own = set(PLATFORM_ALIASES[platform])
    forbidden = []
    for other in PLATFORMS:
        for alias in PLATFORM_ALIASES[other]:
            if alias not in own and alias not in forbidden:
                forbidden.append(alias)
    return forbidden


def is_hashtag_forbidden(platform: str, hashtag: str) -> bool:
    name = hashtag.strip().lstrip("#").lower()
    if not name:
        return False
    for forbidden in get_forbidden_hashtags(platform):
        if name == forbidden:
            return True
        if len(forbidden) >= MIN_PREFIX_LENGTH and name.startswith(forbidden):
            return True
    return False


def _cleanup_whitespace(content: str) -> str:
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in content.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def validate_and_filter_hashtags(platform: str, content: str) -> Dict[str, Any]:
    """
    Remove hashtags that are forbidden on `platform` from `content`.

    Returns:
        Dictionary containing:
        - filtered_content: content without forbidden hashtags, whitespace tidied
        - removed_hashtags: removed hashtags as first written, unique ignoring case, in order
        - warnings: one message per removed hashtag
        - has_changes: True when anything was removed

    Example:
        >>> validate_and_filter_hashtags("youtube", "New video #tiktok #cooking")
        {'filtered_content': 'New video #cooking', 'removed_hashtags': ['#tiktok'], ...}
    """
    content = content or ""
    if platform not in PLATFORM_ALIASES:
        return {
            "filtered_content": content,
            "removed_hashtags": [],
            "warnings": [],
            "has_changes": False
        }

    removed: List[str] = []
    seen = set()
    warnings: List[str] = []

    def _strip(match: re.Match) -> str:
        hashtag = match.group(0)
        if not is_hashtag_forbidden(platform, hashtag):
            return hashtag
        if hashtag.lower() not in seen:
            seen.add(hashtag.lower())
            removed.append(hashtag)
            warnings.append(f"Removed forbidden hashtag '{hashtag}' for {platform}")
        return " "

    filtered = HASHTAG_RE.sub(_strip, content)
    if removed:
        filtered = _cleanup_whitespace(filtered)
        print(f"INFO: Removed {len(removed)} forbidden hashtag(s) for {platform}: {removed}")
    else:
        filtered = content

    return {
        "filtered_content": filtered,
        "removed_hashtags": removed,
        "warnings": warnings,
        "has_changes": bool(removed)
    }


def get_validation_message(platform: str, forbidden_hashtags: List[str]) -> str:
    if not forbidden_hashtags:
        return ""
    hashtag_list = ", ".join(f"'{tag}'" for tag in forbidden_hashtags)
    return (
        f"The following hashtags are not allowed on {platform}: {hashtag_list}. "
        "They have been automatically removed."
    )


def _options_content(options: Dict[str, Any]) -> str:
    parts = []
    if options.get("caption"):
        parts.append(str(options["caption"]))
    hashtags: Union[str, List[str], None] = options.get("hashtags")
    if hashtags:
        parts.append(" ".join(hashtags) if isinstance(hashtags, list) else str(hashtags))
    return " ".join(parts)


def validate_advanced_options(advanced_options: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """
    Validate caption + hashtags per platform in a {platform: options} mapping.
    Only platforms whose content changed are returned.
    """
    results = {}
    for platform, options in (advanced_options or {}).items():
        if not isinstance(options, dict):
            continue
        if "caption" not in options and "hashtags" not in options:
            continue
        result = validate_and_filter_hashtags(platform, _options_content(options))
        if result["has_changes"]:
            result["message"] = get_validation_message(platform, result["removed_hashtags"])
            results[platform] = result
    return results
