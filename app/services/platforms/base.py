"""
Shared plumbing for platform publishing clients.

Each platform client knows how to upload a stored video, update its
metadata and remove it again. This module holds what they share:
- PlatformError / PlatformNotFound (with retryable flag and HTTP status)
- Caption building (advanced options, hashtags, per-platform hashtag filter)
- Token checks and the development token that simulates success
- A requests wrapper that turns HTTP failures into PlatformError
"""

from typing import Dict, Any, Optional

import requests
from pydantic import BaseModel

from app.services.hashtag_service import validate_and_filter_hashtags
from app.services.social_account_service import is_token_expired
from app.utils.platform_utils import platform_display_name


SIMULATED_TOKEN = "fake_token_for_development"


class PlatformError(Exception):
    """Failure talking to a publishing platform."""

    def __init__(self, message: str, retryable: bool = True, status_code: Optional[int] = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class PlatformNotFound(PlatformError):
    """The platform no longer knows the video (already deleted)."""

    def __init__(self, message: str):
        super().__init__(message, retryable=False, status_code=404)


class PublishResult(BaseModel):
    platform_video_id: str
    platform_url: Optional[str] = None


# =============================================================================
# Helper Functions
# =============================================================================

def format_hashtags(hashtags) -> str:
    """Normalize a list or string of hashtags to "#a #b"."""
    if not hashtags:
        return ""
    if isinstance(hashtags, str):
        hashtags = hashtags.split()
    tags = []
    for tag in hashtags:
        cleaned = str(tag).replace("#", "").replace(" ", "").strip()
        if cleaned:
            tags.append(f"#{cleaned}")
    return " ".join(tags)


def build_hashtags(video: Dict[str, Any], target: Dict[str, Any]) -> str:
    """Hashtags from the target's advanced options, falling back to the video's tags."""
    options = target.get("advanced_options") or {}
    if options.get("hashtags"):
        return format_hashtags(options["hashtags"])
    return format_hashtags(video.get("tags") or [])


def build_caption(video: Dict[str, Any], target: Dict[str, Any], include_title: bool = True) -> str:
    """
    Caption for platforms that take a single text field.

    Uses advanced_options.caption when set, otherwise title + description.
    Hashtags are appended and then filtered for the target platform.
    """
    options = target.get("advanced_options") or {}
    caption = options.get("caption")
    if not caption:
        parts = [video.get("title")] if include_title else []
        parts.append(video.get("description"))
        caption = "\n\n".join(p for p in parts if p)

    hashtags = build_hashtags(video, target)
    if hashtags:
        caption = f"{caption}\n\n{hashtags}" if caption else hashtags

    result = validate_and_filter_hashtags(target["platform"], caption)
    if result["has_changes"]:
        print(f"INFO: Target {target.get('id')}: removed hashtags {result['removed_hashtags']}")
    return result["filtered_content"]


def error_from_status(platform: str, action: str, status_code: int, body: str = "") -> PlatformError:
    """Build a PlatformError whose message carries the keywords the removal categorizer looks for."""
    name = platform_display_name(platform)
    body = (body or "")[:300]
    if status_code == 404:
        return PlatformNotFound(f"{name} {action} failed: video not found (HTTP 404)")
    if status_code == 401:
        return PlatformError(f"{name} {action} failed: unauthorized (HTTP 401) {body}", retryable=False, status_code=401)
    if status_code == 403:
        return PlatformError(f"{name} {action} failed: forbidden (HTTP 403) {body}", retryable=False, status_code=403)
    if status_code == 429:
        return PlatformError(f"{name} {action} failed: rate limit, too many requests (HTTP 429)", retryable=True, status_code=429)
    if status_code >= 500:
        return PlatformError(f"{name} {action} failed: api error (HTTP {status_code}) {body}", retryable=True, status_code=status_code)
    return PlatformError(f"{name} {action} failed (HTTP {status_code}): {body}", retryable=False, status_code=status_code)


def platform_request(platform: str, method: str, url: str, action: str, timeout: int = 60, **kwargs) -> requests.Response:
    """
    Perform an HTTP request against a platform API.

    Raises:
        PlatformError: retryable for timeouts, connection errors, 429 and 5xx
        PlatformNotFound: for HTTP 404
    """
    name = platform_display_name(platform)
    try:
        response = requests.request(method, url, timeout=timeout, **kwargs)
    except requests.exceptions.Timeout:
        raise PlatformError(f"{name} {action} failed: request timeout", retryable=True)
    except requests.exceptions.ConnectionError as e:
        raise PlatformError(f"{name} {action} failed: connection error - {str(e)}", retryable=True)

    if response.status_code >= 400:
        raise error_from_status(platform, action, response.status_code, response.text)
    return response


def response_json(response: requests.Response) -> Dict[str, Any]:
    try:
        return response.json()
    except ValueError:
        return {}


# =============================================================================
# Client Base Class
# =============================================================================

class PlatformClient:
    """Base class for platform clients. Subclasses implement upload/update_metadata/remove."""

    platform: str = ""
    supports_metadata_update: bool = False

    @property
    def name(self) -> str:
        return platform_display_name(self.platform)

    def check_account(self, account: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Ensure the account is connected and its token usable; may refresh it."""
        if not account or not account.get("access_token"):
            raise PlatformError(f"{self.name} account not connected", retryable=False)
        if account["access_token"] == SIMULATED_TOKEN:
            return account
        if is_token_expired(account):
            refreshed = self.refresh_access_token(account)
            if refreshed is None:
                raise PlatformError(
                    f"{self.name} access token has expired. Please reconnect your account.",
                    retryable=False
                )
            return refreshed
        return account

    def refresh_access_token(self, account: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the account with a fresh token, or None when the platform cannot refresh."""
        return None

    def simulated_result(self, target: Dict[str, Any]) -> PublishResult:
        video_id = f"SIMULATED_{self.platform.upper()}_{target.get('id')}"
        print(f"INFO: Development token for {self.name} - simulating publish ({video_id})")
        return PublishResult(platform_video_id=video_id, platform_url=None)

    # Entry points used by the job service

    def publish(
        self,
        video: Dict[str, Any],
        target: Dict[str, Any],
        account: Optional[Dict[str, Any]],
        video_path: str,
        public_url: Optional[str] = None
    ) -> PublishResult:
        account = self.check_account(account)
        if account["access_token"] == SIMULATED_TOKEN:
            return self.simulated_result(target)
        return self.upload(video, target, account, video_path, public_url)

    def update(self, video: Dict[str, Any], target: Dict[str, Any], account: Optional[Dict[str, Any]]) -> PublishResult:
        if not target.get("platform_video_id"):
            raise PlatformError(f"No {self.name} video ID found for this target", retryable=False)
        account = self.check_account(account)
        if account["access_token"] == SIMULATED_TOKEN:
            return PublishResult(platform_video_id=target["platform_video_id"], platform_url=target.get("platform_url"))
        return self.update_metadata(video, target, account)

    def delete(self, platform_video_id: Optional[str], account: Optional[Dict[str, Any]], options: Optional[Dict[str, Any]] = None) -> None:
        if not platform_video_id:
            raise PlatformError(f"No {self.name} video ID found for this target", retryable=False)
        account = self.check_account(account)
        if account["access_token"] == SIMULATED_TOKEN or platform_video_id.startswith("SIMULATED_"):
            print(f"INFO: Simulated {self.name} removal of {platform_video_id}")
            return
        self.remove(platform_video_id, account, options or {})

    # Platform specific

    def upload(self, video, target, account, video_path, public_url) -> PublishResult:
        raise NotImplementedError

    def update_metadata(self, video, target, account) -> PublishResult:
        raise PlatformError(f"{self.name} does not support metadata updates for published videos", retryable=False)

    def remove(self, platform_video_id: str, account: Dict[str, Any], options: Dict[str, Any]) -> None:
        raise NotImplementedError


def require_public_url(client: PlatformClient, public_url: Optional[str]) -> str:
    if not public_url:
        raise PlatformError(f"{client.name} requires a publicly reachable video URL (set APP_URL)", retryable=False)
    return public_url


def truncate(text: Optional[str], limit: int) -> str:
    text = text or ""
    return text if len(text) <= limit else text[: limit - 3].rstrip() + "..."
