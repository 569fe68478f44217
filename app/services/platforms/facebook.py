"""
Facebook Page video client (Graph API).

Videos are posted to a Page with the Page access token. The page id comes
from the target (user picked a page), then the connected account, and as a
last resort the first page returned by /me/accounts.
"""

import json
from typing import Dict, Any, Optional, Tuple

from app.config import get_settings
from app.services.platforms.base import (
    PlatformClient,
    PlatformError,
    PublishResult,
    build_caption,
    platform_request,
    response_json,
    truncate,
)


def graph_url(path: str) -> str:
    return f"https://graph.facebook.com/{get_settings().facebook_graph_version}/{path.lstrip('/')}"


def raise_graph_error(platform: str, data: Dict[str, Any], action: str) -> None:
    """Graph API can answer 200 with an error object."""
    error = data.get("error") if isinstance(data, dict) else None
    if not error:
        return
    message = error.get("message", "unknown error")
    code = error.get("code")
    # Graph transient (1, 2) and rate limit (4, 17, 32, 613) codes
    retryable = code in (1, 2, 4, 17, 32, 613)
    name = "Facebook" if platform == "facebook" else "Instagram"
    raise PlatformError(f"{name} API error during {action}: {message}", retryable=retryable)


def _validate_page_id(page_id: str) -> str:
    page_id = str(page_id).strip()
    if not page_id.isdigit() or not (5 <= len(page_id) <= 25):
        raise PlatformError(
            "Invalid Facebook page ID format. Facebook page IDs must be numeric. Please reconnect your Facebook account.",
            retryable=False
        )
    return page_id


class FacebookClient(PlatformClient):
    platform = "facebook"
    supports_metadata_update = True

    def _page(self, target: Optional[Dict[str, Any]], account: Dict[str, Any]) -> Tuple[str, str]:
        """Return (page_id, page_access_token)."""
        page_id = (target or {}).get("facebook_page_id") or account.get("facebook_page_id")
        page_token = account.get("facebook_page_access_token")

        if page_id and page_token:
            return _validate_page_id(page_id), page_token

        response = platform_request(
            self.platform, "GET", graph_url("me/accounts"), "page lookup",
            params={"access_token": account["access_token"]}, timeout=30
        )
        pages = response_json(response).get("data") or []
        if not pages:
            raise PlatformError("No Facebook pages found. Please ensure you have a Facebook page to post to.", retryable=False)

        page = next((p for p in pages if page_id and str(p.get("id")) == str(page_id)), pages[0])
        return _validate_page_id(page["id"]), page.get("access_token") or account["access_token"]

    def upload(self, video, target, account, video_path, public_url) -> PublishResult:
        page_id, page_token = self._page(target, account)
        options = target.get("advanced_options") or {}

        data = {
            "title": truncate(video.get("title"), 255),
            "description": build_caption(video, target, include_title=False),
            "access_token": page_token,
        }
        if options.get("privacy"):
            data["privacy"] = json.dumps({"value": options["privacy"]})

        with open(video_path, "rb") as f:
            response = platform_request(
                self.platform, "POST", graph_url(f"{page_id}/videos"), "upload",
                data=data, files={"source": f}, timeout=300
            )

        payload = response_json(response)
        raise_graph_error(self.platform, payload, "upload")
        video_id = payload.get("id")
        if not video_id:
            raise PlatformError(f"Facebook upload returned no video id: {payload}", retryable=True)

        print(f"INFO: Uploaded to Facebook page {page_id}: {video_id}")
        return PublishResult(
            platform_video_id=str(video_id),
            platform_url=f"https://www.facebook.com/{page_id}/videos/{video_id}"
        )

    def update_metadata(self, video, target, account) -> PublishResult:
        _, page_token = self._page(target, account)
        response = platform_request(
            self.platform, "POST", graph_url(target["platform_video_id"]), "metadata update",
            data={
                "name": truncate(video.get("title"), 255),
                "description": build_caption(video, target, include_title=False),
                "access_token": page_token,
            },
            timeout=30
        )
        raise_graph_error(self.platform, response_json(response), "metadata update")
        return PublishResult(platform_video_id=target["platform_video_id"], platform_url=target.get("platform_url"))

    def remove(self, platform_video_id, account, options) -> None:
        token = account.get("facebook_page_access_token") or account["access_token"]
        response = platform_request(
            self.platform, "DELETE", graph_url(platform_video_id), "removal",
            params={"access_token": token}, timeout=30
        )
        raise_graph_error(self.platform, response_json(response), "removal")
