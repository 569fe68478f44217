"""
Snapchat client (Marketing API): upload media, then wrap it in a creative.
"""

from app.config import get_settings
from app.services.platforms.base import (
    PlatformClient,
    PlatformError,
    PublishResult,
    platform_request,
    response_json,
    truncate,
)


API_BASE = "https://adsapi.snapchat.com/v1"


def _raise_snap_errors(data, action: str) -> None:
    if data.get("request_status") == "ERROR" or data.get("errors"):
        raise PlatformError(f"Snapchat API error during {action}: {data.get('errors') or data.get('debug_message')}", retryable=False)


class SnapchatClient(PlatformClient):
    platform = "snapchat"

    def _headers(self, account):
        return {"Authorization": f"Bearer {account['access_token']}"}

    def _ad_account_id(self, account, options) -> str:
        ad_account_id = options.get("ad_account_id") or get_settings().snapchat_ad_account_id or account.get("platform_channel_id")
        if not ad_account_id:
            raise PlatformError("Snapchat ad account not configured. Please reconnect your account.", retryable=False)
        return ad_account_id

    def upload(self, video, target, account, video_path, public_url) -> PublishResult:
        options = target.get("advanced_options") or {}
        ad_account_id = self._ad_account_id(account, options)
        title = video.get("title") or "Video"

        response = platform_request(
            self.platform, "POST", f"{API_BASE}/adaccounts/{ad_account_id}/media", "media creation",
            headers=self._headers(account),
            json={"media": [{"name": truncate(title, 100), "type": "VIDEO", "ad_account_id": ad_account_id}]},
        )
        data = response_json(response)
        _raise_snap_errors(data, "media creation")
        try:
            media_id = data["media"][0]["media"]["id"]
        except (KeyError, IndexError, TypeError):
            raise PlatformError(f"Snapchat media creation returned no id: {data}", retryable=True)

        with open(video_path, "rb") as f:
            response = platform_request(
                self.platform, "POST", f"{API_BASE}/media/{media_id}/upload", "upload",
                headers=self._headers(account), files={"file": f}, timeout=600,
            )
        _raise_snap_errors(response_json(response), "upload")

        response = platform_request(
            self.platform, "POST", f"{API_BASE}/adaccounts/{ad_account_id}/creatives", "creative creation",
            headers=self._headers(account),
            json={"creatives": [{
                "ad_account_id": ad_account_id,
                "name": truncate(title, 100),
                "type": "SNAP_AD",
                "top_snap_media_id": media_id,
                "headline": truncate(title, 34),
                "brand_name": truncate(options.get("brand_name") or account.get("profile_name") or "Brand", 25),
                "shareable": True,
            }]},
        )
        data = response_json(response)
        _raise_snap_errors(data, "creative creation")
        try:
            creative_id = data["creatives"][0]["creative"]["id"]
        except (KeyError, IndexError, TypeError):
            raise PlatformError(f"Snapchat creative creation returned no id: {data}", retryable=True)

        print(f"INFO: Created Snapchat creative {creative_id}")
        return PublishResult(platform_video_id=creative_id, platform_url=None)

    def remove(self, platform_video_id, account, options) -> None:
        platform_request(
            self.platform, "DELETE", f"{API_BASE}/creatives/{platform_video_id}", "removal",
            headers=self._headers(account), timeout=30
        )
