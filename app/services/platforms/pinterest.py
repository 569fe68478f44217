"""
Pinterest client (API v5): video pins created from a public video URL.
"""

from app.config import get_settings
from app.services.platforms.base import (
    PlatformClient,
    PlatformError,
    PublishResult,
    build_caption,
    platform_request,
    require_public_url,
    response_json,
    truncate,
)


API_BASE = "https://api.pinterest.com/v5"


class PinterestClient(PlatformClient):
    platform = "pinterest"

    def _headers(self, account):
        return {"Authorization": f"Bearer {account['access_token']}", "Content-Type": "application/json"}

    def _board_id(self, account, options) -> str:
        if options.get("board_id"):
            return str(options["board_id"])

        response = platform_request(
            self.platform, "GET", f"{API_BASE}/boards", "board lookup", headers=self._headers(account)
        )
        items = response_json(response).get("items") or []
        if items:
            return str(items[0]["id"])

        response = platform_request(
            self.platform, "POST", f"{API_BASE}/boards", "board creation",
            headers=self._headers(account),
            json={"name": get_settings().pinterest_board_name, "privacy": "PUBLIC"},
        )
        board_id = response_json(response).get("id")
        if not board_id:
            raise PlatformError("Pinterest board creation returned no id", retryable=True)
        return str(board_id)

    def upload(self, video, target, account, video_path, public_url) -> PublishResult:
        public_url = require_public_url(self, public_url)
        options = target.get("advanced_options") or {}
        board_id = self._board_id(account, options)

        response = platform_request(
            self.platform, "POST", f"{API_BASE}/pins", "pin creation",
            headers=self._headers(account),
            json={
                "board_id": board_id,
                "title": truncate(video.get("title"), 100),
                "description": truncate(build_caption(video, target, include_title=False), 500),
                "media_source": {"source_type": "video_url", "url": public_url},
            },
            timeout=120,
        )
        pin_id = response_json(response).get("id")
        if not pin_id:
            raise PlatformError("Pinterest pin creation returned no id", retryable=True)

        print(f"INFO: Created Pinterest pin {pin_id} on board {board_id}")
        return PublishResult(platform_video_id=str(pin_id), platform_url=f"https://www.pinterest.com/pin/{pin_id}/")

    def remove(self, platform_video_id, account, options) -> None:
        platform_request(
            self.platform, "DELETE", f"{API_BASE}/pins/{platform_video_id}", "removal",
            headers=self._headers(account), timeout=30
        )
