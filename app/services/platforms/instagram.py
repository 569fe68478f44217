"""
Instagram Reels client (Instagram Graph API via a Facebook login).

Publishing is a two step flow: create a REELS media container from a public
video URL, wait for Instagram to finish processing it, then publish it.
"""

import time

from app.config import get_settings
from app.services.platforms.base import (
    PlatformClient,
    PlatformError,
    PublishResult,
    build_caption,
    platform_request,
    require_public_url,
    response_json,
)
from app.services.platforms.facebook import graph_url, raise_graph_error


POLL_INTERVAL_SECONDS = 5


class InstagramClient(PlatformClient):
    platform = "instagram"

    def _wait_for_container(self, container_id: str, token: str) -> None:
        deadline = time.time() + get_settings().instagram_poll_timeout
        while time.time() < deadline:
            response = platform_request(
                self.platform, "GET", graph_url(container_id), "status check",
                params={"fields": "status_code,status", "access_token": token}, timeout=30
            )
            data = response_json(response)
            raise_graph_error(self.platform, data, "status check")
            status = data.get("status_code")
            if status == "FINISHED":
                return
            if status in ("ERROR", "EXPIRED"):
                raise PlatformError(f"Instagram media processing failed: {data.get('status', status)}", retryable=False)
            time.sleep(POLL_INTERVAL_SECONDS)
        raise PlatformError("Instagram media processing timed out", retryable=True)

    def upload(self, video, target, account, video_path, public_url) -> PublishResult:
        public_url = require_public_url(self, public_url)
        ig_user_id = account.get("platform_channel_id")
        if not ig_user_id:
            raise PlatformError("Instagram business account id missing. Please reconnect your account.", retryable=False)
        token = account["access_token"]
        options = target.get("advanced_options") or {}

        response = platform_request(
            self.platform, "POST", graph_url(f"{ig_user_id}/media"), "container creation",
            data={
                "media_type": "REELS",
                "video_url": public_url,
                "caption": build_caption(video, target)[:2200],
                "share_to_feed": "true" if options.get("share_to_feed", True) else "false",
                "access_token": token,
            },
            timeout=60
        )
        data = response_json(response)
        raise_graph_error(self.platform, data, "container creation")
        container_id = data.get("id")
        if not container_id:
            raise PlatformError(f"Instagram returned no media container id: {data}", retryable=True)

        self._wait_for_container(container_id, token)

        response = platform_request(
            self.platform, "POST", graph_url(f"{ig_user_id}/media_publish"), "publish",
            data={"creation_id": container_id, "access_token": token}, timeout=60
        )
        data = response_json(response)
        raise_graph_error(self.platform, data, "publish")
        media_id = data.get("id")
        if not media_id:
            raise PlatformError(f"Instagram publish returned no media id: {data}", retryable=True)

        permalink = None
        try:
            response = platform_request(
                self.platform, "GET", graph_url(media_id), "permalink lookup",
                params={"fields": "permalink", "access_token": token}, timeout=30
            )
            permalink = response_json(response).get("permalink")
        except PlatformError as e:
            # Already published; a missing link must not trigger a re-upload
            print(f"WARNING: Instagram permalink lookup failed for {media_id}: {str(e)}")

        print(f"INFO: Published Instagram reel {media_id}")
        return PublishResult(platform_video_id=str(media_id), platform_url=permalink)

    def remove(self, platform_video_id, account, options) -> None:
        response = platform_request(
            self.platform, "DELETE", graph_url(platform_video_id), "removal",
            params={"access_token": account["access_token"]}, timeout=30
        )
        raise_graph_error(self.platform, response_json(response), "removal")
