"""
TikTok client (Content Posting API v2, direct post).

The video is sent in a single chunk: init returns an upload URL, the file is
PUT there, and TikTok publishes it asynchronously under the returned
publish_id.
"""

import os

from app.services.platforms.base import (
    PlatformClient,
    PlatformError,
    PublishResult,
    build_caption,
    platform_request,
    response_json,
)


API_BASE = "https://open.tiktokapis.com/v2"


def _raise_tiktok_error(data, action: str) -> None:
    error = (data or {}).get("error") or {}
    code = error.get("code")
    if code and code != "ok":
        retryable = code in ("rate_limit_exceeded", "internal_error")
        raise PlatformError(f"TikTok API error during {action}: {code} - {error.get('message', '')}", retryable=retryable)


class TikTokClient(PlatformClient):
    platform = "tiktok"

    def _headers(self, account):
        return {
            "Authorization": f"Bearer {account['access_token']}",
            "Content-Type": "application/json; charset=UTF-8",
        }

    def upload(self, video, target, account, video_path, public_url) -> PublishResult:
        options = target.get("advanced_options") or {}
        video_size = os.path.getsize(video_path)

        body = {
            "post_info": {
                "title": build_caption(video, target)[:2200],
                # Private by default; the user opts into public posting
                "privacy_level": options.get("privacy", "SELF_ONLY"),
                "disable_duet": not options.get("allow_duet", True),
                "disable_comment": not options.get("allow_comments", True),
                "disable_stitch": not options.get("allow_stitch", True),
            },
            "source_info": {
                "source": "FILE_UPLOAD",
                "video_size": video_size,
                "chunk_size": video_size,
                "total_chunk_count": 1,
            },
        }

        response = platform_request(
            self.platform, "POST", f"{API_BASE}/post/publish/video/init/", "upload init",
            headers=self._headers(account), json=body, timeout=60
        )
        data = response_json(response)
        _raise_tiktok_error(data, "upload init")
        publish_id = (data.get("data") or {}).get("publish_id")
        upload_url = (data.get("data") or {}).get("upload_url")
        if not publish_id or not upload_url:
            raise PlatformError(f"TikTok init returned no upload url: {data}", retryable=True)

        with open(video_path, "rb") as f:
            platform_request(
                self.platform, "PUT", upload_url, "upload",
                headers={
                    "Content-Type": "video/mp4",
                    "Content-Length": str(video_size),
                    "Content-Range": f"bytes 0-{video_size - 1}/{video_size}",
                },
                data=f, timeout=600
            )

        print(f"INFO: Uploaded to TikTok (publish_id={publish_id})")
        return PublishResult(platform_video_id=publish_id, platform_url=None)

    def remove(self, platform_video_id, account, options) -> None:
        response = platform_request(
            self.platform, "POST", f"{API_BASE}/video/delete/", "removal",
            headers=self._headers(account), json={"video_id": platform_video_id}, timeout=30
        )
        _raise_tiktok_error(response_json(response), "removal")
