"""
X (Twitter) client: chunked media upload followed by a tweet.

Media upload is INIT / APPEND (5 MB chunks) / FINALIZE, then STATUS is
polled until processing succeeds before the tweet referencing it is posted.
"""

import os
import time

from app.services.platforms.base import (
    PlatformClient,
    PlatformError,
    PublishResult,
    build_caption,
    platform_request,
    response_json,
    truncate,
)


UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"
TWEETS_URL = "https://api.twitter.com/2/tweets"
CHUNK_SIZE = 5 * 1024 * 1024
MAX_STATUS_CHECKS = 60


class XClient(PlatformClient):
    platform = "x"

    def _auth(self, account):
        return {"Authorization": f"Bearer {account['access_token']}"}

    def _upload_media(self, account, video_path: str) -> str:
        total_bytes = os.path.getsize(video_path)
        response = platform_request(
            self.platform, "POST", UPLOAD_URL, "media init",
            headers=self._auth(account),
            data={
                "command": "INIT",
                "total_bytes": total_bytes,
                "media_type": "video/mp4",
                "media_category": "tweet_video",
            },
        )
        media_id = response_json(response).get("media_id_string")
        if not media_id:
            raise PlatformError("X media init returned no media id", retryable=True)

        with open(video_path, "rb") as f:
            segment = 0
            while True:
                chunk = f.read(CHUNK_SIZE)
                if not chunk:
                    break
                platform_request(
                    self.platform, "POST", UPLOAD_URL, "media append",
                    headers=self._auth(account),
                    data={"command": "APPEND", "media_id": media_id, "segment_index": segment},
                    files={"media": ("chunk", chunk)},
                    timeout=120,
                )
                segment += 1

        response = platform_request(
            self.platform, "POST", UPLOAD_URL, "media finalize",
            headers=self._auth(account), data={"command": "FINALIZE", "media_id": media_id},
        )
        processing = response_json(response).get("processing_info")

        checks = 0
        while processing and processing.get("state") in ("pending", "in_progress"):
            if checks >= MAX_STATUS_CHECKS:
                raise PlatformError("X media processing timed out", retryable=True)
            time.sleep(processing.get("check_after_secs", 5))
            response = platform_request(
                self.platform, "GET", UPLOAD_URL, "media status",
                headers=self._auth(account), params={"command": "STATUS", "media_id": media_id},
            )
            processing = response_json(response).get("processing_info")
            checks += 1

        if processing and processing.get("state") == "failed":
            error = processing.get("error", {})
            raise PlatformError(f"X media processing failed: {error.get('message', 'unknown')}", retryable=False)

        return media_id

    def upload(self, video, target, account, video_path, public_url) -> PublishResult:
        media_id = self._upload_media(account, video_path)
        response = platform_request(
            self.platform, "POST", TWEETS_URL, "tweet",
            headers={**self._auth(account), "Content-Type": "application/json"},
            json={"text": truncate(build_caption(video, target), 280), "media": {"media_ids": [media_id]}},
        )
        data = response_json(response)
        if data.get("errors"):
            raise PlatformError(f"X API error: {data['errors']}", retryable=False)
        tweet_id = (data.get("data") or {}).get("id")
        if not tweet_id:
            raise PlatformError(f"X returned no tweet id: {data}", retryable=True)

        print(f"INFO: Posted to X: {tweet_id}")
        return PublishResult(platform_video_id=tweet_id, platform_url=f"https://x.com/i/web/status/{tweet_id}")

    def remove(self, platform_video_id, account, options) -> None:
        platform_request(
            self.platform, "DELETE", f"{TWEETS_URL}/{platform_video_id}", "removal",
            headers=self._auth(account), timeout=30
        )
