"""
YouTube client built on the YouTube Data API v3 (google-api-python-client).

Uploads use a resumable MediaFileUpload; expired access tokens are refreshed
with the stored refresh token before any call.
"""

from typing import Dict, Any, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload

from app.config import get_settings
from app.services.platforms.base import (
    PlatformClient,
    PlatformError,
    PublishResult,
    build_caption,
    error_from_status,
    truncate,
)
from app.services.social_account_service import update_tokens


TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_CATEGORY_ID = "22"  # People & Blogs


def _video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


class YouTubeClient(PlatformClient):
    platform = "youtube"
    supports_metadata_update = True

    def _credentials(self, account: Dict[str, Any], token: Optional[str]) -> Credentials:
        settings = get_settings()
        return Credentials(
            token=token,
            refresh_token=account.get("refresh_token"),
            token_uri=TOKEN_URI,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
        )

    def _service(self, account: Dict[str, Any]):
        creds = self._credentials(account, account["access_token"])
        return build("youtube", "v3", credentials=creds, cache_discovery=False)

    def _raise(self, error: HttpError, action: str):
        status = getattr(error.resp, "status", 500)
        detail = str(error)
        # Quota errors come back as 403 but clear up on their own
        if status == 403 and "quota" in detail.lower():
            raise PlatformError(f"YouTube {action} failed: quotaExceeded - {detail[:200]}", retryable=True, status_code=403)
        raise error_from_status(self.platform, action, int(status), detail)

    def refresh_access_token(self, account: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not account.get("refresh_token"):
            return None
        creds = self._credentials(account, None)
        try:
            creds.refresh(Request())
        except Exception as e:
            raise PlatformError(f"YouTube token refresh failed: {str(e)}. Please reconnect your account.", retryable=False)
        print(f"INFO: Refreshed YouTube access token for account {account.get('id')}")
        return update_tokens(account, creds.token, expires_at=creds.expiry)

    def _snippet(self, video: Dict[str, Any], target: Dict[str, Any], category_id: str) -> Dict[str, Any]:
        description = build_caption(video, target, include_title=False)
        return {
            "title": truncate(video.get("title"), 100),
            "description": truncate(description, 5000),
            "tags": [t.replace("#", "") for t in (video.get("tags") or [])],
            "categoryId": category_id,
        }

    def upload(self, video, target, account, video_path, public_url) -> PublishResult:
        options = target.get("advanced_options") or {}
        body = {
            "snippet": self._snippet(video, target, str(options.get("category_id") or DEFAULT_CATEGORY_ID)),
            "status": {
                "privacyStatus": options.get("privacy", "private"),
                "selfDeclaredMadeForKids": bool(options.get("made_for_kids", False)),
            },
        }

        youtube = self._service(account)
        media = MediaFileUpload(video_path, chunksize=-1, resumable=True)
        request = youtube.videos().insert(part="snippet,status", body=body, media_body=media)

        try:
            response = None
            while response is None:
                _, response = request.next_chunk()
        except HttpError as e:
            self._raise(e, "upload")

        video_id = response.get("id")
        if not video_id:
            raise PlatformError(f"YouTube upload returned no video id: {response}", retryable=True)
        print(f"INFO: Uploaded to YouTube: {video_id}")
        return PublishResult(platform_video_id=video_id, platform_url=_video_url(video_id))

    def update_metadata(self, video, target, account) -> PublishResult:
        youtube = self._service(account)
        video_id = target["platform_video_id"]
        try:
            existing = youtube.videos().list(part="snippet", id=video_id).execute()
            items = existing.get("items") or []
            if not items:
                raise error_from_status(self.platform, "metadata update", 404)
            category_id = items[0]["snippet"].get("categoryId", DEFAULT_CATEGORY_ID)
            youtube.videos().update(
                part="snippet",
                body={"id": video_id, "snippet": self._snippet(video, target, category_id)},
            ).execute()
        except HttpError as e:
            self._raise(e, "metadata update")
        return PublishResult(platform_video_id=video_id, platform_url=_video_url(video_id))

    def remove(self, platform_video_id, account, options) -> None:
        youtube = self._service(account)
        try:
            youtube.videos().delete(id=platform_video_id).execute()
        except HttpError as e:
            self._raise(e, "removal")
