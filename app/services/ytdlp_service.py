"""
YT-DLP service module.

Handles source platform access for workflows through the yt-dlp Python API:
- Flat listing of a channel/profile URL (newest entries, no download)
- Downloading a single entry into a local file
- Rate limiting between requests to the same source platforms
"""

import os
import random
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Tuple

import yt_dlp

from app.config import CACHE_DIR, YTDLP_COOKIES_FILE, YTDLP_MIN_SLEEP, YTDLP_MAX_SLEEP


class SourceError(Exception):
    """yt-dlp could not list or download from the source platform."""


# Track last source request time for rate limiting
_last_request = 0.0
_request_lock = threading.Lock()


def rate_limit() -> None:
    """Sleep a random delay when the previous request was less than YTDLP_MIN_SLEEP ago."""
    global _last_request
    with _request_lock:
        elapsed = time.time() - _last_request
        if elapsed < YTDLP_MIN_SLEEP:
            delay = random.uniform(YTDLP_MIN_SLEEP, YTDLP_MAX_SLEEP)
            print(f"INFO: Rate limiting - sleeping {delay:.1f}s before source request")
            time.sleep(delay)
        _last_request = time.time()


def _base_opts() -> Dict[str, Any]:
    opts: Dict[str, Any] = {'quiet': True, 'no_warnings': True}
    if YTDLP_COOKIES_FILE and os.path.exists(YTDLP_COOKIES_FILE):
        opts['cookiefile'] = YTDLP_COOKIES_FILE
    return opts


def entry_published_at(entry: Dict[str, Any]) -> Optional[datetime]:
    """Publication time from a yt-dlp entry (timestamp, then upload_date), or None."""
    timestamp = entry.get("timestamp") or entry.get("release_timestamp")
    if timestamp:
        return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    upload_date = entry.get("upload_date")
    if upload_date:
        try:
            return datetime.strptime(str(upload_date), "%Y%m%d").replace(tzinfo=timezone.utc)
        except ValueError:
            return None
    return None


def _normalize_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    published = entry_published_at(entry)
    return {
        "platform_video_id": str(entry.get("id")),
        "title": entry.get("title") or "Untitled video",
        "description": entry.get("description") or "",
        "url": entry.get("webpage_url") or entry.get("url"),
        "duration": entry.get("duration"),
        "published_at": published.isoformat() if published else None,
    }


def list_source_entries(url: str, limit: int = 10) -> List[Dict[str, Any]]:
    """
    Newest entries of a channel or profile URL without downloading them.

    Raises:
        SourceError: yt-dlp failed to extract the URL
    """
    opts = {**_base_opts(), 'extract_flat': 'in_playlist', 'skip_download': True, 'playlistend': limit}
    rate_limit()
    try:
        with yt_dlp.YoutubeDL(opts) as ydl:
            info = ydl.extract_info(url, download=False)
    except yt_dlp.utils.DownloadError as e:
        raise SourceError(f"Failed to list {url}: {str(e)}")

    entries = info.get("entries") if info and info.get("entries") is not None else [info]
    return [_normalize_entry(e) for e in entries if e and e.get("id")][:limit]


def download_video(url: str) -> Tuple[str, Dict[str, Any]]:
    """
    Download one video as mp4 into the cache.

    Returns:
        (local file path, yt-dlp info dict)

    Raises:
        SourceError: download failed or produced no file
    """
    uid = uuid.uuid4().hex[:8]
    output_dir = os.path.join(CACHE_DIR, "videos")
    ydl_opts = {
        **_base_opts(),
        'format': 'bv*[ext=mp4]+ba[ext=m4a]/b[ext=mp4]/bv*+ba/b',
        'outtmpl': os.path.join(output_dir, f"{uid}.%(ext)s"),
        'merge_output_format': 'mp4',
    }

    rate_limit()
    try:
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(url, download=True)
    except yt_dlp.utils.DownloadError as e:
        raise SourceError(f"Failed to download {url}: {str(e)}")

    # Find actual downloaded file
    for filename in os.listdir(output_dir):
        if filename.startswith(uid):
            return os.path.join(output_dir, filename), info or {}
    raise SourceError(f"Download of {url} produced no file")
