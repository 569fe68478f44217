"""
Cache service module for managing temporary files.

This module provides utilities for:
- Cleaning up expired cache files (frames, audio, subtitles, ai, videos)
- A small JSON cache with per-entry TTL, used for AI optimization results
- Listing cached files and reporting usage for the admin endpoints
"""

import hashlib
import json
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from app.config import CACHE_DIR, CACHE_TTL_HOURS, CACHE_SUBDIRS


def cache_path(subdir: str, suffix: str) -> str:
    """Fresh file path inside a cache subdirectory, e.g. cache_path("audio", ".mp3")."""
    return os.path.join(CACHE_DIR, subdir, f"{uuid.uuid4().hex[:12]}{suffix}")


def cleanup_cache() -> Dict[str, Any]:
    """
    Delete all cached files older than TTL.

    Iterates through all cache subdirectories and removes files that have
    exceeded the configured TTL. Per-entry TTLs of the JSON cache are
    enforced on read; cleanup still removes its files once they pass the
    global TTL.

    Returns:
        Dictionary containing:
        - deleted: Count of files deleted per category
        - total_deleted: Total number of files deleted
        - freed_bytes: Total disk space freed in bytes

    Example:
        >>> result = cleanup_cache()
        >>> print(f"Deleted {result['total_deleted']} files, freed {result['freed_bytes']} bytes")
    """
    cutoff = time.time() - (CACHE_TTL_HOURS * 3600)
    deleted = {subdir: 0 for subdir in CACHE_SUBDIRS}
    freed_bytes = 0

    for subdir in deleted.keys():
        dir_path = os.path.join(CACHE_DIR, subdir)
        if os.path.exists(dir_path):
            for filename in os.listdir(dir_path):
                filepath = os.path.join(dir_path, filename)
                if os.path.isfile(filepath) and os.path.getmtime(filepath) < cutoff:
                    freed_bytes += os.path.getsize(filepath)
                    os.remove(filepath)
                    deleted[subdir] += 1

    return {
        "deleted": deleted,
        "total_deleted": sum(deleted.values()),
        "freed_bytes": freed_bytes
    }


def get_cache_stats() -> Dict[str, Any]:
    """File count and size per cache subdirectory."""
    stats: Dict[str, Any] = {}
    total_bytes = 0
    for subdir in CACHE_SUBDIRS:
        dir_path = os.path.join(CACHE_DIR, subdir)
        files = 0
        size = 0
        if os.path.exists(dir_path):
            for filename in os.listdir(dir_path):
                filepath = os.path.join(dir_path, filename)
                if os.path.isfile(filepath):
                    files += 1
                    size += os.path.getsize(filepath)
        stats[subdir] = {"files": files, "bytes": size}
        total_bytes += size
    return {"directories": stats, "total_bytes": total_bytes, "ttl_hours": CACHE_TTL_HOURS}


def list_cache_files(subdir: Optional[str] = None) -> Dict[str, Any]:
    """
    Cached files with age and remaining lifetime, newest first.

    Raises:
        ValueError: unknown subdirectory
    """
    if subdir and subdir not in CACHE_SUBDIRS:
        raise ValueError(f"Invalid type. Use one of: {', '.join(CACHE_SUBDIRS)}")

    now = time.time()
    files = []
    for name in [subdir] if subdir else CACHE_SUBDIRS:
        dir_path = os.path.join(CACHE_DIR, name)
        if not os.path.isdir(dir_path):
            continue
        for entry in os.scandir(dir_path):
            if not entry.is_file():
                continue
            stat = entry.stat()
            age_hours = (now - stat.st_mtime) / 3600
            files.append({
                "filename": entry.name,
                "type": name,
                "size_bytes": stat.st_size,
                "modified_at": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                "age_hours": round(age_hours, 2),
                "expires_in_hours": round(max(0.0, CACHE_TTL_HOURS - age_hours), 2),
            })

    files.sort(key=lambda f: f["age_hours"])
    return {
        "files": files,
        "summary": {
            "total_files": len(files),
            "total_size_bytes": sum(f["size_bytes"] for f in files),
            "ttl_hours": CACHE_TTL_HOURS,
        },
    }


# =============================================================================
# JSON Cache
# =============================================================================

def _json_cache_file(key: str) -> str:
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return os.path.join(CACHE_DIR, "ai", f"{digest}.json")


def cache_get(key: str) -> Optional[Any]:
    """Cached value for `key`, or None when missing, expired or unreadable."""
    filepath = _json_cache_file(key)
    if not os.path.exists(filepath):
        return None
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            entry = json.load(f)
    except (OSError, ValueError):
        return None
    if entry.get("expires_at", 0) < time.time():
        return None
    return entry.get("value")


def cache_set(key: str, value: Any, ttl_seconds: int) -> None:
    filepath = _json_cache_file(key)
    try:
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump({"key": key, "expires_at": time.time() + ttl_seconds, "value": value}, f)
    except (OSError, TypeError) as e:
        print(f"WARNING: Failed to write cache entry {key}: {str(e)}")
