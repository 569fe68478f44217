"""
Local file storage for uploaded, downloaded and rendered videos.

Paths stored in the database are relative to STORAGE_DIR so the same rows
work on any worker that mounts the storage volume. Files are served under
/storage by main.py, which is what public_url points at.
"""

import os
import shutil
import uuid
from typing import Optional, BinaryIO

from app.config import STORAGE_DIR, get_settings
from app.utils.filename_utils import storage_stem


def _ensure_parent(path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)


def new_relative_path(kind: str, user_id: str, filename: str) -> str:
    """
    Build a fresh relative path like "videos/<user>/<uuid>-<name>.mp4".

    Args:
        kind: Top-level folder (videos, thumbnails, rendered)
        user_id: Owner, used as a subfolder
        filename: Original filename; only its sanitized stem and extension are kept
    """
    stem, ext = os.path.splitext(os.path.basename(filename or "video.mp4"))
    ext = (ext or ".mp4").lower()
    safe_stem = storage_stem(stem or "video")
    return f"{kind}/{user_id}/{uuid.uuid4().hex[:12]}-{safe_stem}{ext}"


def absolute_path(relative_path: str) -> str:
    return os.path.join(STORAGE_DIR, relative_path)


def public_url(relative_path: Optional[str]) -> Optional[str]:
    if not relative_path:
        return None
    base = get_settings().app_url.rstrip("/")
    return f"{base}/storage/{relative_path}"


def save_stream(source: BinaryIO, kind: str, user_id: str, filename: str) -> str:
    """Copy a file-like object into storage and return its relative path."""
    relative_path = new_relative_path(kind, user_id, filename)
    destination = absolute_path(relative_path)
    _ensure_parent(destination)
    with open(destination, "wb") as out:
        shutil.copyfileobj(source, out)
    print(f"INFO: Stored {kind} file: {relative_path}")
    return relative_path


def import_file(local_path: str, kind: str, user_id: str) -> str:
    """Move a file produced elsewhere (download, render) into storage."""
    relative_path = new_relative_path(kind, user_id, os.path.basename(local_path))
    destination = absolute_path(relative_path)
    _ensure_parent(destination)
    shutil.move(local_path, destination)
    return relative_path


def reserve_path(kind: str, user_id: str, filename: str) -> str:
    """Relative path for a file a tool (ffmpeg) is about to write."""
    relative_path = new_relative_path(kind, user_id, filename)
    _ensure_parent(absolute_path(relative_path))
    return relative_path


def file_size(relative_path: str) -> int:
    path = absolute_path(relative_path)
    return os.path.getsize(path) if os.path.exists(path) else 0


def delete_file(relative_path: Optional[str]) -> bool:
    """Delete a stored file. Returns True if something was removed."""
    if not relative_path:
        return False
    path = absolute_path(relative_path)
    if not os.path.exists(path):
        return False
    try:
        os.remove(path)
        print(f"INFO: Deleted stored file: {relative_path}")
        return True
    except OSError as e:
        print(f"WARNING: Failed to delete {relative_path}: {str(e)}")
        return False
