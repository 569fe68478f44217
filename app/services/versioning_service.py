"""
Video versioning: backup, draft ("current") version, autosave and diff.

A video has at most one `backup` version (its metadata before the first
edit) and at most one `current` version (the unpublished draft). Publishing
applies the draft to the video and pushes the new metadata to every
platform the video is live on; reverting restores the backup.
"""

from typing import Dict, Any, Optional, List

from app.services.publishing_service import dispatch_update_job
from app.services.supabase_service import fetch_one, fetch_all, insert_row, update_rows, delete_rows, now_iso


BACKUP = "backup"
CURRENT = "current"

MEDIA_FLAGS = ("has_subtitle_changes", "has_watermark_removal")
MEDIA_SUMMARY_KEYS = ("subtitles", "watermark_removal")


def _version_fields(source: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "title": source.get("title"),
        "description": source.get("description"),
        "tags": list(source.get("tags") or []),
        "thumbnail_path": source.get("thumbnail_path"),
    }


def get_backup(video_id: str) -> Optional[Dict[str, Any]]:
    return fetch_one("video_versions", video_id=video_id, version_type=BACKUP)


def get_current(video_id: str) -> Optional[Dict[str, Any]]:
    return fetch_one("video_versions", video_id=video_id, version_type=CURRENT)


def list_versions(video_id: str) -> List[Dict[str, Any]]:
    return fetch_all("video_versions", order_by="created_at", desc=True, video_id=video_id)


def create_backup(video: Dict[str, Any]) -> Dict[str, Any]:
    """Snapshot the video's metadata as its backup. Returns the existing backup if there is one."""
    existing = get_backup(video["id"])
    if existing:
        return existing
    print(f"INFO: Creating backup version for video {video['id']}")
    return insert_row("video_versions", {
        "video_id": video["id"],
        "version_type": BACKUP,
        **_version_fields(video),
        "changes_summary": {},
        "has_subtitle_changes": False,
        "has_watermark_removal": False,
        "created_at": now_iso(),
    })


def create_current(
    video: Dict[str, Any],
    changes: Dict[str, Any],
    changes_summary: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Store the draft version, replacing any previous draft.

    Keys missing from `changes` fall back to the video's values. `thumbnail`
    is accepted as an alias of `thumbnail_path`.
    """
    delete_rows("video_versions", video_id=video["id"], version_type=CURRENT)

    thumbnail = changes.get("thumbnail_path", changes.get("thumbnail"))
    return insert_row("video_versions", {
        "video_id": video["id"],
        "version_type": CURRENT,
        "title": changes["title"] if changes.get("title") is not None else video.get("title"),
        "description": changes["description"] if changes.get("description") is not None else video.get("description"),
        "tags": list(changes["tags"]) if changes.get("tags") is not None else list(video.get("tags") or []),
        "thumbnail_path": thumbnail if thumbnail is not None else video.get("thumbnail_path"),
        "changes_summary": changes_summary or {},
        "has_subtitle_changes": bool(changes.get("has_subtitle_changes", False)),
        "has_watermark_removal": bool(changes.get("has_watermark_removal", False)),
        "created_at": now_iso(),
    })


def get_differences(new: Dict[str, Any], old: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Field-level diff between two versions (or a version and a video).

    Returns {field: {"old": old_value, "new": new_value}} for title,
    description, tags and thumbnail. Tags compare as ordered lists.
    """
    differences: Dict[str, Dict[str, Any]] = {}

    for field in ("title", "description"):
        if new.get(field) != old.get(field):
            differences[field] = {"old": old.get(field), "new": new.get(field)}

    new_tags = list(new.get("tags") or [])
    old_tags = list(old.get("tags") or [])
    if new_tags != old_tags:
        differences["tags"] = {"old": old_tags, "new": new_tags}

    if new.get("thumbnail_path") != old.get("thumbnail_path"):
        differences["thumbnail"] = {"old": old.get("thumbnail_path"), "new": new.get("thumbnail_path")}

    return differences


def _draft_from_changes(video: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    draft = _version_fields(video)
    for field in ("title", "description", "tags"):
        if changes.get(field) is not None:
            draft[field] = list(changes[field]) if field == "tags" else changes[field]
    thumbnail = changes.get("thumbnail_path", changes.get("thumbnail"))
    if thumbnail is not None:
        draft["thumbnail_path"] = thumbnail
    return draft


def autosave(video: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Save the edited metadata as the video's draft.

    The first autosave snapshots the video as its backup. A draft identical
    to the video is not stored (and clears any stale draft) unless the
    draft also carries a subtitle render or watermark removal.
    """
    create_backup(video)

    draft = _draft_from_changes(video, changes)
    differences = get_differences(draft, video)
    flags, media_summary = _media_changes(get_current(video["id"]))

    if not differences and not any(flags.values()):
        delete_rows("video_versions", video_id=video["id"], version_type=CURRENT)
        return {"saved": False, "changes": {}, "version": None}

    version = create_current(video, {**draft, **flags}, {**differences, **media_summary})
    if differences:
        print(f"INFO: Autosaved draft for video {video['id']} ({', '.join(differences.keys())})")
    return {"saved": bool(differences), "changes": differences, "version": version}


def _media_changes(current: Optional[Dict[str, Any]]):
    if not current:
        return {"has_subtitle_changes": False, "has_watermark_removal": False}, {}
    flags = {key: bool(current.get(key)) for key in MEDIA_FLAGS}
    summary = {k: v for k, v in (current.get("changes_summary") or {}).items() if k in MEDIA_SUMMARY_KEYS}
    return flags, summary


def record_media_change(video: Dict[str, Any], flag: str, summary_key: str, summary: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mark the draft as carrying a rendered media change (subtitles or watermark removal).

    Metadata edits already in the draft are kept.
    """
    create_backup(video)
    current = get_current(video["id"])
    base = _version_fields(current) if current else _version_fields(video)
    flags, media_summary = _media_changes(current)
    flags[flag] = True
    changes_summary = {**((current or {}).get("changes_summary") or {}), **media_summary, summary_key: summary}
    return create_current(video, {**base, **flags}, changes_summary)


def _apply_to_video(video: Dict[str, Any], version: Dict[str, Any]) -> Dict[str, Any]:
    values = {**_version_fields(version), "updated_at": now_iso()}
    rows = update_rows("videos", values, id=video["id"])
    video.update(rows[0] if rows else values)
    return video


def publish_changes(video: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply the draft to the video and push it to the platforms.

    Raises:
        ValueError: If the video has no draft
    """
    current = get_current(video["id"])
    if not current:
        raise ValueError("No pending changes to publish")

    changes = get_differences(current, video)
    _apply_to_video(video, current)
    delete_rows("video_versions", video_id=video["id"], version_type=CURRENT)

    published_targets = fetch_all("video_targets", video_id=video["id"], status="success")
    dispatched = 0
    for target in published_targets:
        if dispatch_update_job(target) is not None:
            dispatched += 1

    print(f"INFO: Published changes for video {video['id']}: {dispatched}/{len(published_targets)} update job(s)")
    return {"video": video, "changes": changes, "targets": len(published_targets), "update_jobs": dispatched}


def revert_to_backup(video: Dict[str, Any]) -> Dict[str, Any]:
    """
    Restore the video's metadata from its backup and drop the draft.

    Raises:
        ValueError: If the video has no backup
    """
    backup = get_backup(video["id"])
    if not backup:
        raise ValueError("No backup version available")

    _apply_to_video(video, backup)
    delete_rows("video_versions", video_id=video["id"], version_type=CURRENT)
    print(f"INFO: Reverted video {video['id']} to its backup version")
    return video


def get_version_diff(video: Dict[str, Any]) -> Dict[str, Any]:
    """Draft vs backup, or the live video vs backup when there is no draft."""
    backup = get_backup(video["id"])
    current = get_current(video["id"])
    compared = current or video

    return {
        "has_backup": backup is not None,
        "has_draft": current is not None,
        "differences": get_differences(compared, backup) if backup else {},
        "backup": backup,
        "current": current,
    }
