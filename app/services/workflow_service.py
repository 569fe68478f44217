"""
Workflows: automatic cross-posting from a source channel.

A workflow watches a channel/profile URL on a source platform. Each run
lists the newest uploads with yt-dlp, downloads the ones not seen before,
and creates a video with a `success` target for the source platform (the
original upload) and `pending` targets for every target platform, which
are dispatched immediately.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List, Optional

from fastapi import HTTPException

from app.config import PLATFORMS, get_settings
from app.services import channel_service, plan_service, publishing_service, storage_service, ytdlp_service
from app.services.supabase_service import fetch_one, fetch_all, insert_row, update_rows, delete_rows, now_iso
from app.services.target_state import parse_datetime, PENDING, PROCESSING, SUCCESS, FAILED
from app.services.video_service import probe_and_thumbnail
from app.utils.platform_utils import get_platform_from_url


# =============================================================================
# Validation & CRUD
# =============================================================================

def validate_workflow(data: Dict[str, Any], connected: List[str]) -> List[str]:
    """
    Configuration errors for a workflow (empty list when valid).

    The source may not also be a target, and the source and every target
    must be connected to the workflow's channel.
    """
    errors = []
    source = data.get("source_platform")
    targets = data.get("target_platforms") or []

    if source not in PLATFORMS:
        errors.append("The selected source platform is invalid.")
    if not targets:
        errors.append("At least one target platform is required.")
    for platform in targets:
        if platform not in PLATFORMS:
            errors.append(f"Target platform '{platform}' is invalid.")

    if source in targets:
        errors.append("Source platform cannot be the same as target platform")

    if source in PLATFORMS and source not in connected:
        errors.append(f"Source platform '{source}' is not connected")
    for platform in targets:
        if platform in PLATFORMS and platform not in connected:
            errors.append(f"Target platform '{platform}' is not connected")

    source_url = data.get("source_url")
    if source_url and source in PLATFORMS and get_platform_from_url(source_url) != source:
        errors.append(f"Source URL does not belong to {source}")
    return errors


def _check(user_id: str, channel: Dict[str, Any], data: Dict[str, Any]) -> None:
    errors = validate_workflow(data, channel_service.connected_platforms(channel))
    allowed = plan_service.get_allowed_platforms(user_id)
    for platform in data.get("target_platforms") or []:
        if platform in PLATFORMS and platform not in allowed:
            errors.append(f"Platform '{platform}' is not available with your current plan.")
    if errors:
        raise HTTPException(status_code=422, detail="; ".join(errors))


def get_workflow(user_id: str, workflow_id: str) -> Dict[str, Any]:
    workflow = fetch_one("workflows", id=workflow_id, user_id=user_id)
    if not workflow:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return workflow


def list_workflows(user_id: str) -> List[Dict[str, Any]]:
    return fetch_all("workflows", order_by="created_at", desc=True, user_id=user_id)


def create_workflow(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Raises:
        HTTPException: 404 for a foreign channel, 422 for an invalid configuration
    """
    if not (data.get("name") or "").strip():
        raise HTTPException(status_code=422, detail="The name field is required.")
    if not data.get("source_url"):
        raise HTTPException(status_code=422, detail="The source url field is required.")

    channel = channel_service.get_channel(user_id, data.get("channel_id"))
    _check(user_id, channel, data)

    workflow = insert_row("workflows", {
        "user_id": user_id,
        "channel_id": channel["id"],
        "name": data["name"].strip(),
        "description": data.get("description"),
        "source_platform": data["source_platform"],
        "source_url": data["source_url"],
        "target_platforms": list(dict.fromkeys(data["target_platforms"])),
        "is_active": bool(data.get("is_active", True)),
        "last_run_at": None,
        "videos_processed": 0,
        "created_at": now_iso(),
    })
    print(f"INFO: Created workflow {workflow['id']} ({workflow['source_platform']} -> {workflow['target_platforms']})")
    return workflow


def update_workflow(user_id: str, workflow_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    workflow = get_workflow(user_id, workflow_id)
    fields = ("name", "description", "source_platform", "source_url", "target_platforms", "is_active")
    values = {key: data[key] for key in fields if data.get(key) is not None}

    merged = {**workflow, **values}
    channel = channel_service.get_channel(user_id, workflow["channel_id"])
    _check(user_id, channel, merged)

    if "target_platforms" in values:
        values["target_platforms"] = list(dict.fromkeys(values["target_platforms"]))
    rows = update_rows("workflows", values, id=workflow["id"], user_id=user_id)
    return rows[0] if rows else merged


def delete_workflow(user_id: str, workflow_id: str) -> None:
    workflow = get_workflow(user_id, workflow_id)
    delete_rows("workflows", id=workflow["id"], user_id=user_id)
    print(f"INFO: Workflow {workflow_id} deleted by user {user_id}")


def toggle_workflow(workflow: Dict[str, Any]) -> bool:
    """Pause or resume a workflow. Returns the new is_active."""
    is_active = not workflow.get("is_active")
    update_rows("workflows", {"is_active": is_active}, id=workflow["id"])
    workflow["is_active"] = is_active
    print(f"INFO: Workflow {workflow['id']} toggled (is_active={is_active})")
    return is_active


# =============================================================================
# Processing
# =============================================================================

def _cutoff(workflow: Dict[str, Any]) -> Optional[datetime]:
    # First run: only uploads made after the workflow was created
    return parse_datetime(workflow.get("last_run_at")) or parse_datetime(workflow.get("created_at"))


def detect_new_videos(workflow: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Entries of the source URL published after the last run (entries without a date are kept)."""
    entries = ytdlp_service.list_source_entries(workflow["source_url"], get_settings().workflow_max_entries)
    cutoff = _cutoff(workflow)
    new_entries = []
    for entry in entries:
        published = parse_datetime(entry.get("published_at"))
        if cutoff is None or published is None or published > cutoff:
            new_entries.append(entry)
    return new_entries


def find_existing_video(workflow: Dict[str, Any], platform_video_id: str) -> Optional[Dict[str, Any]]:
    """A video of the workflow's user whose source target already has this platform_video_id."""
    for target in fetch_all(
        "video_targets",
        platform=workflow["source_platform"],
        platform_video_id=platform_video_id,
    ):
        video = fetch_one("videos", id=target["video_id"], user_id=workflow["user_id"])
        if video:
            return video
    return None


def _create_video_from_entry(workflow: Dict[str, Any], entry: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Download the entry and create its video and targets. Returns the new pending targets."""
    local_path, info = ytdlp_service.download_video(entry["url"])
    relative_path = storage_service.import_file(local_path, "videos", workflow["user_id"])
    media = probe_and_thumbnail(workflow["user_id"], relative_path)

    title = (info.get("title") or entry["title"])[:255]
    description = (info.get("description") or entry.get("description") or title)[:1000]
    video = insert_row("videos", {
        "user_id": workflow["user_id"],
        "channel_id": workflow["channel_id"],
        "title": title,
        "description": description,
        "tags": list(info.get("tags") or [])[:30],
        "original_file_path": relative_path,
        **media,
        "created_at": now_iso(),
        "updated_at": now_iso(),
    })

    insert_row("video_targets", {
        "video_id": video["id"],
        "platform": workflow["source_platform"],
        "status": SUCCESS,
        "platform_video_id": entry["platform_video_id"],
        "platform_url": entry.get("url"),
        "published_at": entry.get("published_at") or now_iso(),
        "advanced_options": {},
        "created_at": now_iso(),
        "updated_at": now_iso(),
    })

    targets = []
    for platform in dict.fromkeys(workflow.get("target_platforms") or []):
        if platform == workflow["source_platform"]:
            continue
        targets.append(insert_row("video_targets", {
            "video_id": video["id"],
            "platform": platform,
            "status": PENDING,
            "publish_at": None,
            "advanced_options": {},
            "created_at": now_iso(),
            "updated_at": now_iso(),
        }))

    print(f"INFO: Workflow {workflow['id']} created video {video['id']} from {entry['platform_video_id']}")
    return targets


def process_workflow(workflow: Dict[str, Any], dry_run: bool = False) -> Dict[str, Any]:
    """
    Run one workflow.

    Entries that fail to download are reported in errors and retried on the
    next run only if they are still newer than last_run_at.
    """
    print(f"INFO: Processing workflow {workflow['id']} ({workflow['source_platform']} -> {workflow.get('target_platforms')})")
    entries = detect_new_videos(workflow)

    new_videos = 0
    new_targets = 0
    skipped = 0
    errors = []

    for entry in entries:
        if find_existing_video(workflow, entry["platform_video_id"]):
            skipped += 1
            continue
        if dry_run:
            new_videos += 1
            new_targets += len([p for p in workflow.get("target_platforms") or [] if p != workflow["source_platform"]])
            continue
        try:
            targets = _create_video_from_entry(workflow, entry)
        except (ytdlp_service.SourceError, OSError) as e:
            print(f"ERROR: Workflow {workflow['id']} failed on {entry['platform_video_id']}: {str(e)}")
            errors.append({"platform_video_id": entry["platform_video_id"], "error": str(e)})
            continue
        new_videos += 1
        new_targets += len(targets)
        for target in targets:
            publishing_service.dispatch_upload_job(target)

    if not dry_run:
        update_rows("workflows", {
            "last_run_at": now_iso(),
            "videos_processed": int(workflow.get("videos_processed") or 0) + new_videos,
        }, id=workflow["id"])

    return {
        "workflow_id": workflow["id"],
        "new_videos": new_videos,
        "new_targets": new_targets,
        "skipped": skipped,
        "errors": errors,
        "dry_run": dry_run,
    }


def process_all_workflows(dry_run: bool = False) -> Dict[str, Any]:
    """Run every active workflow. One failing workflow does not stop the others."""
    workflows = fetch_all("workflows", is_active=True)
    results = {
        "total_workflows": len(workflows),
        "processed_workflows": 0,
        "total_new_videos": 0,
        "total_new_targets": 0,
        "errors": [],
        "dry_run": dry_run,
    }

    for workflow in workflows:
        try:
            result = process_workflow(workflow, dry_run)
        except Exception as e:
            print(f"ERROR: Error processing workflow {workflow['id']}: {str(e)}")
            results["errors"].append({"workflow_id": workflow["id"], "error": str(e)})
            continue
        results["processed_workflows"] += 1
        results["total_new_videos"] += result["new_videos"]
        results["total_new_targets"] += result["new_targets"]
        results["errors"].extend({"workflow_id": workflow["id"], **err} for err in result["errors"])

    print(f"INFO: Workflow sweep done - {results['processed_workflows']}/{results['total_workflows']} workflow(s), "
          f"{results['total_new_targets']} new target(s)")
    return results


# =============================================================================
# Stats
# =============================================================================

def get_workflow_stats(user_id: str) -> Dict[str, Any]:
    workflows = fetch_all("workflows", user_id=user_id)
    day_ago = datetime.now(timezone.utc) - timedelta(days=1)
    return {
        "total_workflows": len(workflows),
        "active_workflows": sum(1 for w in workflows if w.get("is_active")),
        "inactive_workflows": sum(1 for w in workflows if not w.get("is_active")),
        "total_videos_processed": sum(int(w.get("videos_processed") or 0) for w in workflows),
        "workflows_with_recent_activity": sum(
            1 for w in workflows
            if parse_datetime(w.get("last_run_at")) and parse_datetime(w.get("last_run_at")) > day_ago
        ),
    }


def get_workflow_metrics(workflow: Dict[str, Any]) -> Dict[str, Any]:
    """Target outcomes for videos of the workflow's channel that came from its source platform."""
    videos = fetch_all("videos", user_id=workflow["user_id"], channel_id=workflow["channel_id"])
    target_platforms = set(workflow.get("target_platforms") or [])

    total_videos = 0
    counts = {"total": 0, SUCCESS: 0, FAILED: 0, "pending": 0}
    for video in videos:
        targets = fetch_all("video_targets", video_id=video["id"])
        if not any(t.get("platform") == workflow["source_platform"] for t in targets):
            continue
        total_videos += 1
        for target in targets:
            if target.get("platform") not in target_platforms:
                continue
            counts["total"] += 1
            if target.get("status") == SUCCESS:
                counts[SUCCESS] += 1
            elif target.get("status") == FAILED:
                counts[FAILED] += 1
            elif target.get("status") in (PENDING, PROCESSING):
                counts["pending"] += 1

    return {
        "total_videos": total_videos,
        "total_targets": counts["total"],
        "successful_targets": counts[SUCCESS],
        "failed_targets": counts[FAILED],
        "pending_targets": counts["pending"],
        "success_rate": round(counts[SUCCESS] / counts["total"] * 100, 2) if counts["total"] else 0,
    }
