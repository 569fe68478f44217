"""
FFmpeg / ffprobe helpers for uploaded videos.

This module handles:
- Probing duration, dimensions and audio presence (ffprobe JSON)
- Frame and thumbnail extraction
- Audio extraction for transcription
- Burning subtitles into a video (subtitles filter + force_style)
- Removing watermark regions (delogo filter chain)

Every helper raises MediaProcessingError with ffmpeg's stderr on failure.
"""

import json
import os
import shutil
import subprocess
from typing import Dict, Any, List, Optional

from app.config import FFMPEG_BINARY, FFPROBE_BINARY


class MediaProcessingError(Exception):
    """FFmpeg or ffprobe failed."""


def _run(cmd: List[str], timeout: int) -> subprocess.CompletedProcess:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        raise MediaProcessingError(f"{cmd[0]} not found - install FFmpeg or set FFMPEG_BINARY/FFPROBE_BINARY")
    except subprocess.TimeoutExpired:
        raise MediaProcessingError(f"{os.path.basename(cmd[0])} timed out after {timeout}s")
    return result


def check_ffmpeg() -> Dict[str, Any]:
    """Availability and version of the configured binaries."""
    status: Dict[str, Any] = {}
    for key, binary in (("ffmpeg", FFMPEG_BINARY), ("ffprobe", FFPROBE_BINARY)):
        path = shutil.which(binary) or (binary if os.path.exists(binary) else None)
        entry: Dict[str, Any] = {"binary": binary, "available": path is not None, "version": None}
        if path:
            try:
                result = subprocess.run([path, "-version"], capture_output=True, text=True, timeout=5)
                if result.returncode == 0 and result.stdout:
                    entry["version"] = result.stdout.splitlines()[0]
            except (OSError, subprocess.TimeoutExpired) as e:
                entry["error"] = str(e)
        status[key] = entry
    status["available"] = status["ffmpeg"]["available"] and status["ffprobe"]["available"]
    return status


def probe_video(video_path: str) -> Dict[str, Any]:
    """
    Read basic stream information with ffprobe.

    Returns:
        Dictionary with duration (seconds, float), width, height and has_audio
    """
    cmd = [
        FFPROBE_BINARY, '-v', 'error',
        '-show_entries', 'format=duration:stream=codec_type,width,height',
        '-of', 'json', video_path
    ]
    result = _run(cmd, timeout=60)
    if result.returncode != 0:
        raise MediaProcessingError(f"ffprobe failed: {result.stderr}")

    try:
        data = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as e:
        raise MediaProcessingError(f"ffprobe returned invalid JSON: {e}")

    streams = data.get("streams", [])
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), {})
    duration = data.get("format", {}).get("duration")

    return {
        "duration": float(duration) if duration not in (None, "N/A") else None,
        "width": video_stream.get("width"),
        "height": video_stream.get("height"),
        "has_audio": any(s.get("codec_type") == "audio" for s in streams),
    }


def extract_frame(video_path: str, timestamp_seconds: float, output_path: str, quality: int = 2) -> Dict[str, Any]:
    """
    Extract a single frame as JPEG.

    Args:
        video_path: Path to the video file
        timestamp_seconds: Position of the frame
        output_path: Where the JPEG is written
        quality: JPEG quality (1-31, lower=better)
    """
    cmd = [
        FFMPEG_BINARY,
        '-ss', str(timestamp_seconds),   # Seek position
        '-i', video_path,
        '-vframes', '1',
        '-q:v', str(quality),
        '-y',
        output_path
    ]
    result = _run(cmd, timeout=30)

    if result.returncode != 0 or not os.path.exists(output_path):
        raise MediaProcessingError(f"FFmpeg frame extraction failed: {result.stderr}")

    return {
        "file_path": output_path,
        "size_bytes": os.path.getsize(output_path),
        "timestamp": timestamp_seconds,
    }


def extract_thumbnail(video_path: str, output_path: str, duration: Optional[float] = None) -> str:
    """Thumbnail from 1s in (or 10% in for very short clips)."""
    timestamp = 1.0
    if duration is not None and duration < 10:
        timestamp = round(duration * 0.1, 2)
    extract_frame(video_path, timestamp, output_path)
    return output_path


def extract_audio(video_path: str, output_path: str) -> str:
    """Mono 16 kHz MP3, the input format the Whisper providers handle best."""
    cmd = [
        FFMPEG_BINARY, '-i', video_path,
        '-vn', '-ac', '1', '-ar', '16000',
        '-c:a', 'libmp3lame', '-b:a', '64k',
        '-y', output_path
    ]
    result = _run(cmd, timeout=600)
    if result.returncode != 0 or not os.path.exists(output_path):
        raise MediaProcessingError(f"FFmpeg audio extraction failed: {result.stderr}")
    return output_path


def _escape_filter_path(path: str) -> str:
    # subtitles= takes a filter argument: escape the characters the filter graph parser treats specially
    return path.replace("\\", "/").replace(":", "\\:").replace("'", "\\'")


def burn_subtitles(video_path: str, srt_path: str, output_path: str, force_style: Optional[str] = None) -> str:
    """Render an SRT file into the video frames."""
    subtitle_filter = f"subtitles='{_escape_filter_path(srt_path)}'"
    if force_style:
        subtitle_filter += f":force_style='{force_style}'"

    cmd = [
        FFMPEG_BINARY, '-i', video_path,
        '-vf', subtitle_filter,
        '-c:v', 'libx264', '-preset', 'medium', '-crf', '20',
        '-c:a', 'copy',
        '-y', output_path
    ]
    result = _run(cmd, timeout=3600)
    if result.returncode != 0 or not os.path.exists(output_path):
        raise MediaProcessingError(f"FFmpeg subtitle rendering failed: {result.stderr}")
    return output_path


def build_delogo_filter(regions: List[Dict[str, Any]], frame_width: int, frame_height: int) -> str:
    """
    delogo filter chain for the given boxes (pixels).

    delogo rejects boxes touching the frame border, so every box is clamped
    to start at least 1px inside the frame, end at least 1px before the
    opposite edge and be at least 1px wide/high.
    """
    if not regions:
        raise MediaProcessingError("No watermark regions to remove")

    filters = []
    for region in regions:
        x = int(max(1, min(int(region.get("x", 0)), frame_width - 3)))
        y = int(max(1, min(int(region.get("y", 0)), frame_height - 3)))
        w = int(max(1, min(int(region.get("width", 1)), frame_width - x - 1)))
        h = int(max(1, min(int(region.get("height", 1)), frame_height - y - 1)))
        filters.append(f"delogo=x={x}:y={y}:w={w}:h={h}")
    return ",".join(filters)


def remove_logo_regions(video_path: str, regions: List[Dict[str, Any]], output_path: str) -> str:
    """Blur out the given regions for the whole duration of the video."""
    info = probe_video(video_path)
    if not info.get("width") or not info.get("height"):
        raise MediaProcessingError("Could not determine video dimensions")

    cmd = [
        FFMPEG_BINARY, '-i', video_path,
        '-vf', build_delogo_filter(regions, int(info["width"]), int(info["height"])),
        '-c:v', 'libx264', '-preset', 'medium', '-crf', '20',
        '-c:a', 'copy',
        '-y', output_path
    ]
    result = _run(cmd, timeout=3600)
    if result.returncode != 0 or not os.path.exists(output_path):
        raise MediaProcessingError(f"FFmpeg watermark removal failed: {result.stderr}")
    return output_path
