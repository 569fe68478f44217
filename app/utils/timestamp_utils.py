"""
Cue timestamp formatting for subtitle exports.
"""


def _split(seconds: float):
    total_ms = max(0, int(round(seconds * 1000)))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return hours, minutes, secs, millis


def format_seconds_to_srt(seconds: float) -> str:
    """SRT cue time: HH:MM:SS,mmm (negative values clamp to zero)."""
    hours, minutes, secs, millis = _split(seconds)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def format_seconds_to_vtt(seconds: float) -> str:
    """WebVTT cue time: HH:MM:SS.mmm"""
    hours, minutes, secs, millis = _split(seconds)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"
