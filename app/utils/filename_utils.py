"""
Filename helpers for stored media and subtitle downloads.

- safe_filename(): strip characters that are unsafe on disk or in URLs
- storage_stem(): short hyphenated stem for files under STORAGE_DIR
- encode_content_disposition_filename(): attachment header for exports
"""

import re
import unicodedata
from urllib.parse import quote


UNSAFE_CHARS = re.compile(r'[/\\:*?"<>|#%\x00-\x1f]')


def safe_filename(name: str, fallback: str = "video") -> str:
    """Replace unsafe characters with hyphens, keeping Unicode letters."""
    name = UNSAFE_CHARS.sub("-", unicodedata.normalize("NFC", name or ""))
    name = name.strip(". ")[:200]
    return name or fallback


def storage_stem(name: str, max_length: int = 50) -> str:
    """
    Stem used in stored file names ("My Upload (final)" -> "My-Upload-(final)").

    Whitespace runs become single hyphens and long names are cut at the last
    hyphen in the second half of the limit.
    """
    stem = re.sub(r"\s+", "-", safe_filename(name, fallback=""))
    stem = re.sub(r"-{2,}", "-", stem).strip("-")

    if len(stem) > max_length:
        cut = stem[:max_length]
        boundary = cut.rfind("-")
        stem = cut[:boundary] if boundary > max_length // 2 else cut

    return stem or "video"


def encode_content_disposition_filename(filename: str) -> str:
    """
    Attachment header value for a download.

    Non-ASCII names get an RFC 5987 filename* parameter next to an ASCII
    fallback.
    """
    if filename.isascii():
        return 'attachment; filename="{}"'.format(filename.replace('"', '\\"'))

    fallback = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    fallback = fallback.replace('"', '\\"') or "subtitles"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
