"""
Storage key generation.

Keys look like:

    {path_prefix}{YYYY}/{MM}/{DD}/{base}-{fingerprint}.{ext}
    images/2024/03/15/Screenshot-2024-1a2b3c4d.png

Naming contract:
- base: original name without extension, every character outside
  [A-Za-z0-9] replaced by '-', truncated to MAX_BASE_NAME_LENGTH
  (names sharing their first 32 sanitized characters rely on the
  fingerprint alone to stay apart)
- fingerprint: first FINGERPRINT_LENGTH hex chars of the MD5 of the bytes
- ext: lower-cased, reduced to [a-z0-9]; omitted together with its '.'
  when the name has no extension
- date: UTC calendar date of the upload
"""
import hashlib
import re
from datetime import datetime, timezone
from typing import Optional, Tuple

MAX_BASE_NAME_LENGTH = 32
FINGERPRINT_LENGTH = 8
DEFAULT_BASE_NAME = "image"

_UNSAFE_BASE_CHARS = re.compile(r"[^A-Za-z0-9]")
_UNSAFE_EXT_CHARS = re.compile(r"[^a-z0-9]")


def split_name(original_name: str) -> Tuple[str, str]:
    """Split a filename into (base, extension) at the last '.'."""
    base, dot, ext = original_name.rpartition(".")
    if not dot:
        return original_name, ""
    return base, ext.lower()


def sanitize_base_name(base: str) -> str:
    sanitized = _UNSAFE_BASE_CHARS.sub("-", base)[:MAX_BASE_NAME_LENGTH]
    return sanitized or DEFAULT_BASE_NAME


def content_fingerprint(content: bytes) -> str:
    """Short content hash used to tell same-named uploads apart."""
    return hashlib.md5(content, usedforsecurity=False).hexdigest()[:FINGERPRINT_LENGTH]


def date_partition(now: Optional[datetime] = None) -> str:
    """UTC date as 'YYYY/MM/DD/'."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y/%m/%d/")


def generate_key(
    content: bytes,
    original_name: str,
    path_prefix: str,
    now: Optional[datetime] = None,
) -> str:
    """
    Derive the storage key for an upload.

    Args:
        content: Full file bytes
        original_name: Filename supplied by the caller
        path_prefix: Configured prefix (empty or ending with '/')
        now: Moment of the upload; defaults to the current UTC time

    Returns:
        Storage key string
    """
    base, ext = split_name(original_name)
    ext = _UNSAFE_EXT_CHARS.sub("", ext)

    filename = f"{sanitize_base_name(base)}-{content_fingerprint(content)}"
    if ext:
        filename = f"{filename}.{ext}"

    return f"{path_prefix}{date_partition(now)}{filename}"


__all__ = [
    "MAX_BASE_NAME_LENGTH",
    "FINGERPRINT_LENGTH",
    "generate_key",
    "split_name",
    "sanitize_base_name",
    "content_fingerprint",
    "date_partition",
]
