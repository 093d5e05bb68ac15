"""Content identity: the deduplication key and coarse type of captured text.

The hash covers the trimmed text only. Source app, window and timestamps are
deliberately left out so re-copying the same text maps to the same row.
"""

import hashlib

from clipvault.models import ContentType


def compute_hash(text: str) -> str:
    return hashlib.sha256(text.strip().encode("utf-8")).hexdigest()


def detect_content_type(text: str) -> ContentType:
    stripped = text.strip()
    if stripped.startswith(("http://", "https://")):
        return ContentType.URL
    if "@" in stripped and "." in stripped:
        return ContentType.EMAIL
    if stripped and any(c.isdigit() for c in stripped) and all(c.isdigit() or c.isspace() for c in stripped):
        return ContentType.NUMERIC
    return ContentType.TEXT


def identify(text: str) -> tuple[str, ContentType]:
    return compute_hash(text), detect_content_type(text)
