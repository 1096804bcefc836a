"""
Constants for upload targets.

Size ceilings mirror the client's pre-flight checks so a file the client
accepts is never rejected by the server for size alone.
"""

from typing import Final


class UPLOAD_CONFIG:
    """Configuration for single-use upload targets."""

    # How long an allocated target accepts bytes and can be consumed
    TARGET_TTL_SECONDS: Final[int] = 15 * 60

    # Storage key prefix for uploaded chat media
    STORAGE_PREFIX: Final[str] = "chat-media"

    # MIME major type -> media kind
    KIND_BY_MIME_PREFIX: Final[dict] = {
        "image/": "image",
        "video/": "video",
        "audio/": "audio",
    }

    # Per-kind size ceilings in bytes
    MAX_BYTES: Final[dict] = {
        "image": 10 * 1024 * 1024,
        "video": 20 * 1024 * 1024,
        "audio": 12 * 1024 * 1024,
    }


def media_kind_for(content_type: str | None) -> str | None:
    """Map a MIME type to image/video/audio, or None if unsupported."""
    value = (content_type or "").lower()
    for prefix, kind in UPLOAD_CONFIG.KIND_BY_MIME_PREFIX.items():
        if value.startswith(prefix):
            return kind
    return None
