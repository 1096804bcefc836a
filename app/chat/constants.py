"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits, pagination, search)
- Conversation summaries (media glyphs, reply quotes)
- Reaction management (fixed allow-list)
- Presence and typing liveness windows

All values are immutable; nothing here is changed at runtime.
Import example:
    from chat.constants import MESSAGE_CONFIG, REACTION_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_BODY_LENGTH: Final[int] = 10000  # Characters

    # Backward pagination
    PAGE_SIZE_DEFAULT: Final[int] = 40
    PAGE_SIZE_MIN: Final[int] = 1
    PAGE_SIZE_MAX: Final[int] = 100

    # Search settings
    SEARCH_MAX_RESULTS: Final[int] = 100

    # Placeholder shown instead of a deleted message's body
    DELETED_PLACEHOLDER: Final[str] = "This message was deleted"


# =============================================================================
# Conversation Summary Configuration
# =============================================================================


class SUMMARY_CONFIG:
    """Configuration for the denormalized last-message summary."""

    MEDIA_LABELS: Final[dict] = {
        "image": "📷 Photo",
        "video": "▶️ Video",
        "audio": "🎤 Voice message",
    }

    # Reply summaries are prefixed with a quote of the target
    REPLY_PREFIX: Final[str] = "↪"
    REPLY_QUOTE_LENGTH: Final[int] = 30
    REPLY_QUOTE_ELLIPSIS: Final[str] = "…"

    UNKNOWN_USER_TITLE: Final[str] = "Unknown user"


# =============================================================================
# Reaction Configuration
# =============================================================================


class REACTION_CONFIG:
    """Configuration for message reactions."""

    # Fixed allow-list, also the display order of reaction counts
    ALLOWED_EMOJIS: Final[tuple] = (
        "👍",
        "❤️",
        "😂",
        "😮",
        "😢",
        "🔥",
        "🎉",
        "🙏",
        "👀",
        "😍",
        "😎",
        "🤔",
    )


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for presence and typing tracking."""

    # A user is online if their last heartbeat is at most this old
    ONLINE_WINDOW_SECONDS: Final[int] = 30

    # Last-seen entries outlive the online window so "last seen" can be shown
    LAST_SEEN_RETENTION_SECONDS: Final[int] = 60 * 60 * 24 * 30

    # A typing entry is live if it is at most this old
    TYPING_WINDOW_SECONDS: Final[int] = 2

    # Cache expiry for a conversation's typing map
    TYPING_CACHE_TTL_SECONDS: Final[int] = 10

    # Cache key prefixes
    KEY_PREFIX_USER_PRESENCE: Final[str] = "presence:user"
    KEY_PREFIX_TYPING: Final[str] = "typing:conv"


# =============================================================================
# Delivery Status
# =============================================================================


class MESSAGE_STATUS:
    """Delivery status labels, shown to a message's author only."""

    SENT: Final[str] = "sent"
    DELIVERED: Final[str] = "delivered"
    READ: Final[str] = "read"
