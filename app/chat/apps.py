"""
Chat application configuration.

This app provides the chat system with:
- Direct (1:1) and group conversations with per-user hiding
- Role-based group management (owner, admin, member)
- Text and media messages with replies, edits, reactions and stars
- Backward pagination, search, typing and presence
- Live queries over WebSocket
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"

    def ready(self):
        """Connect live-query change signals."""
        from chat import signals  # noqa: F401
