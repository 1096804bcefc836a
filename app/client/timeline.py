"""
Message timeline for the open conversation.

The live "messages" subscription delivers the newest page as a full
replacement every time anything changes. Older pages come from explicit
pagination calls and optimistic sends exist only locally until the server
confirms them. Timeline merges the three:

- Messages are unique by id; the newest copy of a message wins
- Order is created_at ascending, then id
- The oldest boundary only moves backwards
- A page requested before the conversation was switched is discarded

Usage:
    timeline = Timeline(conversation_id=12)
    timeline.apply_live(live_page)

    token = timeline.begin_older()
    page = api.list_messages(12, before=timeline.oldest_created_at)
    timeline.merge_older(page, token)
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

logger = logging.getLogger(__name__)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an API timestamp. Whole seconds carry no fraction, so text order is not time order."""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _sort_key(message: dict):
    return (parse_timestamp(message["created_at"]), message["id"])


class Timeline:
    """
    Merged view of one conversation's messages.

    Attributes:
        conversation_id: Conversation currently shown
        oldest_created_at: Exclusive cursor for the next older page
        has_more: Whether older messages remain on the server
    """

    def __init__(self, conversation_id: int | None = None):
        self.conversation_id = conversation_id
        self._generation = 0
        self._live: dict[int, dict] = {}
        self._older: dict[int, dict] = {}
        self._pending: dict[str, dict] = {}
        self.oldest_created_at: str | None = None
        self.has_more = False

    def switch(self, conversation_id: int | None) -> None:
        """Show another conversation. In-flight older pages for the old one are discarded."""
        self.conversation_id = conversation_id
        self._generation += 1
        self._live.clear()
        self._older.clear()
        self._pending.clear()
        self.oldest_created_at = None
        self.has_more = False

    def _move_boundary(self, page: dict) -> None:
        oldest = page.get("oldest_created_at")
        if oldest is None:
            return
        if self.oldest_created_at is None or parse_timestamp(oldest) < parse_timestamp(self.oldest_created_at):
            self.oldest_created_at = oldest

    def apply_live(self, page: dict) -> None:
        """Replace the live page with a new delivery."""
        live = {message["id"]: message for message in page.get("items", [])}
        # Messages pushed out of the newest page by new arrivals are kept as older history
        for message_id, message in self._live.items():
            if message_id not in live:
                self._older[message_id] = message
        self._live = live
        if not self._older:
            self.has_more = page.get("has_more", False)
        self._move_boundary(page)

    def begin_older(self) -> int:
        """Token to pass to merge_older for a page requested now."""
        return self._generation

    def merge_older(self, page: dict, token: int) -> bool:
        """
        Merge an older page.

        Returns:
            False if the page belongs to a conversation no longer shown
        """
        if token != self._generation:
            logger.debug("Discarded an older page for a conversation that is no longer open")
            return False

        for message in page.get("items", []):
            self._older[message["id"]] = message
        self._move_boundary(page)
        self.has_more = page.get("has_more", False)
        return True

    # =========================================================================
    # Optimistic sends
    # =========================================================================

    def add_pending(self, body: str, reply_to_id: int | None = None) -> str:
        """Show a message before the server confirms it. Returns its local id."""
        local_id = uuid.uuid4().hex
        self._pending[local_id] = {"local_id": local_id, "body": body, "reply_to_id": reply_to_id}
        return local_id

    def confirm_pending(self, local_id: str, message: dict) -> None:
        """Replace a pending message with the server's copy."""
        self._pending.pop(local_id, None)
        if message["id"] not in self._live:
            self._older[message["id"]] = message

    def drop_pending(self, local_id: str) -> None:
        self._pending.pop(local_id, None)

    def pending(self) -> list[dict]:
        return list(self._pending.values())

    def messages(self) -> list[dict]:
        """Confirmed messages, oldest first, each exactly once."""
        merged = dict(self._older)
        merged.update(self._live)
        return sorted(merged.values(), key=_sort_key)
