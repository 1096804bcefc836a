"""
Outbox for text messages that failed to send.

A failed send is kept exactly as the user wrote it, reply target included,
so it can be resent without retyping. Nothing is resent automatically.

Usage:
    outbox = Outbox(api)
    message = outbox.send(12, "On my way")   # None if it failed
    for entry in outbox.entries(12):
        outbox.resend(entry.id)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from client.errors import ChatApiError

logger = logging.getLogger(__name__)


@dataclass
class OutboxEntry:
    conversation_id: int
    body: str
    reply_to_id: int | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    error: str | None = None
    error_code: str | None = None
    attempts: int = 1


class Outbox:
    def __init__(self, api):
        self.api = api
        self._entries: dict[str, OutboxEntry] = {}

    def entries(self, conversation_id: int | None = None) -> list[OutboxEntry]:
        return [
            entry
            for entry in self._entries.values()
            if conversation_id is None or entry.conversation_id == conversation_id
        ]

    def send(self, conversation_id: int, body: str, reply_to_id: int | None = None) -> dict | None:
        """
        Send a text message, keeping it in the outbox if the call fails.

        Returns:
            The created message, or None if the send failed
        """
        try:
            return self.api.send_text(conversation_id, body, reply_to_id=reply_to_id)
        except ChatApiError as e:
            entry = OutboxEntry(
                conversation_id=conversation_id,
                body=body,
                reply_to_id=reply_to_id,
                error=e.message,
                error_code=e.error_code,
            )
            self._entries[entry.id] = entry
            logger.info(f"Kept failed send for conversation {conversation_id} ({e.error_code or e.kind})")
            return None

    def resend(self, entry_id: str) -> dict | None:
        """
        Resend an entry verbatim.

        The entry leaves the outbox on success and stays, with the new
        error, on failure.
        """
        entry = self._entries.get(entry_id)
        if entry is None:
            return None

        try:
            message = self.api.send_text(entry.conversation_id, entry.body, reply_to_id=entry.reply_to_id)
        except ChatApiError as e:
            entry.error = e.message
            entry.error_code = e.error_code
            entry.attempts += 1
            return None

        del self._entries[entry_id]
        return message

    def discard(self, entry_id: str) -> OutboxEntry | None:
        """Remove an entry, returning it so its text can go back to the compose box."""
        return self._entries.pop(entry_id, None)
