"""
Python client for the Relay chat API.

This package provides:
- ChatApiClient: httpx-based client for the chat, media and privacy endpoints
- UploadQueue: Serialized per-conversation media uploads with retry
- Timeline: Merges live pages, older pages and optimistic sends
- Outbox: Failed text sends kept verbatim for resend
- TypingDebouncer and HeartbeatSchedule: Bounded liveness writes

Usage:
    from client import ChatApiClient, UploadQueue, UploadFile

    api = ChatApiClient("https://relay.example.com", token)
    queue = UploadQueue(api)
    queue.enqueue(12, UploadFile.from_path("photo.jpg"), caption="Sunset")
    queue.drain(12)
"""

from client.api import ChatApiClient
from client.errors import ChatApiError, UploadRejected
from client.liveness import HeartbeatSchedule, TypingDebouncer
from client.outbox import Outbox, OutboxEntry
from client.timeline import Timeline
from client.upload_queue import UploadFile, UploadItem, UploadQueue, UploadStatus

__all__ = [
    "ChatApiClient",
    "ChatApiError",
    "HeartbeatSchedule",
    "Outbox",
    "OutboxEntry",
    "Timeline",
    "TypingDebouncer",
    "UploadFile",
    "UploadItem",
    "UploadQueue",
    "UploadRejected",
    "UploadStatus",
]
