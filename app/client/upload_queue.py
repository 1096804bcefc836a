"""
Client-side upload queue for chat media.

Each attached file becomes an UploadItem that moves through

    queued -> uploading -> completed
                        -> failed -> (retry) -> queued

Within one conversation exactly one item uploads at a time, first queued
first, so captions and replies land in the order they were attached.
Caption and reply target are captured when the item is enqueued; later
edits to the compose box do not change queued items.

Type and size are checked before any network call. A rejected file goes
straight to failed and the server is never contacted. An accepted file is
uploaded as one unit: allocate a fresh target, stream the bytes, then
commit the media message. A failure at any step fails the whole item and
a retry starts over with a new target.

Usage:
    queue = UploadQueue(api)
    queue.enqueue(12, UploadFile.from_path("clip.mp4"), caption="Look!")
    queue.drain(12)
    for item in queue.items(12):
        print(item.file.name, item.status, item.progress)
"""

from __future__ import annotations

import logging
import mimetypes
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from media.constants import UPLOAD_CONFIG, media_kind_for

from client.errors import ChatApiError, UploadRejected

logger = logging.getLogger(__name__)

UNSUPPORTED_FILE_MESSAGE = "Only image, video, and audio files are supported."
UPLOAD_FAILED_MESSAGE = "Failed to upload media."


class UploadStatus(str, Enum):
    QUEUED = "queued"
    UPLOADING = "uploading"
    FAILED = "failed"
    COMPLETED = "completed"


TERMINAL_STATUSES = frozenset({UploadStatus.FAILED, UploadStatus.COMPLETED})


@dataclass(frozen=True)
class UploadFile:
    """A local file to upload: name, MIME type and bytes."""

    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path, content_type: str | None = None) -> UploadFile:
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or guessed or "application/octet-stream",
            data=path.read_bytes(),
        )


@dataclass
class UploadItem:
    """
    One file in the queue.

    Attributes:
        id: Local identifier
        conversation_id: Target conversation
        file: The file being uploaded
        caption: Caption captured at enqueue time
        reply_to_id: Reply target captured at enqueue time
        status: Current state
        progress: Transfer progress in percent (0-100)
        error: Reason for the last failure
        error_code: Machine-readable code of the last failure
        message: The committed message, once completed
    """

    conversation_id: int
    file: UploadFile
    caption: str | None = None
    reply_to_id: int | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: UploadStatus = UploadStatus.QUEUED
    progress: int = 0
    error: str | None = None
    error_code: str | None = None
    message: dict | None = None

    @property
    def media_kind(self) -> str | None:
        return media_kind_for(self.file.content_type)

    def fail(self, error: str, error_code: str | None = None) -> None:
        self.status = UploadStatus.FAILED
        self.error = error
        self.error_code = error_code


def check_file(file: UploadFile) -> str:
    """
    Pre-flight type and size check.

    Returns:
        The media kind ("image", "video" or "audio")

    Raises:
        UploadRejected: Unsupported type, or above the kind's size ceiling
    """
    kind = media_kind_for(file.content_type)
    if kind is None:
        raise UploadRejected(UNSUPPORTED_FILE_MESSAGE, error_code="UNSUPPORTED_MEDIA_TYPE")

    limit = UPLOAD_CONFIG.MAX_BYTES[kind]
    if file.size > limit:
        raise UploadRejected(
            f"{kind.capitalize()} is too large. Max size is {limit // (1024 * 1024)}MB.",
            error_code="FILE_TOO_LARGE",
        )
    return kind


class UploadQueue:
    """
    Upload queue shared by every conversation of one client.

    Args:
        api: A ChatApiClient (anything with allocate_upload, transfer and send_media)
        on_change: Called with the item after every state or progress change
    """

    def __init__(self, api, on_change: Callable[[UploadItem], None] | None = None):
        self.api = api
        self.on_change = on_change
        self._items: list[UploadItem] = []

    def _changed(self, item: UploadItem) -> None:
        if self.on_change is not None:
            self.on_change(item)

    def _get(self, item_id: str) -> UploadItem | None:
        return next((item for item in self._items if item.id == item_id), None)

    def items(self, conversation_id: int | None = None) -> list[UploadItem]:
        """Items in enqueue order, optionally for one conversation."""
        if conversation_id is None:
            return list(self._items)
        return [item for item in self._items if item.conversation_id == conversation_id]

    def enqueue(
        self,
        conversation_id: int,
        file: UploadFile,
        caption: str | None = None,
        reply_to_id: int | None = None,
    ) -> UploadItem:
        """
        Add a file to the queue.

        Files that fail the pre-flight check are still added, already
        failed, so the user sees why.
        """
        item = UploadItem(
            conversation_id=conversation_id,
            file=file,
            caption=(caption or "").strip() or None,
            reply_to_id=reply_to_id,
        )
        try:
            check_file(file)
        except UploadRejected as e:
            item.fail(e.message, e.error_code)
            logger.info(f"Rejected {file.name} before upload: {e.message}")

        self._items.append(item)
        self._changed(item)
        return item

    def is_busy(self, conversation_id: int) -> bool:
        return any(
            item.status == UploadStatus.UPLOADING
            for item in self._items
            if item.conversation_id == conversation_id
        )

    def process_next(self, conversation_id: int) -> UploadItem | None:
        """
        Upload the first queued item of a conversation.

        Returns:
            The processed item (completed or failed), or None when nothing
            is queued or an upload is already running for the conversation.
        """
        if self.is_busy(conversation_id):
            return None

        item = next(
            (
                candidate
                for candidate in self._items
                if candidate.conversation_id == conversation_id and candidate.status == UploadStatus.QUEUED
            ),
            None,
        )
        if item is None:
            return None

        try:
            kind = check_file(item.file)
        except UploadRejected as e:
            item.progress = 0
            item.fail(e.message, e.error_code)
            self._changed(item)
            return item

        item.status = UploadStatus.UPLOADING
        item.progress = 0
        item.error = None
        item.error_code = None

        def on_progress(percent: int) -> None:
            item.progress = max(0, min(100, percent))
            self._changed(item)

        try:
            self._changed(item)
            target = self.api.allocate_upload(item.file.content_type, item.file.size)
            self.api.transfer(target, item.file.data, item.file.content_type, on_progress=on_progress)
            item.message = self.api.send_media(
                conversation_id,
                target["reference"],
                kind,
                caption=item.caption,
                reply_to_id=item.reply_to_id,
            )
        except ChatApiError as e:
            reason = UPLOAD_FAILED_MESSAGE if e.is_retryable else e.message
            item.fail(reason, e.error_code)
            logger.warning(f"Upload of {item.file.name} to conversation {conversation_id} failed: {e.message}")
        except Exception:
            # Any other error still ends the item
            item.fail(UPLOAD_FAILED_MESSAGE, "UPLOAD_FAILED")
            logger.exception(f"Upload of {item.file.name} to conversation {conversation_id} crashed")
        else:
            item.status = UploadStatus.COMPLETED
            item.progress = 100
            logger.info(f"Uploaded {item.file.name} to conversation {conversation_id}")

        self._changed(item)
        return item

    def drain(self, conversation_id: int) -> list[UploadItem]:
        """Process queued items of a conversation until none are left."""
        processed = []
        while (item := self.process_next(conversation_id)) is not None:
            processed.append(item)
        return processed

    def retry(self, item_id: str) -> bool:
        """Put a failed item back in the queue. Its next run allocates a new target."""
        item = self._get(item_id)
        if item is None or item.status != UploadStatus.FAILED:
            return False

        item.status = UploadStatus.QUEUED
        item.progress = 0
        item.error = None
        item.error_code = None
        item.message = None
        self._changed(item)
        return True

    def remove(self, item_id: str) -> bool:
        """Drop a failed or completed item."""
        item = self._get(item_id)
        if item is None or item.status not in TERMINAL_STATUSES:
            return False
        self._items.remove(item)
        return True

    def clear_finished(self) -> int:
        """Drop every failed and completed item. Returns how many were dropped."""
        before = len(self._items)
        self._items = [item for item in self._items if item.status not in TERMINAL_STATUSES]
        return before - len(self._items)
