"""
Fixtures for client tests.

FakeChatApi stands in for ChatApiClient in queue and outbox tests: it
records every call and can be told to fail a given step.
"""

import pytest

from client.errors import ChatApiError
from client.upload_queue import UploadFile

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeChatApi:
    def __init__(self):
        self.calls = []
        self.fail_on = {}
        self._next_reference = 0
        self._next_message = 100

    def _maybe_fail(self, step):
        error = self.fail_on.pop(step, None)
        if error is not None:
            raise error

    def allocate_upload(self, content_type, size=None):
        self.calls.append(("allocate_upload", content_type, size))
        self._maybe_fail("allocate_upload")
        self._next_reference += 1
        return {"reference": f"ref-{self._next_reference}", "upload_url": "/upload", "method": "PUT", "direct": False}

    def transfer(self, target, data, content_type, on_progress=None):
        self.calls.append(("transfer", target["reference"], len(data)))
        if on_progress is not None:
            on_progress(50)
        self._maybe_fail("transfer")
        if on_progress is not None:
            on_progress(100)

    def send_media(self, conversation_id, media_ref, media_kind, caption=None, reply_to_id=None):
        self.calls.append(("send_media", conversation_id, media_ref, media_kind, caption, reply_to_id))
        self._maybe_fail("send_media")
        self._next_message += 1
        return {"id": self._next_message, "media_kind": media_kind, "body": caption or ""}

    def send_text(self, conversation_id, body, reply_to_id=None):
        self.calls.append(("send_text", conversation_id, body, reply_to_id))
        self._maybe_fail("send_text")
        self._next_message += 1
        return {"id": self._next_message, "body": body}

    def step_names(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_api():
    return FakeChatApi()


@pytest.fixture
def network_error():
    return ChatApiError("Network error: connection reset", kind="upstream")


@pytest.fixture
def png():
    def _make(name="photo.png", size=None):
        data = PNG_BYTES if size is None else b"\x00" * size
        return UploadFile(name=name, content_type="image/png", data=data)

    return _make
