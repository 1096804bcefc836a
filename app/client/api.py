"""
HTTP client for the Relay API.

Wraps httpx with bearer-token authentication and the server's error
envelope. Every method returns the decoded JSON body (or None for 204)
and raises ChatApiError for anything else.

Usage:
    api = ChatApiClient("https://relay.example.com", token)
    row = api.open_direct(user_id=42)
    api.send_text(row["id"], "Hello!")

Uploads are three calls: allocate_upload(), transfer() and send_media().
UploadQueue sequences them; call them directly only for one-off uploads.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from datetime import date, datetime
from typing import Any

import httpx

from client.errors import UPSTREAM, ChatApiError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

# Bytes per chunk when streaming an upload; progress is reported per chunk
UPLOAD_CHUNK_BYTES = 64 * 1024

ProgressCallback = Callable[[int], None]


def _error_from_response(response: httpx.Response) -> ChatApiError:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and "error" in body:
        return ChatApiError(
            body["error"],
            status_code=response.status_code,
            error_code=body.get("error_code"),
            errors=body.get("errors"),
        )
    if isinstance(body, dict):
        # DRF field validation: {"field": ["message", ...]}
        return ChatApiError(
            "Invalid request",
            status_code=response.status_code,
            error_code="VALIDATION_ERROR",
            errors=body,
        )
    return ChatApiError(
        f"Request failed ({response.status_code})",
        status_code=response.status_code,
    )


def _iter_chunks(data: bytes, on_progress: ProgressCallback | None) -> Iterator[bytes]:
    total = len(data)
    sent = 0
    for start in range(0, total, UPLOAD_CHUNK_BYTES):
        chunk = data[start : start + UPLOAD_CHUNK_BYTES]
        yield chunk
        sent += len(chunk)
        if on_progress is not None and total:
            on_progress(round(sent * 100 / total))


def _query_value(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


class ChatApiClient:
    """
    Synchronous client for one signed-in user.

    Attributes:
        base_url: Server root, e.g. "https://relay.example.com"
        token: Identity-provider token sent as a bearer credential
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: httpx.Timeout | float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def set_token(self, token: str | None) -> None:
        self.token = token

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, path: str, authenticated: bool = True, **kwargs) -> Any:
        url = path if path.startswith("http") else f"{API_PREFIX}{path}"
        headers = self._headers() if authenticated else {}
        headers.update(kwargs.pop("headers", {}))
        try:
            response = self._http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise ChatApiError(f"Network error: {e}", kind=UPSTREAM) from e

        if response.is_error:
            error = _error_from_response(response)
            logger.info(f"{method} {url} -> {response.status_code} {error.error_code}")
            raise error

        if response.status_code == 204 or not response.content:
            return None
        if "json" not in response.headers.get("content-type", ""):
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"{method} {url} returned malformed JSON: {e}")
            raise ChatApiError(
                "Invalid response from server", status_code=response.status_code, kind=UPSTREAM
            ) from e

    # =========================================================================
    # Conversations
    # =========================================================================

    def list_conversations(self) -> list[dict]:
        return self._request("GET", "/chat/conversations/")

    def open_direct(self, user_id: int) -> dict:
        return self._request("POST", "/chat/conversations/direct/", json={"user_id": user_id})

    def create_group(self, name: str, member_ids: list[int]) -> dict:
        return self._request("POST", "/chat/conversations/group/", json={"name": name, "member_ids": member_ids})

    def get_conversation(self, conversation_id: int) -> dict:
        return self._request("GET", f"/chat/conversations/{conversation_id}/")

    def delete_conversation(self, conversation_id: int) -> None:
        """Hide the conversation and its history for the caller only."""
        self._request("DELETE", f"/chat/conversations/{conversation_id}/")

    def mark_read(self, conversation_id: int) -> dict:
        return self._request("POST", f"/chat/conversations/{conversation_id}/read/")

    # =========================================================================
    # Members
    # =========================================================================

    def list_members(self, conversation_id: int) -> list[dict]:
        return self._request("GET", f"/chat/conversations/{conversation_id}/members/")

    def add_members(self, conversation_id: int, user_ids: list[int]) -> dict:
        return self._request("POST", f"/chat/conversations/{conversation_id}/members/", json={"user_ids": user_ids})

    def remove_member(self, conversation_id: int, user_id: int) -> None:
        self._request("DELETE", f"/chat/conversations/{conversation_id}/members/{user_id}/")

    def set_role(self, conversation_id: int, user_id: int, role: str) -> dict:
        return self._request(
            "PATCH",
            f"/chat/conversations/{conversation_id}/members/{user_id}/",
            json={"role": role},
        )

    # =========================================================================
    # Messages
    # =========================================================================

    def list_messages(self, conversation_id: int, before: str | None = None, limit: int | None = None) -> dict:
        """
        One page of messages, oldest first.

        Pass the previous page's oldest_created_at as ``before`` to load
        older messages.
        """
        params = {}
        if before is not None:
            params["before"] = before
        if limit is not None:
            params["limit"] = limit
        return self._request("GET", f"/chat/conversations/{conversation_id}/messages/", params=params)

    def send_text(self, conversation_id: int, body: str, reply_to_id: int | None = None) -> dict:
        payload: dict[str, Any] = {"body": body}
        if reply_to_id is not None:
            payload["reply_to_id"] = reply_to_id
        return self._request("POST", f"/chat/conversations/{conversation_id}/messages/", json=payload)

    def send_media(
        self,
        conversation_id: int,
        media_ref: str,
        media_kind: str,
        caption: str | None = None,
        reply_to_id: int | None = None,
    ) -> dict:
        payload: dict[str, Any] = {"media_ref": media_ref, "media_kind": media_kind, "caption": caption or ""}
        if reply_to_id is not None:
            payload["reply_to_id"] = reply_to_id
        return self._request("POST", f"/chat/conversations/{conversation_id}/messages/media/", json=payload)

    def edit_message(self, message_id: int, body: str) -> dict:
        return self._request("PATCH", f"/chat/messages/{message_id}/", json={"body": body})

    def delete_message(self, message_id: int) -> dict:
        return self._request("DELETE", f"/chat/messages/{message_id}/")

    def message_edits(self, message_id: int) -> list[dict]:
        return self._request("GET", f"/chat/messages/{message_id}/edits/")

    def toggle_reaction(self, message_id: int, emoji: str) -> dict:
        return self._request("POST", f"/chat/messages/{message_id}/reactions/toggle/", json={"emoji": emoji})

    def toggle_star(self, message_id: int) -> dict:
        return self._request("POST", f"/chat/messages/{message_id}/star/toggle/")

    def list_starred(self, conversation_id: int) -> list[dict]:
        return self._request("GET", f"/chat/conversations/{conversation_id}/starred/")

    def search_messages(
        self,
        conversation_id: int | None = None,
        *,
        text: str | None = None,
        media_kind: str | None = None,
        sender_id: int | None = None,
        from_date: date | str | None = None,
        to_date: date | str | None = None,
    ) -> list[dict]:
        """Search one conversation, or every visible conversation when conversation_id is None."""
        filters = {
            "q": text,
            "media_kind": media_kind,
            "sender_id": sender_id,
            "from_date": from_date,
            "to_date": to_date,
        }
        params = {key: _query_value(value) for key, value in filters.items() if value is not None}
        if conversation_id is None:
            return self._request("GET", "/chat/messages/search/", params=params)
        return self._request("GET", f"/chat/conversations/{conversation_id}/messages/search/", params=params)

    # =========================================================================
    # Typing, presence and users
    # =========================================================================

    def set_typing(self, conversation_id: int, is_typing: bool) -> dict:
        return self._request(
            "POST", f"/chat/conversations/{conversation_id}/typing/", json={"is_typing": is_typing}
        )

    def list_typing(self, conversation_id: int) -> list[dict]:
        return self._request("GET", f"/chat/conversations/{conversation_id}/typing/")

    def heartbeat(self) -> dict:
        return self._request("POST", "/chat/presence/heartbeat/")

    def online_users(self) -> list[int]:
        return self._request("GET", "/chat/presence/online/")["user_ids"]

    def user_presence(self, user_id: int) -> dict:
        return self._request("GET", f"/chat/presence/{user_id}/")

    def list_users(self, search: str | None = None) -> list[dict]:
        params = {"search": search} if search else {}
        return self._request("GET", "/chat/users/", params=params)

    # =========================================================================
    # Privacy
    # =========================================================================

    def get_privacy_settings(self) -> dict:
        return self._request("GET", "/privacy/settings/")

    def update_privacy_settings(self, **changes) -> dict:
        return self._request("PATCH", "/privacy/settings/", json=changes)

    def toggle_block(self, user_id: int) -> dict:
        return self._request("POST", "/privacy/blocks/toggle/", json={"user_id": user_id})

    def list_blocked(self) -> list[dict]:
        return self._request("GET", "/privacy/blocks/")

    # =========================================================================
    # Uploads
    # =========================================================================

    def allocate_upload(self, content_type: str, size: int | None = None) -> dict:
        """Reserve a single-use upload target. Never reuse one across attempts."""
        payload: dict[str, Any] = {"content_type": content_type}
        if size is not None:
            payload["size"] = size
        return self._request("POST", "/media/upload-targets/", json=payload)

    def transfer(
        self,
        target: dict,
        data: bytes,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> Any:
        """
        Stream the bytes to an allocated target.

        Presigned storage URLs (target["direct"]) must not receive our
        bearer token, so the request goes out without it.
        """
        headers = {"Content-Type": content_type, "Content-Length": str(len(data))}
        return self._request(
            target.get("method", "PUT"),
            target["upload_url"],
            authenticated=not target.get("direct"),
            content=_iter_chunks(data, on_progress),
            headers=headers,
        )
