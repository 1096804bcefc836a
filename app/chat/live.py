"""
Live query registry.

A live query is a named read that a WebSocket client subscribes to. The
consumer evaluates it once on subscribe and again whenever one of the
channel groups it depends on receives a change notification; every
delivery is the complete result, never a diff.

Queries:
    conversations                   The caller's conversation list
    conversation   {conversation_id}
    messages       {conversation_id, limit?}   Newest page
    typing         {conversation_id}
    members        {conversation_id}
    starred        {conversation_id}
    users          {search?}        The user picker

Usage:
    query = get_query("messages")
    payload = query.evaluate(user, {"conversation_id": 12})
    groups = query.groups(user, {"conversation_id": 12})
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from core.exceptions import ExternalServiceError
from core.services import ServiceResult

from chat.broadcast import PRESENCE_GROUP, conversation_group, user_group
from chat.serializers import (
    ConversationRowSerializer,
    DirectoryUserSerializer,
    MemberSerializer,
    MessagePageSerializer,
    MessageSerializer,
    TypingUserSerializer,
)
from chat.services import (
    ConversationService,
    MembershipService,
    MessageQueryService,
    StarService,
    TypingService,
    UserDirectoryService,
)

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class InvalidParams(Exception):
    """Raised when a subscription's params are missing or malformed."""


def _conversation_id(params: dict) -> int:
    value = params.get("conversation_id")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidParams("conversation_id is required") from None


def _limit(params: dict) -> int | None:
    value = params.get("limit")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidParams("limit must be a whole number") from None


@dataclass(frozen=True)
class LiveQuery:
    """
    One subscribable query.

    Attributes:
        name: Query name used by clients
        run: (user, params) -> ServiceResult with JSON-ready data
        depends_on: (user, params) -> channel groups whose changes affect the result
    """

    name: str
    run: Callable[[User, dict], ServiceResult]
    depends_on: Callable[[User, dict], set[str]]

    def evaluate(self, user: User, params: dict) -> dict[str, Any]:
        try:
            result = self.run(user, params)
        except InvalidParams as e:
            result = ServiceResult.failure(str(e), error_code="INVALID_PARAMS")
        except ExternalServiceError as e:
            logger.error(f"Live query {self.name} failed: {e!r}")
            result = ServiceResult.from_exception(e)
        if not result:
            return result.to_response()
        return {"success": True, "data": result.data}

    def groups(self, user: User, params: dict) -> set[str]:
        try:
            return self.depends_on(user, params)
        except InvalidParams:
            return set()


# =============================================================================
# Query functions
# =============================================================================


def _conversations(user, params):
    rows = ConversationService.list_for_user(user)
    return ServiceResult.success(ConversationRowSerializer(rows, many=True).data)


def _conversation(user, params):
    return ConversationService.get_conversation(user, _conversation_id(params)).map(
        lambda row: ConversationRowSerializer(row).data
    )


def _messages(user, params):
    return MessageQueryService.list_messages(user, _conversation_id(params), limit=_limit(params)).map(
        lambda page: MessagePageSerializer(page).data
    )


def _typing(user, params):
    return TypingService.list_typing(user, _conversation_id(params)).map(
        lambda rows: TypingUserSerializer(rows, many=True).data
    )


def _members(user, params):
    return MembershipService.list_members(user, _conversation_id(params)).map(
        lambda rows: MemberSerializer(rows, many=True).data
    )


def _starred(user, params):
    return StarService.list_starred(user, _conversation_id(params)).map(
        lambda rows: MessageSerializer(rows, many=True).data
    )


def _users(user, params):
    rows = UserDirectoryService.list_users(user, params.get("search"))
    return ServiceResult.success(DirectoryUserSerializer(rows, many=True).data)


def _own_groups(user, params) -> set[str]:
    return {user_group(user.pk)}


def _conversation_groups(user, params) -> set[str]:
    # The user's own group carries block and privacy changes that hide the conversation
    return {conversation_group(_conversation_id(params)), user_group(user.pk)}


QUERIES: dict[str, LiveQuery] = {
    query.name: query
    for query in (
        LiveQuery("conversations", _conversations, _own_groups),
        LiveQuery("conversation", _conversation, _conversation_groups),
        LiveQuery("messages", _messages, _conversation_groups),
        LiveQuery("typing", _typing, lambda user, params: {conversation_group(_conversation_id(params))}),
        LiveQuery(
            "members",
            _members,
            lambda user, params: _conversation_groups(user, params) | {PRESENCE_GROUP},
        ),
        LiveQuery("starred", _starred, _conversation_groups),
        LiveQuery("users", _users, lambda user, params: {user_group(user.pk), PRESENCE_GROUP}),
    )
}


def get_query(name: str) -> LiveQuery | None:
    return QUERIES.get(name)
