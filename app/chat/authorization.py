"""
Membership and visibility gate for chat operations.

Every read or write touching a conversation first resolves the caller's
membership here. A missing membership, a hidden (soft-deleted) membership,
a missing conversation, and a block between the two members of a direct
conversation all produce the same NOT_FOUND result, so the API never
reveals that a conversation exists to someone who cannot see it.

Key Components:
    MembershipGate: Stateless gate with resolve/resolve_message

Error Codes:
    CONVERSATION_NOT_FOUND: No visible conversation for this caller
    MESSAGE_NOT_FOUND: No visible message for this caller

Usage:
    result = MembershipGate.resolve(user, conversation_id)
    if not result:
        return result
    membership = result.data
    conversation = membership.conversation
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import ServiceResult
from privacy.services import BlockService

from chat.models import Conversation, Membership, Message

if TYPE_CHECKING:
    from authentication.models import User


class MembershipGate:
    """
    Stateless visibility gate.

    Checks are re-run on every call; callers must never reuse a membership
    fetched by an earlier request.
    """

    @classmethod
    def other_member_id(cls, conversation: Conversation, user) -> int | None:
        """Return the other member's user id in a direct conversation."""
        user_id = getattr(user, "pk", user)
        return (
            Membership.objects.filter(conversation=conversation)
            .exclude(user_id=user_id)
            .values_list("user_id", flat=True)
            .first()
        )

    @classmethod
    def is_hidden_by_block(cls, conversation: Conversation, user) -> bool:
        """True if this is a direct conversation whose two members are blocked."""
        if conversation.is_group:
            return False
        other_id = cls.other_member_id(conversation, user)
        return other_id is not None and BlockService.is_blocked_between(user, other_id)

    @classmethod
    def resolve(
        cls,
        user: User,
        conversation_id,
        for_update: bool = False,
    ) -> ServiceResult[Membership]:
        """
        Resolve the caller's visible membership in a conversation.

        Args:
            user: Caller
            conversation_id: Conversation to open
            for_update: Lock the membership row (call inside a transaction)

        Returns:
            ServiceResult with the Membership (conversation preloaded), or
            NOT_FOUND
        """
        queryset = Membership.objects.select_related("conversation")
        if for_update:
            queryset = queryset.select_for_update(of=("self",))

        membership = queryset.filter(
            conversation_id=conversation_id,
            user=user,
            is_deleted=False,
        ).first()

        if membership is None:
            return ServiceResult.not_found("Conversation not found", error_code="CONVERSATION_NOT_FOUND")

        if cls.is_hidden_by_block(membership.conversation, user):
            return ServiceResult.not_found("Conversation not found", error_code="CONVERSATION_NOT_FOUND")

        return ServiceResult.success(membership)

    @classmethod
    def resolve_message(
        cls,
        user: User,
        message_id,
        for_update: bool = False,
    ) -> ServiceResult[tuple[Message, Membership]]:
        """
        Resolve a message through the caller's membership in its conversation.

        Returns:
            ServiceResult with (message, membership), or NOT_FOUND if either
            the message or its conversation is invisible to the caller
        """
        queryset = Message.objects.select_related("sender")
        if for_update:
            queryset = queryset.select_for_update(of=("self",))

        message = queryset.filter(pk=message_id).first()
        if message is None:
            return ServiceResult.not_found("Message not found", error_code="MESSAGE_NOT_FOUND")

        gate = cls.resolve(user, message.conversation_id)
        if not gate:
            return ServiceResult.not_found("Message not found", error_code="MESSAGE_NOT_FOUND")

        membership = gate.data
        if membership.cleared_at is not None and message.created_at <= membership.cleared_at:
            return ServiceResult.not_found("Message not found", error_code="MESSAGE_NOT_FOUND")

        return ServiceResult.success((message, membership))
