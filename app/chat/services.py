"""
Chat system service layer.

This module provides the business logic for the chat system, encapsulating
all operations on conversations, memberships, messages and liveness.

Services:
    ConversationService: Direct/group creation, listing, read marks, hiding
    MembershipService: Group membership management (add, remove, roles)
    MessageService: Send (text and media), edit, delete, edit history
    ReactionService: Toggle emoji reactions from a fixed allow-list
    StarService: Private per-user message pins
    MessageStatusService: Sent/delivered/read status for a message's author
    MessagePresenter: Batched rendering of messages for one viewer
    MessageQueryService: Backward pagination and search
    TypingService: Short-lived typing indicators (cache)
    PresenceService: Heartbeat-driven online state (cache)
    UserDirectoryService: User picker with presence and block state

Design Principles:
    - Services are stateless (use class methods)
    - Every conversation-scoped call goes through MembershipGate first
    - Expected failures return ServiceResult.failure() with a FailureKind
    - Mutations run in one transaction; a failed precondition aborts
      before any write
    - Message.created_at strictly increases within a conversation

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.get_or_create_direct(alice, bob.id)
    conversation_id = result.data["id"]

    result = MessageService.send_text(alice, conversation_id, "Hello!")
    if not result:
        return Response(result.to_response(), status=result.http_status)
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from datetime import timezone as dt_timezone
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db.models import Count, Max, Q
from django.db.models.functions import Lower
from django.utils import timezone

from core.services import BaseService, ServiceResult
from media.services import UploadTargetService
from privacy.models import LastSeenVisibility
from privacy.services import BlockService, PrivacyService

from chat.authorization import MembershipGate
from chat.broadcast import notify_conversation, notify_presence
from chat.constants import (
    MESSAGE_CONFIG,
    MESSAGE_STATUS,
    PRESENCE_CONFIG,
    REACTION_CONFIG,
    SUMMARY_CONFIG,
)
from chat.models import (
    Conversation,
    MediaKind,
    Membership,
    MembershipRole,
    Message,
    MessageEdit,
    MessageReaction,
    MessageStar,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from authentication.models import User
    from privacy.models import PrivacySettings


# =============================================================================
# Summary helpers
# =============================================================================


def _quote(message: Message) -> str:
    if message.is_deleted:
        text = MESSAGE_CONFIG.DELETED_PLACEHOLDER
    elif message.body:
        text = message.body
    elif message.media_kind:
        text = SUMMARY_CONFIG.MEDIA_LABELS[message.media_kind]
    else:
        text = ""

    text = " ".join(text.split())
    if len(text) > SUMMARY_CONFIG.REPLY_QUOTE_LENGTH:
        text = text[: SUMMARY_CONFIG.REPLY_QUOTE_LENGTH] + SUMMARY_CONFIG.REPLY_QUOTE_ELLIPSIS
    return text


def build_summary(body: str, media_kind: str | None = None, reply_to: Message | None = None) -> str:
    """
    Build the conversation-list summary for a newly sent message.

    Examples:
        build_summary("hi")                      -> 'hi'
        build_summary("beach", "image")          -> '📷 Photo beach'
        build_summary("yes", reply_to=question)  -> '↪ "are you coming?" yes'
    """
    if media_kind:
        label = SUMMARY_CONFIG.MEDIA_LABELS[media_kind]
        text = f"{label} {body}" if body else label
    else:
        text = body

    if reply_to is not None:
        text = f'{SUMMARY_CONFIG.REPLY_PREFIX} "{_quote(reply_to)}" {text}'
    return text


def _validate_body(body: str | None, allow_empty: bool) -> ServiceResult[str]:
    text = (body or "").strip()
    if not text and not allow_empty:
        return ServiceResult.failure("Message cannot be empty", error_code="EMPTY_MESSAGE")
    if len(text) > MESSAGE_CONFIG.MAX_BODY_LENGTH:
        return ServiceResult.failure(
            f"Message cannot exceed {MESSAGE_CONFIG.MAX_BODY_LENGTH} characters",
            error_code="MESSAGE_TOO_LONG",
        )
    return ServiceResult.success(text)


# =============================================================================
# Conversations
# =============================================================================


class ConversationService(BaseService):
    """
    Service for conversation lifecycle and the caller's conversation list.

    Methods:
        get_or_create_direct: Find or create the 1:1 conversation with a user
        create_group: Create a named group with the caller as owner
        list_for_user: The caller's visible conversations, newest first
        get_conversation: One conversation row, through the gate
        mark_as_read: Advance the caller's read mark
        delete_for_caller: Hide a conversation and its history for the caller
    """

    @classmethod
    def unread_count(cls, membership: Membership) -> int:
        """Messages from others after both the read mark and the clear mark."""
        queryset = Message.objects.filter(conversation_id=membership.conversation_id).exclude(
            sender_id=membership.user_id
        )
        if membership.last_read_at is not None:
            queryset = queryset.filter(created_at__gt=membership.last_read_at)
        if membership.cleared_at is not None:
            queryset = queryset.filter(created_at__gt=membership.cleared_at)
        return queryset.count()

    @classmethod
    def _row(cls, membership: Membership, members: list[Membership]) -> dict:
        conversation = membership.conversation
        other = next((m for m in members if m.user_id != membership.user_id), None)

        if conversation.is_group:
            title = conversation.name or SUMMARY_CONFIG.UNKNOWN_USER_TITLE
            image_url = ""
        else:
            title = other.user.display_name if other else SUMMARY_CONFIG.UNKNOWN_USER_TITLE
            image_url = other.user.avatar_url if other else ""

        return {
            "id": conversation.id,
            "title": title,
            "is_group": conversation.is_group,
            "my_role": membership.effective_role if conversation.is_group else None,
            "member_count": sum(1 for m in members if not m.is_deleted),
            "unread_count": cls.unread_count(membership),
            "image_url": image_url,
            "other_user_id": None if conversation.is_group or other is None else other.user_id,
            "last_message_text": conversation.last_message_text,
            "last_message_at": conversation.last_message_at,
            "updated_at": conversation.updated_at,
        }

    @classmethod
    def _build_rows(cls, user: User, memberships: list[Membership]) -> list[dict]:
        by_conversation: dict[int, list[Membership]] = defaultdict(list)
        for row in Membership.objects.filter(
            conversation_id__in=[m.conversation_id for m in memberships]
        ).select_related("user"):
            by_conversation[row.conversation_id].append(row)

        blocked = BlockService.blocked_ids_for(user)
        rows = []
        for membership in memberships:
            members = by_conversation[membership.conversation_id]
            if membership.conversation.is_direct and any(
                m.user_id in blocked for m in members if m.user_id != user.pk
            ):
                continue
            rows.append(cls._row(membership, members))
        return rows

    @classmethod
    def list_for_user(cls, user: User) -> list[dict]:
        """
        List the caller's visible conversations.

        Hidden memberships and blocked direct conversations are skipped.
        Rows are sorted by conversation updated_at, newest first.
        """
        memberships = list(
            Membership.objects.filter(user=user, is_deleted=False).select_related("conversation")
        )
        rows = cls._build_rows(user, memberships)
        rows.sort(key=lambda row: row["updated_at"], reverse=True)
        return rows

    @classmethod
    def get_conversation(cls, user: User, conversation_id) -> ServiceResult[dict]:
        gate = MembershipGate.resolve(user, conversation_id)
        if not gate:
            return gate
        rows = cls._build_rows(user, [gate.data])
        return ServiceResult.success(rows[0])

    @classmethod
    def get_or_create_direct(cls, caller: User, target_id) -> ServiceResult[dict]:
        """
        Find or create the direct conversation between caller and target.

        An existing conversation is reused even if the caller hid it; the
        caller's membership is restored and marked read. Creating a new
        one requires that neither side blocked the other and that both
        accept messages.

        Args:
            caller: Requesting user
            target_id: The other user's id

        Returns:
            ServiceResult with the conversation row

        Error codes:
            CANNOT_MESSAGE_SELF: Target is the caller
            USER_NOT_FOUND: Target does not exist, or a block exists
            MESSAGING_NOT_ALLOWED: Either side opted out of messages
        """
        User = get_user_model()

        if str(target_id) == str(caller.pk):
            return ServiceResult.failure("Cannot message yourself", error_code="CANNOT_MESSAGE_SELF")

        target = User.objects.filter(pk=target_id, is_active=True).first()
        if target is None:
            return ServiceResult.not_found("User not found", error_code="USER_NOT_FOUND")

        if BlockService.is_blocked_between(caller, target):
            cls.get_logger().warning(f"User {caller.id} tried to open a blocked direct chat with {target.id}")
            return ServiceResult.not_found("User not found", error_code="USER_NOT_FOUND")

        now = timezone.now()
        with cls.atomic():
            # Lock both users in id order so concurrent opens of the same pair serialize
            list(User.objects.select_for_update().filter(pk__in=[caller.pk, target.pk]).order_by("pk"))

            conversation = (
                Conversation.objects.filter(is_group=False, memberships__user=caller)
                .filter(memberships__user=target)
                .first()
            )

            if conversation is not None:
                membership = Membership.objects.get(conversation=conversation, user=caller)
                membership.last_read_at = now
                if membership.is_deleted:
                    membership.restore(extra_fields=["last_read_at"])
                else:
                    membership.save(update_fields=["last_read_at", "updated_at"])
                cls.get_logger().info(f"User {caller.id} reopened direct conversation {conversation.id}")
            else:
                if not PrivacyService.can_message(caller, target):
                    cls.get_logger().warning(
                        f"User {caller.id} cannot start a conversation with {target.id}: messaging disabled"
                    )
                    return ServiceResult.forbidden(
                        "This user is not accepting messages",
                        error_code="MESSAGING_NOT_ALLOWED",
                    )

                conversation = Conversation.objects.create(is_group=False, created_by=caller)
                Membership.objects.create(
                    conversation=conversation, user=caller, joined_at=now, last_read_at=now
                )
                Membership.objects.create(conversation=conversation, user=target, joined_at=now)
                cls.get_logger().info(
                    f"Created direct conversation {conversation.id} between {caller.id} and {target.id}"
                )

        return cls.get_conversation(caller, conversation.id)

    @classmethod
    def create_group(cls, caller: User, name: str, member_ids: Iterable) -> ServiceResult[dict]:
        """
        Create a group conversation with the caller as owner.

        Args:
            caller: Creator, becomes owner
            name: Group name (required after trimming)
            member_ids: Other members; duplicates and the caller are ignored

        Error codes:
            NAME_REQUIRED: Blank name
            NOT_ENOUGH_MEMBERS: Fewer than two distinct other users
            USER_NOT_FOUND: A listed user does not exist
        """
        User = get_user_model()

        trimmed = (name or "").strip()
        if not trimmed:
            return ServiceResult.failure("Group name is required", error_code="NAME_REQUIRED")

        others = list(dict.fromkeys(str(member_id) for member_id in member_ids if str(member_id) != str(caller.pk)))
        if len(others) < 2:
            return ServiceResult.failure(
                "Select at least 2 other users",
                error_code="NOT_ENOUGH_MEMBERS",
            )

        users = list(User.objects.filter(pk__in=others, is_active=True))
        if len(users) != len(others):
            return ServiceResult.not_found("User not found", error_code="USER_NOT_FOUND")

        now = timezone.now()
        with cls.atomic():
            conversation = Conversation.objects.create(is_group=True, name=trimmed, created_by=caller)
            Membership.objects.create(
                conversation=conversation,
                user=caller,
                role=MembershipRole.OWNER,
                joined_at=now,
                last_read_at=now,
            )
            Membership.objects.bulk_create(
                [
                    Membership(
                        conversation=conversation,
                        user=user,
                        role=MembershipRole.MEMBER,
                        joined_at=now,
                    )
                    for user in users
                ]
            )

        cls.get_logger().info(
            f"User {caller.id} created group {conversation.id} with {len(users)} other members"
        )
        return cls.get_conversation(caller, conversation.id)

    @classmethod
    def mark_as_read(cls, user: User, conversation_id) -> ServiceResult[dict]:
        with cls.atomic():
            gate = MembershipGate.resolve(user, conversation_id, for_update=True)
            if not gate:
                return gate
            membership = gate.data
            membership.last_read_at = timezone.now()
            membership.save(update_fields=["last_read_at", "updated_at"])

        return ServiceResult.success({"last_read_at": membership.last_read_at})

    @classmethod
    def delete_for_caller(cls, user: User, conversation_id) -> ServiceResult[dict]:
        """
        Hide a conversation for the caller only.

        Everything up to now disappears from the caller's view; other
        members are unaffected. In a direct conversation a later inbound
        message brings the conversation back with only the new history.
        """
        with cls.atomic():
            gate = MembershipGate.resolve(user, conversation_id, for_update=True)
            if not gate:
                return gate
            membership = gate.data
            membership.cleared_at = timezone.now()
            membership.soft_delete(extra_fields=["cleared_at"])

        cls.get_logger().info(f"User {user.id} deleted conversation {conversation_id} for themselves")
        return ServiceResult.success({"deleted": True})


# =============================================================================
# Group membership
# =============================================================================


class MembershipService(BaseService):
    """
    Service for group membership.

    Role Rules:
        - Owners and admins may add members
        - Removal requires strictly outranking the target; owners are never removed
        - Only the owner changes roles, and only between admin and member
    """

    @classmethod
    def _group_gate(cls, actor: User, conversation_id) -> ServiceResult[Membership]:
        gate = MembershipGate.resolve(actor, conversation_id, for_update=True)
        if not gate:
            return gate
        if not gate.data.conversation.is_group:
            return ServiceResult.failure(
                "This action is only available in group conversations",
                error_code="NOT_A_GROUP",
            )
        return gate

    @classmethod
    def add_members(cls, actor: User, conversation_id, user_ids: Iterable) -> ServiceResult[dict]:
        """
        Add users to a group.

        Previously removed or self-hidden members get their old row
        restored with its stored role (removal already demoted it to
        member, and owners are never removed); current members are skipped.

        Returns:
            ServiceResult with {"added": <count>}
        """
        User = get_user_model()

        with cls.atomic():
            gate = cls._group_gate(actor, conversation_id)
            if not gate:
                return gate
            actor_membership = gate.data

            if not actor_membership.is_admin_or_owner:
                cls.get_logger().warning(f"User {actor.id} tried to add members to {conversation_id}")
                return ServiceResult.forbidden(
                    "Only owners and admins can add members",
                    error_code="ADMIN_REQUIRED",
                )

            wanted = {str(user_id) for user_id in user_ids}
            if not wanted:
                return ServiceResult.failure("Select at least one user", error_code="NO_USERS_SELECTED")

            users = list(User.objects.filter(pk__in=wanted, is_active=True))
            if len(users) != len(wanted):
                return ServiceResult.not_found("User not found", error_code="USER_NOT_FOUND")

            conversation = actor_membership.conversation
            existing = {
                m.user_id: m
                for m in Membership.objects.select_for_update().filter(
                    conversation=conversation, user__in=users
                )
            }

            added = 0
            now = timezone.now()
            for user in users:
                membership = existing.get(user.pk)
                if membership is None:
                    Membership.objects.create(
                        conversation=conversation,
                        user=user,
                        role=MembershipRole.MEMBER,
                        joined_at=now,
                    )
                    added += 1
                elif membership.is_deleted:
                    membership.restore()
                    added += 1

            if added:
                conversation.touch()

        cls.get_logger().info(f"User {actor.id} added {added} members to group {conversation.id}")
        return ServiceResult.success({"added": added})

    @classmethod
    def remove_member(cls, actor: User, conversation_id, user_id) -> ServiceResult[dict]:
        with cls.atomic():
            gate = cls._group_gate(actor, conversation_id)
            if not gate:
                return gate
            actor_membership = gate.data

            target = (
                Membership.objects.select_for_update()
                .filter(conversation_id=actor_membership.conversation_id, user_id=user_id, is_deleted=False)
                .first()
            )
            if target is None:
                return ServiceResult.not_found("Member not found", error_code="MEMBER_NOT_FOUND")

            if target.is_owner:
                cls.get_logger().warning(f"User {actor.id} tried to remove the owner of {conversation_id}")
                return ServiceResult.forbidden("The owner cannot be removed", error_code="CANNOT_REMOVE_OWNER")

            if actor_membership.rank <= target.rank:
                cls.get_logger().warning(
                    f"User {actor.id} tried to remove user {user_id} from {conversation_id} without outranking"
                )
                return ServiceResult.forbidden(
                    "You can only remove members below your role",
                    error_code="INSUFFICIENT_ROLE",
                )

            # A removed member comes back as a plain member if re-added
            target.role = MembershipRole.MEMBER
            target.soft_delete(extra_fields=["role"])
            actor_membership.conversation.touch()

        TypingService.clear(actor_membership.conversation_id, user_id)
        cls.get_logger().info(f"User {actor.id} removed user {user_id} from group {conversation_id}")
        return ServiceResult.success({"removed": True})

    @classmethod
    def set_role(cls, actor: User, conversation_id, user_id, role: str) -> ServiceResult[dict]:
        """
        Promote or demote a group member.

        Error codes:
            OWNER_REQUIRED: Actor is not the owner
            INVALID_ROLE: Role is not admin or member
            MEMBER_NOT_FOUND: Target is not an active member
            CANNOT_CHANGE_OWNER: Target is the owner
        """
        if role not in (MembershipRole.ADMIN, MembershipRole.MEMBER):
            return ServiceResult.failure(
                "Role must be admin or member",
                error_code="INVALID_ROLE",
                errors={"role": [f"Must be one of: {MembershipRole.ADMIN}, {MembershipRole.MEMBER}."]},
            )

        with cls.atomic():
            gate = cls._group_gate(actor, conversation_id)
            if not gate:
                return gate
            actor_membership = gate.data

            if not actor_membership.is_owner:
                cls.get_logger().warning(f"User {actor.id} tried to change roles in {conversation_id}")
                return ServiceResult.forbidden("Only the owner can change roles", error_code="OWNER_REQUIRED")

            target = (
                Membership.objects.select_for_update()
                .filter(conversation_id=actor_membership.conversation_id, user_id=user_id, is_deleted=False)
                .first()
            )
            if target is None:
                return ServiceResult.not_found("Member not found", error_code="MEMBER_NOT_FOUND")

            if target.is_owner:
                return ServiceResult.forbidden("The owner's role cannot change", error_code="CANNOT_CHANGE_OWNER")

            target.role = role
            target.save(update_fields=["role", "updated_at"])
            actor_membership.conversation.touch()

        cls.get_logger().info(f"User {actor.id} set role of {user_id} in {conversation_id} to {role}")
        return ServiceResult.success({"user_id": target.user_id, "role": target.effective_role})

    @classmethod
    def list_members(cls, user: User, conversation_id) -> ServiceResult[list[dict]]:
        """Active members, owners first, then admins, then by join time."""
        gate = MembershipGate.resolve(user, conversation_id)
        if not gate:
            return gate

        members = list(
            Membership.objects.filter(conversation_id=conversation_id, is_deleted=False).select_related("user")
        )
        members.sort(key=lambda m: (-m.rank, m.joined_at, m.pk))
        online = PresenceService.visible_online_map(user, [m.user_id for m in members])

        return ServiceResult.success(
            [
                {
                    "user_id": m.user_id,
                    "display_name": m.user.display_name,
                    "avatar_url": m.user.avatar_url,
                    "role": m.effective_role,
                    "joined_at": m.joined_at,
                    "is_online": online.get(m.user_id, False),
                }
                for m in members
            ]
        )


# =============================================================================
# Messages
# =============================================================================


class MessageService(BaseService):
    """
    Service for the message ledger.

    Send Pipeline (first failing check wins, nothing is written):
        1. Caller has a visible membership (NOT_FOUND otherwise; this also
           covers a missing conversation and a block in a direct chat)
        2. Direct only: both sides accept messages (FORBIDDEN)
        3. Body: non-empty for text, length limit for both (VALIDATION)
        4. Reply target lives in the same conversation (VALIDATION)
        5. Media only: the upload target is consumable (VALIDATION)
    """

    @classmethod
    def send_text(cls, caller: User, conversation_id, body: str, reply_to_id=None) -> ServiceResult[Message]:
        return cls._send(caller, conversation_id, body, reply_to_id)

    @classmethod
    def send_media(
        cls,
        caller: User,
        conversation_id,
        media_ref: str,
        media_kind: str,
        caption: str = "",
        reply_to_id=None,
    ) -> ServiceResult[Message]:
        """
        Send a media message from a previously uploaded target.

        Args:
            caller: Sender
            conversation_id: Target conversation
            media_ref: Reference returned when the upload target was allocated
            media_kind: image, video or audio
            caption: Optional text shown with the media
            reply_to_id: Optional message being replied to
        """
        return cls._send(caller, conversation_id, caption, reply_to_id, media_ref=media_ref, media_kind=media_kind)

    @classmethod
    def _send(
        cls,
        caller: User,
        conversation_id,
        body: str | None,
        reply_to_id,
        media_ref: str | None = None,
        media_kind: str | None = None,
    ) -> ServiceResult[Message]:
        is_media = media_ref is not None

        with cls.atomic():
            gate = MembershipGate.resolve(caller, conversation_id, for_update=True)
            if not gate:
                return gate
            membership = gate.data
            conversation = Conversation.objects.select_for_update().get(pk=membership.conversation_id)

            recipient_id = None
            if conversation.is_direct:
                recipient_id = MembershipGate.other_member_id(conversation, caller)
                if recipient_id is not None and not PrivacyService.can_message(caller, recipient_id):
                    cls.get_logger().warning(
                        f"User {caller.id} blocked from messaging {recipient_id} by privacy settings"
                    )
                    return ServiceResult.forbidden(
                        "This user is not accepting messages",
                        error_code="MESSAGING_NOT_ALLOWED",
                    )

            checked = _validate_body(body, allow_empty=is_media)
            if not checked:
                return checked
            text = checked.data

            reply_to = None
            if reply_to_id is not None:
                reply_to = Message.objects.filter(pk=reply_to_id, conversation=conversation).first()
                if reply_to is None or (
                    membership.cleared_at is not None and reply_to.created_at <= membership.cleared_at
                ):
                    return ServiceResult.failure(
                        "Reply target not found in this conversation",
                        error_code="INVALID_REPLY_TARGET",
                    )

            if is_media:
                if media_kind not in MediaKind.values:
                    return ServiceResult.failure(
                        "Media kind must be image, video or audio",
                        error_code="INVALID_MEDIA_KIND",
                    )
                consumed = UploadTargetService.consume(caller, media_ref, media_kind)
                if not consumed:
                    return consumed

            created_at = timezone.now()
            if conversation.last_message_at is not None and created_at <= conversation.last_message_at:
                created_at = conversation.last_message_at + timedelta(microseconds=1)

            message = Message.objects.create(
                conversation=conversation,
                sender=caller,
                body=text,
                reply_to=reply_to,
                media_kind=media_kind if is_media else None,
                media_ref=media_ref or "",
                created_at=created_at,
            )

            conversation.last_message_text = build_summary(text, message.media_kind, reply_to)
            conversation.last_message_at = created_at
            conversation.touch(extra_fields=["last_message_text", "last_message_at"])

            membership.last_read_at = created_at
            membership.save(update_fields=["last_read_at", "updated_at"])

            if conversation.is_direct:
                for hidden in Membership.objects.filter(conversation=conversation, is_deleted=True).exclude(
                    user=caller
                ):
                    hidden.restore()

        TypingService.clear(conversation.id, caller.pk)
        cls.get_logger().info(
            f"User {caller.id} sent {message.media_kind or 'text'} message {message.id} "
            f"to conversation {conversation.id}"
        )
        return ServiceResult.success(message)

    @classmethod
    def edit_message(cls, caller: User, message_id, body: str) -> ServiceResult[Message]:
        """
        Replace a message's body, recording the previous body.

        Only the sender may edit, and deleted messages cannot be edited.
        Submitting the current body is a no-op.

        Error codes:
            MESSAGE_NOT_FOUND: Unknown or invisible message
            NOT_MESSAGE_SENDER: Caller did not send the message
            MESSAGE_DELETED: Message was deleted
            EMPTY_MESSAGE / MESSAGE_TOO_LONG: Invalid new body
        """
        with cls.atomic():
            resolved = MembershipGate.resolve_message(caller, message_id, for_update=True)
            if not resolved:
                return resolved
            message, _ = resolved.data

            if message.sender_id != caller.pk:
                cls.get_logger().warning(f"User {caller.id} tried to edit message {message.id}")
                return ServiceResult.forbidden("You can only edit your own messages", error_code="NOT_MESSAGE_SENDER")

            if message.is_deleted:
                return ServiceResult.failure("Cannot edit a deleted message", error_code="MESSAGE_DELETED")

            checked = _validate_body(body, allow_empty=bool(message.media_kind))
            if not checked:
                return checked
            text = checked.data

            if text == message.body:
                return ServiceResult.success(message)

            MessageEdit.objects.create(
                message=message,
                editor=caller,
                previous_body=message.body,
            )
            message.body = text
            message.save(update_fields=["body", "updated_at"])

            Conversation.objects.filter(
                pk=message.conversation_id, last_message_at=message.created_at
            ).update(
                last_message_text=build_summary(text, message.media_kind, message.reply_to),
                updated_at=timezone.now(),
            )

        cls.get_logger().info(f"User {caller.id} edited message {message.id}")
        return ServiceResult.success(message)

    @classmethod
    def delete_message(cls, caller: User, message_id) -> ServiceResult[Message]:
        """
        Delete a message for everyone.

        The row is kept as a tombstone with an empty body. Deleting an
        already deleted message succeeds without changes.
        """
        with cls.atomic():
            resolved = MembershipGate.resolve_message(caller, message_id, for_update=True)
            if not resolved:
                return resolved
            message, _ = resolved.data

            if message.sender_id != caller.pk:
                cls.get_logger().warning(f"User {caller.id} tried to delete message {message.id}")
                return ServiceResult.forbidden(
                    "You can only delete your own messages",
                    error_code="NOT_MESSAGE_SENDER",
                )

            if message.is_deleted:
                return ServiceResult.success(message)

            message.body = ""
            message.soft_delete(extra_fields=["body"])

            Conversation.objects.filter(
                pk=message.conversation_id, last_message_at=message.created_at
            ).update(
                last_message_text=MESSAGE_CONFIG.DELETED_PLACEHOLDER,
                updated_at=timezone.now(),
            )

        cls.get_logger().info(f"User {caller.id} deleted message {message.id}")
        return ServiceResult.success(message)

    @classmethod
    def get_edit_history(cls, caller: User, message_id) -> ServiceResult[list[dict]]:
        resolved = MembershipGate.resolve_message(caller, message_id)
        if not resolved:
            return resolved
        message, _ = resolved.data

        return ServiceResult.success(
            [
                {
                    "id": edit.id,
                    "previous_body": edit.previous_body,
                    "edited_at": edit.edited_at,
                    "editor_id": edit.editor_id,
                }
                for edit in message.edits.order_by("edited_at", "id")
            ]
        )


# =============================================================================
# Reactions and stars
# =============================================================================


class ReactionService(BaseService):
    """
    Service for emoji reactions.

    A reaction is a (message, user, emoji) triple; toggling an existing
    triple removes it. Only REACTION_CONFIG.ALLOWED_EMOJIS are accepted.
    """

    @classmethod
    def toggle_reaction(cls, caller: User, message_id, emoji: str) -> ServiceResult[dict]:
        if emoji not in REACTION_CONFIG.ALLOWED_EMOJIS:
            return ServiceResult.failure("Invalid reaction", error_code="INVALID_REACTION")

        with cls.atomic():
            # The message row lock serializes toggles on the same message
            resolved = MembershipGate.resolve_message(caller, message_id, for_update=True)
            if not resolved:
                return resolved
            message, _ = resolved.data

            deleted, _ = MessageReaction.objects.filter(message=message, user=caller, emoji=emoji).delete()
            if deleted:
                reacted = False
            else:
                MessageReaction.objects.create(message=message, user=caller, emoji=emoji)
                reacted = True

        cls.get_logger().info(
            f"User {caller.id} {'added' if reacted else 'removed'} {emoji} on message {message.id}"
        )
        return ServiceResult.success({"reacted": reacted})

    @classmethod
    def summarize(cls, reactions: Iterable[tuple[str, int]], viewer_id) -> list[dict]:
        """
        Collapse (emoji, user_id) pairs into counts in allow-list order.

        Emoji with no reactions are omitted.
        """
        users_by_emoji: dict[str, set] = defaultdict(set)
        for emoji, user_id in reactions:
            users_by_emoji[emoji].add(user_id)

        return [
            {
                "emoji": emoji,
                "count": len(users_by_emoji[emoji]),
                "reacted_by_me": viewer_id in users_by_emoji[emoji],
            }
            for emoji in REACTION_CONFIG.ALLOWED_EMOJIS
            if users_by_emoji.get(emoji)
        ]


class StarService(BaseService):
    """Service for private message stars."""

    @classmethod
    def toggle_star(cls, caller: User, message_id) -> ServiceResult[dict]:
        with cls.atomic():
            resolved = MembershipGate.resolve_message(caller, message_id, for_update=True)
            if not resolved:
                return resolved
            message, _ = resolved.data

            deleted, _ = MessageStar.objects.filter(message=message, user=caller).delete()
            if deleted:
                starred = False
            else:
                MessageStar.objects.create(message=message, user=caller)
                starred = True

        cls.get_logger().info(f"User {caller.id} {'starred' if starred else 'unstarred'} message {message.id}")
        return ServiceResult.success({"starred": starred})

    @classmethod
    def list_starred(cls, caller: User, conversation_id) -> ServiceResult[list[dict]]:
        """The caller's starred messages in one conversation, most recently starred first."""
        gate = MembershipGate.resolve(caller, conversation_id)
        if not gate:
            return gate
        membership = gate.data

        stars = MessageStar.objects.filter(user=caller, message__conversation_id=conversation_id).select_related(
            "message__sender"
        )
        if membership.cleared_at is not None:
            stars = stars.filter(message__created_at__gt=membership.cleared_at)

        messages = [star.message for star in stars.order_by("-created_at", "-id")]
        return ServiceResult.success(MessagePresenter.present(caller, membership.conversation, messages))


# =============================================================================
# Status and presentation
# =============================================================================


class MessageStatusService:
    """
    Delivery status of a message, as seen by its author.

    Rules:
        - Non-authors get no status
        - No other active members: sent
        - Some other member with receipts enabled read at or after the
          message: read, with those members listed in seen_by
        - Otherwise: delivered
    """

    @classmethod
    def status_for(
        cls,
        viewer_id,
        message: Message,
        members: Iterable[Membership],
        privacy: dict[int, PrivacySettings] | None = None,
    ) -> tuple[str | None, list[str]]:
        if message.sender_id != viewer_id:
            return None, []

        others = [m for m in members if m.user_id != viewer_id and not m.is_deleted]
        if not others:
            return MESSAGE_STATUS.SENT, []

        if privacy is None:
            privacy = PrivacyService.settings_for_users(m.user_id for m in others)

        seen_by = [
            m.user.display_name
            for m in others
            if m.last_read_at is not None
            and m.last_read_at >= message.created_at
            and (m.user_id not in privacy or privacy[m.user_id].read_receipts_enabled)
        ]
        if seen_by:
            return MESSAGE_STATUS.READ, seen_by
        return MESSAGE_STATUS.DELIVERED, []


class MessagePresenter:
    """
    Render messages for one viewer.

    Reactions, stars, edit counts, receipts and reply previews are loaded
    in one query each for the whole batch.
    """

    @classmethod
    def _reply_preview(cls, reply_to: Message | None) -> dict | None:
        if reply_to is None:
            return None
        return {
            "id": reply_to.id,
            "sender_name": reply_to.sender.display_name,
            "body": reply_to.display_body,
            "media_kind": reply_to.media_kind,
            "is_deleted": reply_to.is_deleted,
        }

    @classmethod
    def present(cls, viewer: User, conversation: Conversation, messages: list[Message]) -> list[dict]:
        if not messages:
            return []

        ids = [message.id for message in messages]
        members = list(
            Membership.objects.filter(conversation=conversation, is_deleted=False).select_related("user")
        )
        privacy = PrivacyService.settings_for_users(m.user_id for m in members)

        reactions: dict[int, list[tuple[str, int]]] = defaultdict(list)
        for message_id, emoji, user_id in MessageReaction.objects.filter(message_id__in=ids).values_list(
            "message_id", "emoji", "user_id"
        ):
            reactions[message_id].append((emoji, user_id))

        starred = set(
            MessageStar.objects.filter(user=viewer, message_id__in=ids).values_list("message_id", flat=True)
        )

        edits = {
            row["message_id"]: row
            for row in MessageEdit.objects.filter(message_id__in=ids)
            .order_by()
            .values("message_id")
            .annotate(edit_count=Count("id"), last_edited_at=Max("edited_at"))
        }

        reply_ids = {m.reply_to_id for m in messages if m.reply_to_id}
        replies = {
            reply.id: reply
            for reply in Message.objects.filter(pk__in=reply_ids).select_related("sender")
        }

        rows = []
        for message in messages:
            sender = message.sender
            status, seen_by = MessageStatusService.status_for(viewer.pk, message, members, privacy)
            edit = edits.get(message.id)
            rows.append(
                {
                    "id": message.id,
                    "conversation_id": message.conversation_id,
                    "sender_id": message.sender_id,
                    "sender_name": sender.display_name,
                    "sender_avatar_url": sender.avatar_url,
                    "body": message.display_body,
                    "is_deleted": message.is_deleted,
                    "is_own": message.sender_id == viewer.pk,
                    "media_kind": message.media_kind,
                    "media_url": (
                        UploadTargetService.resolve_url(message.media_ref)
                        if message.media_ref and not message.is_deleted
                        else None
                    ),
                    "reply_to": cls._reply_preview(replies.get(message.reply_to_id)),
                    "created_at": message.created_at,
                    "edited_at": edit["last_edited_at"] if edit else None,
                    "edit_count": edit["edit_count"] if edit else 0,
                    "is_starred": message.id in starred,
                    "status": status,
                    "seen_by": seen_by,
                    "reactions": ReactionService.summarize(reactions[message.id], viewer.pk),
                }
            )
        return rows


# =============================================================================
# Pagination and search
# =============================================================================


@dataclass
class MessageSearchFilters:
    """
    Optional, conjunctive search filters.

    Dates may be plain dates (whole-day bounds in the current timezone)
    or datetimes; both bounds are inclusive.
    """

    text: str | None = None
    media_kind: str | None = None
    sender_id: int | None = None
    from_date: date | datetime | None = None
    to_date: date | datetime | None = None

    @staticmethod
    def _bound(value: date | datetime, end: bool) -> datetime:
        if isinstance(value, datetime):
            return value if timezone.is_aware(value) else timezone.make_aware(value)
        return timezone.make_aware(datetime.combine(value, time.max if end else time.min))

    def validate(self) -> ServiceResult | None:
        if self.media_kind and self.media_kind not in MediaKind.values:
            return ServiceResult.failure(
                "Media kind must be image, video or audio",
                error_code="INVALID_MEDIA_KIND",
            )
        if self.from_date and self.to_date and self._bound(self.from_date, False) > self._bound(self.to_date, True):
            return ServiceResult.failure(
                "from_date must not be after to_date",
                error_code="INVALID_DATE_RANGE",
            )
        return None

    def apply(self, queryset):
        text = (self.text or "").strip()
        if text:
            queryset = queryset.filter(body__icontains=text)
        if self.media_kind:
            queryset = queryset.filter(media_kind=self.media_kind)
        if self.sender_id is not None:
            queryset = queryset.filter(sender_id=self.sender_id)
        if self.from_date:
            queryset = queryset.filter(created_at__gte=self._bound(self.from_date, False))
        if self.to_date:
            queryset = queryset.filter(created_at__lte=self._bound(self.to_date, True))
        return queryset


class MessageQueryService:
    """
    Read paths over the message ledger.

    Pagination walks backwards from the newest message using created_at as
    an exclusive cursor, which is stable because created_at strictly
    increases per conversation.
    """

    @classmethod
    def clamp_limit(cls, limit) -> int:
        if limit is None:
            return MESSAGE_CONFIG.PAGE_SIZE_DEFAULT
        return max(MESSAGE_CONFIG.PAGE_SIZE_MIN, min(int(limit), MESSAGE_CONFIG.PAGE_SIZE_MAX))

    @classmethod
    def list_messages(
        cls,
        caller: User,
        conversation_id,
        before: datetime | None = None,
        limit: int | None = None,
    ) -> ServiceResult[dict]:
        """
        Return one page of messages, oldest first.

        Args:
            caller: Viewer
            conversation_id: Conversation to read
            before: Exclusive upper bound on created_at; None for the newest page
            limit: Page size, clamped to the configured bounds

        Returns:
            ServiceResult with {"items", "oldest_created_at", "has_more"}
        """
        gate = MembershipGate.resolve(caller, conversation_id)
        if not gate:
            return gate
        membership = gate.data
        page_size = cls.clamp_limit(limit)

        queryset = Message.objects.filter(conversation_id=conversation_id)
        if membership.cleared_at is not None:
            queryset = queryset.filter(created_at__gt=membership.cleared_at)

        page = queryset
        if before is not None:
            page = page.filter(created_at__lt=before)
        newest_first = list(page.select_related("sender").order_by("-created_at", "-id")[:page_size])
        items = list(reversed(newest_first))

        oldest = items[0].created_at if items else None
        has_more = oldest is not None and queryset.filter(created_at__lt=oldest).exists()

        return ServiceResult.success(
            {
                "items": MessagePresenter.present(caller, membership.conversation, items),
                "oldest_created_at": oldest,
                "has_more": has_more,
            }
        )

    @classmethod
    def _hit(cls, message: Message, title: str) -> dict:
        return {
            "message_id": message.id,
            "conversation_id": message.conversation_id,
            "conversation_title": title,
            "sender_id": message.sender_id,
            "sender_name": message.sender.display_name,
            "body": message.body,
            "media_kind": message.media_kind,
            "created_at": message.created_at,
        }

    @classmethod
    def search_in_conversation(
        cls,
        caller: User,
        conversation_id,
        filters: MessageSearchFilters,
    ) -> ServiceResult[list[dict]]:
        invalid = filters.validate()
        if invalid is not None:
            return invalid

        gate = MembershipGate.resolve(caller, conversation_id)
        if not gate:
            return gate
        membership = gate.data

        queryset = Message.objects.filter(conversation_id=conversation_id, is_deleted=False)
        if membership.cleared_at is not None:
            queryset = queryset.filter(created_at__gt=membership.cleared_at)
        queryset = filters.apply(queryset).select_related("sender").order_by("-created_at", "-id")

        title = ConversationService.get_conversation(caller, conversation_id).data["title"]
        return ServiceResult.success(
            [cls._hit(message, title) for message in queryset[: MESSAGE_CONFIG.SEARCH_MAX_RESULTS]]
        )

    @classmethod
    def search_global(cls, caller: User, filters: MessageSearchFilters) -> ServiceResult[list[dict]]:
        """
        Search every conversation the caller can currently see.

        Hidden or lost memberships and blocked direct conversations are
        skipped; each hit carries the conversation title.
        """
        invalid = filters.validate()
        if invalid is not None:
            return invalid

        rows = ConversationService.list_for_user(caller)
        if not rows:
            return ServiceResult.success([])
        titles = {row["id"]: row["title"] for row in rows}

        cleared = dict(
            Membership.objects.filter(user=caller, conversation_id__in=titles).values_list(
                "conversation_id", "cleared_at"
            )
        )
        scope = Q()
        for conversation_id, cleared_at in cleared.items():
            clause = Q(conversation_id=conversation_id)
            if cleared_at is not None:
                clause &= Q(created_at__gt=cleared_at)
            scope |= clause

        queryset = filters.apply(Message.objects.filter(scope, is_deleted=False))
        queryset = queryset.select_related("sender").order_by("-created_at", "-id")

        return ServiceResult.success(
            [
                cls._hit(message, titles[message.conversation_id])
                for message in queryset[: MESSAGE_CONFIG.SEARCH_MAX_RESULTS]
            ]
        )


# =============================================================================
# Typing and presence
# =============================================================================


def _to_timestamp(moment: datetime) -> float:
    return moment.timestamp()


def _from_timestamp(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=dt_timezone.utc)


class TypingService(BaseService):
    """
    Cache-backed typing indicators.

    One cache entry per (conversation, user) holding the time of the last
    typing signal. Entries expire on their own; losing them is harmless.
    """

    @staticmethod
    def _key(conversation_id, user_id) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_TYPING}:{conversation_id}:user:{user_id}"

    @classmethod
    def set_typing(cls, caller: User, conversation_id, is_typing: bool) -> ServiceResult[dict]:
        gate = MembershipGate.resolve(caller, conversation_id)
        if not gate:
            return gate

        key = cls._key(conversation_id, caller.pk)
        if is_typing:
            cache.set(key, _to_timestamp(timezone.now()), timeout=PRESENCE_CONFIG.TYPING_CACHE_TTL_SECONDS)
        else:
            cache.delete(key)

        notify_conversation(conversation_id)
        return ServiceResult.success({"is_typing": bool(is_typing)})

    @classmethod
    def clear(cls, conversation_id, user_id) -> None:
        cache.delete(cls._key(conversation_id, user_id))

    @classmethod
    def list_typing(cls, caller: User, conversation_id) -> ServiceResult[list[dict]]:
        """Other members whose last typing signal is recent enough."""
        gate = MembershipGate.resolve(caller, conversation_id)
        if not gate:
            return gate

        members = {
            m.user_id: m.user
            for m in Membership.objects.filter(conversation_id=conversation_id, is_deleted=False)
            .exclude(user=caller)
            .select_related("user")
        }
        keys = {cls._key(conversation_id, user_id): user_id for user_id in members}
        found = cache.get_many(list(keys))

        threshold = timezone.now() - timedelta(seconds=PRESENCE_CONFIG.TYPING_WINDOW_SECONDS)
        typing = [
            {"user_id": keys[key], "display_name": members[keys[key]].display_name}
            for key, value in found.items()
            if _from_timestamp(value) >= threshold
        ]
        typing.sort(key=lambda row: row["user_id"])
        return ServiceResult.success(typing)


class PresenceService(BaseService):
    """
    Cache-backed presence.

    Heartbeats store the last-seen time per user. A user is online while
    their last heartbeat is within the online window; the entry itself is
    kept much longer so "last seen" stays available. Visibility honours
    the target's last_seen_visibility setting.
    """

    @staticmethod
    def _key(user_id) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_USER_PRESENCE}:{user_id}"

    @classmethod
    def _online_threshold(cls, now: datetime | None = None) -> datetime:
        return (now or timezone.now()) - timedelta(seconds=PRESENCE_CONFIG.ONLINE_WINDOW_SECONDS)

    @classmethod
    def heartbeat(cls, user: User) -> ServiceResult[dict]:
        now = timezone.now()
        was_online = cls.is_online(user, now=now)
        cache.set(cls._key(user.pk), _to_timestamp(now), timeout=PRESENCE_CONFIG.LAST_SEEN_RETENTION_SECONDS)

        if not was_online:
            cls.get_logger().info(f"User {user.id} came online")
            notify_presence()

        return ServiceResult.success({"last_seen_at": now})

    @classmethod
    def last_seen(cls, user) -> datetime | None:
        value = cache.get(cls._key(getattr(user, "pk", user)))
        return _from_timestamp(value) if value is not None else None

    @classmethod
    def is_online(cls, user, now: datetime | None = None) -> bool:
        seen = cls.last_seen(user)
        return seen is not None and seen >= cls._online_threshold(now)

    @classmethod
    def online_map(cls, user_ids: Iterable[int]) -> dict[int, bool]:
        """Raw online state for many users in one cache round trip."""
        keys = {cls._key(user_id): user_id for user_id in user_ids}
        found = cache.get_many(list(keys))
        threshold = cls._online_threshold()
        return {user_id: key in found and _from_timestamp(found[key]) >= threshold for key, user_id in keys.items()}

    @classmethod
    def visible_online_map(cls, viewer: User, user_ids: Iterable[int]) -> dict[int, bool]:
        """Online state as the viewer may see it."""
        ids = list(user_ids)
        privacy = PrivacyService.settings_for_users(ids)
        online = cls.online_map(ids)
        return {
            user_id: online[user_id]
            and (user_id == viewer.pk or privacy[user_id].last_seen_visibility == LastSeenVisibility.EVERYONE)
            for user_id in ids
        }

    @classmethod
    def online_user_ids(cls, viewer: User, candidate_ids: Iterable[int] | None = None) -> list[int]:
        """
        Ids of other users currently online and visible to the viewer.

        Args:
            viewer: Requesting user (never included)
            candidate_ids: Users to check; defaults to every active user
        """
        if candidate_ids is None:
            candidate_ids = get_user_model().objects.filter(is_active=True).values_list("pk", flat=True)
        ids = [user_id for user_id in candidate_ids if user_id != viewer.pk]
        visible = cls.visible_online_map(viewer, ids)
        return sorted(user_id for user_id, online in visible.items() if online)

    @classmethod
    def last_seen_for(cls, viewer: User, user) -> datetime | None:
        """Target's last-seen time, or None if unknown or hidden from the viewer."""
        if not PrivacyService.can_see_presence(viewer, user):
            return None
        return cls.last_seen(user)


# =============================================================================
# User directory
# =============================================================================


class UserDirectoryService:
    """
    The user picker.

    Lists every other active user, optionally filtered by a
    case-insensitive name fragment, sorted by name. Users who blocked the
    viewer are omitted; users the viewer blocked are flagged.
    """

    @classmethod
    def list_users(cls, viewer: User, search: str | None = None) -> list[dict]:
        User = get_user_model()

        queryset = (
            User.objects.filter(is_active=True)
            .exclude(pk=viewer.pk)
            .exclude(pk__in=BlockService.blockers_of(viewer))
        )
        term = (search or "").strip()
        if term:
            queryset = queryset.filter(name__icontains=term)
        users = list(queryset.order_by(Lower("name"), "pk"))

        blocked = BlockService.blocked_by_ids(viewer)
        online = PresenceService.visible_online_map(viewer, [user.pk for user in users])

        return [
            {
                "id": user.pk,
                "display_name": user.display_name,
                "avatar_url": user.avatar_url,
                "is_online": online[user.pk],
                "is_blocked": user.pk in blocked,
            }
            for user in users
        ]
