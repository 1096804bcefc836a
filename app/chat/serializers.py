"""
Serializers for chat API.

Request serializers only check shape (types, required keys); content rules
such as empty bodies, allowed emoji and roles are enforced by the service
layer so every entry point returns the same error codes.

Response serializers describe the rows the services build and are used for
both rendering and the OpenAPI schema.

Serializer Hierarchy:
    Requests:
        DirectConversationCreateSerializer, GroupConversationCreateSerializer
        MemberAddSerializer, MemberRoleSerializer
        MessageCreateSerializer, MediaMessageCreateSerializer, MessageEditSerializer
        ReactionToggleSerializer, TypingSerializer
        MessageListQuerySerializer, MessageSearchQuerySerializer, UserSearchQuerySerializer

    Responses:
        ConversationRowSerializer, MemberSerializer
        MessageSerializer (with ReactionSummarySerializer, ReplyPreviewSerializer)
        MessagePageSerializer, MessageSearchHitSerializer, MessageEditSerializer
        TypingUserSerializer, DirectoryUserSerializer, HeartbeatSerializer
"""

from __future__ import annotations

from rest_framework import serializers

from chat.constants import MESSAGE_CONFIG
from chat.models import MediaKind, MembershipRole
from chat.services import MessageSearchFilters

# =============================================================================
# Conversation Serializers
# =============================================================================


class DirectConversationCreateSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(help_text="The other participant")


class GroupConversationCreateSerializer(serializers.Serializer):
    """Request body for creating a group; the caller becomes owner."""

    name = serializers.CharField(
        max_length=255,
        allow_blank=True,
        help_text="Group name (required after trimming)",
    )
    member_ids = serializers.ListField(
        child=serializers.IntegerField(),
        help_text="At least two other users",
    )


class ConversationRowSerializer(serializers.Serializer):
    """One row of the caller's conversation list."""

    id = serializers.IntegerField()
    title = serializers.CharField()
    is_group = serializers.BooleanField()
    my_role = serializers.ChoiceField(choices=MembershipRole.choices, allow_null=True)
    member_count = serializers.IntegerField()
    unread_count = serializers.IntegerField()
    image_url = serializers.CharField(allow_blank=True)
    other_user_id = serializers.IntegerField(allow_null=True)
    last_message_text = serializers.CharField(allow_blank=True)
    last_message_at = serializers.DateTimeField(allow_null=True)
    updated_at = serializers.DateTimeField()


class ReadMarkSerializer(serializers.Serializer):
    last_read_at = serializers.DateTimeField()


# =============================================================================
# Membership Serializers
# =============================================================================


class MemberAddSerializer(serializers.Serializer):
    user_ids = serializers.ListField(
        child=serializers.IntegerField(),
        allow_empty=True,
        help_text="Users to add to the group",
    )


class MemberRoleSerializer(serializers.Serializer):
    """
    Request body for changing a member's role.

    Any string is accepted here; the service answers INVALID_ROLE for
    values other than admin and member.
    """

    role = serializers.CharField(help_text="admin or member")


class MemberSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    display_name = serializers.CharField()
    avatar_url = serializers.CharField(allow_blank=True)
    role = serializers.ChoiceField(choices=MembershipRole.choices)
    joined_at = serializers.DateTimeField()
    is_online = serializers.BooleanField()


# =============================================================================
# Message Serializers
# =============================================================================


class MessageCreateSerializer(serializers.Serializer):
    body = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        help_text=f"Message text (max {MESSAGE_CONFIG.MAX_BODY_LENGTH} characters after trimming)",
    )
    reply_to_id = serializers.IntegerField(required=False, allow_null=True)


class MediaMessageCreateSerializer(serializers.Serializer):
    """Commit a media message from a previously uploaded target."""

    media_ref = serializers.CharField(help_text="Reference returned by the upload target allocation")
    media_kind = serializers.CharField(help_text="image, video or audio")
    caption = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        trim_whitespace=False,
    )
    reply_to_id = serializers.IntegerField(required=False, allow_null=True)


class MessageEditSerializer(serializers.Serializer):
    body = serializers.CharField(allow_blank=True, trim_whitespace=False)


class ReactionToggleSerializer(serializers.Serializer):
    emoji = serializers.CharField(max_length=32)


class ReactionToggleResponseSerializer(serializers.Serializer):
    reacted = serializers.BooleanField()


class StarToggleResponseSerializer(serializers.Serializer):
    starred = serializers.BooleanField()


class ReactionSummarySerializer(serializers.Serializer):
    emoji = serializers.CharField()
    count = serializers.IntegerField()
    reacted_by_me = serializers.BooleanField()


class ReplyPreviewSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    sender_name = serializers.CharField()
    body = serializers.CharField(allow_blank=True)
    media_kind = serializers.ChoiceField(choices=MediaKind.choices, allow_null=True)
    is_deleted = serializers.BooleanField()


class MessageSerializer(serializers.Serializer):
    """
    A message as seen by one viewer.

    status and seen_by are only filled in for the viewer's own messages.
    """

    id = serializers.IntegerField()
    conversation_id = serializers.IntegerField()
    sender_id = serializers.IntegerField()
    sender_name = serializers.CharField()
    sender_avatar_url = serializers.CharField(allow_blank=True)
    body = serializers.CharField(allow_blank=True)
    is_deleted = serializers.BooleanField()
    is_own = serializers.BooleanField()
    media_kind = serializers.ChoiceField(choices=MediaKind.choices, allow_null=True)
    media_url = serializers.CharField(allow_null=True)
    reply_to = ReplyPreviewSerializer(allow_null=True)
    created_at = serializers.DateTimeField()
    edited_at = serializers.DateTimeField(allow_null=True)
    edit_count = serializers.IntegerField()
    is_starred = serializers.BooleanField()
    status = serializers.CharField(allow_null=True)
    seen_by = serializers.ListField(child=serializers.CharField())
    reactions = ReactionSummarySerializer(many=True)


class MessagePageSerializer(serializers.Serializer):
    items = MessageSerializer(many=True)
    oldest_created_at = serializers.DateTimeField(allow_null=True)
    has_more = serializers.BooleanField()


class MessageEditHistorySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    previous_body = serializers.CharField(allow_blank=True)
    edited_at = serializers.DateTimeField()
    editor_id = serializers.IntegerField()


class MessageListQuerySerializer(serializers.Serializer):
    """Query parameters for backward pagination."""

    before = serializers.DateTimeField(required=False, help_text="Exclusive created_at cursor")
    limit = serializers.IntegerField(
        required=False,
        help_text=(
            f"Page size, clamped to {MESSAGE_CONFIG.PAGE_SIZE_MIN}-{MESSAGE_CONFIG.PAGE_SIZE_MAX} "
            f"(default {MESSAGE_CONFIG.PAGE_SIZE_DEFAULT})"
        ),
    )


class MessageSearchQuerySerializer(serializers.Serializer):
    """Query parameters for message search. All filters are optional."""

    q = serializers.CharField(required=False, allow_blank=True, help_text="Case-insensitive text")
    media_kind = serializers.CharField(required=False, allow_blank=True)
    sender_id = serializers.IntegerField(required=False)
    from_date = serializers.DateField(required=False, help_text="Inclusive, whole day")
    to_date = serializers.DateField(required=False, help_text="Inclusive, whole day")

    def to_filters(self) -> MessageSearchFilters:
        data = self.validated_data
        return MessageSearchFilters(
            text=data.get("q") or None,
            media_kind=data.get("media_kind") or None,
            sender_id=data.get("sender_id"),
            from_date=data.get("from_date"),
            to_date=data.get("to_date"),
        )


class MessageSearchHitSerializer(serializers.Serializer):
    message_id = serializers.IntegerField()
    conversation_id = serializers.IntegerField()
    conversation_title = serializers.CharField()
    sender_id = serializers.IntegerField()
    sender_name = serializers.CharField()
    body = serializers.CharField(allow_blank=True)
    media_kind = serializers.ChoiceField(choices=MediaKind.choices, allow_null=True)
    created_at = serializers.DateTimeField()


# =============================================================================
# Liveness and directory
# =============================================================================


class TypingSerializer(serializers.Serializer):
    is_typing = serializers.BooleanField()


class TypingUserSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    display_name = serializers.CharField()


class HeartbeatSerializer(serializers.Serializer):
    last_seen_at = serializers.DateTimeField()


class OnlineUsersSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.IntegerField())


class UserSearchQuerySerializer(serializers.Serializer):
    search = serializers.CharField(required=False, allow_blank=True)


class DirectoryUserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    display_name = serializers.CharField()
    avatar_url = serializers.CharField(allow_blank=True)
    is_online = serializers.BooleanField()
    is_blocked = serializers.BooleanField()
