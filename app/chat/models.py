"""
Chat system models.

This module defines the data models for the chat system supporting:
- Direct (1:1) conversations between exactly two users
- Group conversations with role-based permissions

Models:
    Conversation: Container for messages, with a denormalized last-message summary
    Membership: User access to a conversation with role, read and hide state
    Message: Individual message within a conversation
    MessageEdit: Append-only record of a message's previous bodies
    MessageReaction: One (message, user, emoji) reaction
    MessageStar: Private per-user pin on a message

Design Decisions:
    - Direct conversations have exactly two memberships for life; members are
      hidden and restored, never added or removed
    - Group conversations use a three-tier role hierarchy: owner > admin > member
    - One membership row per (conversation, user); removal and hiding are
      soft deletes of that row, re-adding restores it
    - Messages are never hard-deleted; a deleted message keeps its row as a
      tombstone so replies pointing at it still render
    - Message.created_at is the per-conversation ordering key and strictly
      increases within a conversation
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.model_mixins import SoftDeleteMixin
from core.models import BaseModel


class MembershipRole(models.TextChoices):
    """
    Role within a group conversation.

    Hierarchy: OWNER > ADMIN > MEMBER

    OWNER: Full control, the only role that can promote or demote
    ADMIN: Can add members and remove plain members
    MEMBER: Can send messages, edit and delete own messages

    Note: Direct conversation memberships have no role (treated as MEMBER)
    """

    OWNER = "owner", "Owner"
    ADMIN = "admin", "Admin"
    MEMBER = "member", "Member"


ROLE_RANK = {
    MembershipRole.OWNER: 3,
    MembershipRole.ADMIN: 2,
    MembershipRole.MEMBER: 1,
}


class MediaKind(models.TextChoices):
    """Kind of media attached to a message."""

    IMAGE = "image", "Image"
    VIDEO = "video", "Video"
    AUDIO = "audio", "Audio"


class Conversation(BaseModel):
    """
    A conversation between two or more users.

    Conversation Types:
        Direct (is_group=False): Exactly 2 memberships, no name, no roles.
        Group (is_group=True): Named, at least one owner.

    Fields:
        is_group: Whether this is a group conversation
        name: Group name (empty for direct)
        created_by: User who created the conversation
        last_message_text: Summary of the newest message for list rendering
        last_message_at: Timestamp of the newest message
        updated_at: Bumped by every message or membership-affecting event

    Relationships:
        memberships: All Membership rows for this conversation
        messages: All Message rows for this conversation
    """

    is_group = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this is a group conversation",
    )

    name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Name for group conversations (empty for direct)",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )

    last_message_text = models.TextField(
        blank=True,
        default="",
        help_text="Summary of the most recent message (for conversation lists)",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp of most recent message",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-updated_at"]
        indexes = [
            models.Index(
                fields=["-updated_at"],
                name="chat_conv_updated_idx",
            ),
        ]

    def __str__(self) -> str:
        if not self.is_group:
            return f"Direct({self.pk})"
        return f"Group: {self.name}" if self.name else f"Group({self.pk})"

    @property
    def is_direct(self) -> bool:
        return not self.is_group

    def touch(self, extra_fields: list[str] | None = None) -> None:
        """Bump updated_at (and save any extra changed fields)."""
        self.save(update_fields=["updated_at", *(extra_fields or [])])


class Membership(SoftDeleteMixin, BaseModel):
    """
    A user's access to a conversation.

    The soft-delete flag has two meanings that share one mechanism:
        - Direct conversations: the user hid the conversation; a new inbound
          message un-hides it
        - Groups: the user was removed (or hid it); re-adding restores the row

    Fields:
        conversation: Conversation this membership belongs to
        user: Member
        role: Group role (null means member)
        joined_at: When the user first joined; preserved across restores
        last_read_at: Read high-water mark for receipts and unread counts
        cleared_at: Messages at or before this time are hidden from this user

    Constraints:
        - UniqueConstraint(conversation, user): one row per pair, ever
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="memberships",
        help_text="Conversation this membership belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_memberships",
        help_text="Member of the conversation",
    )

    role = models.CharField(
        max_length=10,
        choices=MembershipRole.choices,
        null=True,
        blank=True,
        help_text="Role in group conversation (null means member)",
    )

    joined_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the user joined this conversation",
    )

    last_read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time the user read this conversation",
    )

    cleared_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Messages at or before this time are hidden from this user",
    )

    class Meta:
        db_table = "chat_membership"
        ordering = ["joined_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_conversation_membership",
            ),
        ]
        indexes = [
            # User's visible conversations
            models.Index(
                fields=["user", "is_deleted"],
                name="chat_member_user_active_idx",
            ),
            # Active members of a conversation
            models.Index(
                fields=["conversation", "is_deleted"],
                name="chat_member_conv_active_idx",
            ),
        ]

    def __str__(self) -> str:
        status = "hidden" if self.is_deleted else "active"
        return f"Membership: {self.user_id} in {self.conversation_id} ({self.effective_role}) [{status}]"

    @property
    def effective_role(self) -> str:
        return self.role or MembershipRole.MEMBER

    @property
    def rank(self) -> int:
        return ROLE_RANK[self.effective_role]

    @property
    def is_owner(self) -> bool:
        return self.effective_role == MembershipRole.OWNER

    @property
    def is_admin_or_owner(self) -> bool:
        return self.effective_role in (MembershipRole.OWNER, MembershipRole.ADMIN)


class Message(SoftDeleteMixin, BaseModel):
    """
    A message within a conversation.

    Soft Delete Behavior:
        When is_deleted=True the body is cleared and the row is kept, so
        replies pointing at it render a placeholder instead of breaking.

    Mutability:
        Only body (via edit) and is_deleted (via delete) change after
        creation.

    Fields:
        conversation: Conversation this message belongs to
        sender: User who sent the message
        body: Message text (caption for media messages, may be empty then)
        reply_to: Message this one replies to (same conversation)
        media_kind: Kind of attached media, if any
        media_ref: Opaque storage reference of the attached media
        created_at: Ordering key, strictly increasing per conversation
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    body = models.TextField(
        blank=True,
        default="",
        help_text="Message text, or caption for media messages",
    )

    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Message this one replies to",
    )

    media_kind = models.CharField(
        max_length=10,
        choices=MediaKind.choices,
        null=True,
        blank=True,
        help_text="Kind of attached media",
    )

    media_ref = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Opaque storage reference of the attached media",
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Send time; strictly increasing within a conversation",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            # Messages in a conversation (cursor pagination)
            models.Index(
                fields=["conversation", "created_at"],
                name="chat_msg_conv_cursor_idx",
            ),
            # User's messages
            models.Index(
                fields=["sender", "-created_at"],
                name="chat_msg_sender_idx",
            ),
            # Media search within a conversation
            models.Index(
                fields=["conversation", "media_kind"],
                name="chat_msg_conv_media_idx",
                condition=Q(media_kind__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        preview = self.body[:50] + "..." if len(self.body) > 50 else self.body
        deleted_str = " [deleted]" if self.is_deleted else ""
        return f"User {self.sender_id}: {preview}{deleted_str}"

    @property
    def display_body(self) -> str:
        from chat.constants import MESSAGE_CONFIG

        return MESSAGE_CONFIG.DELETED_PLACEHOLDER if self.is_deleted else self.body


class MessageEdit(BaseModel):
    """
    One edit of a message.

    Captures the body *before* the edit, so applying previous_body values
    in order reconstructs the full history.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="edits",
        help_text="Edited message",
    )

    editor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_edits",
        help_text="User who made the edit",
    )

    previous_body = models.TextField(
        help_text="Message body before this edit",
    )

    edited_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the edit was made",
    )

    class Meta:
        db_table = "chat_message_edit"
        ordering = ["edited_at", "id"]
        indexes = [
            models.Index(
                fields=["message", "edited_at"],
                name="chat_msg_edit_msg_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Edit of message {self.message_id} at {self.edited_at}"


class MessageReaction(BaseModel):
    """
    A user's emoji reaction to a message.

    Constraints:
        - UniqueConstraint(message, user, emoji): toggling the same triple
          removes it
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
        help_text="Message reacted to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_reactions",
        help_text="User who reacted",
    )

    emoji = models.CharField(
        max_length=16,
        help_text="Reaction emoji from the allowed set",
    )

    class Meta:
        db_table = "chat_message_reaction"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "emoji"],
                name="unique_message_reaction",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} reacted {self.emoji} to {self.message_id}"


class MessageStar(BaseModel):
    """
    A private per-user pin on a message.

    Independent of other users' stars and of the message's deletion state.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="stars",
        help_text="Starred message",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="starred_messages",
        help_text="User who starred the message",
    )

    class Meta:
        db_table = "chat_message_star"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user"],
                name="unique_message_star",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} starred {self.message_id}"
