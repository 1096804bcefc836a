import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"),
        ),
        (
            "updated_at",
            models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
        ),
    ]


def _soft_delete():
    return [
        (
            "is_deleted",
            models.BooleanField(db_index=True, default=False, help_text="Whether this record has been soft deleted"),
        ),
        (
            "deleted_at",
            models.DateTimeField(blank=True, help_text="Timestamp when this record was soft deleted", null=True),
        ),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_timestamps(),
                (
                    "is_group",
                    models.BooleanField(db_index=True, default=False, help_text="Whether this is a group conversation"),
                ),
                (
                    "name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Name for group conversations (empty for direct)",
                        max_length=100,
                    ),
                ),
                (
                    "last_message_text",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Summary of the most recent message (for conversation lists)",
                    ),
                ),
                (
                    "last_message_at",
                    models.DateTimeField(blank=True, help_text="Timestamp of most recent message", null=True),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who created this conversation",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_conversations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_conversation",
                "ordering": ["-updated_at"],
                "indexes": [models.Index(fields=["-updated_at"], name="chat_conv_updated_idx")],
            },
        ),
        migrations.CreateModel(
            name="Membership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_timestamps(),
                *_soft_delete(),
                (
                    "role",
                    models.CharField(
                        blank=True,
                        choices=[("owner", "Owner"), ("admin", "Admin"), ("member", "Member")],
                        help_text="Role in group conversation (null means member)",
                        max_length=10,
                        null=True,
                    ),
                ),
                (
                    "joined_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the user joined this conversation",
                    ),
                ),
                (
                    "last_read_at",
                    models.DateTimeField(blank=True, help_text="Last time the user read this conversation", null=True),
                ),
                (
                    "cleared_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Messages at or before this time are hidden from this user",
                        null=True,
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation this membership belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="memberships",
                        to="chat.conversation",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Member of the conversation",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chat_memberships",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_membership",
                "ordering": ["joined_at", "id"],
                "indexes": [
                    models.Index(fields=["user", "is_deleted"], name="chat_member_user_active_idx"),
                    models.Index(fields=["conversation", "is_deleted"], name="chat_member_conv_active_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("conversation", "user"), name="unique_conversation_membership"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
                ),
                *_soft_delete(),
                (
                    "body",
                    models.TextField(blank=True, default="", help_text="Message text, or caption for media messages"),
                ),
                (
                    "media_kind",
                    models.CharField(
                        blank=True,
                        choices=[("image", "Image"), ("video", "Video"), ("audio", "Audio")],
                        help_text="Kind of attached media",
                        max_length=10,
                        null=True,
                    ),
                ),
                (
                    "media_ref",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Opaque storage reference of the attached media",
                        max_length=255,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        help_text="Send time; strictly increasing within a conversation",
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation this message belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="chat.conversation",
                    ),
                ),
                (
                    "reply_to",
                    models.ForeignKey(
                        blank=True,
                        help_text="Message this one replies to",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="replies",
                        to="chat.message",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        help_text="User who sent this message",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sent_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_message",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["conversation", "created_at"], name="chat_msg_conv_cursor_idx"),
                    models.Index(fields=["sender", "-created_at"], name="chat_msg_sender_idx"),
                    models.Index(
                        condition=models.Q(("media_kind__isnull", False)),
                        fields=["conversation", "media_kind"],
                        name="chat_msg_conv_media_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MessageEdit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_timestamps(),
                ("previous_body", models.TextField(help_text="Message body before this edit")),
                (
                    "edited_at",
                    models.DateTimeField(default=django.utils.timezone.now, help_text="When the edit was made"),
                ),
                (
                    "editor",
                    models.ForeignKey(
                        help_text="User who made the edit",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="message_edits",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "message",
                    models.ForeignKey(
                        help_text="Edited message",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="edits",
                        to="chat.message",
                    ),
                ),
            ],
            options={
                "db_table": "chat_message_edit",
                "ordering": ["edited_at", "id"],
                "indexes": [models.Index(fields=["message", "edited_at"], name="chat_msg_edit_msg_idx")],
            },
        ),
        migrations.CreateModel(
            name="MessageReaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_timestamps(),
                ("emoji", models.CharField(help_text="Reaction emoji from the allowed set", max_length=16)),
                (
                    "message",
                    models.ForeignKey(
                        help_text="Message reacted to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reactions",
                        to="chat.message",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who reacted",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="message_reactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_message_reaction",
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("message", "user", "emoji"), name="unique_message_reaction"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MessageStar",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_timestamps(),
                (
                    "message",
                    models.ForeignKey(
                        help_text="Starred message",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stars",
                        to="chat.message",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who starred the message",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="starred_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_message_star",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("message", "user"), name="unique_message_star"),
                ],
            },
        ),
    ]
