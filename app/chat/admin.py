"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation management with inline memberships
- Message moderation with edit history
- Reactions and stars (read-mostly)
"""

from django.contrib import admin

from chat.models import Conversation, Membership, Message, MessageEdit, MessageReaction, MessageStar


class MembershipInline(admin.TabularInline):
    """Inline display of memberships in conversation admin."""

    model = Membership
    extra = 0
    readonly_fields = ["joined_at", "last_read_at", "cleared_at", "deleted_at"]
    raw_id_fields = ["user"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        "id",
        "is_group",
        "name",
        "last_message_text",
        "last_message_at",
        "updated_at",
    ]
    list_filter = ["is_group", "created_at"]
    search_fields = ["name", "id"]
    readonly_fields = ["created_at", "updated_at", "last_message_text", "last_message_at"]
    raw_id_fields = ["created_by"]
    inlines = [MembershipInline]
    ordering = ["-updated_at"]


@admin.register(Membership)
class MembershipAdmin(admin.ModelAdmin):
    list_display = ["id", "conversation", "user", "role", "is_deleted", "joined_at", "last_read_at"]
    list_filter = ["role", "is_deleted"]
    search_fields = ["user__name", "conversation__name"]
    raw_id_fields = ["conversation", "user"]


class MessageEditInline(admin.TabularInline):
    model = MessageEdit
    extra = 0
    readonly_fields = ["editor", "previous_body", "edited_at"]
    can_delete = False


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "conversation",
        "sender",
        "body_preview",
        "media_kind",
        "is_deleted",
        "created_at",
    ]
    list_filter = ["media_kind", "is_deleted", "created_at"]
    search_fields = ["body", "sender__name"]
    readonly_fields = ["created_at", "updated_at", "deleted_at", "media_ref"]
    raw_id_fields = ["conversation", "sender", "reply_to"]
    inlines = [MessageEditInline]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    @admin.display(description="Body")
    def body_preview(self, obj):
        return obj.body[:100] + "..." if len(obj.body) > 100 else obj.body


@admin.register(MessageReaction)
class MessageReactionAdmin(admin.ModelAdmin):
    list_display = ["id", "message", "user", "emoji", "created_at"]
    raw_id_fields = ["message", "user"]


@admin.register(MessageStar)
class MessageStarAdmin(admin.ModelAdmin):
    list_display = ["id", "message", "user", "created_at"]
    raw_id_fields = ["message", "user"]
