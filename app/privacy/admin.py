"""
Django admin configuration for privacy models.
"""

from django.contrib import admin

from privacy.models import Block, PrivacySettings, SecuritySettings


@admin.register(PrivacySettings)
class PrivacySettingsAdmin(admin.ModelAdmin):
    list_display = ("user", "read_receipts_enabled", "last_seen_visibility", "who_can_message", "updated_at")
    list_filter = ("read_receipts_enabled", "last_seen_visibility", "who_can_message")
    search_fields = ("user__name", "user__identity_subject")
    raw_id_fields = ("user",)


@admin.register(SecuritySettings)
class SecuritySettingsAdmin(admin.ModelAdmin):
    list_display = ("user", "suspicious_login_alerts", "e2ee_enabled", "updated_at")
    raw_id_fields = ("user",)


@admin.register(Block)
class BlockAdmin(admin.ModelAdmin):
    """
    Admin configuration for Block model.

    Read-only; blocks are managed by the users themselves.
    """

    list_display = ("blocker", "blocked", "created_at")
    search_fields = ("blocker__name", "blocked__name")
    raw_id_fields = ("blocker", "blocked")
    readonly_fields = ("blocker", "blocked", "created_at", "updated_at")
