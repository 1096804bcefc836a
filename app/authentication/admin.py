"""
Django admin configuration for authentication models.
"""

from django.contrib import admin

from authentication.models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """
    Admin configuration for User model.

    Users are created on first authenticated contact and keyed by the
    identity-provider subject; profile fields are synced from the provider
    and shown read-only.
    """

    list_display = (
        "identity_subject",
        "name",
        "email",
        "is_active",
        "is_staff",
        "date_joined",
    )
    list_filter = ("is_active", "is_staff", "is_superuser", "date_joined")
    search_fields = ("identity_subject", "name", "email")
    ordering = ("-date_joined",)

    fieldsets = (
        (None, {"fields": ("identity_subject",)}),
        ("Provider profile", {"fields": ("name", "email", "avatar_url")}),
        (
            "Status",
            {"fields": ("is_active", "is_staff", "is_superuser")},
        ),
        (
            "Permissions",
            {"fields": ("groups", "user_permissions")},
        ),
        (
            "Important dates",
            {"fields": ("date_joined", "updated_at", "last_login")},
        ),
    )
    filter_horizontal = ("groups", "user_permissions")
    readonly_fields = (
        "identity_subject",
        "name",
        "email",
        "avatar_url",
        "date_joined",
        "updated_at",
        "last_login",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
