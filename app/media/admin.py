"""Django admin configuration for media app."""

from django.contrib import admin

from media.models import UploadTarget


@admin.register(UploadTarget)
class UploadTargetAdmin(admin.ModelAdmin):
    """Admin configuration for UploadTarget model."""

    list_display = [
        "id",
        "uploader",
        "content_type",
        "size",
        "status",
        "expires_at",
        "created_at",
    ]
    list_filter = ["status", "content_type"]
    search_fields = ["id", "uploader__name"]
    readonly_fields = [
        "id",
        "storage_key",
        "content_type",
        "size",
        "status",
        "uploaded_at",
        "consumed_at",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["uploader"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
