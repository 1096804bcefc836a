"""
Serializers for upload targets.

Provides:
- UploadTargetAllocateSerializer: Request body for allocating a target
- UploadTargetSerializer: Allocation response (reference and write URL)
- UploadTargetStatusSerializer: State of a target after bytes arrive
"""

from __future__ import annotations

from rest_framework import serializers


class UploadTargetAllocateSerializer(serializers.Serializer):
    content_type = serializers.CharField(
        max_length=100,
        help_text="MIME type of the file about to be uploaded",
    )
    size = serializers.IntegerField(
        required=False,
        min_value=0,
        help_text="Declared file size in bytes",
    )


class UploadTargetSerializer(serializers.Serializer):
    reference = serializers.CharField(help_text="Opaque reference to pass when sending the media message")
    upload_url = serializers.CharField(help_text="Where to PUT the file bytes")
    method = serializers.CharField()
    direct = serializers.BooleanField(help_text="True when uploading straight to object storage")
    expires_at = serializers.DateTimeField()


class UploadTargetStatusSerializer(serializers.Serializer):
    reference = serializers.UUIDField(source="id")
    status = serializers.CharField()
    content_type = serializers.CharField()
    size = serializers.IntegerField()
