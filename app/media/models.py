"""
Upload target model.

An upload target is a short-lived, single-use slot for one media file.
Its UUID is the opaque reference the client passes back when it commits
the media message.

State Flow:
    PENDING -> UPLOADED -> CONSUMED
    PENDING -> EXPIRED
    UPLOADED -> EXPIRED
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class UploadTargetStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    UPLOADED = "uploaded", "Uploaded"
    CONSUMED = "consumed", "Consumed"
    EXPIRED = "expired", "Expired"


class UploadTarget(UUIDPrimaryKeyMixin, BaseModel):
    """
    A single-use write slot for one media file.

    Fields:
        uploader: Only this user may write to or consume the target
        storage_key: Where the bytes live in the default storage
        content_type: MIME type of the uploaded bytes
        size: Size of the uploaded bytes
        status: Current FSM state
        expires_at: Unused targets past this time are expired by cleanup
        uploaded_at: When the bytes arrived
        consumed_at: When a message claimed the target
    """

    uploader = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="upload_targets",
        help_text="User allowed to write to and consume this target",
    )

    storage_key = models.CharField(
        max_length=500,
        help_text="Storage path of the uploaded bytes",
    )

    content_type = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="MIME type of the uploaded bytes",
    )

    size = models.BigIntegerField(
        default=0,
        help_text="Size of the uploaded bytes",
    )

    status = FSMField(
        default=UploadTargetStatus.PENDING,
        choices=UploadTargetStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the target (managed by FSM)",
    )

    expires_at = models.DateTimeField(
        help_text="When this target stops accepting bytes or consumption",
    )

    uploaded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the bytes were received",
    )

    consumed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When a message claimed this target",
    )

    class Meta:
        db_table = "media_upload_target"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status", "expires_at"],
                name="media_target_status_exp_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"UploadTarget({self.pk}, {self.status})"

    @property
    def is_expired(self) -> bool:
        return timezone.now() > self.expires_at

    @transition(field=status, source=UploadTargetStatus.PENDING, target=UploadTargetStatus.UPLOADED)
    def mark_uploaded(self, content_type: str, size: int) -> None:
        self.content_type = content_type
        self.size = size
        self.uploaded_at = timezone.now()

    @transition(field=status, source=UploadTargetStatus.UPLOADED, target=UploadTargetStatus.CONSUMED)
    def consume(self) -> None:
        self.consumed_at = timezone.now()

    @transition(
        field=status,
        source=[UploadTargetStatus.PENDING, UploadTargetStatus.UPLOADED],
        target=UploadTargetStatus.EXPIRED,
    )
    def expire(self) -> None:
        """Give up on an unused target. Bytes are removed by the caller."""
