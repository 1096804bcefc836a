"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key (opaque, unguessable ids)
    SoftDeleteMixin: Reversible logical removal (is_deleted, deleted_at)

Usage:
    from core.models import BaseModel
    from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin

    class UploadTarget(UUIDPrimaryKeyMixin, BaseModel):
        ...

    class Membership(SoftDeleteMixin, BaseModel):
        ...

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a random UUID as the primary key.

    The id doubles as an opaque reference that can be handed to clients
    without exposing row counts.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID4)",
    )

    class Meta:
        abstract = True


class SoftDeleteMixin(models.Model):
    """
    Soft delete support for models.

    Instead of permanently deleting records, marks them as deleted.
    Nothing in this project is ever physically removed through this mixin;
    deleted rows stay queryable for history and reply integrity.

    Fields:
        is_deleted: Boolean flag indicating soft delete status
        deleted_at: Timestamp when the record was soft deleted

    Usage:
        membership.soft_delete()     # hide / remove
        membership.restore()         # un-hide / re-add
    """

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this record has been soft deleted",
    )
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp when this record was soft deleted",
    )

    class Meta:
        abstract = True

    def soft_delete(self, extra_fields: list[str] | None = None) -> None:
        """
        Mark this record as deleted.

        Args:
            extra_fields: Additional fields changed by the caller that
                should be persisted in the same UPDATE.
        """
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.save(update_fields=["is_deleted", "deleted_at", "updated_at", *(extra_fields or [])])

    def restore(self, extra_fields: list[str] | None = None) -> None:
        """
        Restore a soft-deleted record.

        Args:
            extra_fields: Additional fields changed by the caller that
                should be persisted in the same UPDATE.
        """
        self.is_deleted = False
        self.deleted_at = None
        self.save(update_fields=["is_deleted", "deleted_at", "updated_at", *(extra_fields or [])])
