"""
Core base model providing common functionality for all domain models.

Base Classes:
    BaseModel: Abstract model with timestamps (created_at, updated_at)

For mixins (UUIDPrimaryKeyMixin, SoftDeleteMixin), see core.model_mixins.

Usage:
    from core.models import BaseModel

    class Block(BaseModel):
        blocker = models.ForeignKey(...)
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model providing common timestamp fields.

    Fields:
        created_at: Automatically set when the object is first created
        updated_at: Automatically updated whenever the object is saved

    Note:
        Models that need an explicit, caller-controlled creation time
        (e.g. chat messages, which are ordered by it) override created_at.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"
