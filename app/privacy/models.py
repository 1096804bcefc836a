"""
Privacy models.

This module defines:
- PrivacySettings: How much of a user's activity others may see
- SecuritySettings: Account security flags
- Block: Directed block edge between two users

Related files:
    - services.py: PrivacyService, SecurityService, BlockService

Lifecycle:
    - Settings rows are materialized lazily on the first update; until then
      the defaults apply
    - Block rows are inserted and deleted by toggling from the blocker's side
"""

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from core.models import BaseModel


class LastSeenVisibility(models.TextChoices):
    """Who may see a user's online state and last-seen time."""

    EVERYONE = "everyone", "Everyone"
    NOBODY = "nobody", "Nobody"


class WhoCanMessage(models.TextChoices):
    """Who may open a direct conversation with a user."""

    EVERYONE = "everyone", "Everyone"
    NOBODY = "nobody", "Nobody"


class PrivacySettings(BaseModel):
    """
    Privacy settings for a user.

    One-to-One with User. Missing rows mean "all defaults".

    Usage:
        PrivacySettings.objects.update_or_create(
            user=user,
            defaults={"read_receipts_enabled": False},
        )
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="privacy_settings",
    )

    read_receipts_enabled = models.BooleanField(
        default=True,
        help_text="Whether other members can see when this user has read their messages",
    )

    last_seen_visibility = models.CharField(
        max_length=20,
        choices=LastSeenVisibility.choices,
        default=LastSeenVisibility.EVERYONE,
        help_text="Who can see this user's online state",
    )

    who_can_message = models.CharField(
        max_length=20,
        choices=WhoCanMessage.choices,
        default=WhoCanMessage.EVERYONE,
        help_text="Who can start a direct conversation with this user",
    )

    class Meta:
        db_table = "privacy_settings"
        verbose_name = "privacy settings"
        verbose_name_plural = "privacy settings"

    def __str__(self) -> str:
        return f"PrivacySettings(user={self.user_id})"


class SecuritySettings(BaseModel):
    """
    Security settings for a user.

    Flags only. e2ee_enabled records the user's preference; no encryption
    protocol is implemented behind it.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="security_settings",
    )

    suspicious_login_alerts = models.BooleanField(
        default=True,
        help_text="Whether to alert the user about suspicious sign-ins",
    )

    e2ee_enabled = models.BooleanField(
        default=False,
        help_text="End-to-end encryption preference flag",
    )

    class Meta:
        db_table = "privacy_security_settings"
        verbose_name = "security settings"
        verbose_name_plural = "security settings"

    def __str__(self) -> str:
        return f"SecuritySettings(user={self.user_id})"


class Block(BaseModel):
    """
    Directed block edge.

    Stored from the blocker's side only, but enforced in both directions:
    if either edge exists, the two users cannot message each other and
    their direct conversation is invisible to both.

    Constraints:
        - One edge per (blocker, blocked)
        - No self-blocks
    """

    blocker = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="blocks_made",
        help_text="User who issued the block",
    )

    blocked = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="blocks_received",
        help_text="User who is blocked",
    )

    class Meta:
        db_table = "privacy_block"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["blocker", "blocked"],
                name="unique_block_edge",
            ),
            models.CheckConstraint(
                condition=~Q(blocker=F("blocked")),
                name="block_not_self",
            ),
        ]
        indexes = [
            # Reverse direction lookups (who blocked me)
            models.Index(
                fields=["blocked", "blocker"],
                name="privacy_block_reverse_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Block({self.blocker_id} -> {self.blocked_id})"
