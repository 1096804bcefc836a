"""
Privacy services.

This module provides:
- PrivacyService: Privacy settings lookup/update and messaging permission
- SecurityService: Security settings lookup/update
- BlockService: Block ledger (toggle, symmetric checks, listing)

Related files:
    - models.py: PrivacySettings, SecuritySettings, Block
    - chat/services.py: Consults these services before every send

Rules:
    - Settings rows are optional; absent rows mean defaults
    - Blocks are symmetric in effect: either direction suppresses messaging
      and direct-conversation visibility for both users
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db.models import Q

from core.services import BaseService, ServiceResult
from privacy.models import (
    Block,
    LastSeenVisibility,
    PrivacySettings,
    SecuritySettings,
    WhoCanMessage,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

    from authentication.models import User


def _user_id(user_or_id) -> int:
    return getattr(user_or_id, "pk", user_or_id)


class PrivacyService(BaseService):
    """
    Service for per-user privacy settings.

    Methods:
        get_settings: Stored row or unsaved defaults
        settings_for_users: Bulk lookup keyed by user id
        update_settings: Validate and persist changes
        can_message: Whether a sender may message a recipient
        can_see_presence: Whether a viewer may see a target's online state
    """

    FIELD_CHOICES = {
        "last_seen_visibility": LastSeenVisibility.values,
        "who_can_message": WhoCanMessage.values,
    }
    BOOLEAN_FIELDS = ("read_receipts_enabled",)

    @classmethod
    def get_settings(cls, user) -> PrivacySettings:
        """Return the user's settings, or an unsaved instance with defaults."""
        user_id = _user_id(user)
        existing = PrivacySettings.objects.filter(user_id=user_id).first()
        return existing or PrivacySettings(user_id=user_id)

    @classmethod
    def settings_for_users(cls, user_ids: Iterable[int]) -> dict[int, PrivacySettings]:
        """
        Bulk variant of get_settings().

        Every requested id is present in the result; users without a row
        get an unsaved defaults instance.
        """
        ids = set(user_ids)
        found = {row.user_id: row for row in PrivacySettings.objects.filter(user_id__in=ids)}
        return {user_id: found.get(user_id) or PrivacySettings(user_id=user_id) for user_id in ids}

    @classmethod
    def update_settings(cls, user: User, **changes: Any) -> ServiceResult[PrivacySettings]:
        """
        Update privacy settings, materializing the row if needed.

        Args:
            user: Owner of the settings
            **changes: Any of read_receipts_enabled, last_seen_visibility,
                who_can_message

        Returns:
            ServiceResult with the saved PrivacySettings
        """
        errors: dict[str, list[str]] = {}
        for field, value in changes.items():
            if field in cls.BOOLEAN_FIELDS:
                if not isinstance(value, bool):
                    errors[field] = ["Must be a boolean."]
            elif field in cls.FIELD_CHOICES:
                if value not in cls.FIELD_CHOICES[field]:
                    errors[field] = [f"Must be one of: {', '.join(cls.FIELD_CHOICES[field])}."]
            else:
                errors[field] = ["Unknown setting."]

        if errors:
            return ServiceResult.failure(
                "Invalid privacy settings",
                error_code="INVALID_PRIVACY_SETTINGS",
                errors=errors,
            )

        with cls.atomic():
            settings_row, _ = PrivacySettings.objects.update_or_create(
                user=user,
                defaults=changes,
            )

        cls.get_logger().info(f"User {user.id} updated privacy settings: {sorted(changes)}")
        return ServiceResult.success(settings_row)

    @classmethod
    def can_message(cls, sender, recipient) -> bool:
        """
        Whether messaging between the two users is permitted.

        Either side opting out of messages blocks the pair.
        """
        both = cls.settings_for_users([_user_id(sender), _user_id(recipient)])
        return all(row.who_can_message != WhoCanMessage.NOBODY for row in both.values())

    @classmethod
    def can_see_presence(cls, viewer, target) -> bool:
        """Whether the viewer may see the target's online state."""
        if _user_id(viewer) == _user_id(target):
            return True
        return cls.get_settings(target).last_seen_visibility == LastSeenVisibility.EVERYONE


class SecurityService(BaseService):
    """Service for per-user security settings."""

    BOOLEAN_FIELDS = ("suspicious_login_alerts", "e2ee_enabled")

    @classmethod
    def get_settings(cls, user) -> SecuritySettings:
        user_id = _user_id(user)
        existing = SecuritySettings.objects.filter(user_id=user_id).first()
        return existing or SecuritySettings(user_id=user_id)

    @classmethod
    def update_settings(cls, user: User, **changes: Any) -> ServiceResult[SecuritySettings]:
        errors = {
            field: ["Must be a boolean."] if field in cls.BOOLEAN_FIELDS else ["Unknown setting."]
            for field, value in changes.items()
            if field not in cls.BOOLEAN_FIELDS or not isinstance(value, bool)
        }
        if errors:
            return ServiceResult.failure(
                "Invalid security settings",
                error_code="INVALID_SECURITY_SETTINGS",
                errors=errors,
            )

        with cls.atomic():
            settings_row, _ = SecuritySettings.objects.update_or_create(
                user=user,
                defaults=changes,
            )

        cls.get_logger().info(f"User {user.id} updated security settings: {sorted(changes)}")
        return ServiceResult.success(settings_row)


class BlockService(BaseService):
    """
    Service for the block ledger.

    Usage:
        result = BlockService.toggle_block(alice, bob.id)
        result.data  # {"blocked": True}

        BlockService.is_blocked_between(bob, alice)  # True
    """

    @classmethod
    def is_blocked_between(cls, a, b) -> bool:
        """True if either user has blocked the other."""
        a_id, b_id = _user_id(a), _user_id(b)
        return Block.objects.filter(
            Q(blocker_id=a_id, blocked_id=b_id) | Q(blocker_id=b_id, blocked_id=a_id)
        ).exists()

    @classmethod
    def blocked_ids_for(cls, user) -> set[int]:
        """Ids of users blocked by, or blocking, the given user."""
        user_id = _user_id(user)
        made = Block.objects.filter(blocker_id=user_id).values_list("blocked_id", flat=True)
        received = Block.objects.filter(blocked_id=user_id).values_list("blocker_id", flat=True)
        return set(made) | set(received)

    @classmethod
    def blocked_by_ids(cls, user) -> set[int]:
        """Ids of users the given user has blocked (one direction only)."""
        return set(Block.objects.filter(blocker_id=_user_id(user)).values_list("blocked_id", flat=True))

    @classmethod
    def blockers_of(cls, user) -> set[int]:
        """Ids of users who have blocked the given user."""
        return set(Block.objects.filter(blocked_id=_user_id(user)).values_list("blocker_id", flat=True))

    @classmethod
    def toggle_block(cls, blocker: User, target_id) -> ServiceResult[dict]:
        """
        Block the target, or unblock if already blocked.

        Returns:
            ServiceResult with {"blocked": bool}
        """
        User = get_user_model()

        if str(target_id) == str(blocker.pk):
            return ServiceResult.failure("You cannot block yourself", error_code="CANNOT_BLOCK_SELF")

        target = User.objects.filter(pk=target_id).first()
        if target is None:
            return ServiceResult.not_found("User not found", error_code="USER_NOT_FOUND")

        with cls.atomic():
            # Serialize toggles issued by the same blocker
            User.objects.select_for_update().filter(pk=blocker.pk).first()

            deleted, _ = Block.objects.filter(blocker=blocker, blocked=target).delete()
            if deleted:
                blocked = False
            else:
                Block.objects.create(blocker=blocker, blocked=target)
                blocked = True

        cls.get_logger().info(
            f"User {blocker.id} {'blocked' if blocked else 'unblocked'} user {target.id}"
        )
        return ServiceResult.success({"blocked": blocked})

    @classmethod
    def list_blocked(cls, user: User) -> list[dict]:
        """Users the caller has blocked, most recent first."""
        blocks = Block.objects.filter(blocker=user).select_related("blocked").order_by("-created_at")
        return [
            {
                "id": block.blocked_id,
                "display_name": block.blocked.display_name,
                "avatar_url": block.blocked.avatar_url,
                "blocked_at": block.created_at,
            }
            for block in blocks
        ]
