"""
Authentication models.

This module defines the local user record for identities verified by the
external identity provider:
- User: durable user keyed by the provider's subject id

Related files:
    - managers.py: Custom user manager for subject-based creation
    - services.py: IdentityService upsert logic
    - authentication.py: DRF authentication backed by provider tokens

Lifecycle:
    - Created on first authenticated contact
    - Name, email and avatar re-synced on every subsequent contact
    - Never deleted
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager

# Placeholder names providers send when the user never set one
ANONYMOUS_NAME = "Anonymous"
FALLBACK_DISPLAY_NAME = "User"


def resolve_display_name(name: str | None, email: str | None) -> str:
    """
    Pick the name shown to other users.

    Uses the trimmed name unless it is empty or the provider's "anonymous"
    placeholder, then the email local part, then a generic fallback.
    """
    raw_name = (name or "").strip()
    if raw_name and raw_name.lower() != ANONYMOUS_NAME.lower():
        return raw_name

    email_prefix = (email or "").split("@")[0].strip()
    if email_prefix:
        return email_prefix

    return FALLBACK_DISPLAY_NAME


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model keyed by the identity provider's subject id.

    Fields:
        identity_subject: Provider subject id, unique, used as the username
        name: Name as last reported by the provider
        email: Optional email address (not unique, not used for login)
        avatar_url: Optional avatar image URL from the provider
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user was first seen
        updated_at: When the record was last synced

    Usage:
        user = User.objects.create_user(
            identity_subject="user_2abc",
            name="Ada Lovelace",
            email="ada@example.com",
        )
    """

    identity_subject = models.CharField(
        max_length=255,
        unique=True,
        help_text="Subject id issued by the identity provider",
    )

    name = models.CharField(
        max_length=255,
        default=ANONYMOUS_NAME,
        help_text="Name as reported by the identity provider",
    )

    email = models.EmailField(
        max_length=254,
        blank=True,
        null=True,
        help_text="Optional email address reported by the identity provider",
    )

    avatar_url = models.URLField(
        max_length=1024,
        blank=True,
        default="",
        help_text="Avatar image URL reported by the identity provider",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user was first seen",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last synced",
    )

    USERNAME_FIELD = "identity_subject"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["name", "id"]

    def __str__(self):
        return f"{self.display_name} ({self.identity_subject})"

    @property
    def display_name(self) -> str:
        """Name shown to other users."""
        return resolve_display_name(self.name, self.email)

    def get_full_name(self):
        return self.display_name

    def get_short_name(self):
        return self.display_name
