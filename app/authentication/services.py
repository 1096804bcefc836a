"""
Identity services.

This module maps verified identity-provider claims to local users:
- IdentityClaims: the verified claim set for one request
- IdentityService: upsert/resolve a User keyed by the provider subject

Related files:
    - models.py: User model and display-name rules
    - authentication.py: DRF authentication class that calls resolve()

Rules:
    - The subject id is the only key; email is informational
    - Name, email and avatar are re-synced on every contact
    - Name falls back: name -> given_name -> nickname -> email local part
      -> "Anonymous"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.constants import SIGN_IN_REQUIRED
from core.services import BaseService, FailureKind, ServiceResult

from authentication.models import ANONYMOUS_NAME, User

if TYPE_CHECKING:
    from typing import Any


@dataclass(frozen=True)
class IdentityClaims:
    """Claims supplied by the identity provider for one verified caller."""

    subject: str
    name: str | None = None
    given_name: str | None = None
    nickname: str | None = None
    email: str | None = None
    picture_url: str | None = None

    @property
    def preferred_name(self) -> str:
        for candidate in (self.name, self.given_name, self.nickname):
            if candidate and candidate.strip():
                return candidate.strip()

        email_prefix = (self.email or "").split("@")[0].strip()
        if email_prefix:
            return email_prefix

        return ANONYMOUS_NAME


class IdentityService(BaseService):
    """
    Resolve verified identities to durable local users.

    Usage:
        claims = IdentityService.claims_from_token(token.payload)
        result = IdentityService.resolve(claims)
        if result:
            user = result.data
    """

    @classmethod
    def claims_from_token(cls, payload: dict[str, Any]) -> IdentityClaims:
        """Map a verified JWT payload to IdentityClaims."""

        def _text(key: str) -> str | None:
            value = payload.get(key)
            return value if isinstance(value, str) and value else None

        return IdentityClaims(
            subject=_text("sub") or "",
            name=_text("name"),
            given_name=_text("given_name"),
            nickname=_text("nickname"),
            email=_text("email"),
            picture_url=_text("picture"),
        )

    @classmethod
    def resolve(cls, claims: IdentityClaims | None) -> ServiceResult[User]:
        """
        Upsert the local user for the given claims.

        Creates the user on first contact; on later contacts syncs name,
        email and avatar when they changed.

        Returns:
            ServiceResult with the User, or UNAUTHENTICATED if there is
            no verified subject
        """
        if claims is None or not claims.subject.strip():
            return ServiceResult.failure(
                SIGN_IN_REQUIRED,
                error_code="UNAUTHENTICATED",
                kind=FailureKind.UNAUTHENTICATED,
            )

        subject = claims.subject.strip()
        synced = {
            "name": claims.preferred_name,
            "email": User.objects.normalize_email(claims.email) if claims.email else None,
            "avatar_url": claims.picture_url or "",
        }

        with cls.atomic():
            user = User.objects.select_for_update().filter(identity_subject=subject).first()

            if user is None:
                user = User.objects.create_user(identity_subject=subject, **synced)
                cls.get_logger().info(f"Created user {user.id} for subject {subject}")
                return ServiceResult.success(user)

            changed = [field for field, value in synced.items() if getattr(user, field) != value]
            if changed:
                for field in changed:
                    setattr(user, field, synced[field])
                user.save(update_fields=[*changed, "updated_at"])
                cls.get_logger().info(f"Synced {', '.join(changed)} for user {user.id}")

        return ServiceResult.success(user)
