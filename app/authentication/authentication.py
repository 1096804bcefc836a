"""
DRF authentication backed by the identity provider.

Every request carrying `Authorization: Bearer <token>` is verified with
IdentityToken and mapped to a local User through IdentityService.resolve,
which also re-syncs the user's name, email and avatar.

Related files:
    - tokens.py: Token verification rules
    - services.py: IdentityService upsert logic
    - chat/middleware.py: Same resolution for WebSocket connections
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

from authentication.services import IdentityService
from authentication.tokens import IdentityToken

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class IdentityProviderAuthentication(JWTAuthentication):
    """
    Authenticate requests with identity-provider bearer tokens.

    Token validation (signature, expiry, subject) is inherited from
    simplejwt via AUTH_TOKEN_CLASSES; user lookup is replaced by an upsert
    keyed by the token subject.
    """

    def get_user(self, validated_token):
        claims = IdentityService.claims_from_token(validated_token.payload)
        result = IdentityService.resolve(claims)
        if not result:
            raise AuthenticationFailed(result.error, code="unauthenticated")

        user = result.data
        if not user.is_active:
            raise AuthenticationFailed("User is inactive", code="user_inactive")
        return user


def resolve_user_from_token(raw_token: str) -> User | None:
    """
    Verify a raw token and return the matching active user.

    Returns None for any invalid token or inactive user. Used outside the
    DRF request cycle (WebSocket handshakes).
    """
    try:
        token = IdentityToken(raw_token)
    except TokenError as e:
        logger.debug(f"Rejected identity token: {e}")
        return None

    result = IdentityService.resolve(IdentityService.claims_from_token(token.payload))
    if not result or not result.data.is_active:
        return None
    return result.data
