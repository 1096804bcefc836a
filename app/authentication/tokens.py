"""
Bearer tokens issued by the external identity provider.

The provider signs short-lived JWTs; this project never mints them outside
of tests. IdentityToken plugs those tokens into simplejwt's verification
machinery (signature, audience, issuer, expiry) while dropping the checks
that only make sense for simplejwt-issued tokens (token type and jti).

Settings (see SIMPLE_JWT in config/settings.py):
    SIGNING_KEY / VERIFYING_KEY: provider key material
    ALGORITHM: e.g. "HS256" or "RS256"
    AUDIENCE / ISSUER: optional, enforced when set
"""

from datetime import timedelta

from django.utils.translation import gettext_lazy as _
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import Token

SUBJECT_CLAIM = "sub"


class IdentityToken(Token):
    """
    Verified identity-provider token.

    Usage:
        token = IdentityToken(raw_token)   # raises TokenError if invalid
        subject = token["sub"]
    """

    token_type = "identity"
    lifetime = timedelta(minutes=60)

    def verify(self):
        self.check_exp()

        subject = self.payload.get(SUBJECT_CLAIM)
        if not isinstance(subject, str) or not subject.strip():
            raise TokenError(_("Token has no subject"))
