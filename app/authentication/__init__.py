"""
Authentication application.

Maps identities verified by the external identity provider to durable local
users. Sign-in, sign-out and token issuance happen at the provider; this app
only verifies bearer tokens and upserts the matching User row.

Key components:
    - User model: keyed by the provider's subject id
    - IdentityService: upsert/resolve a User from verified claims
    - IdentityProviderAuthentication: DRF authentication class

Usage:
    from authentication.models import User
    from authentication.services import IdentityClaims, IdentityService
"""
