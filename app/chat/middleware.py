"""
WebSocket authentication middleware.

Resolves the identity-provider token of a WebSocket handshake to a user,
the same way IdentityProviderAuthentication does for HTTP requests.

Token Passing Methods:
    1. Query string: ws://host/ws/live/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

Usage in config/asgi.py:
    from chat.middleware import JWTAuthMiddleware

    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser

from authentication.authentication import resolve_user_from_token

logger = logging.getLogger(__name__)


def token_from_query(scope) -> str | None:
    params = parse_qs(scope.get("query_string", b"").decode())
    values = params.get("token", [])
    return values[0] if values else None


def token_from_subprotocol(scope) -> str | None:
    """Expects: Sec-WebSocket-Protocol: jwt, <token>"""
    subprotocols = scope.get("subprotocols", [])
    if len(subprotocols) >= 2 and subprotocols[0] == "jwt":
        return subprotocols[1]
    return None


class JWTAuthMiddleware(BaseMiddleware):
    """
    Attach the authenticated user (or AnonymousUser) to the scope.

    Invalid, expired and missing tokens all produce AnonymousUser; the
    consumer decides what to do with anonymous connections.
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = token_from_query(scope) or token_from_subprotocol(scope)

        user = None
        if token:
            user = await database_sync_to_async(resolve_user_from_token)(token)
            if user is None:
                logger.warning("Rejected WebSocket token")

        scope["user"] = user or AnonymousUser()
        return await super().__call__(scope, receive, send)
