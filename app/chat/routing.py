"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/live/ - Live query connection for the authenticated user

Authentication:
    The JWT is passed as ?token=<jwt> or as the "jwt, <token>" subprotocol
    pair; JWTAuthMiddleware attaches the user to the scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/live/", consumers.LiveQueryConsumer.as_asgi()),
]
