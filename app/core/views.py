"""
Infrastructure endpoints that sit outside the chat domain.
"""

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _database_ok() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError as e:
        logger.error(f"Health check: database unreachable: {e}")
        return False
    return True


def _cache_ok() -> bool:
    cache.set("health_check", "ok", timeout=5)
    return cache.get("health_check") == "ok"


def _channel_layer_ok() -> bool:
    layer = get_channel_layer()
    if layer is None:
        return False
    try:
        async_to_sync(layer.group_send)("health", {"type": "health.ping"})
    except (OSError, ConnectionError) as e:
        logger.warning(f"Health check: channel layer unreachable: {e}")
        return False
    return True


def health_check(request):
    """
    Report database, cache and channel-layer reachability.

    Only the database decides the status code (503 when it is down); presence,
    typing and live updates degrade without the other two, but REST keeps
    working.

    Example Response:
        {"status": "healthy", "database": "connected",
         "cache": "connected", "channel_layer": "connected"}
    """
    database = _database_ok()
    body = {
        "status": "healthy" if database else "unhealthy",
        "database": "connected" if database else "disconnected",
        "cache": "connected" if _cache_ok() else "disconnected",
        "channel_layer": "connected" if _channel_layer_ok() else "disconnected",
    }
    return JsonResponse(body, status=200 if database else 503)
