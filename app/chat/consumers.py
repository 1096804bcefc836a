"""
WebSocket consumer for live queries.

Consumers:
    LiveQueryConsumer: Subscribe to named queries and receive full results
        whenever their data changes

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"]; anonymous
    connections are closed with code 4001.

Channel Groups:
    The connection always joins its own user_<id> group, plus the groups
    every active subscription depends on (see chat.live). A group is left
    when the last subscription needing it goes away.

Message Types (from client):
    - subscribe: {"type": "subscribe", "id": "s1", "query": "messages",
                  "params": {"conversation_id": 12}}
    - unsubscribe: {"type": "unsubscribe", "id": "s1"}

Message Types (to client):
    - result: {"type": "result", "id": "s1", "query": "messages",
               "success": true, "data": {...}}
              Failed evaluations carry success false, error and error_code.
    - unsubscribed: {"type": "unsubscribed", "id": "s1"}
    - error: Malformed or unknown client message
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from chat.broadcast import user_group
from chat.live import LiveQuery, get_query

logger = logging.getLogger(__name__)

UNAUTHENTICATED_CLOSE_CODE = 4001


@dataclass
class Subscription:
    query: LiveQuery
    params: dict
    groups: set[str] = field(default_factory=set)


class LiveQueryConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer serving live queries for one user.

    Attributes:
        subscriptions: Active subscriptions keyed by client-chosen id
        group_counts: How many subscriptions need each joined group
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.subscriptions: dict[str, Subscription] = {}
        self.group_counts: Counter = Counter()

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            logger.warning("Rejected unauthenticated live connection")
            await self.close(code=UNAUTHENTICATED_CLOSE_CODE)
            return

        self.user = user
        await self.channel_layer.group_add(user_group(user.pk), self.channel_name)

        subprotocol = "jwt" if "jwt" in self.scope.get("subprotocols", []) else None
        await self.accept(subprotocol=subprotocol)
        logger.info(f"User {user.pk} opened a live connection")

    async def disconnect(self, close_code):
        if self.user is None:
            return

        for group in list(self.group_counts):
            await self.channel_layer.group_discard(group, self.channel_name)
        await self.channel_layer.group_discard(user_group(self.user.pk), self.channel_name)
        self.subscriptions.clear()
        self.group_counts.clear()
        logger.info(f"User {self.user.pk} closed a live connection ({close_code})")

    async def receive_json(self, content, **kwargs):
        if not isinstance(content, dict):
            await self._send_error(None, "Messages must be JSON objects", "INVALID_MESSAGE")
            return

        message_type = content.get("type")
        if message_type == "subscribe":
            await self._subscribe(content)
        elif message_type == "unsubscribe":
            await self._unsubscribe(content)
        else:
            await self._send_error(content.get("id"), f"Unknown message type: {message_type}", "INVALID_MESSAGE")

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def _subscribe(self, content: dict):
        sub_id = content.get("id")
        if not isinstance(sub_id, str) or not sub_id:
            await self._send_error(None, "Subscription id is required", "INVALID_MESSAGE")
            return

        query = get_query(content.get("query", ""))
        if query is None:
            await self._send_error(sub_id, f"Unknown query: {content.get('query')}", "UNKNOWN_QUERY")
            return

        params = content.get("params") or {}
        if not isinstance(params, dict):
            await self._send_error(sub_id, "params must be an object", "INVALID_PARAMS")
            return

        # Re-subscribing with the same id replaces the old subscription
        if sub_id in self.subscriptions:
            await self._drop(sub_id)

        subscription = Subscription(query=query, params=params)
        groups = await database_sync_to_async(query.groups)(self.user, params)
        # The user group is joined for the whole connection and invalidates everything
        subscription.groups = groups - {user_group(self.user.pk)}
        self.subscriptions[sub_id] = subscription
        for group in subscription.groups:
            if self.group_counts[group] == 0:
                await self.channel_layer.group_add(group, self.channel_name)
            self.group_counts[group] += 1

        await self._deliver(sub_id, subscription)

    async def _unsubscribe(self, content: dict):
        sub_id = content.get("id")
        if sub_id in self.subscriptions:
            await self._drop(sub_id)
        await self.send_json({"type": "unsubscribed", "id": sub_id})

    async def _drop(self, sub_id: str):
        subscription = self.subscriptions.pop(sub_id)
        for group in subscription.groups:
            self.group_counts[group] -= 1
            if self.group_counts[group] <= 0:
                del self.group_counts[group]
                await self.channel_layer.group_discard(group, self.channel_name)

    async def _deliver(self, sub_id: str, subscription: Subscription):
        payload = await database_sync_to_async(subscription.query.evaluate)(self.user, subscription.params)
        await self.send_json({"type": "result", "id": sub_id, "query": subscription.query.name, **payload})

    async def _send_error(self, sub_id, error: str, error_code: str):
        await self.send_json({"type": "error", "id": sub_id, "error": error, "error_code": error_code})

    # =========================================================================
    # Channel layer events
    # =========================================================================

    async def live_changed(self, event):
        """Re-deliver every subscription that depends on the changed group."""
        group = event.get("group")
        for sub_id, subscription in list(self.subscriptions.items()):
            if group == user_group(self.user.pk) or group in subscription.groups:
                await self._deliver(sub_id, subscription)
