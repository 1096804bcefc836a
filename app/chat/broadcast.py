"""
Change notifications for live subscriptions.

Services and signal handlers call these helpers after a state change; the
live consumer re-evaluates every subscription that depends on the touched
group. Notifications are sent after the surrounding transaction commits so
subscribers never read uncommitted state.

Channel Groups:
    user_<id>          Anything shown in one user's own views changed
    conversation_<id>  Anything inside one conversation changed
    presence           Some user came online or went quiet
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

CHANGED_EVENT = "live.changed"
PRESENCE_GROUP = "presence"


def user_group(user_id) -> str:
    return f"user_{user_id}"


def conversation_group(conversation_id) -> str:
    return f"conversation_{conversation_id}"


def _send(groups: set[str]) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    for group in sorted(groups):
        try:
            async_to_sync(channel_layer.group_send)(group, {"type": CHANGED_EVENT, "group": group})
        except Exception as e:
            # Live delivery is best effort; the write already committed
            logger.warning(f"Failed to notify group {group}: {e}")


def notify_groups(groups: Iterable[str]) -> None:
    """Notify the given groups once the current transaction commits."""
    pending = set(groups)
    if pending:
        transaction.on_commit(lambda: _send(pending))


def notify_conversation(conversation_id, user_ids: Iterable | None = None) -> None:
    """Notify a conversation's group plus the listed users' groups."""
    groups = {conversation_group(conversation_id)}
    groups.update(user_group(user_id) for user_id in (user_ids or ()))
    notify_groups(groups)


def notify_users(user_ids: Iterable) -> None:
    notify_groups(user_group(user_id) for user_id in user_ids)


def notify_presence() -> None:
    notify_groups([PRESENCE_GROUP])


def notify_conversation_members(conversation_id, extra_user_ids: Iterable = ()) -> None:
    """
    Notify a conversation's group and every member's user group.

    Members are looked up when the transaction commits, so members added
    later in the same transaction are included. Hidden and removed members
    are notified too.
    """
    from chat.models import Membership

    extra = set(extra_user_ids)

    def _resolve_and_send():
        user_ids = set(
            Membership.objects.filter(conversation_id=conversation_id).values_list("user_id", flat=True)
        )
        groups = {conversation_group(conversation_id)}
        groups.update(user_group(user_id) for user_id in user_ids | extra)
        _send(groups)

    transaction.on_commit(_resolve_and_send)


def notify_contacts(user_id) -> None:
    """Notify a user and everyone who shares a conversation with them."""
    from chat.models import Membership

    def _resolve_and_send():
        conversation_ids = Membership.objects.filter(user_id=user_id).values_list("conversation_id", flat=True)
        user_ids = set(
            Membership.objects.filter(conversation_id__in=conversation_ids).values_list("user_id", flat=True)
        )
        user_ids.add(user_id)
        _send({user_group(uid) for uid in user_ids} | {PRESENCE_GROUP})

    transaction.on_commit(_resolve_and_send)
