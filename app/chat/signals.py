"""
Django signals for chat app.

Every committed change to a record that a live query reads is turned into
a change notification for the channel groups that depend on it:

    Message, Conversation, Membership, MessageEdit, MessageReaction
        -> the conversation group and every member's user group
    MessageStar
        -> the starring user's group (stars are private)
    Block
        -> both users' groups
    PrivacySettings
        -> the user, everyone sharing a conversation with them, presence

Typing and presence live in the cache and are broadcast by their services.

Related files:
    - broadcast.py: Group names and on-commit delivery
    - apps.py: Signal registration
"""

from __future__ import annotations

import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from chat.broadcast import notify_contacts, notify_conversation_members, notify_users
from chat.models import Conversation, Membership, Message, MessageEdit, MessageReaction, MessageStar
from privacy.models import Block, PrivacySettings

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Conversation)
def on_conversation_saved(sender, instance, **kwargs):
    notify_conversation_members(instance.pk)


@receiver(post_save, sender=Message)
def on_message_saved(sender, instance, **kwargs):
    notify_conversation_members(instance.conversation_id)


@receiver([post_save, post_delete], sender=Membership)
def on_membership_changed(sender, instance, **kwargs):
    notify_conversation_members(instance.conversation_id, extra_user_ids=[instance.user_id])


def _notify_message_conversation(message_id) -> None:
    conversation_id = Message.objects.filter(pk=message_id).values_list("conversation_id", flat=True).first()
    if conversation_id is not None:
        notify_conversation_members(conversation_id)


@receiver(post_save, sender=MessageEdit)
def on_message_edited(sender, instance, created, **kwargs):
    if created:
        _notify_message_conversation(instance.message_id)


@receiver([post_save, post_delete], sender=MessageReaction)
def on_reaction_changed(sender, instance, **kwargs):
    _notify_message_conversation(instance.message_id)


@receiver([post_save, post_delete], sender=MessageStar)
def on_star_changed(sender, instance, **kwargs):
    notify_users([instance.user_id])


@receiver([post_save, post_delete], sender=Block)
def on_block_changed(sender, instance, **kwargs):
    logger.debug(f"Block between {instance.blocker_id} and {instance.blocked_id} changed")
    notify_users([instance.blocker_id, instance.blocked_id])


@receiver(post_save, sender=PrivacySettings)
def on_privacy_settings_saved(sender, instance, **kwargs):
    notify_contacts(instance.user_id)
