"""
Chat app for real-time messaging.

This app handles:
- Conversations (direct and group) and their memberships
- Message sending, editing, deletion, replies, reactions and stars
- Backward pagination and search
- Typing indicators and presence
- Live queries over WebSocket

Related apps:
    - authentication: User model and identity tokens
    - privacy: Privacy settings and blocks that gate messaging
    - media: Upload targets backing media messages

WebSocket Support:
    Uses Django Channels for live queries.
    See consumers.py and live.py for subscriptions, routing.py for URLs.

Usage:
    from chat.services import ConversationService, MessageService

    row = ConversationService.get_or_create_direct(alice, bob.id).data
    MessageService.send_text(alice, row["id"], "Hello!")
"""
