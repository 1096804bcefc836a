"""
URL configuration for chat API.

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
See chat/views.py for the full route table.
"""

from django.urls import path

from chat import views

app_name = "chat"

urlpatterns = [
    path("users/", views.UserDirectoryView.as_view(), name="users"),
    # Conversations
    path("conversations/", views.ConversationListView.as_view(), name="conversation-list"),
    path("conversations/direct/", views.DirectConversationView.as_view(), name="conversation-direct"),
    path("conversations/group/", views.GroupConversationView.as_view(), name="conversation-group"),
    path(
        "conversations/<int:conversation_id>/",
        views.ConversationDetailView.as_view(),
        name="conversation-detail",
    ),
    path(
        "conversations/<int:conversation_id>/read/",
        views.ConversationReadView.as_view(),
        name="conversation-read",
    ),
    # Members
    path(
        "conversations/<int:conversation_id>/members/",
        views.MemberListView.as_view(),
        name="member-list",
    ),
    path(
        "conversations/<int:conversation_id>/members/<int:user_id>/",
        views.MemberDetailView.as_view(),
        name="member-detail",
    ),
    # Messages
    path(
        "conversations/<int:conversation_id>/messages/",
        views.ConversationMessagesView.as_view(),
        name="message-list",
    ),
    path(
        "conversations/<int:conversation_id>/messages/media/",
        views.MediaMessageView.as_view(),
        name="message-media",
    ),
    path(
        "conversations/<int:conversation_id>/messages/search/",
        views.ConversationSearchView.as_view(),
        name="conversation-search",
    ),
    path(
        "conversations/<int:conversation_id>/starred/",
        views.StarredMessagesView.as_view(),
        name="starred-list",
    ),
    path(
        "conversations/<int:conversation_id>/typing/",
        views.TypingView.as_view(),
        name="typing",
    ),
    path("messages/search/", views.MessageSearchView.as_view(), name="message-search"),
    path("messages/<int:message_id>/", views.MessageDetailView.as_view(), name="message-detail"),
    path("messages/<int:message_id>/edits/", views.MessageEditHistoryView.as_view(), name="message-edits"),
    path(
        "messages/<int:message_id>/reactions/toggle/",
        views.ReactionToggleView.as_view(),
        name="reaction-toggle",
    ),
    path("messages/<int:message_id>/star/toggle/", views.StarToggleView.as_view(), name="star-toggle"),
    # Presence
    path("presence/heartbeat/", views.HeartbeatView.as_view(), name="presence-heartbeat"),
    path("presence/online/", views.OnlineUsersView.as_view(), name="presence-online"),
    path("presence/<int:user_id>/", views.UserPresenceView.as_view(), name="presence-user"),
]
