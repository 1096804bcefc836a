"""
API views for chat.

URL Structure (all under /api/v1/chat/):
    users/                                          GET
    conversations/                                  GET
    conversations/direct/                           POST
    conversations/group/                            POST
    conversations/{id}/                             GET, DELETE
    conversations/{id}/read/                        POST
    conversations/{id}/members/                     GET, POST
    conversations/{id}/members/{user_id}/           PATCH, DELETE
    conversations/{id}/messages/                    GET, POST
    conversations/{id}/messages/media/              POST
    conversations/{id}/messages/search/             GET
    conversations/{id}/starred/                     GET
    conversations/{id}/typing/                      GET, POST
    messages/search/                                GET
    messages/{id}/                                  PATCH, DELETE
    messages/{id}/edits/                            GET
    messages/{id}/reactions/toggle/                 POST
    messages/{id}/star/toggle/                      POST
    presence/heartbeat/                             POST
    presence/online/                                GET
    presence/{user_id}/                             GET

Design Decisions:
    - Views only parse input and render output; every rule lives in
      chat.services
    - Failures are rendered from the ServiceResult, so a hidden or blocked
      conversation is a 404 like a missing one
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult

from chat.serializers import (
    ConversationRowSerializer,
    DirectConversationCreateSerializer,
    DirectoryUserSerializer,
    GroupConversationCreateSerializer,
    HeartbeatSerializer,
    MediaMessageCreateSerializer,
    MemberAddSerializer,
    MemberRoleSerializer,
    MemberSerializer,
    MessageCreateSerializer,
    MessageEditHistorySerializer,
    MessageEditSerializer,
    MessageListQuerySerializer,
    MessagePageSerializer,
    MessageSearchHitSerializer,
    MessageSearchQuerySerializer,
    MessageSerializer,
    OnlineUsersSerializer,
    ReactionToggleResponseSerializer,
    ReactionToggleSerializer,
    ReadMarkSerializer,
    StarToggleResponseSerializer,
    TypingSerializer,
    TypingUserSerializer,
    UserSearchQuerySerializer,
)
from chat.services import (
    ConversationService,
    MembershipService,
    MessagePresenter,
    MessageQueryService,
    MessageService,
    PresenceService,
    ReactionService,
    StarService,
    TypingService,
    UserDirectoryService,
)

NOT_FOUND_RESPONSE = OpenApiResponse(description="Conversation or message not found")


def _failure(result) -> Response:
    return Response(result.to_response(), status=result.http_status)


def _present(user, message) -> dict:
    return MessageSerializer(MessagePresenter.present(user, message.conversation, [message])[0]).data


# =============================================================================
# Directory
# =============================================================================


class UserDirectoryView(APIView):
    """
    User picker.

    GET /api/v1/chat/users/?search=<name fragment>
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_users",
        summary="List users",
        parameters=[UserSearchQuerySerializer],
        responses={200: DirectoryUserSerializer(many=True)},
        tags=["Chat - Users"],
    )
    def get(self, request):
        query = UserSearchQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        users = UserDirectoryService.list_users(request.user, query.validated_data.get("search"))
        return Response(DirectoryUserSerializer(users, many=True).data)


# =============================================================================
# Conversations
# =============================================================================


class ConversationListView(APIView):
    """The caller's conversations, most recently updated first."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        responses={200: ConversationRowSerializer(many=True)},
        tags=["Chat - Conversations"],
    )
    def get(self, request):
        rows = ConversationService.list_for_user(request.user)
        return Response(ConversationRowSerializer(rows, many=True).data)


class DirectConversationView(APIView):
    """
    Open the direct conversation with another user.

    Reuses the existing conversation (restoring it if the caller hid it),
    otherwise creates one.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="open_direct_conversation",
        summary="Get or create direct conversation",
        request=DirectConversationCreateSerializer,
        responses={
            200: ConversationRowSerializer,
            403: OpenApiResponse(description="The user is not accepting messages"),
            404: OpenApiResponse(description="User not found"),
        },
        tags=["Chat - Conversations"],
    )
    def post(self, request):
        serializer = DirectConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.get_or_create_direct(request.user, serializer.validated_data["user_id"])
        if not result:
            return _failure(result)
        return Response(ConversationRowSerializer(result.data).data)


class GroupConversationView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_group_conversation",
        summary="Create group",
        request=GroupConversationCreateSerializer,
        responses={201: ConversationRowSerializer},
        tags=["Chat - Conversations"],
    )
    def post(self, request):
        serializer = GroupConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.create_group(
            request.user,
            serializer.validated_data["name"],
            serializer.validated_data["member_ids"],
        )
        if not result:
            return _failure(result)
        return Response(ConversationRowSerializer(result.data).data, status=status.HTTP_201_CREATED)


class ConversationDetailView(APIView):
    """
    One conversation.

    GET: the caller's row for it
    DELETE: hide it and its history for the caller only
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        responses={200: ConversationRowSerializer, 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Conversations"],
    )
    def get(self, request, conversation_id):
        result = ConversationService.get_conversation(request.user, conversation_id)
        if not result:
            return _failure(result)
        return Response(ConversationRowSerializer(result.data).data)

    @extend_schema(
        operation_id="delete_conversation_for_me",
        summary="Delete conversation for me",
        responses={204: None, 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Conversations"],
    )
    def delete(self, request, conversation_id):
        result = ConversationService.delete_for_caller(request.user, conversation_id)
        if not result:
            return _failure(result)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ConversationReadView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        request=None,
        responses={200: ReadMarkSerializer, 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Conversations"],
    )
    def post(self, request, conversation_id):
        result = ConversationService.mark_as_read(request.user, conversation_id)
        if not result:
            return _failure(result)
        return Response(ReadMarkSerializer(result.data).data)


# =============================================================================
# Members
# =============================================================================


class MemberListView(APIView):
    """
    Group members.

    GET: active members, owner first
    POST: add users (owners and admins only)
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_members",
        summary="List members",
        responses={200: MemberSerializer(many=True), 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Members"],
    )
    def get(self, request, conversation_id):
        result = MembershipService.list_members(request.user, conversation_id)
        if not result:
            return _failure(result)
        return Response(MemberSerializer(result.data, many=True).data)

    @extend_schema(
        operation_id="add_members",
        summary="Add members",
        request=MemberAddSerializer,
        responses={
            200: OpenApiResponse(description="Number of members added"),
            403: OpenApiResponse(description="Only owners and admins can add members"),
        },
        tags=["Chat - Members"],
    )
    def post(self, request, conversation_id):
        serializer = MemberAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MembershipService.add_members(request.user, conversation_id, serializer.validated_data["user_ids"])
        if not result:
            return _failure(result)
        return Response(result.data)


class MemberDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="set_member_role",
        summary="Change member role",
        request=MemberRoleSerializer,
        responses={
            200: OpenApiResponse(description="The member's new role"),
            403: OpenApiResponse(description="Only the owner can change roles"),
        },
        tags=["Chat - Members"],
    )
    def patch(self, request, conversation_id, user_id):
        serializer = MemberRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MembershipService.set_role(
            request.user, conversation_id, user_id, serializer.validated_data["role"]
        )
        if not result:
            return _failure(result)
        return Response(result.data)

    @extend_schema(
        operation_id="remove_member",
        summary="Remove member",
        responses={
            204: None,
            403: OpenApiResponse(description="Caller does not outrank the member"),
        },
        tags=["Chat - Members"],
    )
    def delete(self, request, conversation_id, user_id):
        result = MembershipService.remove_member(request.user, conversation_id, user_id)
        if not result:
            return _failure(result)
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Messages
# =============================================================================


class ConversationMessagesView(APIView):
    """
    Messages in a conversation.

    GET: one page, oldest first; pass ?before=<oldest_created_at> for the
         previous page
    POST: send a text message
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_messages",
        summary="List messages",
        parameters=[MessageListQuerySerializer],
        responses={200: MessagePageSerializer, 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Messages"],
    )
    def get(self, request, conversation_id):
        query = MessageListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = MessageQueryService.list_messages(
            request.user,
            conversation_id,
            before=query.validated_data.get("before"),
            limit=query.validated_data.get("limit"),
        )
        if not result:
            return _failure(result)
        return Response(MessagePageSerializer(result.data).data)

    @extend_schema(
        operation_id="send_message",
        summary="Send text message",
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="Empty or too long body, or invalid reply target"),
            403: OpenApiResponse(description="The recipient is not accepting messages"),
            404: NOT_FOUND_RESPONSE,
        },
        tags=["Chat - Messages"],
    )
    def post(self, request, conversation_id):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.send_text(
            request.user,
            conversation_id,
            serializer.validated_data["body"],
            reply_to_id=serializer.validated_data.get("reply_to_id"),
        )
        if not result:
            return _failure(result)
        return Response(_present(request.user, result.data), status=status.HTTP_201_CREATED)


class MediaMessageView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="send_media_message",
        summary="Send media message",
        description="Commit an image, video or voice message from an uploaded target.",
        request=MediaMessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="Unknown, expired, used or mismatched upload"),
            404: NOT_FOUND_RESPONSE,
        },
        tags=["Chat - Messages"],
    )
    def post(self, request, conversation_id):
        serializer = MediaMessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = MessageService.send_media(
            request.user,
            conversation_id,
            data["media_ref"],
            data["media_kind"],
            caption=data["caption"],
            reply_to_id=data.get("reply_to_id"),
        )
        if not result:
            return _failure(result)
        return Response(_present(request.user, result.data), status=status.HTTP_201_CREATED)


class MessageDetailView(APIView):
    """
    Edit or delete one of the caller's messages.

    PATCH /api/v1/chat/messages/{id}/   {"body": "..."}
    DELETE /api/v1/chat/messages/{id}/  (deleted for everyone)
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="edit_message",
        summary="Edit message",
        request=MessageEditSerializer,
        responses={
            200: MessageSerializer,
            403: OpenApiResponse(description="Not the sender"),
            404: NOT_FOUND_RESPONSE,
        },
        tags=["Chat - Messages"],
    )
    def patch(self, request, message_id):
        serializer = MessageEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.edit_message(request.user, message_id, serializer.validated_data["body"])
        if not result:
            return _failure(result)
        return Response(_present(request.user, result.data))

    @extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        responses={
            200: MessageSerializer,
            403: OpenApiResponse(description="Not the sender"),
            404: NOT_FOUND_RESPONSE,
        },
        tags=["Chat - Messages"],
    )
    def delete(self, request, message_id):
        result = MessageService.delete_message(request.user, message_id)
        if not result:
            return _failure(result)
        return Response(_present(request.user, result.data))


class MessageEditHistoryView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="message_edit_history",
        summary="Message edit history",
        responses={200: MessageEditHistorySerializer(many=True), 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Messages"],
    )
    def get(self, request, message_id):
        result = MessageService.get_edit_history(request.user, message_id)
        if not result:
            return _failure(result)
        return Response(MessageEditHistorySerializer(result.data, many=True).data)


class ReactionToggleView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="toggle_reaction",
        summary="Toggle reaction",
        request=ReactionToggleSerializer,
        responses={
            200: ReactionToggleResponseSerializer,
            400: OpenApiResponse(description="Emoji not in the allowed set"),
            404: NOT_FOUND_RESPONSE,
        },
        tags=["Chat - Reactions"],
    )
    def post(self, request, message_id):
        serializer = ReactionToggleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ReactionService.toggle_reaction(request.user, message_id, serializer.validated_data["emoji"])
        if not result:
            return _failure(result)
        return Response(ReactionToggleResponseSerializer(result.data).data)


class StarToggleView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="toggle_star",
        summary="Toggle star",
        request=None,
        responses={200: StarToggleResponseSerializer, 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Stars"],
    )
    def post(self, request, message_id):
        result = StarService.toggle_star(request.user, message_id)
        if not result:
            return _failure(result)
        return Response(StarToggleResponseSerializer(result.data).data)


class StarredMessagesView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_starred_messages",
        summary="List starred messages",
        responses={200: MessageSerializer(many=True), 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Stars"],
    )
    def get(self, request, conversation_id):
        result = StarService.list_starred(request.user, conversation_id)
        if not result:
            return _failure(result)
        return Response(MessageSerializer(result.data, many=True).data)


# =============================================================================
# Search
# =============================================================================


def _search_filters(request):
    query = MessageSearchQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    return query.to_filters()


class ConversationSearchView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="search_conversation_messages",
        summary="Search in conversation",
        parameters=[MessageSearchQuerySerializer],
        responses={200: MessageSearchHitSerializer(many=True), 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Search"],
    )
    def get(self, request, conversation_id):
        result = MessageQueryService.search_in_conversation(request.user, conversation_id, _search_filters(request))
        if not result:
            return _failure(result)
        return Response(MessageSearchHitSerializer(result.data, many=True).data)


class MessageSearchView(APIView):
    """Search every conversation the caller can see."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="search_messages",
        summary="Search messages",
        parameters=[MessageSearchQuerySerializer],
        responses={200: MessageSearchHitSerializer(many=True)},
        tags=["Chat - Search"],
    )
    def get(self, request):
        result = MessageQueryService.search_global(request.user, _search_filters(request))
        if not result:
            return _failure(result)
        return Response(MessageSearchHitSerializer(result.data, many=True).data)


# =============================================================================
# Typing and presence
# =============================================================================


class TypingView(APIView):
    """
    Typing indicators.

    GET: other members typing right now
    POST: {"is_typing": true|false}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_typing",
        summary="Who is typing",
        responses={200: TypingUserSerializer(many=True), 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Presence"],
    )
    def get(self, request, conversation_id):
        result = TypingService.list_typing(request.user, conversation_id)
        if not result:
            return _failure(result)
        return Response(TypingUserSerializer(result.data, many=True).data)

    @extend_schema(
        operation_id="set_typing",
        summary="Set typing",
        request=TypingSerializer,
        responses={200: TypingSerializer, 404: NOT_FOUND_RESPONSE},
        tags=["Chat - Presence"],
    )
    def post(self, request, conversation_id):
        serializer = TypingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TypingService.set_typing(request.user, conversation_id, serializer.validated_data["is_typing"])
        if not result:
            return _failure(result)
        return Response(TypingSerializer(result.data).data)


class HeartbeatView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="presence_heartbeat",
        summary="Presence heartbeat",
        description="Call every 15 seconds while the app is in the foreground.",
        request=None,
        responses={200: HeartbeatSerializer},
        tags=["Chat - Presence"],
    )
    def post(self, request):
        result = PresenceService.heartbeat(request.user)
        return Response(HeartbeatSerializer(result.data).data)


class OnlineUsersView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_online_users",
        summary="Online users",
        responses={200: OnlineUsersSerializer},
        tags=["Chat - Presence"],
    )
    def get(self, request):
        return Response({"user_ids": PresenceService.online_user_ids(request.user)})


class UserPresenceView(APIView):
    """Online state and last-seen time of one user, subject to their privacy settings."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_user_presence",
        summary="User presence",
        parameters=[OpenApiParameter("user_id", OpenApiTypes.INT, OpenApiParameter.PATH)],
        responses={200: OpenApiResponse(description="is_online and last_seen_at (null when hidden)")},
        tags=["Chat - Presence"],
    )
    def get(self, request, user_id):
        target = get_user_model().objects.filter(pk=user_id, is_active=True).first()
        if target is None:
            return _failure(ServiceResult.not_found("User not found", error_code="USER_NOT_FOUND"))

        last_seen_at = PresenceService.last_seen_for(request.user, target)
        is_online = PresenceService.visible_online_map(request.user, [target.pk])[target.pk]
        return Response({"user_id": target.pk, "is_online": is_online, "last_seen_at": last_seen_at})
