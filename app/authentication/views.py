"""
Authentication views.

Sign-in happens at the identity provider; the only endpoint here returns
the local user the bearer token resolved to.

Endpoints:
    GET /api/v1/auth/me/ - Current user
"""

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import UserSerializer


class MeView(APIView):
    """
    Return the user resolved from the caller's identity token.

    The first call for a new subject creates the user.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="auth_me",
        summary="Get current user",
        tags=["Auth"],
        responses={200: UserSerializer},
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)
