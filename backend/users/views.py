import logging

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.crypto import get_random_string
from drf_spectacular.utils import extend_schema

from access.guard import guard_route
from access.permissions import RouteGuardPermission
from access.session import AccessSession
from core.exceptions import Unauthorized
from core.mixins import MerchantFilteredViewSet
from .tasks import send_password_reset_email
from .serializers import (
    UserSerializer,
    UserCreateSerializer,
    MeSerializer,
    ForgotPasswordRequestSerializer,
    AdminInitiatePasswordResetSerializer,
    ChangePasswordSerializer,
    RouteCheckSerializer,
    RouteDecisionSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()

MERCHANT_USER_FEATURES = {
    "list": "users.view",
    "retrieve": "users.view",
    "create": "users.create",
    "update": "users.edit",
    "partial_update": "users.edit",
    "destroy": "users.edit",
}

PLATFORM_USER_ACTIONS = {
    "list": "view",
    "retrieve": "view",
    "create": "create",
    "update": "edit",
    "partial_update": "edit",
    "destroy": "delete",
}


# ----------------------------------------------------------
#  User ViewSet
# ----------------------------------------------------------
class UserViewSet(MerchantFilteredViewSet):
    """
    Users of the caller's merchant; platform owners see every user.
    """
    queryset = User.objects.all()
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated, RouteGuardPermission]

    def get_required_feature(self, request):
        if getattr(request.user, "is_platform_owner", False):
            return ("platform_users.view", PLATFORM_USER_ACTIONS.get(self.action, "view"))
        return MERCHANT_USER_FEATURES.get(self.action, "users.view")

    def get_serializer_class(self):
        if self.action == "create":
            return UserCreateSerializer
        return UserSerializer


# ----------------------------------------------------------
#  Auth ViewSet
# ----------------------------------------------------------
@extend_schema(tags=["Auth"])
class AuthViewSet(viewsets.ViewSet):
    """
    Current user, route decisions and the temporary-password flows.
    """
    password_change_exempt_actions = ["me", "change_password"]

    def get_permissions(self):
        if self.action in ["forgot_password", "route_check"]:
            return [AllowAny()]
        return [IsAuthenticated(), RouteGuardPermission()]

    def get_required_feature(self, request):
        if self.action != "admin_reset_password":
            return None
        if getattr(request.user, "is_platform_owner", False):
            return ("platform_users.view", "edit")
        return "users.edit"

    def _generate_temp_password(self):
        return get_random_string(12)

    def _issue_temporary_password(self, user, reason):
        temp_password = self._generate_temp_password()
        user.set_password(temp_password)
        user.requires_password_change = True
        user.password_reset_sent_at = timezone.now()
        user.password_reset_reason = reason
        user.save()

        send_password_reset_email.delay(user.id, temp_password)
        logger.info("Temporary password issued to user %s (%s)", user.id, reason)

    @extend_schema(responses=MeSerializer)
    @action(detail=False, methods=["get"])
    def me(self, request):
        serializer = MeSerializer(request.user, context={"request": request})
        return Response(serializer.data)

    @extend_schema(request=RouteCheckSerializer, responses=RouteDecisionSerializer)
    @action(detail=False, methods=["post"], url_path="route-check")
    def route_check(self, request):
        serializer = RouteCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        decision = guard_route(
            AccessSession.for_request(request),
            data["destination"],
            required_roles=data.get("required_roles") or None,
            required_feature=data.get("required_feature") or None,
            required_action=data.get("required_action") or None,
        )
        return Response(RouteDecisionSerializer(decision.to_dict()).data)

    @extend_schema(request=ForgotPasswordRequestSerializer)
    @action(detail=False, methods=["post"], url_path="forgot-password")
    def forgot_password(self, request):
        serializer = ForgotPasswordRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        email = serializer.validated_data["email"]

        try:
            user = User.objects.get(email__iexact=email, is_active=True)
        except User.DoesNotExist:
            return Response(
                {"detail": "If the email exists, a reset has been sent."},
                status=status.HTTP_200_OK,
            )

        self._issue_temporary_password(user, "self_reset")

        return Response(
            {"detail": "If the email exists, a reset has been sent."},
            status=status.HTTP_200_OK,
        )

    @extend_schema(request=AdminInitiatePasswordResetSerializer)
    @action(detail=False, methods=["post"], url_path="admin-reset-password")
    def admin_reset_password(self, request):
        serializer = AdminInitiatePasswordResetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        target_user = get_object_or_404(User, id=serializer.validated_data["user_id"])

        if not request.user.is_platform_owner and target_user.merchant_id != request.user.merchant_id:
            raise Unauthorized("You can only reset users of your own merchant.")

        self._issue_temporary_password(target_user, "admin_reset")

        return Response(
            {"detail": "User password reset successfully."},
            status=status.HTTP_200_OK,
        )

    @extend_schema(request=ChangePasswordSerializer)
    @action(detail=False, methods=["post"], url_path="change-password")
    def change_password(self, request):
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = request.user
        current_password = serializer.validated_data["current_password"]
        new_password = serializer.validated_data["new_password"]

        if not user.check_password(current_password):
            return Response(
                {"detail": "Current password is incorrect.", "code": "invalid_password"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        user.set_password(new_password)
        user.requires_password_change = False
        user.password_reset_sent_at = None
        user.password_reset_reason = None
        user.save()

        return Response(
            {"detail": "Password changed successfully."},
            status=status.HTTP_200_OK,
        )
