from django.shortcuts import get_object_or_404
from django.utils import timezone
from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from access.permissions import RouteGuardPermission
from core.exceptions import Unauthorized
from merchants.models import Merchant
from users.models import UserRole
from .models import Subscription
from .serializers import (
    ConvertSerializer,
    ExtendTrialSerializer,
    FeeRateSerializer,
    PlatformSettingsSerializer,
    ReactivateSerializer,
    SubscriptionSerializer,
    SubscriptionStatusSerializer,
    TrialPeriodSerializer,
)
from .services import subscriptions as billing

READ_ACTIONS = {"list", "retrieve", "merchant"}
# Reachable by merchant users; scoping happens in the action itself.
CALLER_SCOPED_ACTIONS = {"status", "merchant"}


# -------------------------------------------------------------------
# Subscriptions
# -------------------------------------------------------------------
class SubscriptionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Subscription reads and lifecycle actions.

    Platform owners manage every subscription through ``subscriptions.view``
    (``view`` to read, ``edit`` to change). Merchant users can only read
    their own merchant's status.
    """
    serializer_class = SubscriptionSerializer
    permission_classes = [IsAuthenticated, RouteGuardPermission]

    def get_queryset(self):
        return Subscription.objects.select_related("merchant").order_by("-created_at")

    @property
    def allowed_roles(self):
        if self.action in CALLER_SCOPED_ACTIONS:
            return None
        return [UserRole.PLATFORM_OWNER]

    def get_required_feature(self, request):
        if self.action == "status":
            return None
        if self.action == "merchant" and not getattr(request.user, "is_platform_owner", False):
            return None
        return ("subscriptions.view", "view" if self.action in READ_ACTIONS else "edit")

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context.setdefault("now", self.now)
        return context

    @property
    def now(self):
        if not hasattr(self, "_now"):
            self._now = timezone.now()
        return self._now

    def _respond(self, subscription):
        return Response(self.get_serializer(subscription).data)

    def list(self, request, *args, **kwargs):
        billing.expire_overdue_subscriptions(now=self.now)
        return super().list(request, *args, **kwargs)

    def retrieve(self, request, *args, **kwargs):
        subscription = billing.apply_expiry(self.get_object(), now=self.now)
        return self._respond(subscription)

    # ---------------------------------------------------------------
    # Caller scoped reads
    # ---------------------------------------------------------------
    @extend_schema(responses=SubscriptionSerializer)
    @action(detail=False, methods=["get"], url_path=r"merchant/(?P<merchant_id>\d+)")
    def merchant(self, request, merchant_id=None):
        """The merchant's subscription, or ``null`` when it has none."""
        user = request.user
        if not user.is_platform_owner and str(user.merchant_id) != str(merchant_id):
            raise Unauthorized("You can only view your own merchant's subscription.")

        merchant = get_object_or_404(Merchant, pk=merchant_id)
        subscription = billing.get_subscription_for_merchant(merchant, now=self.now)
        if subscription is None:
            return Response(None)
        return self._respond(subscription)

    @extend_schema(responses=SubscriptionStatusSerializer)
    @action(detail=False, methods=["get"])
    def status(self, request):
        merchant = getattr(request.user, "merchant", None)
        data = billing.check_subscription_status(merchant, now=self.now)
        return Response(SubscriptionStatusSerializer(data).data)

    # ---------------------------------------------------------------
    # Lifecycle actions
    # ---------------------------------------------------------------
    @extend_schema(request=ReactivateSerializer, responses=SubscriptionSerializer)
    @action(detail=True, methods=["patch"])
    def reactivate(self, request, pk=None):
        serializer = ReactivateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subscription = billing.reactivate(self.get_object(), now=self.now, **serializer.validated_data)
        return self._respond(subscription)

    @extend_schema(request=ExtendTrialSerializer, responses=SubscriptionSerializer)
    @action(detail=True, methods=["patch"])
    def extend(self, request, pk=None):
        serializer = ExtendTrialSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subscription = billing.extend_trial(
            self.get_object(), serializer.validated_data["additional_days"], now=self.now
        )
        return self._respond(subscription)

    @extend_schema(request=TrialPeriodSerializer, responses=SubscriptionSerializer)
    @action(detail=True, methods=["patch"])
    def reset(self, request, pk=None):
        serializer = TrialPeriodSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subscription = billing.reset_trial(
            self.get_object(), serializer.validated_data["new_trial_period_days"], now=self.now
        )
        return self._respond(subscription)

    @extend_schema(request=TrialPeriodSerializer, responses=SubscriptionSerializer)
    @action(detail=True, methods=["patch"], url_path="trial-period")
    def trial_period(self, request, pk=None):
        serializer = TrialPeriodSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subscription = billing.update_trial_period(
            self.get_object(), serializer.validated_data["new_trial_period_days"], now=self.now
        )
        return self._respond(subscription)

    @extend_schema(request=FeeRateSerializer, responses=SubscriptionSerializer)
    @action(detail=True, methods=["patch"], url_path="fee-rate")
    def fee_rate(self, request, pk=None):
        serializer = FeeRateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subscription = billing.update_transaction_fee_rate(
            self.get_object(), serializer.validated_data["transaction_fee_rate"], now=self.now
        )
        return self._respond(subscription)

    @extend_schema(request=None, responses=SubscriptionSerializer)
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        subscription = billing.cancel(self.get_object(), now=self.now)
        return self._respond(subscription)

    @extend_schema(request=ConvertSerializer, responses=SubscriptionSerializer)
    @action(detail=True, methods=["post"])
    def convert(self, request, pk=None):
        serializer = ConvertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subscription = billing.convert_to_paid(
            self.get_object(), serializer.validated_data["plan_type"], now=self.now
        )
        return self._respond(subscription)


# -------------------------------------------------------------------
# Platform settings
# -------------------------------------------------------------------
class PlatformSettingsView(APIView):
    permission_classes = [IsAuthenticated, RouteGuardPermission]
    allowed_roles = [UserRole.PLATFORM_OWNER]
    feature_permissions = {
        "get": ("platform_settings.view", "view"),
        "patch": ("platform_settings.view", "edit"),
    }

    @extend_schema(responses=PlatformSettingsSerializer)
    def get(self, request):
        return Response(PlatformSettingsSerializer(billing.get_platform_settings()).data)

    @extend_schema(request=PlatformSettingsSerializer, responses=PlatformSettingsSerializer)
    def patch(self, request):
        serializer = PlatformSettingsSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        settings = billing.update_platform_settings(**serializer.validated_data)
        return Response(PlatformSettingsSerializer(settings).data)
