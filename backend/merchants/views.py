from django.utils import timezone
from drf_spectacular.utils import extend_schema, inline_serializer
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from access.permissions import RouteGuardPermission
from billing.serializers import SubscriptionSerializer
from users.models import UserRole
from .models import Merchant, MerchantStatus
from .serializers import MerchantRegistrationSerializer, MerchantReviewSerializer, MerchantSerializer
from . import services


class MerchantRegistrationViewSet(viewsets.ViewSet):
    permission_classes = [AllowAny]
    serializer_class = MerchantRegistrationSerializer

    def create(self, request):
        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = serializer.save()

        return Response({
            "message": "Registration received. Your account will be available once it is approved.",
            "merchant": MerchantSerializer(result["merchant"]).data,
            "admin_user": result["admin_user"].email,
        }, status=status.HTTP_201_CREATED)


class MerchantViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Platform-owner view of merchants and their review workflow.

    ``approve`` and ``reject`` are strict: repeating them fails with 409
    unless the body sets ``tolerate_repeat``.
    """
    serializer_class = MerchantSerializer
    permission_classes = [IsAuthenticated, RouteGuardPermission]
    allowed_roles = [UserRole.PLATFORM_OWNER]
    feature_permissions = {
        "list": ("merchants.view", "view"),
        "retrieve": ("merchants.view", "view"),
        "pending": ("merchants.view", "view"),
        "approve": ("merchants.view", "approve"),
        "reject": ("merchants.view", "reject"),
        "deactivate": ("merchants.view", "edit"),
    }

    def get_queryset(self):
        queryset = Merchant.objects.select_related("subscription")
        merchant_status = self.request.query_params.get("status")
        if merchant_status in MerchantStatus.values:
            queryset = queryset.filter(status=merchant_status)
        return queryset

    @action(detail=False, methods=["get"])
    def pending(self, request):
        serializer = self.get_serializer(services.pending_merchants(), many=True)
        return Response(serializer.data)

    @extend_schema(
        request=MerchantReviewSerializer,
        responses=inline_serializer(
            name="MerchantApproval",
            fields={"merchant": MerchantSerializer(), "subscription": SubscriptionSerializer()},
        ),
    )
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        review = MerchantReviewSerializer(data=request.data)
        review.is_valid(raise_exception=True)

        now = timezone.now()
        merchant, subscription = services.approve_merchant(
            self.get_object(),
            approved_by=request.user,
            tolerate_repeat=review.validated_data["tolerate_repeat"],
            now=now,
        )
        return Response({
            "merchant": MerchantSerializer(merchant).data,
            "subscription": SubscriptionSerializer(subscription, context={"now": now}).data if subscription else None,
        })

    @extend_schema(request=MerchantReviewSerializer, responses=MerchantSerializer)
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        review = MerchantReviewSerializer(data=request.data)
        review.is_valid(raise_exception=True)

        merchant = services.reject_merchant(
            self.get_object(),
            rejected_by=request.user,
            tolerate_repeat=review.validated_data["tolerate_repeat"],
        )
        return Response(MerchantSerializer(merchant).data)

    @extend_schema(request=None, responses=MerchantSerializer)
    @action(detail=True, methods=["post"])
    def deactivate(self, request, pk=None):
        merchant = services.deactivate_merchant(self.get_object())
        return Response(MerchantSerializer(merchant).data)
