from rest_framework.permissions import IsAuthenticated

from access.permissions import RouteGuardPermission
from billing.permissions import HasActiveSubscription
from core.mixins import MerchantFilteredViewSet
from users.models import MERCHANT_ROLES
from .models import Sale
from .serializers import SaleSerializer


class SaleViewSet(MerchantFilteredViewSet):
    """
    Sales of the caller's merchant.

    Requires the ``sales.view`` feature and a subscription that is active
    for a merchant in good standing.
    """
    queryset = Sale.objects.all().select_related("created_by", "merchant")
    serializer_class = SaleSerializer
    permission_classes = [IsAuthenticated, RouteGuardPermission, HasActiveSubscription]
    allowed_roles = list(MERCHANT_ROLES)
    http_method_names = ["get", "post", "head", "options"]
    feature_permissions = {
        "list": ("sales.view", "view"),
        "retrieve": ("sales.view", "view"),
        "create": ("sales.view", "create"),
    }

    def perform_create(self, serializer):
        serializer.save(merchant=self.request.user.merchant, created_by=self.request.user)
