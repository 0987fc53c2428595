from rest_framework import viewsets


class MerchantFilteredViewSet(viewsets.ModelViewSet):
    """Base ViewSet that automatically filters by merchant,
    but allows platform owners to see all data.
    """

    merchant_field = "merchant"

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user

        # Platform owners see every merchant's rows
        if user.is_authenticated and getattr(user, "is_platform_owner", False):
            return qs

        # Otherwise filter by the user's merchant
        if user.is_authenticated and getattr(user, "merchant_id", None):
            return qs.filter(**{self.merchant_field: user.merchant_id})

        # No merchant or not logged in: nothing
        return qs.none()

    def perform_create(self, serializer):
        user = self.request.user

        if user.is_authenticated and getattr(user, "merchant_id", None):
            serializer.save(**{self.merchant_field: user.merchant})
        else:
            serializer.save()
