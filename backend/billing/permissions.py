from rest_framework import permissions

from billing.services.subscriptions import check_subscription_status


class HasActiveSubscription(permissions.BasePermission):
    """
    Merchant users need an effectively active subscription: an ACTIVE_TRIAL or
    ACTIVE_PAID subscription on an ACTIVE merchant. Platform owners are not
    subject to the check.
    """

    message = "Your subscription is not active. Contact the platform team to reactivate it."
    code = "subscription_inactive"

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if getattr(user, "is_platform_owner", False):
            return True

        merchant = getattr(user, "merchant", None)
        if merchant is None:
            return False

        return check_subscription_status(merchant)["effective_is_active"]
