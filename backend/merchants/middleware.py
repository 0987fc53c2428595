from django.conf import settings

from core.openapi import SUBSCRIPTION_WARNING_HEADER


class SubscriptionWarningMiddleware:
    """
    Adds ``X-Subscription-Warning`` to responses for merchant users whose trial
    ends within ``TRIAL_EXPIRY_WARNING_DAYS``.

    Works in the response phase: API views authenticate with JWT inside DRF,
    which sets ``request.user`` on the underlying request.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        user = getattr(request, "user", None)
        if not (user and user.is_authenticated and getattr(user, "is_merchant_user", False)):
            return response
        if not user.merchant_id:
            return response

        from billing.services.subscriptions import check_subscription_status

        status = check_subscription_status(user.merchant)
        days = status["days_remaining"]
        if status["is_active"] and days is not None and 0 < days <= settings.TRIAL_EXPIRY_WARNING_DAYS:
            response[SUBSCRIPTION_WARNING_HEADER] = f"Trial expires in {days} day(s)"
        return response
