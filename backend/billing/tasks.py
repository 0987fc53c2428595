# backend/billing/tasks.py
import logging

from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.utils import timezone

from billing.models import Subscription, SubscriptionStatus
from billing.services.subscriptions import expire_overdue_subscriptions

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Expire trials and paid periods that have ended
# -------------------------------------------------------------------
@shared_task
def expire_overdue_subscriptions_task():
    """
    Periodic sweep complementing the lazy expiry applied on reads.
    Runs hourly.
    """
    count = expire_overdue_subscriptions()
    logger.info("Subscription sweep finished: %d expired", count)
    return count


# -------------------------------------------------------------------
# Warn merchant admins before their trial ends
# -------------------------------------------------------------------
@shared_task
def notify_expiring_trials_task(days_before_expiry=None):
    """
    Email merchant admins whose trial has exactly ``days_before_expiry`` days left.
    Runs once daily.
    """
    if days_before_expiry is None:
        days_before_expiry = settings.TRIAL_EXPIRY_WARNING_DAYS
    now = timezone.now()
    User = get_user_model()

    trials = Subscription.objects.select_related("merchant").filter(
        status=SubscriptionStatus.ACTIVE_TRIAL,
        trial_end_date__gt=now,
    )

    notified = 0
    for sub in trials:
        if sub.days_remaining(now) != days_before_expiry:
            continue

        recipients = list(
            User.objects.filter(merchant=sub.merchant, role="MERCHANT_ADMIN", is_active=True)
            .values_list("email", flat=True)
        )
        if not recipients:
            continue

        send_mail(
            subject=f"Your trial ends in {days_before_expiry} day(s)",
            message=(
                f"Hello,\n\nThe free trial for '{sub.merchant.name}' ends on "
                f"{sub.trial_end_date:%Y-%m-%d}. Contact the platform team to choose a plan "
                f"and keep access to your back office.\n\n{settings.FRONTEND_BASE_URL}\n"
            ),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=recipients,
            fail_silently=False,
        )
        notified += 1
        logger.info("Trial expiry warning sent to merchant %s (%d recipient(s))", sub.merchant_id, len(recipients))

    return notified
