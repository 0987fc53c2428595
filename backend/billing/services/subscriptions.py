"""
Subscription lifecycle.

ACTIVE_TRIAL -> ACTIVE_PAID | EXPIRED | CANCELLED
ACTIVE_PAID  -> CANCELLED | EXPIRED
EXPIRED | CANCELLED -> ACTIVE_TRIAL | ACTIVE_PAID   (reactivation, fresh dates)

Every transition is a conditional UPDATE on the expected status inside a
transaction; when another caller got there first the update matches no row
and ``InvalidStateTransition`` is raised. Expiry is applied lazily whenever a
subscription is read through this module and by the periodic sweep.
"""
import logging
import math
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from core.exceptions import InvalidStateTransition
from billing.constants import MAX_TRANSACTION_FEE_RATE, MIN_TRANSACTION_FEE_RATE, PLAN_PERIOD_DAYS
from billing.models import SECONDS_PER_DAY, PlanType, PlatformSettings, Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)

ACTIVE_TRIAL = SubscriptionStatus.ACTIVE_TRIAL
ACTIVE_PAID = SubscriptionStatus.ACTIVE_PAID
EXPIRED = SubscriptionStatus.EXPIRED
CANCELLED = SubscriptionStatus.CANCELLED


# -------------------------------------------------------------------
# Platform defaults
# -------------------------------------------------------------------
def get_platform_settings():
    return PlatformSettings.load()


def update_platform_settings(default_trial_period_days=None, default_transaction_fee_rate=None):
    settings = get_platform_settings()
    if default_trial_period_days is not None:
        settings.default_trial_period_days = _positive_days(default_trial_period_days, "default_trial_period_days")
    if default_transaction_fee_rate is not None:
        settings.default_transaction_fee_rate = _fee_rate(default_transaction_fee_rate, "default_transaction_fee_rate")
    settings.save()
    logger.info("Platform settings updated: %s", settings)
    return settings


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------
def _positive_days(value, field="days"):
    try:
        days = int(value)
    except (TypeError, ValueError):
        raise ValidationError({field: "Must be a whole number of days."})
    if days <= 0:
        raise ValidationError({field: "Must be greater than 0."})
    return days


def _fee_rate(value, field="transaction_fee_rate"):
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({field: "Must be a number."})
    if not MIN_TRANSACTION_FEE_RATE <= rate <= MAX_TRANSACTION_FEE_RATE:
        raise ValidationError({field: "Transaction fee rate must be between 0 and 100."})
    return rate.quantize(Decimal("0.01"))


def _paid_plan(plan_type):
    if plan_type not in PLAN_PERIOD_DAYS:
        raise ValidationError({"plan_type": f"Paid plan must be one of {', '.join(PLAN_PERIOD_DAYS)}."})
    return plan_type


def _conditional_update(subscription, expected, now, **values):
    """UPDATE ... WHERE status IN expected. Raises when the row moved on."""
    expected = [expected] if isinstance(expected, str) else list(expected)
    updated = (
        Subscription.objects
        .filter(pk=subscription.pk, status__in=expected)
        .update(updated_at=now, **values)
    )
    if not updated:
        subscription.refresh_from_db()
        logger.warning(
            "Subscription %s transition rejected: status is %s, expected %s",
            subscription.pk, subscription.status, "/".join(expected),
        )
        raise InvalidStateTransition(
            f"Subscription is {subscription.status}; expected {' or '.join(expected)}."
        )
    subscription.refresh_from_db()
    return subscription


def _require_status(subscription, expected, verb):
    expected = [expected] if isinstance(expected, str) else list(expected)
    if subscription.status not in expected:
        raise InvalidStateTransition(
            f"Can only {verb} {' or '.join(s.lower() for s in expected)} subscriptions "
            f"(current status: {subscription.status})."
        )


def apply_expiry(subscription, now=None):
    """Move an overdue active subscription to EXPIRED. Returns the refreshed row."""
    now = now or timezone.now()
    if not subscription.is_overdue(now):
        return subscription
    updated = (
        Subscription.objects
        .filter(pk=subscription.pk, status=subscription.status)
        .update(status=EXPIRED, updated_at=now)
    )
    subscription.refresh_from_db()
    if updated:
        logger.info("Subscription %s (%s) expired", subscription.pk, subscription.merchant_id)
    return subscription


def _locked(subscription, now):
    locked = Subscription.objects.select_for_update().get(pk=subscription.pk)
    return apply_expiry(locked, now)


def _sync(target, source):
    for field in [f.attname for f in Subscription._meta.concrete_fields]:
        setattr(target, field, getattr(source, field))
    return target


# -------------------------------------------------------------------
# Creation
# -------------------------------------------------------------------
def create_trial(merchant, trial_period_days=None, transaction_fee_rate=None, now=None):
    """
    Provision the merchant's ACTIVE_TRIAL subscription from the platform defaults.

    A merchant holds at most one subscription; an existing one is reactivated,
    never replaced.
    """
    now = now or timezone.now()
    defaults = get_platform_settings()
    days = _positive_days(
        trial_period_days if trial_period_days is not None else defaults.default_trial_period_days,
        "trial_period_days",
    )
    rate = _fee_rate(
        transaction_fee_rate if transaction_fee_rate is not None else defaults.default_transaction_fee_rate
    )

    existing = Subscription.objects.filter(merchant=merchant).first()
    if existing is not None:
        existing = apply_expiry(existing, now)
        if existing.is_active:
            raise ValidationError({"detail": "Merchant already has an active subscription."})
        raise InvalidStateTransition("Merchant already has a subscription; reactivate it instead.")

    try:
        with transaction.atomic():
            subscription = Subscription.objects.create(
                merchant=merchant,
                status=ACTIVE_TRIAL,
                plan_type=PlanType.TRIAL,
                start_date=now,
                trial_end_date=now + timedelta(days=days),
                trial_period_days=days,
                transaction_fee_rate=rate,
            )
    except IntegrityError:
        raise InvalidStateTransition("Merchant already has a subscription.")

    logger.info(
        "Trial subscription %s created for merchant %s (ends %s, fee %s%%)",
        subscription.pk, merchant.pk, subscription.trial_end_date, rate,
    )
    return subscription


# -------------------------------------------------------------------
# Trial adjustments
# -------------------------------------------------------------------
@transaction.atomic
def extend_trial(subscription, additional_days, now=None):
    now = now or timezone.now()
    additional_days = _positive_days(additional_days, "additional_days")
    current = _locked(subscription, now)
    _require_status(current, ACTIVE_TRIAL, "extend")

    _conditional_update(
        current, ACTIVE_TRIAL, now,
        trial_end_date=current.trial_end_date + timedelta(days=additional_days),
        trial_period_days=(current.trial_period_days or 0) + additional_days,
    )
    logger.info("Trial %s extended by %d day(s)", current.pk, additional_days)
    return _sync(subscription, current)


@transaction.atomic
def reset_trial(subscription, new_trial_period_days, now=None):
    """Restart the trial from ``now`` with a new length."""
    now = now or timezone.now()
    days = _positive_days(new_trial_period_days, "new_trial_period_days")
    current = _locked(subscription, now)
    _require_status(current, ACTIVE_TRIAL, "reset")

    _conditional_update(
        current, ACTIVE_TRIAL, now,
        start_date=now,
        trial_end_date=now + timedelta(days=days),
        trial_period_days=days,
    )
    logger.info("Trial %s reset to %d day(s)", current.pk, days)
    return _sync(subscription, current)


@transaction.atomic
def update_trial_period(subscription, new_trial_period_days, now=None):
    """
    Change the trial length, keeping the original start date.

    When the days already elapsed reach the new length the trial restarts
    from ``now`` instead of ending in the past.
    """
    now = now or timezone.now()
    days = _positive_days(new_trial_period_days, "new_trial_period_days")
    current = _locked(subscription, now)
    _require_status(current, ACTIVE_TRIAL, "update")

    days_elapsed = math.floor((now - current.start_date).total_seconds() / SECONDS_PER_DAY)
    start = now if days_elapsed >= days else current.start_date

    _conditional_update(
        current, ACTIVE_TRIAL, now,
        start_date=start,
        trial_end_date=start + timedelta(days=days),
        trial_period_days=days,
    )
    logger.info("Trial %s period set to %d day(s)", current.pk, days)
    return _sync(subscription, current)


@transaction.atomic
def update_transaction_fee_rate(subscription, fee_rate, now=None):
    now = now or timezone.now()
    rate = _fee_rate(fee_rate)
    Subscription.objects.filter(pk=subscription.pk).update(transaction_fee_rate=rate, updated_at=now)
    subscription.refresh_from_db()
    logger.info("Subscription %s fee rate set to %s%%", subscription.pk, rate)
    return subscription


# -------------------------------------------------------------------
# Status transitions
# -------------------------------------------------------------------
@transaction.atomic
def convert_to_paid(subscription, plan_type, now=None):
    """ACTIVE_TRIAL -> ACTIVE_PAID. Trial dates are cleared."""
    now = now or timezone.now()
    plan_type = _paid_plan(plan_type)
    current = _locked(subscription, now)
    _require_status(current, ACTIVE_TRIAL, "convert")

    _conditional_update(
        current, ACTIVE_TRIAL, now,
        status=ACTIVE_PAID,
        plan_type=plan_type,
        start_date=now,
        trial_end_date=None,
        trial_period_days=None,
        current_period_end=now + timedelta(days=PLAN_PERIOD_DAYS[plan_type]),
    )
    logger.info("Subscription %s converted to %s", current.pk, plan_type)
    return _sync(subscription, current)


@transaction.atomic
def cancel(subscription, now=None):
    now = now or timezone.now()
    current = _locked(subscription, now)
    _require_status(current, (ACTIVE_TRIAL, ACTIVE_PAID), "cancel")

    _conditional_update(current, (ACTIVE_TRIAL, ACTIVE_PAID), now, status=CANCELLED, cancelled_at=now)
    logger.info("Subscription %s cancelled", current.pk)
    return _sync(subscription, current)


@transaction.atomic
def reactivate(subscription, plan_type=PlanType.TRIAL, trial_period_days=None, transaction_fee_rate=None, now=None):
    """
    EXPIRED | CANCELLED -> ACTIVE_TRIAL (plan TRIAL) or ACTIVE_PAID (plan MONTHLY/YEARLY).

    Dates start over from ``now``; omitted values fall back to the platform defaults.
    """
    now = now or timezone.now()
    defaults = get_platform_settings()
    rate = _fee_rate(
        transaction_fee_rate if transaction_fee_rate is not None else defaults.default_transaction_fee_rate
    )

    current = _locked(subscription, now)
    _require_status(current, (EXPIRED, CANCELLED), "reactivate")

    if plan_type == PlanType.TRIAL:
        days = _positive_days(
            trial_period_days if trial_period_days is not None else defaults.default_trial_period_days,
            "trial_period_days",
        )
        values = dict(
            status=ACTIVE_TRIAL,
            plan_type=PlanType.TRIAL,
            trial_end_date=now + timedelta(days=days),
            trial_period_days=days,
            current_period_end=None,
        )
    else:
        plan_type = _paid_plan(plan_type)
        values = dict(
            status=ACTIVE_PAID,
            plan_type=plan_type,
            trial_end_date=None,
            trial_period_days=None,
            current_period_end=now + timedelta(days=PLAN_PERIOD_DAYS[plan_type]),
        )

    _conditional_update(
        current, (EXPIRED, CANCELLED), now,
        start_date=now,
        transaction_fee_rate=rate,
        cancelled_at=None,
        **values,
    )
    logger.info("Subscription %s reactivated as %s", current.pk, current.status)
    return _sync(subscription, current)


def expire_overdue_subscriptions(now=None):
    """Periodic sweep: expire every trial or paid period that has ended. Returns the count."""
    now = now or timezone.now()
    overdue = (
        Q(status=ACTIVE_TRIAL, trial_end_date__lt=now)
        | Q(status=ACTIVE_PAID, current_period_end__lt=now)
    )
    count = Subscription.objects.filter(overdue).update(status=EXPIRED, updated_at=now)
    if count:
        logger.info("Expired %d overdue subscription(s)", count)
    return count


# -------------------------------------------------------------------
# Reads
# -------------------------------------------------------------------
def get_subscription_for_merchant(merchant, now=None):
    """The merchant's subscription with expiry applied, or None."""
    subscription = Subscription.objects.select_related("merchant").filter(merchant=merchant).first()
    if subscription is None:
        return None
    return apply_expiry(subscription, now)


def check_subscription_status(merchant, now=None):
    now = now or timezone.now()
    subscription = get_subscription_for_merchant(merchant, now) if merchant is not None else None
    if subscription is None:
        return {
            "status": EXPIRED,
            "plan_type": None,
            "is_active": False,
            "effective_is_active": False,
            "days_remaining": None,
            "trial_end_date": None,
        }

    on_trial = subscription.status == ACTIVE_TRIAL
    return {
        "status": subscription.status,
        "plan_type": subscription.plan_type,
        "is_active": subscription.is_active,
        "effective_is_active": subscription.effective_is_active,
        "days_remaining": subscription.days_remaining(now),
        "trial_end_date": subscription.trial_end_date if on_trial else None,
    }


def calculate_transaction_fee(amount, merchant):
    """Platform fee for a sale of ``amount``, at the merchant's rate or the platform default."""
    subscription = Subscription.objects.filter(merchant=merchant).first()
    if subscription is not None:
        return subscription.fee_for(amount)
    rate = get_platform_settings().default_transaction_fee_rate
    return (Decimal(str(amount)) * rate / Decimal(100)).quantize(Decimal("0.01"))
