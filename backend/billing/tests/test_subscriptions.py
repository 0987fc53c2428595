from datetime import timedelta
from decimal import Decimal

import pytest
from rest_framework.exceptions import ValidationError

from billing.models import PlanType, Subscription, SubscriptionStatus
from billing.services import subscriptions as billing
from core.exceptions import InvalidStateTransition

pytestmark = pytest.mark.django_db


@pytest.fixture
def trial(active_merchant):
    return Subscription.objects.get(merchant=active_merchant)


def test_days_remaining_never_increases_and_clamps_at_zero(trial, now):
    readings = [trial.days_remaining(now + timedelta(hours=h)) for h in range(0, 24 * 40, 7)]

    assert readings[0] == 30
    assert all(later <= earlier for earlier, later in zip(readings, readings[1:]))
    assert min(readings) == 0
    assert trial.days_remaining(now + timedelta(days=365)) == 0


def test_days_remaining_rounds_partial_days_up(trial, now):
    assert trial.days_remaining(now + timedelta(days=29, hours=1)) == 1
    assert trial.days_remaining(now + timedelta(days=30)) == 0


def test_expiry_is_applied_on_read(active_merchant, trial, now):
    later = now + timedelta(days=31)

    status = billing.check_subscription_status(active_merchant, now=later)

    assert status["status"] == SubscriptionStatus.EXPIRED
    assert status["is_active"] is False
    assert status["days_remaining"] is None
    trial.refresh_from_db()
    assert trial.status == SubscriptionStatus.EXPIRED


def test_trial_is_still_active_on_its_last_instant(active_merchant, now):
    status = billing.check_subscription_status(active_merchant, now=now + timedelta(days=30))
    assert status["status"] == SubscriptionStatus.ACTIVE_TRIAL
    assert status["days_remaining"] == 0


def test_sweep_expires_overdue_trials_and_paid_periods(trial, now):
    assert billing.expire_overdue_subscriptions(now=now + timedelta(days=1)) == 0
    assert billing.expire_overdue_subscriptions(now=now + timedelta(days=31)) == 1
    trial.refresh_from_db()
    assert trial.status == SubscriptionStatus.EXPIRED

    billing.reactivate(trial, plan_type=PlanType.MONTHLY, now=now + timedelta(days=31))
    assert billing.expire_overdue_subscriptions(now=now + timedelta(days=62)) == 1


def test_no_subscription_reads_as_inactive(pending_merchant):
    assert billing.get_subscription_for_merchant(pending_merchant) is None
    status = billing.check_subscription_status(pending_merchant)
    assert status["is_active"] is False
    assert status["effective_is_active"] is False


def test_extend_trial(trial, now):
    billing.extend_trial(trial, 10, now=now + timedelta(days=5))

    assert trial.trial_end_date == now + timedelta(days=40)
    assert trial.trial_period_days == 40


def test_reset_trial_restarts_from_now(trial, now):
    later = now + timedelta(days=20)
    billing.reset_trial(trial, 15, now=later)

    assert trial.start_date == later
    assert trial.trial_end_date == later + timedelta(days=15)


def test_update_trial_period_keeps_start(trial, now):
    billing.update_trial_period(trial, 45, now=now + timedelta(days=10))

    assert trial.start_date == now
    assert trial.trial_end_date == now + timedelta(days=45)


def test_update_trial_period_shorter_than_elapsed_restarts(trial, now):
    later = now + timedelta(days=20)
    billing.update_trial_period(trial, 14, now=later)

    assert trial.start_date == later
    assert trial.trial_end_date == later + timedelta(days=14)


@pytest.mark.parametrize("days", [0, -3, "abc"])
def test_trial_adjustments_need_positive_days(trial, now, days):
    with pytest.raises(ValidationError):
        billing.extend_trial(trial, days, now=now)


def test_fee_rate_bounds(trial, now):
    billing.update_transaction_fee_rate(trial, "7.5", now=now)
    assert trial.transaction_fee_rate == Decimal("7.50")

    for rate in ["-1", "100.01", "lots"]:
        with pytest.raises(ValidationError):
            billing.update_transaction_fee_rate(trial, rate, now=now)


def test_convert_clears_trial_fields(trial, now):
    billing.convert_to_paid(trial, PlanType.YEARLY, now=now + timedelta(days=3))

    assert trial.status == SubscriptionStatus.ACTIVE_PAID
    assert trial.plan_type == PlanType.YEARLY
    assert trial.trial_end_date is None
    assert trial.trial_period_days is None
    assert trial.days_remaining(now) is None
    assert trial.current_period_end == now + timedelta(days=3 + 365)


def test_convert_needs_paid_plan_and_trial(trial, now):
    with pytest.raises(ValidationError):
        billing.convert_to_paid(trial, PlanType.TRIAL, now=now)

    billing.convert_to_paid(trial, PlanType.MONTHLY, now=now)
    with pytest.raises(InvalidStateTransition):
        billing.convert_to_paid(trial, PlanType.MONTHLY, now=now)


def test_convert_after_trial_end_fails(trial, now):
    with pytest.raises(InvalidStateTransition):
        billing.convert_to_paid(trial, PlanType.MONTHLY, now=now + timedelta(days=31))

    status = billing.check_subscription_status(trial.merchant, now=now + timedelta(days=31))
    assert status["status"] == SubscriptionStatus.EXPIRED


def test_cancel(trial, now):
    billing.cancel(trial, now=now)

    assert trial.status == SubscriptionStatus.CANCELLED
    assert trial.cancelled_at == now
    assert trial.is_active is False
    with pytest.raises(InvalidStateTransition):
        billing.cancel(trial, now=now)


@pytest.mark.parametrize("plan_type", [PlanType.TRIAL, PlanType.MONTHLY, PlanType.YEARLY])
def test_reactivate_cancelled(trial, now, plan_type):
    billing.cancel(trial, now=now)
    later = now + timedelta(days=90)

    billing.reactivate(trial, plan_type=plan_type, now=later)

    assert trial.is_active is True
    assert trial.effective_is_active is True
    assert trial.start_date == later
    assert trial.cancelled_at is None
    if plan_type == PlanType.TRIAL:
        assert trial.status == SubscriptionStatus.ACTIVE_TRIAL
        assert trial.trial_end_date == later + timedelta(days=30)
    else:
        assert trial.status == SubscriptionStatus.ACTIVE_PAID
        assert trial.trial_end_date is None


def test_reactivate_expired(trial, now):
    later = now + timedelta(days=45)
    billing.expire_overdue_subscriptions(now=later)

    billing.reactivate(trial, trial_period_days=7, transaction_fee_rate="3", now=later)

    assert trial.is_active is True
    assert trial.trial_end_date == later + timedelta(days=7)
    assert trial.transaction_fee_rate == Decimal("3.00")


def test_reactivate_active_fails(trial, now):
    with pytest.raises(InvalidStateTransition):
        billing.reactivate(trial, now=now)
    trial.refresh_from_db()
    assert trial.status == SubscriptionStatus.ACTIVE_TRIAL


def test_second_trial_is_refused(active_merchant, trial, now):
    with pytest.raises(ValidationError):
        billing.create_trial(active_merchant, now=now)

    billing.cancel(trial, now=now)
    with pytest.raises(InvalidStateTransition):
        billing.create_trial(active_merchant, now=now)
    assert Subscription.objects.filter(merchant=active_merchant).count() == 1


def test_transaction_fee(active_merchant, trial):
    assert billing.calculate_transaction_fee(Decimal("200.00"), active_merchant) == Decimal("10.00")

    billing.update_transaction_fee_rate(trial, "2.5")
    assert billing.calculate_transaction_fee("19.99", active_merchant) == Decimal("0.50")


def test_platform_settings_validation(db):
    settings = billing.update_platform_settings(default_trial_period_days=21)
    assert settings.default_trial_period_days == 21

    with pytest.raises(ValidationError):
        billing.update_platform_settings(default_transaction_fee_rate="150")
    with pytest.raises(ValidationError):
        billing.update_platform_settings(default_trial_period_days=0)
