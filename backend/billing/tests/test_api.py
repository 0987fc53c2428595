from datetime import timedelta
from io import StringIO

import pytest
from django.core import mail
from django.core.management import call_command
from django_celery_beat.models import PeriodicTask

from billing.models import PlanType, Subscription, SubscriptionStatus
from billing.tasks import expire_overdue_subscriptions_task, notify_expiring_trials_task
from merchants.services import deactivate_merchant

pytestmark = pytest.mark.django_db


@pytest.fixture
def subscription(active_merchant):
    return Subscription.objects.get(merchant=active_merchant)


def _end_trial(subscription, days_ago=1):
    Subscription.objects.filter(pk=subscription.pk).update(
        start_date=subscription.start_date - timedelta(days=31 + days_ago),
        trial_end_date=subscription.trial_end_date - timedelta(days=30 + days_ago),
    )


def test_merchant_subscription_is_null_when_missing(auth_client, platform_owner, pending_merchant):
    resp = auth_client(platform_owner).get(f"/api/subscriptions/merchant/{pending_merchant.id}/")

    assert resp.status_code == 200
    assert resp.data is None


def test_merchant_subscription(auth_client, platform_owner, subscription):
    resp = auth_client(platform_owner).get(f"/api/subscriptions/merchant/{subscription.merchant_id}/")

    assert resp.status_code == 200
    assert resp.json()["status"] == SubscriptionStatus.ACTIVE_TRIAL
    assert resp.json()["effective_is_active"] is True


def test_merchant_user_only_sees_own_subscription(auth_client, merchant_admin, subscription):
    client = auth_client(merchant_admin)
    assert client.get(f"/api/subscriptions/merchant/{subscription.merchant_id}/").status_code == 200
    assert client.get(f"/api/subscriptions/merchant/{subscription.merchant_id + 100}/").status_code == 403


def test_status_is_caller_scoped(auth_client, merchant_admin, subscription):
    resp = auth_client(merchant_admin).get("/api/subscriptions/status/")

    assert resp.status_code == 200
    assert resp.json()["status"] == SubscriptionStatus.ACTIVE_TRIAL
    assert resp.json()["days_remaining"] in (29, 30)


def test_status_reports_expiry_lazily(auth_client, merchant_admin, subscription):
    _end_trial(subscription)

    resp = auth_client(merchant_admin).get("/api/subscriptions/status/")

    assert resp.json()["status"] == SubscriptionStatus.EXPIRED
    assert resp.json()["is_active"] is False
    subscription.refresh_from_db()
    assert subscription.status == SubscriptionStatus.EXPIRED


def test_status_follows_merchant_state(auth_client, merchant_admin, subscription, active_merchant):
    deactivate_merchant(active_merchant)

    body = auth_client(merchant_admin).get("/api/subscriptions/status/").json()
    assert body["is_active"] is True
    assert body["effective_is_active"] is False


def test_list_runs_the_sweep(auth_client, platform_owner, subscription):
    _end_trial(subscription)

    resp = auth_client(platform_owner).get("/api/subscriptions/")

    assert resp.status_code == 200
    assert resp.json()[0]["status"] == SubscriptionStatus.EXPIRED


def test_merchant_user_cannot_list(auth_client, merchant_admin, subscription):
    resp = auth_client(merchant_admin).get("/api/subscriptions/")
    assert resp.status_code == 403


def test_cancel_and_reactivate(auth_client, platform_owner, subscription):
    client = auth_client(platform_owner)

    resp = client.post(f"/api/subscriptions/{subscription.id}/cancel/")
    assert resp.status_code == 200
    assert resp.json()["status"] == SubscriptionStatus.CANCELLED

    resp = client.patch(
        f"/api/subscriptions/{subscription.id}/reactivate/",
        {"plan_type": PlanType.MONTHLY},
        format="json",
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == SubscriptionStatus.ACTIVE_PAID
    assert resp.json()["is_active"] is True

    resp = client.patch(f"/api/subscriptions/{subscription.id}/reactivate/", {}, format="json")
    assert resp.status_code == 409


def test_trial_adjustments(auth_client, platform_owner, subscription):
    client = auth_client(platform_owner)
    base = f"/api/subscriptions/{subscription.id}"

    resp = client.patch(f"{base}/extend/", {"additional_days": 5}, format="json")
    assert resp.json()["trial_period_days"] == 35

    resp = client.patch(f"{base}/trial-period/", {"new_trial_period_days": 60}, format="json")
    assert resp.json()["trial_period_days"] == 60

    resp = client.patch(f"{base}/reset/", {"new_trial_period_days": 10}, format="json")
    assert resp.json()["days_remaining"] == 10

    resp = client.patch(f"{base}/fee-rate/", {"transaction_fee_rate": "3.25"}, format="json")
    assert resp.json()["transaction_fee_rate"] == "3.25"

    resp = client.patch(f"{base}/extend/", {"additional_days": 0}, format="json")
    assert resp.status_code == 400


def test_convert(auth_client, platform_owner, subscription):
    resp = auth_client(platform_owner).post(
        f"/api/subscriptions/{subscription.id}/convert/", {"plan_type": PlanType.YEARLY}, format="json"
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == SubscriptionStatus.ACTIVE_PAID
    assert resp.json()["trial_end_date"] is None
    assert resp.json()["days_remaining"] is None


def test_platform_settings(auth_client, platform_owner):
    client = auth_client(platform_owner)

    assert client.get("/api/platform-settings/").json()["default_trial_period_days"] == 30

    resp = client.patch("/api/platform-settings/", {"default_transaction_fee_rate": "4.00"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["default_transaction_fee_rate"] == "4.00"

    resp = client.patch("/api/platform-settings/", {"default_transaction_fee_rate": "101"}, format="json")
    assert resp.status_code == 400


def test_platform_settings_hidden_from_merchants(auth_client, merchant_admin):
    assert auth_client(merchant_admin).get("/api/platform-settings/").status_code == 403


# ----------------------------------------------------------
#  Background work
# ----------------------------------------------------------
def test_check_subscriptions_command(subscription):
    _end_trial(subscription)

    out = StringIO()
    call_command("check_subscriptions", "--dry-run", stdout=out)
    subscription.refresh_from_db()
    assert subscription.status == SubscriptionStatus.ACTIVE_TRIAL

    call_command("check_subscriptions", stdout=out)
    subscription.refresh_from_db()
    assert subscription.status == SubscriptionStatus.EXPIRED


def test_sweep_task(subscription):
    _end_trial(subscription)
    assert expire_overdue_subscriptions_task() == 1


def test_trial_warning_email(subscription, settings):
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    Subscription.objects.filter(pk=subscription.pk).update(
        trial_end_date=subscription.start_date + timedelta(days=7, hours=12)
    )

    sent = notify_expiring_trials_task(days_before_expiry=8)

    assert sent == 1
    assert len(mail.outbox) == 1
    assert "8 day(s)" in mail.outbox[0].subject


def test_zero_day_warning_does_not_fall_back_to_the_default(subscription, settings):
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    settings.TRIAL_EXPIRY_WARNING_DAYS = 8
    Subscription.objects.filter(pk=subscription.pk).update(
        trial_end_date=subscription.start_date + timedelta(days=7, hours=12)
    )

    assert notify_expiring_trials_task(days_before_expiry=0) == 0
    assert mail.outbox == []

    assert notify_expiring_trials_task() == 1


def test_beat_schedules_are_idempotent(db):
    call_command("setup_billing_schedules", stdout=StringIO())
    call_command("setup_billing_schedules", stdout=StringIO())

    tasks = dict(PeriodicTask.objects.values_list("name", "task"))
    assert tasks == {
        "Expire Overdue Subscriptions": "billing.tasks.expire_overdue_subscriptions_task",
        "Trial Expiry Warning": "billing.tasks.notify_expiring_trials_task",
    }
