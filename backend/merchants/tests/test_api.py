from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model

from billing.models import Subscription, SubscriptionStatus
from core.openapi import SUBSCRIPTION_WARNING_HEADER
from merchants.models import Merchant, MerchantStatus

pytestmark = pytest.mark.django_db

User = get_user_model()


def test_register_merchant(api_client):
    payload = {
        "merchant_name": "Green Grocer",
        "email": "green@example.com",
        "password": "Sturdy-Pass-2024!",
        "first_name": "Gus",
    }
    resp = api_client.post("/api/merchants/register/", payload, format="json")

    assert resp.status_code == 201
    assert resp.json()["merchant"]["status"] == MerchantStatus.PENDING_APPROVAL
    merchant = Merchant.objects.get(name="Green Grocer")
    assert User.objects.get(email="green@example.com").merchant == merchant


def test_register_rejects_taken_email(api_client, pending_merchant):
    payload = {"merchant_name": "Other", "email": "corner@example.com", "password": "Sturdy-Pass-2024!"}
    resp = api_client.post("/api/merchants/register/", payload, format="json")

    assert resp.status_code == 400
    assert "email" in resp.json()


def test_pending_list(auth_client, platform_owner, pending_merchant):
    resp = auth_client(platform_owner).get("/api/merchants/pending/")

    assert resp.status_code == 200
    assert [m["id"] for m in resp.json()] == [pending_merchant.id]


def test_approve_then_repeat_returns_409(auth_client, platform_owner, pending_merchant):
    client = auth_client(platform_owner)

    resp = client.post(f"/api/merchants/{pending_merchant.id}/approve/")
    assert resp.status_code == 200
    body = resp.json()
    assert body["merchant"]["status"] == MerchantStatus.ACTIVE
    assert body["subscription"]["status"] == SubscriptionStatus.ACTIVE_TRIAL
    assert body["subscription"]["days_remaining"] == 30

    resp = client.post(f"/api/merchants/{pending_merchant.id}/approve/")
    assert resp.status_code == 409
    assert resp.json()["code"] == "invalid_state_transition"
    assert Subscription.objects.filter(merchant=pending_merchant).count() == 1

    resp = client.post(f"/api/merchants/{pending_merchant.id}/approve/", {"tolerate_repeat": True}, format="json")
    assert resp.status_code == 200
    assert resp.json()["subscription"]["id"] == body["subscription"]["id"]


def test_reject(auth_client, platform_owner, pending_merchant):
    resp = auth_client(platform_owner).post(f"/api/merchants/{pending_merchant.id}/reject/")

    assert resp.status_code == 200
    assert resp.json()["status"] == MerchantStatus.INACTIVE
    assert resp.json()["subscription_status"] is None


def test_deactivate(auth_client, platform_owner, active_merchant):
    resp = auth_client(platform_owner).post(f"/api/merchants/{active_merchant.id}/deactivate/")

    assert resp.status_code == 200
    assert resp.json()["status"] == MerchantStatus.INACTIVE


def test_list_filters_by_status(auth_client, platform_owner, active_merchant):
    client = auth_client(platform_owner)

    assert len(client.get("/api/merchants/", {"status": MerchantStatus.ACTIVE}).json()) == 1
    assert client.get("/api/merchants/", {"status": MerchantStatus.PENDING_APPROVAL}).json() == []


def test_list_reports_expired_trials(auth_client, platform_owner, active_merchant):
    subscription = Subscription.objects.get(merchant=active_merchant)
    Subscription.objects.filter(pk=subscription.pk).update(
        start_date=subscription.start_date - timedelta(days=31),
        trial_end_date=subscription.start_date - timedelta(days=1),
    )
    client = auth_client(platform_owner)

    listed = client.get("/api/merchants/").json()
    assert listed[0]["subscription_status"] == SubscriptionStatus.EXPIRED
    detail = client.get(f"/api/merchants/{active_merchant.id}/").json()
    assert detail["subscription_status"] == SubscriptionStatus.EXPIRED
    assert Subscription.objects.get(pk=subscription.pk).status == SubscriptionStatus.EXPIRED


def test_merchant_admin_cannot_approve(auth_client, merchant_admin, active_merchant):
    resp = auth_client(merchant_admin).post(f"/api/merchants/{active_merchant.id}/approve/")

    assert resp.status_code == 403
    assert resp.json()["code"] == "role_not_allowed"


# ----------------------------------------------------------
#  Trial expiry warning header
# ----------------------------------------------------------
def test_warning_header_near_end_of_trial(auth_client, merchant_admin, active_merchant):
    Subscription.objects.filter(merchant=active_merchant).update(
        trial_end_date=Subscription.objects.get(merchant=active_merchant).start_date + timedelta(days=3)
    )
    subscription = Subscription.objects.get(merchant=active_merchant)
    days = subscription.days_remaining()

    resp = auth_client(merchant_admin).get("/api/subscriptions/status/")

    assert resp.status_code == 200
    assert resp[SUBSCRIPTION_WARNING_HEADER] == f"Trial expires in {days} day(s)"


def test_no_warning_header_early_in_trial(auth_client, merchant_admin):
    resp = auth_client(merchant_admin).get("/api/subscriptions/status/")

    assert resp.status_code == 200
    assert SUBSCRIPTION_WARNING_HEADER not in resp
