"""
Merchant lifecycle: PENDING_APPROVAL -> ACTIVE | INACTIVE, and ACTIVE -> INACTIVE.

Transitions are conditional updates on the expected status. ``approve`` and
``reject`` are strict by default; ``tolerate_repeat=True`` turns a repeat of the
same, already applied transition into a no-op that returns the current state.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from core.exceptions import InvalidStateTransition
from .models import Merchant, MerchantStatus

logger = logging.getLogger(__name__)

User = get_user_model()


def _transition(merchant, expected, target, is_active, reviewer=None, now=None):
    now = now or timezone.now()
    values = {"status": target, "is_active": is_active, "updated_at": now}
    if reviewer is not None:
        values.update(reviewed_by=reviewer, reviewed_at=now)

    updated = Merchant.objects.filter(pk=merchant.pk, status=expected).update(**values)
    merchant.refresh_from_db()
    if not updated:
        logger.warning(
            "Merchant %s: %s -> %s rejected, current status %s",
            merchant.pk, expected, target, merchant.status,
        )
        raise InvalidStateTransition(
            f"Merchant is {merchant.status}; this action requires {expected}."
        )
    logger.info("Merchant %s moved %s -> %s", merchant.pk, expected, target)
    return merchant


@transaction.atomic
def register_merchant(name, email, password, first_name="", last_name="", phone="", address=""):
    """Create a PENDING_APPROVAL merchant and its inactive MERCHANT_ADMIN user."""
    from users.models import UserRole

    merchant = Merchant.objects.create(
        name=name,
        email=email,
        phone=phone or "",
        address=address or "",
        status=MerchantStatus.PENDING_APPROVAL,
        is_active=False,
    )
    admin_user = User.objects.create_user(
        email=email,
        password=password,
        first_name=first_name or "",
        last_name=last_name or "",
        role=UserRole.MERCHANT_ADMIN,
        merchant=merchant,
        is_active=False,
    )
    logger.info("Merchant %s registered, awaiting approval", merchant.pk)
    return merchant, admin_user


def approve_merchant(merchant, approved_by=None, tolerate_repeat=False, now=None):
    """
    Approve a pending merchant.

    In one transaction: the merchant becomes ACTIVE, its admin users are
    activated and given the system "Merchant Admin" role, and an
    ACTIVE_TRIAL subscription is created from the platform defaults.
    Returns ``(merchant, subscription)``.
    """
    from access.services import assign_role, merchant_admin_role
    from access.models import RoleAssignment
    from billing.services.subscriptions import create_trial, get_subscription_for_merchant
    from users.models import UserRole

    now = now or timezone.now()
    if tolerate_repeat:
        merchant.refresh_from_db()
        if merchant.status == MerchantStatus.ACTIVE:
            return merchant, get_subscription_for_merchant(merchant, now)

    with transaction.atomic():
        _transition(merchant, MerchantStatus.PENDING_APPROVAL, MerchantStatus.ACTIVE, True, approved_by, now)

        admins = list(User.objects.filter(merchant=merchant, role=UserRole.MERCHANT_ADMIN))
        User.objects.filter(pk__in=[u.pk for u in admins]).update(is_active=True)

        role = merchant_admin_role()
        if role is not None:
            for admin in admins:
                if not RoleAssignment.objects.filter(user=admin, role=role, is_active=True).exists():
                    assign_role(role, admin, assigned_by=approved_by)
        else:
            logger.warning("System role 'Merchant Admin' missing; run seed_access. Merchant %s admins get no grants.",
                           merchant.pk)

        subscription = create_trial(merchant, now=now)

    return merchant, subscription


@transaction.atomic
def reject_merchant(merchant, rejected_by=None, tolerate_repeat=False, now=None):
    """Reject a pending merchant. No subscription is created."""
    from billing.models import Subscription

    if tolerate_repeat:
        merchant.refresh_from_db()
        # A deactivated merchant is INACTIVE too, but was approved and holds a subscription.
        if merchant.status == MerchantStatus.INACTIVE and not Subscription.objects.filter(merchant=merchant).exists():
            return merchant
    return _transition(merchant, MerchantStatus.PENDING_APPROVAL, MerchantStatus.INACTIVE, False, rejected_by, now)


@transaction.atomic
def deactivate_merchant(merchant, now=None):
    """
    ACTIVE -> INACTIVE. The subscription row stays; its effective validity
    follows the merchant status.
    """
    return _transition(merchant, MerchantStatus.ACTIVE, MerchantStatus.INACTIVE, False, now=now)


def pending_merchants():
    return Merchant.objects.filter(status=MerchantStatus.PENDING_APPROVAL).order_by("created_at")
