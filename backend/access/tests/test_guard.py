from types import SimpleNamespace

import pytest

from access.grants import PermissionEntry, PermissionSet, grant_from_actions
from access.guard import GuardReason, guard_route
from access.session import AccessSession


def session_for(role="MERCHANT_STAFF", requires_password_change=False, **grants):
    user = SimpleNamespace(pk=1, role=role, requires_password_change=requires_password_change)
    permissions = PermissionSet.from_entries(
        PermissionEntry(slug.replace("__", "."), i, grant_from_actions(actions))
        for i, (slug, actions) in enumerate(grants.items(), start=1)
    )
    return AccessSession(user=user, permissions=permissions)


@pytest.fixture(autouse=True)
def guard_urls(settings):
    settings.ACCESS_LOGIN_URL = "/login"
    settings.ACCESS_UNAUTHORIZED_URL = "/unauthorized"
    settings.ACCESS_CHANGE_PASSWORD_URL = "/change-password"


def test_anonymous_goes_to_login_before_anything_else():
    decision = guard_route(
        AccessSession.anonymous(), "/sales", required_roles=["PLATFORM_OWNER"], required_feature="sales.view"
    )
    assert decision.to_dict() == {"allowed": False, "reason": GuardReason.UNAUTHENTICATED, "redirect_to": "/login"}


def test_role_gate_comes_before_feature_gate():
    session = session_for(role="MERCHANT_STAFF")
    decision = guard_route(session, "/merchants", required_roles=["PLATFORM_OWNER"], required_feature="merchants.view")
    assert decision.reason == GuardReason.ROLE_NOT_ALLOWED
    assert decision.redirect_to == "/unauthorized"


def test_role_and_feature_are_both_required():
    session = session_for(role="MERCHANT_ADMIN", sales__view=["view"])

    assert guard_route(session, "/sales", required_roles=["MERCHANT_ADMIN"], required_feature="sales.view").allowed
    denied = guard_route(session, "/sales", required_roles=["MERCHANT_ADMIN"], required_feature="products.view")
    assert denied.reason == GuardReason.FEATURE_DENIED


def test_feature_action_is_checked():
    session = session_for(sales__view=["view"])
    assert guard_route(session, "/sales", required_feature="sales.view", required_action="view").allowed
    decision = guard_route(session, "/sales/new", required_feature="sales.view", required_action="create")
    assert decision.reason == GuardReason.FEATURE_DENIED


def test_authorization_failures_win_over_password_change():
    session = session_for(requires_password_change=True)
    decision = guard_route(session, "/sales", required_feature="sales.view")
    assert decision.reason == GuardReason.FEATURE_DENIED


def test_password_change_redirects_every_other_destination():
    session = session_for(requires_password_change=True, dashboard__view=[])

    decision = guard_route(session, "/dashboard", required_feature="dashboard.view")
    assert decision.to_dict() == {
        "allowed": False,
        "reason": GuardReason.PASSWORD_CHANGE_REQUIRED,
        "redirect_to": "/change-password",
    }
    assert guard_route(session, "/change-password/?next=/dashboard").allowed


def test_no_requirements_allows_any_authenticated_session():
    decision = guard_route(session_for(), "/profile")
    assert decision.allowed
    assert decision.reason == GuardReason.ALLOWED
    assert decision.redirect_to is None
