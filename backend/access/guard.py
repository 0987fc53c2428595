from dataclasses import dataclass
from typing import Iterable, Optional

from django.conf import settings


class GuardReason:
    ALLOWED = "allowed"
    UNAUTHENTICATED = "unauthenticated"
    ROLE_NOT_ALLOWED = "role_not_allowed"
    FEATURE_DENIED = "feature_denied"
    PASSWORD_CHANGE_REQUIRED = "password_change_required"


@dataclass(frozen=True)
class RouteDecision:
    allowed: bool
    reason: str
    redirect_to: Optional[str] = None

    def to_dict(self):
        return {"allowed": self.allowed, "reason": self.reason, "redirect_to": self.redirect_to}


def login_url():
    return getattr(settings, "ACCESS_LOGIN_URL", "/login")


def unauthorized_url():
    return getattr(settings, "ACCESS_UNAUTHORIZED_URL", "/unauthorized")


def change_password_url():
    return getattr(settings, "ACCESS_CHANGE_PASSWORD_URL", "/change-password")


def guard_route(session, destination, required_roles: Optional[Iterable[str]] = None,
                required_feature: Optional[str] = None, required_action: Optional[str] = None) -> RouteDecision:
    """
    Decide whether ``session`` may enter ``destination``.

    Checks run in order and stop at the first failure: authentication, coarse
    role, feature grant, then the forced password change. The role and feature
    checks are both required when both are given.
    """
    if not session.is_authenticated:
        return RouteDecision(False, GuardReason.UNAUTHENTICATED, login_url())

    if required_roles and session.role not in set(required_roles):
        return RouteDecision(False, GuardReason.ROLE_NOT_ALLOWED, unauthorized_url())

    if required_feature and not session.can_access(required_feature, required_action):
        return RouteDecision(False, GuardReason.FEATURE_DENIED, unauthorized_url())

    target = change_password_url()
    if session.requires_password_change and _normalize(destination) != _normalize(target):
        return RouteDecision(False, GuardReason.PASSWORD_CHANGE_REQUIRED, target)

    return RouteDecision(True, GuardReason.ALLOWED)


def _normalize(path):
    path = (path or "").split("?", 1)[0]
    return path.rstrip("/") or "/"
