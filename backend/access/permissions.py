from rest_framework import permissions

from core.exceptions import Unauthenticated, Unauthorized
from .guard import GuardReason, change_password_url, guard_route
from .session import AccessSession


def required_feature_for(view, request):
    """
    Feature requirement for the current action as ``(slug, action)``.

    Views declare ``feature_permissions = {"list": ("roles.view", None), ...}``
    with an optional ``"*"`` fallback, or override ``get_required_feature(request)``.
    """
    if hasattr(view, "get_required_feature"):
        requirement = view.get_required_feature(request)
    else:
        mapping = getattr(view, "feature_permissions", None) or {}
        action = getattr(view, "action", None) or request.method.lower()
        requirement = mapping.get(action, mapping.get("*"))

    if requirement is None:
        return None, None
    if isinstance(requirement, str):
        return requirement, None
    return requirement


class RouteGuardPermission(permissions.BasePermission):
    """
    Runs the route guard for every request to the view.

    Reads ``allowed_roles`` (coarse roles) and the feature requirement from the
    view. Actions listed in ``password_change_exempt_actions`` stay reachable
    while the user still has to replace a temporary password.
    """

    def has_permission(self, request, view):
        session = AccessSession.for_request(request)
        feature, action = required_feature_for(view, request)

        exempt = getattr(view, "password_change_exempt_actions", ())
        destination = change_password_url() if getattr(view, "action", None) in exempt else request.path

        decision = guard_route(
            session,
            destination,
            required_roles=getattr(view, "allowed_roles", None),
            required_feature=feature,
            required_action=action,
        )
        if decision.allowed:
            return True
        if decision.reason == GuardReason.UNAUTHENTICATED:
            raise Unauthenticated()
        if decision.reason == GuardReason.PASSWORD_CHANGE_REQUIRED:
            raise Unauthorized(
                "You must change your password before accessing the system.",
                code=GuardReason.PASSWORD_CHANGE_REQUIRED,
            )
        if decision.reason == GuardReason.ROLE_NOT_ALLOWED:
            raise Unauthorized("Your role cannot access this resource.", code=GuardReason.ROLE_NOT_ALLOWED)
        raise Unauthorized("Insufficient permissions for this resource.", code=GuardReason.FEATURE_DENIED)
