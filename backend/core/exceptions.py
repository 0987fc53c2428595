import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, PermissionDenied
from rest_framework.exceptions import NotFound as DRFNotFound
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class Unauthenticated(NotAuthenticated):
    default_detail = "Authentication credentials were not provided."
    default_code = "unauthenticated"


class Unauthorized(PermissionDenied):
    default_detail = "You do not have access to this resource."
    default_code = "unauthorized"


class InvalidStateTransition(APIException):
    """Raised when a lifecycle operation is applied to an entity in the wrong state."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The requested transition is not allowed from the current state."
    default_code = "invalid_state_transition"


class SystemRoleProtected(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "System roles cannot be deleted or renamed."
    default_code = "system_role_protected"


class FeatureTypeMismatch(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Feature role type does not match the role type."
    default_code = "feature_type_mismatch"


class NotFound(DRFNotFound):
    default_detail = "Not found."
    default_code = "not_found"


class TransientBackendFailure(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "A backend dependency is temporarily unavailable."
    default_code = "transient_backend_failure"


def api_exception_handler(exc, context):
    """
    DRF's default handler plus a machine readable ``code`` on every error body.
    Field validation errors keep their per-field structure and get ``code: invalid``.
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, APIException):
        codes = exc.get_codes()
        code = codes if isinstance(codes, str) else "invalid"
    elif isinstance(exc, Http404):
        code = "not_found"
    elif isinstance(exc, DjangoPermissionDenied):
        code = "permission_denied"
    else:
        code = "error"

    if isinstance(response.data, dict):
        response.data.setdefault("code", code)
    else:
        response.data = {"detail": response.data, "code": code}

    if response.status_code >= 500:
        logger.warning("API error %s on %s: %s", code, context.get("view").__class__.__name__, exc)
    return response
