"""
Permission resolution and the per-request access session.

A user's permission set is the union of the grants of every role they hold
through an active assignment. Resolved sets are cached per user without a
TTL; anything that changes grants, roles or assignments must call one of the
``invalidate_*`` helpers (the signal handlers in ``access.signals`` do).
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from django.conf import settings
from django.core.cache import caches
from django.db import OperationalError, transaction
from redis.exceptions import RedisError

from core.exceptions import TransientBackendFailure

from .grants import PermissionEntry, PermissionSet, can_access, has_action, has_feature

logger = logging.getLogger(__name__)

CACHE_KEY = "access:permissions:{user_id}"


def _cache():
    return caches[getattr(settings, "ACCESS_PERMISSION_CACHE", "default")]


def _load_permissions(user) -> PermissionSet:
    from .models import RoleFeature

    grants = (
        RoleFeature.objects
        .filter(role__assignments__user=user, role__assignments__is_active=True)
        .select_related("feature")
        .distinct()
    )
    return PermissionSet.from_entries(
        PermissionEntry(
            feature_slug=grant.feature.slug,
            feature_id=grant.feature_id,
            grant=grant.to_grant(),
        )
        for grant in grants
    )


def resolve_permissions(user, use_cache=True) -> PermissionSet:
    """Return the user's resolved permission set (empty for anonymous users)."""
    if user is None or not getattr(user, "is_authenticated", False):
        return PermissionSet()

    key = CACHE_KEY.format(user_id=user.pk)
    try:
        if use_cache:
            cached = _cache().get(key)
            if cached is not None:
                return PermissionSet.from_wire(cached)

        permissions = _load_permissions(user)
        _cache().set(key, permissions.to_wire(), timeout=None)
    except (OperationalError, RedisError) as exc:
        logger.error("Permission resolution failed for user %s: %s", user.pk, exc)
        raise TransientBackendFailure() from exc
    return permissions


def invalidate_user_permissions(user_ids: Iterable[int]) -> None:
    keys = [CACHE_KEY.format(user_id=user_id) for user_id in set(user_ids)]
    if not keys:
        return

    def _drop():
        _cache().delete_many(keys)

    _drop()
    # Again after commit: a read inside the open transaction may have re-cached the old set.
    transaction.on_commit(_drop)
    logger.debug("Invalidated cached permissions for %d user(s)", len(keys))


def invalidate_role_permissions(role_ids: Iterable[int]) -> None:
    from .models import RoleAssignment

    user_ids = (
        RoleAssignment.objects
        .filter(role_id__in=list(role_ids))
        .values_list("user_id", flat=True)
    )
    invalidate_user_permissions(list(user_ids))


def invalidate_feature_permissions(feature_id: int) -> None:
    from .models import RoleFeature

    role_ids = RoleFeature.objects.filter(feature_id=feature_id).values_list("role_id", flat=True)
    invalidate_role_permissions(list(role_ids))


@dataclass
class AccessSession:
    """
    Explicit authorization context for one caller.

    Passed to every feature query and route decision instead of reading
    permissions off a global.
    """
    user: Optional[object] = None
    permissions: PermissionSet = field(default_factory=PermissionSet)

    @classmethod
    def for_user(cls, user, use_cache=True) -> "AccessSession":
        if user is None or not getattr(user, "is_authenticated", False):
            return cls.anonymous()
        return cls(user=user, permissions=resolve_permissions(user, use_cache=use_cache))

    @classmethod
    def for_request(cls, request) -> "AccessSession":
        session = getattr(request, "_access_session", None)
        user = getattr(request, "user", None)
        if session is None or session.user is not user:
            session = cls.for_user(user)
            request._access_session = session
        return session

    @classmethod
    def anonymous(cls) -> "AccessSession":
        return cls(user=None, permissions=PermissionSet())

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def role(self) -> Optional[str]:
        return getattr(self.user, "role", None)

    @property
    def requires_password_change(self) -> bool:
        return bool(getattr(self.user, "requires_password_change", False))

    def refresh(self) -> "AccessSession":
        if self.user is not None:
            invalidate_user_permissions([self.user.pk])
            self.permissions = resolve_permissions(self.user, use_cache=False)
        return self

    def has_feature(self, slug) -> bool:
        return has_feature(self.permissions, slug)

    def has_action(self, slug, action) -> bool:
        return has_action(self.permissions, slug, action)

    def can_access(self, slug, action=None) -> bool:
        return can_access(self.permissions, slug, action)
