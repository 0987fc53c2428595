import logging

from django.db import IntegrityError, transaction
from rest_framework.exceptions import ValidationError

from core.exceptions import FeatureTypeMismatch, NotFound, SystemRoleProtected
from .grants import grant_from_actions
from .models import Feature, Role, RoleAssignment, RoleFeature, RoleType
from .session import invalidate_role_permissions, invalidate_user_permissions

logger = logging.getLogger(__name__)

MIN_HIERARCHY_LEVEL = 1
MAX_HIERARCHY_LEVEL = 3

# Fixed once any role grants the feature.
FROZEN_FEATURE_FIELDS = ("slug", "role_type", "is_page_level")


# -------------------------------------------------------------------
# Features
# -------------------------------------------------------------------
def create_feature(slug, name, role_type, category="", description="", is_page_level=False, default_actions=None):
    if Feature.objects.filter(slug=slug).exists():
        raise ValidationError({"slug": "Feature with this slug already exists."})
    feature = Feature.objects.create(
        slug=slug,
        name=name,
        role_type=role_type,
        category=category,
        description=description,
        is_page_level=is_page_level,
        default_actions=list(default_actions or []),
    )
    logger.info("Feature %s created for %s", feature.slug, feature.role_type)
    return feature


@transaction.atomic
def update_feature(feature, **changes):
    """
    Update a feature's descriptive fields.

    ``FROZEN_FEATURE_FIELDS`` cannot change once any role grants the feature.
    """
    frozen = [f for f in FROZEN_FEATURE_FIELDS if f in changes and changes[f] != getattr(feature, f)]
    if frozen and feature.is_referenced:
        raise ValidationError({f: "Cannot change this field while roles grant the feature." for f in frozen})

    for field_name, value in changes.items():
        setattr(feature, field_name, value)
    feature.save()
    return feature


# -------------------------------------------------------------------
# Roles
# -------------------------------------------------------------------
def _validate_hierarchy_level(level):
    if level is None:
        return
    if not MIN_HIERARCHY_LEVEL <= int(level) <= MAX_HIERARCHY_LEVEL:
        raise ValidationError(
            {"hierarchy_level": f"Hierarchy level must be between {MIN_HIERARCHY_LEVEL} and {MAX_HIERARCHY_LEVEL}."}
        )


def _validate_grants(role_type, grants):
    """Every granted feature must be scoped to the role's type."""
    mismatched = sorted(feature.slug for feature, _ in grants if feature.role_type != role_type)
    if mismatched:
        raise FeatureTypeMismatch(
            f"Features {', '.join(mismatched)} are not {role_type} features."
        )


def _normalize_actions(feature, actions):
    if feature.is_page_level:
        return []
    return grant_from_actions(actions).to_actions()


def _replace_grants(role, grants):
    role.grants.all().delete()
    RoleFeature.objects.bulk_create([
        RoleFeature(role=role, feature=feature, actions=_normalize_actions(feature, actions))
        for feature, actions in grants
    ])


@transaction.atomic
def create_role(name, type, hierarchy_level=1, grants=(), description="", is_system_role=False):
    """
    Create a role with its grants.

    ``grants`` is a sequence of ``(Feature, actions)`` pairs. An empty action
    list grants the whole feature.
    """
    grants = list(grants)
    _validate_hierarchy_level(hierarchy_level)
    _validate_grants(type, grants)

    if Role.objects.filter(type=type, name__iexact=name).exists():
        raise ValidationError({"name": "A role with this name already exists for this type."})

    role = Role.objects.create(
        name=name,
        type=type,
        hierarchy_level=hierarchy_level or MIN_HIERARCHY_LEVEL,
        description=description,
        is_system_role=is_system_role,
    )
    _replace_grants(role, grants)
    logger.info("Role '%s' (%s) created with %d grant(s)", role.name, role.type, len(grants))
    return role


@transaction.atomic
def update_role(role, name=None, type=None, hierarchy_level=None, grants=None, description=None):
    """
    Update a role. ``grants=None`` leaves grants untouched; a sequence replaces them.

    System roles stay editable except for their name and type.
    """
    renamed = name is not None and name != role.name
    retyped = type is not None and type != role.type
    if role.is_system_role and (renamed or retyped):
        raise SystemRoleProtected("System roles cannot be renamed or change type.")

    _validate_hierarchy_level(hierarchy_level)
    target_type = type or role.type

    if retyped and role.assignments.filter(is_active=True).exists():
        raise ValidationError({"type": "Cannot change the type of a role that is assigned to users."})

    if grants is not None:
        grants = list(grants)
        _validate_grants(target_type, grants)
    elif retyped and role.grants.exclude(feature__role_type=target_type).exists():
        raise FeatureTypeMismatch("Existing grants do not match the new role type.")

    if renamed and Role.objects.filter(type=target_type, name__iexact=name).exclude(pk=role.pk).exists():
        raise ValidationError({"name": "A role with this name already exists for this type."})

    if name is not None:
        role.name = name
    if type is not None:
        role.type = type
    if hierarchy_level is not None:
        role.hierarchy_level = hierarchy_level
    if description is not None:
        role.description = description
    role.save()

    if grants is not None:
        _replace_grants(role, grants)

    invalidate_role_permissions([role.pk])
    logger.info("Role '%s' (%s) updated", role.name, role.type)
    return role


@transaction.atomic
def delete_role(role):
    if role.is_system_role:
        logger.warning("Refused to delete system role '%s'", role.name)
        raise SystemRoleProtected("System roles cannot be deleted.")

    if role.assignments.filter(is_active=True).exists():
        raise ValidationError(
            {"detail": "Cannot delete a role that is assigned to users. Remove the assignments first."}
        )

    invalidate_role_permissions([role.pk])
    logger.info("Role '%s' (%s) deleted", role.name, role.type)
    role.delete()


# -------------------------------------------------------------------
# Assignments
# -------------------------------------------------------------------
def _check_role_matches_user(role, user):
    if role.type != user.role_type:
        raise ValidationError(
            {"role": f"A {role.type} role cannot be assigned to a {user.role} user."}
        )


@transaction.atomic
def assign_role(role, user, assigned_by=None):
    """Bind ``role`` to ``user``, reactivating a previously removed assignment."""
    _check_role_matches_user(role, user)

    assignment = RoleAssignment.objects.select_for_update().filter(user=user, role=role).first()
    if assignment is not None:
        if assignment.is_active:
            raise ValidationError({"role": "Role is already assigned to this user."})
        assignment.is_active = True
        assignment.assigned_by = assigned_by
        assignment.save(update_fields=["is_active", "assigned_by"])
    else:
        try:
            with transaction.atomic():
                assignment = RoleAssignment.objects.create(user=user, role=role, assigned_by=assigned_by)
        except IntegrityError:
            raise ValidationError({"role": "Role is already assigned to this user."})

    invalidate_user_permissions([user.pk])
    logger.info("Role '%s' assigned to user %s", role.name, user.pk)
    return assignment


@transaction.atomic
def remove_role(role, user):
    updated = RoleAssignment.objects.filter(user=user, role=role, is_active=True).update(is_active=False)
    if not updated:
        raise NotFound("Role is not assigned to this user.")
    invalidate_user_permissions([user.pk])
    logger.info("Role '%s' removed from user %s", role.name, user.pk)


def system_role(name, role_type):
    return Role.objects.filter(name=name, type=role_type, is_system_role=True).first()


def merchant_admin_role():
    from .catalog import MERCHANT_ADMIN_ROLE_NAME

    return system_role(MERCHANT_ADMIN_ROLE_NAME, RoleType.MERCHANT)
