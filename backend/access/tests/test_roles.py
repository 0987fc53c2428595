from io import StringIO

import pytest
from django.core.management import call_command
from rest_framework.exceptions import ValidationError

from access import services
from access.catalog import MERCHANT_ADMIN_ROLE_NAME, SUPER_ADMIN_ROLE_NAME
from access.models import Feature, Role, RoleAssignment, RoleFeature, RoleType
from access.session import AccessSession, resolve_permissions
from core.exceptions import FeatureTypeMismatch, NotFound, SystemRoleProtected
from users.models import UserRole

pytestmark = pytest.mark.django_db


def test_seed_creates_system_roles_with_every_feature_of_their_type(catalog):
    super_admin = Role.objects.get(name=SUPER_ADMIN_ROLE_NAME)
    merchant_admin = Role.objects.get(name=MERCHANT_ADMIN_ROLE_NAME)

    assert super_admin.is_system_role and super_admin.hierarchy_level == 3
    assert merchant_admin.is_system_role and merchant_admin.hierarchy_level == 2
    assert merchant_admin.grants.count() == Feature.objects.filter(role_type=RoleType.MERCHANT).count()
    assert not super_admin.grants.exclude(feature__role_type=RoleType.PLATFORM_OWNER).exists()


def test_seed_is_idempotent(catalog):
    before = RoleFeature.objects.count()
    call_command("seed_access", stdout=StringIO())
    assert RoleFeature.objects.count() == before
    assert Role.objects.filter(is_system_role=True).count() == 2


def test_auditor_role_grants_whole_feature(role_factory, make_user):
    auditor = role_factory("Auditor", {"sales.view": []}, hierarchy_level=1)
    user = make_user()
    services.assign_role(auditor, user)

    session = AccessSession.for_user(user)
    assert session.can_access("sales.view")
    assert session.can_access("sales.view", "delete")
    assert not session.can_access("products.view")


def test_staff_role_grants_only_listed_actions(role_factory, make_user):
    staff = role_factory("Staff", {"sales.view": ["view"]})
    user = make_user()
    services.assign_role(staff, user)

    session = AccessSession.for_user(user)
    assert session.can_access("sales.view", "view")
    assert not session.can_access("sales.view", "delete")


def test_two_roles_resolve_to_the_union(role_factory, make_user):
    cashier = role_factory("Cashier", {"sales.view": ["view", "create"]})
    stock = role_factory("Stock keeper", {"inventory.view": ["view", "edit"], "sales.view": ["view"]})

    only_cashier, only_stock, both = make_user(), make_user(), make_user()
    services.assign_role(cashier, only_cashier)
    services.assign_role(stock, only_stock)
    services.assign_role(cashier, both)
    services.assign_role(stock, both)

    combined = resolve_permissions(both)
    for single in (resolve_permissions(only_cashier), resolve_permissions(only_stock)):
        for entry in single:
            for action in ["view", "create", "edit", "delete"]:
                if single.get(entry.feature_slug).grant.allows(action):
                    assert combined.get(entry.feature_slug).grant.allows(action)

    assert combined.get("sales.view").grant.to_actions() == ["create", "view"]


def test_deleting_system_role_is_refused_and_leaves_grants(catalog):
    role = Role.objects.get(name=MERCHANT_ADMIN_ROLE_NAME)
    grants_before = sorted(role.grants.values_list("feature_id", flat=True))

    with pytest.raises(SystemRoleProtected):
        services.delete_role(role)

    role.refresh_from_db()
    assert role.is_system_role
    assert sorted(role.grants.values_list("feature_id", flat=True)) == grants_before


def test_system_role_cannot_be_renamed_but_stays_editable(catalog):
    role = Role.objects.get(name=MERCHANT_ADMIN_ROLE_NAME)

    with pytest.raises(SystemRoleProtected):
        services.update_role(role, name="Owner")

    services.update_role(role, description="Runs the shop")
    role.refresh_from_db()
    assert role.description == "Runs the shop"
    assert role.name == MERCHANT_ADMIN_ROLE_NAME


def test_role_with_foreign_feature_type_is_rejected(catalog):
    with pytest.raises(FeatureTypeMismatch):
        services.create_role(
            name="Mixed",
            type=RoleType.MERCHANT,
            grants=[(catalog["sales.view"], ["view"]), (catalog["merchants.view"], ["approve"])],
        )
    assert not Role.objects.filter(name="Mixed").exists()


def test_update_with_foreign_feature_type_is_rejected(role_factory, catalog):
    role = role_factory("Cashier", {"sales.view": ["view"]})
    with pytest.raises(FeatureTypeMismatch):
        services.update_role(role, grants=[(catalog["roles.view"], [])])
    assert list(role.grants.values_list("feature__slug", flat=True)) == ["sales.view"]


@pytest.mark.parametrize("level", [0, 4])
def test_hierarchy_level_out_of_range(catalog, level):
    with pytest.raises(ValidationError):
        services.create_role(name="Odd", type=RoleType.MERCHANT, hierarchy_level=level)


def test_page_level_feature_stores_no_actions(role_factory):
    role = role_factory("Viewer", {"dashboard.view": ["view"]})
    assert role.grants.get().actions == []


def test_assign_rejects_role_of_other_type(catalog, make_user):
    platform_role = services.create_role(name="Support", type=RoleType.PLATFORM_OWNER)
    with pytest.raises(ValidationError):
        services.assign_role(platform_role, make_user(role=UserRole.MERCHANT_STAFF))


def test_assign_twice_is_rejected_and_remove_reactivate_works(role_factory, make_user):
    role = role_factory("Cashier", {"sales.view": ["view"]})
    user = make_user()

    services.assign_role(role, user)
    with pytest.raises(ValidationError):
        services.assign_role(role, user)

    services.remove_role(role, user)
    assert not RoleAssignment.objects.get(user=user, role=role).is_active
    with pytest.raises(NotFound):
        services.remove_role(role, user)

    services.assign_role(role, user)
    assert RoleAssignment.objects.filter(user=user, role=role).count() == 1
    assert RoleAssignment.objects.get(user=user, role=role).is_active


def test_assigned_role_cannot_be_deleted(role_factory, make_user):
    role = role_factory("Cashier", {"sales.view": ["view"]})
    services.assign_role(role, make_user())

    with pytest.raises(ValidationError):
        services.delete_role(role)
    assert Role.objects.filter(pk=role.pk).exists()


def test_revoke_is_visible_on_next_resolution(role_factory, make_user):
    role = role_factory("Cashier", {"sales.view": ["view", "create"]})
    user = make_user()
    services.assign_role(role, user)
    assert AccessSession.for_user(user).can_access("sales.view", "create")

    services.update_role(role, grants=[(role.grants.get().feature, ["view"])])
    assert not AccessSession.for_user(user).can_access("sales.view", "create")

    services.remove_role(role, user)
    assert not AccessSession.for_user(user).can_access("sales.view")


def test_grant_edit_outside_services_also_invalidates(role_factory, make_user):
    role = role_factory("Cashier", {"sales.view": ["view"]})
    user = make_user()
    services.assign_role(role, user)
    assert AccessSession.for_user(user).can_access("sales.view")

    RoleFeature.objects.get(role=role).delete()
    assert not AccessSession.for_user(user).can_access("sales.view")


def test_referenced_feature_slug_is_frozen(role_factory, catalog):
    role_factory("Cashier", {"sales.view": ["view"]})
    with pytest.raises(ValidationError):
        services.update_feature(catalog["sales.view"], slug="sales.list")

    services.update_feature(catalog["sales.view"], name="Sales ledger")
    assert Feature.objects.get(slug="sales.view").name == "Sales ledger"


def test_referenced_feature_cannot_become_page_level(role_factory, catalog, make_user, active_merchant):
    staff = make_user(merchant=active_merchant)
    services.assign_role(role_factory("Staff", {"products.view": ["view"]}), staff)

    with pytest.raises(ValidationError):
        services.update_feature(catalog["products.view"], is_page_level=True)

    assert Feature.objects.get(slug="products.view").is_page_level is False
    session = AccessSession.for_user(staff, use_cache=False)
    assert session.can_access("products.view", "view")
    assert not session.can_access("products.view", "delete")


def test_unreferenced_feature_can_become_page_level(catalog):
    feature = services.create_feature(slug="reports.view", name="Reports", role_type=RoleType.MERCHANT,
                                      default_actions=["view"])

    services.update_feature(feature, is_page_level=True)
    assert Feature.objects.get(slug="reports.view").is_page_level is True


def test_duplicate_feature_slug_is_rejected(catalog):
    with pytest.raises(ValidationError):
        services.create_feature(slug="sales.view", name="Sales again", role_type=RoleType.MERCHANT)
