from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import caches
from django.core.management import call_command
from django.utils import timezone
from rest_framework.test import APIClient

from access import services as access_services
from access.catalog import SUPER_ADMIN_ROLE_NAME
from access.models import Feature, RoleType
from merchants.services import approve_merchant, register_merchant
from users.models import UserRole

User = get_user_model()

PASSWORD = "Sturdy-Pass-2024!"


@pytest.fixture(autouse=True)
def clear_permission_cache(settings):
    # Primary keys are reused across tests; cached permission sets must not leak.
    caches[settings.ACCESS_PERMISSION_CACHE].clear()
    yield
    caches[settings.ACCESS_PERMISSION_CACHE].clear()


@pytest.fixture(autouse=True)
def no_task_broker(monkeypatch):
    """Record Celery ``.delay`` calls instead of sending them to a broker."""
    from users import tasks as user_tasks

    calls = []

    def _recorder(name):
        def delay(*args, **kwargs):
            calls.append((name, args, kwargs))
        return delay

    monkeypatch.setattr(user_tasks.send_password_reset_email, "delay", _recorder("send_password_reset_email"))
    return calls


@pytest.fixture
def now():
    """One clock reading per test, passed to services as ``now=``."""
    return timezone.now().replace(microsecond=0)


@pytest.fixture
def catalog(db):
    call_command("seed_access", verbosity=0, stdout=StringIO())
    return {feature.slug: feature for feature in Feature.objects.all()}


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def auth_client():
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=UserRole.MERCHANT_STAFF, merchant=None, **extra):
        counter["n"] += 1
        extra.setdefault("email", f"user{counter['n']}@example.com")
        return User.objects.create_user(password=PASSWORD, role=role, merchant=merchant, **extra)
    return _make


@pytest.fixture
def platform_owner(make_user, catalog):
    """A platform owner holding the seeded Super Admin role."""
    user = make_user(role=UserRole.PLATFORM_OWNER, email="owner@example.com")
    role = access_services.system_role(SUPER_ADMIN_ROLE_NAME, RoleType.PLATFORM_OWNER)
    access_services.assign_role(role, user)
    return user


@pytest.fixture
def pending_merchant(db):
    merchant, _ = register_merchant(
        name="Corner Shop",
        email="corner@example.com",
        password=PASSWORD,
        first_name="Ada",
    )
    return merchant


@pytest.fixture
def active_merchant(pending_merchant, catalog, now):
    merchant, _ = approve_merchant(pending_merchant, now=now)
    return merchant


@pytest.fixture
def merchant_admin(active_merchant):
    return User.objects.get(merchant=active_merchant, role=UserRole.MERCHANT_ADMIN)


@pytest.fixture
def role_factory(catalog):
    def _role(name, grants, type=RoleType.MERCHANT, hierarchy_level=1):
        pairs = [(catalog[slug], actions) for slug, actions in grants.items()]
        return access_services.create_role(name=name, type=type, hierarchy_level=hierarchy_level, grants=pairs)
    return _role
