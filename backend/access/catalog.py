"""
Built-in feature catalog and system roles.

Loaded by the ``seed_access`` management command. Slugs are global, so
platform-side features that mirror a merchant page get a ``platform_`` prefix.
"""
from .models import RoleType

CRUD = ["view", "create", "edit", "delete"]

MERCHANT_FEATURES = [
    {"slug": "dashboard.view", "name": "Dashboard", "category": "general", "is_page_level": True},
    {"slug": "products.view", "name": "Products", "category": "catalog", "default_actions": CRUD},
    {"slug": "inventory.view", "name": "Inventory", "category": "catalog", "default_actions": CRUD},
    {"slug": "sales.view", "name": "Sales", "category": "sales", "default_actions": CRUD},
    {"slug": "expenses.view", "name": "Expenses", "category": "finance", "default_actions": CRUD},
    {"slug": "analytics.view", "name": "Analytics", "category": "reports", "is_page_level": True},
    {"slug": "users.view", "name": "View Users", "category": "team", "is_page_level": True},
    {"slug": "users.create", "name": "Create Users", "category": "team", "is_page_level": True},
    {"slug": "users.edit", "name": "Edit Users", "category": "team", "is_page_level": True},
    {"slug": "settings.view", "name": "Settings", "category": "settings", "default_actions": ["view", "edit"]},
]

PLATFORM_FEATURES = [
    {"slug": "platform_dashboard.view", "name": "Platform Dashboard", "category": "general", "is_page_level": True},
    {"slug": "merchants.view", "name": "Merchants", "category": "merchants",
     "default_actions": ["view", "approve", "reject", "edit"]},
    {"slug": "subscriptions.view", "name": "Subscriptions", "category": "billing",
     "default_actions": ["view", "edit"]},
    {"slug": "roles.view", "name": "View Roles", "category": "access", "is_page_level": True},
    {"slug": "roles.create", "name": "Create Roles", "category": "access", "is_page_level": True},
    {"slug": "roles.edit", "name": "Edit Roles", "category": "access", "is_page_level": True},
    {"slug": "roles.delete", "name": "Delete Roles", "category": "access", "is_page_level": True},
    {"slug": "features.view", "name": "View Features", "category": "access", "is_page_level": True},
    {"slug": "features.create", "name": "Manage Features", "category": "access", "is_page_level": True},
    {"slug": "platform_users.view", "name": "Platform Users", "category": "team", "default_actions": CRUD},
    {"slug": "platform_analytics.view", "name": "Platform Analytics", "category": "reports", "is_page_level": True},
    {"slug": "platform_settings.view", "name": "Platform Settings", "category": "settings",
     "default_actions": ["view", "edit"]},
]


def feature_definitions():
    for role_type, features in ((RoleType.MERCHANT, MERCHANT_FEATURES),
                                (RoleType.PLATFORM_OWNER, PLATFORM_FEATURES)):
        for item in features:
            yield {
                "slug": item["slug"],
                "name": item["name"],
                "description": item.get("description", ""),
                "category": item["category"],
                "is_page_level": item.get("is_page_level", False),
                "default_actions": list(item.get("default_actions", [])),
                "role_type": role_type,
            }


# System roles receive every feature of their type.
SYSTEM_ROLES = [
    {
        "name": "Super Admin",
        "description": "Full platform access",
        "type": RoleType.PLATFORM_OWNER,
        "hierarchy_level": 3,
    },
    {
        "name": "Merchant Admin",
        "description": "Full access to the merchant's back office",
        "type": RoleType.MERCHANT,
        "hierarchy_level": 2,
    },
]

MERCHANT_ADMIN_ROLE_NAME = "Merchant Admin"
SUPER_ADMIN_ROLE_NAME = "Super Admin"
