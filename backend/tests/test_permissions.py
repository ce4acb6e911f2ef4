# Overview: Pytest coverage for the permission catalog and role templates.

from tenantgate.models import PlatformRole, StoreRole
from tenantgate.permissions import (
    HIGH_RISK_ACTIONS,
    PermissionCategory,
    get_all_permission_codes,
    get_all_platform_permission_codes,
    get_permission_definition,
    get_permissions_by_category,
    get_platform_role_template,
    get_store_role_template,
    validate_permission_code,
)


def test_codes_are_unique():
    store_codes = get_all_permission_codes()
    platform_codes = get_all_platform_permission_codes()
    assert len(store_codes) == len(set(store_codes))
    assert len(platform_codes) == len(set(platform_codes))
    assert not set(store_codes) & set(platform_codes)


def test_owner_and_admin_get_full_catalog():
    catalog = set(get_all_permission_codes())
    assert get_store_role_template(StoreRole.OWNER) == catalog
    assert get_store_role_template(StoreRole.ADMIN) == catalog


def test_staff_template_is_read_mostly():
    staff = get_store_role_template(StoreRole.STAFF)
    assert {"orders.read", "products.read", "customers.read"} <= staff
    assert not {"orders.write", "products.write", "team.manage", "refunds.issue"} & staff
    assert staff <= set(get_all_permission_codes())


def test_custom_and_missing_roles_are_empty():
    assert get_store_role_template(StoreRole.CUSTOM) == frozenset()
    assert get_store_role_template(None) == frozenset()


def test_platform_templates():
    assert get_platform_role_template(PlatformRole.OWNER) == set(get_all_platform_permission_codes())
    assert get_platform_role_template(PlatformRole.STAFF) < get_platform_role_template(PlatformRole.OWNER)


def test_high_risk_actions_are_platform_permissions():
    assert set(HIGH_RISK_ACTIONS) <= set(get_all_platform_permission_codes())


def test_only_store_codes_are_grantable():
    assert validate_permission_code("orders.write")
    assert not validate_permission_code("payouts.freeze")
    assert not validate_permission_code("orders.everything")


def test_definition_lookup():
    definition = get_permission_definition("team.manage")
    assert definition["code"] == "team.manage"
    assert definition["name"]
    assert get_permission_definition("nope") is None


def test_category_lookup():
    codes = [perm[0] for perm in get_permissions_by_category(PermissionCategory.ORDERS)]
    assert "orders.read" in codes
    assert "products.read" not in codes
