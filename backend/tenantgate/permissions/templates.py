# Overview: Role templates. The permissions a role implies before any explicit grants.

from ..models.tenancy import StoreRole, PlatformRole
from .definitions import STORE_PERMISSION_DEFINITIONS, PLATFORM_PERMISSION_DEFINITIONS


_ALL_STORE_PERMISSIONS = frozenset(perm[0] for perm in STORE_PERMISSION_DEFINITIONS)

# Staff is read-mostly: fulfillment and media work, no catalog or order edits.
_STAFF_TEMPLATE = frozenset({
    "store.settings.read",
    "orders.read",
    "products.read",
    "customers.read",
    "inventory.read",
    "shipments.manage",
    "media.manage",
})

STORE_ROLE_TEMPLATES = {
    StoreRole.OWNER: _ALL_STORE_PERMISSIONS,
    StoreRole.ADMIN: _ALL_STORE_PERMISSIONS,
    StoreRole.STAFF: _STAFF_TEMPLATE,
    StoreRole.CUSTOM: frozenset(),
}

PLATFORM_ROLE_TEMPLATES = {
    PlatformRole.OWNER: frozenset(perm[0] for perm in PLATFORM_PERMISSION_DEFINITIONS),
    PlatformRole.STAFF: frozenset({
        "merchants.read",
        "stores.read",
        "orders.read_masked",
        "customers.read_masked",
    }),
}


def get_store_role_template(role) -> frozenset:
    """Template for a store role; no role means no permissions."""
    if role is None:
        return frozenset()
    return STORE_ROLE_TEMPLATES.get(StoreRole(role), frozenset())


def get_platform_role_template(role) -> frozenset:
    return PLATFORM_ROLE_TEMPLATES.get(PlatformRole(role), frozenset())
