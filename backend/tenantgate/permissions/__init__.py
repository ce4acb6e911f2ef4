# Overview: Permission system package.
# Re-exports the catalog, role templates, and lookup helpers.

from .categories import PermissionCategory
from .definitions import (
    STORE_PERMISSION_DEFINITIONS,
    PLATFORM_PERMISSION_DEFINITIONS,
    HIGH_RISK_ACTIONS,
)
from .templates import (
    STORE_ROLE_TEMPLATES,
    PLATFORM_ROLE_TEMPLATES,
    get_store_role_template,
    get_platform_role_template,
)
from .helpers import (
    get_all_permission_codes,
    get_all_platform_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "STORE_PERMISSION_DEFINITIONS",
    "PLATFORM_PERMISSION_DEFINITIONS",
    "HIGH_RISK_ACTIONS",
    "STORE_ROLE_TEMPLATES",
    "PLATFORM_ROLE_TEMPLATES",
    "get_store_role_template",
    "get_platform_role_template",
    "get_all_permission_codes",
    "get_all_platform_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
]
