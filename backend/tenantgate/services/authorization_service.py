# Overview: Deny-by-default policy evaluation over a TenancyContext, plus the named policy registry.

"""
Authorization Engine

A policy is a small frozen value; evaluate() is a pure function of
(context, policy). Every branch that does not explicitly succeed denies,
including unknown policy kinds.

Policy kinds:
- PlatformRolePolicy(role): caller holds that platform role
- StorePermissionPolicy(permission): a store is active and the permission is
  in the caller's effective set for it
- StoreRolePolicy(owner_or_admin): a store is active and the caller is a
  member (optionally Owner or Admin)
"""

from dataclasses import dataclass

from ..errors import AuthenticationRequired, PermissionDenied
from ..models import PlatformRole
from . import audit_service
from .tenancy_service import TenancyContext


@dataclass(frozen=True)
class PlatformRolePolicy:
    role: PlatformRole


@dataclass(frozen=True)
class StorePermissionPolicy:
    permission: str


@dataclass(frozen=True)
class StoreRolePolicy:
    owner_or_admin: bool = False


POLICIES = {
    "OrdersRead": StorePermissionPolicy("orders.read"),
    "OrdersWrite": StorePermissionPolicy("orders.write"),
    "ProductsRead": StorePermissionPolicy("products.read"),
    "ProductsWrite": StorePermissionPolicy("products.write"),
    "CustomersRead": StorePermissionPolicy("customers.read"),
    "CustomersWrite": StorePermissionPolicy("customers.write"),
    "StoreSettingsRead": StorePermissionPolicy("store.settings.read"),
    "StoreSettingsWrite": StorePermissionPolicy("store.settings.write"),
    "TeamManage": StorePermissionPolicy("team.manage"),
    "PlatformOwner": PlatformRolePolicy(PlatformRole.OWNER),
    "PlatformStaff": PlatformRolePolicy(PlatformRole.STAFF),
    "StoreOwnerOrAdmin": StoreRolePolicy(owner_or_admin=True),
    "StoreStaff": StoreRolePolicy(owner_or_admin=False),
}


def evaluate(context: TenancyContext, policy) -> bool:
    if context is None or not context.is_authenticated:
        return False

    if isinstance(policy, PlatformRolePolicy):
        if policy.role == PlatformRole.OWNER:
            return context.is_platform_owner
        if policy.role == PlatformRole.STAFF:
            return context.is_platform_staff
        return False

    if isinstance(policy, StorePermissionPolicy):
        return context.has_store_permission(policy.permission)

    if isinstance(policy, StoreRolePolicy):
        if context.store is None or context.store_role is None:
            return False
        return context.is_owner_or_admin or not policy.owner_or_admin

    return False


def get_policy(name: str):
    """Registry lookup. Unknown names are a programming error."""
    try:
        return POLICIES[name]
    except KeyError:
        raise KeyError(f"Unknown authorization policy: {name}")


def authorize(context: TenancyContext, policy_name: str) -> None:
    """
    Enforce a named policy.

    Raises:
        AuthenticationRequired: anonymous caller (401)
        PermissionDenied: authenticated caller without the policy (403)
    """
    policy = get_policy(policy_name)
    if context is None or not context.is_authenticated:
        raise AuthenticationRequired()

    if not evaluate(context, policy):
        audit_service.log_security_event(
            user_id=context.user_id,
            event_type="PERMISSION_DENIED",
            success=False,
            action=policy_name,
            reason=f"Policy {policy_name} not satisfied",
            store_id=context.store_id,
        )
        raise PermissionDenied()
