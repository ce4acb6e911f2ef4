# Overview: Per-request tenancy resolution: caller identity, active store, effective permissions, platform flags.

"""
Tenancy Resolver

WHY: Every authorization decision needs the same four facts: who is calling,
which store they are acting in, what they may do there, and whether they hold
a platform role. They are computed once per request, up front, and attached
to flask.g.tenancy.

MULTI-TENANT: The effective store permission set is the role template for
the caller's StoreUserRole in the active store, plus every explicit
StoreUserPermission for that (store, user) pair. Grants in one store never
leak into another.

NO CACHING: Roles and grants can change between requests (a revoked grant
must take effect on the very next call), so nothing here is memoized.
"""

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import (
    AccessToken,
    Merchant,
    PlatformRole,
    PlatformUserRole,
    Store,
    StoreRole,
    StoreUserPermission,
    StoreUserRole,
    User,
)
from ..permissions import get_platform_role_template, get_store_role_template
from . import token_service


STORE_HEADER = "X-Store-Id"
STORE_QUERY_PARAM = "storeId"


@dataclass(frozen=True)
class TenancyContext:
    """Resolved request context. Anonymous when user is None."""
    user: User | None = None
    access_token: AccessToken | None = None
    merchant: Merchant | None = None
    store: Store | None = None
    store_role: StoreRole | None = None
    custom_role_name: str | None = None
    store_permissions: frozenset = field(default_factory=frozenset)
    platform_roles: frozenset = field(default_factory=frozenset)
    platform_permissions: frozenset = field(default_factory=frozenset)

    @property
    def user_id(self) -> int | None:
        return self.user.id if self.user is not None else None

    @property
    def store_id(self) -> int | None:
        return self.store.id if self.store is not None else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_owner_or_admin(self) -> bool:
        return self.store_role in (StoreRole.OWNER, StoreRole.ADMIN)

    @property
    def is_platform_owner(self) -> bool:
        return PlatformRole.OWNER in self.platform_roles

    @property
    def is_platform_staff(self) -> bool:
        return PlatformRole.STAFF in self.platform_roles

    def has_store_permission(self, permission: str) -> bool:
        return self.store is not None and permission in self.store_permissions

    def to_dict(self) -> dict:
        return {
            "authenticated": self.is_authenticated,
            "user_id": self.user_id,
            "merchant_id": self.merchant.id if self.merchant is not None else None,
            "store_id": self.store_id,
            "store_role": self.store_role.name if self.store_role is not None else None,
            "custom_role_name": self.custom_role_name,
            "is_owner_or_admin": self.is_owner_or_admin,
            "is_platform_owner": self.is_platform_owner,
            "is_platform_staff": self.is_platform_staff,
            "platform_roles": sorted(role.name for role in self.platform_roles),
            "store_permissions": sorted(self.store_permissions),
            "platform_permissions": sorted(self.platform_permissions),
        }


ANONYMOUS = TenancyContext()


def extract_bearer_token(authorization: str | None) -> str | None:
    """Token from an 'Authorization: Bearer <token>' header; None if absent or malformed."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def _parse_store_id(value) -> int | None:
    if value is None:
        return None
    value = str(value).strip()
    if not value.isdigit():
        return None
    return int(value)


def resolve_store_by_host(host: str | None) -> Store | None:
    """
    Store for a request host.

    <subdomain>.<TENANCY_ROOT_DOMAIN> matches Store.subdomain; otherwise the
    full host is matched against a merchant's primary_domain, which resolves
    to that merchant's first store.
    """
    if not host:
        return None
    host = host.split(":", 1)[0].strip().lower().rstrip(".")
    if not host:
        return None

    root_domain = (current_app.config.get("TENANCY_ROOT_DOMAIN") or "").strip().lower().strip(".")
    if root_domain and host.endswith("." + root_domain):
        subdomain = host[: -(len(root_domain) + 1)]
        if subdomain:
            store = db.session.query(Store).filter_by(subdomain=subdomain).first()
            if store is not None:
                return store

    merchant = db.session.query(Merchant).filter_by(primary_domain=host).first()
    if merchant is None:
        return None
    return db.session.query(Store).filter_by(merchant_id=merchant.id).order_by(Store.id).first()


def resolve_store(request) -> Store | None:
    """Active store: X-Store-Id header, then ?storeId=, then the host."""
    header_value = request.headers.get(STORE_HEADER)
    if header_value is not None:
        store_id = _parse_store_id(header_value)
        return db.session.get(Store, store_id) if store_id is not None else None

    query_value = request.args.get(STORE_QUERY_PARAM)
    if query_value is not None:
        store_id = _parse_store_id(query_value)
        return db.session.get(Store, store_id) if store_id is not None else None

    return resolve_store_by_host(request.host)


def effective_store_permissions(store_id: int, user_id: int) -> tuple[StoreUserRole | None, frozenset]:
    """(membership row or None, role template ∪ explicit grants) for a (store, user) pair."""
    membership = db.session.query(StoreUserRole).filter_by(store_id=store_id, user_id=user_id).first()
    permissions = set(get_store_role_template(membership.role if membership else None))
    grants = db.session.query(StoreUserPermission.permission).filter_by(
        store_id=store_id, user_id=user_id
    ).all()
    permissions.update(row.permission for row in grants)
    return membership, frozenset(permissions)


def platform_roles_for(user_id: int) -> frozenset:
    rows = db.session.query(PlatformUserRole.role).filter_by(user_id=user_id).all()
    return frozenset(PlatformRole(row.role) for row in rows)


def build_context(user: User | None, store: Store | None, access_token: AccessToken | None = None) -> TenancyContext:
    merchant = store.merchant if store is not None else None
    if user is None:
        return TenancyContext(merchant=merchant, store=store)

    membership = None
    store_permissions = frozenset()
    if store is not None:
        membership, store_permissions = effective_store_permissions(store.id, user.id)

    platform_roles = platform_roles_for(user.id)
    platform_permissions = set()
    for role in platform_roles:
        platform_permissions.update(get_platform_role_template(role))

    return TenancyContext(
        user=user,
        access_token=access_token,
        merchant=merchant,
        store=store,
        store_role=membership.role if membership is not None else None,
        custom_role_name=membership.custom_role_name if membership is not None else None,
        store_permissions=store_permissions,
        platform_roles=platform_roles,
        platform_permissions=frozenset(platform_permissions),
    )


def resolve_tenancy(request) -> TenancyContext:
    """
    Build the TenancyContext for request.

    Never raises for bad credentials: a missing, malformed, unknown, expired
    or revoked token simply yields an anonymous context. Endpoints that need
    a caller enforce that through the authorization decorators.
    """
    store = resolve_store(request)

    secret = extract_bearer_token(request.headers.get("Authorization"))
    access = token_service.find_active_access_token(secret) if secret else None
    user = db.session.get(User, access.user_id) if access is not None else None
    if access is not None and user is None:
        current_app.logger.warning("access token %s references missing user %s", access.id, access.user_id)

    return build_context(user, store, access if user is not None else None)
