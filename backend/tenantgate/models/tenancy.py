from __future__ import annotations

from enum import IntEnum

from ..extensions import db
from ..time_utils import utcnow, to_utc_z
from .types import IntEnumType


class StoreRole(IntEnum):
    """Role a user holds inside one store. Integer values are the stored form."""
    OWNER = 0
    ADMIN = 1
    STAFF = 2
    CUSTOM = 3


class PlatformRole(IntEnum):
    """Operator role across the whole platform (not tied to any store)."""
    OWNER = 0
    STAFF = 1


class Merchant(db.Model):
    """
    Billing/legal tenant. A merchant owns one or more stores.

    primary_domain is the merchant's custom domain; requests arriving on it
    resolve to the merchant's first store when no store is named explicitly.
    """
    __tablename__ = "merchants"
    __table_args__ = (
        db.UniqueConstraint("primary_domain", name="uq_merchants_primary_domain"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    primary_domain = db.Column(db.String(255), nullable=True, index=True)
    status = db.Column(db.String(32), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Merchant id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "primary_domain": self.primary_domain,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class Store(db.Model):
    """
    Storefront within a merchant.

    MULTI-TENANT: the store is the unit of isolation. Every permission a
    staff member holds is granted for exactly one store.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("subdomain", name="uq_stores_subdomain"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    subdomain = db.Column(db.String(63), nullable=False, index=True)
    status = db.Column(db.String(32), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    merchant = db.relationship("Merchant", backref=db.backref("stores", lazy=True))

    def __repr__(self) -> str:
        return f"<Store id={self.id} subdomain={self.subdomain!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "name": self.name,
            "subdomain": self.subdomain,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class StoreUserRole(db.Model):
    """
    Membership of a user in a store, with their role.

    One row per (store, user). custom_role_name only carries meaning for
    StoreRole.CUSTOM, whose permissions come entirely from explicit grants.
    """
    __tablename__ = "store_user_roles"
    __table_args__ = (
        db.UniqueConstraint("store_id", "user_id", name="uq_store_user_roles_store_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = db.Column(IntEnumType(StoreRole), nullable=False)
    custom_role_name = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "user_id": self.user_id,
            "role": self.role.name if self.role is not None else None,
            "custom_role_name": self.custom_role_name,
            "created_at": to_utc_z(self.created_at),
        }


class StoreUserPermission(db.Model):
    """
    Explicit per-store permission grant, added on top of the role template.

    Permission codes are validated against the store catalog when granted.
    """
    __tablename__ = "store_user_permissions"
    __table_args__ = (
        db.UniqueConstraint(
            "store_id", "user_id", "permission", name="uq_store_user_permissions_store_user_perm"
        ),
        db.Index("ix_store_user_permissions_store_user", "store_id", "user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    permission = db.Column(db.String(64), nullable=False)

    # Audit: who granted this permission
    granted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "user_id": self.user_id,
            "permission": self.permission,
            "granted_by_user_id": self.granted_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class PlatformUserRole(db.Model):
    __tablename__ = "platform_user_roles"
    __table_args__ = (
        db.UniqueConstraint("user_id", "role", name="uq_platform_user_roles_user_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = db.Column(IntEnumType(PlatformRole), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.role.name if self.role is not None else None,
            "created_at": to_utc_z(self.created_at),
        }


class TeamInviteToken(db.Model):
    """
    Pending invitation to join a store.

    The raw token is handed to the inviter exactly once; only its SHA-256 is
    stored. accepted_at makes the invite single-use.
    """
    __tablename__ = "team_invite_tokens"
    __table_args__ = (
        db.Index("ix_team_invite_tokens_store_email", "store_id", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False)
    email = db.Column(db.String(320), nullable=False)
    token_hash = db.Column(db.String(128), nullable=False, unique=True, index=True)
    role = db.Column(IntEnumType(StoreRole), nullable=False)
    custom_role_name = db.Column(db.String(64), nullable=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "email": self.email,
            "role": self.role.name if self.role is not None else None,
            "custom_role_name": self.custom_role_name,
            "expires_at": to_utc_z(self.expires_at),
            "accepted_at": to_utc_z(self.accepted_at),
            "created_at": to_utc_z(self.created_at),
        }


class StoreRoleTemplate(db.Model):
    """
    Named permission bundle defined by a store.

    Applying one makes the member CUSTOM with the template's name and
    replaces their explicit grants with the template's permissions.
    """
    __tablename__ = "store_role_templates"
    __table_args__ = (
        db.UniqueConstraint("store_id", "name", name="uq_store_role_templates_store_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    # Comma-separated store permission codes
    permissions_csv = db.Column(db.Text, nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def permissions(self) -> list[str]:
        return [code for code in self.permissions_csv.split(",") if code]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "permissions": self.permissions,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
