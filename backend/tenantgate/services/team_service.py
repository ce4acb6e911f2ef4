# Overview: Store team management (invites, roles, explicit grants, role templates) and platform role grants.

"""
Team Service

WHY: Store access is only ever granted through this module, so every grant
is validated against the catalog and written to the security audit trail.

INVITES: The raw invite token is returned once to the inviter (delivery is
someone else's job). Only its SHA-256 is stored. Accepting an invite is
single-use, enforced by a conditional update on accepted_at. An invite for
an email that already has an account only adds the membership, and only when
that account redeems it.

OWNER ROLE: Only a store Owner may grant or take away the Owner
role, and a store can never be left without an Owner.

ROLE TEMPLATES: Store-defined permission bundles. Applying one replaces the
member's explicit grants.
"""

from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import AuthenticationRequired, ConflictError, NotFound, PermissionDenied, ValidationError
from ..extensions import db
from ..models import (
    Merchant,
    PlatformRole,
    PlatformUserRole,
    Store,
    StoreRole,
    StoreRoleTemplate,
    StoreUserPermission,
    StoreUserRole,
    TeamInviteToken,
    User,
)
from ..permissions import validate_permission_code
from ..time_utils import utcnow, is_in_future
from . import audit_service, token_service
from .password_service import get_user_by_email, hash_password, validate_email
from .tenancy_service import TenancyContext
from .token_service import IssuedTokens


def parse_store_role(value) -> StoreRole:
    """Accept a role name ("staff") or its integer value."""
    if isinstance(value, StoreRole):
        return value
    if isinstance(value, str) and value.strip():
        name = value.strip().upper()
        if name in StoreRole.__members__:
            return StoreRole[name]
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return StoreRole(value)
        except ValueError:
            pass
    raise ValidationError("role must be one of: owner, admin, staff, custom")


def parse_platform_role(value) -> PlatformRole:
    if isinstance(value, PlatformRole):
        return value
    if isinstance(value, str) and value.strip().upper() in PlatformRole.__members__:
        return PlatformRole[value.strip().upper()]
    raise ValidationError("role must be one of: owner, staff")


def _get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if store is None:
        raise NotFound()
    return store


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound()
    return user


def _require_owner_for(role: StoreRole, actor: TenancyContext) -> None:
    if role == StoreRole.OWNER and actor.store_role != StoreRole.OWNER:
        raise PermissionDenied()


def create_store(merchant_name: str, store_name: str, subdomain: str, primary_domain: str | None = None) -> Store:
    """Create a merchant with its first store (bootstrap path used by the CLI)."""
    subdomain = (subdomain or "").strip().lower()
    if not subdomain or not store_name:
        raise ValidationError("store name and subdomain are required")
    if db.session.query(Store).filter_by(subdomain=subdomain).first() is not None:
        raise ConflictError(code="subdomain_taken")

    merchant = Merchant(name=merchant_name or store_name, primary_domain=primary_domain or None)
    db.session.add(merchant)
    db.session.flush()
    store = Store(merchant_id=merchant.id, name=store_name, subdomain=subdomain)
    db.session.add(store)
    db.session.commit()
    return store


def set_store_role(
    store_id: int,
    user_id: int,
    role: StoreRole,
    custom_role_name: str | None = None,
    commit: bool = True,
) -> StoreUserRole:
    """Upsert the (store, user) membership."""
    membership = db.session.query(StoreUserRole).filter_by(store_id=store_id, user_id=user_id).first()
    if membership is None:
        membership = StoreUserRole(store_id=store_id, user_id=user_id, role=role)
        db.session.add(membership)
    membership.role = role
    membership.custom_role_name = custom_role_name if role == StoreRole.CUSTOM else None
    if commit:
        db.session.commit()
    return membership


def _owner_count(store_id: int) -> int:
    return db.session.query(StoreUserRole).filter_by(store_id=store_id, role=StoreRole.OWNER).count()


def _guard_owner_change(actor: TenancyContext, store_id: int, current: StoreUserRole | None, new_role) -> None:
    """Demoting or removing an Owner takes an Owner, and never leaves the store without one."""
    if current is None or current.role != StoreRole.OWNER or new_role == StoreRole.OWNER:
        return
    _require_owner_for(StoreRole.OWNER, actor)
    if _owner_count(store_id) <= 1:
        raise ConflictError(code="last_owner")


def assign_role(actor: TenancyContext, store_id: int, user_id: int, role, custom_role_name=None) -> StoreUserRole:
    role = parse_store_role(role)
    _get_store(store_id)
    _get_user(user_id)
    _require_owner_for(role, actor)

    current = db.session.query(StoreUserRole).filter_by(store_id=store_id, user_id=user_id).first()
    _guard_owner_change(actor, store_id, current, role)

    membership = set_store_role(store_id, user_id, role, custom_role_name)
    audit_service.log_security_event(
        user_id=actor.user_id,
        event_type="STORE_ROLE_ASSIGNED",
        success=True,
        action=role.name,
        reason=f"user {user_id} is now {role.name}",
        store_id=store_id,
    )
    return membership


def grant_permission(actor: TenancyContext, store_id: int, user_id: int, permission) -> StoreUserPermission:
    if not isinstance(permission, str) or not validate_permission_code(permission):
        raise ValidationError("Unknown permission code")
    _get_store(store_id)
    _get_user(user_id)

    grant = db.session.query(StoreUserPermission).filter_by(
        store_id=store_id, user_id=user_id, permission=permission
    ).first()
    if grant is not None:
        return grant

    grant = StoreUserPermission(
        store_id=store_id,
        user_id=user_id,
        permission=permission,
        granted_by_user_id=actor.user_id,
    )
    db.session.add(grant)
    db.session.commit()
    audit_service.log_security_event(
        user_id=actor.user_id,
        event_type="STORE_PERMISSION_GRANTED",
        success=True,
        action=permission,
        reason=f"granted to user {user_id}",
        store_id=store_id,
    )
    return grant


def revoke_permission(actor: TenancyContext, store_id: int, user_id: int, permission) -> bool:
    """Remove an explicit grant. Returns False if there was none."""
    if not isinstance(permission, str) or not permission:
        raise ValidationError("permission is required")
    deleted = db.session.query(StoreUserPermission).filter_by(
        store_id=store_id, user_id=user_id, permission=permission
    ).delete(synchronize_session=False)
    db.session.commit()
    if deleted:
        audit_service.log_security_event(
            user_id=actor.user_id,
            event_type="STORE_PERMISSION_REVOKED",
            success=True,
            action=permission,
            reason=f"revoked from user {user_id}",
            store_id=store_id,
        )
    return bool(deleted)


def list_team(store_id: int) -> list[dict]:
    _get_store(store_id)
    members = db.session.query(StoreUserRole, User).join(User, User.id == StoreUserRole.user_id).filter(
        StoreUserRole.store_id == store_id
    ).order_by(StoreUserRole.id).all()

    result = []
    for membership, user in members:
        grants = db.session.query(StoreUserPermission.permission).filter_by(
            store_id=store_id, user_id=user.id
        ).order_by(StoreUserPermission.permission).all()
        entry = membership.to_dict()
        entry["email"] = user.email
        entry["explicit_permissions"] = [row.permission for row in grants]
        result.append(entry)
    return result


def create_invite(
    actor: TenancyContext,
    store_id: int,
    email,
    role,
    custom_role_name: str | None = None,
) -> tuple[TeamInviteToken, str]:
    """Returns (invite record, raw token). The raw token is not recoverable later."""
    normalized = validate_email(email)
    role = parse_store_role(role)
    _get_store(store_id)
    _require_owner_for(role, actor)

    raw_token = token_service.generate_token()
    now = utcnow()
    invite = TeamInviteToken(
        store_id=store_id,
        email=normalized,
        token_hash=token_service.hash_token(raw_token),
        role=role,
        custom_role_name=custom_role_name if role == StoreRole.CUSTOM else None,
        created_by_user_id=actor.user_id,
        created_at=now,
        expires_at=now + timedelta(hours=int(current_app.config.get("INVITE_TTL_HOURS", 72))),
    )
    db.session.add(invite)
    db.session.commit()
    audit_service.log_security_event(
        user_id=actor.user_id,
        event_type="INVITE_CREATED",
        success=True,
        action=role.name,
        reason=f"invited {normalized}",
        store_id=store_id,
    )
    return invite, raw_token


def accept_invite(
    raw_token,
    password,
    caller: User | None = None,
    client_ip: str | None = None,
    user_agent: str | None = None,
) -> tuple[User, TeamInviteToken, IssuedTokens | None]:
    """
    Redeem an invite and join the store with the invited role.

    A new email gets an account with the supplied password and a token pair.
    An email that already has an account is never re-passworded: the caller
    must be signed in as that account, only the membership changes, and no
    tokens are issued (tokens is None).

    Raises:
        ValidationError: missing token, or missing/weak password for a new account
        ValidationError(invalid_or_expired_invite): unknown, used, or expired invite
        AuthenticationRequired: existing account, anonymous caller
        PermissionDenied(invite_email_mismatch): existing account, different caller
    """
    if not isinstance(raw_token, str) or not raw_token.strip():
        raise ValidationError("token is required")

    invite = db.session.query(TeamInviteToken).filter_by(
        token_hash=token_service.hash_token(raw_token.strip())
    ).first()
    if invite is None or invite.accepted_at is not None or not is_in_future(invite.expires_at):
        raise ValidationError("Invite is invalid or expired", code="invalid_or_expired_invite")

    user = get_user_by_email(invite.email)
    password_hash = None
    if user is None:
        if not isinstance(password, str) or not password:
            raise ValidationError("password is required")
        password_hash = hash_password(password)
    elif caller is None:
        raise AuthenticationRequired()
    elif caller.id != user.id:
        raise PermissionDenied(code="invite_email_mismatch")

    claimed = db.session.query(TeamInviteToken).filter(
        TeamInviteToken.id == invite.id,
        TeamInviteToken.accepted_at.is_(None),
    ).update({"accepted_at": utcnow()}, synchronize_session=False)
    db.session.commit()
    if claimed != 1:
        raise ValidationError("Invite is invalid or expired", code="invalid_or_expired_invite")

    if user is None:
        user = User(email=invite.email, password_hash=password_hash)
        db.session.add(user)
        db.session.flush()

    set_store_role(invite.store_id, user.id, invite.role, invite.custom_role_name, commit=False)
    db.session.commit()

    audit_service.log_security_event(
        user_id=user.id,
        event_type="INVITE_ACCEPTED",
        success=True,
        action=invite.role.name,
        reason=f"invite {invite.id} accepted by {invite.email}",
        store_id=invite.store_id,
    )
    tokens = None
    if password_hash is not None:
        tokens = token_service.issue_tokens(user, client_ip=client_ip, user_agent=user_agent)
    return user, invite, tokens


def remove_member(actor: TenancyContext, store_id: int, user_id: int) -> None:
    """
    Take a user out of the store: membership and explicit grants go together.

    Raises:
        NotFound: no such store or the user is not a member
        PermissionDenied: a non-Owner removing an Owner
        ConflictError(last_owner): removing the store's only Owner
    """
    _get_store(store_id)
    membership = db.session.query(StoreUserRole).filter_by(store_id=store_id, user_id=user_id).first()
    if membership is None:
        raise NotFound(code="team_member_not_found")
    _guard_owner_change(actor, store_id, membership, None)

    db.session.query(StoreUserPermission).filter_by(store_id=store_id, user_id=user_id).delete(
        synchronize_session=False
    )
    db.session.delete(membership)
    db.session.commit()
    audit_service.log_security_event(
        user_id=actor.user_id,
        event_type="STORE_MEMBER_REMOVED",
        success=True,
        reason=f"user {user_id} removed",
        store_id=store_id,
    )


def _parse_template_permissions(permissions) -> list[str]:
    if isinstance(permissions, str):
        permissions = permissions.split(",")
    if not isinstance(permissions, (list, tuple)):
        raise ValidationError("permissions must be a list of permission codes", code="permissions_required")

    codes = []
    for code in permissions:
        if not isinstance(code, str):
            raise ValidationError("permissions must be a list of permission codes", code="invalid_permission")
        code = code.strip()
        if not code or code in codes:
            continue
        if not validate_permission_code(code):
            raise ValidationError(f"Unknown permission code: {code}", code="invalid_permission")
        codes.append(code)
    if not codes:
        raise ValidationError("At least one permission is required", code="permissions_required")
    return codes


def list_role_templates(store_id: int) -> list[StoreRoleTemplate]:
    _get_store(store_id)
    return db.session.query(StoreRoleTemplate).filter_by(store_id=store_id).order_by(StoreRoleTemplate.name).all()


def create_role_template(actor: TenancyContext, store_id: int, name, permissions) -> StoreRoleTemplate:
    """
    Define a named permission bundle for the store.

    Raises:
        ValidationError: name missing or too long, no permissions, unknown code
        ConflictError(template_exists): name already used in this store
    """
    _get_store(store_id)
    name = name.strip() if isinstance(name, str) else ""
    if not 2 <= len(name) <= 64:
        raise ValidationError("name must be 2-64 characters")
    codes = _parse_template_permissions(permissions)

    if db.session.query(StoreRoleTemplate).filter_by(store_id=store_id, name=name).first() is not None:
        raise ConflictError(code="template_exists")

    template = StoreRoleTemplate(
        store_id=store_id,
        name=name,
        permissions_csv=",".join(codes),
        created_by_user_id=actor.user_id,
    )
    db.session.add(template)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(code="template_exists")
    audit_service.log_security_event(
        user_id=actor.user_id,
        event_type="STORE_ROLE_TEMPLATE_CREATED",
        success=True,
        action=name,
        reason=",".join(codes),
        store_id=store_id,
    )
    return template


def _get_template(store_id: int, template_id: int) -> StoreRoleTemplate:
    template = db.session.query(StoreRoleTemplate).filter_by(id=template_id, store_id=store_id).first()
    if template is None:
        raise NotFound()
    return template


def delete_role_template(actor: TenancyContext, store_id: int, template_id: int) -> None:
    """Members already given the template keep their grants."""
    template = _get_template(store_id, template_id)
    name = template.name
    db.session.delete(template)
    db.session.commit()
    audit_service.log_security_event(
        user_id=actor.user_id,
        event_type="STORE_ROLE_TEMPLATE_DELETED",
        success=True,
        action=name,
        store_id=store_id,
    )


def apply_role_template(actor: TenancyContext, store_id: int, template_id: int, user_id: int) -> StoreUserRole:
    """
    Make a member CUSTOM under the template's name with exactly its permissions.

    Existing explicit grants for this store are replaced, not merged.
    """
    template = _get_template(store_id, template_id)
    membership = db.session.query(StoreUserRole).filter_by(store_id=store_id, user_id=user_id).first()
    if membership is None:
        raise NotFound(code="team_member_not_found")
    _guard_owner_change(actor, store_id, membership, StoreRole.CUSTOM)

    db.session.query(StoreUserPermission).filter_by(store_id=store_id, user_id=user_id).delete(
        synchronize_session=False
    )
    for code in template.permissions:
        db.session.add(StoreUserPermission(
            store_id=store_id,
            user_id=user_id,
            permission=code,
            granted_by_user_id=actor.user_id,
        ))
    membership = set_store_role(store_id, user_id, StoreRole.CUSTOM, template.name, commit=False)
    db.session.commit()
    audit_service.log_security_event(
        user_id=actor.user_id,
        event_type="STORE_ROLE_TEMPLATE_APPLIED",
        success=True,
        action=template.name,
        reason=f"applied to user {user_id}",
        store_id=store_id,
    )
    return membership


def grant_platform_role(user_id: int, role, granted_by: int | None = None) -> PlatformUserRole:
    role = parse_platform_role(role)
    _get_user(user_id)
    existing = db.session.query(PlatformUserRole).filter_by(user_id=user_id, role=role).first()
    if existing is not None:
        return existing

    grant = PlatformUserRole(user_id=user_id, role=role)
    db.session.add(grant)
    db.session.commit()
    audit_service.log_security_event(
        user_id=granted_by,
        event_type="PLATFORM_ROLE_GRANTED",
        success=True,
        action=role.name,
        reason=f"granted to user {user_id}",
    )
    return grant


def revoke_platform_role(user_id: int, role, revoked_by: int | None = None) -> bool:
    role = parse_platform_role(role)
    if role == PlatformRole.OWNER:
        owners = db.session.query(PlatformUserRole).filter_by(role=PlatformRole.OWNER).count()
        is_owner = db.session.query(PlatformUserRole).filter_by(user_id=user_id, role=role).first() is not None
        if is_owner and owners <= 1:
            raise ConflictError(code="last_owner")

    deleted = db.session.query(PlatformUserRole).filter_by(user_id=user_id, role=role).delete(
        synchronize_session=False
    )
    db.session.commit()
    if deleted:
        audit_service.log_security_event(
            user_id=revoked_by,
            event_type="PLATFORM_ROLE_REVOKED",
            success=True,
            action=role.name,
            reason=f"revoked from user {user_id}",
        )
    return bool(deleted)
