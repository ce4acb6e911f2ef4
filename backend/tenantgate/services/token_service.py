# Overview: Opaque access/refresh token issuance, lookup, rotation, and family revocation.

"""
Token Service

WHY: Bearer tokens are opaque random strings. The server stores only their
SHA-256, so a database leak does not hand out live sessions, and any token
can be revoked server-side at once.

SECURITY FEATURES:
- 256-bit tokens from secrets.token_hex(32)
- SHA-256 hashes at rest; lookups hash the presented secret
- Access tokens live 15 minutes; refresh tokens REFRESH_TOKEN_DAYS (30)
- Refresh tokens rotate on every use. Each new token records its parent,
  so one login produces one chain (the "family").
- Presenting an already-rotated refresh token is treated as theft: the
  whole family, and the access tokens issued with it, are revoked.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..errors import AuthenticationFailed
from ..extensions import db
from ..models import AccessToken, RefreshToken, User
from ..time_utils import utcnow, is_in_future
from . import audit_service


ACCESS_TOKEN_LIFETIME = timedelta(minutes=15)


@dataclass
class IssuedTokens:
    """Plaintext secrets (returned to the client once) plus their stored records."""
    access_token: str
    refresh_token: str
    access_record: AccessToken
    refresh_record: RefreshToken

    @property
    def expires_in(self) -> int:
        return int(ACCESS_TOKEN_LIFETIME.total_seconds())


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    SHA-256 is faster and sufficient for high-entropy inputs.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _refresh_lifetime() -> timedelta:
    return timedelta(days=int(current_app.config.get("REFRESH_TOKEN_DAYS", 30)))


def issue_tokens(
    user: User,
    scope: str | None = None,
    client_ip: str | None = None,
    user_agent: str | None = None,
    parent_token_id: int | None = None,
) -> IssuedTokens:
    """
    Create an access/refresh pair for user.

    parent_token_id is None for a fresh login and the replaced token's id for
    a rotation. Both records are committed before the secrets are returned.
    """
    now = utcnow()
    access_secret = generate_token()
    refresh_secret = generate_token()

    refresh = RefreshToken(
        user_id=user.id,
        token_hash=hash_token(refresh_secret),
        parent_token_id=parent_token_id,
        created_at=now,
        expires_at=now + _refresh_lifetime(),
        client_ip=client_ip,
        user_agent=user_agent,
    )
    db.session.add(refresh)
    db.session.flush()  # need refresh.id for the paired access token

    access = AccessToken(
        user_id=user.id,
        token_hash=hash_token(access_secret),
        scope=scope,
        refresh_token_id=refresh.id,
        created_at=now,
        expires_at=now + ACCESS_TOKEN_LIFETIME,
        client_ip=client_ip,
        user_agent=user_agent,
    )
    db.session.add(access)
    db.session.commit()

    return IssuedTokens(
        access_token=access_secret,
        refresh_token=refresh_secret,
        access_record=access,
        refresh_record=refresh,
    )


def _is_active(record) -> bool:
    return record.revoked_at is None and is_in_future(record.expires_at)


def find_active_access_token(secret) -> AccessToken | None:
    """
    Return the access token for secret if it is unrevoked and unexpired.

    Unknown, expired, and revoked all return None; callers cannot tell them apart.
    """
    if not isinstance(secret, str) or not secret:
        return None
    record = db.session.query(AccessToken).filter_by(token_hash=hash_token(secret)).first()
    if record is None or not _is_active(record):
        return None
    return record


def find_active_refresh_token(secret) -> RefreshToken | None:
    record = _find_refresh_token(secret)
    if record is None or not _is_active(record):
        return None
    return record


def _find_refresh_token(secret) -> RefreshToken | None:
    # Ignores revocation: rotation needs to see revoked rows to detect reuse.
    if not isinstance(secret, str) or not secret:
        return None
    return db.session.query(RefreshToken).filter_by(token_hash=hash_token(secret)).first()


def claim_refresh_token(record: RefreshToken) -> bool:
    """
    Atomically mark a refresh token used.

    Conditional UPDATE ... WHERE revoked_at IS NULL: of any number of
    concurrent callers presenting the same token, exactly one gets True.
    """
    claimed = db.session.query(RefreshToken).filter(
        RefreshToken.id == record.id,
        RefreshToken.revoked_at.is_(None),
    ).update({"revoked_at": utcnow()}, synchronize_session=False)
    db.session.commit()
    return claimed == 1


def _family_ids(refresh_token_id: int) -> list[int]:
    """All refresh token ids in the rotation chain containing refresh_token_id."""
    root = db.session.get(RefreshToken, refresh_token_id)
    if root is None:
        return []

    seen = {root.id}
    while root.parent_token_id is not None and root.parent_token_id not in seen:
        parent = db.session.get(RefreshToken, root.parent_token_id)
        if parent is None:
            break
        seen.add(parent.id)
        root = parent

    family = [root.id]
    frontier = [root.id]
    while frontier:
        children = db.session.query(RefreshToken.id).filter(
            RefreshToken.parent_token_id.in_(frontier)
        ).all()
        frontier = [row.id for row in children if row.id not in family]
        family.extend(frontier)
    return family


def revoke_family(refresh_token_id: int) -> int:
    """
    Revoke every refresh token in the family and the access tokens paired with them.

    Idempotent: already-revoked rows keep their original revoked_at.
    Returns the number of rows newly revoked.
    """
    family = _family_ids(refresh_token_id)
    if not family:
        return 0

    now = utcnow()
    revoked = db.session.query(RefreshToken).filter(
        RefreshToken.id.in_(family),
        RefreshToken.revoked_at.is_(None),
    ).update({"revoked_at": now}, synchronize_session=False)
    revoked += db.session.query(AccessToken).filter(
        AccessToken.refresh_token_id.in_(family),
        AccessToken.revoked_at.is_(None),
    ).update({"revoked_at": now}, synchronize_session=False)
    db.session.commit()
    return revoked


def rotate_refresh_token(
    secret,
    client_ip: str | None = None,
    user_agent: str | None = None,
) -> IssuedTokens:
    """
    Exchange a refresh token for a new pair.

    Raises AuthenticationFailed when the token is unknown or expired, and when
    it was already used. In the latter case the family is revoked first.
    """
    record = _find_refresh_token(secret)
    if record is None or not is_in_future(record.expires_at):
        raise AuthenticationFailed()

    if record.revoked_at is not None or not claim_refresh_token(record):
        count = revoke_family(record.id)
        current_app.logger.warning("refresh token reuse detected token_id=%s revoked=%s", record.id, count)
        audit_service.log_security_event(
            user_id=record.user_id,
            event_type="REFRESH_TOKEN_REUSE",
            success=False,
            reason=f"Rotated refresh token {record.id} presented again; family revoked",
        )
        raise AuthenticationFailed()

    user = db.session.get(User, record.user_id)
    if user is None:
        raise AuthenticationFailed()

    return issue_tokens(
        user,
        client_ip=client_ip,
        user_agent=user_agent,
        parent_token_id=record.id,
    )


def revoke_refresh_token(secret) -> int:
    """Logout: revoke the presented token's family. Unknown secrets are a no-op."""
    record = _find_refresh_token(secret)
    if record is None:
        return 0
    return revoke_family(record.id)


def revoke_all_user_tokens(user_id: int) -> int:
    now = utcnow()
    revoked = db.session.query(RefreshToken).filter(
        RefreshToken.user_id == user_id,
        RefreshToken.revoked_at.is_(None),
    ).update({"revoked_at": now}, synchronize_session=False)
    revoked += db.session.query(AccessToken).filter(
        AccessToken.user_id == user_id,
        AccessToken.revoked_at.is_(None),
    ).update({"revoked_at": now}, synchronize_session=False)
    db.session.commit()
    return revoked


def cleanup_expired_tokens(retention_days: int = 30) -> dict:
    """
    Delete token rows that expired more than retention_days ago.

    Revoked-but-unexpired rows are kept: they are still needed to recognize
    refresh token reuse.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    access_deleted = db.session.query(AccessToken).filter(
        AccessToken.expires_at < cutoff
    ).delete(synchronize_session=False)

    expired_refresh = [
        row.id for row in db.session.query(RefreshToken.id).filter(RefreshToken.expires_at < cutoff).all()
    ]
    refresh_deleted = 0
    if expired_refresh:
        # Detach survivors first so no row points at a deleted parent.
        db.session.query(RefreshToken).filter(
            RefreshToken.parent_token_id.in_(expired_refresh)
        ).update({"parent_token_id": None}, synchronize_session=False)
        db.session.query(AccessToken).filter(
            AccessToken.refresh_token_id.in_(expired_refresh)
        ).update({"refresh_token_id": None}, synchronize_session=False)
        refresh_deleted = db.session.query(RefreshToken).filter(
            RefreshToken.id.in_(expired_refresh)
        ).delete(synchronize_session=False)

    db.session.commit()
    return {"access_tokens_deleted": access_deleted, "refresh_tokens_deleted": refresh_deleted}
