from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow, to_utc_z


class User(db.Model):
    """
    Identity record for merchants, staff, and platform operators.

    Email is stored normalized (trimmed, lower-cased), which makes the unique
    constraint case-insensitive in practice.

    The user owns its tokens and passkeys (deleted with it). Children point
    back by user_id only; going from a token to its user is a query.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(320), nullable=False, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(200), nullable=False)

    # Lockout state (see login_throttle_service)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    lockout_end = db.Column(db.DateTime(timezone=True), nullable=True)

    # TOTP. The secret is set at enrollment; mfa_enabled flips only after the first valid code.
    mfa_enabled = db.Column(db.Boolean, nullable=False, default=False)
    mfa_secret = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    access_tokens = db.relationship(
        "AccessToken", cascade="all, delete-orphan", passive_deletes=True, lazy=True
    )
    refresh_tokens = db.relationship(
        "RefreshToken", cascade="all, delete-orphan", passive_deletes=True, lazy=True
    )
    webauthn_credentials = db.relationship(
        "WebAuthnCredential", cascade="all, delete-orphan", passive_deletes=True, lazy=True
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def to_dict(self) -> dict:
        # mfa_secret and password_hash never leave the server
        return {
            "id": self.id,
            "email": self.email,
            "mfa_enabled": self.mfa_enabled,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class AccessToken(db.Model):
    """
    Short-lived bearer credential.

    Only the SHA-256 of the secret is stored. refresh_token_id ties the access
    token to the refresh token issued in the same pair so that revoking a
    rotation family also revokes its outstanding access tokens.
    """
    __tablename__ = "access_tokens"
    __table_args__ = (
        db.Index("ix_access_tokens_user_revoked", "user_id", "revoked_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(128), nullable=False, unique=True, index=True)
    scope = db.Column(db.String(200), nullable=True)

    refresh_token_id = db.Column(
        db.Integer, db.ForeignKey("refresh_tokens.id", ondelete="SET NULL"), nullable=True, index=True
    )

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Client information (for security monitoring)
    client_ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(256), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "scope": self.scope,
            "expires_at": to_utc_z(self.expires_at),
            "created_at": to_utc_z(self.created_at),
            "revoked_at": to_utc_z(self.revoked_at),
        }


class RefreshToken(db.Model):
    """
    Long-lived credential exchanged for a new pair at /auth/refresh.

    parent_token_id links each rotated token to the one it replaced. All
    tokens reachable through that link form one family (one original login).
    """
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        db.Index("ix_refresh_tokens_user_revoked", "user_id", "revoked_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    token_hash = db.Column(db.String(128), nullable=False, unique=True, index=True)

    parent_token_id = db.Column(
        db.Integer, db.ForeignKey("refresh_tokens.id", ondelete="SET NULL"), nullable=True, index=True
    )

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    client_ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(256), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "parent_token_id": self.parent_token_id,
            "expires_at": to_utc_z(self.expires_at),
            "created_at": to_utc_z(self.created_at),
            "revoked_at": to_utc_z(self.revoked_at),
        }


class LoginAttempt(db.Model):
    """
    One authentication attempt. Append-only; never updated.

    Written for unknown emails too, so the response shape and the ledger look
    the same whether or not the account exists. outcome records why the
    attempt ended; only some outcomes count toward lockout.
    """
    __tablename__ = "login_attempts"
    __table_args__ = (
        db.Index("ix_login_attempts_email_created", "email", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(320), nullable=False)
    success = db.Column(db.Boolean, nullable=False, default=False)
    outcome = db.Column(db.String(32), nullable=False)

    client_ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(256), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "success": self.success,
            "outcome": self.outcome,
            "client_ip": self.client_ip,
            "created_at": to_utc_z(self.created_at),
        }


class WebAuthnCredential(db.Model):
    """
    A registered authenticator (passkey).

    sign_count is the last counter value seen in a verified assertion. A value
    of 0 on both sides means the authenticator does not implement counters.
    """
    __tablename__ = "webauthn_credentials"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # base64url credential id, globally unique
    credential_id = db.Column(db.String(512), nullable=False, unique=True, index=True)
    public_key = db.Column(db.LargeBinary, nullable=False)
    sign_count = db.Column(db.BigInteger, nullable=False, default=0)
    aaguid = db.Column(db.String(36), nullable=True)
    cred_type = db.Column(db.String(32), nullable=False, default="public-key")
    transports = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "credential_id": self.credential_id,
            "sign_count": self.sign_count,
            "aaguid": self.aaguid,
            "cred_type": self.cred_type,
            "transports": self.transports.split(",") if self.transports else [],
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
        }


class WebAuthnChallenge(db.Model):
    """
    Outstanding ceremony challenge.

    Persisted (instead of held in process memory) so any node can finish a
    ceremony another node started. consumed_at is set by a conditional update,
    which makes each challenge single-use.
    """
    __tablename__ = "webauthn_challenges"
    __table_args__ = (
        db.UniqueConstraint("challenge", name="uq_webauthn_challenges_challenge"),
        db.Index("ix_webauthn_challenges_user_ceremony", "user_id", "ceremony"),
        {"sqlite_autoincrement": True},
    )

    REGISTRATION = "registration"
    AUTHENTICATION = "authentication"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ceremony = db.Column(db.String(16), nullable=False)
    challenge = db.Column(db.String(128), nullable=False)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    consumed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
