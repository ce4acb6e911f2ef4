# Overview: TOTP (RFC 6238) enrollment and verification using pyotp.

import pyotp
from flask import current_app

from ..errors import ConflictError, MfaInvalid, MfaNotEnrolled, MfaRequired
from ..extensions import db
from ..models import User


# 30 s step, 6 digits, one step of clock skew either way
TOTP_DIGITS = 6
TOTP_INTERVAL = 30
TOTP_VALID_WINDOW = 1


def generate_secret() -> str:
    """160-bit secret, base32 encoded (32 chars)."""
    return pyotp.random_base32(32)


def provisioning_uri(secret: str, email: str) -> str:
    issuer = current_app.config.get("MFA_ISSUER", "Tenantgate")
    return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL).provisioning_uri(
        name=email, issuer_name=issuer
    )


def verify_code(secret: str | None, code) -> bool:
    """True when code matches the current step or one step either side."""
    if not secret or not isinstance(code, str):
        return False
    code = code.strip()
    if len(code) != TOTP_DIGITS or not code.isdigit():
        return False
    totp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL)
    return totp.verify(code, valid_window=TOTP_VALID_WINDOW)


def enroll(user: User) -> tuple[str, str]:
    """
    Start enrollment: store a new secret, leave MFA disabled.

    Calling again before confirmation replaces the pending secret.
    """
    if user.mfa_enabled:
        raise ConflictError(code="mfa_already_enabled")

    secret = generate_secret()
    user.mfa_secret = secret
    user.mfa_enabled = False
    db.session.commit()
    current_app.logger.info("mfa enrollment started user_id=%s", user.id)
    return secret, provisioning_uri(secret, user.email)


def confirm_enrollment(user: User, code) -> None:
    """Enable MFA once the user proves their authenticator produces valid codes."""
    if not code:
        raise MfaRequired()
    if not user.mfa_secret:
        raise MfaNotEnrolled()
    if not verify_code(user.mfa_secret, code):
        raise MfaInvalid()

    user.mfa_enabled = True
    db.session.commit()
    current_app.logger.info("mfa enabled user_id=%s", user.id)
