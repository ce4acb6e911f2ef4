# Overview: Login, registration, refresh, logout, and passkey login orchestration.

"""
Auth Flow Orchestrator

Login pipeline (each stage either passes or ends the request):

    captcha -> lockout -> credentials -> MFA -> issue tokens

LEDGER: every login request that gets past input validation writes exactly
one LoginAttempt row, whichever stage ends it. The row is committed before
the error propagates, so a failed request still leaves its trace.

ENUMERATION: an unknown email costs one bcrypt check (against a dummy hash)
and produces the same 401 as a wrong password. MFA and lockout responses are
only ever given to callers who supplied the correct password (or, for
lockout, to an email that is already locked).
"""

from flask import current_app

from ..errors import (
    AccountLocked,
    AuthenticationFailed,
    CaptchaFailed,
    ConflictError,
    MfaInvalid,
    MfaRequired,
    ValidationError,
    WebAuthnVerificationError,
)
from ..models import User
from . import captcha_service, login_throttle_service, mfa_service, token_service, webauthn_service
from .login_throttle_service import (
    OUTCOME_CAPTCHA_FAILED,
    OUTCOME_EMAIL_EXISTS,
    OUTCOME_INVALID_CREDENTIALS,
    OUTCOME_LOCKED,
    OUTCOME_MFA_INVALID,
    OUTCOME_MFA_REQUIRED,
    OUTCOME_REGISTERED,
    OUTCOME_SUCCESS,
    OUTCOME_WEBAUTHN_FAILED,
)
from .password_service import (
    create_user,
    dummy_verify,
    get_user_by_email,
    normalize_email,
    verify_password,
)
from .token_service import IssuedTokens


def _require_string(value, field: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required")
    return value


def _check_captcha(token, client_ip: str | None) -> bool:
    # Looked up through the module so the provider can be swapped out in tests.
    return captcha_service.verify_token(token, client_ip)


def login(
    email,
    password,
    mfa_code=None,
    captcha_token=None,
    client_ip: str | None = None,
    user_agent: str | None = None,
) -> tuple[User, IssuedTokens]:
    """
    Password (+ TOTP) login.

    Raises:
        ValidationError: missing email or password (no ledger row)
        CaptchaFailed, AccountLocked, AuthenticationFailed, MfaRequired, MfaInvalid
    """
    normalized = normalize_email(_require_string(email, "email"))
    _require_string(password, "password")

    def record(success: bool, outcome: str) -> None:
        login_throttle_service.record_attempt(normalized, success, outcome, client_ip, user_agent)

    if not _check_captcha(captcha_token, client_ip):
        record(False, OUTCOME_CAPTCHA_FAILED)
        raise CaptchaFailed()

    user = get_user_by_email(normalized)

    if user is not None and login_throttle_service.is_locked(user):
        record(False, OUTCOME_LOCKED)
        raise AccountLocked()

    if user is None:
        dummy_verify(password)
        record(False, OUTCOME_INVALID_CREDENTIALS)
        raise AuthenticationFailed()

    if not verify_password(password, user.password_hash):
        record(False, OUTCOME_INVALID_CREDENTIALS)
        login_throttle_service.register_failure(user)
        raise AuthenticationFailed()

    if user.mfa_enabled:
        if not mfa_code:
            record(False, OUTCOME_MFA_REQUIRED)
            raise MfaRequired()
        if not mfa_service.verify_code(user.mfa_secret, mfa_code):
            record(False, OUTCOME_MFA_INVALID)
            login_throttle_service.register_failure(user)
            raise MfaInvalid()

    record(True, OUTCOME_SUCCESS)
    login_throttle_service.clear_lockout(user)
    tokens = token_service.issue_tokens(user, client_ip=client_ip, user_agent=user_agent)
    current_app.logger.info("login succeeded user_id=%s", user.id)
    return user, tokens


def register(
    email,
    password,
    captcha_token=None,
    client_ip: str | None = None,
    user_agent: str | None = None,
) -> tuple[User, IssuedTokens]:
    """
    Create an account and sign it in.

    Raises:
        CaptchaFailed
        ValidationError / PasswordValidationError
        ConflictError(email_exists): normalized email already registered
    """
    _require_string(email, "email")
    _require_string(password, "password")
    normalized = normalize_email(email)

    if not _check_captcha(captcha_token, client_ip):
        login_throttle_service.record_attempt(normalized, False, OUTCOME_CAPTCHA_FAILED, client_ip, user_agent)
        raise CaptchaFailed()

    try:
        user = create_user(email, password)
    except ConflictError:
        login_throttle_service.record_attempt(normalized, False, OUTCOME_EMAIL_EXISTS, client_ip, user_agent)
        raise

    login_throttle_service.record_attempt(user.email, True, OUTCOME_REGISTERED, client_ip, user_agent)
    tokens = token_service.issue_tokens(user, client_ip=client_ip, user_agent=user_agent)
    current_app.logger.info("user registered user_id=%s", user.id)
    return user, tokens


def refresh(refresh_token, client_ip: str | None = None, user_agent: str | None = None) -> IssuedTokens:
    if not refresh_token:
        raise AuthenticationFailed()
    return token_service.rotate_refresh_token(refresh_token, client_ip=client_ip, user_agent=user_agent)


def logout(refresh_token) -> int:
    """Revoke the presented refresh token's family. Unknown or missing tokens are ignored."""
    if not refresh_token:
        return 0
    revoked = token_service.revoke_refresh_token(refresh_token)
    current_app.logger.info("logout revoked=%s", revoked)
    return revoked


def webauthn_login(
    credential,
    email=None,
    client_ip: str | None = None,
    user_agent: str | None = None,
) -> tuple[User, IssuedTokens]:
    """
    Finish a passkey assertion and issue tokens.

    email is optional and only used to label the ledger row on failure.
    Locked accounts cannot sign in with a passkey either.
    """
    label = normalize_email(email)
    try:
        user = webauthn_service.finish_authentication(credential)
    except WebAuthnVerificationError:
        login_throttle_service.record_attempt(label, False, OUTCOME_WEBAUTHN_FAILED, client_ip, user_agent)
        raise

    if login_throttle_service.is_locked(user):
        login_throttle_service.record_attempt(user.email, False, OUTCOME_LOCKED, client_ip, user_agent)
        raise AccountLocked()

    login_throttle_service.record_attempt(user.email, True, OUTCOME_SUCCESS, client_ip, user_agent)
    login_throttle_service.clear_lockout(user)
    tokens = token_service.issue_tokens(user, client_ip=client_ip, user_agent=user_agent)
    current_app.logger.info("passkey login succeeded user_id=%s", user.id)
    return user, tokens
