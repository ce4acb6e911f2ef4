"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the account is temporarily locked.

SECURITY FEATURES:
- Every login request writes exactly one LoginAttempt row (append-only ledger)
- Only credential failures count toward lockout (bad password, bad MFA code);
  captcha failures and requests against a locked account do not
- Lockout after AUTH_MAX_FAILED_ATTEMPTS counted failures within
  AUTH_LOCKOUT_MINUTES; the lock lasts AUTH_LOCKOUT_MINUTES
- The count is taken after the current failure is recorded, so the Nth
  failure itself locks the account
- Successful login clears the lock
"""

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import LoginAttempt, User
from ..time_utils import utcnow, as_naive_utc
from . import audit_service
from .password_service import get_user_by_email, normalize_email


# Outcomes written to LoginAttempt.outcome
OUTCOME_SUCCESS = "success"
OUTCOME_INVALID_CREDENTIALS = "invalid_credentials"
OUTCOME_LOCKED = "locked"
OUTCOME_CAPTCHA_FAILED = "captcha_failed"
OUTCOME_MFA_REQUIRED = "mfa_required"
OUTCOME_MFA_INVALID = "mfa_invalid"
OUTCOME_REGISTERED = "registered"
OUTCOME_EMAIL_EXISTS = "email_exists"
OUTCOME_WEBAUTHN_FAILED = "webauthn_failed"

COUNTED_OUTCOMES = (OUTCOME_INVALID_CREDENTIALS, OUTCOME_MFA_INVALID)


def _max_failed_attempts() -> int:
    return int(current_app.config.get("AUTH_MAX_FAILED_ATTEMPTS", 5))


def _lockout_window() -> timedelta:
    return timedelta(minutes=int(current_app.config.get("AUTH_LOCKOUT_MINUTES", 15)))


def record_attempt(
    email: str,
    success: bool,
    outcome: str,
    client_ip: str | None = None,
    user_agent: str | None = None,
) -> LoginAttempt:
    attempt = LoginAttempt(
        email=email or "",
        success=success,
        outcome=outcome,
        client_ip=client_ip,
        user_agent=user_agent,
        created_at=utcnow(),
    )
    db.session.add(attempt)
    db.session.commit()
    return attempt


def count_recent_failures(email: str, window: timedelta | None = None) -> int:
    """
    Count lockout-relevant failures for email within the window.

    Returns count of failed attempts within AUTH_LOCKOUT_MINUTES by default.
    """
    cutoff = utcnow() - (window or _lockout_window())
    return db.session.query(LoginAttempt).filter(
        LoginAttempt.email == email,
        LoginAttempt.success.is_(False),
        LoginAttempt.outcome.in_(COUNTED_OUTCOMES),
        LoginAttempt.created_at >= cutoff,
    ).count()


def is_locked(user: User) -> bool:
    """Locked means the flag is set and the lock has not yet run out."""
    if not user.is_locked or user.lockout_end is None:
        return False
    return as_naive_utc(user.lockout_end) > utcnow()


def register_failure(user: User) -> bool:
    """
    Re-evaluate lockout after a counted failure has been recorded.

    Returns True if this failure locked the account.
    """
    failures = count_recent_failures(user.email)
    if failures < _max_failed_attempts():
        return False

    user.is_locked = True
    user.lockout_end = utcnow() + _lockout_window()
    db.session.commit()

    current_app.logger.warning("account locked user_id=%s failures=%s", user.id, failures)
    audit_service.log_security_event(
        user_id=user.id,
        event_type="ACCOUNT_LOCKED",
        success=False,
        reason=f"{failures} failed attempts within {int(_lockout_window().total_seconds() // 60)} minutes",
    )
    return True


def clear_lockout(user: User) -> None:
    if user.is_locked or user.lockout_end is not None:
        user.is_locked = False
        user.lockout_end = None
        db.session.commit()


def get_lockout_status(email: str) -> dict:
    """
    Get detailed lockout status for an account.

    Returns dict with:
    - locked: bool
    - failed_attempts: int
    - max_attempts: int
    - seconds_until_unlock: int | None

    Unknown emails report an unlocked account with their ledger count, the
    same shape as a real account.
    """
    normalized = normalize_email(email)
    user = get_user_by_email(normalized)
    locked = user is not None and is_locked(user)
    seconds_remaining = None
    if locked:
        seconds_remaining = int((as_naive_utc(user.lockout_end) - utcnow()).total_seconds())

    return {
        "locked": locked,
        "failed_attempts": count_recent_failures(normalized),
        "max_attempts": _max_failed_attempts(),
        "seconds_until_unlock": seconds_remaining,
        "lockout_window_minutes": int(_lockout_window().total_seconds() / 60),
    }
