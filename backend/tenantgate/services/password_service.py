# Overview: Password hashing, strength rules, email normalization, and user creation.

"""
Password Service

WHY: Every credential check goes through bcrypt here, including the dummy
check run for unknown emails, so a login for a missing account costs the same
time as a login with a wrong password.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, 12 by default)
- Minimum 8 characters with upper, lower, digit, and special char
- Emails are trimmed and lower-cased before storage and lookup
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import User

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Lazily computed per cost factor; only ever compared against, never matched.
_dummy_hashes: dict[int, bytes] = {}


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    code = "weak_password"


def normalize_email(email) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def validate_email(email: str) -> str:
    """Normalize and validate; returns the normalized address."""
    normalized = normalize_email(email)
    if not normalized or len(normalized) > 320 or not _EMAIL_RE.match(normalized):
        raise ValidationError("A valid email address is required")
    return normalized


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _rounds() -> int:
    return int(current_app.config.get("BCRYPT_ROUNDS", 12))


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() compares in constant time.
    A malformed stored hash is treated as a mismatch.
    """
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def dummy_verify(password) -> bool:
    """Spend one bcrypt check on a throwaway hash. Always returns False."""
    rounds = _rounds()
    if rounds not in _dummy_hashes:
        _dummy_hashes[rounds] = bcrypt.hashpw(b"tenantgate-dummy-password", bcrypt.gensalt(rounds=rounds))
    candidate = password if isinstance(password, str) else ""
    bcrypt.checkpw(candidate.encode('utf-8'), _dummy_hashes[rounds])
    return False


def get_user_by_email(email: str) -> User | None:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return db.session.query(User).filter_by(email=normalized).first()


def create_user(email: str, password: str) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: bad email
        PasswordValidationError: weak password
        ConflictError(email_exists): the normalized email is taken. The unique
            constraint backs the pre-check, so two racing registrations still
            produce exactly one row.
    """
    normalized = validate_email(email)
    password_hash = hash_password(password)

    if get_user_by_email(normalized) is not None:
        raise ConflictError(code="email_exists")

    user = User(email=normalized, password_hash=password_hash)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(code="email_exists")
    return user


def set_password(user: User, password: str) -> None:
    user.password_hash = hash_password(password)
    db.session.commit()
