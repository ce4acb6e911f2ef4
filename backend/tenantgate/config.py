# backend/tenantgate/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///tenantgate.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Opaque tokens. Access lifetime is fixed (see token_service); refresh is tunable.
    REFRESH_TOKEN_DAYS = _env_int("REFRESH_TOKEN_DAYS", 30)

    # Brute-force lockout policy
    AUTH_MAX_FAILED_ATTEMPTS = _env_int("AUTH_MAX_FAILED_ATTEMPTS", 5)
    AUTH_LOCKOUT_MINUTES = _env_int("AUTH_LOCKOUT_MINUTES", 15)

    # bcrypt work factor for password hashes
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

    # TOTP provisioning label
    MFA_ISSUER = os.environ.get("MFA_ISSUER", "Tenantgate")

    # WebAuthn relying party
    WEBAUTHN_RP_ID = os.environ.get("WEBAUTHN_RP_ID", "localhost")
    WEBAUTHN_RP_NAME = os.environ.get("WEBAUTHN_RP_NAME", "Tenantgate Dev")
    WEBAUTHN_ORIGIN = os.environ.get("WEBAUTHN_ORIGIN", "https://localhost:3000")
    WEBAUTHN_CHALLENGE_TTL_SECONDS = _env_int("WEBAUTHN_CHALLENGE_TTL_SECONDS", 300)

    # Bot check (Cloudflare Turnstile). No secret configured means every check fails.
    TURNSTILE_SECRET_KEY = os.environ.get("TURNSTILE_SECRET_KEY")
    TURNSTILE_VERIFY_URL = os.environ.get(
        "TURNSTILE_VERIFY_URL",
        "https://challenges.cloudflare.com/turnstile/v0/siteverify",
    )
    TURNSTILE_TIMEOUT_SECONDS = _env_int("TURNSTILE_TIMEOUT_SECONDS", 5)

    # Host-based store resolution, e.g. "shops.example.com" -> "<sub>.shops.example.com"
    TENANCY_ROOT_DOMAIN = os.environ.get("TENANCY_ROOT_DOMAIN")

    # Cookies carrying the refresh secret and the CSRF double-submit token
    SESSION_COOKIE_NAME_REFRESH = "session"
    CSRF_COOKIE_NAME = "XSRF-TOKEN"
    CSRF_HEADER_NAME = "X-CSRF-Token"
    SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE", True)

    INVITE_TTL_HOURS = _env_int("INVITE_TTL_HOURS", 72)
