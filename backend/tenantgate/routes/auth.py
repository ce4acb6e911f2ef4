# Overview: Flask API routes for authentication; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Captcha on register and password login
- Account lockout after repeated failed attempts (423)
- TOTP second factor and WebAuthn passkeys
- Opaque access/refresh tokens with rotation and family revocation
- Refresh secret also delivered as an HttpOnly cookie, paired with an
  XSRF-TOKEN cookie for double-submit CSRF protection
"""

import secrets

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_tenancy, require_auth
from ..extensions import db
from ..errors import AuthFlowError, AuthenticationFailed, ValidationError
from ..models import User
from ..permissions import HIGH_RISK_ACTIONS
from ..services import (
    auth_flow_service,
    login_throttle_service,
    mfa_service,
    team_service,
    webauthn_service,
)
from ..services.audit_service import client_info
from ..services.password_service import get_user_by_email
from ..services.token_service import IssuedTokens


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
webauthn_bp = Blueprint("webauthn", __name__, url_prefix="/api/webauthn")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _error_response(e: AuthFlowError):
    return jsonify(e.to_dict()), e.status_code


def _set_session_cookies(response, tokens: IssuedTokens) -> None:
    config = current_app.config
    max_age = int(config.get("REFRESH_TOKEN_DAYS", 30)) * 24 * 3600
    secure = bool(config.get("SESSION_COOKIE_SECURE", True))
    response.set_cookie(
        config["SESSION_COOKIE_NAME_REFRESH"],
        tokens.refresh_token,
        max_age=max_age,
        httponly=True,
        secure=secure,
        samesite="Lax",
        path="/",
    )
    # Readable by the SPA, which echoes it back in X-CSRF-Token
    response.set_cookie(
        config["CSRF_COOKIE_NAME"],
        secrets.token_urlsafe(32),
        max_age=max_age,
        httponly=False,
        secure=secure,
        samesite="Lax",
        path="/",
    )


def _clear_session_cookies(response) -> None:
    config = current_app.config
    response.delete_cookie(config["SESSION_COOKIE_NAME_REFRESH"], path="/")
    response.delete_cookie(config["CSRF_COOKIE_NAME"], path="/")


def _token_response(user, tokens: IssuedTokens, status: int = 200, **extra):
    body = {
        "access_token": tokens.access_token,
        "refresh_token": tokens.refresh_token,
        "token_type": "Bearer",
        "expires_in": tokens.expires_in,
        "user": user.to_dict(),
    }
    body.update(extra)
    response = jsonify(body)
    response.status_code = status
    _set_session_cookies(response, tokens)
    return response


def _presented_refresh_token(data: dict):
    return data.get("refresh_token") or request.cookies.get(current_app.config["SESSION_COOKIE_NAME_REFRESH"])


@auth_bp.post("/register")
def register_route():
    """
    Create an account and sign it in.

    Request body: {"email", "password", "captcha_token"}

    Returns 200 with a token pair, like a fresh login; 409 email_exists
    when the (normalized) email is taken.
    """
    try:
        data = _json_body()
        ip_address, user_agent = client_info()
        user, tokens = auth_flow_service.register(
            data.get("email"),
            data.get("password"),
            captcha_token=data.get("captcha_token"),
            client_ip=ip_address,
            user_agent=user_agent,
        )
        return _token_response(user, tokens)
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email + password (+ TOTP code when MFA is enabled).

    Request body: {"email", "password", "mfa_code"?, "captcha_token"}

    SECURITY:
    - Unknown email and wrong password both return 401 invalid_credentials
    - mfa_required / mfa_invalid are only returned after a correct password
    - 423 account_locked once the lockout threshold is reached
    """
    try:
        data = _json_body()
        ip_address, user_agent = client_info()
        user, tokens = auth_flow_service.login(
            data.get("email"),
            data.get("password"),
            mfa_code=data.get("mfa_code"),
            captcha_token=data.get("captcha_token"),
            client_ip=ip_address,
            user_agent=user_agent,
        )
        return _token_response(user, tokens)
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/refresh")
def refresh_route():
    """
    Rotate a refresh token.

    The token comes from the body ("refresh_token") or the session cookie.
    A token that was already rotated revokes its whole family and returns 401.
    """
    try:
        data = _json_body()
        ip_address, user_agent = client_info()
        tokens = auth_flow_service.refresh(
            _presented_refresh_token(data), client_ip=ip_address, user_agent=user_agent
        )
        user = db.session.get(User, tokens.refresh_record.user_id)
        return _token_response(user, tokens)
    except AuthenticationFailed as e:
        response, status = _error_response(e)
        _clear_session_cookies(response)
        return response, status
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to refresh tokens")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke the refresh token's family and clear cookies.

    Always 200: logging out with an unknown or already revoked token is not an error.
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        auth_flow_service.logout(_presented_refresh_token(data))
        response = jsonify({"message": "Logout successful"})
        _clear_session_cookies(response)
        return response, 200
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    context = current_tenancy()
    credentials = webauthn_service.list_credentials(context.user_id)
    return jsonify({
        "user": context.user.to_dict(),
        "passkeys": [c.to_dict() for c in credentials],
    }), 200


@auth_bp.get("/access")
@require_auth
def access_route():
    """
    Describe the caller's resolved access for the active store.

    WHY: The admin UI uses this to decide which navigation and actions to show.
    Server-side checks still decide every request.
    """
    context = current_tenancy()
    body = context.to_dict()
    body["high_risk_actions"] = [a for a in HIGH_RISK_ACTIONS if a in context.platform_permissions]
    return jsonify(body), 200


@auth_bp.get("/permissions")
@require_auth
def permissions_route():
    context = current_tenancy()
    return jsonify({
        "store_id": context.store_id,
        "store_permissions": sorted(context.store_permissions),
        "platform_permissions": sorted(context.platform_permissions),
    }), 200


@auth_bp.get("/lockout-status/<identifier>")
def lockout_status_route(identifier: str):
    """
    Check lockout status for an account.

    This is a public endpoint to allow users to check if their account is locked
    and when they can retry.
    """
    status = login_throttle_service.get_lockout_status(identifier)
    return jsonify(status)


# =============================================================================
# MFA (TOTP)
# =============================================================================

@auth_bp.post("/mfa/enroll")
@require_auth
def mfa_enroll_route():
    """
    Start TOTP enrollment.

    Returns the secret and an otpauth:// URI for QR display. MFA stays off
    until /mfa/verify succeeds with a code from the authenticator.
    """
    try:
        secret, uri = mfa_service.enroll(current_tenancy().user)
        return jsonify({"secret": secret, "otpauth_uri": uri}), 200
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to start MFA enrollment")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/mfa/verify")
@require_auth
def mfa_verify_route():
    try:
        data = _json_body()
        mfa_service.confirm_enrollment(current_tenancy().user, data.get("code"))
        return jsonify({"mfa_enabled": True}), 200
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify MFA enrollment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# WEBAUTHN (PASSKEYS)
# =============================================================================

@auth_bp.post("/webauthn/register/options")
@require_auth
def webauthn_register_options_route():
    try:
        data = _json_body()
        options = webauthn_service.start_registration(current_tenancy().user, data.get("display_name"))
        return jsonify(options), 200
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create WebAuthn registration options")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/webauthn/register/verify")
@require_auth
def webauthn_register_verify_route():
    """Request body: {"credential": <PublicKeyCredential JSON>}"""
    try:
        data = _json_body()
        credential = data.get("credential")
        if credential is None:
            raise ValidationError("credential is required", code="invalid_payload")
        record = webauthn_service.finish_registration(current_tenancy().user, credential)
        return jsonify({"credential": record.to_dict()}), 200
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify WebAuthn registration")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/webauthn/login/options")
def webauthn_login_options_route():
    """
    Assertion options for an email.

    Same response shape whether or not the account exists or has passkeys.
    """
    try:
        data = _json_body()
        user = get_user_by_email(data.get("email"))
        return jsonify(webauthn_service.start_authentication(user)), 200
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create WebAuthn login options")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/webauthn/login/verify")
def webauthn_login_verify_route():
    """Request body: {"credential": <PublicKeyCredential JSON>, "email"?}"""
    try:
        data = _json_body()
        credential = data.get("credential")
        if credential is None:
            raise ValidationError("credential is required", code="invalid_payload")
        ip_address, user_agent = client_info()
        user, tokens = auth_flow_service.webauthn_login(
            credential,
            email=data.get("email"),
            client_ip=ip_address,
            user_agent=user_agent,
        )
        return _token_response(user, tokens)
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify WebAuthn login")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# TEAM INVITES
# =============================================================================

@auth_bp.post("/invites/accept")
def accept_invite_route():
    """
    Redeem a team invite.

    Request body: {"token", "password"?}

    For a new email, creates the account with the password and returns a
    token pair. For an email that already has an account, the caller must
    send that account's bearer token; the password is not used and the
    response carries the new membership only.
    """
    try:
        data = _json_body()
        ip_address, user_agent = client_info()
        user, invite, tokens = team_service.accept_invite(
            data.get("token"),
            data.get("password"),
            caller=current_tenancy().user,
            client_ip=ip_address,
            user_agent=user_agent,
        )
        if tokens is None:
            return jsonify({
                "user": user.to_dict(),
                "store_id": invite.store_id,
                "role": invite.role.name,
            }), 200
        return _token_response(user, tokens, store_id=invite.store_id)
    except AuthFlowError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to accept invite")
        return jsonify({"error": "Internal server error"}), 500


@webauthn_bp.get("/rp")
def webauthn_rp_route():
    """Relying party id/name/origin the frontend must use for ceremonies."""
    return jsonify(webauthn_service.rp_info()), 200


# Mutating endpoints reachable before a session exists (or that end one).
CSRF_EXEMPT_ENDPOINTS = frozenset({
    "auth.register_route",
    "auth.login_route",
    "auth.refresh_route",
    "auth.logout_route",
    "auth.webauthn_login_options_route",
    "auth.webauthn_login_verify_route",
    "auth.accept_invite_route",
})
