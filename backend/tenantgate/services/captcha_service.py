# Overview: Cloudflare Turnstile token verification over httpx. Fails closed.

import httpx
from flask import current_app


def verify_token(token, remote_ip: str | None = None) -> bool:
    """
    Ask the Turnstile siteverify endpoint whether token is valid.

    Returns False (never raises) when no secret is configured, the token is
    empty, the provider is unreachable, or it answers with anything but success.
    """
    secret = current_app.config.get("TURNSTILE_SECRET_KEY")
    if not secret:
        current_app.logger.warning("captcha rejected: TURNSTILE_SECRET_KEY is not configured")
        return False
    if not isinstance(token, str) or not token.strip():
        return False

    form = {"secret": secret, "response": token}
    if remote_ip:
        form["remoteip"] = remote_ip

    try:
        response = httpx.post(
            current_app.config["TURNSTILE_VERIFY_URL"],
            data=form,
            timeout=current_app.config.get("TURNSTILE_TIMEOUT_SECONDS", 5),
        )
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        current_app.logger.warning("captcha verification failed: %s", exc)
        return False

    if not payload.get("success"):
        current_app.logger.info("captcha rejected: %s", payload.get("error-codes"))
        return False
    return True
