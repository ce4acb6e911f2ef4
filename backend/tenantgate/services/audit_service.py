# Overview: Append-only security audit trail (SecurityEvent rows) plus request-context helpers.

from flask import current_app, has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from ..time_utils import utcnow


def client_info() -> tuple[str | None, str | None]:
    """(ip, user agent) of the current request, or (None, None) outside a request."""
    if not has_request_context():
        return None, None
    user_agent = request.headers.get("User-Agent")
    return request.remote_addr, user_agent[:256] if user_agent else None


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    store_id: int | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    WHY: Immutable audit log for incident response. Every denial, lockout,
    token reuse, and privilege change is written here.

    event_type examples:
    - PERMISSION_DENIED
    - ACCOUNT_LOCKED
    - REFRESH_TOKEN_REUSE
    - WEBAUTHN_COUNTER_REGRESSION
    - INVITE_ACCEPTED
    - STORE_ROLE_ASSIGNED / STORE_PERMISSION_GRANTED / PLATFORM_ROLE_GRANTED
    """
    ip_address, user_agent = client_info()
    if resource is None and has_request_context():
        resource = request.path[:128]

    event = SecurityEvent(
        user_id=user_id,
        store_id=store_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    if commit:
        db.session.commit()

    log = current_app.logger.info if success else current_app.logger.warning
    log("security event %s user_id=%s store_id=%s reason=%s", event_type, user_id, store_id, reason)
    return event
