# Overview: Retention cleanup for audit rows, dead tokens, and spent WebAuthn challenges.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from ..time_utils import utcnow
from . import token_service, webauthn_service


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """Delete security events older than retention_days."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def cleanup_tokens(*, retention_days: int = 30) -> dict:
    """Expired token rows past retention, plus consumed or expired ceremony challenges."""
    result = token_service.cleanup_expired_tokens(retention_days)
    result["webauthn_challenges_deleted"] = webauthn_service.purge_expired_challenges()
    return result
