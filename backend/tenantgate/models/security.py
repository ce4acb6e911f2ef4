from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow, to_utc_z


class SecurityEvent(db.Model):
    """
    Security event audit log.

    WHY: Track denials, lockouts, token reuse and privilege changes. These are
    the signals an operator needs when investigating a compromised account.

    IMMUTABLE: Never update or delete outside the retention cleanup command.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_store_occurred", "store_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable: pre-auth events have no user, platform events have no store
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id", ondelete="SET NULL"), nullable=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # PERMISSION_DENIED, ACCOUNT_LOCKED, ...
    resource = db.Column(db.String(128), nullable=True)  # e.g. "/api/stores/3/invites"
    action = db.Column(db.String(64), nullable=True)     # e.g. "POST", policy name

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "store_id": self.store_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
