from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

class SecurityEvent(db.Model):
    """
    Security event audit log with tenant context.

    MULTI-TENANT: Events carry tenant_id where one was resolved, so denials
    can be reviewed per tenant.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_tenant_occurred", "tenant_id", "occurred_at"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable: authentication failures may not resolve a tenant or user.
    # No FK so that unknown identifiers from headers can still be recorded.
    tenant_id = db.Column(db.String(64), nullable=True, index=True)
    user_id = db.Column(db.String(64), nullable=True, index=True)

    # Event classification
    event_type = db.Column(db.String(64), nullable=False, index=True)  # AUTHENTICATION_FAILED, POLICY_DENIED, ...
    resource = db.Column(db.String(255), nullable=True)  # e.g., "/api/materials"
    action = db.Column(db.String(64), nullable=True)     # e.g., "CREATE_MATERIAL"

    # Event details
    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
