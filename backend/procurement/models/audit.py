from __future__ import annotations

from ..extensions import db
from procurement.time_utils import to_utc_z


ACTION_CREATE = "CREATE"
ACTION_UPDATE = "UPDATE"
ACTION_GENERATE = "GENERATE"
ACTION_OVERRIDE = "OVERRIDE"


class AuditLog(db.Model):
    """
    Audit trail with tenant context.

    MULTI-TENANT: Rows are scoped to organizations and queried by org_id
    with optional entity / case filters, newest first.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_org_created", "org_id", "created_at"),
        db.Index("ix_audit_logs_org_entity", "org_id", "entity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)  # Nullable for system actions

    action = db.Column(db.String(16), nullable=False, index=True)  # CREATE, UPDATE, GENERATE, OVERRIDE
    entity = db.Column(db.String(64), nullable=False)  # e.g., "document", "document-running-number"
    entity_id = db.Column(db.String(64), nullable=False)
    case_id = db.Column(db.Integer, nullable=True, index=True)

    before = db.Column(db.JSON, nullable=True)
    after = db.Column(db.JSON, nullable=True)
    reason = db.Column(db.Text, nullable=True)

    # Client context
    ip = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "user_id": self.user_id,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "case_id": self.case_id,
            "before": self.before,
            "after": self.after,
            "reason": self.reason,
            "ip": self.ip,
            "user_agent": self.user_agent,
            "created_at": to_utc_z(self.created_at),
        }
