"""Audit log model - the persisted activity trail"""

import uuid

from sqlalchemy import Column, String, DateTime, Text, Index, CheckConstraint

from admin_audit.core.database import Base


def _new_audit_id() -> str:
    return uuid.uuid4().hex


class AuditLog(Base):
    """Immutable audit records.

    Actor columns are denormalized copies taken at emission time, so a record
    stays readable after the account is renamed. ``actor_id`` is free text
    because system-originated records use ``"system"``.
    """

    __tablename__ = "audit_logs"

    id = Column(String(64), primary_key=True, default=_new_audit_id)
    actor_id = Column(String(64), nullable=False, index=True)
    actor_name = Column(String(200), nullable=False, index=True)
    actor_email = Column(String(255), nullable=False)
    action = Column(String(64), nullable=False, index=True)
    resource_type = Column(String(32), nullable=False, index=True)
    resource_id = Column(String(128), nullable=True)
    details = Column(Text, nullable=False, default="{}")
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    severity = Column(String(16), nullable=False, default="low", index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_audit_logs_timestamp", "timestamp"),
        CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')",
            name="chk_audit_severity"
        ),
    )

    def __repr__(self):
        return f"<AuditLog(id='{self.id}', action='{self.action}', actor_id='{self.actor_id}')>"
