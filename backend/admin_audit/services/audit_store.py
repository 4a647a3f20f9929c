"""Audit store provisioning - existence probe and idempotent setup"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError
from sqlalchemy.orm import Session

from admin_audit.config import settings
from admin_audit.models.audit import AuditLog
from admin_audit.schemas.audit import (
    AuditAction,
    AuditSetupStatus,
    InitializationResult,
    ResourceType,
    Severity,
    StoreStatus,
)

logger = logging.getLogger(__name__)

SYSTEM_ACTOR_ID = "system"
SYSTEM_ACTOR_NAME = "System"
SYSTEM_ACTOR_EMAIL = "system@admin.com"

SETUP_HINT = (
    "Audit log table could not be created automatically. Apply the schema out of band "
    "(`alembic upgrade head` or `python scripts/setup_audit_store.py`) and retry setup."
)


class AuditStore:
    """Probe and provision the persisted audit trail.

    Setup is at-least-once: concurrent initializers may each write a seed
    record, and losing a table-creation race counts as success as long as the
    table is there afterwards.
    """

    @staticmethod
    def probe(db: Session) -> StoreStatus:
        """
        Bounded read against the audit table.

        A relation error (missing table, unreachable store) means ABSENT; the
        failed statement is rolled back so the session stays usable.
        """
        try:
            db.execute(select(AuditLog.id).limit(1)).first()
        except (OperationalError, ProgrammingError) as exc:
            db.rollback()
            logger.debug(f"Audit store probe failed: {exc}")
            return StoreStatus.ABSENT
        return StoreStatus.READY

    @staticmethod
    def exists(db: Session) -> bool:
        return AuditStore.probe(db) is StoreStatus.READY

    @staticmethod
    def _create_table(db: Session) -> None:
        AuditLog.__table__.create(bind=db.connection(), checkfirst=True)

    @staticmethod
    def initialize(db: Session, auto_create: Optional[bool] = None) -> InitializationResult:
        """
        Create the audit table if needed and write the ``system_initialized`` seed.

        Args:
            db: Database session
            auto_create: Override ``AUDIT_AUTO_CREATE_STORE``

        Returns:
            InitializationResult; failures carry an actionable message and never raise
        """
        if auto_create is None:
            auto_create = settings.AUDIT_AUTO_CREATE_STORE

        created = False
        if AuditStore.probe(db) is StoreStatus.ABSENT:
            if not auto_create:
                logger.warning("Audit store absent and automatic creation is disabled")
                return InitializationResult(success=False, error=SETUP_HINT)
            try:
                AuditStore._create_table(db)
                created = True
            except SQLAlchemyError as exc:
                db.rollback()
                if AuditStore.probe(db) is StoreStatus.ABSENT:
                    logger.error(f"Failed to create audit store: {exc}")
                    return InitializationResult(success=False, error=SETUP_HINT)
                logger.info("Audit store was created by a concurrent initializer")

        seed = AuditLog(
            actor_id=SYSTEM_ACTOR_ID,
            actor_name=SYSTEM_ACTOR_NAME,
            actor_email=SYSTEM_ACTOR_EMAIL,
            action=AuditAction.SYSTEM_INITIALIZED.value,
            resource_type=ResourceType.SYSTEM.value,
            details=json.dumps({
                "message": "Audit logging system initialized",
                "setup_date": datetime.utcnow().isoformat(),
            }),
            ip_address="unknown",
            user_agent="System",
            severity=Severity.MEDIUM.value,
            timestamp=datetime.utcnow(),
        )
        try:
            db.add(seed)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Failed to write audit initialization record: {exc}")
            return InitializationResult(success=False, created=created, error=str(exc))

        logger.info("Audit logging system initialized (table created: %s)", created)
        return InitializationResult(success=True, created=created)

    @staticmethod
    def setup_status(db: Session) -> AuditSetupStatus:
        """Report whether the store exists and when setup first completed."""
        if AuditStore.probe(db) is StoreStatus.ABSENT:
            return AuditSetupStatus(exists=False)
        initialized_at = db.execute(
            select(func.min(AuditLog.timestamp)).where(
                AuditLog.action == AuditAction.SYSTEM_INITIALIZED.value
            )
        ).scalar()
        return AuditSetupStatus(exists=True, initialized_at=initialized_at)


audit_store = AuditStore()
