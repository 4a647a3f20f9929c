"""Audit service - canonical event emission for every domain mutation"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admin_audit.models.audit import AuditLog
from admin_audit.schemas.audit import AuditAction, ResourceType, Severity, StoreStatus
from admin_audit.services.audit_store import audit_store

logger = logging.getLogger(__name__)

AUDIT_EVENTS_WRITTEN = Counter(
    "marketplace_audit_events_written_total",
    "Audit events persisted",
    ["action"],
)
AUDIT_EVENTS_DROPPED = Counter(
    "marketplace_audit_events_dropped_total",
    "Audit events skipped or lost",
    ["reason"],
)

UNKNOWN = "unknown"

# Central action -> severity table; call sites never pick severities themselves.
SEVERITY_BY_ACTION: Dict[AuditAction, Severity] = {
    AuditAction.USER_LOGIN: Severity.MEDIUM,
    AuditAction.USER_LOGOUT: Severity.MEDIUM,
    AuditAction.USER_CREATED: Severity.MEDIUM,
    AuditAction.USER_UPDATED: Severity.MEDIUM,
    AuditAction.USER_DELETED: Severity.MEDIUM,
    AuditAction.USER_ROLE_CHANGED: Severity.HIGH,
    AuditAction.USER_SUSPENDED: Severity.HIGH,
    AuditAction.USER_ACTIVATED: Severity.HIGH,
    AuditAction.PASSWORD_CHANGED: Severity.MEDIUM,
    AuditAction.ADMIN_ASSIGNED: Severity.HIGH,
    AuditAction.ADMIN_LOCATION_UPDATED: Severity.HIGH,
    AuditAction.ADMIN_PERMISSIONS_CHANGED: Severity.HIGH,
    AuditAction.PRODUCT_CREATED: Severity.LOW,
    AuditAction.PRODUCT_UPDATED: Severity.LOW,
    AuditAction.PRODUCT_DELETED: Severity.LOW,
    AuditAction.PRODUCT_APPROVED: Severity.LOW,
    AuditAction.PRODUCT_REJECTED: Severity.LOW,
    AuditAction.ORDER_CREATED: Severity.LOW,
    AuditAction.ORDER_UPDATED: Severity.MEDIUM,
    AuditAction.ORDER_CANCELLED: Severity.MEDIUM,
    AuditAction.ORDER_COMPLETED: Severity.MEDIUM,
    AuditAction.COVER_IMAGE_UPDATED: Severity.MEDIUM,
    AuditAction.SETTINGS_UPDATED: Severity.MEDIUM,
    AuditAction.DATA_EXPORTED: Severity.MEDIUM,
    AuditAction.SYSTEM_BACKUP: Severity.MEDIUM,
    AuditAction.UNAUTHORIZED_ACCESS: Severity.CRITICAL,
    AuditAction.FAILED_LOGIN: Severity.CRITICAL,
    AuditAction.SUSPICIOUS_ACTIVITY: Severity.CRITICAL,
    AuditAction.DATA_BREACH_ATTEMPT: Severity.CRITICAL,
    AuditAction.SYSTEM_INITIALIZED: Severity.MEDIUM,
    AuditAction.USER_REGISTERED: Severity.MEDIUM,
    AuditAction.ORDER_PLACED: Severity.LOW,
    AuditAction.ORDER_STATUS_CHANGED: Severity.MEDIUM,
}

SEVERITY_BY_RESOURCE: Dict[ResourceType, Severity] = {
    ResourceType.USER: Severity.MEDIUM,
    ResourceType.ADMIN: Severity.HIGH,
    ResourceType.PRODUCT: Severity.LOW,
    ResourceType.ORDER: Severity.MEDIUM,
    ResourceType.REVIEW: Severity.LOW,
    ResourceType.FEEDBACK: Severity.LOW,
    ResourceType.COVER_IMAGE: Severity.MEDIUM,
    ResourceType.SYSTEM: Severity.MEDIUM,
    ResourceType.SECURITY: Severity.CRITICAL,
}


def severity_for(action: Union[AuditAction, str], resource_type: Union[ResourceType, str]) -> Severity:
    """Severity of an action, falling back to its resource type's default."""
    try:
        return SEVERITY_BY_ACTION[AuditAction(action)]
    except (KeyError, ValueError):
        pass
    try:
        return SEVERITY_BY_RESOURCE[ResourceType(resource_type)]
    except ValueError:
        return Severity.LOW


@dataclass(frozen=True)
class AuditActor:
    """Identity and client environment attributed to an emitted event."""
    id: str
    name: str
    email: str
    ip_address: str = UNKNOWN
    user_agent: str = UNKNOWN

    @classmethod
    def from_user(cls, user, ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> "AuditActor":
        return cls(
            id=str(user.id),
            name=user.full_name or "Unknown User",
            email=user.email or "unknown@email.com",
            ip_address=ip_address or UNKNOWN,
            user_agent=user_agent or UNKNOWN,
        )


def _value(member: Union[AuditAction, ResourceType, Severity, str]) -> str:
    return member.value if hasattr(member, "value") else str(member)


class AuditService:
    """Persist immutable audit trail entries (fire-and-forget)."""

    @staticmethod
    def log_event(
        db: Session,
        actor: Optional[AuditActor],
        action: Union[AuditAction, str],
        resource_type: Union[ResourceType, str],
        details: Optional[Dict[str, Any]] = None,
        resource_id: Optional[Any] = None,
        severity: Optional[Union[Severity, str]] = None,
    ) -> Optional[AuditLog]:
        """
        Append one audit record.

        Args:
            db: Database session (domain changes must already be committed)
            actor: Attributed actor; None skips the write
            action: Member of the action taxonomy
            resource_type: Member of the resource taxonomy
            details: Free-form payload, serialized as JSON
            resource_id: Affected resource identifier
            severity: Override for the central severity table

        Returns:
            The stored record, or None when skipped or lost
        """
        if actor is None:
            AUDIT_EVENTS_DROPPED.labels("no_actor").inc()
            return None

        try:
            if audit_store.probe(db) is StoreStatus.ABSENT:
                logger.info("Audit logs table does not exist, initializing...")
                result = audit_store.initialize(db)
                if not result.success:
                    logger.error(f"Failed to initialize audit logging: {result.error}")
                    AUDIT_EVENTS_DROPPED.labels("store_absent").inc()
                    return None

            event = AuditLog(
                actor_id=actor.id,
                actor_name=actor.name,
                actor_email=actor.email,
                action=_value(action),
                resource_type=_value(resource_type),
                resource_id=str(resource_id) if resource_id is not None else None,
                details=json.dumps(details or {}, ensure_ascii=False, default=str),
                ip_address=actor.ip_address or UNKNOWN,
                user_agent=actor.user_agent or UNKNOWN,
                severity=_value(severity or severity_for(action, resource_type)),
                timestamp=datetime.utcnow(),
            )
            db.add(event)
            db.commit()
            db.refresh(event)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Failed to log audit event {_value(action)}: {exc}")
            AUDIT_EVENTS_DROPPED.labels("store_error").inc()
            return None

        AUDIT_EVENTS_WRITTEN.labels(event.action).inc()
        return event

    # Resource-scoped helpers. Recommended ``details`` keys per action:
    #   user_created: user_name, user_email, user_role, created_by
    #   user_role_changed: old_role, new_role, changed_by
    #   admin_assigned / admin_location_updated: assigned_location, assigned_by
    #   user_suspended: reason, suspended_by; user_activated: closed_suspensions
    #   order_*: old_status, new_status, buyer_id, listing_id
    #   product_*: product_name, seller_id, price, category
    #   failed_login / unauthorized_access: email, path, reason

    @staticmethod
    def log_user_action(db, actor, action, user_id, details=None):
        return AuditService.log_event(db, actor, action, ResourceType.USER, details, user_id)

    @staticmethod
    def log_admin_action(db, actor, action, admin_id, details=None):
        return AuditService.log_event(db, actor, action, ResourceType.ADMIN, details, admin_id)

    @staticmethod
    def log_product_action(db, actor, action, product_id, details=None):
        return AuditService.log_event(db, actor, action, ResourceType.PRODUCT, details, product_id)

    @staticmethod
    def log_order_action(db, actor, action, order_id, details=None):
        return AuditService.log_event(db, actor, action, ResourceType.ORDER, details, order_id)

    @staticmethod
    def log_security_event(db, actor, action, details=None):
        return AuditService.log_event(db, actor, action, ResourceType.SECURITY, details)

    @staticmethod
    def log_system_event(db, actor, action, details=None):
        return AuditService.log_event(db, actor, action, ResourceType.SYSTEM, details)


audit_service = AuditService()
