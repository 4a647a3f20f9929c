"""Suspension service - account suspension records and the login gate"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from admin_audit.core.exceptions import BusinessLogicError, ResourceNotFoundError
from admin_audit.models.suspension import SuspensionRecord
from admin_audit.models.user import User
from admin_audit.schemas.audit import AuditAction
from admin_audit.schemas.suspension import LoginCheck, SuspensionResponse
from admin_audit.schemas.user import UserRole
from admin_audit.services.audit_service import AuditActor, audit_service

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Suspended by admin"
STATUS_UNVERIFIED = "Could not verify account status"


def to_suspension_response(record: SuspensionRecord) -> SuspensionResponse:
    user = record.user
    suspended_by = record.suspended_by_user
    return SuspensionResponse(
        id=record.id,
        user_id=record.user_id,
        user_name=user.full_name if user else None,
        user_email=user.email if user else None,
        suspended_by=record.suspended_by,
        suspended_by_name=suspended_by.full_name if suspended_by else None,
        reason=record.reason,
        is_active=record.is_active,
        suspended_at=record.suspended_at,
    )


class SuspensionService:
    """Manage suspensions; records are closed, never deleted."""

    @staticmethod
    def _active_query(db: Session, user_id: int):
        return db.query(SuspensionRecord).filter(
            SuspensionRecord.user_id == user_id,
            SuspensionRecord.is_active.is_(True),
        )

    @staticmethod
    def get_suspension_details(db: Session, user_id: int) -> Optional[SuspensionRecord]:
        """Most recent active suspension governing the account, if any."""
        return (
            SuspensionService._active_query(db, user_id)
            .order_by(SuspensionRecord.suspended_at.desc(), SuspensionRecord.id.desc())
            .first()
        )

    @staticmethod
    def is_user_suspended(db: Session, user_id: int) -> bool:
        return SuspensionService.get_suspension_details(db, user_id) is not None

    @staticmethod
    def check_login_allowed(db: Session, user_id: int) -> LoginCheck:
        """
        Suspension gate for login and every session validation.

        Args:
            db: Database session
            user_id: Account being authenticated

        Returns:
            LoginCheck; lookup failures allow the login with a warning
        """
        try:
            record = SuspensionService.get_suspension_details(db, user_id)
        except Exception as exc:
            db.rollback()
            logger.warning(f"Suspension check failed for user {user_id}, allowing login: {exc}")
            return LoginCheck(allowed=True, warning=STATUS_UNVERIFIED)

        if record is None:
            return LoginCheck(allowed=True)

        suspended_on = record.suspended_at.strftime("%Y-%m-%d") if record.suspended_at else "Unknown"
        reason = record.reason or "No reason provided"
        logger.info(f"Login blocked for suspended user {user_id}")
        return LoginCheck(
            allowed=False,
            reason=(
                f"Your account has been suspended on {suspended_on}. Reason: {reason}. "
                "Please contact support for assistance."
            ),
        )

    @staticmethod
    def validate_user_session(db: Session, user: Optional[User]) -> LoginCheck:
        """Re-run the gate for an already established session."""
        if user is None:
            return LoginCheck(allowed=True)
        return SuspensionService.check_login_allowed(db, user.id)

    @staticmethod
    def suspend_user(
        db: Session,
        actor: Optional[AuditActor],
        user_id: int,
        suspended_by: Optional[int],
        reason: str = DEFAULT_REASON,
    ) -> SuspensionRecord:
        """
        Open a suspension for an account.

        Emits ``user_suspended``.

        Raises:
            ResourceNotFoundError: Unknown account
            BusinessLogicError: Super admin target, self-suspension or already suspended
        """
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError("User")
        if user.role == UserRole.SUPER_ADMIN.value:
            raise BusinessLogicError("Super admins cannot be suspended")
        if suspended_by is not None and suspended_by == user_id:
            raise BusinessLogicError("You cannot suspend your own account")
        if SuspensionService.is_user_suspended(db, user_id):
            raise BusinessLogicError("User is already suspended")

        record = SuspensionRecord(
            user_id=user_id,
            suspended_by=suspended_by,
            reason=(reason or "").strip() or DEFAULT_REASON,
            is_active=True,
        )
        db.add(record)
        db.commit()
        db.refresh(record)

        logger.info(f"Suspended user {user_id} by {suspended_by}")
        audit_service.log_user_action(db, actor, AuditAction.USER_SUSPENDED, user_id, {
            "user_name": user.full_name,
            "user_email": user.email,
            "reason": record.reason,
            "suspended_by": actor.name if actor else None,
        })
        return record

    @staticmethod
    def unsuspend_user(db: Session, actor: Optional[AuditActor], user_id: int) -> int:
        """
        Close every active suspension of an account.

        Emits ``user_activated``.

        Returns:
            Number of suspension records closed
        """
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError("User")

        records = SuspensionService._active_query(db, user_id).all()
        if not records:
            raise BusinessLogicError("User is not suspended")
        for record in records:
            record.is_active = False
        db.commit()

        logger.info(f"Unsuspended user {user_id} ({len(records)} record(s) closed)")
        audit_service.log_user_action(db, actor, AuditAction.USER_ACTIVATED, user_id, {
            "user_name": user.full_name,
            "user_email": user.email,
            "closed_suspensions": len(records),
            "activated_by": actor.name if actor else None,
        })
        return len(records)

    @staticmethod
    def list_suspended_users(db: Session, user_ids: Optional[List[int]] = None) -> List[SuspensionResponse]:
        """Active suspensions, newest first, optionally restricted to some accounts."""
        query = db.query(SuspensionRecord).filter(SuspensionRecord.is_active.is_(True))
        if user_ids is not None:
            if not user_ids:
                return []
            query = query.filter(SuspensionRecord.user_id.in_(user_ids))
        records = query.order_by(SuspensionRecord.suspended_at.desc(), SuspensionRecord.id.desc()).all()
        return [to_suspension_response(record) for record in records]


suspension_service = SuspensionService()
