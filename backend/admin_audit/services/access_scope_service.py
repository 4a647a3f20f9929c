"""Access scope service - admin locations and the accounts they may see"""

import logging
from typing import Any, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admin_audit.core.exceptions import (
    BusinessLogicError,
    LocationAccessDeniedError,
    ResourceNotFoundError,
)
from admin_audit.models.audit import AuditLog
from admin_audit.models.marketplace import Order
from admin_audit.models.suspension import SuspensionRecord
from admin_audit.models.user import User
from admin_audit.schemas.audit import AuditAction, StoreStatus
from admin_audit.schemas.location import LocationScope
from admin_audit.schemas.user import (
    AccountPage,
    AdminAccountResponse,
    AdminActivityStats,
    UserResponse,
    UserRole,
)
from admin_audit.services.audit_service import AuditActor, audit_service
from admin_audit.services.audit_store import audit_store
from admin_audit.services.location_filter import (
    build_location_conditions,
    format_location_display,
    like_pattern,
    location_matches,
    normalize_scope,
)

logger = logging.getLogger(__name__)


def scope_of(user: User) -> Optional[LocationScope]:
    """Effective scope of an account; None means global."""
    if user.role != UserRole.ADMIN.value:
        return None
    return normalize_scope(user.admin_assigned_location)


class AccessScopeService:
    """Resolve what a regional administrator may see and manage."""

    @staticmethod
    def _get_account(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError("User")
        return user

    @staticmethod
    def get_admin_scope(db: Session, admin_id: int) -> Optional[LocationScope]:
        """
        Look up an administrator's assigned location.

        Args:
            db: Database session
            admin_id: Administrator account ID

        Returns:
            The normalized scope, or None for globally scoped administrators
            (super admins always, regional admins without a location)
        """
        return scope_of(AccessScopeService._get_account(db, admin_id))

    @staticmethod
    def resolve_visible_account_ids(db: Session, scope: Optional[LocationScope]) -> List[int]:
        """
        IDs of accounts inside a scope.

        A global scope yields every account. A scope constraining only
        streets yields nothing: no account column stores streets, and the
        result must not fall back to unrestricted visibility.
        """
        scope = normalize_scope(scope)
        query = db.query(User.id)
        if scope is not None:
            if not scope.has_enforceable_fields():
                logger.info("Street-only location scope resolves to no visible accounts")
                return []
            query = query.filter(*build_location_conditions(scope))
        return [row.id for row in query.order_by(User.id).all()]

    @staticmethod
    def resolve_visible_account_ids_for_admin(db: Session, admin_id: int) -> List[int]:
        scope = AccessScopeService.get_admin_scope(db, admin_id)
        return AccessScopeService.resolve_visible_account_ids(db, scope)

    @staticmethod
    def list_visible_accounts(
        db: Session,
        admin: User,
        role: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> AccountPage:
        """
        Account listing narrowed by the caller's scope before any other filter.

        Returns:
            AccountPage; an empty visible set short-circuits to an empty page,
            store failures come back as an empty page carrying ``error``
        """
        page = max(page, 1)
        page_size = max(page_size, 1)
        try:
            query = db.query(User)
            scope = scope_of(admin)
            if scope is not None:
                visible_ids = AccessScopeService.resolve_visible_account_ids(db, scope)
                if not visible_ids:
                    return AccountPage()
                query = query.filter(User.id.in_(visible_ids))

            if role:
                query = query.filter(User.role == role)
            if search:
                pattern = like_pattern(search.strip())
                query = query.filter(or_(
                    User.full_name.ilike(pattern, escape="\\"),
                    User.email.ilike(pattern, escape="\\"),
                ))

            total = query.count()
            users = (
                query.order_by(User.created_at.desc(), User.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Failed to list accounts for admin {admin.id}: {exc}")
            return AccountPage(error=f"Failed to load accounts: {exc}")

        return AccountPage(
            items=[UserResponse.model_validate(user) for user in users],
            total=total,
        )

    @staticmethod
    def can_access_location(db: Session, admin_id: int, target: Any) -> bool:
        """Whether a location (mapping or object) lies inside the admin's scope."""
        admin = db.query(User).filter(User.id == admin_id).first()
        if not admin or not admin.is_admin:
            return False
        scope = scope_of(admin)
        if scope is None:
            return True
        if not scope.has_enforceable_fields():
            return False
        return location_matches(scope, target)

    @staticmethod
    def ensure_can_manage(admin: User, target: User) -> None:
        """Raise unless ``target`` is an account ``admin`` may act on."""
        scope = scope_of(admin)
        if scope is None:
            return
        if not scope.has_enforceable_fields() or not location_matches(scope, target):
            raise LocationAccessDeniedError("User")

    @staticmethod
    def promote_to_admin(
        db: Session,
        actor: Optional[AuditActor],
        user_id: int,
        location: Optional[LocationScope] = None,
    ) -> User:
        """
        Promote an account to regional admin with an optional location.

        Emits ``admin_assigned``.
        """
        user = AccessScopeService._get_account(db, user_id)
        if user.role != UserRole.USER.value:
            raise BusinessLogicError(f"User is already {user.role}")

        scope = normalize_scope(location)
        user.role = UserRole.ADMIN.value
        user.admin_assigned_location = scope.to_stored() if scope else None
        db.commit()
        db.refresh(user)

        logger.info(f"Promoted user {user.id} to admin ({format_location_display(scope)})")
        audit_service.log_admin_action(db, actor, AuditAction.ADMIN_ASSIGNED, user.id, {
            "user_name": user.full_name,
            "user_email": user.email,
            "old_role": UserRole.USER.value,
            "new_role": UserRole.ADMIN.value,
            "assigned_location": scope.to_stored() if scope else None,
            "assigned_by": actor.name if actor else None,
        })
        return user

    @staticmethod
    def set_admin_location(
        db: Session,
        actor: Optional[AuditActor],
        admin_id: int,
        location: Optional[LocationScope],
    ) -> User:
        """Reassign a regional admin's location; None grants global access."""
        admin = AccessScopeService._get_account(db, admin_id)
        if admin.role != UserRole.ADMIN.value:
            raise BusinessLogicError("Only regional admins can be assigned a location")

        old_scope = normalize_scope(admin.admin_assigned_location)
        scope = normalize_scope(location)
        admin.admin_assigned_location = scope.to_stored() if scope else None
        db.commit()
        db.refresh(admin)

        audit_service.log_admin_action(db, actor, AuditAction.ADMIN_LOCATION_UPDATED, admin.id, {
            "user_name": admin.full_name,
            "old_location": old_scope.to_stored() if old_scope else None,
            "assigned_location": scope.to_stored() if scope else None,
            "assigned_by": actor.name if actor else None,
        })
        return admin

    @staticmethod
    def demote_admin(db: Session, actor: Optional[AuditActor], admin_id: int) -> User:
        """Demote a regional admin to a regular user and clear the location."""
        admin = AccessScopeService._get_account(db, admin_id)
        if admin.role != UserRole.ADMIN.value:
            raise BusinessLogicError("Only regional admins can be demoted")

        old_scope = normalize_scope(admin.admin_assigned_location)
        admin.role = UserRole.USER.value
        admin.admin_assigned_location = None
        db.commit()
        db.refresh(admin)

        logger.info(f"Demoted admin {admin.id} to user")
        audit_service.log_user_action(db, actor, AuditAction.USER_ROLE_CHANGED, admin.id, {
            "user_name": admin.full_name,
            "old_role": UserRole.ADMIN.value,
            "new_role": UserRole.USER.value,
            "old_location": old_scope.to_stored() if old_scope else None,
            "changed_by": actor.name if actor else None,
        })
        return admin

    @staticmethod
    def change_role(
        db: Session,
        actor: Optional[AuditActor],
        user_id: int,
        new_role: UserRole,
        location: Optional[LocationScope] = None,
    ) -> User:
        """
        Change an account's role.

        Promotion to admin goes through ``promote_to_admin``; every other
        change clears the assigned location. Super admins cannot be demoted
        here.
        """
        user = AccessScopeService._get_account(db, user_id)
        new_role = UserRole(new_role)
        if user.role == new_role.value:
            raise BusinessLogicError(f"User already has role {new_role.value}")
        if user.role == UserRole.SUPER_ADMIN.value:
            raise BusinessLogicError("Super admin role cannot be changed")
        if new_role is UserRole.ADMIN:
            return AccessScopeService.promote_to_admin(db, actor, user_id, location)

        old_role = user.role
        user.role = new_role.value
        user.admin_assigned_location = None
        db.commit()
        db.refresh(user)

        audit_service.log_user_action(db, actor, AuditAction.USER_ROLE_CHANGED, user.id, {
            "user_name": user.full_name,
            "old_role": old_role,
            "new_role": new_role.value,
            "changed_by": actor.name if actor else None,
        })
        return user

    @staticmethod
    def list_admins(db: Session) -> List[AdminAccountResponse]:
        """All admin accounts, super admins first, then newest first."""
        admins = db.query(User).filter(
            User.role.in_([UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value])
        ).all()
        suspended_ids = {
            row.user_id for row in db.query(SuspensionRecord.user_id).filter(
                SuspensionRecord.is_active.is_(True),
                SuspensionRecord.user_id.in_([a.id for a in admins] or [0]),
            ).all()
        }

        admins.sort(key=lambda a: (a.created_at is not None, a.created_at), reverse=True)
        admins.sort(key=lambda a: a.role != UserRole.SUPER_ADMIN.value)

        result = []
        for admin in admins:
            scope = scope_of(admin)
            if admin.id in suspended_ids:
                status = "suspended"
            else:
                status = "active" if admin.is_active else "inactive"
            result.append(AdminAccountResponse(
                id=admin.id,
                name=admin.full_name or "Unknown",
                email=admin.email,
                role=admin.role,
                assigned_location=scope,
                location_display=format_location_display(scope),
                status=status,
                created_at=admin.created_at,
                updated_at=admin.updated_at,
            ))
        return result

    @staticmethod
    def get_admin_activity_stats(db: Session, admin_id: int) -> AdminActivityStats:
        """Accounts and orders inside an admin's scope, plus their latest audited action."""
        try:
            visible_ids = AccessScopeService.resolve_visible_account_ids_for_admin(db, admin_id)
            managed_orders = 0
            if visible_ids:
                managed_orders = db.query(Order).filter(Order.buyer_id.in_(visible_ids)).count()

            last_activity = None
            if audit_store.probe(db) is StoreStatus.READY:
                last_activity = db.query(func.max(AuditLog.timestamp)).filter(
                    AuditLog.actor_id == str(admin_id)
                ).scalar()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Error getting admin activity stats for {admin_id}: {exc}")
            return AdminActivityStats()

        return AdminActivityStats(
            managed_users=len(visible_ids),
            managed_orders=managed_orders,
            last_activity=last_activity,
        )


access_scope_service = AccessScopeService()
