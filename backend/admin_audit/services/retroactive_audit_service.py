"""Retroactive audit service - persist audit records for pre-existing activity"""

import json
import logging
from datetime import datetime
from typing import Callable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admin_audit.models.audit import AuditLog
from admin_audit.models.marketplace import Listing, Order
from admin_audit.models.user import User
from admin_audit.schemas.audit import (
    ActivitySummary,
    AuditAction,
    BackfillResult,
    ResourceType,
    StoreStatus,
)
from admin_audit.services.audit_service import severity_for
from admin_audit.services.audit_store import SYSTEM_ACTOR_EMAIL, audit_store

logger = logging.getLogger(__name__)

RETROACTIVE_AGENT = "Retroactive Audit Log"


def _entry(actor_id, actor_name, actor_email, action, resource_type, resource_id, details, timestamp) -> AuditLog:
    details = dict(details, retroactive_entry=True)
    return AuditLog(
        actor_id=str(actor_id) if actor_id is not None else "system",
        actor_name=actor_name,
        actor_email=actor_email,
        action=action.value,
        resource_type=resource_type.value,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=json.dumps(details, default=str),
        ip_address="unknown",
        user_agent=RETROACTIVE_AGENT,
        severity=severity_for(action, resource_type).value,
        timestamp=timestamp or datetime.utcnow(),
    )


def _registration_entries(db: Session) -> List[AuditLog]:
    users = db.query(User).order_by(User.created_at.asc(), User.id.asc()).all()
    return [
        _entry(
            user.id, user.full_name or "Unknown User", user.email or "unknown@email.com",
            AuditAction.USER_CREATED, ResourceType.USER, user.id,
            {
                "user_name": user.full_name,
                "user_email": user.email,
                "user_role": user.role or "user",
                "registration_method": "main_app",
            },
            user.created_at,
        )
        for user in users
    ]


def _order_entries(db: Session) -> List[AuditLog]:
    entries = []
    for order in db.query(Order).order_by(Order.created_at.asc(), Order.id.asc()).all():
        buyer, seller, listing = order.buyer, order.seller, order.listing
        entries.append(_entry(
            order.buyer_id,
            buyer.full_name if buyer and buyer.full_name else "Unknown Buyer",
            buyer.email if buyer else "unknown@email.com",
            AuditAction.ORDER_CREATED, ResourceType.ORDER, order.id,
            {
                "buyer_id": order.buyer_id,
                "seller_id": order.seller_id,
                "listing_id": order.listing_id,
                "product_name": listing.name if listing else None,
                "quantity": order.quantity,
                "initial_status": "pending",
            },
            order.created_at,
        ))
        # No updater is recorded on orders; status changes go to the system actor.
        if order.updated_at and order.updated_at != order.created_at and order.status != "pending":
            entries.append(_entry(
                "system", "System/Admin", SYSTEM_ACTOR_EMAIL,
                AuditAction.ORDER_UPDATED, ResourceType.ORDER, order.id,
                {
                    "old_status": "pending",
                    "new_status": order.status,
                    "buyer_name": buyer.full_name if buyer else None,
                    "seller_name": seller.full_name if seller else None,
                    "product_name": listing.name if listing else None,
                    "quantity": order.quantity,
                },
                order.updated_at,
            ))
    return entries


def _admin_entries(db: Session) -> List[AuditLog]:
    admins = (
        db.query(User)
        .filter(User.role.in_(["admin", "super_admin"]))
        .order_by(User.created_at.asc(), User.id.asc())
        .all()
    )
    return [
        _entry(
            admin.id, admin.full_name or "Unknown Admin", admin.email or "unknown@email.com",
            AuditAction.USER_ROLE_CHANGED, ResourceType.ADMIN, admin.id,
            {
                "old_role": "user",
                "new_role": admin.role,
                "admin_name": admin.full_name,
                "action_type": "promotion",
                "assigned_location": admin.admin_assigned_location,
            },
            admin.created_at,
        )
        for admin in admins
    ]


def _listing_entries(db: Session) -> List[AuditLog]:
    entries = []
    for listing in db.query(Listing).order_by(Listing.created_at.asc(), Listing.id.asc()).all():
        seller = listing.seller
        entries.append(_entry(
            listing.seller_id,
            seller.full_name if seller and seller.full_name else "Unknown Seller",
            seller.email if seller else "unknown@email.com",
            AuditAction.PRODUCT_CREATED, ResourceType.PRODUCT, listing.id,
            {
                "product_name": listing.name,
                "seller_id": listing.seller_id,
                "price": listing.price,
                "category": listing.category,
            },
            listing.created_at,
        ))
    return entries


class RetroactiveAuditService:
    """Backfill the audit trail from rows that predate it."""

    SOURCES: List[Callable[[Session], List[AuditLog]]] = [
        _registration_entries,
        _order_entries,
        _admin_entries,
        _listing_entries,
    ]

    @staticmethod
    def create_retroactive_logs(db: Session) -> BackfillResult:
        """
        Write one persisted record per historical activity.

        Each source is inserted in its own transaction; a failing source is
        logged and contributes nothing. Running the backfill twice writes the
        entries twice.

        Returns:
            BackfillResult with the number of records written
        """
        if audit_store.probe(db) is StoreStatus.ABSENT:
            result = audit_store.initialize(db)
            if not result.success:
                return BackfillResult(success=False, error=result.error)

        created = 0
        for source in RetroactiveAuditService.SOURCES:
            try:
                entries = source(db)
                if entries:
                    db.add_all(entries)
                    db.commit()
                created += len(entries)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error(f"Retroactive audit source {source.__name__} failed: {exc}")

        logger.info(f"Retroactive audit logging completed. Created {created} audit entries.")
        return BackfillResult(success=True, logs_created=created)

    @staticmethod
    def get_activity_summary(db: Session) -> ActivitySummary:
        """Counts of rows the backfill would turn into audit records."""
        try:
            users = db.query(User).count()
            orders = db.query(Order).count()
            admins = db.query(User).filter(User.role.in_(["admin", "super_admin"])).count()
            listings = db.query(Listing).count()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Error getting activity summary: {exc}")
            return ActivitySummary()

        return ActivitySummary(
            users=users,
            orders=orders,
            admins=admins,
            listings=listings,
            total_activities=users + orders + admins + listings,
        )


retroactive_audit_service = RetroactiveAuditService()
