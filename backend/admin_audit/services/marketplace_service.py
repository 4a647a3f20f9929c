"""Marketplace service - order and listing moderation by admins"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from admin_audit.core.exceptions import (
    BusinessLogicError,
    LocationAccessDeniedError,
    ResourceNotFoundError,
    ValidationError,
)
from admin_audit.models.marketplace import Listing, Order
from admin_audit.models.user import User
from admin_audit.schemas.audit import AuditAction
from admin_audit.services.access_scope_service import access_scope_service, scope_of
from admin_audit.services.audit_service import AuditActor, audit_service

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "accepted", "completed", "cancelled")
TERMINAL_ORDER_STATUSES = ("completed", "cancelled")

ORDER_ACTION_BY_STATUS = {
    "completed": AuditAction.ORDER_COMPLETED,
    "cancelled": AuditAction.ORDER_CANCELLED,
}


class MarketplaceService:
    """Admin-side mutations on orders and listings."""

    @staticmethod
    def _visible_ids(db: Session, admin: User) -> Optional[List[int]]:
        """Account ids the admin may see; None when unrestricted."""
        scope = scope_of(admin)
        if scope is None:
            return None
        return access_scope_service.resolve_visible_account_ids(db, scope)

    @staticmethod
    def list_orders(db: Session, admin: User, status: Optional[str] = None, limit: int = 100) -> List[Order]:
        """Orders whose buyer lies inside the admin's scope, newest first."""
        query = db.query(Order)
        visible_ids = MarketplaceService._visible_ids(db, admin)
        if visible_ids is not None:
            if not visible_ids:
                return []
            query = query.filter(Order.buyer_id.in_(visible_ids))
        if status:
            query = query.filter(Order.status == status)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()

    @staticmethod
    def update_order_status(
        db: Session,
        actor: Optional[AuditActor],
        admin: User,
        order_id: int,
        new_status: str,
    ) -> Order:
        """
        Move an order to a new status.

        Emits ``order_completed``, ``order_cancelled`` or ``order_updated``.
        """
        if new_status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid order status '{new_status}'", details={"allowed": list(ORDER_STATUSES)})

        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise ResourceNotFoundError("Order")
        if order.buyer is not None:
            try:
                access_scope_service.ensure_can_manage(admin, order.buyer)
            except LocationAccessDeniedError:
                raise LocationAccessDeniedError("Order")
        if order.status in TERMINAL_ORDER_STATUSES:
            raise BusinessLogicError(f"Order is already {order.status}")
        if order.status == new_status:
            raise BusinessLogicError(f"Order is already {new_status}")

        old_status = order.status
        order.status = new_status
        db.commit()
        db.refresh(order)

        logger.info(f"Order {order.id} status {old_status} -> {new_status}")
        audit_service.log_order_action(
            db,
            actor,
            ORDER_ACTION_BY_STATUS.get(new_status, AuditAction.ORDER_UPDATED),
            order.id,
            {
                "old_status": old_status,
                "new_status": new_status,
                "buyer_id": order.buyer_id,
                "listing_id": order.listing_id,
                "quantity": order.quantity,
            },
        )
        return order

    @staticmethod
    def list_listings(db: Session, admin: User, status: Optional[str] = None, limit: int = 100) -> List[Listing]:
        """Listings whose seller lies inside the admin's scope, newest first."""
        query = db.query(Listing).filter(Listing.status != "deleted")
        visible_ids = MarketplaceService._visible_ids(db, admin)
        if visible_ids is not None:
            if not visible_ids:
                return []
            query = query.filter(Listing.seller_id.in_(visible_ids))
        if status:
            query = query.filter(Listing.status == status)
        return query.order_by(Listing.created_at.desc(), Listing.id.desc()).limit(limit).all()

    @staticmethod
    def _moderate(
        db: Session,
        actor: Optional[AuditActor],
        admin: User,
        listing_id: int,
        new_status: str,
        action: AuditAction,
        reason: Optional[str] = None,
    ) -> Listing:
        listing = db.query(Listing).filter(Listing.id == listing_id).first()
        if not listing or listing.status == "deleted":
            raise ResourceNotFoundError("Product")
        if listing.seller is not None:
            try:
                access_scope_service.ensure_can_manage(admin, listing.seller)
            except LocationAccessDeniedError:
                raise LocationAccessDeniedError("Product")

        old_status = listing.status
        listing.status = new_status
        db.commit()
        db.refresh(listing)

        details = {
            "product_name": listing.name,
            "seller_id": listing.seller_id,
            "price": listing.price,
            "category": listing.category,
            "old_status": old_status,
        }
        if reason:
            details["reason"] = reason
        audit_service.log_product_action(db, actor, action, listing.id, details)
        return listing

    @staticmethod
    def approve_listing(db, actor, admin, listing_id) -> Listing:
        return MarketplaceService._moderate(db, actor, admin, listing_id, "approved", AuditAction.PRODUCT_APPROVED)

    @staticmethod
    def reject_listing(db, actor, admin, listing_id, reason=None) -> Listing:
        return MarketplaceService._moderate(
            db, actor, admin, listing_id, "rejected", AuditAction.PRODUCT_REJECTED, reason
        )

    @staticmethod
    def delete_listing(db, actor, admin, listing_id) -> Listing:
        """Soft delete; the row stays for history and reconstruction."""
        return MarketplaceService._moderate(db, actor, admin, listing_id, "deleted", AuditAction.PRODUCT_DELETED)


marketplace_service = MarketplaceService()
