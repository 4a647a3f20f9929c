"""Activity service - filtered audit feed with reconstruction fallback"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admin_audit.config import settings
from admin_audit.models.audit import AuditLog
from admin_audit.models.marketplace import Listing, Order
from admin_audit.models.user import User
from admin_audit.schemas.audit import (
    ActivityPage,
    ActivitySource,
    AuditAction,
    AuditLogFilter,
    AuditRecord,
    ResourceType,
    Severity,
    StoreStatus,
)
from admin_audit.services.audit_service import severity_for
from admin_audit.services.audit_store import audit_store

logger = logging.getLogger(__name__)

RECONSTRUCTED_IP = "unknown"
RECONSTRUCTED_AGENT = "Historical Data"
SYSTEM_EMAIL = "system@marketplace.com"


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Compare timestamps in naive UTC whatever the backend returns."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def record_from_row(row: AuditLog) -> AuditRecord:
    """Convert a persisted row to the canonical record."""
    try:
        details = json.loads(row.details) if row.details else {}
    except (TypeError, ValueError):
        details = {"raw": row.details}
    if not isinstance(details, dict):
        details = {"value": details}

    try:
        severity = Severity(row.severity)
    except ValueError:
        severity = Severity.LOW

    return AuditRecord(
        id=str(row.id),
        actor_id=row.actor_id,
        actor_name=row.actor_name,
        actor_email=row.actor_email,
        action=row.action,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        details=details,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        severity=severity,
        timestamp=_naive_utc(row.timestamp),
    )


def _reconstructed(
    record_id: str,
    actor_id,
    actor_name: str,
    actor_email: str,
    action: AuditAction,
    resource_type: ResourceType,
    resource_id,
    details: dict,
    timestamp: Optional[datetime],
) -> AuditRecord:
    return AuditRecord(
        id=record_id,
        actor_id=str(actor_id) if actor_id is not None else "system",
        actor_name=actor_name,
        actor_email=actor_email,
        action=action.value,
        resource_type=resource_type.value,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
        ip_address=RECONSTRUCTED_IP,
        user_agent=RECONSTRUCTED_AGENT,
        severity=severity_for(action, resource_type),
        timestamp=_naive_utc(timestamp) or datetime.utcnow(),
    )


def _matches(record: AuditRecord, filters: AuditLogFilter) -> bool:
    """Evaluate a filter against a reconstructed record."""
    if filters.actor_id and record.actor_id != filters.actor_id:
        return False
    if filters.action and record.action != filters.action.value:
        return False
    if filters.resource_type and record.resource_type != filters.resource_type.value:
        return False
    if filters.severity and record.severity != filters.severity:
        return False
    if filters.start_date and record.timestamp < _naive_utc(filters.start_date):
        return False
    if filters.end_date and record.timestamp > _naive_utc(filters.end_date):
        return False
    if filters.search_term:
        needle = filters.search_term.lower()
        haystacks = (
            record.action,
            json.dumps(record.details, default=str),
            record.actor_name,
        )
        if not any(needle in (h or "").lower() for h in haystacks):
            return False
    return True


class ActivityService:
    """Read side of the audit trail."""

    @staticmethod
    def _bounds(page: int, page_size: int):
        page = max(page, 1)
        page_size = min(max(page_size, 1), settings.AUDIT_MAX_PAGE_SIZE)
        return page, page_size, (page - 1) * page_size

    @staticmethod
    def query_audit_logs(
        db: Session,
        filters: Optional[AuditLogFilter] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> ActivityPage:
        """
        Query the persisted audit trail.

        Args:
            db: Database session
            filters: Conjunctive filter; None means unfiltered
            page: 1-based page number
            page_size: Records per page (capped by AUDIT_MAX_PAGE_SIZE)

        Returns:
            ActivityPage ordered newest first with the exact match count;
            store errors come back as an empty page carrying ``error``
        """
        filters = filters or AuditLogFilter()
        page, page_size, offset = ActivityService._bounds(page, page_size)

        query = db.query(AuditLog)
        if filters.actor_id:
            query = query.filter(AuditLog.actor_id == filters.actor_id)
        if filters.action:
            query = query.filter(AuditLog.action == filters.action.value)
        if filters.resource_type:
            query = query.filter(AuditLog.resource_type == filters.resource_type.value)
        if filters.severity:
            query = query.filter(AuditLog.severity == filters.severity.value)
        if filters.start_date:
            query = query.filter(AuditLog.timestamp >= filters.start_date)
        if filters.end_date:
            query = query.filter(AuditLog.timestamp <= filters.end_date)
        if filters.search_term:
            pattern = f"%{_escape_like(filters.search_term)}%"
            query = query.filter(or_(
                AuditLog.action.ilike(pattern, escape="\\"),
                AuditLog.details.ilike(pattern, escape="\\"),
                AuditLog.actor_name.ilike(pattern, escape="\\"),
            ))

        try:
            total = query.count()
            rows = (
                query.order_by(AuditLog.timestamp.desc(), AuditLog.id)
                .offset(offset)
                .limit(page_size)
                .all()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Failed to fetch audit logs: {exc}")
            return ActivityPage(
                page=page,
                page_size=page_size,
                error=f"Failed to fetch audit logs: {exc}",
            )

        return ActivityPage(
            records=[record_from_row(row) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
            source=ActivitySource.AUDIT_LOG,
        )

    @staticmethod
    def reconstruct_from_primary_tables(
        db: Session,
        filters: Optional[AuditLogFilter] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> ActivityPage:
        """
        Synthesize an activity feed from recent accounts, orders and listings.

        Records get deterministic ids (``user_{id}``, ``order_{id}``,
        ``order_update_{id}``, ``listing_{id}``) so the same row always yields
        the same record. Filters are applied in memory, best effort.
        """
        filters = filters or AuditLogFilter()
        page, page_size, offset = ActivityService._bounds(page, page_size)
        records: List[AuditRecord] = []

        try:
            users = (
                db.query(User)
                .order_by(User.created_at.desc(), User.id.desc())
                .limit(settings.AUDIT_FALLBACK_ACCOUNT_WINDOW)
                .all()
            )
            for user in users:
                records.append(_reconstructed(
                    f"user_{user.id}",
                    user.id,
                    user.display_name,
                    user.email,
                    AuditAction.USER_REGISTERED,
                    ResourceType.USER,
                    user.id,
                    {"user_name": user.full_name, "user_email": user.email, "user_role": user.role},
                    user.created_at,
                ))

            orders = (
                db.query(Order)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .limit(settings.AUDIT_FALLBACK_ORDER_WINDOW)
                .all()
            )
            for order in orders:
                buyer = order.buyer
                buyer_name = buyer.display_name if buyer else "Unknown User"
                buyer_email = buyer.email if buyer else "unknown@email.com"
                listing_name = order.listing.name if order.listing else None
                records.append(_reconstructed(
                    f"order_{order.id}",
                    order.buyer_id,
                    buyer_name,
                    buyer_email,
                    AuditAction.ORDER_PLACED,
                    ResourceType.ORDER,
                    order.id,
                    {
                        "listing_id": order.listing_id,
                        "listing_name": listing_name,
                        "quantity": order.quantity,
                        "status": order.status,
                    },
                    order.created_at,
                ))
                if order.updated_at and order.created_at and order.updated_at != order.created_at:
                    records.append(_reconstructed(
                        f"order_update_{order.id}",
                        order.buyer_id,
                        buyer_name,
                        buyer_email,
                        AuditAction.ORDER_STATUS_CHANGED,
                        ResourceType.ORDER,
                        order.id,
                        {"listing_id": order.listing_id, "new_status": order.status},
                        order.updated_at,
                    ))

            listings = (
                db.query(Listing)
                .order_by(Listing.created_at.desc(), Listing.id.desc())
                .limit(settings.AUDIT_FALLBACK_LISTING_WINDOW)
                .all()
            )
            for listing in listings:
                seller = listing.seller
                records.append(_reconstructed(
                    f"listing_{listing.id}",
                    listing.seller_id,
                    seller.display_name if seller else "Unknown User",
                    seller.email if seller else SYSTEM_EMAIL,
                    AuditAction.PRODUCT_CREATED,
                    ResourceType.PRODUCT,
                    listing.id,
                    {
                        "product_name": listing.name,
                        "price": listing.price,
                        "category": listing.category,
                        "status": listing.status,
                    },
                    listing.created_at,
                ))
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Failed to reconstruct activity: {exc}")
            return ActivityPage(
                page=page,
                page_size=page_size,
                source=ActivitySource.RECONSTRUCTED,
                error=f"Failed to reconstruct activity: {exc}",
            )

        if not filters.is_empty():
            records = [record for record in records if _matches(record, filters)]
        records = sorted(records, key=lambda record: record.timestamp, reverse=True)

        return ActivityPage(
            records=records[offset:offset + page_size],
            total=len(records),
            page=page,
            page_size=page_size,
            source=ActivitySource.RECONSTRUCTED,
        )

    @staticmethod
    def fetch_activities(
        db: Session,
        filters: Optional[AuditLogFilter] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> ActivityPage:
        """
        Single entry point for the activity feed.

        The persisted trail is authoritative whenever it exists and holds
        records. Reconstruction is used when the store is absent, or when it
        exists but is empty and the query is unfiltered; the two sources are
        never merged.
        """
        filters = filters or AuditLogFilter()

        if audit_store.probe(db) is StoreStatus.ABSENT:
            logger.info("Audit store absent, reconstructing activity from primary tables")
            return ActivityService.reconstruct_from_primary_tables(db, filters, page, page_size)

        result = ActivityService.query_audit_logs(db, filters, page, page_size)
        if result.error is None and result.total == 0 and filters.is_empty():
            logger.info("Audit store empty, reconstructing activity from primary tables")
            return ActivityService.reconstruct_from_primary_tables(db, filters, page, page_size)
        return result


activity_service = ActivityService()
