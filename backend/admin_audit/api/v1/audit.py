"""Audit trail routes - activity feed, statistics, setup and export"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from admin_audit.api.deps import actor_from_request, get_current_super_admin
from admin_audit.config import settings
from admin_audit.core.database import get_db
from admin_audit.core.exceptions import AuditStoreUnavailableError, ValidationError
from admin_audit.models.user import User
from admin_audit.schemas.audit import (
    ActivityPage,
    ActivitySummary,
    AuditAction,
    AuditLogFilter,
    AuditSetupStatus,
    AuditStatistics,
    BackfillResult,
    InitializationResult,
    ResourceType,
    Severity,
)
from admin_audit.services.activity_service import activity_service
from admin_audit.services.audit_stats_service import audit_stats_service
from admin_audit.services.audit_store import audit_store
from admin_audit.services.excel_service import excel_service
from admin_audit.services.retroactive_audit_service import retroactive_audit_service

router = APIRouter()


def audit_filter(
    actor_id: Optional[str] = None,
    action: Optional[AuditAction] = None,
    resource_type: Optional[ResourceType] = None,
    severity: Optional[Severity] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = Query(None, max_length=200),
) -> AuditLogFilter:
    """Collect filter query parameters"""
    filters = AuditLogFilter(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        severity=severity,
        start_date=start_date,
        end_date=end_date,
        search_term=search,
    )
    if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
        raise ValidationError("start_date must not be after end_date")
    return filters


@router.get("/", response_model=ActivityPage)
def list_activities(
    filters: AuditLogFilter = Depends(audit_filter),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=settings.AUDIT_MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """
    Filtered activity feed (super admin only)

    Served from the persisted trail; reconstructed from accounts, orders and
    listings while the trail is absent or still empty.
    """
    return activity_service.fetch_activities(db, filters, page, page_size)


@router.get("/statistics", response_model=AuditStatistics)
def get_statistics(
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """Aggregate counts over the persisted trail"""
    return audit_stats_service.get_statistics(db)


@router.get("/setup", response_model=AuditSetupStatus)
def get_setup_status(
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """Whether the audit store exists and when it was initialized"""
    return audit_store.setup_status(db)


@router.post("/setup", response_model=InitializationResult)
def setup_audit_store(
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """
    Create the audit store (idempotent)

    A failed setup leaves the service on the reconstructed feed; the
    returned error says how to apply the schema manually.
    """
    return audit_store.initialize(db)


@router.get("/summary", response_model=ActivitySummary)
def get_activity_summary(
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """Counts of historical rows a backfill would cover"""
    return retroactive_audit_service.get_activity_summary(db)


@router.post("/backfill", response_model=BackfillResult, status_code=status.HTTP_200_OK)
def backfill_audit_logs(
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """Persist audit records for activity that predates the trail"""
    result = retroactive_audit_service.create_retroactive_logs(db)
    if not result.success:
        raise AuditStoreUnavailableError(result.error or "Audit log store is not set up")
    return result


@router.get("/export")
def export_audit_logs(
    request: Request,
    filters: AuditLogFilter = Depends(audit_filter),
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """Download the (filtered) activity feed as an Excel workbook"""
    filepath = excel_service.generate_audit_report(
        db, actor_from_request(current_user, request), filters
    )
    return FileResponse(
        filepath,
        filename=Path(filepath).name,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
