"""Excel export service - audit trail reports"""

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill
from sqlalchemy.orm import Session
from datetime import datetime
from pathlib import Path
from typing import List, Optional
import json

from admin_audit.config import settings
from admin_audit.schemas.audit import AuditAction, AuditLogFilter, AuditRecord
from admin_audit.services.activity_service import activity_service
from admin_audit.services.audit_service import AuditActor, audit_service
from admin_audit.services.audit_stats_service import audit_stats_service
import logging

logger = logging.getLogger(__name__)

MAX_EXPORT_ROWS = 10000


def _style_header(ws, color: str):
    header_fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")

    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")


def _autosize(ws):
    for column in ws.columns:
        column_letter = column[0].column_letter
        max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)


class ExcelService:
    """Service for generating Excel reports"""

    @staticmethod
    def collect_records(db: Session, filters: Optional[AuditLogFilter] = None) -> List[AuditRecord]:
        """Walk the activity feed page by page, up to MAX_EXPORT_ROWS records."""
        records: List[AuditRecord] = []
        page = 1
        page_size = settings.AUDIT_MAX_PAGE_SIZE
        while len(records) < MAX_EXPORT_ROWS:
            result = activity_service.fetch_activities(db, filters, page, page_size)
            if result.error:
                logger.error(f"Audit export stopped early: {result.error}")
                break
            records.extend(result.records)
            if not result.records or page * page_size >= result.total:
                break
            page += 1
        return records[:MAX_EXPORT_ROWS]

    @staticmethod
    def generate_audit_report(
        db: Session,
        actor: Optional[AuditActor],
        filters: Optional[AuditLogFilter] = None
    ) -> str:
        """
        Generate audit trail report

        Args:
            db: Database session
            actor: Who requested the export; audited as ``data_exported``
            filters: Optional filter applied to the exported records

        Returns:
            Path to generated Excel file
        """
        records = ExcelService.collect_records(db, filters)

        wb = Workbook()
        wb.remove(wb.active)
        ExcelService._create_audit_sheet(wb, records)
        ExcelService._create_statistics_sheet(wb, db)

        exports_dir = Path(settings.get_exports_dir()) / "audit"
        exports_dir.mkdir(parents=True, exist_ok=True)

        filename = f"audit_logs_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
        filepath = exports_dir / filename

        wb.save(filepath)
        logger.info(f"Generated audit report: {filepath} ({len(records)} records)")

        audit_service.log_system_event(db, actor, AuditAction.DATA_EXPORTED, {
            "export_type": "audit_logs",
            "record_count": len(records),
            "filename": filename,
            "filters": filters.model_dump(exclude_none=True, mode="json") if filters else {},
        })
        return str(filepath)

    @staticmethod
    def _create_audit_sheet(wb: Workbook, records: List[AuditRecord]):
        """Create audit records sheet"""
        ws = wb.create_sheet("Audit Log")

        headers = ["Timestamp", "Actor", "Email", "Action", "Resource Type",
                   "Resource ID", "Severity", "IP Address", "Details"]
        ws.append(headers)
        _style_header(ws, "4472C4")

        for record in records:
            ws.append([
                record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                record.actor_name,
                record.actor_email,
                record.action,
                record.resource_type,
                record.resource_id or "",
                record.severity.value,
                record.ip_address or "",
                json.dumps(record.details, default=str),
            ])

        _autosize(ws)

    @staticmethod
    def _create_statistics_sheet(wb: Workbook, db: Session):
        """Create statistics sheet"""
        ws = wb.create_sheet("Statistics")

        ws.append(["Marketplace Admin - Audit Statistics"])
        ws.append([])
        ws["A1"].font = Font(bold=True, size=14)

        stats = audit_stats_service.get_statistics(db)
        ws.append(["General Statistics"])
        ws.append(["Total Events", stats.total_events])
        ws.append(["Events Today", stats.today_events])
        ws.append(["Critical Events", stats.critical_events])
        ws.append([])

        ws.append(["Top Actions"])
        for item in stats.top_actions:
            ws.append([item.action, item.count])
        ws.append([])

        ws.append(["Top Actors"])
        for item in stats.top_actors:
            ws.append([item.actor_name, item.count])

        for row in ws.iter_rows(min_col=1, max_col=1):
            cell = row[0]
            if cell.value in ("General Statistics", "Top Actions", "Top Actors"):
                cell.font = Font(bold=True)


# Singleton instance
excel_service = ExcelService()
