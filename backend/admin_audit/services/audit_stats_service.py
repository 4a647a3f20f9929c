"""Audit statistics - aggregate counts over the persisted trail"""

import logging
from collections import Counter
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admin_audit.config import settings
from admin_audit.models.audit import AuditLog
from admin_audit.schemas.audit import ActionCount, ActorCount, AuditStatistics, Severity, StoreStatus
from admin_audit.services.audit_store import audit_store

logger = logging.getLogger(__name__)

TOP_N = 5


class AuditStatsService:
    """Statistics never consult reconstructed activity."""

    @staticmethod
    def get_statistics(db: Session) -> AuditStatistics:
        """
        Compute dashboard statistics.

        Top actions and actors are ranked over the most recent
        ``AUDIT_STATS_SAMPLE_SIZE`` records. Absent store or any store error
        yields all-zero statistics.
        """
        if audit_store.probe(db) is StoreStatus.ABSENT:
            return AuditStatistics()

        today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        try:
            total = db.query(AuditLog).count()
            today_count = db.query(AuditLog).filter(AuditLog.timestamp >= today).count()
            critical = db.query(AuditLog).filter(AuditLog.severity == Severity.CRITICAL.value).count()
            sample = (
                db.query(AuditLog.action, AuditLog.actor_name)
                .order_by(AuditLog.timestamp.desc())
                .limit(settings.AUDIT_STATS_SAMPLE_SIZE)
                .all()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Failed to compute audit statistics: {exc}")
            return AuditStatistics()

        actions = Counter(action for action, _ in sample)
        actors = Counter(actor for _, actor in sample)

        return AuditStatistics(
            total_events=total,
            today_events=today_count,
            critical_events=critical,
            top_actions=[ActionCount(action=a, count=c) for a, c in actions.most_common(TOP_N)],
            top_actors=[ActorCount(actor_name=a, count=c) for a, c in actors.most_common(TOP_N)],
        )


audit_stats_service = AuditStatsService()
