import json
from datetime import datetime

from admin_audit.config import settings
from admin_audit.models.audit import AuditLog
from admin_audit.services.retroactive_audit_service import retroactive_audit_service

from conftest import add_listing, add_order, add_user


def _history(db):
    buyer = add_user(db, "buyer@example.com", created_at=datetime(2024, 1, 1))
    seller = add_user(db, "seller@example.com", created_at=datetime(2024, 1, 2))
    add_user(db, "admin@example.com", role="admin", created_at=datetime(2024, 1, 3))
    listing = add_listing(db, seller, created_at=datetime(2024, 1, 4))
    add_order(db, buyer, listing, created_at=datetime(2024, 1, 5), updated_at=datetime(2024, 1, 7),
              status="completed")
    add_order(db, buyer, listing, created_at=datetime(2024, 1, 6))


def test_activity_summary_counts_rows(bare_db):
    _history(bare_db)
    summary = retroactive_audit_service.get_activity_summary(bare_db)
    assert (summary.users, summary.orders, summary.admins, summary.listings) == (3, 2, 1, 1)
    assert summary.total_activities == 7


def test_backfill_provisions_store_and_marks_entries(bare_db):
    _history(bare_db)
    result = retroactive_audit_service.create_retroactive_logs(bare_db)
    assert result.success

    rows = bare_db.query(AuditLog).filter(AuditLog.action != "system_initialized").all()
    # 3 registrations, 2 orders, 1 status change, 1 admin, 1 listing
    assert result.logs_created == len(rows) == 8
    assert all(json.loads(row.details)["retroactive_entry"] is True for row in rows)
    assert all(row.user_agent == "Retroactive Audit Log" for row in rows)

    update = next(row for row in rows if row.action == "order_updated")
    assert update.actor_id == "system"
    assert update.timestamp == datetime(2024, 1, 7)


def test_backfill_is_not_idempotent(db):
    _history(db)
    first = retroactive_audit_service.create_retroactive_logs(db)
    second = retroactive_audit_service.create_retroactive_logs(db)
    assert db.query(AuditLog).count() == first.logs_created + second.logs_created


def test_backfill_fails_when_store_cannot_be_created(bare_db, monkeypatch):
    monkeypatch.setattr(settings, "AUDIT_AUTO_CREATE_STORE", False)
    _history(bare_db)
    result = retroactive_audit_service.create_retroactive_logs(bare_db)
    assert not result.success
    assert result.logs_created == 0
    assert result.error
