from datetime import datetime, timedelta

from admin_audit.config import settings
from admin_audit.schemas.audit import StoreStatus
from admin_audit.services.audit_stats_service import audit_stats_service
from admin_audit.services.audit_store import AuditStore

from conftest import add_audit_row, add_user


def test_absent_store_yields_zero_statistics(bare_db):
    add_user(bare_db, "u@example.com")
    stats = audit_stats_service.get_statistics(bare_db)
    assert stats.total_events == 0
    assert stats.today_events == 0
    assert stats.critical_events == 0
    assert stats.top_actions == []
    assert stats.top_actors == []


def test_counts_and_rankings(db):
    now = datetime.utcnow()
    long_ago = now - timedelta(days=30)
    add_audit_row(db, "user_login", long_ago, actor_name="Alice")
    add_audit_row(db, "user_login", long_ago, actor_name="Alice")
    add_audit_row(db, "failed_login", now, actor_name="Bob", severity="critical")
    add_audit_row(db, "user_login", now, actor_name="Bob")

    stats = audit_stats_service.get_statistics(db)
    assert stats.total_events == 4
    assert stats.today_events == 2
    assert stats.critical_events == 1
    assert stats.top_actions[0].action == "user_login"
    assert stats.top_actions[0].count == 3
    assert {a.actor_name: a.count for a in stats.top_actors} == {"Alice": 2, "Bob": 2}


def test_rankings_use_the_recent_sample(db, monkeypatch):
    monkeypatch.setattr(settings, "AUDIT_STATS_SAMPLE_SIZE", 2)
    base = datetime(2024, 1, 1)
    for i in range(3):
        add_audit_row(db, "user_login", base + timedelta(minutes=i))
    add_audit_row(db, "order_completed", base + timedelta(hours=1), actor_name="Carol")
    add_audit_row(db, "order_completed", base + timedelta(hours=2), actor_name="Carol")

    stats = audit_stats_service.get_statistics(db)
    assert stats.total_events == 5
    assert [(a.action, a.count) for a in stats.top_actions] == [("order_completed", 2)]
    assert [(a.actor_name, a.count) for a in stats.top_actors] == [("Carol", 2)]


def test_store_errors_yield_zero_statistics(bare_db, monkeypatch):
    monkeypatch.setattr(AuditStore, "probe", staticmethod(lambda db: StoreStatus.READY))
    stats = audit_stats_service.get_statistics(bare_db)
    assert stats.total_events == 0
    assert stats.top_actions == []
