import json
from datetime import datetime, timedelta, timezone

from admin_audit.schemas.audit import ActivitySource, AuditAction, AuditLogFilter, ResourceType, Severity
from admin_audit.services.activity_service import activity_service

from conftest import add_audit_row, add_user

BASE = datetime(2024, 5, 1, 12, 0, 0)


def _seed(db):
    add_audit_row(db, "user_login", BASE, actor_id="1", actor_name="Alice")
    add_audit_row(db, "failed_login", BASE + timedelta(hours=1), actor_id="2", actor_name="Bob",
                  severity="critical", resource_type="security",
                  details=json.dumps({"email": "bob@example.com"}))
    add_audit_row(db, "user_suspended", BASE + timedelta(hours=2), actor_id="1", actor_name="Alice",
                  severity="high", details=json.dumps({"reason": "100% fraud"}))
    add_audit_row(db, "order_completed", BASE + timedelta(days=1), actor_id="3", actor_name="Carol",
                  resource_type="order")


def test_unfiltered_query_is_newest_first(db):
    _seed(db)
    page = activity_service.query_audit_logs(db)
    assert page.source is ActivitySource.AUDIT_LOG
    assert page.total == 4
    assert [r.action for r in page.records] == [
        "order_completed", "user_suspended", "failed_login", "user_login",
    ]
    assert page.records[2].details == {"email": "bob@example.com"}


def test_filters_are_conjunctive(db):
    _seed(db)
    page = activity_service.query_audit_logs(db, AuditLogFilter(actor_id="1", severity=Severity.HIGH))
    assert [r.action for r in page.records] == ["user_suspended"]

    page = activity_service.query_audit_logs(
        db, AuditLogFilter(action=AuditAction.FAILED_LOGIN, resource_type=ResourceType.USER)
    )
    assert page.total == 0


def test_date_range_is_inclusive(db):
    _seed(db)
    page = activity_service.query_audit_logs(db, AuditLogFilter(
        start_date=BASE + timedelta(hours=1), end_date=BASE + timedelta(hours=2),
    ))
    assert [r.action for r in page.records] == ["user_suspended", "failed_login"]


def test_search_is_case_insensitive_over_actor_and_details(db):
    _seed(db)
    assert activity_service.query_audit_logs(db, AuditLogFilter(search_term="carol")).total == 1
    assert activity_service.query_audit_logs(db, AuditLogFilter(search_term="BOB@EXAMPLE")).total == 1
    assert activity_service.query_audit_logs(db, AuditLogFilter(search_term="100%")).total == 1
    assert activity_service.query_audit_logs(db, AuditLogFilter(search_term="%")).total == 1
    assert activity_service.query_audit_logs(db, AuditLogFilter(search_term="_login")).total == 2


def test_total_is_exact_across_pages(db):
    for i in range(7):
        add_audit_row(db, "user_login", BASE + timedelta(minutes=i), actor_id=str(i))

    first = activity_service.query_audit_logs(db, page=1, page_size=3)
    second = activity_service.query_audit_logs(db, page=2, page_size=3)
    last = activity_service.query_audit_logs(db, page=3, page_size=3)

    assert first.total == second.total == last.total == 7
    assert [len(p.records) for p in (first, second, last)] == [3, 3, 1]
    ids = [r.id for p in (first, second, last) for r in p.records]
    assert len(set(ids)) == 7
    assert [r.actor_id for r in first.records] == ["6", "5", "4"]

    add_audit_row(db, "user_login", BASE + timedelta(hours=5))
    assert activity_service.query_audit_logs(db, page=1, page_size=3).total == 8


def test_query_error_surfaces_on_page(bare_db):
    page = activity_service.query_audit_logs(bare_db)
    assert page.records == []
    assert page.total == 0
    assert page.error is not None


def test_persisted_records_are_never_merged_with_reconstruction(db):
    add_user(db, "old@example.com", created_at=datetime(2023, 1, 1))
    add_audit_row(db, "user_login", BASE)

    page = activity_service.fetch_activities(db)
    assert page.source is ActivitySource.AUDIT_LOG
    assert page.total == 1
    assert page.records[0].action == "user_login"


def test_empty_store_unfiltered_falls_back(db):
    user = add_user(db, "old@example.com", created_at=datetime(2023, 1, 1))

    page = activity_service.fetch_activities(db)
    assert page.source is ActivitySource.RECONSTRUCTED
    assert [r.id for r in page.records] == [f"user_{user.id}"]

    filtered = activity_service.fetch_activities(db, AuditLogFilter(action=AuditAction.USER_REGISTERED))
    assert filtered.source is ActivitySource.AUDIT_LOG
    assert filtered.total == 0


def test_offset_dates_match_on_both_sources(db):
    add_audit_row(db, "user_login", BASE)
    add_user(db, "buyer@example.com", created_at=BASE)
    plus_five = timezone(timedelta(hours=5))
    filters = AuditLogFilter(start_date=datetime(2024, 5, 1, 16, 0, tzinfo=plus_five))

    assert filters.start_date == datetime(2024, 5, 1, 11, 0)
    assert activity_service.query_audit_logs(db, filters).total == 1
    assert activity_service.reconstruct_from_primary_tables(db, filters).total == 1

    later = AuditLogFilter(end_date=datetime(2024, 5, 1, 16, 59, tzinfo=plus_five))
    assert activity_service.query_audit_logs(db, later).total == 0
    assert activity_service.reconstruct_from_primary_tables(db, later).total == 0
