import json
from datetime import datetime
from pathlib import Path

import pytest
from openpyxl import load_workbook

from admin_audit.api.v1 import admin as admin_routes
from admin_audit.api.v1 import audit as audit_routes
from admin_audit.api.v1 import auth as auth_routes
from admin_audit.api.v1 import orders as order_routes
from admin_audit.api.v1 import products as product_routes
from admin_audit.api.v1 import users as user_routes
from admin_audit.config import settings
from admin_audit.core.exceptions import (
    AccountSuspendedError,
    AuthorizationError,
    BusinessLogicError,
    DuplicateEmailError,
    InvalidCredentialsError,
    LocationAccessDeniedError,
    ValidationError,
)
from admin_audit.core.security import decode_access_token, get_password_hash
from admin_audit.models.audit import AuditLog
from admin_audit.schemas.audit import AuditLogFilter
from admin_audit.schemas.location import LocationScope
from admin_audit.schemas.marketplace import OrderStatusUpdate, RejectRequest
from admin_audit.schemas.suspension import SuspendRequest
from admin_audit.schemas.user import PromoteAdminRequest, RoleChangeRequest, UserCreate, UserLogin

from conftest import add_listing, add_order, add_user, fake_request


def _actions(db):
    return [row.action for row in db.query(AuditLog).order_by(AuditLog.timestamp, AuditLog.id).all()]


def _regional_setup(db):
    admin = add_user(db, "toronto-admin@example.com", role="admin",
                     admin_assigned_location={"country": "Canada", "city": "Toronto"})
    local = add_user(db, "local@example.com", country="Canada", city="North Toronto")
    remote = add_user(db, "remote@example.com", country="Canada", city="Ottawa")
    return admin, local, remote


def test_login_success_failure_and_suspension(db):
    user = add_user(db, "seller@example.com", password_hash=get_password_hash("correct-horse"))
    request = fake_request(host="198.51.100.4")

    with pytest.raises(InvalidCredentialsError):
        auth_routes.login(UserLogin(email="seller@example.com", password="wrong-pass"), request, db)
    with pytest.raises(InvalidCredentialsError):
        auth_routes.login(UserLogin(email="ghost@example.com", password="whatever"), request, db)

    assert user.last_login is None

    token = auth_routes.login(UserLogin(email="seller@example.com", password="correct-horse"), request, db)
    assert decode_access_token(token.access_token)["sub"] == str(user.id)
    assert user.last_login is not None

    failed = db.query(AuditLog).filter(AuditLog.action == "failed_login").one()
    assert failed.actor_id == str(user.id)
    assert failed.severity == "critical"
    assert failed.ip_address == "198.51.100.4"
    assert _actions(db) == ["failed_login", "user_login"]

    boss = add_user(db, "boss@example.com", role="super_admin")
    user_routes.suspend_user(user.id, request, SuspendRequest(reason="Spam"), boss, db)
    with pytest.raises(AccountSuspendedError) as exc_info:
        auth_routes.login(UserLogin(email="seller@example.com", password="correct-horse"), request, db)
    assert "Reason: Spam." in exc_info.value.message


def test_refused_login_leaves_last_login_untouched(db):
    user = add_user(db, "held@example.com", password_hash=get_password_hash("correct-horse"))
    boss = add_user(db, "boss@example.com", role="super_admin")
    request = fake_request()
    user_routes.suspend_user(user.id, request, SuspendRequest(reason="Chargebacks"), boss, db)

    with pytest.raises(AccountSuspendedError):
        auth_routes.login(UserLogin(email="held@example.com", password="correct-horse"), request, db)

    db.refresh(user)
    assert user.last_login is None
    assert "user_login" not in _actions(db)


def test_duplicate_email_is_rejected_with_400(db):
    boss = add_user(db, "boss@example.com", role="super_admin")
    add_user(db, "taken@example.com")

    with pytest.raises(DuplicateEmailError) as exc_info:
        user_routes.create_user(UserCreate(email="taken@example.com"), fake_request(), boss, db)
    assert exc_info.value.status_code == 400
    assert "taken@example.com" in exc_info.value.message


def test_regional_admin_lists_only_local_accounts(db):
    admin, local, remote = _regional_setup(db)
    page = user_routes.list_users(role=None, search=None, page=1, page_size=50, current_user=admin, db=db)
    emails = {item.email for item in page.items}
    assert local.email in emails
    assert remote.email not in emails


def test_regional_admin_cannot_suspend_outside_scope(db):
    admin, local, remote = _regional_setup(db)
    request = fake_request()

    with pytest.raises(LocationAccessDeniedError):
        user_routes.suspend_user(remote.id, request, None, admin, db)

    response = user_routes.suspend_user(local.id, request, None, admin, db)
    assert response.reason == "Suspended by admin"
    assert response.suspended_by == admin.id

    suspended = user_routes.list_suspended_users(current_user=admin, db=db)
    assert [s.user_id for s in suspended] == [local.id]

    result = user_routes.unsuspend_user(local.id, request, admin, db)
    assert result["closed_suspensions"] == 1
    assert _actions(db) == ["user_suspended", "user_activated"]


def test_regional_admin_creates_accounts_inside_scope_only(db):
    admin, _, _ = _regional_setup(db)
    request = fake_request()

    with pytest.raises(LocationAccessDeniedError):
        user_routes.create_user(UserCreate(email="far@example.com", country="Canada", city="Ottawa"),
                                request, admin, db)

    created = user_routes.create_user(
        UserCreate(email="near@example.com", country="Canada", city="Toronto"), request, admin, db
    )
    assert created.city == "Toronto"
    assert _actions(db) == ["user_created"]


def test_role_changes_by_super_admin(db):
    boss = add_user(db, "boss@example.com", role="super_admin")
    user = add_user(db, "u@example.com")
    request = fake_request()

    with pytest.raises(AuthorizationError):
        user_routes.change_user_role(boss.id, RoleChangeRequest(role="user"), request, boss, db)

    promoted = user_routes.change_user_role(
        user.id, RoleChangeRequest(role="admin", location={"state": "Ontario"}), request, boss, db
    )
    assert promoted.role == "admin"

    scope = admin_routes.get_my_scope(current_user=user)
    assert scope.data["location"] == {"district": "Ontario", "streets": []}
    assert scope.data["display"] == "Ontario District"
    assert scope.data["restricted"] is True


def test_admin_lifecycle_routes(db):
    boss = add_user(db, "boss@example.com", role="super_admin")
    user = add_user(db, "u@example.com", country="Canada", city="Toronto")
    request = fake_request()

    admin_routes.promote_admin(user.id, request, None, boss, db)
    updated = admin_routes.update_admin_location(
        user.id, PromoteAdminRequest(location=LocationScope(city="Toronto")), request, boss, db
    )
    assert updated.location_display == "Toronto"

    admins = admin_routes.list_admins(current_user=boss, db=db)
    assert [a.email for a in admins] == ["boss@example.com", "u@example.com"]

    stats = admin_routes.get_admin_stats(user.id, current_user=boss, db=db)
    assert stats.managed_users == 1

    demoted = admin_routes.demote_admin(user.id, request, boss, db)
    assert demoted.role == "user"
    assert _actions(db) == ["admin_assigned", "admin_location_updated", "user_role_changed"]


def test_order_status_changes_are_scoped_and_audited(db):
    admin, local, remote = _regional_setup(db)
    seller = add_user(db, "seller@example.com", country="Canada", city="Toronto")
    listing = add_listing(db, seller)
    local_order = add_order(db, local, listing)
    remote_order = add_order(db, remote, listing)
    request = fake_request(host="10.1.1.1")

    assert [o.id for o in order_routes.list_orders(status=None, limit=100, current_user=admin, db=db)] == [
        local_order.id
    ]
    with pytest.raises(LocationAccessDeniedError):
        order_routes.update_order_status(remote_order.id, OrderStatusUpdate(status="completed"), request, admin, db)

    order = order_routes.update_order_status(
        local_order.id, OrderStatusUpdate(status="completed"), request, admin, db
    )
    assert order.status == "completed"
    with pytest.raises(BusinessLogicError):
        order_routes.update_order_status(local_order.id, OrderStatusUpdate(status="cancelled"), request, admin, db)

    row = db.query(AuditLog).one()
    assert row.action == "order_completed"
    assert row.resource_type == "order"
    assert row.ip_address == "10.1.1.1"
    assert json.loads(row.details)["old_status"] == "pending"


def test_listing_moderation(db):
    admin, local, _ = _regional_setup(db)
    listing = add_listing(db, local)
    other = add_listing(db, local, name="Apples")
    request = fake_request()

    assert product_routes.approve_product(listing.id, request, admin, db).status == "approved"
    rejected = product_routes.reject_product(other.id, request, RejectRequest(reason="Blurry photos"), admin, db)
    assert rejected.status == "rejected"
    assert product_routes.delete_product(listing.id, request, admin, db).status == "deleted"

    remaining = product_routes.list_products(status=None, limit=100, current_user=admin, db=db)
    assert [item.id for item in remaining] == [other.id]
    assert _actions(db) == ["product_approved", "product_rejected", "product_deleted"]
    assert {row.severity for row in db.query(AuditLog).all()} == {"low"}


def test_audit_feed_routes(db):
    boss = add_user(db, "boss@example.com", role="super_admin")
    add_user(db, "u@example.com")

    page = audit_routes.list_activities(filters=AuditLogFilter(), page=1, page_size=50, current_user=boss, db=db)
    assert page.source.value == "reconstructed"

    assert audit_routes.setup_audit_store(current_user=boss, db=db).success
    assert audit_routes.get_setup_status(current_user=boss, db=db).exists
    stats = audit_routes.get_statistics(current_user=boss, db=db)
    assert stats.total_events == 1

    with pytest.raises(ValidationError):
        audit_routes.audit_filter(start_date=datetime(2024, 2, 1), end_date=datetime(2024, 1, 1), search=None)


def test_backfill_route(db):
    boss = add_user(db, "boss@example.com", role="super_admin")
    summary = audit_routes.get_activity_summary(current_user=boss, db=db)
    assert summary.users == 1 and summary.admins == 1

    result = audit_routes.backfill_audit_logs(current_user=boss, db=db)
    assert result.logs_created == 2


def test_export_writes_workbook_and_is_audited(db, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "EXPORTS_DIR", str(tmp_path))
    boss = add_user(db, "boss@example.com", role="super_admin")
    add_user(db, "u@example.com")

    response = audit_routes.export_audit_logs(fake_request(), AuditLogFilter(), boss, db)
    path = Path(response.path)
    assert path.exists()
    assert path.parent == tmp_path / "audit"

    wb = load_workbook(path)
    assert wb.sheetnames == ["Audit Log", "Statistics"]
    assert wb["Audit Log"].max_row == 3

    row = db.query(AuditLog).filter(AuditLog.action == "data_exported").one()
    assert json.loads(row.details)["record_count"] == 2
