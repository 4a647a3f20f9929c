import pytest
from sqlalchemy.exc import OperationalError

from admin_audit.core.exceptions import BusinessLogicError, LocationAccessDeniedError
from admin_audit.models.audit import AuditLog
from admin_audit.schemas.location import LocationScope
from admin_audit.schemas.user import UserRole
from admin_audit.services.access_scope_service import AccessScopeService, access_scope_service

from conftest import add_audit_row, add_order, add_user


def _city_accounts(db):
    return {
        "toronto": add_user(db, "t@example.com", city="Toronto", country="Canada"),
        "north": add_user(db, "n@example.com", city="North Toronto", country="Canada"),
        "lower": add_user(db, "l@example.com", city="toronto", country="Canada"),
        "ottawa": add_user(db, "o@example.com", city="Ottawa", country="Canada"),
        "us": add_user(db, "u@example.com", city="Toronto", country="USA"),
    }


def test_city_scope_matches_substrings_case_insensitively(db):
    accounts = _city_accounts(db)
    visible = access_scope_service.resolve_visible_account_ids(db, LocationScope(city="Toronto"))
    assert set(visible) == {accounts[k].id for k in ("toronto", "north", "lower", "us")}


def test_scope_fields_are_conjunctive(db):
    accounts = _city_accounts(db)
    visible = access_scope_service.resolve_visible_account_ids(
        db, LocationScope(country="Canada", city="Toronto")
    )
    assert accounts["us"].id not in visible
    assert accounts["ottawa"].id not in visible
    assert len(visible) == 3


def test_global_scope_sees_every_account(db):
    accounts = _city_accounts(db)
    assert set(access_scope_service.resolve_visible_account_ids(db, None)) == {u.id for u in accounts.values()}


def test_street_only_scope_sees_nothing(db):
    _city_accounts(db)
    assert access_scope_service.resolve_visible_account_ids(db, LocationScope(streets=["King St"])) == []


def test_wildcards_in_scope_are_literal(db):
    _city_accounts(db)
    assert access_scope_service.resolve_visible_account_ids(db, LocationScope(city="%")) == []


def test_super_admin_scope_is_always_global(db):
    boss = add_user(db, "boss@example.com", role="super_admin", admin_assigned_location={"city": "Ottawa"})
    assert access_scope_service.get_admin_scope(db, boss.id) is None


def test_list_visible_accounts_narrows_before_filtering(db):
    accounts = _city_accounts(db)
    admin = add_user(db, "admin@example.com", role="admin", city="Toronto",
                     admin_assigned_location={"city": "Toronto", "country": "Canada"})

    page = access_scope_service.list_visible_accounts(db, admin)
    emails = {item.email for item in page.items}
    assert accounts["ottawa"].email not in emails
    assert accounts["us"].email not in emails
    assert accounts["north"].email in emails
    assert page.total == len(page.items)

    searched = access_scope_service.list_visible_accounts(db, admin, search="ottawa")
    assert searched.total == 0


def test_list_visible_accounts_street_only_admin_gets_empty_page(db):
    _city_accounts(db)
    admin = add_user(db, "streets@example.com", role="admin", admin_assigned_location={"streets": ["King St"]})
    page = access_scope_service.list_visible_accounts(db, admin)
    assert page.items == []
    assert page.total == 0
    assert page.error is None


def test_list_visible_accounts_reports_store_errors(db, monkeypatch):
    admin = add_user(db, "admin@example.com", role="admin", admin_assigned_location={"city": "Toronto"})

    def broken(db, scope):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(AccessScopeService, "resolve_visible_account_ids", staticmethod(broken))
    page = access_scope_service.list_visible_accounts(db, admin)
    assert page.items == []
    assert page.error is not None


def test_ensure_can_manage(db):
    accounts = _city_accounts(db)
    admin = add_user(db, "admin@example.com", role="admin", admin_assigned_location={"city": "Toronto"})
    access_scope_service.ensure_can_manage(admin, accounts["north"])
    with pytest.raises(LocationAccessDeniedError):
        access_scope_service.ensure_can_manage(admin, accounts["ottawa"])

    street_admin = add_user(db, "street@example.com", role="admin", admin_assigned_location={"streets": ["X"]})
    with pytest.raises(LocationAccessDeniedError):
        access_scope_service.ensure_can_manage(street_admin, accounts["toronto"])


def test_can_access_location(db):
    admin = add_user(db, "admin@example.com", role="admin", admin_assigned_location={"city": "Toronto"})
    boss = add_user(db, "boss@example.com", role="super_admin")
    plain = add_user(db, "plain@example.com")

    assert access_scope_service.can_access_location(db, admin.id, {"city": "North Toronto"})
    assert not access_scope_service.can_access_location(db, admin.id, {"city": "Ottawa"})
    assert access_scope_service.can_access_location(db, boss.id, {"city": "Ottawa"})
    assert not access_scope_service.can_access_location(db, plain.id, {"city": "Toronto"})


def test_promote_and_demote_round_trip(db, actor):
    user = add_user(db, "promote@example.com")
    promoted = access_scope_service.promote_to_admin(db, actor, user.id, LocationScope(city="Toronto"))
    assert promoted.role == "admin"
    assert promoted.admin_assigned_location == {"city": "Toronto", "streets": []}

    demoted = access_scope_service.demote_admin(db, actor, user.id)
    assert demoted.role == "user"
    assert demoted.admin_assigned_location is None

    actions = [row.action for row in db.query(AuditLog).order_by(AuditLog.timestamp).all()]
    assert actions == ["admin_assigned", "user_role_changed"]
    severities = {row.severity for row in db.query(AuditLog).all()}
    assert severities == {"high"}


def test_promote_rejects_non_users(db, actor):
    admin = add_user(db, "admin@example.com", role="admin")
    with pytest.raises(BusinessLogicError):
        access_scope_service.promote_to_admin(db, actor, admin.id)


def test_set_admin_location_records_old_and_new(db, actor):
    admin = add_user(db, "admin@example.com", role="admin", admin_assigned_location={"city": "Ottawa"})
    access_scope_service.set_admin_location(db, actor, admin.id, LocationScope(city="Toronto"))
    assert access_scope_service.get_admin_scope(db, admin.id).city == "Toronto"

    row = db.query(AuditLog).one()
    assert row.action == "admin_location_updated"
    assert '"Ottawa"' in row.details


def test_change_role_clears_location_and_protects_super_admin(db, actor):
    admin = add_user(db, "admin@example.com", role="admin", admin_assigned_location={"city": "Toronto"})
    boss = add_user(db, "boss@example.com", role="super_admin")

    changed = access_scope_service.change_role(db, actor, admin.id, UserRole.USER)
    assert changed.admin_assigned_location is None

    with pytest.raises(BusinessLogicError):
        access_scope_service.change_role(db, actor, boss.id, UserRole.USER)
    with pytest.raises(BusinessLogicError):
        access_scope_service.change_role(db, actor, admin.id, UserRole.USER)


def test_list_admins_puts_super_admins_first(db):
    from datetime import datetime

    add_user(db, "old-admin@example.com", role="admin", created_at=datetime(2024, 1, 1))
    add_user(db, "new-admin@example.com", role="admin", created_at=datetime(2024, 6, 1),
             admin_assigned_location={"city": "Toronto"})
    add_user(db, "boss@example.com", role="super_admin", created_at=datetime(2023, 1, 1))
    add_user(db, "plain@example.com")

    admins = access_scope_service.list_admins(db)
    assert [a.email for a in admins] == ["boss@example.com", "new-admin@example.com", "old-admin@example.com"]
    assert admins[0].location_display == "Global Access"
    assert admins[1].location_display == "Toronto"
    assert all(a.status == "active" for a in admins)


def test_admin_activity_stats(db):
    from datetime import datetime

    accounts = _city_accounts(db)
    admin = add_user(db, "admin@example.com", role="admin", admin_assigned_location={"city": "Ottawa"})
    add_order(db, accounts["ottawa"])
    add_order(db, accounts["toronto"])
    add_audit_row(db, "user_suspended", datetime(2024, 3, 1), actor_id=str(admin.id))

    stats = access_scope_service.get_admin_activity_stats(db, admin.id)
    assert stats.managed_users == 1
    assert stats.managed_orders == 1
    assert stats.last_activity == datetime(2024, 3, 1)


def test_account_search_treats_wildcards_literally(db):
    boss = add_user(db, "boss@example.com", role="super_admin")
    add_user(db, "plain@example.com", full_name="Plain Account")
    add_user(db, "percent@example.com", full_name="100% Organic")

    assert access_scope_service.list_visible_accounts(db, boss, search="%").total == 1
    assert access_scope_service.list_visible_accounts(db, boss, search="_").total == 0
    assert access_scope_service.list_visible_accounts(db, boss, search="PLAIN").total == 1
