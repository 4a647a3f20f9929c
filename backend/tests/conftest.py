import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from admin_audit.core.database import Base, domain_tables
from admin_audit.models.audit import AuditLog
from admin_audit.models.marketplace import Listing, Order
from admin_audit.models.user import User
from admin_audit.services.audit_service import AuditActor


def _make_session(with_audit_store: bool = True, url: str = "sqlite:///:memory:"):
    engine = create_engine(url)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    if with_audit_store:
        Base.metadata.create_all(bind=engine)
    else:
        Base.metadata.create_all(bind=engine, tables=domain_tables())
    return SessionLocal()


@pytest.fixture
def db():
    """Session whose audit store already exists (and is empty)."""
    session = _make_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def bare_db():
    """Session with the domain schema only; the audit store is absent."""
    session = _make_session(with_audit_store=False)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def file_db(tmp_path):
    """File-backed session without audit store, for tests needing a second connection."""
    session = _make_session(with_audit_store=False, url=f"sqlite:///{tmp_path / 'audit.db'}")
    try:
        yield session
    finally:
        session.close()
        session.get_bind().dispose()


def add_user(db, email, role="user", created_at=None, **fields):
    user = User(
        email=email,
        full_name=fields.pop("full_name", email.split("@")[0].title()),
        role=role,
        is_active=True,
        created_at=created_at or datetime(2024, 1, 1),
        updated_at=created_at or datetime(2024, 1, 1),
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_listing(db, seller, name="Tomatoes", created_at=None, **fields):
    listing = Listing(
        seller_id=seller.id,
        name=name,
        price=fields.pop("price", 2.5),
        category=fields.pop("category", "vegetables"),
        status=fields.pop("status", "pending"),
        created_at=created_at or datetime(2024, 1, 1),
        updated_at=created_at or datetime(2024, 1, 1),
    )
    db.add(listing)
    db.commit()
    db.refresh(listing)
    return listing


def add_order(db, buyer, listing=None, created_at=None, updated_at=None, status="pending"):
    created_at = created_at or datetime(2024, 1, 1)
    order = Order(
        buyer_id=buyer.id,
        seller_id=listing.seller_id if listing else None,
        listing_id=listing.id if listing else None,
        quantity=1,
        status=status,
        created_at=created_at,
        updated_at=updated_at or created_at,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def add_audit_row(db, action, timestamp, actor_id="1", actor_name="Alice", severity="medium",
                  resource_type="user", details="{}"):
    row = AuditLog(
        actor_id=actor_id,
        actor_name=actor_name,
        actor_email=f"{actor_name.lower()}@example.com",
        action=action,
        resource_type=resource_type,
        details=details,
        ip_address="127.0.0.1",
        user_agent="pytest",
        severity=severity,
        timestamp=timestamp,
    )
    db.add(row)
    db.commit()
    return row


def fake_request(host="127.0.0.1", headers=None):
    return SimpleNamespace(client=SimpleNamespace(host=host), headers=headers or {"user-agent": "pytest"})


@pytest.fixture
def actor():
    return AuditActor(id="99", name="Root Admin", email="root@example.com",
                      ip_address="10.0.0.1", user_agent="pytest")
