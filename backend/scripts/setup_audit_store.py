"""
Create the audit log store and write its initialization record.
Safe to run repeatedly: python scripts/setup_audit_store.py

Use this when the API runs with AUDIT_AUTO_CREATE_STORE=false, or when its
database role may not create tables. Until the store exists the activity
feed is reconstructed from accounts, orders and listings.
"""

import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from admin_audit.core.database import SessionLocal
from admin_audit.services.audit_store import audit_store


def main():
    db = SessionLocal()
    try:
        before = audit_store.setup_status(db)
        result = audit_store.initialize(db, auto_create=True)
        if not result.success:
            print(f"Audit store setup failed: {result.error}")
            sys.exit(1)
        after = audit_store.setup_status(db)
    finally:
        db.close()

    if before.exists:
        print("Audit store already existed; initialization record added.")
    else:
        print("Audit store created.")
    print(f"Initialized at: {after.initialized_at}")


if __name__ == "__main__":
    main()
