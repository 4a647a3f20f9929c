"""Database models"""

from admin_audit.models.user import User
from admin_audit.models.marketplace import Listing, Order
from admin_audit.models.suspension import SuspensionRecord
from admin_audit.models.audit import AuditLog

__all__ = ["User", "Listing", "Order", "SuspensionRecord", "AuditLog"]
