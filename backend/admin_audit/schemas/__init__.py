"""Pydantic schemas for API validation"""

from admin_audit.schemas.user import (
    UserRole,
    UserCreate,
    UserResponse,
    UserLogin,
    TokenResponse,
    AccountPage,
    AdminAccountResponse,
)
from admin_audit.schemas.location import LocationScope
from admin_audit.schemas.suspension import SuspendRequest, SuspensionResponse, LoginCheck
from admin_audit.schemas.audit import (
    AuditAction,
    ResourceType,
    Severity,
    StoreStatus,
    AuditRecord,
    AuditLogFilter,
    ActivityPage,
    AuditStatistics,
)
from admin_audit.schemas.response import APIResponse

__all__ = [
    "UserRole", "UserCreate", "UserResponse", "UserLogin", "TokenResponse", "AccountPage",
    "AdminAccountResponse", "LocationScope",
    "SuspendRequest", "SuspensionResponse", "LoginCheck",
    "AuditAction", "ResourceType", "Severity", "StoreStatus", "AuditRecord", "AuditLogFilter",
    "ActivityPage", "AuditStatistics",
    "APIResponse"
]
