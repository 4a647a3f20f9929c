"""Audit trail schemas - canonical record, filters, taxonomy"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class AuditAction(str, Enum):
    """Closed action taxonomy shared with every compatible client"""

    # User management
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    USER_ROLE_CHANGED = "user_role_changed"
    USER_SUSPENDED = "user_suspended"
    USER_ACTIVATED = "user_activated"
    PASSWORD_CHANGED = "password_changed"

    # Admin management
    ADMIN_ASSIGNED = "admin_assigned"
    ADMIN_LOCATION_UPDATED = "admin_location_updated"
    ADMIN_PERMISSIONS_CHANGED = "admin_permissions_changed"

    # Product management
    PRODUCT_CREATED = "product_created"
    PRODUCT_UPDATED = "product_updated"
    PRODUCT_DELETED = "product_deleted"
    PRODUCT_APPROVED = "product_approved"
    PRODUCT_REJECTED = "product_rejected"

    # Order management
    ORDER_CREATED = "order_created"
    ORDER_UPDATED = "order_updated"
    ORDER_CANCELLED = "order_cancelled"
    ORDER_COMPLETED = "order_completed"

    # System management
    COVER_IMAGE_UPDATED = "cover_image_updated"
    SETTINGS_UPDATED = "settings_updated"
    DATA_EXPORTED = "data_exported"
    SYSTEM_BACKUP = "system_backup"

    # Security events
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    FAILED_LOGIN = "failed_login"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    DATA_BREACH_ATTEMPT = "data_breach_attempt"

    # Store lifecycle and reconstructed activity
    SYSTEM_INITIALIZED = "system_initialized"
    USER_REGISTERED = "user_registered"
    ORDER_PLACED = "order_placed"
    ORDER_STATUS_CHANGED = "order_status_changed"


class ResourceType(str, Enum):
    """Resource taxonomy"""
    USER = "user"
    ADMIN = "admin"
    PRODUCT = "product"
    ORDER = "order"
    REVIEW = "review"
    FEEDBACK = "feedback"
    COVER_IMAGE = "cover_image"
    SYSTEM = "system"
    SECURITY = "security"


class Severity(str, Enum):
    """Audit severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class StoreStatus(str, Enum):
    """Outcome of probing the audit store"""
    READY = "ready"
    ABSENT = "absent"


class ActivitySource(str, Enum):
    """Where an activity page was read from"""
    AUDIT_LOG = "audit_log"
    RECONSTRUCTED = "reconstructed"


class AuditRecord(BaseModel):
    """Canonical audit record, persisted or reconstructed"""
    id: str
    actor_id: str
    actor_name: str
    actor_email: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    severity: Severity
    timestamp: datetime


class AuditLogFilter(BaseModel):
    """Conjunctive audit query; absent fields are unconstrained"""
    actor_id: Optional[str] = None
    action: Optional[AuditAction] = None
    resource_type: Optional[ResourceType] = None
    severity: Optional[Severity] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search_term: Optional[str] = None

    @field_validator("actor_id", "search_term", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("start_date", "end_date")
    @classmethod
    def _to_naive_utc(cls, v):
        # Stored timestamps are naive UTC
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    def is_empty(self) -> bool:
        return not any(value is not None for value in self.model_dump().values())


class ActivityPage(BaseModel):
    """One page of activity; ``error`` distinguishes failure from no data"""
    records: List[AuditRecord] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 50
    source: ActivitySource = ActivitySource.AUDIT_LOG
    error: Optional[str] = None


class ActionCount(BaseModel):
    action: str
    count: int


class ActorCount(BaseModel):
    actor_name: str
    count: int


class AuditStatistics(BaseModel):
    """Aggregate counts over the persisted store"""
    total_events: int = 0
    today_events: int = 0
    critical_events: int = 0
    top_actions: List[ActionCount] = Field(default_factory=list)
    top_actors: List[ActorCount] = Field(default_factory=list)


class InitializationResult(BaseModel):
    """Outcome of audit store setup"""
    success: bool
    created: bool = False
    error: Optional[str] = None


class AuditSetupStatus(BaseModel):
    exists: bool
    initialized_at: Optional[datetime] = None


class ActivitySummary(BaseModel):
    """Row counts that retroactive backfill can turn into audit records"""
    users: int = 0
    orders: int = 0
    admins: int = 0
    listings: int = 0
    total_activities: int = 0


class BackfillResult(BaseModel):
    success: bool
    logs_created: int = 0
    error: Optional[str] = None
