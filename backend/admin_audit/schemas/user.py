"""User and admin account schemas"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum

from admin_audit.schemas.location import LocationScope


class UserRole(str, Enum):
    """User role enumeration"""
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class UserLogin(BaseModel):
    """User login schema"""
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=3)


class UserCreate(BaseModel):
    """User creation schema"""
    email: str = Field(..., min_length=3, max_length=255, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    full_name: Optional[str] = Field(None, max_length=120)
    password: Optional[str] = Field(None, min_length=8)
    country: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    district: Optional[str] = Field(None, max_length=100)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserResponse(BaseModel):
    """User response schema"""
    id: int
    full_name: Optional[str]
    email: str
    role: str
    country: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime]
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class AccountPage(BaseModel):
    """Account listing page; ``error`` distinguishes failure from no data"""
    items: List[UserResponse] = Field(default_factory=list)
    total: int = 0
    error: Optional[str] = None


class RoleChangeRequest(BaseModel):
    role: UserRole
    location: Optional[LocationScope] = None


class PromoteAdminRequest(BaseModel):
    location: Optional[LocationScope] = None


class AdminAccountResponse(BaseModel):
    """Admin account with its resolved scope"""
    id: int
    name: str
    email: str
    role: UserRole
    assigned_location: Optional[LocationScope] = None
    location_display: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AdminActivityStats(BaseModel):
    managed_users: int = 0
    managed_orders: int = 0
    last_activity: Optional[datetime] = None


class TokenResponse(BaseModel):
    """JWT token response"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
