"""Suspension schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SuspendRequest(BaseModel):
    reason: str = Field("Suspended by admin", min_length=1, max_length=500)


class SuspensionResponse(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    suspended_by: Optional[int] = None
    suspended_by_name: Optional[str] = None
    reason: str
    is_active: bool
    suspended_at: Optional[datetime] = None


class LoginCheck(BaseModel):
    """Result of the suspension gate"""
    allowed: bool
    reason: Optional[str] = None
    warning: Optional[str] = None
