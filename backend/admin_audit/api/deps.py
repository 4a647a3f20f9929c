"""API dependencies - authentication, authorization and audit attribution"""

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from admin_audit.core.database import get_db
from admin_audit.core.security import decode_access_token
from admin_audit.core.exceptions import AccountSuspendedError, AuthenticationError, AuthorizationError
from admin_audit.models.user import User
from admin_audit.schemas.user import UserRole
from admin_audit.services.audit_service import AuditActor, UNKNOWN
from admin_audit.services.suspension_service import suspension_service
from admin_audit.services.user_service import user_service

# HTTP Bearer token scheme
security = HTTPBearer()


def client_ip(request: Optional[Request]) -> str:
    """Best-effort client address; proxies first, then the socket peer."""
    if request is None:
        return UNKNOWN
    headers = getattr(request, "headers", None) or {}
    forwarded = headers.get("x-forwarded-for") or headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip() or UNKNOWN
    client = getattr(request, "client", None)
    return getattr(client, "host", None) or UNKNOWN


def client_user_agent(request: Optional[Request]) -> str:
    if request is None:
        return UNKNOWN
    headers = getattr(request, "headers", None) or {}
    return headers.get("user-agent") or headers.get("User-Agent") or UNKNOWN


def actor_from_request(user: Optional[User], request: Optional[Request]) -> Optional[AuditActor]:
    """
    Audit actor for the calling account

    Args:
        user: Authenticated account, or None for anonymous callers
        request: Incoming request used for address and user agent

    Returns:
        AuditActor, or None when there is nobody to attribute events to
    """
    if user is None:
        return None
    return AuditActor.from_user(user, client_ip(request), client_user_agent(request))


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from JWT token

    The suspension gate runs on every call, so a suspension takes effect
    mid-session.

    Args:
        credentials: HTTP Bearer credentials
        db: Database session

    Returns:
        Current user

    Raises:
        AuthenticationError: If token is invalid, user not found or suspended
    """
    token = credentials.credentials

    # Decode token
    payload = decode_access_token(token)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    # Get user ID from token
    user_id: Optional[str] = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    user = user_service.get_user_by_id(db, int(user_id))
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is disabled")

    check = suspension_service.validate_user_session(db, user)
    if not check.allowed:
        raise AccountSuspendedError(check.reason)

    return user


async def get_current_admin_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get current admin user (regional admin or super admin)

    Raises:
        AuthorizationError: If user is not an admin
    """
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user


async def get_current_super_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current super admin user"""
    if current_user.role != UserRole.SUPER_ADMIN.value:
        raise AuthorizationError("Super admin access required")
    return current_user
