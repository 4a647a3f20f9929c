"""Authentication routes"""

from fastapi import APIRouter, Depends, status, Request
from sqlalchemy.orm import Session

from admin_audit.core.database import get_db
from admin_audit.config import settings
from admin_audit.core.security import create_access_token
from admin_audit.core.exceptions import AccountSuspendedError
from admin_audit.schemas.audit import AuditAction
from admin_audit.schemas.suspension import LoginCheck
from admin_audit.schemas.user import UserLogin, TokenResponse, UserResponse
from admin_audit.services.audit_service import audit_service
from admin_audit.services.suspension_service import suspension_service
from admin_audit.services.user_service import user_service
from admin_audit.api.deps import get_current_user, actor_from_request, client_ip, client_user_agent
from admin_audit.models.user import User

router = APIRouter()


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: UserLogin,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Login endpoint - authenticate user and return JWT token

    last_login is only stamped after the suspension gate allows the login.

    Args:
        credentials: Email and password
        db: Database session

    Returns:
        JWT token and user info
    """
    user = user_service.authenticate_user(
        db,
        credentials.email,
        credentials.password,
        ip_address=client_ip(request),
        user_agent=client_user_agent(request),
    )

    check = suspension_service.check_login_allowed(db, user.id)
    if not check.allowed:
        raise AccountSuspendedError(check.reason)
    user_service.record_login(db, user)

    actor = actor_from_request(user, request)
    audit_service.log_user_action(db, actor, AuditAction.USER_LOGIN, user.id, {
        "email": user.email,
        "suspension_check_warning": check.warning,
    })

    access_token = create_access_token({"sub": str(user.id), "role": user.role})
    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user)
    )


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Logout endpoint - the token is discarded client-side

    Returns:
        Success message
    """
    audit_service.log_user_action(
        db, actor_from_request(current_user, request), AuditAction.USER_LOGOUT, current_user.id
    )
    return {
        "success": True,
        "message": "Logged out successfully"
    }


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information"""
    return UserResponse.model_validate(current_user)


@router.get("/session", response_model=LoginCheck)
def validate_session(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Re-run the suspension gate for the current session"""
    return suspension_service.validate_user_session(db, current_user)
