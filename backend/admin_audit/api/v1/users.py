"""User management routes"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import List, Optional

from admin_audit.core.database import get_db
from admin_audit.core.exceptions import AuthorizationError, ResourceNotFoundError
from admin_audit.schemas.suspension import SuspendRequest, SuspensionResponse
from admin_audit.schemas.user import AccountPage, RoleChangeRequest, UserCreate, UserResponse
from admin_audit.services.access_scope_service import access_scope_service, scope_of
from admin_audit.services.suspension_service import suspension_service, to_suspension_response
from admin_audit.services.user_service import user_service
from admin_audit.api.deps import actor_from_request, get_current_admin_user, get_current_super_admin
from admin_audit.models.user import User

router = APIRouter()


def _managed_user(db: Session, admin: User, user_id: int) -> User:
    user = user_service.get_user_by_id(db, user_id)
    if not user:
        raise ResourceNotFoundError("User")
    access_scope_service.ensure_can_manage(admin, user)
    return user


@router.get("/", response_model=AccountPage)
def list_users(
    role: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """
    List accounts visible to the current admin

    Args:
        role: Optional role filter
        search: Case-insensitive name or email fragment
        page: 1-based page number
        page_size: Accounts per page
        current_user: Current admin user
        db: Database session

    Returns:
        Accounts inside the admin's location scope
    """
    return access_scope_service.list_visible_accounts(db, current_user, role, search, page, page_size)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """
    Create new account (admin only)

    Regional admins may only create accounts inside their own location.
    """
    scope = scope_of(current_user)
    if scope is not None:
        access_scope_service.ensure_can_manage(current_user, user_data)
    user = user_service.create_user(db, actor_from_request(current_user, request), user_data)
    return UserResponse.model_validate(user)


@router.put("/{user_id}/role", response_model=UserResponse)
def change_user_role(
    user_id: int,
    body: RoleChangeRequest,
    request: Request,
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """Change an account's role (super admin only)"""
    if user_id == current_user.id:
        raise AuthorizationError("You cannot change your own role")
    user = access_scope_service.change_role(
        db, actor_from_request(current_user, request), user_id, body.role, body.location
    )
    return UserResponse.model_validate(user)


@router.post("/{user_id}/suspend", response_model=SuspensionResponse, status_code=status.HTTP_201_CREATED)
def suspend_user(
    user_id: int,
    request: Request,
    body: Optional[SuspendRequest] = None,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Suspend an account inside the admin's location"""
    _managed_user(db, current_user, user_id)
    body = body or SuspendRequest()
    record = suspension_service.suspend_user(
        db, actor_from_request(current_user, request), user_id, current_user.id, body.reason
    )
    return to_suspension_response(record)


@router.post("/{user_id}/unsuspend", status_code=status.HTTP_200_OK)
def unsuspend_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Lift every active suspension of an account"""
    _managed_user(db, current_user, user_id)
    closed = suspension_service.unsuspend_user(db, actor_from_request(current_user, request), user_id)
    return {
        "success": True,
        "message": "User unsuspended",
        "closed_suspensions": closed
    }


@router.get("/suspended", response_model=List[SuspensionResponse])
def list_suspended_users(
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Active suspensions inside the admin's location"""
    scope = scope_of(current_user)
    user_ids = None
    if scope is not None:
        user_ids = access_scope_service.resolve_visible_account_ids(db, scope)
    return suspension_service.list_suspended_users(db, user_ids)
