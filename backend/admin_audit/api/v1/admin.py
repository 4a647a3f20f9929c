"""Admin routes - regional admin lifecycle and location scopes"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import List, Optional

from admin_audit.core.database import get_db
from admin_audit.schemas.location import LocationScope
from admin_audit.schemas.response import APIResponse
from admin_audit.schemas.user import (
    AdminAccountResponse,
    AdminActivityStats,
    PromoteAdminRequest,
    UserResponse,
)
from admin_audit.services.access_scope_service import access_scope_service, scope_of
from admin_audit.services.location_filter import (
    format_location_compact,
    format_location_detailed,
    format_location_display,
    has_location_restrictions,
)
from admin_audit.api.deps import actor_from_request, get_current_admin_user, get_current_super_admin
from admin_audit.models.user import User

router = APIRouter()


@router.get("/admins", response_model=List[AdminAccountResponse])
def list_admins(
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """
    List admin accounts (super admin only)

    Returns:
        Super admins first, then regional admins, newest first
    """
    return access_scope_service.list_admins(db)


@router.post("/admins/{user_id}/promote", response_model=UserResponse)
def promote_admin(
    user_id: int,
    request: Request,
    body: Optional[PromoteAdminRequest] = None,
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """
    Promote a user to regional admin

    Args:
        user_id: Account to promote
        body: Optional location assignment; omitted means global access
        current_user: Current super admin
        db: Database session

    Returns:
        Promoted account
    """
    location = body.location if body else None
    user = access_scope_service.promote_to_admin(
        db, actor_from_request(current_user, request), user_id, location
    )
    return UserResponse.model_validate(user)


@router.put("/admins/{user_id}/location", response_model=AdminAccountResponse)
def update_admin_location(
    user_id: int,
    body: PromoteAdminRequest,
    request: Request,
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """Reassign a regional admin's location"""
    admin = access_scope_service.set_admin_location(
        db, actor_from_request(current_user, request), user_id, body.location
    )
    scope = scope_of(admin)
    return AdminAccountResponse(
        id=admin.id,
        name=admin.full_name or "Unknown",
        email=admin.email,
        role=admin.role,
        assigned_location=scope,
        location_display=format_location_display(scope),
        status="active" if admin.is_active else "inactive",
        created_at=admin.created_at,
        updated_at=admin.updated_at,
    )


@router.post("/admins/{user_id}/demote", response_model=UserResponse)
def demote_admin(
    user_id: int,
    request: Request,
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """Demote a regional admin to a regular user"""
    user = access_scope_service.demote_admin(db, actor_from_request(current_user, request), user_id)
    return UserResponse.model_validate(user)


@router.get("/admins/{user_id}/stats", response_model=AdminActivityStats)
def get_admin_stats(
    user_id: int,
    current_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
):
    """Accounts and orders managed by an admin"""
    return access_scope_service.get_admin_activity_stats(db, user_id)


@router.get("/scope", response_model=APIResponse)
def get_my_scope(
    current_user: User = Depends(get_current_admin_user),
):
    """Current admin's location scope and its renderings"""
    scope: Optional[LocationScope] = scope_of(current_user)
    return APIResponse(
        message="Location scope",
        data={
            "role": current_user.role,
            "restricted": has_location_restrictions(current_user.role, scope),
            "location": scope.to_stored() if scope else None,
            "display": format_location_display(scope),
            "compact": format_location_compact(scope),
            "detailed": format_location_detailed(scope),
        },
    )
