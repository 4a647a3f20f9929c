"""Product routes - listing moderation"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import List, Optional

from admin_audit.core.database import get_db
from admin_audit.schemas.marketplace import ListingResponse, RejectRequest
from admin_audit.services.marketplace_service import marketplace_service
from admin_audit.api.deps import actor_from_request, get_current_admin_user
from admin_audit.models.user import User

router = APIRouter()


@router.get("/", response_model=List[ListingResponse])
def list_products(
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Listings from sellers inside the admin's location"""
    return marketplace_service.list_listings(db, current_user, status, limit)


@router.post("/{product_id}/approve", response_model=ListingResponse)
def approve_product(
    product_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Approve a listing"""
    return marketplace_service.approve_listing(
        db, actor_from_request(current_user, request), current_user, product_id
    )


@router.post("/{product_id}/reject", response_model=ListingResponse)
def reject_product(
    product_id: int,
    request: Request,
    body: Optional[RejectRequest] = None,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Reject a listing with an optional reason"""
    return marketplace_service.reject_listing(
        db, actor_from_request(current_user, request), current_user, product_id,
        body.reason if body else None
    )


@router.delete("/{product_id}", response_model=ListingResponse)
def delete_product(
    product_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Soft-delete a listing"""
    return marketplace_service.delete_listing(
        db, actor_from_request(current_user, request), current_user, product_id
    )
