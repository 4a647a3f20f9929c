"""Order routes - admin view and status changes"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import List, Optional

from admin_audit.core.database import get_db
from admin_audit.schemas.marketplace import OrderResponse, OrderStatusUpdate
from admin_audit.services.marketplace_service import marketplace_service
from admin_audit.api.deps import actor_from_request, get_current_admin_user
from admin_audit.models.user import User

router = APIRouter()


@router.get("/", response_model=List[OrderResponse])
def list_orders(
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Orders placed by buyers inside the admin's location"""
    return marketplace_service.list_orders(db, current_user, status, limit)


@router.put("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """
    Change an order's status

    Args:
        order_id: Order ID
        body: New status
        current_user: Current admin user
        db: Database session

    Returns:
        Updated order
    """
    return marketplace_service.update_order_status(
        db, actor_from_request(current_user, request), current_user, order_id, body.status
    )
