"""Order and listing schemas"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class OrderResponse(BaseModel):
    id: int
    buyer_id: int
    seller_id: Optional[int] = None
    listing_id: Optional[int] = None
    quantity: int
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    status: Literal["pending", "accepted", "completed", "cancelled"]


class ListingResponse(BaseModel):
    id: int
    seller_id: int
    name: str
    price: Optional[float] = None
    category: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
