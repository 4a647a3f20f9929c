"""Marketplace domain models - listings and orders"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from admin_audit.core.database import Base


class Listing(Base):
    """Product listed by a seller"""

    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    price = Column(Float, nullable=True)
    category = Column(String(100), nullable=True)
    status = Column(String(20), default="pending", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    seller = relationship("User", back_populates="listings")

    __table_args__ = (
        Index('idx_listings_created_at', 'created_at'),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'deleted')",
            name='chk_listing_status'
        ),
    )

    def __repr__(self):
        return f"<Listing(id={self.id}, name='{self.name}', status='{self.status}')>"


class Order(Base):
    """Buyer interest in a listing; the marketplace's order record"""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    buyer = relationship("User", foreign_keys=[buyer_id], back_populates="orders")
    seller = relationship("User", foreign_keys=[seller_id])
    listing = relationship("Listing")

    __table_args__ = (
        Index('idx_orders_buyer', 'buyer_id'),
        Index('idx_orders_created_at', 'created_at'),
        CheckConstraint("quantity > 0", name='chk_order_quantity'),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'completed', 'cancelled')",
            name='chk_order_status'
        ),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, buyer_id={self.buyer_id}, status='{self.status}')>"
