"""User (marketplace account) model"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index, JSON, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from admin_audit.core.database import Base


class User(Base):
    """Marketplace account; admins carry an optional assigned location"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(120), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(String(20), default="user", nullable=False, index=True)
    country = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    admin_assigned_location = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_login = Column(DateTime(timezone=True))

    # Relationships
    orders = relationship("Order", foreign_keys="Order.buyer_id", back_populates="buyer")
    listings = relationship("Listing", back_populates="seller")
    suspensions = relationship(
        "SuspensionRecord",
        foreign_keys="SuspensionRecord.user_id",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('idx_users_location', 'country', 'city'),
        CheckConstraint("role IN ('user', 'admin', 'super_admin')", name='chk_user_role'),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or "Unknown User"

    @property
    def is_admin(self) -> bool:
        return self.role in ("admin", "super_admin")
