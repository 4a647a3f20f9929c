"""Account suspension history"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from admin_audit.core.database import Base


class SuspensionRecord(Base):
    """One suspension; closed by flipping is_active, never deleted."""

    __tablename__ = "suspended_users"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    suspended_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reason = Column(String(500), default="Suspended by admin", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    suspended_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", foreign_keys=[user_id], back_populates="suspensions")
    suspended_by_user = relationship("User", foreign_keys=[suspended_by])

    __table_args__ = (
        Index("idx_suspended_users_user_active", "user_id", "is_active"),
    )
