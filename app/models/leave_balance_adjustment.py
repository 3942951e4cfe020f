from sqlalchemy import Column, Integer, Float, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class LeaveBalanceAdjustment(Base):
    """Append-only log of manual balance corrections."""
    __tablename__ = "leave_balance_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    balance_id = Column(Integer, ForeignKey("leave_balances.id", ondelete="CASCADE"), nullable=False, index=True)
    hours = Column(Float, nullable=False)
    reason = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    balance = relationship("LeaveBalance", back_populates="adjustments")
