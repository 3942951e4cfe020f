from sqlalchemy import Column, Integer, String, Date, Float, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base
import enum


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class PartialDayType(str, enum.Enum):
    FULL = "full"
    HALF_AM = "half_am"
    HALF_PM = "half_pm"


HALF_DAY_TYPES = {PartialDayType.HALF_AM.value, PartialDayType.HALF_PM.value}
OPEN_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value)


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    category = Column(String, index=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    partial_day_type = Column(String, default=PartialDayType.FULL.value, nullable=False)
    status = Column(String, default=LeaveStatus.PENDING.value, index=True)  # Using String to store enum value for simplicity with SQLite

    # Computed at submission; chargeable_hours is exactly what gets reversed on decline/cancel
    total_chargeable_days = Column(Float, nullable=False, default=0.0)
    chargeable_hours = Column(Float, nullable=False, default=0.0)

    reason = Column(String, nullable=True)
    decision_comment = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    decided_at = Column(DateTime(timezone=True), nullable=True)

    employee = relationship("Employee", back_populates="leave_requests")
