"""
Employee record as seen by the leave engine.
Only the fields that drive accrual and chargeable-day conversion live here.
"""
from sqlalchemy import Column, Integer, String, Float, Date, Boolean, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from app.database import Base


class EmploymentType(str, enum.Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CASUAL = "casual"
    CONTRACTOR = "contractor"


# Not entitled to paid leave accrual
NON_ACCRUING_EMPLOYMENT_TYPES = {EmploymentType.CASUAL.value, EmploymentType.CONTRACTOR.value}


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    full_name = Column(String, nullable=False)

    service_start_date = Column(Date, nullable=False)
    employment_type = Column(String, default=EmploymentType.FULL_TIME.value, nullable=False)

    # Current terms. History of changes lives in employment_history.
    employment_fraction = Column(Float, default=1.0, nullable=False)
    standard_hours_per_day = Column(Float, default=7.6, nullable=False)
    hours_per_week = Column(Float, nullable=True)

    region_code = Column(String, nullable=True)  # State/province for public holidays
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    organization = relationship("Organization", back_populates="employees")
    employment_history = relationship(
        "EmploymentHistory",
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="EmploymentHistory.effective_from",
    )
    leave_balances = relationship("LeaveBalance", back_populates="employee", cascade="all, delete-orphan")
    leave_requests = relationship("LeaveRequest", back_populates="employee", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Employee {self.id} {self.full_name} ({self.employment_type})>"

    @property
    def accrues_paid_leave(self) -> bool:
        return self.employment_type not in NON_ACCRUING_EMPLOYMENT_TYPES
