from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.database import Base
import enum


class LeaveCategory(str, enum.Enum):
    ANNUAL = "annual"
    PERSONAL = "personal"
    LONG_SERVICE = "long_service"


class AccrualUnit(str, enum.Enum):
    WEEKS_PER_YEAR = "weeks_per_year"
    DAYS_PER_YEAR = "days_per_year"
    HOURS_PER_YEAR = "hours_per_year"


class EmploymentScope(str, enum.Enum):
    ANY = "any"
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CASUAL = "casual"


class LeavePolicy(Base):
    __tablename__ = "leave_policies"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    code = Column(String, nullable=True, index=True)
    category = Column(String, index=True, nullable=False)  # LeaveCategory value
    employment_type_scope = Column(String, default=EmploymentScope.ANY.value, nullable=False)

    accrual_unit = Column(String, default=AccrualUnit.DAYS_PER_YEAR.value)
    accrual_rate = Column(Float, nullable=True)
    standard_hours_per_day = Column(Float, nullable=True)
    hours_per_week_reference = Column(Float, nullable=True)

    is_minimum_standard = Column(Boolean, default=False)  # Mirrors a statutory (NES) minimum
    excludes_casual = Column(Boolean, default=True)
    payout_on_termination = Column(Boolean, default=False)
    eligibility_waiting_years = Column(Float, nullable=True)  # Long service leave

    is_system = Column(Boolean, default=False)
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True, index=True)
    notes = Column(Text, nullable=True)

    organization = relationship("Organization", back_populates="leave_policies")

    def __repr__(self):
        return f"<LeavePolicy {self.code or self.id}: {self.category}/{self.employment_type_scope}>"
