from sqlalchemy import Column, Integer, Float, Date, ForeignKey, DateTime, String
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class EmploymentHistory(Base):
    """One change of employment fraction / daily hours, effective from a date."""
    __tablename__ = "employment_history"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    effective_from = Column(Date, nullable=False, index=True)
    employment_fraction = Column(Float, nullable=False)
    standard_hours_per_day = Column(Float, nullable=False)
    note = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    employee = relationship("Employee", back_populates="employment_history")
