from sqlalchemy import Column, Integer, String, Float, Date, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base


class LeaveBalance(Base):
    """
    One row per (organization, employee, category).
    available = opening + accrued + adjusted - used_approved - used_pending
    """
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("organization_id", "employee_id", "category", name="uq_leave_balance_scope"),
    )

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    category = Column(String, index=True, nullable=False)

    opening_balance_hours = Column(Float, default=0.0, nullable=False)
    accrued_hours = Column(Float, default=0.0, nullable=False)
    adjusted_hours = Column(Float, default=0.0, nullable=False)  # Signed manual corrections
    used_approved_hours = Column(Float, default=0.0, nullable=False)
    used_pending_hours = Column(Float, default=0.0, nullable=False)
    last_calculated_date = Column(Date, nullable=True)

    allow_negative = Column(Boolean, default=False, nullable=False)

    employee = relationship("Employee", back_populates="leave_balances")
    adjustments = relationship("LeaveBalanceAdjustment", back_populates="balance", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<LeaveBalance employee={self.employee_id} {self.category}>"
