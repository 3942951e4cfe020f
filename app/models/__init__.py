# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    organization, employee, employment_history,
    leave_policy, leave_balance, leave_balance_adjustment,
    leave_request, public_holiday
)

# Explicit class exports for cleaner imports
from .organization import Organization
from .employee import Employee, EmploymentType
from .employment_history import EmploymentHistory
from .leave_policy import LeavePolicy, LeaveCategory, AccrualUnit, EmploymentScope
from .leave_balance import LeaveBalance
from .leave_balance_adjustment import LeaveBalanceAdjustment
from .leave_request import LeaveRequest, LeaveStatus, PartialDayType
from .public_holiday import PublicHoliday

__all__ = [
    "Organization",
    "Employee",
    "EmploymentType",
    "EmploymentHistory",
    "LeavePolicy",
    "LeaveCategory",
    "AccrualUnit",
    "EmploymentScope",
    "LeaveBalance",
    "LeaveBalanceAdjustment",
    "LeaveRequest",
    "LeaveStatus",
    "PartialDayType",
    "PublicHoliday",
]
