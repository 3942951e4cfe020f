from pydantic import BaseModel, ConfigDict, Field, model_validator
import datetime as dt
from datetime import date, datetime
from typing import Dict, List, Optional
from app.models.leave_policy import LeaveCategory
from app.models.leave_request import PartialDayType


# --- Engine value types ---

class HolidayInfo(BaseModel):
    date: dt.date
    name: str
    region_code: Optional[str] = None


class ChargeableDayBreakdown(BaseModel):
    start_date: date
    end_date: date
    partial_day_type: PartialDayType = PartialDayType.FULL
    total_calendar_days: int
    weekend_count: int
    holiday_count: int
    chargeable_days: float
    chargeable_dates: List[date] = []
    holiday_details: List[HolidayInfo] = []


class FractionPeriod(BaseModel):
    """Employment terms in force from ``start`` until the day before ``end`` (open-ended if None)."""
    start: date
    end: Optional[date] = None
    employment_fraction: float
    standard_hours_per_day: float


class AccrualResult(BaseModel):
    as_of: date
    accrued_hours: float
    daily_rate: float
    eligible: bool = True
    eligibility_date: Optional[date] = None
    deferred_hours: float = 0.0


class BalanceView(BaseModel):
    category: str
    available_hours: Optional[float] = None
    available_days: Optional[float] = None
    opening_balance_hours: float = 0.0
    accrued_hours: float = 0.0
    adjusted_hours: float = 0.0
    used_approved_hours: float = 0.0
    used_pending_hours: float = 0.0
    eligible: bool = True
    eligibility_date: Optional[date] = None
    not_applicable: bool = False
    policy_configured: bool = True
    status_note: Optional[str] = None
    last_calculated_date: Optional[date] = None
    allow_negative: bool = False
    stale_request_ids: List[int] = []


class FTESummary(BaseModel):
    fte: Optional[float] = None
    fte_percent: Optional[int] = None
    hours_per_week: Optional[float] = None
    full_time_hours: float
    is_pro_rata: bool = False


class ProRataEntitlement(BaseModel):
    base_days_per_year: float
    base_hours_per_year: float
    pro_rata_days: float
    pro_rata_hours: float
    standard_hours_per_day: float


# --- API payloads ---

class ChargeableDaysRequest(BaseModel):
    start_date: date
    end_date: date
    region_code: Optional[str] = None
    partial_day_type: PartialDayType = PartialDayType.FULL


class LeaveRequestCreate(BaseModel):
    employee_id: int
    category: LeaveCategory
    start_date: date
    end_date: date
    partial_day_type: PartialDayType = PartialDayType.FULL
    reason: Optional[str] = None


class LeaveRequestResponse(BaseModel):
    id: int
    employee_id: int
    category: str
    start_date: date
    end_date: date
    partial_day_type: str
    status: str
    total_chargeable_days: float
    chargeable_hours: float
    reason: Optional[str] = None
    decision_comment: Optional[str] = None
    created_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LeaveDecisionRequest(BaseModel):
    comment: Optional[str] = None


class InitializeBalancesResponse(BaseModel):
    employee_id: int
    created_count: int


class BalancesResponse(BaseModel):
    employee_id: int
    reference_date: date
    balances: Dict[str, BalanceView]


class BalanceAdjustmentRequest(BaseModel):
    category: LeaveCategory
    hours: float = Field(..., description="Signed hours. Negative values reduce the balance.")
    reason: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _non_zero(self):
        if self.hours == 0:
            raise ValueError("Adjustment hours must be non-zero")
        return self


class EmploymentChangeRequest(BaseModel):
    effective_from: date
    employment_fraction: float = Field(..., gt=0, le=1)
    standard_hours_per_day: float = Field(..., gt=0, le=24)
    note: Optional[str] = None


class EntitlementSummary(BaseModel):
    employee_id: int
    employment_type: str
    fte: FTESummary
    entitlements: Dict[str, ProRataEntitlement] = {}


class BalanceVersionResponse(BaseModel):
    version: int


class RecalculationResponse(BaseModel):
    reference_date: date
    employees_processed: int
    balances_updated: int


# Resolve forward references for Pydantic V2
ChargeableDayBreakdown.model_rebuild()
LeaveRequestResponse.model_rebuild()
BalanceView.model_rebuild()
BalancesResponse.model_rebuild()
