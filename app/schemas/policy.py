from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Literal, Optional
from app.models.leave_policy import LeaveCategory, AccrualUnit, EmploymentScope

Severity = Literal["error", "warning", "info"]


class PolicyConfig(BaseModel):
    """
    Policy parameters as the compliance checker sees them.
    Accepts ORM rows (from_attributes) and raw API payloads alike, so numeric
    fields stay loosely typed here and are coerced inside the checker.
    """
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str
    category: str
    employment_type_scope: str = EmploymentScope.ANY.value
    accrual_unit: Optional[str] = None
    accrual_rate: Any = None
    standard_hours_per_day: Any = None
    hours_per_week_reference: Any = None
    payout_on_termination: Optional[bool] = False
    eligibility_waiting_years: Any = None
    excludes_casual: Optional[bool] = True
    is_active: Optional[bool] = True


class ComplianceIssue(BaseModel):
    policy_name: str
    severity: Severity
    message: str


class ComplianceReport(BaseModel):
    compliant: bool
    errors: int
    warnings: int
    infos: int
    issues: List[ComplianceIssue]


class LeavePolicyCreate(BaseModel):
    name: str = Field(..., min_length=1)
    code: Optional[str] = None
    category: LeaveCategory
    employment_type_scope: EmploymentScope = EmploymentScope.ANY
    accrual_unit: AccrualUnit = AccrualUnit.DAYS_PER_YEAR
    accrual_rate: float = Field(..., ge=0)
    standard_hours_per_day: float = Field(7.6, gt=0)
    hours_per_week_reference: float = Field(38.0, gt=0)
    is_minimum_standard: bool = False
    excludes_casual: bool = True
    payout_on_termination: bool = False
    eligibility_waiting_years: Optional[float] = Field(None, ge=0)
    is_default: bool = False
    notes: Optional[str] = None


class LeavePolicyResponse(BaseModel):
    id: int
    name: str
    code: Optional[str] = None
    category: str
    employment_type_scope: str
    accrual_unit: Optional[str] = None
    accrual_rate: Optional[float] = None
    standard_hours_per_day: Optional[float] = None
    hours_per_week_reference: Optional[float] = None
    is_minimum_standard: bool
    excludes_casual: bool
    payout_on_termination: bool
    eligibility_waiting_years: Optional[float] = None
    is_system: bool
    is_default: bool
    is_active: bool
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class LeavePolicySaveResponse(BaseModel):
    """Compliance issues are reported with the save, never enforced."""
    policy: LeavePolicyResponse
    issues: List[ComplianceIssue]


class SeedDefaultsResponse(BaseModel):
    created: int
    policies: List[LeavePolicyResponse]


LeavePolicySaveResponse.model_rebuild()
SeedDefaultsResponse.model_rebuild()
