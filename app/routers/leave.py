from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_balance_service, get_current_org, get_workflow_service
from app.models.leave_request import LeaveStatus
from app.schemas.leave import (
    BalanceAdjustmentRequest,
    BalancesResponse,
    BalanceVersionResponse,
    BalanceView,
    ChargeableDayBreakdown,
    ChargeableDaysRequest,
    EmploymentChangeRequest,
    EntitlementSummary,
    FractionPeriod,
    InitializeBalancesResponse,
    LeaveDecisionRequest,
    LeaveRequestCreate,
    LeaveRequestResponse,
    RecalculationResponse,
)
from app.services.chargeable_days import calculate_chargeable_days_for_region
from app.services.leave_balance import LeaveBalanceService
from app.services.leave_cache import BalanceVersionSignal, get_version_signal
from app.services.leave_workflow import LeaveWorkflowService

router = APIRouter(prefix="/leave", tags=["leave"])


# --- Balances ---

@router.post("/balances/{employee_id}/initialize", response_model=InitializeBalancesResponse)
def initialize_balances(
    employee_id: int,
    org_id: int = Depends(get_current_org),
    service: LeaveBalanceService = Depends(get_balance_service),
):
    created = service.initialize(org_id, employee_id)
    return InitializeBalancesResponse(employee_id=employee_id, created_count=created)


@router.get("/balances/{employee_id}", response_model=BalancesResponse)
def get_balances(
    employee_id: int,
    reference_date: Optional[date] = None,
    org_id: int = Depends(get_current_org),
    service: LeaveBalanceService = Depends(get_balance_service),
):
    as_of = reference_date or date.today()
    balances = service.get_balances(org_id, employee_id, as_of)
    return BalancesResponse(employee_id=employee_id, reference_date=as_of, balances=balances)


@router.post("/balances/{employee_id}/adjustments", response_model=BalanceView)
def adjust_balance(
    employee_id: int,
    adjustment: BalanceAdjustmentRequest,
    org_id: int = Depends(get_current_org),
    service: LeaveBalanceService = Depends(get_balance_service),
):
    return service.adjust_balance(
        org_id, employee_id, adjustment.category.value, adjustment.hours, adjustment.reason
    )


@router.post("/balances/recalculate", response_model=RecalculationResponse)
def recalculate_balances(
    reference_date: Optional[date] = None,
    org_id: int = Depends(get_current_org),
    service: LeaveBalanceService = Depends(get_balance_service),
):
    as_of = reference_date or date.today()
    processed, updated = service.recalculate_organization(org_id, as_of)
    return RecalculationResponse(reference_date=as_of, employees_processed=processed, balances_updated=updated)


@router.post("/employees/{employee_id}/employment-changes", response_model=List[FractionPeriod])
def record_employment_change(
    employee_id: int,
    change: EmploymentChangeRequest,
    org_id: int = Depends(get_current_org),
    service: LeaveBalanceService = Depends(get_balance_service),
):
    return service.record_employment_change(
        org_id,
        employee_id,
        change.effective_from,
        change.employment_fraction,
        change.standard_hours_per_day,
        change.note,
    )


@router.get("/employees/{employee_id}/entitlements", response_model=EntitlementSummary)
def entitlement_summary(
    employee_id: int,
    org_id: int = Depends(get_current_org),
    service: LeaveBalanceService = Depends(get_balance_service),
):
    return service.entitlement_summary(org_id, employee_id)


@router.get("/balance-version", response_model=BalanceVersionResponse)
def balance_version(signal: BalanceVersionSignal = Depends(get_version_signal)):
    return BalanceVersionResponse(version=signal.current())


# --- Chargeable days ---

@router.post("/chargeable-days", response_model=ChargeableDayBreakdown)
def chargeable_days(
    request: ChargeableDaysRequest,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
):
    return calculate_chargeable_days_for_region(
        db, org_id, request.start_date, request.end_date, request.region_code, request.partial_day_type
    )


# --- Requests ---

@router.post("/requests", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
def submit_leave_request(
    request: LeaveRequestCreate,
    org_id: int = Depends(get_current_org),
    service: LeaveWorkflowService = Depends(get_workflow_service),
):
    return service.submit(org_id, request)


@router.get("/requests", response_model=List[LeaveRequestResponse])
def list_leave_requests(
    employee_id: Optional[int] = None,
    status: Optional[LeaveStatus] = Query(None),
    org_id: int = Depends(get_current_org),
    service: LeaveWorkflowService = Depends(get_workflow_service),
):
    return service.list_requests(org_id, employee_id, status.value if status else None)


@router.post("/requests/{request_id}/approve", response_model=LeaveRequestResponse)
def approve_leave_request(
    request_id: int,
    decision: Optional[LeaveDecisionRequest] = None,
    org_id: int = Depends(get_current_org),
    service: LeaveWorkflowService = Depends(get_workflow_service),
):
    return service.approve(org_id, request_id, decision.comment if decision else None)


@router.post("/requests/{request_id}/decline", response_model=LeaveRequestResponse)
def decline_leave_request(
    request_id: int,
    decision: Optional[LeaveDecisionRequest] = None,
    org_id: int = Depends(get_current_org),
    service: LeaveWorkflowService = Depends(get_workflow_service),
):
    return service.decline(org_id, request_id, decision.comment if decision else None)


@router.post("/requests/{request_id}/cancel", response_model=LeaveRequestResponse)
def cancel_leave_request(
    request_id: int,
    decision: Optional[LeaveDecisionRequest] = None,
    org_id: int = Depends(get_current_org),
    service: LeaveWorkflowService = Depends(get_workflow_service),
):
    return service.cancel(org_id, request_id, decision.comment if decision else None)
