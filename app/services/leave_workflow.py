"""
Leave Request Workflow

State machine for leave requests and the balance mutation paired with every
transition:

    pending  -> approved | declined | cancelled
    approved -> cancelled   (recall)

Entering pending reserves hours in ``used_pending_hours``; approval moves
them to ``used_approved_hours``; decline/cancel/recall releases whichever
field currently holds them. The status write and the balance write are
committed together.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    BalanceInconsistencyError,
    InsufficientBalanceError,
    InvalidLeaveRequestError,
    InvalidTransitionError,
    LeaveOverlapError,
    LeaveTransitionError,
    MissingContextError,
)
from app.models.leave_balance import LeaveBalance
from app.models.leave_request import LeaveRequest, LeaveStatus, OPEN_STATUSES
from app.schemas.leave import LeaveRequestCreate
from app.services.accrual import hours_per_day_on
from app.services.balance_init import BalanceInitializer, InitializationGuard
from app.services.chargeable_days import (
    calculate_chargeable_days,
    day_portion,
    portions_conflict,
    validate_request_shape,
)
from app.services.holidays import resolve_holidays
from app.services.leave_balance import LeaveBalanceService
from app.services.leave_cache import BalanceVersionSignal

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[str, Set[str]] = {
    LeaveStatus.PENDING.value: {
        LeaveStatus.APPROVED.value,
        LeaveStatus.DECLINED.value,
        LeaveStatus.CANCELLED.value,
    },
    LeaveStatus.APPROVED.value: {LeaveStatus.CANCELLED.value},
    LeaveStatus.DECLINED.value: set(),
    LeaveStatus.CANCELLED.value: set(),
}

# Float noise allowed when releasing reserved hours
HOURS_TOLERANCE = 1e-6


def _usage_field(status: str) -> str:
    if status == LeaveStatus.PENDING.value:
        return "used_pending_hours"
    if status == LeaveStatus.APPROVED.value:
        return "used_approved_hours"
    raise ValueError(f"Status '{status}' holds no balance")


class LeaveWorkflowService:
    def __init__(
        self,
        db: Session,
        guard: Optional[InitializationGuard] = None,
        signal: Optional[BalanceVersionSignal] = None,
    ):
        self.db = db
        self.balances = LeaveBalanceService(db, guard=guard, signal=signal)
        self.signal = self.balances.signal

    # --- Queries ---

    def get_request(self, organization_id: int, request_id: int) -> LeaveRequest:
        req = self.db.query(LeaveRequest).filter(
            LeaveRequest.id == request_id,
            LeaveRequest.organization_id == organization_id,
        ).first()
        if not req:
            raise MissingContextError(
                f"Leave request {request_id} not found",
                details={"leave_request_id": request_id},
            )
        return req

    def list_requests(
        self,
        organization_id: int,
        employee_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> List[LeaveRequest]:
        query = self.db.query(LeaveRequest).filter(LeaveRequest.organization_id == organization_id)
        if employee_id:
            query = query.filter(LeaveRequest.employee_id == employee_id)
        if status:
            query = query.filter(LeaveRequest.status == status)
        return query.order_by(LeaveRequest.start_date, LeaveRequest.id).all()

    def find_conflicts(self, employee_id: int, payload: LeaveRequestCreate) -> List[LeaveRequest]:
        """Open requests whose range overlaps the new one, except complementary half days."""
        candidates = self.db.query(LeaveRequest).filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(OPEN_STATUSES),
            LeaveRequest.start_date <= payload.end_date,
            LeaveRequest.end_date >= payload.start_date,
        ).all()
        return [
            req for req in candidates
            if portions_conflict(req.partial_day_type, payload.partial_day_type)
        ]

    # --- Transitions ---

    def submit(self, organization_id: int, payload: LeaveRequestCreate) -> LeaveRequest:
        """Create a pending request and reserve its hours."""
        partial = validate_request_shape(payload.start_date, payload.end_date, payload.partial_day_type)
        category = payload.category.value

        employee = self.balances.get_employee(organization_id, payload.employee_id)
        if not employee.is_active:
            raise InvalidLeaveRequestError(
                f"Employee {employee.id} is not active",
                details={"employee_id": employee.id},
            )
        BalanceInitializer(self.db, self.balances.guard, self.signal).initialize(employee.id, organization_id)

        holidays = resolve_holidays(
            self.db, organization_id, self.balances.region_for(employee), payload.start_date, payload.end_date
        )
        breakdown = calculate_chargeable_days(payload.start_date, payload.end_date, holidays, partial)
        if breakdown.chargeable_days <= 0:
            raise InvalidLeaveRequestError(
                "The requested range contains no chargeable days",
                details={
                    "start_date": payload.start_date.isoformat(),
                    "end_date": payload.end_date.isoformat(),
                },
            )

        periods = self.balances.fraction_periods(employee)
        default_hours = employee.standard_hours_per_day or settings.leave.standard_hours_per_day
        portion = day_portion(partial)
        hours = sum(hours_per_day_on(periods, day, default_hours) * portion for day in breakdown.chargeable_dates)

        conflicts = self.find_conflicts(employee.id, payload)
        if conflicts:
            raise LeaveOverlapError(
                "Leave request overlaps an existing pending or approved request",
                details={"conflicting_request_ids": [r.id for r in conflicts]},
            )

        row = self.balances.get_balance_row(organization_id, employee.id, category)
        view = self.balances.view_for_category(employee, category)
        if view.not_applicable:
            raise InvalidLeaveRequestError(
                f"{employee.employment_type} employees do not accrue paid {category} leave",
                details={"employee_id": employee.id, "category": category},
            )
        if not row.allow_negative and hours > (view.available_hours or 0.0) + HOURS_TOLERANCE:
            raise InsufficientBalanceError(view.available_hours or 0.0, hours, category)

        req = LeaveRequest(
            organization_id=organization_id,
            employee_id=employee.id,
            category=category,
            start_date=payload.start_date,
            end_date=payload.end_date,
            partial_day_type=partial,
            status=LeaveStatus.PENDING.value,
            total_chargeable_days=breakdown.chargeable_days,
            chargeable_hours=hours,
            reason=payload.reason,
        )
        self.db.add(req)
        row.used_pending_hours = (row.used_pending_hours or 0.0) + hours
        self._commit(req, "submit")

        logger.info(
            f"Leave request {req.id} submitted: {breakdown.chargeable_days} day(s), {hours:.2f}h {category}",
            extra={"employee_id": employee.id, "leave_request_id": req.id},
        )
        self.signal.bump("leave_request_created", organization_id=organization_id, employee_id=employee.id)
        return req

    def approve(self, organization_id: int, request_id: int, comment: Optional[str] = None) -> LeaveRequest:
        return self._transition(organization_id, request_id, LeaveStatus.APPROVED.value, comment)

    def decline(self, organization_id: int, request_id: int, comment: Optional[str] = None) -> LeaveRequest:
        return self._transition(organization_id, request_id, LeaveStatus.DECLINED.value, comment)

    def cancel(self, organization_id: int, request_id: int, comment: Optional[str] = None) -> LeaveRequest:
        """Withdraw a pending request or recall an approved one."""
        return self._transition(organization_id, request_id, LeaveStatus.CANCELLED.value, comment)

    def _transition(self, organization_id: int, request_id: int, target: str, comment: Optional[str]) -> LeaveRequest:
        req = self.get_request(organization_id, request_id)
        current = req.status
        if target not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(current, target)

        row = self.balances.get_balance_row(organization_id, req.employee_id, req.category)
        if row is None:
            raise BalanceInconsistencyError(
                f"Leave request {req.id} has no {req.category} balance to update",
                details={"leave_request_id": req.id, "employee_id": req.employee_id},
            )

        hours = req.chargeable_hours or 0.0
        try:
            self._release(row, _usage_field(current), hours, req)
            if target == LeaveStatus.APPROVED.value:
                row.used_approved_hours = (row.used_approved_hours or 0.0) + hours
            req.status = target
            req.decision_comment = comment
            req.decided_at = datetime.now(timezone.utc)
        except BalanceInconsistencyError:
            self.db.rollback()
            raise

        self._commit(req, target)

        logger.info(
            f"Leave request {req.id}: {current} -> {target}",
            extra={"employee_id": req.employee_id, "leave_request_id": req.id},
        )
        self.signal.bump(f"leave_request_{target}", organization_id=organization_id, employee_id=req.employee_id)
        return req

    def _release(self, row: LeaveBalance, field: str, hours: float, req: LeaveRequest):
        remaining = (getattr(row, field) or 0.0) - hours
        if remaining < -HOURS_TOLERANCE:
            raise BalanceInconsistencyError(
                f"Releasing leave request {req.id} would make {field} negative",
                details={
                    "leave_request_id": req.id,
                    "field": field,
                    "current_hours": getattr(row, field),
                    "request_hours": hours,
                },
            )
        setattr(row, field, max(remaining, 0.0))

    def _commit(self, req: LeaveRequest, action: str):
        try:
            self.db.commit()
            self.db.refresh(req)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Leave {action} failed for request {req.id}: {e}", exc_info=True)
            raise LeaveTransitionError(
                f"Could not {action} leave request; status and balance were left unchanged",
                details={"leave_request_id": req.id},
            ) from e
