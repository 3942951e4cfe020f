"""
Leave Balance Service Layer

Combines stored balance rows with freshly computed accrual into the
available-balance view every other part of the application reads.

Architecture:
- Router -> LeaveBalanceService (this module) -> accrual / chargeable_days (pure)
- ``aggregate_balance`` is the only place the balance invariant is computed:
  available = opening + accrued + adjusted - used_approved - used_pending
"""
import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.coercion import coerce_number
from app.core.config import settings
from app.core.exceptions import (
    InvalidLeaveRequestError,
    MissingContextError,
    NegativeBalanceError,
)
from app.models.employee import Employee, EmploymentType
from app.models.employment_history import EmploymentHistory
from app.models.leave_balance import LeaveBalance
from app.models.leave_balance_adjustment import LeaveBalanceAdjustment
from app.models.leave_policy import AccrualUnit, EmploymentScope, LeavePolicy
from app.models.leave_request import LeaveRequest, OPEN_STATUSES
from app.models.organization import Organization
from app.schemas.leave import AccrualResult, BalanceView, EntitlementSummary, FractionPeriod
from app.services.accrual import (
    build_fraction_periods,
    calculate_accrual,
    calculate_fte,
    daily_accrual_rate,
    pro_rata_entitlement,
)
from app.services.balance_init import BalanceInitializer, InitializationGuard, initialization_guard
from app.services.chargeable_days import calculate_chargeable_days
from app.services.holidays import resolve_holidays
from app.services.leave_cache import BalanceVersionSignal, balance_version_signal

logger = logging.getLogger(__name__)

NO_POLICY_NOTE = "no policy configured"
NOT_APPLICABLE_NOTE = "not applicable: employment type does not accrue paid leave"
NOT_YET_ELIGIBLE_NOTE = "not yet eligible"


def _hours(value: float) -> float:
    return round(value, 4)


def aggregate_balance(
    balance: LeaveBalance,
    accrual: Optional[AccrualResult],
    *,
    policy_configured: bool,
    accrues_paid_leave: bool,
    excluded_by_policy: bool,
    standard_hours_per_day: float,
) -> BalanceView:
    """
    Build the balance view for one row.

    - Employees who do not accrue paid leave (casual/contractor) on a policy that
      excludes them get ``not_applicable`` with no numeric balance at all.
    - A missing policy yields zero accrual and an explicit marker.
    - A negative available balance without the override flag is an error.
    """
    opening = _hours(balance.opening_balance_hours or 0.0)
    adjusted = _hours(balance.adjusted_hours or 0.0)
    used_approved = _hours(balance.used_approved_hours or 0.0)
    used_pending = _hours(balance.used_pending_hours or 0.0)

    if not accrues_paid_leave and excluded_by_policy:
        return BalanceView(
            category=balance.category,
            available_hours=None,
            available_days=None,
            opening_balance_hours=opening,
            adjusted_hours=adjusted,
            used_approved_hours=used_approved,
            used_pending_hours=used_pending,
            eligible=False,
            not_applicable=True,
            policy_configured=policy_configured,
            status_note=NOT_APPLICABLE_NOTE,
            last_calculated_date=balance.last_calculated_date,
            allow_negative=bool(balance.allow_negative),
        )

    accrued = _hours(accrual.accrued_hours) if (policy_configured and accrual) else 0.0
    available = opening + accrued + adjusted - used_approved - used_pending

    if available < 0 and not balance.allow_negative:
        raise NegativeBalanceError(
            f"{balance.category} balance for employee {balance.employee_id} would be negative",
            details={
                "employee_id": balance.employee_id,
                "category": balance.category,
                "available_hours": available,
            },
        )

    note = None
    if not policy_configured:
        note = NO_POLICY_NOTE
    elif accrual and not accrual.eligible:
        note = NOT_YET_ELIGIBLE_NOTE

    hours_per_day = standard_hours_per_day if standard_hours_per_day > 0 else settings.leave.standard_hours_per_day
    return BalanceView(
        category=balance.category,
        available_hours=_hours(available),
        available_days=round(available / hours_per_day, 2),
        opening_balance_hours=opening,
        accrued_hours=accrued,
        adjusted_hours=adjusted,
        used_approved_hours=used_approved,
        used_pending_hours=used_pending,
        eligible=accrual.eligible if accrual else True,
        eligibility_date=accrual.eligibility_date if accrual else None,
        policy_configured=policy_configured,
        status_note=note,
        last_calculated_date=balance.last_calculated_date,
        allow_negative=bool(balance.allow_negative),
    )


def select_policy(policies: List[LeavePolicy], category: str, employment_type: str) -> Optional[LeavePolicy]:
    """Most specific active policy for a category: exact employment scope first, then 'any', defaults first."""
    candidates = [
        p for p in policies
        if p.category == category and p.is_active
        and p.employment_type_scope in (employment_type, EmploymentScope.ANY.value)
    ]
    if not candidates:
        return None
    candidates.sort(key=lambda p: (
        p.employment_type_scope != employment_type,
        not p.is_default,
        p.id or 0,
    ))
    return candidates[0]


def policy_terms(policy: LeavePolicy) -> Tuple[str, float, float, float]:
    """(unit, rate, hours_per_day, hours_per_week) with missing numbers replaced by defaults."""
    context = f"leave_policy:{policy.id}"
    unit = policy.accrual_unit or AccrualUnit.DAYS_PER_YEAR.value
    rate = coerce_number(policy.accrual_rate, 0.0, "accrual_rate", context)
    hours_per_day = coerce_number(
        policy.standard_hours_per_day, settings.leave.standard_hours_per_day, "standard_hours_per_day", context
    )
    hours_per_week = coerce_number(
        policy.hours_per_week_reference, settings.leave.full_time_hours_per_week, "hours_per_week_reference", context
    )
    return unit, rate, hours_per_day, hours_per_week


def policy_daily_rate(policy: LeavePolicy) -> float:
    return daily_accrual_rate(*policy_terms(policy))


class LeaveBalanceService:
    def __init__(
        self,
        db: Session,
        guard: Optional[InitializationGuard] = None,
        signal: Optional[BalanceVersionSignal] = None,
    ):
        self.db = db
        self.guard = guard or initialization_guard
        self.signal = signal or balance_version_signal

    # --- Context loading ---

    def get_employee(self, organization_id: int, employee_id: int) -> Employee:
        organization = self.db.get(Organization, organization_id)
        if not organization:
            raise MissingContextError(
                f"Organization {organization_id} not found",
                details={"organization_id": organization_id},
            )
        employee = self.db.query(Employee).filter(
            Employee.id == employee_id,
            Employee.organization_id == organization_id,
        ).first()
        if not employee:
            raise MissingContextError(
                f"Employee {employee_id} not found in organization {organization_id}",
                details={"employee_id": employee_id, "organization_id": organization_id},
            )
        return employee

    def region_for(self, employee: Employee) -> Optional[str]:
        if employee.region_code:
            return employee.region_code
        if employee.organization and employee.organization.default_region_code:
            return employee.organization.default_region_code
        return settings.leave.default_region_code

    def fraction_periods(self, employee: Employee) -> List[FractionPeriod]:
        return build_fraction_periods(
            employee.service_start_date,
            employee.employment_history,
            coerce_number(employee.employment_fraction, 1.0, "employment_fraction", f"employee:{employee.id}"),
            coerce_number(
                employee.standard_hours_per_day,
                settings.leave.standard_hours_per_day,
                "standard_hours_per_day",
                f"employee:{employee.id}",
            ),
        )

    def active_policies(self, organization_id: int) -> List[LeavePolicy]:
        return self.db.query(LeavePolicy).filter(
            LeavePolicy.organization_id == organization_id,
            LeavePolicy.is_active.is_(True),
        ).all()

    def _balance_rows(self, organization_id: int, employee_id: int) -> List[LeaveBalance]:
        return self.db.query(LeaveBalance).filter(
            LeaveBalance.organization_id == organization_id,
            LeaveBalance.employee_id == employee_id,
        ).order_by(LeaveBalance.category).all()

    def get_balance_row(self, organization_id: int, employee_id: int, category: str) -> Optional[LeaveBalance]:
        return self.db.query(LeaveBalance).filter(
            LeaveBalance.organization_id == organization_id,
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.category == category,
        ).first()

    # --- Accrual ---

    def accrual_for(
        self,
        employee: Employee,
        policy: Optional[LeavePolicy],
        periods: List[FractionPeriod],
        as_of: date,
    ) -> Optional[AccrualResult]:
        if policy is None:
            return None
        if not employee.accrues_paid_leave and policy.excludes_casual:
            return None
        return calculate_accrual(
            employee.service_start_date,
            periods,
            policy_daily_rate(policy),
            as_of,
            eligibility_waiting_years=policy.eligibility_waiting_years,
        )

    def _refresh_row(
        self,
        employee: Employee,
        row: LeaveBalance,
        policies: List[LeavePolicy],
        periods: List[FractionPeriod],
        as_of: date,
    ) -> Tuple[BalanceView, bool]:
        """
        Compute the view for one row and persist accrual when moving forward in time.
        Returns (view, row_changed).
        """
        policy = select_policy(policies, row.category, employee.employment_type)
        accrual = self.accrual_for(employee, policy, periods, as_of)

        changed = False
        if accrual is not None and (row.last_calculated_date is None or as_of >= row.last_calculated_date):
            if row.accrued_hours != accrual.accrued_hours or row.last_calculated_date != as_of:
                row.accrued_hours = accrual.accrued_hours
                row.last_calculated_date = as_of
                changed = True

        view = aggregate_balance(
            row,
            accrual,
            policy_configured=policy is not None,
            accrues_paid_leave=employee.accrues_paid_leave,
            excluded_by_policy=policy is None or bool(policy.excludes_casual),
            standard_hours_per_day=employee.standard_hours_per_day or settings.leave.standard_hours_per_day,
        )
        return view, changed

    # --- Public operations ---

    def initialize(self, organization_id: int, employee_id: int) -> int:
        self.get_employee(organization_id, employee_id)
        return BalanceInitializer(self.db, self.guard, self.signal).initialize(employee_id, organization_id)

    def get_balances(
        self,
        organization_id: int,
        employee_id: int,
        reference_date: Optional[date] = None,
    ) -> Dict[str, BalanceView]:
        employee = self.get_employee(organization_id, employee_id)
        BalanceInitializer(self.db, self.guard, self.signal).initialize(employee_id, organization_id)

        as_of = reference_date or date.today()
        policies = self.active_policies(organization_id)
        periods = self.fraction_periods(employee)
        stale = self.revalidate_open_requests(employee)

        views: Dict[str, BalanceView] = {}
        dirty = False
        try:
            for row in self._balance_rows(organization_id, employee_id):
                view, changed = self._refresh_row(employee, row, policies, periods, as_of)
                view.stale_request_ids = stale.get(row.category, [])
                views[row.category] = view
                dirty = dirty or changed
            if dirty:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return views

    def revalidate_open_requests(self, employee: Employee) -> Dict[str, List[int]]:
        """
        Recount chargeable days of pending/approved requests against today's
        holiday calendar. Drift from the value cached at submission is logged
        and reported per category; the stored amounts are left untouched.
        """
        open_requests = self.db.query(LeaveRequest).filter(
            LeaveRequest.employee_id == employee.id,
            LeaveRequest.organization_id == employee.organization_id,
            LeaveRequest.status.in_(OPEN_STATUSES),
        ).all()
        if not open_requests:
            return {}

        region = self.region_for(employee)
        stale: Dict[str, List[int]] = {}
        for req in open_requests:
            holidays = resolve_holidays(self.db, employee.organization_id, region, req.start_date, req.end_date)
            try:
                days = calculate_chargeable_days(req.start_date, req.end_date, holidays, req.partial_day_type).chargeable_days
            except InvalidLeaveRequestError as e:
                logger.warning(f"Leave request {req.id} no longer valid: {e.message}")
                stale.setdefault(req.category, []).append(req.id)
                continue
            if abs(days - (req.total_chargeable_days or 0.0)) > 1e-9:
                logger.warning(
                    f"Leave request {req.id} chargeable days drifted: cached {req.total_chargeable_days}, now {days}",
                    extra={"leave_request_id": req.id, "employee_id": employee.id},
                )
                stale.setdefault(req.category, []).append(req.id)
        return stale

    def view_for_category(self, employee: Employee, category: str, as_of: Optional[date] = None) -> BalanceView:
        """Current view of a single category (no persistence)."""
        row = self.get_balance_row(employee.organization_id, employee.id, category)
        if row is None:
            raise MissingContextError(
                f"No {category} leave balance for employee {employee.id}",
                details={"employee_id": employee.id, "category": category},
            )
        policies = self.active_policies(employee.organization_id)
        policy = select_policy(policies, category, employee.employment_type)
        accrual = self.accrual_for(employee, policy, self.fraction_periods(employee), as_of or date.today())
        return aggregate_balance(
            row,
            accrual,
            policy_configured=policy is not None,
            accrues_paid_leave=employee.accrues_paid_leave,
            excluded_by_policy=policy is None or bool(policy.excludes_casual),
            standard_hours_per_day=employee.standard_hours_per_day or settings.leave.standard_hours_per_day,
        )

    def entitlement_summary(self, organization_id: int, employee_id: int) -> EntitlementSummary:
        """FTE and pro-rata annual entitlement per category under the employee's policies."""
        employee = self.get_employee(organization_id, employee_id)
        hours_per_week = employee.hours_per_week
        if hours_per_week is None and employee.employment_type == EmploymentType.PART_TIME.value:
            hours_per_week = (employee.employment_fraction or 0.0) * settings.leave.full_time_hours_per_week
        fte = calculate_fte(employee.employment_type, hours_per_week)

        entitlements = {}
        if employee.accrues_paid_leave:
            policies = self.active_policies(organization_id)
            for category in sorted({p.category for p in policies}):
                policy = select_policy(policies, category, employee.employment_type)
                if policy is None:
                    continue
                entitlements[category] = pro_rata_entitlement(*policy_terms(policy), fte.fte)

        return EntitlementSummary(
            employee_id=employee.id,
            employment_type=employee.employment_type,
            fte=fte,
            entitlements=entitlements,
        )

    def adjust_balance(
        self,
        organization_id: int,
        employee_id: int,
        category: str,
        hours: float,
        reason: str,
    ) -> BalanceView:
        """Apply a signed manual correction. The resulting balance must stay non-negative unless overridden."""
        employee = self.get_employee(organization_id, employee_id)
        BalanceInitializer(self.db, self.guard, self.signal).initialize(employee_id, organization_id)

        row = self.get_balance_row(organization_id, employee_id, category)
        if row is None:
            raise MissingContextError(
                f"No {category} leave balance for employee {employee_id}",
                details={"employee_id": employee_id, "category": category},
            )

        try:
            row.adjusted_hours = (row.adjusted_hours or 0.0) + hours
            self.db.add(LeaveBalanceAdjustment(balance_id=row.id, hours=hours, reason=reason))
            view = self.view_for_category(employee, category)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Adjusted {category} balance for employee {employee_id} by {hours}h",
            extra={"employee_id": employee_id, "category": category, "reason": reason},
        )
        self.signal.bump("balance_adjusted", organization_id=organization_id, employee_id=employee_id)
        return view

    def recalculate_organization(self, organization_id: int, reference_date: Optional[date] = None) -> Tuple[int, int]:
        """Recompute accrual for every active employee. Returns (employees_processed, rows_updated)."""
        if not self.db.get(Organization, organization_id):
            raise MissingContextError(
                f"Organization {organization_id} not found",
                details={"organization_id": organization_id},
            )

        as_of = reference_date or date.today()
        policies = self.active_policies(organization_id)
        employees = self.db.query(Employee).filter(
            Employee.organization_id == organization_id,
            Employee.is_active.is_(True),
        ).all()

        initializer = BalanceInitializer(self.db, self.guard, self.signal)
        updated = 0
        try:
            for employee in employees:
                initializer.initialize(employee.id, organization_id)
                periods = self.fraction_periods(employee)
                for row in self._balance_rows(organization_id, employee.id):
                    _, changed = self._refresh_row(employee, row, policies, periods, as_of)
                    if changed:
                        updated += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Recalculated leave accrual for {len(employees)} employee(s) in organization {organization_id}")
        if updated:
            self.signal.bump("accrual_recalculated", organization_id=organization_id)
        return len(employees), updated

    def record_employment_change(
        self,
        organization_id: int,
        employee_id: int,
        effective_from: date,
        employment_fraction: float,
        standard_hours_per_day: float,
        note: Optional[str] = None,
    ) -> List[FractionPeriod]:
        """
        Record new employment terms from ``effective_from``.

        The first change also writes a baseline entry carrying the previous terms
        from the service start, so days before the change keep accruing at the
        old fraction.
        Existing balances are recomputed under the new terms before commit; a change
        that would leave one negative without the override flag is rejected.
        """
        employee = self.get_employee(organization_id, employee_id)
        if effective_from < employee.service_start_date:
            raise InvalidLeaveRequestError(
                "Employment change cannot take effect before the service start date",
                details={"effective_from": effective_from.isoformat()},
            )

        try:
            if not employee.employment_history and effective_from > employee.service_start_date:
                self.db.add(EmploymentHistory(
                    employee_id=employee.id,
                    effective_from=employee.service_start_date,
                    employment_fraction=employee.employment_fraction,
                    standard_hours_per_day=employee.standard_hours_per_day,
                    note="baseline",
                ))
            self.db.add(EmploymentHistory(
                employee_id=employee.id,
                effective_from=effective_from,
                employment_fraction=employment_fraction,
                standard_hours_per_day=standard_hours_per_day,
                note=note,
            ))
            self.db.flush()
            self.db.refresh(employee)

            current = None
            for entry in employee.employment_history:
                if entry.effective_from <= date.today():
                    current = entry
            if current is not None:
                employee.employment_fraction = current.employment_fraction
                employee.standard_hours_per_day = current.standard_hours_per_day

            policies = self.active_policies(organization_id)
            periods = self.fraction_periods(employee)
            for row in self._balance_rows(organization_id, employee_id):
                as_of = max(d for d in (date.today(), effective_from, row.last_calculated_date) if d is not None)
                self._refresh_row(employee, row, policies, periods, as_of)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(employee)
        logger.info(
            f"Employment change for employee {employee_id} from {effective_from}: "
            f"fraction={employment_fraction}, hours/day={standard_hours_per_day}"
        )
        self.signal.bump("employment_changed", organization_id=organization_id, employee_id=employee_id)
        return self.fraction_periods(employee)
