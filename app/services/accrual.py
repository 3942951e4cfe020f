"""
Accrual Calculator

Converts service history and employment fraction into accrued entitlement
hours. All functions here are pure: callers load the employee, history and
policy and pass plain values in.

Accrual model:
- A policy's annual entitlement is turned into hours per calendar day of
  service at 1.0 FTE (``daily_accrual_rate``).
- The service interval [service_start, as_of) is split at every change of
  employment terms; each sub-interval accrues at the fraction in force for
  those days only. Earlier sub-intervals are never restated when the
  fraction changes.
- The as-of day itself has not accrued yet (elapsed days).
"""
import calendar
from datetime import date, timedelta
from typing import Iterable, List, Optional

from app.core.config import settings
from app.models.employee import EmploymentType
from app.models.leave_policy import AccrualUnit
from app.schemas.leave import AccrualResult, FractionPeriod, FTESummary, ProRataEntitlement


def annual_entitlement_hours(
    accrual_unit: str,
    accrual_rate: float,
    standard_hours_per_day: float,
    hours_per_week_reference: float,
) -> float:
    """Full-time hours per year granted by a policy."""
    if accrual_unit == AccrualUnit.WEEKS_PER_YEAR.value:
        return accrual_rate * hours_per_week_reference
    if accrual_unit == AccrualUnit.HOURS_PER_YEAR.value:
        return accrual_rate
    if accrual_unit == AccrualUnit.DAYS_PER_YEAR.value:
        return accrual_rate * standard_hours_per_day
    raise ValueError(f"Unknown accrual unit: {accrual_unit}")


def daily_accrual_rate(
    accrual_unit: str,
    accrual_rate: float,
    standard_hours_per_day: float,
    hours_per_week_reference: float,
    days_per_year: Optional[int] = None,
) -> float:
    """Hours accrued per calendar day of service at 1.0 FTE."""
    days = days_per_year or settings.leave.days_per_accrual_year
    hours = annual_entitlement_hours(accrual_unit, accrual_rate, standard_hours_per_day, hours_per_week_reference)
    return hours / days


def build_fraction_periods(
    service_start: date,
    history: Iterable,
    fallback_fraction: float,
    fallback_hours_per_day: float,
) -> List[FractionPeriod]:
    """
    Turn fraction-history entries into contiguous periods starting at service_start.

    ``history`` items need ``effective_from``, ``employment_fraction`` and
    ``standard_hours_per_day`` attributes (ORM rows or FractionPeriod-like objects).
    Entries dated before the service start are clamped to it; for several entries
    on one date the last one wins. If the earliest entry starts after the service
    start, its terms are taken to apply from the service start too.
    With no history at all the fallback (current) terms cover the whole service.
    """
    by_start = {}
    for entry in sorted(history, key=lambda h: h.effective_from):
        start = max(entry.effective_from, service_start)
        by_start[start] = (entry.employment_fraction, entry.standard_hours_per_day)

    if not by_start:
        return [FractionPeriod(
            start=service_start,
            end=None,
            employment_fraction=fallback_fraction,
            standard_hours_per_day=fallback_hours_per_day,
        )]

    starts = sorted(by_start)
    if starts[0] > service_start:
        by_start[service_start] = by_start[starts[0]]
        starts.insert(0, service_start)

    periods = []
    for i, start in enumerate(starts):
        fraction, hours = by_start[start]
        end = starts[i + 1] if i + 1 < len(starts) else None
        periods.append(FractionPeriod(
            start=start,
            end=end,
            employment_fraction=fraction,
            standard_hours_per_day=hours,
        ))
    return periods


def accrue_hours(service_start: date, periods: List[FractionPeriod], daily_rate: float, as_of: date) -> float:
    """Sum of days x daily_rate x fraction over each sub-interval of [service_start, as_of)."""
    if as_of <= service_start:
        return 0.0

    total = 0.0
    for period in periods:
        seg_start = max(period.start, service_start)
        seg_end = min(period.end or as_of, as_of)
        if seg_end <= seg_start:
            continue
        days = (seg_end - seg_start).days
        total += days * daily_rate * period.employment_fraction
    return total


def add_years(start: date, years: float) -> date:
    whole = int(years)
    target_year = start.year + whole
    day = start.day
    if start.month == 2 and day == 29 and not calendar.isleap(target_year):
        day = 28
    result = start.replace(year=target_year, day=day)
    remainder = years - whole
    if remainder > 0:
        result += timedelta(days=round(remainder * 365))
    return result


def calculate_accrual(
    service_start: date,
    periods: List[FractionPeriod],
    daily_rate: float,
    as_of: date,
    eligibility_waiting_years: Optional[float] = None,
) -> AccrualResult:
    """
    Accrued hours as of ``as_of``.

    With a waiting period (long service leave), accrual only runs from the
    eligibility date. Before it the result is zero, ``eligible`` is False and
    what would have accrued so far is reported as ``deferred_hours`` for
    information. Hours from the waiting period are never credited.
    """
    if eligibility_waiting_years:
        eligibility_date = add_years(service_start, eligibility_waiting_years)
        if as_of < eligibility_date:
            return AccrualResult(
                as_of=as_of,
                accrued_hours=0.0,
                daily_rate=daily_rate,
                eligible=False,
                eligibility_date=eligibility_date,
                deferred_hours=accrue_hours(service_start, periods, daily_rate, as_of),
            )
        return AccrualResult(
            as_of=as_of,
            accrued_hours=accrue_hours(eligibility_date, periods, daily_rate, as_of),
            daily_rate=daily_rate,
            eligible=True,
            eligibility_date=eligibility_date,
        )

    accrued = accrue_hours(service_start, periods, daily_rate, as_of)
    return AccrualResult(as_of=as_of, accrued_hours=accrued, daily_rate=daily_rate)


def period_on(periods: List[FractionPeriod], day: date) -> Optional[FractionPeriod]:
    for period in periods:
        if period.start <= day and (period.end is None or day < period.end):
            return period
    return None


def hours_per_day_on(periods: List[FractionPeriod], day: date, default: float) -> float:
    """Standard hours per day in force on ``day``; days before the first period use the earliest terms."""
    period = period_on(periods, day)
    if period is None:
        period = periods[0] if periods and day < periods[0].start else None
    return period.standard_hours_per_day if period else default


def calculate_fte(employment_type: str, hours_per_week: Optional[float], full_time_hours: Optional[float] = None) -> FTESummary:
    full_time = full_time_hours or settings.leave.full_time_hours_per_week

    if employment_type == EmploymentType.FULL_TIME.value:
        return FTESummary(
            fte=1.0,
            fte_percent=100,
            hours_per_week=hours_per_week or full_time,
            full_time_hours=full_time,
            is_pro_rata=False,
        )

    if not hours_per_week:
        return FTESummary(full_time_hours=full_time, is_pro_rata=employment_type == EmploymentType.PART_TIME.value)

    fte = hours_per_week / full_time
    return FTESummary(
        fte=round(fte, 2),
        fte_percent=round(fte * 100),
        hours_per_week=hours_per_week,
        full_time_hours=full_time,
        is_pro_rata=employment_type == EmploymentType.PART_TIME.value,
    )


def pro_rata_entitlement(
    accrual_unit: str,
    accrual_rate: float,
    standard_hours_per_day: float,
    hours_per_week_reference: float,
    fte: Optional[float],
) -> ProRataEntitlement:
    """Annual entitlement scaled to an employee's FTE, in days and hours."""
    base_hours = annual_entitlement_hours(accrual_unit, accrual_rate, standard_hours_per_day, hours_per_week_reference)
    base_days = base_hours / standard_hours_per_day
    fraction = 1.0 if fte is None else fte
    pro_rata_days = base_days * fraction
    return ProRataEntitlement(
        base_days_per_year=round(base_days, 2),
        base_hours_per_year=round(base_hours, 2),
        pro_rata_days=round(pro_rata_days, 2),
        pro_rata_hours=round(pro_rata_days * standard_hours_per_day, 2),
        standard_hours_per_day=standard_hours_per_day,
    )
