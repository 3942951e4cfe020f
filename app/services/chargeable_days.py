"""
Chargeable-day calculation.

A day is chargeable when it is a weekday and not an observed public holiday.
Ranges are walked day by day across their whole span, so a request crossing
31 December is counted as one continuous range.
"""
from datetime import date, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from sqlalchemy.orm import Session

from app.core.exceptions import InvalidLeaveRequestError
from app.models.leave_request import PartialDayType, HALF_DAY_TYPES
from app.schemas.leave import ChargeableDayBreakdown, HolidayInfo
from app.services.holidays import holiday_dates, resolve_holidays

HALF_DAY = 0.5
FULL_DAY = 1.0

HolidayInput = Union[Iterable[HolidayInfo], Iterable[date]]


def daterange(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def _normalize_partial(partial_day_type: Optional[Union[str, PartialDayType]]) -> str:
    if partial_day_type is None:
        return PartialDayType.FULL.value
    value = partial_day_type.value if isinstance(partial_day_type, PartialDayType) else str(partial_day_type)
    if value not in {p.value for p in PartialDayType}:
        raise InvalidLeaveRequestError(f"Unknown partial day type '{value}'")
    return value


def validate_request_shape(start: date, end: date, partial_day_type: Optional[Union[str, PartialDayType]] = None) -> str:
    """
    Reject malformed ranges before any counting happens.
    Returns the normalized partial day type.
    """
    partial = _normalize_partial(partial_day_type)
    if start is None or end is None:
        raise InvalidLeaveRequestError("Both start and end dates are required")
    if end < start:
        raise InvalidLeaveRequestError(
            "End date is before start date",
            details={"start_date": start.isoformat(), "end_date": end.isoformat()},
        )
    if partial in HALF_DAY_TYPES and start != end:
        raise InvalidLeaveRequestError(
            "Half-day leave must start and end on the same day",
            details={"start_date": start.isoformat(), "end_date": end.isoformat(), "partial_day_type": partial},
        )
    return partial


def calculate_chargeable_days(
    start: date,
    end: date,
    holidays: HolidayInput = (),
    partial_day_type: Optional[Union[str, PartialDayType]] = None,
) -> ChargeableDayBreakdown:
    partial = validate_request_shape(start, end, partial_day_type)

    items = list(holidays)
    holiday_list: List[HolidayInfo] = [h for h in items if isinstance(h, HolidayInfo)]
    holiday_set: Set[date] = holiday_dates(holiday_list) | {h for h in items if not isinstance(h, HolidayInfo)}

    total = 0
    weekends = 0
    weekday_holidays = 0
    chargeable: List[date] = []
    for day in daterange(start, end):
        total += 1
        if is_weekend(day):
            # A holiday on a weekend is only counted once, as a weekend
            weekends += 1
        elif day in holiday_set:
            weekday_holidays += 1
        else:
            chargeable.append(day)

    chargeable_days = float(len(chargeable))
    if partial in HALF_DAY_TYPES:
        if not chargeable:
            raise InvalidLeaveRequestError(
                "Half-day leave cannot be taken on a weekend or public holiday",
                details={"date": start.isoformat(), "partial_day_type": partial},
            )
        chargeable_days = HALF_DAY

    details = sorted(
        (h for h in holiday_list if start <= h.date <= end),
        key=lambda h: h.date,
    )

    return ChargeableDayBreakdown(
        start_date=start,
        end_date=end,
        partial_day_type=PartialDayType(partial),
        total_calendar_days=total,
        weekend_count=weekends,
        holiday_count=weekday_holidays,
        chargeable_days=chargeable_days,
        chargeable_dates=chargeable,
        holiday_details=details,
    )


def calculate_chargeable_days_for_region(
    db: Session,
    organization_id: int,
    start: date,
    end: date,
    region_code: Optional[str],
    partial_day_type: Optional[Union[str, PartialDayType]] = None,
) -> ChargeableDayBreakdown:
    """Resolve the region's holidays and count chargeable days in one call."""
    validate_request_shape(start, end, partial_day_type)
    holidays = resolve_holidays(db, organization_id, region_code, start, end)
    return calculate_chargeable_days(start, end, holidays, partial_day_type)


def day_portion(partial_day_type: Optional[Union[str, PartialDayType]]) -> float:
    return HALF_DAY if _normalize_partial(partial_day_type) in HALF_DAY_TYPES else FULL_DAY


def combine_day_portions(entries: Iterable[Tuple[date, Optional[Union[str, PartialDayType]]]]) -> Dict[date, float]:
    """
    Combine per-date leave portions from several requests.

    AM + PM on the same date is one full day; a full day absorbs any halves;
    the same half requested twice still counts once. Every date is capped at 1.0.
    """
    seen: Dict[date, Set[str]] = {}
    for day, partial in entries:
        seen.setdefault(day, set()).add(_normalize_partial(partial))

    combined: Dict[date, float] = {}
    for day, parts in seen.items():
        if PartialDayType.FULL.value in parts:
            combined[day] = FULL_DAY
        else:
            combined[day] = min(FULL_DAY, HALF_DAY * len(parts & HALF_DAY_TYPES))
    return combined


def portions_conflict(existing: Optional[Union[str, PartialDayType]], new: Optional[Union[str, PartialDayType]]) -> bool:
    """Two requests touching the same day conflict unless they are opposite halves."""
    a = _normalize_partial(existing)
    b = _normalize_partial(new)
    if a in HALF_DAY_TYPES and b in HALF_DAY_TYPES:
        return a == b
    return True
