from datetime import date
from typing import Dict, List, Optional, Set

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models.public_holiday import PublicHoliday
from app.schemas.leave import HolidayInfo


def resolve_holidays(
    db: Session,
    organization_id: int,
    region_code: Optional[str],
    start: date,
    end: date,
) -> List[HolidayInfo]:
    """
    Observed public holidays for a tenant/region within [start, end].

    Entity-wide rows (no region) apply everywhere; region rows only to their
    region. A date present in both calendars is returned once, taking the
    region-specific name. An empty calendar simply yields an empty list.
    """
    if end < start:
        return []

    query = db.query(PublicHoliday).filter(
        PublicHoliday.organization_id == organization_id,
        PublicHoliday.date >= start,
        PublicHoliday.date <= end,
    )
    if region_code:
        query = query.filter(or_(PublicHoliday.region_code.is_(None), PublicHoliday.region_code == region_code))
    else:
        query = query.filter(PublicHoliday.region_code.is_(None))

    by_date: Dict[date, HolidayInfo] = {}
    for row in query.all():
        existing = by_date.get(row.date)
        if existing is None or (existing.region_code is None and row.region_code is not None):
            by_date[row.date] = HolidayInfo(date=row.date, name=row.name, region_code=row.region_code)

    return [by_date[d] for d in sorted(by_date)]


def holiday_dates(holidays: List[HolidayInfo]) -> Set[date]:
    return {h.date for h in holidays}
