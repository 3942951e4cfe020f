from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.exceptions import AppException
from app.database import get_db
from app.dependencies import get_current_org
from app.models.public_holiday import PublicHoliday
from app.schemas.holiday import PublicHolidayCreate, PublicHolidayResponse
from app.schemas.leave import HolidayInfo
from app.services.holidays import resolve_holidays

router = APIRouter(prefix="/public-holidays", tags=["public-holidays"])


@router.get("", response_model=List[PublicHolidayResponse])
def list_holidays(
    year: Optional[int] = None,
    region_code: Optional[str] = None,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
):
    query = db.query(PublicHoliday).filter(PublicHoliday.organization_id == org_id)
    if year:
        query = query.filter(PublicHoliday.date >= date(year, 1, 1), PublicHoliday.date <= date(year, 12, 31))
    if region_code:
        query = query.filter(PublicHoliday.region_code == region_code)
    return query.order_by(PublicHoliday.date).all()


@router.get("/resolved", response_model=List[HolidayInfo])
def resolved_holidays(
    start_date: date,
    end_date: date,
    region_code: Optional[str] = None,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
):
    """Holidays observed in a region: entity-wide plus region-specific, one per date."""
    return resolve_holidays(db, org_id, region_code, start_date, end_date)


@router.post("", response_model=PublicHolidayResponse, status_code=status.HTTP_201_CREATED)
def create_holiday(
    holiday_in: PublicHolidayCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
):
    existing = db.query(PublicHoliday).filter(
        PublicHoliday.organization_id == org_id,
        PublicHoliday.date == holiday_in.date,
        PublicHoliday.region_code.is_(None) if holiday_in.region_code is None
        else PublicHoliday.region_code == holiday_in.region_code,
    ).first()
    if existing:
        raise AppException(
            f"A public holiday already exists on {holiday_in.date} for this region",
            status_code=status.HTTP_409_CONFLICT,
            error_code="DUPLICATE_HOLIDAY",
        )

    holiday = PublicHoliday(organization_id=org_id, **holiday_in.model_dump())
    db.add(holiday)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(holiday)
    return holiday
