from pydantic import BaseModel, ConfigDict, Field
import datetime as dt
from typing import Optional


class PublicHolidayCreate(BaseModel):
    date: dt.date
    name: str = Field(..., min_length=1)
    region_code: Optional[str] = None


class PublicHolidayResponse(BaseModel):
    id: int
    date: dt.date
    name: str
    region_code: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
