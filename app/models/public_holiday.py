from sqlalchemy import Column, Integer, String, Date, ForeignKey
from app.database import Base


class PublicHoliday(Base):
    __tablename__ = "public_holidays"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    region_code = Column(String, nullable=True, index=True)  # NULL = applies to every region of the entity
    name = Column(String, nullable=False)
