import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class LeaveSettings(BaseModel):
    # Reference full-time week (AU standard)
    standard_hours_per_day: float = float(os.getenv("LEAVE_STANDARD_HOURS_PER_DAY", "7.6"))
    full_time_hours_per_week: float = float(os.getenv("LEAVE_FULL_TIME_HOURS_PER_WEEK", "38"))

    # Annual entitlements are spread over this many calendar days
    days_per_accrual_year: int = int(os.getenv("LEAVE_DAYS_PER_ACCRUAL_YEAR", "365"))

    default_categories: List[str] = Field(
        default_factory=lambda: _env_list("LEAVE_DEFAULT_CATEGORIES", "annual,personal")
    )
    default_region_code: str = os.getenv("LEAVE_DEFAULT_REGION_CODE", "NSW")
    init_guard_timeout_seconds: float = float(os.getenv("LEAVE_INIT_GUARD_TIMEOUT", "10"))

    # NES minimums used by the compliance checker
    nes_annual_weeks: float = 4.0
    nes_personal_days: float = 10.0


class Config(BaseModel):
    app_name: str = "Leave Balance Engine"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    version: str = "1.0.0"
    build_id: str = os.getenv("BUILD_ID", "local")
    request_id_header: str = "X-Request-ID"
    organization_header: str = "X-Organization-Id"

    # CORS: comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: _env_list(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        )
    )

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    leave: LeaveSettings = LeaveSettings()


settings = Config()

_logger = logging.getLogger(__name__)
if settings.environment != "development" and settings.database_url.startswith("sqlite:///./"):
    _logger.warning("Using the local SQLite database outside development.")
