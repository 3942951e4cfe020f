"""
National Employment Standards (AU) system policies.
Seeded for a tenant that has no leave policies yet.
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.leave_policy import AccrualUnit, EmploymentScope, LeaveCategory, LeavePolicy
from app.services.balance_init import initialization_guard

logger = logging.getLogger(__name__)


def _nes_policy(organization_id: int, **fields) -> LeavePolicy:
    return LeavePolicy(
        organization_id=organization_id,
        standard_hours_per_day=settings.leave.standard_hours_per_day,
        hours_per_week_reference=settings.leave.full_time_hours_per_week,
        is_minimum_standard=True,
        excludes_casual=True,
        is_system=True,
        is_active=True,
        **fields,
    )


def build_nes_default_policies(organization_id: int) -> List[LeavePolicy]:
    """Annual and personal/carer's leave, full-time and part-time."""
    annual_weeks = settings.leave.nes_annual_weeks
    personal_days = settings.leave.nes_personal_days
    return [
        _nes_policy(
            organization_id,
            code="ANNUAL_FT_AU",
            name="NES Annual Leave (Full-Time, AU)",
            category=LeaveCategory.ANNUAL.value,
            employment_type_scope=EmploymentScope.FULL_TIME.value,
            accrual_unit=AccrualUnit.WEEKS_PER_YEAR.value,
            accrual_rate=annual_weeks,
            payout_on_termination=True,
            is_default=True,
            notes="NES minimum 4 weeks annual leave for full-time employees in Australia.",
        ),
        _nes_policy(
            organization_id,
            code="ANNUAL_PT_AU",
            name="NES Annual Leave (Part-Time, AU)",
            category=LeaveCategory.ANNUAL.value,
            employment_type_scope=EmploymentScope.PART_TIME.value,
            accrual_unit=AccrualUnit.WEEKS_PER_YEAR.value,
            accrual_rate=annual_weeks,
            payout_on_termination=True,
            is_default=False,
            notes="NES minimum 4 weeks annual leave for part-time employees in Australia.",
        ),
        _nes_policy(
            organization_id,
            code="PERSONAL_FT_AU",
            name="NES Personal/Carer's Leave (Full-Time, AU)",
            category=LeaveCategory.PERSONAL.value,
            employment_type_scope=EmploymentScope.FULL_TIME.value,
            accrual_unit=AccrualUnit.DAYS_PER_YEAR.value,
            accrual_rate=personal_days,
            payout_on_termination=False,
            is_default=True,
            notes="NES minimum 10 days personal/carer's leave for full-time employees in Australia.",
        ),
        _nes_policy(
            organization_id,
            code="PERSONAL_PT_AU",
            name="NES Personal/Carer's Leave (Part-Time, AU)",
            category=LeaveCategory.PERSONAL.value,
            employment_type_scope=EmploymentScope.PART_TIME.value,
            accrual_unit=AccrualUnit.DAYS_PER_YEAR.value,
            accrual_rate=personal_days,
            payout_on_termination=False,
            is_default=False,
            notes="NES minimum 10 days personal/carer's leave for part-time employees in Australia.",
        ),
    ]


def seed_nes_defaults(db: Session, organization_id: int) -> List[LeavePolicy]:
    """Insert the NES policies when the tenant has none. Returns the created rows (possibly empty)."""
    existing = db.query(LeavePolicy).filter(LeavePolicy.organization_id == organization_id).count()
    if existing:
        logger.info(f"Organization {organization_id} already has {existing} leave policies; skipping NES seed")
        return []

    policies = build_nes_default_policies(organization_id)
    try:
        db.add_all(policies)
        db.commit()
    except Exception:
        db.rollback()
        raise
    for policy in policies:
        db.refresh(policy)

    initialization_guard.forget_organization(organization_id)
    logger.info(f"Seeded {len(policies)} NES leave policies for organization {organization_id}")
    return policies
