import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_org
from app.models.leave_policy import LeavePolicy
from app.schemas.policy import (
    ComplianceReport,
    LeavePolicyCreate,
    LeavePolicyResponse,
    LeavePolicySaveResponse,
    PolicyConfig,
    SeedDefaultsResponse,
)
from app.services.balance_init import InitializationGuard, get_initialization_guard
from app.services.compliance import build_compliance_report, validate_compliance
from app.services.leave_policy_defaults import seed_nes_defaults

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leave-policies", tags=["leave-policies"])


def _org_policies(db: Session, org_id: int) -> List[LeavePolicy]:
    return db.query(LeavePolicy).filter(
        LeavePolicy.organization_id == org_id,
    ).order_by(LeavePolicy.category, LeavePolicy.id).all()


@router.get("", response_model=List[LeavePolicyResponse])
def list_policies(db: Session = Depends(get_db), org_id: int = Depends(get_current_org)):
    return _org_policies(db, org_id)


@router.post("", response_model=LeavePolicySaveResponse, status_code=status.HTTP_201_CREATED)
def create_policy(
    policy_in: LeavePolicyCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    guard: InitializationGuard = Depends(get_initialization_guard),
):
    """
    Save a policy and report NES compliance issues for the whole policy set.
    Issues are informational; the policy is saved regardless.
    """
    policy = LeavePolicy(organization_id=org_id, **policy_in.model_dump(mode="json"))
    db.add(policy)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(policy)

    # Employees may now need a balance row for a new category
    guard.forget_organization(org_id)

    issues = validate_compliance(_org_policies(db, org_id))
    logger.info(f"Leave policy {policy.id} ({policy.category}) created for organization {org_id}")
    return LeavePolicySaveResponse(
        policy=LeavePolicyResponse.model_validate(policy),
        issues=[i for i in issues if i.policy_name == policy.name],
    )


@router.post("/nes-defaults", response_model=SeedDefaultsResponse)
def seed_defaults(db: Session = Depends(get_db), org_id: int = Depends(get_current_org)):
    created = seed_nes_defaults(db, org_id)
    return SeedDefaultsResponse(
        created=len(created),
        policies=[LeavePolicyResponse.model_validate(p) for p in created],
    )


@router.get("/compliance", response_model=ComplianceReport)
def compliance_report(db: Session = Depends(get_db), org_id: int = Depends(get_current_org)):
    return build_compliance_report(validate_compliance(_org_policies(db, org_id)))


@router.post("/compliance/check", response_model=ComplianceReport)
def check_compliance(policies: List[PolicyConfig]):
    """Dry-run a policy set without saving it."""
    return build_compliance_report(validate_compliance(policies))
