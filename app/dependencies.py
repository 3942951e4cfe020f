"""
Request-scoped dependencies shared by the routers.

Tenant context comes from the ``X-Organization-Id`` header. Authentication
is handled upstream; this service only needs to know which tenant a request
belongs to.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.core.exceptions import MissingContextError
from app.database import get_db
from app.models.organization import Organization
from app.services.balance_init import InitializationGuard, get_initialization_guard
from app.services.leave_balance import LeaveBalanceService
from app.services.leave_cache import BalanceVersionSignal, get_version_signal
from app.services.leave_workflow import LeaveWorkflowService

logger = logging.getLogger(__name__)


def get_current_org(
    x_organization_id: Optional[str] = Header(None, alias="X-Organization-Id"),
    db: Session = Depends(get_db),
) -> int:
    """
    Resolve and validate the tenant for this request.
    """
    if not x_organization_id:
        logger.warning("Org validation failed: missing X-Organization-Id header")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Organization-Id header is required",
        )
    try:
        org_id = int(x_organization_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Organization-Id must be an integer",
        )

    organization = db.get(Organization, org_id)
    if organization is None or not organization.is_active:
        raise MissingContextError(
            f"Organization {org_id} not found",
            details={"organization_id": org_id},
        )
    return org_id


def get_balance_service(
    db: Session = Depends(get_db),
    guard: InitializationGuard = Depends(get_initialization_guard),
    signal: BalanceVersionSignal = Depends(get_version_signal),
) -> LeaveBalanceService:
    return LeaveBalanceService(db, guard=guard, signal=signal)


def get_workflow_service(
    db: Session = Depends(get_db),
    guard: InitializationGuard = Depends(get_initialization_guard),
    signal: BalanceVersionSignal = Depends(get_version_signal),
) -> LeaveWorkflowService:
    return LeaveWorkflowService(db, guard=guard, signal=signal)
