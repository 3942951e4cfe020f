"""
NES Compliance Checker

Compares leave policy configuration against the Australian National
Employment Standards minimums:

- Annual leave: 4 weeks per year (4 x 38h = 152h full-time)
- Personal/carer's leave: 10 days per year (10 x 7.6h = 76h full-time)
- Part-time: pro-rata of the full-time entitlement by contracted hours
- Casual: no paid annual or personal leave

Issues are advisory. Nothing here raises or blocks a save; callers decide
what to do with the returned list.
"""
import logging
from typing import Iterable, List, Optional, Union

from app.core.coercion import coerce_number, coerce_optional_number
from app.core.config import settings
from app.models.leave_policy import AccrualUnit, EmploymentScope, LeaveCategory, LeavePolicy
from app.schemas.policy import ComplianceIssue, ComplianceReport, PolicyConfig
from app.services.accrual import annual_entitlement_hours

logger = logging.getLogger(__name__)

ORGANIZATION_SCOPE = "Organization"
PAID_CATEGORIES = {LeaveCategory.ANNUAL.value, LeaveCategory.PERSONAL.value}
KNOWN_UNITS = {u.value for u in AccrualUnit}

# Rounding slack when comparing hours
TOLERANCE = 0.01


def nes_annual_minimum_hours() -> float:
    return settings.leave.nes_annual_weeks * settings.leave.full_time_hours_per_week


def nes_personal_minimum_hours() -> float:
    return settings.leave.nes_personal_days * settings.leave.standard_hours_per_day


def _issue(policy_name: str, severity: str, message: str) -> ComplianceIssue:
    return ComplianceIssue(policy_name=policy_name, severity=severity, message=message)


def _as_config(policy: Union[PolicyConfig, LeavePolicy, dict]) -> PolicyConfig:
    if isinstance(policy, PolicyConfig):
        return policy
    if isinstance(policy, dict):
        return PolicyConfig.model_validate(policy)
    return PolicyConfig.model_validate(policy, from_attributes=True)


def _check_policy(policy: PolicyConfig) -> List[ComplianceIssue]:
    issues: List[ComplianceIssue] = []
    name = policy.name
    context = f"policy:{name}"
    scope = policy.employment_type_scope or EmploymentScope.ANY.value
    category = policy.category

    if scope == EmploymentScope.CASUAL.value and category in PAID_CATEGORIES:
        issues.append(_issue(
            name, "info",
            f"Casual employees are not entitled to paid {category} leave under the NES "
            f"(they receive a casual loading instead); the accrual rate is ignored.",
        ))
        return issues

    if category == LeaveCategory.LONG_SERVICE.value:
        waiting = coerce_optional_number(policy.eligibility_waiting_years, "eligibility_waiting_years", context)
        if not waiting or waiting <= 0:
            issues.append(_issue(
                name, "warning",
                "Long service leave policy has no qualifying period; employees will accrue from day one.",
            ))
        issues.append(_issue(
            name, "info",
            "Long service leave is governed by state and territory legislation, not the NES.",
        ))
        return issues

    unit = policy.accrual_unit
    if not unit:
        issues.append(_issue(name, "warning", f"No accrual unit set; treating the rate as {AccrualUnit.DAYS_PER_YEAR.value}."))
        unit = AccrualUnit.DAYS_PER_YEAR.value
    elif unit not in KNOWN_UNITS:
        issues.append(_issue(name, "warning", f"Unknown accrual unit '{unit}'; the entitlement could not be checked."))
        return issues

    rate = coerce_number(policy.accrual_rate, 0.0, "accrual_rate", context)
    if rate <= 0:
        issues.append(_issue(name, "warning", "Accrual rate is missing, zero or not a number."))

    hours_per_day = coerce_number(
        policy.standard_hours_per_day, settings.leave.standard_hours_per_day, "standard_hours_per_day", context
    )
    hours_per_week = coerce_number(
        policy.hours_per_week_reference, settings.leave.full_time_hours_per_week, "hours_per_week_reference", context
    )
    if abs(hours_per_day * 5 - hours_per_week) > TOLERANCE:
        issues.append(_issue(
            name, "warning",
            f"Standard hours per day ({hours_per_day:g}) x 5 does not match the weekly reference "
            f"({hours_per_week:g}h); day-based entitlements may convert unexpectedly.",
        ))

    if category not in PAID_CATEGORIES:
        return issues

    entitlement = annual_entitlement_hours(unit, rate, hours_per_day, hours_per_week)
    if category == LeaveCategory.ANNUAL.value:
        minimum = nes_annual_minimum_hours()
        label = f"{settings.leave.nes_annual_weeks:g} weeks"
    else:
        minimum = nes_personal_minimum_hours()
        label = f"{settings.leave.nes_personal_days:g} days"

    if scope == EmploymentScope.PART_TIME.value:
        # Pro-rata of the full-time minimum by the policy's weekly hours
        required = minimum / settings.leave.full_time_hours_per_week * max(hours_per_week, 0.0)
        if entitlement + TOLERANCE < required:
            issues.append(_issue(
                name, "error",
                f"Part-time {category} leave is below the pro-rata NES minimum of {label} per year "
                f"({required:.2f}h for {hours_per_week:g}h/week, policy gives {entitlement:.2f}h).",
            ))
        if unit == AccrualUnit.DAYS_PER_YEAR.value:
            issues.append(_issue(
                name, "warning",
                "Part-time entitlement is expressed in days; pro-rata conversion depends on the "
                "employee's hours per day. Consider hours or weeks.",
            ))
    elif entitlement + TOLERANCE < minimum:
        issues.append(_issue(
            name, "error",
            f"{category.capitalize()} leave provides {entitlement:.2f}h per year, below the NES minimum "
            f"of {label} ({minimum:.2f}h).",
        ))

    if category == LeaveCategory.ANNUAL.value and not policy.payout_on_termination:
        issues.append(_issue(
            name, "warning",
            "Untaken annual leave must be paid out on termination under the NES.",
        ))
    if category == LeaveCategory.PERSONAL.value and policy.payout_on_termination:
        issues.append(_issue(
            name, "info",
            "Personal/carer's leave is paid out on termination; this is not required by the NES.",
        ))
    return issues


def validate_compliance(policies: Iterable[Union[PolicyConfig, LeavePolicy, dict]]) -> List[ComplianceIssue]:
    """Check every active policy plus the presence of annual and personal leave cover."""
    configs = [_as_config(p) for p in policies]
    active = [c for c in configs if c.is_active is not False]

    issues: List[ComplianceIssue] = []
    for config in active:
        issues.extend(_check_policy(config))

    covered = {
        c.category for c in active
        if (c.employment_type_scope or EmploymentScope.ANY.value) != EmploymentScope.CASUAL.value
    }
    if LeaveCategory.ANNUAL.value not in covered:
        issues.append(_issue(ORGANIZATION_SCOPE, "error", "No active annual leave policy is configured."))
    if LeaveCategory.PERSONAL.value not in covered:
        issues.append(_issue(ORGANIZATION_SCOPE, "error", "No active personal/carer's leave policy is configured."))

    if issues:
        logger.info(
            f"Compliance check found {sum(1 for i in issues if i.severity == 'error')} error(s) "
            f"across {len(active)} active policies"
        )
    return issues


def build_compliance_report(issues: List[ComplianceIssue], policy_name: Optional[str] = None) -> ComplianceReport:
    if policy_name is not None:
        issues = [i for i in issues if i.policy_name == policy_name]
    errors = sum(1 for i in issues if i.severity == "error")
    return ComplianceReport(
        compliant=errors == 0,
        errors=errors,
        warnings=sum(1 for i in issues if i.severity == "warning"),
        infos=sum(1 for i in issues if i.severity == "info"),
        issues=issues,
    )
