# ============================================================================
# src/lab_reconciliation/constants/plans.py
# ============================================================================
"""
Plan tiers
- Uploads per month (None = unlimited)
- Max profiles per account
- Feature flags
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PlanLimits:
    uploads_per_month: Optional[int]
    max_profiles: int
    export_pdf: bool
    priority_parsing: bool


PLAN_LIMITS = {
    "free": PlanLimits(
        uploads_per_month=3,
        max_profiles=2,
        export_pdf=False,
        priority_parsing=False,
    ),
    "pro": PlanLimits(
        uploads_per_month=None,
        max_profiles=10,
        export_pdf=True,
        priority_parsing=True,
    ),
    "lifetime": PlanLimits(
        uploads_per_month=None,
        max_profiles=20,
        export_pdf=True,
        priority_parsing=True,
    ),
}

DEFAULT_PLAN = "free"


def get_plan_limits(plan: str) -> PlanLimits:
    """Limits for a plan name; unknown plans fall back to the free tier."""
    return PLAN_LIMITS.get(plan, PLAN_LIMITS[DEFAULT_PLAN])
