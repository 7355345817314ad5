"""
Plan-based access control limits.

Central source of truth for what each billing tier includes.
Used by ingestion (monthly event quota), category and webhook management.
Monthly event ceilings come from settings so ops can tune them per deploy.
"""
from typing import Optional

from monitorflow.config import get_settings

PLAN_FREE = "FREE"
PLAN_PRO = "PRO"

PLAN_LIMITS: dict[str, dict] = {
    PLAN_FREE: {
        "max_event_categories": 3,
        "max_webhooks": 1,
    },
    PLAN_PRO: {
        "max_event_categories": 10,
        "max_webhooks": None,  # unlimited
    },
}


def get_plan_limits(plan: str) -> dict:
    """Get limits for a given plan. Defaults to FREE for unknown plans."""
    settings = get_settings()
    if plan == PLAN_PRO:
        limits = dict(PLAN_LIMITS[PLAN_PRO])
        limits["max_events_per_month"] = settings.pro_max_events_per_month
    else:
        limits = dict(PLAN_LIMITS[PLAN_FREE])
        limits["max_events_per_month"] = settings.free_max_events_per_month
    return limits


def get_monthly_event_limit(plan: str) -> int:
    return get_plan_limits(plan)["max_events_per_month"]


def get_category_limit(plan: str) -> int:
    return get_plan_limits(plan)["max_event_categories"]


def get_webhook_limit(plan: str) -> Optional[int]:
    """Get the webhook limit. None means unlimited."""
    return get_plan_limits(plan)["max_webhooks"]
