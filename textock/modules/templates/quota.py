"""Per-account template quota."""
from typing import Optional

from textock.modules.templates.schemas import QuotaResponse

FREE_TIER = "free"
PREMIUM_TIER = "premium"
ENTERPRISE_TIER = "enterprise"

TEMPLATE_LIMITS = {
    FREE_TIER: 30,
    # Reserved for paid plans, not assigned to any account yet
    PREMIUM_TIER: 100,
    ENTERPRISE_TIER: 1000,
}

# Percentage thresholds, highest first
_STATUS_THRESHOLDS = (
    (100, "critical"),
    (80, "warning"),
    (60, "caution"),
)


def get_current_template_limit() -> int:
    """Only the free tier is active."""
    return TEMPLATE_LIMITS[FREE_TIER]


def quota_exceeded_message(limit: int) -> str:
    return (
        f"Template limit reached ({limit} templates). "
        "Delete an existing template to create a new one."
    )


def template_count_message(current: int, limit: int) -> str:
    remaining = limit - current
    if remaining <= 0:
        return f"Template limit reached ({limit} templates)"
    if remaining <= 5:
        return f"You can create {remaining} more template{'s' if remaining != 1 else ''}"
    return f"Using {current}/{limit} templates"


def quota_status(percentage: float) -> str:
    for threshold, status in _STATUS_THRESHOLDS:
        if percentage >= threshold:
            return status
    return "normal"


def compute_quota(current: int, limit: Optional[int] = None) -> QuotaResponse:
    """Usage snapshot for ``current`` owned templates. Counts above the limit are tolerated."""
    if limit is None:
        limit = get_current_template_limit()
    if limit <= 0:
        raise ValueError("Template limit must be positive")
    current = max(int(current), 0)
    raw_percentage = current * 100 / limit
    return QuotaResponse(
        current=current,
        limit=limit,
        remaining=max(limit - current, 0),
        percentage=min(raw_percentage, 100.0),
        reached_limit=current >= limit,
        status=quota_status(raw_percentage),
        message=template_count_message(current, limit),
    )
