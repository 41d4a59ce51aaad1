import pytest

from textock.modules.templates.quota import (
    TEMPLATE_LIMITS,
    compute_quota,
    get_current_template_limit,
    quota_exceeded_message,
    quota_status,
    template_count_message,
)


def test_free_tier_is_the_active_limit():
    assert get_current_template_limit() == TEMPLATE_LIMITS["free"] == 30


def test_reached_limit_at_exact_count():
    quota = compute_quota(30, limit=30)
    assert quota.reached_limit is True
    assert quota.remaining == 0
    assert quota.status == "critical"


def test_over_limit_never_goes_negative():
    quota = compute_quota(31, limit=30)
    assert quota.reached_limit is True
    assert quota.remaining == 0
    assert quota.percentage == 100.0


def test_under_limit():
    quota = compute_quota(12)
    assert quota.limit == 30
    assert quota.reached_limit is False
    assert quota.remaining == 18
    assert quota.percentage == pytest.approx(40.0)
    assert quota.status == "normal"


@pytest.mark.parametrize(
    "percentage,expected",
    [(0, "normal"), (59.9, "normal"), (60, "caution"), (79.9, "caution"), (80, "warning"), (99.9, "warning"), (100, "critical"), (150, "critical")],
)
def test_status_thresholds(percentage, expected):
    assert quota_status(percentage) == expected


def test_negative_count_is_treated_as_zero():
    quota = compute_quota(-3, limit=10)
    assert quota.current == 0
    assert quota.remaining == 10


def test_limit_must_be_positive():
    with pytest.raises(ValueError):
        compute_quota(1, limit=0)


def test_count_messages():
    assert template_count_message(30, 30) == "Template limit reached (30 templates)"
    assert template_count_message(29, 30) == "You can create 1 more template"
    assert template_count_message(26, 30) == "You can create 4 more templates"
    assert template_count_message(10, 30) == "Using 10/30 templates"


def test_exceeded_message_names_the_limit():
    assert "30" in quota_exceeded_message(30)
