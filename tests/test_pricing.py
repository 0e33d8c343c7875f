import pytest

from stshield.core.exceptions import InvalidPlanError
from stshield.services import pricing


def test_known_plans_resolve_to_fixed_price():
    assert pricing.resolve_price("student-shield") == 99900
    assert pricing.resolve_price("student-shield-plus") == 199900


@pytest.mark.parametrize("plan_id", [None, "", "Student-Shield", "student-shield ", "premium", "__class__"])
def test_unknown_plan_is_rejected(plan_id):
    with pytest.raises(InvalidPlanError) as exc:
        pricing.resolve_price(plan_id)
    assert exc.value.status_code == 400
    assert exc.value.message == "Invalid plan type"


def test_plan_table_is_read_only():
    with pytest.raises(TypeError):
        pricing.PLANS["student-shield"] = pricing.Plan("student-shield", "Cheap", 1)


def test_plan_name_and_rupee_formatting():
    assert pricing.plan_name("student-shield-plus") == "Student Shield Plus"
    assert pricing.plan_name("legacy") == "legacy"
    assert pricing.plan_name(None) == "N/A"
    assert pricing.format_rupees(99900) == "999"
    assert pricing.format_rupees(199950) == "1,999.50"
    assert pricing.format_rupees(None) == "N/A"
