"""Trusted plan prices; the only source for what an order should cost."""

from dataclasses import dataclass
from types import MappingProxyType

from stshield.core.exceptions import InvalidPlanError


@dataclass(frozen=True)
class Plan:
    plan_id: str
    name: str
    amount_paise: int


PLANS = MappingProxyType({
    "student-shield": Plan("student-shield", "Student Shield", 99900),  # ₹999
    "student-shield-plus": Plan("student-shield-plus", "Student Shield Plus", 199900),  # ₹1999
})


def get_plan(plan_id: str | None) -> Plan:
    if not plan_id or plan_id not in PLANS:
        raise InvalidPlanError()
    return PLANS[plan_id]


def resolve_price(plan_id: str | None) -> int:
    return get_plan(plan_id).amount_paise


def plan_name(plan_id: str | None) -> str:
    """Display name for emails/exports; falls back to the raw identifier."""
    plan = PLANS.get(plan_id or "")
    return plan.name if plan else (plan_id or "N/A")


def format_rupees(amount_paise: int | None) -> str:
    if amount_paise is None:
        return "N/A"
    rupees, paise = divmod(int(amount_paise), 100)
    if paise:
        return f"{rupees:,}.{paise:02d}"
    return f"{rupees:,}"
