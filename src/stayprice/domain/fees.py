"""Tiered per-guest fee calculation.

Pure functions, no I/O. Amounts are in whatever currency the caller
passes in (the orchestrator passes guest-currency values).
"""

from __future__ import annotations

from stayprice.domain.pricing_config import CapacityFeeRules, FeeRule, FeeRuleType


def calculate_fee(rule: FeeRule, person_count: int, base_service_fee: float) -> float:
    """Extra fee for one guest type.

    Nothing is charged while ``person_count`` stays within ``rule.limit``.
    Above it:
    - fixed: ``rule.value`` once
    - percentage: ``rule.value`` percent of the base service fee
    - per_person: ``rule.value`` for every guest above the limit

    Raises:
        ValueError: If ``rule.type`` is not a known fee rule type.
    """
    if person_count <= rule.limit:
        return 0.0

    extra = person_count - rule.limit
    rule_type = FeeRuleType(rule.type)

    if rule_type == FeeRuleType.FIXED:
        return rule.value
    if rule_type == FeeRuleType.PERCENTAGE:
        return base_service_fee * rule.value / 100
    return extra * rule.value


def calculate_service_fees(
    rules: CapacityFeeRules,
    child_count: int,
    adult_count: int,
    base_service_fee: float,
) -> float:
    """Base service fee plus the adult and child tier fees."""
    adult_fee = calculate_fee(rules.adult, adult_count, base_service_fee)
    child_fee = calculate_fee(rules.child, child_count, base_service_fee)
    return base_service_fee + adult_fee + child_fee
