"""Length-of-stay and promo-code discounts.

The promo discount is computed after the length discount, against the
already-discounted base. Every promo rejection is silent: the discount is
left unchanged and a guest-facing ``promo_message`` explains why.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Iterable

from stayprice.domain.currency import PIVOT_CURRENCY, UnsupportedCurrencyError, pivot_rate
from stayprice.domain.pricing_config import LengthDiscount
from stayprice.domain.promo import (
    DiscountType,
    PromoCodeRepository,
    UsageRepository,
    check_promo_valid_for_user,
)
from stayprice.infra.exchange_rates import RateSource, pin_rates
from stayprice.observability.logging import get_logger, log_fields

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscountResult:
    total_discount: float = 0.0
    discount_breakdown: dict[str, float] = field(default_factory=dict)
    length_discount_percentage: float | None = None
    promo_applied: dict[str, Any] | None = None
    promo_message: str | None = None

    @property
    def length_discount(self) -> float:
        return self.discount_breakdown.get("length_discount", 0.0)

    @property
    def promo_code_discount(self) -> float:
        return self.discount_breakdown.get("promo_code_discount", 0.0)


def select_length_discount(tiers: Iterable[LengthDiscount], nights: int) -> LengthDiscount | None:
    """Best tier unlocked by *nights*: highest percentage, first one on ties."""
    applicable = [tier for tier in tiers if nights >= tier.min_nights]
    if not applicable:
        return None
    return max(applicable, key=lambda tier: tier.discount)


def calculate_length_discount(
    tiers: Iterable[LengthDiscount],
    base_price: float,
    nights: int,
) -> DiscountResult:
    tier = select_length_discount(tiers, nights)
    if tier is None:
        return DiscountResult()

    amount = base_price * (tier.discount / 100)
    breakdown = {"length_discount": amount} if amount > 0 else {}
    return DiscountResult(
        total_discount=amount if amount > 0 else 0.0,
        discount_breakdown=breakdown,
        length_discount_percentage=tier.discount,
    )


def _rejected(discounts: DiscountResult, code: str, message: str) -> DiscountResult:
    logger.info("promo code not applied", extra=log_fields(promo_code=code, reason=message))
    return replace(discounts, promo_applied=None, promo_message=message)


def calculate_promo_discount(
    discounts: DiscountResult,
    *,
    base_price: float,
    promo_code: str | None,
    user_id: str | None,
    currency: str,
    gateway: RateSource,
    promo_codes: PromoCodeRepository,
    usage: UsageRepository,
    as_of: date,
) -> DiscountResult:
    """Apply a promo code on top of *discounts*.

    Args:
        discounts: Result of the length-of-stay step.
        base_price: Total base price in guest currency (before any discount).
        promo_code: Code as typed by the guest (case-insensitive).
        user_id: Redeeming user; promo codes need a known user.
        currency: Guest currency.
        gateway: Exchange rate gateway for promo-currency conversion.
        promo_codes: Lookup returning only redeemable codes.
        usage: Per-user redemption counter.
        as_of: Date used for promo validity.
    """
    if not promo_code or not user_id:
        return replace(discounts, promo_applied=None)

    code = promo_code.strip().upper()
    promo = promo_codes.find_active_by_code(code, as_of)
    if promo is None:
        return _rejected(discounts, code, "Invalid promo code.")

    remaining_base = base_price - discounts.total_discount
    rates = pin_rates(gateway, PIVOT_CURRENCY)

    try:
        validation = promo.validate(remaining_base, currency, rates)
    except UnsupportedCurrencyError:
        return _rejected(discounts, code, "This promo code is not available in your currency.")
    if not validation.valid:
        return _rejected(discounts, code, validation.message)

    per_user = check_promo_valid_for_user(usage, promo, user_id)
    if not per_user.valid:
        return _rejected(discounts, code, per_user.message)

    rate = pivot_rate(rates, promo.currency, currency)

    if promo.discount_type == DiscountType.PERCENTAGE:
        promo_discount = remaining_base * promo.discount_value / 100
        if promo.maximum_discount is not None:
            promo_discount = min(promo_discount, promo.maximum_discount * rate)
    else:
        promo_discount = min(promo.discount_value * rate, remaining_base)

    promo_discount = max(promo_discount, 0.0)

    return DiscountResult(
        total_discount=discounts.total_discount + promo_discount,
        discount_breakdown={**discounts.discount_breakdown, "promo_code_discount": promo_discount},
        length_discount_percentage=discounts.length_discount_percentage,
        promo_applied={
            "promo_code_id": promo.id,
            "promo_code": promo.promo_code,
            "discount_type": promo.discount_type.value,
            "base_discount_value": promo.discount_value,
            "currency_exchange_rate": {
                "rate": rate,
                "base_currency": promo.currency.lower(),
                "target_currency": currency.lower(),
                "timestamp": rates.table.fetched_at,
            },
        },
        promo_message=None,
    )
