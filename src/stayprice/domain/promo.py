"""Promo codes: value object, validation and guest-facing previews.

Date validity and redemption exhaustion are filtered by the repository
lookup (``find_active_by_code``); ``PromoCode.validate`` only checks the
minimum spend. Per-user limits are counted from promo usage records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Protocol

from stayprice.domain.currency import (
    PIVOT_CURRENCY,
    convert_keys,
    pivot_rate,
    precision_mode,
    round_amount,
)
from stayprice.domain.errors import PricingError
from stayprice.infra.exchange_rates import RateSource, pin_rates


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


class PromoRejected(PricingError):
    """Promo code cannot be applied; ``message`` is safe to show to guests."""

    def __init__(self, message: str, meta: dict | None = None):
        self.message = message
        super().__init__("promo_rejected", {"message": message, **(meta or {})})


@dataclass(frozen=True)
class PromoValidation:
    valid: bool
    message: str | None = None


@dataclass(frozen=True)
class PromoCode:
    id: str
    promo_code: str
    discount_type: DiscountType
    discount_value: float
    currency: str
    valid_from: date
    valid_until: date
    minimum_spend: float = 0.0
    maximum_discount: float | None = None
    max_redemptions: int = 10
    max_per_user: int = 1
    used_count: int = 0
    status: str = "inactive"
    description: str | None = None
    eligible_user_types: tuple[str, ...] = field(default=("newUser",))

    def __post_init__(self) -> None:
        # Rows and JSON hand us plain strings.
        object.__setattr__(self, "discount_type", DiscountType(self.discount_type))
        object.__setattr__(self, "promo_code", self.promo_code.upper())

    @property
    def is_exhausted(self) -> bool:
        return self.used_count >= self.max_redemptions

    def is_expired(self, as_of: date) -> bool:
        return as_of > self.valid_until

    def is_redeemable(self, as_of: date) -> bool:
        """Same predicate the repository lookup applies in SQL."""
        return (
            self.status == "active"
            and self.valid_from <= as_of <= self.valid_until
            and not self.is_exhausted
        )

    def validate(
        self,
        candidate_spend: float,
        currency: str,
        gateway: RateSource,
    ) -> PromoValidation:
        """Check the minimum spend, converted into the caller's currency."""
        rate = pivot_rate(gateway, self.currency, currency)
        minimum_spend = self.minimum_spend * rate
        if candidate_spend < minimum_spend:
            shown = round_amount(minimum_spend, precision_mode(currency), currency)
            return PromoValidation(
                valid=False,
                message=f"The minimum spend required to apply this coupon is {shown} {currency.upper()}.",
            )
        return PromoValidation(valid=True)


@dataclass(frozen=True)
class PromoUsage:
    user_id: str
    promo_code_id: str
    reservation_id: str
    applied_on: datetime | None = None


class PromoCodeRepository(Protocol):
    def find_active_by_code(self, code: str, as_of: date) -> PromoCode | None: ...

    def list_active(self, as_of: date) -> list[PromoCode]: ...


class UsageRepository(Protocol):
    def count_usage(self, user_id: str, promo_code_id: str) -> int: ...


def check_promo_valid_for_user(
    usage: UsageRepository,
    promo: PromoCode,
    user_id: str,
) -> PromoValidation:
    """Per-user limit check, counted from existing usage records."""
    used = usage.count_usage(user_id, promo.id)
    if used >= promo.max_per_user:
        return PromoValidation(
            valid=False,
            message=(
                "You've reached the usage limit for this promo code. "
                f"This offer is only valid {promo.max_per_user} times per customer."
            ),
        )
    return PromoValidation(valid=True)


def _amounts_in_currency(
    promo: PromoCode,
    currency: str,
    gateway: RateSource,
) -> dict[str, Any]:
    rate = pivot_rate(gateway, promo.currency, currency)
    amounts = convert_keys(
        {
            "discount_value": promo.discount_value,
            "minimum_spend": promo.minimum_spend,
            "maximum_discount": promo.maximum_discount,
        },
        ("discount_value", "minimum_spend", "maximum_discount"),
        rate,
        precision_mode(currency),
        currency,
    )
    if promo.discount_type == DiscountType.PERCENTAGE:
        # Percentages are relative and never converted.
        amounts["discount_value"] = promo.discount_value
    return amounts


def preview_promo(
    code: str,
    total_base_price: float,
    currency: str,
    user_id: str,
    *,
    gateway: RateSource,
    promo_codes: PromoCodeRepository,
    usage: UsageRepository,
    as_of: date,
) -> dict[str, Any]:
    """Check a promo code against a base price before booking.

    Returns:
        Promo details with amounts in *currency*.

    Raises:
        PromoRejected: With a guest-facing message when the code is unknown,
            inactive, below minimum spend or over the per-user limit.
    """
    if not code or not code.strip():
        raise PromoRejected("A valid promo code is required.")
    if total_base_price <= 0:
        raise PromoRejected("A valid total base price must be a positive number.")

    promo = promo_codes.find_active_by_code(code.strip().upper(), as_of)
    if promo is None:
        raise PromoRejected("Invalid promo code.", {"promo_code": code.upper()})

    rates = pin_rates(gateway, PIVOT_CURRENCY)
    validation = promo.validate(total_base_price, currency, rates)
    if not validation.valid:
        raise PromoRejected(validation.message, {"promo_code": promo.promo_code})

    per_user = check_promo_valid_for_user(usage, promo, user_id)
    if not per_user.valid:
        raise PromoRejected(per_user.message, {"promo_code": promo.promo_code})

    return {
        "promo_code_id": promo.id,
        "promo_code": promo.promo_code,
        "discount_type": promo.discount_type.value,
        "valid_until": promo.valid_until,
        "currency": currency.upper(),
        **_amounts_in_currency(promo, currency, rates),
    }


def describe_promo(promo: dict[str, Any]) -> str:
    """One-line guest-facing description of a converted promo."""
    currency = promo["currency"]
    until = promo["valid_until"].strftime("%B %d, %Y")
    if promo["discount_type"] == DiscountType.FLAT.value:
        return (
            f"Enjoy {promo['discount_value']} {currency} off your stay. Valid until {until}. "
            f"Minimum spend: {promo['minimum_spend']} {currency}."
        )
    text = (
        f"Book now and get {promo['discount_value']}% off your trip, offer ends {until}. "
        f"Minimum spend: {promo['minimum_spend']} {currency}."
    )
    if promo.get("maximum_discount") is not None:
        text += f" Get up to {promo['maximum_discount']} {currency} off on eligible bookings!"
    return text


def list_promos_for_currency(
    promos: list[PromoCode],
    currency: str,
    gateway: RateSource,
) -> list[dict[str, Any]]:
    """Render active promo codes with amounts in the guest's currency."""
    rates = pin_rates(gateway, PIVOT_CURRENCY)
    listed = []
    for promo in promos:
        item = {
            "promo_code": promo.promo_code,
            "discount_type": promo.discount_type.value,
            "valid_until": promo.valid_until,
            "eligible_user_types": list(promo.eligible_user_types),
            "currency": currency.upper(),
            **_amounts_in_currency(promo, currency, rates),
        }
        item["description"] = describe_promo(item)
        listed.append(item)
    return listed
