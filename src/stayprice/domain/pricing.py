"""Price assembly - the single entry point of the pricing engine.

Sequence (amounts in guest currency unless noted):
convert base price and fees once -> nights -> nightly base total ->
average -> length discount -> promo discount -> tiered service fee ->
subtotal -> platform fee and tax -> total -> one final rounding pass.

The USD rate table is fetched once per quote and every conversion reads
from that one table. The exchange-rate metadata is left at full precision
for auditing. Its timestamp is the moment the table was fetched, so
identical inputs priced against the same cached table produce identical
breakdowns.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from stayprice.domain.booking import BookingRequest, validate_booking_request
from stayprice.domain.currency import (
    PIVOT_CURRENCY,
    UnsupportedCurrencyError,
    normalize_currency_payload,
    normalize_precision,
    precision_mode,
)
from stayprice.domain.discounts import calculate_length_discount, calculate_promo_discount
from stayprice.domain.errors import InvalidBookingRequest, PricingConfigError
from stayprice.domain.fees import calculate_service_fees
from stayprice.domain.nightly import calculate_base_price
from stayprice.domain.pricing_config import PricingConfiguration, validate_pricing_config
from stayprice.domain.promo import PromoCodeRepository, UsageRepository
from stayprice.infra.exchange_rates import RateSource, pin_rates
from stayprice.infra.time import utc_today
from stayprice.observability.logging import get_logger, log_fields

logger = get_logger(__name__)

PLATFORM_FEE_PERCENTAGE = 14
TAX_PERCENTAGE = 18

_CONVERTED_KEYS = ("amount", "cleaning", "service")
_UNROUNDED_KEYS = ("currency_exchange_rate",)


def _convert_listing_amounts(
    config: PricingConfiguration,
    guest_currency: str,
    gateway: RateSource,
) -> tuple[dict[str, Any], float]:
    original = {
        "base_price": {"amount": config.base_price.amount},
        "additional_fees": {
            "cleaning": config.additional_fees.cleaning,
            "service": config.additional_fees.service,
        },
    }
    try:
        return normalize_currency_payload(
            original,
            _CONVERTED_KEYS,
            config.host_currency,
            guest_currency,
            gateway,
            mode="none",
        )
    except UnsupportedCurrencyError as e:
        if e.currency == guest_currency:
            raise InvalidBookingRequest("unsupported_currency", {"currency": guest_currency}) from e
        raise PricingConfigError("unsupported_host_currency", {"currency": e.currency}) from e


def compute_price(
    config: PricingConfiguration,
    request: BookingRequest,
    *,
    gateway: RateSource,
    promo_codes: PromoCodeRepository,
    usage: UsageRepository,
    as_of: date | None = None,
) -> dict[str, Any]:
    """Compute the full price breakdown for a booking request.

    Args:
        config: Listing pricing configuration (host currency).
        request: Booking request (guest currency).
        gateway: Exchange rate gateway.
        promo_codes: Promo code lookup.
        usage: Promo usage counter.
        as_of: Date used for promo validity (defaults to today, UTC).

    Returns:
        Price breakdown dict, rounded for the guest currency.

    Raises:
        InvalidBookingRequest: Bad dates, guest counts or currency.
        PricingConfigError: Inconsistent pricing configuration.
        ExchangeRateUnavailable: Rate source failure (retryable).
    """
    validate_booking_request(request)
    validate_pricing_config(config)

    as_of = as_of or utc_today()
    guest_currency = request.currency.upper()

    rates = pin_rates(gateway, PIVOT_CURRENCY)
    converted, rate = _convert_listing_amounts(config, guest_currency, rates)
    base_amount = converted["base_price"]["amount"]
    cleaning_fee = converted["additional_fees"]["cleaning"] or 0.0
    base_service_fee = converted["additional_fees"]["service"] or 0.0

    nights = request.nights
    total_base_price = calculate_base_price(config, request.check_in, request.check_out, base_amount, rate)
    price_per_night = total_base_price / nights

    discounts = calculate_length_discount(config.length_discounts, total_base_price, nights)
    discounts = calculate_promo_discount(
        discounts,
        base_price=total_base_price,
        promo_code=request.promo_code,
        user_id=request.user_id,
        currency=guest_currency,
        gateway=rates,
        promo_codes=promo_codes,
        usage=usage,
        as_of=as_of,
    )

    service_fee = calculate_service_fees(
        config.capacity_fee_rules,
        request.child_count,
        request.adult_count,
        base_service_fee,
    )

    price_after_discounts = total_base_price - discounts.total_discount
    sub_total = (total_base_price - discounts.length_discount) + cleaning_fee + service_fee
    platform_fee = sub_total * PLATFORM_FEE_PERCENTAGE / 100
    tax = sub_total * TAX_PERCENTAGE / 100
    total_price = sub_total + tax + platform_fee - discounts.promo_code_discount

    breakdown = {
        "selected_dates": {"check_in": request.check_in, "check_out": request.check_out},
        "guest": {"adult": request.adult_count, "child": request.child_count},
        "number_of_nights": nights,
        "price_per_night": price_per_night,
        "total_base_price": total_base_price,
        "additional_fees": {
            "cleaning": cleaning_fee,
            "service": service_fee,
            "tax": tax,
            "platform_fee": platform_fee,
        },
        "discounts": discounts.total_discount,
        "discount_breakdown": dict(discounts.discount_breakdown),
        "length_discount_percentage": discounts.length_discount_percentage,
        "promo_applied": discounts.promo_applied,
        "promo_message": discounts.promo_message,
        "currency_exchange_rate": {
            "rate": rate,
            "base_currency": config.host_currency.lower(),
            "target_currency": guest_currency.lower(),
            "timestamp": rates.table.fetched_at,
        },
        "tax_percentage": TAX_PERCENTAGE,
        "platform_fee_percentage": PLATFORM_FEE_PERCENTAGE,
        "price_after_discounts": price_after_discounts,
        "sub_total": sub_total,
        "total_price": total_price,
        "currency": guest_currency,
    }

    result = normalize_precision(
        breakdown,
        precision_mode(guest_currency),
        omit_keys=_UNROUNDED_KEYS,
        currency=guest_currency,
    )

    logger.info(
        "price computed",
        extra=log_fields(
            nights=nights,
            currency=guest_currency,
            total_price=result["total_price"],
            promo_applied=discounts.promo_applied is not None,
        ),
    )
    return result
